from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from schoolboard.api.deps import forbid, get_current_user, get_db, require_roles
from schoolboard.models.user import User, UserRole
from schoolboard.schemas.school_class import (
    ClassRosterSet,
    ClassRosterToggleOut,
    SchoolClassCreate,
    SchoolClassOut,
    SchoolClassUpdate,
)
from schoolboard.services import classes as class_service
from schoolboard.services.audit import log_activity
from schoolboard.services.live import publish_change

router = APIRouter()


@router.get("/classes", response_model=list[SchoolClassOut])
def list_classes(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> list[SchoolClassOut]:
    return class_service.list_classes(db)


@router.get("/classes/mine", response_model=list[SchoolClassOut])
def list_my_classes(
    current_user: User = Depends(require_roles(UserRole.teacher, UserRole.admin)),
    db: Session = Depends(get_db),
) -> list[SchoolClassOut]:
    return class_service.list_classes_for_teacher(db, current_user)


@router.post("/classes", response_model=SchoolClassOut, status_code=status.HTTP_201_CREATED)
def create_class(
    payload: SchoolClassCreate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> SchoolClassOut:
    school_class = class_service.create_class(db, **payload.model_dump())
    log_activity(
        db,
        user=current_user,
        action="class.create",
        entity_type="class",
        entity_id=school_class.id,
        details={"class_id": school_class.class_id},
    )
    db.commit()
    db.refresh(school_class)
    publish_change(db, "classes")
    return school_class


@router.put("/classes/{class_pk}", response_model=SchoolClassOut)
def update_class(
    class_pk: str,
    payload: SchoolClassUpdate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> SchoolClassOut:
    changes = payload.model_dump(exclude_unset=True)
    school_class = class_service.update_class(db, class_pk, changes)
    log_activity(
        db,
        user=current_user,
        action="class.update",
        entity_type="class",
        entity_id=school_class.id,
        details={"fields": sorted(changes)},
    )
    db.commit()
    db.refresh(school_class)
    publish_change(db, "classes")
    return school_class


@router.post("/classes/{class_pk}/regenerate-id", response_model=SchoolClassOut)
def regenerate_class_id(
    class_pk: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> SchoolClassOut:
    school_class = class_service.regenerate_class_id(db, class_pk)
    log_activity(
        db,
        user=current_user,
        action="class.regenerate_id",
        entity_type="class",
        entity_id=school_class.id,
        details={"class_id": school_class.class_id},
    )
    db.commit()
    db.refresh(school_class)
    publish_change(db, "classes")
    return school_class


@router.delete("/classes/{class_pk}")
def delete_class(
    class_pk: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> dict:
    class_service.delete_class(db, class_pk)
    log_activity(db, user=current_user, action="class.delete", entity_type="class", entity_id=class_pk)
    db.commit()
    publish_change(db, "classes")
    return {"id": class_pk, "deleted": True}


@router.post("/classes/{class_pk}/students/{student_id}/toggle", response_model=ClassRosterToggleOut)
def toggle_class_student(
    class_pk: str,
    student_id: str,
    current_user: User = Depends(require_roles(UserRole.teacher, UserRole.admin)),
    db: Session = Depends(get_db),
) -> ClassRosterToggleOut:
    school_class = class_service.get_class(db, class_pk)
    if not class_service.can_manage_class(school_class, current_user):
        raise forbid("Only the class teacher can edit this roster")
    enrolled = class_service.toggle_class_student(db, school_class, student_id)
    db.commit()
    return ClassRosterToggleOut(student_id=student_id, enrolled=enrolled, student_ids=school_class.student_ids)


@router.put("/classes/{class_pk}/students", response_model=SchoolClassOut)
def set_class_students(
    class_pk: str,
    payload: ClassRosterSet,
    current_user: User = Depends(require_roles(UserRole.teacher, UserRole.admin)),
    db: Session = Depends(get_db),
) -> SchoolClassOut:
    school_class = class_service.get_class(db, class_pk)
    if not class_service.can_manage_class(school_class, current_user):
        raise forbid("Only the class teacher can edit this roster")
    class_service.set_class_students(db, school_class, payload.student_ids)
    db.commit()
    db.refresh(school_class)
    return school_class

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from schoolboard.api.deps import get_db, require_roles
from schoolboard.core.exceptions import ValidationFailedError
from schoolboard.models.user import User, UserRole
from schoolboard.schemas.user import AdvisorAssign, AdvisorSet, BatchSummaryOut, UserCreate, UserOut, UserUpdate
from schoolboard.services import accounts
from schoolboard.services.audit import log_activity

router = APIRouter()


@router.get("/users", response_model=list[UserOut])
def list_users(
    role: UserRole | None = Query(default=None),
    search: str | None = Query(default=None, max_length=100),
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.teacher)),
    db: Session = Depends(get_db),
) -> list[UserOut]:
    return accounts.list_users(db, role=role, search=search)


@router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> UserOut:
    user = accounts.create_account(db, **payload.model_dump())
    log_activity(
        db,
        user=current_user,
        action="user.create",
        entity_type="user",
        entity_id=user.id,
        details={"username": user.username, "role": user.role.value},
    )
    db.commit()
    db.refresh(user)
    return user


@router.get("/users/advisees", response_model=list[UserOut])
def list_my_advisees(
    current_user: User = Depends(require_roles(UserRole.teacher, UserRole.admin)),
    db: Session = Depends(get_db),
) -> list[UserOut]:
    return accounts.list_advisees(db, current_user)


@router.post("/users/advisors", response_model=BatchSummaryOut)
def assign_advisors(
    payload: AdvisorAssign,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> BatchSummaryOut:
    if payload.teacher_id:
        summary = accounts.assign_advisor(db, payload.student_ids, payload.teacher_id)
    else:
        summary = accounts.clear_advisor(db, payload.student_ids)
    log_activity(
        db,
        user=current_user,
        action="user.advisor.bulk",
        entity_type="user",
        details={"teacher_id": payload.teacher_id, "updated": len(summary.updated), "skipped": len(summary.skipped)},
    )
    db.commit()
    return summary


@router.get("/users/{user_id}", response_model=UserOut)
def get_user(
    user_id: str,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.teacher)),
    db: Session = Depends(get_db),
) -> UserOut:
    return accounts.get_user(db, user_id)


@router.put("/users/{user_id}", response_model=UserOut)
def update_user(
    user_id: str,
    payload: UserUpdate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> UserOut:
    changes = payload.model_dump(exclude_unset=True)
    user = accounts.update_account(db, user_id, changes)
    log_activity(
        db,
        user=current_user,
        action="user.update",
        entity_type="user",
        entity_id=user.id,
        details={"fields": sorted(key for key in changes if key != "password")},
    )
    db.commit()
    db.refresh(user)
    return user


@router.put("/users/{user_id}/advisor", response_model=UserOut)
def set_advisor(
    user_id: str,
    payload: AdvisorSet,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> UserOut:
    student = accounts.get_user(db, user_id)
    if student.role != UserRole.student:
        raise ValidationFailedError("Only students have advisors", details={"user_id": user_id})
    if payload.teacher_id:
        accounts.assign_advisor(db, [student.id], payload.teacher_id)
    else:
        accounts.clear_advisor(db, [student.id])
    log_activity(
        db,
        user=current_user,
        action="user.advisor",
        entity_type="user",
        entity_id=student.id,
        details={"teacher_id": payload.teacher_id},
    )
    db.commit()
    db.refresh(student)
    return student


@router.delete("/users/{user_id}")
def delete_user(
    user_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> dict:
    accounts.delete_account(db, user_id)
    log_activity(db, user=current_user, action="user.delete", entity_type="user", entity_id=user_id)
    db.commit()
    return {"id": user_id, "deleted": True}

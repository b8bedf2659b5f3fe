from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from schoolboard.api.deps import forbid, get_current_user, get_db, require_roles
from schoolboard.models.lesson import Lesson
from schoolboard.models.user import User, UserRole
from schoolboard.schemas.lesson import LessonCreate, LessonOut, LessonUpdate, RosterAdd, RosterBulkAdd
from schoolboard.schemas.user import BatchSummaryOut
from schoolboard.services import lessons as lesson_service
from schoolboard.services.audit import log_activity
from schoolboard.services.live import publish_change

router = APIRouter()


def to_lesson_out(lesson: Lesson) -> LessonOut:
    return LessonOut.model_validate(lesson).model_copy(update={"label": lesson_service.label_for_lesson(lesson)})


def _managed_lesson(db: Session, lesson_id: str, user: User) -> Lesson:
    lesson = lesson_service.get_lesson(db, lesson_id)
    if not lesson_service.can_manage_lesson(lesson, user):
        raise forbid("Only the lesson teacher can change this lesson")
    return lesson


@router.get("/lessons", response_model=list[LessonOut])
def list_lessons(
    mine: bool = Query(default=False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[LessonOut]:
    lessons = lesson_service.list_lessons(db, teacher=current_user if mine else None)
    return [to_lesson_out(lesson) for lesson in lessons]


@router.get("/lessons/{lesson_id}", response_model=LessonOut)
def get_lesson(
    lesson_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LessonOut:
    return to_lesson_out(lesson_service.get_lesson(db, lesson_id))


@router.post("/lessons", response_model=LessonOut, status_code=status.HTTP_201_CREATED)
def create_lesson(
    payload: LessonCreate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.teacher)),
    db: Session = Depends(get_db),
) -> LessonOut:
    data = payload.model_dump()
    if current_user.role == UserRole.teacher:
        # Teachers create lessons they teach themselves.
        data.update(is_student_teacher=False, teacher_username=current_user.username, student_username=None)
    lesson = lesson_service.create_lesson(db, **data)
    log_activity(
        db,
        user=current_user,
        action="lesson.create",
        entity_type="lesson",
        entity_id=lesson.id,
        details={"name": lesson.name},
    )
    db.commit()
    db.refresh(lesson)
    publish_change(db, "lessons")
    return to_lesson_out(lesson)


@router.put("/lessons/{lesson_id}", response_model=LessonOut)
def update_lesson(
    lesson_id: str,
    payload: LessonUpdate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.teacher)),
    db: Session = Depends(get_db),
) -> LessonOut:
    _managed_lesson(db, lesson_id, current_user)
    changes = payload.model_dump(exclude_unset=True)
    if current_user.role == UserRole.teacher:
        changes = {key: value for key, value in changes.items() if key == "name"}
    lesson = lesson_service.update_lesson(db, lesson_id, changes)
    log_activity(
        db,
        user=current_user,
        action="lesson.update",
        entity_type="lesson",
        entity_id=lesson.id,
        details={"fields": sorted(changes)},
    )
    db.commit()
    db.refresh(lesson)
    publish_change(db, "lessons")
    return to_lesson_out(lesson)


@router.delete("/lessons/{lesson_id}")
def delete_lesson(
    lesson_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> dict:
    lesson_service.delete_lesson(db, lesson_id)
    log_activity(db, user=current_user, action="lesson.delete", entity_type="lesson", entity_id=lesson_id)
    db.commit()
    publish_change(db, "lessons")
    return {"id": lesson_id, "deleted": True}


@router.post("/lessons/{lesson_id}/students", response_model=LessonOut)
def add_student(
    lesson_id: str,
    payload: RosterAdd,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.teacher)),
    db: Session = Depends(get_db),
) -> LessonOut:
    lesson = _managed_lesson(db, lesson_id, current_user)
    lesson_service.add_student_to_lesson(
        db, lesson, payload.student_id, allow_same_subject=payload.allow_same_subject
    )
    db.commit()
    db.refresh(lesson)
    publish_change(db, "lessons")
    return to_lesson_out(lesson)


@router.post("/lessons/{lesson_id}/students/bulk", response_model=BatchSummaryOut)
def bulk_add_students(
    lesson_id: str,
    payload: RosterBulkAdd,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.teacher)),
    db: Session = Depends(get_db),
) -> BatchSummaryOut:
    lesson = _managed_lesson(db, lesson_id, current_user)
    summary = lesson_service.bulk_add_students(
        db, lesson, payload.student_ids, allow_same_subject=payload.allow_same_subject
    )
    log_activity(
        db,
        user=current_user,
        action="lesson.roster.bulk_add",
        entity_type="lesson",
        entity_id=lesson.id,
        details={"added": len(summary.updated), "skipped": len(summary.skipped)},
    )
    db.commit()
    publish_change(db, "lessons")
    return summary


@router.delete("/lessons/{lesson_id}/students/{student_id}", response_model=LessonOut)
def remove_student(
    lesson_id: str,
    student_id: str,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.teacher)),
    db: Session = Depends(get_db),
) -> LessonOut:
    lesson = _managed_lesson(db, lesson_id, current_user)
    lesson_service.remove_student_from_lesson(db, lesson, student_id)
    db.commit()
    db.refresh(lesson)
    publish_change(db, "lessons")
    return to_lesson_out(lesson)

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from schoolboard.core.exceptions import DuplicateKeyError, ResourceNotFoundError, ValidationFailedError
from schoolboard.models.lesson import Lesson
from schoolboard.models.user import User, UserRole
from schoolboard.services.accounts import BatchSummary, find_by_username
from schoolboard.services.lesson_names import parse_lesson_name

logger = logging.getLogger(__name__)

STUDENT_TEACHER_SUFFIX = "(student)"


def compact_name(first: str | None, last: str | None, username: str | None) -> str:
    full = " ".join(f"{first or ''} {last or ''}".split())
    if full and username:
        return f"{full} ({username})"
    return full or username or ""


def teacher_display_name(lesson: Lesson) -> str:
    if lesson.is_student_teacher:
        name = compact_name(lesson.student_first_name, lesson.student_last_name, lesson.student_username)
        return f"{name} {STUDENT_TEACHER_SUFFIX}" if name else ""
    return compact_name(lesson.teacher_first_name, lesson.teacher_last_name, lesson.teacher_username)


def label_for_lesson(lesson: Lesson) -> str:
    teacher = teacher_display_name(lesson)
    return f"{lesson.name} — {teacher}" if teacher else lesson.name


def get_lesson(db: Session, lesson_id: str) -> Lesson:
    lesson = db.get(Lesson, lesson_id)
    if lesson is None:
        raise ResourceNotFoundError("Lesson", lesson_id)
    return lesson


def list_lessons(db: Session, teacher: User | None = None) -> list[Lesson]:
    query = select(Lesson)
    if teacher is not None:
        query = query.where(Lesson.teacher_user_id == teacher.id)
    return sorted(db.execute(query).scalars(), key=lambda lesson: (lesson.name or "").casefold())


def can_manage_lesson(lesson: Lesson, user: User) -> bool:
    return user.role == UserRole.admin or lesson.teacher_user_id == user.id


def _assign_owner(db: Session, lesson: Lesson, *, is_student_teacher: bool, username: str | None) -> None:
    """Point the lesson at exactly one owner and null out the other side."""
    owner = find_by_username(db, username or "")
    if is_student_teacher:
        if owner is None or owner.role != UserRole.student:
            raise ValidationFailedError("Select a valid student", details={"username": username})
        lesson.is_student_teacher = True
        lesson.student_user_id = owner.id
        lesson.student_username = owner.username
        lesson.student_first_name = owner.first_name or ""
        lesson.student_last_name = owner.last_name or ""
        lesson.teacher_user_id = None
        lesson.teacher_username = None
        lesson.teacher_first_name = None
        lesson.teacher_last_name = None
    else:
        if owner is None or owner.role not in {UserRole.teacher, UserRole.admin}:
            raise ValidationFailedError("Select a valid teacher", details={"username": username})
        lesson.is_student_teacher = False
        lesson.teacher_user_id = owner.id
        lesson.teacher_username = owner.username
        lesson.teacher_first_name = owner.first_name or ""
        lesson.teacher_last_name = owner.last_name or ""
        lesson.student_user_id = None
        lesson.student_username = None
        lesson.student_first_name = None
        lesson.student_last_name = None


def create_lesson(
    db: Session,
    *,
    name: str,
    is_student_teacher: bool = False,
    teacher_username: str | None = None,
    student_username: str | None = None,
) -> Lesson:
    name = (name or "").strip()
    if not name:
        raise ValidationFailedError("Lesson name is required")
    lesson = Lesson(name=name, student_user_ids=[])
    _assign_owner(
        db,
        lesson,
        is_student_teacher=is_student_teacher,
        username=student_username if is_student_teacher else teacher_username,
    )
    db.add(lesson)
    db.flush()
    return lesson


def update_lesson(db: Session, lesson_id: str, changes: dict) -> Lesson:
    lesson = get_lesson(db, lesson_id)
    if "name" in changes and changes["name"] is not None:
        name = changes["name"].strip()
        if not name:
            raise ValidationFailedError("Lesson name is required")
        lesson.name = name
    owner_keys = {"is_student_teacher", "teacher_username", "student_username"}
    if owner_keys & {key for key, value in changes.items() if value is not None}:
        is_student_teacher = changes.get("is_student_teacher")
        if is_student_teacher is None:
            is_student_teacher = lesson.is_student_teacher
        username = changes.get("student_username") if is_student_teacher else changes.get("teacher_username")
        if username is None:
            username = lesson.student_username if is_student_teacher else lesson.teacher_username
        _assign_owner(db, lesson, is_student_teacher=is_student_teacher, username=username)
    db.flush()
    return lesson


def delete_lesson(db: Session, lesson_id: str) -> None:
    # Timetable entries pointing at the lesson stay and render as unknown.
    db.delete(get_lesson(db, lesson_id))
    db.flush()


def same_subject_lessons(db: Session, lesson: Lesson, student_id: str) -> list[Lesson]:
    """Other lessons with the same parsed subject base that already enrol the student."""
    base = parse_lesson_name(lesson.name).base.casefold()
    if not base:
        return []
    clashes = []
    for other in db.execute(select(Lesson).where(Lesson.id != lesson.id)).scalars():
        if student_id in (other.student_user_ids or []) and parse_lesson_name(other.name).base.casefold() == base:
            clashes.append(other)
    return clashes


def add_student_to_lesson(
    db: Session,
    lesson: Lesson,
    student_id: str,
    *,
    allow_same_subject: bool = False,
) -> Lesson:
    student = db.get(User, student_id)
    if student is None:
        raise ResourceNotFoundError("User", student_id)
    if student.role != UserRole.student:
        raise ValidationFailedError("Only students can be enrolled", details={"user_id": student_id})
    roster = list(lesson.student_user_ids or [])
    if student_id in roster:
        raise DuplicateKeyError("student", student.username)
    if not allow_same_subject:
        clashes = same_subject_lessons(db, lesson, student_id)
        if clashes:
            raise ValidationFailedError(
                f"{student.label} is already enrolled in {clashes[0].name}",
                details={"conflicting_lesson_ids": [item.id for item in clashes]},
            )
    roster.append(student_id)
    lesson.student_user_ids = roster
    db.flush()
    return lesson


def remove_student_from_lesson(db: Session, lesson: Lesson, student_id: str) -> Lesson:
    roster = list(lesson.student_user_ids or [])
    if student_id not in roster:
        raise ResourceNotFoundError("Roster entry", student_id)
    roster.remove(student_id)
    lesson.student_user_ids = roster
    db.flush()
    return lesson


def bulk_add_students(
    db: Session,
    lesson: Lesson,
    student_ids: list[str],
    *,
    allow_same_subject: bool = False,
) -> BatchSummary:
    summary = BatchSummary()
    for student_id in dict.fromkeys(student_ids):
        try:
            add_student_to_lesson(db, lesson, student_id, allow_same_subject=allow_same_subject)
        except (ResourceNotFoundError, ValidationFailedError, DuplicateKeyError) as exc:
            summary.skip(student_id, exc.message)
            continue
        summary.updated.append(student_id)
    return summary

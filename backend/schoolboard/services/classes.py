from __future__ import annotations

import logging
import secrets
import string

from sqlalchemy import select
from sqlalchemy.orm import Session

from schoolboard.core.exceptions import AppError, DuplicateKeyError, ResourceNotFoundError, ValidationFailedError
from schoolboard.models.school_class import SchoolClass
from schoolboard.models.user import User, UserRole

logger = logging.getLogger(__name__)

CLASS_ID_PREFIX = "CLS-"
CLASS_ID_ALPHABET = string.ascii_uppercase + string.digits
CLASS_ID_LENGTH = 4
MAX_CLASS_ID_ATTEMPTS = 100


def generate_class_id() -> str:
    return CLASS_ID_PREFIX + "".join(secrets.choice(CLASS_ID_ALPHABET) for _ in range(CLASS_ID_LENGTH))


def class_id_taken(db: Session, class_id: str, exclude_id: str | None = None) -> bool:
    rows = db.execute(select(SchoolClass.id).where(SchoolClass.class_id_lower == class_id.strip().lower())).scalars()
    return any(row != exclude_id for row in rows)


def generate_unique_class_id(db: Session) -> str:
    for _ in range(MAX_CLASS_ID_ATTEMPTS):
        candidate = generate_class_id()
        if not class_id_taken(db, candidate):
            return candidate
    raise AppError("Could not allocate a unique class id", status_code=503)


def get_class(db: Session, class_pk: str) -> SchoolClass:
    school_class = db.get(SchoolClass, class_pk)
    if school_class is None:
        raise ResourceNotFoundError("Class", class_pk)
    return school_class


def create_class(
    db: Session,
    *,
    name: str,
    location: str = "",
    class_id: str | None = None,
    teacher_id: str | None = None,
) -> SchoolClass:
    name = (name or "").strip()
    if not name:
        raise ValidationFailedError("Class name is required")
    if class_id:
        class_id = class_id.strip()
        if class_id_taken(db, class_id):
            raise DuplicateKeyError("class_id", class_id)
    else:
        class_id = generate_unique_class_id(db)

    school_class = SchoolClass(
        class_id=class_id,
        class_id_lower=class_id.lower(),
        name=name,
        location=(location or "").strip(),
        teacher_id=teacher_id,
        student_ids=[],
    )
    db.add(school_class)
    db.flush()
    return school_class


def update_class(db: Session, class_pk: str, changes: dict) -> SchoolClass:
    school_class = get_class(db, class_pk)
    if changes.get("class_id"):
        class_id = changes["class_id"].strip()
        if class_id_taken(db, class_id, exclude_id=school_class.id):
            raise DuplicateKeyError("class_id", class_id)
        school_class.class_id = class_id
        school_class.class_id_lower = class_id.lower()
    if "name" in changes and changes["name"] is not None:
        name = changes["name"].strip()
        if not name:
            raise ValidationFailedError("Class name is required")
        school_class.name = name
    if "location" in changes and changes["location"] is not None:
        school_class.location = changes["location"].strip()
    if "teacher_id" in changes:
        school_class.teacher_id = changes["teacher_id"] or None
    db.flush()
    return school_class


def regenerate_class_id(db: Session, class_pk: str) -> SchoolClass:
    # Timetable entries that stored the old business id will no longer resolve.
    school_class = get_class(db, class_pk)
    previous = school_class.class_id
    school_class.class_id = generate_unique_class_id(db)
    school_class.class_id_lower = school_class.class_id.lower()
    db.flush()
    logger.info("Class %s business id changed from %s to %s", school_class.id, previous, school_class.class_id)
    return school_class


def delete_class(db: Session, class_pk: str) -> None:
    db.delete(get_class(db, class_pk))
    db.flush()


def list_classes(db: Session) -> list[SchoolClass]:
    classes = db.execute(select(SchoolClass)).scalars()
    return sorted(classes, key=lambda item: (item.name or "").casefold())


def list_classes_for_teacher(db: Session, teacher: User) -> list[SchoolClass]:
    classes = db.execute(select(SchoolClass).where(SchoolClass.teacher_id == teacher.id)).scalars()
    return sorted(classes, key=lambda item: (item.name or "").casefold())


def can_manage_class(school_class: SchoolClass, user: User) -> bool:
    return user.role == UserRole.admin or school_class.teacher_id == user.id


def toggle_class_student(db: Session, school_class: SchoolClass, student_id: str) -> bool:
    """Flip membership; returns True when the student is now on the roster."""
    members = list(school_class.student_ids or [])
    if student_id in members:
        members.remove(student_id)
        enrolled = False
    else:
        if db.get(User, student_id) is None:
            raise ResourceNotFoundError("User", student_id)
        members.append(student_id)
        enrolled = True
    school_class.student_ids = members
    db.flush()
    return enrolled


def parse_id_list(raw: str) -> list[str]:
    return list(dict.fromkeys(part.strip() for part in (raw or "").split(",") if part.strip()))


def set_class_students(db: Session, school_class: SchoolClass, raw_ids: str) -> list[str]:
    school_class.student_ids = parse_id_list(raw_ids)
    db.flush()
    return school_class.student_ids

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from schoolboard.core.config import get_settings
from schoolboard.core.exceptions import DuplicateKeyError, ResourceNotFoundError, ValidationFailedError
from schoolboard.core.security import get_password_hash
from schoolboard.models.user import User, UserRole

logger = logging.getLogger(__name__)

BIRTHDAY_FORMAT = "%d-%m-%Y"


@dataclass
class BatchSummary:
    """Outcome of a per-row batch; failing rows are skipped, never fatal."""

    updated: list[str] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)

    def skip(self, ref: str, reason: str) -> None:
        logger.warning("Skipped %s: %s", ref, reason)
        self.skipped.append({"ref": ref, "reason": reason})


def normalize_username(username: str) -> str:
    return (username or "").strip()


def synthetic_email(username: str) -> str:
    return f"{normalize_username(username).lower()}@{get_settings().synthetic_email_domain}"


def parse_birthday(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        datetime.strptime(value, BIRTHDAY_FORMAT)
    except ValueError as exc:
        raise ValidationFailedError("Birthday must be in DD-MM-YYYY format", details={"birthday": value}) from exc
    return value


def find_by_username(db: Session, username: str) -> User | None:
    lowered = normalize_username(username).lower()
    if not lowered:
        return None
    return db.execute(select(User).where(User.username_lower == lowered).limit(1)).scalar_one_or_none()


def username_exists(db: Session, username: str, exclude_user_id: str | None = None) -> bool:
    existing = find_by_username(db, username)
    if existing is None:
        return False
    return exclude_user_id is None or existing.id != exclude_user_id


def get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise ResourceNotFoundError("User", user_id)
    return user


def create_account(
    db: Session,
    *,
    username: str,
    password: str,
    first_name: str,
    last_name: str = "",
    role: UserRole,
    birthday: str | None = None,
    class_ref: str | None = None,
    class_name: str | None = None,
    classes: list[str] | None = None,
) -> User:
    username = normalize_username(username)
    missing = [
        name
        for name, value in (("username", username), ("password", password), ("first_name", (first_name or "").strip()))
        if not value
    ]
    if missing or role is None:
        raise ValidationFailedError("Missing fields", details={"missing": missing or ["role"]})
    if username_exists(db, username):
        raise DuplicateKeyError("username", username)

    user = User(
        username=username,
        username_lower=username.lower(),
        email=synthetic_email(username),
        hashed_password=get_password_hash(password),
        first_name=first_name.strip(),
        last_name=(last_name or "").strip(),
        role=role,
        birthday=parse_birthday(birthday),
        class_ref=class_ref or None,
        class_name=class_name or None,
        classes=list(classes or []),
    )
    db.add(user)
    db.flush()
    return user


def update_account(db: Session, user_id: str, changes: dict) -> User:
    """Apply a partial update. Keys absent from ``changes`` are left alone."""
    user = get_user(db, user_id)

    if changes.get("username"):
        username = normalize_username(changes["username"])
        if username_exists(db, username, exclude_user_id=user.id):
            raise DuplicateKeyError("username", username)
        user.username = username
        user.username_lower = username.lower()
        user.email = synthetic_email(username)
    if changes.get("password"):
        user.hashed_password = get_password_hash(changes["password"])
    if "birthday" in changes:
        user.birthday = parse_birthday(changes["birthday"])
    if "classes" in changes:
        user.classes = list(changes["classes"] or [])
    for name in ("first_name", "last_name", "role", "class_ref", "class_name", "is_active"):
        if name in changes and changes[name] is not None:
            setattr(user, name, changes[name])
    db.flush()
    return user


def delete_account(db: Session, user_id: str) -> None:
    # Lesson rosters and class rosters keep the stale id.
    user = get_user(db, user_id)
    db.delete(user)
    db.flush()


def _teacher(db: Session, teacher_id: str) -> User:
    teacher = get_user(db, teacher_id)
    if teacher.role not in {UserRole.teacher, UserRole.admin}:
        raise ValidationFailedError("Advisor must be a teacher", details={"teacher_id": teacher_id})
    return teacher


def assign_advisor(db: Session, student_ids: list[str], teacher_id: str) -> BatchSummary:
    teacher = _teacher(db, teacher_id)
    summary = BatchSummary()
    for student_id in dict.fromkeys(student_ids):
        student = db.get(User, student_id)
        if student is None:
            summary.skip(student_id, "user not found")
            continue
        if student.role != UserRole.student:
            summary.skip(student_id, "not a student")
            continue
        student.advisor_id = teacher.id
        student.advisor_name = teacher.full_name or teacher.username
        summary.updated.append(student_id)
    db.flush()
    return summary


def clear_advisor(db: Session, student_ids: list[str]) -> BatchSummary:
    summary = BatchSummary()
    for student_id in dict.fromkeys(student_ids):
        student = db.get(User, student_id)
        if student is None:
            summary.skip(student_id, "user not found")
            continue
        student.advisor_id = None
        student.advisor_name = None
        summary.updated.append(student_id)
    db.flush()
    return summary


def list_advisees(db: Session, teacher: User) -> list[User]:
    advisees = db.execute(
        select(User).where(User.advisor_id == teacher.id, User.role == UserRole.student)
    ).scalars()
    return sorted(advisees, key=lambda user: user.label.casefold())


def list_users(db: Session, role: UserRole | None = None, search: str | None = None) -> list[User]:
    query = select(User)
    if role is not None:
        query = query.where(User.role == role)
    users = list(db.execute(query).scalars())
    needle = (search or "").strip().casefold()
    if needle:
        users = [
            user
            for user in users
            if any(needle in (value or "").casefold() for value in (user.first_name, user.last_name, user.username))
        ]
    return sorted(users, key=lambda user: user.label.casefold())

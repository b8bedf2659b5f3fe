from __future__ import annotations

import logging

from sqlalchemy import inspect, select, text
from sqlalchemy.orm import Session

from schoolboard.core.config import get_settings
from schoolboard.core.security import get_password_hash
from schoolboard.db.base import Base
from schoolboard.db.session import SessionLocal, engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "username", "username_lower", "role", "advisor_id"},
    "classes": {"id", "class_id", "class_id_lower", "name"},
    "lessons": {"id", "name", "is_student_teacher", "student_user_ids"},
    "timetable_entries": {"id", "class_ref", "lesson_id", "day", "start_minutes", "end_minutes"},
    "announcements": {"id", "text", "type", "start_at", "end_at"},
    "parliament_subjects": {"id", "status", "date_id", "notes_count"},
    "parliament_notes": {"id", "subject_id", "parent_id"},
}


def _backfill_lowercase_mirrors() -> None:
    # Rows imported before the mirror columns existed have them empty.
    with engine.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        if "users" in table_names:
            connection.execute(
                text("UPDATE users SET username_lower = LOWER(username) WHERE username_lower IS NULL OR username_lower = ''")
            )
        if "classes" in table_names:
            connection.execute(
                text("UPDATE classes SET class_id_lower = LOWER(class_id) WHERE class_id_lower IS NULL OR class_id_lower = ''")
            )


def missing_schema_columns(connection) -> tuple[list[str], dict[str, list[str]]]:
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables: list[str] = []
    missing_columns: dict[str, list[str]] = {}
    for table_name, columns in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            missing_tables.append(table_name)
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        missing = sorted(columns - existing)
        if missing:
            missing_columns[table_name] = missing
    return missing_tables, missing_columns


def ensure_bootstrap_admin(db: Session) -> bool:
    from schoolboard.models.user import User, UserRole
    from schoolboard.services.accounts import find_by_username

    settings = get_settings()
    username = (settings.bootstrap_admin_username or "").strip()
    password = settings.bootstrap_admin_password or ""
    if not username or not password:
        return False
    existing_admin = db.execute(select(User).where(User.role == UserRole.admin).limit(1)).scalar_one_or_none()
    if existing_admin is not None:
        return False
    holder = find_by_username(db, username)
    if holder is not None:
        logger.warning(
            "Bootstrap admin %s not created: username already belongs to a %s account", username, holder.role.value
        )
        return False
    db.add(
        User(
            username=username,
            username_lower=username.lower(),
            email=f"{username.lower()}@{settings.synthetic_email_domain}",
            first_name="Admin",
            last_name="",
            role=UserRole.admin,
            hashed_password=get_password_hash(password),
        )
    )
    db.commit()
    logger.info("Created bootstrap admin account %s", username)
    return True


def ensure_runtime_schema_compatibility() -> None:
    import schoolboard.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    try:
        _backfill_lowercase_mirrors()
    except Exception:
        logger.exception("Lowercase mirror backfill failed")
        raise

    db = SessionLocal()
    try:
        ensure_bootstrap_admin(db)
    finally:
        db.close()

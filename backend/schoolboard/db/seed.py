"""Demo school data for local runs and kiosk rehearsals.

Seeding is idempotent: accounts are matched by username, classes by business
id and lessons by name, so running it twice leaves one copy of everything.
"""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from schoolboard.models.lesson import Lesson
from schoolboard.models.school_class import SchoolClass
from schoolboard.models.timetable_entry import TimetableEntry
from schoolboard.models.user import User, UserRole
from schoolboard.services.accounts import create_account, find_by_username
from schoolboard.services.classes import create_class
from schoolboard.services.lessons import create_lesson

logger = logging.getLogger(__name__)

DEMO_ACCOUNTS = [
    {"username": "admin", "first_name": "Demo", "last_name": "Admin", "role": UserRole.admin},
    {"username": "kiosk", "first_name": "Hallway", "last_name": "Screen", "role": UserRole.kiosk},
    {"username": "tal.cohen", "first_name": "Tal", "last_name": "Cohen", "role": UserRole.teacher},
    {"username": "gil.bar", "first_name": "Gil", "last_name": "Bar", "role": UserRole.teacher},
    {"username": "noa.levi", "first_name": "Noa", "last_name": "Levi", "role": UserRole.student, "birthday": "19-10-2012"},
    {"username": "omer.katz", "first_name": "Omer", "last_name": "Katz", "role": UserRole.student},
    {"username": "dana.mor", "first_name": "Dana", "last_name": "Mor", "role": UserRole.student, "class_name": "7A"},
]

DEMO_CLASSES = [
    {"class_id": "CLS-7A00", "name": "7A", "location": "Room 12", "teacher": "tal.cohen"},
    {"class_id": "CLS-8B00", "name": "8B", "location": "Lab", "teacher": "gil.bar"},
]

# name, owner, student-teacher lesson, roster
DEMO_LESSONS = [
    ("English Level 1", "tal.cohen", False, ["noa.levi"]),
    ("English Level 2 Group A", "tal.cohen", False, ["omer.katz"]),
    ("English Level 2 Group B", "gil.bar", False, []),
    ("Math", "gil.bar", False, ["noa.levi", "omer.katz"]),
    ("Chess club", "omer.katz", True, []),
]

# class business id, lesson name, day, start minute, end minute
DEMO_ENTRIES = [
    ("CLS-7A00", "English Level 1", 0, 480, 525),
    ("CLS-7A00", "Math", 0, 525, 570),
    ("CLS-8B00", "English Level 2 Group A", 0, 480, 525),
    ("CLS-8B00", "Chess club", 2, 780, 825),
    ("CLS-7A00", "Math", 3, 615, 660),
]


def _ensure_user(db: Session, account: dict, password: str) -> User:
    user = find_by_username(db, account["username"])
    if user is None:
        user = create_account(db, password=password, **account)
    return user


def _ensure_class(db: Session, item: dict, users: dict[str, User]) -> SchoolClass:
    school_class = db.execute(
        select(SchoolClass).where(SchoolClass.class_id_lower == item["class_id"].lower())
    ).scalar_one_or_none()
    if school_class is None:
        school_class = create_class(
            db,
            name=item["name"],
            location=item["location"],
            class_id=item["class_id"],
            teacher_id=users[item["teacher"]].id,
        )
    return school_class


def _ensure_lesson(db: Session, name: str, owner: str, is_student_teacher: bool) -> Lesson:
    lesson = db.execute(select(Lesson).where(Lesson.name == name)).scalars().first()
    if lesson is None:
        lesson = create_lesson(
            db,
            name=name,
            is_student_teacher=is_student_teacher,
            teacher_username=None if is_student_teacher else owner,
            student_username=owner if is_student_teacher else None,
        )
    return lesson


def seed_demo_school(db: Session, *, password: str) -> dict[str, int]:
    users = {account["username"]: _ensure_user(db, account, password) for account in DEMO_ACCOUNTS}
    classes = {item["class_id"]: _ensure_class(db, item, users) for item in DEMO_CLASSES}

    lessons: dict[str, Lesson] = {}
    for name, owner, is_student_teacher, roster in DEMO_LESSONS:
        lesson = _ensure_lesson(db, name, owner, is_student_teacher)
        members = list(lesson.student_user_ids or [])
        for username in roster:
            if users[username].id not in members:
                members.append(users[username].id)
        lesson.student_user_ids = members
        lessons[name] = lesson

    created_entries = 0
    for class_id, lesson_name, day, sm, em in DEMO_ENTRIES:
        class_ref = classes[class_id].class_id
        exists = db.execute(
            select(TimetableEntry.id).where(
                TimetableEntry.class_ref == class_ref,
                TimetableEntry.day == day,
                TimetableEntry.start_minutes == sm,
                TimetableEntry.end_minutes == em,
            )
        ).first()
        if exists is not None:
            continue
        db.add(
            TimetableEntry(
                class_ref=class_ref,
                lesson_id=lessons[lesson_name].id,
                day=day,
                start_minutes=sm,
                end_minutes=em,
            )
        )
        created_entries += 1

    db.commit()
    logger.info("Demo school ready; %d new timetable entries", created_entries)
    return {
        "users": len(users),
        "classes": len(classes),
        "lessons": len(lessons),
        "entries_created": created_entries,
    }

from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from schoolboard.core.exceptions import ResourceNotFoundError, ValidationFailedError
from schoolboard.models.lesson import Lesson
from schoolboard.services.lesson_names import (
    BaseGroup,
    group_lessons_by_base,
    parse_lesson_name,
    pick_smallest_lesson,
    resolve_target_lesson,
)
from schoolboard.services.lessons import get_lesson

logger = logging.getLogger(__name__)


@dataclass
class MoveResult:
    from_lesson: Lesson
    to_lesson: Lesson
    moved: list[str]


def level_groups(db: Session) -> list[BaseGroup]:
    return group_lessons_by_base(db.execute(select(Lesson)).scalars())


def adjacent_level_target(groups: list[BaseGroup], lesson: Lesson, step: int) -> Lesson | None:
    """Smallest lesson in the level next to ``lesson``'s (step -1 or +1)."""
    base = parse_lesson_name(lesson.name).base.casefold()
    for group in groups:
        if group.base.casefold() != base:
            continue
        for index, level in enumerate(group.levels):
            if any(item.id == lesson.id for item in level.lessons):
                target_index = index + step
                if 0 <= target_index < len(group.levels):
                    return pick_smallest_lesson(group.levels[target_index].lessons)
                return None
    return None


def choose_target(
    db: Session,
    from_lesson: Lesson,
    *,
    to_lesson_id: str | None = None,
    level: int | None = None,
    group: str | None = None,
    step: int | None = None,
) -> Lesson:
    if to_lesson_id:
        return get_lesson(db, to_lesson_id)
    groups = level_groups(db)
    if step is not None:
        target = adjacent_level_target(groups, from_lesson, step)
    else:
        target = resolve_target_lesson(groups, parse_lesson_name(from_lesson.name).base, level, group)
    if target is None:
        raise ValidationFailedError(
            "No target lesson for this move",
            details={"lesson_id": from_lesson.id, "level": level, "group": group, "step": step},
        )
    return target


def _move(from_lesson: Lesson, to_lesson: Lesson, student_ids: list[str]) -> list[str]:
    source = [sid for sid in (from_lesson.student_user_ids or []) if sid not in student_ids]
    target = list(to_lesson.student_user_ids or [])
    for student_id in student_ids:
        if student_id not in target:
            target.append(student_id)
    from_lesson.student_user_ids = source
    to_lesson.student_user_ids = target
    return student_ids


def move_student(db: Session, student_id: str, from_lesson_id: str, **target) -> MoveResult:
    from_lesson = get_lesson(db, from_lesson_id)
    if student_id not in (from_lesson.student_user_ids or []):
        raise ResourceNotFoundError("Roster entry", student_id)
    to_lesson = choose_target(db, from_lesson, **target)
    if to_lesson.id == from_lesson.id:
        return MoveResult(from_lesson, to_lesson, [])
    moved = _move(from_lesson, to_lesson, [student_id])
    db.flush()
    logger.info("Moved student %s from lesson %s to %s", student_id, from_lesson.id, to_lesson.id)
    return MoveResult(from_lesson, to_lesson, moved)


def move_all_students(db: Session, from_lesson_id: str, **target) -> MoveResult:
    from_lesson = get_lesson(db, from_lesson_id)
    to_lesson = choose_target(db, from_lesson, **target)
    student_ids = list(from_lesson.student_user_ids or [])
    if to_lesson.id == from_lesson.id or not student_ids:
        return MoveResult(from_lesson, to_lesson, [])
    moved = _move(from_lesson, to_lesson, student_ids)
    db.flush()
    logger.info("Moved %d student(s) from lesson %s to %s", len(moved), from_lesson.id, to_lesson.id)
    return MoveResult(from_lesson, to_lesson, moved)

"""Level/group extraction from free-text lesson names.

Recognised shapes (separators ``-``, ``–`` or ``—`` are optional)::

    אנגלית רמה 1 קבוצה 2
    English Level 3 Group A
    Hebrew Level 2

Anything else is an unleveled, base-only name. The parsed structure is only
used to group lessons for the level mover; it is never persisted.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Iterable, Protocol, Sequence

_SEP = r"(?:\s*[-–—]?\s*)?"
HEBREW_PATTERN = re.compile(
    rf"^(.*?){_SEP}רמה\s*([0-9]{{1,2}})(?:\s*[-–—]?\s*קבוצה\s*([0-9א-ת]+))?\s*$",
    re.IGNORECASE,
)
ENGLISH_PATTERN = re.compile(
    rf"^(.*?){_SEP}level\s*([0-9]{{1,2}})(?:\s*[-–—]?\s*group\s*([0-9A-Za-z]+))?\s*$",
    re.IGNORECASE,
)


class RosterLesson(Protocol):
    id: str
    name: str
    student_user_ids: list[str]


@dataclass(frozen=True)
class ParsedLessonName:
    base: str
    level: int | None = None
    group: str | None = None


@dataclass
class LevelGroup:
    level: int | None
    lessons: list = field(default_factory=list)

    @property
    def key(self) -> int | str:
        return "unleveled" if self.level is None else self.level


@dataclass
class BaseGroup:
    base: str
    levels: list[LevelGroup] = field(default_factory=list)

    def all_lessons(self) -> list:
        return [lesson for level in self.levels for lesson in level.lessons]


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def parse_lesson_name(name: str | None) -> ParsedLessonName:
    text = (name or "").strip()
    for pattern in (HEBREW_PATTERN, ENGLISH_PATTERN):
        match = pattern.match(text)
        if match is None:
            continue
        group = (match.group(3) or "").strip()
        return ParsedLessonName(base=match.group(1).strip(), level=int(match.group(2)), group=group or None)
    return ParsedLessonName(base=text)


def _lesson_sort_key(lesson: RosterLesson) -> tuple[str, str]:
    return (_norm(parse_lesson_name(lesson.name).group), _norm(lesson.name))


def group_lessons_by_base(lessons: Iterable[RosterLesson]) -> list[BaseGroup]:
    """Group lessons by parsed base, keeping only bases that really are leveled.

    A base is kept when it has at least two lessons and at least one of them
    carries a numeric level.
    """
    by_base: dict[str, dict[int | None, list[RosterLesson]]] = {}
    for lesson in lessons:
        parsed = parse_lesson_name(lesson.name)
        if not parsed.base:
            continue
        by_base.setdefault(parsed.base, {}).setdefault(parsed.level, []).append(lesson)

    groups: list[BaseGroup] = []
    for base, by_level in by_base.items():
        total = sum(len(items) for items in by_level.values())
        has_level = any(level is not None for level in by_level)
        if total < 2 or not has_level:
            continue
        ordered_levels = sorted(by_level, key=lambda level: (level is None, level or 0))
        groups.append(
            BaseGroup(
                base=base,
                levels=[
                    LevelGroup(level=level, lessons=sorted(by_level[level], key=_lesson_sort_key))
                    for level in ordered_levels
                ],
            )
        )
    groups.sort(key=lambda group: group.base.lower())
    return groups


def pick_smallest_lesson(lessons: Sequence[RosterLesson]) -> RosterLesson | None:
    # Strictly-smaller comparison: on equal roster sizes the earliest lesson wins.
    best: RosterLesson | None = None
    best_size: int | None = None
    for lesson in lessons:
        size = len(lesson.student_user_ids or [])
        if best_size is None or size < best_size:
            best, best_size = lesson, size
    return best


def resolve_target_lesson(
    groups: Sequence[BaseGroup],
    base: str,
    level: int | None = None,
    group: str | None = None,
) -> RosterLesson | None:
    matched = next((item for item in groups if _norm(item.base) == _norm(base)), None)
    if matched is None:
        return None

    candidates: list[RosterLesson] = []
    for level_group in matched.levels:
        if level is None or level_group.level == level:
            candidates.extend(level_group.lessons)

    if group:
        wanted = _norm(group)
        for lesson in candidates:
            if _norm(parse_lesson_name(lesson.name).group) == wanted:
                return lesson
        for lesson in candidates:
            if wanted in _norm(parse_lesson_name(lesson.name).group):
                return lesson

    return pick_smallest_lesson(candidates)

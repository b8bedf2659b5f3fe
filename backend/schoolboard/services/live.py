"""Read side of the signage display: what is in session right now."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
import logging
import math
import time as _time
from threading import Lock
from typing import Iterable, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from schoolboard.core.config import get_settings
from schoolboard.core.exceptions import ConfigurationError, ValidationFailedError
from schoolboard.models.lesson import Lesson
from schoolboard.models.school_class import SchoolClass
from schoolboard.models.timetable_entry import TimetableEntry
from schoolboard.models.user import User, UserRole
from schoolboard.services.display_hub import display_hub
from schoolboard.services.class_resolver import class_refs_for, resolve_classes
from schoolboard.services.lessons import teacher_display_name
from schoolboard.services.slots import TIME_PATTERN, TimeSlot, current_slot, day_order, default_slots, to_minutes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Clock:
    day: int
    minutes: int
    source: str = "wall"


@dataclass
class StudentRef:
    id: str
    label: str


@dataclass
class LiveItem:
    entry_id: str
    class_ref: str
    class_label: str
    lesson_id: str
    lesson_name: str
    teacher_name: str
    start_minutes: int
    end_minutes: int
    students: list[StudentRef] = field(default_factory=list)
    roster_source: str = "lesson"


def school_zone() -> ZoneInfo:
    name = get_settings().school_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown school timezone {name!r}") from exc


def wall_clock(now: datetime | None = None) -> Clock:
    moment = now or datetime.now(school_zone())
    # isoweekday: Monday=1..Sunday=7, so modulo 7 gives Sunday=0.
    return Clock(day=moment.isoweekday() % 7, minutes=moment.hour * 60 + moment.minute)


def resolve_clock(day: int | None = None, time: str | None = None, *, now: datetime | None = None) -> Clock:
    """Pick the instant the display should show.

    Explicit values win, then the configured override, then the wall clock.
    Day and time are resolved independently.
    """
    settings = get_settings()
    real = wall_clock(now)

    if day is not None:
        resolved_day, day_source = day, "query"
    elif settings.clock_override_day is not None:
        resolved_day, day_source = settings.clock_override_day, "config"
    else:
        resolved_day, day_source = real.day, "wall"
    if not 0 <= resolved_day <= 6:
        raise ValidationFailedError("Day must be between 0 (Sunday) and 6 (Saturday)", details={"day": resolved_day})

    if time:
        if not TIME_PATTERN.match(time):
            raise ValidationFailedError("Time must be in HH:MM 24-hour format", details={"time": time})
        minutes, time_source = to_minutes(time), "query"
    elif settings.clock_override_time:
        minutes, time_source = to_minutes(settings.clock_override_time), "config"
    else:
        minutes, time_source = real.minutes, "wall"

    sources = {day_source, time_source}
    source = "query" if "query" in sources else ("config" if "config" in sources else "wall")
    return Clock(day=resolved_day, minutes=minutes, source=source)


def _fallback_students(students: list[User], school_class: SchoolClass | None, class_ref: str) -> list[User]:
    keys = {class_ref}
    if school_class is not None:
        keys.update(class_refs_for(school_class))
        if school_class.name:
            keys.add(school_class.name)
    matched = []
    for student in students:
        candidates = {student.class_ref, student.class_name, *(student.classes or [])}
        if keys & {value for value in candidates if value}:
            matched.append(student)
    return matched


def happening_now(db: Session, clock: Clock) -> list[LiveItem]:
    entries = list(
        db.execute(
            select(TimetableEntry).where(
                and_(
                    TimetableEntry.day == clock.day,
                    TimetableEntry.start_minutes <= clock.minutes,
                    TimetableEntry.end_minutes > clock.minutes,
                )
            )
        ).scalars()
    )
    if not entries:
        return []

    lesson_ids = {entry.lesson_id for entry in entries}
    lessons = {lesson.id: lesson for lesson in db.execute(select(Lesson).where(Lesson.id.in_(lesson_ids))).scalars()}
    classes = resolve_classes(db, [entry.class_ref for entry in entries])

    roster_ids = {student_id for lesson in lessons.values() for student_id in (lesson.student_user_ids or [])}
    users_by_id = (
        {user.id: user for user in db.execute(select(User).where(User.id.in_(roster_ids))).scalars()}
        if roster_ids
        else {}
    )
    attribute_students: list[User] | None = None

    items: list[LiveItem] = []
    for entry in entries:
        lesson = lessons.get(entry.lesson_id)
        school_class = classes.get(entry.class_ref)
        item = LiveItem(
            entry_id=entry.id,
            class_ref=entry.class_ref,
            class_label=school_class.label if school_class is not None else entry.class_ref,
            lesson_id=entry.lesson_id,
            lesson_name=lesson.name if lesson is not None else "",
            teacher_name=teacher_display_name(lesson) if lesson is not None else "",
            start_minutes=entry.start_minutes,
            end_minutes=entry.end_minutes,
        )
        if lesson is not None and lesson.student_user_ids:
            members = [users_by_id[uid] for uid in lesson.student_user_ids if uid in users_by_id]
        else:
            if attribute_students is None:
                attribute_students = list(db.execute(select(User).where(User.role == UserRole.student)).scalars())
            members = _fallback_students(attribute_students, school_class, entry.class_ref)
            item.roster_source = "class"
        item.students = [StudentRef(id=user.id, label=user.label) for user in members]
        items.append(item)

    items.sort(key=lambda item: (item.class_label.casefold(), item.start_minutes))
    logger.debug("%d lesson(s) live at day %s minute %s", len(items), clock.day, clock.minutes)
    return items


class SpotlightRotation:
    """Order of live cards on the side panel; the last card is expanded.

    Each interval the last card moves to the top. Clicking a card sends it
    to the bottom, which expands it. A different set of ids resets the order.
    """

    def __init__(self, interval_seconds: float | None = None) -> None:
        self.interval_seconds = interval_seconds or get_settings().spotlight_rotate_seconds
        self.order: list[str] = []
        self._last_tick: float | None = None
        self._lock = Lock()

    @property
    def expanded(self) -> str | None:
        return self.order[-1] if self.order else None

    def sync(self, ids: Iterable[str], *, now: float | None = None) -> list[str]:
        incoming = list(dict.fromkeys(ids))
        with self._lock:
            if set(incoming) != set(self.order):
                self.order = incoming
                self._last_tick = now if now is not None else _time.monotonic()
            return list(self.order)

    def rotate(self) -> None:
        with self._lock:
            if len(self.order) > 1:
                self.order.insert(0, self.order.pop())

    def tick(self, now: float | None = None) -> int:
        """Apply every rotation that became due since the last tick."""
        now = now if now is not None else _time.monotonic()
        if self._last_tick is None:
            self._last_tick = now
            return 0
        steps = math.floor((now - self._last_tick) / self.interval_seconds)
        if steps <= 0:
            return 0
        self._last_tick += steps * self.interval_seconds
        if len(self.order) > 1:
            for _ in range(steps % len(self.order)):
                self.rotate()
        return steps

    def bring_to_bottom(self, entry_id: str, *, now: float | None = None) -> None:
        with self._lock:
            if entry_id not in self.order:
                raise ValidationFailedError("Entry is not on the display", details={"entry_id": entry_id})
            self.order.remove(entry_id)
            self.order.append(entry_id)
            self._last_tick = now if now is not None else _time.monotonic()


display_spotlight = SpotlightRotation()


def build_week_grid(
    entries: Iterable[TimetableEntry],
    lessons: Mapping[str, Lesson],
    clock: Clock,
    *,
    class_labels: Mapping[str, str] | None = None,
    slots: list[TimeSlot] | None = None,
    days: list[int] | None = None,
) -> dict:
    slots = slots if slots is not None else default_slots()
    days = days if days is not None else day_order()
    class_labels = class_labels or {}

    cells: dict[tuple[int, int, int], list[TimetableEntry]] = {}
    for entry in entries:
        # Entries that do not line up with a bell slot are not drawn.
        if not any(slot.sm == entry.start_minutes and slot.em == entry.end_minutes for slot in slots):
            continue
        cells.setdefault((entry.day, entry.start_minutes, entry.end_minutes), []).append(entry)

    now_slot = current_slot(clock.minutes, slots)
    rows = []
    for slot in slots:
        is_now_row = now_slot is not None and now_slot == slot
        row_cells = []
        for day in days:
            items = []
            for entry in cells.get((day, slot.sm, slot.em), []):
                lesson = lessons.get(entry.lesson_id)
                items.append(
                    {
                        "entry_id": entry.id,
                        "lesson_id": entry.lesson_id,
                        "lesson_name": lesson.name if lesson is not None else "",
                        "teacher_name": teacher_display_name(lesson) if lesson is not None else "",
                        "class_label": class_labels.get(entry.class_ref, entry.class_ref),
                    }
                )
            row_cells.append({"day": day, "is_now": is_now_row and day == clock.day, "items": items})
        rows.append({"start": slot.start, "end": slot.end, "sm": slot.sm, "em": slot.em, "is_now": is_now_row, "cells": row_cells})
    return {"day": clock.day, "minutes": clock.minutes, "days": days, "rows": rows}


def display_snapshot(db: Session, clock: Clock | None = None) -> dict:
    clock = clock or resolve_clock()
    items = happening_now(db, clock)
    display_spotlight.sync([item.entry_id for item in items])
    display_spotlight.tick()
    return {
        "day": clock.day,
        "minutes": clock.minutes,
        "clock_source": clock.source,
        "items": [asdict(item) for item in items],
        "spotlight": {
            "order": list(display_spotlight.order),
            "expanded": display_spotlight.expanded,
            "rotate_seconds": display_spotlight.interval_seconds,
        },
    }


def publish_change(db: Session, collection: str) -> None:
    """Tell connected screens that ``collection`` changed, with a fresh snapshot."""
    display_hub.notify_changed(collection, lambda: display_snapshot(db))

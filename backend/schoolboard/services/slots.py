"""Bell schedule shared by every week-grid view.

Days use Sunday = 0. Slot intervals are half-open, ``[sm, em)`` in minutes
from midnight. The last configured time point only closes the final slot.
"""
from __future__ import annotations

from dataclasses import dataclass
import re

from schoolboard.core.config import get_settings

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
DAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


@dataclass(frozen=True)
class TimeSlot:
    start: str
    end: str
    sm: int
    em: int

    def contains(self, minute: int) -> bool:
        return self.sm <= minute < self.em


def to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def to_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def build_slots(time_points: list[str]) -> list[TimeSlot]:
    return [
        TimeSlot(start=start, end=end, sm=to_minutes(start), em=to_minutes(end))
        for start, end in zip(time_points, time_points[1:])
    ]


def default_slots() -> list[TimeSlot]:
    return build_slots(get_settings().bell_schedule)


def day_order() -> list[int]:
    return list(get_settings().visible_days)


def find_slot(sm: int, em: int, slots: list[TimeSlot] | None = None) -> TimeSlot | None:
    for slot in slots if slots is not None else default_slots():
        if slot.sm == sm and slot.em == em:
            return slot
    return None


def current_slot(now_minutes: int, slots: list[TimeSlot] | None = None) -> TimeSlot | None:
    for slot in slots if slots is not None else default_slots():
        if slot.contains(now_minutes):
            return slot
    return None


def cell_key(day: int, sm: int, em: int) -> str:
    return f"{day}:{sm}-{em}"

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
import logging
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from schoolboard.core.exceptions import ResourceNotFoundError, ValidationFailedError
from schoolboard.models.announcement import Announcement, AnnouncementType
from schoolboard.models.user import User, UserRole
from schoolboard.services.accounts import BIRTHDAY_FORMAT

logger = logging.getLogger(__name__)

TICKER_FALLBACK = "ברוכים הבאים"


def _aware(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def validate_window(start_at: datetime | None, end_at: datetime | None) -> None:
    if start_at is not None and end_at is not None and _aware(end_at) < _aware(start_at):
        raise ValidationFailedError("end_at must not be before start_at")


def get_announcement(db: Session, announcement_id: str) -> Announcement:
    announcement = db.get(Announcement, announcement_id)
    if announcement is None:
        raise ResourceNotFoundError("Announcement", announcement_id)
    return announcement


def create_announcement(
    db: Session,
    *,
    text: str,
    type: AnnouncementType = AnnouncementType.news,
    start_at: datetime | None = None,
    end_at: datetime | None = None,
) -> Announcement:
    text = (text or "").strip()
    if not text:
        raise ValidationFailedError("Announcement text is required")
    validate_window(start_at, end_at)
    announcement = Announcement(text=text, type=type, start_at=start_at, end_at=end_at)
    db.add(announcement)
    db.flush()
    return announcement


def update_announcement(db: Session, announcement_id: str, changes: dict) -> Announcement:
    announcement = get_announcement(db, announcement_id)
    if "text" in changes and changes["text"] is not None:
        text = changes["text"].strip()
        if not text:
            raise ValidationFailedError("Announcement text is required")
        announcement.text = text
    if changes.get("type") is not None:
        announcement.type = changes["type"]
    if "start_at" in changes:
        announcement.start_at = changes["start_at"]
    if "end_at" in changes:
        announcement.end_at = changes["end_at"]
    validate_window(announcement.start_at, announcement.end_at)
    db.flush()
    return announcement


def delete_announcement(db: Session, announcement_id: str) -> None:
    db.delete(get_announcement(db, announcement_id))
    db.flush()


def is_active(announcement: Announcement, now: datetime) -> bool:
    # A missing bound leaves that side of the window open.
    now = _aware(now)
    start_at = _aware(announcement.start_at)
    end_at = _aware(announcement.end_at)
    if start_at is not None and start_at > now:
        return False
    if end_at is not None and end_at < now:
        return False
    return True


def active_announcements(
    db: Session,
    announcement_type: AnnouncementType,
    now: datetime | None = None,
) -> list[Announcement]:
    now = now or datetime.now(timezone.utc)
    rows = db.execute(select(Announcement).where(Announcement.type == announcement_type)).scalars()
    active = [row for row in rows if is_active(row, now)]
    return sorted(active, key=lambda row: _aware(row.created_at) or now)


def ticker_lines(db: Session, now: datetime | None = None) -> list[str]:
    lines = [row.text for row in active_announcements(db, AnnouncementType.news, now)]
    return lines or [TICKER_FALLBACK]


@dataclass
class BirthdayItem:
    user_id: str
    name: str
    day: int
    birthday: date


def week_bounds(today: date) -> tuple[date, date]:
    """Sunday..Saturday week containing ``today``."""
    start = today - timedelta(days=today.isoweekday() % 7)
    return start, start + timedelta(days=6)


def _occurrence(birthday: date, year: int) -> date:
    try:
        return birthday.replace(year=year)
    except ValueError:
        # 29 February outside leap years.
        return date(year, 2, 28)


def birthdays_this_week(users: Iterable[User], today: date) -> list[BirthdayItem]:
    start, end = week_bounds(today)
    items: list[BirthdayItem] = []
    for user in users:
        if not user.birthday:
            continue
        try:
            born = datetime.strptime(user.birthday, BIRTHDAY_FORMAT).date()
        except ValueError:
            logger.warning("Ignoring malformed birthday %r for user %s", user.birthday, user.id)
            continue
        for year in {start.year, end.year}:
            occurrence = _occurrence(born, year)
            if start <= occurrence <= end:
                items.append(
                    BirthdayItem(
                        user_id=user.id,
                        name=user.full_name or user.username,
                        day=occurrence.isoweekday() % 7,
                        birthday=occurrence,
                    )
                )
                break
    items.sort(key=lambda item: (item.birthday, item.name.casefold()))
    return items


def birthday_banner(db: Session, today: date, now: datetime | None = None) -> dict:
    people = db.execute(select(User).where(User.role.in_([UserRole.student, UserRole.teacher]))).scalars()
    announced = [row.text for row in active_announcements(db, AnnouncementType.birthday, now)]
    return {"people": birthdays_this_week(people, today), "announcements": announced}

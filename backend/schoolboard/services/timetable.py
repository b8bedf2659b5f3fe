from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schoolboard.core.config import get_settings
from schoolboard.core.exceptions import AppError, TimetableConflictError
from schoolboard.models.lesson import Lesson
from schoolboard.models.timetable_entry import TimetableEntry
from schoolboard.models.user import User
from schoolboard.services.audit import log_activity
from schoolboard.services.class_resolver import chunked, resolve_class_labels
from schoolboard.services.slots import TimeSlot, day_order, default_slots, to_hhmm
from schoolboard.services.staging import ChangeBatch, CommittedEntry

logger = logging.getLogger(__name__)


def to_committed(entry: TimetableEntry) -> CommittedEntry:
    return CommittedEntry(
        id=entry.id,
        class_ref=entry.class_ref,
        lesson_id=entry.lesson_id,
        day=entry.day,
        start_minutes=entry.start_minutes,
        end_minutes=entry.end_minutes,
    )


def entries_for_class(db: Session, class_refs: list[str]) -> list[TimetableEntry]:
    if not class_refs:
        return []
    entries = db.execute(select(TimetableEntry).where(TimetableEntry.class_ref.in_(class_refs))).scalars()
    return sorted(entries, key=lambda entry: (entry.day, entry.start_minutes))


def entries_for_lessons(db: Session, lesson_ids: Iterable[str]) -> list[TimetableEntry]:
    entries: list[TimetableEntry] = []
    for batch in chunked(list(dict.fromkeys(lesson_ids)), get_settings().store_batch_limit):
        entries.extend(db.execute(select(TimetableEntry).where(TimetableEntry.lesson_id.in_(batch))).scalars())
    return sorted(entries, key=lambda entry: (entry.day, entry.start_minutes))


def _slot_label(day: int, sm: int, em: int) -> str:
    return f"day {day} {to_hhmm(sm)}-{to_hhmm(em)}"


class SqlTimetableStore:
    """Timetable store backed by the request's database session."""

    def __init__(self, db: Session, *, actor: User | None = None) -> None:
        self.db = db
        self.actor = actor

    def load_entries(self, class_refs: list[str]) -> list[CommittedEntry]:
        return [to_committed(entry) for entry in entries_for_class(self.db, class_refs)]

    def _check(self, batch: ChangeBatch) -> list[dict]:
        current = {entry.id: entry for entry in entries_for_class(self.db, batch.class_refs)}
        conflicts: list[dict] = []

        for change in [*batch.deletes, *batch.updates]:
            entry = current.get(change.entry_id)
            if entry is None:
                conflicts.append(
                    {
                        "slot": _slot_label(change.day, change.sm, change.em),
                        "reason": "entry no longer exists",
                        "entry_id": change.entry_id,
                    }
                )
            elif entry.lesson_id != change.from_lesson_id:
                conflicts.append(
                    {
                        "slot": _slot_label(change.day, change.sm, change.em),
                        "reason": "entry was changed by someone else",
                        "entry_id": change.entry_id,
                    }
                )

        freed = {change.entry_id for change in batch.deletes}
        for addition in batch.creates:
            for entry in current.values():
                if entry.id in freed or entry.day != addition.day:
                    continue
                if entry.start_minutes < addition.em and addition.sm < entry.end_minutes:
                    conflicts.append(
                        {
                            "slot": _slot_label(addition.day, addition.sm, addition.em),
                            "reason": "slot is already taken",
                            "entry_id": entry.id,
                        }
                    )
        return conflicts

    def apply(self, batch: ChangeBatch, *, actor_id: str | None = None) -> None:
        conflicts = self._check(batch)
        if conflicts:
            raise TimetableConflictError(
                "Timetable changed since it was loaded; reload and retry",
                details={"class_id": batch.class_id, "conflicts": conflicts},
            )

        try:
            for addition in batch.creates:
                self.db.add(
                    TimetableEntry(
                        class_ref=batch.class_id,
                        lesson_id=addition.lesson_id,
                        day=addition.day,
                        start_minutes=addition.sm,
                        end_minutes=addition.em,
                        created_by_id=actor_id,
                    )
                )
            for deletion in batch.deletes:
                entry = self.db.get(TimetableEntry, deletion.entry_id)
                if entry is not None:
                    self.db.delete(entry)
            for replacement in batch.updates:
                entry = self.db.get(TimetableEntry, replacement.entry_id)
                if entry is not None:
                    entry.lesson_id = replacement.to_lesson_id
            log_activity(
                self.db,
                user=self.actor,
                action="timetable.save",
                entity_type="class",
                entity_id=batch.class_id,
                details={
                    "created": len(batch.creates),
                    "deleted": len(batch.deletes),
                    "updated": len(batch.updates),
                },
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to save timetable changes for class %s", batch.class_id)
            raise AppError("Failed to save timetable changes", status_code=503) from exc


def lesson_names(db: Session, lesson_ids: Iterable[str] | None = None) -> dict[str, str]:
    query = select(Lesson.id, Lesson.name)
    if lesson_ids is not None:
        ids = list(dict.fromkeys(lesson_ids))
        if not ids:
            return {}
        query = query.where(Lesson.id.in_(ids))
    return {row.id: row.name for row in db.execute(query)}


def teacher_lessons(db: Session, user: User) -> list[Lesson]:
    query = select(Lesson).where(or_(Lesson.teacher_user_id == user.id, Lesson.student_user_id == user.id))
    return sorted(db.execute(query).scalars(), key=lambda lesson: (lesson.name or "").casefold())


def student_lessons(db: Session, student_id: str) -> list[Lesson]:
    # Rosters are JSON lists, so membership is checked in Python.
    lessons = [lesson for lesson in db.execute(select(Lesson)).scalars() if student_id in (lesson.student_user_ids or [])]
    return sorted(lessons, key=lambda lesson: (lesson.name or "").casefold())


def week_plan(
    db: Session,
    lessons: list[Lesson],
    *,
    slots: list[TimeSlot] | None = None,
    days: list[int] | None = None,
) -> dict:
    """Week grid for a set of lessons. A cell with two or more lessons is a conflict."""
    slots = slots if slots is not None else default_slots()
    days = days if days is not None else day_order()
    names = {lesson.id: lesson.name for lesson in lessons}
    entries = entries_for_lessons(db, names)
    labels = resolve_class_labels(db, [entry.class_ref for entry in entries])

    rows = []
    conflict_count = 0
    for slot in slots:
        cells = []
        for day in days:
            hits: dict[str, dict] = {}
            for entry in entries:
                if entry.day != day or not (entry.start_minutes < slot.em and entry.end_minutes > slot.sm):
                    continue
                hit = hits.setdefault(
                    entry.lesson_id,
                    {"lesson_id": entry.lesson_id, "name": names.get(entry.lesson_id, entry.lesson_id), "class_label": None},
                )
                if hit["class_label"] is None:
                    hit["class_label"] = labels.get(entry.class_ref)
            items = sorted(hits.values(), key=lambda item: item["name"].casefold())
            conflict = len(items) >= 2
            conflict_count += int(conflict)
            cells.append({"day": day, "conflict": conflict, "lessons": items})
        rows.append({"start": slot.start, "end": slot.end, "sm": slot.sm, "em": slot.em, "cells": cells})
    return {"days": days, "rows": rows, "conflicts": conflict_count}

"""Client-style staging of timetable edits for one class.

An operator picks a class and (optionally) a lesson, then clicks cells of the
week grid. Each click stages an addition, deletion or replacement on top of
the committed entries; nothing touches the store until ``save``. ``cancel``
and switching class/lesson drop every staged change.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from threading import Lock
from typing import Mapping, Protocol

from schoolboard.core.exceptions import ValidationFailedError
from schoolboard.services.slots import TimeSlot, cell_key, day_order, default_slots

logger = logging.getLogger(__name__)


class CellState(str, Enum):
    empty = "empty"
    committed_selected = "committedSelected"
    committed_other = "committedOther"
    will_add = "willAdd"
    will_delete = "willDelete"
    will_replace = "willReplace"


class StatusKind(str, Enum):
    idle = "idle"
    saving = "saving"
    success = "success"
    error = "error"


@dataclass(frozen=True)
class CommittedEntry:
    id: str
    class_ref: str
    lesson_id: str
    day: int
    start_minutes: int
    end_minutes: int


@dataclass(frozen=True)
class PendingAdd:
    day: int
    sm: int
    em: int
    lesson_id: str


@dataclass(frozen=True)
class PendingDelete:
    entry_id: str
    day: int
    sm: int
    em: int
    from_lesson_id: str


@dataclass(frozen=True)
class PendingReplace:
    entry_id: str
    day: int
    sm: int
    em: int
    from_lesson_id: str
    to_lesson_id: str


@dataclass(frozen=True)
class CellVisual:
    state: CellState
    lesson_id: str | None = None
    from_lesson_id: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.state in {CellState.will_add, CellState.will_delete, CellState.will_replace}


@dataclass
class ChangeBatch:
    class_id: str
    class_refs: list[str]
    creates: list[PendingAdd] = field(default_factory=list)
    deletes: list[PendingDelete] = field(default_factory=list)
    updates: list[PendingReplace] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.creates) + len(self.deletes) + len(self.updates)


@dataclass
class StagingStatus:
    kind: StatusKind = StatusKind.idle
    message: str | None = None


class TimetableStore(Protocol):
    def load_entries(self, class_refs: list[str]) -> list[CommittedEntry]: ...

    def apply(self, batch: ChangeBatch, *, actor_id: str | None) -> None: ...


class TimetableStagingEngine:
    def __init__(self, store: TimetableStore, *, slots: list[TimeSlot] | None = None) -> None:
        self.store = store
        self.slots = slots if slots is not None else default_slots()
        self.days = day_order()
        self.selected_class: str | None = None
        self.class_refs: list[str] = []
        self.selected_lesson: str | None = None
        self.entries: list[CommittedEntry] = []
        self.pending_adds: dict[str, PendingAdd] = {}
        self.pending_deletes: dict[str, PendingDelete] = {}
        self.pending_replaces: dict[str, PendingReplace] = {}
        self.status = StagingStatus()

    # -- selection -------------------------------------------------------

    def select_class(self, class_id: str | None, class_refs: list[str] | None = None) -> None:
        """Switch class. Unsaved staged changes are discarded without prompting."""
        self.clear_staged()
        self.selected_lesson = None
        self.entries = []
        self.selected_class = class_id or None
        self.class_refs = list(class_refs or ([class_id] if class_id else []))
        if self.selected_class:
            self.refresh()

    def select_lesson(self, lesson_id: str | None) -> None:
        self.clear_staged()
        self.selected_lesson = lesson_id or None

    def refresh(self) -> None:
        if not self.class_refs:
            self.entries = []
            return
        entries = self.store.load_entries(self.class_refs)
        self.entries = sorted(entries, key=lambda entry: (entry.day, entry.start_minutes))

    # -- staging ---------------------------------------------------------

    @property
    def has_pending(self) -> bool:
        return bool(self.pending_adds or self.pending_deletes or self.pending_replaces)

    @property
    def placed_count(self) -> int:
        if not self.selected_lesson:
            return 0
        return sum(1 for entry in self.entries if entry.lesson_id == self.selected_lesson)

    def clear_staged(self) -> None:
        self.pending_adds = {}
        self.pending_deletes = {}
        self.pending_replaces = {}
        self.status = StagingStatus()

    def find_existing(self, day: int, sm: int, em: int) -> CommittedEntry | None:
        for entry in self.entries:
            if entry.day == day and entry.start_minutes == sm and entry.end_minutes == em:
                return entry
        return None

    def click_cell(self, day: int, sm: int, em: int) -> CellVisual:
        if not self.selected_class:
            raise ValidationFailedError("Select a class first.")
        key = cell_key(day, sm, em)

        for staged in (self.pending_adds, self.pending_deletes, self.pending_replaces):
            if key in staged:
                del staged[key]
                return self.cell_visual(day, sm, em)

        existing = self.find_existing(day, sm, em)
        if existing is not None:
            if not self.selected_lesson or self.selected_lesson == existing.lesson_id:
                self.pending_deletes[key] = PendingDelete(
                    entry_id=existing.id, day=day, sm=sm, em=em, from_lesson_id=existing.lesson_id
                )
            else:
                self.pending_replaces[key] = PendingReplace(
                    entry_id=existing.id,
                    day=day,
                    sm=sm,
                    em=em,
                    from_lesson_id=existing.lesson_id,
                    to_lesson_id=self.selected_lesson,
                )
            return self.cell_visual(day, sm, em)

        if not self.selected_lesson:
            raise ValidationFailedError("Select a lesson first to add.", details={"day": day, "sm": sm, "em": em})
        self.pending_adds[key] = PendingAdd(day=day, sm=sm, em=em, lesson_id=self.selected_lesson)
        return self.cell_visual(day, sm, em)

    def cell_visual(self, day: int, sm: int, em: int) -> CellVisual:
        key = cell_key(day, sm, em)
        deletion = self.pending_deletes.get(key)
        if deletion is not None:
            return CellVisual(CellState.will_delete, deletion.from_lesson_id)
        addition = self.pending_adds.get(key)
        if addition is not None:
            return CellVisual(CellState.will_add, addition.lesson_id)
        replacement = self.pending_replaces.get(key)
        if replacement is not None:
            return CellVisual(CellState.will_replace, replacement.to_lesson_id, replacement.from_lesson_id)

        existing = self.find_existing(day, sm, em)
        if existing is not None:
            state = (
                CellState.committed_selected
                if existing.lesson_id == self.selected_lesson
                else CellState.committed_other
            )
            return CellVisual(state, existing.lesson_id)
        return CellVisual(CellState.empty)

    def cell_text(self, visual: CellVisual, lesson_names: Mapping[str, str]) -> str:
        if visual.state == CellState.empty:
            return "＋"
        if visual.state == CellState.will_add:
            return lesson_names.get(visual.lesson_id or "", "") or "(new)"
        if visual.state == CellState.will_replace:
            old_name = lesson_names.get(visual.from_lesson_id or "", "") or "(unknown)"
            return f"{old_name} (→)"
        return lesson_names.get(visual.lesson_id or "", "") or "(unknown)"

    def grid(self, lesson_names: Mapping[str, str]) -> list[dict]:
        rows: list[dict] = []
        for slot in self.slots:
            cells = []
            for day in self.days:
                visual = self.cell_visual(day, slot.sm, slot.em)
                cells.append(
                    {
                        "day": day,
                        "state": visual.state,
                        "lesson_id": visual.lesson_id,
                        "from_lesson_id": visual.from_lesson_id,
                        "pending": visual.is_pending,
                        "text": self.cell_text(visual, lesson_names),
                    }
                )
            rows.append({"start": slot.start, "end": slot.end, "sm": slot.sm, "em": slot.em, "cells": cells})
        return rows

    # -- commit ----------------------------------------------------------

    def build_batch(self) -> ChangeBatch:
        return ChangeBatch(
            class_id=self.selected_class or "",
            class_refs=list(self.class_refs),
            creates=list(self.pending_adds.values()),
            deletes=list(self.pending_deletes.values()),
            updates=list(self.pending_replaces.values()),
        )

    def save(self, *, actor_id: str | None = None) -> ChangeBatch | None:
        """Flush all staged changes as one batch.

        On failure the error is recorded in ``status`` and re-raised; staged
        changes stay in place so the operator can retry.
        """
        if not self.selected_class or not self.has_pending:
            return None
        batch = self.build_batch()
        self.status = StagingStatus(StatusKind.saving, "Saving…")
        try:
            self.store.apply(batch, actor_id=actor_id)
        except Exception as exc:
            message = getattr(exc, "message", None) or str(exc) or "Save failed"
            self.status = StagingStatus(StatusKind.error, message)
            logger.warning("Timetable save for class %s failed: %s", self.selected_class, message)
            raise
        self.clear_staged()
        self.status = StagingStatus(StatusKind.success, "Saved!")
        self.refresh()
        logger.info(
            "Saved timetable changes for class %s (%d add, %d delete, %d replace)",
            batch.class_id,
            len(batch.creates),
            len(batch.deletes),
            len(batch.updates),
        )
        return batch

    def cancel(self) -> None:
        self.clear_staged()


class StagingSessionRegistry:
    """One staging engine per operator, kept between requests."""

    def __init__(self) -> None:
        self._engines: dict[str, TimetableStagingEngine] = {}
        self._lock = Lock()

    def checkout(self, user_id: str, store: TimetableStore) -> TimetableStagingEngine:
        with self._lock:
            engine = self._engines.get(user_id)
            if engine is None:
                engine = TimetableStagingEngine(store)
                self._engines[user_id] = engine
            else:
                engine.store = store
            return engine

    def discard(self, user_id: str) -> None:
        with self._lock:
            self._engines.pop(user_id, None)

    def clear(self) -> None:
        with self._lock:
            self._engines.clear()


staging_sessions = StagingSessionRegistry()

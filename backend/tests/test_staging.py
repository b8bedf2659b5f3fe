import pytest

from schoolboard.core.exceptions import TimetableConflictError, ValidationFailedError
from schoolboard.services.slots import build_slots
from schoolboard.services.staging import (
    CellState,
    CommittedEntry,
    PendingAdd,
    PendingDelete,
    StagingSessionRegistry,
    StatusKind,
    TimetableStagingEngine,
)

SLOTS = build_slots(["08:00", "08:45", "09:30", "10:15"])
NAMES = {"math": "Math", "art": "Art"}


class MemoryStore:
    def __init__(self, entries=None, fail_with=None):
        self.entries = list(entries or [])
        self.applied = []
        self.loads = 0
        self.fail_with = fail_with

    def load_entries(self, class_refs):
        self.loads += 1
        return [entry for entry in self.entries if entry.class_ref in class_refs]

    def apply(self, batch, *, actor_id=None):
        if self.fail_with is not None:
            raise self.fail_with
        self.applied.append(batch)
        deleted = {change.entry_id for change in batch.deletes}
        replaced = {change.entry_id: change.to_lesson_id for change in batch.updates}
        kept = []
        for entry in self.entries:
            if entry.id in deleted:
                continue
            if entry.id in replaced:
                entry = CommittedEntry(
                    entry.id, entry.class_ref, replaced[entry.id], entry.day, entry.start_minutes, entry.end_minutes
                )
            kept.append(entry)
        for index, addition in enumerate(batch.creates):
            kept.append(
                CommittedEntry(f"new-{index}", batch.class_id, addition.lesson_id, addition.day, addition.sm, addition.em)
            )
        self.entries = kept


def make_engine(entries=None, **store_kwargs):
    store = MemoryStore(entries, **store_kwargs)
    engine = TimetableStagingEngine(store, slots=SLOTS)
    engine.select_class("class-1")
    return engine, store


def committed(entry_id="e1", lesson_id="math", day=1, sm=480, em=525):
    return CommittedEntry(entry_id, "class-1", lesson_id, day, sm, em)


def test_click_empty_cell_stages_addition_and_second_click_unstages():
    engine, _ = make_engine()
    engine.select_lesson("math")

    visual = engine.click_cell(1, 480, 525)
    assert visual.state == CellState.will_add
    assert engine.cell_text(visual, NAMES) == "Math"

    visual = engine.click_cell(1, 480, 525)
    assert visual.state == CellState.empty
    assert engine.cell_text(visual, NAMES) == "＋"
    assert not engine.has_pending


def test_click_empty_cell_without_lesson_is_rejected():
    engine, _ = make_engine()
    with pytest.raises(ValidationFailedError):
        engine.click_cell(1, 480, 525)
    assert not engine.has_pending


def test_click_without_class_is_rejected():
    engine = TimetableStagingEngine(MemoryStore(), slots=SLOTS)
    with pytest.raises(ValidationFailedError):
        engine.click_cell(1, 480, 525)


@pytest.mark.parametrize("selected", [None, "math"])
def test_committed_cell_with_no_or_same_lesson_stages_deletion(selected):
    engine, _ = make_engine([committed()])
    engine.select_lesson(selected)

    visual = engine.click_cell(1, 480, 525)
    assert visual.state == CellState.will_delete
    assert "e1" in {change.entry_id for change in engine.pending_deletes.values()}

    restored = engine.click_cell(1, 480, 525)
    expected = CellState.committed_selected if selected == "math" else CellState.committed_other
    assert restored.state == expected
    assert engine.cell_text(restored, NAMES) == "Math"


def test_committed_cell_with_other_lesson_stages_replacement():
    engine, _ = make_engine([committed()])
    engine.select_lesson("art")

    visual = engine.click_cell(1, 480, 525)
    assert visual.state == CellState.will_replace
    assert visual.lesson_id == "art"
    assert visual.from_lesson_id == "math"
    assert engine.cell_text(visual, NAMES) == "Math (→)"


def test_unknown_lessons_render_placeholders():
    engine, _ = make_engine([committed(lesson_id="ghost")])
    assert engine.cell_text(engine.cell_visual(1, 480, 525), NAMES) == "(unknown)"

    engine.select_lesson("brand-new")
    visual = engine.click_cell(2, 480, 525)
    assert engine.cell_text(visual, NAMES) == "(new)"


def test_save_flushes_each_staged_map_into_one_batch():
    entries = [committed("e1", "math", 1, 480, 525), committed("e2", "art", 2, 480, 525)]
    engine, store = make_engine(entries)
    engine.select_lesson("math")
    engine.click_cell(0, 480, 525)
    engine.click_cell(0, 525, 570)
    engine.click_cell(1, 480, 525)
    engine.click_cell(2, 480, 525)

    batch = engine.save(actor_id="admin")

    assert len(store.applied) == 1
    assert (len(batch.creates), len(batch.deletes), len(batch.updates)) == (2, 1, 1)
    assert batch.total == 4
    assert not engine.pending_adds and not engine.pending_deletes and not engine.pending_replaces
    assert engine.status.kind == StatusKind.success
    assert engine.status.message == "Saved!"
    assert {entry.lesson_id for entry in engine.entries} == {"math"}
    assert len(engine.entries) == 3


def test_failed_save_keeps_staged_changes_for_retry():
    engine, store = make_engine(fail_with=TimetableConflictError("slot is already taken"))
    engine.select_lesson("math")
    engine.click_cell(1, 480, 525)

    with pytest.raises(TimetableConflictError):
        engine.save()

    assert engine.status.kind == StatusKind.error
    assert engine.status.message == "slot is already taken"
    assert len(engine.pending_adds) == 1


def test_cancel_clears_without_store_calls():
    engine, store = make_engine([committed()])
    engine.select_lesson("art")
    engine.click_cell(1, 480, 525)
    engine.click_cell(2, 480, 525)

    engine.cancel()

    assert not engine.has_pending
    assert store.applied == []


def test_switching_class_or_lesson_discards_staged_changes():
    engine, _ = make_engine()
    engine.select_lesson("math")
    engine.click_cell(1, 480, 525)
    engine.select_lesson("art")
    assert not engine.has_pending

    engine.click_cell(1, 480, 525)
    engine.select_class("class-2")
    assert not engine.has_pending
    assert engine.selected_lesson is None


def test_visual_precedence_prefers_deletion_over_addition():
    engine, _ = make_engine()
    engine.pending_adds["1:480-525"] = PendingAdd(1, 480, 525, "art")
    engine.pending_deletes["1:480-525"] = PendingDelete("e1", 1, 480, 525, "math")

    visual = engine.cell_visual(1, 480, 525)

    assert visual.state == CellState.will_delete
    assert visual.lesson_id == "math"


def test_placed_count_and_grid_shape():
    engine, _ = make_engine([committed("e1", "math", 1, 480, 525), committed("e2", "math", 3, 525, 570)])
    engine.select_lesson("math")
    assert engine.placed_count == 2

    rows = engine.grid(NAMES)
    assert len(rows) == len(SLOTS)
    assert [cell["day"] for cell in rows[0]["cells"]] == engine.days


def test_save_without_pending_changes_is_a_no_op():
    engine, store = make_engine()
    assert engine.save() is None
    assert store.applied == []


def test_session_registry_keeps_engine_per_user_and_rebinds_store():
    registry = StagingSessionRegistry()
    first_store, second_store = MemoryStore(), MemoryStore()

    engine = registry.checkout("u1", first_store)
    assert registry.checkout("u1", second_store) is engine
    assert engine.store is second_store
    assert registry.checkout("u2", first_store) is not engine

    registry.discard("u1")
    assert registry.checkout("u1", first_store) is not engine

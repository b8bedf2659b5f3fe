from datetime import datetime

import pytest

from schoolboard.core.config import get_settings
from schoolboard.core.exceptions import ConfigurationError, ValidationFailedError
from schoolboard.models.lesson import Lesson
from schoolboard.models.timetable_entry import TimetableEntry
from schoolboard.models.user import UserRole
from schoolboard.services.classes import create_class
from schoolboard.services.lessons import create_lesson
from schoolboard.services.live import (
    Clock,
    SpotlightRotation,
    build_week_grid,
    happening_now,
    resolve_clock,
    wall_clock,
)
from schoolboard.services.slots import build_slots

# 2026-10-20 is a Tuesday.
TUESDAY_0915 = datetime(2026, 10, 20, 9, 15)


@pytest.fixture()
def school(db, make_user):
    teacher = make_user("tal", UserRole.teacher, first_name="Tal", last_name="Cohen")
    student = make_user("noa", first_name="Noa", last_name="Levi")
    school_class = create_class(db, name="7A", location="Room 12", class_id="CLS-7A00")
    lesson = create_lesson(db, name="Math", teacher_username=teacher.username)
    lesson.student_user_ids = [student.id]
    db.commit()
    return {"teacher": teacher, "student": student, "class": school_class, "lesson": lesson}


def add_entry(db, class_ref, lesson_id, day, sm, em):
    entry = TimetableEntry(class_ref=class_ref, lesson_id=lesson_id, day=day, start_minutes=sm, end_minutes=em)
    db.add(entry)
    db.commit()
    return entry


def test_wall_clock_uses_sunday_zero():
    assert wall_clock(datetime(2026, 10, 18, 8, 0)) == Clock(day=0, minutes=480)
    assert wall_clock(TUESDAY_0915) == Clock(day=2, minutes=555)


def test_resolve_clock_prefers_query_then_override_then_wall(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "clock_override_day", None)
    monkeypatch.setattr(settings, "clock_override_time", None)
    assert resolve_clock(now=TUESDAY_0915) == Clock(day=2, minutes=555, source="wall")

    monkeypatch.setattr(settings, "clock_override_day", 4)
    assert resolve_clock(now=TUESDAY_0915) == Clock(day=4, minutes=555, source="config")

    clock = resolve_clock(day=1, time="10:30", now=TUESDAY_0915)
    assert clock == Clock(day=1, minutes=630, source="query")

    # Day and time are picked independently.
    clock = resolve_clock(time="08:00", now=TUESDAY_0915)
    assert (clock.day, clock.minutes) == (4, 480)


@pytest.mark.parametrize("kwargs", [{"day": 7}, {"day": -1}, {"time": "25:00"}, {"time": "9:15"}])
def test_resolve_clock_rejects_bad_input(kwargs):
    with pytest.raises(ValidationFailedError):
        resolve_clock(now=TUESDAY_0915, **kwargs)


def test_happening_now_uses_half_open_intervals(db, school):
    current = add_entry(db, school["class"].class_id, school["lesson"].id, 2, 530, 570)
    add_entry(db, school["class"].class_id, school["lesson"].id, 2, 570, 600)
    add_entry(db, school["class"].class_id, school["lesson"].id, 3, 530, 570)

    items = happening_now(db, Clock(day=2, minutes=555))
    assert [item.entry_id for item in items] == [current.id]
    item = items[0]
    assert item.class_label == "7A · Room 12"
    assert item.lesson_name == "Math"
    assert item.teacher_name == "Tal Cohen (tal)"
    assert [student.label for student in item.students] == ["Noa Levi (noa)"]
    assert item.roster_source == "lesson"

    at_boundary = happening_now(db, Clock(day=2, minutes=570))
    assert [(entry.start_minutes, entry.end_minutes) for entry in at_boundary] == [(570, 600)]


def test_happening_now_resolves_both_class_identifiers(db, school):
    other = create_class(db, name="8B", class_id="CLS-8B00")
    db.commit()
    add_entry(db, school["class"].id, school["lesson"].id, 2, 530, 570)
    add_entry(db, other.class_id, school["lesson"].id, 2, 530, 570)
    add_entry(db, "CLS-GONE", school["lesson"].id, 2, 530, 570)

    labels = [item.class_label for item in happening_now(db, Clock(day=2, minutes=540))]

    assert labels == ["7A · Room 12", "8B", "CLS-GONE"]


def test_happening_now_falls_back_to_class_membership(db, school, make_user):
    make_user("dana", first_name="Dana", class_name="7A")
    make_user("omer", first_name="Omer", classes=["CLS-7A00"])
    make_user("gil", first_name="Gil", class_name="8B")
    empty = create_lesson(db, name="Art", teacher_username="tal")
    db.commit()
    add_entry(db, school["class"].class_id, empty.id, 1, 480, 525)

    [item] = happening_now(db, Clock(day=1, minutes=500))

    assert item.roster_source == "class"
    assert sorted(student.label for student in item.students) == ["Dana (dana)", "Omer (omer)"]


def test_happening_now_is_empty_outside_lessons(db, school):
    add_entry(db, school["class"].class_id, school["lesson"].id, 2, 530, 570)
    assert happening_now(db, Clock(day=2, minutes=1200)) == []


def test_spotlight_rotates_last_card_to_top():
    rotation = SpotlightRotation(interval_seconds=10)
    rotation.sync(["a", "b", "c"], now=0)
    assert rotation.expanded == "c"

    assert rotation.tick(now=25) == 2
    assert rotation.order == ["b", "c", "a"]
    assert rotation.expanded == "a"


def test_spotlight_click_moves_card_to_bottom_and_restarts_timer():
    rotation = SpotlightRotation(interval_seconds=10)
    rotation.sync(["a", "b", "c"], now=0)
    rotation.bring_to_bottom("a", now=8)

    assert rotation.order == ["b", "c", "a"]
    assert rotation.tick(now=15) == 0

    with pytest.raises(ValidationFailedError):
        rotation.bring_to_bottom("zzz")


def test_spotlight_resets_when_live_set_changes():
    rotation = SpotlightRotation(interval_seconds=10)
    rotation.sync(["a", "b"], now=0)
    rotation.rotate()
    assert rotation.sync(["b", "a"], now=1) == ["b", "a"]
    assert rotation.sync(["x"], now=2) == ["x"]


def test_week_grid_marks_current_row_and_skips_unaligned_entries():
    slots = build_slots(["08:00", "08:45", "09:30"])
    lesson = Lesson(id="l1", name="Math", is_student_teacher=False, teacher_first_name="Tal", teacher_username="tal")
    entries = [
        TimetableEntry(id="e1", class_ref="CLS-1", lesson_id="l1", day=1, start_minutes=480, end_minutes=525),
        TimetableEntry(id="e2", class_ref="CLS-1", lesson_id="l1", day=1, start_minutes=490, end_minutes=525),
        TimetableEntry(id="e3", class_ref="CLS-2", lesson_id="missing", day=2, start_minutes=525, end_minutes=570),
    ]

    grid = build_week_grid(
        entries,
        {"l1": lesson},
        Clock(day=1, minutes=500),
        class_labels={"CLS-1": "7A"},
        slots=slots,
        days=[0, 1, 2],
    )

    first, second = grid["rows"]
    assert first["is_now"] and not second["is_now"]
    assert [cell["is_now"] for cell in first["cells"]] == [False, True, False]
    assert first["cells"][1]["items"] == [
        {"entry_id": "e1", "lesson_id": "l1", "lesson_name": "Math", "teacher_name": "Tal (tal)", "class_label": "7A"}
    ]
    assert second["cells"][2]["items"][0]["class_label"] == "CLS-2"
    assert second["cells"][2]["items"][0]["lesson_name"] == ""


def test_unknown_school_timezone_is_a_configuration_error(monkeypatch, client, admin_headers):
    monkeypatch.setattr(get_settings(), "school_timezone", "Mars/Olympus_Mons")

    with pytest.raises(ConfigurationError):
        wall_clock()

    response = client.get("/api/display/birthdays", headers=admin_headers)
    assert response.status_code == 500
    assert response.json()["message"] == "Unknown school timezone 'Mars/Olympus_Mons'"

import pytest
from sqlalchemy import select

from schoolboard.models.timetable_entry import TimetableEntry
from schoolboard.models.user import UserRole
from schoolboard.services.classes import create_class
from schoolboard.services.lessons import create_lesson


@pytest.fixture()
def setup(db, make_user):
    make_user("tal", UserRole.teacher, first_name="Tal")
    school_class = create_class(db, name="7A", class_id="CLS-7A00")
    math = create_lesson(db, name="Math", teacher_username="tal")
    art = create_lesson(db, name="Art", teacher_username="tal")
    db.commit()
    return {"class": school_class, "math": math, "art": art}


def cell(session, day, sm):
    for row in session["rows"]:
        if row["sm"] == sm:
            return next(item for item in row["cells"] if item["day"] == day)
    raise AssertionError(f"no row at {sm}")


def open_session(client, headers, setup, lesson_key="math"):
    client.put("/api/scheduler/session/class", json={"class_id": setup["class"].class_id}, headers=headers)
    return client.put(
        "/api/scheduler/session/lesson", json={"lesson_id": setup[lesson_key].id}, headers=headers
    ).json()


def click(client, headers, day, sm, em):
    return client.post("/api/scheduler/session/click", json={"day": day, "sm": sm, "em": em}, headers=headers)


def test_session_starts_empty(client, admin_headers):
    session = client.get("/api/scheduler/session", headers=admin_headers).json()
    assert session["class_id"] is None
    assert session["has_pending"] is False
    assert session["status"] == {"kind": "idle", "message": None}
    assert cell(session, 0, 480) == {
        "day": 0,
        "state": "empty",
        "lesson_id": None,
        "from_lesson_id": None,
        "pending": False,
        "text": "＋",
    }


def test_students_cannot_use_scheduler(client, make_user, login_as):
    make_user("noa")
    assert client.get("/api/scheduler/session", headers=login_as("noa")).status_code == 403


def test_select_class_by_business_id_and_stage_additions(client, admin_headers, setup):
    session = open_session(client, admin_headers, setup)
    assert session["class_id"] == setup["class"].id
    assert session["class_label"] == "7A"
    assert session["lesson_name"] == "Math"

    session = click(client, admin_headers, 1, 480, 525).json()
    assert cell(session, 1, 480)["state"] == "willAdd"
    assert cell(session, 1, 480)["text"] == "Math"
    assert session["pending_adds"] == 1

    session = click(client, admin_headers, 1, 480, 525).json()
    assert cell(session, 1, 480)["state"] == "empty"
    assert session["has_pending"] is False


def test_click_outside_grid_or_without_lesson_is_rejected(client, admin_headers, setup):
    client.put("/api/scheduler/session/class", json={"class_id": setup["class"].id}, headers=admin_headers)
    assert click(client, admin_headers, 1, 480, 525).status_code == 400
    open_session(client, admin_headers, setup)
    assert click(client, admin_headers, 1, 490, 525).status_code == 400
    assert click(client, admin_headers, 6, 480, 525).status_code == 400
    assert click(client, admin_headers, 1, 525, 480).status_code == 422


def test_save_writes_one_batch_and_refreshes(client, db, admin_headers, setup):
    open_session(client, admin_headers, setup)
    click(client, admin_headers, 1, 480, 525)
    click(client, admin_headers, 2, 480, 525)

    result = client.post("/api/scheduler/session/save", headers=admin_headers).json()

    assert (result["created"], result["deleted"], result["updated"]) == (2, 0, 0)
    session = result["session"]
    assert session["status"] == {"kind": "success", "message": "Saved!"}
    assert session["has_pending"] is False
    assert session["placed_count"] == 2
    assert cell(session, 1, 480)["state"] == "committedSelected"

    db.expire_all()
    entries = list(db.execute(select(TimetableEntry)).scalars())
    assert {(entry.class_ref, entry.day) for entry in entries} == {(setup["class"].id, 1), (setup["class"].id, 2)}


def test_replace_and_delete_committed_entries(client, db, admin_headers, setup):
    for day, lesson in ((1, setup["math"]), (2, setup["art"])):
        db.add(TimetableEntry(class_ref="CLS-7A00", lesson_id=lesson.id, day=day, start_minutes=480, end_minutes=525))
    db.commit()

    session = open_session(client, admin_headers, setup, "art")
    assert cell(session, 1, 480)["state"] == "committedOther"
    assert cell(session, 2, 480)["state"] == "committedSelected"

    session = click(client, admin_headers, 1, 480, 525).json()
    assert cell(session, 1, 480)["state"] == "willReplace"
    assert cell(session, 1, 480)["text"] == "Math (→)"

    session = click(client, admin_headers, 2, 480, 525).json()
    assert cell(session, 2, 480)["state"] == "willDelete"

    result = client.post("/api/scheduler/session/save", headers=admin_headers).json()
    assert (result["created"], result["deleted"], result["updated"]) == (0, 1, 1)

    db.expire_all()
    remaining = list(db.execute(select(TimetableEntry)).scalars())
    assert [(entry.day, entry.lesson_id) for entry in remaining] == [(1, setup["art"].id)]


def test_switching_lesson_drops_staged_changes(client, admin_headers, setup):
    open_session(client, admin_headers, setup)
    click(client, admin_headers, 1, 480, 525)

    session = client.put("/api/scheduler/session/lesson", json={"lesson_id": setup["art"].id}, headers=admin_headers)

    assert session.json()["has_pending"] is False


def test_concurrent_save_conflict_keeps_staged_changes(client, admin_headers, setup, login_as):
    teacher_headers = login_as("tal")
    open_session(client, teacher_headers, setup)
    click(client, teacher_headers, 3, 525, 570)

    open_session(client, admin_headers, setup, "art")
    click(client, admin_headers, 3, 525, 570)
    assert client.post("/api/scheduler/session/save", headers=admin_headers).status_code == 200

    conflict = client.post("/api/scheduler/session/save", headers=teacher_headers)
    assert conflict.status_code == 409
    assert conflict.json()["details"]["conflicts"][0]["reason"] == "slot is already taken"

    session = client.get("/api/scheduler/session", headers=teacher_headers).json()
    assert session["has_pending"] is True
    assert session["status"]["kind"] == "error"


def test_cancel_and_discard(client, admin_headers, setup):
    open_session(client, admin_headers, setup)
    click(client, admin_headers, 1, 480, 525)

    session = client.post("/api/scheduler/session/cancel", headers=admin_headers).json()
    assert session["has_pending"] is False
    assert session["class_id"] == setup["class"].id

    assert client.delete("/api/scheduler/session", headers=admin_headers).json() == {"discarded": True}
    assert client.get("/api/scheduler/session", headers=admin_headers).json()["class_id"] is None


def test_save_without_changes_reports_zero(client, admin_headers, setup):
    open_session(client, admin_headers, setup)
    result = client.post("/api/scheduler/session/save", headers=admin_headers).json()
    assert (result["created"], result["deleted"], result["updated"]) == (0, 0, 0)


def test_unknown_class_is_not_found(client, admin_headers):
    response = client.put("/api/scheduler/session/class", json={"class_id": "CLS-NONE"}, headers=admin_headers)
    assert response.status_code == 404


def test_click_sees_entry_committed_by_another_operator(client, admin_headers, setup, login_as):
    teacher_headers = login_as("tal")
    open_session(client, teacher_headers, setup)

    open_session(client, admin_headers, setup, "art")
    click(client, admin_headers, 3, 525, 570)
    assert client.post("/api/scheduler/session/save", headers=admin_headers).status_code == 200

    session = click(client, teacher_headers, 3, 525, 570).json()

    target = cell(session, 3, 525)
    assert target["state"] == "willReplace"
    assert target["from_lesson_id"] == setup["art"].id
    assert target["text"] == "Art (→)"
    result = client.post("/api/scheduler/session/save", headers=teacher_headers).json()
    assert (result["created"], result["deleted"], result["updated"]) == (0, 0, 1)


def test_click_sees_entry_removed_by_another_operator(client, db, admin_headers, setup, login_as):
    db.add(TimetableEntry(class_ref="CLS-7A00", lesson_id=setup["math"].id, day=4, start_minutes=480, end_minutes=525))
    db.commit()
    teacher_headers = login_as("tal")
    session = open_session(client, teacher_headers, setup)
    assert cell(session, 4, 480)["state"] == "committedSelected"

    open_session(client, admin_headers, setup)
    click(client, admin_headers, 4, 480, 525)
    assert client.post("/api/scheduler/session/save", headers=admin_headers).json()["deleted"] == 1

    session = click(client, teacher_headers, 4, 480, 525).json()

    assert cell(session, 4, 480)["state"] == "willAdd"
    assert session["pending_deletes"] == 0

import re

import pytest

from schoolboard.core.exceptions import AppError, DuplicateKeyError
from schoolboard.models.user import UserRole
from schoolboard.services import classes as class_service


def test_generated_class_ids_use_prefix_and_alphabet():
    assert re.fullmatch(r"CLS-[A-Z0-9]{4}", class_service.generate_class_id())


def test_generate_unique_class_id_gives_up_after_bounded_attempts(db, monkeypatch):
    class_service.create_class(db, name="7A", class_id="CLS-SAME")
    monkeypatch.setattr(class_service, "generate_class_id", lambda: "CLS-SAME")

    with pytest.raises(AppError) as exc_info:
        class_service.generate_unique_class_id(db)
    assert exc_info.value.status_code == 503


def test_explicit_class_ids_are_unique_ignoring_case(db):
    class_service.create_class(db, name="7A", class_id="CLS-AB12")
    with pytest.raises(DuplicateKeyError):
        class_service.create_class(db, name="7B", class_id="cls-ab12")


def test_admin_class_crud(client, admin_headers):
    created = client.post("/api/classes", json={"name": " 7A ", "location": "Room 3"}, headers=admin_headers)
    assert created.status_code == 201, created.text
    body = created.json()
    assert body["name"] == "7A"
    assert body["label"] == "7A · Room 3"
    assert body["class_id"].startswith("CLS-")

    renamed = client.put(f"/api/classes/{body['id']}", json={"name": "7A+"}, headers=admin_headers)
    assert renamed.json()["name"] == "7A+"
    assert renamed.json()["class_id"] == body["class_id"]

    regenerated = client.post(f"/api/classes/{body['id']}/regenerate-id", headers=admin_headers)
    assert regenerated.json()["class_id"] != body["class_id"]

    assert client.delete(f"/api/classes/{body['id']}", headers=admin_headers).json()["deleted"] is True
    assert client.get("/api/classes", headers=admin_headers).json() == []


def test_duplicate_class_id_returns_conflict(client, admin_headers):
    client.post("/api/classes", json={"name": "7A", "class_id": "CLS-7A00"}, headers=admin_headers)
    response = client.post("/api/classes", json={"name": "7B", "class_id": "CLS-7A00"}, headers=admin_headers)
    assert response.status_code == 409


def test_teacher_manages_only_own_class_roster(client, db, make_user, login_as):
    teacher = make_user("tal", UserRole.teacher)
    make_user("gil", UserRole.teacher)
    student = make_user("noa")
    own = class_service.create_class(db, name="7A", teacher_id=teacher.id)
    other = class_service.create_class(db, name="7B")
    db.commit()
    headers = login_as("tal")

    mine = client.get("/api/classes/mine", headers=headers).json()
    assert [item["id"] for item in mine] == [own.id]

    toggled = client.post(f"/api/classes/{own.id}/students/{student.id}/toggle", headers=headers).json()
    assert toggled == {"student_id": student.id, "enrolled": True, "student_ids": [student.id]}
    toggled = client.post(f"/api/classes/{own.id}/students/{student.id}/toggle", headers=headers).json()
    assert toggled["enrolled"] is False

    denied = client.post(f"/api/classes/{other.id}/students/{student.id}/toggle", headers=headers)
    assert denied.status_code == 403
    assert client.get("/api/classes/mine", headers=login_as("gil")).json() == []


def test_roster_replace_parses_comma_separated_ids(client, db, admin_headers):
    school_class = class_service.create_class(db, name="7A")
    db.commit()

    response = client.put(
        f"/api/classes/{school_class.id}/students",
        json={"student_ids": " s1, s2 ,,s1, s3 "},
        headers=admin_headers,
    )

    assert response.json()["student_ids"] == ["s1", "s2", "s3"]


def test_toggle_unknown_student_is_not_found(client, db, admin_headers):
    school_class = class_service.create_class(db, name="7A")
    db.commit()
    response = client.post(f"/api/classes/{school_class.id}/students/ghost/toggle", headers=admin_headers)
    assert response.status_code == 404

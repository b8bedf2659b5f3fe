import pytest

from schoolboard.core.exceptions import DuplicateKeyError, ValidationFailedError
from schoolboard.models.user import UserRole
from schoolboard.services.accounts import create_account, parse_birthday, synthetic_email


def test_login_is_case_insensitive_and_returns_profile(client, make_user):
    make_user("Noa.Levi", first_name="Noa", last_name="Levi")

    response = client.post("/api/auth/login", json={"username": "noa.levi", "password": "password123"})

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["username"] == "Noa.Levi"
    assert body["user"]["email"] == "noa.levi@school.local"


def test_login_rejects_wrong_password(client, make_user):
    make_user("noa")
    response = client.post("/api/auth/login", json={"username": "noa", "password": "nope-nope"})
    assert response.status_code == 401


def test_me_requires_token(client, make_user, login_as):
    make_user("noa")
    assert client.get("/api/auth/me").status_code in {401, 403}
    response = client.get("/api/auth/me", headers=login_as("noa"))
    assert response.json()["username"] == "noa"


def test_usernames_are_unique_ignoring_case(db, make_user):
    make_user("Alice")
    with pytest.raises(DuplicateKeyError):
        create_account(db, username="alice", password="password123", first_name="Other", role=UserRole.student)


def test_create_account_requires_core_fields(db):
    with pytest.raises(ValidationFailedError) as exc_info:
        create_account(db, username="bob", password="", first_name=" ", role=UserRole.student)
    assert exc_info.value.details["missing"] == ["password", "first_name"]


def test_synthetic_email_and_birthday_format():
    assert synthetic_email(" Dana ") == "dana@school.local"
    assert parse_birthday("29-02-2012") == "29-02-2012"
    assert parse_birthday("  ") is None
    with pytest.raises(ValidationFailedError):
        parse_birthday("2012-02-29")


def test_admin_creates_and_updates_users(client, admin_headers):
    response = client.post(
        "/api/users",
        json={"username": "dana", "password": "secret99", "first_name": "Dana", "role": "student"},
        headers=admin_headers,
    )
    assert response.status_code == 201, response.text
    user = response.json()
    assert user["label"] == "Dana (dana)"

    duplicate = client.post(
        "/api/users",
        json={"username": "DANA", "password": "secret99", "first_name": "Dana", "role": "student"},
        headers=admin_headers,
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["details"]["field"] == "username"

    updated = client.put(
        f"/api/users/{user['id']}",
        json={"username": "dana.k", "last_name": "Katz", "birthday": "01-05-2011"},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["email"] == "dana.k@school.local"
    assert updated.json()["label"] == "Dana Katz (dana.k)"

    assert client.post("/api/auth/login", json={"username": "dana.k", "password": "secret99"}).status_code == 200


def test_only_admin_manages_users(client, make_user, login_as):
    make_user("noa")
    headers = login_as("noa")
    response = client.post(
        "/api/users",
        json={"username": "x", "password": "secret99", "first_name": "X", "role": "student"},
        headers=headers,
    )
    assert response.status_code == 403
    assert client.get("/api/users", headers=headers).status_code == 403


def test_list_users_filters_by_role_and_search(client, admin_headers, make_user):
    make_user("tal", UserRole.teacher, first_name="Tal")
    make_user("noa", first_name="Noa")
    make_user("noam", first_name="Noam")

    response = client.get("/api/users", params={"role": "student", "search": "noa"}, headers=admin_headers)

    assert [user["username"] for user in response.json()] == ["noa", "noam"]


def test_bulk_advisor_assignment_skips_bad_rows(client, admin_headers, make_user, login_as):
    teacher = make_user("tal", UserRole.teacher, first_name="Tal", last_name="Cohen")
    noa = make_user("noa")
    other_teacher = make_user("gil", UserRole.teacher)

    response = client.post(
        "/api/users/advisors",
        json={"student_ids": [noa.id, other_teacher.id, "missing"], "teacher_id": teacher.id},
        headers=admin_headers,
    )

    body = response.json()
    assert body["updated"] == [noa.id]
    assert {row["ref"] for row in body["skipped"]} == {other_teacher.id, "missing"}

    advisees = client.get("/api/users/advisees", headers=login_as("tal")).json()
    assert [user["id"] for user in advisees] == [noa.id]
    assert advisees[0]["advisor_name"] == "Tal Cohen"


def test_set_and_clear_single_advisor(client, admin_headers, make_user):
    teacher = make_user("tal", UserRole.teacher)
    noa = make_user("noa")

    assigned = client.put(f"/api/users/{noa.id}/advisor", json={"teacher_id": teacher.id}, headers=admin_headers)
    assert assigned.json()["advisor_id"] == teacher.id

    cleared = client.put(f"/api/users/{noa.id}/advisor", json={"teacher_id": None}, headers=admin_headers)
    assert cleared.json()["advisor_id"] is None

    not_student = client.put(f"/api/users/{teacher.id}/advisor", json={"teacher_id": teacher.id}, headers=admin_headers)
    assert not_student.status_code == 400


def test_delete_user(client, admin_headers, make_user):
    noa = make_user("noa")
    assert client.delete(f"/api/users/{noa.id}", headers=admin_headers).json() == {"id": noa.id, "deleted": True}
    assert client.get(f"/api/users/{noa.id}", headers=admin_headers).status_code == 404


def test_update_rejects_username_with_spaces(client, admin_headers, make_user):
    noa = make_user("noa")

    for bad in ("a b", "   "):
        response = client.put(f"/api/users/{noa.id}", json={"username": bad}, headers=admin_headers)
        assert response.status_code == 422

    assert client.get(f"/api/users/{noa.id}", headers=admin_headers).json()["username"] == "noa"

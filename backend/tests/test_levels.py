import pytest

from schoolboard.core.exceptions import ResourceNotFoundError, ValidationFailedError
from schoolboard.models.user import UserRole
from schoolboard.services.lessons import create_lesson
from schoolboard.services.levels import move_all_students, move_student


@pytest.fixture()
def english(db, make_user):
    make_user("tal", UserRole.teacher)
    lessons = {
        "l1": create_lesson(db, name="English Level 1", teacher_username="tal"),
        "l2a": create_lesson(db, name="English Level 2 Group A", teacher_username="tal"),
        "l2b": create_lesson(db, name="English Level 2 Group B", teacher_username="tal"),
        "l3": create_lesson(db, name="English Level 3", teacher_username="tal"),
    }
    lessons["l1"].student_user_ids = ["s1", "s2"]
    lessons["l2a"].student_user_ids = ["s3", "s4"]
    lessons["l2b"].student_user_ids = ["s5"]
    db.commit()
    return lessons


def test_step_up_picks_smallest_lesson_in_next_level(db, english):
    result = move_student(db, "s1", english["l1"].id, step=1)

    assert result.to_lesson is english["l2b"]
    assert result.moved == ["s1"]
    assert english["l1"].student_user_ids == ["s2"]
    assert english["l2b"].student_user_ids == ["s5", "s1"]


def test_step_below_first_level_has_no_target(db, english):
    with pytest.raises(ValidationFailedError):
        move_student(db, "s1", english["l1"].id, step=-1)


def test_explicit_level_and_partial_group_match(db, english):
    result = move_student(db, "s2", english["l1"].id, level=2, group="a")
    assert result.to_lesson is english["l2a"]


def test_moving_student_not_on_roster_is_not_found(db, english):
    with pytest.raises(ResourceNotFoundError):
        move_student(db, "s9", english["l1"].id, step=1)


def test_move_all_empties_source(db, english):
    result = move_all_students(db, english["l2a"].id, to_lesson_id=english["l3"].id)

    assert result.moved == ["s3", "s4"]
    assert english["l2a"].student_user_ids == []
    assert english["l3"].student_user_ids == ["s3", "s4"]


def test_level_endpoints(client, english, admin_headers):
    groups = client.get("/api/levels", headers=admin_headers).json()
    assert [group["base"] for group in groups] == ["English"]
    assert [level["key"] for level in groups[0]["levels"]] == [1, 2, 3]
    assert [lesson["group"] for lesson in groups[0]["levels"][1]["lessons"]] == ["A", "B"]

    parsed = client.get("/api/levels/parse", params={"name": "אנגלית רמה 2 קבוצה 3"}, headers=admin_headers).json()
    assert parsed == {"base": "אנגלית", "level": 2, "group": "3"}

    moved = client.post(
        "/api/levels/move",
        json={"student_id": "s5", "from_lesson_id": english["l2b"].id, "step": -1},
        headers=admin_headers,
    ).json()
    assert moved == {"from_lesson_id": english["l2b"].id, "to_lesson_id": english["l1"].id, "moved": ["s5"]}

    invalid = client.post(
        "/api/levels/move-all",
        json={"from_lesson_id": english["l1"].id, "step": 2},
        headers=admin_headers,
    )
    assert invalid.status_code == 422

from datetime import date, datetime, timedelta, timezone

import pytest

from schoolboard.core.exceptions import ValidationFailedError
from schoolboard.models.announcement import Announcement, AnnouncementType
from schoolboard.models.user import User, UserRole
from schoolboard.services.announcements import (
    TICKER_FALLBACK,
    birthdays_this_week,
    create_announcement,
    is_active,
    ticker_lines,
    week_bounds,
)

NOW = datetime(2026, 10, 20, 9, 0, tzinfo=timezone.utc)


def person(user_id, birthday, first_name="Noa"):
    return User(id=user_id, username=user_id, first_name=first_name, last_name="", birthday=birthday)


@pytest.mark.parametrize(
    ("start_at", "end_at", "expected"),
    [
        (None, None, True),
        (NOW - timedelta(days=1), None, True),
        (NOW + timedelta(minutes=1), None, False),
        (None, NOW - timedelta(seconds=1), False),
        (NOW - timedelta(days=1), NOW + timedelta(days=1), True),
        (NOW.replace(tzinfo=None) - timedelta(hours=1), None, True),
    ],
)
def test_announcement_window(start_at, end_at, expected):
    assert is_active(Announcement(text="x", start_at=start_at, end_at=end_at), NOW) is expected


def test_window_end_before_start_is_rejected(db):
    with pytest.raises(ValidationFailedError):
        create_announcement(db, text="Trip", start_at=NOW, end_at=NOW - timedelta(hours=1))


def test_ticker_falls_back_to_greeting(db):
    assert ticker_lines(db, NOW) == [TICKER_FALLBACK]
    create_announcement(db, text="Happy birthday!", type=AnnouncementType.birthday)
    create_announcement(db, text="Old news", end_at=NOW - timedelta(days=1))
    assert ticker_lines(db, NOW) == [TICKER_FALLBACK]

    create_announcement(db, text="Trip on Thursday")
    assert ticker_lines(db, NOW) == ["Trip on Thursday"]


def test_week_runs_sunday_to_saturday():
    assert week_bounds(date(2026, 10, 20)) == (date(2026, 10, 18), date(2026, 10, 24))
    assert week_bounds(date(2026, 10, 18)) == (date(2026, 10, 18), date(2026, 10, 24))


def test_birthdays_this_week_sorted_and_tolerant():
    people = [
        person("b", "23-10-2011", "Tom"),
        person("a", "19-10-2012", "Noa"),
        person("c", "25-10-2012"),
        person("d", "31-31-2000"),
        person("e", None),
    ]

    items = birthdays_this_week(people, date(2026, 10, 20))

    assert [(item.user_id, item.day) for item in items] == [("a", 1), ("b", 5)]
    assert items[0].birthday == date(2026, 10, 19)


def test_leap_day_birthday_falls_on_feb_28():
    [item] = birthdays_this_week([person("a", "29-02-2012")], date(2027, 3, 2))
    assert item.birthday == date(2027, 2, 28)
    assert item.day == 0


def test_birthday_week_across_new_year():
    [item] = birthdays_this_week([person("a", "01-01-2010")], date(2026, 12, 31))
    assert item.birthday == date(2027, 1, 1)


def test_announcement_api_and_display_endpoints(client, admin_headers, make_user):
    make_user("noa", first_name="Noa", last_name="Levi", birthday="19-10-2012")
    make_user("tal", UserRole.teacher, first_name="Tal", birthday="01-01-1980")

    created = client.post("/api/announcements", json={"text": " Trip on Thursday "}, headers=admin_headers)
    assert created.status_code == 201
    assert created.json()["type"] == "news"
    client.post("/api/announcements", json={"text": "Mazal tov!", "type": "birthday"}, headers=admin_headers)
    expired = client.post(
        "/api/announcements",
        json={"text": "Gone", "start_at": "2020-01-01T00:00:00Z", "end_at": "2020-01-02T00:00:00Z"},
        headers=admin_headers,
    )
    assert expired.status_code == 201

    ticker = client.get("/api/display/announcements", headers=admin_headers).json()
    assert ticker == {"lines": ["Trip on Thursday"]}

    banner = client.get("/api/display/birthdays", params={"on": "2026-10-20"}, headers=admin_headers).json()
    assert [person["name"] for person in banner["people"]] == ["Noa Levi"]
    assert banner["people"][0]["birthday"] == "2026-10-19"
    assert banner["announcements"] == ["Mazal tov!"]

    births = client.get("/api/announcements", params={"type": "birthday"}, headers=admin_headers).json()
    assert [item["text"] for item in births] == ["Mazal tov!"]

    invalid = client.post(
        "/api/announcements",
        json={"text": "Bad", "start_at": "2026-01-02T00:00:00Z", "end_at": "2026-01-01T00:00:00Z"},
        headers=admin_headers,
    )
    assert invalid.status_code == 422

    news_id = created.json()["id"]
    updated = client.put(f"/api/announcements/{news_id}", json={"text": "Trip moved"}, headers=admin_headers)
    assert updated.json()["text"] == "Trip moved"
    assert client.delete(f"/api/announcements/{news_id}", headers=admin_headers).json()["deleted"] is True
    assert client.get("/api/display/announcements", headers=admin_headers).json() == {"lines": [TICKER_FALLBACK]}


def test_only_admin_edits_announcements(client, make_user, login_as):
    make_user("noa")
    response = client.post("/api/announcements", json={"text": "Hi"}, headers=login_as("noa"))
    assert response.status_code == 403

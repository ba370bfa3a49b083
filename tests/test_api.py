"""
Tests for the Mini App HTTP API.
"""

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone

import pytest

from ratings.api import create_api
from ratings.models import ON_TIME_NO, ON_TIME_YES, Review
from ratings.stats import season_bounds
from ratings.webapp_auth import INIT_DATA_HEADER

UTC = timezone.utc
USER = {"id": 777, "first_name": "Анна", "last_name": "Смирнова", "username": "anna"}


@pytest.fixture
def notifications():
    return []


@pytest.fixture
def client(database, settings, notifications):
    database.add_workshop("Alpha", "ул. Мира, 5", "Покраска")
    database.add_workshop("Bravo", "пр. Победы, 10", "Шиномонтаж")
    app = create_api(database, settings, on_review=notifications.append)
    app.config["TESTING"] = True
    return app.test_client()


def review_payload(**overrides):
    payload = {
        "workshop": "Alpha",
        "qualityRating": 5,
        "communicationRating": 4,
        "onTime": "Да",
        "textFeedback": "Сделали быстро",
    }
    payload.update(overrides)
    return payload


def seed(database, workshop, created_at, text="", on_time=ON_TIME_YES, quality=5):
    database.add_feedback(Review(workshop, quality, 5, on_time, text, created_at, user_id=1))


def test_health(client):
    assert client.get("/health").get_json() == {"ok": True}
    assert client.get("/api/health").get_json() == {"ok": True}


def test_workshops_without_reviews_report_zeros(client):
    body = client.get("/api/workshops").get_json()

    assert body["ok"]
    assert [w["name"] for w in body["workshops"]] == ["Alpha", "Bravo"]
    alpha = body["workshops"][0]
    assert alpha["address"] == "ул. Мира, 5"
    assert alpha["total_reviews"] == 0
    assert alpha["avg_quality"] == 0.0
    assert alpha["on_time_percentage"] == 0.0


def test_overall_ratings_are_ranked(client, database):
    now = datetime.now(UTC)
    seed(database, "Bravo", now)
    seed(database, "Bravo", now)
    seed(database, "Alpha", now, on_time=ON_TIME_NO)

    body = client.get("/api/ratings").get_json()

    assert body["type"] == "overall"
    assert [w["name"] for w in body["workshops"]] == ["Bravo", "Alpha"]
    assert body["workshops"][0]["overall_rating"] > 0
    assert body["workshops"][1]["overall_rating"] == 0.0


def test_unknown_rating_type_is_rejected(client):
    response = client.get("/api/ratings?type=speed")
    assert response.status_code == 400
    assert response.get_json() == {"ok": False, "error": "invalid_type"}


def test_seasonal_ratings(client, database):
    jan = season_bounds(date(2024, 1, 1), date(2024, 1, 31))
    database.add_season("Январь", "", *jan)
    season_id = database.list_seasons()[0].id
    seed(database, "Alpha", datetime(2024, 1, 10, tzinfo=UTC), quality=2)
    seed(database, "Bravo", datetime(2024, 3, 1, tzinfo=UTC))

    body = client.get(f"/api/ratings/seasonal?seasonId={season_id}&type=TIMING").get_json()

    assert body["type"] == "delays"
    assert body["season"]["name"] == "Январь"
    assert [w["name"] for w in body["workshops"]] == ["Alpha", "Bravo"]
    assert body["workshops"][0]["total_reviews"] == 1
    assert body["workshops"][1]["total_reviews"] == 0

    seasons = client.get("/api/seasons").get_json()["seasons"]
    assert seasons[0]["id"] == str(season_id)


@pytest.mark.parametrize(
    "query, status, error",
    [
        ("", 400, "missing_season"),
        ("?seasonId=999", 404, "season_not_found"),
        ("?seasonId=abc", 404, "season_not_found"),
        ("?seasonId=1&type=bogus", 400, "invalid_type"),
    ],
)
def test_seasonal_ratings_errors(client, query, status, error):
    response = client.get(f"/api/ratings/seasonal{query}")
    assert response.status_code == status
    assert response.get_json()["error"] == error


def test_reviews_are_paginated(client, database):
    base = datetime(2024, 6, 1, tzinfo=UTC)
    for day in range(7):
        seed(database, "Alpha", base + timedelta(days=day), text=f"отзыв {day}")
    seed(database, "Alpha", base + timedelta(days=20), text="")

    first = client.get("/api/reviews?workshop=Alpha").get_json()
    second = client.get("/api/reviews?workshop=Alpha&page=1").get_json()

    assert first["total_reviews"] == 7
    assert first["total_pages"] == 2
    assert [r["text_feedback"] for r in first["reviews"]] == [f"отзыв {d}" for d in (6, 5, 4, 3, 2)]
    assert first["reviews"][0]["on_time"] == "Да"
    assert "user_id" not in first["reviews"][0]
    assert second["page"] == 1
    assert len(second["reviews"]) == 2


def test_reviews_require_workshop(client):
    response = client.get("/api/reviews")
    assert response.status_code == 400
    assert response.get_json()["error"] == "missing_workshop"


def test_submit_review(client, database, notifications, sign_init_data):
    response = client.post(
        "/api/reviews",
        json=review_payload(),
        headers={INIT_DATA_HEADER: sign_init_data(user=USER)},
    )

    assert response.status_code == 201
    body = response.get_json()
    assert body["ok"]
    stored = database.get_feedback(int(body["id"]))
    assert stored.user_id == 777
    assert stored.username == "anna"
    assert stored.on_time == ON_TIME_YES
    assert stored.text_feedback == "Сделали быстро"
    assert [n.id for n in notifications] == [stored.id]


def test_submit_review_accepts_init_data_in_body(client, sign_init_data):
    payload = review_payload(initData=sign_init_data(user=USER), onTime="нет", textFeedback=None)
    response = client.post("/api/reviews", json=payload)
    assert response.status_code == 201


@pytest.mark.parametrize(
    "init_data, reason",
    [(None, "missing_init_data"), ("auth_date=1&user=%7B%7D", "missing_hash")],
)
def test_submit_review_requires_signed_init_data(client, init_data, reason):
    headers = {INIT_DATA_HEADER: init_data} if init_data else {}
    response = client.post("/api/reviews", json=review_payload(), headers=headers)

    assert response.status_code == 401
    assert response.get_json() == {"ok": False, "error": "unauthorized", "reason": reason}


def test_submit_review_rejects_forged_hash(client, sign_init_data):
    forged = sign_init_data(user=USER, token="1:FORGED")
    response = client.post("/api/reviews", json=review_payload(), headers={INIT_DATA_HEADER: forged})
    assert response.get_json()["reason"] == "invalid_hash"


def test_submit_review_rejects_non_ascii_hash(client):
    response = client.post(
        "/api/reviews",
        json=review_payload(),
        headers={INIT_DATA_HEADER: "auth_date=1&hash=%D1%8F"},
    )
    assert response.status_code == 401
    assert response.get_json()["reason"] == "invalid_hash"


@pytest.mark.parametrize("body", [[1, 2], "Alpha", 5])
def test_submit_review_rejects_non_object_body(client, sign_init_data, body):
    response = client.post("/api/reviews", json=body, headers={INIT_DATA_HEADER: sign_init_data(user=USER)})
    assert response.status_code == 400
    assert response.get_json() == {"ok": False, "error": "invalid_body"}


def test_submit_review_rejects_expired_init_data(client, sign_init_data):
    stale = sign_init_data(user=USER, auth_date=int(datetime.now(UTC).timestamp()) - 2 * 86400)
    response = client.post("/api/reviews", json=review_payload(), headers={INIT_DATA_HEADER: stale})
    assert response.status_code == 401
    assert response.get_json()["reason"] == "expired_init_data"


def test_submit_review_requires_user(client, sign_init_data):
    response = client.post("/api/reviews", json=review_payload(), headers={INIT_DATA_HEADER: sign_init_data()})
    assert response.status_code == 401
    assert response.get_json()["reason"] == "missing_user"


@pytest.mark.parametrize(
    "overrides, error",
    [
        ({"workshop": ""}, "missing_workshop"),
        ({"qualityRating": 6}, "invalid_quality_rating"),
        ({"communicationRating": "0"}, "invalid_communication_rating"),
        ({"onTime": "иногда"}, "invalid_on_time"),
        ({"textFeedback": "x" * 1001}, "text_too_long"),
    ],
)
def test_submit_review_validates_input(client, sign_init_data, overrides, error):
    response = client.post(
        "/api/reviews",
        json=review_payload(**overrides),
        headers={INIT_DATA_HEADER: sign_init_data(user=USER)},
    )
    assert response.status_code == 400
    assert response.get_json() == {"ok": False, "error": error}


def test_submit_review_unknown_workshop(client, sign_init_data):
    response = client.post(
        "/api/reviews",
        json=review_payload(workshop="Nowhere"),
        headers={INIT_DATA_HEADER: sign_init_data(user=USER)},
    )
    assert response.status_code == 404
    assert response.get_json()["error"] == "workshop_not_found"


def test_daily_limit_applies_to_regular_users(database, settings, sign_init_data):
    database.add_workshop("Alpha", "", "")
    client = create_api(database, replace(settings, daily_vote_limit=True)).test_client()

    def submit(user):
        return client.post(
            "/api/reviews",
            json=review_payload(),
            headers={INIT_DATA_HEADER: sign_init_data(user=user)},
        )

    assert submit(USER).status_code == 201
    second = submit(USER)
    assert second.status_code == 429
    assert second.get_json()["error"] == "daily_limit"

    admin = {"id": 1, "first_name": "Admin"}
    assert submit(admin).status_code == 201
    assert submit(admin).status_code == 201


def test_notification_failure_does_not_fail_request(database, settings, sign_init_data):
    database.add_workshop("Alpha", "", "")

    def broken(review):
        raise RuntimeError("bot is down")

    client = create_api(database, settings, on_review=broken).test_client()
    response = client.post(
        "/api/reviews",
        json=review_payload(),
        headers={INIT_DATA_HEADER: sign_init_data(user=USER)},
    )
    assert response.status_code == 201


def test_cors_headers(client):
    allowed = client.get("/api/workshops", headers={"Origin": "https://app.example"})
    foreign = client.get("/api/workshops", headers={"Origin": "https://evil.example"})
    preflight = client.open("/api/reviews", method="OPTIONS", headers={"Origin": "https://app.example"})

    assert allowed.headers["Access-Control-Allow-Origin"] == "https://app.example"
    assert "Access-Control-Allow-Origin" not in foreign.headers
    assert preflight.status_code == 204
    assert INIT_DATA_HEADER in preflight.headers["Access-Control-Allow-Headers"]


def test_cors_allows_any_origin_when_unconfigured(database, settings):
    client = create_api(database, replace(settings, webapp_origins=())).test_client()
    response = client.get("/health", headers={"Origin": "https://anywhere.example"})
    assert response.headers["Access-Control-Allow-Origin"] == "https://anywhere.example"

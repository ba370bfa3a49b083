"""
Tests for Telegram Mini App initData validation.
"""

from urllib.parse import parse_qsl, urlencode

import pytest
from flask import Flask, request

from ratings.webapp_auth import (
    EXPIRED_INIT_DATA,
    INIT_DATA_HEADER,
    INVALID_HASH,
    MISSING_HASH,
    MISSING_INIT_DATA,
    build_data_check_string,
    calculate_hash,
    extract_init_data,
    validate_init_data,
)

BOT_TOKEN = "123456:TEST-TOKEN"
NOW = 1_700_000_000


def test_data_check_string_is_sorted_and_newline_joined():
    pairs = {"user": '{"id":1}', "auth_date": "5", "query_id": "abc"}
    assert build_data_check_string(pairs) == 'auth_date=5\nquery_id=abc\nuser={"id":1}'


def test_hash_is_deterministic_hex():
    first = calculate_hash("auth_date=1", BOT_TOKEN)
    assert first == calculate_hash("auth_date=1", BOT_TOKEN)
    assert len(first) == 64
    assert int(first, 16) >= 0
    assert first != calculate_hash("auth_date=1", "other:token")


def test_known_payload_yields_user():
    """Test a URL-encoded payload signed for this bot token."""
    digest = calculate_hash('auth_date=1700000000\nuser={"id":42}', BOT_TOKEN)
    init_data = f"auth_date=1700000000&user=%7B%22id%22%3A42%7D&hash={digest}"

    result = validate_init_data(init_data, BOT_TOKEN, max_age_seconds=0)

    assert result.valid
    assert result.reason is None
    assert result.user == {"id": 42}
    assert "hash" not in result.data


def test_signed_payload_is_valid(sign_init_data):
    init_data = sign_init_data(user={"id": 7, "first_name": "Иван"}, auth_date=NOW, query_id="AAF")
    result = validate_init_data(init_data, BOT_TOKEN, max_age_seconds=60, now=NOW)
    assert result.valid
    assert result.user["first_name"] == "Иван"
    assert result.data["query_id"] == "AAF"


@pytest.mark.parametrize("field", ["auth_date", "user", "query_id"])
def test_tampered_field_is_rejected(sign_init_data, field):
    pairs = dict(parse_qsl(sign_init_data(user={"id": 7}, auth_date=NOW, query_id="AAF")))
    pairs[field] = pairs[field][:-1] + ("X" if pairs[field][-1] != "X" else "Y")

    result = validate_init_data(urlencode(pairs), BOT_TOKEN)

    assert not result.valid
    assert result.reason == INVALID_HASH


def test_wrong_token_is_rejected(sign_init_data):
    init_data = sign_init_data(user={"id": 7}, token="999:OTHER")
    assert validate_init_data(init_data, BOT_TOKEN).reason == INVALID_HASH


@pytest.mark.parametrize("bad_hash", ["%D1%8F", "%F0%9F%94%91" * 16, "not-hex"])
def test_malformed_hash_is_reported_not_raised(bad_hash):
    result = validate_init_data(f"auth_date=1&hash={bad_hash}", BOT_TOKEN)
    assert not result.valid
    assert result.reason == INVALID_HASH


def test_field_order_does_not_matter(sign_init_data):
    init_data = sign_init_data(user={"id": 7}, auth_date=NOW, query_id="AAF")
    reordered = "&".join(reversed(init_data.split("&")))

    assert validate_init_data(init_data, BOT_TOKEN).valid
    assert validate_init_data(reordered, BOT_TOKEN).valid


@pytest.mark.parametrize("init_data, token", [("", BOT_TOKEN), ("auth_date=1&hash=ab", "")])
def test_missing_init_data(init_data, token):
    result = validate_init_data(init_data, token)
    assert not result.valid
    assert result.reason == MISSING_INIT_DATA


def test_missing_hash():
    result = validate_init_data("auth_date=1&user=%7B%7D", BOT_TOKEN)
    assert result.reason == MISSING_HASH


def test_empty_hash_counts_as_missing():
    assert validate_init_data("auth_date=1&hash=", BOT_TOKEN).reason == MISSING_HASH


def test_freshness_boundary(sign_init_data):
    max_age = 3600
    at_limit = sign_init_data(auth_date=NOW - max_age)
    past_limit = sign_init_data(auth_date=NOW - max_age - 1)

    assert validate_init_data(at_limit, BOT_TOKEN, max_age, now=NOW).valid
    result = validate_init_data(past_limit, BOT_TOKEN, max_age, now=NOW)
    assert not result.valid
    assert result.reason == EXPIRED_INIT_DATA


def test_zero_max_age_disables_freshness(sign_init_data):
    ancient = sign_init_data(auth_date=1)
    assert validate_init_data(ancient, BOT_TOKEN, 0, now=NOW).valid


def test_non_numeric_auth_date_skips_freshness(sign_init_data):
    init_data = sign_init_data(auth_date="yesterday")
    assert validate_init_data(init_data, BOT_TOKEN, 60, now=NOW).valid


@pytest.mark.parametrize("raw_user", ["{not json", "[1, 2]", ""])
def test_unusable_user_field_keeps_payload_valid(raw_user):
    pairs = {"auth_date": str(NOW), "user": raw_user}
    pairs["hash"] = calculate_hash(build_data_check_string(pairs), BOT_TOKEN)

    result = validate_init_data(urlencode(pairs), BOT_TOKEN)

    assert result.valid
    assert result.user is None


def test_extract_prefers_header_then_body_then_query():
    app = Flask(__name__)

    with app.test_request_context(
        "/api/reviews?initData=from-query",
        method="POST",
        headers={INIT_DATA_HEADER: "from-header"},
        json={"initData": "from-body"},
    ):
        assert extract_init_data(request) == "from-header"

    with app.test_request_context("/api/reviews?initData=from-query", method="POST", json={"initData": "from-body"}):
        assert extract_init_data(request) == "from-body"

    with app.test_request_context("/api/reviews?initData=from-query", method="POST"):
        assert extract_init_data(request) == "from-query"

    with app.test_request_context("/api/reviews", method="POST", json={"initData": 5}):
        assert extract_init_data(request) == ""

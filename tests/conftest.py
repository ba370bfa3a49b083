"""
Shared fixtures: a throwaway sqlite database, settings and a Mini App initData signer.
"""

import json
import time
from urllib.parse import urlencode

import pytest

from db import Database
from ratings.config import Settings
from ratings.webapp_auth import build_data_check_string, calculate_hash

BOT_TOKEN = "123456:TEST-TOKEN"


@pytest.fixture
def database(tmp_path):
    db = Database(str(tmp_path / "test.sqlite3"))
    assert db.init_db()
    return db


@pytest.fixture
def settings():
    return Settings(
        bot_token=BOT_TOKEN,
        admin_ids=frozenset({1}),
        webapp_origins=("https://app.example",),
    )


@pytest.fixture
def sign_init_data():
    """Build a signed initData query string the way Telegram does."""

    def _sign(user=None, auth_date=None, token=BOT_TOKEN, **extra):
        pairs = {"auth_date": str(int(time.time()) if auth_date is None else auth_date)}
        if user is not None:
            pairs["user"] = json.dumps(user, separators=(",", ":"))
        pairs.update({key: str(value) for key, value in extra.items()})
        pairs["hash"] = calculate_hash(build_data_check_string(pairs), token)
        return urlencode(pairs)

    return _sign

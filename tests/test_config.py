import pytest

from check_config import describe
from ratings.config import DEFAULT_AUTH_MAX_AGE_SECONDS, Settings

ENV_KEYS = (
    "BOT_TOKEN",
    "DATABASE_URL",
    "DATABASE_PATH",
    "ADMIN_IDS",
    "ADMIN_CHAT_ID",
    "PORT",
    "API_PORT",
    "WEBAPP_URL",
    "WEBAPP_ORIGINS",
    "WEBAPP_AUTH_MAX_AGE_SECONDS",
    "ENABLE_DAILY_VOTE_LIMIT",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings.from_env()

    assert settings.bot_token == ""
    assert settings.port == 3001
    assert settings.auth_max_age_seconds == DEFAULT_AUTH_MAX_AGE_SECONDS
    assert settings.webapp_origins == ()
    assert not settings.daily_vote_limit
    assert not settings.is_admin(1)


def test_env_values(clean_env):
    clean_env.setenv("BOT_TOKEN", " 1:abc ")
    clean_env.setenv("ADMIN_IDS", "1, 2, nope,")
    clean_env.setenv("ADMIN_CHAT_ID", "-100500")
    clean_env.setenv("API_PORT", "8080")
    clean_env.setenv("WEBAPP_ORIGINS", "https://a.example, https://b.example")
    clean_env.setenv("WEBAPP_AUTH_MAX_AGE_SECONDS", "0")
    clean_env.setenv("ENABLE_DAILY_VOTE_LIMIT", "TRUE")

    settings = Settings.from_env()

    assert settings.bot_token == "1:abc"
    assert settings.admin_ids == frozenset({1, 2})
    assert settings.is_admin(2)
    assert settings.admin_chat_id == -100500
    assert settings.port == 8080
    assert settings.webapp_origins == ("https://a.example", "https://b.example")
    assert settings.auth_max_age_seconds == 0
    assert settings.daily_vote_limit


def test_port_takes_precedence_over_api_port(clean_env):
    clean_env.setenv("PORT", "5000")
    clean_env.setenv("API_PORT", "8080")
    assert Settings.from_env().port == 5000


def test_checklist_flags_missing_token():
    rows = {name: (value, critical) for name, value, critical in describe(Settings())}
    assert rows["BOT_TOKEN"] == ("❌ Отсутствует", True)
    assert rows["DATABASE_URL"][0] == "sqlite: data.sqlite3"

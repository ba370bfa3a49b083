import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

DEFAULT_AUTH_MAX_AGE_SECONDS = 86400


def _split_csv(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def _parse_admin_ids(raw: str) -> frozenset[int]:
    ids = set()
    for part in _split_csv(raw):
        try:
            ids.add(int(part))
        except ValueError:
            continue
    return frozenset(ids)


@dataclass(frozen=True)
class Settings:
    bot_token: str = ""
    database_url: str = ""
    database_path: str = "data.sqlite3"
    admin_ids: frozenset[int] = field(default_factory=frozenset)
    admin_chat_id: Optional[int] = None
    port: int = 3001
    webapp_url: str = ""
    webapp_origins: tuple[str, ...] = ()
    auth_max_age_seconds: int = DEFAULT_AUTH_MAX_AGE_SECONDS
    daily_vote_limit: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        admin_chat_raw = os.getenv("ADMIN_CHAT_ID", "").strip()
        try:
            admin_chat_id = int(admin_chat_raw) if admin_chat_raw else None
        except ValueError:
            admin_chat_id = None
        try:
            max_age = int(os.getenv("WEBAPP_AUTH_MAX_AGE_SECONDS", "") or DEFAULT_AUTH_MAX_AGE_SECONDS)
        except ValueError:
            max_age = DEFAULT_AUTH_MAX_AGE_SECONDS
        return cls(
            bot_token=os.getenv("BOT_TOKEN", "").strip(),
            database_url=os.getenv("DATABASE_URL", "").strip(),
            database_path=os.getenv("DATABASE_PATH", "data.sqlite3").strip() or "data.sqlite3",
            admin_ids=_parse_admin_ids(os.getenv("ADMIN_IDS", "")),
            admin_chat_id=admin_chat_id,
            port=int(os.getenv("PORT") or os.getenv("API_PORT") or "3001"),
            webapp_url=os.getenv("WEBAPP_URL", "").strip(),
            webapp_origins=tuple(_split_csv(os.getenv("WEBAPP_ORIGINS", ""))),
            auth_max_age_seconds=max_age,
            daily_vote_limit=os.getenv("ENABLE_DAILY_VOTE_LIMIT", "").strip().lower() == "true",
        )

    def is_admin(self, user_id: Optional[int]) -> bool:
        return user_id is not None and user_id in self.admin_ids

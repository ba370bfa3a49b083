import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Sequence

from ratings.models import Review, Season, Workshop
from ratings.stats import seasons_overlap

FEEDBACK_COLUMNS = (
    "id, user_id, first_name, last_name, username, workshop, "
    "quality_rating, communication_rating, on_time, text_feedback, created_at"
)

SQLITE_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS workshops (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        address TEXT DEFAULT '',
        description TEXT DEFAULT '',
        created_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS feedback (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER,
        first_name TEXT DEFAULT '',
        last_name TEXT DEFAULT '',
        username TEXT DEFAULT '',
        workshop TEXT NOT NULL,
        quality_rating INTEGER NOT NULL,
        communication_rating INTEGER NOT NULL,
        on_time TEXT NOT NULL,
        text_feedback TEXT DEFAULT '',
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS seasons (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        description TEXT DEFAULT '',
        start_date TEXT NOT NULL,
        end_date TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_feedback_workshop ON feedback (workshop)",
    "CREATE INDEX IF NOT EXISTS idx_feedback_user ON feedback (user_id)",
)

POSTGRES_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS workshops (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL UNIQUE,
        address TEXT DEFAULT '',
        description TEXT DEFAULT '',
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS feedback (
        id SERIAL PRIMARY KEY,
        user_id BIGINT,
        first_name TEXT DEFAULT '',
        last_name TEXT DEFAULT '',
        username TEXT DEFAULT '',
        workshop TEXT NOT NULL,
        quality_rating INTEGER NOT NULL,
        communication_rating INTEGER NOT NULL,
        on_time TEXT NOT NULL,
        text_feedback TEXT DEFAULT '',
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS seasons (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT DEFAULT '',
        start_date TIMESTAMPTZ NOT NULL,
        end_date TIMESTAMPTZ
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_feedback_workshop ON feedback (workshop)",
    "CREATE INDEX IF NOT EXISTS idx_feedback_user ON feedback (user_id)",
)


def _to_datetime(raw: Any) -> Optional[datetime]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        value = raw
    else:
        try:
            value = datetime.fromisoformat(str(raw))
        except ValueError:
            value = datetime.strptime(str(raw), "%Y-%m-%d %H:%M:%S")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _row_to_review(row: Sequence) -> Review:
    return Review(
        id=int(row[0]),
        user_id=int(row[1]) if row[1] is not None else None,
        first_name=row[2] or "",
        last_name=row[3] or "",
        username=row[4] or "",
        workshop=row[5],
        quality_rating=int(row[6]),
        communication_rating=int(row[7]),
        on_time=row[8],
        text_feedback=row[9] or "",
        created_at=_to_datetime(row[10]),
    )


def _row_to_workshop(row: Sequence) -> Workshop:
    return Workshop(id=int(row[0]), name=row[1], address=row[2] or "", description=row[3] or "")


def _row_to_season(row: Sequence) -> Season:
    return Season(
        id=int(row[0]),
        name=row[1],
        description=row[2] or "",
        start_date=_to_datetime(row[3]),
        end_date=_to_datetime(row[4]),
    )


class Database:
    """Workshop, feedback and season storage on sqlite or, with a postgres DATABASE_URL, on postgres."""

    def __init__(self, db_path: str = "data.sqlite3", database_url: str = ""):
        self.db_path = Path(db_path)
        self.database_url = database_url.strip()
        self.use_postgres = self.database_url.lower().startswith("postgres")

    def _connect(self):
        if self.use_postgres:
            import psycopg

            return psycopg.connect(self.database_url, connect_timeout=5)
        return sqlite3.connect(self.db_path)

    def _sql(self, query: str) -> str:
        return query.replace("?", "%s") if self.use_postgres else query

    def _ts(self, value: Optional[datetime]):
        if value is None or self.use_postgres:
            return value
        return value.isoformat()

    def _fetchall(self, query: str, params: Sequence = ()) -> list:
        conn = self._connect()
        try:
            cur = conn.execute(self._sql(query), tuple(params))
            return cur.fetchall()
        finally:
            conn.close()

    def _fetchone(self, query: str, params: Sequence = ()):
        rows = self._fetchall(query, params)
        return rows[0] if rows else None

    def _execute(self, query: str, params: Sequence = ()) -> int:
        conn = self._connect()
        try:
            cur = conn.execute(self._sql(query), tuple(params))
            conn.commit()
            return cur.rowcount
        finally:
            conn.close()

    def _insert(self, query: str, params: Sequence = ()) -> int:
        conn = self._connect()
        try:
            if self.use_postgres:
                cur = conn.execute(self._sql(query) + " RETURNING id", tuple(params))
                new_id = cur.fetchone()[0]
            else:
                cur = conn.execute(query, tuple(params))
                new_id = cur.lastrowid
            conn.commit()
            return int(new_id)
        finally:
            conn.close()

    def init_db(self) -> bool:
        schema = POSTGRES_SCHEMA if self.use_postgres else SQLITE_SCHEMA
        try:
            conn = self._connect()
            try:
                for statement in schema:
                    conn.execute(statement)
                conn.commit()
            finally:
                conn.close()
            return True
        except Exception as exc:
            logging.warning("DB init failed: %s", exc)
            return False

    # workshops

    def list_workshops(self) -> List[Workshop]:
        try:
            rows = self._fetchall("SELECT id, name, address, description FROM workshops")
        except Exception as exc:
            logging.warning("DB list_workshops failed: %s", exc)
            return []
        workshops = [_row_to_workshop(row) for row in rows]
        return sorted(workshops, key=lambda w: w.name.casefold())

    def get_workshop(self, workshop_id: int) -> Optional[Workshop]:
        try:
            row = self._fetchone(
                "SELECT id, name, address, description FROM workshops WHERE id = ?",
                (workshop_id,),
            )
        except Exception as exc:
            logging.warning("DB get_workshop failed: %s", exc)
            return None
        return _row_to_workshop(row) if row else None

    def get_workshop_by_name(self, name: str) -> Optional[Workshop]:
        try:
            row = self._fetchone(
                "SELECT id, name, address, description FROM workshops WHERE name = ?",
                (name,),
            )
        except Exception as exc:
            logging.warning("DB get_workshop_by_name failed: %s", exc)
            return None
        return _row_to_workshop(row) if row else None

    def add_workshop(self, name: str, address: str, description: str) -> bool:
        if self.get_workshop_by_name(name):
            return False
        try:
            self._insert(
                "INSERT INTO workshops (name, address, description, created_at) VALUES (?, ?, ?, ?)",
                (name, address, description, self._ts(datetime.now(timezone.utc))),
            )
            return True
        except Exception as exc:
            logging.warning("DB add_workshop failed: %s", exc)
            return False

    def remove_workshop(self, workshop_id: int) -> bool:
        try:
            return self._execute("DELETE FROM workshops WHERE id = ?", (workshop_id,)) > 0
        except Exception as exc:
            logging.warning("DB remove_workshop failed: %s", exc)
            return False

    # feedback

    def add_feedback(self, review: Review) -> Optional[int]:
        created_at = review.created_at or datetime.now(timezone.utc)
        try:
            return self._insert(
                """
                INSERT INTO feedback (
                    user_id, first_name, last_name, username, workshop,
                    quality_rating, communication_rating, on_time, text_feedback, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    review.user_id,
                    review.first_name,
                    review.last_name,
                    review.username,
                    review.workshop,
                    review.quality_rating,
                    review.communication_rating,
                    review.on_time,
                    review.text_feedback,
                    self._ts(created_at),
                ),
            )
        except Exception as exc:
            logging.warning("DB add_feedback failed: %s", exc)
            return None

    def get_feedback(self, feedback_id: int) -> Optional[Review]:
        try:
            row = self._fetchone(f"SELECT {FEEDBACK_COLUMNS} FROM feedback WHERE id = ?", (feedback_id,))
        except Exception as exc:
            logging.warning("DB get_feedback failed: %s", exc)
            return None
        return _row_to_review(row) if row else None

    def delete_feedback(self, feedback_id: int) -> bool:
        try:
            return self._execute("DELETE FROM feedback WHERE id = ?", (feedback_id,)) > 0
        except Exception as exc:
            logging.warning("DB delete_feedback failed: %s", exc)
            return False

    def list_feedback(self, workshop: Optional[str] = None) -> List[Review]:
        query = f"SELECT {FEEDBACK_COLUMNS} FROM feedback"
        params: tuple = ()
        if workshop is not None:
            query += " WHERE workshop = ?"
            params = (workshop,)
        try:
            rows = self._fetchall(query + " ORDER BY id", params)
        except Exception as exc:
            logging.warning("DB list_feedback failed: %s", exc)
            return []
        return [_row_to_review(row) for row in rows]

    def list_recent_feedback(self, limit: int = 50) -> List[Review]:
        try:
            rows = self._fetchall(
                f"SELECT {FEEDBACK_COLUMNS} FROM feedback ORDER BY created_at DESC, id DESC LIMIT ?",
                (limit,),
            )
        except Exception as exc:
            logging.warning("DB list_recent_feedback failed: %s", exc)
            return []
        return [_row_to_review(row) for row in rows]

    def list_user_feedback(self, user_id: int) -> List[Review]:
        try:
            rows = self._fetchall(
                f"SELECT {FEEDBACK_COLUMNS} FROM feedback WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                (user_id,),
            )
        except Exception as exc:
            logging.warning("DB list_user_feedback failed: %s", exc)
            return []
        return [_row_to_review(row) for row in rows]

    def search_users(self, query: str) -> List[dict]:
        needle = query.strip().lstrip("@").casefold()
        if not needle:
            return []
        try:
            rows = self._fetchall(
                """
                SELECT user_id, first_name, last_name, username, COUNT(*)
                FROM feedback
                WHERE user_id IS NOT NULL
                GROUP BY user_id, first_name, last_name, username
                """
            )
        except Exception as exc:
            logging.warning("DB search_users failed: %s", exc)
            return []
        found: dict[int, dict] = {}
        for user_id, first_name, last_name, username, cnt in rows:
            names = (first_name or "", last_name or "", username or "")
            if not any(needle in name.casefold() for name in names):
                continue
            entry = found.setdefault(
                int(user_id),
                {
                    "user_id": int(user_id),
                    "first_name": names[0],
                    "last_name": names[1],
                    "username": names[2],
                    "feedback_count": 0,
                },
            )
            entry["feedback_count"] += int(cnt)
        return list(found.values())

    def count_text_reviews(self, workshop: str) -> int:
        try:
            row = self._fetchone(
                "SELECT COUNT(*) FROM feedback WHERE workshop = ? AND text_feedback IS NOT NULL AND text_feedback <> ''",
                (workshop,),
            )
        except Exception as exc:
            logging.warning("DB count_text_reviews failed: %s", exc)
            return 0
        return int(row[0]) if row else 0

    def list_text_reviews(self, workshop: str, offset: int = 0, limit: int = 5) -> List[Review]:
        try:
            rows = self._fetchall(
                f"""
                SELECT {FEEDBACK_COLUMNS}
                FROM feedback
                WHERE workshop = ? AND text_feedback IS NOT NULL AND text_feedback <> ''
                ORDER BY created_at DESC, id DESC
                LIMIT ? OFFSET ?
                """,
                (workshop, limit, offset),
            )
        except Exception as exc:
            logging.warning("DB list_text_reviews failed: %s", exc)
            return []
        return [_row_to_review(row) for row in rows]

    def last_feedback_at(self, user_id: int) -> Optional[datetime]:
        try:
            row = self._fetchone(
                "SELECT created_at FROM feedback WHERE user_id = ? ORDER BY created_at DESC LIMIT 1",
                (user_id,),
            )
        except Exception as exc:
            logging.warning("DB last_feedback_at failed: %s", exc)
            return None
        return _to_datetime(row[0]) if row else None

    # seasons

    def list_seasons(self) -> List[Season]:
        try:
            rows = self._fetchall(
                "SELECT id, name, description, start_date, end_date FROM seasons"
            )
        except Exception as exc:
            logging.warning("DB list_seasons failed: %s", exc)
            return []
        seasons = [_row_to_season(row) for row in rows]
        return sorted(seasons, key=lambda s: s.start_date, reverse=True)

    def get_season(self, season_id: int) -> Optional[Season]:
        try:
            row = self._fetchone(
                "SELECT id, name, description, start_date, end_date FROM seasons WHERE id = ?",
                (season_id,),
            )
        except Exception as exc:
            logging.warning("DB get_season failed: %s", exc)
            return None
        return _row_to_season(row) if row else None

    def add_season(
        self,
        name: str,
        description: str,
        start_date: datetime,
        end_date: Optional[datetime],
    ) -> Optional[str]:
        for season in self.list_seasons():
            if seasons_overlap(season.start_date, season.end_date, start_date, end_date):
                return "overlap"
        try:
            self._insert(
                "INSERT INTO seasons (name, description, start_date, end_date) VALUES (?, ?, ?, ?)",
                (name, description, self._ts(start_date), self._ts(end_date)),
            )
            return "created"
        except Exception as exc:
            logging.warning("DB add_season failed: %s", exc)
            return None

    def delete_season(self, season_id: int) -> bool:
        try:
            return self._execute("DELETE FROM seasons WHERE id = ?", (season_id,)) > 0
        except Exception as exc:
            logging.warning("DB delete_season failed: %s", exc)
            return False

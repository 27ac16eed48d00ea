"""
Nagger — SQLite storage.

Three stores share one database file: tasks, per-chat reminder settings,
and tracking records for messages the bot sent. Every call opens its own
connection, so each write is a single atomic statement.
"""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path

from nagger.core.timeutil import is_valid_reminder_time, is_valid_timezone
from nagger.data.models import BotMessage, Task, TaskStatus, UserSettings

logger = logging.getLogger(__name__)

# Rows written before the status column existed have status IS NULL.
_ELIGIBLE_CLAUSE = "(status IS NULL OR status != 'closed')"


class InvalidSettingsError(ValueError):
    """Raised when a reminder time or timezone fails validation on write."""


def _to_iso(dt: datetime) -> str:
    """UTC ISO-8601 with fixed precision, so string order == time order."""
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_iso(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    return datetime.fromisoformat(raw)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _SQLiteStore:
    """Connection handling shared by the stores below."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from nagger.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        raise NotImplementedError


class TaskDB(_SQLiteStore):
    """SQLite-backed task store."""

    def _init_db(self) -> None:
        """Create the tasks table if it doesn't exist, and migrate schema."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id           INTEGER PRIMARY KEY AUTOINCREMENT,
                    chat_id      INTEGER NOT NULL,
                    user_id      INTEGER NOT NULL,
                    description  TEXT    NOT NULL,
                    created_at   TEXT    NOT NULL,
                    status       TEXT,
                    completed_at TEXT
                )
            """)
            # Migrate existing DBs: add new columns if missing.
            # Old rows keep status NULL and count as active.
            existing_cols = {
                row[1] for row in conn.execute("PRAGMA table_info(tasks)").fetchall()
            }
            if "status" not in existing_cols:
                conn.execute("ALTER TABLE tasks ADD COLUMN status TEXT")
            if "completed_at" not in existing_cols:
                conn.execute("ALTER TABLE tasks ADD COLUMN completed_at TEXT")
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_chat ON tasks (chat_id)"
            )
        logger.debug("Tasks table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            chat_id=row["chat_id"],
            user_id=row["user_id"],
            description=row["description"],
            created_at=_from_iso(row["created_at"]),
            status=TaskStatus(row["status"]) if row["status"] else None,
            completed_at=_from_iso(row["completed_at"]),
        )

    def add_task(self, chat_id: int, user_id: int, description: str) -> Task:
        """Insert a new task in ACTIVE status."""
        created_at = _now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tasks (chat_id, user_id, description, created_at, status)
                VALUES (?, ?, ?, ?, ?)
                """,
                (chat_id, user_id, description, _to_iso(created_at), TaskStatus.ACTIVE.value),
            )
            task_id = cursor.lastrowid

        logger.info("Task added: #%d in chat %d", task_id, chat_id)
        return Task(
            id=task_id,
            chat_id=chat_id,
            user_id=user_id,
            description=description,
            created_at=created_at,
            status=TaskStatus.ACTIVE,
        )

    def get_task(self, task_id: int) -> Task | None:
        """Fetch a single task by ID, whatever its status."""
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def tasks_for_chat(self, chat_id: int) -> list[Task]:
        """Return the chat's reminder-eligible tasks in creation order."""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM tasks WHERE chat_id = ? AND {_ELIGIBLE_CLAUSE} ORDER BY id",
                (chat_id,),
            ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def all_eligible_grouped(self) -> dict[int, list[Task]]:
        """Return every non-closed task, grouped by chat ID."""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM tasks WHERE {_ELIGIBLE_CLAUSE} ORDER BY chat_id, id"
            ).fetchall()

        grouped: dict[int, list[Task]] = defaultdict(list)
        for row in rows:
            task = self._row_to_task(row)
            grouped[task.chat_id].append(task)
        return dict(grouped)

    def set_status(
        self,
        task_id: int,
        status: TaskStatus,
        completed_at: datetime | None = None,
    ) -> bool:
        """Overwrite status and completed_at. Returns False if no such task."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE tasks SET status = ?, completed_at = ? WHERE id = ?",
                (
                    status.value,
                    _to_iso(completed_at) if completed_at else None,
                    task_id,
                ),
            )
        updated = cursor.rowcount > 0
        if updated:
            logger.info("Task #%d -> %s", task_id, status.value)
        return updated

    def delete_task(self, task_id: int) -> bool:
        """Permanently delete a task by ID."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Task #%d deleted", task_id)
        return deleted


class SettingsDB(_SQLiteStore):
    """SQLite-backed per-chat reminder settings."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS user_settings (
                    chat_id       INTEGER PRIMARY KEY,
                    user_id       INTEGER,
                    reminder_time TEXT NOT NULL,
                    timezone      TEXT NOT NULL,
                    created_at    TEXT NOT NULL,
                    updated_at    TEXT NOT NULL
                )
            """)
        logger.debug("Settings table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_settings(row: sqlite3.Row) -> UserSettings:
        return UserSettings(
            chat_id=row["chat_id"],
            user_id=row["user_id"],
            reminder_time=row["reminder_time"],
            timezone=row["timezone"],
            created_at=_from_iso(row["created_at"]),
            updated_at=_from_iso(row["updated_at"]),
        )

    def get_settings(self, chat_id: int) -> UserSettings | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM user_settings WHERE chat_id = ?", (chat_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_settings(row)

    def get_all_settings(self) -> dict[int, UserSettings]:
        """Return every configured chat's settings keyed by chat ID."""
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM user_settings").fetchall()
        return {row["chat_id"]: self._row_to_settings(row) for row in rows}

    def upsert_settings(
        self,
        chat_id: int,
        reminder_time: str,
        timezone: str,
        user_id: int | None = None,
    ) -> UserSettings:
        """Create or update a chat's reminder settings.

        Raises InvalidSettingsError before touching the DB if either value
        is malformed.
        """
        if not is_valid_reminder_time(reminder_time):
            raise InvalidSettingsError(f"Invalid reminder time: {reminder_time!r}")
        if not is_valid_timezone(timezone):
            raise InvalidSettingsError(f"Invalid timezone: {timezone!r}")

        now = _to_iso(_now())
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO user_settings
                    (chat_id, user_id, reminder_time, timezone, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(chat_id) DO UPDATE SET
                    user_id       = excluded.user_id,
                    reminder_time = excluded.reminder_time,
                    timezone      = excluded.timezone,
                    updated_at    = excluded.updated_at
                """,
                (chat_id, user_id, reminder_time, timezone, now, now),
            )
        logger.info("Reminder for chat %d set to %s %s", chat_id, reminder_time, timezone)
        return self.get_settings(chat_id)


class MessageDB(_SQLiteStore):
    """SQLite-backed tracking of bot-sent messages awaiting cleanup."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS bot_messages (
                    id         INTEGER PRIMARY KEY AUTOINCREMENT,
                    chat_id    INTEGER NOT NULL,
                    message_id INTEGER NOT NULL,
                    sent_at    TEXT    NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_bot_messages_sent_at ON bot_messages (sent_at)"
            )
        logger.debug("Bot messages table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> BotMessage:
        return BotMessage(
            id=row["id"],
            chat_id=row["chat_id"],
            message_id=row["message_id"],
            sent_at=_from_iso(row["sent_at"]),
        )

    def track(
        self, chat_id: int, message_id: int, sent_at: datetime | None = None,
    ) -> BotMessage:
        """Record a message the bot just sent."""
        if sent_at is None:
            sent_at = _now()
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO bot_messages (chat_id, message_id, sent_at) VALUES (?, ?, ?)",
                (chat_id, message_id, _to_iso(sent_at)),
            )
            record_id = cursor.lastrowid
        logger.debug("Tracking message %d in chat %d", message_id, chat_id)
        return BotMessage(id=record_id, chat_id=chat_id, message_id=message_id, sent_at=sent_at)

    def messages_older_than(self, cutoff: datetime) -> list[BotMessage]:
        """Return tracked messages with sent_at strictly before cutoff."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM bot_messages WHERE sent_at < ? ORDER BY sent_at",
                (_to_iso(cutoff),),
            ).fetchall()
        return [self._row_to_message(r) for r in rows]

    def untrack(self, record_id: int) -> bool:
        """Remove a tracking record. Returns False if it was already gone."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM bot_messages WHERE id = ?", (record_id,))
        return cursor.rowcount > 0

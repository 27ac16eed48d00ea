"""Shared test fixtures and configuration.

Sets up fake environment variables so nagger.config doesn't sys.exit(),
and provides temp-file SQLite stores plus in-memory fakes of the ports.
"""

import os

# Patch env vars BEFORE any nagger imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("REMINDER_TIME", "09:00")
os.environ.setdefault("REMINDER_TIMEZONE", "UTC")

from datetime import datetime, timezone

import pytest
import pytest_asyncio


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_nagger.db")


@pytest.fixture
def task_db(tmp_db_path):
    from nagger.data.db import TaskDB
    return TaskDB(db_path=tmp_db_path)


@pytest.fixture
def settings_db(tmp_db_path):
    from nagger.data.db import SettingsDB
    return SettingsDB(db_path=tmp_db_path)


@pytest.fixture
def message_db(tmp_db_path):
    from nagger.data.db import MessageDB
    return MessageDB(db_path=tmp_db_path)


@pytest.fixture
def lifecycle(task_db):
    from nagger.core.lifecycle import TaskLifecycle
    return TaskLifecycle(task_db)


def utc(hour: int, minute: int, day: int = 15) -> datetime:
    """An aware UTC datetime on a fixed date."""
    return datetime(2026, 1, day, hour, minute, tzinfo=timezone.utc)


class FakeNotifier:
    """In-memory NotificationPort that records calls.

    fail_sends / fail_deletes hold chat IDs / message IDs whose call raises.
    """

    def __init__(self):
        self.reminders: list[tuple[int, list]] = []
        self.deleted: list[tuple[int, int]] = []
        self.fail_sends: set[int] = set()
        self.fail_deletes: set[int] = set()
        self._next_message_id = 1000

    async def send_reminder(self, chat_id, tasks):
        from nagger.ports.notification_port import NotifierError

        if chat_id in self.fail_sends:
            raise NotifierError(f"send to {chat_id} failed")
        self.reminders.append((chat_id, list(tasks)))
        self._next_message_id += 1
        return self._next_message_id

    async def delete_message(self, chat_id, message_id):
        from nagger.ports.notification_port import NotifierError

        if message_id in self.fail_deletes:
            raise NotifierError(f"delete of {message_id} failed")
        self.deleted.append((chat_id, message_id))


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest_asyncio.fixture
async def job_queue():
    """A started JobQueue bound to an Application that never talks to Telegram."""
    from telegram.ext import ApplicationBuilder

    app = ApplicationBuilder().token("123456:TEST-TOKEN").build()
    await app.job_queue.start()
    yield app.job_queue
    await app.job_queue.stop()

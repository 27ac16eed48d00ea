"""Storage ports — the read/write operations the core needs from persistence.

The SQLite classes in nagger.data.db satisfy these protocols; tests use
in-memory fakes of the same shape.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from nagger.data.models import BotMessage, Task, TaskStatus, UserSettings


class TaskStore(Protocol):
    def add_task(self, chat_id: int, user_id: int, description: str) -> Task: ...

    def get_task(self, task_id: int) -> Task | None: ...

    def tasks_for_chat(self, chat_id: int) -> list[Task]: ...

    def all_eligible_grouped(self) -> dict[int, list[Task]]: ...

    def set_status(
        self, task_id: int, status: TaskStatus, completed_at: datetime | None = None,
    ) -> bool: ...

    def delete_task(self, task_id: int) -> bool: ...


class SettingsStore(Protocol):
    def get_settings(self, chat_id: int) -> UserSettings | None: ...

    def get_all_settings(self) -> dict[int, UserSettings]: ...

    def upsert_settings(
        self,
        chat_id: int,
        reminder_time: str,
        timezone: str,
        user_id: int | None = None,
    ) -> UserSettings: ...


class MessageStore(Protocol):
    def track(
        self, chat_id: int, message_id: int, sent_at: datetime | None = None,
    ) -> BotMessage: ...

    def messages_older_than(self, cutoff: datetime) -> list[BotMessage]: ...

    def untrack(self, record_id: int) -> bool: ...

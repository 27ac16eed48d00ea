"""
Nagger — Data Models.

Tasks, per-chat reminder settings and tracked bot messages persist in
SQLite across restarts. The scheduler and sweeper never cache these;
they re-read fresh snapshots every tick.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TaskStatus(str, Enum):
    """Lifecycle states of a task. CLOSED is terminal."""

    ACTIVE = "active"
    COMPLETED_TODAY = "completed_today"
    CLOSED = "closed"


@dataclass
class Task:
    """A short-lived personal task owned by a chat.

    status is None for legacy rows written before the status column
    existed; those are treated as ACTIVE everywhere.
    """

    id: int
    chat_id: int
    user_id: int
    description: str
    created_at: datetime
    status: TaskStatus | None = TaskStatus.ACTIVE
    completed_at: datetime | None = None   # set while COMPLETED_TODAY


@dataclass
class UserSettings:
    """Reminder preferences, one per chat (shared by everyone in a group)."""

    chat_id: int
    reminder_time: str       # "HH:MM", 24-hour
    timezone: str            # IANA zone, e.g. "Europe/London"
    user_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class BotMessage:
    """A message the bot sent that the retention sweep should delete later."""

    id: int
    chat_id: int
    message_id: int          # Telegram message id
    sent_at: datetime

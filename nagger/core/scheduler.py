"""
Nagger — Daily Reminder Scheduler.

Once a minute, looks at every chat that still has eligible tasks and sends
the interactive task list to the chats whose reminder time, read in their
own timezone, is the current minute.

This module is provider-agnostic: it depends on the storage and
NotificationPort protocols, not on SQLite or Telegram.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from nagger.core.periodic import RepeatingJob
from nagger.core.timeutil import is_reminder_due, utcnow

if TYPE_CHECKING:
    from nagger.data.models import UserSettings
    from nagger.ports.notification_port import NotificationPort
    from nagger.ports.storage_port import SettingsStore, TaskStore

logger = logging.getLogger(__name__)

TICK_SECONDS = 60


@dataclass(frozen=True)
class ReminderDefaults:
    """Process-wide fallback for chats that never ran /setreminder."""

    reminder_time: str
    timezone: str

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class ReminderScheduler(RepeatingJob):
    """Per-minute reminder job."""

    name = "reminder-scheduler"

    def __init__(
        self,
        tasks: TaskStore,
        settings_store: SettingsStore,
        notifier: NotificationPort,
        defaults: ReminderDefaults,
        interval_seconds: float = TICK_SECONDS,
    ) -> None:
        super().__init__(interval_seconds)
        self._tasks = tasks
        self._settings = settings_store
        self._notifier = notifier
        self._defaults = defaults
        # Resolved eagerly: a bad default zone must fail at construction.
        self._default_zone = defaults.zone

    async def tick(self) -> None:
        await self.send_due_reminders()

    def first_delay(self, now: datetime | None = None) -> float:
        """Fire on whole minutes so each tick lands early in its minute."""
        if now is None:
            now = utcnow()
        into_minute = now.second + now.microsecond / 1_000_000
        return min(self._interval, 60 - into_minute)

    def _resolve(self, chat_settings: UserSettings | None) -> tuple[str, str]:
        if chat_settings is None:
            return self._defaults.reminder_time, self._defaults.timezone
        return chat_settings.reminder_time, chat_settings.timezone

    async def send_due_reminders(self, now: datetime | None = None) -> list[int]:
        """Run one reminder pass. Returns the chat IDs that were sent a reminder."""
        if now is None:
            now = utcnow()

        try:
            tasks_by_chat = self._tasks.all_eligible_grouped()
        except Exception as exc:
            logger.error("Error getting tasks: %s", exc)
            return []

        try:
            all_settings = self._settings.get_all_settings()
        except Exception as exc:
            logger.error("Error getting user settings, using defaults: %s", exc)
            all_settings = {}

        sent: list[int] = []
        for chat_id, chat_tasks in tasks_by_chat.items():
            if not chat_tasks:
                continue

            reminder_time, tz_name = self._resolve(all_settings.get(chat_id))
            if not is_reminder_due(reminder_time, tz_name, self._default_zone, now):
                continue

            # TODO: bound each send with asyncio.wait_for so one hung chat
            # cannot stall the rest of the tick.
            try:
                await self._notifier.send_reminder(chat_id, chat_tasks)
            except Exception as exc:
                logger.error("Error sending reminder to chat %d: %s", chat_id, exc)
                continue

            logger.info("Sent reminder to chat %d at %s %s", chat_id, reminder_time, tz_name)
            sent.append(chat_id)

        logger.debug("Reminder pass done: %d chat(s) notified", len(sent))
        return sent

"""
Nagger — Message Retention Sweeper.

Deletes messages the bot sent once they are older than the configured TTL.
The tracking record is dropped whether or not the chat-side delete worked:
the remote message may already be gone, and a record that can never be
deleted must not be retried forever.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from nagger.core.periodic import RepeatingJob
from nagger.core.timeutil import utcnow

if TYPE_CHECKING:
    from nagger.ports.notification_port import NotificationPort
    from nagger.ports.storage_port import MessageStore

logger = logging.getLogger(__name__)

SWEEP_INTERVAL = timedelta(hours=1)


class RetentionSweeper(RepeatingJob):
    """Hourly sweep of stale bot messages; also sweeps once on start."""

    name = "retention-sweeper"
    run_on_start = True

    def __init__(
        self,
        messages: MessageStore,
        notifier: NotificationPort,
        message_age: timedelta,
        interval: timedelta = SWEEP_INTERVAL,
    ) -> None:
        super().__init__(interval.total_seconds())
        self._messages = messages
        self._notifier = notifier
        self._message_age = message_age

    async def tick(self) -> None:
        await self.sweep()

    async def sweep(self, now: datetime | None = None) -> int:
        """Run one sweep. Returns how many messages were deleted in the chat."""
        if now is None:
            now = utcnow()
        cutoff = now - self._message_age

        try:
            stale = self._messages.messages_older_than(cutoff)
        except Exception as exc:
            logger.error("Error getting old messages: %s", exc)
            return 0

        if not stale:
            logger.debug("No old messages to clean up")
            return 0

        logger.info("Found %d message(s) older than %s", len(stale), self._message_age)

        deleted = 0
        for msg in stale:
            try:
                await self._notifier.delete_message(msg.chat_id, msg.message_id)
                deleted += 1
            except Exception as exc:
                logger.warning(
                    "Error deleting message %d in chat %d: %s",
                    msg.message_id, msg.chat_id, exc,
                )

            try:
                self._messages.untrack(msg.id)
            except Exception as exc:
                logger.error("Error removing message record #%d: %s", msg.id, exc)

        logger.info("Message cleanup completed: %d/%d deleted", deleted, len(stale))
        return deleted

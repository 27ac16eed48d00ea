"""Notification port — abstract interface for talking to a chat.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from nagger.data.models import Task


class NotifierError(Exception):
    """Raised when the messaging provider fails to send or delete."""


class NotificationPort(Protocol):
    """Abstract notification interface used by core modules."""

    async def send_reminder(self, chat_id: int, tasks: list[Task]) -> int:
        """Send the interactive task list; return the sent message's ID."""
        ...

    async def delete_message(self, chat_id: int, message_id: int) -> None: ...

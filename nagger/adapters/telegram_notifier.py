"""Telegram notification adapter — implements NotificationPort.

Wraps a telegram.Bot instance. Reminders carry one inline button per task;
tapping it sends `complete:<task_id>` back to the bot, which toggles the
task and re-renders the same keyboard.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.error import TelegramError

from nagger.core.lifecycle import effective_status
from nagger.data.models import Task, TaskStatus
from nagger.ports.notification_port import NotifierError

if TYPE_CHECKING:
    from nagger.ports.storage_port import MessageStore

logger = logging.getLogger(__name__)

TOGGLE_PREFIX = "complete:"


def task_button_label(task: Task) -> str:
    marker = "✅" if effective_status(task) is TaskStatus.COMPLETED_TODAY else "⬜"
    return f"{marker} {task.description}"


def build_task_keyboard(tasks: list[Task]) -> InlineKeyboardMarkup:
    """One row per task, callback data keyed by task ID."""
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(task_button_label(t), callback_data=f"{TOGGLE_PREFIX}{t.id}")]
        for t in tasks
    ])


def format_reminder_text(tasks: list[Task]) -> str:
    return (
        "🔔 Daily Reminder!\n\n"
        f"You have {len(tasks)} active task(s). Click on a task to mark it as done:"
    )


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(self, bot: Bot, messages: MessageStore | None = None) -> None:
        self._bot = bot
        self._messages = messages

    async def send_reminder(self, chat_id: int, tasks: list[Task]) -> int:
        try:
            sent = await self._bot.send_message(
                chat_id=chat_id,
                text=format_reminder_text(tasks),
                reply_markup=build_task_keyboard(tasks),
            )
        except TelegramError as exc:
            raise NotifierError(f"send to chat {chat_id} failed: {exc}") from exc

        self._track(chat_id, sent.message_id)
        return sent.message_id

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        try:
            await self._bot.delete_message(chat_id=chat_id, message_id=message_id)
        except TelegramError as exc:
            raise NotifierError(
                f"delete of message {message_id} in chat {chat_id} failed: {exc}"
            ) from exc

    def _track(self, chat_id: int, message_id: int) -> None:
        if self._messages is None:
            return
        try:
            self._messages.track(chat_id, message_id)
        except Exception as exc:
            # The reminder went out; losing the record only skips its cleanup.
            logger.error("Failed to track message %d in chat %d: %s", message_id, chat_id, exc)

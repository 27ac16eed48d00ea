"""
Nagger — Telegram Bot.

Telegram is the only user interface. Commands add and manage tasks and set
the chat's reminder time; inline buttons on the daily reminder toggle a
task between active and done-for-today.

Every reply the bot sends is tracked so the retention sweeper can delete
it once it goes stale.
"""

from __future__ import annotations

import logging
import sqlite3
import sys
from datetime import timedelta
from typing import TYPE_CHECKING

from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from nagger.adapters.telegram_notifier import TOGGLE_PREFIX, build_task_keyboard
from nagger.config import settings
from nagger.core.lifecycle import (
    InvalidTransitionError,
    LifecycleError,
    TaskLifecycle,
    TaskNotFoundError,
    effective_status,
)
from nagger.core.timeutil import is_valid_timezone, normalize_reminder_time
from nagger.data.db import InvalidSettingsError
from nagger.data.models import TaskStatus

if TYPE_CHECKING:
    from nagger.core.periodic import RepeatingJob
    from nagger.data.models import Task
    from nagger.ports.notification_port import NotificationPort
    from nagger.ports.storage_port import MessageStore, SettingsStore, TaskStore

logger = logging.getLogger(__name__)

DEFAULT_SETREMINDER_TIMEZONE = "UTC"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _reply(
    update: Update, context: ContextTypes.DEFAULT_TYPE, text: str, **kwargs,
):
    """Reply in the same chat and track the reply for later cleanup."""
    sent = await update.message.reply_text(text, **kwargs)
    messages: MessageStore | None = context.bot_data.get("messages")
    if messages is not None and sent is not None:
        try:
            messages.track(update.effective_chat.id, sent.message_id)
        except Exception as exc:
            logger.error("Failed to track reply in chat %d: %s", update.effective_chat.id, exc)
    return sent


def _parse_task_number(args: list[str] | None) -> int | None:
    """Parse the 1-based task number from command args."""
    if not args:
        return None
    try:
        return int(args[0])
    except ValueError:
        return None


def format_task_list(tasks: list[Task]) -> str:
    lines = ["📋 Your tasks:\n"]
    for i, task in enumerate(tasks, start=1):
        marker = " ✅" if effective_status(task) is TaskStatus.COMPLETED_TODAY else ""
        lines.append(f"{i}. {task.description}{marker}")
    return "\n".join(lines)


async def _pick_task(
    update: Update, context: ContextTypes.DEFAULT_TYPE, usage: str,
) -> Task | None:
    """Resolve `/<cmd> <n>` to the chat's n-th eligible task, replying on errors."""
    number = _parse_task_number(context.args)
    if number is None:
        await _reply(update, context, f"Please provide a valid task number. Usage: {usage}")
        return None

    store: TaskStore = context.bot_data["tasks"]
    try:
        tasks = store.tasks_for_chat(update.effective_chat.id)
    except Exception as exc:
        logger.error("Error getting tasks: %s", exc)
        await _reply(update, context, "Failed to get tasks. Please try again.")
        return None

    if number < 1 or number > len(tasks):
        await _reply(update, context, f"Invalid task number. You have {len(tasks)} tasks.")
        return None
    return tasks[number - 1]


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — welcome message."""
    await _reply(
        update, context,
        "Welcome to Nagger Bot! 🤖\n\n"
        "I'll help you manage your tasks and remind you about them every day.\n\n"
        "Use /help to see available commands.",
    )


async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await _reply(
        update, context,
        "Available commands:\n\n"
        "/add <task> - Add a new task\n"
        "/list - Show all active tasks\n"
        "/done <task_number> - Mark a task as completed for today\n"
        "/close <task_number> - Close a task permanently (no more reminders)\n"
        "/remove <task_number> - Delete a task entirely\n"
        "/setreminder <HH:MM> [timezone] - Set your daily reminder time (24-hour format)\n"
        "/settings - Show your reminder time\n"
        "/help - Show this help message\n\n"
        "I'll send you a reminder about your tasks every day at your configured time.\n\n"
        "Examples:\n"
        "/setreminder 09:00 - Set reminder to 9:00 AM UTC\n"
        "/setreminder 14:30 America/New_York - Set reminder to 2:30 PM EST/EDT",
    )


async def cmd_add(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /add <task> — create an active task."""
    description = " ".join(context.args or []).strip()
    if not description:
        await _reply(update, context, "Please provide a task description. Usage: /add <task>")
        return

    store: TaskStore = context.bot_data["tasks"]
    try:
        store.add_task(update.effective_chat.id, update.effective_user.id, description)
    except Exception as exc:
        logger.error("Error adding task: %s", exc)
        await _reply(update, context, "Failed to add task. Please try again.")
        return

    await _reply(update, context, f"✅ Task added: {description}")


async def cmd_list(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /list — show the chat's non-closed tasks."""
    store: TaskStore = context.bot_data["tasks"]
    try:
        tasks = store.tasks_for_chat(update.effective_chat.id)
    except Exception as exc:
        logger.error("/list error: %s", exc)
        await _reply(update, context, "Failed to get tasks. Please try again.")
        return

    if not tasks:
        await _reply(update, context, "You have no active tasks. Great job! 🎉")
        return

    await _reply(update, context, format_task_list(tasks))


async def cmd_done(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /done <n> — mark a task completed for today."""
    task = await _pick_task(update, context, "/done <task_number>")
    if task is None:
        return

    lifecycle: TaskLifecycle = context.bot_data["lifecycle"]
    try:
        lifecycle.complete(task.id)
    except LifecycleError as exc:
        logger.warning("Complete rejected: %s", exc)
        await _reply(update, context, "That task can no longer be completed.")
        return
    except Exception as exc:
        logger.error("Error completing task: %s", exc)
        await _reply(update, context, "Failed to complete task. Please try again.")
        return

    await _reply(update, context, f"✅ Task completed: {task.description}")


async def cmd_close(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /close <n> (alias /delete) — close a task for good."""
    task = await _pick_task(update, context, "/close <task_number>")
    if task is None:
        return

    lifecycle: TaskLifecycle = context.bot_data["lifecycle"]
    try:
        lifecycle.close(task.id)
    except LifecycleError as exc:
        logger.warning("Close rejected: %s", exc)
        await _reply(update, context, "That task can no longer be closed.")
        return
    except Exception as exc:
        logger.error("Error closing task: %s", exc)
        await _reply(update, context, "Failed to close task. Please try again.")
        return

    await _reply(update, context, f"🗑️ Task closed: {task.description}")


async def cmd_remove(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /remove <n> — delete the task record."""
    task = await _pick_task(update, context, "/remove <task_number>")
    if task is None:
        return

    lifecycle: TaskLifecycle = context.bot_data["lifecycle"]
    try:
        lifecycle.delete(task.id)
    except TaskNotFoundError:
        await _reply(update, context, "That task no longer exists.")
        return
    except Exception as exc:
        logger.error("Error deleting task: %s", exc)
        await _reply(update, context, "Failed to delete task. Please try again.")
        return

    await _reply(update, context, f"❌ Task deleted: {task.description}")


async def cmd_setreminder(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /setreminder <HH:MM> [timezone]."""
    args = context.args or []
    if not args:
        await _reply(
            update, context,
            "Please provide a reminder time. Usage: /setreminder <HH:MM> [timezone]\n"
            "Example: /setreminder 09:00 UTC",
        )
        return

    try:
        reminder_time = normalize_reminder_time(args[0])
    except ValueError:
        await _reply(
            update, context,
            "Invalid time format. Please use 24-hour format HH:MM (e.g., 09:00, 14:30)",
        )
        return

    tz_name = args[1] if len(args) > 1 else DEFAULT_SETREMINDER_TIMEZONE
    if not is_valid_timezone(tz_name):
        await _reply(
            update, context,
            f"Invalid timezone: {tz_name}. "
            "Please use a valid timezone (e.g., UTC, America/New_York)",
        )
        return

    store: SettingsStore = context.bot_data["settings_store"]
    try:
        store.upsert_settings(
            update.effective_chat.id, reminder_time, tz_name,
            user_id=update.effective_user.id,
        )
    except InvalidSettingsError as exc:
        logger.warning("Rejected reminder settings: %s", exc)
        await _reply(update, context, "Invalid reminder settings. Please try again.")
        return
    except Exception as exc:
        logger.error("Error setting user settings: %s", exc)
        await _reply(update, context, "Failed to save reminder settings. Please try again.")
        return

    await _reply(update, context, f"✅ Reminder time set to {reminder_time} {tz_name}")


async def cmd_settings(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /settings — show the chat's effective reminder time."""
    store: SettingsStore = context.bot_data["settings_store"]
    try:
        chat_settings = store.get_settings(update.effective_chat.id)
    except Exception as exc:
        logger.error("/settings error: %s", exc)
        await _reply(update, context, "Couldn't load your settings. Please try again.")
        return

    if chat_settings is None:
        defaults = context.bot_data["defaults"]
        await _reply(
            update, context,
            f"⏰ Daily reminder at {defaults.reminder_time} {defaults.timezone} (default).\n"
            "Use /setreminder to change it.",
        )
        return

    await _reply(
        update, context,
        f"⏰ Daily reminder at {chat_settings.reminder_time} {chat_settings.timezone}.",
    )


async def cmd_unknown(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _reply(update, context, "Unknown command. Use /help to see available commands.")


# ---------------------------------------------------------------------------
# Reminder keyboard callback
# ---------------------------------------------------------------------------


async def _handle_toggle_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle a tap on a reminder button: toggle the task, re-render in place."""
    query = update.callback_query
    await query.answer()

    chat_id = query.message.chat.id
    task_id = int(query.data[len(TOGGLE_PREFIX):])

    store: TaskStore = context.bot_data["tasks"]
    lifecycle: TaskLifecycle = context.bot_data["lifecycle"]

    try:
        task = store.get_task(task_id)
    except Exception as exc:
        logger.error("Error loading task #%d for toggle: %s", task_id, exc)
        return

    if task is None or task.chat_id != chat_id:
        logger.warning("Task not found for toggle: #%d in chat %d", task_id, chat_id)
        return

    try:
        lifecycle.toggle(task_id)
    except (TaskNotFoundError, InvalidTransitionError) as exc:
        logger.warning("Toggle rejected: %s", exc)
        return
    except Exception as exc:
        logger.error("Error toggling task #%d: %s", task_id, exc)
        return

    try:
        tasks = store.tasks_for_chat(chat_id)
        await query.edit_message_reply_markup(reply_markup=build_task_keyboard(tasks))
    except Exception as exc:
        logger.error("Error updating reminder message: %s", exc)


# ---------------------------------------------------------------------------
# Background jobs
# ---------------------------------------------------------------------------


def _setup_background_jobs(app: Application, jobs: list[RepeatingJob]) -> None:
    """Register the reminder and sweep jobs on the application's JobQueue.

    Application.stop() stops the JobQueue before the bot is shut down, and
    waits for a tick that is already running, so a pass in flight still has
    a live bot to send and delete with.
    """
    for job in jobs:
        job.start(app.job_queue)
    app.bot_data["jobs"] = jobs


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    notifier: NotificationPort | None = None,
    db_path: str | None = None,
) -> Application:
    """Build and configure the Telegram Application with handlers and jobs.

    Args:
        notifier: Notification port implementation. Defaults to TelegramNotifier
                  (created from the bot instance after app is built).
        db_path: SQLite file. Defaults to DATABASE_PATH.
    """
    from nagger.core.cleanup import RetentionSweeper
    from nagger.core.scheduler import ReminderDefaults, ReminderScheduler
    from nagger.data.db import MessageDB, SettingsDB, TaskDB

    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    db_path = db_path or settings.DATABASE_PATH
    tasks = TaskDB(db_path=db_path)
    settings_store = SettingsDB(db_path=db_path)
    messages = MessageDB(db_path=db_path)

    if notifier is None:
        from nagger.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot, messages=messages)

    defaults = ReminderDefaults(
        reminder_time=settings.REMINDER_TIME,
        timezone=settings.REMINDER_TIMEZONE,
    )
    scheduler = ReminderScheduler(tasks, settings_store, notifier, defaults)
    sweeper = RetentionSweeper(
        messages,
        notifier,
        message_age=timedelta(hours=settings.MESSAGE_TTL_HOURS),
        interval=timedelta(minutes=settings.CLEANUP_INTERVAL_MINUTES),
    )

    # Store collaborators in bot_data for handler access
    app.bot_data["tasks"] = tasks
    app.bot_data["settings_store"] = settings_store
    app.bot_data["messages"] = messages
    app.bot_data["lifecycle"] = TaskLifecycle(tasks)
    app.bot_data["notifier"] = notifier
    app.bot_data["defaults"] = defaults

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("add", cmd_add))
    app.add_handler(CommandHandler("list", cmd_list))
    app.add_handler(CommandHandler("done", cmd_done))
    app.add_handler(CommandHandler(["close", "delete"], cmd_close))
    app.add_handler(CommandHandler("remove", cmd_remove))
    app.add_handler(CommandHandler("setreminder", cmd_setreminder))
    app.add_handler(CommandHandler("settings", cmd_settings))
    app.add_handler(CallbackQueryHandler(_handle_toggle_callback, pattern=r"^complete:\d+$"))

    # Anything else that looks like a command
    app.add_handler(MessageHandler(filters.COMMAND, cmd_unknown))

    # Reminder and retention sweep jobs
    _setup_background_jobs(app, [scheduler, sweeper])

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger.info(
        "Starting Nagger bot (default reminder %s %s)...",
        settings.REMINDER_TIME, settings.REMINDER_TIMEZONE,
    )
    try:
        app = build_app()
    except (sqlite3.Error, OSError) as exc:
        logger.critical("Failed to open database %s: %s", settings.DATABASE_PATH, exc)
        sys.exit(1)
    app.run_polling()


if __name__ == "__main__":
    main()

"""Tests for nagger.data.models — dataclass defaults and status values."""

from datetime import datetime, timezone

from nagger.data.models import BotMessage, Task, TaskStatus, UserSettings


class TestTaskStatus:
    def test_stored_values(self):
        assert TaskStatus.ACTIVE.value == "active"
        assert TaskStatus.COMPLETED_TODAY.value == "completed_today"
        assert TaskStatus.CLOSED.value == "closed"

    def test_statuses_are_distinct(self):
        assert len(set(TaskStatus)) == 3

    def test_parse_from_string(self):
        assert TaskStatus("completed_today") is TaskStatus.COMPLETED_TODAY


class TestTask:
    def test_defaults(self):
        task = Task(
            id=1, chat_id=100, user_id=7, description="Read",
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        assert task.status is TaskStatus.ACTIVE
        assert task.completed_at is None


class TestUserSettings:
    def test_defaults(self):
        s = UserSettings(chat_id=100, reminder_time="09:00", timezone="UTC")
        assert s.user_id is None
        assert s.created_at is None


class TestBotMessage:
    def test_fields(self):
        sent = datetime(2026, 1, 1, tzinfo=timezone.utc)
        msg = BotMessage(id=1, chat_id=100, message_id=42, sent_at=sent)
        assert msg.message_id == 42
        assert msg.sent_at == sent

"""Tests for nagger.data.db — TaskDB (SQLite storage)."""

import sqlite3
from datetime import datetime, timezone

import pytest

from nagger.data.db import TaskDB
from nagger.data.models import TaskStatus


class TestTaskDBAddAndGet:
    def test_add_task_returns_active_task(self, task_db):
        task = task_db.add_task(chat_id=100, user_id=7, description="Buy milk")
        assert task.id is not None
        assert task.chat_id == 100
        assert task.user_id == 7
        assert task.description == "Buy milk"
        assert task.status is TaskStatus.ACTIVE
        assert task.completed_at is None
        assert task.created_at.tzinfo is not None

    def test_get_task_roundtrip(self, task_db):
        added = task_db.add_task(100, 7, "Buy milk")
        fetched = task_db.get_task(added.id)
        assert fetched is not None
        assert fetched.description == "Buy milk"
        assert fetched.status is TaskStatus.ACTIVE
        assert fetched.created_at == added.created_at

    def test_get_task_not_found(self, task_db):
        assert task_db.get_task(999) is None

    def test_ids_are_distinct(self, task_db):
        a = task_db.add_task(100, 7, "A")
        b = task_db.add_task(100, 7, "B")
        assert a.id != b.id


class TestTaskDBEligibility:
    def test_tasks_for_chat_scopes_by_chat(self, task_db):
        task_db.add_task(100, 7, "Mine")
        task_db.add_task(200, 8, "Theirs")
        tasks = task_db.tasks_for_chat(100)
        assert [t.description for t in tasks] == ["Mine"]

    def test_tasks_for_chat_in_creation_order(self, task_db):
        for name in ("first", "second", "third"):
            task_db.add_task(100, 7, name)
        assert [t.description for t in task_db.tasks_for_chat(100)] == [
            "first", "second", "third",
        ]

    def test_completed_today_is_still_eligible(self, task_db):
        task = task_db.add_task(100, 7, "Stretch")
        task_db.set_status(task.id, TaskStatus.COMPLETED_TODAY, datetime.now(timezone.utc))
        tasks = task_db.tasks_for_chat(100)
        assert len(tasks) == 1
        assert tasks[0].status is TaskStatus.COMPLETED_TODAY

    def test_closed_excluded_from_chat_list(self, task_db):
        task = task_db.add_task(100, 7, "Done forever")
        task_db.set_status(task.id, TaskStatus.CLOSED)
        assert task_db.tasks_for_chat(100) == []

    def test_closed_never_in_grouped_output(self, task_db):
        keep = task_db.add_task(100, 7, "Keep")
        gone = task_db.add_task(100, 7, "Gone")
        task_db.set_status(gone.id, TaskStatus.CLOSED)
        grouped = task_db.all_eligible_grouped()
        assert [t.id for t in grouped[100]] == [keep.id]

    def test_grouped_by_chat(self, task_db):
        task_db.add_task(100, 7, "A")
        task_db.add_task(100, 7, "B")
        task_db.add_task(200, 8, "C")
        grouped = task_db.all_eligible_grouped()
        assert set(grouped) == {100, 200}
        assert len(grouped[100]) == 2
        assert len(grouped[200]) == 1

    def test_chat_with_only_closed_tasks_absent(self, task_db):
        task = task_db.add_task(300, 9, "X")
        task_db.set_status(task.id, TaskStatus.CLOSED)
        assert 300 not in task_db.all_eligible_grouped()


class TestTaskDBLegacyRows:
    def test_row_without_status_is_eligible(self, tmp_db_path):
        # Table as written by an older version: no status/completed_at columns.
        with sqlite3.connect(tmp_db_path) as conn:
            conn.execute("""
                CREATE TABLE tasks (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    chat_id     INTEGER NOT NULL,
                    user_id     INTEGER NOT NULL,
                    description TEXT    NOT NULL,
                    created_at  TEXT    NOT NULL
                )
            """)
            conn.execute(
                "INSERT INTO tasks (chat_id, user_id, description, created_at) "
                "VALUES (100, 7, 'Legacy', '2025-06-01T08:00:00.000000+00:00')"
            )

        db = TaskDB(db_path=tmp_db_path)
        tasks = db.tasks_for_chat(100)
        assert len(tasks) == 1
        assert tasks[0].status is None
        assert db.all_eligible_grouped()[100][0].description == "Legacy"


class TestTaskDBStatusAndDelete:
    def test_set_status_persists_completed_at(self, task_db):
        task = task_db.add_task(100, 7, "Run")
        stamp = datetime(2026, 1, 15, 9, 30, tzinfo=timezone.utc)
        assert task_db.set_status(task.id, TaskStatus.COMPLETED_TODAY, stamp) is True
        fetched = task_db.get_task(task.id)
        assert fetched.status is TaskStatus.COMPLETED_TODAY
        assert fetched.completed_at == stamp

    def test_set_status_clears_completed_at(self, task_db):
        task = task_db.add_task(100, 7, "Run")
        task_db.set_status(task.id, TaskStatus.COMPLETED_TODAY, datetime.now(timezone.utc))
        task_db.set_status(task.id, TaskStatus.ACTIVE, None)
        assert task_db.get_task(task.id).completed_at is None

    def test_set_status_not_found(self, task_db):
        assert task_db.set_status(999, TaskStatus.CLOSED) is False

    def test_delete_removes_record(self, task_db):
        task = task_db.add_task(100, 7, "Temp")
        assert task_db.delete_task(task.id) is True
        assert task_db.get_task(task.id) is None

    def test_delete_not_found(self, task_db):
        assert task_db.delete_task(999) is False

    def test_closed_record_is_retained(self, task_db):
        task = task_db.add_task(100, 7, "Audit me")
        task_db.set_status(task.id, TaskStatus.CLOSED)
        assert task_db.get_task(task.id).status is TaskStatus.CLOSED

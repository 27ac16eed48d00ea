"""Task lifecycle — the status state machine.

    ACTIVE ──complete──▶ COMPLETED_TODAY ──reactivate──▶ ACTIVE
      │                        │
      └────────close───────────┴──────▶ CLOSED (terminal)

COMPLETED_TODAY keeps a task in tomorrow's reminder (a daily check-off);
CLOSED dismisses it for good but keeps the row. Deleting removes the row
and is not a status transition.

The transition table is pure. TaskLifecycle applies it against a TaskStore
and is what command and callback handlers call.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Callable

from nagger.data.models import Task, TaskStatus

if TYPE_CHECKING:
    from nagger.ports.storage_port import TaskStore

logger = logging.getLogger(__name__)


class LifecycleError(Exception):
    """Base class for task lifecycle failures."""


class TaskNotFoundError(LifecycleError):
    """The targeted task ID is not in the store."""

    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class InvalidTransitionError(LifecycleError):
    """The requested action is not allowed from the task's current status."""

    def __init__(self, task_id: int, action: TaskAction, status: TaskStatus) -> None:
        super().__init__(f"Cannot {action.value} task {task_id} while {status.value}")
        self.task_id = task_id
        self.action = action
        self.status = status


class TaskAction(str, Enum):
    COMPLETE = "complete"
    REACTIVATE = "reactivate"
    CLOSE = "close"


_TRANSITIONS: dict[tuple[TaskAction, TaskStatus], TaskStatus] = {
    (TaskAction.COMPLETE, TaskStatus.ACTIVE): TaskStatus.COMPLETED_TODAY,
    (TaskAction.COMPLETE, TaskStatus.COMPLETED_TODAY): TaskStatus.COMPLETED_TODAY,
    (TaskAction.REACTIVATE, TaskStatus.COMPLETED_TODAY): TaskStatus.ACTIVE,
    (TaskAction.CLOSE, TaskStatus.ACTIVE): TaskStatus.CLOSED,
    (TaskAction.CLOSE, TaskStatus.COMPLETED_TODAY): TaskStatus.CLOSED,
}


def effective_status(task: Task) -> TaskStatus:
    """Legacy rows without a status behave as ACTIVE."""
    return task.status or TaskStatus.ACTIVE


def is_eligible(task: Task) -> bool:
    """True if the task belongs in reminders (anything but CLOSED)."""
    return effective_status(task) is not TaskStatus.CLOSED


def next_status(current: TaskStatus, action: TaskAction) -> TaskStatus | None:
    """Return the status `action` leads to from `current`, or None if not allowed."""
    return _TRANSITIONS.get((action, current))


class TaskLifecycle:
    """Applies lifecycle transitions to tasks in a TaskStore."""

    def __init__(
        self,
        store: TaskStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def complete(self, task_id: int) -> Task:
        """Mark done for today; stamps completed_at with the current time."""
        return self._apply(task_id, TaskAction.COMPLETE)

    def reactivate(self, task_id: int) -> Task:
        """Undo today's completion. Only valid from COMPLETED_TODAY."""
        return self._apply(task_id, TaskAction.REACTIVATE)

    def close(self, task_id: int) -> Task:
        """Dismiss permanently."""
        return self._apply(task_id, TaskAction.CLOSE)

    def toggle(self, task_id: int) -> Task:
        """Flip between ACTIVE and COMPLETED_TODAY (the reminder button)."""
        task = self._get(task_id)
        if effective_status(task) is TaskStatus.COMPLETED_TODAY:
            return self._transition(task, TaskAction.REACTIVATE)
        return self._transition(task, TaskAction.COMPLETE)

    def delete(self, task_id: int) -> None:
        """Remove the record entirely, whatever its status."""
        if not self._store.delete_task(task_id):
            raise TaskNotFoundError(task_id)

    def _get(self, task_id: int) -> Task:
        task = self._store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def _apply(self, task_id: int, action: TaskAction) -> Task:
        return self._transition(self._get(task_id), action)

    def _transition(self, task: Task, action: TaskAction) -> Task:
        current = effective_status(task)
        target = next_status(current, action)
        if target is None:
            raise InvalidTransitionError(task.id, action, current)

        if target is TaskStatus.COMPLETED_TODAY:
            completed_at = self._clock()
        elif target is TaskStatus.CLOSED:
            # Closing does not touch the completion stamp.
            completed_at = task.completed_at
        else:
            completed_at = None

        if not self._store.set_status(task.id, target, completed_at):
            # Deleted between the read and the write.
            raise TaskNotFoundError(task.id)

        task.status = target
        task.completed_at = completed_at
        return task

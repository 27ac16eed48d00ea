"""Recurring background job shared by the reminder scheduler and the sweeper.

Each job is one python-telegram-bot JobQueue registration on a fixed-rate
interval trigger, so the period does not stretch with the time a tick
takes. Stopping the Application stops the JobQueue, which waits for a
running tick to finish before the bot itself is shut down.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from telegram.ext import ContextTypes, Job, JobQueue

logger = logging.getLogger(__name__)


class RepeatingJob:
    """Base class: subclasses implement tick()."""

    name = "job"
    run_on_start = False

    def __init__(self, interval_seconds: float) -> None:
        self._interval = interval_seconds
        self._job: Job | None = None

    async def tick(self) -> None:
        raise NotImplementedError

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._job is not None and not self._job.removed

    def first_delay(self) -> float:
        """Seconds until the first tick."""
        return 0 if self.run_on_start else self._interval

    def start(self, job_queue: JobQueue) -> Job:
        """Register the job on the queue. Calling twice is a no-op."""
        if self._job is not None:
            return self._job
        self._job = job_queue.run_repeating(
            self._run_job,
            interval=self._interval,
            first=self.first_delay(),
            name=self.name,
            # Jobs are registered before the queue starts; a late first run still counts.
            job_kwargs={"misfire_grace_time": None},
        )
        logger.info("%s scheduled (every %ss)", self.name, self._interval)
        return self._job

    def stop(self) -> None:
        """Remove the job; a tick already running is left to finish."""
        if not self.running:
            return
        self._job.schedule_removal()
        logger.info("%s stopped", self.name)

    async def _run_job(self, context: ContextTypes.DEFAULT_TYPE) -> None:
        try:
            await self.tick()
        except Exception:
            # A failed tick must never cancel the job; the next tick re-reads state.
            logger.exception("%s tick failed", self.name)

"""Scheduler running sync jobs at their configured frequency.

This module provides:
- SyncScheduler: one APScheduler interval job per active sync job

A tick that finds the previous run of the same job still in flight is
skipped. A failing tick is logged and the timer keeps going.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from recordsync.core.errors import JobBusyError, JobNotFoundError
from recordsync.server.models import as_utc

if TYPE_CHECKING:
    from recordsync.server.database import Database
    from recordsync.sync.executor import SyncExecutor

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Scheduler for recurring sync jobs.

    Each scheduled sync job owns one APScheduler job with the same id.
    """

    def __init__(self, db: Database, executor: SyncExecutor) -> None:
        """Initialize the scheduler.

        Args:
            db: Database instance.
            executor: Executor invoked on every tick.
        """
        self._db = db
        self._executor = executor
        self._scheduler: BackgroundScheduler = BackgroundScheduler(timezone=UTC)

    @property
    def running(self) -> bool:
        """Check if the scheduler has been started."""
        return bool(self._scheduler.running)

    def _tick(self, job_id: str) -> None:
        """Job function for one scheduled run."""
        try:
            self._executor.execute(job_id, wait=False)
        except JobBusyError:
            logger.info("Skipping tick of %s: previous run still in flight", job_id)
        except JobNotFoundError:
            logger.warning("Scheduled job %s is missing or inactive", job_id)
        except Exception:
            logger.exception("Error during scheduled run of %s", job_id)

    def schedule(self, job_id: str, first_run: datetime | None = None) -> None:
        """Arm (or re-arm) the timer of a job.

        Args:
            job_id: Job to schedule.
            first_run: Time of the first tick; one interval from now if omitted.

        Raises:
            JobNotFoundError: If the job is missing or inactive.
        """
        job = self._db.get_active_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        self.unschedule(job_id)
        kwargs = {"next_run_time": first_run} if first_run is not None else {}
        self._scheduler.add_job(
            self._tick,
            trigger=IntervalTrigger(minutes=job.frequency_minutes, timezone=UTC),
            args=[job_id],
            id=job_id,
            name=f"Sync {job.name}",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            replace_existing=True,
            **kwargs,
        )
        logger.info("Scheduled %s every %d minute(s)", job_id, job.frequency_minutes)

    def unschedule(self, job_id: str) -> bool:
        """Cancel the timer of a job; an in-flight run is left to finish.

        Returns:
            True if a timer was removed.
        """
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            return False
        logger.info("Unscheduled %s", job_id)
        return True

    def is_scheduled(self, job_id: str) -> bool:
        """Check if a job has a timer."""
        return self._scheduler.get_job(job_id) is not None

    def scheduled_job_ids(self) -> list[str]:
        """List the ids of all scheduled jobs."""
        return sorted(job.id for job in self._scheduler.get_jobs())

    def next_run_time(self, job_id: str) -> datetime | None:
        """Get the next tick of a job, if scheduled and the scheduler runs."""
        job = self._scheduler.get_job(job_id)
        return getattr(job, "next_run_time", None) if job is not None else None

    def start_all(self, now: datetime | None = None) -> int:
        """Schedule every active job and start the scheduler.

        Jobs that are due tick right away; the others first tick at their
        next_sync time.

        Returns:
            Number of scheduled jobs.
        """
        now = now or datetime.now(UTC)
        jobs = self._db.list_active_jobs()
        due = {job.id for job in self._db.list_due_jobs(now)}
        for job in jobs:
            self.schedule(job.id, first_run=now if job.id in due else as_utc(job.next_sync))

        if not self._scheduler.running:
            self._scheduler.start()
        logger.info("Sync scheduler started with %d job(s), %d due", len(jobs), len(due))
        return len(jobs)

    def stop_all(self) -> None:
        """Cancel every timer and stop the scheduler without waiting for runs."""
        self._scheduler.remove_all_jobs()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            # A shut down thread pool cannot take new runs
            self._scheduler = BackgroundScheduler(timezone=UTC)
        logger.info("Sync scheduler stopped")

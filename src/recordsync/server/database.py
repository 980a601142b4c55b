"""Store for sync jobs, run logs, data sources and conflicts.

This module provides:
- Sync job creation, lookup and schedule bookkeeping
- Run log creation and one-time finalization
- Data source descriptor persistence
- Conflict log and resolution
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, func, select, update
from sqlalchemy.orm import Session

from recordsync.core.errors import ConfigurationError
from recordsync.core.types import ConflictResolution, DataType, SyncStatus, SyncType
from recordsync.server.models import (
    Base,
    ConflictLog,
    DataSourceRecord,
    SyncJob,
    SyncLog,
    as_utc,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import Engine

    from recordsync.core.config import DataSource, SyncConfig
    from recordsync.sync.results import SyncConflict, SyncResult

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def generate_job_id(now: datetime | None = None) -> str:
    """Generate a job id: sync_<epoch ms>_<9 random base36 chars>."""
    now = now or datetime.now(UTC)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"sync_{int(now.timestamp() * 1000)}_{suffix}"


@dataclass(frozen=True)
class JobSummary:
    """A job with aggregate run counts, as returned by list_jobs()."""

    job: SyncJob
    total_runs: int
    last_completed: datetime | None

    def to_dict(self) -> dict[str, object]:
        """Convert to a JSON-compatible dictionary."""
        return {
            **self.job.to_dict(),
            "total_runs": self.total_runs,
            "last_completed": self.last_completed.isoformat() if self.last_completed else None,
        }


class Database:
    """SQLAlchemy database for sync metadata.

    Uses SQLite with WAL mode so status reads do not block running jobs.
    Every operation is one short session; returned ORM objects are detached.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # check_same_thread=False: scheduler threads share the engine
        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")

        Base.metadata.create_all(self._engine)

    @property
    def path(self) -> Path:
        """Path of the SQLite file."""
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def _session(self) -> Session:
        """Create a new database session."""
        return Session(self._engine)

    # === Sync job operations ===

    def create_job(
        self,
        name: str,
        source_system: str,
        target_system: str,
        data_type: DataType,
        sync_type: SyncType,
        frequency_minutes: int,
        config: SyncConfig,
        now: datetime | None = None,
    ) -> SyncJob:
        """Create a sync job.

        The first scheduled run is one frequency after creation.

        Args:
            name: Display name.
            source_system: Id of the source data source.
            target_system: Id of the target data source.
            data_type: Kind of data moved.
            sync_type: Full, incremental or real-time.
            frequency_minutes: Minutes between scheduled runs.
            config: Job configuration.
            now: Creation time (defaults to the current time).

        Returns:
            Created SyncJob object.

        Raises:
            ConfigurationError: If the frequency is not positive.
        """
        if frequency_minutes <= 0:
            raise ConfigurationError("frequency_minutes must be positive")
        now = now or datetime.now(UTC)
        with self._session() as session:
            job = SyncJob(
                id=generate_job_id(now),
                name=name,
                source_system=source_system,
                target_system=target_system,
                data_type=data_type.value,
                sync_type=sync_type.value,
                frequency_minutes=frequency_minutes,
                next_sync=now + timedelta(minutes=frequency_minutes),
                is_active=True,
                config=config.to_dict(),
                created_at=now,
                updated_at=now,
            )
            session.add(job)
            session.commit()
            session.refresh(job)
            session.expunge(job)
            return job

    def get_job(self, job_id: str) -> SyncJob | None:
        """Get a job by ID.

        Args:
            job_id: Job ID.

        Returns:
            SyncJob if found, None otherwise.
        """
        with self._session() as session:
            job = session.get(SyncJob, job_id)
            if job:
                session.expunge(job)
            return job

    def get_active_job(self, job_id: str) -> SyncJob | None:
        """Get a job by ID if it is active."""
        job = self.get_job(job_id)
        return job if job is not None and job.is_active else None

    def list_jobs(self) -> list[JobSummary]:
        """List all jobs, newest first, with their run counts.

        Returns:
            One JobSummary per job.
        """
        with self._session() as session:
            stmt = (
                select(
                    SyncJob,
                    func.count(SyncLog.id),
                    func.max(SyncLog.completed_at),
                )
                .outerjoin(SyncLog, SyncLog.job_id == SyncJob.id)
                .group_by(SyncJob.id)
                .order_by(SyncJob.created_at.desc(), SyncJob.id.desc())
            )
            summaries = []
            for job, total_runs, last_completed in session.execute(stmt).all():
                session.expunge(job)
                summaries.append(
                    JobSummary(
                        job=job,
                        total_runs=int(total_runs),
                        last_completed=as_utc(last_completed) if last_completed else None,
                    )
                )
            return summaries

    def list_active_jobs(self) -> list[SyncJob]:
        """List active jobs ordered by next scheduled run."""
        with self._session() as session:
            stmt = select(SyncJob).where(SyncJob.is_active.is_(True)).order_by(SyncJob.next_sync)
            jobs = list(session.execute(stmt).scalars().all())
            for job in jobs:
                session.expunge(job)
            return jobs

    def list_due_jobs(self, now: datetime | None = None) -> list[SyncJob]:
        """List active jobs whose next run is at or before now."""
        now = now or datetime.now(UTC)
        return [j for j in self.list_active_jobs() if as_utc(j.next_sync) <= now]

    def mark_job_synced(self, job_id: str, started_at: datetime) -> None:
        """Record a completed run on the job.

        Args:
            job_id: Job ID.
            started_at: Start time of the completed run; the next run is
                one frequency later.
        """
        with self._session() as session:
            job = session.get(SyncJob, job_id)
            if job:
                job.last_sync = started_at
                job.next_sync = started_at + job.frequency
                session.commit()

    def deactivate_job(self, job_id: str) -> bool:
        """Deactivate a job.

        Returns:
            True if the job existed.
        """
        with self._session() as session:
            result = session.execute(
                update(SyncJob).where(SyncJob.id == job_id).values(is_active=False)
            )
            session.commit()
            return bool(result.rowcount)

    def delete_job(self, job_id: str) -> bool:
        """Delete a job; its logs and conflicts are kept.

        Returns:
            True if the job existed.
        """
        with self._session() as session:
            job = session.get(SyncJob, job_id)
            if job is None:
                return False
            session.delete(job)
            session.commit()
            return True

    # === Run log operations ===

    def start_log(self, job_id: str, started_at: datetime) -> int:
        """Insert a running log row for a new run.

        Returns:
            ID of the log row.
        """
        with self._session() as session:
            log = SyncLog(
                job_id=job_id,
                status=SyncStatus.RUNNING.value,
                started_at=started_at,
            )
            session.add(log)
            session.commit()
            return log.id

    def finish_log(self, log_id: int, result: SyncResult) -> None:
        """Finalize a log row with the outcome of its run.

        Raises:
            ValueError: If the row is unknown or already finalized.
        """
        with self._session() as session:
            log = session.get(SyncLog, log_id)
            if log is None:
                raise ValueError(f"Sync log not found: {log_id}")
            if log.completed_at is not None:
                raise ValueError(f"Sync log already finalized: {log_id}")
            log.status = result.status.value
            log.records_processed = result.records_processed
            log.records_success = result.records_success
            log.records_error = result.records_error
            log.errors = [e.to_dict() for e in result.errors]
            log.duration_seconds = result.duration_seconds
            log.completed_at = result.end_time
            session.commit()

    def get_log(self, log_id: int) -> SyncLog | None:
        """Get a log row by ID."""
        with self._session() as session:
            log = session.get(SyncLog, log_id)
            if log:
                session.expunge(log)
            return log

    def recent_results(self, job_id: str, limit: int = 10) -> list[SyncResult]:
        """Get the finished results of a job, most recent first.

        Args:
            job_id: Job ID.
            limit: Maximum number of results.
        """
        with self._session() as session:
            stmt = (
                select(SyncLog)
                .where(SyncLog.job_id == job_id, SyncLog.completed_at.is_not(None))
                .order_by(SyncLog.started_at.desc(), SyncLog.id.desc())
                .limit(limit)
            )
            return [log.to_result() for log in session.execute(stmt).scalars().all()]

    # === Data source operations ===

    def save_source(self, source: DataSource) -> None:
        """Insert or replace a data source descriptor."""
        with self._session() as session:
            record = session.get(DataSourceRecord, source.id)
            if record is None:
                record = DataSourceRecord(id=source.id)
                session.add(record)
            record.name = source.name
            record.type = source.type.value
            record.connection_config = dict(source.connection)
            record.schema_config = source.schema.to_dict()
            record.is_active = source.is_active
            session.commit()

    def get_source(self, source_id: str) -> DataSource | None:
        """Get a data source descriptor by ID."""
        with self._session() as session:
            record = session.get(DataSourceRecord, source_id)
            return record.to_descriptor() if record else None

    def list_sources(self) -> list[DataSource]:
        """List all data source descriptors by ID."""
        with self._session() as session:
            stmt = select(DataSourceRecord).order_by(DataSourceRecord.id)
            return [r.to_descriptor() for r in session.execute(stmt).scalars().all()]

    def deactivate_source(self, source_id: str) -> bool:
        """Deactivate a data source.

        Returns:
            True if the source existed.
        """
        with self._session() as session:
            result = session.execute(
                update(DataSourceRecord)
                .where(DataSourceRecord.id == source_id)
                .values(is_active=False)
            )
            session.commit()
            return bool(result.rowcount)

    # === Conflict operations ===

    def add_conflicts(self, conflicts: Iterable[SyncConflict]) -> list[int]:
        """Store detected conflicts.

        Returns:
            IDs of the stored rows, in input order.
        """
        with self._session() as session:
            rows = [ConflictLog.from_conflict(c) for c in conflicts]
            session.add_all(rows)
            session.commit()
            return [row.id for row in rows]

    def list_conflicts(self, job_id: str, unresolved_only: bool = False) -> list[SyncConflict]:
        """List the conflicts of a job, oldest first."""
        with self._session() as session:
            stmt = select(ConflictLog).where(ConflictLog.job_id == job_id)
            if unresolved_only:
                stmt = stmt.where(ConflictLog.resolution.is_(None))
            stmt = stmt.order_by(ConflictLog.id)
            return [row.to_conflict() for row in session.execute(stmt).scalars().all()]

    def resolve_conflict(
        self,
        conflict_id: int,
        resolution: ConflictResolution,
        now: datetime | None = None,
    ) -> SyncConflict:
        """Record how a conflict was settled.

        Raises:
            ConfigurationError: If the conflict does not exist.
        """
        with self._session() as session:
            row = session.get(ConflictLog, conflict_id)
            if row is None:
                raise ConfigurationError(f"Conflict not found: {conflict_id}")
            row.resolution = resolution.value
            row.resolved_at = now or datetime.now(UTC)
            session.commit()
            return row.to_conflict()

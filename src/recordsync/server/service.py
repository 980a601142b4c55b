"""Sync service facade.

SyncService owns the store, the data source registry, the executor and the
scheduler, and exposes the operations used by the API and the CLI.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from recordsync.core.config import DataSource, SyncConfig
from recordsync.core.errors import ConfigurationError, DuplicateIdError, JobNotFoundError
from recordsync.core.types import ConflictResolution, DataType, SourceType, SyncType
from recordsync.server.database import Database, JobSummary
from recordsync.server.scheduler import SyncScheduler
from recordsync.sources.registry import DataSourceRegistry
from recordsync.sync.executor import SyncExecutor

if TYPE_CHECKING:
    from recordsync.core.settings import Settings
    from recordsync.server.models import SyncJob
    from recordsync.sources.base import SourceAdapter
    from recordsync.sync.results import SyncConflict, SyncResult

logger = logging.getLogger(__name__)

INTERNAL_SOURCE_ID = "internal_db"


@dataclass(frozen=True)
class JobStatus:
    """A job and its most recent results, newest first."""

    job: SyncJob
    recent_results: list[SyncResult]

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "job": self.job.to_dict(),
            "recent_results": [r.to_dict() for r in self.recent_results],
        }


class SyncService:
    """Entry points of the sync engine.

    Example:
        service = SyncService.from_settings(Settings.from_env())
        service.register_data_source(source)
        job = service.create_sync_job(...)
        result = service.execute_sync_job(job.id)
    """

    def __init__(
        self,
        db: Database,
        registry: DataSourceRegistry | None = None,
        executor: SyncExecutor | None = None,
        recent_results: int = 10,
    ) -> None:
        """Initialize the service and load persisted data sources.

        Args:
            db: Database instance.
            registry: Data source registry (a new one if omitted).
            executor: Executor (built on db and registry if omitted).
            recent_results: How many results get_sync_job_status returns.
        """
        self._db = db
        self._registry = registry or DataSourceRegistry()
        self._executor = executor or SyncExecutor(db, self._registry)
        self._scheduler = SyncScheduler(db, self._executor)
        self._recent_results = recent_results

        for source in db.list_sources():
            if not self._registry.contains(source.id):
                self._registry.register(source)

    @classmethod
    def from_settings(cls, settings: Settings) -> SyncService:
        """Build a service from process settings."""
        service = cls(
            Database(settings.db_path),
            registry=DataSourceRegistry(http_timeout=settings.http_timeout),
            recent_results=settings.recent_results,
        )
        if settings.internal_db_url:
            service.seed_internal_source(settings.internal_db_url)
        return service

    @property
    def db(self) -> Database:
        """Underlying store."""
        return self._db

    @property
    def registry(self) -> DataSourceRegistry:
        """Data source registry."""
        return self._registry

    @property
    def scheduler(self) -> SyncScheduler:
        """Job scheduler."""
        return self._scheduler

    def close(self) -> None:
        """Stop the scheduler and release every resource."""
        self._scheduler.stop_all()
        self._registry.close()
        self._db.close()

    # === Data sources ===

    def register_data_source(
        self,
        source: DataSource | dict[str, Any],
        adapter: SourceAdapter | None = None,
    ) -> str:
        """Register and persist a data source.

        Args:
            source: Descriptor, or its dictionary form.
            adapter: Ready-made adapter for the source.

        Returns:
            The source id.

        Raises:
            ConfigurationError: If the descriptor is invalid.
            DuplicateIdError: If the id is taken by a different descriptor.
        """
        if isinstance(source, dict):
            source = DataSource.from_dict(source)
        stored = self._db.get_source(source.id)
        if stored is not None and stored != source:
            raise DuplicateIdError(f"Data source already registered: {source.id}")
        self._registry.register(source, adapter)
        if stored is None:
            self._db.save_source(source)
        return source.id

    def list_data_sources(self) -> list[DataSource]:
        """List persisted data sources."""
        return self._db.list_sources()

    def deactivate_data_source(self, source_id: str) -> None:
        """Deactivate a data source; jobs using it fail with ConfigurationError."""
        if not self._db.deactivate_source(source_id):
            raise ConfigurationError(f"Data source not found: {source_id}")
        if self._registry.contains(source_id):
            self._registry.deactivate(source_id)
        logger.info("Deactivated data source %s", source_id)

    def seed_internal_source(self, url: str) -> None:
        """Register the internal database source unless one exists."""
        if self._db.get_source(INTERNAL_SOURCE_ID) is not None:
            return
        self.register_data_source(
            DataSource(
                id=INTERNAL_SOURCE_ID,
                name="Internal database",
                type=SourceType.DATABASE,
                connection={"url": url},
            )
        )

    # === Jobs ===

    def create_sync_job(
        self,
        name: str,
        source_system: str,
        target_system: str,
        data_type: DataType | str,
        sync_type: SyncType | str,
        frequency_minutes: int,
        config: SyncConfig | dict[str, Any],
    ) -> SyncJob:
        """Create a sync job; it is scheduled right away if the scheduler runs.

        Raises:
            ConfigurationError: If a data source is unknown or the config is invalid.
        """
        try:
            data_type = DataType(data_type)
            sync_type = SyncType(sync_type)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        if isinstance(config, dict):
            config = SyncConfig.from_dict(config)
        self._registry.get(source_system)
        self._registry.get(target_system)

        job = self._db.create_job(
            name=name,
            source_system=source_system,
            target_system=target_system,
            data_type=data_type,
            sync_type=sync_type,
            frequency_minutes=int(frequency_minutes),
            config=config,
        )
        logger.info("Created sync job %s (%s)", job.id, name)
        if self._scheduler.running:
            self._scheduler.schedule(job.id)
        return job

    def execute_sync_job(self, job_id: str) -> SyncResult:
        """Run a job now, waiting for an in-flight run of it to end first.

        Raises:
            JobNotFoundError: If the job is missing or inactive.
            SyncRunError: If the run failed at the system level.
        """
        return self._executor.execute(job_id, wait=True)

    def get_sync_job_status(self, job_id: str) -> JobStatus:
        """Get a job and its recent results.

        Raises:
            JobNotFoundError: If the job does not exist.
        """
        job = self._db.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        recent = self._db.recent_results(job_id, self._recent_results)
        return JobStatus(job=job, recent_results=recent)

    def list_sync_jobs(self) -> list[JobSummary]:
        """List all jobs with their run counts, newest first."""
        return self._db.list_jobs()

    def deactivate_sync_job(self, job_id: str) -> None:
        """Deactivate a job and cancel its timer.

        Raises:
            JobNotFoundError: If the job does not exist.
        """
        if not self._db.deactivate_job(job_id):
            raise JobNotFoundError(job_id)
        self._scheduler.unschedule(job_id)
        logger.info("Deactivated sync job %s", job_id)

    # === Conflicts ===

    def list_conflicts(self, job_id: str, unresolved_only: bool = False) -> list[SyncConflict]:
        """List the conflicts logged by a job."""
        return self._db.list_conflicts(job_id, unresolved_only)

    def resolve_conflict(
        self,
        conflict_id: int,
        resolution: ConflictResolution | str,
    ) -> SyncConflict:
        """Record how a conflict was settled.

        Raises:
            ConfigurationError: If the conflict or the resolution is unknown.
        """
        try:
            resolution = ConflictResolution(resolution)
        except ValueError as e:
            raise ConfigurationError(f"Invalid conflict resolution: {resolution!r}") from e
        return self._db.resolve_conflict(conflict_id, resolution)

    # === Scheduler ===

    def start_scheduler(self) -> int:
        """Schedule all active jobs.

        Returns:
            Number of scheduled jobs.
        """
        return self._scheduler.start_all()

    def stop_scheduler(self) -> None:
        """Cancel all timers."""
        self._scheduler.stop_all()

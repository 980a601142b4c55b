"""Tests for the sync service facade."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from recordsync.core.config import DataSource
from recordsync.core.errors import (
    ConfigurationError,
    DuplicateIdError,
    JobNotFoundError,
    ReadError,
    SyncRunError,
)
from recordsync.core.settings import Settings
from recordsync.core.types import ConflictResolution, DataType, SourceType, SyncStatus
from recordsync.server.database import Database
from recordsync.server.service import INTERNAL_SOURCE_ID, SyncService
from recordsync.sources.registry import DataSourceRegistry
from tests.conftest import MemoryAdapter

CONFIG: dict[str, Any] = {
    "mapping": [
        {"source_field": "id", "target_field": "id"},
        {"source_field": "title", "target_field": "name", "transformation": "trim"},
    ],
    "validation": [{"field": "title", "type": "required"}],
}


@pytest.fixture
def service(db: Database, registry: DataSourceRegistry) -> Iterator[SyncService]:
    """Service over the test database and in-memory sources."""
    svc = SyncService(db, registry=registry)
    yield svc
    svc.stop_scheduler()


def create_job(service: SyncService, **kwargs: Any) -> Any:
    params: dict[str, Any] = {
        "name": "Products to shop",
        "source_system": "source_db",
        "target_system": "target_api",
        "data_type": "products",
        "sync_type": "full",
        "frequency_minutes": 30,
        "config": CONFIG,
    }
    params.update(kwargs)
    return service.create_sync_job(**params)


class TestDataSources:
    """Tests for data source registration."""

    def test_register_persists(self, service: SyncService, db: Database, tmp_path: Path) -> None:
        """Registered sources are stored and usable."""
        source_id = service.register_data_source(
            {"id": "files", "type": "file", "connection": {"path": str(tmp_path)}}
        )

        assert source_id == "files"
        assert db.get_source("files") is not None
        assert service.registry.get("files").type is SourceType.FILE

    def test_register_twice(self, service: SyncService, tmp_path: Path) -> None:
        """Identical registrations are accepted; different ones are not."""
        descriptor = {"id": "files", "type": "file", "connection": {"path": str(tmp_path)}}
        service.register_data_source(descriptor)
        service.register_data_source(descriptor)

        with pytest.raises(DuplicateIdError):
            service.register_data_source({**descriptor, "connection": {"path": "/elsewhere"}})

    def test_sources_loaded_on_start(self, db: Database, tmp_path: Path) -> None:
        """A new service picks up the stored sources."""
        db.save_source(
            DataSource.from_dict({"id": "files", "type": "file", "connection": {"path": str(tmp_path)}})
        )

        service = SyncService(db)

        assert service.registry.contains("files")

    def test_deactivate(self, service: SyncService, db: Database, tmp_path: Path) -> None:
        """Deactivated sources are kept but unusable."""
        service.register_data_source(
            {"id": "files", "type": "file", "connection": {"path": str(tmp_path)}}
        )

        service.deactivate_data_source("files")

        assert not db.get_source("files").is_active  # type: ignore[union-attr]
        with pytest.raises(ConfigurationError):
            service.registry.get("files")
        with pytest.raises(ConfigurationError):
            service.deactivate_data_source("missing")

    def test_seed_internal_source(self, service: SyncService, tmp_path: Path) -> None:
        """The internal database source is seeded once."""
        url = f"sqlite:///{tmp_path / 'internal.db'}"

        service.seed_internal_source(url)
        service.seed_internal_source("sqlite:///other.db")

        source = service.registry.get(INTERNAL_SOURCE_ID)
        assert source.type is SourceType.DATABASE
        assert source.connection == {"url": url}


class TestJobs:
    """Tests for job creation, runs and status."""

    def test_create_job(self, service: SyncService) -> None:
        """Jobs are created active with parsed enums."""
        job = create_job(service)

        assert job.id.startswith("sync_")
        assert job.data_type_enum is DataType.PRODUCTS
        assert job.is_active
        assert not service.scheduler.is_scheduled(job.id)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"source_system": "unknown"},
            {"target_system": "unknown"},
            {"data_type": "invoices"},
            {"sync_type": "sometimes"},
            {"frequency_minutes": 0},
            {"config": {"mapping": [{"source_field": "a"}]}},
        ],
    )
    def test_invalid_job(self, service: SyncService, kwargs: dict[str, Any]) -> None:
        """Invalid jobs are rejected before anything is stored."""
        with pytest.raises(ConfigurationError):
            create_job(service, **kwargs)
        assert service.list_sync_jobs() == []

    def test_create_while_scheduler_runs(self, service: SyncService) -> None:
        """Jobs created while the scheduler runs are armed right away."""
        service.start_scheduler()

        job = create_job(service)

        assert service.scheduler.is_scheduled(job.id)

    def test_execute_and_status(
        self, service: SyncService, source: MemoryAdapter, target: MemoryAdapter
    ) -> None:
        """Runs are recorded in the job status, newest first."""
        source.records = [{"id": 1, "title": " A "}, {"id": 2, "title": ""}]
        job = create_job(service)

        first = service.execute_sync_job(job.id)
        source.records = [{"id": 1, "title": "A"}]
        second = service.execute_sync_job(job.id)

        assert first.status is SyncStatus.PARTIAL
        assert second.status is SyncStatus.SUCCESS
        assert target.store[1] == {"id": 1, "name": "A"}

        status = service.get_sync_job_status(job.id)
        assert [r.log_id for r in status.recent_results] == [second.log_id, first.log_id]
        assert status.job.last_sync is not None
        assert status.to_dict()["recent_results"][0]["status"] == "success"

    def test_recent_results_limit(self, db: Database, registry: DataSourceRegistry) -> None:
        """Status returns at most the configured number of results."""
        service = SyncService(db, registry=registry, recent_results=2)
        job = create_job(service)
        for _ in range(3):
            service.execute_sync_job(job.id)

        assert len(service.get_sync_job_status(job.id).recent_results) == 2

    def test_system_failure_propagates(self, service: SyncService, source: MemoryAdapter) -> None:
        """System-level failures reach the caller with the stored result."""
        source.read_error = ReadError("down", "source_db")
        job = create_job(service)

        with pytest.raises(SyncRunError) as exc_info:
            service.execute_sync_job(job.id)

        status = service.get_sync_job_status(job.id)
        assert status.recent_results == [exc_info.value.result]

    def test_unknown_job(self, service: SyncService) -> None:
        """Unknown jobs raise JobNotFoundError."""
        with pytest.raises(JobNotFoundError):
            service.get_sync_job_status("missing")
        with pytest.raises(JobNotFoundError):
            service.execute_sync_job("missing")
        with pytest.raises(JobNotFoundError):
            service.deactivate_sync_job("missing")

    def test_deactivate_job(self, service: SyncService) -> None:
        """Deactivated jobs lose their timer and cannot run."""
        service.start_scheduler()
        job = create_job(service)

        service.deactivate_sync_job(job.id)

        assert not service.scheduler.is_scheduled(job.id)
        with pytest.raises(JobNotFoundError):
            service.execute_sync_job(job.id)
        assert service.get_sync_job_status(job.id).job.is_active is False

    def test_list_jobs(self, service: SyncService) -> None:
        """Jobs are listed with their run counts."""
        job = create_job(service)
        service.execute_sync_job(job.id)

        summaries = service.list_sync_jobs()

        assert [(s.job.id, s.total_runs) for s in summaries] == [(job.id, 1)]


class TestConflicts:
    """Tests for conflict listing and resolution."""

    def test_resolve(
        self, service: SyncService, source: MemoryAdapter, target: MemoryAdapter
    ) -> None:
        """Logged conflicts can be resolved by id."""
        target.store[1] = {"id": 1, "name": "Old"}
        source.records = [{"id": 1, "title": "New"}]
        job = create_job(service)
        service.execute_sync_job(job.id)

        [conflict] = service.list_conflicts(job.id)
        resolved = service.resolve_conflict(conflict.id, "target_wins")  # type: ignore[arg-type]

        assert resolved.resolution is ConflictResolution.TARGET_WINS
        assert service.list_conflicts(job.id, unresolved_only=True) == []

    def test_invalid_resolution(self, service: SyncService) -> None:
        """Unknown resolutions and conflict ids are rejected."""
        with pytest.raises(ConfigurationError):
            service.resolve_conflict(1, "coin_flip")
        with pytest.raises(ConfigurationError):
            service.resolve_conflict(1, ConflictResolution.MANUAL)


class TestFromSettings:
    """Tests for building the service from settings."""

    def test_from_settings(self, tmp_path: Path) -> None:
        """Settings choose the store and seed the internal source."""
        settings = Settings(
            db_path=tmp_path / "sync.db",
            internal_db_url=f"sqlite:///{tmp_path / 'internal.db'}",
        )

        service = SyncService.from_settings(settings)
        try:
            assert service.db.path == tmp_path / "sync.db"
            assert service.registry.contains(INTERNAL_SOURCE_ID)
        finally:
            service.close()

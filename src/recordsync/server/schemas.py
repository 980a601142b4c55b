"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from recordsync.core.config import DataSource
from recordsync.server.database import JobSummary
from recordsync.server.models import SyncJob, as_utc
from recordsync.sync.results import SyncConflict, SyncError, SyncResult

# === Data source schemas ===


class SourceCreateRequest(BaseModel):
    """Request body for data source registration."""

    id: str
    name: str | None = None
    type: str
    connection: dict[str, Any] = Field(default_factory=dict)
    schema_: dict[str, Any] = Field(default_factory=dict, alias="schema")
    is_active: bool = True

    model_config = {"populate_by_name": True}

    def to_descriptor_dict(self) -> dict[str, Any]:
        """Convert to the dictionary accepted by DataSource.from_dict()."""
        return {
            "id": self.id,
            "name": self.name or self.id,
            "type": self.type,
            "connection": self.connection,
            "schema": self.schema_,
            "is_active": self.is_active,
        }


class SourceResponse(BaseModel):
    """Data source in responses; connection secrets are not returned."""

    id: str
    name: str
    type: str
    is_active: bool
    table_name: str | None
    endpoint: str | None


# === Job schemas ===


class JobCreateRequest(BaseModel):
    """Request body for sync job creation."""

    name: str
    source_system: str
    target_system: str
    data_type: str
    sync_type: str = "full"
    frequency_minutes: int = Field(gt=0)
    config: dict[str, Any] = Field(default_factory=dict)


class JobResponse(BaseModel):
    """Sync job in responses."""

    id: str
    name: str
    source_system: str
    target_system: str
    data_type: str
    sync_type: str
    frequency_minutes: int
    last_sync_at: str | None
    next_sync_at: str
    is_active: bool
    config: dict[str, Any]


class JobSummaryResponse(JobResponse):
    """Sync job with aggregate run counts."""

    total_runs: int
    last_completed: str | None


class SyncErrorResponse(BaseModel):
    """One error of a sync result."""

    record_id: str
    field: str | None
    error: str
    error_code: str
    severity: str


class SyncResultResponse(BaseModel):
    """Outcome of one run."""

    log_id: int | None
    job_id: str
    status: str
    records_processed: int
    records_success: int
    records_error: int
    errors: list[SyncErrorResponse]
    duration_seconds: float
    start_time: str
    end_time: str


class JobStatusResponse(BaseModel):
    """Job with its most recent results."""

    job: JobResponse
    recent_results: list[SyncResultResponse]


# === Conflict schemas ===


class ConflictResponse(BaseModel):
    """Logged conflict in responses."""

    id: int | None
    job_id: str
    record_id: str
    field_name: str
    source_value: str | None
    target_value: str | None
    conflict_type: str
    resolution: str | None
    resolved_at: str | None
    created_at: str | None


class ConflictResolveRequest(BaseModel):
    """Request body for conflict resolution."""

    resolution: str


# === Health schema ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    scheduler_running: bool
    scheduled_jobs: int


# === Converters ===


def source_to_response(source: DataSource) -> SourceResponse:
    """Convert DataSource to response model."""
    return SourceResponse(
        id=source.id,
        name=source.name,
        type=source.type.value,
        is_active=source.is_active,
        table_name=source.schema.table_name,
        endpoint=source.schema.endpoint,
    )


def job_to_response(job: SyncJob) -> JobResponse:
    """Convert SyncJob to response model."""
    return JobResponse(
        id=job.id,
        name=job.name,
        source_system=job.source_system,
        target_system=job.target_system,
        data_type=job.data_type,
        sync_type=job.sync_type,
        frequency_minutes=job.frequency_minutes,
        last_sync_at=as_utc(job.last_sync).isoformat() if job.last_sync else None,
        next_sync_at=as_utc(job.next_sync).isoformat(),
        is_active=job.is_active,
        config=job.config,
    )


def summary_to_response(summary: JobSummary) -> JobSummaryResponse:
    """Convert JobSummary to response model."""
    return JobSummaryResponse(
        **job_to_response(summary.job).model_dump(),
        total_runs=summary.total_runs,
        last_completed=summary.last_completed.isoformat() if summary.last_completed else None,
    )


def error_to_response(error: SyncError) -> SyncErrorResponse:
    """Convert SyncError to response model."""
    return SyncErrorResponse(**error.to_dict())


def result_to_response(result: SyncResult) -> SyncResultResponse:
    """Convert SyncResult to response model."""
    return SyncResultResponse(
        log_id=result.log_id,
        job_id=result.job_id,
        status=result.status.value,
        records_processed=result.records_processed,
        records_success=result.records_success,
        records_error=result.records_error,
        errors=[error_to_response(e) for e in result.errors],
        duration_seconds=result.duration_seconds,
        start_time=result.start_time.isoformat(),
        end_time=result.end_time.isoformat(),
    )


def _text(value: Any) -> str | None:
    return None if value is None else str(value)


def conflict_to_response(conflict: SyncConflict) -> ConflictResponse:
    """Convert SyncConflict to response model."""
    return ConflictResponse(
        id=conflict.id,
        job_id=conflict.job_id,
        record_id=conflict.record_id,
        field_name=conflict.field_name,
        source_value=_text(conflict.source_value),
        target_value=_text(conflict.target_value),
        conflict_type=conflict.conflict_type.value,
        resolution=conflict.resolution.value if conflict.resolution else None,
        resolved_at=conflict.resolved_at.isoformat() if conflict.resolved_at else None,
        created_at=conflict.created_at.isoformat() if conflict.created_at else None,
    )

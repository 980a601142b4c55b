"""SQLAlchemy models for the recordsync store.

This module defines the four sync tables using SQLAlchemy ORM. Logs and
conflicts reference sync_jobs.id by value only; deleting a job keeps its
history.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from recordsync.core.config import DataSchema, DataSource, SyncConfig
from recordsync.core.types import (
    ConflictResolution,
    ConflictType,
    DataType,
    SourceType,
    SyncStatus,
    SyncType,
)
from recordsync.sync.results import SyncConflict, SyncError, SyncResult


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


class SyncJob(Base):
    """A schedulable data movement between two data sources."""

    __tablename__ = "sync_jobs"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    source_system: Mapped[str] = mapped_column(String(100), nullable=False)
    target_system: Mapped[str] = mapped_column(String(100), nullable=False)
    data_type: Mapped[str] = mapped_column(String(50), nullable=False)
    sync_type: Mapped[str] = mapped_column(String(20), nullable=False)
    frequency_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    last_sync: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    next_sync: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Indexes
    __table_args__ = (
        Index("idx_sync_jobs_next_sync", "next_sync"),
        Index("idx_sync_jobs_active", "is_active"),
    )

    @property
    def sync_config(self) -> SyncConfig:
        """Parsed job configuration."""
        return SyncConfig.from_dict(self.config)

    @property
    def data_type_enum(self) -> DataType:
        """Data type as an enum."""
        return DataType(self.data_type)

    @property
    def frequency(self) -> timedelta:
        """Interval between two scheduled runs."""
        return timedelta(minutes=self.frequency_minutes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "source_system": self.source_system,
            "target_system": self.target_system,
            "data_type": self.data_type,
            "sync_type": SyncType(self.sync_type).value,
            "frequency_minutes": self.frequency_minutes,
            "last_sync_at": as_utc(self.last_sync).isoformat() if self.last_sync else None,
            "next_sync_at": as_utc(self.next_sync).isoformat(),
            "is_active": self.is_active,
            "config": self.config,
        }


class SyncLog(Base):
    """Stored outcome of one executor run."""

    __tablename__ = "sync_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    records_processed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    records_success: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    records_error: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errors: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    duration_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Indexes
    __table_args__ = (
        Index("idx_sync_logs_job_id", "job_id"),
        Index("idx_sync_logs_started_at", "started_at"),
    )

    @property
    def is_finished(self) -> bool:
        """Check if the run has been finalized."""
        return self.completed_at is not None

    def to_result(self) -> SyncResult:
        """Convert a finished log row to a SyncResult."""
        started = as_utc(self.started_at)
        return SyncResult(
            job_id=self.job_id,
            status=SyncStatus(self.status),
            records_processed=self.records_processed,
            records_success=self.records_success,
            records_error=self.records_error,
            errors=tuple(SyncError.from_dict(e) for e in self.errors or []),
            duration_seconds=self.duration_seconds or 0.0,
            start_time=started,
            end_time=as_utc(self.completed_at) if self.completed_at else started,
            log_id=self.id,
        )


class DataSourceRecord(Base):
    """A registered data source descriptor."""

    __tablename__ = "data_sources"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    connection_config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    schema_config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def to_descriptor(self) -> DataSource:
        """Convert to a DataSource descriptor."""
        return DataSource(
            id=self.id,
            name=self.name,
            type=SourceType(self.type),
            connection=dict(self.connection_config),
            schema=DataSchema.from_dict(self.schema_config),
            is_active=self.is_active,
        )


def _to_text(value: Any) -> str | None:
    """Serialize a conflicting value for a TEXT column.

    Database targets hand back NUMERIC columns as Decimal; those keep their
    exact digits ("18.50").
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return json.dumps(value, default=str)


class ConflictLog(Base):
    """A detected conflict between an incoming and a stored field value."""

    __tablename__ = "sync_conflicts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[str] = mapped_column(String(255), nullable=False)
    record_id: Mapped[str] = mapped_column(String(255), nullable=False)
    field_name: Mapped[str] = mapped_column(String(100), nullable=False)
    source_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    conflict_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resolution: Mapped[str | None] = mapped_column(String(50), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Indexes
    __table_args__ = (Index("idx_sync_conflicts_job_id", "job_id"),)

    @classmethod
    def from_conflict(cls, conflict: SyncConflict) -> ConflictLog:
        """Create a row from a detected conflict."""
        return cls(
            job_id=conflict.job_id,
            record_id=conflict.record_id,
            field_name=conflict.field_name,
            source_value=_to_text(conflict.source_value),
            target_value=_to_text(conflict.target_value),
            conflict_type=conflict.conflict_type.value,
            resolution=conflict.resolution.value if conflict.resolution else None,
        )

    def to_conflict(self) -> SyncConflict:
        """Convert to a SyncConflict.

        The store keeps values as text, so source_value and target_value come
        back as strings (12.5 -> "12.5", True -> "true", dates in ISO form).
        """
        return SyncConflict(
            job_id=self.job_id,
            record_id=self.record_id,
            field_name=self.field_name,
            source_value=self.source_value,
            target_value=self.target_value,
            conflict_type=ConflictType(self.conflict_type),
            resolution=ConflictResolution(self.resolution) if self.resolution else None,
            resolved_at=as_utc(self.resolved_at) if self.resolved_at else None,
            id=self.id,
            created_at=as_utc(self.created_at),
        )

"""Outcome records produced by the sync engine.

This module provides:
- SyncError: one record-level or run-level failure
- SyncResult: the immutable outcome of one executor run
- SyncConflict: a field whose target value disagrees with the incoming one
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from recordsync.core.types import (
    ALL_RECORDS,
    ConflictResolution,
    ConflictType,
    ErrorCode,
    Severity,
    SyncStatus,
    Value,
)


@dataclass(frozen=True)
class SyncError:
    """A failure recorded in a SyncResult.

    record_id is "ALL" when the failure concerns the whole run.
    """

    record_id: str
    error: str
    error_code: ErrorCode
    severity: Severity
    field: str | None = None

    @classmethod
    def critical(cls, message: str) -> SyncError:
        """Build the single run-level error of a system failure."""
        return cls(
            record_id=ALL_RECORDS,
            error=message,
            error_code=ErrorCode.SYNC_FAILED,
            severity=Severity.CRITICAL,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncError:
        """Create from a stored dictionary."""
        return cls(
            record_id=str(data["record_id"]),
            error=data["error"],
            error_code=ErrorCode(data["error_code"]),
            severity=Severity(data["severity"]),
            field=data.get("field"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "record_id": self.record_id,
            "field": self.field,
            "error": self.error,
            "error_code": self.error_code.value,
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one executor run.

    Invariants:
        records_success + records_error <= records_processed
        status is SUCCESS exactly when records_error == 0
    """

    job_id: str
    status: SyncStatus
    records_processed: int
    records_success: int
    records_error: int
    errors: tuple[SyncError, ...]
    duration_seconds: float
    start_time: datetime
    end_time: datetime
    log_id: int | None = None

    @property
    def warnings(self) -> list[SyncError]:
        """Errors that did not affect the counts."""
        return [e for e in self.errors if e.severity is Severity.WARNING]

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "log_id": self.log_id,
            "job_id": self.job_id,
            "status": self.status.value,
            "records_processed": self.records_processed,
            "records_success": self.records_success,
            "records_error": self.records_error,
            "errors": [e.to_dict() for e in self.errors],
            "duration_seconds": self.duration_seconds,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
        }


def compute_status(processed: int, success: int, errors: int) -> SyncStatus:
    """Derive the final status of a run that read its source to the end.

    Args:
        processed: Records read from the source.
        success: Records written to the target.
        errors: Records that failed validation or processing.

    Returns:
        SUCCESS if nothing failed, PARTIAL if some records made it, ERROR otherwise.
    """
    if errors == 0:
        return SyncStatus.SUCCESS
    if success > 0:
        return SyncStatus.PARTIAL
    return SyncStatus.ERROR


@dataclass
class SyncConflict:
    """A target field that already holds a different value.

    Created during a run; resolution and resolved_at are set later by an
    operator or a policy, independently of the run's SyncResult.

    Conflicts read back from the store hold the text form of both values,
    which is what the conflict log and its API expose.
    """

    job_id: str
    record_id: str
    field_name: str
    source_value: Value
    target_value: Value
    conflict_type: ConflictType = ConflictType.VALUE_MISMATCH
    resolution: ConflictResolution | None = None
    resolved_at: datetime | None = None
    id: int | None = None
    created_at: datetime | None = field(default=None, compare=False)

    @property
    def is_resolved(self) -> bool:
        """Check if the conflict has been settled."""
        return self.resolution is not None

"""Sync engine - transformation, validation, conflicts and execution."""

from recordsync.sync.results import SyncConflict, SyncError, SyncResult, compute_status
from recordsync.sync.transform import TransformRegistry, transform_record
from recordsync.sync.validation import RecordValidator, ValidationFailure, validate_record

__all__ = [
    "RecordValidator",
    "SyncConflict",
    "SyncError",
    "SyncResult",
    "TransformRegistry",
    "ValidationFailure",
    "compute_status",
    "transform_record",
    "validate_record",
]

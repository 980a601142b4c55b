"""Exception hierarchy for recordsync.

Configuration errors are raised before any I/O happens. Data source errors
wrap the transport or storage failure that caused them. SyncRunError is what
an on-demand caller sees when a run fails at the system level.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from recordsync.sync.results import SyncResult


class SyncEngineError(Exception):
    """Base exception for all recordsync errors."""


class ConfigurationError(SyncEngineError):
    """Invalid job, config or data source reference."""


class DuplicateIdError(ConfigurationError):
    """A data source with this id is already registered."""


class JobNotFoundError(ConfigurationError):
    """Sync job does not exist or is inactive."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Sync job not found or inactive: {job_id}")


class JobBusyError(SyncEngineError):
    """A run of the same job is already in flight."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Sync job already running: {job_id}")


class DataSourceError(SyncEngineError):
    """Base exception for adapter failures.

    Carries the source id so callers can tell which system failed.
    """

    def __init__(self, message: str, source_id: str = "") -> None:
        self.source_id = source_id
        super().__init__(message)


class ReadError(DataSourceError):
    """Reading from a data source failed."""


class WriteError(DataSourceError):
    """Writing to a data source failed."""


class SyncRunError(SyncEngineError):
    """A run failed at the system level.

    The persisted error result is attached; the original exception is the cause.
    """

    def __init__(self, message: str, result: SyncResult) -> None:
        self.result = result
        super().__init__(message)


class TransformError(ValueError):
    """A transformation rule could not convert a value."""

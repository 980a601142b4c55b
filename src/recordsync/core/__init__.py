"""Core module - Shared types, configuration and errors."""

from recordsync.core.config import (
    DataSchema,
    DataSource,
    DataTransformation,
    ErrorHandlingConfig,
    FieldMapping,
    SchemaField,
    SyncConfig,
    SyncFilter,
    ValidationRule,
)
from recordsync.core.errors import (
    ConfigurationError,
    DataSourceError,
    DuplicateIdError,
    JobBusyError,
    JobNotFoundError,
    ReadError,
    SyncEngineError,
    SyncRunError,
    TransformError,
    WriteError,
)
from recordsync.core.types import (
    ALL_RECORDS,
    DataType,
    ErrorCode,
    Record,
    Severity,
    SourceType,
    SyncStatus,
    SyncType,
    Value,
)

__all__ = [
    # Config
    "DataSchema",
    "DataSource",
    "DataTransformation",
    "ErrorHandlingConfig",
    "FieldMapping",
    "SchemaField",
    "SyncConfig",
    "SyncFilter",
    "ValidationRule",
    # Errors
    "ConfigurationError",
    "DataSourceError",
    "DuplicateIdError",
    "JobBusyError",
    "JobNotFoundError",
    "ReadError",
    "SyncEngineError",
    "SyncRunError",
    "TransformError",
    "WriteError",
    # Types
    "ALL_RECORDS",
    "DataType",
    "ErrorCode",
    "Record",
    "Severity",
    "SourceType",
    "SyncStatus",
    "SyncType",
    "Value",
]

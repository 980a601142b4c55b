"""Shared types for recordsync.

This module defines the enums and value aliases used by the sources,
the sync engine and the server.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import TypeAlias

# A single field value flowing through transform/validate.
Value: TypeAlias = str | int | float | bool | date | datetime | None

# A record is a flat mapping of field name to value.
Record: TypeAlias = dict[str, Value]

# Record id used for errors that concern the whole run.
ALL_RECORDS = "ALL"


class DataType(str, Enum):
    """Kind of business data a job moves."""

    PRODUCTS = "products"
    ORDERS = "orders"
    CUSTOMERS = "customers"
    INVENTORY = "inventory"
    PRICING = "pricing"


class SyncType(str, Enum):
    """How much data a job pulls on each run."""

    FULL = "full"
    INCREMENTAL = "incremental"
    REAL_TIME = "real_time"


class SyncStatus(str, Enum):
    """Status of one executor run.

    PENDING and RUNNING only appear on log rows of unfinished runs.
    """

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


class ErrorCode(str, Enum):
    """Classification of a SyncError."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    PROCESSING_FAILED = "PROCESSING_FAILED"
    SYNC_FAILED = "SYNC_FAILED"
    UNKNOWN_RULE = "UNKNOWN_RULE"


class Severity(str, Enum):
    """Severity of a SyncError."""

    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class SourceType(str, Enum):
    """Transport behind a DataSource."""

    DATABASE = "database"
    API = "api"
    FILE = "file"
    WEBHOOK = "webhook"


class FilterOperator(str, Enum):
    """Comparison applied by a SyncFilter."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    IN = "in"


class TransformationType(str, Enum):
    """Category of a post-mapping DataTransformation."""

    FORMAT = "format"
    CALCULATE = "calculate"
    LOOKUP = "lookup"
    CONDITIONAL = "conditional"


class ValidationType(str, Enum):
    """Kind of ValidationRule."""

    REQUIRED = "required"
    FORMAT = "format"
    RANGE = "range"
    UNIQUE = "unique"
    CUSTOM = "custom"


class OnError(str, Enum):
    """What a record-level error does to the rest of the run."""

    SKIP = "skip"
    RETRY = "retry"
    FAIL = "fail"


class ConflictResolution(str, Enum):
    """How a logged conflict was settled."""

    SOURCE_WINS = "source_wins"
    TARGET_WINS = "target_wins"
    MANUAL = "manual"


class ConflictType(str, Enum):
    """Why a field was flagged as conflicting."""

    VALUE_MISMATCH = "value_mismatch"
    TYPE_MISMATCH = "type_mismatch"

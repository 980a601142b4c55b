"""Job and data source configuration.

This module provides:
- FieldMapping, SyncFilter, DataTransformation, ErrorHandlingConfig,
  ValidationRule: the parts of a job's SyncConfig
- SyncConfig: the immutable configuration owned by one SyncJob
- SchemaField, DataSchema, DataSource: data source descriptors

Every class round-trips through plain JSON-compatible dicts with
from_dict()/to_dict(). Keys are snake_case; the camelCase spelling used by
older exported configs is accepted on input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from recordsync.core.errors import ConfigurationError
from recordsync.core.types import (
    FilterOperator,
    OnError,
    SourceType,
    TransformationType,
    Value,
    ValidationType,
)

_RANGE_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*-\s*(-?\d+(?:\.\d+)?)\s*$")

_MISSING = object()
_REQUIRED = object()


def _get(data: dict[str, Any], key: str, default: Any = _REQUIRED) -> Any:
    """Read a key in snake_case or its camelCase spelling."""
    if key in data:
        return data[key]
    head, *rest = key.split("_")
    camel = head + "".join(part.title() for part in rest)
    if camel in data:
        return data[camel]
    if default is _REQUIRED:
        raise ConfigurationError(f"Missing config key: {key}")
    return default


def _enum(enum_cls: type, value: Any, what: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid {what}: {value!r}") from e


def parse_range(rule: str) -> tuple[float, float]:
    """Parse a "min-max" range rule.

    Args:
        rule: Range expression, e.g. "0-100" or "-5-5.5".

    Returns:
        Tuple of (min, max).

    Raises:
        ConfigurationError: If the rule is malformed or min > max.
    """
    match = _RANGE_RE.match(rule)
    if not match:
        raise ConfigurationError(f"Invalid range rule: {rule!r}")
    low, high = float(match.group(1)), float(match.group(2))
    if low > high:
        raise ConfigurationError(f"Invalid range rule (min > max): {rule!r}")
    return low, high


@dataclass(frozen=True)
class FieldMapping:
    """Translate one source field into one target field."""

    source_field: str
    target_field: str
    transformation: str | None = None
    required: bool = False
    default_value: Value = None
    has_default: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldMapping:
        """Create from a config dictionary."""
        default = _get(data, "default_value", _MISSING)
        return cls(
            source_field=_get(data, "source_field"),
            target_field=_get(data, "target_field"),
            transformation=_get(data, "transformation", None),
            required=bool(_get(data, "required", False)),
            default_value=None if default is _MISSING else default,
            has_default=default is not _MISSING,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a config dictionary."""
        data: dict[str, Any] = {
            "source_field": self.source_field,
            "target_field": self.target_field,
            "transformation": self.transformation,
            "required": self.required,
        }
        if self.has_default:
            data["default_value"] = self.default_value
        return data


@dataclass(frozen=True)
class SyncFilter:
    """Predicate applied when pulling source records."""

    field: str
    operator: FilterOperator
    value: Any

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncFilter:
        """Create from a config dictionary."""
        operator = _enum(FilterOperator, _get(data, "operator"), "filter operator")
        value = _get(data, "value")
        if operator is FilterOperator.IN and not isinstance(value, list):
            raise ConfigurationError(f"Filter on {data.get('field')!r}: 'in' needs a list")
        return cls(field=_get(data, "field"), operator=operator, value=value)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a config dictionary."""
        return {"field": self.field, "operator": self.operator.value, "value": self.value}

    def matches(self, record: dict[str, Any]) -> bool:
        """Check whether a record satisfies this filter.

        Used by adapters that cannot push the filter down to the source.
        """
        actual = record.get(self.field)
        op = self.operator
        if op is FilterOperator.EQUALS:
            return bool(actual == self.value)
        if op is FilterOperator.NOT_EQUALS:
            return bool(actual != self.value)
        if op is FilterOperator.IN:
            return actual in self.value
        if op is FilterOperator.CONTAINS:
            if actual is None:
                return False
            return str(self.value).lower() in str(actual).lower()
        if actual is None:
            return False
        try:
            if op is FilterOperator.GREATER_THAN:
                return bool(actual > self.value)
            return bool(actual < self.value)
        except TypeError:
            return False


@dataclass(frozen=True)
class DataTransformation:
    """Post-mapping transformation applied to a target field."""

    field: str
    type: TransformationType
    rule: str
    parameters: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DataTransformation:
        """Create from a config dictionary."""
        return cls(
            field=_get(data, "field"),
            type=_enum(TransformationType, _get(data, "type"), "transformation type"),
            rule=_get(data, "rule"),
            parameters=dict(_get(data, "parameters", None) or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a config dictionary."""
        return {
            "field": self.field,
            "type": self.type.value,
            "rule": self.rule,
            "parameters": dict(self.parameters),
        }


@dataclass(frozen=True)
class ErrorHandlingConfig:
    """What to do when a record fails."""

    on_error: OnError = OnError.SKIP
    max_retries: int = 3
    retry_delay_seconds: float = 5.0
    notify_on_error: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ErrorHandlingConfig:
        """Create from a config dictionary."""
        max_retries = int(_get(data, "max_retries", 3))
        delay = _get(data, "retry_delay_seconds", _MISSING)
        if delay is _MISSING:
            delay = _get(data, "retry_delay", 5.0)
        if max_retries < 0 or float(delay) < 0:
            raise ConfigurationError("max_retries and retry_delay_seconds must be >= 0")
        return cls(
            on_error=_enum(OnError, _get(data, "on_error", "skip"), "on_error policy"),
            max_retries=max_retries,
            retry_delay_seconds=float(delay),
            notify_on_error=bool(_get(data, "notify_on_error", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a config dictionary."""
        return {
            "on_error": self.on_error.value,
            "max_retries": self.max_retries,
            "retry_delay_seconds": self.retry_delay_seconds,
            "notify_on_error": self.notify_on_error,
        }


@dataclass(frozen=True)
class ValidationRule:
    """Check applied to a raw source record before transformation."""

    field: str
    type: ValidationType
    rule: str = ""
    message: str = ""

    def __post_init__(self) -> None:
        """Reject malformed format and range rules up front."""
        if self.type is ValidationType.FORMAT:
            try:
                re.compile(self.rule)
            except re.error as e:
                raise ConfigurationError(f"Invalid format rule for {self.field!r}: {e}") from e
        elif self.type is ValidationType.RANGE:
            parse_range(self.rule)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidationRule:
        """Create from a config dictionary."""
        return cls(
            field=_get(data, "field"),
            type=_enum(ValidationType, _get(data, "type"), "validation type"),
            rule=str(_get(data, "rule", "") or ""),
            message=str(_get(data, "message", "") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a config dictionary."""
        return {
            "field": self.field,
            "type": self.type.value,
            "rule": self.rule,
            "message": self.message,
        }


@dataclass(frozen=True)
class SyncConfig:
    """Configuration owned by a single SyncJob.

    Attributes:
        mapping: Field mappings, applied in order.
        filters: Filters pushed to the source read.
        transformations: Post-mapping transformations, applied in order.
        error_handling: Record-level error policy.
        validation: Rules checked against the raw record.
        key_field: Target field identifying a record for upserts and conflicts.
    """

    mapping: tuple[FieldMapping, ...] = ()
    filters: tuple[SyncFilter, ...] = ()
    transformations: tuple[DataTransformation, ...] = ()
    error_handling: ErrorHandlingConfig = field(default_factory=ErrorHandlingConfig)
    validation: tuple[ValidationRule, ...] = ()
    key_field: str = "id"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncConfig:
        """Create from a config dictionary.

        Raises:
            ConfigurationError: If any part of the config is invalid.
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Sync config must be an object")
        try:
            return cls(
                mapping=tuple(FieldMapping.from_dict(m) for m in _get(data, "mapping", [])),
                filters=tuple(SyncFilter.from_dict(f) for f in _get(data, "filters", [])),
                transformations=tuple(
                    DataTransformation.from_dict(t) for t in _get(data, "transformations", [])
                ),
                error_handling=ErrorHandlingConfig.from_dict(
                    _get(data, "error_handling", None) or {}
                ),
                validation=tuple(
                    ValidationRule.from_dict(v) for v in _get(data, "validation", [])
                ),
                key_field=str(_get(data, "key_field", "id")),
            )
        except (TypeError, AttributeError, ValueError) as e:
            raise ConfigurationError(f"Invalid sync config: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to a config dictionary."""
        return {
            "mapping": [m.to_dict() for m in self.mapping],
            "filters": [f.to_dict() for f in self.filters],
            "transformations": [t.to_dict() for t in self.transformations],
            "error_handling": self.error_handling.to_dict(),
            "validation": [v.to_dict() for v in self.validation],
            "key_field": self.key_field,
        }


@dataclass(frozen=True)
class SchemaField:
    """One field of a data source schema."""

    name: str
    type: str = "string"
    required: bool = False
    max_length: int | None = None
    format: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SchemaField:
        """Create from a config dictionary."""
        return cls(
            name=_get(data, "name"),
            type=_get(data, "type", "string"),
            required=bool(_get(data, "required", False)),
            max_length=_get(data, "max_length", None),
            format=_get(data, "format", None),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a config dictionary."""
        return {
            "name": self.name,
            "type": self.type,
            "required": self.required,
            "max_length": self.max_length,
            "format": self.format,
        }


@dataclass(frozen=True)
class DataSchema:
    """Shape of the data exposed by a data source."""

    table_name: str | None = None
    endpoint: str | None = None
    fields: tuple[SchemaField, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DataSchema:
        """Create from a config dictionary."""
        fields = tuple(SchemaField.from_dict(f) for f in _get(data, "fields", []))
        names = [f.name for f in fields]
        if len(names) != len(set(names)):
            raise ConfigurationError("Schema field names must be unique")
        return cls(
            table_name=_get(data, "table_name", None),
            endpoint=_get(data, "endpoint", None),
            fields=fields,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a config dictionary."""
        return {
            "table_name": self.table_name,
            "endpoint": self.endpoint,
            "fields": [f.to_dict() for f in self.fields],
        }


@dataclass(frozen=True)
class DataSource:
    """A registered system records are read from or written to.

    The connection dict is opaque to the engine; only the adapter for the
    source type interprets it.
    """

    id: str
    name: str
    type: SourceType
    connection: dict[str, Any] = field(default_factory=dict)
    schema: DataSchema = field(default_factory=DataSchema)
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DataSource:
        """Create from a descriptor dictionary."""
        source_id = str(_get(data, "id")).strip()
        if not source_id:
            raise ConfigurationError("Data source id must not be empty")
        return cls(
            id=source_id,
            name=str(_get(data, "name", source_id)),
            type=_enum(SourceType, _get(data, "type"), "data source type"),
            connection=dict(_get(data, "connection", None) or {}),
            schema=DataSchema.from_dict(_get(data, "schema", None) or {}),
            is_active=bool(_get(data, "is_active", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a descriptor dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "connection": dict(self.connection),
            "schema": self.schema.to_dict(),
            "is_active": self.is_active,
        }

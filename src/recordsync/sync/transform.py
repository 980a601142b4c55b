"""Transformation engine.

Turns one raw source record into one target-shaped record according to a
SyncConfig. Rules are looked up by name in a TransformRegistry; names that
are not registered leave the value unchanged so a typo in a scheduled job's
config never halts the batch. The executor reports such names as warnings.

transform_record() is a pure function of (record, config, registry).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from recordsync.core.config import SyncConfig
from recordsync.core.errors import TransformError
from recordsync.core.types import Record, Value

# A rule receives the current value and the rule parameters.
TransformFunc = Callable[[Value, dict[str, Any]], Value]


class TransformRegistry:
    """Registry mapping rule names to transformation functions.

    Example:
        registry = TransformRegistry.with_builtins()
        registry.register("slugify", lambda v, p: str(v).lower().replace(" ", "-"))
        registry.apply("slugify", "Nike Air", {})
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._rules: dict[str, TransformFunc] = {}

    @classmethod
    def with_builtins(cls) -> TransformRegistry:
        """Create a registry holding all built-in rules."""
        registry = cls()
        for name, func in BUILTIN_RULES.items():
            registry.register(name, func)
        return registry

    def register(self, name: str, func: TransformFunc) -> None:
        """Register (or replace) a rule.

        Args:
            name: Rule name referenced by configs.
            func: Pure function (value, parameters) -> value.
        """
        self._rules[name] = func

    def is_registered(self, name: str) -> bool:
        """Check if a rule name is known."""
        return name in self._rules

    def names(self) -> list[str]:
        """List registered rule names."""
        return sorted(self._rules)

    def apply(self, name: str, value: Value, parameters: dict[str, Any] | None = None) -> Value:
        """Apply a rule by name.

        Unregistered names return the value unchanged.

        Raises:
            TransformError: If the rule rejects the value.
        """
        func = self._rules.get(name)
        if func is None:
            return value
        return func(value, parameters or {})


# === Built-in rules ===


def _uppercase(value: Value, parameters: dict[str, Any]) -> Value:
    return value.upper() if isinstance(value, str) else value


def _lowercase(value: Value, parameters: dict[str, Any]) -> Value:
    return value.lower() if isinstance(value, str) else value


def _trim(value: Value, parameters: dict[str, Any]) -> Value:
    return value.strip() if isinstance(value, str) else value


def _is_number(value: Value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _currency_format(value: Value, parameters: dict[str, Any]) -> Value:
    """Round to 2 decimals, half away from zero (19.999 -> 20.0, 0.125 -> 0.13)."""
    if not _is_number(value):
        return value
    # str() first so 0.125 rounds as written rather than as its binary approximation
    quantized = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(quantized)


def _date_format(value: Value, parameters: dict[str, Any]) -> Value:
    """Normalize a date-like value to an ISO-8601 UTC string.

    Accepts datetimes, dates, ISO strings and epoch milliseconds. Naive
    datetimes are taken as UTC.
    """
    if value is None or value == "":
        return value
    if isinstance(value, bool):
        raise TransformError(f"Cannot format {value!r} as a date")
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000, tz=UTC)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise TransformError(f"Cannot format {value!r} as a date") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC).isoformat()


def _to_decimal(value: Any, what: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise TransformError(f"Invalid {what}: {value!r}") from e


def _multiply(value: Value, parameters: dict[str, Any]) -> Value:
    if not _is_number(value):
        return value
    result = _to_decimal(value, "number") * _to_decimal(parameters.get("factor", 1), "factor")
    return float(result)


def _add(value: Value, parameters: dict[str, Any]) -> Value:
    if not _is_number(value):
        return value
    result = _to_decimal(value, "number") + _to_decimal(parameters.get("amount", 0), "amount")
    return float(result)


def _round(value: Value, parameters: dict[str, Any]) -> Value:
    if not _is_number(value):
        return value
    digits = int(parameters.get("digits", 0))
    exponent = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP))


def _lookup(value: Value, parameters: dict[str, Any]) -> Value:
    """Replace a value through a lookup table.

    Keys are compared as strings since tables come from JSON configs.
    """
    table = parameters.get("table") or {}
    key = str(value)
    if key in table:
        return table[key]
    return parameters.get("default", value)


def _if_empty(value: Value, parameters: dict[str, Any]) -> Value:
    if value is None or value == "":
        return parameters.get("value")
    return value


BUILTIN_RULES: dict[str, TransformFunc] = {
    "uppercase": _uppercase,
    "lowercase": _lowercase,
    "trim": _trim,
    "currency_format": _currency_format,
    "date_format": _date_format,
    "multiply": _multiply,
    "add": _add,
    "round": _round,
    "lookup": _lookup,
    "if_empty": _if_empty,
}

DEFAULT_REGISTRY = TransformRegistry.with_builtins()


def transform_record(
    record: Record,
    config: SyncConfig,
    registry: TransformRegistry = DEFAULT_REGISTRY,
) -> Record:
    """Map a raw source record to a target-shaped record.

    Mappings run in order: read the source field, apply the named rule,
    fall back to the default when the result is None and a default is
    configured, then assign to the target field. Post-mapping
    transformations then run in order on fields already present.

    Args:
        record: Raw source record.
        config: Job configuration.
        registry: Rule registry.

    Returns:
        New target-shaped record; the input is not modified.

    Raises:
        TransformError: If a rule rejects a value.
    """
    transformed: Record = {}

    for mapping in config.mapping:
        value = record.get(mapping.source_field)
        if mapping.transformation:
            value = registry.apply(mapping.transformation, value)
        if value is None and mapping.has_default:
            value = mapping.default_value
        transformed[mapping.target_field] = value

    for transformation in config.transformations:
        if transformation.field in transformed:
            transformed[transformation.field] = registry.apply(
                transformation.rule,
                transformed[transformation.field],
                transformation.parameters,
            )

    return transformed


def unknown_rules(config: SyncConfig, registry: TransformRegistry = DEFAULT_REGISTRY) -> list[str]:
    """List rule names a config references that the registry does not know.

    Returns:
        Unknown names in first-seen order, without duplicates.
    """
    names: Iterable[str] = [
        *(m.transformation for m in config.mapping if m.transformation),
        *(t.rule for t in config.transformations),
    ]
    seen: list[str] = []
    for name in names:
        if not registry.is_registered(name) and name not in seen:
            seen.append(name)
    return seen

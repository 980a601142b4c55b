"""Record validation.

Checks a raw (pre-transform) record against a job's validation rules and
returns human-readable failures. A record with any failure is counted as an
error and never transformed or written.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from recordsync.core.config import ValidationRule, parse_range
from recordsync.core.types import Record, Value, ValidationType

# A custom validator returns True when the value is acceptable.
CustomValidator = Callable[[Value, Record], bool]


@dataclass(frozen=True)
class ValidationFailure:
    """One failed rule."""

    field: str
    message: str


def _is_empty(value: Value) -> bool:
    return value is None or value == ""


def _is_number(value: Value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class RecordValidator:
    """Validate records of one run.

    The validator keeps the values seen by "unique" rules, so a new
    instance must be used for each run.
    """

    def __init__(
        self,
        rules: Sequence[ValidationRule],
        custom_validators: dict[str, CustomValidator] | None = None,
    ) -> None:
        """Initialize the validator.

        Args:
            rules: Rules to check, in order.
            custom_validators: Predicates referenced by "custom" rules.
        """
        self._rules = list(rules)
        self._custom = dict(custom_validators or {})
        self._seen: dict[str, set[str]] = {}

    def unknown_custom_rules(self) -> list[str]:
        """List custom rule names with no registered predicate."""
        return [
            r.rule
            for r in self._rules
            if r.type is ValidationType.CUSTOM and r.rule not in self._custom
        ]

    def validate(self, record: Record) -> list[ValidationFailure]:
        """Check a record against every rule.

        Args:
            record: Raw source record.

        Returns:
            Failures in rule order; empty when the record is valid.
        """
        failures: list[ValidationFailure] = []
        unique_hits: list[tuple[str, str]] = []

        for rule in self._rules:
            value = record.get(rule.field)
            message = self._check(rule, value, record, unique_hits)
            if message is not None:
                failures.append(ValidationFailure(field=rule.field, message=message))

        # Only valid records claim their unique values
        if not failures:
            for field_name, key in unique_hits:
                self._seen.setdefault(field_name, set()).add(key)

        return failures

    def _check(
        self,
        rule: ValidationRule,
        value: Value,
        record: Record,
        unique_hits: list[tuple[str, str]],
    ) -> str | None:
        """Return the failure message for one rule, or None if it passes."""
        if rule.type is ValidationType.REQUIRED:
            if _is_empty(value):
                return rule.message or f"{rule.field} is required"

        elif rule.type is ValidationType.FORMAT:
            if not _is_empty(value) and not re.search(rule.rule, str(value)):
                return rule.message or f"{rule.field} format is invalid"

        elif rule.type is ValidationType.RANGE:
            if _is_number(value):
                low, high = parse_range(rule.rule)
                if value < low or value > high:  # type: ignore[operator]
                    return rule.message or f"{rule.field} must be between {low:g} and {high:g}"

        elif rule.type is ValidationType.UNIQUE:
            if not _is_empty(value):
                key = str(value)
                if key in self._seen.get(rule.field, set()):
                    return rule.message or f"{rule.field} must be unique, {key!r} already seen"
                unique_hits.append((rule.field, key))

        elif rule.type is ValidationType.CUSTOM:
            predicate = self._custom.get(rule.rule)
            if predicate is not None and not predicate(value, record):
                return rule.message or f"{rule.field} failed {rule.rule}"

        return None


def validate_record(record: Record, rules: Sequence[ValidationRule]) -> list[ValidationFailure]:
    """Validate a single record without cross-record state.

    Convenience wrapper for one-off checks; "unique" rules always pass.
    """
    return RecordValidator(rules).validate(record)

"""Conflict detection.

The detector compares a transformed record with the version already held
by the target and reports every field that differs. It never modifies the
target: the executor still writes the incoming record (last-write-wins) and
the conflicts are kept for auditing.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from recordsync.core.types import ConflictType, DataType, Record, Value
from recordsync.sync.results import SyncConflict

if TYPE_CHECKING:
    from recordsync.sources.registry import DataSourceRegistry


def _comparable(a: Value, b: Value) -> bool:
    """Check whether two non-null values belong to the same family of types."""
    numeric = (int, float, Decimal)
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool)
    if isinstance(a, numeric) and isinstance(b, numeric):
        return True
    if isinstance(a, (date, datetime)) and isinstance(b, (date, datetime)):
        return True
    return type(a) is type(b)


def _normalize(value: Value) -> Value:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def compare_records(
    job_id: str,
    record_id: str,
    incoming: Record,
    current: Record,
    key_field: str = "id",
) -> list[SyncConflict]:
    """List the fields of incoming whose value differs in current.

    Fields missing from current are not conflicts; they are new data.

    Args:
        job_id: Job the comparison belongs to.
        record_id: Key of the compared record.
        incoming: Transformed record about to be written.
        current: Record currently stored in the target.
        key_field: Field excluded from the comparison.

    Returns:
        One SyncConflict per differing field, in incoming field order.
    """
    conflicts: list[SyncConflict] = []
    for name, value in incoming.items():
        if name == key_field or name not in current:
            continue
        target_value = current[name]
        if _normalize(value) == _normalize(target_value):
            continue
        if value is None or target_value is None or _comparable(value, target_value):
            conflict_type = ConflictType.VALUE_MISMATCH
        else:
            conflict_type = ConflictType.TYPE_MISMATCH
        conflicts.append(
            SyncConflict(
                job_id=job_id,
                record_id=record_id,
                field_name=name,
                source_value=value,
                target_value=target_value,
                conflict_type=conflict_type,
            )
        )
    return conflicts


class ConflictDetector:
    """Detect conflicts against the target of a job."""

    def __init__(self, registry: DataSourceRegistry) -> None:
        """Initialize the detector.

        Args:
            registry: Registry used to fetch current target records.
        """
        self._registry = registry

    def detect(
        self,
        job_id: str,
        record: Record,
        target_id: str,
        data_type: DataType,
        key_field: str = "id",
    ) -> list[SyncConflict]:
        """Compare a transformed record with its current target version.

        Records without a key cannot be matched and never conflict.

        Raises:
            ReadError: If the target cannot be queried.
        """
        key = record.get(key_field)
        if key is None:
            return []
        current = self._registry.fetch(target_id, data_type, key, key_field)
        if current is None:
            return []
        return compare_records(job_id, str(key), record, current, key_field)

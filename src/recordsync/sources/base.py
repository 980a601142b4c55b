"""Data source adapter abstraction.

This module provides:
- SourceAdapter: abstract interface every source type implements
- resolve_table_name: default table/collection for a data type
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from recordsync.core.config import DataSource, SyncFilter
    from recordsync.core.types import DataType, Record, Value

# Where each data type lives when the source schema names no table
DATA_TYPE_TABLES: dict[str, str] = {
    "products": "products",
    "orders": "consumer_orders",
    "customers": "loyalty_customers",
    "inventory": "products",
    "pricing": "products",
}


def resolve_table_name(source: DataSource, data_type: DataType | str) -> str:
    """Get the table (or collection) holding a data type in a source.

    Args:
        source: Data source descriptor.
        data_type: Data type being synced.

    Returns:
        The schema's table name if set, otherwise the default for the type.
    """
    if source.schema.table_name:
        return source.schema.table_name
    key = getattr(data_type, "value", data_type)
    return DATA_TYPE_TABLES.get(key, key)


class SourceAdapter(ABC):
    """Abstract interface for reading and writing records of one source."""

    def __init__(self, source: DataSource) -> None:
        """Initialize the adapter.

        Args:
            source: Descriptor of the source this adapter serves.
        """
        self.source = source

    @property
    def source_id(self) -> str:
        """Id of the served data source."""
        return self.source.id

    @abstractmethod
    def read(self, data_type: DataType, filters: Sequence[SyncFilter]) -> Iterator[Record]:
        """Stream all records matching the filters.

        The iterator makes one pass; call read() again for another.

        Raises:
            ReadError: If the source cannot be read. May also be raised
                while iterating.
        """

    @abstractmethod
    def write(self, data_type: DataType, record: Record, key_field: str = "id") -> None:
        """Upsert one record.

        Raises:
            WriteError: If the record cannot be written.
        """

    @abstractmethod
    def fetch(self, data_type: DataType, key: Value, key_field: str = "id") -> Record | None:
        """Get the current version of one record.

        Returns:
            The stored record, or None if the key is unknown.

        Raises:
            ReadError: If the source cannot be read.
        """

    def close(self) -> None:  # noqa: B027
        """Release connections held by the adapter."""

"""Relational database adapter built on SQLAlchemy Core.

Tables are reflected on first use. Filters are translated to SQL and
pushed down to the query; writes upsert on the key column.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Any

from sqlalchemy import MetaData, Table, create_engine, insert, select, update
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError

from recordsync.core.errors import ConfigurationError, ReadError, WriteError
from recordsync.core.types import FilterOperator
from recordsync.sources.base import SourceAdapter, resolve_table_name

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement, Engine, Select

    from recordsync.core.config import DataSource, SyncFilter
    from recordsync.core.types import DataType, Record, Value

logger = logging.getLogger(__name__)

DEFAULT_DRIVER = "postgresql+psycopg"


def build_url(connection: dict[str, Any]) -> str | URL:
    """Build a SQLAlchemy URL from a connection config.

    Args:
        connection: Either {"url": ...} or host/port/database/username/password
            with an optional "driver" (default: postgresql+psycopg).

    Returns:
        URL string or URL object for create_engine().

    Raises:
        ConfigurationError: If neither a url nor a database is configured.
    """
    if connection.get("url"):
        return str(connection["url"])
    if not connection.get("database"):
        raise ConfigurationError("Database source needs 'url' or 'database' in its connection")
    return URL.create(
        drivername=connection.get("driver", DEFAULT_DRIVER),
        username=connection.get("username"),
        password=connection.get("password"),
        host=connection.get("host"),
        port=connection.get("port"),
        database=connection["database"],
    )


def _filter_clause(table: Table, sync_filter: SyncFilter) -> ColumnElement[bool]:
    """Translate one SyncFilter into a WHERE clause."""
    try:
        column = table.c[sync_filter.field]
    except KeyError as e:
        raise ConfigurationError(
            f"Unknown filter column {sync_filter.field!r} in table {table.name!r}"
        ) from e

    op = sync_filter.operator
    value = sync_filter.value
    if op is FilterOperator.EQUALS:
        return column == value
    if op is FilterOperator.NOT_EQUALS:
        return column != value
    if op is FilterOperator.GREATER_THAN:
        return column > value
    if op is FilterOperator.LESS_THAN:
        return column < value
    if op is FilterOperator.CONTAINS:
        return column.ilike(f"%{value}%")
    return column.in_(value)


class DatabaseAdapter(SourceAdapter):
    """Adapter for sources of type "database"."""

    def __init__(self, source: DataSource, engine: Engine | None = None) -> None:
        """Initialize the adapter.

        Args:
            source: Data source descriptor.
            engine: Existing engine to use instead of one built from the
                connection config.
        """
        super().__init__(source)
        self._owns_engine = engine is None
        self._engine: Engine = engine or create_engine(build_url(source.connection))
        self._schema_name: str | None = source.connection.get("schema")
        self._tables: dict[str, Table] = {}

    def close(self) -> None:
        """Dispose the engine if this adapter created it."""
        if self._owns_engine:
            self._engine.dispose()

    def _table(self, data_type: DataType) -> Table:
        """Get the reflected table for a data type."""
        name = resolve_table_name(self.source, data_type)
        if name not in self._tables:
            self._tables[name] = Table(
                name, MetaData(), schema=self._schema_name, autoload_with=self._engine
            )
            logger.debug("Reflected table %s for source %s", name, self.source_id)
        return self._tables[name]

    def read(self, data_type: DataType, filters: Sequence[SyncFilter]) -> Iterator[Record]:
        """Stream rows matching the filters."""
        try:
            table = self._table(data_type)
            stmt = select(table)
            for sync_filter in filters:
                stmt = stmt.where(_filter_clause(table, sync_filter))
        except (SQLAlchemyError, ConfigurationError) as e:
            raise ReadError(f"Cannot query {self.source_id}: {e}", self.source_id) from e
        return self._stream(stmt)

    def _stream(self, stmt: Select[Any]) -> Iterator[Record]:
        try:
            with self._engine.connect() as conn:
                result = conn.execution_options(stream_results=True).execute(stmt)
                for row in result.mappings():
                    yield dict(row)
        except SQLAlchemyError as e:
            raise ReadError(f"Read from {self.source_id} failed: {e}", self.source_id) from e

    def write(self, data_type: DataType, record: Record, key_field: str = "id") -> None:
        """Update the row with the record's key, or insert it."""
        try:
            table = self._table(data_type)
            key = record.get(key_field)
            with self._engine.begin() as conn:
                if key is not None:
                    values = {k: v for k, v in record.items() if k != key_field}
                    if values:
                        result = conn.execute(
                            update(table).where(table.c[key_field] == key).values(values)
                        )
                        if result.rowcount:
                            return
                    elif conn.execute(
                        select(table.c[key_field]).where(table.c[key_field] == key)
                    ).first():
                        return
                conn.execute(insert(table).values(dict(record)))
        except (SQLAlchemyError, KeyError) as e:
            raise WriteError(f"Write to {self.source_id} failed: {e}", self.source_id) from e

    def fetch(self, data_type: DataType, key: Value, key_field: str = "id") -> Record | None:
        """Get the row with the given key."""
        try:
            table = self._table(data_type)
            with self._engine.connect() as conn:
                row = conn.execute(
                    select(table).where(table.c[key_field] == key)
                ).mappings().first()
        except (SQLAlchemyError, KeyError) as e:
            raise ReadError(f"Lookup in {self.source_id} failed: {e}", self.source_id) from e
        return dict(row) if row is not None else None

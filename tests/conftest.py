"""Shared fixtures: a temporary store and in-memory data sources."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator, Sequence
from datetime import UTC, datetime
from pathlib import Path

import pytest

from recordsync.core.config import DataSource, SyncFilter
from recordsync.core.errors import ReadError, WriteError
from recordsync.core.types import DataType, Record, SourceType, Value
from recordsync.server.database import Database
from recordsync.sources.base import SourceAdapter
from recordsync.sources.registry import DataSourceRegistry

FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


class MemoryAdapter(SourceAdapter):
    """In-memory adapter recording every write.

    Args:
        source_id: Id of the served source.
        records: Records returned by read(), in order.
        fail_write: Predicate deciding whether a write raises WriteError.
        read_error: Raised by read() before any record is yielded.
        fail_after: Raise ReadError after yielding this many records.
    """

    def __init__(
        self,
        source_id: str,
        records: list[Record] | None = None,
        fail_write: Callable[[Record], bool] | None = None,
        read_error: Exception | None = None,
        fail_after: int | None = None,
    ) -> None:
        super().__init__(DataSource(id=source_id, name=source_id, type=SourceType.DATABASE))
        self.records = list(records or [])
        self.store: dict[Value, Record] = {}
        self.writes: list[Record] = []
        self.read_calls = 0
        self.fail_write = fail_write
        self.read_error = read_error
        self.fail_after = fail_after
        self.before_read: Callable[[], None] | None = None
        self._write_lock = threading.Lock()
        self.active_writers = 0
        self.max_active_writers = 0

    def read(self, data_type: DataType, filters: Sequence[SyncFilter]) -> Iterator[Record]:
        self.read_calls += 1
        if self.read_error is not None:
            raise self.read_error
        return self._iter(list(filters))

    def _iter(self, filters: list[SyncFilter]) -> Iterator[Record]:
        if self.before_read is not None:
            self.before_read()
        for i, record in enumerate(self.records):
            if self.fail_after is not None and i >= self.fail_after:
                raise ReadError("connection lost", self.source_id)
            if all(f.matches(record) for f in filters):
                yield dict(record)

    def write(self, data_type: DataType, record: Record, key_field: str = "id") -> None:
        with self._write_lock:
            self.active_writers += 1
            self.max_active_writers = max(self.max_active_writers, self.active_writers)
        try:
            self.writes.append(dict(record))
            if self.fail_write is not None and self.fail_write(record):
                raise WriteError("target rejected record", self.source_id)
            self.store[record.get(key_field)] = dict(record)
        finally:
            with self._write_lock:
                self.active_writers -= 1

    def fetch(self, data_type: DataType, key: Value, key_field: str = "id") -> Record | None:
        return self.store.get(key)


@pytest.fixture
def db(tmp_path: Path) -> Iterator[Database]:
    """Create a test database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def source() -> MemoryAdapter:
    """Source system adapter."""
    return MemoryAdapter("source_db")


@pytest.fixture
def target() -> MemoryAdapter:
    """Target system adapter."""
    return MemoryAdapter("target_api")


@pytest.fixture
def registry(source: MemoryAdapter, target: MemoryAdapter) -> DataSourceRegistry:
    """Registry holding the source and target adapters."""
    reg = DataSourceRegistry()
    reg.register(source.source, source)
    reg.register(target.source, target)
    return reg

"""DataSource registry.

Maps data source ids to their descriptor and a lazily created adapter,
and exposes read/write/fetch by source id. Persistence of descriptors is
the caller's concern; the registry only holds what it was given.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING

from recordsync.core.errors import ConfigurationError, DuplicateIdError
from recordsync.core.types import SourceType
from recordsync.sources.api import DEFAULT_TIMEOUT, ApiAdapter, WebhookAdapter
from recordsync.sources.database import DatabaseAdapter
from recordsync.sources.file import FileAdapter

if TYPE_CHECKING:
    from recordsync.core.config import DataSource, SyncFilter
    from recordsync.core.types import DataType, Record, Value
    from recordsync.sources.base import SourceAdapter

logger = logging.getLogger(__name__)

AdapterFactory = Callable[["DataSource"], "SourceAdapter"]


class DataSourceRegistry:
    """Registry of data sources and their adapters.

    Example:
        registry = DataSourceRegistry()
        registry.register(DataSource.from_dict({...}))
        for record in registry.read("shopify", DataType.PRODUCTS, []):
            ...
    """

    def __init__(self, http_timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize an empty registry.

        Args:
            http_timeout: Default request timeout for HTTP based adapters.
        """
        self._sources: dict[str, DataSource] = {}
        self._adapters: dict[str, SourceAdapter] = {}
        self._lock = threading.Lock()
        self._factories: dict[SourceType, AdapterFactory] = {
            SourceType.DATABASE: DatabaseAdapter,
            SourceType.API: lambda s: ApiAdapter(s, timeout=http_timeout),
            SourceType.FILE: FileAdapter,
            SourceType.WEBHOOK: lambda s: WebhookAdapter(s, timeout=http_timeout),
        }

    def set_factory(self, source_type: SourceType, factory: AdapterFactory) -> None:
        """Replace the adapter factory for a source type."""
        self._factories[source_type] = factory

    def register(self, source: DataSource, adapter: SourceAdapter | None = None) -> str:
        """Register a data source.

        Registering the same descriptor twice is a no-op.

        Args:
            source: Descriptor to register.
            adapter: Ready-made adapter; built on first use when omitted.

        Returns:
            The source id.

        Raises:
            DuplicateIdError: If the id is taken by a different descriptor.
        """
        with self._lock:
            existing = self._sources.get(source.id)
            if existing is not None:
                if existing == source:
                    return source.id
                raise DuplicateIdError(f"Data source already registered: {source.id}")
            self._sources[source.id] = source
            if adapter is not None:
                self._adapters[source.id] = adapter
        logger.info("Registered data source %s (%s)", source.id, source.type.value)
        return source.id

    def get(self, source_id: str) -> DataSource:
        """Get an active data source.

        Raises:
            ConfigurationError: If the id is unknown or the source is inactive.
        """
        source = self._sources.get(source_id)
        if source is None or not source.is_active:
            raise ConfigurationError(f"Data source not found or inactive: {source_id}")
        return source

    def contains(self, source_id: str) -> bool:
        """Check if a source id is registered."""
        return source_id in self._sources

    def list(self) -> list[DataSource]:
        """List registered sources by id."""
        return [self._sources[k] for k in sorted(self._sources)]

    def adapter(self, source_id: str) -> SourceAdapter:
        """Get (or build) the adapter serving a source."""
        source = self.get(source_id)
        with self._lock:
            adapter = self._adapters.get(source_id)
            if adapter is None:
                factory = self._factories.get(source.type)
                if factory is None:
                    raise ConfigurationError(f"No adapter for source type {source.type.value}")
                adapter = factory(source)
                self._adapters[source_id] = adapter
            return adapter

    def read(
        self,
        source_id: str,
        data_type: DataType,
        filters: Sequence[SyncFilter],
    ) -> Iterator[Record]:
        """Stream the matching records of a source."""
        return self.adapter(source_id).read(data_type, filters)

    def write(
        self,
        target_id: str,
        data_type: DataType,
        record: Record,
        key_field: str = "id",
    ) -> None:
        """Upsert one record into a target."""
        self.adapter(target_id).write(data_type, record, key_field)

    def fetch(
        self,
        target_id: str,
        data_type: DataType,
        key: Value,
        key_field: str = "id",
    ) -> Record | None:
        """Get the current version of one target record."""
        return self.adapter(target_id).fetch(data_type, key, key_field)

    def deactivate(self, source_id: str) -> None:
        """Mark a source inactive and release its adapter."""
        with self._lock:
            source = self._sources.get(source_id)
            if source is None:
                raise ConfigurationError(f"Data source not found: {source_id}")
            self._sources[source_id] = replace(source, is_active=False)
            adapter = self._adapters.pop(source_id, None)
        if adapter is not None:
            adapter.close()

    def close(self) -> None:
        """Close every adapter."""
        with self._lock:
            adapters = list(self._adapters.values())
            self._adapters.clear()
        for adapter in adapters:
            adapter.close()

"""Data sources - adapter interface, concrete adapters and registry."""

from recordsync.sources.api import ApiAdapter, WebhookAdapter
from recordsync.sources.base import SourceAdapter, resolve_table_name
from recordsync.sources.database import DatabaseAdapter
from recordsync.sources.file import FileAdapter
from recordsync.sources.registry import DataSourceRegistry

__all__ = [
    "ApiAdapter",
    "DataSourceRegistry",
    "DatabaseAdapter",
    "FileAdapter",
    "SourceAdapter",
    "WebhookAdapter",
    "resolve_table_name",
]

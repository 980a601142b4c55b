"""JSON-lines file adapter.

Each data type lives in its own file, <path>/<table>.jsonl, one JSON object
per line. Writes rewrite the file through a temporary file and an atomic
rename.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from recordsync.core.errors import ConfigurationError, ReadError, WriteError
from recordsync.sources.base import SourceAdapter, resolve_table_name

if TYPE_CHECKING:
    from recordsync.core.config import DataSource, SyncFilter
    from recordsync.core.types import DataType, Record, Value

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class FileAdapter(SourceAdapter):
    """Adapter for sources of type "file".

    Connection keys: path (directory holding the .jsonl files).
    """

    def __init__(self, source: DataSource) -> None:
        """Initialize the adapter."""
        super().__init__(source)
        path = source.connection.get("path")
        if not path:
            raise ConfigurationError(f"File source {source.id!r} needs 'path'")
        self._root = Path(path)

    def _file(self, data_type: DataType) -> Path:
        return self._root / f"{resolve_table_name(self.source, data_type)}.jsonl"

    def _load(self, file_path: Path) -> Iterator[Record]:
        if not file_path.exists():
            return
        with file_path.open(encoding="utf-8") as f:
            try:
                for line_no, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        item = json.loads(line)
                    except json.JSONDecodeError as e:
                        raise ReadError(
                            f"{file_path}:{line_no} is not valid JSON: {e}", self.source_id
                        ) from e
                    if isinstance(item, dict):
                        yield item
            except UnicodeDecodeError as e:
                raise ReadError(f"{file_path} is not valid UTF-8: {e}", self.source_id) from e

    def read(self, data_type: DataType, filters: Sequence[SyncFilter]) -> Iterator[Record]:
        """Stream the records of the data type's file that match the filters."""
        return self._read(self._file(data_type), list(filters))

    def _read(self, file_path: Path, filters: list[SyncFilter]) -> Iterator[Record]:
        try:
            for item in self._load(file_path):
                if all(f.matches(item) for f in filters):
                    yield item
        except OSError as e:
            raise ReadError(f"Cannot read {file_path}: {e}", self.source_id) from e

    def write(self, data_type: DataType, record: Record, key_field: str = "id") -> None:
        """Replace the line with the record's key, or append the record."""
        file_path = self._file(data_type)
        key = record.get(key_field)
        try:
            items = list(self._load(file_path))
            for i, item in enumerate(items):
                if key is not None and item.get(key_field) == key:
                    items[i] = {**item, **record}
                    break
            else:
                items.append(dict(record))

            file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=file_path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    for item in items:
                        f.write(json.dumps(item, default=_json_default) + "\n")
                os.replace(tmp_name, file_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ReadError) as e:
            raise WriteError(f"Cannot write {file_path}: {e}", self.source_id) from e
        logger.debug("Wrote record %s to %s", key, file_path)

    def fetch(self, data_type: DataType, key: Value, key_field: str = "id") -> Record | None:
        """Find the record with the given key."""
        file_path = self._file(data_type)
        try:
            for item in self._load(file_path):
                if item.get(key_field) == key:
                    return item
        except OSError as e:
            raise ReadError(f"Cannot read {file_path}: {e}", self.source_id) from e
        return None

"""HTTP API adapter.

This module provides:
- ApiAdapter: reads and upserts records through a REST endpoint
- WebhookAdapter: write-only adapter posting each record to a URL

Both use an httpx.Client; timeouts and transport failures surface as
ReadError/WriteError.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Any

import httpx

from recordsync.core.errors import ConfigurationError, ReadError, WriteError
from recordsync.core.types import FilterOperator
from recordsync.sources.base import SourceAdapter

if TYPE_CHECKING:
    from recordsync.core.config import DataSource, SyncFilter
    from recordsync.core.types import DataType, Record, Value

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def _build_client(
    base_url: str,
    connection: dict[str, Any],
    timeout: float,
    transport: httpx.BaseTransport | None,
) -> httpx.Client:
    headers = {"Accept": "application/json"}
    if connection.get("api_key"):
        headers["Authorization"] = f"Bearer {connection['api_key']}"
    return httpx.Client(
        base_url=base_url,
        timeout=float(connection.get("timeout", timeout)),
        headers=headers,
        verify=bool(connection.get("ssl", True)),
        transport=transport,
    )


class ApiAdapter(SourceAdapter):
    """Adapter for sources of type "api".

    Connection keys: api_url (required), api_key, timeout (seconds), ssl.
    Reads accept a JSON list or {"data": [...], "next": url} pages.
    """

    def __init__(
        self,
        source: DataSource,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            source: Data source descriptor.
            timeout: Default per-request timeout when the connection sets none.
            transport: Optional httpx transport (used by tests).
        """
        super().__init__(source)
        api_url = source.connection.get("api_url")
        if not api_url:
            raise ConfigurationError(f"API source {source.id!r} needs 'api_url'")
        self._client = _build_client(api_url, source.connection, timeout, transport)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def _endpoint(self, data_type: DataType) -> str:
        if self.source.schema.endpoint:
            return self.source.schema.endpoint
        return f"/{getattr(data_type, 'value', data_type)}"

    def _request(self, method: str, url: str, error_cls: type, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping failures to the given error class."""
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise error_cls(
                f"{method} {url} on {self.source_id} failed: {e}", self.source_id
            ) from e
        return response

    def read(self, data_type: DataType, filters: Sequence[SyncFilter]) -> Iterator[Record]:
        """Stream records page by page."""
        params = {
            f.field: f.value for f in filters if f.operator is FilterOperator.EQUALS
        }
        return self._pages(self._endpoint(data_type), params, list(filters))

    def _pages(
        self,
        url: str,
        params: dict[str, Any],
        filters: list[SyncFilter],
    ) -> Iterator[Record]:
        next_url: str | None = url
        first = True
        while next_url:
            response = self._request(
                "GET", next_url, ReadError, params=params if first else None
            )
            first = False
            if response.status_code >= 400:
                raise ReadError(
                    f"GET {next_url} on {self.source_id} returned {response.status_code}",
                    self.source_id,
                )
            try:
                payload = response.json()
            except ValueError as e:
                raise ReadError(f"Invalid JSON from {self.source_id}: {e}", self.source_id) from e

            if isinstance(payload, list):
                items, next_url = payload, None
            elif isinstance(payload, dict) and isinstance(payload.get("data"), list):
                items, next_url = payload["data"], payload.get("next")
            else:
                raise ReadError(f"Unexpected payload shape from {self.source_id}", self.source_id)

            for item in items:
                if isinstance(item, dict) and all(f.matches(item) for f in filters):
                    yield item

    def write(self, data_type: DataType, record: Record, key_field: str = "id") -> None:
        """PUT the record to its own URL, or POST it when it has no key."""
        endpoint = self._endpoint(data_type)
        key = record.get(key_field)
        if key is None:
            method, url = "POST", endpoint
        else:
            method, url = "PUT", f"{endpoint.rstrip('/')}/{key}"

        response = self._request(method, url, WriteError, json=_jsonable(record))
        if response.status_code >= 400:
            raise WriteError(
                f"{method} {url} on {self.source_id} returned {response.status_code}",
                self.source_id,
            )
        logger.debug("%s %s on %s: %d", method, url, self.source_id, response.status_code)

    def fetch(self, data_type: DataType, key: Value, key_field: str = "id") -> Record | None:
        """GET the record's own URL; 404 means unknown."""
        url = f"{self._endpoint(data_type).rstrip('/')}/{key}"
        response = self._request("GET", url, ReadError)
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise ReadError(
                f"GET {url} on {self.source_id} returned {response.status_code}", self.source_id
            )
        payload = response.json()
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            return dict(payload["data"])
        return dict(payload) if isinstance(payload, dict) else None


class WebhookAdapter(SourceAdapter):
    """Write-only adapter posting every record to a webhook URL.

    Connection keys: url (required), api_key, timeout, ssl.
    """

    def __init__(
        self,
        source: DataSource,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the adapter."""
        super().__init__(source)
        url = source.connection.get("url")
        if not url:
            raise ConfigurationError(f"Webhook source {source.id!r} needs 'url'")
        self._url = url
        self._client = _build_client("", source.connection, timeout, transport)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def read(self, data_type: DataType, filters: Sequence[SyncFilter]) -> Iterator[Record]:
        """Webhooks cannot be read."""
        raise ReadError(f"Webhook source {self.source_id} is write-only", self.source_id)

    def write(self, data_type: DataType, record: Record, key_field: str = "id") -> None:
        """POST the record together with its data type."""
        body = {"data_type": getattr(data_type, "value", data_type), "record": _jsonable(record)}
        try:
            response = self._client.post(self._url, json=body)
        except httpx.HTTPError as e:
            raise WriteError(f"Webhook {self.source_id} failed: {e}", self.source_id) from e
        if response.status_code >= 400:
            raise WriteError(
                f"Webhook {self.source_id} returned {response.status_code}", self.source_id
            )

    def fetch(self, data_type: DataType, key: Value, key_field: str = "id") -> Record | None:
        """Webhooks hold no readable state."""
        return None


def _jsonable(record: Record) -> dict[str, Any]:
    """Convert date values to ISO strings for JSON bodies."""
    return {
        k: v.isoformat() if hasattr(v, "isoformat") else v
        for k, v in record.items()
    }

"""Document store — persistence boundary for evaluations and projects.

Provides an abstract interface over a remote document database with an
in-memory implementation (tests, single-instance dev) and an HTTP
implementation for a REST document API.  Only equality queries,
create/merge-update and a server-resolved timestamp sentinel are assumed.
"""

from __future__ import annotations

import copy
import logging
import time
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

import httpx

logger = logging.getLogger(__name__)

Record = tuple[str, dict[str, Any]]


# ── Errors ───────────────────────────────────────────────────


class DocumentStoreError(Exception):
    """Raised when the backend rejects or fails a request."""

    def __init__(self, message: str, collection: str = "", record_id: str = ""):
        self.collection = collection
        self.record_id = record_id
        super().__init__(message)


class DocumentNotFoundError(DocumentStoreError):
    """The addressed record does not exist."""

    def __init__(self, collection: str, record_id: str):
        super().__init__(
            f"Record '{record_id}' not found in '{collection}'",
            collection=collection,
            record_id=record_id,
        )


# ── Server timestamp sentinel ───────────────────────────────


class _ServerTimestamp:
    """Placeholder resolved by the backend to commit time."""

    _instance: _ServerTimestamp | None = None

    def __new__(cls) -> _ServerTimestamp:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def server_timestamp() -> _ServerTimestamp:
    """Return the sentinel the backend resolves to wall-clock time on write."""
    return SERVER_TIMESTAMP


# ── Abstract Interface ───────────────────────────────────────


class DocumentStore(ABC):
    """Abstract document store — implement for different backends."""

    async def start(self) -> None:
        """Acquire backend resources (no-op by default)."""

    async def close(self) -> None:
        """Release backend resources (no-op by default)."""

    @abstractmethod
    async def query_records(
        self, collection: str, filters: dict[str, Any] | None = None
    ) -> list[Record]:
        """Return ``(id, data)`` pairs matching all equality *filters*.

        Order is whatever the backend returns.
        """
        ...

    @abstractmethod
    async def get_record(self, collection: str, record_id: str) -> dict[str, Any] | None:
        """Fetch one record by id.  Returns None if it does not exist."""
        ...

    @abstractmethod
    async def create_record(self, collection: str, data: dict[str, Any]) -> str:
        """Insert *data* (which must not contain ``id``) and return the new id."""
        ...

    @abstractmethod
    async def update_record(
        self, collection: str, record_id: str, data: dict[str, Any]
    ) -> None:
        """Merge *data* into an existing record."""
        ...

    @abstractmethod
    async def delete_record(self, collection: str, record_id: str) -> None:
        """Remove a record (missing records are ignored)."""
        ...


def _check_no_id(collection: str, data: dict[str, Any]) -> None:
    if "id" in data:
        raise DocumentStoreError(
            "create_record data must not include an 'id' field",
            collection=collection,
        )


# ── In-Memory Implementation ────────────────────────────────


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store preserving insertion order.

    Records are deep-copied on the way in and out so callers never alias
    stored state.  ``SERVER_TIMESTAMP`` values are resolved to the current
    UTC time at write.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    def _collection(self, name: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(name, {})

    async def query_records(
        self, collection: str, filters: dict[str, Any] | None = None
    ) -> list[Record]:
        filters = filters or {}
        return [
            (rid, copy.deepcopy(data))
            for rid, data in self._collection(collection).items()
            if all(data.get(k) == v for k, v in filters.items())
        ]

    async def get_record(self, collection: str, record_id: str) -> dict[str, Any] | None:
        data = self._collection(collection).get(record_id)
        return copy.deepcopy(data) if data is not None else None

    async def create_record(self, collection: str, data: dict[str, Any]) -> str:
        _check_no_id(collection, data)
        record_id = uuid.uuid4().hex[:20]
        self._collection(collection)[record_id] = _resolve_timestamps(data)
        return record_id

    async def update_record(
        self, collection: str, record_id: str, data: dict[str, Any]
    ) -> None:
        records = self._collection(collection)
        if record_id not in records:
            raise DocumentNotFoundError(collection, record_id)
        records[record_id].update(_resolve_timestamps(data))

    async def delete_record(self, collection: str, record_id: str) -> None:
        self._collection(collection).pop(record_id, None)

    def put(self, collection: str, record_id: str, data: dict[str, Any]) -> None:
        """Seed a record under a known id (fixtures and imports)."""
        self._collection(collection)[record_id] = _resolve_timestamps(data)

    def count(self, collection: str) -> int:
        return len(self._collection(collection))


def _resolve_timestamps(value: Any) -> Any:
    if value is SERVER_TIMESTAMP:
        return datetime.now(timezone.utc)
    if isinstance(value, dict):
        return {k: _resolve_timestamps(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_timestamps(v) for v in value]
    return copy.deepcopy(value)


# ── HTTP Implementation ──────────────────────────────────────


class HttpDocumentStore(DocumentStore):
    """REST document API client on ``httpx.AsyncClient``.

    Endpoints (relative to ``base_url``):
    - ``GET    /collections/{c}/records?field=value`` → ``{"records": [{"id", "data"}]}``
    - ``GET    /collections/{c}/records/{id}``         → ``{"id", "data"}``
    - ``POST   /collections/{c}/records``              → ``{"id"}``
    - ``PATCH  /collections/{c}/records/{id}``
    - ``DELETE /collections/{c}/records/{id}``

    ``SERVER_TIMESTAMP`` is encoded as ``{"$serverTimestamp": true}``.
    Each call is issued once; there is no retry.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str = "",
        timeout: float = 15,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._timeout = timeout
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        if self._http is not None:
            return
        headers = {"Authorization": f"Bearer {self._access_token}"} if self._access_token else {}
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers=headers,
            transport=self._transport,
        )
        logger.info("HttpDocumentStore started — base_url=%s", self._base_url)

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            logger.info("HttpDocumentStore closed")

    # -- public API ----------------------------------------------------------

    async def query_records(
        self, collection: str, filters: dict[str, Any] | None = None
    ) -> list[Record]:
        response = await self._send(
            "GET", f"/collections/{collection}/records", collection, params=filters or None,
        )
        body = _json(response)
        return [(str(item["id"]), item.get("data") or {}) for item in body.get("records", [])]

    async def get_record(self, collection: str, record_id: str) -> dict[str, Any] | None:
        response = await self._send(
            "GET", f"/collections/{collection}/records/{record_id}", collection, record_id,
            allow_404=True,
        )
        if response.status_code == 404:
            return None
        return _json(response).get("data") or {}

    async def create_record(self, collection: str, data: dict[str, Any]) -> str:
        _check_no_id(collection, data)
        response = await self._send(
            "POST", f"/collections/{collection}/records", collection,
            json_body=_encode(data),
        )
        record_id = _json(response).get("id")
        if not record_id:
            raise DocumentStoreError("create response missing 'id'", collection=collection)
        return str(record_id)

    async def update_record(
        self, collection: str, record_id: str, data: dict[str, Any]
    ) -> None:
        response = await self._send(
            "PATCH", f"/collections/{collection}/records/{record_id}", collection, record_id,
            json_body=_encode(data), allow_404=True,
        )
        if response.status_code == 404:
            raise DocumentNotFoundError(collection, record_id)

    async def delete_record(self, collection: str, record_id: str) -> None:
        await self._send(
            "DELETE", f"/collections/{collection}/records/{record_id}", collection, record_id,
            allow_404=True,
        )

    # -- internals -----------------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        collection: str,
        record_id: str = "",
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        allow_404: bool = False,
    ) -> httpx.Response:
        client = self._ensure_started()
        t0 = time.monotonic()
        try:
            response = await client.request(method, path, params=params, json=json_body)
        except httpx.TransportError as exc:
            logger.warning("%s %s → network error: %s", method, path, exc)
            raise DocumentStoreError(
                f"{method} {path} failed: {exc}", collection=collection, record_id=record_id,
            ) from exc

        elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info("%s %s → %d (%.0fms)", method, path, response.status_code, elapsed_ms)

        if response.status_code == 404 and allow_404:
            return response
        if response.status_code >= 400:
            detail = response.text[:300] if response.text else f"HTTP {response.status_code}"
            raise DocumentStoreError(
                f"{method} {path} → {response.status_code}: {detail}",
                collection=collection,
                record_id=record_id,
            )
        return response

    def _ensure_started(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("HttpDocumentStore not started — call await store.start() first")
        return self._http


def _encode(value: Any) -> Any:
    if value is SERVER_TIMESTAMP:
        return {"$serverTimestamp": True}
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_encode(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _json(response: httpx.Response) -> dict[str, Any]:
    if not response.text:
        return {}
    try:
        body = response.json()
    except ValueError as exc:
        raise DocumentStoreError(f"Invalid JSON from document store: {exc}") from exc
    return body if isinstance(body, dict) else {}


# ── Module-level Singleton ───────────────────────────────────

_store: DocumentStore | None = None


def get_document_store() -> DocumentStore:
    """Get the singleton document store instance."""
    global _store
    if _store is None:
        from config.settings import get_settings

        settings = get_settings()
        if settings.document_store_type == "http":
            base_url = (
                f"{settings.document_store_base_url.rstrip('/')}"
                f"{settings.document_store_api_prefix}"
            )
            _store = HttpDocumentStore(
                base_url=base_url,
                access_token=settings.document_store_access_token,
                timeout=settings.document_store_timeout,
            )
            logger.info("Initialized HttpDocumentStore (%s)", base_url)
        else:
            _store = InMemoryDocumentStore()
            logger.info("Initialized InMemoryDocumentStore")
    return _store

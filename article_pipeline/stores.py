"""Document-store and blob-store interfaces, plus concrete adapters.

The pipeline only needs point lookups, equality / array-contains queries
and whole-blob reads.  Any backend offering those can implement
:class:`DocumentStore` and :class:`BlobStore`.

Adapters shipped here:

- :class:`JsonDocumentStore` reads an export laid out as
  ``<root>/<collection>/<id>.json``.
- :class:`FileBlobStore` reads blobs from a local directory.
- :class:`HttpBlobStore` fetches blobs over HTTP with ``httpx``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, TypeVar, runtime_checkable

import httpx

_log = logging.getLogger("stores")

_T = TypeVar("_T")

DEFAULT_HTTP_TIMEOUT_S = 15.0
"""Request timeout for :class:`HttpBlobStore` (seconds)."""


@dataclass(frozen=True)
class Document:
    """A stored document: its id and raw field data."""

    id: str
    data: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Timeouts
# ---------------------------------------------------------------------------


async def call_with_timeout(
    what: str,
    factory: Callable[[], Awaitable[_T]],
    timeout: float | None,
) -> _T:
    """Await ``factory()`` for at most *timeout* seconds.

    Every store call made by the pipeline goes through here.  ``None``
    disables the bound.

    Raises:
        TimeoutError: Naming *what* and the timeout, chained to the
            cancellation.
    """
    if timeout is None:
        return await factory()
    try:
        return await asyncio.wait_for(factory(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise TimeoutError(f"{what} timed out after {timeout}s") from exc


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class DocumentStore(Protocol):
    """Read-only document database access used by the pipeline."""

    async def get(self, collection: str, doc_id: str) -> Document | None:
        """Return the document, or ``None`` if it does not exist."""
        ...

    async def query_equals(
        self, collection: str, field_name: str, value: Any, limit: int | None = None,
    ) -> list[Document]:
        """Return documents whose *field_name* equals *value*."""
        ...

    async def query_array_contains(
        self, collection: str, field_name: str, value: Any, limit: int | None = None,
    ) -> list[Document]:
        """Return documents whose array *field_name* contains *value*."""
        ...

    async def list_all(self, collection: str) -> list[Document]:
        """Return every document in *collection*."""
        ...


@runtime_checkable
class BlobStore(Protocol):
    """Read-only blob access used to load article markdown."""

    async def get_bytes(self, path: str) -> bytes:
        """Return the blob at *path*.  Raises if it cannot be read."""
        ...


# ---------------------------------------------------------------------------
# JSON export document store
# ---------------------------------------------------------------------------


class JsonDocumentStore:
    """Document store backed by a directory of JSON files.

    Layout: ``<root>/<collection>/<doc_id>.json``, one object per file.
    Files are re-read on every call; caching is the resolver's job.
    """

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def _collection_dir(self, collection: str) -> Path:
        return self._root / collection

    @staticmethod
    def _read(path: Path) -> Document:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise RuntimeError(f"Corrupt document {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise RuntimeError(f"Corrupt document {path}: expected a JSON object")
        return Document(id=path.stem, data=data)

    def _get_sync(self, collection: str, doc_id: str) -> Document | None:
        path = self._collection_dir(collection) / f"{doc_id}.json"
        # Ids are file stems; anything that would leave the collection
        # directory cannot name a document.
        if path.parent != self._collection_dir(collection) or not path.is_file():
            return None
        return self._read(path)

    def _scan_sync(self, collection: str) -> list[Document]:
        directory = self._collection_dir(collection)
        if not directory.is_dir():
            return []
        return [self._read(p) for p in sorted(directory.glob("*.json"))]

    async def get(self, collection: str, doc_id: str) -> Document | None:
        return await asyncio.to_thread(self._get_sync, collection, doc_id)

    async def list_all(self, collection: str) -> list[Document]:
        return await asyncio.to_thread(self._scan_sync, collection)

    async def query_equals(
        self, collection: str, field_name: str, value: Any, limit: int | None = None,
    ) -> list[Document]:
        docs = await self.list_all(collection)
        matches = [d for d in docs if d.data.get(field_name) == value]
        return matches[:limit] if limit is not None else matches

    async def query_array_contains(
        self, collection: str, field_name: str, value: Any, limit: int | None = None,
    ) -> list[Document]:
        docs = await self.list_all(collection)
        matches = [
            d for d in docs
            if isinstance(d.data.get(field_name), list) and value in d.data[field_name]
        ]
        return matches[:limit] if limit is not None else matches


# ---------------------------------------------------------------------------
# Blob stores
# ---------------------------------------------------------------------------


class FileBlobStore:
    """Blob store backed by a local directory."""

    def __init__(self, root: Path) -> None:
        self._root = root.resolve()

    def _resolve(self, path: str) -> Path:
        target = (self._root / path.lstrip("/")).resolve()
        if not target.is_relative_to(self._root):
            raise ValueError(f"Blob path escapes store root: {path}")
        return target

    async def get_bytes(self, path: str) -> bytes:
        target = self._resolve(path)
        _log.debug("  Reading blob %s", target)
        return await asyncio.to_thread(target.read_bytes)


class HttpBlobStore:
    """Blob store that fetches ``<base_url>/<path>`` over HTTP.

    Usage::

        async with HttpBlobStore("https://storage.example.com/bucket") as blobs:
            data = await blobs.get_bytes("articles/my-article.md")

    A caller-supplied ``httpx.AsyncClient`` is used as-is and not closed
    by this class.
    """

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_S,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def url_for(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def get_bytes(self, path: str) -> bytes:
        url = self.url_for(path)
        _log.debug("  GET %s", url)
        resp = await self._client.get(url)
        resp.raise_for_status()
        return resp.content

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpBlobStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

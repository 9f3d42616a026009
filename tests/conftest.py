"""Shared test fixtures and helpers for article-pipeline tests."""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any

import pytest

from article_pipeline.stores import Document


class FakeDocumentStore:
    """In-memory :class:`~article_pipeline.stores.DocumentStore`.

    ``failing_ids`` / ``failing_values`` make ``get`` / queries raise, and
    ``slow_ids`` make ``get`` sleep (``slow_collections`` do the same for
    ``list_all``), to exercise degraded lookups and timeouts.
    ``calls`` counts invocations per ``(method, key)``.
    """

    def __init__(self, collections: dict[str, dict[str, dict[str, Any]]] | None = None):
        self.collections: dict[str, dict[str, dict[str, Any]]] = collections or {}
        self.failing_ids: set[str] = set()
        self.failing_values: set[Any] = set()
        self.slow_ids: set[str] = set()
        self.slow_collections: set[str] = set()
        self.fail_queries = False
        self.calls: Counter[tuple[str, Any]] = Counter()

    def put(self, collection: str, doc_id: str, **data: Any) -> None:
        self.collections.setdefault(collection, {})[doc_id] = data

    def remove(self, collection: str, doc_id: str) -> None:
        self.collections.get(collection, {}).pop(doc_id, None)

    def _docs(self, collection: str) -> list[Document]:
        return [
            Document(id=doc_id, data=dict(data))
            for doc_id, data in self.collections.get(collection, {}).items()
        ]

    async def get(self, collection: str, doc_id: str) -> Document | None:
        self.calls[("get", doc_id)] += 1
        if doc_id in self.slow_ids:
            await asyncio.sleep(5)
        if doc_id in self.failing_ids:
            raise ConnectionError(f"store unavailable for {doc_id}")
        data = self.collections.get(collection, {}).get(doc_id)
        return Document(id=doc_id, data=dict(data)) if data is not None else None

    async def query_equals(self, collection, field_name, value, limit=None):
        self.calls[("query_equals", value)] += 1
        if self.fail_queries or value in self.failing_values:
            raise ConnectionError("query failed")
        matches = [d for d in self._docs(collection) if d.data.get(field_name) == value]
        return matches[:limit] if limit is not None else matches

    async def query_array_contains(self, collection, field_name, value, limit=None):
        self.calls[("query_array_contains", value)] += 1
        if self.fail_queries or value in self.failing_values:
            raise ConnectionError("query failed")
        matches = [
            d for d in self._docs(collection)
            if value in (d.data.get(field_name) or [])
        ]
        return matches[:limit] if limit is not None else matches

    async def list_all(self, collection):
        self.calls[("list_all", collection)] += 1
        if collection in self.slow_collections:
            await asyncio.sleep(5)
        return self._docs(collection)


class FakeBlobStore:
    """In-memory :class:`~article_pipeline.stores.BlobStore`.

    Paths in ``slow_paths`` sleep before answering.
    """

    def __init__(self, blobs: dict[str, bytes] | None = None):
        self.blobs = blobs or {}
        self.slow_paths: set[str] = set()

    async def get_bytes(self, path: str) -> bytes:
        if path in self.slow_paths:
            await asyncio.sleep(5)
        try:
            return self.blobs[path]
        except KeyError:
            raise FileNotFoundError(path) from None


def make_image(
    store: FakeDocumentStore,
    image_id: str,
    url: str | None = None,
    **extra: Any,
) -> None:
    """Add an image document to the ``images`` collection of *store*."""
    data: dict[str, Any] = {"url": url or f"https://img.example.com/{image_id}.jpg"}
    data.update(extra)
    store.put("images", image_id, **data)


def make_article(
    store: FakeDocumentStore,
    blobs: FakeBlobStore,
    article_id: str,
    markdown: str,
    **extra: Any,
) -> None:
    """Add an article document and its markdown blob."""
    path = f"articles/{article_id}.md"
    store.put("articles", article_id, path=path, **extra)
    blobs.blobs[path] = markdown.encode("utf-8")


@pytest.fixture
def store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def blobs() -> FakeBlobStore:
    return FakeBlobStore()

"""Tests for the store adapters in stores.py."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import httpx
import pytest

from article_pipeline.stores import (
    BlobStore,
    Document,
    DocumentStore,
    FileBlobStore,
    HttpBlobStore,
    JsonDocumentStore,
)


def _write_doc(root: Path, collection: str, doc_id: str, data: object) -> None:
    directory = root / collection
    directory.mkdir(parents=True, exist_ok=True)
    (directory / f"{doc_id}.json").write_text(json.dumps(data), encoding="utf-8")


# ---------------------------------------------------------------------------
# JsonDocumentStore
# ---------------------------------------------------------------------------


class TestJsonDocumentStore:
    """Tests for the JSON-export document store."""

    @pytest.fixture
    def root(self, tmp_path: Path) -> Path:
        _write_doc(tmp_path, "images", "a", {"url": "https://x/a.jpg", "linkedArticleIds": ["art1"]})
        _write_doc(tmp_path, "images", "b", {"url": "https://x/b.jpg", "linkedArticleIds": ["art1", "art2"]})
        _write_doc(tmp_path, "images", "c", {"url": "https://x/c.jpg", "linkedArticleIds": "art1"})
        return tmp_path

    def test_satisfies_protocol(self, root: Path):
        assert isinstance(JsonDocumentStore(root), DocumentStore)

    def test_get(self, root: Path):
        doc = asyncio.run(JsonDocumentStore(root).get("images", "a"))
        assert doc == Document("a", {"url": "https://x/a.jpg", "linkedArticleIds": ["art1"]})

    def test_get_missing(self, root: Path):
        assert asyncio.run(JsonDocumentStore(root).get("images", "zzz")) is None
        assert asyncio.run(JsonDocumentStore(root).get("nope", "a")) is None

    @pytest.mark.parametrize("doc_id", ["../images/a", "sub/a", ".."])
    def test_get_rejects_paths(self, root: Path, doc_id: str):
        _write_doc(root, "articles", "x", {})
        assert asyncio.run(JsonDocumentStore(root).get("articles", doc_id)) is None

    def test_list_all_sorted(self, root: Path):
        docs = asyncio.run(JsonDocumentStore(root).list_all("images"))
        assert [d.id for d in docs] == ["a", "b", "c"]

    def test_list_all_missing_collection(self, root: Path):
        assert asyncio.run(JsonDocumentStore(root).list_all("nope")) == []

    def test_query_equals(self, root: Path):
        store = JsonDocumentStore(root)
        docs = asyncio.run(store.query_equals("images", "url", "https://x/b.jpg"))
        assert [d.id for d in docs] == ["b"]
        assert asyncio.run(store.query_equals("images", "url", "https://x/none")) == []

    def test_query_array_contains(self, root: Path):
        store = JsonDocumentStore(root)
        docs = asyncio.run(store.query_array_contains("images", "linkedArticleIds", "art1"))
        # "c" holds a string, not an array, so it does not match.
        assert [d.id for d in docs] == ["a", "b"]

    def test_query_limit(self, root: Path):
        store = JsonDocumentStore(root)
        docs = asyncio.run(
            store.query_array_contains("images", "linkedArticleIds", "art1", 1),
        )
        assert [d.id for d in docs] == ["a"]

    def test_corrupt_json(self, tmp_path: Path):
        directory = tmp_path / "images"
        directory.mkdir()
        (directory / "bad.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(RuntimeError, match="Corrupt document"):
            asyncio.run(JsonDocumentStore(tmp_path).get("images", "bad"))

    def test_non_object_json(self, tmp_path: Path):
        _write_doc(tmp_path, "images", "list", [1, 2])
        with pytest.raises(RuntimeError, match="expected a JSON object"):
            asyncio.run(JsonDocumentStore(tmp_path).get("images", "list"))


# ---------------------------------------------------------------------------
# FileBlobStore
# ---------------------------------------------------------------------------


class TestFileBlobStore:
    """Tests for the local-directory blob store."""

    def test_satisfies_protocol(self, tmp_path: Path):
        assert isinstance(FileBlobStore(tmp_path), BlobStore)

    def test_read(self, tmp_path: Path):
        (tmp_path / "articles").mkdir()
        (tmp_path / "articles" / "a.md").write_bytes(b"# Hi")
        store = FileBlobStore(tmp_path)
        assert asyncio.run(store.get_bytes("articles/a.md")) == b"# Hi"
        assert asyncio.run(store.get_bytes("/articles/a.md")) == b"# Hi"

    def test_missing_raises(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            asyncio.run(FileBlobStore(tmp_path).get_bytes("nope.md"))

    def test_escape_rejected(self, tmp_path: Path):
        root = tmp_path / "blobs"
        root.mkdir()
        (tmp_path / "secret.txt").write_text("x")
        with pytest.raises(ValueError, match="escapes"):
            asyncio.run(FileBlobStore(root).get_bytes("../secret.txt"))


# ---------------------------------------------------------------------------
# HttpBlobStore
# ---------------------------------------------------------------------------


def _mock_client(routes: dict[str, bytes]) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        body = routes.get(str(request.url))
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, content=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHttpBlobStore:
    """Tests for the HTTP blob store."""

    def test_url_for(self):
        store = HttpBlobStore("https://cdn.example.com/bucket/", client=_mock_client({}))
        assert store.url_for("articles/a.md") == "https://cdn.example.com/bucket/articles/a.md"
        assert store.url_for("/articles/a.md") == "https://cdn.example.com/bucket/articles/a.md"

    def test_get_bytes(self):
        client = _mock_client({"https://cdn.example.com/articles/a.md": b"# Hello"})

        async def go():
            async with HttpBlobStore("https://cdn.example.com", client=client) as store:
                return await store.get_bytes("articles/a.md")

        assert asyncio.run(go()) == b"# Hello"

    def test_http_error_raises(self):
        client = _mock_client({})

        async def go():
            store = HttpBlobStore("https://cdn.example.com", client=client)
            await store.get_bytes("articles/missing.md")

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(go())

    def test_caller_client_left_open(self):
        client = _mock_client({})

        async def go():
            async with HttpBlobStore("https://cdn.example.com", client=client):
                pass
            return client.is_closed

        assert asyncio.run(go()) is False

    def test_owned_client_closed(self):
        async def go():
            store = HttpBlobStore("https://cdn.example.com")
            await store.aclose()
            return store._client.is_closed

        assert asyncio.run(go()) is True

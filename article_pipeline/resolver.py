"""Image record lookups with memoization.

:class:`ImageCache` holds two tables, keyed by image id and by image url.
Each entry is either :class:`~article_pipeline.models.Found` or the
:data:`~article_pipeline.models.NOT_FOUND` sentinel; a missing entry means
the key was never looked up (or has expired / been invalidated).

:class:`ImageResolver` performs the actual store queries.  Lookup failures
(transport errors, timeouts) are absorbed and reported as ``None``: a
missing image degrades to a placeholder figure, it never fails the
article.  Failures are not cached, so the next call retries.

Concurrent misses for the same key may both hit the store; the second
result simply overwrites the first.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from article_pipeline.config import PipelineConfig
from article_pipeline.models import NOT_FOUND, Found, ImageRecord, LookupResult
from article_pipeline.stores import Document, DocumentStore, call_with_timeout

_log = logging.getLogger("resolver")

_T = TypeVar("_T")

LINKED_ARTICLES_FIELD = "linkedArticleIds"
URL_FIELD = "url"


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class ImageCache:
    """Id- and url-keyed memoization tables for image lookups.

    Owned by the resolver's creator (typically one per service), so tests
    and callers control its lifetime.  Entries never go stale silently:
    set *ttl* to expire them, or call :meth:`invalidate` when an image's
    metadata changes.

    Args:
        ttl: Seconds an entry stays valid, or ``None`` for no expiry.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._by_id: dict[str, tuple[float, LookupResult]] = {}
        self._by_url: dict[str, tuple[float, LookupResult]] = {}

    def __len__(self) -> int:
        return len(self._by_id) + len(self._by_url)

    def _read(
        self, table: dict[str, tuple[float, LookupResult]], key: str,
    ) -> LookupResult | None:
        entry = table.get(key)
        if entry is None:
            return None
        stored_at, result = entry
        if self._ttl is not None and self._clock() - stored_at >= self._ttl:
            del table[key]
            return None
        return result

    def get_by_id(self, image_id: str) -> LookupResult | None:
        """Cached result for *image_id*, or ``None`` if not looked up."""
        return self._read(self._by_id, image_id)

    def get_by_url(self, url: str) -> LookupResult | None:
        """Cached result for *url*, or ``None`` if not looked up."""
        return self._read(self._by_url, url)

    def store(self, record: ImageRecord) -> None:
        """Cache *record* under its id and, when it has one, its url."""
        now = self._clock()
        found = Found(record)
        previous = self._by_id.get(record.id)
        if previous is not None and isinstance(previous[1], Found):
            old_url = previous[1].record.url
            if old_url and old_url != record.url:
                self._by_url.pop(old_url, None)
        self._by_id[record.id] = (now, found)
        if record.url:
            self._by_url[record.url] = (now, found)

    def mark_missing_id(self, image_id: str) -> None:
        self._by_id[image_id] = (self._clock(), NOT_FOUND)

    def mark_missing_url(self, url: str) -> None:
        self._by_url[url] = (self._clock(), NOT_FOUND)

    def invalidate(self, image_id: str) -> None:
        """Evict *image_id* and every url entry that points at it."""
        self._by_id.pop(image_id, None)
        stale = [
            url for url, (_, result) in self._by_url.items()
            if isinstance(result, Found) and result.record.id == image_id
        ]
        for url in stale:
            del self._by_url[url]

    def invalidate_url(self, url: str) -> None:
        self._by_url.pop(url, None)

    def clear(self) -> None:
        self._by_id.clear()
        self._by_url.clear()


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class ImageResolver:
    """Resolve image records by id, url, or article link.

    Usage::

        resolver = ImageResolver(store, config=PipelineConfig(cache_ttl=300))
        record = await resolver.get_by_id("abc123")
        images = await resolver.get_many_by_ids(["abc123", "def456"])
        featured = await resolver.resolve_featured_image(
            "article-1", featured_image_id="abc123",
        )
    """

    def __init__(
        self,
        store: DocumentStore,
        cache: ImageCache | None = None,
        config: PipelineConfig | None = None,
    ) -> None:
        self._store = store
        self._config = config or PipelineConfig()
        self._cache = cache if cache is not None else ImageCache(ttl=self._config.cache_ttl)

    @property
    def cache(self) -> ImageCache:
        return self._cache

    # -- store access ------------------------------------------------------

    async def _call(self, what: str, factory: Callable[[], Awaitable[_T]]) -> _T:
        """Await a store call under the configured timeout."""
        return await call_with_timeout(what, factory, self._config.lookup_timeout)

    async def _first(
        self, what: str, factory: Callable[[], Awaitable[list[Document]]],
    ) -> ImageRecord | None:
        """Run a limit-1 query and convert its result."""
        docs = await self._call(what, factory)
        if not docs:
            return None
        return ImageRecord.from_document(docs[0])

    # -- point lookups -----------------------------------------------------

    async def get_by_id(self, image_id: str | None) -> ImageRecord | None:
        """Return the image with *image_id*, or ``None``.

        ``None`` covers not-found and lookup failure alike; only
        not-found is cached.
        """
        if not image_id:
            return None
        cached = self._cache.get_by_id(image_id)
        if cached is not None:
            _log.debug("  Cache hit for image %s", image_id)
            return cached.record if isinstance(cached, Found) else None

        images = self._config.images_collection
        try:
            doc = await self._call(
                f"image {image_id}",
                lambda: self._store.get(images, image_id),
            )
        except Exception as exc:  # noqa: BLE001 - lookup failures degrade to None
            _log.warning("  Image lookup failed for %s: %s", image_id, exc)
            return None

        if doc is None:
            _log.debug("  Image %s not found", image_id)
            self._cache.mark_missing_id(image_id)
            return None
        record = ImageRecord.from_document(doc)
        self._cache.store(record)
        return record

    async def get_by_url(self, url: str | None) -> ImageRecord | None:
        """Return the image whose ``url`` equals *url*, or ``None``."""
        if not url:
            return None
        cached = self._cache.get_by_url(url)
        if cached is not None:
            _log.debug("  Cache hit for url %s", url)
            return cached.record if isinstance(cached, Found) else None

        images = self._config.images_collection
        try:
            record = await self._first(
                f"image url {url}",
                lambda: self._store.query_equals(images, URL_FIELD, url, 1),
            )
        except Exception as exc:  # noqa: BLE001 - lookup failures degrade to None
            _log.warning("  Image lookup failed for url %s: %s", url, exc)
            return None

        if record is None:
            _log.debug("  No image with url %s", url)
            self._cache.mark_missing_url(url)
            return None
        self._cache.store(record)
        return record

    async def find_linked_for_article(self, article_id: str | None) -> ImageRecord | None:
        """Return one image linked to *article_id*, or ``None``.

        Article links change more often than image metadata, so the
        article -> image relation itself is not cached; only the record
        found is.
        """
        if not article_id:
            return None
        images = self._config.images_collection
        try:
            record = await self._first(
                f"linked image for {article_id}",
                lambda: self._store.query_array_contains(
                    images, LINKED_ARTICLES_FIELD, article_id, 1,
                ),
            )
        except Exception as exc:  # noqa: BLE001 - lookup failures degrade to None
            _log.warning("  Linked-image lookup failed for %s: %s", article_id, exc)
            return None
        if record is not None:
            self._cache.store(record)
        return record

    async def find_all_linked_for_article(self, article_id: str) -> list[ImageRecord]:
        """Return every image linked to *article_id* (``[]`` on failure)."""
        images = self._config.images_collection
        try:
            docs = await self._call(
                f"linked images for {article_id}",
                lambda: self._store.query_array_contains(
                    images, LINKED_ARTICLES_FIELD, article_id,
                ),
            )
        except Exception as exc:  # noqa: BLE001 - lookup failures degrade to []
            _log.warning("  Linked-images query failed for %s: %s", article_id, exc)
            return []
        records = [ImageRecord.from_document(doc) for doc in docs]
        for record in records:
            self._cache.store(record)
        return records

    # -- composite lookups -------------------------------------------------

    async def resolve_featured_image(
        self,
        article_id: str,
        featured_image_id: str | None = None,
        legacy_image_url: str | None = None,
    ) -> ImageRecord | None:
        """Pick the image that represents an article in listings.

        Tried in strict order, first hit wins:

        1. The explicit ``featured_image_id``.
        2. Any image linked to the article.
        3. The image whose url matches the legacy ``imageUrl`` field.
        """
        if featured_image_id:
            record = await self.get_by_id(featured_image_id)
            if record is not None:
                return record
        record = await self.find_linked_for_article(article_id)
        if record is not None:
            return record
        if legacy_image_url:
            return await self.get_by_url(legacy_image_url)
        return None

    async def get_many_by_ids(self, ids: Iterable[str]) -> dict[str, ImageRecord]:
        """Resolve *ids* concurrently.

        Each id is looked up independently; a failed lookup only drops
        that id from the result.
        """
        unique = [i for i in dict.fromkeys(ids) if i]
        if not unique:
            return {}
        results = await asyncio.gather(*(self.get_by_id(i) for i in unique))
        resolved = {
            image_id: record
            for image_id, record in zip(unique, results)
            if record is not None
        }
        _log.debug("  Resolved %d of %d image(s)", len(resolved), len(unique))
        return resolved

    # -- invalidation ------------------------------------------------------

    def invalidate(self, image_id: str) -> None:
        """Forget cached state for *image_id* (call after metadata edits)."""
        self._cache.invalidate(image_id)

    def invalidate_url(self, url: str) -> None:
        self._cache.invalidate_url(url)

    def clear(self) -> None:
        self._cache.clear()

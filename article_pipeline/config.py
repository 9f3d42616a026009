"""Configuration for the article content pipeline."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_ARTICLES_COLLECTION = "articles"
"""Document-store collection holding article metadata."""

DEFAULT_IMAGES_COLLECTION = "images"
"""Document-store collection holding image records."""

DEFAULT_LOOKUP_TIMEOUT_S = 10.0
"""Per-call timeout for document-store lookups (seconds)."""


@dataclass(frozen=True)
class PipelineConfig:
    """Settings shared by the resolver and the content service."""

    articles_collection: str = DEFAULT_ARTICLES_COLLECTION
    images_collection: str = DEFAULT_IMAGES_COLLECTION
    lookup_timeout: float | None = DEFAULT_LOOKUP_TIMEOUT_S
    """Timeout applied to each store call; ``None`` disables it."""
    cache_ttl: float | None = None
    """Seconds before a cached image entry is looked up again.

    ``None`` keeps entries for the lifetime of the cache object.  Entries
    can always be evicted early with ``ImageResolver.invalidate()``.
    """

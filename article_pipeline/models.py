"""Data models for image records, articles, and pipeline output.

Store documents use camelCase field names and are loosely typed (fields
may be missing or hold the wrong type).  The ``from_document``
constructors type-check every field and fall back to empty values, so
the rest of the pipeline can rely on the declared types.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from article_pipeline.stores import Document


# ---------------------------------------------------------------------------
# Field coercion helpers
# ---------------------------------------------------------------------------


def _str_or_empty(value: object) -> str:
    return value if isinstance(value, str) else ""


def _str_or_none(value: object) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _timestamp(value: object) -> dt.datetime | None:
    """Convert a stored timestamp to ``datetime``.

    Accepts ``datetime`` instances and ISO-8601 strings (a trailing ``Z``
    is read as UTC).  Anything else maps to ``None``.
    """
    if isinstance(value, dt.datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def _string_list(value: object) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str)]


# ---------------------------------------------------------------------------
# Image records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RenderImage:
    """Render-safe projection of an :class:`ImageRecord`.

    The only image fields allowed into markup or API output.  Uploader
    identity and timestamps are deliberately absent.
    """

    id: str
    url: str | None
    caption: str = ""
    credit: str = ""
    alt_text: str = ""
    storage_path: str | None = None


@dataclass(frozen=True)
class ImageRecord:
    """One uploaded image and its editorial metadata.

    ``id`` is the only stable cross-reference key.  ``url`` may change
    independently (re-upload to a new path).
    """

    id: str
    url: str | None = None
    storage_path: str | None = None
    file_name: str = ""
    caption: str = ""
    credit: str = ""
    alt_text: str = ""
    linked_article_ids: frozenset[str] = frozenset()
    uploaded_by: str | None = None
    uploaded_by_name: str | None = None
    created_at: dt.datetime | None = None
    last_used_at: dt.datetime | None = None

    @classmethod
    def from_document(cls, doc: Document) -> ImageRecord:
        """Build a record from a raw ``images`` collection document."""
        data = doc.data
        return cls(
            id=doc.id,
            url=_str_or_none(data.get("url")),
            storage_path=_str_or_none(data.get("storagePath")),
            file_name=_str_or_empty(data.get("fileName")),
            caption=_str_or_empty(data.get("caption")),
            credit=_str_or_empty(data.get("credit")),
            alt_text=_str_or_empty(data.get("altText")),
            linked_article_ids=frozenset(_string_list(data.get("linkedArticleIds"))),
            uploaded_by=_str_or_none(data.get("uploadedBy")),
            uploaded_by_name=_str_or_none(data.get("uploadedByName")),
            created_at=_timestamp(data.get("createdAt")),
            last_used_at=_timestamp(data.get("lastUsedAt")),
        )

    def project(self) -> RenderImage:
        """Return the render-safe subset of this record."""
        return RenderImage(
            id=self.id,
            url=self.url,
            caption=self.caption,
            credit=self.credit,
            alt_text=self.alt_text,
            storage_path=self.storage_path,
        )


# ---------------------------------------------------------------------------
# Cache lookup results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Found:
    """Lookup result for a record that exists."""

    record: ImageRecord


class _NotFound:
    """Lookup result for a record confirmed absent."""

    _instance: _NotFound | None = None

    def __new__(cls) -> _NotFound:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND = _NotFound()
"""Sentinel for "looked up, does not exist" (distinct from "not looked up")."""

LookupResult = Union[Found, _NotFound]


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ArticleRecord:
    """Article metadata document from the ``articles`` collection."""

    id: str
    path: str | None
    title: str = ""
    date: str = ""
    blurb: str = ""
    tags: tuple[str, ...] = ()
    featured_image_id: str | None = None
    image_url: str | None = None
    size: str | None = None

    @classmethod
    def from_document(cls, doc: Document) -> ArticleRecord:
        data = doc.data
        return cls(
            id=doc.id,
            path=_str_or_none(data.get("path")),
            title=_str_or_empty(data.get("title")),
            date=_str_or_empty(data.get("date")),
            blurb=_str_or_empty(data.get("blurb")),
            tags=tuple(_string_list(data.get("tags"))),
            featured_image_id=_str_or_none(data.get("featuredImageId")),
            image_url=_str_or_none(data.get("imageUrl")),
            size=_str_or_none(data.get("size")),
        )


@dataclass
class ArticleContent:
    """Render-ready article content produced by the pipeline.

    ``markdown`` is the normalized form (legacy inline images rewritten
    to tokens).  Edit flows should persist it back instead of the raw
    original.
    """

    id: str
    content_html: str
    markdown: str
    referenced_images: list[RenderImage] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    """Front-matter values from the markdown document."""

    def to_dict(self) -> dict[str, Any]:
        """JSON-serialisable view of the content."""
        return asdict(self)


@dataclass
class ArticleSummary:
    """Listing entry for an article, decorated with its featured image."""

    id: str
    title: str
    date: str
    blurb: str = ""
    tags: tuple[str, ...] = ()
    size: str | None = None
    featured_image: RenderImage | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["tags"] = list(self.tags)
        return data

"""Article content resolution pipeline.

Orchestrates the full flow for one article: load the markdown blob,
migrate legacy inline images to tokens, resolve the referenced image
records, substitute figures, and render HTML.

Steps of :meth:`ArticleContentService.get_article_content`:

1. Load article metadata and the markdown blob (fatal on failure).
2. Load the images linked to the article (degrades to none).
3. :func:`~article_pipeline.legacy.normalize_legacy_markdown`.
4. :meth:`~article_pipeline.resolver.ImageResolver.get_many_by_ids`,
   projecting each record to :class:`~article_pipeline.models.RenderImage`.
5. :func:`~article_pipeline.figures.replace_tokens`.
6. Split front matter and render the body.

The returned markdown is the normalized form, so an edit-and-resave cycle
persists the migrated tokens.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import time

from article_pipeline.config import PipelineConfig
from article_pipeline.figures import replace_tokens
from article_pipeline.legacy import normalize_legacy_markdown
from article_pipeline.models import (
    ArticleContent,
    ArticleRecord,
    ArticleSummary,
    RenderImage,
)
from article_pipeline.renderer import (
    MarkdownRenderer,
    PythonMarkdownRenderer,
    split_front_matter,
)
from article_pipeline.resolver import ImageResolver
from article_pipeline.stores import BlobStore, DocumentStore, call_with_timeout
from article_pipeline.tokens import extract_token_ids

_log = logging.getLogger("content")


class ArticleNotFoundError(LookupError):
    """The article document, or its markdown location, does not exist."""


class ContentFetchError(RuntimeError):
    """The article's markdown blob could not be fetched or decoded."""


def decode_markdown(data: bytes) -> str:
    """Decode markdown bytes as UTF-8, dropping a leading BOM.

    Invalid byte sequences are replaced rather than failing the article.
    """
    if data.startswith(codecs.BOM_UTF8):
        data = data[len(codecs.BOM_UTF8):]
    return data.decode("utf-8", errors="replace")


class ArticleContentService:
    """Produce render-ready article content from stored markdown.

    One instance is meant to live as long as its image cache should
    (e.g. per process or per request scope).  The resolver is shared by
    :meth:`get_article_content` and the listing helpers.

    Usage::

        service = ArticleContentService(documents, blobs)
        content = await service.get_article_content("my-article")
        print(content.content_html)
    """

    def __init__(
        self,
        documents: DocumentStore,
        blobs: BlobStore,
        *,
        renderer: MarkdownRenderer | None = None,
        resolver: ImageResolver | None = None,
        config: PipelineConfig | None = None,
    ) -> None:
        self._documents = documents
        self._blobs = blobs
        self._config = config or PipelineConfig()
        self._renderer = renderer or PythonMarkdownRenderer()
        self._resolver = resolver or ImageResolver(documents, config=self._config)

    @property
    def resolver(self) -> ImageResolver:
        return self._resolver

    # -- article loading ---------------------------------------------------

    async def load_article(self, article_id: str) -> ArticleRecord:
        """Load article metadata.

        Raises:
            ArticleNotFoundError: If no article has *article_id*.
            TimeoutError: If the store does not answer within
                ``config.lookup_timeout``.
        """
        articles = self._config.articles_collection
        doc = await call_with_timeout(
            f"article {article_id}",
            lambda: self._documents.get(articles, article_id),
            self._config.lookup_timeout,
        )
        if doc is None:
            raise ArticleNotFoundError(f"Article not found: {article_id}")
        return ArticleRecord.from_document(doc)

    async def load_markdown(self, article: ArticleRecord) -> str:
        """Fetch and decode the raw markdown for *article*.

        Raises:
            ArticleNotFoundError: If the article has no markdown path.
            ContentFetchError: If the blob cannot be read in time.
        """
        if not article.path:
            raise ArticleNotFoundError(
                f"Article {article.id} has no markdown location"
            )
        try:
            data = await call_with_timeout(
                f"markdown {article.path}",
                lambda: self._blobs.get_bytes(article.path),
                self._config.lookup_timeout,
            )
        except Exception as exc:
            raise ContentFetchError(
                f"Failed to fetch markdown for article {article.id} "
                f"from {article.path}: {exc}"
            ) from exc
        return decode_markdown(data)

    # -- public API --------------------------------------------------------

    async def get_article_content(self, article_id: str) -> ArticleContent:
        """Build the render-ready content for *article_id*.

        Missing or unresolvable images render as placeholder figures; only
        a missing article or markdown blob fails the call.

        Raises:
            ArticleNotFoundError: If the article or its markdown path is missing.
            ContentFetchError: If the markdown blob cannot be fetched.
        """
        t0 = time.monotonic()
        article = await self.load_article(article_id)
        raw_markdown = await self.load_markdown(article)

        linked = await self._resolver.find_all_linked_for_article(article_id)
        _log.debug("  %s: %d linked image(s)", article_id, len(linked))

        normalized = normalize_legacy_markdown(raw_markdown, linked)

        records = await self._resolver.get_many_by_ids(normalized.referenced_ids)
        image_map: dict[str, RenderImage] = {
            image_id: record.project() for image_id, record in records.items()
        }
        missing = [i for i in normalized.referenced_ids if i not in image_map]
        if missing:
            _log.warning(
                "  %s: %d image(s) unavailable: %s",
                article_id, len(missing), ", ".join(missing),
            )

        with_figures = replace_tokens(normalized.markdown, image_map)
        metadata, body = split_front_matter(with_figures)
        content_html = self._renderer.render(body)

        referenced = [
            image_map[i] for i in extract_token_ids(normalized.markdown)
            if i in image_map
        ]
        _log.info(
            "  Rendered %s (%d image(s), %.2fs)",
            article_id, len(referenced), time.monotonic() - t0,
        )
        return ArticleContent(
            id=article_id,
            content_html=content_html,
            markdown=normalized.markdown,
            referenced_images=referenced,
            metadata=metadata,
        )

    async def resolve_featured_image_for_article(
        self, article: ArticleRecord | str,
    ) -> RenderImage | None:
        """Representative image for listings, or ``None``.

        Accepts an already-loaded :class:`ArticleRecord` or an article id.
        Shares the resolver cache with :meth:`get_article_content`.
        """
        if isinstance(article, str):
            article = await self.load_article(article)
        record = await self._resolver.resolve_featured_image(
            article.id,
            featured_image_id=article.featured_image_id,
            legacy_image_url=article.image_url,
        )
        return record.project() if record is not None else None

    async def list_article_summaries(self) -> list[ArticleSummary]:
        """All articles, newest first, each with its featured image.

        Articles without a date sort last.
        """
        articles_collection = self._config.articles_collection
        docs = await call_with_timeout(
            "article listing",
            lambda: self._documents.list_all(articles_collection),
            self._config.lookup_timeout,
        )
        articles = [ArticleRecord.from_document(doc) for doc in docs]
        featured = await asyncio.gather(
            *(self.resolve_featured_image_for_article(a) for a in articles)
        )
        summaries = [
            ArticleSummary(
                id=a.id,
                title=a.title,
                date=a.date,
                blurb=a.blurb,
                tags=a.tags,
                size=a.size,
                featured_image=image,
            )
            for a, image in zip(articles, featured)
        ]
        dated = sorted((s for s in summaries if s.date), key=lambda s: s.date, reverse=True)
        undated = [s for s in summaries if not s.date]
        return dated + undated

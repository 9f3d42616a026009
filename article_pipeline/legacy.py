"""Rewrite legacy inline markdown images into image tokens.

Older articles reference images with plain ``![alt](url)`` syntax.  When
the url belongs to a known image record, the reference is rewritten to
``{{image:<id>}}`` so that captions, credits and alt text come from the
record instead of the markdown.

The rewrite is a pure string transform and is idempotent: a second pass
finds no legacy syntax for urls it already handled.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from article_pipeline.tokens import (
    IMAGE_TOKEN,
    LEGACY_IMAGE_RE,
    extract_token_ids,
    is_valid_token_id,
    legacy_image_re,
)

_log = logging.getLogger("legacy")


@dataclass
class NormalizedMarkdown:
    """Result of :func:`normalize_legacy_markdown`."""

    markdown: str
    referenced_ids: list[str] = field(default_factory=list)
    """Ids referenced by tokens in :attr:`markdown`, first occurrence first."""


def _id_and_url(image: object) -> tuple[object, object]:
    """Read ``id`` and ``url`` from a record object or a mapping."""
    if isinstance(image, Mapping):
        return image.get("id"), image.get("url")
    return getattr(image, "id", None), getattr(image, "url", None)


def normalize_legacy_markdown(
    markdown: str,
    known_images: Iterable[object],
) -> NormalizedMarkdown:
    """Rewrite legacy image syntax for *known_images* into tokens.

    Images are processed in the order given; when several share a url,
    the first one wins.  Entries without a string id and url, or whose id
    cannot be written as a token, are skipped.

    Args:
        markdown: Raw article markdown.
        known_images: Image records (or mappings) with ``id`` and ``url``.

    Returns:
        The rewritten markdown and every id it references, including
        tokens that were already present in the input.
    """
    if not isinstance(markdown, str) or not markdown:
        return NormalizedMarkdown(markdown="")

    updated = markdown
    for image in known_images or ():
        image_id, url = _id_and_url(image)
        if not isinstance(url, str) or not url or not isinstance(image_id, str):
            continue
        if not is_valid_token_id(image_id):
            _log.debug("  Skipping image with untokenizable id %r", image_id)
            continue
        updated, count = legacy_image_re(url).subn(
            IMAGE_TOKEN.format(image_id), updated,
        )
        if count:
            _log.debug("  Rewrote %d legacy reference(s) to image %s", count, image_id)

    leftover = LEGACY_IMAGE_RE.findall(updated)
    if leftover:
        _log.debug("  %d inline image(s) left without a known record", len(leftover))

    return NormalizedMarkdown(
        markdown=updated,
        referenced_ids=extract_token_ids(updated),
    )

"""Render image tokens as HTML ``<figure>`` markup.

Every token found by :data:`~article_pipeline.tokens.IMAGE_TOKEN` is
replaced by a figure.  Images that could not be resolved still produce a
figure (marked ``missing-image``) so the page layout keeps its structure.

All text taken from an image record is escaped here; the markdown
renderer passes raw HTML through untouched.

The generated markup never contains blank lines, which would end a raw
HTML block in CommonMark-style renderers.

Tokens are expected on a line of their own, with blank lines around them,
so the figure becomes a raw HTML block.  A token inside a paragraph is
still replaced, but the renderer then nests the figure in ``<p>``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping

from article_pipeline.escaping import escape_attribute, escape_html
from article_pipeline.models import RenderImage
from article_pipeline.tokens import IMAGE_TOKEN

_log = logging.getLogger("figures")

FIGURE_CLASS = "article-figure"
MISSING_IMAGE_CLASS = "missing-image"
MISSING_IMAGE_TEXT = "Image unavailable"
DEFAULT_ALT_TEXT = "Article image"


def _missing_figure(token_id: str) -> str:
    return (
        f'<figure class="{FIGURE_CLASS} {MISSING_IMAGE_CLASS}" '
        f'data-image-id="{escape_attribute(token_id)}">\n'
        f'    <div class="{FIGURE_CLASS}__placeholder">{MISSING_IMAGE_TEXT}</div>\n'
        f"</figure>"
    )


def _figcaption(record: RenderImage) -> str:
    parts: list[str] = []
    if record.caption:
        parts.append(
            f'<span class="{FIGURE_CLASS}__caption-text">'
            f"{escape_html(record.caption)}</span>"
        )
    if record.credit:
        parts.append(
            f'<span class="{FIGURE_CLASS}__credit">'
            f"Photo by {escape_html(record.credit)}</span>"
        )
    if not parts:
        return ""
    return f'<figcaption class="{FIGURE_CLASS}__caption">{"".join(parts)}</figcaption>'


def build_figure(record: RenderImage | None, token_id: str) -> str:
    """Build the ``<figure>`` markup for one image token.

    Args:
        record: Resolved image, or ``None`` when resolution failed.
        token_id: Id as written in the token.  Used for the
            ``data-image-id`` attribute of the placeholder, and as a
            fallback when the record carries no id.

    Returns:
        HTML fragment ending in ``</figure>``.  Never raises for a
        missing or url-less record.
    """
    if record is None or not isinstance(record.url, str) or not record.url:
        return _missing_figure(token_id)

    alt_text = record.alt_text or record.caption or DEFAULT_ALT_TEXT
    lines = [
        f'<figure class="{FIGURE_CLASS}" '
        f'data-image-id="{escape_attribute(record.id or token_id)}">',
        f'    <img src="{escape_attribute(record.url)}" '
        f'alt="{escape_attribute(alt_text)}" loading="lazy" decoding="async" />',
    ]
    caption = _figcaption(record)
    if caption:
        lines.append(f"    {caption}")
    lines.append("</figure>")
    return "\n".join(lines)


def replace_tokens(
    markdown: str,
    image_map: Mapping[str, RenderImage | None],
) -> str:
    """Replace every image token in *markdown* with figure markup.

    Ids missing from *image_map* render the missing-image placeholder.
    Output without tokens is returned unchanged, so a second pass is a
    no-op.
    """
    if not isinstance(markdown, str) or not markdown:
        return markdown

    def _substitute(match: re.Match[str]) -> str:
        token_id = match.group(1).strip()
        if not token_id:
            return ""
        record = image_map.get(token_id)
        if record is None:
            _log.debug("  No image record for token %s", token_id)
        return build_figure(record, token_id)

    return IMAGE_TOKEN.re.sub(_substitute, markdown)

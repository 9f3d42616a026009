"""Markdown-to-HTML rendering and front-matter handling.

Rendering is delegated to Python-Markdown.  Raw HTML passes through
unchanged: figure markup is already escaped by
:mod:`article_pipeline.figures` and must not be escaped twice.

Front matter is a YAML block at the very top of the document, opened by a
``---`` line and closed by the next ``---`` (or ``...``) line.  The block is
cut at those delimiters and parsed with ``yaml.safe_load``, so lists,
nested mappings and blank lines inside the block all stay out of the body.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

import markdown
import yaml

_log = logging.getLogger("renderer")

DEFAULT_EXTENSIONS: tuple[str, ...] = ("extra", "sane_lists")
"""Python-Markdown extensions enabled by :class:`PythonMarkdownRenderer`."""

FRONT_MATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?P<yaml>.*?)^(?:---|\.\.\.)[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)
"""Regex matching a leading front-matter block, capturing ``(yaml)``."""


@runtime_checkable
class MarkdownRenderer(Protocol):
    """Markdown-to-HTML transform with raw HTML passthrough."""

    def render(self, body: str) -> str:
        ...


class PythonMarkdownRenderer:
    """:class:`MarkdownRenderer` backed by the ``markdown`` package."""

    def __init__(self, extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> None:
        self._extensions = list(extensions)

    def render(self, body: str) -> str:
        return markdown.markdown(body, extensions=self._extensions)


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Split a leading front-matter block from *text*.

    Returns:
        ``(metadata, body)``.  Values keep their YAML types.  A block that
        is not valid YAML, or whose top level is not a mapping, yields
        empty metadata but is still removed from the body.  Without a
        closed front-matter block, returns ``({}, text)`` unchanged.
    """
    m = FRONT_MATTER_RE.match(text)
    if m is None:
        return {}, text

    body = text[m.end():]
    try:
        data = yaml.safe_load(m.group("yaml"))
    except yaml.YAMLError as exc:
        _log.warning("  Ignoring malformed front matter: %s", exc)
        return {}, body
    if data is None:
        return {}, body
    if not isinstance(data, dict):
        _log.warning("  Ignoring front matter that is not a mapping")
        return {}, body
    return {str(key): value for key, value in data.items()}, body

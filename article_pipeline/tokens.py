"""Centralized token definitions for image references in article markdown.

Single source of truth for the ``{{image:<id>}}`` token embedded in stored
markdown and for the legacy inline ``![alt](url)`` syntax it replaces.
Provides format strings and compiled regexes so that no module needs to
hard-code either pattern.

Usage::

    from article_pipeline.tokens import IMAGE_TOKEN, extract_token_ids

    IMAGE_TOKEN.format("abc123")          # '{{image:abc123}}'
    IMAGE_TOKEN.example                   # '{{image:<id>}}'
    IMAGE_TOKEN.re.findall(text)          # ['abc123', ...]
    extract_token_ids(text)               # distinct ids, first-occurrence order

    legacy_image_re("https://x/img.png").sub("{{image:abc123}}", text)

The token format is versionless.  Any future change must keep existing
documents readable by :data:`IMAGE_TOKEN`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import cached_property

TOKEN_ID_PATTERN = r"[A-Za-z0-9_-]+"
"""Allowed characters for an image id inside a token."""

_TOKEN_ID_RE = re.compile(TOKEN_ID_PATTERN, re.ASCII)


@dataclass(frozen=True)
class TokenDef:
    """Double-brace token definition, e.g. ``{{image:abc123}}``.

    Parameters
    ----------
    keyword:
        Lower-case keyword before the colon.  Matched case-insensitively.
    _value_re:
        Regex for the value payload (without capture groups).
    _example_value:
        Placeholder used in :attr:`example`.
    """

    keyword: str
    _value_re: str = TOKEN_ID_PATTERN
    _example_value: str = "<id>"

    def format(self, value: str) -> str:
        """Generate the canonical token for *value*.

        >>> IMAGE_TOKEN.format("abc123")
        '{{image:abc123}}'
        """
        return f"{{{{{self.keyword}:{value}}}}}"

    @property
    def example(self) -> str:
        """Human-readable example for help text.

        >>> IMAGE_TOKEN.example
        '{{image:<id>}}'
        """
        return self.format(self._example_value)

    @cached_property
    def re(self) -> re.Pattern[str]:
        """Regex matching a token, capturing ``(value)``.

        Whitespace is tolerated just inside the braces.  Values with
        characters outside the payload pattern do not match at all.
        """
        return re.compile(
            rf"\{{\{{\s*{re.escape(self.keyword)}:({self._value_re})\s*\}}\}}",
            re.IGNORECASE | re.ASCII,
        )


# ---------------------------------------------------------------------------
# Token instances
# ---------------------------------------------------------------------------

IMAGE_TOKEN = TokenDef("image")
"""Reference to an image record by id: ``{{image:<id>}}``."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def is_valid_token_id(value: object) -> bool:
    """Return ``True`` if *value* can be embedded in an image token."""
    return isinstance(value, str) and _TOKEN_ID_RE.fullmatch(value) is not None


def extract_token_ids(markdown: str | None) -> list[str]:
    """Return the distinct image ids referenced by tokens in *markdown*.

    Ids are trimmed and returned in order of first occurrence.  Malformed
    tokens are not matched.
    """
    if not markdown:
        return []
    seen: dict[str, None] = {}
    for match in IMAGE_TOKEN.re.finditer(markdown):
        image_id = match.group(1).strip()
        if image_id:
            seen.setdefault(image_id, None)
    return list(seen)


def legacy_image_re(url: str) -> re.Pattern[str]:
    """Regex matching inline markdown images that point at exactly *url*.

    Matches ``![alt](url)`` and ``![alt](url "title")``.  The url is
    regex-escaped, so only an exact match is rewritten.
    """
    return re.compile(
        rf"!\[[^\]]*\]\({re.escape(url)}(?:\s+\"[^\"]*\")?\)",
    )


LEGACY_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)\s]+)(?:\s+\"[^\"]*\")?\)")
"""Regex matching any inline markdown image.

Captures ``(alt_text, url)``.  Used to report legacy references that no
known image record accounts for.
"""

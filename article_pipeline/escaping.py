"""HTML escaping for user-controlled text placed into generated markup.

Captions, credits, alt text, file names, ids and urls all come from editors
and must pass through one of these functions before concatenation.  The
markdown renderer runs with raw HTML passthrough, so nothing downstream
escapes them again.
"""

from __future__ import annotations

_HTML_REPLACEMENTS = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#39;"),
)

_ATTRIBUTE_REPLACEMENTS = (
    ("&", "&amp;"),
    ('"', "&quot;"),
    ("<", "&lt;"),
)


def _apply(value: object, replacements: tuple[tuple[str, str], ...]) -> str:
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    # "&" is always first so already-produced entities are not re-escaped.
    for char, entity in replacements:
        text = text.replace(char, entity)
    return text


def escape_html(value: object) -> str:
    """Escape *value* for HTML text content (``& < > " '``).

    >>> escape_html("<b>Tom & Jerry's</b>")
    '&lt;b&gt;Tom &amp; Jerry&#39;s&lt;/b&gt;'
    """
    return _apply(value, _HTML_REPLACEMENTS)


def escape_attribute(value: object) -> str:
    """Escape *value* for a double-quoted HTML attribute (``& " <``).

    >>> escape_attribute('a "b" <c>')
    'a &quot;b&quot; &lt;c>'
    """
    return _apply(value, _ATTRIBUTE_REPLACEMENTS)

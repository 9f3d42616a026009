"""Unit tests for the image token grammar in tokens.py."""

import re

import pytest

from article_pipeline.tokens import (
    IMAGE_TOKEN,
    LEGACY_IMAGE_RE,
    TokenDef,
    extract_token_ids,
    is_valid_token_id,
    legacy_image_re,
)


# ---------------------------------------------------------------------------
# TokenDef.format() / example
# ---------------------------------------------------------------------------


class TestTokenFormat:
    """Tests for canonical token generation."""

    def test_image_format(self):
        assert IMAGE_TOKEN.format("abc123") == "{{image:abc123}}"

    def test_example(self):
        assert IMAGE_TOKEN.example == "{{image:<id>}}"

    def test_custom_token(self):
        t = TokenDef("video")
        assert t.format("v1") == "{{video:v1}}"

    def test_format_roundtrips_through_regex(self):
        m = IMAGE_TOKEN.re.search(IMAGE_TOKEN.format("a_b-C9"))
        assert m is not None
        assert m.group(1) == "a_b-C9"


# ---------------------------------------------------------------------------
# IMAGE_TOKEN.re
# ---------------------------------------------------------------------------


class TestTokenRegex:
    """Tests for token recognition."""

    def test_matches_canonical(self):
        m = IMAGE_TOKEN.re.search("before {{image:abc}} after")
        assert m is not None
        assert m.group(1) == "abc"

    def test_keyword_case_insensitive(self):
        assert IMAGE_TOKEN.re.search("{{IMAGE:abc}}") is not None
        assert IMAGE_TOKEN.re.search("{{Image:abc}}") is not None

    def test_whitespace_inside_braces(self):
        m = IMAGE_TOKEN.re.search("{{  image:abc  }}")
        assert m is not None
        assert m.group(1) == "abc"

    def test_empty_id_not_matched(self):
        assert IMAGE_TOKEN.re.search("{{image:}}") is None

    def test_disallowed_characters_not_matched(self):
        assert IMAGE_TOKEN.re.search("{{image:abc def}}") is None
        assert IMAGE_TOKEN.re.search("{{image:a.b}}") is None
        assert IMAGE_TOKEN.re.search("{{image:<script>}}") is None

    def test_single_braces_not_matched(self):
        assert IMAGE_TOKEN.re.search("{image:abc}") is None

    def test_other_keyword_not_matched(self):
        assert IMAGE_TOKEN.re.search("{{video:abc}}") is None


# ---------------------------------------------------------------------------
# extract_token_ids
# ---------------------------------------------------------------------------


class TestExtractTokenIds:
    """Tests for extract_token_ids()."""

    def test_empty(self):
        assert extract_token_ids("") == []
        assert extract_token_ids(None) == []

    def test_no_tokens(self):
        assert extract_token_ids("# Title\n\nJust text.") == []

    def test_first_occurrence_order(self):
        text = "{{image:b}} {{image:a}} {{image:c}}"
        assert extract_token_ids(text) == ["b", "a", "c"]

    def test_deduplicated(self):
        text = "{{image:a}}\n{{image:b}}\n{{IMAGE:a}}\n{{ image:b }}"
        assert extract_token_ids(text) == ["a", "b"]

    def test_malformed_tokens_ignored(self):
        text = "{{image:}} {{image:bad id}} {{image:ok}}"
        assert extract_token_ids(text) == ["ok"]

    def test_only_grammar_ids_returned(self):
        text = "{{image:a1}} {{image:x/y}} {{image:z_9-Q}} {{image:é}}"
        ids = extract_token_ids(text)
        assert ids == ["a1", "z_9-Q"]
        assert all(re.fullmatch(r"[A-Za-z0-9_-]+", i) for i in ids)

    def test_deterministic(self):
        text = "{{image:x}} text {{image:y}} {{image:x}}"
        assert extract_token_ids(text) == extract_token_ids(text)


class TestIsValidTokenId:

    @pytest.mark.parametrize("value", ["abc", "A-1", "x_y", "0"])
    def test_valid(self, value):
        assert is_valid_token_id(value)

    @pytest.mark.parametrize("value", ["", "a b", "a/b", None, 42, " abc"])
    def test_invalid(self, value):
        assert not is_valid_token_id(value)


# ---------------------------------------------------------------------------
# Legacy image patterns
# ---------------------------------------------------------------------------


class TestLegacyImageRe:
    """Tests for legacy_image_re() and LEGACY_IMAGE_RE."""

    def test_plain(self):
        pattern = legacy_image_re("https://x/img.png")
        assert pattern.search("![Caption](https://x/img.png)") is not None

    def test_with_title(self):
        pattern = legacy_image_re("https://x/img.png")
        assert pattern.search('![alt](https://x/img.png "A title")') is not None

    def test_empty_alt(self):
        pattern = legacy_image_re("https://x/img.png")
        assert pattern.search("![](https://x/img.png)") is not None

    def test_url_is_escaped(self):
        """Regex metacharacters in the url must match literally."""
        url = "https://x/img.png?w=100&h=(2)"
        pattern = legacy_image_re(url)
        assert pattern.search(f"![a]({url})") is not None
        assert pattern.search("![a](https://x/imgXpng?w=100&h=(2))") is None

    def test_different_url_not_matched(self):
        pattern = legacy_image_re("https://x/img.png")
        assert pattern.search("![a](https://x/img.png2)") is None
        assert pattern.search("![a](https://x/other.png)") is None

    def test_plain_link_not_matched(self):
        pattern = legacy_image_re("https://x/img.png")
        assert pattern.search("[a](https://x/img.png)") is None

    def test_generic_pattern_captures(self):
        m = LEGACY_IMAGE_RE.search('![Alt text](https://x/y.jpg "t")')
        assert m is not None
        assert m.group(1) == "Alt text"
        assert m.group(2) == "https://x/y.jpg"

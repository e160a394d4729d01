"""
Text helpers for quote verification and display.

Quotes come back from the model with <b> emphasis and HTML entities; the
texts come back from Sefaria with their own inline markup. Everything that
compares the two goes through here.
"""

import html
import re
from typing import Optional

_EMPHASIS_RE = re.compile(r"</?b>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_NIKUD_RE = re.compile(r"[\u0591-\u05C7]")
_PUNCT_RE = re.compile(r"[^\w\s]", re.UNICODE)
_WS_RE = re.compile(r"\s+")


def unescape(value: Optional[str]) -> str:
    """Decode HTML entities (&quot; &#39; ...). None becomes ''."""
    if not value:
        return ""
    return html.unescape(value)


def strip_emphasis(quote: Optional[str]) -> str:
    """Remove <b>/</b> markers (any case). Entities are decoded by the caller."""
    if not quote:
        return ""
    return _EMPHASIS_RE.sub("", quote)


def strip_html_tags(value: Optional[str]) -> str:
    if not value:
        return ""
    return _TAG_RE.sub("", value)


def normalize_for_match(value: str) -> str:
    """
    Loose form used only for highlighting: no tags, no nikud/cantillation,
    no punctuation, collapsed whitespace.
    """
    value = strip_html_tags(html.unescape(value))
    value = _NIKUD_RE.sub("", value)
    value = _PUNCT_RE.sub(" ", value)
    return _WS_RE.sub(" ", value).strip()


def quote_is_faithful(quote: Optional[str], text: Optional[str]) -> bool:
    """
    True when the quote, with emphasis removed, is a contiguous substring of
    the source text as returned or of the same text with its tags removed.
    """
    needle = strip_emphasis(quote).strip()
    if not needle or not text:
        return False
    if needle in text:
        return True
    plain = html.unescape(strip_html_tags(text))
    return needle in plain

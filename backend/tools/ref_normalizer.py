"""
Sefaria reference normalization.

The model writes refs the way people say them ("Parashat Noach 2",
"Shulchan Arukh, Orach Chayim 308"). Sefaria's texts API wants them without
filler words and with underscores for spaces. Everything here is pure and
never raises.
"""

import re
from typing import Optional

SEFARIA_SITE = "https://www.sefaria.org"

# Words that never appear in a canonical Sefaria ref
_FILLER_RE = re.compile(r"\b(?:parashat|parshat|parashas|parshas|perek)\s+", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")
_SEGMENT_RE = re.compile(r"[:.]\d+$")


def normalize_ref(ref: Optional[str]) -> str:
    """
    Normalize a reference for the Sefaria API.

    >>> normalize_ref("  Parashat Noach  ")
    'Noach'
    >>> normalize_ref("Shulchan Arukh, Orach Chayim 308")
    'Shulchan_Arukh,_Orach_Chayim_308'

    Idempotent: the output contains no whitespace, so neither the filler
    pattern nor the whitespace pass can match it again.
    """
    if not ref:
        return ""
    cleaned = ref.strip()
    cleaned = _FILLER_RE.sub("", cleaned)
    cleaned = cleaned.strip()
    return _WS_RE.sub("_", cleaned)


def has_segment_index(ref: Optional[str]) -> bool:
    """True if the ref already ends in a segment index like ':4' or '.1'."""
    if not ref:
        return False
    return bool(_SEGMENT_RE.search(ref.strip()))


def with_first_segment(ref: str) -> str:
    """Point a chapter-level ref at its first segment."""
    return f"{ref.strip()}.1"


def sefaria_link(ref: Optional[str]) -> str:
    """Public Sefaria page for a ref, or '' when there is no ref."""
    normalized = normalize_ref(ref)
    if not normalized:
        return ""
    return f"{SEFARIA_SITE}/{normalized}"

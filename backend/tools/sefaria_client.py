"""
Sefaria API Client
==================

Fetches real text from Sefaria so that every quote the model produces can be
checked against it. This is the data layer for the resolution step and for
the single-source viewer.

Endpoints used:
- Texts API: /api/texts/<ref>?context=0 (context=1 for the viewer)

Key Design Decisions:
- All methods are async
- Every request goes through an ordered list of forwarding relays; the first
  2xx response wins
- Lookups return a structured status so the ".1" retry is decided once, from
  the status, and not by matching error strings at every call site
- Nothing is cached: texts are fetched fresh for every query
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional
from urllib.parse import quote

import httpx

from config import get_settings
from errors import HalachaSearchError, RelayExhaustedError
from models import SourceView, TextRecord
from source_output import highlight_quote
from tools.ref_normalizer import has_segment_index, normalize_ref, with_first_segment

logger = logging.getLogger(__name__)

# Body errors that mean "this ref does not exist", as opposed to a server fault
NOT_FOUND_MARKERS = ("could not find ref", "unknown ref", "not a valid ref")


# ==========================================
#  RELAY FETCHER
# ==========================================

def build_relay_url(template: str, url: str) -> str:
    """
    Fill a relay template.

    Placeholders: {url} full target, {encoded_url} percent-encoded target,
    {bare_url} target without its scheme.
    """
    bare = url.split("://", 1)[1] if "://" in url else url
    return template.format(url=url, encoded_url=quote(url, safe=""), bare_url=bare)


class RelayFetcher:
    """
    GET a URL through an ordered list of forwarding relays.

    Each relay attempt is capped at `timeout` seconds as a whole, slow
    streaming bodies included. Non-2xx responses, timeouts and transport
    errors move on to the next relay. When every relay fails,
    RelayExhaustedError is raised carrying the last error.
    """

    def __init__(
        self,
        relays: List[str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not relays:
            raise ValueError("RelayFetcher needs at least one relay template")
        self.relays = list(relays)
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            follow_redirects=True,
        )

    async def get(self, url: str) -> httpx.Response:
        last_error: Optional[str] = None

        async with self._client() as client:
            for index, template in enumerate(self.relays, 1):
                relay_url = build_relay_url(template, url)
                try:
                    response = await asyncio.wait_for(client.get(relay_url), self.timeout)
                except (asyncio.TimeoutError, httpx.TimeoutException):
                    last_error = f"relay {index} timed out after {self.timeout}s"
                    logger.warning(f"[RELAY] {last_error} ({template})")
                    continue
                except httpx.HTTPError as e:
                    last_error = f"relay {index} failed: {e}"
                    logger.warning(f"[RELAY] {last_error} ({template})")
                    continue

                if response.is_success:
                    logger.debug(f"[RELAY] fetched via relay {index}: {url}")
                    return response

                last_error = f"relay {index} returned {response.status_code}: {response.text[:200]}"
                logger.warning(f"[RELAY] {last_error} ({template})")

        logger.error(f"[RELAY] all {len(self.relays)} relays failed for {url}. Last error: {last_error}")
        raise RelayExhaustedError(url=url, last_error=last_error)


# ==========================================
#  LOOKUP RESULT
# ==========================================

class LookupStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    API_ERROR = "api_error"
    EMPTY = "empty"
    TRANSPORT_ERROR = "transport_error"


@dataclass
class TextLookup:
    """Outcome of one Texts API request."""
    ref: str
    status: LookupStatus
    record: Optional[TextRecord] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == LookupStatus.OK


def flatten_text(text: Any, separator: str = " ") -> str:
    """Flatten Sefaria's (possibly nested) list of segments into one string."""
    if isinstance(text, str):
        return text
    if isinstance(text, list):
        parts = []
        for item in text:
            flat = flatten_text(item, separator)
            if flat:
                parts.append(flat)
        return separator.join(parts)
    return str(text) if text else ""


def _is_empty(he: Any) -> bool:
    if not he:
        return True
    return not flatten_text(he).strip()


# ==========================================
#  SEFARIA CLIENT
# ==========================================

class SefariaClient:
    """
    Client for Sefaria's Texts API.

    Usage:
        client = SefariaClient(base_url, RelayFetcher(relays))

        record = await client.fetch_text("Shulchan Arukh, Orach Chayim 308")
        records = await client.fetch_many(["Berakhot 2a", "Genesis 1"])
        view = await client.get_source_view("Berakhot 2a", quote)
    """

    def __init__(self, base_url: str, fetcher: RelayFetcher):
        self.base_url = base_url.rstrip("/")
        self.fetcher = fetcher
        logger.info("SefariaClient initialized")

    def text_url(self, ref: str, context: int = 0) -> str:
        return f"{self.base_url}/api/texts/{normalize_ref(ref)}?context={context}"

    def _parse(self, ref: str, data: Any) -> TextLookup:
        if not isinstance(data, dict):
            return TextLookup(ref, LookupStatus.API_ERROR, detail="response body is not an object")

        error = data.get("error")
        if error:
            lowered = str(error).lower()
            if any(marker in lowered for marker in NOT_FOUND_MARKERS):
                return TextLookup(ref, LookupStatus.NOT_FOUND, detail=str(error))
            return TextLookup(ref, LookupStatus.API_ERROR, detail=str(error))

        he = data.get("he")
        if _is_empty(he):
            return TextLookup(ref, LookupStatus.EMPTY, detail="no Hebrew text")

        record = TextRecord(
            ref=data.get("ref") or ref,
            he_ref=data.get("heRef") or "",
            book=data.get("book") or data.get("indexTitle") or "",
            he_book=data.get("heBook") or data.get("heIndexTitle") or "",
            text=flatten_text(he),
            raw=he,
        )
        return TextLookup(ref, LookupStatus.OK, record=record)

    async def lookup(self, ref: str, context: int = 0) -> TextLookup:
        """
        One Texts API request, classified.

        Never raises: relay exhaustion and undecodable bodies come back as
        TRANSPORT_ERROR / API_ERROR.
        """
        url = self.text_url(ref, context)
        try:
            response = await self.fetcher.get(url)
        except RelayExhaustedError as e:
            return TextLookup(ref, LookupStatus.TRANSPORT_ERROR, detail=e.last_error or "")

        try:
            data = response.json()
        except ValueError as e:
            return TextLookup(ref, LookupStatus.API_ERROR, detail=f"invalid JSON: {e}")

        return self._parse(ref, data)

    async def fetch_text(self, ref: str) -> Optional[TextRecord]:
        """
        Fetch the Hebrew text for a ref, or None.

        A chapter-level ref that Sefaria does not know is retried exactly once
        pointed at its first segment (".1").
        """
        result = await self.lookup(ref)

        if result.status == LookupStatus.NOT_FOUND and not has_segment_index(ref):
            retry_ref = with_first_segment(ref)
            logger.warning(f"Ref '{ref}' not found. Retrying as '{retry_ref}'")
            result = await self.lookup(retry_ref)

        if not result.ok:
            logger.warning(f"Could not fetch text for '{ref}': {result.status.value} {result.detail}")
            return None

        return result.record

    async def fetch_many(self, refs: List[str]) -> List[Optional[TextRecord]]:
        """Fetch all refs concurrently. Output order matches input order."""
        return list(await asyncio.gather(*(self.fetch_text(ref) for ref in refs)))

    async def get_source_view(self, ref: str, quote_text: str = "") -> SourceView:
        """
        Full text of a single source (with context) and the quote highlighted.

        Unlike fetch_text this raises: RelayExhaustedError when every relay
        fails and HalachaSearchError for body errors or empty text.
        """
        url = self.text_url(ref, context=1)
        response = await self.fetcher.get(url)
        try:
            data = response.json()
        except ValueError as e:
            raise HalachaSearchError(f"Sefaria returned invalid JSON for '{ref}'") from e

        result = self._parse(ref, data)
        if not result.ok:
            raise HalachaSearchError(f"Could not load '{ref}' from Sefaria: {result.detail}")

        record = result.record
        full_text = flatten_text(record.raw, separator="\n")
        highlighted, strategy = highlight_quote(full_text, quote_text)

        return SourceView(
            ref=record.ref,
            he_ref=record.he_ref,
            text=full_text,
            highlighted_text=highlighted,
            highlight_strategy=strategy,
        )


# ==========================================
#  GLOBAL INSTANCE
# ==========================================

_client: Optional[SefariaClient] = None


def get_sefaria_client() -> SefariaClient:
    """Get global Sefaria client instance built from settings."""
    global _client
    if _client is None:
        settings = get_settings()
        fetcher = RelayFetcher(settings.sefaria_relays, timeout=settings.relay_timeout)
        _client = SefariaClient(settings.sefaria_base_url, fetcher)
    return _client

"""
Shared fixtures for the Mekor Halacha test suite.

Two test doubles stand in for the external services:

- FakeClaude: answers generate_json calls from canned values or callables
  keyed by the requested output schema, and records every call.
- FakeSefaria: an httpx.MockTransport handler that serves a small in-memory
  library through the relay URLs, so the real RelayFetcher and SefariaClient
  code runs in every test.
"""

from typing import Any, Callable, Dict, List, Optional, Set
from urllib.parse import unquote

import httpx
import pytest
from pydantic import BaseModel, ValidationError

from errors import MalformedModelOutputError
from models import WebSource
from tools.sefaria_client import RelayFetcher, SefariaClient

SEFARIA = "https://www.sefaria.org"

TEST_RELAYS = [
    "https://relay-one.test/raw?url={encoded_url}",
    "https://relay-two.test/{bare_url}",
    "https://relay-three.test/?{encoded_url}",
    "https://relay-four.test/fetch/{url}",
]


# ==========================================
#  SAMPLE LIBRARY
# ==========================================

SA_308_1 = "כל הכלים שמלאכתן להיתר מותר לטלטלן בין לצורך גופן בין לצורך מקומן"
SA_308_3 = "כלי שמלאכתו לאיסור מותר לטלטלו לצורך גופו ולצורך מקומו, אבל מחמה לצל אסור"
MB_308_1 = "<i>מוקצה</i> מחמת חסרון כיס אסור לטלטלו אפילו לצורך גופו ומקומו"
SHABBAT_123B = "בראשונה היו אומרים שלשה כלים ניטלין בשבת"
RAMBAM_25_3 = "כלי שמלאכתו לאיסור כגון המכתשת והמדוכה מותר לטלטלו לצורך גופו"

SAMPLE_LIBRARY: Dict[str, Dict[str, Any]] = {
    "Shulchan_Arukh,_Orach_Chayim_308:1": {
        "ref": "Shulchan Arukh, Orach Chayim 308:1",
        "heRef": "שולחן ערוך, אורח חיים שח:א",
        "heBook": "שולחן ערוך, אורח חיים",
        "he": SA_308_1,
    },
    "Shulchan_Arukh,_Orach_Chayim_308:3": {
        "ref": "Shulchan Arukh, Orach Chayim 308:3",
        "heRef": "שולחן ערוך, אורח חיים שח:ג",
        "heBook": "שולחן ערוך, אורח חיים",
        "he": [SA_308_3],
    },
    "Mishnah_Berurah_308.1": {
        "ref": "Mishnah Berurah 308:1",
        "heRef": "משנה ברורה שח:א",
        "heBook": "משנה ברורה",
        "he": [MB_308_1],
    },
    "Shabbat_123b": {
        "ref": "Shabbat 123b",
        "heRef": "שבת קכג ב",
        "heBook": "שבת",
        "he": [[SHABBAT_123B]],
    },
    "Mishneh_Torah,_Sabbath_25:3": {
        "ref": "Mishneh Torah, Sabbath 25:3",
        "heRef": "משנה תורה, הלכות שבת כה:ג",
        "heBook": "משנה תורה",
        "he": RAMBAM_25_3,
    },
}


def ref_from_request(request: httpx.Request) -> str:
    """Pull the Sefaria ref out of any of the four relay URL shapes."""
    target = request.url.params.get("url")
    if target is None:
        raw = unquote(str(request.url))
        target = raw
    after = target.split("/api/texts/", 1)[1]
    return unquote(after.split("?", 1)[0])


class FakeSefaria:
    """In-memory Sefaria behind the test relays."""

    def __init__(self, library: Optional[Dict[str, Dict[str, Any]]] = None):
        self.library = dict(SAMPLE_LIBRARY if library is None else library)
        self.failing_hosts: Set[str] = set()
        self.timeout_hosts: Set[str] = set()
        self.requested_refs: List[str] = []
        self.requested_urls: List[str] = []
        self.body_errors: Dict[str, str] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requested_urls.append(str(request.url))
        host = request.url.host
        if host in self.timeout_hosts:
            raise httpx.ConnectTimeout("timed out", request=request)
        if host in self.failing_hosts:
            return httpx.Response(503, text="relay unavailable")

        ref = ref_from_request(request)
        self.requested_refs.append(ref)

        if ref in self.body_errors:
            return httpx.Response(200, json={"error": self.body_errors[ref]})
        entry = self.library.get(ref)
        if entry is None:
            return httpx.Response(200, json={"error": f"Could not find ref: {ref}"})
        return httpx.Response(200, json=entry)

    def fail_all_relays(self) -> None:
        self.failing_hosts = {httpx.URL(t.split("{")[0]).host for t in TEST_RELAYS}


def make_sefaria_client(fake: FakeSefaria, relays: Optional[List[str]] = None) -> SefariaClient:
    fetcher = RelayFetcher(
        relays or TEST_RELAYS,
        timeout=1.0,
        transport=httpx.MockTransport(fake.handler),
    )
    return SefariaClient(SEFARIA, fetcher)


# ==========================================
#  FAKE CLAUDE
# ==========================================

class FakeClaude:
    """
    Stand-in for ClaudeClient.

    `responses` maps an output schema class to a model instance, a dict, an
    exception, or a callable (system, prompt) -> any of those.
    """

    def __init__(
        self,
        responses: Optional[Dict[type, Any]] = None,
        text_replies: Optional[List[str]] = None,
        grounded: Optional[tuple] = None,
        chat_reply: str = "תשובת הרב",
    ):
        self.responses = dict(responses or {})
        self.text_replies = list(text_replies or [])
        self.grounded = grounded or ("", [])
        self.chat_reply = chat_reply
        self.calls: List[Dict[str, Any]] = []

    def calls_for(self, kind: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["kind"] == kind]

    async def generate_json(self, system: str, prompt: str, schema: type) -> BaseModel:
        self.calls.append({"kind": "json", "schema": schema, "system": system, "prompt": prompt})
        if schema not in self.responses:
            raise AssertionError(f"Unexpected {schema.__name__} call")

        result = self.responses[schema]
        if callable(result) and not isinstance(result, type):
            result = result(system, prompt)
        if isinstance(result, Exception):
            raise result
        if isinstance(result, dict):
            try:
                return schema.model_validate(result)
            except ValidationError as e:
                raise MalformedModelOutputError(str(e)) from e
        return result

    async def generate_text(self, system: str, prompt: str) -> str:
        self.calls.append({"kind": "text", "system": system, "prompt": prompt})
        return self.text_replies.pop(0) if self.text_replies else ""

    async def generate_grounded(self, system: str, prompt: str):
        self.calls.append({"kind": "grounded", "system": system, "prompt": prompt})
        return self.grounded

    async def chat(self, system: str, messages: List[Dict[str, str]]) -> str:
        self.calls.append({"kind": "chat", "system": system, "messages": [dict(m) for m in messages]})
        return f"{self.chat_reply} #{len(self.calls_for('chat'))}"


def raw_source(ref: str, quote: Optional[str] = None, display: str = "", book: str = "", category: str = "הלכה") -> Dict[str, Any]:
    """A camelCase source dict as the model would emit it."""
    source = {
        "sourceDisplayName": display or ref,
        "sefariaRef": ref,
        "hebrewBookName": book,
        "hebrewCategoryName": category,
    }
    if quote is not None:
        source["quote"] = quote
    return source


# ==========================================
#  FIXTURES
# ==========================================

@pytest.fixture
def fake_sefaria() -> FakeSefaria:
    return FakeSefaria()


@pytest.fixture
def sefaria_client(fake_sefaria) -> SefariaClient:
    return make_sefaria_client(fake_sefaria)


@pytest.fixture
def web_sources() -> List[WebSource]:
    return [
        WebSource(uri="https://www.example.org/muktzeh", title="Muktzeh overview"),
        WebSource(uri="https://www.example.org/shabbat", title="Shabbat laws"),
    ]


@pytest.fixture
def make_claude() -> Callable[..., FakeClaude]:
    return FakeClaude

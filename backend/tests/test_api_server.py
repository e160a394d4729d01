"""
============================================================================
Test Suite for api_server.py
============================================================================

The model and Sefaria dependencies are overridden with the fakes from
conftest, so every endpoint runs its real pipeline code.

Test Categories:
1. Health
2. Search, load-more, custom book
3. Error mapping (422 / 502 / 500)
4. Follow-up, web search, chat sessions, analysis
5. Source viewer and export

Running:
    pytest backend/tests/test_api_server.py -v
============================================================================
"""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

import api_server
from api_server import _chat_sessions, app, get_llm, get_sefaria
from conftest import SA_308_3, FakeClaude, make_sefaria_client, raw_source
from llm_schemas import RawAnalysisGraph, RawQuoteList, RawSimpleResponse, RawSourceList


# ==========================================
#  FIXTURES
# ==========================================

@pytest.fixture
def api(fake_sefaria):
    """TestClient plus a mutable holder for the fake model."""
    state = SimpleNamespace(llm=FakeClaude(), sefaria=fake_sefaria)
    app.dependency_overrides[get_llm] = lambda: state.llm
    app.dependency_overrides[get_sefaria] = lambda: make_sefaria_client(fake_sefaria)

    yield TestClient(app), state

    app.dependency_overrides.clear()
    _chat_sessions.clear()


def search_model(quote="מותר לטלטלו <b>לצורך גופו</b>"):
    return FakeClaude({
        RawSourceList: {"sources": [
            raw_source("Shulchan Arukh, Orach Chayim 308:3"),
            raw_source("Chayei Adam 66"),
        ]},
        RawSimpleResponse: {
            "sources": [raw_source("Shulchan Arukh, Orach Chayim 308:3", quote, display="שולחן ערוך שח:ג")],
            "aiSummary": "מותר לצורך גופו",
            "followUpQuestions": [],
            "questionType": "practical",
        },
    })


SOURCE_JSON = {
    "source": "שולחן ערוך שח:ג",
    "quote": "מותר לטלטלו <b>לצורך גופו</b>",
    "link": "https://www.sefaria.org/Shulchan_Arukh,_Orach_Chayim_308:3",
    "sefaria_ref": "Shulchan Arukh, Orach Chayim 308:3",
    "book_name": "שולחן ערוך",
    "category": "halakhah",
}


# ==========================================
#  HEALTH
# ==========================================

class TestHealth:

    def test_health(self, api):
        client, _ = api
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# ==========================================
#  SEARCH
# ==========================================

class TestSearchEndpoints:

    def test_search(self, api):
        client, state = api
        state.llm = search_model()

        response = client.post("/search", json={"query": "מה הדין בטלטול מוקצה בשבת?", "scope": "Halakhah"})

        assert response.status_code == 200
        body = response.json()
        assert [s["sefaria_ref"] for s in body["sources"]] == ["Shulchan Arukh, Orach Chayim 308:3"]
        assert body["question_type"] == "practical"
        assert body["sources"][0]["id"]

    def test_empty_query_rejected(self, api):
        client, _ = api
        assert client.post("/search", json={"query": "   "}).status_code == 422

    def test_invalid_limit(self, api):
        client, _ = api
        response = client.post("/search", json={"query": "q", "limit": "lots"})

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "invalid_limit"

    def test_no_verified_sources(self, api):
        client, state = api
        state.llm = search_model(quote="ציטוט שלא קיים במקור")

        response = client.post("/search", json={"query": "q", "language": "en"})

        assert response.status_code == 422
        assert response.json()["detail"] == {
            "code": "no_verified_sources",
            "message": "No verified sources found. Try rephrasing your question or selecting a different book.",
        }

    def test_unexpected_failure_is_500(self, api):
        client, state = api
        state.llm = FakeClaude({RawSourceList: RuntimeError("boom")})

        assert client.post("/search", json={"query": "q"}).status_code == 500

    def test_load_more(self, api):
        client, state = api
        state.llm = search_model()

        response = client.post("/search/load-more", json={"query": "q", "current_count": 5})

        assert response.status_code == 200
        assert "up to 15" in state.llm.calls_for("json")[0]["prompt"]

    def test_load_more_rejects_advanced(self, api):
        client, _ = api
        response = client.post("/search/load-more", json={"query": "q", "current_count": 5, "mode": "advanced"})
        assert response.status_code == 400

    def test_custom_book(self, api):
        client, state = api
        state.llm = FakeClaude({
            RawQuoteList: {"quotes": ["נר שכבה מותר לטלטלו"]},
            RawSimpleResponse: {
                "sources": [raw_source("", "נר שכבה מותר לטלטלו", display="x")],
                "aiSummary": "מותר",
            },
        })

        response = client.post("/search/custom-book", json={
            "query": "נר שכבה",
            "book": {"name": "הספר שלי", "content": "כתוב בספר: נר שכבה מותר לטלטלו בשבת."},
        })

        assert response.status_code == 200
        [source] = response.json()["sources"]
        assert source["category"] == "custom"
        assert source["book_name"] == "הספר שלי"


# ==========================================
#  SUPPLEMENTARY
# ==========================================

class TestSupplementaryEndpoints:

    def test_follow_up(self, api):
        client, state = api
        state.llm = FakeClaude(text_replies=["תשובה להמשך"])

        response = client.post("/follow-up", json={
            "question": "ומה עם נר?",
            "context_query": "מוקצה",
            "context_summary": "<b>מותר</b>",
        })

        assert response.json() == {"answer": "תשובה להמשך"}

    def test_web_search(self, api, web_sources):
        client, state = api
        state.llm = FakeClaude(grounded=("תשובה מהרשת", web_sources), text_replies=["קצר"])

        body = client.post("/web-search", json={"query": "מוקצה"}).json()

        assert body["short_summary"] == "קצר"
        assert body["sources"][0]["uri"] == "https://www.example.org/muktzeh"

    def test_chat_session_continues(self, api):
        client, state = api

        first = client.post("/chat", json={"message": "שלום"}).json()
        second = client.post("/chat", json={"message": "ועוד", "session_id": first["session_id"]}).json()

        assert second["session_id"] == first["session_id"]
        assert len(state.llm.calls_for("chat")[1]["messages"]) == 3

    def test_chat_unknown_session_starts_new(self, api):
        client, state = api

        body = client.post("/chat", json={"message": "שלום", "session_id": "missing"}).json()

        assert body["session_id"] != "missing"
        assert body["session_id"] in _chat_sessions

    def test_sessions_are_capped(self, api, monkeypatch):
        client, _ = api
        monkeypatch.setattr(api_server.settings, "max_chat_sessions", 3)

        first = client.post("/chat", json={"message": "ראשון"}).json()["session_id"]
        second = client.post("/chat", json={"message": "שני"}).json()["session_id"]
        client.post("/chat", json={"message": "שלישי"})
        client.post("/chat", json={"message": "עוד", "session_id": first})
        client.post("/chat", json={"message": "רביעי"})

        assert len(_chat_sessions) == 3
        assert first in _chat_sessions
        assert second not in _chat_sessions

    def test_analysis_uses_aliases(self, api):
        client, state = api
        state.llm = FakeClaude({RawAnalysisGraph: {
            "nodes": [{"id": "sa", "label": "שולחן ערוך", "group": "Acharonim", "era": "Acharonim"}],
            "edges": [],
            "timelineEvents": [{"era": "Acharonim", "year": 1565, "summary": "השולחן ערוך נדפס"}],
        }})

        response = client.post("/analysis", json={"query": "q", "sources": [SOURCE_JSON]})

        assert response.status_code == 200
        assert response.json()["timelineEvents"][0]["sourceRefs"] == []

    def test_analysis_failure(self, api):
        client, state = api
        state.llm = FakeClaude({RawAnalysisGraph: {"nodes": "broken"}})

        response = client.post("/analysis", json={"query": "q", "sources": [SOURCE_JSON]})

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "analysis_failed"


# ==========================================
#  SOURCE VIEWER & EXPORT
# ==========================================

class TestSourceAndExport:

    def test_source_view(self, api):
        client, _ = api

        response = client.get("/source", params={
            "ref": "Shulchan Arukh, Orach Chayim 308:3",
            "quote": "<b>לצורך גופו</b>",
        })

        body = response.json()
        assert response.status_code == 200
        assert body["text"] == SA_308_3
        assert body["highlight_strategy"] == "exact"

    def test_source_view_relays_down(self, api):
        client, state = api
        state.sefaria.fail_all_relays()

        response = client.get("/source", params={"ref": "Shabbat 123b"})

        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "relay_exhausted"

    def test_export_text(self, api):
        client, _ = api

        response = client.post("/export", json={
            "query": "q",
            "ai_summary": "<b>s</b>",
            "sources": [SOURCE_JSON],
            "language": "en",
        })

        assert response.headers["content-type"].startswith("text/plain")
        assert "Bibliography:" in response.text
        assert '"מותר לטלטלו לצורך גופו"' in response.text

    def test_export_html(self, api):
        client, _ = api

        response = client.post("/export", json={"query": "q", "sources": [SOURCE_JSON], "format": "html"})

        assert response.headers["content-type"].startswith("text/html")
        assert 'dir="rtl"' in response.text

    def test_export_bad_format(self, api):
        client, _ = api
        assert client.post("/export", json={"query": "q", "sources": [], "format": "pdf"}).status_code == 422

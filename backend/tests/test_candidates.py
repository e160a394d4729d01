"""
============================================================================
Test Suite for step_one_candidates.py
============================================================================

Test Categories:
1. Scope expansion
2. Limit resolution
3. find_candidates / find_dispute_candidates against a fake model

Running:
    pytest backend/tests/test_candidates.py -v
============================================================================
"""

import pytest

from conftest import FakeClaude, raw_source
from errors import InvalidLimitError, MalformedModelOutputError
from llm_schemas import RawSourceList
from models import Language, SearchMode, SourceCategory
from step_one_candidates import (
    SCOPE_EXPANSIONS,
    expand_scope,
    find_candidates,
    find_dispute_candidates,
    resolve_limit,
)


# ==========================================
#  SCOPE EXPANSION
# ==========================================

class TestExpandScope:

    def test_category_expanded(self):
        assert expand_scope("Halakhah") == SCOPE_EXPANSIONS["Halakhah"]
        assert "Mishnah Berurah" in expand_scope("Halakhah")

    def test_hebrew_expansion(self):
        assert "שולחן ערוך" in expand_scope("Halakhah", Language.HEBREW)

    def test_hebrew_scope_name(self):
        assert expand_scope("תלמוד") == SCOPE_EXPANSIONS["Talmud"]

    def test_specific_book_unchanged(self):
        assert expand_scope("Shulchan Arukh") == "Shulchan Arukh"
        assert expand_scope("All") == "All"


# ==========================================
#  LIMIT RESOLUTION
# ==========================================

class TestResolveLimit:

    @pytest.mark.parametrize("limit,expected", [
        (10, 10),
        ("5", 5),
        (" 25 ", 25),
    ])
    def test_numeric(self, limit, expected):
        assert resolve_limit(limit) == expected

    def test_unlimited_depends_on_mode(self):
        assert resolve_limit("unlimited", SearchMode.PRECISE) == 15
        assert resolve_limit("Unlimited", SearchMode.BROAD) == 30

    @pytest.mark.parametrize("limit", [0, -3, "0", "abc", "", "1.5", True, None, 2.0])
    def test_invalid(self, limit):
        with pytest.raises(InvalidLimitError) as exc_info:
            resolve_limit(limit)
        assert exc_info.value.code == "invalid_limit"


# ==========================================
#  FIND CANDIDATES
# ==========================================

class TestFindCandidates:

    @pytest.mark.asyncio
    async def test_converts_and_keeps_order(self):
        llm = FakeClaude({RawSourceList: {"sources": [
            raw_source("Shulchan Arukh, Orach Chayim 308", book="שולחן ערוך"),
            raw_source("Shabbat 123b", category="תלמוד"),
        ]}})

        candidates = await find_candidates(llm, "מוקצה", "Halakhah", 10, Language.HEBREW)

        assert [c.sefaria_ref for c in candidates] == ["Shulchan Arukh, Orach Chayim 308", "Shabbat 123b"]
        assert candidates[0].book_name == "שולחן ערוך"
        assert candidates[1].category == SourceCategory.TALMUD

    @pytest.mark.asyncio
    async def test_truncated_to_max_count(self):
        llm = FakeClaude({RawSourceList: {"sources": [raw_source(f"Genesis {i}") for i in range(1, 9)]}})

        candidates = await find_candidates(llm, "q", "Tanakh", 3)

        assert [c.sefaria_ref for c in candidates] == ["Genesis 1", "Genesis 2", "Genesis 3"]

    @pytest.mark.asyncio
    async def test_blank_refs_dropped(self):
        llm = FakeClaude({RawSourceList: {"sources": [
            raw_source(""),
            raw_source("   ", display="nameless"),
            raw_source("Berakhot 2a"),
        ]}})

        candidates = await find_candidates(llm, "q", "Talmud", 10)

        assert [c.sefaria_ref for c in candidates] == ["Berakhot 2a"]

    @pytest.mark.asyncio
    async def test_empty_is_not_an_error(self):
        llm = FakeClaude({RawSourceList: {"sources": []}})
        assert await find_candidates(llm, "q", "All", 10) == []

    @pytest.mark.asyncio
    async def test_prompt_carries_expanded_scope_and_count(self):
        llm = FakeClaude({RawSourceList: {"sources": []}})

        await find_candidates(llm, "מה הדין בטלטול מוקצה בשבת?", "Halakhah", 12, Language.ENGLISH)

        [call] = llm.calls_for("json")
        assert "Arukh HaShulchan" in call["prompt"]
        assert "12" in call["prompt"]
        assert "מה הדין בטלטול מוקצה בשבת?" in call["prompt"]

    @pytest.mark.asyncio
    async def test_malformed_output_propagates(self):
        llm = FakeClaude({RawSourceList: {"sources": [{"sefariaRef": "Berakhot 2a"}]}})

        with pytest.raises(MalformedModelOutputError):
            await find_candidates(llm, "q", "All", 10)


class TestFindDisputeCandidates:

    @pytest.mark.asyncio
    async def test_uses_dispute_budget(self):
        llm = FakeClaude({RawSourceList: {"sources": [raw_source(f"Eruvin {i}a") for i in range(2, 40)]}})

        candidates = await find_dispute_candidates(llm, "q", "Talmud")

        assert len(candidates) == 20
        assert "20" in llm.calls_for("json")[0]["prompt"]

    @pytest.mark.asyncio
    async def test_explicit_budget(self):
        llm = FakeClaude({RawSourceList: {"sources": [raw_source(f"Eruvin {i}a") for i in range(2, 40)]}})

        candidates = await find_dispute_candidates(llm, "q", "Talmud", max_count=5)

        assert [c.sefaria_ref for c in candidates] == [f"Eruvin {i}a" for i in range(2, 7)]

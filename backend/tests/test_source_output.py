"""
Tests for source_output.py (citations, exports, quote highlighting).
"""

from datetime import date

import pytest

from models import HighlightStrategy, Language, Source, SourceCategory
from source_output import (
    MARK_CLOSE,
    MARK_OPEN,
    chicago_citation,
    format_bibliography,
    format_export_html,
    format_export_text,
    highlight_quote,
    strip_summary_markup,
)

ACCESSED = date(2026, 3, 5)


@pytest.fixture
def sources():
    return [
        Source(
            source="שולחן ערוך, אורח חיים שח:ג",
            quote="מותר לטלטלו <b>לצורך גופו</b>",
            link="https://www.sefaria.org/Shulchan_Arukh,_Orach_Chayim_308:3",
            sefaria_ref="Shulchan Arukh, Orach Chayim 308:3",
            book_name="שולחן ערוך",
            category=SourceCategory.HALAKHAH,
        ),
        Source(
            source="ספר המנהגים שלי",
            quote="ומנהג העיר להדליק נר",
            book_name="ספר המנהגים שלי",
            category=SourceCategory.CUSTOM,
        ),
    ]


class TestCitations:

    def test_chicago_format(self, sources):
        assert chicago_citation(sources[0], ACCESSED) == (
            'שולחן ערוך. "שולחן ערוך, אורח חיים שח:ג". Sefaria.org. Accessed March 5, 2026. '
            "https://www.sefaria.org/Shulchan_Arukh,_Orach_Chayim_308:3"
        )

    def test_missing_link(self, sources):
        assert chicago_citation(sources[1], ACCESSED).endswith("(No link available)")

    def test_bibliography_keeps_order(self, sources):
        bibliography = format_bibliography(sources, ACCESSED)
        assert len(bibliography) == 2
        assert bibliography[1].startswith("ספר המנהגים שלי.")


class TestExportText:

    def test_layout(self, sources):
        text = format_export_text(
            "מה הדין בטלטול מוקצה בשבת?",
            "<p><b>מותר</b> לצורך גופו</p>",
            sources,
            Language.ENGLISH,
            ACCESSED,
        )

        assert text.split("\n") == [
            "Query: מה הדין בטלטול מוקצה בשבת?",
            "",
            "AI Summary:",
            "מותר לצורך גופו",
            "",
            "Sources:",
            '• שולחן ערוך, אורח חיים שח:ג: "מותר לטלטלו לצורך גופו"',
            '• ספר המנהגים שלי: "ומנהג העיר להדליק נר"',
            "",
            "Bibliography:",
            f"• {chicago_citation(sources[0], ACCESSED)}",
            f"• {chicago_citation(sources[1], ACCESSED)}",
        ]

    def test_hebrew_labels(self, sources):
        text = format_export_text("q", "s", sources, Language.HEBREW, ACCESSED)
        assert text.startswith("שאלה: q")
        assert "ביבליוגרפיה:" in text


class TestExportHtml:

    def test_rtl_and_escaped(self, sources):
        page = format_export_html("<script>", "סיכום", sources, Language.HEBREW, ACCESSED)

        assert 'dir="rtl"' in page
        assert "<script>" not in page
        assert "&lt;script&gt;" in page
        assert "מותר לטלטלו לצורך גופו" in page
        assert "הלכה" in page

    def test_english_is_ltr(self, sources):
        assert 'dir="ltr"' in format_export_html("q", "s", sources, Language.ENGLISH, ACCESSED)


class TestStripSummaryMarkup:

    def test_breaks_become_newlines(self):
        assert strip_summary_markup("א<br>ב<br/>ג") == "א\nב\nג"

    def test_entities(self):
        assert strip_summary_markup("&quot;שבת&quot;") == '"שבת"'

    def test_empty(self):
        assert strip_summary_markup("") == ""


class TestHighlightQuote:

    TEXT = "כלי שמלאכתו לאיסור מותר לטלטלו לצורך גופו ולצורך מקומו"

    def test_exact_with_emphasis(self):
        html, strategy = highlight_quote(self.TEXT, "מותר לטלטלו <b>לצורך גופו</b>")

        assert strategy == HighlightStrategy.EXACT
        assert html == (
            f"כלי שמלאכתו לאיסור מותר לטלטלו {MARK_OPEN}לצורך גופו{MARK_CLOSE} ולצורך מקומו"
        )

    def test_exact_without_emphasis(self):
        html, strategy = highlight_quote(self.TEXT, "לצורך מקומו")

        assert strategy == HighlightStrategy.EXACT
        assert html.endswith(f"{MARK_OPEN}לצורך מקומו{MARK_CLOSE}")

    def test_normalized_fallback(self):
        text = "כְּלִי שֶׁמְּלַאכְתּוֹ לְאִיסּוּר, מוּתָּר לְטַלְטְלוֹ"

        html, strategy = highlight_quote(text, "כלי שמלאכתו לאיסור מותר")

        assert strategy == HighlightStrategy.NORMALIZED
        assert html == f"{MARK_OPEN}כלי שמלאכתו לאיסור מותר{MARK_CLOSE} לטלטלו"

    def test_no_match(self):
        html, strategy = highlight_quote(self.TEXT, "משפט שאינו בטקסט")

        assert strategy == HighlightStrategy.NONE
        assert html == self.TEXT

    def test_no_quote(self):
        assert highlight_quote(self.TEXT, "") == (self.TEXT, HighlightStrategy.NONE)

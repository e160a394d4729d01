"""
Source Output for Mekor Halacha
===============================

Formats verified sources for the outside world:
- Chicago-style citations and the bibliography
- Full plain-text export (query, summary, quotes, bibliography)
- RTL HTML export
- Quote highlighting inside a full Sefaria text for the source viewer
"""

import html
import logging
import re
from datetime import date
from typing import Iterable, List, Optional, Tuple

from models import HighlightStrategy, Language, Source
from utils.categories import category_label
from utils.text import normalize_for_match, strip_emphasis, strip_html_tags

logger = logging.getLogger(__name__)

MARK_OPEN = '<mark class="quote-highlight">'
MARK_CLOSE = "</mark>"

EXPORT_LABELS = {
    Language.HEBREW: {
        "query": "שאלה",
        "summary": "סיכום",
        "sources": "מקורות",
        "bibliography": "ביבליוגרפיה",
        "title": "מקור הלכה",
    },
    Language.ENGLISH: {
        "query": "Query",
        "summary": "AI Summary",
        "sources": "Sources",
        "bibliography": "Bibliography",
        "title": "Mekor Halacha",
    },
}


def _format_access_date(accessed: date) -> str:
    # "March 5, 2026" without a platform-specific strftime flag
    return f"{accessed.strftime('%B')} {accessed.day}, {accessed.year}"


def strip_summary_markup(text: str) -> str:
    """Remove HTML tags from text for plain text output."""
    if not text:
        return ""

    text = re.sub(r'<br\s*/?>', '\n', text, flags=re.IGNORECASE)
    text = re.sub(r'</p>|</div>|</li>', '\n', text, flags=re.IGNORECASE)
    text = strip_html_tags(text)
    text = html.unescape(text)
    text = re.sub(r'\n{3,}', '\n\n', text)
    return text.strip()


def chicago_citation(source: Source, accessed: Optional[date] = None) -> str:
    """
    Simplified Chicago citation for a web resource:

        <book>. "<title>". Sefaria.org. Accessed <Month D, YYYY>. <link>
    """
    accessed = accessed or date.today()
    link = source.link or "(No link available)"
    return (
        f'{source.book_name}. "{source.source}". Sefaria.org. '
        f"Accessed {_format_access_date(accessed)}. {link}"
    )


def format_bibliography(sources: Iterable[Source], accessed: Optional[date] = None) -> List[str]:
    return [chicago_citation(source, accessed) for source in sources]


def format_export_text(
    query: str,
    summary: str,
    sources: List[Source],
    language: Language = Language.ENGLISH,
    accessed: Optional[date] = None,
) -> str:
    """
    Full plain-text export.

    Layout:
        Query: ...
        <blank>
        Summary:
        <summary without tags>
        <blank>
        Sources:
        • <source>: "<quote without tags>"
        <blank>
        Bibliography:
        • <citation>
    """
    labels = EXPORT_LABELS[language]
    lines = [f"{labels['query']}: {query}", ""]

    lines.append(f"{labels['summary']}:")
    lines.append(strip_summary_markup(summary))
    lines.append("")

    lines.append(f"{labels['sources']}:")
    for source in sources:
        lines.append(f'• {source.source}: "{strip_html_tags(source.quote)}"')
    lines.append("")

    lines.append(f"{labels['bibliography']}:")
    for citation in format_bibliography(sources, accessed):
        lines.append(f"• {citation}")

    return "\n".join(lines)


def format_export_html(
    query: str,
    summary: str,
    sources: List[Source],
    language: Language = Language.HEBREW,
    accessed: Optional[date] = None,
) -> str:
    """Export as a standalone HTML page (RTL for Hebrew)."""
    labels = EXPORT_LABELS[language]
    direction = "rtl" if language == Language.HEBREW else "ltr"

    source_items = []
    for source in sources:
        link = (
            f' <a href="{html.escape(source.link)}">{html.escape(source.sefaria_ref or source.link)}</a>'
            if source.link else ""
        )
        source_items.append(
            f"""        <div class="source">
            <div class="source-title">{html.escape(source.source)}{link}</div>
            <div class="category">{html.escape(category_label(source.category, language))}</div>
            <blockquote>{html.escape(strip_emphasis(source.quote))}</blockquote>
        </div>"""
        )

    citations = "\n".join(
        f"            <li>{html.escape(citation)}</li>"
        for citation in format_bibliography(sources, accessed)
    )
    summary_html = html.escape(strip_summary_markup(summary)).replace("\n", "<br>")

    return f"""<!DOCTYPE html>
<html lang="{language.value}" dir="{direction}">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{labels['title']} - {html.escape(query)}</title>
    <style>
        body {{
            font-family: 'David Libre', 'Frank Ruhl Libre', 'SBL Hebrew', serif;
            line-height: 1.8;
            max-width: 900px;
            margin: 0 auto;
            padding: 20px;
            direction: {direction};
        }}
        h1 {{ font-size: 1.6em; }}
        .summary {{ margin: 20px 0; }}
        .source {{ margin-bottom: 20px; }}
        .source-title {{ font-weight: bold; }}
        .category {{ font-size: 0.85em; color: #666; }}
        blockquote {{ margin: 8px 20px; color: #333; }}
    </style>
</head>
<body>
    <h1>{labels['query']}: {html.escape(query)}</h1>
    <h2>{labels['summary']}</h2>
    <div class="summary">{summary_html}</div>
    <h2>{labels['sources']}</h2>
{chr(10).join(source_items)}
    <h2>{labels['bibliography']}</h2>
    <ul>
{citations}
    </ul>
</body>
</html>
"""


def highlight_quote(text: str, quote: str) -> Tuple[str, HighlightStrategy]:
    """
    Highlight a model quote inside the full Sefaria text.

    1. Exact: the emphasis-stripped quote is a substring of the text; it is
       replaced by the quote with its <b> markers turned into <mark>.
    2. Normalized: nikud, tags and punctuation are stripped from both sides;
       the result is the normalized text with the match wrapped in <mark>.
       Sefaria's own formatting is lost in this case.
    3. None: the text is returned unchanged.
    """
    if not text or not quote:
        return text or "", HighlightStrategy.NONE

    needle = strip_emphasis(quote)
    if needle and needle in text:
        marked = quote
        if "<b>" in quote.lower():
            marked = re.sub(r"<b>", MARK_OPEN, marked, flags=re.IGNORECASE)
            marked = re.sub(r"</b>", MARK_CLOSE, marked, flags=re.IGNORECASE)
        else:
            marked = f"{MARK_OPEN}{needle}{MARK_CLOSE}"
        return text.replace(needle, marked, 1), HighlightStrategy.EXACT

    searchable_text = normalize_for_match(text)
    searchable_quote = normalize_for_match(quote)
    index = searchable_text.find(searchable_quote) if searchable_quote else -1
    if index != -1:
        logger.warning("Exact quote not found; highlighted against normalized text")
        end = index + len(searchable_quote)
        highlighted = (
            f"{searchable_text[:index]}{MARK_OPEN}{searchable_quote}{MARK_CLOSE}{searchable_text[end:]}"
        )
        return highlighted, HighlightStrategy.NORMALIZED

    logger.error("Could not highlight quote; the model may have altered the source text")
    return text, HighlightStrategy.NONE

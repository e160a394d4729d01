"""
Step 1: CANDIDATES - Propose references that might answer the question
=====================================================================

One schema-constrained model call per query. The result is
over-inclusive: nothing here is trusted until the verification step has
checked it against real Sefaria text.

Also owns the two request-shaping helpers that run before the call:
- expand_scope: category names become an explicit list of works
- resolve_limit: the user's result budget becomes a concrete count
"""

import logging
from typing import List, Optional, Union

from config import get_settings
from errors import InvalidLimitError
from llm_schemas import RawSource, RawSourceList
from logging_config import log_section
from models import CandidateReference, Language, SearchMode
from prompts import PromptBuilder
from utils.categories import parse_category

logger = logging.getLogger(__name__)

UNLIMITED = "unlimited"

# Scope names that stand for a whole category of works
SCOPE_EXPANSIONS = {
    "Halakhah": (
        "All Halakhic Books (with emphasis on: Mishneh Torah, Arbaah Turim, "
        "Shulchan Arukh, Rema, Mishnah Berurah, Arukh HaShulchan, Kitzur Shulchan "
        "Arukh, Ben Ish Hai, and major Responsa literature)"
    ),
    "Tanakh": "The entire Tanakh",
    "Talmud": (
        "The entire Talmud (including Mishnah, Tosefta, Talmud Bavli, and Talmud Yerushalmi)"
    ),
}

SCOPE_EXPANSIONS_HE = {
    "Halakhah": (
        'כל ספרי ההלכה (בדגש על: משנה תורה, ארבעה טורים, שולחן ערוך, רמ"א, '
        'משנה ברורה, ערוך השולחן, קיצור שולחן ערוך, בן איש חי, וספרות השו"ת המרכזית)'
    ),
    "Tanakh": 'כל התנ"ך',
    "Talmud": "כל התלמוד (כולל משנה, תוספתא, תלמוד בבלי ותלמוד ירושלמי)",
}

# Hebrew scope names the frontend may send
_SCOPE_ALIASES = {
    "הלכה": "Halakhah",
    'תנ"ך': "Tanakh",
    "תנ״ך": "Tanakh",
    "תלמוד": "Talmud",
}


def expand_scope(scope: str, language: Language = Language.ENGLISH) -> str:
    """
    Expand a category scope into the works it stands for.

    Scopes other than Halakhah, Tanakh and Talmud are returned unchanged.
    """
    key = _SCOPE_ALIASES.get(scope.strip(), scope.strip()) if scope else scope
    expansions = SCOPE_EXPANSIONS_HE if language == Language.HEBREW else SCOPE_EXPANSIONS
    return expansions.get(key, scope)


def resolve_limit(limit: Union[int, str], mode: SearchMode = SearchMode.PRECISE) -> int:
    """
    Turn the user's result budget into a count.

    Accepts a positive int, a digit string, or "unlimited" (precise 15,
    broad 30). Anything else raises InvalidLimitError.
    """
    settings = get_settings()

    if isinstance(limit, bool):
        raise InvalidLimitError()

    if isinstance(limit, int):
        value = limit
    elif isinstance(limit, str):
        text = limit.strip().lower()
        if text == UNLIMITED:
            if mode == SearchMode.BROAD:
                return settings.unlimited_broad_limit
            return settings.unlimited_precise_limit
        if not text.isdigit():
            raise InvalidLimitError()
        value = int(text)
    else:
        raise InvalidLimitError()

    if value <= 0:
        raise InvalidLimitError()
    return value


def to_candidate(raw: RawSource) -> CandidateReference:
    return CandidateReference(
        sefaria_ref=raw.sefaria_ref.strip(),
        display_name=raw.source_display_name,
        book_name=raw.hebrew_book_name,
        category=parse_category(raw.hebrew_category_name),
    )


def _collect(raw_list: RawSourceList, max_count: int) -> List[CandidateReference]:
    candidates = []
    for raw in raw_list.sources:
        if not raw.sefaria_ref or not raw.sefaria_ref.strip():
            logger.warning(f"Dropping candidate without a ref: {raw.source_display_name!r}")
            continue
        candidates.append(to_candidate(raw))
    if len(candidates) > max_count:
        logger.info(f"Truncating {len(candidates)} candidates to {max_count}")
        candidates = candidates[:max_count]
    return candidates


async def find_candidates(
    llm,
    query: str,
    scope: str,
    max_count: int,
    language: Language = Language.HEBREW,
) -> List[CandidateReference]:
    """
    Ask the model for up to `max_count` candidate references.

    May return an empty list. Raises MalformedModelOutputError when the reply
    does not match the schema.
    """
    log_section(logger, "STEP 1: CANDIDATES")
    expanded = expand_scope(scope, language)
    logger.info(f"Query: {query}")
    logger.info(f"Scope: {expanded}")
    logger.info(f"Max candidates: {max_count}")

    raw_list = await llm.generate_json(
        PromptBuilder.candidate_system(language),
        PromptBuilder.candidate_prompt(query, expanded, max_count),
        RawSourceList,
    )

    candidates = _collect(raw_list, max_count)
    logger.info(f"Model proposed {len(candidates)} candidates")
    for c in candidates:
        logger.debug(f"  {c.sefaria_ref} ({c.category.value})")
    return candidates


async def find_dispute_candidates(
    llm,
    query: str,
    scope: str,
    language: Language = Language.HEBREW,
    max_count: Optional[int] = None,
) -> List[CandidateReference]:
    """Like find_candidates, but tuned to sources holding opposing positions."""
    log_section(logger, "STEP 1: DISPUTE CANDIDATES")
    if max_count is None:
        max_count = get_settings().dispute_candidate_limit
    expanded = expand_scope(scope, language)
    logger.info(f"Query: {query}")
    logger.info(f"Scope: {expanded}")

    raw_list = await llm.generate_json(
        PromptBuilder.candidate_system(language, disputes=True),
        PromptBuilder.dispute_candidate_prompt(query, expanded, max_count),
        RawSourceList,
    )

    candidates = _collect(raw_list, max_count)
    logger.info(f"Model proposed {len(candidates)} dispute candidates")
    return candidates

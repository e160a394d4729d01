"""
Step 3: VERIFY - Extract quotes from real text and keep only faithful ones
=========================================================================

One batched model call sees every resolved text at once and returns the
sources it judges relevant, each with a quote. The model's quotes are then
checked mechanically: a quote that is not a contiguous substring of the
text actually fetched for its ref (ignoring the <b> emphasis the model is
allowed to add) is dropped. Nothing the model invents survives this step.

Precise and broad differ only in the relevance instruction given to the
model; the faithfulness check is identical.
"""

import logging
from typing import Iterable, List

from errors import NoCandidatesError, NoResolvableTextError, NoVerifiedSourcesError
from llm_schemas import RawSimpleResponse, RawSource
from logging_config import log_section, log_subsection
from models import (
    CandidateReference,
    Language,
    QuestionType,
    SearchMode,
    SimpleResponse,
    Source,
)
from prompts import PromptBuilder
from step_two_resolve import (
    ResolvedCandidate,
    build_grounding,
    index_by_ref,
    lookup_resolved,
    resolve_candidates,
)
from tools.ref_normalizer import sefaria_link
from utils.categories import parse_category
from utils.text import quote_is_faithful, unescape

logger = logging.getLogger(__name__)


def collect_verified_sources(
    raw_sources: Iterable[RawSource],
    resolved: List[ResolvedCandidate],
) -> List[Source]:
    """
    Turn the model's raw sources into verified Sources.

    Drops, in order: empty quotes, refs that were never resolved, quotes
    that do not appear in the resolved text. Model order is kept.
    """
    index = index_by_ref(resolved)
    verified: List[Source] = []

    for raw in raw_sources:
        quote = unescape(raw.quote).strip()
        if not quote:
            logger.debug(f"  - {raw.sefaria_ref}: empty quote")
            continue

        item = lookup_resolved(index, raw.sefaria_ref)
        if item is None:
            logger.warning(f"  ✗ {raw.sefaria_ref}: not among the resolved texts")
            continue

        if not quote_is_faithful(quote, item.record.text):
            logger.warning(f"  ✗ {raw.sefaria_ref}: quote not found in source text")
            logger.debug(f"    quote: {quote[:120]}")
            continue

        ref = item.record.ref or raw.sefaria_ref
        verified.append(Source(
            source=unescape(raw.source_display_name) or item.record.he_ref or ref,
            quote=quote,
            link=sefaria_link(ref),
            sefaria_ref=ref,
            book_name=unescape(raw.hebrew_book_name) or item.record.he_book or item.candidate.book_name,
            category=parse_category(raw.hebrew_category_name or item.candidate.category.value),
        ))
        logger.info(f"  ✓ {ref}")

    return verified


async def verify(
    llm,
    sefaria,
    query: str,
    candidates: List[CandidateReference],
    mode: SearchMode = SearchMode.PRECISE,
    language: Language = Language.HEBREW,
) -> SimpleResponse:
    """
    Resolve candidates, extract quotes in one call, and keep faithful ones.

    Raises:
        NoCandidatesError: `candidates` is empty
        NoResolvableTextError: no candidate resolved in Sefaria
        MalformedModelOutputError: the model reply does not match the schema
        NoVerifiedSourcesError: nothing survived verification
    """
    lang = language.value
    if not candidates:
        raise NoCandidatesError(language=lang)

    resolved = await resolve_candidates(sefaria, candidates)
    if not resolved:
        raise NoResolvableTextError(language=lang)

    log_section(logger, f"STEP 3: VERIFY ({mode.value.upper()})")
    grounding = build_grounding(resolved)
    raw = await llm.generate_json(
        PromptBuilder.verify_system(language, mode),
        PromptBuilder.verify_prompt(query, grounding),
        RawSimpleResponse,
    )

    log_subsection(logger, "QUOTE VERIFICATION")
    sources = collect_verified_sources(raw.sources, resolved)
    logger.info(f"{len(sources)} of {len(raw.sources)} model sources verified")
    rejected = len(raw.sources) - len(sources)
    if rejected:
        logger.warning(
            f"{rejected} of {len(raw.sources)} model sources rejected; "
            f"the summary may still refer to them"
        )

    if not sources:
        raise NoVerifiedSourcesError(language=lang)

    return SimpleResponse(
        sources=sources,
        ai_summary=unescape(raw.ai_summary),
        follow_up_questions=[unescape(q) for q in raw.follow_up_questions if q and q.strip()],
        question_type=raw.question_type or QuestionType.THEORETICAL,
    )

"""
Advanced search: group verified sources into disputes and opinions.

Same discipline as the simple path: candidates are proposed, their texts
fetched, and one grouping call sees them all. Every source inside every
opinion is verified exactly as in step_three_verify; opinions left without
sources are removed, and disputes left without opinions are removed.
"""

import logging
from typing import List

from errors import (
    NoCandidatesError,
    NoDisputesError,
    NoResolvableTextError,
    NoVerifiedSourcesError,
)
from llm_schemas import RawDispute, RawDisputeResponse
from logging_config import log_section, log_subsection
from models import Dispute, DisputeResponse, Language, Opinion, QuestionType
from prompts import PromptBuilder
from step_one_candidates import find_dispute_candidates
from step_three_verify import collect_verified_sources
from step_two_resolve import ResolvedCandidate, build_grounding, resolve_candidates
from utils.text import unescape

logger = logging.getLogger(__name__)


def filter_disputes(raw_disputes: List[RawDispute], resolved: List[ResolvedCandidate]) -> List[Dispute]:
    """Verify every opinion's sources; prune empty opinions, then empty disputes."""
    disputes: List[Dispute] = []

    for raw_dispute in raw_disputes:
        logger.info(f"Dispute: {raw_dispute.topic}")
        opinions: List[Opinion] = []
        for raw_opinion in raw_dispute.opinions:
            sources = collect_verified_sources(raw_opinion.sources, resolved)
            if not sources:
                logger.warning(f"  dropping opinion with no verified sources: {raw_opinion.summary[:80]!r}")
                continue
            opinions.append(Opinion(summary=unescape(raw_opinion.summary), sources=sources))

        if not opinions:
            logger.warning(f"  dropping dispute with no opinions left: {raw_dispute.topic!r}")
            continue
        disputes.append(Dispute(topic=unescape(raw_dispute.topic), opinions=opinions))

    return disputes


async def analyze_disputes(
    llm,
    sefaria,
    query: str,
    scope: str,
    language: Language = Language.HEBREW,
) -> DisputeResponse:
    """
    Raises:
        NoCandidatesError: the model proposed no references
        NoResolvableTextError: no reference resolved in Sefaria
        NoDisputesError: the model found no disputes in the texts
        NoVerifiedSourcesError: every dispute was pruned away
    """
    lang = language.value

    candidates = await find_dispute_candidates(llm, query, scope, language)
    if not candidates:
        raise NoCandidatesError(language=lang)

    resolved = await resolve_candidates(sefaria, candidates)
    if not resolved:
        raise NoResolvableTextError(language=lang)

    log_section(logger, "STEP 3: GROUP DISPUTES")
    raw = await llm.generate_json(
        PromptBuilder.dispute_system(language),
        PromptBuilder.dispute_prompt(query, build_grounding(resolved), language),
        RawDisputeResponse,
    )

    if not raw.disputes:
        raise NoDisputesError(language=lang)

    log_subsection(logger, "QUOTE VERIFICATION")
    disputes = filter_disputes(raw.disputes, resolved)
    logger.info(f"{len(disputes)} of {len(raw.disputes)} disputes kept")

    if not disputes:
        raise NoVerifiedSourcesError(language=lang)

    return DisputeResponse(
        disputes=disputes,
        overall_summary=unescape(raw.overall_summary),
        follow_up_questions=[unescape(q) for q in raw.follow_up_questions if q and q.strip()],
        question_type=raw.question_type or QuestionType.THEORETICAL,
    )

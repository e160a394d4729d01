"""
Supplementary generators.

Model calls that sit beside the verification pipeline. None of them makes
claims about quoted sources, so none of them goes through quote verification:

- follow-up answers to a clarifying question about a previous summary
- web-grounded answers (server-side web search) with a short summary
- the rabbi persona chat, whose history lives in the session object
- visualization data (people/works graph, timeline, flowchart) for a set of
  already verified sources
"""

import asyncio
import logging
from typing import Dict, List, Optional

from errors import AnalysisError
from llm_schemas import RawAnalysisGraph
from logging_config import log_section
from models import AnalysisGraph, Language, Source, WebGroundedResult
from prompts import RABBI_CHAT_SYSTEM, PromptBuilder
from source_output import strip_summary_markup
from utils.serialization import serialize_sources_for_prompt

logger = logging.getLogger(__name__)


async def get_follow_up_answer(
    llm,
    question: str,
    context_query: str,
    context_summary: str,
    language: Language = Language.HEBREW,
) -> str:
    """Plain-text answer to a clarifying question. No new sources are cited."""
    log_section(logger, "FOLLOW-UP")
    logger.info(f"Follow-up: {question}")
    return await llm.generate_text(
        PromptBuilder.follow_up_system(language),
        PromptBuilder.follow_up_prompt(question, context_query, strip_summary_markup(context_summary)),
    )


async def get_web_grounded_response(
    llm,
    question: str,
    language: Language = Language.HEBREW,
) -> WebGroundedResult:
    """
    Answer from a web search, plus a one or two sentence summary of it.

    The summary call is skipped when the long answer is empty.
    """
    log_section(logger, "WEB SEARCH")
    summary, sources = await llm.generate_grounded(PromptBuilder.web_search_system(language), question)
    logger.info(f"Web answer: {len(summary)} chars, {len(sources)} sources")

    if not summary.strip():
        return WebGroundedResult(summary="", short_summary="", sources=sources)

    short_summary = await llm.generate_text(
        PromptBuilder.short_summary_system(language),
        PromptBuilder.short_summary_prompt(summary),
    )
    return WebGroundedResult(summary=summary, short_summary=short_summary.strip(), sources=sources)


class RabbiChatSession:
    """
    A multi-turn conversation with the rabbi persona.

    History is kept on the session; start a new session for each new
    top-level question.
    """

    def __init__(self, llm, history: Optional[List[Dict[str, str]]] = None):
        self.llm = llm
        self.history: List[Dict[str, str]] = list(history or [])
        self._lock = asyncio.Lock()

    async def send(self, message: str) -> str:
        # One turn at a time per session
        async with self._lock:
            messages = self.history + [{"role": "user", "content": message}]
            reply = await self.llm.chat(RABBI_CHAT_SYSTEM, messages)
            self.history = messages + [{"role": "assistant", "content": reply}]
        return reply


def create_rabbi_chat_session(llm, history: Optional[List[Dict[str, str]]] = None) -> RabbiChatSession:
    return RabbiChatSession(llm, history)


async def get_advanced_analysis(
    llm,
    query: str,
    sources: List[Source],
    language: Language = Language.HEBREW,
) -> AnalysisGraph:
    """
    Visualization data for verified sources.

    Any failure, including malformed output, surfaces as AnalysisError.
    """
    log_section(logger, "ADVANCED ANALYSIS")
    try:
        graph = await llm.generate_json(
            PromptBuilder.analysis_system(language),
            PromptBuilder.analysis_prompt(query, serialize_sources_for_prompt(sources)),
            RawAnalysisGraph,
        )
    except Exception as e:
        logger.error(f"Analysis failed: {e}")
        raise AnalysisError(language=language.value) from e

    logger.info(
        f"Analysis: {len(graph.nodes)} nodes, {len(graph.edges)} edges, "
        f"{len(graph.timeline_events)} events, flowchart={'yes' if graph.flowchart else 'no'}"
    )
    return graph

"""
Mekor Halacha - Main Pipeline
=============================

The complete flow for a Sefaria-backed search:
1. CANDIDATES: the model proposes references (wide net)
2. RESOLVE:    the real texts are fetched from Sefaria in parallel
3. VERIFY:     one call extracts quotes, and only quotes that really appear
               in the fetched text are returned

Advanced mode replaces step 3 with dispute grouping (disputes.py).

Philosophy:
- The model may propose anything; only what Sefaria confirms is shown
- No silent retries with looser settings: when nothing verifies, the user
  is told so and may ask for more with load_more
"""

import argparse
import asyncio
import logging
from typing import Optional, Union

from disputes import analyze_disputes
from logging_config import log_section, setup_logging
from models import DisputeResponse, Language, SearchMode, SimpleResponse
from step_one_candidates import find_candidates, resolve_limit
from step_three_verify import verify
from tools.claude_client import get_claude_client
from tools.sefaria_client import get_sefaria_client

logger = logging.getLogger(__name__)

LOAD_MORE_STEP = 10


# ==============================================================================
#  MAIN PIPELINE
# ==============================================================================

async def search_sources(
    query: str,
    scope: str = "All",
    limit: Union[int, str] = 10,
    language: Language = Language.HEBREW,
    mode: SearchMode = SearchMode.PRECISE,
    llm=None,
    sefaria=None,
) -> Union[SimpleResponse, DisputeResponse]:
    """
    Run the full pipeline for one question.

    Args:
        query: The user's question
        scope: Book or category to search in ("Halakhah", "Shulchan Arukh", ...)
        limit: Result budget: a positive int, a digit string, or "unlimited"
        language: Language of the answer
        mode: precise, broad, or advanced (disputes)
        llm / sefaria: injected clients; the global ones are used when None

    Raises:
        HalachaSearchError subclasses, unchanged, for every user-visible failure
    """
    llm = llm or get_claude_client()
    sefaria = sefaria or get_sefaria_client()

    log_section(logger, "PIPELINE STARTING")
    logger.info(f"Query: '{query}'")
    logger.info(f"Scope: {scope} | Limit: {limit} | Mode: {mode.value} | Language: {language.value}")

    if mode == SearchMode.ADVANCED:
        result = await analyze_disputes(llm, sefaria, query, scope, language)
        log_section(logger, "PIPELINE COMPLETE")
        logger.info(f"{len(result.disputes)} disputes")
        return result

    max_count = resolve_limit(limit, mode)
    candidates = await find_candidates(llm, query, scope, max_count, language)
    result = await verify(llm, sefaria, query, candidates, mode, language)

    log_section(logger, "PIPELINE COMPLETE")
    logger.info(f"{len(result.sources)} verified sources ({result.question_type.value})")
    return result


async def load_more(
    query: str,
    scope: str,
    current_count: int,
    language: Language = Language.HEBREW,
    mode: SearchMode = SearchMode.PRECISE,
    llm=None,
    sefaria=None,
) -> SimpleResponse:
    """Re-run a precise/broad search with a budget of current_count + 10."""
    if mode == SearchMode.ADVANCED:
        raise ValueError("load_more is only available for precise and broad searches")
    return await search_sources(
        query,
        scope=scope,
        limit=current_count + LOAD_MORE_STEP,
        language=language,
        mode=mode,
        llm=llm,
        sefaria=sefaria,
    )


# ==============================================================================
#  COMMAND LINE
# ==============================================================================

async def _run_cli(args: argparse.Namespace) -> None:
    result = await search_sources(
        args.query,
        scope=args.scope,
        limit=args.limit,
        language=Language(args.language),
        mode=SearchMode(args.mode),
    )
    print(result.model_dump_json(indent=2))


def main() -> None:
    parser = argparse.ArgumentParser(description="Find verified Halachic sources for a question")
    parser.add_argument("query")
    parser.add_argument("--scope", default="All")
    parser.add_argument("--limit", default="10")
    parser.add_argument("--language", choices=[l.value for l in Language], default="he")
    parser.add_argument("--mode", choices=[m.value for m in SearchMode], default="precise")
    args = parser.parse_args()

    setup_logging(console_level=logging.INFO)
    asyncio.run(_run_cli(args))


if __name__ == "__main__":
    main()

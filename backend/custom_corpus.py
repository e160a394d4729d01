"""
Custom Book Search (map-reduce)
===============================

Searches a user-supplied book that Sefaria knows nothing about.

MAP:    the book is cut into overlapping windows and every window is scanned
        concurrently for passages that might be relevant. A window whose call
        fails simply contributes nothing.
REDUCE: the de-duplicated passages (capped) go to one strict call that picks
        the best ones and writes the summary. A failure here fails the search.

Progress is reported through an optional callback as (percent, stage key):
10 searching_book, 70 generating_response, 100 complete.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Tuple, Union

from config import get_settings
from errors import CorpusSearchError, InvalidLimitError
from llm_schemas import RawQuoteList, RawSimpleResponse
from logging_config import log_section, log_subsection
from models import CustomCorpus, Language, QuestionType, SimpleResponse, Source, SourceCategory
from prompts import PromptBuilder
from step_one_candidates import UNLIMITED
from utils.text import quote_is_faithful, unescape

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

PROGRESS_SEARCHING = (10, "searching_book")
PROGRESS_GENERATING = (70, "generating_response")
PROGRESS_COMPLETE = (100, "complete")


# ==========================================
#  CHUNKING
# ==========================================

def chunk_spans(length: int, size: int, overlap: int) -> List[Tuple[int, int]]:
    """
    (start, end) windows over a text of `length` characters.

    Windows advance by size - overlap and stop once a window reaches the
    end of the text. Consecutive windows overlap by `overlap`
    characters and together cover the whole text.
    """
    if size <= 0:
        raise ValueError("chunk size must be positive")
    if overlap < 0 or overlap >= size:
        raise ValueError("chunk overlap must be >= 0 and smaller than the chunk size")

    spans = []
    step = size - overlap
    i = 0
    while i < length:
        end = min(i + size, length)
        spans.append((i, end))
        if end >= length:
            break
        i += step
    return spans


def create_chunks(text: str, size: int, overlap: int) -> List[str]:
    if not text:
        return []
    return [text[start:end] for start, end in chunk_spans(len(text), size, overlap)]


def dedupe_quotes(quote_lists: List[List[str]], cap: int) -> List[str]:
    """Union of all map results, first occurrence wins, at most `cap`."""
    seen = set()
    quotes: List[str] = []
    for quote_list in quote_lists:
        for quote in quote_list:
            cleaned = (quote or "").strip()
            if not cleaned or cleaned in seen:
                continue
            seen.add(cleaned)
            quotes.append(cleaned)
    if len(quotes) > cap:
        logger.info(f"Capping {len(quotes)} quotes to {cap} for the reducer")
    return quotes[:cap]


def _corpus_budget(limit: Union[int, str]) -> int:
    if isinstance(limit, bool):
        raise InvalidLimitError()
    if isinstance(limit, str):
        text = limit.strip().lower()
        if text == UNLIMITED:
            return get_settings().unlimited_corpus_limit
        if not text.isdigit():
            raise InvalidLimitError()
        limit = int(text)
    if not isinstance(limit, int) or limit <= 0:
        raise InvalidLimitError()
    return limit


# ==========================================
#  MAP / REDUCE
# ==========================================

async def _map_chunk(llm, query: str, chunk: str, index: int, language: Language) -> List[str]:
    try:
        result = await llm.generate_json(
            PromptBuilder.corpus_map_system(language),
            PromptBuilder.corpus_map_prompt(query, chunk),
            RawQuoteList,
        )
    except Exception as e:
        logger.warning(f"Map step failed for chunk {index}, treating it as empty: {e}")
        return []
    logger.debug(f"Chunk {index}: {len(result.quotes)} quotes")
    return result.quotes


def _report(on_progress: Optional[ProgressCallback], stage: Tuple[int, str]) -> None:
    if on_progress is not None:
        on_progress(*stage)


async def search_corpus(
    llm,
    query: str,
    corpus: CustomCorpus,
    result_budget: Union[int, str] = 10,
    language: Language = Language.HEBREW,
    on_progress: Optional[ProgressCallback] = None,
) -> SimpleResponse:
    """
    Search a custom book.

    Returns an empty SimpleResponse when the map step finds nothing.

    Raises:
        InvalidLimitError: bad result budget
        CorpusSearchError: the reduce call failed or returned malformed output
    """
    settings = get_settings()
    budget = _corpus_budget(result_budget)

    log_section(logger, f"CUSTOM BOOK SEARCH: {corpus.name}")
    _report(on_progress, PROGRESS_SEARCHING)

    chunks = create_chunks(corpus.content, settings.corpus_chunk_size, settings.corpus_chunk_overlap)
    logger.info(f"{len(corpus.content)} chars -> {len(chunks)} chunks")

    log_subsection(logger, "MAP")
    mapped = await asyncio.gather(
        *(_map_chunk(llm, query, chunk, i, language) for i, chunk in enumerate(chunks))
    )
    quotes = dedupe_quotes(list(mapped), settings.max_quotes_for_reducer)
    logger.info(f"{len(quotes)} distinct quotes from the map step")

    if not quotes:
        _report(on_progress, PROGRESS_COMPLETE)
        return SimpleResponse(question_type=QuestionType.THEORETICAL)

    _report(on_progress, PROGRESS_GENERATING)

    log_subsection(logger, "REDUCE")
    try:
        raw = await llm.generate_json(
            PromptBuilder.corpus_reduce_system(language, corpus.name, budget),
            PromptBuilder.corpus_reduce_prompt(query, corpus.name, quotes),
            RawSimpleResponse,
        )
    except Exception as e:
        logger.error(f"Reduce step failed for '{corpus.name}': {e}")
        raise CorpusSearchError(language=language.value) from e

    sources: List[Source] = []
    for raw_source in raw.sources:
        quote = unescape(raw_source.quote).strip()
        if not quote_is_faithful(quote, corpus.content):
            logger.warning(f"  ✗ quote not found in '{corpus.name}': {quote[:80]!r}")
            continue
        sources.append(Source(
            source=corpus.name,
            quote=quote,
            link="",
            sefaria_ref="",
            book_name=corpus.name,
            category=SourceCategory.CUSTOM,
        ))
    sources = sources[:budget]
    logger.info(f"{len(sources)} of {len(raw.sources)} reduced sources kept")

    _report(on_progress, PROGRESS_COMPLETE)

    return SimpleResponse(
        sources=sources,
        ai_summary=unescape(raw.ai_summary) if sources else "",
        follow_up_questions=[unescape(q) for q in raw.follow_up_questions if q and q.strip()],
        question_type=raw.question_type or QuestionType.THEORETICAL,
    )

"""
Mekor Halacha - FastAPI Server
==============================

Serves the source-verification pipeline to the frontend.

Endpoints:
- GET  /health              - Health check
- POST /search              - Precise / broad / advanced search
- POST /search/load-more    - Same search with current_count + 10
- POST /search/custom-book  - Map-reduce search of an uploaded book
- POST /follow-up           - Clarifying question about a summary
- POST /web-search          - Web-grounded answer
- POST /chat                - Rabbi persona chat (session per top-level question)
- POST /analysis            - Visualization data for verified sources
- GET  /source              - Full Sefaria text with the quote highlighted
- POST /export              - Text or HTML export with bibliography

User-visible failures come back as 422 (502 when every relay failed) with
{"detail": {"code": ..., "message": ...}}; anything else is a 500.
"""

import logging
import uuid
from collections import OrderedDict
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, NoReturn, Union

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, PlainTextResponse

from config import get_settings
from custom_corpus import search_corpus
from errors import HalachaSearchError, RelayExhaustedError
from logging_config import setup_logging
from main_pipeline import load_more, search_sources
from models import (
    AnalysisGraph,
    AnalysisRequest,
    ChatRequest,
    CorpusSearchRequest,
    DisputeResponse,
    ExportRequest,
    FollowUpRequest,
    LoadMoreRequest,
    SearchMode,
    SearchRequest,
    SimpleResponse,
    SourceView,
    WebGroundedResult,
    WebSearchRequest,
)
from source_output import format_export_html, format_export_text
from supplementary import (
    RabbiChatSession,
    create_rabbi_chat_session,
    get_advanced_analysis,
    get_follow_up_answer,
    get_web_grounded_response,
)
from tools.claude_client import ClaudeClient, get_claude_client
from tools.sefaria_client import SefariaClient, get_sefaria_client


# ==========================================
#  SETTINGS & LOGGING SETUP
# ==========================================

settings = get_settings()
logger = logging.getLogger("api_server")

# Chat sessions live in-process (LRU, capped by max_chat_sessions); the
# pipeline itself is stateless
_chat_sessions: "OrderedDict[str, RabbiChatSession]" = OrderedDict()


def _store_session(session_id: str, session: RabbiChatSession) -> None:
    _chat_sessions[session_id] = session
    _chat_sessions.move_to_end(session_id)
    while len(_chat_sessions) > settings.max_chat_sessions:
        evicted, _ = _chat_sessions.popitem(last=False)
        logger.info(f"[/chat] Evicted session {evicted}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    settings.ensure_directories()
    setup_logging(
        console_level=getattr(logging, settings.log_level, logging.INFO),
        log_dir=settings.log_dir,
    )

    logger.info("=" * 60)
    logger.info(f"{settings.app_name} API Server Starting")
    logger.info(f"Log directory: {settings.log_dir}")
    logger.info(f"Environment: {settings.environment}")
    logger.info("=" * 60)

    yield

    logger.info(f"{settings.app_name} API Server Shutting Down")
    _chat_sessions.clear()


# ==========================================
#  FASTAPI APP
# ==========================================

app = FastAPI(
    title=f"{settings.app_name} API",
    description="Halachic research assistant with verified Sefaria sources",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==========================================
#  DEPENDENCIES
# ==========================================

def get_llm() -> ClaudeClient:
    return get_claude_client()


def get_sefaria() -> SefariaClient:
    return get_sefaria_client()


def _raise_http(endpoint: str, e: Exception) -> NoReturn:
    """Map pipeline errors to HTTP errors."""
    if isinstance(e, RelayExhaustedError):
        logger.error(f"[{endpoint}] {e.code}: {e.last_error}")
        raise HTTPException(status_code=502, detail=e.to_dict())
    if isinstance(e, HalachaSearchError):
        logger.warning(f"[{endpoint}] {e.code}: {e.message}")
        raise HTTPException(status_code=422, detail=e.to_dict())
    logger.exception(f"[{endpoint}] Error: {e}")
    raise HTTPException(status_code=500, detail=str(e))


# ==========================================
#  HEALTH CHECK
# ==========================================

@app.get("/health")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "claude_model": settings.claude_model,
        "relays": len(settings.sefaria_relays),
        "chat_sessions": len(_chat_sessions),
        "timestamp": datetime.now().isoformat(),
    }


# ==========================================
#  SEARCH ENDPOINTS
# ==========================================

@app.post("/search", response_model=None)
async def search_endpoint(
    request: SearchRequest,
    llm=Depends(get_llm),
    sefaria=Depends(get_sefaria),
) -> Union[SimpleResponse, DisputeResponse]:
    """Full search pipeline. Advanced mode returns disputes."""
    logger.info(f"[/search] '{request.query}' scope={request.scope} limit={request.limit} mode={request.mode.value}")
    try:
        return await search_sources(
            request.query,
            scope=request.scope,
            limit=request.limit,
            language=request.language,
            mode=request.mode,
            llm=llm,
            sefaria=sefaria,
        )
    except Exception as e:
        _raise_http("/search", e)


@app.post("/search/load-more")
async def load_more_endpoint(
    request: LoadMoreRequest,
    llm=Depends(get_llm),
    sefaria=Depends(get_sefaria),
) -> SimpleResponse:
    logger.info(f"[/search/load-more] '{request.query}' current_count={request.current_count}")
    if request.mode == SearchMode.ADVANCED:
        raise HTTPException(status_code=400, detail="load-more is only available for precise and broad searches")
    try:
        return await load_more(
            request.query,
            scope=request.scope,
            current_count=request.current_count,
            language=request.language,
            mode=request.mode,
            llm=llm,
            sefaria=sefaria,
        )
    except Exception as e:
        _raise_http("/search/load-more", e)


@app.post("/search/custom-book")
async def custom_book_endpoint(
    request: CorpusSearchRequest,
    llm=Depends(get_llm),
) -> SimpleResponse:
    logger.info(f"[/search/custom-book] '{request.query}' in '{request.book.name}'")

    def on_progress(percent: int, stage: str) -> None:
        logger.info(f"[/search/custom-book] {percent}% {stage}")

    try:
        return await search_corpus(
            llm,
            request.query,
            request.book,
            result_budget=request.limit,
            language=request.language,
            on_progress=on_progress,
        )
    except Exception as e:
        _raise_http("/search/custom-book", e)


# ==========================================
#  SUPPLEMENTARY ENDPOINTS
# ==========================================

@app.post("/follow-up")
async def follow_up_endpoint(request: FollowUpRequest, llm=Depends(get_llm)) -> Dict[str, str]:
    try:
        answer = await get_follow_up_answer(
            llm,
            request.question,
            request.context_query,
            request.context_summary,
            request.language,
        )
        return {"answer": answer}
    except Exception as e:
        _raise_http("/follow-up", e)


@app.post("/web-search")
async def web_search_endpoint(request: WebSearchRequest, llm=Depends(get_llm)) -> WebGroundedResult:
    try:
        return await get_web_grounded_response(llm, request.query, request.language)
    except Exception as e:
        _raise_http("/web-search", e)


@app.post("/chat")
async def chat_endpoint(request: ChatRequest, llm=Depends(get_llm)) -> Dict[str, str]:
    """
    One chat turn. Without a session_id (or with an unknown one) a new
    session is started.
    """
    session_id = request.session_id
    session = _chat_sessions.get(session_id) if session_id else None
    if session is None:
        session_id = str(uuid.uuid4())
        session = create_rabbi_chat_session(llm)
        logger.info(f"[/chat] New session {session_id}")
    _store_session(session_id, session)

    try:
        reply = await session.send(request.message)
    except Exception as e:
        _raise_http("/chat", e)
    return {"session_id": session_id, "reply": reply}


@app.post("/analysis", response_model=AnalysisGraph, response_model_by_alias=True)
async def analysis_endpoint(request: AnalysisRequest, llm=Depends(get_llm)) -> AnalysisGraph:
    try:
        return await get_advanced_analysis(llm, request.query, request.sources, request.language)
    except Exception as e:
        _raise_http("/analysis", e)


# ==========================================
#  SOURCE VIEWER & EXPORT
# ==========================================

@app.get("/source")
async def source_endpoint(
    ref: str = Query(..., min_length=1),
    quote: str = "",
    sefaria=Depends(get_sefaria),
) -> SourceView:
    try:
        return await sefaria.get_source_view(ref, quote)
    except Exception as e:
        _raise_http("/source", e)


@app.post("/export")
async def export_endpoint(request: ExportRequest):
    if request.format == "html":
        return HTMLResponse(format_export_html(request.query, request.ai_summary, request.sources, request.language))
    return PlainTextResponse(format_export_text(request.query, request.ai_summary, request.sources, request.language))


# ==========================================
#  MAIN
# ==========================================

if __name__ == "__main__":
    import uvicorn

    print(f"\n{'='*60}")
    print(f"{settings.app_name} API Server")
    print(f"{'='*60}")
    print(f"Log directory: {settings.log_dir}")
    print(f"Environment: {settings.environment}")
    print(f"URL: http://{settings.host}:{settings.port}")
    print(f"{'='*60}\n")

    uvicorn.run(
        "api_server:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
    )

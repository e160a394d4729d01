"""
Central Data Models for Mekor Halacha
=====================================

All Pydantic models for type-safe data flow through the pipeline:
candidate references, verified sources, the response shapes returned to the
frontend, and the API request bodies.
"""

import uuid
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ==========================================
#  ENUMS
# ==========================================

class QuestionType(str, Enum):
    """How the user's question is classified by the verification step."""
    PRACTICAL = "practical"
    THEORETICAL = "theoretical"
    HISTORICAL = "historical"


class SearchMode(str, Enum):
    """Relevance threshold / strategy for a Sefaria-backed search."""
    PRECISE = "precise"
    BROAD = "broad"
    ADVANCED = "advanced"


class Language(str, Enum):
    HEBREW = "he"
    ENGLISH = "en"


class SourceCategory(str, Enum):
    """The fixed book taxonomy shown next to every source."""
    TANAKH = "tanakh"
    TALMUD = "talmud"
    MIDRASH = "midrash"
    HALAKHAH = "halakhah"
    RESPONSA = "responsa"
    KABBALAH_THOUGHT = "kabbalah_thought"
    OTHER = "other"
    CUSTOM = "custom"


class HighlightStrategy(str, Enum):
    EXACT = "exact"
    NORMALIZED = "normalized"
    NONE = "none"


# ==========================================
#  SOURCES
# ==========================================

class CandidateReference(BaseModel):
    """
    An unverified reference proposed by the model before any Sefaria lookup.
    Discarded once it is turned into a Source or rejected.
    """
    sefaria_ref: str
    display_name: str = ""
    book_name: str = ""
    category: SourceCategory = SourceCategory.OTHER


class Source(BaseModel):
    """
    A single verified citation.

    `quote` is a contiguous substring of the real Sefaria text for
    `sefaria_ref` (only <b> emphasis may be added). Custom-book sources have
    an empty `link` and `sefaria_ref`.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source: str
    quote: str
    link: str = ""
    sefaria_ref: str = ""
    book_name: str = ""
    category: SourceCategory = SourceCategory.OTHER


class SimpleResponse(BaseModel):
    """Result of a precise/broad search or a custom-book search."""
    sources: List[Source] = []
    ai_summary: str = ""
    follow_up_questions: List[str] = []
    question_type: QuestionType = QuestionType.THEORETICAL


class Opinion(BaseModel):
    summary: str
    sources: List[Source]


class Dispute(BaseModel):
    topic: str
    opinions: List[Opinion]


class DisputeResponse(BaseModel):
    """Result of an advanced (dispute) search."""
    disputes: List[Dispute]
    overall_summary: str = ""
    follow_up_questions: List[str] = []
    question_type: QuestionType = QuestionType.THEORETICAL


# ==========================================
#  SEFARIA
# ==========================================

class TextRecord(BaseModel):
    """A text fetched from Sefaria. Read-only, fetched fresh per query."""
    ref: str
    he_ref: str = ""
    book: str = ""
    he_book: str = ""
    text: str = ""
    raw: Any = None


class SourceView(BaseModel):
    """A full Sefaria text with the cited quote highlighted."""
    ref: str
    he_ref: str = ""
    text: str
    highlighted_text: str
    highlight_strategy: HighlightStrategy = HighlightStrategy.NONE


class CustomCorpus(BaseModel):
    """A user-uploaded book, searched by map-reduce instead of Sefaria."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    content: str


# ==========================================
#  WEB SEARCH
# ==========================================

class WebSource(BaseModel):
    uri: str
    title: str = ""


class WebGroundedResult(BaseModel):
    summary: str = ""
    short_summary: str = ""
    sources: List[WebSource] = []


# ==========================================
#  ADVANCED ANALYSIS (visualization data)
# ==========================================

class AnalysisNode(BaseModel):
    id: str
    label: str
    group: str
    era: str


class AnalysisEdge(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_id: str = Field(alias="from")
    to_id: str = Field(alias="to")
    label: str = ""


class TimelineEvent(BaseModel):
    era: str
    year: int
    summary: str
    source_refs: List[str] = Field(default_factory=list, alias="sourceRefs")

    model_config = ConfigDict(populate_by_name=True)


class FlowchartNode(BaseModel):
    id: str
    label: str
    type: str

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if v not in ("start", "decision", "process", "result"):
            raise ValueError(f"unknown flowchart node type: {v}")
        return v


class FlowchartEdge(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_id: str = Field(alias="from")
    to_id: str = Field(alias="to")
    label: Optional[str] = None

    @field_validator("label")
    @classmethod
    def validate_label(cls, v):
        if v is not None and v not in ("Yes", "No"):
            raise ValueError(f"flowchart edge label must be Yes or No, got {v}")
        return v


class Flowchart(BaseModel):
    nodes: List[FlowchartNode]
    edges: List[FlowchartEdge]


class AnalysisGraph(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    nodes: List[AnalysisNode]
    edges: List[AnalysisEdge]
    timeline_events: List[TimelineEvent] = Field(alias="timelineEvents")
    flowchart: Optional[Flowchart] = None


# ==========================================
#  API REQUEST MODELS
# ==========================================

class SearchRequest(BaseModel):
    """Request for a Sefaria-backed search."""
    query: str = Field(..., min_length=1, description="User's question")
    scope: str = Field("All", description="Book or category to search in")
    limit: Union[int, str] = Field(10, description="Result budget or 'unlimited'")
    language: Language = Language.HEBREW
    mode: SearchMode = SearchMode.PRECISE

    @field_validator("query")
    @classmethod
    def query_not_empty(cls, v):
        if not v.strip():
            raise ValueError("Query cannot be empty")
        return v.strip()


class LoadMoreRequest(SearchRequest):
    current_count: int = Field(..., ge=0)


class CorpusSearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    book: CustomCorpus
    limit: Union[int, str] = 10
    language: Language = Language.HEBREW


class FollowUpRequest(BaseModel):
    question: str = Field(..., min_length=1)
    context_query: str
    context_summary: str = ""
    language: Language = Language.HEBREW


class WebSearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    language: Language = Language.HEBREW


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    session_id: Optional[str] = None


class AnalysisRequest(BaseModel):
    query: str
    sources: List[Source]
    language: Language = Language.HEBREW


class ExportRequest(BaseModel):
    query: str
    ai_summary: str = ""
    sources: List[Source]
    language: Language = Language.HEBREW
    format: str = Field("txt", pattern="^(txt|html)$")

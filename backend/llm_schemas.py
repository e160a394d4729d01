"""
Raw model-output schemas.

These are the shapes the model is asked to produce (camelCase, as the prompts
describe them). They are validated at the boundary by
ClaudeClient.generate_json and converted to the domain models in models.py
by the pipeline stages. Nothing downstream of a stage sees these types.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import AnalysisGraph, QuestionType


class _RawModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RawSource(_RawModel):
    source_display_name: str = Field(
        alias="sourceDisplayName",
        description="Human-readable name of the source, e.g. 'שולחן ערוך, אורח חיים שח:א'",
    )
    sefaria_ref: str = Field(
        "",
        alias="sefariaRef",
        description="Exact Sefaria reference in English, e.g. 'Shulchan Arukh, Orach Chayim 308:1'",
    )
    quote: Optional[str] = Field(
        None,
        description="Verbatim Hebrew excerpt from the provided text, key words wrapped in <b></b>",
    )
    hebrew_book_name: str = Field("", alias="hebrewBookName")
    hebrew_category_name: str = Field("", alias="hebrewCategoryName")


class RawSourceList(_RawModel):
    sources: List[RawSource] = []


class RawSimpleResponse(_RawModel):
    sources: List[RawSource] = []
    ai_summary: str = Field("", alias="aiSummary")
    follow_up_questions: List[str] = Field(default_factory=list, alias="followUpQuestions")
    question_type: Optional[QuestionType] = Field(None, alias="questionType")

    @field_validator("question_type", mode="before")
    @classmethod
    def lower_question_type(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or None
        return v


class RawOpinion(_RawModel):
    summary: str = ""
    sources: List[RawSource] = []


class RawDispute(_RawModel):
    topic: str
    opinions: List[RawOpinion] = []


class RawDisputeResponse(_RawModel):
    disputes: List[RawDispute] = []
    overall_summary: str = Field("", alias="overallSummary")
    follow_up_questions: List[str] = Field(default_factory=list, alias="followUpQuestions")
    question_type: Optional[QuestionType] = Field(None, alias="questionType")

    @field_validator("question_type", mode="before")
    @classmethod
    def lower_question_type(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or None
        return v


class RawQuoteList(_RawModel):
    quotes: List[str] = []


# The analysis graph is requested in exactly the shape the API returns
RawAnalysisGraph = AnalysisGraph

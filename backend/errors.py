"""
Error taxonomy for the source-verification pipeline.

Every user-visible failure is a HalachaSearchError subclass with a stable
`code` and a message in the user's language. The API layer turns these into
structured error responses; anything else is an internal error.
"""

from typing import Dict, Optional


class HalachaSearchError(Exception):
    """Base class for failures the user should see."""

    code = "search_failed"
    messages: Dict[str, str] = {
        "he": "אירעה שגיאה בחיפוש.",
        "en": "The search failed.",
    }

    def __init__(self, message: Optional[str] = None, language: str = "en"):
        self.language = language
        self.message = message or self.messages.get(language, self.messages["en"])
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "message": self.message}


class NoCandidatesError(HalachaSearchError):
    """The candidate finder proposed no references at all."""

    code = "no_candidates"
    messages = {
        "he": "לא נמצאו מקורות.",
        "en": "No sources found.",
    }


class NoResolvableTextError(HalachaSearchError):
    """Every candidate reference failed to resolve in Sefaria."""

    code = "no_resolvable_text"
    messages = {
        "he": "לא הצלחתי לאחזר טקסטים מספריא.",
        "en": "Failed to retrieve texts from Sefaria.",
    }


class NoVerifiedSourcesError(HalachaSearchError):
    """Texts resolved, but none survived quote verification."""

    code = "no_verified_sources"
    messages = {
        "he": "לא נמצאו מקורות מאומתים. נסו לנסח את השאלה מחדש או לבחור ספר אחר.",
        "en": "No verified sources found. Try rephrasing your question or selecting a different book.",
    }


class NoDisputesError(HalachaSearchError):
    code = "no_disputes"
    messages = {
        "he": "לא זוהו מחלוקות במקורות.",
        "en": "No disputes identified in sources.",
    }


class MalformedModelOutputError(HalachaSearchError):
    """A schema-constrained model response did not match its schema."""

    code = "malformed_model_output"
    messages = {
        "he": "התקבלה תשובה לא תקינה מהעוזר.",
        "en": "Received an invalid response from the assistant.",
    }


class RelayExhaustedError(HalachaSearchError):
    """All forwarding relays failed or timed out for one request."""

    code = "relay_exhausted"
    messages = {
        "he": "שגיאה בטעינת המקור.",
        "en": "Error loading the source.",
    }

    def __init__(self, url: str = "", last_error: Optional[str] = None, language: str = "en"):
        self.url = url
        self.last_error = last_error
        super().__init__(language=language)


class InvalidLimitError(HalachaSearchError):
    code = "invalid_limit"
    messages = {
        "he": "מספר התוצאות שנבחר אינו תקין.",
        "en": "Invalid limit provided.",
    }


class CorpusSearchError(HalachaSearchError):
    code = "corpus_search_failed"
    messages = {
        "he": "לא התקבלה תשובה תקינה עבור הספר האישי.",
        "en": "Failed to get a valid response from the Halachic assistant for the custom book.",
    }


class AnalysisError(HalachaSearchError):
    code = "analysis_failed"
    messages = {
        "he": "לא התקבל ניתוח תקין מהעוזר.",
        "en": "Failed to get a valid analysis from the assistant.",
    }

"""
Claude Client
=============

Thin async wrapper around the Anthropic Messages API used by every pipeline
stage.

Four call shapes:
- generate_json: schema-constrained output. The pydantic schema is offered as
  the only tool and the tool is forced, so the reply arrives as tool input.
  The input is validated against the schema; a mismatch raises
  MalformedModelOutputError.
- generate_text: plain text.
- generate_grounded: text written with the server-side web_search tool,
  returned with the pages it cited.
- chat: multi-turn text with a caller-owned history.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from config import get_settings
from errors import MalformedModelOutputError
from models import WebSource

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search", "max_uses": 5}


def extract_json(raw_text: str) -> str:
    """Extract a JSON object from a potentially wrapped response."""
    text = raw_text.strip()

    # Try to extract from markdown code blocks
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()

    if not text.startswith("{"):
        start = text.find("{")
        if start != -1:
            text = text[start:]

    if not text.endswith("}"):
        end = text.rfind("}")
        if end != -1:
            text = text[:end + 1]

    return text


def _tool_name(schema: Type[BaseModel]) -> str:
    return f"emit_{schema.__name__.lower()}"


class ClaudeClient:
    """
    Handles Claude API interaction for all pipeline stages.

    The Anthropic client is created lazily so that constructing a ClaudeClient
    (for example at import time of the API server) never needs a key.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.anthropic_api_key
        self.model = model or settings.claude_model
        self.max_tokens = max_tokens or settings.claude_max_tokens
        self.temperature = settings.claude_temperature if temperature is None else temperature

        if not self.api_key:
            logger.warning("No Anthropic API key configured!")

        self._client = None

    @property
    def client(self):
        """Lazy initialization of the async Anthropic client."""
        if self._client is None:
            from anthropic import AsyncAnthropic
            self._client = AsyncAnthropic(api_key=self.api_key or None)
        return self._client

    async def _create(self, **kwargs) -> Any:
        start_time = datetime.now()
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            **kwargs,
        )
        elapsed_ms = int((datetime.now() - start_time).total_seconds() * 1000)
        logger.info(f"Claude response received in {elapsed_ms}ms (stop_reason={getattr(response, 'stop_reason', None)})")
        return response

    @staticmethod
    def _text_of(response: Any) -> str:
        parts = [
            block.text for block in response.content
            if getattr(block, "type", None) == "text" and getattr(block, "text", None)
        ]
        return "".join(parts).strip()

    # ------------------------------------------
    #  SCHEMA-CONSTRAINED JSON
    # ------------------------------------------

    async def generate_json(self, system: str, prompt: str, schema: Type[T]) -> T:
        """
        Ask for output matching `schema` and validate it.

        Raises:
            MalformedModelOutputError: the reply is not valid JSON for the schema
        """
        name = _tool_name(schema)
        tool = {
            "name": name,
            "description": f"Return the answer as a {schema.__name__} object.",
            "input_schema": schema.model_json_schema(by_alias=True),
        }

        response = await self._create(
            system=system,
            temperature=self.temperature,
            messages=[{"role": "user", "content": prompt}],
            tools=[tool],
            tool_choice={"type": "tool", "name": name},
        )

        payload: Optional[Dict[str, Any]] = None
        for block in response.content:
            if getattr(block, "type", None) == "tool_use" and block.name == name:
                payload = block.input
                break

        try:
            if payload is None:
                raw_text = self._text_of(response)
                logger.warning(f"No {name} tool call in response; parsing text ({len(raw_text)} chars)")
                payload = json.loads(extract_json(raw_text))
            return schema.model_validate(payload)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Model output did not match {schema.__name__}: {e}")
            raise MalformedModelOutputError(f"Invalid {schema.__name__} from model: {e}") from e

    # ------------------------------------------
    #  PLAIN TEXT
    # ------------------------------------------

    async def generate_text(self, system: str, prompt: str) -> str:
        response = await self._create(
            system=system,
            temperature=self.temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        return self._text_of(response)

    async def chat(self, system: str, messages: List[Dict[str, str]]) -> str:
        """One turn of a conversation. `messages` alternates user/assistant."""
        response = await self._create(
            system=system,
            temperature=0.7,
            messages=messages,
        )
        return self._text_of(response)

    # ------------------------------------------
    #  WEB-GROUNDED
    # ------------------------------------------

    async def generate_grounded(self, system: str, prompt: str) -> Tuple[str, List[WebSource]]:
        """
        Answer with the web_search server tool enabled.

        Returns the answer text and the distinct pages it was grounded on,
        in first-seen order.
        """
        response = await self._create(
            system=system,
            messages=[{"role": "user", "content": prompt}],
            tools=[WEB_SEARCH_TOOL],
        )

        sources: List[WebSource] = []
        seen = set()

        def add(url: Optional[str], title: Optional[str]) -> None:
            if url and url not in seen:
                seen.add(url)
                sources.append(WebSource(uri=url, title=title or url))

        for block in response.content:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                for citation in getattr(block, "citations", None) or []:
                    add(getattr(citation, "url", None), getattr(citation, "title", None))
            elif block_type == "web_search_tool_result":
                results = getattr(block, "content", None)
                if isinstance(results, list):
                    for result in results:
                        add(getattr(result, "url", None), getattr(result, "title", None))

        return self._text_of(response), sources


# ==========================================
#  GLOBAL INSTANCE
# ==========================================

_client: Optional[ClaudeClient] = None


def get_claude_client() -> ClaudeClient:
    """Get global Claude client instance."""
    global _client
    if _client is None:
        _client = ClaudeClient()
    return _client

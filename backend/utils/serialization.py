"""
Serialization helpers shared across the backend.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List


def enum_value(value: Any) -> Any:
    """Return the enum's value if present, otherwise the raw object."""
    return value.value if isinstance(value, Enum) else value


def serialize_sources_for_prompt(sources: Iterable[Any]) -> List[Dict[str, Any]]:
    """
    Convert verified Source objects to the compact camelCase dicts that get
    embedded in model prompts. Ids and links are left out.
    """
    serialized: List[Dict[str, Any]] = []
    for source in sources:
        serialized.append(
            {
                "sourceDisplayName": source.source,
                "sefariaRef": source.sefaria_ref,
                "quote": source.quote,
                "hebrewBookName": source.book_name,
                "category": enum_value(source.category),
            }
        )
    return serialized

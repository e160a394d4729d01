"""
Shared source-category metadata and parsing.
"""

from typing import Dict, Optional

from models import Language, SourceCategory

# Display names (keys are SourceCategory values)
CATEGORY_HEBREW_NAMES: Dict[str, str] = {
    "tanakh": 'תנ"ך',
    "talmud": "תלמוד",
    "midrash": "מדרש",
    "halakhah": "הלכה",
    "responsa": 'שו"ת (שאלות ותשובות)',
    "kabbalah_thought": "קבלה ומחשבת ישראל",
    "other": "אחרים",
    "custom": "ספר אישי",
}

CATEGORY_ENGLISH_NAMES: Dict[str, str] = {
    "tanakh": "Tanakh",
    "talmud": "Talmud",
    "midrash": "Midrash",
    "halakhah": "Halakhah",
    "responsa": "Responsa",
    "kabbalah_thought": "Kabbalah & Jewish Thought",
    "other": "Other",
    "custom": "Custom Book",
}

# Spellings the model tends to use instead of the canonical labels
_ALIASES: Dict[str, SourceCategory] = {
    'תנ״ך': SourceCategory.TANAKH,
    "תנך": SourceCategory.TANAKH,
    "tanach": SourceCategory.TANAKH,
    "bible": SourceCategory.TANAKH,
    "gemara": SourceCategory.TALMUD,
    "גמרא": SourceCategory.TALMUD,
    "mishnah": SourceCategory.TALMUD,
    "משנה": SourceCategory.TALMUD,
    "halacha": SourceCategory.HALAKHAH,
    "halakha": SourceCategory.HALAKHAH,
    'שו"ת': SourceCategory.RESPONSA,
    "שו״ת": SourceCategory.RESPONSA,
    "שאלות ותשובות": SourceCategory.RESPONSA,
    "kabbalah": SourceCategory.KABBALAH_THOUGHT,
    "jewish thought": SourceCategory.KABBALAH_THOUGHT,
    "קבלה": SourceCategory.KABBALAH_THOUGHT,
    "מחשבת ישראל": SourceCategory.KABBALAH_THOUGHT,
    "אחר": SourceCategory.OTHER,
}


def _build_lookup() -> Dict[str, SourceCategory]:
    lookup: Dict[str, SourceCategory] = {}
    for category in SourceCategory:
        lookup[category.value] = category
        lookup[CATEGORY_HEBREW_NAMES[category.value]] = category
        lookup[CATEGORY_ENGLISH_NAMES[category.value].lower()] = category
    for alias, category in _ALIASES.items():
        lookup[alias.lower()] = category
    return lookup


_LOOKUP = _build_lookup()


def parse_category(label: Optional[str]) -> SourceCategory:
    """
    Map a Hebrew or English category label to a SourceCategory.

    Unknown or missing labels map to OTHER, never raise.
    """
    if not label:
        return SourceCategory.OTHER
    key = label.strip()
    return _LOOKUP.get(key, _LOOKUP.get(key.lower(), SourceCategory.OTHER))


def category_label(category: SourceCategory, language: Language = Language.HEBREW) -> str:
    """Return the display label for a category in the given language."""
    names = CATEGORY_HEBREW_NAMES if language == Language.HEBREW else CATEGORY_ENGLISH_NAMES
    return names.get(category.value, names["other"])

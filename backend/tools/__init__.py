"""
Tools package for Mekor Halacha: external clients and reference helpers.
"""

from .claude_client import ClaudeClient, get_claude_client
from .ref_normalizer import normalize_ref, sefaria_link
from .sefaria_client import RelayFetcher, SefariaClient, get_sefaria_client

__all__ = [
    'ClaudeClient',
    'get_claude_client',
    'normalize_ref',
    'sefaria_link',
    'RelayFetcher',
    'SefariaClient',
    'get_sefaria_client',
]

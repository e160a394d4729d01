"""
Step 2: RESOLVE - Fetch the real text behind every candidate
===========================================================

All candidates are fetched from Sefaria concurrently. A candidate whose
lookup fails for any reason is dropped here and never reaches the model
again; partial success is the normal case.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from logging_config import log_section
from models import CandidateReference, TextRecord
from tools.ref_normalizer import normalize_ref

logger = logging.getLogger(__name__)


@dataclass
class ResolvedCandidate:
    """A candidate paired with the text Sefaria returned for it."""
    candidate: CandidateReference
    record: TextRecord

    @property
    def ref_keys(self) -> List[str]:
        """Normalized refs under which the model may cite this text."""
        keys = {normalize_ref(self.candidate.sefaria_ref).lower()}
        if self.record.ref:
            keys.add(normalize_ref(self.record.ref).lower())
        return sorted(keys)


async def resolve_candidates(sefaria, candidates: List[CandidateReference]) -> List[ResolvedCandidate]:
    """
    Fetch all candidate texts in parallel.

    Returns the candidates that resolved, in candidate order.
    """
    log_section(logger, "STEP 2: RESOLVE TEXTS")
    records = await sefaria.fetch_many([c.sefaria_ref for c in candidates])

    resolved: List[ResolvedCandidate] = []
    for candidate, record in zip(candidates, records):
        if record is None:
            logger.warning(f"  ✗ {candidate.sefaria_ref}")
            continue
        logger.info(f"  ✓ {candidate.sefaria_ref} -> {record.ref} ({len(record.text)} chars)")
        resolved.append(ResolvedCandidate(candidate=candidate, record=record))

    logger.info(f"Resolved {len(resolved)} of {len(candidates)} candidates")
    return resolved


def build_grounding(resolved: List[ResolvedCandidate]) -> List[Dict[str, str]]:
    """The texts as the model sees them."""
    return [
        {
            "sefariaRef": item.record.ref,
            "hebrewRef": item.record.he_ref or item.candidate.display_name,
            "hebrewBookName": item.record.he_book or item.candidate.book_name,
            "hebrewText": item.record.text,
        }
        for item in resolved
    ]


def index_by_ref(resolved: List[ResolvedCandidate]) -> Dict[str, ResolvedCandidate]:
    """Map every normalized, lower-cased ref key to its resolved text."""
    index: Dict[str, ResolvedCandidate] = {}
    for item in resolved:
        for key in item.ref_keys:
            index.setdefault(key, item)
    return index


def lookup_resolved(index: Dict[str, ResolvedCandidate], ref: Optional[str]) -> Optional[ResolvedCandidate]:
    if not ref:
        return None
    return index.get(normalize_ref(ref).lower())

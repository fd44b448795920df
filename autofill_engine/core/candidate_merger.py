"""Folding of per-parser candidates into one ranked list per field."""

import logging
from typing import Dict, Iterable, List

from autofill_engine.core.models import Candidate
from autofill_engine.core.taxonomy import Taxonomy

logger = logging.getLogger(__name__)

NO_MATCH_REASON = "no match found"


def merge_candidates(*candidate_lists: Iterable[Candidate]) -> List[Candidate]:
    """
    Merge candidate lists for a single field.

    Candidates are folded by type: the higher score wins and reasons from
    every contributor are accumulated in arrival order. Inputs are never
    mutated. Pass rule candidates first and statistical ones after so that
    equal scores keep rule order.

    Args:
        *candidate_lists: Candidate lists in contribution order

    Returns:
        Non-empty list sorted by descending score. A single UNKNOWN candidate
        with score 0 is synthesized when nothing was contributed.
    """
    merged: Dict[Taxonomy, Candidate] = {}

    for candidates in candidate_lists:
        for candidate in candidates or []:
            existing = merged.get(candidate.type)
            if existing is None:
                merged[candidate.type] = Candidate(
                    type=candidate.type,
                    score=candidate.score,
                    reasons=list(candidate.reasons),
                )
                continue
            existing.score = max(existing.score, candidate.score)
            existing.reasons.extend(r for r in candidate.reasons if r not in existing.reasons)

    if not merged:
        return [Candidate(type=Taxonomy.UNKNOWN, score=0.0, reasons=[NO_MATCH_REASON])]

    # sorted() is stable, so first contributors win ties
    return sorted(merged.values(), key=lambda c: c.score, reverse=True)


def best_known_type(candidates: List[Candidate]) -> Taxonomy:
    """Return the highest-ranked non-UNKNOWN type, or UNKNOWN if there is none."""
    for candidate in candidates:
        if candidate.type != Taxonomy.UNKNOWN and candidate.score > 0:
            return candidate.type
    return Taxonomy.UNKNOWN

"""
Selection policies for extraction candidates.

Confidences are compared with a tolerance: when two candidates are within
the tolerance of each other, a secondary rule decides (recency for dates,
larger value or earlier position for amounts, earlier line for vendors).
"""

from functools import cmp_to_key
from typing import List, Optional

from .candidates import AmountCandidate, DateCandidate, VendorCandidate

__all__ = [
    'select_best_date', 'select_best_amount', 'select_best_vendor',
    'rank_vendor_candidates',
]

DATE_TIE_TOLERANCE = 0.1
TOTAL_TIE_TOLERANCE = 0.01
AMOUNT_TIE_TOLERANCE = 0.03
VENDOR_TIE_TOLERANCE = 0.05


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


def select_best_date(
    candidates: List[DateCandidate],
    min_confidence: float = 0.3
) -> Optional[DateCandidate]:
    """
    Select best date candidate.

    Among the top 3 candidates by confidence, a clearly higher confidence
    wins; otherwise the more recent date wins.

    Args:
        candidates: DateCandidate objects (any order)
        min_confidence: Candidates below this are ignored

    Returns:
        Best candidate or None
    """
    valid = [c for c in candidates if c.confidence >= min_confidence]
    if not valid:
        return None

    top = sorted(valid, key=lambda c: c.confidence, reverse=True)[:3]

    def compare(a: DateCandidate, b: DateCandidate) -> int:
        if abs(a.confidence - b.confidence) > DATE_TIE_TOLERANCE:
            return _sign(b.confidence - a.confidence)
        # ISO strings sort chronologically
        return (a.value < b.value) - (a.value > b.value)

    return sorted(top, key=cmp_to_key(compare))[0]


def select_best_amount(
    candidates: List[AmountCandidate],
    min_confidence: float = 0.3,
    prefer_totals: bool = True
) -> Optional[AmountCandidate]:
    """
    Select best amount candidate.

    Total-indicator candidates are preferred when present: highest
    confidence, near-ties broken by the larger value. Otherwise the
    highest confidence wins, then the earliest position, then the larger
    value.

    Args:
        candidates: AmountCandidate objects
        min_confidence: Candidates below this are ignored
        prefer_totals: Prefer total-indicator matches

    Returns:
        Best candidate or None
    """
    valid = [c for c in candidates if c.confidence >= min_confidence]
    if not valid:
        return None

    if prefer_totals:
        totals = [c for c in valid if c.is_total]
        if totals:
            def compare_totals(a: AmountCandidate, b: AmountCandidate) -> int:
                if abs(a.confidence - b.confidence) > TOTAL_TIE_TOLERANCE:
                    return _sign(b.confidence - a.confidence)
                return _sign(b.value - a.value)

            return sorted(totals, key=cmp_to_key(compare_totals))[0]

    def compare(a: AmountCandidate, b: AmountCandidate) -> int:
        if abs(a.confidence - b.confidence) > AMOUNT_TIE_TOLERANCE:
            return _sign(b.confidence - a.confidence)
        if a.match_span[0] != b.match_span[0]:
            return _sign(a.match_span[0] - b.match_span[0])
        return _sign(b.value - a.value)

    return sorted(valid, key=cmp_to_key(compare))[0]


def rank_vendor_candidates(candidates: List[VendorCandidate]) -> List[VendorCandidate]:
    """Rank by confidence; near-ties go to the earlier line."""
    def compare(a: VendorCandidate, b: VendorCandidate) -> int:
        if abs(a.confidence - b.confidence) > VENDOR_TIE_TOLERANCE:
            return _sign(b.confidence - a.confidence)
        if a.line_position != b.line_position:
            return a.line_position - b.line_position
        return a.match_span[0] - b.match_span[0]

    return sorted(candidates, key=cmp_to_key(compare))


def select_best_vendor(candidates: List[VendorCandidate]) -> Optional[VendorCandidate]:
    ranked = rank_vendor_candidates(candidates)
    return ranked[0] if ranked else None

"""
Candidate dataclasses for entity extraction.

Each candidate represents a potential extracted value with the metadata
used for ranking and selection.
"""

from dataclasses import dataclass
from typing import Any, List
import re

from ledgerlens.models.entities import ConfidenceField, FieldPosition

# Keywords that make a nearby date more likely to be the document date
DATE_CONTEXT_KEYWORDS = [
    'date', 'invoice date', 'transaction date', 'purchase date', 'order date',
    'bill date', 'statement date', 'due date', 'payment date', 'receipt date',
    'issued', 'created', 'processed',
]

# Keywords that make a nearby amount more likely to be the document total
TOTAL_AMOUNT_KEYWORDS = [
    'total', 'grand total', 'amount due', 'balance due', 'total due',
    'net amount', 'final total', 'payment amount', 'amount paid',
    'total amount', 'sum', 'payable', 'bill amount', 'bill total',
    'net payable', 'invoice value', 'taxable value', 'round off', 'you pay',
    'amount payable',
]

# Keywords that precede subtotals and line items
SUBTOTAL_KEYWORDS = [
    'subtotal', 'sub-total', 'sub total', 'tax', 'discount', 'shipping',
    'fee', 'tip', 'gratuity', 'cgst', 'sgst', 'igst', 'cess', 'gst', 'vat',
    'service charge', 'delivery charge',
]


@dataclass
class Candidate:
    """Base class for extraction candidates."""
    value: Any
    pattern_name: str
    match_span: tuple[int, int]  # (start, end) character positions
    confidence: float
    raw_text: str = ""  # Original matched text

    def to_field(self) -> ConfidenceField:
        start, end = self.match_span
        return ConfidenceField(
            value=self.value,
            confidence=self.confidence,
            source=self.raw_text,
            position=FieldPosition(start=start, end=end),
        )


@dataclass
class DateCandidate(Candidate):
    value: str  # ISO format: YYYY-MM-DD


@dataclass
class AmountCandidate(Candidate):
    """
    Candidate for extracted amount.

    is_total marks matches from total-keyword patterns ("Grand Total",
    "Total", delivery order headers). in_subtotal_context marks matches
    shortly after a subtotal/tax/tip keyword.
    """
    value: float
    is_total: bool = False
    in_subtotal_context: bool = False


@dataclass
class VendorCandidate(Candidate):
    """
    Candidate for extracted vendor.

    line_position is the line number for first-lines heuristics and
    the line containing the match for keyword patterns.
    """
    value: str
    line_position: int = 999


def calculate_context_confidence(
    base_confidence: float,
    text: str,
    match_index: int,
    context_keywords: List[str],
    position_boost: bool = True,
    context_radius: int = 50
) -> float:
    """
    Adjust a pattern's base confidence by its surroundings.

    Args:
        base_confidence: Confidence of the pattern that matched
        text: Full document text
        match_index: Start offset of the match
        context_keywords: Keywords that raise confidence when nearby
        position_boost: Whether matches in the first 20% get a boost
        context_radius: Characters either side of the match start to scan

    Returns:
        Confidence rounded to 2 decimals, capped at 1.0
    """
    confidence = base_confidence

    context = text[max(0, match_index - context_radius):match_index + context_radius].lower()
    if any(keyword in context for keyword in context_keywords):
        confidence = min(1.0, confidence + 0.05)

    if position_boost and match_index < len(text) * 0.2:
        confidence = min(1.0, confidence + 0.03)

    return round(confidence, 2)


# Helper functions for creating candidates

def create_date_candidate(
    value: str,
    pattern_name: str,
    base_confidence: float,
    match: re.Match,
    text: str
) -> DateCandidate:
    """
    Create DateCandidate with context-adjusted confidence.

    Args:
        value: ISO-formatted date (YYYY-MM-DD)
        pattern_name: Name of pattern that matched
        base_confidence: Pattern base confidence
        match: Regex match in text
        text: Full text for context analysis

    Returns:
        DateCandidate
    """
    return DateCandidate(
        value=value,
        pattern_name=pattern_name,
        match_span=match.span(),
        confidence=calculate_context_confidence(
            base_confidence, text, match.start(), DATE_CONTEXT_KEYWORDS
        ),
        raw_text=match.group(0),
    )


def create_amount_candidate(
    value: float,
    pattern_name: str,
    base_confidence: float,
    match: re.Match,
    text: str,
    is_total: bool = False
) -> AmountCandidate:
    """
    Create AmountCandidate with computed context flags.

    A subtotal/tax/tip keyword within the 30 characters before the match
    lowers confidence by 0.15 (floor 0.3).

    Args:
        value: Parsed amount, already rounded to 2 decimals
        pattern_name: Name of pattern that matched
        base_confidence: Pattern base confidence
        match: Regex match in text
        text: Full text for context analysis
        is_total: Pattern is a total indicator

    Returns:
        AmountCandidate with computed flags
    """
    start = match.start()
    confidence = calculate_context_confidence(
        base_confidence, text, start, TOTAL_AMOUNT_KEYWORDS
    )

    preceding_30 = text[max(0, start - 30):start].lower()
    in_subtotal_context = any(kw in preceding_30 for kw in SUBTOTAL_KEYWORDS)
    if in_subtotal_context:
        confidence = round(max(0.3, confidence - 0.15), 2)

    return AmountCandidate(
        value=value,
        pattern_name=pattern_name,
        match_span=match.span(),
        confidence=confidence,
        raw_text=match.group(0),
        is_total=is_total,
        in_subtotal_context=in_subtotal_context,
    )


def create_vendor_candidate(
    value: str,
    pattern_name: str,
    confidence: float,
    match_span: tuple[int, int],
    raw_text: str,
    line_position: int,
) -> VendorCandidate:
    return VendorCandidate(
        value=value,
        pattern_name=pattern_name,
        match_span=match_span,
        confidence=confidence,
        raw_text=raw_text,
        line_position=line_position,
    )


def line_number_at(text: str, offset: int) -> int:
    """Zero-based line number of a character offset."""
    return text.count('\n', 0, offset)

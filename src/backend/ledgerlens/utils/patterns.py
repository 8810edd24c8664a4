"""
Ordered regex pattern tables.

Each table is a tuple of PatternSpec entries evaluated top-to-bottom; earlier
entries intentionally shadow later, more generic ones.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional, Pattern
import re


@dataclass(frozen=True)
class PatternSpec:
    """
    Regex pattern with metadata for extraction.

    Attributes:
        name: Pattern identifier (used as the candidate's source label)
        pattern: Regex pattern string
        confidence: Base confidence for a match
        parse: Pure function turning a match into a value (None = reject)
        flags: Regex flags
        is_total: Match indicates a document total (amount tables only)
        example: Example text that matches
        notes: Notes about the pattern
    """
    name: str
    pattern: str
    confidence: float
    parse: Optional[Callable[..., Any]] = None
    flags: int = re.IGNORECASE
    is_total: bool = False
    example: str = ""
    notes: str = ""
    compiled: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern, self.flags))

    def finditer(self, text: str) -> Iterator[re.Match]:
        return self.compiled.finditer(text)

    def search(self, text: str) -> Optional[re.Match]:
        return self.compiled.search(text)


def first_match(specs, text: str):
    """Return (spec, match) for the first spec in the table that matches."""
    for spec in specs:
        match = spec.search(text)
        if match:
            return spec, match
    return None, None

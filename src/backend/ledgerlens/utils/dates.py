"""
Date helpers shared by the entity extractor and the statement parser.

All produced dates are ISO strings (YYYY-MM-DD).
"""

import calendar
import re
from datetime import date
from typing import Optional, Tuple

MONTH_MAP = {
    'jan': 1, 'january': 1,
    'feb': 2, 'february': 2,
    'mar': 3, 'march': 3,
    'apr': 4, 'april': 4,
    'may': 5,
    'jun': 6, 'june': 6,
    'jul': 7, 'july': 7,
    'aug': 8, 'august': 8,
    'sep': 9, 'sept': 9, 'september': 9,
    'oct': 10, 'october': 10,
    'nov': 11, 'november': 11,
    'dec': 12, 'december': 12,
}

MONTH_ALTERNATION = 'Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec'


def month_number(name: str) -> Optional[int]:
    """Month number for a full or abbreviated month name."""
    if not name:
        return None
    key = name.lower().rstrip('.')
    if key in MONTH_MAP:
        return MONTH_MAP[key]
    return MONTH_MAP.get(key[:3]) if len(key) > 3 else None


def expand_year(year: int) -> int:
    """Two-digit years above 50 are 19xx, the rest 20xx."""
    if year < 100:
        return 1900 + year if year > 50 else 2000 + year
    return year


def disambiguate_day_month(first: int, second: int, prefer_dd_mm: bool) -> Tuple[int, int]:
    """
    Resolve two numeric date parts into (month, day).

    A part greater than 12 can only be a day, whatever the preference.
    Ambiguous pairs follow prefer_dd_mm.

    Examples:
        >>> disambiguate_day_month(25, 3, prefer_dd_mm=False)
        (3, 25)
        >>> disambiguate_day_month(3, 25, prefer_dd_mm=True)
        (3, 25)
        >>> disambiguate_day_month(4, 5, prefer_dd_mm=True)
        (5, 4)
    """
    if first > 12 and second <= 12:
        return second, first
    if second > 12 and first <= 12:
        return first, second
    if prefer_dd_mm:
        return second, first
    return first, second


def to_iso_date(year: int, month: int, day: int) -> Optional[str]:
    """Validated ISO string, or None for impossible dates."""
    if year < 1900 or year > 2100:
        return None
    if month < 1 or month > 12:
        return None
    if day < 1 or day > calendar.monthrange(year, month)[1]:
        return None
    return f"{year:04d}-{month:02d}-{day:02d}"


def from_iso(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value[:10])
    except (TypeError, ValueError):
        return None


def parse_date_string(date_str: str, prefer_dd_mm: bool = False) -> Optional[str]:
    """
    Parse a free-standing date such as a statement period boundary.

    Slash/dash numeric dates go through disambiguate_day_month, so
    ambiguous pairs follow prefer_dd_mm; written dates accept
    "Jan 15, 2026" and "15 Jan 2026".
    """
    slash = re.search(r'(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})', date_str)
    if slash:
        year = expand_year(int(slash.group(3)))
        month, day = disambiguate_day_month(int(slash.group(1)), int(slash.group(2)), prefer_dd_mm)
        return to_iso_date(year, month, day)

    written = re.search(
        rf'(?:(\d{{1,2}})\s+)?({MONTH_ALTERNATION})[a-z]*\s*(\d{{1,2}})?,?\s*(\d{{4}})',
        date_str,
        re.IGNORECASE,
    )
    if written:
        month = month_number(written.group(2))
        if month:
            day = int(written.group(1) or written.group(3) or '1')
            return to_iso_date(int(written.group(4)), month, day)

    return None

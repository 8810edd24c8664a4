"""
Money parsing and rounding shared by the extractors and statement parsers.

Accepted forms:
- Western and Indian lakh grouping: 1,234.56 / 1,23,456.78
- European grouping: 1.234,56 or 1 234,56
- Negatives as -₹12.34 or (₹12.34), only when the caller allows them
- Whole numbers: 1234
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Optional, Tuple
import math
import re

TWO_PLACES = Decimal('0.01')

CURRENCY_MARKERS = re.compile(r'[$£€¥₹]\s*|\bRs\.?\s*|\b[A-Z]{3}\b\s*', re.IGNORECASE)


class MoneyFormat(Enum):
    """Separator convention of a money string."""
    WESTERN = "WESTERN"  # 1,234.56 and 1,23,456.78
    EUROPEAN = "EUROPEAN"  # 1.234,56 or 1 234,56
    AUTO = "AUTO"


# (grouping separators, decimal separator)
SEPARATORS = {
    MoneyFormat.WESTERN: ((',', ' '), '.'),
    MoneyFormat.EUROPEAN: (('.', ' '), ','),
}


def parse_money(
    amount_str: str,
    format_hint: Optional[MoneyFormat] = None,
    allow_negative: bool = False
) -> Optional[Decimal]:
    """
    Parse a money string into a Decimal.

    Args:
        amount_str: Amount text, e.g. "₹1,23,456.78" or "1.234,56 EUR"
        format_hint: Separator convention; detected from the string when omitted
        allow_negative: Accept "(12.34)" and "-12.34"

    Returns:
        Decimal amount, or None when the text is not a usable amount

    Examples:
        >>> parse_money("$1,234.56")
        Decimal('1234.56')
        >>> parse_money("1,23,456.78")
        Decimal('123456.78')
        >>> parse_money("1.234,56", format_hint=MoneyFormat.EUROPEAN)
        Decimal('1234.56')
        >>> parse_money("(12.34)", allow_negative=True)
        Decimal('-12.34')
    """
    if not isinstance(amount_str, str) or not amount_str.strip():
        return None

    negative, body = _split_sign(amount_str.strip())
    if negative and not allow_negative:
        return None

    body = CURRENCY_MARKERS.sub('', body).strip()
    if not body:
        return None

    money_format = format_hint or MoneyFormat.AUTO
    if money_format == MoneyFormat.AUTO:
        money_format = _detect_money_format(body)

    value = _to_decimal(body, money_format)
    if value is None:
        return None
    return -value if negative else value


def _split_sign(text: str) -> Tuple[bool, str]:
    """(is_negative, unsigned text) for "(12.34)" and "-12.34" forms."""
    if text.startswith('(') and text.endswith(')'):
        return True, text[1:-1].strip()
    if text.startswith('-'):
        return True, text[1:].strip()
    return False, text


def _detect_money_format(body: str) -> MoneyFormat:
    """
    European when the string ends in ",XX" or a dot precedes the last comma.
    Everything else is Western; lakh grouping only moves the commas.
    """
    if re.search(r',\d{2}$', body):
        return MoneyFormat.EUROPEAN
    if '.' in body and ',' in body and body.index('.') < body.rindex(','):
        return MoneyFormat.EUROPEAN
    return MoneyFormat.WESTERN


def _to_decimal(body: str, money_format: MoneyFormat) -> Optional[Decimal]:
    grouping, decimal_separator = SEPARATORS[money_format]
    for separator in grouping:
        body = body.replace(separator, '')
    try:
        return Decimal(body.replace(decimal_separator, '.'))
    except InvalidOperation:
        return None


def parse_amount_string(amount_str: str) -> float:
    """
    Parse a bare statement amount such as "1,23,456.78" into a float.

    Returns NaN when the string holds no number.
    """
    value = parse_money(amount_str, format_hint=MoneyFormat.WESTERN)
    return float(value) if value is not None else math.nan


def normalize_amount(amount: float) -> float:
    """
    Round an amount to exactly 2 decimal places (half-up).

    Idempotent: normalize_amount(normalize_amount(x)) == normalize_amount(x).

    Examples:
        >>> normalize_amount(12.345)
        12.35
        >>> normalize_amount(-0.005)
        -0.01
    """
    return float(Decimal(repr(float(amount))).quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


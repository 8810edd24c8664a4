"""
Statement text preprocessor.

Cleans raw PDF-extracted statement text before it reaches the line parser
or the LLM parser:

1. Detect lines repeated on every page (headers/footers, customer name)
2. Strip page noise, repeated lines and balance-forward lines, keeping the
   first occurrence of a repeated line when it sits in the metadata block
3. Detect multi-line layouts (date, description and amounts on separate lines)
4. Join multi-line transactions so each transaction is one line

Preprocessing is idempotent: preprocess(preprocess(x)) == preprocess(x).
"""

import re
import logging
from typing import List, Set

logger = logging.getLogger(__name__)

PAGE_NOISE_PATTERNS = [re.compile(p, flags) for p, flags in [
    # Page numbers
    (r'^Page\s+\d+\s+of\s*\d+\s*$', re.IGNORECASE),
    (r'^\s*\d+\s+of\s+\d+\s*$', re.IGNORECASE),
    (r'^--\s*\d+\s+of\s+\d+\s*--\s*$', 0),

    # Bank website / phone
    (r'^Visit\s+www\.', re.IGNORECASE),
    (r'^Dial\s+your\s+Bank', re.IGNORECASE),
    (r'^(?:www\.|https?://)', re.IGNORECASE),

    # Branch address
    (r'^Your\s+(?:Base\s+)?Branch\s*:', re.IGNORECASE),

    # Bank name header repeated on every page
    (r'^(?:ICICI|HDFC|SBI|Axis|Kotak|Yes|IndusInd|RBL|IDFC|Federal)\s+BANK\s+LTD\.?,', re.IGNORECASE),

    # Column headers
    (r'^\s*DATE\s+MODE\s*\*{0,2}\s+PARTICULARS\s+', re.IGNORECASE),
    (r'^\s*DATE\s+PARTICULARS\s+(?:DEPOSITS?|WITHDRAWALS?|BALANCE)', re.IGNORECASE),
    (r'^\s*(?:SR\.?\s*NO\.?\s+)?DATE\s+(?:DESCRIPTION|PARTICULARS|TRANSACTION)', re.IGNORECASE),
    (r'^\s*(?:DATE|DESCRIPTION|PARTICULARS)\s+(?:DEPOSITS?|WITHDRAWALS?|CREDITS?|DEBITS?|BALANCE)\s', re.IGNORECASE),

    # Account summary headers
    (r'^ACCOUNT\s+DETAILS\s*[-–]?\s*INR$', re.IGNORECASE),
    (r'^ACCOUNT\s+TYPE\s+A/c\s+BALANCE', re.IGNORECASE),
    (r'^Summary\s+of\s+Accounts?\s+held', re.IGNORECASE),

    # Disclaimers and KYC reminders
    (r'^Did\s+you\s+know\?', re.IGNORECASE),
    (r'^KYC\s+', re.IGNORECASE),
    (r'^\s*\*{2}\s*Mode\s+of\s+transaction', re.IGNORECASE),
    (r'^\s*\*{2}\s*Legend', re.IGNORECASE),

    # Long reference/hash strings
    (r'^[A-Za-z0-9]{30,}$', 0),

    # Separators
    (r'^[-=_*]{5,}$', 0),
    (r'^[.\s]{10,}$', 0),

    (r'^\s*$', 0),
]]

BALANCE_FORWARD_PATTERNS = [re.compile(p, re.IGNORECASE) for p in [
    r'\bB\s*/\s*F\b',
    r'\bBrought?\s+Forward\b',
    r'\bC\s*/\s*F\b',
    r'\bCarried?\s+Forward\b',
    r'\bOpening\s+Balance\b',
    r'\bClosing\s+Balance\b',
]]

# Start of a transaction line: DD-MM-YYYY, DD/MM/YY, YYYY-MM-DD, DD Mon YYYY
TRANSACTION_DATE_PATTERN = re.compile(
    r'^(\d{1,2}[-/]\d{1,2}[-/]\d{2,4}|\d{4}-\d{1,2}-\d{1,2}'
    r'|\d{1,2}\s+(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*[\s,]+\d{2,4})',
    re.IGNORECASE,
)

# Amount at end of line, standard or lakh grouping
LINE_ENDING_AMOUNT_PATTERN = re.compile(r'[\d,]+\.\d{2}\s*$')

REPEAT_THRESHOLD = 3


def starts_with_transaction_date(line: str) -> bool:
    return bool(TRANSACTION_DATE_PATTERN.match(line.strip()))


def preprocess(text: str) -> str:
    """
    Preprocess raw statement text.

    Args:
        text: Raw text extracted from a statement PDF

    Returns:
        Cleaned text with multi-line transactions joined into single lines
    """
    raw_lines = text.split('\n')

    repeated = detect_repeated_lines(raw_lines)
    cleaned = strip_page_noise(raw_lines, repeated)

    multi_line = detect_multi_line_format(cleaned)
    processed = join_multi_line_transactions(cleaned) if multi_line else cleaned

    logger.debug(
        "Preprocessed statement text",
        extra={
            "raw_lines": len(raw_lines),
            "output_lines": len(processed),
            "repeated_lines": len(repeated),
            "multi_line": multi_line,
        }
    )
    return '\n'.join(processed)


def detect_repeated_lines(lines: List[str]) -> Set[str]:
    """Non-date, non-amount lines (3-120 chars) seen 3+ times are page chrome."""
    frequency = {}
    for line in lines:
        trimmed = line.strip()
        if (
            3 <= len(trimmed) <= 120
            and not TRANSACTION_DATE_PATTERN.match(trimmed)
            and not re.match(r'^[\d,]+\.\d{2}', trimmed)
        ):
            frequency[trimmed] = frequency.get(trimmed, 0) + 1

    return {line for line, count in frequency.items() if count >= REPEAT_THRESHOLD}


def strip_page_noise(lines: List[str], repeated_lines: Set[str]) -> List[str]:
    """
    Drop page noise, repeated lines and balance-forward lines.

    The first occurrence of a repeated line survives only when it appears
    before the first transaction (it is likely statement metadata).
    """
    metadata_end = -1
    for i, line in enumerate(lines):
        trimmed = line.strip()
        if TRANSACTION_DATE_PATTERN.match(trimmed) or re.match(r'^\s*DATE\s+', trimmed, re.IGNORECASE):
            metadata_end = i
            break

    seen_repeated = set()
    result = []

    for i, line in enumerate(lines):
        trimmed = line.strip()

        if any(p.search(trimmed) for p in PAGE_NOISE_PATTERNS):
            continue

        if trimmed in repeated_lines:
            if trimmed not in seen_repeated and i < metadata_end:
                result.append(trimmed)
            seen_repeated.add(trimmed)
            continue

        if any(p.search(trimmed) for p in BALANCE_FORWARD_PATTERNS):
            continue

        result.append(trimmed)

    return result


def detect_multi_line_format(lines: List[str]) -> bool:
    """
    Decide whether transactions span several physical lines.

    Multi-line when date-only and amount-only lines both exceed 5 and are
    comparable in count, or when either kind clearly outnumbers lines that
    carry both a date and an amount.
    """
    date_only = date_with_amount = amount_only = 0

    for line in lines:
        trimmed = line.strip()
        has_date = bool(TRANSACTION_DATE_PATTERN.match(trimmed))
        has_amount = bool(LINE_ENDING_AMOUNT_PATTERN.search(trimmed))

        if has_date and not has_amount:
            date_only += 1
        elif has_date and has_amount:
            date_with_amount += 1
        elif has_amount:
            amount_only += 1

    if date_only > 5 and amount_only > 5:
        if min(date_only, amount_only) / max(date_only, amount_only) >= 0.5:
            return True

    if date_only > 5 and date_only > date_with_amount * 1.5:
        return True

    if amount_only > 5 and amount_only > date_with_amount:
        return True

    return False


def join_multi_line_transactions(lines: List[str]) -> List[str]:
    """
    Join each transaction block into one line.

    A line starting with a date opens a block; following non-date lines are
    appended to it. Lines before the first date line are kept as-is.

    Example:
        01-01-2025
        UPI/VIACOM18ONLINE@/Subscription De/YES
        29.00 3,73,088.44

        becomes "01-01-2025 UPI/VIACOM18ONLINE@/Subscription De/YES 29.00 3,73,088.44"
    """
    result = []
    block: List[str] = []
    in_transactions = False

    for line in lines:
        trimmed = line.strip()
        if not trimmed:
            continue

        if TRANSACTION_DATE_PATTERN.match(trimmed):
            if block:
                result.append(' '.join(block))
            block = [trimmed]
            in_transactions = True
        elif in_transactions:
            block.append(trimmed)
        else:
            result.append(trimmed)

    if block:
        result.append(' '.join(block))

    return result


def estimate_transaction_count(text: str) -> int:
    """Count lines that start with a transaction date."""
    return sum(1 for line in text.split('\n') if TRANSACTION_DATE_PATTERN.match(line.strip()))

"""
Entity extractor for single documents (receipts, invoices, bills).

Extracts dates, amounts, vendor, currency and a short description from raw
text using ordered pattern tables. Every value carries a confidence in [0, 1].
Extraction is pure: identical input always yields identical output.
"""

import re
import logging
from datetime import date
from typing import List, Optional, Tuple

from ledgerlens.models.entities import ConfidenceField, ExtractedEntities, FieldPosition
from ledgerlens.models.options import EntityExtractionOptions
from ledgerlens.utils.candidates import (
    AmountCandidate,
    DateCandidate,
    VendorCandidate,
    create_amount_candidate,
    create_date_candidate,
    create_vendor_candidate,
    line_number_at,
)
from ledgerlens.utils.dates import (
    disambiguate_day_month,
    expand_year,
    from_iso,
    month_number,
    to_iso_date,
)
from ledgerlens.utils.money import MoneyFormat, parse_amount_string, parse_money
from ledgerlens.utils.patterns import PatternSpec
from ledgerlens.utils.scoring import (
    select_best_amount,
    select_best_date,
    select_best_vendor,
)

logger = logging.getLogger(__name__)

MONTH_NAMES = (
    r'Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|Jun(?:e)?|Jul(?:y)?'
    r'|Aug(?:ust)?|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?'
)

# Optional currency prefix used by the keyword amount patterns
CURRENCY_PREFIX = r'(?:₹|Rs\.?\s*|INR\s*|\$)?'

GSTIN_PATTERN = re.compile(r'\d{2}[A-Z]{5}\d{4}[A-Z][A-Z\d]Z[A-Z\d]')

CURRENCY_SYMBOLS = {
    '$': 'USD',
    '€': 'EUR',
    '£': 'GBP',
    '¥': 'JPY',
    '₹': 'INR',
    '₩': 'KRW',
    '₽': 'RUB',
}

VENDOR_EXCLUDE_WORDS = frozenset([
    'receipt', 'invoice', 'order', 'confirmation', 'statement', 'bill', 'tax',
    'total', 'subtotal', 'payment', 'transaction', 'date', 'time', 'thank',
    'you', 'welcome', 'customer', 'copy',
    # Line-item and receipt keywords (OCR noise)
    'packaging', 'restaurant packaging', 'restaurant', 'delivery', 'delivered',
    'item', 'quantity', 'qty', 'help', 'discount', 'coupon', 'charges', 'fee',
    'gst', 'cgst', 'sgst', 'igst', 'surcharge', 'shipping', 'handling',
    'service', 'amount', 'price', 'rate', 'description', 'summary', 'details',
])

DESCRIPTION_SKIP = re.compile(
    r'^(Total|Subtotal|Tax|Tip|Change|Cash|Credit|Debit|Card|Date|Time|Receipt|Invoice)',
    re.IGNORECASE,
)
NO_DESCRIPTION = 'No description available'


# Date parsers return (year, month, day) or None

def _parse_ymd(match: re.Match, prefer_dd_mm: bool) -> Optional[Tuple[int, int, int]]:
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def _parse_month_day_year(match: re.Match, prefer_dd_mm: bool) -> Optional[Tuple[int, int, int]]:
    month = month_number(match.group(1))
    if not month:
        return None
    return int(match.group(3)), month, int(match.group(2))


def _parse_day_month_year(match: re.Match, prefer_dd_mm: bool) -> Optional[Tuple[int, int, int]]:
    month = month_number(match.group(2))
    if not month:
        return None
    return int(match.group(3)), month, int(match.group(1))


def _parse_numeric(match: re.Match, prefer_dd_mm: bool) -> Optional[Tuple[int, int, int]]:
    month, day = disambiguate_day_month(int(match.group(1)), int(match.group(2)), prefer_dd_mm)
    return expand_year(int(match.group(3))), month, day


def _parse_dotted(match: re.Match, prefer_dd_mm: bool) -> Optional[Tuple[int, int, int]]:
    # Dotted dates are always day-first
    return expand_year(int(match.group(3))), int(match.group(2)), int(match.group(1))


def _parse_group_1(match: re.Match) -> float:
    return parse_amount_string(match.group(1))


def _parse_group_2(match: re.Match) -> float:
    return parse_amount_string(match.group(2))


def _parse_euro(match: re.Match) -> float:
    """Comma after the last dot means European grouping (1.234,56)."""
    value = match.group(1)
    fmt = MoneyFormat.EUROPEAN if value.rfind(',') > value.rfind('.') else MoneyFormat.WESTERN
    amount = parse_money(value, format_hint=fmt)
    return float(amount) if amount is not None else float('nan')


def _vendor_group_1(match: re.Match) -> str:
    return match.group(1) or ''


def _vendor_stripped(match: re.Match) -> str:
    return (match.group(1) or '').strip()


def _vendor_from_domain(match: re.Match) -> str:
    domain = match.group(1) or ''
    return domain[:1].upper() + domain[1:].lower()


class EntityExtractor:
    """Service for extracting dates, amounts and vendors from document text."""

    def __init__(self):
        """Initialize extractor with ordered pattern tables."""
        self._init_patterns()

    def _init_patterns(self):
        """Initialize regex pattern tables (most specific first)."""

        self.date_patterns = [
            PatternSpec(
                name='YYYY-MM-DD',
                pattern=r'\b(\d{4})-(\d{1,2})-(\d{1,2})\b',
                confidence=0.95,
                parse=_parse_ymd,
                example='2024-01-15',
            ),
            PatternSpec(
                name='YYYY/MM/DD',
                pattern=r'\b(\d{4})/(\d{1,2})/(\d{1,2})\b',
                confidence=0.93,
                parse=_parse_ymd,
                example='2024/01/15',
            ),
            PatternSpec(
                name='Month DD, YYYY',
                pattern=rf'\b({MONTH_NAMES})\s+(\d{{1,2}})(?:st|nd|rd|th)?,?\s+(\d{{4}})\b',
                confidence=0.92,
                parse=_parse_month_day_year,
                example='January 15, 2024',
            ),
            PatternSpec(
                name='DD Month YYYY',
                pattern=rf'\b(\d{{1,2}})[\s\-]({MONTH_NAMES})[\s\-](\d{{4}})\b',
                confidence=0.90,
                parse=_parse_day_month_year,
                example='15-Jan-2024',
            ),
            PatternSpec(
                name='DD/MM/YYYY',
                pattern=r'\b(\d{1,2})/(\d{1,2})/(\d{2,4})\b',
                confidence=0.80,
                parse=_parse_numeric,
                example='15/01/2024',
                notes='Ambiguous pairs follow prefer_dd_mm',
            ),
            PatternSpec(
                name='DD-MM-YYYY',
                pattern=r'\b(\d{1,2})-(\d{1,2})-(\d{4})\b',
                confidence=0.77,
                parse=_parse_numeric,
                example='15-01-2024',
            ),
            PatternSpec(
                name='DD.MM.YYYY',
                pattern=r'\b(\d{1,2})\.(\d{1,2})\.(\d{2,4})\b',
                confidence=0.72,
                parse=_parse_dotted,
                example='15.01.2024',
            ),
        ]

        self.amount_patterns = [
            PatternSpec(
                name='Total keyword',
                pattern=(
                    r'(?:Grand\s*Total|Total\s*Amount|Amount\s*Due|Balance\s*Due|Total\s*Due'
                    r'|Net\s*Amount|Final\s*Total|Payment\s*Amount|Net\s*Payable|Bill\s*Total'
                    r'|Bill\s*Amount|Invoice\s*Value|Payable|Amount\s*Payable|You\s*Pay)'
                    rf'(?:\s*:|\s+is)?\s*{CURRENCY_PREFIX}\s*([\d,]+\.?\d*)'
                ),
                confidence=0.98,
                parse=_parse_group_1,
                is_total=True,
                example='Grand Total: ₹1,234.00',
            ),
            PatternSpec(
                name='Delivery order total',
                pattern=(
                    r'(?:Delivered|Completed|Picked\s*up|Out\s+for\s+delivery)[,.\s·]+'
                    rf'(?:\d+\s+)?Items?[,.\s·]+(?:₹|Rs\.?\s*|INR\s*|\$)\s*([\d,]+\.?\d*)'
                ),
                confidence=0.96,
                parse=_parse_group_1,
                is_total=True,
                example='Delivered · 2 Items · ₹540.00',
                notes='Order header in delivery-app screenshots',
            ),
            PatternSpec(
                name='Total',
                pattern=rf'(?<!Item\s)\bTotal(?:\s*:|\s+is)?\s*{CURRENCY_PREFIX}\s*([\d,]+\.?\d*)',
                confidence=0.95,
                parse=_parse_group_1,
                is_total=True,
                example='Total: $25.00',
            ),
            PatternSpec(
                name='Item Total',
                pattern=rf'\bItem\s+Total(?:\s*:|\s+is)?\s*{CURRENCY_PREFIX}\s*([\d,]+\.?\d*)',
                confidence=0.80,
                parse=_parse_group_1,
                example='Item Total ₹315',
                notes='Usually the pre-discount subtotal',
            ),
            PatternSpec(
                name='Amount keyword',
                pattern=rf'(?:Amount|Due|Paid|Balance)(?:\s*:|\s+is)?\s*{CURRENCY_PREFIX}\s*([\d,]+\.?\d*)',
                confidence=0.88,
                parse=_parse_group_1,
                example='Paid: 45.00',
            ),
            PatternSpec(
                name='Rupee sign',
                pattern=r'₹\s*([\d,]+(?:\.\d{1,2})?)',
                confidence=0.85,
                parse=_parse_group_1,
                flags=0,
                example='₹1,234.56',
            ),
            PatternSpec(
                name='Rs/INR prefix',
                pattern=r'(?:Rs\.?|INR)\s*([\d,]+(?:\.\d{1,2})?)',
                confidence=0.83,
                parse=_parse_group_1,
                example='Rs. 1,234.56',
            ),
            PatternSpec(
                name='Dollar sign',
                pattern=r'\$\s*([\d,]+(?:\.\d{1,2})?)',
                confidence=0.85,
                parse=_parse_group_1,
                flags=0,
                example='$1,234.56',
            ),
            PatternSpec(
                name='Currency code prefix',
                pattern=r'\b(USD|EUR|GBP|CAD|AUD)\s*([\d,]+(?:\.\d{1,2})?)',
                confidence=0.83,
                parse=_parse_group_2,
                example='USD 1,234.56',
            ),
            PatternSpec(
                name='Currency code suffix',
                pattern=r'([\d,]+(?:\.\d{1,2})?)\s*(USD|EUR|GBP|INR|dollars?|euros?|rupees?)',
                confidence=0.82,
                parse=_parse_group_1,
                example='1,234.56 USD',
            ),
            PatternSpec(
                name='Euro sign',
                pattern=r'€\s*([\d.,]+)',
                confidence=0.85,
                parse=_parse_euro,
                flags=0,
                example='€1.234,56',
            ),
            PatternSpec(
                name='Pound sign',
                pattern=r'£\s*([\d,]+(?:\.\d{1,2})?)',
                confidence=0.85,
                parse=_parse_group_1,
                flags=0,
                example='£1,234.56',
            ),
            PatternSpec(
                name='Plain decimal',
                pattern=r'\b(\d{1,3}(?:,\d{3})*(?:\.\d{2}))\b',
                confidence=0.55,
                parse=_parse_group_1,
                flags=0,
                example='1,234.56',
                notes='Fallback for bare decimals',
            ),
        ]

        self.vendor_patterns = [
            PatternSpec(
                name='Vendor keyword',
                pattern=(
                    r"(?:From|Merchant|Vendor|Seller|Payee|Billed\s+by|Bill\s+from|Paid\s+to)"
                    r"(?:\s*:)?\s+([A-Z][A-Za-z0-9\s&'.,-]+?)(?:\n|$|\.)"
                ),
                confidence=0.92,
                parse=_vendor_group_1,
                example='Merchant: Blue Tokai Coffee',
            ),
            PatternSpec(
                name='Store keyword',
                pattern=(
                    r"(?:Store|Shop|Company|Business)(?:\s*:|\s+Name:?)?\s+"
                    r"([A-Z][A-Za-z0-9\s&'.,-]+?)(?:\n|$|\.)"
                ),
                confidence=0.88,
                parse=_vendor_group_1,
                example='Store Name: Corner Mart',
            ),
            PatternSpec(
                name='Corporate suffix',
                pattern=(
                    r"([A-Z][A-Za-z0-9\s&'.,-]+\s+"
                    r"(?:Inc\.?|LLC|L\.L\.C\.?|Corp\.?|Corporation|Ltd\.?|Limited|Company|Co\.?|PLC))\b"
                ),
                confidence=0.85,
                parse=_vendor_group_1,
                example='Acme Widgets Inc',
            ),
            PatternSpec(
                name='Indian corporate suffix',
                pattern=(
                    r"([A-Z][A-Za-z0-9\s&'.,-]+\s+"
                    r"(?:Pvt\.?\s*Ltd\.?|Private\s+Limited|LLP|Enterprises|Industries))\b"
                ),
                confidence=0.87,
                parse=_vendor_group_1,
                example='Sharma Traders Pvt. Ltd.',
            ),
            PatternSpec(
                name='GSTIN vendor',
                pattern=(
                    r"([A-Z][A-Za-z0-9\s&'.,-]{2,40})\s*(?:\n\s*)?(?:GSTIN|GST\s*(?:No|Number|Reg)|TIN)"
                    r"(?:\s*:?\s*)\d{2}[A-Z]{5}\d{4}[A-Z][A-Z\d]Z[A-Z\d]"
                ),
                confidence=0.88,
                parse=_vendor_group_1,
                example='Sharma Traders GSTIN: 29ABCDE1234F1Z5',
            ),
            PatternSpec(
                name='Thank you pattern',
                pattern=(
                    r"(?:Thank you for (?:shopping|visiting|dining|choosing) (?:at\s+)?)"
                    r"([\w\s&']+?)(?:!|\.|\n|$)"
                ),
                confidence=0.82,
                parse=_vendor_group_1,
                example='Thank you for shopping at Target!',
            ),
            PatternSpec(
                name='Order/delivery pattern',
                pattern=(
                    r"(?:Order(?:ed)?\s+from|Delivered\s+(?:from|by)|Restaurant|Ordered\s+at)"
                    r"(?:\s*:)?\s+([A-Z][A-Za-z0-9\s&'.,-]+?)(?:\n|$|[–\-])"
                ),
                confidence=0.88,
                parse=_vendor_group_1,
                example='Order from Chowman',
            ),
            PatternSpec(
                name='Delivery app marker',
                pattern=(
                    r"(?:HELP|Rate\s+Order|Reorder)\s*[<«]?\s*([A-Z][A-Za-z\s&'.]+?)"
                    r"(?:\s+[\d₹]|\s*[<«\n,]|$)"
                ),
                confidence=0.86,
                parse=_vendor_stripped,
                example='HELP < Chowman',
            ),
            PatternSpec(
                name='Delivery app restaurant between markers',
                pattern=(
                    r"(?:₹[\d,.]+|Item[s]?)\s+(?:HELP\s*[<«]?\s*)?([A-Z][a-z]{2,}(?:\s+[A-Z][a-z]+){0,2})"
                    r"\s+(?:\d|[A-Z][a-z]+(?:pur|dur|gar|bad|nagar|wadi|pally|palli))"
                ),
                confidence=0.82,
                parse=_vendor_stripped,
                example='₹271.00 Chowman Bellandur',
            ),
            PatternSpec(
                name='Name before address',
                pattern=(
                    r"^([A-Z][A-Za-z\s&'.]+?)\n\s*(?:[A-Z][\w\s,.-]*"
                    r"(?:Road|Street|St|Ave|Blvd|Lane|Nagar|Colony|Enclave|Block|Sector|Market|Mall|Floor|Plot|No\.|Building))"
                ),
                confidence=0.80,
                parse=_vendor_group_1,
                flags=re.IGNORECASE | re.MULTILINE,
                example='Chowman\nBellandur Main Road',
            ),
            PatternSpec(
                name='Website',
                pattern=r'(?:www\.)?([a-zA-Z0-9][-a-zA-Z0-9]+[a-zA-Z0-9])\.(?:com|org|net|io|co|shop|store|in)\b',
                confidence=0.75,
                parse=_vendor_from_domain,
                example='www.zomato.com',
            ),
        ]

    def extract(self, text: str, options: Optional[EntityExtractionOptions] = None) -> ExtractedEntities:
        """
        Extract all entities from document text.

        Args:
            text: Raw document text
            options: Extraction options (defaults when omitted)

        Returns:
            ExtractedEntities with best values and ranked candidates
        """
        options = options or EntityExtractionOptions()
        min_date, max_date = options.date_bounds()

        date_candidates = self._date_candidates(text, min_date, max_date, options.prefer_dd_mm)
        amount_candidates = self._amount_candidates(text, options.amount_min, options.amount_max)
        vendor = self.extract_vendors(text)

        best_date = self.select_best_date(date_candidates, options.min_confidence)
        best_amount = self.select_best_amount(
            amount_candidates, options.min_confidence, options.prefer_total_amounts
        )

        entities = ExtractedEntities(
            date=best_date.to_field() if best_date else None,
            amount=best_amount.to_field() if best_amount else None,
            vendor=vendor,
            description=self.generate_description(text),
            currency=self.detect_currency(text) or options.default_currency,
            all_amounts=[c.to_field() for c in amount_candidates] if options.extract_all_amounts else [],
            all_dates=[c.to_field() for c in date_candidates],
        )

        logger.debug(
            "Extracted entities",
            extra={
                "date_candidates": len(date_candidates),
                "amount_candidates": len(amount_candidates),
                "has_vendor": vendor is not None,
                "currency": entities.currency,
            }
        )
        return entities

    def extract_dates(
        self,
        text: str,
        min_date: Optional[date] = None,
        max_date: Optional[date] = None,
        prefer_dd_mm: bool = True
    ) -> List[ConfidenceField[str]]:
        """Dates found in text, sorted by confidence descending."""
        return [
            c.to_field()
            for c in self._date_candidates(text, min_date, max_date or date.today(), prefer_dd_mm)
        ]

    def extract_amounts(
        self,
        text: str,
        amount_min: float = 0.01,
        amount_max: float = 1_000_000
    ) -> List[ConfidenceField[float]]:
        """Amounts found in text, deduplicated by value, sorted by confidence descending."""
        return [c.to_field() for c in self._amount_candidates(text, amount_min, amount_max)]

    def _date_candidates(
        self,
        text: str,
        min_date: Optional[date],
        max_date: date,
        prefer_dd_mm: bool
    ) -> List[DateCandidate]:
        candidates: List[DateCandidate] = []
        seen = set()

        for spec in self.date_patterns:
            for match in spec.finditer(text):
                parsed = spec.parse(match, prefer_dd_mm)
                if not parsed:
                    continue

                iso = to_iso_date(*parsed)
                if not iso or iso in seen:
                    continue

                value = from_iso(iso)
                if value > max_date:
                    continue
                if min_date and value < min_date:
                    continue

                seen.add(iso)
                candidates.append(
                    create_date_candidate(iso, spec.name, spec.confidence, match, text)
                )

        candidates.sort(key=lambda c: c.confidence, reverse=True)
        return candidates

    def _amount_candidates(self, text: str, amount_min: float, amount_max: float) -> List[AmountCandidate]:
        by_value = {}

        for spec in self.amount_patterns:
            for match in spec.finditer(text):
                amount = spec.parse(match)

                # NaN fails every comparison
                if not amount > 0:
                    continue
                if amount < amount_min or amount > amount_max:
                    continue

                rounded = round(amount, 2)
                candidate = create_amount_candidate(
                    rounded, spec.name, spec.confidence, match, text, is_total=spec.is_total
                )

                existing = by_value.get(rounded)
                if existing:
                    if candidate.confidence > existing.confidence:
                        by_value[rounded] = candidate
                else:
                    if spec.is_total:
                        candidate.confidence = round(min(1.0, candidate.confidence + 0.05), 2)
                    by_value[rounded] = candidate

        return sorted(by_value.values(), key=lambda c: c.confidence, reverse=True)

    def extract_vendors(self, text: str) -> Optional[ConfidenceField[str]]:
        """
        Extract the most likely vendor name.

        Keyword-anchored patterns are combined with heuristics over the
        first 10 lines (all-caps names, short title-case names).

        Returns:
            Best vendor with the name of the rule that found it, or None
        """
        candidates: List[VendorCandidate] = []

        for spec in self.vendor_patterns:
            for match in spec.finditer(text):
                vendor = self._clean_vendor_name(spec.parse(match))
                if not vendor or len(vendor) < 2 or len(vendor) > 50:
                    continue
                if self._is_excluded_vendor_name(vendor):
                    continue
                candidates.append(create_vendor_candidate(
                    vendor, spec.name, spec.confidence, match.span(),
                    match.group(0), line_number_at(text, match.start()),
                ))

        offset = 0
        for i, raw_line in enumerate(text.split('\n')[:10]):
            line = raw_line.strip()
            span = (offset, offset + len(raw_line))
            offset += len(raw_line) + 1
            if not line:
                continue

            if (
                line == line.upper()
                and 3 <= len(line) <= 40
                and re.match(r"^[A-Z][A-Z0-9\s&'.,-]+$", line)
                and not self._is_excluded_vendor_name(line)
            ):
                candidates.append(create_vendor_candidate(
                    self._clean_vendor_name(line), 'All caps line',
                    0.78 if i == 0 else 0.68, span, raw_line, i,
                ))

            if (
                re.match(r'^[A-Z][a-z]+(?:\s+[A-Z][a-z]+){0,2}$', line)
                and 3 <= len(line) <= 30
                and not self._is_excluded_vendor_name(line)
                and not re.match(
                    r'^(Order|Item|Bill|Date|Time|Tax|Thank|Payment|Paid|Discount|Delivery|Home|Address)',
                    line,
                )
            ):
                candidates.append(create_vendor_candidate(
                    self._clean_vendor_name(line), 'Title case line',
                    0.74 if i <= 2 else 0.64, span, raw_line, i,
                ))

        best = select_best_vendor(candidates)
        if not best:
            return None

        start, end = best.match_span
        return ConfidenceField(
            value=best.value,
            confidence=best.confidence,
            source=best.pattern_name,
            position=FieldPosition(start=start, end=end),
        )

    def detect_currency(self, text: str) -> Optional[str]:
        """
        Detect document currency.

        Indian markers (Rs. prefix, rupee sign, GSTIN) win first, then an
        explicit currency code, then the most frequent currency symbol.
        """
        if re.search(r'\bRs\.?\s*\d', text, re.IGNORECASE):
            return 'INR'
        if '₹' in text:
            return 'INR'
        if GSTIN_PATTERN.search(text):
            return 'INR'

        code = re.search(r'\b(USD|EUR|GBP|CAD|AUD|JPY|CNY|INR|CHF|NZD|SGD|HKD)\b', text, re.IGNORECASE)
        if code:
            return code.group(1).upper()

        best_symbol, best_count = None, 0
        for symbol in CURRENCY_SYMBOLS:
            count = text.count(symbol)
            if count > best_count:
                best_symbol, best_count = symbol, count

        return CURRENCY_SYMBOLS[best_symbol] if best_symbol else None

    def generate_description(self, text: str) -> str:
        """Join up to four meaningful lines with ' | ', capped near 200 chars."""
        lines = []
        for raw in text.split('\n'):
            line = raw.strip()
            if len(line) < 5 or len(line) > 100:
                continue
            if re.match(r'^[\d\s.,\-$€£¥]+$', line):
                continue
            if DESCRIPTION_SKIP.match(line):
                continue
            lines.append(line)

        description = ''
        for line in lines[:4]:
            if len(description) + len(line) > 200:
                break
            description += (' | ' if description else '') + line

        return description or NO_DESCRIPTION

    def _clean_vendor_name(self, name: str) -> str:
        name = re.sub(r'\s+', ' ', name.strip())
        name = re.sub(r'[,.;:!]+$', '', name)
        name = re.sub(r'^(From|Merchant|Vendor|Store|Shop|Company|Seller|Payee):?\s*', '', name, flags=re.IGNORECASE)
        # Store numbers
        name = re.sub(r'\s*#?\d{1,6}$', '', name)
        return name.strip()

    def _is_excluded_vendor_name(self, name: str) -> bool:
        lower = name.lower()

        for word in VENDOR_EXCLUDE_WORDS:
            if lower == word or lower.startswith(f'{word} ') or lower.endswith(f' {word}'):
                return True

        words = lower.split()
        if len(words) <= 2 and any(w in VENDOR_EXCLUDE_WORDS for w in words):
            return True

        # Mostly numbers
        if re.match(r'^\d[\d\s\-/]+$', name):
            return True

        # OCR noise such as "Packaging ₹8"
        if re.search(r'[₹$€£¥]', name) or re.search(r'\b\d{2,}\.\d{2}\b', name):
            return True

        return len(name) < 2

    def select_best_date(
        self,
        candidates: List[DateCandidate],
        min_confidence: float = 0.3
    ) -> Optional[DateCandidate]:
        """Highest confidence among the top 3; near-ties go to the more recent date."""
        return select_best_date(candidates, min_confidence)

    def select_best_amount(
        self,
        candidates: List[AmountCandidate],
        min_confidence: float = 0.3,
        prefer_totals: bool = True
    ) -> Optional[AmountCandidate]:
        """Total-indicator match first (larger value on ties), else confidence, position, value."""
        return select_best_amount(candidates, min_confidence, prefer_totals)

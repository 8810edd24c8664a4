"""
Statement parser service.

Turns preprocessed bank / credit-card statement text into individual
transactions. Each line is parsed independently:

1. Strip a leading date (and an optional posting date right after it)
2. Strip a trailing amount, noting whether it is a credit
3. Clean the remainder into a vendor description (UPI/NEFT/ACH/IMPS/BIL aware)
4. Classify the transaction type and auto-categorize the vendor

Lines that fail to parse either continue the previous transaction's
description or are counted as unparsed.
"""

import math
import re
import time
import uuid
import logging
from datetime import date
from typing import List, Optional, Tuple

from ledgerlens.models.options import StatementParserOptions
from ledgerlens.models.statement import (
    DocumentTypeDetection,
    ParsedStatementTransaction,
    StatementParseResult,
    StatementPeriod,
    StatementTotals,
)
from ledgerlens.utils.dates import (
    MONTH_ALTERNATION,
    disambiguate_day_month,
    expand_year,
    from_iso,
    month_number,
    parse_date_string,
    to_iso_date,
)
from ledgerlens.utils.money import normalize_amount, parse_amount_string
from ledgerlens.utils.patterns import PatternSpec

logger = logging.getLogger(__name__)

STATEMENT_KEYWORDS = [
    # Strong indicators
    ('statement period', 0.95),
    ('account statement', 0.95),
    ('credit card statement', 0.98),
    ('bank statement', 0.98),
    ('billing statement', 0.95),
    ('statement date', 0.90),
    ('statement of account', 0.95),
    ('statement of transactions', 0.98),
    ('account summary', 0.88),
    ('summary of accounts', 0.88),
    ('transaction history', 0.90),
    ('account activity', 0.88),

    # Balance and account vocabulary
    ('opening balance', 0.85),
    ('closing balance', 0.85),
    ('previous balance', 0.85),
    ('new balance', 0.82),
    ('minimum payment', 0.88),
    ('payment due', 0.85),
    ('credit limit', 0.88),
    ('available credit', 0.85),
    ('amount due', 0.78),
    ('total due', 0.78),
    ('account number', 0.75),
    ('savings account', 0.80),
    ('current account', 0.80),
    ('for the period', 0.75),

    # Column headers
    ('particulars', 0.70),
    ('withdrawals', 0.65),
    ('deposits', 0.55),

    # Weak indicators
    ('transactions', 0.60),
    ('purchases', 0.55),
    ('payments', 0.50),
    ('credits', 0.45),
    ('debits', 0.45),
]

RECEIPT_KEYWORDS = [
    'receipt', 'subtotal', 'tax', 'tip', 'gratuity',
    'thank you for your purchase', 'order #', 'order number',
    'item', 'qty', 'quantity', 'unit price',
]

INVOICE_KEYWORDS = [
    'invoice', 'bill to', 'ship to', 'due date', 'invoice number',
    'inv #', 'inv-', 'remittance', 'pay this amount',
]

# Ordered: fintech cards and multi-word bank names before short acronyms
ISSUER_PATTERNS = [(re.compile(p, re.IGNORECASE), name) for p, name in [
    # Indian fintech / co-branded cards
    (r'scapia', 'Scapia'),
    (r'\bcred\s*(?:mint|card|club)\b', 'CRED'),
    (r'\bkiwi\s*card\b', 'Kiwi'),
    (r'sbi\s*card', 'SBI Card'),
    (r'bob\s*card|bob\s*financial', 'BOB Financial'),
    (r'onecard|one\s*card', 'OneCard'),
    (r'\bslice\s*(?:card|pay)\b', 'Slice'),
    (r'uni\s*card', 'Uni Card'),
    (r'fi\.money|fi\s*money', 'Fi Money'),
    (r'niyo\s*(?:global)?', 'Niyo'),
    (r'freo\s*(?:pay|save)?', 'Freo'),
    (r'freecharge', 'Freecharge'),
    (r'lazypay', 'LazyPay'),
    (r'\bsimpl\s*(?:pay|card)\b', 'Simpl'),
    (r'zestmoney|zest\s*money', 'ZestMoney'),
    (r'\bjupiter\s*(?:money|bank|card|fin)\b', 'Jupiter'),
    (r'bajaj\s*finserv', 'Bajaj Finserv'),
    (r'tata\s*neu', 'Tata Neu'),
    (r'paytm', 'Paytm'),

    # Indian private banks
    (r'hdfc\s*bank|hdfc\s*credit|hdfc\s*card', 'HDFC'),
    (r'icici\s*bank|icici\s*credit|icici\s*card', 'ICICI'),
    (r'axis\s*bank', 'Axis Bank'),
    (r'kotak\s*mahindra|kotak\s*bank|kotak\s*card', 'Kotak Mahindra'),
    (r'yes\s*bank', 'Yes Bank'),
    (r'indusind', 'IndusInd'),
    (r'rbl\s*bank', 'RBL Bank'),
    (r'idfc\s*first', 'IDFC First'),
    (r'federal\s*bank', 'Federal Bank'),
    (r'bandhan\s*bank', 'Bandhan Bank'),
    (r'karur\s*vysya|kvb\b', 'Karur Vysya Bank'),
    (r'south\s*indian\s*bank', 'South Indian Bank'),
    (r'catholic\s*syrian|csb\s*bank', 'CSB Bank'),
    (r'city\s*union\s*bank|cub\b', 'City Union Bank'),
    (r'dhanlaxmi', 'Dhanlaxmi Bank'),
    (r'tamilnad\s*mercantile|tmb\b', 'Tamilnad Mercantile Bank'),
    (r'nainital\s*bank', 'Nainital Bank'),
    (r'jammu\s*(?:&|and)\s*kashmir|j\s*&?\s*k\s*bank', 'J&K Bank'),
    (r'lakshmi\s*vilas', 'Lakshmi Vilas Bank'),
    (r'\bhdfc\b', 'HDFC'),
    (r'\bicici\b', 'ICICI'),
    (r'\bkotak\b', 'Kotak Mahindra'),

    # Indian public sector banks
    (r'state\s*bank\s*of\s*india|sbi\b', 'SBI'),
    (r'punjab\s*national\s*bank|pnb\b', 'Punjab National Bank'),
    (r'bank\s*of\s*baroda', 'Bank of Baroda'),
    (r'canara\s*bank', 'Canara Bank'),
    (r'union\s*bank\s*of\s*india', 'Union Bank of India'),
    (r'indian\s*bank\b', 'Indian Bank'),
    (r'bank\s*of\s*india\b', 'Bank of India'),
    (r'bank\s*of\s*maharashtra', 'Bank of Maharashtra'),
    (r'central\s*bank\s*of\s*india', 'Central Bank of India'),
    (r'indian\s*overseas\s*bank|iob\b', 'Indian Overseas Bank'),
    (r'uco\s*bank', 'UCO Bank'),
    (r'punjab\s*(?:&|and)\s*sind', 'Punjab & Sind Bank'),
    (r'idbi\s*bank', 'IDBI Bank'),

    # Small finance banks
    (r'au\s*(?:small\s*finance)?\s*bank', 'AU Small Finance Bank'),
    (r'equitas', 'Equitas Small Finance Bank'),
    (r'ujjivan', 'Ujjivan Small Finance Bank'),
    (r'jana\s*(?:small\s*finance)?\s*bank', 'Jana Small Finance Bank'),
    (r'suryoday', 'Suryoday Small Finance Bank'),
    (r'fincare', 'Fincare Small Finance Bank'),
    (r'north\s*east\s*small\s*finance', 'NE Small Finance Bank'),

    # US banks
    (r'\bchase\s*(?:bank|card|credit|sapphire|freedom|ink)\b', 'Chase'),
    (r'\bjp\s*morgan\s*chase\b', 'Chase'),
    (r'bank\s*of\s*america|bofa', 'Bank of America'),
    (r'wells?\s*fargo', 'Wells Fargo'),
    (r'citibank|citi\b', 'Citibank'),
    (r'capital\s*one', 'Capital One'),
    (r'discover\s*(?:bank|card|it|financial)', 'Discover'),
    (r'usaa', 'USAA'),
    (r'us\s*bank', 'US Bank'),
    (r'td\s*bank', 'TD Bank'),
    (r'\bpnc\s*(?:bank|financial)', 'PNC'),
    (r'\bally\s*(?:bank|financial)', 'Ally'),
    (r'synchrony', 'Synchrony'),
    (r'barclays', 'Barclays'),
    (r'\bchase\b', 'Chase'),

    # International banks
    (r'hsbc', 'HSBC'),
    (r'standard\s*chartered|scb\b', 'Standard Chartered'),
    (r'deutsche\s*bank', 'Deutsche Bank'),
    (r'dbs\s*bank', 'DBS Bank'),

    # UK
    (r'natwest', 'NatWest'),
    (r'lloyds', 'Lloyds'),
    (r'monzo', 'Monzo'),
    (r'revolut', 'Revolut'),

    # Card networks last
    (r'american\s*express|amex', 'American Express'),
    (r'diners\s*club', 'Diners Club'),
    (r'\bvisa\b', 'Visa'),
    (r'mastercard|master\s*card', 'Mastercard'),
    (r'\bjcb\b', 'JCB'),
    (r'unionpay|union\s*pay', 'UnionPay'),
    (r'rupay', 'RuPay'),
]]

INDIAN_ISSUERS = frozenset([
    'HDFC', 'ICICI', 'SBI', 'Axis Bank', 'Kotak Mahindra', 'Yes Bank',
    'IndusInd', 'RBL Bank', 'IDFC First', 'Federal Bank', 'Bandhan Bank',
    'Karur Vysya Bank', 'South Indian Bank', 'CSB Bank', 'City Union Bank',
    'Dhanlaxmi Bank', 'Tamilnad Mercantile Bank', 'Nainital Bank', 'J&K Bank',
    'Lakshmi Vilas Bank',
    'Punjab National Bank', 'Bank of Baroda',
    'Canara Bank', 'Union Bank of India', 'Indian Bank', 'Bank of India',
    'Bank of Maharashtra', 'Central Bank of India', 'Indian Overseas Bank',
    'UCO Bank', 'Punjab & Sind Bank', 'IDBI Bank',
    'AU Small Finance Bank', 'Equitas Small Finance Bank', 'Ujjivan Small Finance Bank',
    'Jana Small Finance Bank', 'Suryoday Small Finance Bank',
    'Fincare Small Finance Bank', 'NE Small Finance Bank',
    'SBI Card', 'BOB Financial', 'OneCard', 'Slice', 'Uni Card',
    'Fi Money', 'Jupiter', 'Bajaj Finserv', 'Tata Neu', 'Paytm',
    'Scapia', 'CRED', 'Kiwi', 'Niyo', 'Freo', 'Freecharge',
    'LazyPay', 'Simpl', 'ZestMoney',
    'RuPay',
])

ISSUER_HEADER_CHARS = 2000

CURRENCY_CODE_PATTERN = re.compile(r'\b(USD|EUR|GBP|INR|CAD|AUD|JPY|CNY|CHF|SGD|HKD|NZD)\b', re.IGNORECASE)

CURRENCY_SYMBOLS = {
    '$': 'USD',
    '€': 'EUR',
    '£': 'GBP',
    '₹': 'INR',
    '¥': 'JPY',
    '₩': 'KRW',
}

STATEMENT_PERIOD_PATTERNS = [re.compile(p, re.IGNORECASE) for p in [
    r'statement\s+period\s*:?\s*(.+?)\s*(?:to|-|through)\s*(.+?)(?:\n|$)',
    r'billing\s+(?:period|cycle)\s*:?\s*(.+?)\s*(?:to|-|through)\s*(.+?)(?:\n|$)',
    r'period\s*:?\s*(.+?)\s*(?:to|-|through)\s*(.+?)(?:\n|$)',
    r'from\s+(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})\s+to\s+(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})',
]]

ACCOUNT_LAST4_PATTERNS = [
    re.compile(r'(?:account|card|acct)[\s#:]*(?:no\.?\s*)?(?:\*{4,}|\d{4,}[\s*-]*)*(\d{4})', re.IGNORECASE),
    re.compile(r'(?:xxxx[\s-]*){1,3}(\d{4})', re.IGNORECASE),
    re.compile(r'\*{4,}\s*(\d{4})'),
]

STATEMENT_TOTAL_PATTERNS = [re.compile(p, re.IGNORECASE) for p in [
    r'(?:total\s+(?:new\s+)?(?:charges|amount|debits|transactions))\s*:?\s*[$€£₹]?\s*([\d,]+\.?\d*)',
    r'(?:new\s+balance|closing\s+balance|amount\s+due)\s*:?\s*[$€£₹]?\s*([\d,]+\.?\d*)',
    r'(?:total\s+due)\s*:?\s*[$€£₹]?\s*([\d,]+\.?\d*)',
]]

# Vendor keywords that mark an otherwise unsigned amount as money coming in
CREDIT_KEYWORDS = [
    'payment', 'credit', 'refund', 'return', 'reversal',
    'cashback', 'cash back', 'reward', 'adjustment',
    'deposit', 'received', 'cr',
    'neft transfer', 'neft', 'rtgs', 'salary', 'income',
]
CREDIT_KEYWORD_PATTERN = re.compile(
    r'\b(?:' + '|'.join(re.escape(k) for k in CREDIT_KEYWORDS) + r')\b',
    re.IGNORECASE,
)

TRANSACTION_TYPE_RULES = [
    ('payment', re.compile(r'\b(?:payment|thank you|autopay)\b', re.IGNORECASE)),
    ('refund', re.compile(r'\b(?:refund|return|reversal)\b', re.IGNORECASE)),
    ('interest', re.compile(r'\b(?:interest|finance charges?)\b', re.IGNORECASE)),
    ('fee', re.compile(r'\b(?:fees?|charges?|penalty|annual fee|late fee)\b', re.IGNORECASE)),
]

SKIP_LINE_PATTERNS = [re.compile(p, re.IGNORECASE) for p in [
    # Structural noise
    r'^\s*$',
    r'^[-=_*]{3,}$',
    r'^page\s+\d',
    r'^\s*\*{2,}',
    r'^\s*continued',
    r'^\s*(?:\d+\s*of\s*\d+)\s*$',

    # Column headers
    r'^\s*(?:date|description|amount|debit|credit|balance|reference|particulars|sr\.?\s*no|transaction\s*details?)\s*$',
    r'^\s*(?:date)\s+(?:description|particulars|transaction)',
    r'^\s*(?:sl|sr|s)\.?\s*no\.?\s+date',

    # Totals, balances and limits
    r'^\s*(?:total|subtotal|grand total|net)\s',
    r'^\s*(?:opening|closing|previous|new)\s+balance',
    r'\bB\s*/\s*F\b',
    r'\bC\s*/\s*F\b',
    r'\b(?:brought|carried)\s+forward\b',
    r'^\s*(?:minimum|payment|amount)\s+(?:due|payable)',
    r'^\s*(?:credit limit|available credit|cash limit)',
    r'^\s*(?:total\s+)?(?:reward|loyalty)\s*points?',

    # Statement metadata
    r'^\s*(?:statement|billing)\s+(?:period|date|cycle)',
    r'^\s*(?:account|card)\s+(?:number|no|holder)',
    r'^\s*(?:interest|finance)\s+(?:charge|rate)',
    r'^\s*(?:customer\s+(?:id|name|care)|member\s+since)',
    r'^\s*(?:payment\s+due\s+date|due\s+date|last\s+date)',
    r'^\s*(?:generated|printed|issued)\s+(?:on|date)',

    # Contact details
    r'^\s*(?:phone|tel|fax|toll\s*free|helpline|customer\s*care)\s*[:\-]?\s*[\d+\-()]',
    r'^\s*(?:email|e-mail)\s*[:\-]?\s*\S+@\S+',
    r'^\s*(?:website|web|url|visit)\s*[:\-]?\s*(?:www|https?)',
    r'^\s*(?:www\.|https?://)',

    # Addresses
    r'^\s*(?:address|regd\.?\s*office|corporate\s*office|head\s*office)\s*[:\-]',
    r'^\s*(?:p\.?o\.?\s*box|pin\s*code|zip\s*code)\s*[:\-]?\s*\d',
    r'^\s*(?:\d+[,\s]+(?:floor|street|road|lane|nagar|marg|colony|sector))',
    r'^\s*(?:mumbai|delhi|bangalore|bengaluru|chennai|kolkata|hyderabad|pune|new\s*delhi|noida|gurgaon|gurugram)\s*[-,]?\s*\d{6}',

    # Legal boilerplate
    r'^\s*(?:dear|respected)\s+(?:customer|cardholder|card\s*member|sir|madam)',
    r'^\s*(?:this\s+is\s+(?:a\s+)?(?:computer|system|auto)\s*(?:generated|produced))',
    r'^\s*(?:for\s+any\s+(?:queries|dispute|clarification|assistance))',
    r'^\s*(?:please\s+(?:note|contact|call|visit|refer|check))',
    r'^\s*(?:terms\s+(?:and|&)\s+conditions|t\s*&\s*c\s*apply)',
    r'^\s*(?:important\s+(?:notice|information|update))',
    r'^\s*(?:in\s+case\s+of|if\s+you\s+(?:have|need|wish))',
    r'^\s*(?:registered\s+(?:office|with)|cin|gstin|gst\s*no)',
    r'^\s*(?:subject\s+to\s+(?:terms|conditions|jurisdiction))',

    # Rewards and promotions
    r'^\s*(?:you\s+(?:have\s+)?earned|points?\s+(?:earned|redeemed|balance))',
    r'^\s*(?:cashback|reward)\s+(?:earned|credited|summary)',
    r'^\s*(?:offer|promo|promotion|discount|exclusive)\s',
    r'^\s*(?:emi\s+(?:conversion|available|details?))',

    # Tax, fee and FX sub-lines
    r'^\s*(?:gst|cgst|sgst|igst|tax|vat|service\s*tax)\s*(?:@|:|\d)',
    r'^\s*(?:cess|surcharge|convenience\s*fee|processing\s*fee)\s*[:\-]?\s*[\d₹$]',
    r'^\s*(?:foreign\s*(?:currency|exchange)|conversion\s*rate|exchange\s*rate)',
    r'^\s*(?:arn|approval\s*code|auth\s*code|ref\s*no|reference\s*(?:number|no))\s*[:\-]?\s*\w',
    r'^\s*(?:merchant\s*(?:category|id|name)|mcc)\s*[:\-]',
    r'^\s*(?:cross\s*currency|markup|mark-up)\s*[:\-]?\s*\d',
]]

PHONE_LIKE_PATTERN = re.compile(r'(?:^|\s)[+\-()\d\s]{10,}(?:\s|$)')
LINE_AMOUNT_PATTERN = re.compile(r'[$€£₹]?\s*[\d,]+\.\d{2}\s*$')

LINE_DATE_CONFIDENCE = 0.9
INFERRED_DATE_CONFIDENCE = 0.5
LINE_AMOUNT_CONFIDENCE = 0.85

TOTAL_MISMATCH_TOLERANCE = 1.0


# Line date parsers return (year, month, day) or None

def _line_ymd(match: re.Match, prefer_dd_mm: bool) -> Optional[Tuple[int, int, int]]:
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def _line_day_month_name(match: re.Match, prefer_dd_mm: bool) -> Optional[Tuple[int, int, int]]:
    month = month_number(match.group(2))
    if not month:
        return None
    return expand_year(int(match.group(3))), month, int(match.group(1))


def _line_month_name_day(match: re.Match, prefer_dd_mm: bool) -> Optional[Tuple[int, int, int]]:
    month = month_number(match.group(1))
    if not month:
        return None
    return int(match.group(3)), month, int(match.group(2))


def _line_numeric(match: re.Match, prefer_dd_mm: bool) -> Optional[Tuple[int, int, int]]:
    month, day = disambiguate_day_month(int(match.group(1)), int(match.group(2)), prefer_dd_mm)
    return expand_year(int(match.group(3))), month, day


def _line_dotted(match: re.Match, prefer_dd_mm: bool) -> Optional[Tuple[int, int, int]]:
    return expand_year(int(match.group(3))), int(match.group(2)), int(match.group(1))


def _line_no_year(match: re.Match, prefer_dd_mm: bool) -> Optional[Tuple[int, int, int]]:
    month, day = disambiguate_day_month(int(match.group(1)), int(match.group(2)), prefer_dd_mm)
    return date.today().year, month, day


# Line amount parsers return (amount, is_credit)

def _credit_amount(match: re.Match) -> Tuple[float, bool]:
    return parse_amount_string(match.group(1)), True


def _debit_amount(match: re.Match) -> Tuple[float, bool]:
    return parse_amount_string(match.group(1)), False


def _two_column_amount(match: re.Match) -> Tuple[float, bool]:
    """Debit/credit columns: whichever column is non-zero wins."""
    debit = parse_amount_string(match.group(1))
    credit = parse_amount_string(match.group(2))
    if debit > 0 and credit == 0:
        return debit, False
    if credit > 0 and debit == 0:
        return credit, True
    return debit, False


def _title_case(text: str) -> str:
    return re.sub(r'(?:^|\s)\S', lambda m: m.group(0).upper(), text.lower())


class StatementParser:
    """Service for parsing statement text into transactions."""

    def __init__(self, categorizer=None):
        """
        Initialize parser.

        Args:
            categorizer: AutoCategorizer used to suggest a category for each
                parsed vendor (optional)
        """
        self.categorizer = categorizer
        self._init_patterns()

    def _init_patterns(self):
        """Initialize line date and amount pattern tables (order matters)."""

        # Anchored at line start
        self.line_date_patterns = [
            PatternSpec(
                name='YYYY-MM-DD',
                pattern=r'^(\d{4})-(\d{1,2})-(\d{1,2})',
                confidence=LINE_DATE_CONFIDENCE,
                parse=_line_ymd,
                flags=0,
                example='2026-01-15',
            ),
            PatternSpec(
                name='DD Mon YY',
                pattern=rf'^(\d{{1,2}})[\s\-]({MONTH_ALTERNATION})[a-z]*[\s\-.,](\d{{2,4}})',
                confidence=LINE_DATE_CONFIDENCE,
                parse=_line_day_month_name,
                example='15-Jan-26',
            ),
            PatternSpec(
                name='Mon DD, YYYY',
                pattern=rf'^({MONTH_ALTERNATION})[a-z]*\s+(\d{{1,2}}),?\s+(\d{{4}})',
                confidence=LINE_DATE_CONFIDENCE,
                parse=_line_month_name_day,
                example='Jan 15, 2026',
            ),
            PatternSpec(
                name='N/N/YYYY',
                pattern=r'^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})',
                confidence=LINE_DATE_CONFIDENCE,
                parse=_line_numeric,
                flags=0,
                example='15/01/2026',
                notes='Ambiguous pairs follow the statement locale',
            ),
            PatternSpec(
                name='N/N/YY',
                pattern=r'^(\d{1,2})[/\-](\d{1,2})[/\-](\d{2})(?!\d)',
                confidence=LINE_DATE_CONFIDENCE,
                parse=_line_numeric,
                flags=0,
                example='15/01/26',
            ),
            PatternSpec(
                name='DD.MM.YY',
                pattern=r'^(\d{1,2})\.(\d{1,2})\.(\d{2,4})',
                confidence=LINE_DATE_CONFIDENCE,
                parse=_line_dotted,
                flags=0,
                example='15.01.2026',
                notes='Dotted dates are always day-first',
            ),
            PatternSpec(
                name='N/N',
                pattern=r'^(\d{1,2})/(\d{1,2})\s',
                confidence=LINE_DATE_CONFIDENCE,
                parse=_line_no_year,
                flags=0,
                example='01/15 ',
                notes='No year on the line, current year assumed',
            ),
        ]

        # Anchored at line end; credit-marked forms before plain forms
        self.line_amount_patterns = [
            PatternSpec(
                name='CR suffix',
                pattern=r'([\d,]+\.?\d*)\s*CR\s*$',
                confidence=LINE_AMOUNT_CONFIDENCE,
                parse=_credit_amount,
                example='1,200.00 CR',
            ),
            PatternSpec(
                name='Negative',
                pattern=r'[-(]\s*[$€£₹]?\s*([\d,]+\.?\d*)\s*\)?$',
                confidence=LINE_AMOUNT_CONFIDENCE,
                parse=_credit_amount,
                example='(45.00)',
            ),
            PatternSpec(
                name='Trailing minus',
                pattern=r'([\d,]+\.?\d*)\s*-\s*$',
                confidence=LINE_AMOUNT_CONFIDENCE,
                parse=_credit_amount,
                flags=0,
                example='45.00-',
            ),
            PatternSpec(
                name='DR suffix',
                pattern=r'([\d,]+\.?\d*)\s*DR\s*$',
                confidence=LINE_AMOUNT_CONFIDENCE,
                parse=_debit_amount,
                example='45.00 DR',
            ),
            PatternSpec(
                name='Rupee prefix',
                pattern=r'(?:₹|Rs\.?|INR)\s*([\d,]+\.?\d*)\s*$',
                confidence=LINE_AMOUNT_CONFIDENCE,
                parse=_debit_amount,
                example='Rs. 1,234.00',
            ),
            PatternSpec(
                name='Rupee prefix CR',
                pattern=r'(?:₹|Rs\.?|INR)\s*([\d,]+\.?\d*)\s*CR\s*$',
                confidence=LINE_AMOUNT_CONFIDENCE,
                parse=_credit_amount,
                example='₹500.00 CR',
                notes='Shadowed by the CR suffix pattern',
            ),
            PatternSpec(
                name='Currency symbol',
                pattern=r'[$€£]\s*([\d,]+\.?\d*)\s*$',
                confidence=LINE_AMOUNT_CONFIDENCE,
                parse=_debit_amount,
                flags=0,
                example='$5.75',
            ),
            PatternSpec(
                name='Debit/credit columns',
                pattern=r'\s([\d,]+\.\d{2})\s+([\d,]+\.\d{2})\s*$',
                confidence=LINE_AMOUNT_CONFIDENCE,
                parse=_two_column_amount,
                flags=0,
                example='0.00 2,500.00',
            ),
            PatternSpec(
                name='Plain decimal',
                pattern=r'\s([\d,]+\.\d{2})\s*$',
                confidence=LINE_AMOUNT_CONFIDENCE,
                parse=_debit_amount,
                flags=0,
                example=' 45.00',
            ),
        ]

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect_document_type(self, text: str) -> DocumentTypeDetection:
        """
        Classify text as statement, receipt or invoice.

        Keyword scores are combined with a structural bonus for statement-like
        line layouts (many date+amount lines, or paired date-only and
        amount-only lines).
        """
        text_lower = text.lower()

        statement_score = 0.0
        matched_keywords = []
        for keyword, weight in STATEMENT_KEYWORDS:
            if keyword in text_lower:
                statement_score += weight
                matched_keywords.append(keyword)

        receipt_score = sum(0.5 for keyword in RECEIPT_KEYWORDS if keyword in text_lower)
        invoice_score = sum(0.6 for keyword in INVOICE_KEYWORDS if keyword in text_lower)

        date_and_amount = date_only = amount_only = 0
        for line in text.split('\n'):
            has_date = self._line_has_date(line)
            has_amount = self._line_has_amount(line)
            if has_date and has_amount:
                date_and_amount += 1
            elif has_date:
                date_only += 1
            elif has_amount:
                amount_only += 1

        if date_and_amount >= 5:
            statement_score += 2.0
        elif date_and_amount >= 3:
            statement_score += 1.0

        # Multi-line layouts put dates and amounts on separate lines
        if date_only >= 5 and amount_only >= 5 and abs(date_only - amount_only) < date_only:
            statement_score += 2.0
        elif date_only >= 3 and amount_only >= 3:
            statement_score += 1.0

        issuer = self.detect_issuer(text)
        max_score = max(statement_score, receipt_score, invoice_score)

        if max_score == 0:
            return DocumentTypeDetection(type='unknown', confidence=0.3, issuer=issuer)

        if statement_score >= receipt_score and statement_score >= invoice_score:
            return DocumentTypeDetection(
                type='statement',
                confidence=min(0.99, statement_score / 5),
                matched_keywords=matched_keywords,
                issuer=issuer,
            )

        if invoice_score >= receipt_score:
            return DocumentTypeDetection(
                type='invoice',
                confidence=min(0.95, invoice_score / 3),
                matched_keywords=matched_keywords,
                issuer=issuer,
            )

        return DocumentTypeDetection(
            type='receipt',
            confidence=min(0.95, receipt_score / 3),
            matched_keywords=matched_keywords,
            issuer=issuer,
        )

    def detect_issuer(self, text: str) -> Optional[str]:
        """
        Detect the bank or card issuer.

        The header is scanned first so that banks named inside transaction
        descriptions (e.g. a payee bank in an NEFT reference) do not win.
        """
        header = text[:ISSUER_HEADER_CHARS]
        for pattern, name in ISSUER_PATTERNS:
            if pattern.search(header):
                return name

        for pattern, name in ISSUER_PATTERNS:
            if pattern.search(text):
                return name

        return None

    def detect_currency(self, text: str) -> Optional[str]:
        """Currency from an explicit code, else the most frequent symbol, else Rs. prefixes."""
        code = CURRENCY_CODE_PATTERN.search(text)
        if code:
            return code.group(1).upper()

        detected = None
        max_count = 0
        for symbol, currency in CURRENCY_SYMBOLS.items():
            count = text.count(symbol)
            if count > max_count:
                max_count = count
                detected = currency

        rs_count = len(re.findall(r'Rs\.?\s*\d', text, re.IGNORECASE))
        if rs_count > max_count:
            detected = 'INR'

        return detected

    @staticmethod
    def is_indian_statement(issuer: Optional[str], currency: Optional[str]) -> bool:
        return currency == 'INR' or (issuer is not None and issuer in INDIAN_ISSUERS)

    # ------------------------------------------------------------------
    # Statement metadata
    # ------------------------------------------------------------------

    def extract_statement_period(self, text: str, prefer_dd_mm: bool = False) -> StatementPeriod:
        for pattern in STATEMENT_PERIOD_PATTERNS:
            match = pattern.search(text)
            if match:
                start = parse_date_string(match.group(1).strip(), prefer_dd_mm)
                end = parse_date_string(match.group(2).strip(), prefer_dd_mm)
                if start or end:
                    return StatementPeriod(start=start, end=end)
        return StatementPeriod()

    def extract_account_last4(self, text: str) -> Optional[str]:
        """Last 4 digits of the account or card number only."""
        for pattern in ACCOUNT_LAST4_PATTERNS:
            match = pattern.search(text)
            if match and match.group(1):
                return match.group(1)
        return None

    def extract_statement_total(self, text: str) -> Optional[float]:
        """Declared statement total (new charges, closing balance or amount due)."""
        for pattern in STATEMENT_TOTAL_PATTERNS:
            match = pattern.search(text)
            if match:
                amount = parse_amount_string(match.group(1))
                if not math.isnan(amount) and amount > 0:
                    return amount
        return None

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse_statement(
        self,
        text: str,
        options: Optional[StatementParserOptions] = None
    ) -> StatementParseResult:
        """
        Parse a statement into transactions.

        Args:
            text: Preprocessed statement text
            options: Parser options (currency fallback, confidence floor,
                date and amount bounds)

        Returns:
            StatementParseResult with transactions, totals and warnings
        """
        started = time.perf_counter()
        options = options or StatementParserOptions()
        min_date, max_date = options.date_bounds()

        detection = self.detect_document_type(text)
        issuer = detection.issuer or 'Unknown'
        currency = self.detect_currency(text) or options.default_currency
        prefer_dd_mm = self.is_indian_statement(detection.issuer, currency)

        statement_period = self.extract_statement_period(text, prefer_dd_mm)
        account_last4 = self.extract_account_last4(text)

        transactions: List[ParsedStatementTransaction] = []
        warnings: List[str] = []
        unparsed_line_count = 0
        last_valid_date = None
        run_id = int(time.time() * 1000)

        for i, raw_line in enumerate(text.split('\n')):
            line = raw_line.strip()
            if not line or self._should_skip_line(line):
                continue

            parsed = self._parse_transaction_line(
                line,
                last_valid_date=last_valid_date,
                options=options,
                min_date=min_date,
                max_date=max_date,
                prefer_dd_mm=prefer_dd_mm,
            )

            if parsed:
                tx_date, vendor, amount, tx_type, confidence = parsed
                category_id, category_name = self._categorize(vendor, amount, tx_type)
                transactions.append(ParsedStatementTransaction(
                    id=f"stmt-{run_id}-{i}-{uuid.uuid4().hex[:6]}",
                    date=tx_date,
                    vendor=vendor,
                    amount=amount,
                    type=tx_type,
                    category=category_id,
                    suggested_category_name=category_name,
                    raw_line=line,
                    confidence=confidence,
                ))
                last_valid_date = tx_date
            elif transactions and self._is_continuation_line(line):
                last = transactions[-1]
                last.vendor = f"{last.vendor} {line}"
                last.raw_line = f"{last.raw_line}\n{line}"
            elif self._looks_like_transaction_data(line):
                unparsed_line_count += 1

        transactions = [t for t in transactions if t.confidence >= options.min_confidence]

        totals = self.calculate_totals(transactions)
        totals.statement_total = self.extract_statement_total(text)

        if (
            totals.statement_total is not None
            and abs(totals.total_debits - totals.statement_total) > TOTAL_MISMATCH_TOLERANCE
        ):
            warnings.append(
                f"Parsed total ({totals.total_debits:.2f}) differs from statement total "
                f"({totals.statement_total:.2f}). Please review."
            )

        if unparsed_line_count > 0:
            warnings.append(
                f"{unparsed_line_count} line(s) could not be parsed and may contain transactions."
            )

        confidence = (
            sum(t.confidence for t in transactions) / len(transactions)
            if transactions else 0.0
        )
        parsing_time_ms = (time.perf_counter() - started) * 1000

        logger.info(
            "Parsed statement",
            extra={
                "document_type": detection.type,
                "issuer": issuer,
                "currency": currency,
                "transactions": len(transactions),
                "unparsed_lines": unparsed_line_count,
                "parsing_time_ms": round(parsing_time_ms, 1),
            }
        )

        return StatementParseResult(
            document_type=detection.type,
            issuer=issuer,
            account_last4=account_last4,
            statement_period=statement_period,
            transactions=transactions,
            totals=totals,
            currency=currency,
            confidence=confidence,
            parsing_time_ms=parsing_time_ms,
            unparsed_line_count=unparsed_line_count,
            warnings=warnings,
        )

    def _categorize(self, vendor: str, amount: float, tx_type: str) -> Tuple[Optional[str], Optional[str]]:
        """(category_id, suggested_category_name); a learned match sets the id directly."""
        if self.categorizer is None:
            return None, None

        suggestion = self.categorizer.suggest_category(
            vendor, amount=abs(amount), transaction_type=tx_type
        )
        if suggestion is None:
            return None, None
        if suggestion.is_learned and suggestion.learned_category_id:
            return suggestion.learned_category_id, None
        return None, suggestion.category_name

    def _parse_transaction_line(
        self,
        line: str,
        last_valid_date: Optional[str],
        options: StatementParserOptions,
        min_date: date,
        max_date: date,
        prefer_dd_mm: bool,
    ) -> Optional[Tuple[str, str, float, str, float]]:
        """
        Parse one line into (date, vendor, signed amount, type, confidence).

        Returns None when the line has no amount, no usable date, or no
        plausible vendor text.
        """
        tx_date = None
        date_confidence = 0.0
        remaining = line

        for spec in self.line_date_patterns:
            match = spec.search(line)
            if not match:
                continue
            parts = spec.parse(match, prefer_dd_mm)
            iso = to_iso_date(*parts) if parts else None
            parsed = from_iso(iso) if iso else None
            if parsed and min_date <= parsed <= max_date:
                tx_date = iso
                date_confidence = spec.confidence
                remaining = line[match.end():].strip()
                break

        # Posting date right after the transaction date; keep the first
        if tx_date:
            for spec in self.line_date_patterns:
                match = spec.search(remaining)
                if match:
                    remaining = remaining[match.end():].strip()
                    break

        amount = None
        is_credit = False
        amount_confidence = 0.0

        for spec in self.line_amount_patterns:
            match = spec.search(remaining)
            if not match:
                continue
            value, credit = spec.parse(match)
            if options.amount_min <= value <= options.amount_max:
                amount = value
                is_credit = credit
                amount_confidence = spec.confidence
                remaining = remaining[:match.start()].strip()
                break

        if amount is None:
            return None

        if tx_date is None:
            if not (options.infer_missing_dates and last_valid_date):
                return None
            tx_date = last_valid_date
            date_confidence = INFERRED_DATE_CONFIDENCE

        vendor = self.clean_vendor_description(remaining)
        if not vendor or not self._is_valid_vendor(vendor):
            return None

        if not is_credit and CREDIT_KEYWORD_PATTERN.search(vendor):
            is_credit = True

        tx_type = self.determine_transaction_type(vendor, is_credit)
        signed = -amount if is_credit else amount
        confidence = round((date_confidence + amount_confidence) / 2, 2)

        return tx_date, vendor, normalize_amount(signed), tx_type, confidence

    def determine_transaction_type(self, vendor: str, is_credit: bool) -> str:
        for tx_type, pattern in TRANSACTION_TYPE_RULES:
            if pattern.search(vendor):
                return tx_type
        return 'credit' if is_credit else 'debit'

    def clean_vendor_description(self, text: str) -> str:
        """
        Clean the description left after stripping date and amount.

        Payment-rail formats are unpacked first:
            UPI/swiggy@yespay/Food order/YES BANK LTD/...  -> "Food order"
            ACH/Indian Clearing Corp/...                   -> "Indian Clearing Corp"
            NEFT-HDFCN5202...-JIO PLATFORMS LIMITED840-... -> "Jio Platforms"
        then references, card tails, locale codes and bank names are removed.
        All-caps results are title-cased.
        """
        cleaned = text.strip()

        upi = re.match(
            r'^UPI/([^/]+?)(?:@[^/]*)?/(.*?)/(?:[A-Z][A-Za-z\s]*(?:BANK|LTD|LIMITE|FIN)\b.*)',
            cleaned,
            re.IGNORECASE,
        )
        if upi:
            vpa, desc = upi.group(1) or '', upi.group(2) or ''
            merchant = re.sub(r'@.*$', '', vpa)
            merchant = re.sub(r'\.\w+$', '', merchant)
            merchant = re.sub(r'[._-]', ' ', merchant)
            merchant = re.sub(r'\d{5,}', '', merchant).strip()

            useful_desc = desc and not re.match(
                r'^(NA|UPI|Sent using Payt|Pay\s*via|topup|payment|express|Mandate)', desc, re.IGNORECASE
            )
            if useful_desc and 2 < len(desc) < 40:
                cleaned = desc
            elif len(merchant) >= 2:
                cleaned = merchant
            else:
                cleaned = f"{merchant} {desc}".strip()

        if re.match(r'^ACH/', cleaned, re.IGNORECASE):
            parts = cleaned.split('/')
            cleaned = (parts[1].strip() if len(parts) > 1 else '') or 'ACH Payment'

        if re.match(r'^BIL/', cleaned, re.IGNORECASE):
            biller = next(
                (
                    p for p in cleaned.split('/')
                    if len(p) > 3
                    and not p.isdigit()
                    and not re.match(r'^ONL$', p, re.IGNORECASE)
                    and not re.match(r'^BILL\s*DESK$', p, re.IGNORECASE)
                ),
                None,
            )
            cleaned = biller.strip() if biller else 'Bill Payment'

        if re.match(r'^NEFT/', cleaned, re.IGNORECASE):
            parts = cleaned.split('/')
            cleaned = (parts[1].strip() if len(parts) > 1 else '') or 'NEFT Transfer'

        # NEFT-<bank ref>-<COMPANY NAME><account digits>-...
        if re.match(r'^NEFT-', cleaned, re.IGNORECASE):
            company = []
            for part in cleaned.split('-')[2:]:
                part = part.strip()
                if re.match(r'^[A-Z]', part, re.IGNORECASE):
                    name = re.sub(r'\d{3,}.*$', '', part).strip()
                    if len(name) > 1:
                        company.append(name)
                elif company:
                    break
            cleaned = ' '.join(company) or 'NEFT Transfer'

        if re.match(r'^IMPS/', cleaned, re.IGNORECASE):
            parts = cleaned.split('/')
            cleaned = (parts[1].strip() if len(parts) > 1 else '') or 'IMPS Transfer'

        cleaned = cleaned.strip()
        cleaned = re.sub(r'\s+(?:REF|AUTH|CONF|TXN|ID|ARN|APPROVAL)[\s#:]*[\w-]+$', '', cleaned, flags=re.IGNORECASE)
        cleaned = re.sub(r'\s+(?:XXXX|XX|Card)\s*\d{4}\s*', '', cleaned, flags=re.IGNORECASE)
        cleaned = re.sub(r'\s+[A-Z]{2}\s+\d{5}(-\d{4})?\s*$', '', cleaned)
        cleaned = re.sub(r'\s+(?:IN|IND)\s*$', '', cleaned, flags=re.IGNORECASE)
        cleaned = re.sub(r'\s+[A-Z]{2}\s*$', '', cleaned)
        cleaned = re.sub(r'[\s*#]+$', '', cleaned)
        cleaned = re.sub(r'^(?:POS|ECOM|IMPS|NEFT|RTGS|UPI|NACH|ECS|ACH|ATM)\s*[-/]?\s*', '', cleaned, flags=re.IGNORECASE)
        cleaned = re.sub(r'\S+@\S+', '', cleaned)
        cleaned = re.sub(r'\b[A-Za-z0-9]{12,}\b', '', cleaned)
        cleaned = re.sub(r'\b\d{9,}\b', '', cleaned)
        cleaned = re.sub(
            r'\b(?:YES\s*BANK|HDFC\s*BANK|ICICI\s*Bank|AXIS\s*BANK|SBI|FEDERAL\s*BANK|CANARA\s*BANK'
            r'|UNION\s*BANK|IDBI\s*BANK|RBL\s*BANK)\b\.?\s*(?:LTD|LIMITE?D?)?\.?',
            '',
            cleaned,
            flags=re.IGNORECASE,
        )
        cleaned = re.sub(r'\b(?:LTD|LIMITE|LIMITED|BANK)\b\.?\s*', '', cleaned, flags=re.IGNORECASE)
        cleaned = re.sub(r'\s{2,}', ' ', cleaned)
        cleaned = re.sub(r'^[*\-#/\s]+|[*\-#/\s]+$', '', cleaned).strip()

        if cleaned == cleaned.upper() and len(cleaned) > 3:
            cleaned = _title_case(cleaned)

        return cleaned

    def _is_valid_vendor(self, vendor: str) -> bool:
        if not re.search(r'[a-zA-Z]', vendor):
            return False
        if len(vendor) < 2:
            return False
        if re.match(r'^[\d\s.,\-/]+$', vendor):
            return False
        if re.match(r'^\d{1,2}[/\-]\d{1,2}([/\-]\d{2,4})?$', vendor):
            return False
        if re.match(r'^(?:REF|AUTH|TXN|ARN|ID|NO|#)\s*:?\s*\w+$', vendor, re.IGNORECASE):
            return False
        return True

    def _should_skip_line(self, line: str) -> bool:
        """Headers, footers, boilerplate and lines too short or long to be a transaction."""
        trimmed = line.strip()
        if len(trimmed) < 5 or len(trimmed) > 300:
            return True
        if any(p.search(trimmed) for p in SKIP_LINE_PATTERNS):
            return True
        if trimmed.isdigit():
            return True
        # Phone numbers
        if PHONE_LIKE_PATTERN.search(trimmed) and not re.search(r'\.\d{2}', trimmed):
            return True
        return False

    def _line_has_date(self, line: str) -> bool:
        trimmed = line.strip()
        return any(spec.search(trimmed) for spec in self.line_date_patterns)

    def _line_has_amount(self, line: str) -> bool:
        return bool(LINE_AMOUNT_PATTERN.search(line.strip()))

    def _looks_like_transaction_data(self, line: str) -> bool:
        trimmed = line.strip()
        return bool(re.search(r'\d+\.\d{2}', trimmed)) and len(trimmed) > 15

    def _is_continuation_line(self, line: str) -> bool:
        """Short text with no date, amount, leading digit or currency symbol."""
        trimmed = line.strip()
        return (
            3 < len(trimmed) < 60
            and not self._line_has_date(trimmed)
            and not self._line_has_amount(trimmed)
            and not re.match(r'^\d', trimmed)
            and not re.search(r'[$€£₹]', trimmed)
        )

    @staticmethod
    def calculate_totals(transactions: List[ParsedStatementTransaction]) -> StatementTotals:
        """Debits are non-negative amounts, credits the absolute negative ones."""
        total_debits = normalize_amount(sum(t.amount for t in transactions if t.amount >= 0))
        total_credits = normalize_amount(sum(-t.amount for t in transactions if t.amount < 0))
        return StatementTotals(
            total_debits=total_debits,
            total_credits=total_credits,
            net_balance=normalize_amount(total_credits - total_debits),
        )

"""
Per-call option objects for the parsing services.

Defaults come from settings; date bounds left as None are resolved
against today's date when the call is made.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from ledgerlens.config import settings


@dataclass
class EntityExtractionOptions:
    default_currency: str = field(default_factory=lambda: settings.DEFAULT_CURRENCY)
    min_confidence: float = 0.3
    min_date: Optional[date] = None  # None = ENTITY_LOOKBACK_YEARS ago
    max_date: Optional[date] = None  # None = today
    amount_min: float = 0.01
    amount_max: float = field(default_factory=lambda: settings.ENTITY_MAX_AMOUNT)
    extract_all_amounts: bool = True
    prefer_total_amounts: bool = True
    prefer_dd_mm: bool = True  # Ambiguous numeric dates read as DD/MM

    def date_bounds(self):
        today = date.today()
        min_date = self.min_date or today - timedelta(days=365 * settings.ENTITY_LOOKBACK_YEARS)
        return min_date, self.max_date or today


@dataclass
class StatementParserOptions:
    default_currency: str = field(default_factory=lambda: settings.DEFAULT_CURRENCY)
    min_confidence: float = field(default_factory=lambda: settings.STATEMENT_MIN_CONFIDENCE)
    infer_missing_dates: bool = True
    min_date: Optional[date] = None  # None = STATEMENT_LOOKBACK_DAYS ago
    max_date: Optional[date] = None  # None = today
    amount_min: float = 0.01
    amount_max: float = field(default_factory=lambda: settings.STATEMENT_MAX_AMOUNT)

    def date_bounds(self):
        today = date.today()
        min_date = self.min_date or today - timedelta(days=settings.STATEMENT_LOOKBACK_DAYS)
        return min_date, self.max_date or today


@dataclass
class LLMParseOptions:
    min_regex_confidence: float = 0.5
    min_regex_transactions: int = 3
    force_llm: bool = False
    min_expected_transactions: int = field(
        default_factory=lambda: settings.LLM_MIN_EXPECTED_TRANSACTIONS
    )
    regex_only: bool = False


@dataclass
class ValidationOptions:
    min_date: Optional[date] = None  # None = 50 years ago
    max_date: Optional[date] = None  # None = 30 days from today
    min_amount: float = 0.01
    max_amount: float = 1_000_000
    min_vendor_length: int = 2
    max_vendor_length: int = 100
    min_confidence: float = 0.3
    strict: bool = False  # Treat warnings as errors

    def date_bounds(self):
        today = date.today()
        min_date = self.min_date or today - timedelta(days=50 * 365)
        return min_date, self.max_date or today + timedelta(days=30)

"""
Pydantic models for parsed bank and card statements.
"""

from pydantic import BaseModel
from typing import List, Literal, Optional

TransactionType = Literal['debit', 'credit', 'payment', 'fee', 'interest', 'refund']
DocumentType = Literal['statement', 'receipt', 'invoice', 'unknown']

# Types that represent money coming in
CREDIT_TYPES = ('payment', 'credit', 'refund', 'interest')


class ParsedStatementTransaction(BaseModel):
    """
    One transaction parsed from a statement.

    Amount sign convention: positive = debit/expense, negative = credit/inflow.
    """
    id: str
    date: str  # YYYY-MM-DD
    vendor: str
    amount: float
    type: TransactionType
    category: Optional[str] = None  # Direct category id (learned mapping)
    suggested_category_name: Optional[str] = None
    raw_line: str = ""
    confidence: float
    selected: bool = True
    note: str = ""


class StatementPeriod(BaseModel):
    start: Optional[str] = None
    end: Optional[str] = None


class StatementTotals(BaseModel):
    """Totals recomputed from parsed transactions; net_balance = credits - debits."""
    total_debits: float = 0.0
    total_credits: float = 0.0
    net_balance: float = 0.0
    statement_total: Optional[float] = None


class StatementParseResult(BaseModel):
    """Full result of parsing one statement."""
    document_type: DocumentType
    issuer: str
    account_last4: Optional[str] = None
    statement_period: StatementPeriod = StatementPeriod()
    transactions: List[ParsedStatementTransaction] = []
    totals: StatementTotals = StatementTotals()
    currency: str
    confidence: float = 0.0
    parsing_time_ms: float = 0.0
    unparsed_line_count: int = 0
    warnings: List[str] = []


class DocumentTypeDetection(BaseModel):
    type: DocumentType
    confidence: float
    matched_keywords: List[str] = []
    issuer: Optional[str] = None

"""
LLM statement parser.

LLM-first orchestration over the remote parse endpoint, with the regex
StatementParser result as metadata source and fallback:

1. Estimate the statement size and pick a model tier
   (< 50 transactions: primary, escalating to retry; 50-499: large;
   500+: sequential chunks on the primary tier)
2. Fall back to the retry tier once if the first call failed
3. If every call failed, return the regex result with a warning
4. Post-process: prefer the regex issuer, drop debit outliers, flag
   out-of-period dates, cross-check the declared total, recompute totals

A failed endpoint call never raises out of this module; it becomes None
at the parse_with_llm boundary.
"""

import asyncio
import logging
import time
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from ledgerlens.categories.registry import get_category_by_name
from ledgerlens.models.options import LLMParseOptions
from ledgerlens.models.statement import (
    CREDIT_TYPES,
    ParsedStatementTransaction,
    StatementParseResult,
    StatementPeriod,
)
from ledgerlens.services.llm_client import LLMParseClient, LLMParseError
from ledgerlens.services.statement_parser import StatementParser
from ledgerlens.services.statement_preprocessor import (
    estimate_transaction_count,
    preprocess,
    starts_with_transaction_date,
)
from ledgerlens.utils.money import normalize_amount

logger = logging.getLogger(__name__)

LLM_CONFIDENCE = 0.88

LARGE_STATEMENT_TRANSACTIONS = 50
VERY_LARGE_STATEMENT_TRANSACTIONS = 500

CHUNK_SIZE = 50
MAX_CONSECUTIVE_FAILURES = 3

# Outlier filter (debit/fee only)
OUTLIER_MIN_TRANSACTIONS = 5
OUTLIER_MIN_DEBITS = 3
OUTLIER_MEDIAN_MULTIPLIER = 500
OUTLIER_ABSOLUTE_FLOOR = 500_000

PERIOD_BUFFER_DAYS = 7
OUT_OF_PERIOD_PENALTY = 0.3
OUT_OF_PERIOD_FLOOR = 0.3

TOTAL_ABSOLUTE_TOLERANCE = 1.0
TOTAL_RELATIVE_TOLERANCE = 0.05

REQUEST_KEY_PREFIX_CHARS = 200


def split_into_chunks(text: str, chunk_size: int = CHUNK_SIZE) -> Tuple[List[str], List[List[str]]]:
    """
    Split preprocessed statement text into transaction chunks.

    Lines before the first transaction date are the metadata section.
    A new chunk starts only on a line that begins with a transaction date,
    so a transaction's continuation lines always stay with it.

    Returns:
        (metadata_lines, chunks) where each chunk holds at most chunk_size
        date lines
    """
    lines = text.split('\n')

    metadata_end = 0
    for i, line in enumerate(lines):
        if starts_with_transaction_date(line):
            metadata_end = i
            break

    metadata_lines = lines[:metadata_end]
    chunks: List[List[str]] = []
    current: List[str] = []
    date_lines = 0

    for line in lines[metadata_end:]:
        if starts_with_transaction_date(line):
            date_lines += 1
            if date_lines > chunk_size and current:
                chunks.append(current)
                current = []
                date_lines = 1
        current.append(line)

    if current:
        chunks.append(current)

    return metadata_lines, chunks


def deduplicate_transactions(transactions: List[ParsedStatementTransaction]) -> List[ParsedStatementTransaction]:
    """Keep the first transaction per (date, vendor, amount, type)."""
    seen = set()
    result = []
    for tx in transactions:
        key = (tx.date, tx.vendor, tx.amount, tx.type)
        if key not in seen:
            seen.add(key)
            result.append(tx)
    return result


def filter_amount_outliers(transactions: List[ParsedStatementTransaction]) -> List[ParsedStatementTransaction]:
    """
    Drop debit/fee transactions with implausibly large amounts.

    Typically a running balance parsed as an amount. The threshold is
    500x the (upper) median debit amount, floored at 500,000. Credit-type
    transactions are never removed.
    """
    if len(transactions) < OUTLIER_MIN_TRANSACTIONS:
        return transactions

    debit_amounts = sorted(
        abs(t.amount) for t in transactions if t.type in ('debit', 'fee')
    )
    if len(debit_amounts) < OUTLIER_MIN_DEBITS:
        return transactions

    median = debit_amounts[len(debit_amounts) // 2]
    if median == 0:
        return transactions

    threshold = max(median * OUTLIER_MEDIAN_MULTIPLIER, OUTLIER_ABSOLUTE_FLOOR)

    kept = []
    for tx in transactions:
        if tx.type not in CREDIT_TYPES and abs(tx.amount) > threshold:
            logger.warning(
                "Filtering amount outlier",
                extra={
                    "vendor": tx.vendor,
                    "amount": tx.amount,
                    "median": median,
                    "threshold": threshold,
                }
            )
            continue
        kept.append(tx)
    return kept


def flag_out_of_period_dates(
    transactions: List[ParsedStatementTransaction],
    period_start: str,
    period_end: str
) -> int:
    """
    Lower confidence of transactions dated more than 7 days outside the period.

    Transactions are flagged in place, not removed. Unparseable dates are
    left alone.

    Returns:
        Number of flagged transactions
    """
    try:
        start = date.fromisoformat(period_start) - timedelta(days=PERIOD_BUFFER_DAYS)
        end = date.fromisoformat(period_end) + timedelta(days=PERIOD_BUFFER_DAYS)
    except ValueError:
        return 0

    flagged = 0
    for tx in transactions:
        try:
            tx_date = date.fromisoformat(tx.date)
        except ValueError:
            continue
        if tx_date < start or tx_date > end:
            tx.confidence = max(OUT_OF_PERIOD_FLOOR, tx.confidence - OUT_OF_PERIOD_PENALTY)
            flagged += 1
    return flagged


def mean_confidence(transactions: List[ParsedStatementTransaction]) -> float:
    """Mean transaction confidence; 0.0 for an empty list."""
    if not transactions:
        return 0.0
    return sum(t.confidence for t in transactions) / len(transactions)


def best_statement_period(a: StatementPeriod, b: StatementPeriod) -> StatementPeriod:
    if a.start and a.end:
        return a
    if b.start and b.end:
        return b
    return StatementPeriod(start=a.start or b.start, end=a.end or b.end)


def should_use_llm_fallback(
    regex_result: StatementParseResult,
    options: Optional[LLMParseOptions] = None
) -> bool:
    """Whether the regex result is weak enough to warrant an LLM pass."""
    options = options or LLMParseOptions()

    if options.regex_only:
        return False
    if options.force_llm:
        return True
    if regex_result.confidence < options.min_regex_confidence:
        return True
    if len(regex_result.transactions) < options.min_regex_transactions:
        return True
    if (
        regex_result.unparsed_line_count > 0
        and regex_result.unparsed_line_count > len(regex_result.transactions) * 2
    ):
        return True
    return False


class LLMStatementParser:
    """Service orchestrating LLM statement parsing around the regex parser."""

    def __init__(self, client: Optional[LLMParseClient] = None, categorizer=None):
        """
        Initialize LLM statement parser.

        Args:
            client: Parse endpoint client
            categorizer: AutoCategorizer applied to LLM transactions
        """
        self.client = client or LLMParseClient()
        self.categorizer = categorizer
        self._pending: Dict[str, asyncio.Future] = {}

    @staticmethod
    def _request_key(text: str, model_tier: str) -> str:
        return f"{text[:REQUEST_KEY_PREFIX_CHARS]}|{len(text)}|{model_tier}"

    def should_use_llm_fallback(
        self,
        regex_result: StatementParseResult,
        options: Optional[LLMParseOptions] = None
    ) -> bool:
        return should_use_llm_fallback(regex_result, options)

    # ------------------------------------------------------------------
    # Single endpoint call
    # ------------------------------------------------------------------

    async def parse_with_llm(
        self,
        text: str,
        issuer_hint: Optional[str] = None,
        currency_hint: Optional[str] = None,
        model_tier: str = 'primary'
    ) -> Optional[StatementParseResult]:
        """
        Parse statement text with one endpoint call.

        Concurrent calls with the same (text prefix, length, tier) key share
        one pending request. Each caller gets its own copy of the result.

        Returns:
            StatementParseResult, or None if the call failed
        """
        key = self._request_key(text, model_tier)
        pending = self._pending.get(key)
        if pending is not None:
            logger.debug("Deduplicating LLM request", extra={"tier": model_tier})
            result = await asyncio.shield(pending)
            return result.model_copy(deep=True) if result else None

        task = asyncio.ensure_future(
            self._parse_with_llm_impl(text, issuer_hint, currency_hint, model_tier)
        )
        self._pending[key] = task
        try:
            result = await task
        finally:
            if self._pending.get(key) is task:
                del self._pending[key]

        return result.model_copy(deep=True) if result else None

    async def _parse_with_llm_impl(
        self,
        text: str,
        issuer_hint: Optional[str],
        currency_hint: Optional[str],
        model_tier: str
    ) -> Optional[StatementParseResult]:
        started = time.perf_counter()

        try:
            body = await self.client.parse_statement(
                text,
                issuer_hint=issuer_hint,
                currency_hint=currency_hint,
                model_tier=model_tier,
            )
        except LLMParseError as e:
            logger.warning("LLM parse call failed", extra={"tier": model_tier, "error": str(e)})
            return None

        data = body.get('data')
        if not body.get('success') or not isinstance(data, dict):
            logger.warning(
                "LLM parse endpoint returned failure",
                extra={"tier": model_tier, "error": body.get('error')}
            )
            return None

        meta = body.get('meta')
        if not isinstance(meta, dict):
            meta = {}

        try:
            result = self._to_parse_result(data, meta, started)
        except (ValidationError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(
                "LLM parse response was malformed",
                extra={"tier": model_tier, "error": str(e)}
            )
            return None

        logger.info(
            "LLM parsed statement",
            extra={
                "tier": meta.get('tier', model_tier),
                "model": meta.get('model'),
                "transactions": len(result.transactions),
                "parsing_time_ms": round(result.parsing_time_ms, 1),
            }
        )
        return result

    def _to_parse_result(self, data: dict, meta: dict, started: float) -> StatementParseResult:
        run_id = int(time.time() * 1000)
        transactions = []

        for index, tx in enumerate(data.get('transactions') or []):
            tx_type = tx['type']
            magnitude = abs(float(tx['amount']))
            # Credits are negative in parsed transactions
            amount = normalize_amount(-magnitude if tx_type in CREDIT_TYPES else magnitude)
            category_id, category_name = self._categorize(
                tx['vendor'], magnitude, tx_type, tx.get('category')
            )
            transactions.append(ParsedStatementTransaction(
                id=f"llm-{run_id}-{index}",
                date=tx['date'],
                vendor=tx['vendor'],
                amount=amount,
                type=tx_type,
                category=category_id,
                suggested_category_name=category_name,
                raw_line=f"[LLM-{index + 1}] {tx['date']} {tx['vendor']} {tx['amount']}",
                confidence=LLM_CONFIDENCE,
            ))

        period = data.get('statementPeriod')
        if not isinstance(period, dict):
            period = {}

        return StatementParseResult(
            document_type='statement',
            issuer=data.get('issuer') or 'Unknown',
            account_last4=data.get('accountLast4'),
            statement_period=StatementPeriod(start=period.get('start'), end=period.get('end')),
            transactions=transactions,
            totals=StatementParser.calculate_totals(transactions),
            currency=data.get('currency') or '',
            confidence=mean_confidence(transactions),
            parsing_time_ms=(time.perf_counter() - started) * 1000,
            unparsed_line_count=0,
            warnings=[f"Parsed using AI ({meta.get('model') or 'Gemini'})"],
        )

    def _categorize(
        self,
        vendor: str,
        amount: float,
        tx_type: str,
        llm_category: Optional[str]
    ) -> Tuple[Optional[str], Optional[str]]:
        """Learned mapping > LLM category > keyword rule."""
        suggestion = None
        if self.categorizer is not None:
            suggestion = self.categorizer.suggest_category(
                vendor, amount=amount, transaction_type=tx_type
            )

        if suggestion and suggestion.is_learned and suggestion.learned_category_id:
            return suggestion.learned_category_id, None
        if llm_category:
            canonical = get_category_by_name(llm_category)
            return None, canonical.name if canonical else llm_category
        if suggestion:
            return None, suggestion.category_name
        return None, None

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    async def parse_with_llm_first(
        self,
        text: str,
        regex_result: StatementParseResult,
        options: Optional[LLMParseOptions] = None
    ) -> StatementParseResult:
        """
        Parse with the LLM first, falling back to the regex result.

        Args:
            text: Statement text (preprocessed again here; preprocess is idempotent)
            regex_result: StatementParser result for the same text
            options: LLM parse options

        Returns:
            Always a StatementParseResult; on total failure the regex result
            with an explanatory warning
        """
        options = options or LLMParseOptions()
        if options.regex_only:
            return regex_result

        preprocessed = preprocess(text)
        regex_count = len(regex_result.transactions)
        estimated = max(regex_count, estimate_transaction_count(preprocessed))
        issuer_hint = regex_result.issuer if regex_result.issuer != 'Unknown' else None
        currency_hint = regex_result.currency

        logger.info(
            "LLM-first parsing",
            extra={
                "regex_transactions": regex_count,
                "regex_confidence": round(regex_result.confidence, 2),
                "estimated_transactions": estimated,
                "chars": len(preprocessed),
            }
        )

        if estimated >= VERY_LARGE_STATEMENT_TRANSACTIONS:
            chunked = await self.parse_in_chunks(preprocessed, regex_result)
            if chunked:
                return self.post_process(chunked, regex_result)
            logger.warning("Chunked LLM parsing failed, using regex result")
            return self._with_warning(
                regex_result, 'AI chunked parsing failed. Using pattern-matching results only.'
            )

        if estimated >= LARGE_STATEMENT_TRANSACTIONS:
            llm_result = await self.parse_with_llm(preprocessed, issuer_hint, currency_hint, 'large')
        else:
            llm_result = await self.parse_with_llm(preprocessed, issuer_hint, currency_hint, 'primary')

            expected = max(options.min_expected_transactions, regex_count)
            if llm_result and len(llm_result.transactions) < expected:
                logger.info(
                    "Primary model returned too few transactions, retrying",
                    extra={"transactions": len(llm_result.transactions), "expected": expected}
                )
                retry_result = await self.parse_with_llm(preprocessed, issuer_hint, currency_hint, 'retry')
                if retry_result and len(retry_result.transactions) > len(llm_result.transactions):
                    llm_result = retry_result
                    llm_result.warnings.append('Upgraded to smarter AI model for better accuracy')

        if llm_result is None:
            logger.info("First LLM tier failed, trying retry tier")
            llm_result = await self.parse_with_llm(preprocessed, issuer_hint, currency_hint, 'retry')

        if llm_result is None:
            logger.warning("All LLM calls failed, using regex result")
            return self._with_warning(
                regex_result, 'AI parsing failed. Using pattern-matching results only.'
            )

        return self.post_process(llm_result, regex_result)

    async def parse_with_fallback(
        self,
        text: str,
        regex_result: StatementParseResult,
        options: Optional[LLMParseOptions] = None
    ) -> StatementParseResult:
        """LLM pass only when the regex result looks weak."""
        if not self.should_use_llm_fallback(regex_result, options):
            return regex_result
        return await self.parse_with_llm_first(text, regex_result, options)

    async def parse_in_chunks(
        self,
        preprocessed_text: str,
        regex_result: StatementParseResult
    ) -> Optional[StatementParseResult]:
        """
        Parse a very large statement chunk by chunk.

        Chunks run sequentially on the primary tier, each prefixed with the
        metadata section. Processing stops after 3 consecutive chunk
        failures. Merged transactions are deduplicated.

        Returns:
            Merged result, or None if no chunk produced transactions
        """
        started = time.perf_counter()
        metadata_lines, chunks = split_into_chunks(preprocessed_text)
        issuer_hint = regex_result.issuer if regex_result.issuer != 'Unknown' else None

        logger.info("Split statement into chunks", extra={"chunks": len(chunks), "chunk_size": CHUNK_SIZE})

        all_transactions: List[ParsedStatementTransaction] = []
        chunk_warnings: List[str] = []
        issuer = regex_result.issuer
        account_last4 = regex_result.account_last4
        currency = regex_result.currency
        statement_period = regex_result.statement_period
        consecutive_failures = 0

        for i, chunk in enumerate(chunks):
            chunk_text = '\n'.join(metadata_lines + chunk)
            logger.debug(
                "Processing chunk",
                extra={"chunk": i + 1, "chunks": len(chunks), "chars": len(chunk_text)}
            )

            result = await self.parse_with_llm(chunk_text, issuer_hint, regex_result.currency, 'primary')

            if result:
                all_transactions.extend(result.transactions)
                chunk_warnings.extend(result.warnings)
                consecutive_failures = 0

                if i == 0:
                    if result.issuer and result.issuer != 'Unknown':
                        issuer = result.issuer
                    account_last4 = result.account_last4 or account_last4
                    currency = result.currency or currency
                    if result.statement_period.start or result.statement_period.end:
                        statement_period = result.statement_period
                continue

            consecutive_failures += 1
            chunk_warnings.append(f"Chunk {i + 1} failed to parse; some transactions may be missing.")

            if consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
                skipped = len(chunks) - i - 1
                logger.warning(
                    "Too many consecutive chunk failures, aborting",
                    extra={"chunk": i + 1, "skipped_chunks": skipped}
                )
                chunk_warnings.append(
                    f"Stopped after {MAX_CONSECUTIVE_FAILURES} consecutive API failures. "
                    f"{skipped} chunk(s) skipped."
                )
                break

        if not all_transactions:
            return None

        deduped = deduplicate_transactions(all_transactions)

        return StatementParseResult(
            document_type='statement',
            issuer=issuer or 'Unknown',
            account_last4=account_last4,
            statement_period=statement_period,
            transactions=deduped,
            totals=StatementParser.calculate_totals(deduped),
            currency=currency,
            confidence=mean_confidence(deduped),
            parsing_time_ms=(time.perf_counter() - started) * 1000,
            unparsed_line_count=0,
            warnings=[f"Parsed using chunked AI processing ({len(chunks)} chunks)"] + chunk_warnings,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def post_process(
        self,
        llm_result: StatementParseResult,
        regex_result: StatementParseResult
    ) -> StatementParseResult:
        """
        Validate an LLM result and merge regex metadata into it.

        Returns a new result; llm_result is not modified.
        """
        merged = llm_result.model_copy(deep=True)

        if regex_result.issuer and regex_result.issuer != 'Unknown':
            merged.issuer = regex_result.issuer
        elif not merged.issuer:
            merged.issuer = regex_result.issuer or 'Unknown'
        merged.account_last4 = llm_result.account_last4 or regex_result.account_last4
        merged.statement_period = best_statement_period(
            llm_result.statement_period, regex_result.statement_period
        )
        merged.currency = llm_result.currency or regex_result.currency

        filtered = filter_amount_outliers(merged.transactions)
        removed = len(merged.transactions) - len(filtered)
        if removed:
            merged.transactions = filtered
            merged.warnings.append(f"{removed} suspicious transaction(s) removed by validation.")

        period = merged.statement_period
        if period.start and period.end:
            flagged = flag_out_of_period_dates(merged.transactions, period.start, period.end)
            if flagged:
                merged.warnings.append(
                    f"{flagged} transaction(s) have dates outside the statement period. Please review."
                )

        totals = StatementParser.calculate_totals(merged.transactions)

        statement_total = regex_result.totals.statement_total
        if statement_total is not None:
            totals.statement_total = statement_total
            diff = abs(totals.total_debits - statement_total)
            if diff > TOTAL_ABSOLUTE_TOLERANCE and (
                statement_total == 0 or diff / abs(statement_total) > TOTAL_RELATIVE_TOLERANCE
            ):
                merged.warnings.append(
                    f"Parsed debit total ({totals.total_debits:.2f}) differs from statement total "
                    f"({statement_total:.2f}) by {diff:.2f}. Please verify."
                )

        if regex_result.transactions:
            merged.warnings.append(
                f"AI found {len(merged.transactions)} transactions vs "
                f"{len(regex_result.transactions)} from pattern matching."
            )

        merged.totals = totals
        merged.confidence = mean_confidence(merged.transactions)
        return merged

    @staticmethod
    def _with_warning(result: StatementParseResult, warning: str) -> StatementParseResult:
        return result.model_copy(update={"warnings": result.warnings + [warning]})

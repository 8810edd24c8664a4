"""
Test suite for statement text preprocessing.

Tests cover:
- Page noise and balance-forward removal
- Repeated header/footer detection with metadata preservation
- Multi-line layout detection and joining
- Idempotence
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ledgerlens.services.statement_preprocessor import (
    detect_multi_line_format,
    detect_repeated_lines,
    estimate_transaction_count,
    join_multi_line_transactions,
    preprocess,
    starts_with_transaction_date,
)

SINGLE_LINE_STATEMENT = """JOHN DOE
Statement of Account
DATE PARTICULARS WITHDRAWALS DEPOSITS BALANCE
01-01-2025 Opening Balance 5,000.00
02-01-2025 UPI/swiggy@ybl/Food 250.00 4,750.00
Page 1 of 3
JOHN DOE
05-01-2025 NEFT/ACME CORP/SALARY 50,000.00 54,750.00

Page 2 of 3
JOHN DOE
07-01-2025 ATM WDL 2,000.00 52,750.00
Page 3 of 3
"""

MULTI_LINE_STATEMENT = """Statement of Account
01-01-2025
UPI/VIACOM18ONLINE@/Subscription De/YES
29.00 3,73,088.44
02-01-2025
UPI/SWIGGY@YBL/Dinner
450.00 3,72,638.44
03-01-2025
NEFT/ACME CORP/SALARY
50,000.00 4,22,638.44
04-01-2025
ATM WDL MG ROAD
2,000.00 4,20,638.44
05-01-2025
ACH/HDFC MUTUAL FUND
5,000.00 4,15,638.44
06-01-2025
POS ZEPTO MARKETPLACE
812.00 4,14,826.44
"""


class TestNoiseRemoval:
    """Test page chrome and balance line stripping."""

    def test_page_numbers_and_blank_lines_removed(self):
        result = preprocess(SINGLE_LINE_STATEMENT)
        assert 'Page' not in result
        assert '' not in result.split('\n')

    def test_repeated_line_kept_once_in_metadata(self):
        lines = preprocess(SINGLE_LINE_STATEMENT).split('\n')
        assert lines.count('JOHN DOE') == 1
        assert lines[0] == 'JOHN DOE'

    def test_balance_forward_removed(self):
        result = preprocess(SINGLE_LINE_STATEMENT)
        assert 'Opening Balance' not in result
        assert '02-01-2025 UPI/swiggy@ybl/Food 250.00 4,750.00' in result

    def test_column_header_removed(self):
        assert 'WITHDRAWALS' not in preprocess(SINGLE_LINE_STATEMENT)

    def test_detect_repeated_lines(self):
        repeated = detect_repeated_lines(SINGLE_LINE_STATEMENT.split('\n'))
        assert 'JOHN DOE' in repeated
        assert not any(line.startswith('0') for line in repeated)


class TestMultiLine:
    """Test multi-line transaction joining."""

    def test_detected(self):
        assert detect_multi_line_format(MULTI_LINE_STATEMENT.split('\n')) is True
        assert detect_multi_line_format(SINGLE_LINE_STATEMENT.split('\n')) is False

    def test_joined(self):
        lines = preprocess(MULTI_LINE_STATEMENT).split('\n')
        assert lines[0] == 'Statement of Account'
        assert lines[1] == '01-01-2025 UPI/VIACOM18ONLINE@/Subscription De/YES 29.00 3,73,088.44'
        assert len(lines) == 7

    def test_estimate_transaction_count(self):
        assert estimate_transaction_count(preprocess(MULTI_LINE_STATEMENT)) == 6

    def test_join_keeps_leading_lines(self):
        joined = join_multi_line_transactions(['Header', '01-01-2025', 'Coffee', '5.00', '', 'tail'])
        assert joined == ['Header', '01-01-2025 Coffee 5.00 tail']


class TestIdempotence:
    """preprocess(preprocess(x)) == preprocess(x)."""

    def test_single_line(self):
        once = preprocess(SINGLE_LINE_STATEMENT)
        assert preprocess(once) == once

    def test_multi_line(self):
        once = preprocess(MULTI_LINE_STATEMENT)
        assert preprocess(once) == once

    def test_empty(self):
        assert preprocess('') == ''
        assert preprocess(preprocess('')) == ''


class TestTransactionDatePattern:
    """Test transaction line starts."""

    def test_formats(self):
        assert starts_with_transaction_date('01-01-2025 Coffee')
        assert starts_with_transaction_date('2025-01-01 Coffee')
        assert starts_with_transaction_date('  15 Jan 2025 Coffee')
        assert not starts_with_transaction_date('Coffee 01-01-2025')

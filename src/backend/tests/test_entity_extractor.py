"""
Test suite for single-document entity extraction.

Tests cover:
- Date patterns and day/month disambiguation
- Amount patterns, total preference and value deduplication
- Vendor keyword, corporate-suffix and first-line heuristics
- Currency detection and description generation
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ledgerlens.models.options import EntityExtractionOptions
from ledgerlens.services.entity_extractor import EntityExtractor
import pytest

CAFE_RECEIPT = """BLUE TOKAI COFFEE ROASTERS
Indiranagar Road, Bengaluru
Date: 2025-03-14
Merchant: Blue Tokai Coffee
Cappuccino 1 220.00
Croissant 1 180.00
Subtotal: ₹400.00
Discount: ₹20.00
Grand Total: ₹380.00
Thank you for visiting!
"""


@pytest.fixture
def extractor():
    return EntityExtractor()


class TestExtract:
    """Test full extraction on a realistic receipt."""

    def test_cafe_receipt(self, extractor):
        entities = extractor.extract(CAFE_RECEIPT)

        assert entities.date.value == '2025-03-14'
        assert entities.amount.value == 380.0
        assert entities.amount.source == 'Grand Total: ₹380.00'
        assert entities.vendor.value == 'Blue Tokai Coffee'
        assert entities.vendor.source == 'Vendor keyword'
        assert entities.currency == 'INR'
        assert entities.description.startswith('BLUE TOKAI COFFEE ROASTERS | Indiranagar Road')

    def test_all_amounts_are_ranked(self, extractor):
        entities = extractor.extract(CAFE_RECEIPT)
        values = [a.value for a in entities.all_amounts]

        assert {380.0, 400.0, 20.0, 220.0, 180.0} <= set(values)
        assert len(values) == len(set(values))
        confidences = [a.confidence for a in entities.all_amounts]
        assert confidences == sorted(confidences, reverse=True)

    def test_extraction_is_deterministic(self, extractor):
        assert extractor.extract(CAFE_RECEIPT) == extractor.extract(CAFE_RECEIPT)

    def test_empty_document(self, extractor):
        entities = extractor.extract("hello")
        assert entities.date is None
        assert entities.amount is None
        assert entities.vendor is None
        assert entities.currency == 'INR'
        assert entities.description == 'hello'

    def test_default_currency_option(self, extractor):
        entities = extractor.extract("no money here", EntityExtractionOptions(default_currency='EUR'))
        assert entities.currency == 'EUR'

    def test_all_amounts_can_be_disabled(self, extractor):
        entities = extractor.extract(CAFE_RECEIPT, EntityExtractionOptions(extract_all_amounts=False))
        assert entities.all_amounts == []
        assert entities.amount.value == 380.0


class TestExtractDates:
    """Test date patterns."""

    def test_iso_date(self, extractor):
        dates = extractor.extract_dates("Invoice date: 2025-01-15")
        assert dates[0].value == '2025-01-15'

    def test_month_name(self, extractor):
        assert extractor.extract_dates("Issued January 15, 2025")[0].value == '2025-01-15'
        assert extractor.extract_dates("Issued 15-Jan-2025")[0].value == '2025-01-15'

    def test_ambiguous_numeric_follows_preference(self, extractor):
        assert extractor.extract_dates("03/04/2025", prefer_dd_mm=True)[0].value == '2025-04-03'
        assert extractor.extract_dates("03/04/2025", prefer_dd_mm=False)[0].value == '2025-03-04'

    def test_unambiguous_numeric_ignores_preference(self, extractor):
        assert extractor.extract_dates("25/12/2024", prefer_dd_mm=False)[0].value == '2024-12-25'

    def test_dotted_is_day_first(self, extractor):
        assert extractor.extract_dates("14.03.2025", prefer_dd_mm=False)[0].value == '2025-03-14'

    def test_future_and_impossible_dates_dropped(self, extractor):
        assert extractor.extract_dates("2099-01-01") == []
        assert extractor.extract_dates("2025-02-30") == []

    def test_duplicate_dates_collapse(self, extractor):
        dates = extractor.extract_dates("2025-01-15 and again 2025-01-15")
        assert len(dates) == 1


class TestExtractAmounts:
    """Test amount patterns and selection."""

    def test_same_value_deduplicated(self, extractor):
        amounts = extractor.extract_amounts("Total: $25.00\nPaid: $25.00")
        assert [a.value for a in amounts] == [25.0]

    def test_total_beats_larger_line_item(self, extractor):
        entities = extractor.extract("Laptop 900.00\nTotal: 450.00")
        assert entities.amount.value == 450.0

    def test_euro_grouping(self, extractor):
        amounts = extractor.extract_amounts("Summe €1.234,56")
        assert 1234.56 in [a.value for a in amounts]

    def test_lakh_grouping(self, extractor):
        amounts = extractor.extract_amounts("Net Payable: ₹1,23,456.78")
        assert amounts[0].value == 123456.78

    def test_amount_bounds(self, extractor):
        assert extractor.extract_amounts("Total: $5,000,000.00") == []


class TestExtractVendors:
    """Test vendor heuristics."""

    def test_corporate_suffix(self, extractor):
        vendor = extractor.extract_vendors("Acme Widgets Inc\nInvoice #123")
        assert vendor.value == 'Acme Widgets Inc'
        assert vendor.source == 'Corporate suffix'

    def test_all_caps_first_line(self, extractor):
        vendor = extractor.extract_vendors("CORNER MART\n12 Main St\nMilk 2.50")
        assert vendor.value == 'CORNER MART'

    def test_excluded_words_are_not_vendors(self, extractor):
        assert extractor.extract_vendors("RECEIPT\nTOTAL") is None

    def test_position_recorded(self, extractor):
        text = "Paid to Sharma Traders\n"
        vendor = extractor.extract_vendors(text)
        assert vendor.value == 'Sharma Traders'
        assert vendor.position.start == 0


class TestDetectCurrency:
    """Test currency detection precedence."""

    @pytest.mark.parametrize("text,expected", [
        ("Rs. 500", 'INR'),
        ("₹500", 'INR'),
        ("GSTIN: 29ABCDE1234F1Z5 total 10 USD", 'INR'),
        ("Amount 40 usd", 'USD'),
        ("€5 €6 $1", 'EUR'),
        ("nothing", None),
    ])
    def test_currency(self, extractor, text, expected):
        assert extractor.detect_currency(text) == expected


class TestGenerateDescription:
    """Test description lines."""

    def test_skips_totals_and_numbers(self, extractor):
        text = "Corner Mart\n12.50\nTotal: 12.50\nFresh produce and dairy"
        assert extractor.generate_description(text) == 'Corner Mart | Fresh produce and dairy'

    def test_fallback(self, extractor):
        assert extractor.generate_description("") == 'No description available'

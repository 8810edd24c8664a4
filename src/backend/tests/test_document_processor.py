"""
Test suite for the document processing pipeline.

Text extraction is replaced with an in-memory fake so the pipeline can be
driven from plain text.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import asyncio
from unittest.mock import AsyncMock

from ledgerlens.config import settings
from ledgerlens.models.document import ExtractedText, ProcessedDocument
from ledgerlens.models.entities import ExtractedEntities
from ledgerlens.services.auto_categorizer import AutoCategorizer
from ledgerlens.services.document_processor import (
    MAX_PENDING_CANCELS,
    DocumentProcessor,
    ProcessingCancelledError,
    UnsupportedDocumentError,
)
from ledgerlens.services.statement_parser import StatementParser
import pytest

RECEIPT_TEXT = """BLUE TOKAI COFFEE ROASTERS
Receipt #1042
Date: 2025-03-14
Merchant: Blue Tokai Coffee
Cappuccino 1 220.00
Subtotal: ₹220.00
Tax: ₹11.00
Grand Total: ₹231.00
"""

STATEMENT_TEXT = """CHASE SAPPHIRE CARD
Credit Card Statement
Statement Period: 12/15/2025 to 01/14/2026
Account Number: XXXX XXXX XXXX 4821
01/05 AMAZON MARKETPLACE $500.00
01/08 WHOLE FOODS MARKET $432.45
01/10 UNITED AIRLINES $100.00
"""

PDF_BYTES = b"%PDF-1.4 fake"


class FakeTextExtractor:
    """Returns canned text; optionally runs a hook or fails."""

    def __init__(self, text="", used_ocr=False, on_extract=None, error=None):
        self.text = text
        self.used_ocr = used_ocr
        self.on_extract = on_extract
        self.error = error
        self.calls = 0

    def extract(self, file_data, mime_type, file_name=""):
        self.calls += 1
        if self.on_extract:
            self.on_extract()
        if self.error:
            raise self.error
        return ExtractedText(text=self.text, pages=[self.text], used_ocr=self.used_ocr)


def make_processor(extractor, llm_parser=None):
    return DocumentProcessor(
        text_extractor=extractor,
        statement_parser=StatementParser(AutoCategorizer()),
        llm_parser=llm_parser,
    )


def record_events(processor):
    events = []
    processor.subscribe(lambda event: events.append(event))
    return events


class TestValidateFile:
    """Test upload validation."""

    def test_supported_types(self):
        processor = make_processor(FakeTextExtractor())

        pdf = processor.validate_file("a.pdf", "APPLICATION/PDF", 10)
        assert pdf.is_valid is True
        assert pdf.file_type == 'pdf'
        assert pdf.mime_type == 'application/pdf'

        assert processor.validate_file("a.heic", "image/heic", 10).file_type == 'image'

    def test_empty_file(self):
        result = make_processor(FakeTextExtractor()).validate_file("a.pdf", "application/pdf", 0)
        assert result.is_valid is False
        assert result.error == "File is empty"

    def test_unsupported_type(self):
        result = make_processor(FakeTextExtractor()).validate_file("a.txt", "text/plain", 10)
        assert result.is_valid is False
        assert result.error.startswith("Unsupported file type: text/plain")

    def test_too_large(self, monkeypatch):
        monkeypatch.setattr(settings, 'MAX_UPLOAD_MB', 1)
        result = make_processor(FakeTextExtractor()).validate_file("a.pdf", "application/pdf", 2 * 1024 * 1024)
        assert result.is_valid is False
        assert result.error == "File too large. Maximum size is 1MB"


class TestProcessDocument:
    """Test the receipt and statement paths."""

    def test_receipt(self):
        processor = make_processor(FakeTextExtractor(RECEIPT_TEXT))
        document = asyncio.run(processor.process_document(PDF_BYTES, "receipt.pdf", "application/pdf"))

        assert document.document_type == 'receipt'
        assert document.statement is None
        assert document.entities.amount.value == 231.0
        assert document.entities.date.value == '2025-03-14'
        assert document.validation is not None
        assert 0 < document.quality_score <= 100
        assert document.page_count == 1

        fields = [document.entities.date, document.entities.amount, document.entities.vendor]
        assert document.confidence == pytest.approx(sum(f.confidence for f in fields) / 3)

    def test_ocr_lowers_confidence(self):
        plain = asyncio.run(make_processor(FakeTextExtractor(RECEIPT_TEXT)).process_document(
            PDF_BYTES, "receipt.pdf", "application/pdf"
        ))
        scanned = asyncio.run(make_processor(FakeTextExtractor(RECEIPT_TEXT, used_ocr=True)).process_document(
            PDF_BYTES, "receipt.jpg", "image/jpeg"
        ))
        assert scanned.used_ocr is True
        assert scanned.confidence == pytest.approx(plain.confidence * 0.9)

    def test_statement(self):
        processor = make_processor(FakeTextExtractor(STATEMENT_TEXT))
        document = asyncio.run(processor.process_document(PDF_BYTES, "stmt.pdf", "application/pdf"))

        assert document.document_type == 'statement'
        assert document.entities is None
        assert len(document.statement.transactions) == 3
        assert document.confidence == document.statement.confidence

    def test_statement_with_llm(self):
        llm_parser = AsyncMock()
        llm_parser.parse_with_llm_first.side_effect = \
            lambda text, regex_result, options: regex_result.model_copy(update={'warnings': ['Parsed using AI (test)']})
        processor = make_processor(FakeTextExtractor(STATEMENT_TEXT), llm_parser)

        document = asyncio.run(processor.process_document(
            PDF_BYTES, "stmt.pdf", "application/pdf", use_llm=True
        ))

        llm_parser.parse_with_llm_first.assert_awaited_once()
        assert document.statement.warnings == ['Parsed using AI (test)']

    def test_llm_not_used_unless_requested(self):
        llm_parser = AsyncMock()
        processor = make_processor(FakeTextExtractor(STATEMENT_TEXT), llm_parser)
        asyncio.run(processor.process_document(PDF_BYTES, "stmt.pdf", "application/pdf"))
        llm_parser.parse_with_llm_first.assert_not_called()

    def test_no_entities_confidence(self):
        document = ProcessedDocument(
            id='d', file_name='f', mime_type='image/png', document_type='unknown',
            raw_text='', page_count=0, entities=ExtractedEntities(),
        )
        assert DocumentProcessor._entity_confidence(document) == 0.3

    def test_invalid_file_raises(self):
        processor = make_processor(FakeTextExtractor(RECEIPT_TEXT))
        with pytest.raises(UnsupportedDocumentError, match="Unsupported file type"):
            asyncio.run(processor.process_document(b"data", "notes.txt", "text/plain"))


class TestProgressEvents:
    """Test observer notifications."""

    def test_stage_sequence(self):
        processor = make_processor(FakeTextExtractor(RECEIPT_TEXT))
        events = record_events(processor)
        document = asyncio.run(processor.process_document(
            PDF_BYTES, "receipt.pdf", "application/pdf", document_id='doc-1'
        ))

        assert [(e.stage, e.progress) for e in events] == [
            ('validating', 0), ('validating', 100),
            ('extracting', 0), ('extracting', 100),
            ('classifying', 0), ('classifying', 100),
            ('parsing', 0), ('parsing', 100),
            ('scoring', 0), ('scoring', 100),
            ('complete', 100),
        ]
        assert {e.document_id for e in events} == {'doc-1'}
        assert document.id == 'doc-1'

    def test_unsubscribe(self):
        processor = make_processor(FakeTextExtractor(RECEIPT_TEXT))
        events = []
        unsubscribe = processor.subscribe(events.append)
        unsubscribe()
        unsubscribe()

        asyncio.run(processor.process_document(PDF_BYTES, "receipt.pdf", "application/pdf"))
        assert events == []

    def test_failing_observer_does_not_stop_pipeline(self):
        processor = make_processor(FakeTextExtractor(RECEIPT_TEXT))

        def broken(event):
            raise RuntimeError("observer bug")

        processor.subscribe(broken)
        events = record_events(processor)

        document = asyncio.run(processor.process_document(PDF_BYTES, "receipt.pdf", "application/pdf"))
        assert document.document_type == 'receipt'
        assert events[-1].stage == 'complete'

    def test_error_event_and_reraise(self):
        processor = make_processor(FakeTextExtractor(error=RuntimeError("disk on fire")))
        events = record_events(processor)

        with pytest.raises(RuntimeError, match="disk on fire"):
            asyncio.run(processor.process_document(PDF_BYTES, "receipt.pdf", "application/pdf"))

        assert events[-1].stage == 'error'
        assert events[-1].error == "disk on fire"


class TestCancellation:
    """Test cooperative cancellation between stages."""

    def test_cancel_before_start(self):
        processor = make_processor(FakeTextExtractor(RECEIPT_TEXT))
        events = record_events(processor)

        assert processor.cancel('doc-1') is False
        with pytest.raises(ProcessingCancelledError):
            asyncio.run(processor.process_document(
                PDF_BYTES, "receipt.pdf", "application/pdf", document_id='doc-1'
            ))

        assert [e.stage for e in events] == ['validating', 'error']
        assert processor.text_extractor.calls == 0
        assert processor._tokens == {}
        assert len(processor._pending_cancels) == 0

    def test_unknown_ids_do_not_accumulate(self):
        """Cancels for ids that never start processing are capped."""
        processor = make_processor(FakeTextExtractor(RECEIPT_TEXT))

        for i in range(MAX_PENDING_CANCELS + 50):
            assert processor.cancel(f"missing-{i}") is False

        assert processor._tokens == {}
        assert len(processor._pending_cancels) == MAX_PENDING_CANCELS
        assert "missing-0" not in processor._pending_cancels
        assert f"missing-{MAX_PENDING_CANCELS + 49}" in processor._pending_cancels

    def test_cancel_after_finish_is_not_kept_in_flight(self):
        processor = make_processor(FakeTextExtractor(RECEIPT_TEXT))
        asyncio.run(processor.process_document(
            PDF_BYTES, "receipt.pdf", "application/pdf", document_id='doc-done'
        ))

        assert processor.cancel('doc-done') is False
        assert processor._tokens == {}

    def test_cancel_during_extraction(self):
        cancelled = []
        extractor = FakeTextExtractor(RECEIPT_TEXT)
        processor = make_processor(extractor)
        extractor.on_extract = lambda: cancelled.append(processor.cancel('doc-2'))
        events = record_events(processor)

        with pytest.raises(ProcessingCancelledError):
            asyncio.run(processor.process_document(
                PDF_BYTES, "receipt.pdf", "application/pdf", document_id='doc-2'
            ))

        assert cancelled == [True]
        stages = [e.stage for e in events]
        assert 'classifying' not in stages
        assert stages[-1] == 'error'

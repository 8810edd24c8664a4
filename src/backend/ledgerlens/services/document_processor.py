"""
Document processing pipeline.

validating -> extracting -> classifying -> parsing -> scoring -> complete

Receipts and invoices go through the entity extractor; statements through
the statement parser (and the LLM parser when requested). Observers get a
ProcessingProgress event at every stage. Cancellation is checked between
stages and aborts with ProcessingCancelledError.
"""

import asyncio
import logging
import time
import uuid
from collections import OrderedDict
from typing import Callable, Dict, List, Optional

from ledgerlens.config import settings
from ledgerlens.models.document import FileValidation, ProcessedDocument, ProcessingProgress
from ledgerlens.models.options import EntityExtractionOptions, LLMParseOptions, StatementParserOptions
from ledgerlens.services.entity_extractor import EntityExtractor
from ledgerlens.services.entity_validator import calculate_quality_score, validate_entities
from ledgerlens.services.statement_parser import StatementParser
from ledgerlens.services.statement_preprocessor import preprocess
from ledgerlens.services.text_extraction import TextExtractionService

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = {
    'application/pdf': 'pdf',
    'image/jpeg': 'image',
    'image/jpg': 'image',
    'image/png': 'image',
    'image/webp': 'image',
    'image/heic': 'image',
    'image/heif': 'image',
}

NO_ENTITY_CONFIDENCE = 0.3
OCR_CONFIDENCE_FACTOR = 0.9

# Cancels for ids not yet being processed; oldest dropped first
MAX_PENDING_CANCELS = 256

ProgressObserver = Callable[[ProcessingProgress], None]


class DocumentProcessingError(Exception):
    """Base error for the document pipeline."""


class ProcessingCancelledError(DocumentProcessingError):
    pass


class UnsupportedDocumentError(DocumentProcessingError):
    """File failed validation (type, size, empty)."""


class CancellationToken:
    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ProcessingCancelledError("Processing cancelled")


class DocumentProcessor:
    """Service orchestrating extraction and parsing of one uploaded document."""

    def __init__(
        self,
        text_extractor: Optional[TextExtractionService] = None,
        entity_extractor: Optional[EntityExtractor] = None,
        statement_parser: Optional[StatementParser] = None,
        llm_parser=None
    ):
        """
        Initialize document processor.

        Args:
            text_extractor: File -> text service
            entity_extractor: Receipt/invoice entity extractor
            statement_parser: Regex statement parser
            llm_parser: Optional LLMStatementParser for statements
        """
        self.text_extractor = text_extractor or TextExtractionService()
        self.entity_extractor = entity_extractor or EntityExtractor()
        self.statement_parser = statement_parser or StatementParser()
        self.llm_parser = llm_parser
        self._observers: List[ProgressObserver] = []
        self._tokens: Dict[str, CancellationToken] = {}
        self._pending_cancels: "OrderedDict[str, CancellationToken]" = OrderedDict()

    def subscribe(self, observer: ProgressObserver) -> Callable[[], None]:
        """Register a progress observer; returns a function that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _emit(self, event: ProcessingProgress) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                logger.warning(
                    "Progress observer failed",
                    extra={"document_id": event.document_id, "stage": event.stage, "error": str(e)}
                )

    def validate_file(self, file_name: str, mime_type: Optional[str], size: int) -> FileValidation:
        """Check type, emptiness and the upload size limit."""
        max_bytes = settings.MAX_UPLOAD_MB * 1024 * 1024

        if size > max_bytes:
            return FileValidation(
                is_valid=False,
                error=f"File too large. Maximum size is {settings.MAX_UPLOAD_MB}MB",
            )
        if size == 0:
            return FileValidation(is_valid=False, error="File is empty")

        normalized = (mime_type or '').lower()
        file_type = SUPPORTED_MIME_TYPES.get(normalized)
        if file_type is None:
            return FileValidation(
                is_valid=False,
                error=f"Unsupported file type: {normalized or 'unknown'}. "
                      f"Supported types: PDF, JPEG, PNG, WebP, HEIC",
            )

        return FileValidation(is_valid=True, file_type=file_type, mime_type=normalized, size=size)

    def cancel(self, document_id: str) -> bool:
        """
        Cancel a document's processing.

        Returns True if the document was being processed. Cancelling an id
        before processing starts also takes effect; only the most recent
        MAX_PENDING_CANCELS such requests are remembered.
        """
        token = self._tokens.get(document_id)
        in_flight = token is not None
        if token is None:
            token = self._pending_cancels.pop(document_id, None) or CancellationToken()
            self._pending_cancels[document_id] = token
            while len(self._pending_cancels) > MAX_PENDING_CANCELS:
                self._pending_cancels.popitem(last=False)
        token.cancel()
        logger.info("Cancellation requested", extra={"document_id": document_id, "in_flight": in_flight})
        return in_flight

    async def process_document(
        self,
        file_data: bytes,
        file_name: str,
        mime_type: str,
        document_id: Optional[str] = None,
        use_llm: bool = False,
        statement_options: Optional[StatementParserOptions] = None,
        entity_options: Optional[EntityExtractionOptions] = None,
        llm_options: Optional[LLMParseOptions] = None
    ) -> ProcessedDocument:
        """
        Run the full pipeline for one file.

        Raises:
            UnsupportedDocumentError: if the file fails validation
            ProcessingCancelledError: if cancelled between stages
        """
        started = time.perf_counter()
        document_id = document_id or str(uuid.uuid4())
        token = (
            self._tokens.get(document_id)
            or self._pending_cancels.pop(document_id, None)
            or CancellationToken()
        )
        self._tokens[document_id] = token

        def report(stage: str, progress: int) -> None:
            self._emit(ProcessingProgress(
                document_id=document_id, file_name=file_name, stage=stage, progress=progress
            ))

        try:
            report('validating', 0)
            validation = self.validate_file(file_name, mime_type, len(file_data))
            if not validation.is_valid:
                raise UnsupportedDocumentError(validation.error)
            token.raise_if_cancelled()
            report('validating', 100)

            report('extracting', 0)
            extracted = await asyncio.to_thread(
                self.text_extractor.extract, file_data, validation.mime_type, file_name
            )
            token.raise_if_cancelled()
            report('extracting', 100)

            report('classifying', 0)
            detection = self.statement_parser.detect_document_type(extracted.text)
            token.raise_if_cancelled()
            report('classifying', 100)

            report('parsing', 0)
            document = ProcessedDocument(
                id=document_id,
                file_name=file_name,
                mime_type=validation.mime_type,
                document_type=detection.type,
                raw_text=extracted.text,
                page_count=extracted.page_count,
                used_ocr=extracted.used_ocr,
            )

            if detection.type == 'statement':
                document.statement = await self._parse_statement(
                    extracted.text, use_llm, statement_options, llm_options
                )
            else:
                document.entities = self.entity_extractor.extract(extracted.text, entity_options)
            token.raise_if_cancelled()
            report('parsing', 100)

            report('scoring', 0)
            if document.entities is not None:
                document.validation = validate_entities(document.entities)
                document.quality_score = calculate_quality_score(document.entities)
                document.confidence = self._entity_confidence(document)
            elif document.statement is not None:
                document.confidence = document.statement.confidence
            token.raise_if_cancelled()
            report('scoring', 100)

            document.processing_time_ms = (time.perf_counter() - started) * 1000
            report('complete', 100)

            logger.info(
                "Processed document",
                extra={
                    "document_id": document_id,
                    "document_type": document.document_type,
                    "used_ocr": document.used_ocr,
                    "processing_time_ms": round(document.processing_time_ms, 1),
                }
            )
            return document

        except Exception as e:
            self._emit(ProcessingProgress(
                document_id=document_id, file_name=file_name, stage='error', progress=0, error=str(e)
            ))
            raise
        finally:
            self._tokens.pop(document_id, None)

    async def _parse_statement(
        self,
        text: str,
        use_llm: bool,
        statement_options: Optional[StatementParserOptions],
        llm_options: Optional[LLMParseOptions]
    ):
        preprocessed = preprocess(text)
        regex_result = self.statement_parser.parse_statement(preprocessed, statement_options)
        if not use_llm or self.llm_parser is None:
            return regex_result
        return await self.llm_parser.parse_with_llm_first(preprocessed, regex_result, llm_options)

    @staticmethod
    def _entity_confidence(document: ProcessedDocument) -> float:
        entities = document.entities
        scores = [f.confidence for f in (entities.date, entities.amount, entities.vendor) if f]
        if not scores:
            return NO_ENTITY_CONFIDENCE
        average = sum(scores) / len(scores)
        return average * OCR_CONFIDENCE_FACTOR if document.used_ocr else average

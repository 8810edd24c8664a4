"""
Parse API router: statements, receipt/invoice text and file uploads.
"""

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile
from typing import Optional
import logging

from ledgerlens.models.api import ParseDocumentRequest, ParseDocumentResponse, ParseStatementRequest
from ledgerlens.models.document import ProcessedDocument
from ledgerlens.models.options import EntityExtractionOptions, LLMParseOptions, StatementParserOptions
from ledgerlens.models.statement import StatementParseResult
from ledgerlens.services.document_processor import ProcessingCancelledError, UnsupportedDocumentError
from ledgerlens.services.entity_validator import (
    calculate_quality_score,
    get_validation_summary,
    meets_quality_threshold,
    validate_entities,
)
from ledgerlens.services.statement_preprocessor import preprocess

router = APIRouter(prefix="/parse", tags=["parse"])
logger = logging.getLogger(__name__)


@router.post("/statement", response_model=StatementParseResult)
async def parse_statement(body: ParseStatementRequest, request: Request):
    """
    Parse bank or card statement text into transactions.

    With use_llm, the LLM parser runs first and the regex result is the
    fallback. With llm_fallback, the LLM runs only when the regex result
    looks weak; force_llm skips that check. Otherwise only the regex
    parser runs.
    """
    state = request.app.state
    options = StatementParserOptions()
    if body.default_currency:
        options.default_currency = body.default_currency.upper()
    if body.min_confidence is not None:
        options.min_confidence = body.min_confidence

    try:
        preprocessed = preprocess(body.text)
        result = state.statement_parser.parse_statement(preprocessed, options)

        if body.use_llm:
            result = await state.llm_parser.parse_with_llm_first(preprocessed, result)
        elif body.llm_fallback or body.force_llm:
            llm_options = LLMParseOptions(force_llm=body.force_llm)
            result = await state.llm_parser.parse_with_fallback(preprocessed, result, llm_options)

        return result

    except Exception as e:
        logger.error("Statement parsing failed", extra={"error": str(e)}, exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to parse statement: {str(e)}"
        )


@router.post("/document", response_model=ParseDocumentResponse)
async def parse_document(body: ParseDocumentRequest, request: Request):
    """Extract and validate date, amount and vendor from receipt or invoice text."""
    state = request.app.state
    options = EntityExtractionOptions()
    if body.default_currency:
        options.default_currency = body.default_currency.upper()

    try:
        detection = state.statement_parser.detect_document_type(body.text)
        entities = state.entity_extractor.extract(body.text, options)
        validation = validate_entities(entities)

        return ParseDocumentResponse(
            document_type=detection.type,
            entities=entities,
            validation=validation,
            quality_score=calculate_quality_score(entities),
            meets_quality_threshold=meets_quality_threshold(entities),
            summary=get_validation_summary(validation),
        )

    except Exception as e:
        logger.error("Document parsing failed", extra={"error": str(e)}, exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to parse document: {str(e)}"
        )


@router.post("/upload", response_model=ProcessedDocument)
async def parse_upload(
    request: Request,
    file: UploadFile = File(...),
    use_llm: bool = Form(False),
    document_id: Optional[str] = Form(None)
):
    """
    Run the full document pipeline on an uploaded PDF or image.

    Returns 400 for files that fail validation and 409 if processing was
    cancelled through DELETE /parse/upload/{document_id}.
    """
    processor = request.app.state.document_processor
    file_data = await file.read()

    try:
        return await processor.process_document(
            file_data,
            file_name=file.filename or "upload",
            mime_type=file.content_type or "",
            document_id=document_id,
            use_llm=use_llm,
        )

    except UnsupportedDocumentError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ProcessingCancelledError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error("Upload processing failed", extra={
            "file_name": file.filename,
            "error": str(e)
        }, exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to process document: {str(e)}"
        )


@router.delete("/upload/{document_id}")
async def cancel_upload(document_id: str, request: Request):
    """Request cancellation of an in-flight upload."""
    in_flight = request.app.state.document_processor.cancel(document_id)
    return {"document_id": document_id, "cancelled": True, "in_flight": in_flight}

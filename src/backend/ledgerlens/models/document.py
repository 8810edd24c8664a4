"""
Pydantic models for the document processing pipeline.
"""

from pydantic import BaseModel
from typing import List, Literal, Optional

from ledgerlens.models.entities import ExtractedEntities, ValidationResult
from ledgerlens.models.statement import DocumentType, StatementParseResult

ProcessingStage = Literal[
    'validating', 'extracting', 'classifying', 'parsing', 'scoring', 'complete', 'error'
]


class ExtractedText(BaseModel):
    """Text pulled from an uploaded file."""
    text: str = ""
    pages: List[str] = []
    used_ocr: bool = False

    @property
    def page_count(self) -> int:
        return len(self.pages)


class FileValidation(BaseModel):
    is_valid: bool
    error: Optional[str] = None
    file_type: Optional[Literal['pdf', 'image']] = None
    mime_type: Optional[str] = None
    size: Optional[int] = None


class ProcessingProgress(BaseModel):
    """Progress event emitted at each pipeline stage."""
    document_id: str
    file_name: str
    stage: ProcessingStage
    progress: int  # 0-100
    error: Optional[str] = None


class ProcessedDocument(BaseModel):
    """Output of the document pipeline."""
    id: str
    file_name: str
    mime_type: str
    document_type: DocumentType
    raw_text: str
    page_count: int
    used_ocr: bool = False
    entities: Optional[ExtractedEntities] = None
    validation: Optional[ValidationResult] = None
    quality_score: Optional[int] = None
    statement: Optional[StatementParseResult] = None
    confidence: float = 0.0
    processing_time_ms: float = 0.0

"""
Request and response bodies for the HTTP API.
"""

from pydantic import BaseModel, Field
from typing import List, Optional

from ledgerlens.models.category import CategorySuggestion
from ledgerlens.models.entities import ExtractedEntities, ValidationResult
from ledgerlens.models.statement import DocumentType, TransactionType


class ParseStatementRequest(BaseModel):
    text: str = Field(..., min_length=1)
    default_currency: Optional[str] = None
    min_confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    use_llm: bool = False
    llm_fallback: bool = False
    force_llm: bool = False


class ParseDocumentRequest(BaseModel):
    text: str = Field(..., min_length=1)
    default_currency: Optional[str] = None


class ParseDocumentResponse(BaseModel):
    document_type: DocumentType
    entities: ExtractedEntities
    validation: ValidationResult
    quality_score: int
    meets_quality_threshold: bool
    summary: str


class SuggestCategoryRequest(BaseModel):
    vendor: str = Field(..., min_length=1)
    amount: Optional[float] = None
    transaction_type: Optional[TransactionType] = None
    limit: int = Field(3, ge=1, le=10)


class SuggestCategoryResponse(BaseModel):
    vendor: str
    suggestions: List[CategorySuggestion]


class LearnCategoryRequest(BaseModel):
    vendor: str = Field(..., min_length=1)
    category_id: str = Field(..., min_length=1)
    amount: Optional[float] = Field(None, gt=0)


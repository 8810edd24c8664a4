"""
Pydantic models for entities extracted from single documents.
"""

from pydantic import BaseModel, Field
from typing import Generic, List, Optional, TypeVar

T = TypeVar('T')


class FieldPosition(BaseModel):
    """Character span of a match in the source text."""
    start: int
    end: int


class ConfidenceField(BaseModel, Generic[T]):
    """An extracted value with an advisory confidence in [0, 1]."""
    value: T
    confidence: float = Field(ge=0.0, le=1.0)
    source: Optional[str] = None
    position: Optional[FieldPosition] = None


class ExtractedEntities(BaseModel):
    """Best date/amount/vendor for one document plus the ranked candidates."""
    date: Optional[ConfidenceField] = None
    amount: Optional[ConfidenceField] = None
    vendor: Optional[ConfidenceField] = None
    description: str = "No description available"
    currency: str = "INR"
    all_amounts: List[ConfidenceField] = []
    all_dates: List[ConfidenceField] = []

    class Config:
        frozen = True


class EntityValidationResult(BaseModel):
    """Validation outcome for a single entity."""
    is_valid: bool = True
    errors: List[str] = []
    warnings: List[str] = []
    suggestions: Optional[List[str]] = None


class CrossValidation(BaseModel):
    errors: List[str] = []
    warnings: List[str] = []


class ValidationResult(BaseModel):
    """Validation outcome for all entities of a document."""
    is_valid: bool
    valid_count: int
    invalid_count: int
    warning_count: int
    date: Optional[EntityValidationResult] = None
    amount: Optional[EntityValidationResult] = None
    vendor: Optional[EntityValidationResult] = None
    cross_validation: CrossValidation = CrossValidation()


class NormalizedEntities(BaseModel):
    """Entities after validation and cleanup, ready for storage."""
    date: Optional[str] = None
    amount: Optional[float] = None
    vendor: Optional[str] = None
    currency: str
    description: str
    overall_confidence: float
    validation: ValidationResult

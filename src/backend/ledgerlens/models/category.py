"""
Pydantic models for categorization and learned vendor mappings.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime, timezone
import uuid

# Placeholder category name returned for learned suggestions
LEARNED_CATEGORY_NAME = '__learned__'


def _now() -> datetime:
    return datetime.now(timezone.utc)


class VendorCategoryMapping(BaseModel):
    """
    A learned vendor -> category mapping.

    A mapping without amount bounds is the vendor's general mapping; mappings
    with amount_min/amount_max apply only to amounts inside that range.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    vendor_pattern: str
    category_id: str
    usage_count: int = 1
    amount_min: Optional[float] = None
    amount_max: Optional[float] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def is_ranged(self) -> bool:
        return self.amount_min is not None and self.amount_max is not None

    class Config:
        from_attributes = True


class LearnedMatch(BaseModel):
    """Result of a learned-mapping lookup."""
    category_id: str
    confidence: float
    vendor_pattern: str
    match_type: str  # 'ranged', 'exact' or 'partial'


class CategorySignals(BaseModel):
    """Secondary signals applied to a keyword-rule match."""
    keyword_confidence: float
    amount_fit: Optional[str] = None  # 'in_range' or 'out_of_range'
    type_match: bool = False


class CategorySuggestion(BaseModel):
    """Ephemeral category suggestion for a vendor."""
    category_name: str
    confidence: float
    matched_keyword: str
    learned_category_id: Optional[str] = None
    is_learned: bool = False
    signals: Optional[CategorySignals] = None


class ClassifierSuggestion(BaseModel):
    """Suggestion returned by an external classifier or k-NN fallback."""
    category_name: str
    confidence: float
    source: str = "classifier"


class CategoryInfo(BaseModel):
    slug: str
    name: str
    icon: str
    color: str
    sort_order: int
    subcategories: List[str] = []

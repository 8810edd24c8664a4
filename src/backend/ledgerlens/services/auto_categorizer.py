"""
Auto-categorizer service.

Suggests a category for a vendor:
1. Learned vendor mappings (the user's own corrections)
2. Registry keyword rules, adjusted by amount range and transaction type fit
3. Optional classifiers (embedding model, k-NN) when the first two are unsure
"""

import inspect
import logging
import re
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from ledgerlens.categories.registry import (
    AmountHint,
    VendorKeyword,
    amount_hint_map,
    preferred_type_map,
    vendor_rules_map,
)
from ledgerlens.models.category import (
    LEARNED_CATEGORY_NAME,
    CategorySignals,
    CategorySuggestion,
    ClassifierSuggestion,
)
from ledgerlens.services.vendor_learning import VendorLearningService

logger = logging.getLogger(__name__)

# Below this, an embedding classifier is consulted
CONFIDENT_SUGGESTION = 0.7
CLASSIFIER_MIN_CONFIDENCE = 0.6

BOUNDARY_CHARS = r'[\s\-/,.()]'


class Classifier(Protocol):
    """Predicts a category from an embedding vector; may be sync or async."""

    def predict(self, vector: Sequence[float]) -> Optional[ClassifierSuggestion]:
        ...


def keyword_text(keyword: VendorKeyword) -> str:
    return keyword if isinstance(keyword, str) else keyword.keyword


def matches_keyword(vendor_lower: str, keyword: VendorKeyword) -> bool:
    """
    Match a registry keyword against a lower-cased vendor.

    Plain strings are substring matches. A VendorPattern with word_boundary
    must be delimited by whitespace or punctuation, and any exclusion found
    in the vendor cancels the match.

    Examples:
        >>> matches_keyword('shell petrol pump', VendorPattern('shell', True, ('beach',)))
        True
        >>> matches_keyword('shell beach hotel', VendorPattern('shell', True, ('beach',)))
        False
    """
    if isinstance(keyword, str):
        return keyword.lower() in vendor_lower

    kw = keyword.keyword.lower()
    if keyword.word_boundary:
        pattern = rf'(?:^|{BOUNDARY_CHARS}){re.escape(kw)}(?:$|{BOUNDARY_CHARS})'
        if vendor_lower != kw and not re.search(pattern, vendor_lower):
            return False
    elif kw not in vendor_lower:
        return False

    return not any(ex.lower() in vendor_lower for ex in keyword.exclude)


class AutoCategorizer:
    """Service for suggesting categories for statement and receipt vendors."""

    def __init__(
        self,
        learning: Optional[VendorLearningService] = None,
        classifiers: Iterable[Classifier] = ()
    ):
        """
        Initialize categorizer.

        Args:
            learning: Vendor learning service (a fresh in-memory one by default)
            classifiers: Fallback classifiers, tried in order
        """
        self.learning = learning or VendorLearningService()
        self.classifiers = list(classifiers)
        self.vendor_rules: Dict[str, List[VendorKeyword]] = vendor_rules_map()
        self.amount_hints: Dict[str, AmountHint] = amount_hint_map()
        self.preferred_types: Dict[str, List[str]] = preferred_type_map()

    async def initialize_learning(self) -> None:
        await self.learning.initialize()

    def _amount_in_range(self, category_name: str, amount: float) -> Optional[bool]:
        """None when the category has no amount hint."""
        hint = self.amount_hints.get(category_name)
        if hint is None:
            return None
        value = abs(amount)
        return (
            (hint.typical_min is None or value >= hint.typical_min)
            and (hint.typical_max is None or value <= hint.typical_max)
        )

    def _type_matches(self, category_name: str, transaction_type: str) -> bool:
        return transaction_type in self.preferred_types.get(category_name, [])

    def suggest_category(
        self,
        vendor: str,
        amount: Optional[float] = None,
        transaction_type: Optional[str] = None
    ) -> Optional[CategorySuggestion]:
        """
        Suggest a category; learned mappings win over keyword rules.

        A learned suggestion carries the placeholder name '__learned__' and
        the category id in learned_category_id.
        """
        if not vendor or not vendor.strip():
            return None

        learned = self.learning.lookup(vendor, amount)
        if learned:
            return CategorySuggestion(
                category_name=LEARNED_CATEGORY_NAME,
                confidence=learned.confidence,
                matched_keyword=learned.vendor_pattern,
                learned_category_id=learned.category_id,
                is_learned=True,
            )

        ranked = self._rule_suggestions(vendor, amount, transaction_type)
        return ranked[0] if ranked else None

    def _rule_suggestions(
        self,
        vendor: str,
        amount: Optional[float],
        transaction_type: Optional[str]
    ) -> List[CategorySuggestion]:
        """Best keyword match per category, highest confidence first."""
        vendor_lower = vendor.lower().strip()
        best_per_category: Dict[str, CategorySuggestion] = {}

        for category_name, keywords in self.vendor_rules.items():
            for keyword in keywords:
                if not matches_keyword(vendor_lower, keyword):
                    continue

                kw = keyword_text(keyword)
                specificity = len(kw) / len(vendor_lower)
                keyword_confidence = min(0.95, 0.6 + specificity * 0.35)
                confidence = keyword_confidence

                amount_fit = None
                if amount is not None:
                    in_range = self._amount_in_range(category_name, amount)
                    if in_range is True:
                        amount_fit = 'in_range'
                        confidence = min(0.98, confidence + 0.08)
                    elif in_range is False:
                        amount_fit = 'out_of_range'
                        confidence = max(0.3, confidence - 0.12)

                type_match = bool(transaction_type) and self._type_matches(category_name, transaction_type)
                if type_match:
                    confidence = min(0.98, confidence + 0.04)

                current = best_per_category.get(category_name)
                if current is None or confidence > current.confidence:
                    best_per_category[category_name] = CategorySuggestion(
                        category_name=category_name,
                        confidence=round(confidence, 4),
                        matched_keyword=kw,
                        signals=CategorySignals(
                            keyword_confidence=round(keyword_confidence, 4),
                            amount_fit=amount_fit,
                            type_match=type_match,
                        ),
                    )

        # Stable sort keeps registry order for equal confidence
        return sorted(best_per_category.values(), key=lambda s: -s.confidence)

    def suggest_categories(
        self,
        vendor: str,
        limit: int = 3,
        amount: Optional[float] = None,
        transaction_type: Optional[str] = None
    ) -> List[CategorySuggestion]:
        """Ranked suggestions; a learned mapping, if any, comes first."""
        if not vendor or not vendor.strip():
            return []

        suggestions = []
        learned = self.suggest_category(vendor, amount, transaction_type)
        if learned and learned.is_learned:
            suggestions.append(learned)

        suggestions.extend(self._rule_suggestions(vendor, amount, transaction_type))
        return suggestions[:limit]

    async def suggest_category_async(
        self,
        vendor: str,
        amount: Optional[float] = None,
        transaction_type: Optional[str] = None,
        embedding: Optional[Sequence[float]] = None
    ) -> Optional[CategorySuggestion]:
        """
        Suggest a category, consulting classifiers when the sync result is weak.

        Classifiers run only when an embedding is supplied and the sync
        suggestion is missing or below 0.7. The sync suggestion wins ties.
        """
        sync_result = self.suggest_category(vendor, amount, transaction_type)
        if sync_result and sync_result.confidence >= CONFIDENT_SUGGESTION:
            return sync_result
        if embedding is None:
            return sync_result

        for classifier in self.classifiers:
            try:
                prediction = classifier.predict(embedding)
                if inspect.isawaitable(prediction):
                    prediction = await prediction
            except Exception as e:
                logger.warning("Classifier fallback failed", extra={
                    "classifier": type(classifier).__name__,
                    "error": str(e)
                })
                continue

            if prediction is None or prediction.confidence < CLASSIFIER_MIN_CONFIDENCE:
                continue

            if sync_result and sync_result.confidence >= prediction.confidence:
                return sync_result

            return CategorySuggestion(
                category_name=prediction.category_name,
                confidence=prediction.confidence,
                matched_keyword=f"{prediction.source} ({prediction.confidence:.2f})",
                is_learned=False,
            )

        return sync_result

    async def learn_category(self, vendor: str, category_id: str, amount: Optional[float] = None) -> None:
        await self.learning.learn(vendor, category_id, amount)

    async def learn_categories(self, mappings: Iterable[dict]) -> None:
        await self.learning.learn_batch(mappings)

    def learned_count(self) -> int:
        return self.learning.mapping_count()

    def available_categories(self) -> List[str]:
        return list(self.vendor_rules.keys())

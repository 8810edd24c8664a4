"""
Test suite for the auto-categorizer.

Tests cover:
- Keyword rules with amount-range and transaction-type signals
- Word-boundary patterns and exclusions
- Learned mappings taking priority
- Classifier fallback (sync and async, threshold, failures)
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import asyncio

from ledgerlens.categories.registry import VendorPattern
from ledgerlens.models.category import LEARNED_CATEGORY_NAME, ClassifierSuggestion, VendorCategoryMapping
from ledgerlens.services.auto_categorizer import AutoCategorizer, matches_keyword
from ledgerlens.services.mapping_store import InMemoryMappingStore
from ledgerlens.services.vendor_learning import VendorLearningService
import pytest

UNKNOWN_VENDOR = "qwvkjz"
WEAK_VENDOR = "qwvkjz cafe qwvkjzqwvkjz"
EMBEDDING = [0.12, -0.4, 0.33]


class StaticClassifier:
    def __init__(self, prediction):
        self.prediction = prediction
        self.calls = 0

    def predict(self, vector):
        self.calls += 1
        return self.prediction


class AsyncClassifier(StaticClassifier):
    async def predict(self, vector):
        self.calls += 1
        return self.prediction


class BrokenClassifier:
    def predict(self, vector):
        raise RuntimeError("model not loaded")


def prediction(name, confidence, source='knn'):
    return ClassifierSuggestion(category_name=name, confidence=confidence, source=source)


@pytest.fixture
def categorizer():
    return AutoCategorizer()


class TestKeywordRules:
    """Test registry keyword matching and secondary signals."""

    def test_starbucks_is_food(self, categorizer):
        suggestion = categorizer.suggest_category("Starbucks")
        assert suggestion.category_name == 'Food & Dining'
        assert suggestion.matched_keyword == 'starbucks'
        assert suggestion.confidence == 0.95
        assert suggestion.is_learned is False

    def test_amount_in_range_and_type_boost(self, categorizer):
        suggestion = categorizer.suggest_category("Starbucks", amount=5.75, transaction_type='debit')
        assert suggestion.confidence == 0.98
        assert suggestion.signals.amount_fit == 'in_range'
        assert suggestion.signals.type_match is True
        assert suggestion.signals.keyword_confidence == 0.95

    def test_amount_out_of_range_penalty(self, categorizer):
        suggestion = categorizer.suggest_category("Starbucks", amount=5000.0, transaction_type='debit')
        assert suggestion.category_name == 'Food & Dining'
        assert suggestion.signals.amount_fit == 'out_of_range'
        assert suggestion.confidence == pytest.approx(0.87)

    def test_type_mismatch_has_no_boost(self, categorizer):
        suggestion = categorizer.suggest_category("Netflix", transaction_type='credit')
        assert suggestion.category_name == 'Entertainment'
        assert suggestion.signals.type_match is False

    def test_specificity_lowers_confidence(self, categorizer):
        suggestion = categorizer.suggest_category(WEAK_VENDOR)
        assert suggestion.category_name == 'Food & Dining'
        assert suggestion.confidence == pytest.approx(0.6583)

    def test_shell_petrol_pump_is_fuel(self, categorizer):
        assert categorizer.suggest_category("Shell Petrol Pump").category_name == 'Gas & Fuel'

    def test_shell_exclusion(self, categorizer):
        """'Shell Beach Hotel' is lodging, not fuel."""
        names = [s.category_name for s in categorizer.suggest_categories("Shell Beach Hotel", limit=10)]
        assert 'Gas & Fuel' not in names
        assert names[0] == 'Travel'

    def test_unknown_and_blank(self, categorizer):
        assert categorizer.suggest_category(UNKNOWN_VENDOR) is None
        assert categorizer.suggest_category("   ") is None
        assert categorizer.suggest_categories("") == []

    def test_available_categories(self, categorizer):
        names = categorizer.available_categories()
        assert names[0] == 'Food & Dining'
        assert 'Other' not in names


class TestMatchesKeyword:
    """Test plain and word-boundary keyword matching."""

    def test_substring(self):
        assert matches_keyword('starbucks coffee', 'coffee')

    def test_word_boundary(self):
        pattern = VendorPattern('bus', word_boundary=True)
        assert matches_keyword('city bus depot', pattern)
        assert matches_keyword('bus', pattern)
        assert not matches_keyword('business lounge', pattern)

    def test_exclusion(self):
        pattern = VendorPattern('shell', True, ('beach',))
        assert matches_keyword('shell petrol pump', pattern)
        assert not matches_keyword('shell beach hotel', pattern)


class TestLearnedPriority:
    """Learned mappings win over keyword rules."""

    def test_learned_suggestion(self, categorizer):
        asyncio.run(categorizer.learn_category("Starbucks", "cat-coffee"))

        suggestion = categorizer.suggest_category("STARBUCKS")
        assert suggestion.is_learned is True
        assert suggestion.category_name == LEARNED_CATEGORY_NAME
        assert suggestion.learned_category_id == 'cat-coffee'
        assert categorizer.learned_count() == 1

    def test_learned_listed_first(self, categorizer):
        asyncio.run(categorizer.learn_category("Starbucks", "cat-coffee"))

        suggestions = categorizer.suggest_categories("Starbucks")
        assert suggestions[0].is_learned is True
        assert suggestions[1].category_name == 'Food & Dining'

    def test_learn_categories_batch(self, categorizer):
        asyncio.run(categorizer.learn_categories([
            {"vendor": "Netflix", "category_id": "cat-ent"},
            {"vendor": "Uber", "category_id": "cat-transport"},
        ]))
        assert categorizer.learned_count() == 2

    def test_initialize_learning(self):
        store = InMemoryMappingStore([
            VendorCategoryMapping(vendor_pattern='starbucks', category_id='cat-coffee'),
        ])
        categorizer = AutoCategorizer(VendorLearningService(store))
        asyncio.run(categorizer.initialize_learning())

        assert categorizer.suggest_category("Starbucks").learned_category_id == 'cat-coffee'


class TestClassifierFallback:
    """Test the async path with pluggable classifiers."""

    def test_confident_sync_skips_classifiers(self):
        classifier = StaticClassifier(prediction('Groceries', 0.99))
        categorizer = AutoCategorizer(classifiers=[classifier])

        result = asyncio.run(categorizer.suggest_category_async("Starbucks", embedding=EMBEDDING))
        assert result.category_name == 'Food & Dining'
        assert classifier.calls == 0

    def test_no_embedding_returns_sync(self):
        classifier = StaticClassifier(prediction('Groceries', 0.99))
        categorizer = AutoCategorizer(classifiers=[classifier])

        assert asyncio.run(categorizer.suggest_category_async(UNKNOWN_VENDOR)) is None
        assert classifier.calls == 0

    def test_classifier_fills_gap(self):
        categorizer = AutoCategorizer(classifiers=[StaticClassifier(prediction('Groceries', 0.8))])

        result = asyncio.run(categorizer.suggest_category_async(UNKNOWN_VENDOR, embedding=EMBEDDING))
        assert result.category_name == 'Groceries'
        assert result.confidence == 0.8
        assert result.matched_keyword == 'knn (0.80)'
        assert result.is_learned is False

    def test_below_threshold_tries_next(self):
        weak = StaticClassifier(prediction('Shopping', 0.55))
        strong = StaticClassifier(prediction('Groceries', 0.65, source='embedding'))
        categorizer = AutoCategorizer(classifiers=[weak, strong])

        result = asyncio.run(categorizer.suggest_category_async(UNKNOWN_VENDOR, embedding=EMBEDDING))
        assert result.category_name == 'Groceries'
        assert weak.calls == 1

    def test_async_classifier(self):
        categorizer = AutoCategorizer(classifiers=[AsyncClassifier(prediction('Travel', 0.7))])

        result = asyncio.run(categorizer.suggest_category_async(UNKNOWN_VENDOR, embedding=EMBEDDING))
        assert result.category_name == 'Travel'

    def test_failing_classifier_is_skipped(self):
        categorizer = AutoCategorizer(classifiers=[
            BrokenClassifier(),
            StaticClassifier(prediction('Groceries', 0.8)),
        ])

        result = asyncio.run(categorizer.suggest_category_async(UNKNOWN_VENDOR, embedding=EMBEDDING))
        assert result.category_name == 'Groceries'

    def test_sync_wins_ties_and_higher_scores(self):
        """A weak keyword match still beats a classifier that is no more confident."""
        categorizer = AutoCategorizer(classifiers=[StaticClassifier(prediction('Groceries', 0.62))])
        result = asyncio.run(categorizer.suggest_category_async(WEAK_VENDOR, embedding=EMBEDDING))
        assert result.category_name == 'Food & Dining'

        categorizer = AutoCategorizer(classifiers=[StaticClassifier(prediction('Groceries', 0.9))])
        result = asyncio.run(categorizer.suggest_category_async(WEAK_VENDOR, embedding=EMBEDDING))
        assert result.category_name == 'Groceries'

    def test_no_usable_prediction(self):
        categorizer = AutoCategorizer(classifiers=[StaticClassifier(None), BrokenClassifier()])
        assert asyncio.run(categorizer.suggest_category_async(UNKNOWN_VENDOR, embedding=EMBEDDING)) is None

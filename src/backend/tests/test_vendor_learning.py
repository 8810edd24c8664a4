"""
Test suite for vendor-category learning.

Tests cover:
- Vendor normalization (idempotence, payment-rail and abbreviation forms)
- Learn then lookup round trip and confidence levels
- Amount-ranged disambiguation
- Store failures never reaching the caller
- Pattern migration and merging
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from ledgerlens.models.category import VendorCategoryMapping
from ledgerlens.services.mapping_store import InMemoryMappingStore
from ledgerlens.services.vendor_learning import (
    VendorLearningService,
    merge_mappings,
    normalize_vendor,
)
import pytest


class TestNormalizeVendor:
    """Test vendor key normalization."""

    @pytest.mark.parametrize("raw,expected", [
        ("  STARBUCKS   #1234 ", 'starbucks'),
        ("UPI/swiggy123@yespay/Food order", 'swiggy'),
        ("AMZN Mktp IN*2K4", 'amazon'),
        ("Amazon.in Order 123", 'amazon'),
        ("SQ *BLUE BOTTLE", 'blue bottle'),
        ("NEFT/Acme Corp/REF123", 'acme corp'),
        ("zomato.razorpay@icici", 'zomato'),
        ("Uber *Trip", 'uber'),
    ])
    def test_examples(self, raw, expected):
        assert normalize_vendor(raw) == expected

    @pytest.mark.parametrize("raw", [
        "  STARBUCKS   #1234 ",
        "UPI/swiggy123@yespay/Food order",
        "AMZN Mktp IN*2K4",
        "Shell Petrol Pump XXXX1234 IN",
        "Blue Tokai Coffee Ref# AB12345.",
        "NEFT-HDFCN52025011512345-JIO PLATFORMS LIMITED840-0001",
        "",
    ])
    def test_idempotent(self, raw):
        """Normalizing twice gives the same key as normalizing once."""
        once = normalize_vendor(raw)
        assert normalize_vendor(once) == once

    def test_empty(self):
        assert normalize_vendor("") == ''
        assert normalize_vendor(None) == ''


class TestLearnAndLookup:
    """Test learning a choice and finding it again."""

    def test_learn_then_lookup(self):
        """A learned vendor comes back with confidence of at least 0.85."""
        service = VendorLearningService()
        asyncio.run(service.learn("Starbucks Coffee", "cat-food"))

        match = service.lookup("STARBUCKS COFFEE")
        assert match is not None
        assert match.category_id == 'cat-food'
        assert match.match_type == 'exact'
        assert match.confidence >= 0.85

    def test_store_number_variants_share_mapping(self):
        service = VendorLearningService()
        asyncio.run(service.learn("STARBUCKS #1234", "cat-food"))

        match = service.lookup("Starbucks #9876")
        assert match.category_id == 'cat-food'
        assert match.match_type == 'exact'

    def test_agreement_bumps_usage(self):
        service = VendorLearningService()

        async def run():
            await service.learn("Netflix", "cat-ent")
            await service.learn("NETFLIX", "cat-ent")
            return await service.get_all_mappings()

        mappings = asyncio.run(run())
        assert len(mappings) == 1
        assert mappings[0].usage_count == 2
        assert service.lookup("netflix").confidence == pytest.approx(0.89)

    def test_partial_match(self):
        """A learned pattern contained in a longer vendor is a partial match."""
        service = VendorLearningService()
        asyncio.run(service.learn("Swiggy", "cat-food"))

        match = service.lookup("Swiggy Instamart Bangalore")
        assert match.category_id == 'cat-food'
        assert match.match_type == 'partial'
        assert match.confidence <= 0.9

    def test_unknown_vendor(self):
        service = VendorLearningService()
        assert service.lookup("Never Seen Before") is None
        assert service.lookup("   ") is None

    def test_contradiction_without_amount_overwrites(self):
        service = VendorLearningService()

        async def run():
            await service.learn("Amazon", "cat-shopping")
            await service.learn("Amazon", "cat-groceries")

        asyncio.run(run())
        match = service.lookup("amazon")
        assert match.category_id == 'cat-groceries'
        assert service.mapping_count() == 1

    def test_learn_batch(self):
        service = VendorLearningService()
        asyncio.run(service.learn_batch([
            {"vendor": "Netflix", "category_id": "cat-ent"},
            {"vendor": "Uber", "category_id": "cat-transport", "amount": 250.0},
        ]))
        assert service.mapping_count() == 2
        assert service.lookup("UBER *TRIP").category_id == 'cat-transport'

    def test_service_reused_across_event_loops(self):
        """Concurrent learns work on each new loop, as with one service per app."""
        service = VendorLearningService()

        async def learn_concurrently(vendors, category_id):
            await asyncio.gather(*(service.learn(v, category_id) for v in vendors))

        asyncio.run(learn_concurrently(["Netflix", "Spotify", "Hulu"], "cat-ent"))
        asyncio.run(learn_concurrently(["Uber", "Lyft"], "cat-transport"))

        assert service.mapping_count() == 5
        assert service.lookup("lyft").category_id == 'cat-transport'

    def test_blank_input_is_ignored(self):
        service = VendorLearningService()
        asyncio.run(service.learn("   ", "cat-food"))
        asyncio.run(service.learn("Netflix", ""))
        assert service.mapping_count() == 0


class TestRangedMappings:
    """Test amount-dependent categories for the same vendor."""

    def test_ranged_disambiguation(self):
        """A small order stays in the general category; a large one gets its own range."""
        service = VendorLearningService()

        async def run():
            await service.learn("Amazon", "cat-a", 100.0)
            await service.learn("Amazon", "cat-b", 5000.0)

        asyncio.run(run())

        small = service.lookup("Amazon", 100.0)
        large = service.lookup("Amazon", 5000.0)
        assert small.category_id == 'cat-a'
        assert small.match_type == 'exact'
        assert large.category_id == 'cat-b'
        assert large.match_type == 'ranged'
        assert service.mapping_count() == 2

    def test_range_bounds(self):
        service = VendorLearningService()

        async def run():
            await service.learn("Amazon", "cat-a", 100.0)
            await service.learn("Amazon", "cat-b", 5000.0)
            return await service.get_all_mappings()

        ranged = [m for m in asyncio.run(run()) if m.is_ranged]
        assert len(ranged) == 1
        assert ranged[0].amount_min == 2500.0
        assert ranged[0].amount_max == 7500.0

    def test_lookup_without_amount_uses_general(self):
        service = VendorLearningService()

        async def run():
            await service.learn("Amazon", "cat-a", 100.0)
            await service.learn("Amazon", "cat-b", 5000.0)

        asyncio.run(run())
        assert service.lookup("Amazon").category_id == 'cat-a'


class TestStoreFailures:
    """Store errors are logged and absorbed; the cache stays authoritative."""

    def _failing_store(self):
        store = AsyncMock()
        store.to_array.side_effect = RuntimeError("db down")
        store.add.side_effect = RuntimeError("db down")
        store.put.side_effect = RuntimeError("db down")
        store.delete.side_effect = RuntimeError("db down")
        store.clear.side_effect = RuntimeError("db down")
        return store

    def test_initialize_survives_store_failure(self):
        service = VendorLearningService(self._failing_store())
        asyncio.run(service.initialize())
        assert service.initialized is True
        assert service.mapping_count() == 0

    def test_learn_survives_store_failure(self):
        """The choice is still remembered in memory."""
        service = VendorLearningService(self._failing_store())
        asyncio.run(service.learn("Netflix", "cat-ent"))
        assert service.lookup("Netflix").category_id == 'cat-ent'

    def test_get_all_falls_back_to_cache(self):
        service = VendorLearningService(self._failing_store())

        async def run():
            await service.learn("Netflix", "cat-ent")
            return await service.get_all_mappings()

        mappings = asyncio.run(run())
        assert [m.vendor_pattern for m in mappings] == ['netflix']

    def test_delete_and_clear_survive_store_failure(self):
        service = VendorLearningService(self._failing_store())

        async def run():
            await service.learn("Netflix", "cat-ent")
            mapping_id = service._cached_mappings()[0].id
            deleted = await service.delete_mapping(mapping_id)
            await service.learn("Uber", "cat-transport")
            await service.clear_all()
            return deleted

        assert asyncio.run(run()) is True
        assert service.mapping_count() == 0


class TestInitializeAndDelete:
    """Test loading from a store and removing mappings."""

    def test_initialize_loads_store(self):
        store = InMemoryMappingStore([
            VendorCategoryMapping(vendor_pattern='netflix', category_id='cat-ent', usage_count=3),
        ])
        service = VendorLearningService(store)
        asyncio.run(service.initialize())

        assert service.lookup("NETFLIX").category_id == 'cat-ent'

    def test_delete_unknown_mapping(self):
        service = VendorLearningService()
        assert asyncio.run(service.delete_mapping("missing")) is False

    def test_delete_removes_from_cache_and_store(self):
        store = InMemoryMappingStore()
        service = VendorLearningService(store)

        async def run():
            await service.learn("Netflix", "cat-ent")
            mapping = (await store.to_array())[0]
            deleted = await service.delete_mapping(mapping.id)
            return deleted, await store.to_array()

        deleted, remaining = asyncio.run(run())
        assert deleted is True
        assert remaining == []
        assert service.lookup("Netflix") is None


class TestMigration:
    """Test re-keying stored mappings."""

    def test_merge_collapsing_patterns(self):
        """Patterns that normalize to the same key merge; the most used category wins."""
        now = datetime.now(timezone.utc)
        mappings = [
            VendorCategoryMapping(
                vendor_pattern='STARBUCKS #1234', category_id='cat-food', usage_count=3,
                created_at=now - timedelta(days=10), updated_at=now - timedelta(days=1),
            ),
            VendorCategoryMapping(
                vendor_pattern='starbucks', category_id='cat-coffee', usage_count=1,
                created_at=now - timedelta(days=5), updated_at=now,
            ),
        ]

        merged = merge_mappings(mappings)
        assert len(merged) == 1
        assert merged[0].vendor_pattern == 'starbucks'
        assert merged[0].category_id == 'cat-food'
        assert merged[0].usage_count == 4
        assert merged[0].created_at == now - timedelta(days=10)
        assert merged[0].updated_at == now

    def test_ranged_mappings_kept_apart(self):
        mappings = [
            VendorCategoryMapping(vendor_pattern='amazon', category_id='cat-a'),
            VendorCategoryMapping(
                vendor_pattern='AMZN Mktp', category_id='cat-b', amount_min=2500.0, amount_max=7500.0,
            ),
        ]
        merged = merge_mappings(mappings)
        assert len(merged) == 2
        assert {m.vendor_pattern for m in merged} == {'amazon'}

    def test_migrate_patterns_replaces_store(self):
        store = InMemoryMappingStore([
            VendorCategoryMapping(vendor_pattern='NETFLIX.COM', category_id='cat-ent'),
            VendorCategoryMapping(vendor_pattern='netflix.com.', category_id='cat-ent'),
        ])
        service = VendorLearningService(store)

        async def run():
            migrated = await service.migrate_patterns()
            return migrated, await store.to_array()

        migrated, stored = asyncio.run(run())
        assert len(migrated) == 1
        assert len(stored) == 1
        assert stored[0].usage_count == 2
        assert service.lookup("netflix.com").category_id == 'cat-ent'

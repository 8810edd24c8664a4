"""
Tests for the vendor mapping stores.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import asyncio
from unittest.mock import MagicMock

from ledgerlens.models.category import VendorCategoryMapping
from ledgerlens.services.mapping_store import InMemoryMappingStore, SupabaseMappingStore
import pytest


def mapping(**kwargs):
    values = {'vendor_pattern': 'netflix', 'category_id': 'cat-ent'}
    values.update(kwargs)
    return VendorCategoryMapping(**values)


class TestInMemoryMappingStore:
    """Test the default store."""

    def test_add_get_delete(self):
        store = InMemoryMappingStore()
        row = mapping()

        async def run():
            await store.add(row)
            found = await store.get(row.id)
            await store.delete(row.id)
            return found, await store.get(row.id)

        found, missing = asyncio.run(run())
        assert found == row
        assert missing is None

    def test_add_duplicate_rejected(self):
        store = InMemoryMappingStore([mapping(id='m1')])
        with pytest.raises(ValueError):
            asyncio.run(store.add(mapping(id='m1')))

    def test_returns_copies(self):
        """Mutating a returned record does not change the stored one."""
        store = InMemoryMappingStore([mapping(id='m1')])
        rows = asyncio.run(store.to_array())
        rows[0].usage_count = 99
        assert asyncio.run(store.get('m1')).usage_count == 1

    def test_put_and_clear(self):
        store = InMemoryMappingStore([mapping(id='m1')])

        async def run():
            await store.put(mapping(id='m1', category_id='cat-subs'))
            updated = await store.get('m1')
            await store.clear()
            return updated, await store.to_array()

        updated, remaining = asyncio.run(run())
        assert updated.category_id == 'cat-subs'
        assert remaining == []


class TestSupabaseMappingStore:
    """Test the Supabase adapter against a mocked client."""

    def test_to_array(self):
        client = MagicMock()
        row = mapping(id='m1').model_dump(mode='json')
        client.table.return_value.select.return_value.execute.return_value.data = [row]

        store = SupabaseMappingStore(client, table_name='mappings')
        rows = asyncio.run(store.to_array())

        client.table.assert_called_with('mappings')
        assert [r.id for r in rows] == ['m1']
        assert rows[0].vendor_pattern == 'netflix'

    def test_put_upserts_json_row(self):
        client = MagicMock()
        store = SupabaseMappingStore(client, table_name='mappings')
        row = mapping(id='m1')

        asyncio.run(store.put(row))

        upserted = client.table.return_value.upsert.call_args[0][0]
        assert upserted['id'] == 'm1'
        assert isinstance(upserted['created_at'], str)

    def test_get_missing(self):
        client = MagicMock()
        client.table.return_value.select.return_value.eq.return_value.execute.return_value.data = []

        store = SupabaseMappingStore(client, table_name='mappings')
        assert asyncio.run(store.get('nope')) is None

    def test_delete_filters_by_id(self):
        client = MagicMock()
        store = SupabaseMappingStore(client, table_name='mappings')

        asyncio.run(store.delete('m1'))
        client.table.return_value.delete.return_value.eq.assert_called_with('id', 'm1')

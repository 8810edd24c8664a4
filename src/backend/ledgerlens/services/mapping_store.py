"""
Persistence for learned vendor -> category mappings.

A store is an async collection of VendorCategoryMapping records keyed by id.
The learning service treats every store call as fallible.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Protocol

from ledgerlens.config import settings
from ledgerlens.models.category import VendorCategoryMapping
from ledgerlens.utils.supabase import get_supabase_client

logger = logging.getLogger(__name__)


class MappingStore(Protocol):
    async def to_array(self) -> List[VendorCategoryMapping]:
        ...

    async def add(self, mapping: VendorCategoryMapping) -> None:
        ...

    async def put(self, mapping: VendorCategoryMapping) -> None:
        ...

    async def get(self, mapping_id: str) -> Optional[VendorCategoryMapping]:
        ...

    async def delete(self, mapping_id: str) -> None:
        ...

    async def clear(self) -> None:
        ...


class InMemoryMappingStore:
    """Process-local store; the default when no database is configured."""

    def __init__(self, mappings: Optional[List[VendorCategoryMapping]] = None):
        self._rows: Dict[str, VendorCategoryMapping] = {}
        for mapping in mappings or []:
            self._rows[mapping.id] = mapping.model_copy()

    async def to_array(self) -> List[VendorCategoryMapping]:
        return [m.model_copy() for m in self._rows.values()]

    async def add(self, mapping: VendorCategoryMapping) -> None:
        if mapping.id in self._rows:
            raise ValueError(f"Mapping already exists: {mapping.id}")
        self._rows[mapping.id] = mapping.model_copy()

    async def put(self, mapping: VendorCategoryMapping) -> None:
        self._rows[mapping.id] = mapping.model_copy()

    async def get(self, mapping_id: str) -> Optional[VendorCategoryMapping]:
        mapping = self._rows.get(mapping_id)
        return mapping.model_copy() if mapping else None

    async def delete(self, mapping_id: str) -> None:
        self._rows.pop(mapping_id, None)

    async def clear(self) -> None:
        self._rows.clear()


class SupabaseMappingStore:
    """
    Store backed by a Supabase table.

    The supabase client is synchronous, so each call runs in a worker thread.
    """

    def __init__(self, client=None, table_name: Optional[str] = None):
        self.supabase = client or get_supabase_client()
        self.table_name = table_name or settings.VENDOR_MAPPING_TABLE

    def _table(self):
        return self.supabase.table(self.table_name)

    @staticmethod
    def _to_row(mapping: VendorCategoryMapping) -> dict:
        return mapping.model_dump(mode='json')

    async def to_array(self) -> List[VendorCategoryMapping]:
        response = await asyncio.to_thread(
            lambda: self._table().select('*').execute()
        )
        rows = response.data or []
        logger.debug("Loaded vendor mappings", extra={"table": self.table_name, "count": len(rows)})
        return [VendorCategoryMapping.model_validate(row) for row in rows]

    async def add(self, mapping: VendorCategoryMapping) -> None:
        row = self._to_row(mapping)
        await asyncio.to_thread(lambda: self._table().insert(row).execute())

    async def put(self, mapping: VendorCategoryMapping) -> None:
        row = self._to_row(mapping)
        await asyncio.to_thread(lambda: self._table().upsert(row).execute())

    async def get(self, mapping_id: str) -> Optional[VendorCategoryMapping]:
        response = await asyncio.to_thread(
            lambda: self._table().select('*').eq('id', mapping_id).execute()
        )
        if not response.data:
            return None
        return VendorCategoryMapping.model_validate(response.data[0])

    async def delete(self, mapping_id: str) -> None:
        await asyncio.to_thread(
            lambda: self._table().delete().eq('id', mapping_id).execute()
        )

    async def clear(self) -> None:
        # PostgREST refuses unfiltered deletes
        await asyncio.to_thread(
            lambda: self._table().delete().neq('id', '').execute()
        )

"""
Vendor-category learning service.

Remembers the category a user picks for a vendor and suggests it the next
time the vendor appears. Mappings are keyed by normalize_vendor(), so the
same function is used for live lookups and for migrating stored mappings.

A vendor has at most one general mapping (no amount bounds) plus any number
of amount-ranged mappings for cases where the category depends on the
amount (e.g. a small Amazon order vs. a laptop).
"""

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from ledgerlens.models.category import LearnedMatch, VendorCategoryMapping
from ledgerlens.services.mapping_store import InMemoryMappingStore, MappingStore

logger = logging.getLogger(__name__)

# Ranged mappings cover +/-50% of the amount that created them
RANGE_SPREAD = 0.5

MAX_NORMALIZE_PASSES = 10

ABBREVIATIONS = [(re.compile(p), repl) for p, repl in [
    (r'^amzn\s*mktp\b.*$', 'amazon'),
    (r'^amzn\b.*$', 'amazon'),
    (r'^amazon\.(?:com|in)\b.*$', 'amazon'),
    (r'^uber\s*\*\s*(?:trip|eats)?\b.*$', 'uber'),
    (r'^sq\s*\*\s*', ''),
    (r'^tst\s*\*\s*', ''),
    (r'^paypal\s*\*\s*', ''),
]]

UPI_PATTERN = re.compile(r'^upi[/-]([^/@\s]+)(?:@[^/\s]*)?')
VPA_PATTERN = re.compile(r'^([a-z0-9._-]+)@[a-z]+$')
NEFT_SLASH_PATTERN = re.compile(r'^(?:neft|rtgs|imps)/([^/]+)')
NEFT_DASH_PATTERN = re.compile(r'^(?:neft|rtgs)-[a-z0-9]+-([a-z][a-z .&]*?)(?:\d{3,}|-|$)')

CLEANUP_PATTERNS = [(re.compile(p), repl) for p, repl in [
    # Reference codes
    (r'\s+(?:ref|txn|auth|arn|conf|id)[\s#:]*[\w-]*\d[\w-]*$', ''),
    # Card tail digits
    (r'\s*(?:x{2,}|\*{2,})\s*\d{4}\b', ''),
    # Store numbers
    (r'\s*[#*]+\s*\d+$', ''),
    # Trailing locale codes
    (r'(?:\s+(?:in|ind|us|usa|gb|uk))+$', ''),
    (r'[.,;:!]+$', ''),
    (r'\s+', ' '),
]]


def normalize_vendor(vendor: str) -> str:
    """
    Normalize a vendor name into its mapping key.

    Idempotent: normalize_vendor(normalize_vendor(x)) == normalize_vendor(x).

    Examples:
        >>> normalize_vendor("  STARBUCKS   #1234 ")
        'starbucks'
        >>> normalize_vendor("UPI/swiggy123@yespay/Food order")
        'swiggy'
        >>> normalize_vendor("AMZN Mktp IN*2K4")
        'amazon'
    """
    normalized = ' '.join((vendor or '').lower().split())

    # Repeat until stable so that each step sees the others' output
    for _ in range(MAX_NORMALIZE_PASSES):
        previous = normalized
        normalized = _normalize_once(normalized)
        if normalized == previous:
            break

    return normalized


def _normalize_once(value: str) -> str:
    upi = UPI_PATTERN.match(value)
    if upi:
        value = _merchant_token(upi.group(1))
    else:
        vpa = VPA_PATTERN.match(value)
        if vpa:
            value = _merchant_token(vpa.group(1))

    neft = NEFT_SLASH_PATTERN.match(value) or NEFT_DASH_PATTERN.match(value)
    if neft:
        value = neft.group(1)

    for pattern, repl in ABBREVIATIONS:
        value = pattern.sub(repl, value)

    for pattern, repl in CLEANUP_PATTERNS:
        value = pattern.sub(repl, value)

    return value.strip()


def _merchant_token(vpa_name: str) -> str:
    """'swiggy.razorpay' -> 'swiggy', 'tiasha.hore' -> 'tiasha hore', digits dropped."""
    token = re.sub(r'\.(?:razorpay|payu|paytm|rzp|cashfree|billdesk)$', '', vpa_name)
    token = re.sub(r'\d+', '', token)
    token = re.sub(r'[._-]+', ' ', token)
    return ' '.join(token.split())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class VendorLearningService:
    """Service for learning and looking up vendor -> category mappings."""

    def __init__(self, store: Optional[MappingStore] = None):
        self.store = store or InMemoryMappingStore()
        self._general: Dict[str, VendorCategoryMapping] = {}
        self._ranged: Dict[str, List[VendorCategoryMapping]] = {}
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None
        self.initialized = False

    def _get_lock(self) -> asyncio.Lock:
        """Lock for the running event loop, created on first use."""
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def initialize(self) -> None:
        """Load mappings from the store into the cache once."""
        if self.initialized:
            return

        async with self._get_lock():
            if self.initialized:
                return
            try:
                mappings = await self.store.to_array()
                self._load_cache(mappings)
                logger.info("Loaded learned vendor mappings", extra={"count": len(mappings)})
            except Exception as e:
                logger.warning("Failed to load vendor mappings", extra={"error": str(e)})
            self.initialized = True

    def _load_cache(self, mappings: Iterable[VendorCategoryMapping]) -> None:
        self._general.clear()
        self._ranged.clear()
        for mapping in mappings:
            self._cache_put(mapping)

    def _cache_put(self, mapping: VendorCategoryMapping) -> None:
        if mapping.is_ranged:
            ranged = self._ranged.setdefault(mapping.vendor_pattern, [])
            ranged[:] = [m for m in ranged if m.id != mapping.id] + [mapping]
        else:
            self._general[mapping.vendor_pattern] = mapping

    def _cache_remove(self, mapping_id: str) -> Optional[VendorCategoryMapping]:
        for pattern, mapping in list(self._general.items()):
            if mapping.id == mapping_id:
                return self._general.pop(pattern)
        for pattern, ranged in list(self._ranged.items()):
            for mapping in ranged:
                if mapping.id == mapping_id:
                    ranged.remove(mapping)
                    if not ranged:
                        del self._ranged[pattern]
                    return mapping
        return None

    def _ranged_match(self, pattern: str, amount: float) -> Optional[VendorCategoryMapping]:
        for mapping in self._ranged.get(pattern, []):
            if mapping.amount_min <= amount <= mapping.amount_max:
                return mapping
        return None

    def lookup(self, vendor: str, amount: Optional[float] = None) -> Optional[LearnedMatch]:
        """
        Find a learned category for a vendor.

        Precedence: amount-ranged mapping containing the amount, then the
        exact general mapping, then the longest general pattern that contains
        or is contained in the vendor.
        """
        if not vendor or not vendor.strip():
            return None

        normalized = normalize_vendor(vendor)
        if not normalized:
            return None

        if amount is not None:
            ranged = self._ranged_match(normalized, abs(amount))
            if ranged:
                return LearnedMatch(
                    category_id=ranged.category_id,
                    confidence=min(0.99, 0.9 + ranged.usage_count * 0.02),
                    vendor_pattern=ranged.vendor_pattern,
                    match_type='ranged',
                )

        exact = self._general.get(normalized)
        if exact:
            return LearnedMatch(
                category_id=exact.category_id,
                confidence=min(0.99, 0.85 + exact.usage_count * 0.02),
                vendor_pattern=exact.vendor_pattern,
                match_type='exact',
            )

        best = None
        for pattern, mapping in self._general.items():
            if pattern in normalized or normalized in pattern:
                if best is None or len(pattern) > len(best.vendor_pattern):
                    best = mapping

        if best:
            specificity = len(best.vendor_pattern) / len(normalized)
            return LearnedMatch(
                category_id=best.category_id,
                confidence=min(0.9, 0.65 + specificity * 0.2 + best.usage_count * 0.01),
                vendor_pattern=best.vendor_pattern,
                match_type='partial',
            )

        return None

    async def learn(self, vendor: str, category_id: str, amount: Optional[float] = None) -> None:
        """
        Record a user's category choice for a vendor.

        Agreement bumps usage. A contradicting choice with a known amount adds
        a ranged mapping (amount +/-50%) and keeps the general one; without an
        amount it overwrites the general mapping and resets usage to 1.
        """
        if not vendor or not vendor.strip() or not category_id:
            return

        normalized = normalize_vendor(vendor)
        if not normalized:
            return

        async with self._get_lock():
            mapping, is_new = self._apply_learning(normalized, category_id, amount)
            self._cache_put(mapping)
            await self._persist(mapping, is_new)

    def _apply_learning(
        self,
        pattern: str,
        category_id: str,
        amount: Optional[float]
    ) -> Tuple[VendorCategoryMapping, bool]:
        now = _now()

        if amount is not None:
            ranged = self._ranged_match(pattern, abs(amount))
            if ranged:
                if ranged.category_id == category_id:
                    usage = ranged.usage_count + 1
                else:
                    usage = 1
                return ranged.model_copy(update={
                    'category_id': category_id,
                    'usage_count': usage,
                    'updated_at': now,
                }), False

        existing = self._general.get(pattern)
        if existing is None:
            return VendorCategoryMapping(vendor_pattern=pattern, category_id=category_id), True

        if existing.category_id == category_id:
            return existing.model_copy(update={
                'usage_count': existing.usage_count + 1,
                'updated_at': now,
            }), False

        if amount is not None and amount != 0:
            value = abs(amount)
            return VendorCategoryMapping(
                vendor_pattern=pattern,
                category_id=category_id,
                amount_min=round(value * (1 - RANGE_SPREAD), 2),
                amount_max=round(value * (1 + RANGE_SPREAD), 2),
            ), True

        return existing.model_copy(update={
            'category_id': category_id,
            'usage_count': 1,
            'updated_at': now,
        }), False

    async def _persist(self, mapping: VendorCategoryMapping, is_new: bool) -> None:
        try:
            if is_new:
                await self.store.add(mapping)
            else:
                await self.store.put(mapping)
        except Exception as e:
            logger.warning("Failed to save vendor mapping", extra={
                "vendor_pattern": mapping.vendor_pattern,
                "error": str(e)
            })

    async def learn_batch(self, mappings: Iterable[dict]) -> None:
        """Learn several choices in order; each dict has vendor, category_id and optional amount."""
        for item in mappings:
            await self.learn(item['vendor'], item['category_id'], item.get('amount'))

    async def get_all_mappings(self) -> List[VendorCategoryMapping]:
        try:
            return await self.store.to_array()
        except Exception as e:
            logger.warning("Failed to read vendor mappings, using cache", extra={"error": str(e)})
            return self._cached_mappings()

    def _cached_mappings(self) -> List[VendorCategoryMapping]:
        mappings = list(self._general.values())
        for ranged in self._ranged.values():
            mappings.extend(ranged)
        return mappings

    async def delete_mapping(self, mapping_id: str) -> bool:
        """Remove a mapping; returns whether it was known to the cache."""
        async with self._get_lock():
            removed = self._cache_remove(mapping_id)
            try:
                await self.store.delete(mapping_id)
            except Exception as e:
                logger.warning("Failed to delete vendor mapping", extra={
                    "mapping_id": mapping_id,
                    "error": str(e)
                })
        return removed is not None

    async def clear_all(self) -> None:
        async with self._get_lock():
            self._general.clear()
            self._ranged.clear()
            try:
                await self.store.clear()
            except Exception as e:
                logger.warning("Failed to clear vendor mappings", extra={"error": str(e)})

    def mapping_count(self) -> int:
        return len(self._general) + sum(len(r) for r in self._ranged.values())

    async def migrate_patterns(
        self,
        mappings: Optional[List[VendorCategoryMapping]] = None
    ) -> List[VendorCategoryMapping]:
        """
        Re-key stored mappings with the current normalize_vendor().

        Mappings that collapse onto the same key (and amount range) are merged:
        usage counts are summed and the category of the most-used mapping wins.

        Args:
            mappings: Mappings to migrate (default: everything in the store)

        Returns:
            The migrated mappings, which replace the store and cache contents
        """
        if mappings is None:
            mappings = await self.get_all_mappings()

        migrated = merge_mappings(mappings)

        async with self._get_lock():
            self._load_cache(migrated)
            try:
                await self.store.clear()
                for mapping in migrated:
                    await self.store.add(mapping)
            except Exception as e:
                logger.warning("Failed to persist migrated vendor mappings", extra={"error": str(e)})

        logger.info("Migrated vendor mappings", extra={
            "before": len(mappings),
            "after": len(migrated)
        })
        return migrated


def merge_mappings(mappings: Iterable[VendorCategoryMapping]) -> List[VendorCategoryMapping]:
    """Normalize patterns and merge mappings that share (pattern, amount range)."""
    groups: Dict[tuple, List[VendorCategoryMapping]] = {}
    for mapping in mappings:
        pattern = normalize_vendor(mapping.vendor_pattern)
        if not pattern:
            continue
        key = (pattern, mapping.amount_min, mapping.amount_max)
        groups.setdefault(key, []).append(mapping)

    merged = []
    for (pattern, _, _), group in groups.items():
        winner = max(group, key=lambda m: (m.usage_count, m.updated_at))
        merged.append(winner.model_copy(update={
            'vendor_pattern': pattern,
            'usage_count': sum(m.usage_count for m in group),
            'created_at': min(m.created_at for m in group),
            'updated_at': max(m.updated_at for m in group),
        }))
    return merged

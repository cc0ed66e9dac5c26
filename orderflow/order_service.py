"""
Cache-aside order service.

List pages are read through the cache; every successful mutation clears the
whole ``orders:*`` namespace, because an insert, update or delete can shift
the membership of every page.

There is no coordination between a read repopulating a page and a concurrent
mutation clearing the namespace: a read that missed before the mutation may
write pre-mutation rows after the clear. That entry stays until the next
mutation or TTL expiry.
"""

import json
import logging
from typing import Any, Dict, Optional, Tuple

from orderflow.cache_store import CacheError, CacheStore
from orderflow.models import (
    MutationResult,
    Order,
    OrderCreate,
    OrderPage,
    OrderStatus,
    OrderUpdate,
)
from orderflow.order_store import OrderStore

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "orders"
PAGE_SIZE = 20
DEFAULT_TTL = 604800  # one week

# Largest OFFSET a signed 64-bit SQL integer can carry
MAX_OFFSET = 2 ** 63 - 1


def normalize_page(raw: Any) -> int:
    """
    Coerce a requested page number. Missing, non-numeric or non-positive
    values fall back to page 1.
    """
    try:
        page = int(raw)
    except (TypeError, ValueError):
        return 1
    return page if page >= 1 else 1


def page_cache_key(page: int) -> str:
    return f"{CACHE_NAMESPACE}:page:{page}"


def page_window(page: int) -> Tuple[int, int]:
    """Return (offset, limit) of a 1-indexed page."""
    return (page - 1) * PAGE_SIZE, PAGE_SIZE


class OrderService:
    """
    Orders over a relational store, with paginated list reads cached.

    Args:
        store: Backing order store, the source of truth
        cache: Cache store holding serialized list pages
        ttl: Lifetime of a cached page in seconds
    """

    def __init__(self, store: OrderStore, cache: CacheStore, ttl: int = DEFAULT_TTL):
        self.store = store
        self.cache = cache
        self.ttl = ttl

    # Reads

    def list_orders(self, page: Any = 1) -> Dict[str, Any]:
        """
        Return one page of orders, newest first.

        Raises:
            StoreError: the store query failed on a cache miss
        """
        page = normalize_page(page)
        key = page_cache_key(page)

        cached = self._cache_get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return cached

        logger.debug("Cache miss for %s", key)
        offset, limit = page_window(page)
        if offset > MAX_OFFSET:
            orders = []
        else:
            orders = self.store.select_range(offset, limit)

        payload = OrderPage(page=page, data=orders).model_dump(mode="json")
        serialized = json.dumps(payload)
        try:
            self.cache.set_with_ttl(key, serialized, self.ttl)
        except CacheError as e:
            logger.warning("Could not cache %s: %s", key, e)

        return json.loads(serialized)

    def get_order(self, order_id: int) -> Order:
        """
        Fetch one order straight from the store.

        Raises:
            OrderNotFoundError: no such order
            StoreError: the store query failed
        """
        return self.store.select_one(order_id)

    def _cache_get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            raw = self.cache.get(key)
        except CacheError as e:
            logger.warning("Cache read failed for %s, falling back to store: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    # Writes

    def create_order(self, owner_id: Optional[int], payload: OrderCreate) -> MutationResult:
        order = self.store.insert(owner_id, payload.model_dump())
        logger.info("Created order %s", order.order_id)
        return self._committed(order)

    def update_order(
        self,
        order_id: int,
        owner_id: Optional[int],
        payload: OrderUpdate
    ) -> MutationResult:
        patch = payload.model_dump()
        patch["status"] = payload.status.value
        patch["owner_id"] = owner_id
        order = self.store.update(order_id, patch)
        logger.info("Updated order %s", order_id)
        return self._committed(order)

    def update_order_status(self, order_id: int, status: OrderStatus) -> MutationResult:
        order = self.store.update_status(order_id, status)
        logger.info("Order %s status set to %s", order_id, order.status.value)
        return self._committed(order)

    def delete_order(self, order_id: int) -> MutationResult:
        self.store.delete(order_id)
        logger.info("Deleted order %s", order_id)
        return self._committed(None)

    def invalidate(self) -> int:
        """
        Delete every cached page of the orders namespace.

        Returns:
            Number of keys deleted

        Raises:
            CacheError: the cache could not be scanned or cleared
        """
        keys = self.cache.keys_matching(f"{CACHE_NAMESPACE}:*")
        if keys:
            self.cache.delete_many(keys)
        logger.info("Invalidated %d cached order page(s)", len(keys))
        return len(keys)

    def _committed(self, order: Optional[Order]) -> MutationResult:
        # The store change is already committed; a cache failure here
        # degrades the result instead of failing it.
        try:
            self.invalidate()
        except CacheError as e:
            logger.warning("Order cache invalidation failed, list pages may be stale: %s", e)
            return MutationResult(order=order, cache_invalidated=False)
        return MutationResult(order=order, cache_invalidated=True)

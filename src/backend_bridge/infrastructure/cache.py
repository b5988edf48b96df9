"""Short-lived read-through cache for whole collections.

Usage example:
    from backend_bridge.infrastructure.cache import ReadThroughCache
    from backend_bridge.infrastructure.clock import SystemClock

    cache = ReadThroughCache(storage=storage, clock=SystemClock(), key="case_cache")
    cases = cache.get()
    if cases is None:
        cases = await fetch_cases()
        cache.set(cases)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from ..observability import get_logger
from ..protocols import Clock, KeyValueStorage
from ..types import CachedCollection

logger = get_logger("backend_bridge.infrastructure.cache")

DEFAULT_TTL_SECONDS = 300.0


@dataclass
class ReadThroughCache:
    """Whole-collection cache with optimistic add/patch.

    An entry whose age reaches `ttl_seconds` is treated as absent and removed
    on the next read. No locking: callers serialise writes for a resource.
    """

    storage: KeyValueStorage
    clock: Clock
    key: str = "case_cache"
    item_key: str = "case_id"
    ttl_seconds: float = DEFAULT_TTL_SECONDS

    def get(self) -> list[dict[str, object]] | None:
        entry = self.storage.get(self.key)
        if not isinstance(entry, dict):
            logger.debug("Cache miss: no entry for %s", self.key)
            return None
        items = entry.get("items")
        timestamp = entry.get("timestamp")
        if not isinstance(items, list) or not isinstance(timestamp, (int, float)):
            logger.warning("Discarding malformed cache entry for %s", self.key)
            self.invalidate()
            return None
        age = self.clock.now() - float(timestamp)
        if age >= self.ttl_seconds:
            logger.debug("Cache miss: %s expired (age %.1fs)", self.key, age)
            self.invalidate()
            return None
        logger.debug("Cache hit: %s (%d items)", self.key, len(items))
        return [dict(item) for item in items if isinstance(item, dict)]

    def set(self, items: Sequence[Mapping[str, object]]) -> None:
        entry: CachedCollection = {
            "items": [dict(item) for item in items],
            "timestamp": self.clock.now(),
        }
        self.storage.set(self.key, entry)
        logger.debug("Cache updated: %s (%d items)", self.key, len(items))

    def invalidate(self) -> None:
        self.storage.remove(self.key)
        logger.debug("Cache invalidated: %s", self.key)

    def add_optimistic(self, item: Mapping[str, object]) -> None:
        """Prepend a freshly created item when a valid cache exists."""
        current = self.get()
        if current is None:
            return
        self.set([dict(item), *current])
        logger.debug("Optimistic cache add: %s", item.get(self.item_key))

    def patch_optimistic(self, item_id: str, changes: Mapping[str, object]) -> None:
        """Merge `changes` into the cached item whose key matches `item_id`."""
        current = self.get()
        if current is None:
            return
        for index, item in enumerate(current):
            if item.get(self.item_key) == item_id:
                current[index] = {**item, **changes}
                self.set(current)
                logger.debug("Optimistic cache patch: %s", item_id)
                return

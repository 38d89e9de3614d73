import copy
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from app.core.config import MENU_CACHE_TTL, MENU_CACHE_MAX_ENTRIES

log = logging.getLogger("menu_cache")

CacheKey = Tuple[str, str, str]
Snapshot = List[Dict[str, Any]]


class MenuAvailabilityCache:
    """
    Process-local memoization of menu listings keyed by
    (outlet, category filter, availability filter).

    Entries expire after ``ttl`` seconds, but every write path that touches an
    outlet's menu items calls ``invalidate(outlet)``, which drops all filter
    variants for that outlet and bumps the outlet's generation. A snapshot read
    before an invalidation is refused by ``put`` afterwards, so a slow reader
    cannot re-populate the cache with pre-write data.
    """

    def __init__(
        self,
        ttl: int = MENU_CACHE_TTL,
        max_entries: int = MENU_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[Snapshot, float]] = {}
        self._generations: Dict[str, int] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(outlet_id, category: str, available: str) -> CacheKey:
        return (str(outlet_id), category or "all", available or "all")

    def generation(self, outlet_id) -> int:
        """Token to pass back to ``put`` for the read that is about to happen."""
        with self._lock:
            return self._generations.get(str(outlet_id), 0)

    def get(self, outlet_id, category: str = "all", available: str = "all") -> Optional[Snapshot]:
        key = self._key(outlet_id, category, available)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            snapshot, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            # Callers get their own copy; the cache is never modified through a read
            return copy.deepcopy(snapshot)

    def put(
        self,
        outlet_id,
        category: str,
        available: str,
        snapshot: Snapshot,
        generation: Optional[int] = None,
    ) -> bool:
        """Store a snapshot. Returns False when an invalidation raced the read."""
        key = self._key(outlet_id, category, available)
        with self._lock:
            if generation is not None and generation != self._generations.get(key[0], 0):
                log.debug(f"Discarding stale menu snapshot for outlet {key[0]}")
                return False
            if key not in self._entries and len(self._entries) >= self.max_entries:
                oldest = min(self._entries, key=lambda k: self._entries[k][1])
                del self._entries[oldest]
            self._entries[key] = (copy.deepcopy(snapshot), self._clock() + self.ttl)
            return True

    def invalidate(self, outlet_id) -> int:
        """Drops every filter variant cached for the outlet."""
        outlet_key = str(outlet_id)
        with self._lock:
            self._generations[outlet_key] = self._generations.get(outlet_key, 0) + 1
            stale = [key for key in self._entries if key[0] == outlet_key]
            for key in stale:
                del self._entries[key]
        if stale:
            log.info(f"Menu cache invalidated for outlet {outlet_key} ({len(stale)} entries)")
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generations.clear()

    def __len__(self) -> int:
        return len(self._entries)


# Shared instance used by every write path and by the menu listing
menu_cache = MenuAvailabilityCache()

"""
Search Cache - in-process TTL cache for search results and suggestions.

Entries expire after SEARCH_CACHE_TTL_SECONDS. Expired entries are removed
lazily on read and by an occasional sweep that runs on a fraction of writes.
"""
import random
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple

from ..core.config import SEARCH_CACHE_TTL_SECONDS
from ..core.logging_config import get_logger
from ..models.search import CacheStats, SearchResults

logger = get_logger(__name__)

SWEEP_PROBABILITY = 0.1


class SearchCache:
    """
    Cache for search results (keyed by query and filters) and suggestion lists.
    """

    def __init__(
        self,
        ttl_seconds: int = SEARCH_CACHE_TTL_SECONDS,
        sweep_probability: float = SWEEP_PROBABILITY,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Lifetime of an entry
            sweep_probability: Chance that a write also purges expired entries
            clock: Time source, replaceable in tests
        """
        self.ttl = timedelta(seconds=ttl_seconds)
        self.sweep_probability = sweep_probability
        self._clock = clock
        self._results: Dict[str, Tuple[datetime, SearchResults]] = {}
        self._suggestions: Dict[str, Tuple[datetime, list]] = {}

    def _lookup(self, store: Dict[str, Tuple[datetime, Any]], key: str) -> Optional[Any]:
        entry = store.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self.ttl:
            del store[key]
            return None
        return value

    def _put(self, store: Dict[str, Tuple[datetime, Any]], key: str, value: Any) -> None:
        store[key] = (self._clock(), value)
        if random.random() < self.sweep_probability:
            self.sweep()

    def get_results(self, key: str) -> Optional[SearchResults]:
        value = self._lookup(self._results, key)
        return value.model_copy(deep=True) if value is not None else None

    def set_results(self, key: str, results: SearchResults) -> None:
        self._put(self._results, key, results.model_copy(deep=True))

    def get_suggestions(self, key: str) -> Optional[list]:
        value = self._lookup(self._suggestions, key)
        return list(value) if value is not None else None

    def set_suggestions(self, key: str, suggestions: list) -> None:
        self._put(self._suggestions, key, list(suggestions))

    def sweep(self) -> int:
        """Drop expired entries from both maps. Returns how many were removed."""
        now = self._clock()
        removed = 0
        for store in (self._results, self._suggestions):
            expired = [key for key, (stored_at, _) in store.items() if now - stored_at >= self.ttl]
            for key in expired:
                del store[key]
            removed += len(expired)
        if removed:
            logger.debug(f"Search cache sweep removed {removed} expired entries")
        return removed

    def clear(self) -> None:
        self._results.clear()
        self._suggestions.clear()

    def stats(self) -> CacheStats:
        timestamps = [stored_at for stored_at, _ in self._results.values()]
        timestamps.extend(stored_at for stored_at, _ in self._suggestions.values())
        return CacheStats(
            entries=len(self._results),
            suggestion_entries=len(self._suggestions),
            oldest_entry=min(timestamps) if timestamps else None,
        )

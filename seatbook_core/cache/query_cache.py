# seatbook_core/cache/query_cache.py
"""
In-memory cache of server query results.
Each entry remembers when it was fetched so readers can judge staleness,
and mutations invalidate the queries they affect by key prefix.
"""
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

LIBRARY_KEY = "library/me"


def seats_key(library_id: str) -> str:
    """Cache key of a library's seat grid query."""
    return f"seats/{library_id}"


@dataclass
class CacheEntry:
    value: Any
    fetched_at: float


class QueryCache:
    """Keyed store of the latest successful server reads."""

    DEFAULT_MAX_AGE = 60.0  # seconds

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        """Initialize an empty cache; ``clock`` returns monotonic seconds."""
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: Any) -> None:
        """Store a fresh result."""
        with self._lock:
            self._entries[key] = CacheEntry(value=value, fetched_at=self._clock())

    def get(self, key: str, max_age: Optional[float] = None) -> Optional[Any]:
        """
        Get a cached result.

        Args:
            key: Cache key
            max_age: Maximum age in seconds; None accepts any age

        Returns:
            Cached value or None if missing or too old
        """
        entry = self.get_entry(key)
        if entry is None:
            return None
        if max_age is not None and self._clock() - entry.fetched_at > max_age:
            return None
        return entry.value

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def has(self, key: str) -> bool:
        return self.get_entry(key) is not None

    def invalidate(self, prefix: str) -> int:
        """Drop every entry whose key starts with ``prefix``; returns the count."""
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for key in keys:
                del self._entries[key]
        return len(keys)

    def clear(self) -> None:
        """Clear all cached results."""
        with self._lock:
            self._entries.clear()

    def get_info(self) -> Dict[str, Any]:
        """Get information about cached queries."""
        now = self._clock()
        with self._lock:
            items: List[Dict[str, Any]] = [
                {"key": key, "age_seconds": round(now - entry.fetched_at, 1)}
                for key, entry in sorted(self._entries.items())
            ]
        return {"item_count": len(items), "items": items}


# Singleton instance
_query_cache: Optional[QueryCache] = None


def get_query_cache() -> QueryCache:
    """Get the singleton query cache instance."""
    global _query_cache
    if _query_cache is None:
        _query_cache = QueryCache()
    return _query_cache


def clear_query_cache() -> None:
    """Convenience function to clear the query cache."""
    get_query_cache().clear()

# seatbook_core/cache/__init__.py
"""
Cache module for server query results.
Keeps the latest remote reads so the UI can render without refetching.
"""
from .query_cache import (
    QueryCache,
    CacheEntry,
    LIBRARY_KEY,
    seats_key,
    get_query_cache,
    clear_query_cache,
)

__all__ = [
    "QueryCache",
    "CacheEntry",
    "LIBRARY_KEY",
    "seats_key",
    "get_query_cache",
    "clear_query_cache",
]

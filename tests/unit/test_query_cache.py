# =============================================================================
# tests/unit/test_query_cache.py
# Unit Tests for the query result cache
# =============================================================================

from seatbook_core.cache import LIBRARY_KEY, QueryCache, seats_key


class TestQueryCache:

    def test_set_and_get(self, query_cache):
        query_cache.set(LIBRARY_KEY, {"name": "Quiet Corner"})
        assert query_cache.get(LIBRARY_KEY) == {"name": "Quiet Corner"}
        assert query_cache.has(LIBRARY_KEY)
        assert query_cache.get("missing") is None

    def test_max_age(self, query_cache, fake_clock):
        query_cache.set(seats_key("lib-1"), [1, 2])
        fake_clock.advance(30)
        assert query_cache.get(seats_key("lib-1"), max_age=60) == [1, 2]
        fake_clock.advance(31)
        assert query_cache.get(seats_key("lib-1"), max_age=60) is None
        assert query_cache.get(seats_key("lib-1")) == [1, 2]

    def test_invalidate_by_prefix(self, query_cache):
        query_cache.set(seats_key("lib-1"), [])
        query_cache.set(seats_key("lib-2"), [])
        query_cache.set(LIBRARY_KEY, {})

        assert query_cache.invalidate("seats/") == 2
        assert query_cache.has(LIBRARY_KEY)
        assert not query_cache.has(seats_key("lib-1"))

    def test_clear_and_info(self, fake_clock):
        cache = QueryCache(clock=fake_clock)
        cache.set(LIBRARY_KEY, {})
        fake_clock.advance(2.5)

        info = cache.get_info()
        assert info["item_count"] == 1
        assert info["items"][0] == {"key": LIBRARY_KEY, "age_seconds": 2.5}

        cache.clear()
        assert cache.get_info()["item_count"] == 0

"""Unit tests for cache utilities."""
import time

from booking_core.cache import SimpleTTLCache


class CountingLoader:
    def __init__(self, value):
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.value


class TestSimpleTTLCache:
    """Test the TTL cache implementation."""

    def test_get_or_load_calls_loader_once(self):
        """Test that a miss loads and caches, and a hit skips the loader."""
        cache = SimpleTTLCache[list](ttl=60)
        loader = CountingLoader(["Focus Room"])

        assert cache.get_or_load("rooms", loader) == ["Focus Room"]
        assert cache.get_or_load("rooms", loader) == ["Focus Room"]
        assert loader.calls == 1

    def test_keys_are_cached_separately(self):
        """Test that each key has its own entry."""
        cache = SimpleTTLCache[str](ttl=60)

        assert cache.get_or_load("key1", lambda: "value1") == "value1"
        assert cache.get_or_load("key2", lambda: "value2") == "value2"
        assert cache.get_or_load("key1", lambda: "other") == "value1"

    def test_get_or_load_caches_empty_results(self):
        """Test that an empty listing is cached too."""
        cache = SimpleTTLCache[list](ttl=60)
        loader = CountingLoader([])

        cache.get_or_load("none", loader)
        cache.get_or_load("none", loader)
        assert loader.calls == 1

    def test_cache_ttl_expiration(self):
        """Test that values are reloaded after TTL."""
        cache = SimpleTTLCache[str](ttl=1)
        loader = CountingLoader("value1")

        cache.get_or_load("key1", loader)
        time.sleep(1.1)
        cache.get_or_load("key1", loader)

        assert loader.calls == 2

    def test_cache_clear(self):
        """Test that clearing forces a reload."""
        cache = SimpleTTLCache[str](ttl=60)
        loader = CountingLoader("value1")

        cache.get_or_load("key1", loader)
        cache.clear()
        cache.get_or_load("key1", loader)

        assert loader.calls == 2

    def test_cache_maxsize(self):
        """Test cache respects maxsize limit."""
        cache = SimpleTTLCache[str](ttl=60, maxsize=2)
        first = CountingLoader("value1")

        cache.get_or_load("key1", first)
        cache.get_or_load("key2", lambda: "value2")
        cache.get_or_load("key3", lambda: "value3")
        cache.get_or_load("key1", first)

        assert first.calls == 2

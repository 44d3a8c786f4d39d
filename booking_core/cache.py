"""TTL cache used for resource catalogue reads."""
from __future__ import annotations

from typing import Callable, Generic, TypeVar

from cachetools import TTLCache

T = TypeVar("T")


class SimpleTTLCache(Generic[T]):
    def __init__(self, ttl: int, maxsize: int = 256) -> None:
        self._cache: TTLCache[str, T] = TTLCache(maxsize=maxsize, ttl=ttl)

    def get_or_load(self, key: str, loader: Callable[[], T]) -> T:
        """Return the cached value, calling ``loader`` and caching its result on a miss."""

        cached = self._cache.get(key)
        if cached is not None:
            return cached
        value = loader()
        self._cache[key] = value
        return value

    def clear(self) -> None:
        self._cache.clear()

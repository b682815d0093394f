"""
Explicit lookup cache passed into the components that need it.

Policy: entries expire `ttl_seconds` after being written (cachetools TTLCache
handles eviction, `maxsize` bounds memory). Writers call `invalidate` /
`invalidate_prefix` after changing the underlying rows.
"""

import threading
from typing import Any, Callable

from cachetools import TTLCache


class LookupCache:
    """Thread-safe TTL cache for read-mostly lookups (e.g. course schedules)."""

    def __init__(self, maxsize: int = 100, ttl_seconds: float = 60):
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds)
        self._lock = threading.Lock()

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        """Return the cached value for `key`, calling `loader` on a miss."""
        with self._lock:
            if key in self._cache:
                return self._cache[key]
        value = loader()
        with self._lock:
            self._cache[key] = value
        return value

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> None:
        with self._lock:
            for key in [k for k in self._cache.keys() if k.startswith(prefix)]:
                self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._cache

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

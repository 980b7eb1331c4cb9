# ==============================================================================
# In-Memory Cache Implementation
# ==============================================================================
"""
Process-local implementation of the Cache interface.

Models the browser's tab-scoped storage: values live exactly as long as the
collector process. Values are round-tripped through JSON so callers get the
same copy semantics as with ValkeyCache.
"""

import fnmatch
import json
import threading
import time

from sitepulse.base import Cache


class MemoryCache(Cache):
    """Thread-safe dict-backed cache with optional TTL."""

    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._data[key]
            return None
        return value

    def get(self, key: str) -> dict | None:
        with self._lock:
            value = self._live(key)
        return json.loads(value) if value is not None else None

    def set(self, key: str, value: dict, ttl_seconds: int | None = None) -> None:
        expires_at = time.monotonic() + ttl_seconds if ttl_seconds is not None else None
        with self._lock:
            self._data[key] = (json.dumps(value), expires_at)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self, pattern: str) -> list[str]:
        with self._lock:
            return [k for k in list(self._data) if fnmatch.fnmatchcase(k, pattern) and self._live(k)]

    def delete_pattern(self, pattern: str) -> int:
        with self._lock:
            matched = [k for k in self._data if fnmatch.fnmatchcase(k, pattern)]
            for key in matched:
                del self._data[key]
        return len(matched)

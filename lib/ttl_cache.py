# =============================================================================
# lib/ttl_cache.py - In-Process TTL Cache
# =============================================================================
# A small time-to-live cache used for per-user response caching (dashboard
# payloads, search results).
#
# Semantics:
# - Each entry expires a fixed number of seconds after it was stored
# - Expired entries are treated as absent on read and dropped lazily
# - purge_expired() sweeps the whole map (run periodically by the API)
# - No size bound and no eviction other than expiry
# - Two concurrent misses for the same key both recompute; the last
#   writer wins
#
# The cache lives in the API process memory, so every worker process has
# its own copy and a restart empties it.
#
# Usage:
#   from lib.ttl_cache import TTLCache
#   cache = TTLCache(ttl_seconds=60)
#   entry = cache.get(f"dashboard:{user_id}")
#   if entry is None:
#       entry = cache.set(f"dashboard:{user_id}", build_payload())
# =============================================================================

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A cached value with the wall-clock times it was stored and expires."""

    value: Any
    cached_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    @property
    def cached_at_iso(self) -> str:
        return datetime.fromtimestamp(self.cached_at, tz=timezone.utc).isoformat()

    @property
    def expires_at_iso(self) -> str:
        return datetime.fromtimestamp(self.expires_at, tz=timezone.utc).isoformat()


class TTLCache:
    """
    Thread-safe map of key -> CacheEntry with a fixed time-to-live.

    Args:
        ttl_seconds: Default lifetime of an entry
        clock: Function returning the current epoch time in seconds
               (injectable for tests; defaults to time.time)
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] | None = None):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.time
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> CacheEntry | None:
        """
        Return the live entry for key, or None on miss/expiry.

        An expired entry is removed as a side effect.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(now):
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> CacheEntry:
        """Store value under key, overwriting any existing entry."""
        now = self._clock()
        entry = CacheEntry(
            value=value,
            cached_at=now,
            expires_at=now + (ttl_seconds or self.ttl_seconds),
        )
        with self._lock:
            self._entries[key] = entry
        return entry

    def delete(self, key: str) -> bool:
        """Drop one key. Returns True if something was removed."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        """Drop every key starting with prefix. Returns the number removed."""
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        now = self._clock()
        with self._lock:
            doomed = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug(f"Purged {len(doomed)} expired cache entries")
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"entries": len(self._entries), "hits": self._hits, "misses": self._misses}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import threading
import time
from typing import Any, Callable

logger = logging.getLogger(__name__)

# Expired entries stay readable as stale fallbacks for this many TTLs.
STALE_RETENTION_FACTOR = 12


def make_cache_key(method: str | None, endpoint: str, body: Any = None) -> str:
    method_name = (method or "GET").upper()
    if body is None or body == "":
        serialized = ""
    elif isinstance(body, str):
        serialized = body
    else:
        serialized = json.dumps(body, sort_keys=True, default=str)
    return f"{method_name}:{endpoint}:{serialized}"


@dataclass
class _CacheEntry:
    value: Any
    stored_at: float


class ResponseCache:
    """In-memory response cache with a fixed time-to-live.

    Expired entries are normally evicted by :meth:`get`. The request layer
    looks up with ``evict_expired=False`` so that :meth:`get_stale` can still
    hand back the last response once every retry has failed. Entries older
    than ``ttl_seconds * STALE_RETENTION_FACTOR`` are pruned on :meth:`set`.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.time):
        self._ttl_seconds = ttl_seconds
        self._retention_seconds = ttl_seconds * STALE_RETENTION_FACTOR
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def get(self, key: str, evict_expired: bool = True) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.stored_at < self._ttl_seconds:
                logger.debug("Cache hit for %s", key)
                return entry.value
            if evict_expired:
                del self._entries[key]
            return None

    def get_stale(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            return entry.value if entry is not None else None

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            now = self._clock()
            self._prune_unlocked(now)
            self._entries[key] = _CacheEntry(value=value, stored_at=now)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Response cache cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def _prune_unlocked(self, now: float) -> None:
        expired = [
            key
            for key, entry in self._entries.items()
            if now - entry.stored_at >= self._retention_seconds
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Pruned %s stale cache entries", len(expired))

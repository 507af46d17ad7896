"""Content-addressed memo of agent responses.

Entries expire after a fixed TTL (checked lazily on read) and the table is
bounded: once full, the oldest inserted entry is evicted first, regardless of
how often it was hit.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CacheEntry:
    key: str
    value: Any
    created_at: float
    expires_at: float
    hits: int = 0

    def expired(self, now: float) -> bool:
        return now > self.expires_at


def make_key(agent: str, role: str | None, prompt: str) -> str:
    """Derive the cache key for one (agent, role, prompt) request."""

    canonical = json.dumps(
        {"agent": agent, "role": role or "", "prompt": prompt},
        sort_keys=True,
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ResponseCache:
    """TTL + FIFO bounded cache.

    The cache is shared between the event loop (dispatch) and the process
    monitor thread (periodic cleanup), hence the lock.
    """

    def __init__(
        self,
        *,
        ttl: float = 600.0,
        max_size: int = 50,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                logger.debug("Cache miss", extra={"key": key})
                return None

            if entry.expired(self._clock()):
                del self._entries[key]
                self.misses += 1
                logger.debug("Cache entry expired", extra={"key": key})
                return None

            entry.hits += 1
            self.hits += 1
            logger.debug("Cache hit", extra={"key": key, "hits": entry.hits})
            return entry.value

    def set(self, key: str, value: Any) -> None:  # noqa: A003
        with self._lock:
            now = self._clock()
            # Re-inserting a key moves it to the back of the FIFO order.
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                logger.debug("Cache evicted oldest entry", extra={"key": oldest})

            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                created_at=now,
                expires_at=now + self.ttl,
            )

    def has(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.expired(self._clock()):
                del self._entries[key]
                return False
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Cache cleared")

    def cleanup(self) -> int:
        """Remove expired entries and return how many were dropped."""

        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.info("Cache cleanup removed expired entries", extra={"removed": len(expired)})
        return len(expired)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            total = self.hits + self.misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": round(self.hits / total, 4) if total else 0.0,
                "ttl_seconds": self.ttl,
            }

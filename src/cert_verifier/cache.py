"""
Short-lived cache of fetched certificate content.

Only what was derived from the content store is kept: the parsed document
and its recomputed hash. The ledger record, and with it the revocation flag,
is read again on every resolution. Entries are keyed by identifier and
content locator, so a record that starts pointing somewhere else misses.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class CachedContent:
    """Parsed content and its hash. Treat content as read-only."""

    content: Any
    computed_hash: str


class ContentCache:
    """Thread-safe TTL cache keyed by (identifier, content locator)."""

    def __init__(self, ttl: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[tuple[int, str], tuple[float, CachedContent]] = {}
        self._lock = threading.Lock()

    def get(self, identifier: int, content_uri: str) -> CachedContent | None:
        key = (identifier, content_uri)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, cached = entry
            if self._clock() - stored_at >= self.ttl:
                del self._entries[key]
                return None
            return cached

    def put(self, identifier: int, content_uri: str, content: Any, computed_hash: str) -> CachedContent:
        cached = CachedContent(content=content, computed_hash=computed_hash)
        with self._lock:
            self._entries[(identifier, content_uri)] = (self._clock(), cached)
        return cached

    def invalidate(self, identifier: int) -> None:
        """Drop every entry for identifier."""
        with self._lock:
            for key in [key for key in self._entries if key[0] == identifier]:
                del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

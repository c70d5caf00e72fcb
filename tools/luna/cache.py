"""
Response Cache for Locally Handled Requests

Bounded LRU cache with per-entry TTL, keyed by a request signature
(normalized text + module + language). Only results that a capability
marked cacheable are ever stored, so time-dependent answers are always
computed fresh.

Usage:
    from tools.luna.cache import ResponseCache

    cache = ResponseCache(max_entries=256, ttl_seconds=300)
    sig = ResponseCache.signature("Calculate 25 * 8", context)
    if (hit := cache.get(sig)) is None:
        cache.put(sig, result)

Dependencies:
    - threading (stdlib)
    - time (stdlib)
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Any, Callable

from tools.logging_config import get_logger
from tools.luna.errors import CacheCorruption
from tools.luna.models import AppContext, CacheEntry, LocalTaskResult
from tools.luna.parser.keywords import normalize

logger = get_logger(__name__)


class ResponseCache:
    """Thread-safe LRU + TTL cache of LocalTaskResults.

    Args:
        max_entries: Capacity; the least recently used entry is evicted first.
        ttl_seconds: Default lifetime of an entry.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        max_entries: int = 256,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0
        self._corruptions = 0

    @staticmethod
    def signature(text: str, context: AppContext) -> str:
        """Key for a request: same wording in the same module and language."""
        module = context.current_module.value if context.current_module else "-"
        return f"{normalize(text or '')}|{module}|{context.language}"

    def get(self, signature: str) -> LocalTaskResult | None:
        """Return a live entry (and mark it recently used), or None."""
        return self.lookup(signature)[0]

    def lookup(self, signature: str) -> tuple[LocalTaskResult | None, bool]:
        """Like get(), also reporting whether a corrupt entry was discarded."""
        with self._lock:
            entry = self._entries.get(signature)
            if entry is None:
                self._misses += 1
                return None, False

            try:
                self._validate(signature, entry)
            except CacheCorruption as e:
                del self._entries[signature]
                self._corruptions += 1
                self._misses += 1
                logger.warning("cache_corruption", error=str(e))
                return None, True

            if entry.is_expired(self._clock()):
                del self._entries[signature]
                self._expirations += 1
                self._misses += 1
                return None, False

            self._entries.move_to_end(signature)
            self._hits += 1
            return entry.value, False

    def put(self, signature: str, result: LocalTaskResult, ttl: float | None = None) -> bool:
        """Store a cacheable result. Returns False when the result was refused."""
        if not result.cacheable:
            return False
        ttl = self.ttl_seconds if ttl is None else ttl
        if ttl <= 0:
            return False

        now = self._clock()
        with self._lock:
            if signature in self._entries:
                del self._entries[signature]
            while len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)
                self._evictions += 1
            self._entries[signature] = CacheEntry(
                signature=signature,
                value=result,
                created_at=now,
                expiry=now + ttl,
            )
        return True

    def invalidate(self, signature: str) -> bool:
        with self._lock:
            return self._entries.pop(signature, None) is not None

    def clear(self) -> int:
        """Drop every entry. Returns how many were removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("cache_cleared", entries=count)
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, signature: str) -> bool:
        with self._lock:
            return signature in self._entries

    def stats(self) -> dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_entries": self.max_entries,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / lookups if lookups else 0.0,
                "evictions": self._evictions,
                "expirations": self._expirations,
                "corruptions": self._corruptions,
            }

    @staticmethod
    def _validate(signature: str, entry: Any) -> None:
        """Raise CacheCorruption if an entry is not what put() stores. Must hold _lock."""
        if not isinstance(entry, CacheEntry):
            raise CacheCorruption(f"unexpected entry type {type(entry).__name__}")
        if entry.signature != signature:
            raise CacheCorruption("signature mismatch")
        if not isinstance(entry.value, LocalTaskResult) or not entry.value.cacheable:
            raise CacheCorruption("stored value is not a cacheable result")
        if entry.expiry < entry.created_at:
            raise CacheCorruption("expiry before creation")


__all__ = ["ResponseCache"]

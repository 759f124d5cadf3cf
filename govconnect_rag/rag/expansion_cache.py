"""
Query expansion cache: TTL + insertion-order eviction.

Owned by the RAG service instance; tests inject their own clock.
"""

import re
import time
from collections.abc import Callable
from dataclasses import dataclass

from govconnect_rag.shared.constants import EXPANSION_CACHE_SIZE, EXPANSION_CACHE_TTL_SECONDS

_NON_WORD = re.compile(r"[^\w\s]")


def normalize_cache_key(query: str) -> str:
    """Lowercase, punctuation stripped, whitespace collapsed."""
    return " ".join(_NON_WORD.sub("", query.lower()).split())


@dataclass
class ExpansionCacheEntry:
    expanded: str
    timestamp: float


class ExpansionCache:
    """
    Bounded map of normalized query → expanded query.

    Usage:
        cache = ExpansionCache(ttl_seconds=900, max_size=200)
        cache.put("cara bikin KTP", "cara bikin KTP kartu tanda penduduk ...")
        cache.get("Cara bikin KTP?")  # hit, same normalized key
    """

    def __init__(
        self,
        ttl_seconds: float = EXPANSION_CACHE_TTL_SECONDS,
        max_size: int = EXPANSION_CACHE_SIZE,
        clock: Callable[[], float] = time.time,
    ):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: dict[str, ExpansionCacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, query: str) -> str | None:
        key = normalize_cache_key(query)
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self._clock() - entry.timestamp >= self.ttl_seconds:
            del self._entries[key]
            self._misses += 1
            return None
        self._hits += 1
        return entry.expanded

    def put(self, query: str, expanded: str) -> None:
        key = normalize_cache_key(query)
        if key not in self._entries and len(self._entries) >= self.max_size:
            # Oldest insertion goes first
            del self._entries[next(iter(self._entries))]
        self._entries[key] = ExpansionCacheEntry(expanded=expanded, timestamp=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict[str, float]:
        total = self._hits + self._misses
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / max(1, total),
        }

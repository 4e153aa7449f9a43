"""Session-scoped response cache with lazy TTL expiry.

Prevents repeated keyword-research, SERP and outline calls for identical
inputs within one orchestration session. Entries are not purged in the
background: an entry older than the TTL is simply treated as absent on read.

One ResponseCache instance lives for one session and is passed to the
services that need it. It is never a module-level singleton.
"""

import hashlib
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from article_pipeline.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 3600


@dataclass
class CacheStats:
    """Statistics for cache operations."""

    hits: int = 0
    misses: int = 0
    expired: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total


@dataclass
class CacheEntry:
    """Cached payload with its insertion time."""

    payload: Any
    inserted_at: float


def build_cache_key(stage: str, primary_input: str) -> str:
    """Build a fingerprint key from a stage name and its primary input.

    The input is normalized (trimmed, lowercased) and hashed so long titles
    produce short, stable keys.
    """
    normalized = primary_input.strip().lower()
    digest = hashlib.sha256(normalized.encode()).hexdigest()[:16]
    return f"{stage}:{digest}"


class ResponseCache:
    """In-memory key/value store whose entries expire after a TTL."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: dict[str, CacheEntry] = {}
        self._stats = CacheStats()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def stats(self) -> CacheStats:
        """Get cache statistics."""
        return self._stats

    def set(self, key: str, value: Any) -> None:
        """Store value under key, stamping the current time."""
        self._entries[key] = CacheEntry(payload=value, inserted_at=self._clock())

    def get(self, key: str) -> Any | None:
        """Return the value for key, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            return None
        if self._clock() - entry.inserted_at >= self._ttl:
            self._stats.misses += 1
            self._stats.expired += 1
            logger.debug("Cache entry expired", extra={"cache_key": key})
            return None
        self._stats.hits += 1
        return entry.payload

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() - entry.inserted_at < self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    async def get_or_set(
        self, key: str, factory: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Return the cached value for key, computing and storing it on a miss."""
        cached = self.get(key)
        if cached is not None:
            logger.debug("Cache hit", extra={"cache_key": key})
            return cached
        value = await factory()
        if value is not None:
            self.set(key, value)
        return value

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

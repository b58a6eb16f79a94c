"""In-process cache for successful GET responses."""

import copy
import hashlib
import time
from typing import Any, Callable, Optional

from cachetools import TTLCache

from tunebridge.models.data_models import CacheMetrics


DEFAULT_MAX_SIZE = 1000
DEFAULT_TTL_MS = 60000


def cache_key(method: str, url: str, user: Optional[str] = None) -> str:
    """
    Key for a request: sha256 of method, full URL and the caller identity.

    The identity (access token or user id) keeps one user's responses away
    from another's.
    """
    parts = [method.upper(), url]
    if user is not None:
        parts.append(str(user))
    digest = hashlib.sha256("::".join(parts).encode("utf-8")).hexdigest()
    return f"http:{digest}"


class _EvictionCountingCache(TTLCache):
    """TTLCache that reports every entry it drops (LRU overflow or expiry)."""

    def __init__(self, maxsize: int, ttl: float, timer: Callable[[], float], on_evict: Callable[[int], None]):
        super().__init__(maxsize, ttl, timer=timer)
        self._on_evict = on_evict

    def popitem(self):
        item = super().popitem()
        self._on_evict(1)
        return item

    def expire(self, time=None):
        size = self.currsize
        expired = super().expire(time)
        if self.currsize < size:
            self._on_evict(size - self.currsize)
        return expired


class ResponseCache:
    """
    LRU cache with a per-entry TTL for decoded JSON payloads.

    Values are deep-copied on the way in and out, so callers can never
    mutate a cached payload.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_ms: float = DEFAULT_TTL_MS,
        timer: Callable[[], float] = time.monotonic
    ):
        """
        Initialize response cache.

        Args:
            max_size: Maximum number of entries before the least recently used is dropped
            ttl_ms: Lifetime of an entry in milliseconds
            timer: Clock function in seconds (default: time.monotonic)
        """
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got: {max_size}")
        if ttl_ms <= 0:
            raise ValueError(f"ttl_ms must be positive, got: {ttl_ms}")

        self.max_size = max_size
        self.ttl_ms = ttl_ms
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self._cache = _EvictionCountingCache(max_size, ttl_ms / 1000.0, timer, self._record_evictions)

    def _record_evictions(self, count: int) -> None:
        self.evictions += count

    def get(self, key: str) -> Optional[Any]:
        self._cache.expire()
        value = self._cache.get(key)
        if value is None:
            self.misses += 1
            return None
        self.hits += 1
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        self._cache[key] = copy.deepcopy(value)

    def clear(self) -> None:
        # MutableMapping.clear() drains through popitem()
        evictions = self.evictions
        self._cache.clear()
        self.evictions = evictions

    def get_metrics(self) -> CacheMetrics:
        return CacheMetrics(
            hits=self.hits,
            misses=self.misses,
            evictions=self.evictions,
            size=len(self._cache),
        )

    def reset_metrics(self) -> None:
        self.hits = 0
        self.misses = 0
        self.evictions = 0

"""
In-process TTL caches.

Entries expire after a per-cache default TTL (overridable per entry). When a
cache is full the least recently read entry is evicted. Expired entries are
dropped lazily on read and by ``cleanup()``.
"""

import fnmatch
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from app.core.config import get_settings

settings = get_settings()

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: Any
    expires_at: float
    last_accessed: float


class TTLCache:
    """Dictionary-backed cache with expiry and LRU eviction."""

    def __init__(self, name: str, default_ttl: float = 300, max_size: int = 1000):
        self.name = name
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._data: Dict[str, _Entry] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None

        now = time.monotonic()
        if now > entry.expires_at:
            del self._data[key]
            return None

        entry.last_accessed = now
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        if len(self._data) >= self.max_size and key not in self._data:
            self._evict_lru()

        now = time.monotonic()
        self._data[key] = _Entry(
            value=value,
            expires_at=now + (self.default_ttl if ttl is None else ttl),
            last_accessed=now,
        )

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern such as ``models:openai:*``."""
        matched = [key for key in self._data if fnmatch.fnmatchcase(key, pattern)]
        for key in matched:
            del self._data[key]
        return len(matched)

    def clear(self) -> None:
        self._data.clear()

    def cleanup(self) -> int:
        """Drop expired entries and return how many were removed."""
        now = time.monotonic()
        expired = [key for key, entry in self._data.items() if now > entry.expires_at]
        for key in expired:
            del self._data[key]
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        size = len(self._data)
        return {
            "name": self.name,
            "size": size,
            "maxSize": self.max_size,
            "utilization": round(size / self.max_size * 100) if self.max_size else 0,
        }

    def __len__(self) -> int:
        return len(self._data)

    def _evict_lru(self) -> None:
        if not self._data:
            return
        oldest_key = min(self._data, key=lambda k: self._data[k].last_accessed)
        del self._data[oldest_key]
        logger.debug(f"Evicted {oldest_key} from {self.name} cache")


# Model lists rarely change
model_cache = TTLCache("models", default_ttl=settings.model_cache_ttl_seconds, max_size=500)

shared_models_cache = TTLCache("shared_models", default_ttl=settings.cache_ttl_seconds, max_size=100)

usage_limits_cache = TTLCache("usage_limits", default_ttl=settings.cache_ttl_seconds, max_size=200)

# Save responses keyed by (user id, Idempotency-Key header)
idempotency_cache = TTLCache(
    "idempotency",
    default_ttl=settings.idempotency_ttl_seconds,
    max_size=settings.cache_max_size * 10,
)

app_cache = TTLCache("app", default_ttl=settings.cache_ttl_seconds, max_size=settings.cache_max_size)

ALL_CACHES = (model_cache, shared_models_cache, usage_limits_cache, idempotency_cache, app_cache)


def invalidate_shared_models_cache() -> None:
    """Invalidate all caches related to shared models."""
    shared_models_cache.clear()
    model_cache.delete_pattern("models:*")


def invalidate_provider_cache(provider: str) -> None:
    model_cache.delete_pattern(f"models:{provider}:*")


def invalidate_usage_limits_cache() -> None:
    usage_limits_cache.clear()


def cache_stats() -> Dict[str, Dict[str, Any]]:
    return {cache.name: cache.stats() for cache in ALL_CACHES}


def clear_all_caches() -> None:
    for cache in ALL_CACHES:
        cache.clear()

"""Stores used by the skill invoker.

Provides cache and metrics implementations behind common interfaces:
    - ResultCache / MetricsStore: Abstract interfaces
    - InMemoryResultCache / InMemoryMetricsStore: Per-invoker in-memory stores
    - RedisResultCache: Redis-backed cache shared between invokers

Design: Adapter Pattern + Dependency Inversion (SOLID)
    All store implementations adapt to the abstract interfaces.
    The invoker depends on the abstractions, enabling easy swapping.
"""

from skillflow.storage.base import (
    CACHE_MISS,
    CacheStats,
    MetricsStore,
    ResultCache,
    StorageError,
)
from skillflow.storage.memory import CacheEntry, InMemoryMetricsStore, InMemoryResultCache


def __getattr__(name: str):
    """Lazy import of the Redis cache so redis-py loads only when used."""
    if name == "RedisResultCache":
        from skillflow.storage.redis import RedisResultCache

        return RedisResultCache
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "CACHE_MISS",
    "CacheEntry",
    "CacheStats",
    "ResultCache",
    "MetricsStore",
    "StorageError",
    "InMemoryResultCache",
    "InMemoryMetricsStore",
    "RedisResultCache",
]

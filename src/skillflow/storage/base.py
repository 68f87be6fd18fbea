"""
ResultCache and MetricsStore - abstract interfaces for the invoker's stores.

Design Pattern: Adapter Pattern
These ABCs define the target interfaces that every store adapts to.
The invoker depends only on them, so an in-memory cache can be swapped
for a shared Redis cache without touching invocation logic.

Design Principle: Dependency Inversion (SOLID)
SkillInvoker depends on ResultCache/MetricsStore, not on concrete
implementations.

Concurrency contract:
Stores are mutated by concurrently running steps of the same wave, so
every implementation must serialize its own updates (no lost updates).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from skillflow.core.errors import SkillflowError
from skillflow.models import SkillMetric

# Sentinel value for cache miss detection
#
# Problem: returning None cannot distinguish between:
#   - Cache miss (no entry found)
#   - Cache hit whose stored value is None
#
# Solution: unique object tested with identity (is), not equality (==)
#
# Usage:
#   cached = await cache.get(key)
#   if cached is not CACHE_MISS:
#       return cached  # may be None
CACHE_MISS = object()


class StorageError(SkillflowError):
    """
    Store operation failed.

    From Dave Cheney: "Errors are values"
    Custom exception with context, not generic Exception.
    """

    pass


@dataclass
class CacheStats:
    """
    Point-in-time view of a result cache.

    Attributes:
        size: Number of live (unexpired) entries
        keys: Their keys
    """

    size: int = 0
    keys: list[str] = field(default_factory=list)


class ResultCache(ABC):
    """
    Abstract TTL cache of skill results.

    Keys are opaque strings built by the invoker from
    (skill name, canonical input). Entries are created on miss and
    evicted on expiry or explicit clear.
    """

    @abstractmethod
    async def get(self, key: str) -> Any:
        """
        Return the live value for key, or CACHE_MISS.

        Expired entries must be treated as misses.
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_ms: int) -> None:
        """
        Store value under key until now + ttl_ms.

        Raises:
            StorageError: If the backend rejects the write
        """
        pass

    @abstractmethod
    async def clear(self, prefix: str | None = None) -> int:
        """
        Remove entries whose key starts with prefix (all entries if None).

        Returns:
            Number of entries removed
        """
        pass

    @abstractmethod
    async def stats(self) -> CacheStats:
        """Return the live entries."""
        pass

    async def reset(self) -> None:
        """Remove every entry. Default implementation delegates to clear()."""
        await self.clear()


class MetricsStore(ABC):
    """
    Abstract per-skill metrics aggregate.

    Only the invoker writes to it: once per attempt and once per cache hit.
    """

    @abstractmethod
    async def record_attempt(self, skill_name: str, duration_ms: float, success: bool) -> None:
        """Fold one attempt into the skill's metric."""
        pass

    @abstractmethod
    async def record_cache_hit(self, skill_name: str) -> None:
        """Count a call served from the cache."""
        pass

    @abstractmethod
    async def get(self, skill_name: str) -> SkillMetric:
        """
        Return a snapshot of the skill's metric.

        Unknown skills yield a zeroed SkillMetric rather than an error.
        """
        pass

    @abstractmethod
    async def all(self) -> list[SkillMetric]:
        """Return snapshots for every skill seen so far, sorted by name."""
        pass

    @abstractmethod
    async def reset(self, skill_name: str | None = None) -> None:
        """Zero one skill's metric, or every metric when skill_name is None."""
        pass

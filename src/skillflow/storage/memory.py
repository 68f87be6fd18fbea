"""In-memory stores for skillflow.

Design Pattern: Adapter Pattern
InMemoryResultCache and InMemoryMetricsStore adapt plain dictionaries
to the ResultCache and MetricsStore interfaces.

Instances are immediately usable after __init__. Every mutation happens
under an asyncio.Lock so concurrent steps of one wave cannot lose updates.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from skillflow.models import SkillMetric
from skillflow.storage.base import CACHE_MISS, CacheStats, MetricsStore, ResultCache


@dataclass
class CacheEntry:
    """
    A cached skill result.

    Attributes:
        value: The skill output
        expires_at: Clock reading (seconds) after which the entry is dead
    """

    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class InMemoryResultCache(ResultCache):
    """In-memory TTL cache, owned by a single invoker.

    Usage:
        cache = InMemoryResultCache()
        await cache.set("summarizer:abc", {"summary": "..."}, ttl_ms=60_000)
        value = await cache.get("summarizer:abc")
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """Initialize an empty cache.

        Args:
            clock: Monotonic clock in seconds; injectable for tests
        """
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock
        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"InMemoryResultCache(size={len(self._entries)})"

    async def get(self, key: str) -> Any:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return CACHE_MISS
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return CACHE_MISS
            return entry.value

    async def set(self, key: str, value: Any, ttl_ms: int) -> None:
        async with self._lock:
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl_ms / 1000.0)

    async def clear(self, prefix: str | None = None) -> int:
        async with self._lock:
            if prefix is None:
                removed = len(self._entries)
                self._entries.clear()
                return removed

            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    async def stats(self) -> CacheStats:
        async with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            keys = list(self._entries)
            return CacheStats(size=len(keys), keys=keys)


class InMemoryMetricsStore(MetricsStore):
    """In-memory per-skill metrics, owned by a single invoker."""

    def __init__(self):
        self._metrics: dict[str, SkillMetric] = {}
        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"InMemoryMetricsStore(skills={sorted(self._metrics)})"

    def _metric(self, skill_name: str) -> SkillMetric:
        metric = self._metrics.get(skill_name)
        if metric is None:
            metric = self._metrics[skill_name] = SkillMetric(skill_name=skill_name)
        return metric

    async def record_attempt(self, skill_name: str, duration_ms: float, success: bool) -> None:
        async with self._lock:
            self._metric(skill_name).record_attempt(duration_ms, success)

    async def record_cache_hit(self, skill_name: str) -> None:
        async with self._lock:
            self._metric(skill_name).record_cache_hit()

    async def get(self, skill_name: str) -> SkillMetric:
        async with self._lock:
            metric = self._metrics.get(skill_name)
            return metric.snapshot() if metric else SkillMetric(skill_name=skill_name)

    async def all(self) -> list[SkillMetric]:
        async with self._lock:
            return [self._metrics[name].snapshot() for name in sorted(self._metrics)]

    async def reset(self, skill_name: str | None = None) -> None:
        async with self._lock:
            if skill_name is None:
                for name in self._metrics:
                    self._metrics[name] = SkillMetric(skill_name=name)
            elif skill_name in self._metrics:
                self._metrics[skill_name] = SkillMetric(skill_name=skill_name)

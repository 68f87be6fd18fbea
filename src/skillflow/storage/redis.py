"""Redis-backed result cache.

Lets several invokers (for example, one engine per worker process on the
same host) share cached skill results. Expiry is delegated to Redis
(``SET key value PX ttl``), so no sweeping is needed.

Data Structures:
- skillflow:cache:{skill_name}:{input_hash} (STRING): pickled skill output

Design: Adapter Pattern
Implements ResultCache for Redis, adapting the key-value store to the
interface the invoker expects. Metrics stay in process; only results are
shared.
"""

from __future__ import annotations

import pickle
from typing import Any

try:
    import redis.asyncio as redis
except ImportError:
    raise ImportError("redis-py is required for RedisResultCache. Install with: pip install redis")

from skillflow.storage.base import CACHE_MISS, CacheStats, ResultCache, StorageError

DEFAULT_PREFIX = "skillflow:cache:"


class RedisResultCache(ResultCache):
    """Redis result cache using connection pooling.

    All dependencies (Redis connection) passed explicitly.

    Usage:
        cache = RedisResultCache("redis://localhost:6379")
        await cache.connect()

        invoker = SkillInvoker(registry, cache=cache)
        ...
        await cache.close()
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        max_connections: int = 16,
        prefix: str = DEFAULT_PREFIX,
        client: Any = None,
    ):
        """Initialize the cache.

        Default redis_url works for local development.

        Args:
            redis_url: Redis connection URL
            max_connections: Maximum pool size
            prefix: Namespace prepended to every key
            client: Already-connected redis.asyncio.Redis (skips connect())
        """
        self._redis_url = redis_url
        self._max_connections = max_connections
        self._prefix = prefix
        self._redis: Any = client

    def __repr__(self) -> str:
        return f"RedisResultCache(url={self._redis_url!r}, prefix={self._prefix!r})"

    async def connect(self) -> None:
        """Establish Redis connection pool."""
        if self._redis is None:
            self._redis = redis.from_url(
                self._redis_url,
                decode_responses=False,  # values are pickled bytes
                max_connections=self._max_connections,
            )

    async def close(self) -> None:
        """Close Redis connection pool."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    def _client(self) -> Any:
        """Return the connection or raise immediately if not connected."""
        if self._redis is None:
            raise StorageError("Not connected. Call connect() first.")
        return self._redis

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def _scan(self, prefix: str) -> list[bytes]:
        client = self._client()
        return [raw async for raw in client.scan_iter(match=f"{self._key(prefix)}*")]

    async def get(self, key: str) -> Any:
        client = self._client()
        try:
            raw = await client.get(self._key(key))
        except redis.RedisError as e:
            raise StorageError(f"Cache read failed for {key}: {e}") from e

        if raw is None:
            return CACHE_MISS
        return pickle.loads(raw)

    async def set(self, key: str, value: Any, ttl_ms: int) -> None:
        client = self._client()
        try:
            payload = pickle.dumps(value)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise StorageError(f"Cannot cache result for {key}: {e}") from e

        try:
            await client.set(self._key(key), payload, px=max(int(ttl_ms), 1))
        except redis.RedisError as e:
            raise StorageError(f"Cache write failed for {key}: {e}") from e

    async def clear(self, prefix: str | None = None) -> int:
        client = self._client()
        keys = await self._scan(prefix or "")
        if not keys:
            return 0
        return int(await client.delete(*keys))

    async def stats(self) -> CacheStats:
        raw_keys = await self._scan("")
        keys = []
        for raw in raw_keys:
            name = raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
            keys.append(name[len(self._prefix) :])
        return CacheStats(size=len(keys), keys=sorted(keys))

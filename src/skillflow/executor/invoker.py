"""
SkillInvoker - retrying, caching wrapper around raw skill calls.

This is where a step's retry policy and cache TTL turn into behavior.
The invoker owns its cache and metrics stores; engines that share an
invoker share its cache and metrics, engines with separate invokers
never interfere.

Layering of one call:
1. Resolve the skill name (SkillNotFoundError, never retried)
2. Cache lookup when a TTL is requested - a hit returns immediately
3. Retry loop: attempt, record metrics, back off, attempt again
4. On success store the result in the cache (failures are never cached)

Example:
    ```python
    invoker = SkillInvoker(registry)

    # Single attempt, no cache
    out = await invoker.invoke("summarizer", {"content": "..."})

    # Up to 3 attempts: 100ms then 200ms between them
    out = await invoker.invoke(
        "web_research", {"query": "q"}, retry_policy=RetryPolicy.STANDARD
    )

    # Served from cache for a minute
    out = await invoker.invoke("web_research", {"query": "q"}, cache_ttl_ms=60_000)
    ```
"""

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import xxhash

from skillflow.core.errors import StepExecutionError
from skillflow.core.skill import SkillRegistry
from skillflow.executor.outcome import InvocationResult, ParallelExecutionResult
from skillflow.models import RetryableError, RetryPolicy, SkillMetric
from skillflow.storage.base import CACHE_MISS, CacheStats, MetricsStore, ResultCache
from skillflow.storage.memory import InMemoryMetricsStore, InMemoryResultCache

logger = logging.getLogger(__name__)


def cache_key(skill_name: str, input: Any) -> str:
    """
    Build the cache key for a (skill, input) pair.

    The input is serialized as canonical JSON (sorted keys, compact
    separators) and hashed with xxhash, so equal inputs map to the same
    key regardless of mapping order.

    Returns:
        ``"<skill_name>:<hex digest>"``
    """
    try:
        canonical = json.dumps(
            input, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str
        )
    except TypeError:
        # Mixed-type mapping keys cannot be sorted
        canonical = repr(input)
    return f"{skill_name}:{xxhash.xxh64(canonical.encode('utf-8')).hexdigest()}"


class SkillInvoker:
    """
    Invoke registered skills with opt-in retry and caching.

    From Dave Cheney: "Avoid package level state"
    Cache and metrics are fields of this instance, passed into the engine
    explicitly, never process-wide singletons.

    Usage:
        invoker = SkillInvoker(registry)
        engine = WorkflowEngine(invoker)
    """

    def __init__(
        self,
        registry: SkillRegistry | None = None,
        cache: ResultCache | None = None,
        metrics: MetricsStore | None = None,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the invoker.

        Args:
            registry: Skill registry (an empty one is created if omitted)
            cache: Result cache (in-memory if omitted)
            metrics: Metrics store (in-memory if omitted)
            clock: Clock in seconds used to time attempts
            sleep: Coroutine used to wait out backoff delays; injectable so
                tests can observe exact delays without waiting
        """
        self.registry = registry if registry is not None else SkillRegistry()
        self.cache = cache if cache is not None else InMemoryResultCache()
        self.metrics = metrics if metrics is not None else InMemoryMetricsStore()
        self._clock = clock
        self._sleep = sleep

    def __repr__(self) -> str:
        return f"SkillInvoker(skills={self.registry.names()})"

    def has_skill(self, skill_name: str) -> bool:
        return self.registry.has(skill_name)

    async def invoke(
        self,
        skill_name: str,
        input: Any,
        retry_policy: RetryPolicy | None = None,
        cache_ttl_ms: int | None = None,
    ) -> Any:
        """
        Invoke a skill and return its output.

        Args:
            skill_name: Registered skill name
            input: Concrete input passed to the skill
            retry_policy: Retry behavior; None means exactly one attempt
            cache_ttl_ms: Cache the result for this long; None disables caching

        Returns:
            The skill output

        Raises:
            SkillNotFoundError: If the skill is not registered
            StepExecutionError: If every permitted attempt failed
        """
        outcome = await self.invoke_detailed(skill_name, input, retry_policy, cache_ttl_ms)
        return outcome.output

    async def invoke_detailed(
        self,
        skill_name: str,
        input: Any,
        retry_policy: RetryPolicy | None = None,
        cache_ttl_ms: int | None = None,
    ) -> InvocationResult:
        """Same as invoke() but also reports attempts and cache hits."""
        capability = self.registry.resolve(skill_name)

        if not cache_ttl_ms or cache_ttl_ms <= 0:
            return await self._attempt_with_retry(skill_name, capability, input, retry_policy)

        key = cache_key(skill_name, input)
        cached = await self.cache.get(key)
        if cached is not CACHE_MISS:
            await self.metrics.record_cache_hit(skill_name)
            logger.debug(f"Cache hit for skill {skill_name} ({key})")
            return InvocationResult(output=cached, attempts=0, cache_hit=True)

        outcome = await self._attempt_with_retry(skill_name, capability, input, retry_policy)
        await self.cache.set(key, outcome.output, cache_ttl_ms)
        return outcome

    async def _attempt_with_retry(
        self,
        skill_name: str,
        capability: Any,
        input: Any,
        retry_policy: RetryPolicy | None,
    ) -> InvocationResult:
        policy = retry_policy or RetryPolicy.NONE
        attempt = 0

        while True:
            attempt += 1
            started = self._clock()
            try:
                output = await capability.invoke(input)
            except Exception as e:
                duration_ms = (self._clock() - started) * 1000.0
                await self.metrics.record_attempt(skill_name, duration_ms, success=False)

                is_retryable = e.is_retryable() if isinstance(e, RetryableError) else True
                delay_ms = policy.delay_for_attempt(attempt) if is_retryable else None

                if delay_ms is None:
                    raise StepExecutionError(skill_name, attempt, e) from e

                logger.warning(
                    f"Skill {skill_name} attempt {attempt}/{policy.max_attempts} failed: {e}; "
                    f"retrying in {delay_ms}ms"
                )
                await self._sleep(delay_ms / 1000.0)
                continue

            duration_ms = (self._clock() - started) * 1000.0
            await self.metrics.record_attempt(skill_name, duration_ms, success=True)
            return InvocationResult(output=output, attempts=attempt)

    async def execute_parallel(
        self,
        executions: Iterable[tuple[str, Any]],
        retry_policy: RetryPolicy | None = None,
        cache_ttl_ms: int | None = None,
    ) -> ParallelExecutionResult:
        """
        Invoke several skills concurrently and wait for all of them.

        Never short-circuits: every call settles before this returns, and
        outcomes are partitioned into results and errors.

        Args:
            executions: (skill_name, input) pairs
            retry_policy: Retry behavior applied to every call
            cache_ttl_ms: Cache TTL applied to every call

        Returns:
            ParallelExecutionResult keyed by ``"<skill_name>_<index>"``
        """
        calls = list(executions)
        started = time.perf_counter()

        outcomes = await asyncio.gather(
            *(self.invoke(name, payload, retry_policy, cache_ttl_ms) for name, payload in calls),
            return_exceptions=True,
        )

        result = ParallelExecutionResult()
        for index, ((name, _), outcome) in enumerate(zip(calls, outcomes)):
            key = f"{name}_{index}"
            if isinstance(outcome, BaseException):
                result.errors[key] = outcome
            else:
                result.results[key] = outcome

        result.duration_ms = (time.perf_counter() - started) * 1000.0
        if result.errors:
            logger.debug(f"Parallel execution: {len(result.errors)}/{len(calls)} calls failed")
        return result

    async def get_metrics(self, skill_name: str | None = None) -> SkillMetric | list[SkillMetric]:
        """Metric snapshot for one skill, or for every skill seen so far."""
        if skill_name is not None:
            return await self.metrics.get(skill_name)
        return await self.metrics.all()

    async def reset_metrics(self, skill_name: str | None = None) -> None:
        await self.metrics.reset(skill_name)

    async def clear_cache(self, skill_name: str | None = None) -> int:
        """Evict cached results for one skill, or all of them.

        Returns:
            Number of entries removed
        """
        prefix = f"{skill_name}:" if skill_name is not None else None
        return await self.cache.clear(prefix)

    async def cache_stats(self) -> CacheStats:
        return await self.cache.stats()


__all__ = ["SkillInvoker", "cache_key"]

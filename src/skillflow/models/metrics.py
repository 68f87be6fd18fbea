"""
SkillMetric - running execution statistics for one skill.

Design: Value object with explicit mutators
The aggregate is only mutated by a MetricsStore while holding its lock;
readers receive copies via snapshot().
"""

from dataclasses import dataclass, replace
from datetime import UTC, datetime


@dataclass
class SkillMetric:
    """
    Aggregate statistics for every attempt made against one skill.

    Every attempt (success or failure) counts towards total_executions and
    the duration statistics. Cache hits are counted separately and never
    touch the duration statistics.

    Attributes:
        skill_name: Registered skill name
        total_executions: Number of attempts made
        successful_executions: Attempts that returned an output
        failed_executions: Attempts that raised
        average_duration_ms: Mean attempt duration
        min_duration_ms: Fastest attempt (None before the first attempt)
        max_duration_ms: Slowest attempt
        last_executed_at: Wall-clock time of the most recent attempt
        cache_hits: Calls served from the result cache
    """

    skill_name: str
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    average_duration_ms: float = 0.0
    min_duration_ms: float | None = None
    max_duration_ms: float = 0.0
    last_executed_at: datetime | None = None
    cache_hits: int = 0

    def record_attempt(self, duration_ms: float, success: bool) -> None:
        """Fold one attempt into the aggregate."""
        self.total_executions += 1
        if success:
            self.successful_executions += 1
        else:
            self.failed_executions += 1

        # Incremental mean over all attempts
        self.average_duration_ms += (duration_ms - self.average_duration_ms) / self.total_executions
        if self.min_duration_ms is None or duration_ms < self.min_duration_ms:
            self.min_duration_ms = duration_ms
        if duration_ms > self.max_duration_ms:
            self.max_duration_ms = duration_ms
        self.last_executed_at = datetime.now(UTC)

    def record_cache_hit(self) -> None:
        self.cache_hits += 1

    @property
    def success_rate(self) -> float:
        """Fraction of attempts that succeeded (0.0 before any attempt)."""
        if self.total_executions == 0:
            return 0.0
        return self.successful_executions / self.total_executions

    def snapshot(self) -> "SkillMetric":
        """Return an independent copy safe to hand to callers."""
        return replace(self)

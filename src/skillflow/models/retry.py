"""
Retry policy configuration for skill invocations.

Design Pattern: Strategy Pattern
RetryPolicy encapsulates retry behavior, allowing different retry strategies
without modifying the invoker code.

Design Rationale:
- Safe default: no automatic retries (a step opts in by carrying a policy)
- Simple retry: with_max_attempts(3) with standard backoff
- Advanced control: custom RetryPolicy for full control
- No jitter: delays are deterministic so backoff is testable
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, cast


@dataclass(frozen=True)
class RetryPolicy:
    """
    Configuration for skill retry behavior.

    Controls how many times a skill invocation is attempted on transient
    errors and the backoff strategy between attempts.

    Examples:
        # Simple: just specify max attempts (uses standard delays)
        policy = RetryPolicy.with_max_attempts(3)

        # Named policy: predefined sensible defaults
        policy = RetryPolicy.STANDARD

        # Custom policy: full control
        policy = RetryPolicy(
            max_attempts=5,
            initial_delay_ms=100,
            max_delay_ms=5000,
            backoff_multiplier=2.0
        )
    """

    max_attempts: int
    """Maximum number of attempts (including the first try).

    For example, max_attempts = 3 means:
    - Attempt 1: immediate (first try)
    - Attempt 2: after initial_delay
    - Attempt 3: after initial_delay * backoff_multiplier
    """

    initial_delay_ms: int = 100
    """Delay before the first retry in milliseconds."""

    max_delay_ms: int = 5000
    """Maximum delay between retries in milliseconds (caps exponential backoff)."""

    backoff_multiplier: float = 2.0
    """Multiplier for exponential backoff.

    Each retry delay is calculated as:
    min(initial_delay * backoff_multiplier^(attempt-1), max_delay)
    """

    # =========================================================================
    # Predefined Policies
    # =========================================================================

    if TYPE_CHECKING:
        NONE: RetryPolicy
        STANDARD: RetryPolicy
        AGGRESSIVE: RetryPolicy
    else:
        # Runtime sees these as None (set after class definition)
        NONE = cast("RetryPolicy", None)
        STANDARD = cast("RetryPolicy", None)
        AGGRESSIVE = cast("RetryPolicy", None)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("retry delays must not be negative")
        if self.backoff_multiplier < 1.0:
            raise ValueError(
                f"backoff_multiplier must be >= 1.0, got {self.backoff_multiplier}"
            )

    @classmethod
    def with_max_attempts(cls, max_attempts: int) -> RetryPolicy:
        """
        Create a policy with custom max_attempts (uses standard delays).

        Args:
            max_attempts: Maximum number of attempts

        Returns:
            RetryPolicy with standard delays

        Example:
            policy = RetryPolicy.with_max_attempts(5)
        """
        return cls(
            max_attempts=max_attempts,
            initial_delay_ms=100,
            max_delay_ms=5000,
            backoff_multiplier=2.0,
        )

    def delay_for_attempt(self, attempt: int) -> int | None:
        """
        Calculate the delay before the next retry attempt.

        Uses exponential backoff: initial_delay * backoff_multiplier^(attempt-1)
        capped at max_delay.

        Args:
            attempt: The attempt that just failed (1-indexed)

        Returns:
            Delay in milliseconds before the next retry, or None if no more retries.

        Example:
            policy = RetryPolicy(max_attempts=3, initial_delay_ms=100)
            policy.delay_for_attempt(1)  # 100
            policy.delay_for_attempt(2)  # 200
            policy.delay_for_attempt(3)  # None (max attempts)
        """
        if attempt >= self.max_attempts:
            return None

        # attempt=1 (first retry): multiplier^0 = 1 -> initial_delay
        # attempt=2 (second retry): multiplier^1 -> initial_delay * multiplier
        exponent = attempt - 1
        delay_ms = self.initial_delay_ms * self.backoff_multiplier**exponent

        return int(min(delay_ms, self.max_delay_ms))

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_attempts={self.max_attempts}, "
            f"initial_delay_ms={self.initial_delay_ms}, "
            f"max_delay_ms={self.max_delay_ms}, "
            f"backoff_multiplier={self.backoff_multiplier})"
        )


# Initialize predefined policies after class definition
RetryPolicy.NONE = RetryPolicy(
    max_attempts=1, initial_delay_ms=0, max_delay_ms=0, backoff_multiplier=1.0
)

RetryPolicy.STANDARD = RetryPolicy(
    max_attempts=3,
    initial_delay_ms=100,
    max_delay_ms=5000,
    backoff_multiplier=2.0,
)

RetryPolicy.AGGRESSIVE = RetryPolicy(
    max_attempts=10,
    initial_delay_ms=50,
    max_delay_ms=10000,
    backoff_multiplier=1.5,
)


# =============================================================================
# RetryableError - Fine-grained error retry control
# =============================================================================


class RetryableError(Exception):
    """
    Base class for skill errors that can specify whether they should be retried.

    Skills raise subclasses of this to tell the invoker that a failure is
    permanent, which stops the retry loop immediately.

    Example:
        class SearchError(RetryableError):
            def __init__(self, message: str, is_retryable: bool = True):
                super().__init__(message)
                self._retryable = is_retryable

            def is_retryable(self) -> bool:
                return self._retryable

        # Transient error - should retry
        raise SearchError("Upstream timeout", is_retryable=True)

        # Permanent error - should NOT retry
        raise SearchError("Query rejected", is_retryable=False)
    """

    def is_retryable(self) -> bool:
        """
        Returns True if this error is transient and the call should be retried.

        Returns:
            True if retryable, False if permanent
        """
        return True

"""Per-run execution context: the accumulated outcome of every settled step.

Design: Single Writer, Monotonic Growth
    The ExecutionContext is owned by exactly one engine run. Each step
    writes only its own entry, exactly once, so concurrent steps within
    a wave never race on the same key. Readers (the variable resolver,
    callbacks, callers) see it through the read-only Mapping interface.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from skillflow.models import StepStatus


@dataclass(frozen=True)
class StepRecord:
    """
    Outcome of one step, as recorded in the context.

    Attributes:
        output: Value returned by the skill (None if the step did not succeed)
        error: Exception that ended the step (None on success or skip)
        status: Terminal status of the step
        attempts: Number of skill attempts made (0 if never invoked)
        duration_ms: Wall-clock time from dispatch to settle
    """

    output: Any = None
    error: BaseException | None = None
    status: StepStatus = StepStatus.COMPLETED
    attempts: int = 0
    duration_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == StepStatus.COMPLETED


class ExecutionContext(Mapping[str, StepRecord]):
    """Mapping from step id to StepRecord, grown as steps settle.

    Usage:
        ```python
        ctx = ExecutionContext()
        ctx.record("research", StepRecord(output={"findings": ["x"]}))
        ctx["research"].output  # {"findings": ["x"]}
        ```
    """

    def __init__(self) -> None:
        self._records: dict[str, StepRecord] = {}

    def record(self, step_id: str, record: StepRecord) -> None:
        """Record the outcome of a step.

        Raises:
            RuntimeError: If the step already has a record
        """
        if step_id in self._records:
            raise RuntimeError(f"Step '{step_id}' already recorded in execution context")
        self._records[step_id] = record

    def output(self, step_id: str) -> Any:
        """Return the output of a step.

        Raises:
            KeyError: If the step has no record
        """
        return self._records[step_id].output

    def outputs(self) -> dict[str, Any]:
        """Snapshot of outputs for every step that succeeded."""
        return {sid: rec.output for sid, rec in self._records.items() if rec.succeeded}

    def errors(self) -> dict[str, BaseException]:
        """Snapshot of errors for every step that failed."""
        return {sid: rec.error for sid, rec in self._records.items() if rec.error is not None}

    def __getitem__(self, step_id: str) -> StepRecord:
        return self._records[step_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        statuses = ", ".join(f"{sid}={rec.status}" for sid, rec in self._records.items())
        return f"ExecutionContext({statuses})"

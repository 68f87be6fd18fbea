"""
Run outcomes: what callers get back from the engine and the invoker.

**Design Pattern**: Result objects instead of exceptions
Step failures, skips and workflow-level failures are reported as data.
`ExecutionResult` always tells a caller why a step has no output: it never
ran (skipped, with a reason), it ran and failed, or it ran and timed out
(failed with a StepTimeoutError).

Example:
    ```python
    result = await engine.execute_workflow(workflow)

    if result.success:
        print(result.context.outputs())
    else:
        for step_id in result.failed_step_ids:
            print(step_id, result.context[step_id].error)
        for step_id in result.skipped_step_ids:
            print(step_id, "skipped:", result.skip_reasons[step_id])
    ```
"""

from dataclasses import dataclass, field
from typing import Any

from skillflow.core.context import ExecutionContext
from skillflow.models import WorkflowState

__all__ = [
    "ExecutionResult",
    "InvocationResult",
    "ParallelExecutionResult",
]


@dataclass
class ExecutionResult:
    """
    Structured outcome of one workflow run.

    Attributes:
        success: True when no step failed and no workflow-level error occurred
        workflow_name: Name of the workflow that ran
        run_id: Unique id of this run (uuid7, time-ordered)
        state: Terminal WorkflowState (COMPLETED or FAILED)
        executed_step_ids: Steps that ran and succeeded, in settle order
        failed_step_ids: Steps that ran (or were dispatched) and failed
        skipped_step_ids: Steps that were never invoked
        skip_reasons: Why each skipped step did not run
        context: Final ExecutionContext
        duration_ms: Wall-clock duration of the run
        error: Workflow-level error only (validation, missing skill, global timeout)
    """

    success: bool
    workflow_name: str
    run_id: str
    state: WorkflowState
    context: ExecutionContext
    executed_step_ids: list[str] = field(default_factory=list)
    failed_step_ids: list[str] = field(default_factory=list)
    skipped_step_ids: list[str] = field(default_factory=list)
    skip_reasons: dict[str, str] = field(default_factory=dict)
    duration_ms: float = 0.0
    error: BaseException | None = None

    def outputs(self) -> dict[str, Any]:
        """Outputs of every step that succeeded."""
        return self.context.outputs()

    def __repr__(self) -> str:
        return (
            f"ExecutionResult(workflow={self.workflow_name!r}, state={self.state}, "
            f"executed={self.executed_step_ids}, failed={self.failed_step_ids}, "
            f"skipped={self.skipped_step_ids}, duration_ms={self.duration_ms:.1f})"
        )


@dataclass(frozen=True)
class InvocationResult:
    """
    A single successful invocation as seen by the invoker.

    Attributes:
        output: Value returned by the skill (or the cache)
        attempts: Attempts made (0 when served from the cache)
        cache_hit: True when no attempt was made
    """

    output: Any
    attempts: int
    cache_hit: bool = False


@dataclass
class ParallelExecutionResult:
    """
    Outcome of SkillInvoker.execute_parallel.

    Keys are ``"<skill_name>_<index>"`` where index is the position in the
    submitted list, so repeated skills stay distinguishable.

    Attributes:
        results: Key -> output for every call that succeeded
        errors: Key -> exception for every call that failed
        duration_ms: Wall-clock time until the last call settled
    """

    results: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, BaseException] = field(default_factory=dict)
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return not self.errors

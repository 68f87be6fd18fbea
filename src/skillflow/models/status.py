"""Status enumerations for workflow execution tracking.

Defines lifecycle states for individual steps and for a whole
workflow run.
"""

from enum import Enum


class StepStatus(Enum):
    """Status of a single workflow step within one run.

    Lifecycle:
        PENDING → RUNNING → COMPLETED/FAILED
        PENDING → SKIPPED

    A step is SKIPPED when it never ran: a dependency failed, the run
    halted under the stop policy, or the global timeout elapsed before
    it was dispatched.
    """

    PENDING = "PENDING"
    """Step has not been dispatched yet."""

    RUNNING = "RUNNING"
    """Step was dispatched and has not settled."""

    COMPLETED = "COMPLETED"
    """Step ran and produced an output."""

    FAILED = "FAILED"
    """Step ran (or tried to) and ended with an error."""

    SKIPPED = "SKIPPED"
    """Step was never invoked."""

    @property
    def is_terminal(self) -> bool:
        """Check if this status is terminal (the step has settled)."""
        return self in (StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.SKIPPED)

    def __str__(self) -> str:
        return self.value


class WorkflowState(Enum):
    """State of a workflow run.

    Lifecycle:
        VALIDATING → RUNNING → COMPLETED/FAILED
        VALIDATING → FAILED

    COMPLETED means every wave was evaluated; individual steps may still
    have failed under continue_on_error. FAILED means the run ended early
    because of validation, a missing skill, the stop policy, or the
    global timeout.
    """

    VALIDATING = "VALIDATING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowState.COMPLETED, WorkflowState.FAILED)

    def __str__(self) -> str:
        return self.value

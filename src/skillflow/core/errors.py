"""Exception taxonomy for workflow execution.

Every error raised by skillflow derives from SkillflowError so callers
can catch library failures in one place. Each error carries the
identifiers needed to attribute it (step id, skill name, attempts)
as attributes, not only in the message.

Workflow-level errors (ValidationError, SkillNotFoundError during
pre-flight, WorkflowTimeoutError) are reported through
ExecutionResult.error by the engine rather than raised to the caller.
"""

from collections.abc import Sequence

__all__ = [
    "SkillflowError",
    "ValidationError",
    "WorkflowDefinitionError",
    "SkillNotFoundError",
    "VariableResolutionError",
    "StepExecutionError",
    "StepTimeoutError",
    "WorkflowTimeoutError",
]


class SkillflowError(Exception):
    """Base class for all skillflow errors."""

    pass


class ValidationError(SkillflowError):
    """Workflow graph is structurally invalid.

    Raised (or reported) before any step is invoked: duplicate ids,
    unknown dependencies, cycles, missing required fields.

    Attributes:
        errors: Individual validation messages
    """

    def __init__(self, errors: Sequence[str]):
        self.errors = list(errors)
        super().__init__(f"Workflow validation failed: {', '.join(self.errors)}")


class WorkflowDefinitionError(SkillflowError):
    """A declarative workflow document could not be parsed."""

    pass


class SkillNotFoundError(SkillflowError):
    """No skill is registered under the requested name.

    Attributes:
        skill_name: The name that failed to resolve
        step_id: Step that referenced the skill, when known
    """

    def __init__(self, skill_name: str, step_id: str | None = None):
        self.skill_name = skill_name
        self.step_id = step_id
        if step_id is not None:
            message = f"Skill not found: {skill_name} (referenced by step '{step_id}')"
        else:
            message = f"Skill not found: {skill_name}"
        super().__init__(message)


class VariableResolutionError(SkillflowError):
    """A template reference could not be resolved against the context.

    Attributes:
        reference: The reference expression, e.g. ``steps.a.output.x``
        reason: Why it failed
    """

    def __init__(self, reference: str, reason: str):
        self.reference = reference
        self.reason = reason
        super().__init__(f"Cannot resolve '{{{{ {reference} }}}}': {reason}")


class StepExecutionError(SkillflowError):
    """The skill itself raised, after all permitted attempts.

    The original exception is chained as ``__cause__``.

    Attributes:
        skill_name: Skill that failed
        attempts: Number of attempts made before giving up
    """

    def __init__(self, skill_name: str, attempts: int, cause: BaseException):
        self.skill_name = skill_name
        self.attempts = attempts
        self.cause = cause
        plural = "attempt" if attempts == 1 else "attempts"
        super().__init__(f"Skill '{skill_name}' failed after {attempts} {plural}: {cause}")


class StepTimeoutError(SkillflowError):
    """A step did not settle within its timeout.

    Attributes:
        step_id: Step that timed out
        timeout_ms: The timeout that elapsed
    """

    def __init__(self, step_id: str, timeout_ms: int):
        self.step_id = step_id
        self.timeout_ms = timeout_ms
        super().__init__(f"Step {step_id} execution timeout after {timeout_ms}ms")


class WorkflowTimeoutError(SkillflowError):
    """The global workflow timeout elapsed before the run finished.

    Attributes:
        timeout_ms: The global timeout that elapsed
    """

    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"Workflow execution timeout after {timeout_ms}ms")

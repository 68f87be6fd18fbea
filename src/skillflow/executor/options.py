"""
Per-run configuration, lifecycle callbacks and streamed events.

Options are plain dataclasses passed to each run; nothing here is global.
`ExecutionOptions.from_env()` reads the same settings from environment
variables for deployments that configure through the process environment:

    SKILLFLOW_TIMEOUT_MS          global run timeout (default 300000)
    SKILLFLOW_STEP_TIMEOUT_MS     default per-step timeout (default 30000)
    SKILLFLOW_CONTINUE_ON_ERROR   true/false (default false)
    SKILLFLOW_MAX_CONCURRENCY     cap on steps in flight per run (default unbounded)
"""

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

DEFAULT_TIMEOUT_MS = 300_000
DEFAULT_STEP_TIMEOUT_MS = 30_000

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}

EventType = str

EVENT_START: EventType = "start"
EVENT_STEP_START: EventType = "step-start"
EVENT_STEP_COMPLETE: EventType = "step-complete"
EVENT_STEP_ERROR: EventType = "step-error"
EVENT_STEP_SKIP: EventType = "step-skip"
EVENT_WORKFLOW_COMPLETE: EventType = "workflow-complete"
EVENT_WORKFLOW_ERROR: EventType = "workflow-error"
EVENT_COMPLETE: EventType = "complete"


@dataclass
class ExecutionCallbacks:
    """
    Lifecycle hooks for one run.

    Each hook may be a plain function or a coroutine function. Plain
    functions are called inline; coroutine functions are scheduled without
    being awaited. Exceptions raised by a hook are logged and ignored.

    Example:
        ```python
        callbacks = ExecutionCallbacks(
            on_step_complete=lambda step_id, output: print(step_id, "done"),
            on_step_error=lambda step_id, error: print(step_id, error),
        )
        ```
    """

    on_workflow_start: Callable[[], Any] | None = None
    on_step_start: Callable[[str], Any] | None = None
    on_step_complete: Callable[[str, Any], Any] | None = None
    on_step_error: Callable[[str, BaseException], Any] | None = None
    on_step_skip: Callable[[str, str], Any] | None = None
    on_workflow_complete: Callable[[Any], Any] | None = None
    on_workflow_error: Callable[[BaseException], Any] | None = None


@dataclass
class ExecutionOptions:
    """
    Settings for a single workflow run.

    Attributes:
        timeout_ms: Global deadline for the whole run
        step_timeout_ms: Timeout for steps that do not set their own
        continue_on_error: Keep running independent branches after a failure
        max_concurrency: Upper bound on steps in flight; None means unbounded
        variables: Values reachable from templates as ``{{ variables.<path> }}``
        callbacks: Lifecycle hooks
    """

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    step_timeout_ms: int = DEFAULT_STEP_TIMEOUT_MS
    continue_on_error: bool = False
    max_concurrency: int | None = None
    variables: Mapping[str, Any] = field(default_factory=dict)
    callbacks: ExecutionCallbacks = field(default_factory=ExecutionCallbacks)

    def __post_init__(self):
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")
        if self.step_timeout_ms <= 0:
            raise ValueError(f"step_timeout_ms must be positive, got {self.step_timeout_ms}")
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {self.max_concurrency}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> "ExecutionOptions":
        """
        Build options from environment variables.

        Unset variables keep their defaults; keyword overrides win over the
        environment.

        Raises:
            ValueError: If a variable is set to an unparseable value
        """
        env = os.environ if environ is None else environ
        settings: dict[str, Any] = {}

        if raw := env.get("SKILLFLOW_TIMEOUT_MS"):
            settings["timeout_ms"] = _parse_int("SKILLFLOW_TIMEOUT_MS", raw)
        if raw := env.get("SKILLFLOW_STEP_TIMEOUT_MS"):
            settings["step_timeout_ms"] = _parse_int("SKILLFLOW_STEP_TIMEOUT_MS", raw)
        if (raw := env.get("SKILLFLOW_CONTINUE_ON_ERROR")) is not None:
            settings["continue_on_error"] = _parse_bool("SKILLFLOW_CONTINUE_ON_ERROR", raw)
        if raw := env.get("SKILLFLOW_MAX_CONCURRENCY"):
            settings["max_concurrency"] = _parse_int("SKILLFLOW_MAX_CONCURRENCY", raw)

        settings.update(overrides)
        return cls(**settings)


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be true or false, got {raw!r}")


@dataclass(frozen=True)
class WorkflowEvent:
    """
    One event streamed by WorkflowEngine.stream_workflow().

    Attributes:
        type: One of start, step-start, step-complete, step-error, step-skip,
            workflow-complete, workflow-error, complete
        step_id: Step the event is about (step events only)
        output: Step output (step-complete)
        error: Step or workflow error (step-error, workflow-error)
        reason: Skip reason (step-skip)
        result: Final ExecutionResult (complete)
    """

    type: EventType
    step_id: str | None = None
    output: Any = None
    error: BaseException | None = None
    reason: str | None = None
    result: Any = None


__all__ = [
    "DEFAULT_STEP_TIMEOUT_MS",
    "DEFAULT_TIMEOUT_MS",
    "EVENT_COMPLETE",
    "EVENT_START",
    "EVENT_STEP_COMPLETE",
    "EVENT_STEP_ERROR",
    "EVENT_STEP_SKIP",
    "EVENT_STEP_START",
    "EVENT_WORKFLOW_COMPLETE",
    "EVENT_WORKFLOW_ERROR",
    "ExecutionCallbacks",
    "ExecutionOptions",
    "WorkflowEvent",
]

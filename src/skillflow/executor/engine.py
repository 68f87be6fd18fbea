"""
Workflow engine: validate, plan, and run a workflow wave by wave.

A run moves through ``VALIDATING -> RUNNING -> COMPLETED | FAILED``:

1. The graph is validated; an invalid graph ends the run before any step
   is invoked.
2. Every step's skill must be registered (pre-flight); a missing skill ends
   the run before any dispatch.
3. Waves are resolved with Kahn's algorithm and executed in order. Within
   a wave every step whose dependencies all succeeded is dispatched
   concurrently; the rest are skipped. The next wave starts only when the
   whole current wave has settled.
4. The failure policy decides what happens after a wave with a failure:
   stop (skip everything that has not run) or continue (skip only the
   transitive dependents of failed steps).
5. A global timeout races the whole wave loop.

Concurrency vs Parallelism:
Steps of a wave run as asyncio tasks on one event loop. Skills must be
non-blocking or offload blocking work (plain functions registered as
skills are already run with asyncio.to_thread).

Timeouts do not cancel the skill call itself: a step whose timeout fires
is recorded as failed right away while its invocation keeps running in the
background and its eventual result is discarded.

Example:
    ```python
    registry = SkillRegistry()
    registry.register("web_research", research)
    registry.register("summarizer", summarize)

    engine = WorkflowEngine(registry=registry)
    result = await engine.execute_workflow(
        workflow, ExecutionOptions(step_timeout_ms=10_000, continue_on_error=True)
    )
    ```
"""

import asyncio
import contextlib
import inspect
import logging
import time
from collections.abc import AsyncIterator
from typing import Any

from uuid_extensions import uuid7

from skillflow.core.context import ExecutionContext, StepRecord
from skillflow.core.errors import (
    SkillNotFoundError,
    StepExecutionError,
    StepTimeoutError,
    ValidationError,
    WorkflowTimeoutError,
)
from skillflow.core.skill import SkillRegistry
from skillflow.executor.dag import (
    ExecutionPlan,
    ValidationResult,
    build_execution_plan,
    next_runnable,
    resolve_waves,
    validate_workflow,
)
from skillflow.executor.invoker import SkillInvoker
from skillflow.executor.options import (
    EVENT_COMPLETE,
    EVENT_START,
    EVENT_STEP_COMPLETE,
    EVENT_STEP_ERROR,
    EVENT_STEP_SKIP,
    EVENT_STEP_START,
    EVENT_WORKFLOW_COMPLETE,
    EVENT_WORKFLOW_ERROR,
    ExecutionOptions,
    WorkflowEvent,
)
from skillflow.executor.outcome import ExecutionResult, InvocationResult
from skillflow.executor.variables import resolve_variables
from skillflow.models import StepStatus, Workflow, WorkflowState, WorkflowStep

logger = logging.getLogger(__name__)

SKIP_DEPENDENCY_FAILED = "dependency failed"
SKIP_HALTED = "workflow halted after step failure"
SKIP_TIMEOUT = "workflow timeout"

# Marks the end of a run's event stream
_END_OF_STREAM = object()


class WorkflowEngine:
    """
    Executes workflows against the skills known to an invoker.

    The engine holds no per-run state: every call to execute_workflow()
    gets a fresh context, so one engine can run many workflows
    concurrently. Retry, caching and metrics live in the invoker; engines
    sharing an invoker share them.

    Usage:
        engine = WorkflowEngine(registry=registry)
        plan = engine.get_execution_plan(workflow)
        result = await engine.execute_workflow(workflow)
    """

    def __init__(self, invoker: SkillInvoker | None = None, registry: SkillRegistry | None = None):
        """
        Initialize the engine.

        Args:
            invoker: Invoker used for every step (created from registry if omitted)
            registry: Skill registry for a default invoker

        Raises:
            ValueError: If both are given and the invoker uses another registry
        """
        if invoker is None:
            invoker = SkillInvoker(registry)
        elif registry is not None and registry is not invoker.registry:
            raise ValueError("registry must be the invoker's own registry")
        self.invoker = invoker

    def __repr__(self) -> str:
        return f"WorkflowEngine(invoker={self.invoker!r})"

    @property
    def registry(self) -> SkillRegistry:
        return self.invoker.registry

    def validate(self, workflow: Workflow) -> ValidationResult:
        return validate_workflow(workflow)

    def get_execution_plan(self, workflow: Workflow) -> ExecutionPlan:
        """
        Compute the execution plan without running anything.

        Raises:
            ValidationError: If the workflow graph is invalid
        """
        return build_execution_plan(workflow)

    def can_execute_skill(self, skill_name: str) -> bool:
        return self.invoker.has_skill(skill_name)

    async def execute_workflow(
        self, workflow: Workflow, options: ExecutionOptions | None = None
    ) -> ExecutionResult:
        """
        Run a workflow to completion (or until its global timeout).

        Never raises for step or workflow failures; inspect the result.

        Args:
            workflow: Workflow to run
            options: Timeouts, failure policy, variables and callbacks

        Returns:
            ExecutionResult describing every step
        """
        run = _WorkflowRun(self.invoker, workflow, options or ExecutionOptions())
        return await run.execute()

    async def stream_workflow(
        self, workflow: Workflow, options: ExecutionOptions | None = None
    ) -> AsyncIterator[WorkflowEvent]:
        """
        Run a workflow and yield its lifecycle events as they happen.

        The stream ends with a ``complete`` event whose ``result`` is the
        ExecutionResult. Closing the generator early cancels the run.

        Example:
            ```python
            async for event in engine.stream_workflow(workflow):
                if event.type == "step-complete":
                    print(event.step_id, event.output)
            ```
        """
        events: asyncio.Queue = asyncio.Queue()
        run = _WorkflowRun(self.invoker, workflow, options or ExecutionOptions(), events)
        task = asyncio.create_task(run.execute(), name=f"skillflow-run-{run.run_id}")

        try:
            while True:
                event = await events.get()
                if event is _END_OF_STREAM:
                    break
                yield event

            result = await task
            yield WorkflowEvent(type=EVENT_COMPLETE, result=result)
        finally:
            if not task.done():
                task.cancel()
                await asyncio.wait({task})


class _WorkflowRun:
    """State of one execution. Created per call, discarded afterwards."""

    def __init__(
        self,
        invoker: SkillInvoker,
        workflow: Workflow,
        options: ExecutionOptions,
        events: asyncio.Queue | None = None,
    ):
        self.invoker = invoker
        self.workflow = workflow
        self.options = options
        self.run_id = str(uuid7())
        self.context = ExecutionContext()
        self.state = WorkflowState.VALIDATING

        self.executed_step_ids: list[str] = []
        self.failed_step_ids: list[str] = []
        self.skipped_step_ids: list[str] = []
        self.skip_reasons: dict[str, str] = {}

        self._events = events
        self._halted = False
        self._in_flight: set[str] = set()
        self._background: set[asyncio.Task] = set()
        self._semaphore = (
            asyncio.Semaphore(options.max_concurrency) if options.max_concurrency else None
        )

    async def execute(self) -> ExecutionResult:
        started = time.perf_counter()
        try:
            return await self._execute(started)
        finally:
            if self._events is not None:
                self._events.put_nowait(_END_OF_STREAM)

    async def _execute(self, started: float) -> ExecutionResult:
        workflow = self.workflow
        logger.info(
            f"Starting workflow {workflow.name} v{workflow.version} "
            f"(run {self.run_id}, {len(workflow.steps)} steps)"
        )
        self._notify("on_workflow_start", WorkflowEvent(type=EVENT_START))

        validation = validate_workflow(workflow)
        for warning in validation.warnings:
            logger.warning(f"Workflow {workflow.name}: {warning}")
        if not validation.valid:
            return self._finish(started, ValidationError(validation.errors))

        for step in workflow.steps:
            if not self.invoker.has_skill(step.skill_name):
                return self._finish(started, SkillNotFoundError(step.skill_name, step.id))

        waves = resolve_waves(workflow)
        self.state = WorkflowState.RUNNING

        loop = asyncio.create_task(self._run_waves(waves), name=f"skillflow-waves-{self.run_id}")
        done, _ = await asyncio.wait({loop}, timeout=self.options.timeout_ms / 1000.0)

        if loop in done:
            loop.result()
            return self._finish(started)

        self._halted = True
        loop.cancel()
        await asyncio.wait({loop})

        error = WorkflowTimeoutError(self.options.timeout_ms)
        logger.warning(f"Workflow {workflow.name} timed out after {self.options.timeout_ms}ms")
        for step in workflow.steps:
            if step.id in self._in_flight:
                self._record_failure(step, error, started=None)
        self._skip_remaining(SKIP_TIMEOUT)
        return self._finish(started, error)

    async def _run_waves(self, waves: list[list[str]]) -> None:
        for index, wave in enumerate(waves, start=1):
            if self._halted:
                break

            runnable = next_runnable(self.workflow, self._succeeded_ids())
            dispatch = []
            for step_id in wave:
                if step_id in runnable:
                    dispatch.append(self.workflow.step(step_id))
                else:
                    self._skip(step_id, SKIP_DEPENDENCY_FAILED)

            logger.debug(f"Wave {index}/{len(waves)}: dispatching {[step.id for step in dispatch]}")
            await asyncio.gather(*(self._run_step(step) for step in dispatch))

            if self.failed_step_ids and not self.options.continue_on_error:
                self._halted = True

        self._skip_remaining(SKIP_HALTED)

    async def _run_step(self, step: WorkflowStep) -> None:
        slot = self._semaphore if self._semaphore is not None else contextlib.nullcontext()
        async with slot:
            self._in_flight.add(step.id)
            self._notify("on_step_start", WorkflowEvent(type=EVENT_STEP_START, step_id=step.id), step.id)
            started = time.perf_counter()

            try:
                payload = resolve_variables(step.input_template, self.context, self.options.variables)
                outcome = await self._invoke_with_timeout(step, payload)
            except Exception as e:
                self._record_failure(step, e, started)
            else:
                self._record_success(step, outcome, started)

    async def _invoke_with_timeout(self, step: WorkflowStep, payload: Any) -> InvocationResult:
        timeout_ms = step.timeout_ms if step.timeout_ms is not None else self.options.step_timeout_ms
        task = asyncio.create_task(
            self.invoker.invoke_detailed(
                step.skill_name,
                payload,
                retry_policy=step.retry_policy,
                cache_ttl_ms=step.cache_ttl_ms,
            ),
            name=f"skillflow-step-{step.id}",
        )
        self._background.add(task)
        task.add_done_callback(self._invocation_done)

        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000.0)
        if task not in done:
            raise StepTimeoutError(step.id, timeout_ms)
        # Reaching here means this run is still live, so the skill cancelled itself
        if task.cancelled():
            raise StepExecutionError(step.skill_name, 1, asyncio.CancelledError("skill call was cancelled"))
        return task.result()

    def _invocation_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        # Abandoned invocations may still fail later; their errors are already reported
        if not task.cancelled():
            task.exception()

    def _succeeded_ids(self) -> set[str]:
        return {step_id for step_id, record in self.context.items() if record.succeeded}

    def _record_success(self, step: WorkflowStep, outcome: InvocationResult, started: float) -> None:
        self._in_flight.discard(step.id)
        duration_ms = (time.perf_counter() - started) * 1000.0
        self.context.record(
            step.id,
            StepRecord(
                output=outcome.output,
                status=StepStatus.COMPLETED,
                attempts=outcome.attempts,
                duration_ms=duration_ms,
            ),
        )
        self.executed_step_ids.append(step.id)
        logger.debug(
            f"Step {step.id} ({step.skill_name}) completed in {duration_ms:.1f}ms"
            + (" from cache" if outcome.cache_hit else "")
        )
        self._notify(
            "on_step_complete",
            WorkflowEvent(type=EVENT_STEP_COMPLETE, step_id=step.id, output=outcome.output),
            step.id,
            outcome.output,
        )

    def _record_failure(self, step: WorkflowStep, error: BaseException, started: float | None) -> None:
        self._in_flight.discard(step.id)
        duration_ms = (time.perf_counter() - started) * 1000.0 if started is not None else 0.0
        attempts = error.attempts if isinstance(error, StepExecutionError) else 0
        self.context.record(
            step.id,
            StepRecord(
                error=error,
                status=StepStatus.FAILED,
                attempts=attempts,
                duration_ms=duration_ms,
            ),
        )
        self.failed_step_ids.append(step.id)
        logger.warning(f"Step {step.id} ({step.skill_name}) failed: {error}")
        self._notify(
            "on_step_error",
            WorkflowEvent(type=EVENT_STEP_ERROR, step_id=step.id, error=error),
            step.id,
            error,
        )

    def _skip(self, step_id: str, reason: str) -> None:
        self.context.record(step_id, StepRecord(status=StepStatus.SKIPPED))
        self.skipped_step_ids.append(step_id)
        self.skip_reasons[step_id] = reason
        logger.warning(f"Step {step_id} skipped: {reason}")
        self._notify(
            "on_step_skip",
            WorkflowEvent(type=EVENT_STEP_SKIP, step_id=step_id, reason=reason),
            step_id,
            reason,
        )

    def _skip_remaining(self, reason: str) -> None:
        for step in self.workflow.steps:
            if step.id not in self.context:
                self._skip(step.id, reason)

    def _finish(self, started: float, error: BaseException | None = None) -> ExecutionResult:
        success = error is None and not self.failed_step_ids
        # Under continue_on_error every wave was evaluated, so the run completed
        ended_early = error is not None or (
            bool(self.failed_step_ids) and not self.options.continue_on_error
        )
        self.state = WorkflowState.FAILED if ended_early else WorkflowState.COMPLETED
        duration_ms = (time.perf_counter() - started) * 1000.0

        result = ExecutionResult(
            success=success,
            workflow_name=self.workflow.name,
            run_id=self.run_id,
            state=self.state,
            context=self.context,
            executed_step_ids=self.executed_step_ids,
            failed_step_ids=self.failed_step_ids,
            skipped_step_ids=self.skipped_step_ids,
            skip_reasons=self.skip_reasons,
            duration_ms=duration_ms,
            error=error,
        )

        if error is not None:
            logger.warning(f"Workflow {self.workflow.name} (run {self.run_id}) failed: {error}")
            self._notify(
                "on_workflow_error", WorkflowEvent(type=EVENT_WORKFLOW_ERROR, error=error), error
            )
        else:
            logger.info(
                f"Workflow {self.workflow.name} (run {self.run_id}) finished in {duration_ms:.1f}ms: "
                f"{len(self.executed_step_ids)} executed, {len(self.failed_step_ids)} failed, "
                f"{len(self.skipped_step_ids)} skipped"
            )
            self._notify(
                "on_workflow_complete",
                WorkflowEvent(type=EVENT_WORKFLOW_COMPLETE),
                self.context,
            )
        return result

    def _notify(self, hook: str, event: WorkflowEvent, *args: Any) -> None:
        if self._events is not None:
            self._events.put_nowait(event)

        handler = getattr(self.options.callbacks, hook)
        if handler is None:
            return

        try:
            outcome = handler(*args)
        except Exception:
            logger.exception(f"Callback {hook} raised")
            return

        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._background.add(task)
            task.add_done_callback(self._callback_done)

    def _callback_done(self, task: asyncio.Future) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Async callback raised", exc_info=error)


__all__ = [
    "SKIP_DEPENDENCY_FAILED",
    "SKIP_HALTED",
    "SKIP_TIMEOUT",
    "WorkflowEngine",
]

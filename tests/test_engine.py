"""
Tests for the workflow engine.

ARCHITECTURE VERIFICATION:
- Steps of one wave run concurrently; waves run in order
- Failure policies: stop skips everything left, continue skips dependents
- Step and global timeouts produce structured results, never exceptions
- Invalid workflows and missing skills never invoke anything
"""

import asyncio

import pytest
from conftest import CallCounter, Flaky, make_step

from skillflow import (
    ExecutionCallbacks,
    ExecutionOptions,
    RetryPolicy,
    SkillNotFoundError,
    SkillRegistry,
    StepExecutionError,
    StepTimeoutError,
    ValidationError,
    VariableResolutionError,
    Workflow,
    WorkflowEngine,
    WorkflowState,
    WorkflowTimeoutError,
)
from skillflow.executor.engine import SKIP_DEPENDENCY_FAILED, SKIP_HALTED, SKIP_TIMEOUT
from skillflow.models import StepStatus


def _workflow(*steps, name: str = "test") -> Workflow:
    return Workflow(name=name, version="1.0", steps=steps)


@pytest.mark.asyncio
async def test_outputs_flow_between_steps():
    """Test research -> summarize -> report with typed and embedded references."""
    seen: dict[str, dict] = {}

    async def web_research(input):
        seen["research"] = input
        return {"content": "qubits and gates", "sources": ["arxiv", "nature"]}

    async def summarizer(input):
        seen["summarize"] = input
        return {"summary": input["content"].upper()}

    async def report(input):
        seen["report"] = input
        return {"report": f"{input['title']}: {input['summary']} ({len(input['sources'])} sources)"}

    engine = WorkflowEngine(
        registry=SkillRegistry(
            {"web_research": web_research, "summarizer": summarizer, "report": report}
        )
    )
    workflow = _workflow(
        make_step("research", "web_research", {"query": "{{ variables.topic }}"}),
        make_step(
            "summarize",
            "summarizer",
            {"content": "{{ steps.research.output.content }}"},
            depends_on=("research",),
        ),
        make_step(
            "report",
            "report",
            {
                "title": "Report on {{ variables.topic }}",
                "summary": "{{ steps.summarize.output.summary }}",
                "sources": "{{ steps.research.output.sources }}",
            },
            depends_on=("summarize", "research"),
        ),
    )

    result = await engine.execute_workflow(workflow, ExecutionOptions(variables={"topic": "quantum"}))

    assert result.success
    assert result.state == WorkflowState.COMPLETED
    assert result.error is None
    assert result.executed_step_ids == ["research", "summarize", "report"]
    assert result.failed_step_ids == []
    assert result.skipped_step_ids == []
    assert seen["research"] == {"query": "quantum"}
    assert seen["report"]["sources"] == ["arxiv", "nature"]
    assert result.context.output("report") == {
        "report": "Report on quantum: QUBITS AND GATES (2 sources)"
    }
    assert result.workflow_name == "test"
    assert result.run_id


@pytest.mark.asyncio
@pytest.mark.concurrency
async def test_independent_steps_run_concurrently(engine):
    """Test three 200ms steps in one wave finish in about 200ms, not 600ms."""
    workflow = _workflow(
        make_step("a", "slow", {"delay_ms": 200}),
        make_step("b", "slow", {"delay_ms": 200}),
        make_step("c", "slow", {"delay_ms": 200}),
        make_step("d", "echo", {"a": "{{ steps.a.output.slept_ms }}"}, depends_on=("a", "b", "c")),
    )

    result = await engine.execute_workflow(workflow)

    assert result.success
    assert sorted(result.executed_step_ids[:3]) == ["a", "b", "c"]
    assert result.executed_step_ids[3] == "d"
    assert result.context.output("d") == {"a": 200}
    assert result.duration_ms < 500


@pytest.mark.asyncio
@pytest.mark.concurrency
async def test_dependent_step_never_overlaps_its_dependency():
    events: list[str] = []

    async def tracked(input):
        events.append(f"start:{input['name']}")
        await asyncio.sleep(0.02)
        events.append(f"end:{input['name']}")
        return input["name"]

    engine = WorkflowEngine(registry=SkillRegistry({"tracked": tracked}))
    workflow = _workflow(
        make_step("a", "tracked", {"name": "a"}),
        make_step("b", "tracked", {"name": "b"}, depends_on=("a",)),
    )

    await engine.execute_workflow(workflow)

    assert events == ["start:a", "end:a", "start:b", "end:b"]


@pytest.mark.asyncio
async def test_stop_policy_skips_everything_after_failing_wave(engine):
    """Test the default policy halts after the wave containing a failure."""
    workflow = _workflow(
        make_step("a", "fail"),
        make_step("b", "echo"),
        make_step("c", "echo", depends_on=("b",)),
        make_step("d", "echo", depends_on=("a",)),
    )

    result = await engine.execute_workflow(workflow)

    assert not result.success
    assert result.error is None
    assert result.state == WorkflowState.FAILED
    assert result.failed_step_ids == ["a"]
    assert result.executed_step_ids == ["b"]
    assert sorted(result.skipped_step_ids) == ["c", "d"]
    assert result.skip_reasons == {"c": SKIP_HALTED, "d": SKIP_HALTED}
    assert isinstance(result.context["a"].error, StepExecutionError)
    assert result.context["c"].status == StepStatus.SKIPPED


@pytest.mark.asyncio
async def test_failing_sibling_does_not_cancel_wave(engine):
    workflow = _workflow(
        make_step("a", "fail"),
        make_step("b", "slow", {"delay_ms": 50}),
    )

    result = await engine.execute_workflow(workflow)

    assert result.failed_step_ids == ["a"]
    assert result.executed_step_ids == ["b"]
    assert result.context.output("b") == {"slept_ms": 50}


@pytest.mark.asyncio
async def test_skill_cancelling_itself_fails_only_its_step():
    async def cancelled(input):
        raise asyncio.CancelledError()

    async def echo(input):
        return input

    engine = WorkflowEngine(registry=SkillRegistry({"cancelled": cancelled, "echo": echo}))
    workflow = _workflow(make_step("a", "cancelled"), make_step("b", "echo", {"x": 1}))

    result = await engine.execute_workflow(workflow)

    assert not result.success
    assert result.error is None
    assert result.failed_step_ids == ["a"]
    assert result.executed_step_ids == ["b"]
    assert result.context.output("b") == {"x": 1}
    error = result.context["a"].error
    assert isinstance(error, StepExecutionError)
    assert isinstance(error.cause, asyncio.CancelledError)


@pytest.mark.asyncio
async def test_explicit_step_timeout_overrides_run_option(engine):
    workflow = _workflow(make_step("a", "slow", {"delay_ms": 300}, timeout_ms=50))

    result = await engine.execute_workflow(workflow, ExecutionOptions(step_timeout_ms=10_000))

    assert isinstance(result.context["a"].error, StepTimeoutError)
    assert result.context["a"].error.timeout_ms == 50
    await asyncio.sleep(0.3)


@pytest.mark.asyncio
async def test_continue_on_error_skips_only_dependents(engine):
    """Test independent branches complete while dependents of a failure are skipped."""
    workflow = _workflow(
        make_step("a", "fail"),
        make_step("b", "echo", depends_on=("a",)),
        make_step("c", "double", {"value": 4}),
        make_step("e", "echo", depends_on=("b",)),
        make_step("f", "echo", depends_on=("c",)),
    )

    result = await engine.execute_workflow(workflow, ExecutionOptions(continue_on_error=True))

    assert not result.success
    assert result.error is None
    assert result.state == WorkflowState.COMPLETED
    assert result.failed_step_ids == ["a"]
    assert sorted(result.executed_step_ids) == ["c", "f"]
    assert result.skipped_step_ids == ["b", "e"]
    assert result.skip_reasons["b"] == SKIP_DEPENDENCY_FAILED
    assert result.skip_reasons["e"] == SKIP_DEPENDENCY_FAILED
    assert "b" not in result.failed_step_ids
    assert result.context.output("c") == {"value": 8}


@pytest.mark.asyncio
@pytest.mark.concurrency
async def test_step_timeout_fails_step_without_waiting(engine):
    """Test a 50ms step timeout against a 300ms skill."""
    workflow = _workflow(make_step("a", "slow", {"delay_ms": 300}, timeout_ms=50))

    result = await engine.execute_workflow(workflow)

    assert not result.success
    assert result.failed_step_ids == ["a"]
    error = result.context["a"].error
    assert isinstance(error, StepTimeoutError)
    assert str(error) == "Step a execution timeout after 50ms"
    assert result.duration_ms < 250

    # Let the abandoned invocation finish
    await asyncio.sleep(0.3)


@pytest.mark.asyncio
async def test_step_timeout_defaults_to_run_option(engine):
    workflow = _workflow(make_step("a", "slow", {"delay_ms": 300}))

    result = await engine.execute_workflow(workflow, ExecutionOptions(step_timeout_ms=50))

    assert isinstance(result.context["a"].error, StepTimeoutError)
    await asyncio.sleep(0.3)


@pytest.mark.asyncio
@pytest.mark.concurrency
async def test_global_timeout_returns_partial_context(engine):
    """Test the global timeout reports in-flight steps as failed and skips the rest."""
    workflow = _workflow(
        make_step("fast", "echo", {"x": 1}),
        make_step("long", "slow", {"delay_ms": 400}, depends_on=("fast",)),
        make_step("after", "echo", depends_on=("long",)),
    )

    result = await engine.execute_workflow(workflow, ExecutionOptions(timeout_ms=150))

    assert not result.success
    assert result.state == WorkflowState.FAILED
    assert isinstance(result.error, WorkflowTimeoutError)
    assert result.executed_step_ids == ["fast"]
    assert result.failed_step_ids == ["long"]
    assert result.skipped_step_ids == ["after"]
    assert result.skip_reasons["after"] == SKIP_TIMEOUT
    assert result.context.output("fast") == {"x": 1}
    assert result.context["long"].error is result.error
    assert result.duration_ms < 350

    await asyncio.sleep(0.4)


@pytest.mark.asyncio
async def test_invalid_workflow_never_invokes():
    counter = CallCounter()
    engine = WorkflowEngine(registry=SkillRegistry({"count": counter}))
    workflow = _workflow(
        make_step("a", "count", depends_on=("b",)),
        make_step("b", "count", depends_on=("a",)),
        make_step("c", "count"),
    )

    result = await engine.execute_workflow(workflow)

    assert not result.success
    assert result.state == WorkflowState.FAILED
    assert isinstance(result.error, ValidationError)
    assert "Circular dependency detected" in str(result.error)
    assert counter.calls == []
    assert result.executed_step_ids == []


@pytest.mark.asyncio
async def test_missing_skill_aborts_before_dispatch():
    counter = CallCounter()
    engine = WorkflowEngine(registry=SkillRegistry({"count": counter}))
    workflow = _workflow(make_step("a", "count"), make_step("b", "ghost", depends_on=("a",)))

    result = await engine.execute_workflow(workflow)

    assert isinstance(result.error, SkillNotFoundError)
    assert result.error.skill_name == "ghost"
    assert result.error.step_id == "b"
    assert counter.calls == []
    assert not result.success


@pytest.mark.asyncio
async def test_unresolvable_reference_fails_step_without_invoking():
    counter = CallCounter(output={"value": 1})
    engine = WorkflowEngine(registry=SkillRegistry({"count": counter}))
    workflow = _workflow(
        make_step("a", "count"),
        make_step("b", "count", {"x": "{{ steps.a.output.missing }}"}, depends_on=("a",)),
    )

    result = await engine.execute_workflow(workflow)

    assert result.failed_step_ids == ["b"]
    assert isinstance(result.context["b"].error, VariableResolutionError)
    assert len(counter.calls) == 1


@pytest.mark.asyncio
async def test_step_retry_policy_is_applied():
    flaky = Flaky(failures=2)
    engine = WorkflowEngine(registry=SkillRegistry({"flaky": flaky}))
    policy = RetryPolicy(max_attempts=3, initial_delay_ms=1, max_delay_ms=1)
    workflow = _workflow(make_step("a", "flaky", retry_policy=policy))

    result = await engine.execute_workflow(workflow)

    assert result.success
    assert result.context["a"].attempts == 3
    assert flaky.calls == 3


@pytest.mark.asyncio
async def test_failed_step_records_attempts():
    engine = WorkflowEngine(registry=SkillRegistry({"flaky": Flaky(failures=5)}))
    policy = RetryPolicy(max_attempts=2, initial_delay_ms=1, max_delay_ms=1)

    result = await engine.execute_workflow(_workflow(make_step("a", "flaky", retry_policy=policy)))

    assert result.context["a"].attempts == 2
    assert result.context["a"].error.attempts == 2


@pytest.mark.asyncio
async def test_step_cache_is_shared_across_runs():
    counter = CallCounter(output={"v": 1})
    engine = WorkflowEngine(registry=SkillRegistry({"count": counter}))
    workflow = _workflow(make_step("a", "count", {"q": "same"}, cache_ttl_ms=60_000))

    first = await engine.execute_workflow(workflow)
    second = await engine.execute_workflow(workflow)

    assert first.success and second.success
    assert len(counter.calls) == 1
    assert second.context["a"].attempts == 0
    assert second.context.output("a") == {"v": 1}


@pytest.mark.asyncio
@pytest.mark.concurrency
async def test_max_concurrency_bounds_steps_in_flight():
    in_flight = 0
    peak = 0

    async def tracked(input):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return input

    engine = WorkflowEngine(registry=SkillRegistry({"tracked": tracked}))
    workflow = _workflow(*(make_step(f"s{i}", "tracked", {"i": i}) for i in range(5)))

    result = await engine.execute_workflow(workflow, ExecutionOptions(max_concurrency=2))

    assert result.success
    assert peak == 2


@pytest.mark.asyncio
async def test_callbacks_fire_in_lifecycle_order(engine):
    events: list[tuple] = []
    callbacks = ExecutionCallbacks(
        on_workflow_start=lambda: events.append(("workflow_start",)),
        on_step_start=lambda step_id: events.append(("step_start", step_id)),
        on_step_complete=lambda step_id, output: events.append(("step_complete", step_id, output)),
        on_step_error=lambda step_id, error: events.append(("step_error", step_id)),
        on_step_skip=lambda step_id, reason: events.append(("step_skip", step_id, reason)),
        on_workflow_complete=lambda context: events.append(("workflow_complete", len(context))),
        on_workflow_error=lambda error: events.append(("workflow_error",)),
    )
    workflow = _workflow(
        make_step("a", "double", {"value": 2}),
        make_step("b", "fail", depends_on=("a",)),
        make_step("c", "echo", depends_on=("b",)),
    )

    await engine.execute_workflow(workflow, ExecutionOptions(callbacks=callbacks))

    assert events == [
        ("workflow_start",),
        ("step_start", "a"),
        ("step_complete", "a", {"value": 4}),
        ("step_start", "b"),
        ("step_error", "b"),
        ("step_skip", "c", SKIP_HALTED),
        ("workflow_complete", 3),
    ]


@pytest.mark.asyncio
async def test_workflow_error_callback(engine):
    errors: list[BaseException] = []
    workflow = _workflow(make_step("a", "ghost"))

    await engine.execute_workflow(
        workflow, ExecutionOptions(callbacks=ExecutionCallbacks(on_workflow_error=errors.append))
    )

    assert len(errors) == 1
    assert isinstance(errors[0], SkillNotFoundError)


@pytest.mark.asyncio
async def test_failing_and_async_callbacks_do_not_affect_run(engine):
    """Test a raising sync handler and a slow async handler leave the run intact."""
    completed: list[str] = []

    def explode(step_id):
        raise RuntimeError("handler bug")

    async def record(step_id, output):
        await asyncio.sleep(0.01)
        completed.append(step_id)

    callbacks = ExecutionCallbacks(on_step_start=explode, on_step_complete=record)
    workflow = _workflow(make_step("a", "echo"), make_step("b", "echo", depends_on=("a",)))

    result = await engine.execute_workflow(workflow, ExecutionOptions(callbacks=callbacks))

    assert result.success
    assert result.executed_step_ids == ["a", "b"]

    await asyncio.sleep(0.05)
    assert sorted(completed) == ["a", "b"]


@pytest.mark.asyncio
async def test_stream_workflow_yields_events_and_final_result(engine):
    workflow = _workflow(
        make_step("a", "echo", {"x": 1}),
        make_step("b", "echo", {"y": "{{ steps.a.output.x }}"}, depends_on=("a",)),
    )

    events = [event async for event in engine.stream_workflow(workflow)]

    assert [e.type for e in events] == [
        "start",
        "step-start",
        "step-complete",
        "step-start",
        "step-complete",
        "workflow-complete",
        "complete",
    ]
    assert events[2].step_id == "a"
    assert events[4].output == {"y": 1}
    assert events[-1].result.success
    assert events[-1].result.executed_step_ids == ["a", "b"]


@pytest.mark.asyncio
async def test_stream_workflow_reports_skips_and_errors(engine):
    workflow = _workflow(make_step("a", "fail"), make_step("b", "echo", depends_on=("a",)))

    events = [event async for event in engine.stream_workflow(workflow)]
    by_type = {e.type: e for e in events}

    assert by_type["step-error"].step_id == "a"
    assert isinstance(by_type["step-error"].error, StepExecutionError)
    assert by_type["step-skip"].reason == SKIP_HALTED
    assert events[-1].type == "complete"
    assert not events[-1].result.success


@pytest.mark.asyncio
@pytest.mark.concurrency
async def test_concurrent_runs_are_isolated(engine):
    workflow_a = _workflow(make_step("x", "double", {"value": 1}), name="wf-a")
    workflow_b = _workflow(make_step("x", "double", {"value": 10}), name="wf-b")

    result_a, result_b = await asyncio.gather(
        engine.execute_workflow(workflow_a), engine.execute_workflow(workflow_b)
    )

    assert result_a.context.output("x") == {"value": 2}
    assert result_b.context.output("x") == {"value": 20}
    assert result_a.run_id != result_b.run_id


def test_execution_plan_and_validation(engine):
    workflow = _workflow(
        make_step("a"), make_step("b"), make_step("c", depends_on=("a", "b"))
    )

    plan = engine.get_execution_plan(workflow)

    assert plan.parallel_groups == [["a", "b"], ["c"]]
    assert engine.validate(workflow).valid
    assert engine.can_execute_skill("echo")
    assert not engine.can_execute_skill("ghost")


def test_execution_plan_rejects_invalid_workflow(engine):
    with pytest.raises(ValidationError):
        engine.get_execution_plan(_workflow(make_step("a", depends_on=("a",))))


def test_engine_rejects_mismatched_registry(invoker):
    with pytest.raises(ValueError):
        WorkflowEngine(invoker, registry=SkillRegistry())

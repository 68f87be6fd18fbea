"""
Failure Policies - stop vs continue_on_error, retries and timeouts

This example demonstrates:
- Retryable errors are retried with backoff (flaky_api succeeds on attempt 3)
- Permanent errors stop retrying immediately (lookup raises is_retryable() = False)
- The default stop policy skips everything after a failing wave
- continue_on_error keeps independent branches running
- A step timeout fails the step without waiting for the skill
- Per-skill metrics collected by the invoker

## Scenario
The same five-step workflow runs twice. Step "lookup" fails permanently.
Under the stop policy, the second wave never runs. Under continue_on_error,
only "enrich" (which depends on "lookup") is skipped and the "fetch" branch
completes. The "slow" step always exceeds its 100ms timeout.

## Run with
```bash
PYTHONPATH=src python examples/failure_policies.py
```
"""

import asyncio

from skillflow import (
    ExecutionCallbacks,
    ExecutionOptions,
    RetryableError,
    RetryPolicy,
    SkillRegistry,
    Workflow,
    WorkflowEngine,
    WorkflowStep,
)


class ApiTimeout(RetryableError):
    pass


class ItemNotFound(RetryableError):
    def is_retryable(self) -> bool:
        return False


class FlakyApi:
    """Fails twice with a retryable error, then succeeds."""

    def __init__(self):
        self.calls = 0

    async def invoke(self, input: dict) -> dict:
        self.calls += 1
        if self.calls < 3:
            raise ApiTimeout(f"upstream timeout (call {self.calls})")
        return {"items": ["a", "b", "c"]}


async def lookup(input: dict) -> dict:
    raise ItemNotFound(f"no item {input['item']}")


async def slow(input: dict) -> dict:
    await asyncio.sleep(0.5)
    return {}


async def count(input: dict) -> dict:
    return {"count": len(input["items"])}


def build_workflow() -> Workflow:
    retry = RetryPolicy(max_attempts=3, initial_delay_ms=50, max_delay_ms=200)
    return Workflow(
        name="failure-policies",
        version="1.0",
        steps=[
            WorkflowStep(id="fetch", skill_name="flaky_api", retry_policy=retry),
            WorkflowStep(
                id="lookup", skill_name="lookup", input_template={"item": 7}, retry_policy=retry
            ),
            WorkflowStep(id="slow", skill_name="slow", timeout_ms=100),
            WorkflowStep(
                id="count",
                skill_name="count",
                input_template={"items": "{{ steps.fetch.output.items }}"},
                depends_on=["fetch"],
            ),
            WorkflowStep(id="enrich", skill_name="count", depends_on=["lookup"]),
        ],
    )


def print_result(label, result):
    print(f"\n[{label}] success={result.success} state={result.state}")
    print(f"  executed: {result.executed_step_ids}")
    print(f"  failed:   {result.failed_step_ids}")
    for step_id in result.failed_step_ids:
        print(f"    {step_id}: {result.context[step_id].error}")
    for step_id in result.skipped_step_ids:
        print(f"  skipped:  {step_id} ({result.skip_reasons[step_id]})")


async def main():
    workflow = build_workflow()
    callbacks = ExecutionCallbacks(on_step_error=lambda step_id, error: print(f"  ! {step_id} failed"))

    for label, continue_on_error in (("stop", False), ("continue_on_error", True)):
        registry = SkillRegistry(
            {"flaky_api": FlakyApi(), "lookup": lookup, "slow": slow, "count": count}
        )
        engine = WorkflowEngine(registry=registry)
        options = ExecutionOptions(continue_on_error=continue_on_error, callbacks=callbacks)

        result = await engine.execute_workflow(workflow, options)
        print_result(label, result)

        for metric in await engine.invoker.get_metrics():
            print(
                f"  metrics {metric.skill_name}: {metric.total_executions} attempts, "
                f"{metric.success_rate:.0%} success"
            )

    # Let abandoned timed-out calls finish before the loop closes
    await asyncio.sleep(0.5)


if __name__ == "__main__":
    asyncio.run(main())

"""
Executor module - Runtime engine for skill workflows.

This module contains the execution components:
- dag: Graph validation, wave resolution and execution plans
- variables: ``{{ steps.<id>.<path> }}`` template resolution
- invoker: Retrying, caching skill invocation with metrics
- engine: Wave-by-wave workflow execution (WorkflowEngine)
- options: Per-run options, callbacks and streamed events
- outcome: ExecutionResult and ParallelExecutionResult

From Dave Cheney: "Package Design"
Package name "executor" describes what it provides (execution engine),
not what it contains.
"""

from skillflow.executor.dag import (
    DagSummary,
    ExecutionPlan,
    ValidationResult,
    build_execution_plan,
    next_runnable,
    resolve_waves,
    validate_workflow,
)
from skillflow.executor.engine import WorkflowEngine
from skillflow.executor.invoker import SkillInvoker, cache_key
from skillflow.executor.options import ExecutionCallbacks, ExecutionOptions, WorkflowEvent
from skillflow.executor.outcome import (
    ExecutionResult,
    InvocationResult,
    ParallelExecutionResult,
)
from skillflow.executor.variables import find_references, resolve_variables

__all__ = [
    # Graph
    "ValidationResult",
    "validate_workflow",
    "resolve_waves",
    "next_runnable",
    "ExecutionPlan",
    "DagSummary",
    "build_execution_plan",
    # Templates
    "resolve_variables",
    "find_references",
    # Invocation
    "SkillInvoker",
    "cache_key",
    "InvocationResult",
    "ParallelExecutionResult",
    # Engine
    "WorkflowEngine",
    "ExecutionOptions",
    "ExecutionCallbacks",
    "WorkflowEvent",
    "ExecutionResult",
]

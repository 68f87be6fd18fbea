"""
skillflow: Workflow execution for pluggable skills

Runs declarative multi-step workflows whose steps invoke named skills.
Steps form a dependency graph; independent steps run concurrently in
waves, outputs flow into later steps through ``{{ steps.<id>.<path> }}``
templates, and every run returns a structured ExecutionResult.

Design Pattern: Façade Pattern
This module re-exports the public surface so callers rarely need to know
which subpackage a type lives in.

Example:
    ```python
    import asyncio
    from skillflow import SkillRegistry, WorkflowEngine, parse_workflow

    registry = SkillRegistry()
    registry.register("web_research", research)
    registry.register("summarizer", summarize)

    workflow = parse_workflow(open("research.yaml").read())

    async def main():
        engine = WorkflowEngine(registry=registry)
        result = await engine.execute_workflow(workflow)
        print(result.executed_step_ids, result.failed_step_ids)

    asyncio.run(main())
    ```
"""

# Core types
from skillflow.core import (
    ExecutionContext,
    FunctionSkill,
    Skill,
    SkillflowError,
    SkillNotFoundError,
    SkillRegistry,
    StepExecutionError,
    StepRecord,
    StepTimeoutError,
    ValidationError,
    VariableResolutionError,
    WorkflowDefinitionError,
    WorkflowTimeoutError,
)

# Decorators
from skillflow.decorators import discover_skills, skill

# Execution
from skillflow.executor import (
    ExecutionCallbacks,
    ExecutionOptions,
    ExecutionPlan,
    ExecutionResult,
    ParallelExecutionResult,
    SkillInvoker,
    ValidationResult,
    WorkflowEngine,
    WorkflowEvent,
    build_execution_plan,
    next_runnable,
    resolve_variables,
    resolve_waves,
    validate_workflow,
)

# Definitions
from skillflow.loader import load_workflow, parse_workflow, workflow_from_dict
from skillflow.models import (
    RetryableError,
    RetryPolicy,
    SkillMetric,
    StepStatus,
    Workflow,
    WorkflowState,
    WorkflowStep,
)

# Stores
from skillflow.storage import (
    CacheStats,
    InMemoryMetricsStore,
    InMemoryResultCache,
    MetricsStore,
    ResultCache,
    StorageError,
)

__version__ = "0.1.0"

__all__ = [
    # Models
    "Workflow",
    "WorkflowStep",
    "StepStatus",
    "WorkflowState",
    "RetryPolicy",
    "RetryableError",
    "SkillMetric",
    # Skills
    "Skill",
    "FunctionSkill",
    "SkillRegistry",
    "skill",
    "discover_skills",
    # Context
    "ExecutionContext",
    "StepRecord",
    # Graph
    "ValidationResult",
    "validate_workflow",
    "resolve_waves",
    "next_runnable",
    "ExecutionPlan",
    "build_execution_plan",
    "resolve_variables",
    # Execution
    "SkillInvoker",
    "WorkflowEngine",
    "ExecutionOptions",
    "ExecutionCallbacks",
    "WorkflowEvent",
    "ExecutionResult",
    "ParallelExecutionResult",
    # Loader
    "parse_workflow",
    "load_workflow",
    "workflow_from_dict",
    # Stores
    "ResultCache",
    "MetricsStore",
    "InMemoryResultCache",
    "InMemoryMetricsStore",
    "CacheStats",
    # Errors
    "SkillflowError",
    "ValidationError",
    "WorkflowDefinitionError",
    "SkillNotFoundError",
    "VariableResolutionError",
    "StepExecutionError",
    "StepTimeoutError",
    "WorkflowTimeoutError",
    "StorageError",
]

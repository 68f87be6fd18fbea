"""
DAG (Directed Acyclic Graph) validation and wave planning.

This module turns a workflow's declared dependencies into an execution
plan: it checks the graph is well formed and partitions the steps into
waves that can run concurrently.

**How It Works**:
1. `validate_workflow` checks required fields, duplicate ids, unknown
   dependencies and cycles (depth-first search, three-colour marking)
2. `resolve_waves` repeatedly removes the steps whose dependencies are
   all resolved (Kahn's algorithm); each removal round is one wave
3. `next_runnable` recomputes the ready set incrementally from the ids
   that have already settled
4. `build_execution_plan` is a read-only projection for tooling

**Example**:
```python
workflow = Workflow("report", "1.0", steps=[
    WorkflowStep("fetch_user", "users"),
    WorkflowStep("fetch_orders", "orders"),
    WorkflowStep("invoice", "billing", depends_on=["fetch_user", "fetch_orders"]),
])

resolve_waves(workflow)
# [["fetch_user", "fetch_orders"], ["invoice"]]
```

**Parallelism**:
- `fetch_user` and `fetch_orders` share a wave and run concurrently
- `invoice` waits until both have settled

Nothing in this module executes steps or touches an ExecutionContext.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from skillflow.core.errors import ValidationError
from skillflow.models import Workflow

# Workflows above this size still run, but validation warns about them
MAX_RECOMMENDED_STEPS = 10


@dataclass
class ValidationResult:
    """
    Outcome of validating a workflow.

    **Attributes**:
        valid: True when there are no errors
        errors: Fatal problems; any error prevents execution
        warnings: Non-fatal advice
    """

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def raise_for_errors(self) -> None:
        """Raise ValidationError if the workflow is invalid."""
        if not self.valid:
            raise ValidationError(self.errors)


class _Mark(Enum):
    UNVISITED = 0
    IN_PROGRESS = 1
    DONE = 2


def validate_workflow(workflow: Workflow) -> ValidationResult:
    """
    Validates the workflow structure without executing anything.

    Checks, in order:
    - Required fields (name, version, at least one step, step id and skill)
    - Duplicate step ids
    - Dependencies referencing non-existent steps
    - Cycles in the dependency graph (including self-dependencies)

    **Args**:
        workflow: Workflow to check (never mutated)

    **Returns**:
        ValidationResult with all errors found
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not workflow.name:
        errors.append("Workflow must have a name")
    if not workflow.version:
        errors.append("Workflow must have a version")
    if not workflow.steps:
        errors.append("Workflow must have at least one step")

    for index, step in enumerate(workflow.steps):
        if not step.id:
            errors.append(f"Step {index} must have an id")
        if not step.skill_name:
            errors.append(f"Step {step.id or index} must have a skill")

    # (a) duplicate ids
    seen: set[str] = set()
    for step in workflow.steps:
        if not step.id:
            continue
        if step.id in seen:
            errors.append(f"Duplicate step id: {step.id}")
        seen.add(step.id)

    # (b) unknown dependencies
    for step in workflow.steps:
        for dep in step.depends_on:
            if dep not in seen:
                errors.append(f"Step {step.id} depends on non-existent step {dep}")

    # (c) cycles
    for cycle in _find_cycles(workflow):
        errors.append(f"Circular dependency detected: {' -> '.join(cycle)}")

    if len(workflow.steps) > MAX_RECOMMENDED_STEPS:
        warnings.append(
            f"Workflow has {len(workflow.steps)} steps. "
            "Consider breaking into smaller workflows."
        )

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def _dependency_map(workflow: Workflow) -> dict[str, list[str]]:
    """Map each step id to its distinct, known dependencies.

    The first declaration wins for duplicate ids; unknown dependencies are
    dropped (validation reports them separately).
    """
    graph: dict[str, list[str]] = {}
    for step in workflow.steps:
        if step.id and step.id not in graph:
            graph[step.id] = list(dict.fromkeys(step.depends_on))
    return {sid: [d for d in deps if d in graph] for sid, deps in graph.items()}


def _find_cycles(workflow: Workflow) -> list[list[str]]:
    """
    Finds dependency cycles with an iterative three-colour DFS.

    An edge into an IN_PROGRESS node closes a cycle; the cycle is reported
    as the path from that node back to itself, e.g. ["a", "b", "a"].
    """
    graph = _dependency_map(workflow)
    marks = {sid: _Mark.UNVISITED for sid in graph}
    cycles: list[list[str]] = []

    for root in graph:
        if marks[root] is not _Mark.UNVISITED:
            continue

        path: list[str] = [root]
        stack = [iter(graph[root])]
        marks[root] = _Mark.IN_PROGRESS

        while stack:
            dep = next(stack[-1], None)
            if dep is None:
                marks[path.pop()] = _Mark.DONE
                stack.pop()
                continue

            if marks[dep] is _Mark.IN_PROGRESS:
                start = path.index(dep)
                cycles.append(path[start:] + [dep])
            elif marks[dep] is _Mark.UNVISITED:
                marks[dep] = _Mark.IN_PROGRESS
                path.append(dep)
                stack.append(iter(graph[dep]))

    return cycles


def resolve_waves(workflow: Workflow) -> list[list[str]]:
    """
    Partitions the steps into dependency-respecting waves.

    Each wave holds the steps whose dependencies are all satisfied by the
    union of the previous waves. Steps within a wave keep declaration
    order, so the same workflow always yields the same partition.

    **Args**:
        workflow: Workflow to plan

    **Returns**:
        Ordered list of waves (lists of step ids)

    **Raises**:
        ValidationError: If the workflow is invalid (including cycles)

    **Example**:
        deps a: [], b: [], c: [a], d: [a, b], e: [c, d]
        -> [["a", "b"], ["c", "d"], ["e"]]
    """
    validate_workflow(workflow).raise_for_errors()

    graph = _dependency_map(workflow)
    order = list(graph)

    in_degree = {sid: len(deps) for sid, deps in graph.items()}
    dependents: dict[str, list[str]] = {sid: [] for sid in graph}
    for sid, deps in graph.items():
        for dep in deps:
            dependents[dep].append(sid)

    waves: list[list[str]] = []
    wave = [sid for sid in order if in_degree[sid] == 0]
    placed = 0

    while wave:
        waves.append(wave)
        placed += len(wave)

        ready: set[str] = set()
        for sid in wave:
            for dependent in dependents[sid]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    ready.add(dependent)

        wave = [sid for sid in order if sid in ready]

    if placed != len(order):
        remaining = [sid for sid in order if in_degree[sid] > 0]
        raise ValidationError([f"Dependency graph has cycles. Remaining steps: {remaining}"])

    return waves


def next_runnable(workflow: Workflow, completed_ids: Iterable[str]) -> set[str]:
    """
    Returns the steps that can run now, given the ids already settled.

    A step is runnable when it is not in `completed_ids` and every one of
    its dependencies is.

    **Args**:
        workflow: Workflow being executed
        completed_ids: Ids of steps that have settled

    **Returns**:
        Set of runnable step ids (empty when nothing is ready)
    """
    completed = set(completed_ids)
    return {
        step.id
        for step in workflow.steps
        if step.id not in completed and all(dep in completed for dep in step.depends_on)
    }


@dataclass
class DagSummary:
    """
    Summary information about a workflow's dependency graph.

    **Attributes**:
        total_steps: Total number of steps
        root_count: Number of steps with no dependencies
        leaf_count: Number of steps nothing depends on
        max_depth: Index of the last wave
        roots: Root step ids
        leaves: Leaf step ids
    """

    total_steps: int
    root_count: int
    leaf_count: int
    max_depth: int
    roots: list[str]
    leaves: list[str]


@dataclass
class ExecutionPlan:
    """
    Read-only projection of how a workflow would execute.

    Usable by external tooling (e.g. a UI) without running anything.

    **Attributes**:
        steps: Step ids in declaration order
        dependencies: Step id -> declared dependency ids
        parallel_groups: Waves, in execution order
    """

    steps: list[str]
    dependencies: dict[str, list[str]]
    parallel_groups: list[list[str]]

    def summary(self) -> DagSummary:
        """Returns statistics about the graph (roots, leaves, depth)."""
        roots = [sid for sid in self.steps if not self.dependencies.get(sid)]

        all_deps: set[str] = set()
        for deps in self.dependencies.values():
            all_deps.update(deps)
        leaves = [sid for sid in self.steps if sid not in all_deps]

        return DagSummary(
            total_steps=len(self.steps),
            root_count=len(roots),
            leaf_count=len(leaves),
            max_depth=max(len(self.parallel_groups) - 1, 0),
            roots=roots,
            leaves=leaves,
        )

    def level_graph(self) -> str:
        """
        Returns a level-based text view of the waves.

        **Example output**:
        ```
        Execution Levels (4 steps):

        Level 0: [research]
                 ↓
        Level 1: [summarize] [extract] (2 parallel steps)
                 ↓
        Level 2: [report]
        ```
        """
        output = f"Execution Levels ({len(self.steps)} steps):\n\n"
        last = len(self.parallel_groups) - 1

        for level, group in enumerate(self.parallel_groups):
            parallel_note = f" ({len(group)} parallel steps)" if len(group) > 1 else ""
            output += f"Level {level}: [{'] ['.join(group)}]{parallel_note}\n"
            if level < last:
                output += "         ↓\n"

        return output


def build_execution_plan(workflow: Workflow) -> ExecutionPlan:
    """
    Builds the execution plan for a workflow without executing it.

    **Raises**:
        ValidationError: If the workflow is invalid
    """
    waves = resolve_waves(workflow)
    return ExecutionPlan(
        steps=workflow.step_ids,
        dependencies={s.id: list(s.depends_on) for s in workflow.steps},
        parallel_groups=waves,
    )


__all__ = [
    "ValidationResult",
    "validate_workflow",
    "resolve_waves",
    "next_runnable",
    "DagSummary",
    "ExecutionPlan",
    "build_execution_plan",
    "MAX_RECOMMENDED_STEPS",
]

"""
Workflow and step definitions.

Design principles:
- Immutable after creation (frozen dataclasses)
- Declaration order of steps is preserved but carries no execution meaning
- Structural invariants (unique ids, known dependencies, no cycles) are
  checked by the graph validator, not by construction, so that an invalid
  definition can still be represented and reported on
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from skillflow.models.retry import RetryPolicy


@dataclass(frozen=True)
class WorkflowStep:
    """
    A single step of a workflow: one named skill call.

    Attributes:
        id: Unique identifier within the workflow
        skill_name: Name of the registered skill to invoke
        input_template: Nested mapping; string leaves may contain
            ``{{ steps.<id>.<path> }}`` references
        depends_on: Ids of steps that must succeed before this one runs
        timeout_ms: Per-step timeout; None falls back to the run default
        retry_policy: Opt-in retry behavior; None means a single attempt
        cache_ttl_ms: Opt-in result caching; None disables caching

    Example:
        WorkflowStep(
            id="summarize",
            skill_name="summarizer",
            input_template={"content": "{{ steps.research.output.findings }}"},
            depends_on=("research",),
        )
    """

    id: str
    skill_name: str
    input_template: Mapping[str, Any] = field(default_factory=dict)
    depends_on: tuple[str, ...] = ()
    timeout_ms: int | None = None
    retry_policy: RetryPolicy | None = None
    cache_ttl_ms: int | None = None

    def __post_init__(self) -> None:
        # Accept any iterable of ids (lists from YAML, sets from callers)
        if not isinstance(self.depends_on, tuple):
            object.__setattr__(self, "depends_on", tuple(self.depends_on))
        if self.timeout_ms is not None and self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")


@dataclass(frozen=True)
class Workflow:
    """
    A named, versioned set of steps with dependency edges.

    Steps are kept in declaration order. Execution order is computed
    from ``depends_on`` by the resolver.
    """

    name: str
    version: str
    steps: tuple[WorkflowStep, ...] = ()
    description: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.steps, tuple):
            object.__setattr__(self, "steps", tuple(self.steps))

    @property
    def step_ids(self) -> list[str]:
        """Step ids in declaration order."""
        return [s.id for s in self.steps]

    def step(self, step_id: str) -> WorkflowStep:
        """Look up a step by id.

        Raises:
            KeyError: If no step has this id
        """
        for s in self.steps:
            if s.id == step_id:
                return s
        raise KeyError(step_id)

    def __len__(self) -> int:
        return len(self.steps)

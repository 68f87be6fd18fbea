"""Core data models for workflow execution.

Defines the workflow definition types, step and run states, retry
behavior and per-skill metrics.

Design: Dependency-Free Models
These types have no dependencies on core, executor or storage modules
to prevent circular imports and enable clean layering.
"""

from skillflow.models.metrics import SkillMetric
from skillflow.models.retry import RetryableError, RetryPolicy
from skillflow.models.status import StepStatus, WorkflowState
from skillflow.models.workflow import Workflow, WorkflowStep

__all__ = [
    "Workflow",
    "WorkflowStep",
    "StepStatus",
    "WorkflowState",
    "RetryPolicy",
    "RetryableError",
    "SkillMetric",
]

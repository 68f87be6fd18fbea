"""
Core types for skillflow workflow execution.

This module contains the fundamental types used throughout skillflow:
- Skill: Protocol for invocable capabilities
- FunctionSkill: Adapter from plain callables to Skill
- SkillRegistry: Name-keyed skill lookup
- ExecutionContext / StepRecord: Per-run accumulated step outcomes
- Error taxonomy rooted at SkillflowError
"""

from skillflow.core.context import ExecutionContext, StepRecord
from skillflow.core.errors import (
    SkillflowError,
    SkillNotFoundError,
    StepExecutionError,
    StepTimeoutError,
    ValidationError,
    VariableResolutionError,
    WorkflowDefinitionError,
    WorkflowTimeoutError,
)
from skillflow.core.skill import FunctionSkill, Skill, SkillRegistry

__all__ = [
    "Skill",
    "FunctionSkill",
    "SkillRegistry",
    "ExecutionContext",
    "StepRecord",
    "SkillflowError",
    "ValidationError",
    "WorkflowDefinitionError",
    "SkillNotFoundError",
    "VariableResolutionError",
    "StepExecutionError",
    "StepTimeoutError",
    "WorkflowTimeoutError",
]

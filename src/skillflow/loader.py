"""
Declarative workflow documents.

Workflows can be written as YAML (or any mapping with the same shape) and
turned into Workflow objects:

    ```yaml
    name: research-report
    version: "1.0"
    description: Research a topic and write a report
    steps:
      - id: research
        skill: web_research
        input:
          query: "{{ variables.topic }}"
        retry:
          max_attempts: 3
          backoff: exponential
        cache_ttl_ms: 600000
      - id: summarize
        skill: summarizer
        depends_on: research
        input:
          content: "{{ steps.research.output.content }}"
        timeout: 10000
    ```

Timeouts (``timeout`` or ``timeout_ms``) and retry delays are milliseconds.
Parsing checks document shape only; graph problems (unknown dependencies,
cycles) are reported by validate_workflow() when the workflow runs.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml  # PyYAML

from skillflow.core.errors import WorkflowDefinitionError
from skillflow.models import RetryPolicy, Workflow, WorkflowStep

logger = logging.getLogger(__name__)

_BACKOFF_MULTIPLIERS = {
    "exponential": 2.0,
    "linear": 1.0,
}


def parse_workflow(text: str) -> Workflow:
    """
    Parse a YAML workflow document.

    Raises:
        WorkflowDefinitionError: If the text is not valid YAML or not a workflow
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise WorkflowDefinitionError(f"Invalid workflow YAML: {e}") from e
    return workflow_from_dict(data)


def load_workflow(path: str | Path) -> Workflow:
    """
    Load a workflow from a YAML file.

    Raises:
        WorkflowDefinitionError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise WorkflowDefinitionError(f"Cannot read workflow file {path}: {e}") from e

    workflow = parse_workflow(text)
    logger.debug(f"Loaded workflow {workflow.name} v{workflow.version} from {path}")
    return workflow


def workflow_from_dict(data: Any) -> Workflow:
    """
    Build a Workflow from an already-parsed document.

    Raises:
        WorkflowDefinitionError: If required fields are missing or malformed
    """
    if not isinstance(data, Mapping):
        raise WorkflowDefinitionError("Workflow definition must be a mapping")

    if not data.get("name") or not data.get("version") or data.get("steps") is None:
        raise WorkflowDefinitionError("Workflow must have: name, version, and steps")

    raw_steps = data["steps"]
    if not isinstance(raw_steps, list):
        raise WorkflowDefinitionError("Workflow steps must be a list")

    description = data.get("description")
    return Workflow(
        name=str(data["name"]),
        version=str(data["version"]),
        steps=tuple(_parse_step(raw, index) for index, raw in enumerate(raw_steps)),
        description=description if isinstance(description, str) else None,
    )


def _parse_step(raw: Any, index: int) -> WorkflowStep:
    if not isinstance(raw, Mapping):
        raise WorkflowDefinitionError(f"Workflow step at index {index} must be a mapping")

    step_id = raw.get("id")
    if not isinstance(step_id, str) or not step_id.strip():
        step_id = f"step_{index}"

    skill_name = raw.get("skill")
    if not isinstance(skill_name, str) or not skill_name.strip():
        raise WorkflowDefinitionError(f"Step {step_id} must have a skill")

    input_template = raw.get("input") or {}
    if not isinstance(input_template, Mapping):
        raise WorkflowDefinitionError(f"Step {step_id}: input must be a mapping")

    settings = {
        "depends_on": _parse_depends_on(raw.get("depends_on")),
        "timeout_ms": _parse_timeout(raw, step_id),
        "retry_policy": _parse_retry(raw.get("retry"), step_id),
        "cache_ttl_ms": _optional_int(raw.get("cache_ttl_ms"), f"Step {step_id}: cache_ttl_ms"),
    }
    try:
        return WorkflowStep(
            id=step_id, skill_name=skill_name, input_template=dict(input_template), **settings
        )
    except ValueError as e:
        raise WorkflowDefinitionError(f"Step {step_id}: {e}") from e


def _parse_depends_on(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise WorkflowDefinitionError(f"depends_on must be a string or list, got {type(value).__name__}")
    return tuple(str(item).strip() for item in value if item is not None and str(item).strip())


def _parse_timeout(raw: Mapping, step_id: str) -> int | None:
    value = raw.get("timeout_ms", raw.get("timeout"))
    return _optional_int(value, f"Step {step_id}: timeout")


def _parse_retry(value: Any, step_id: str) -> RetryPolicy | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise WorkflowDefinitionError(f"Step {step_id}: retry must be a mapping")

    max_attempts = _optional_int(value.get("max_attempts"), f"Step {step_id}: max_attempts")
    settings: dict[str, Any] = {"max_attempts": 1 if max_attempts is None else max_attempts}

    backoff = value.get("backoff")
    if backoff is not None:
        if backoff not in _BACKOFF_MULTIPLIERS:
            raise WorkflowDefinitionError(
                f"Step {step_id}: backoff must be one of {sorted(_BACKOFF_MULTIPLIERS)}, got {backoff!r}"
            )
        settings["backoff_multiplier"] = _BACKOFF_MULTIPLIERS[backoff]

    for key in ("initial_delay_ms", "max_delay_ms"):
        if value.get(key) is not None:
            settings[key] = _optional_int(value[key], f"Step {step_id}: {key}")
    if value.get("backoff_multiplier") is not None:
        settings["backoff_multiplier"] = _optional_float(
            value["backoff_multiplier"], f"Step {step_id}: backoff_multiplier"
        )

    try:
        return RetryPolicy(**settings)
    except ValueError as e:
        raise WorkflowDefinitionError(f"Step {step_id}: invalid retry policy: {e}") from e


def _optional_int(value: Any, label: str) -> int | None:
    number = _optional_float(value, label)
    return None if number is None else int(number)


def _optional_float(value: Any, label: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise WorkflowDefinitionError(f"{label} must be a number, got {value!r}")
    return float(value)


__all__ = ["load_workflow", "parse_workflow", "workflow_from_dict"]

"""Template variable resolution for step inputs.

Step inputs are declared as templates whose string leaves may reference
earlier results:

    {"content": "{{ steps.research.output.findings }}"}
    {"title": "Report on {{ variables.topic }}"}

A string that is exactly one reference is replaced by the referenced
value with its type preserved (list stays list, int stays int). A
reference embedded in surrounding text is spliced in as a string.

Reference grammar:
    steps.<id>                -> output of step <id>
    steps.<id>.output.<path>  -> descend <path> into that output
    steps.<id>.<path>         -> shorthand for the line above
    variables.<path>          -> run-level variables from ExecutionOptions

Path segments are dot-separated; numeric segments index into lists.
Expressions in any other namespace are left untouched.
"""

import dataclasses
import json
import re
from collections.abc import Mapping, Sequence
from typing import Any

from skillflow.core.context import ExecutionContext
from skillflow.core.errors import VariableResolutionError

_REFERENCE = re.compile(r"\{\{\s*([^{}]*?)\s*\}\}")
_NAMESPACES = ("steps", "variables")


def resolve_variables(
    template: Any,
    context: ExecutionContext,
    variables: Mapping[str, Any] | None = None,
) -> Any:
    """Materialize a concrete input from a template.

    Args:
        template: Nested mappings/lists whose string leaves may hold references
        context: Outcomes of the steps settled so far
        variables: Run-level variables for the ``variables.`` namespace

    Returns:
        A new structure with every reference substituted; the template is
        not mutated.

    Raises:
        VariableResolutionError: If any reference names an unknown step,
            a step without a successful output, or a path that does not exist
    """
    return _resolve_value(template, context, variables or {})


def find_references(template: Any) -> set[str]:
    """Return the step ids referenced anywhere in a template."""
    found: set[str] = set()

    def walk(value: Any) -> None:
        if isinstance(value, str):
            for match in _REFERENCE.finditer(value):
                segments = match.group(1).split(".")
                if len(segments) > 1 and segments[0] == "steps":
                    found.add(segments[1])
        elif isinstance(value, Mapping):
            for item in value.values():
                walk(item)
        elif isinstance(value, (list, tuple)):
            for item in value:
                walk(item)

    walk(template)
    return found


def _resolve_value(value: Any, context: ExecutionContext, variables: Mapping[str, Any]) -> Any:
    if isinstance(value, str):
        return _resolve_string(value, context, variables) if "{{" in value else value

    if isinstance(value, Mapping):
        return {key: _resolve_value(item, context, variables) for key, item in value.items()}

    if isinstance(value, list):
        return [_resolve_value(item, context, variables) for item in value]

    if isinstance(value, tuple):
        return tuple(_resolve_value(item, context, variables) for item in value)

    return value


def _resolve_string(text: str, context: ExecutionContext, variables: Mapping[str, Any]) -> Any:
    whole = _REFERENCE.fullmatch(text)
    if whole and _is_reference(whole.group(1)):
        return _lookup(whole.group(1), context, variables)

    def substitute(match: re.Match) -> str:
        expression = match.group(1)
        if not _is_reference(expression):
            return match.group(0)
        return _stringify(_lookup(expression, context, variables))

    return _REFERENCE.sub(substitute, text)


def _is_reference(expression: str) -> bool:
    return expression.split(".", 1)[0] in _NAMESPACES


def _lookup(expression: str, context: ExecutionContext, variables: Mapping[str, Any]) -> Any:
    namespace, *segments = expression.split(".")

    if namespace == "variables":
        return _descend(variables, segments, expression)

    if not segments or not segments[0]:
        raise VariableResolutionError(expression, "missing step id")

    step_id, *path = segments
    if step_id not in context:
        raise VariableResolutionError(expression, f"step '{step_id}' has no recorded output")

    record = context[step_id]
    if not record.succeeded:
        raise VariableResolutionError(
            expression, f"step '{step_id}' did not complete successfully ({record.status})"
        )

    if path and path[0] == "output":
        path = path[1:]
    return _descend(record.output, path, expression)


def _descend(value: Any, path: Sequence[str], expression: str) -> Any:
    current = value
    for depth, segment in enumerate(path):
        where = ".".join(path[:depth]) or "<root>"

        if isinstance(current, Mapping):
            if segment not in current:
                raise VariableResolutionError(expression, f"key '{segment}' not found at {where}")
            current = current[segment]
        elif isinstance(current, (list, tuple)):
            if not segment.isdigit() or int(segment) >= len(current):
                raise VariableResolutionError(
                    expression, f"index '{segment}' out of range at {where}"
                )
            current = current[int(segment)]
        elif dataclasses.is_dataclass(current) and not isinstance(current, type):
            if not hasattr(current, segment):
                raise VariableResolutionError(
                    expression, f"field '{segment}' not found at {where}"
                )
            current = getattr(current, segment)
        else:
            raise VariableResolutionError(
                expression, f"cannot descend into {type(current).__name__} at {where}"
            )
    return current


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(value)


__all__ = ["resolve_variables", "find_references"]

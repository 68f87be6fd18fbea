"""
Tests for graph validation, wave resolution and execution plans.

ARCHITECTURE VERIFICATION:
- Invalid graphs are reported with every problem found
- Steps in one wave never depend on each other
- Every dependency sits in an earlier wave
"""

import pytest
from conftest import make_step
from hypothesis import given, settings
from hypothesis import strategies as st

from skillflow import (
    ValidationError,
    Workflow,
    build_execution_plan,
    next_runnable,
    resolve_waves,
    validate_workflow,
)


def _workflow(*steps) -> Workflow:
    return Workflow(name="test", version="1.0", steps=steps)


def _diamond() -> Workflow:
    # a, b -> c (a), d (a, b) -> e (c, d)
    return _workflow(
        make_step("a"),
        make_step("b"),
        make_step("c", depends_on=("a",)),
        make_step("d", depends_on=("a", "b")),
        make_step("e", depends_on=("c", "d")),
    )


def test_valid_workflow_has_no_errors():
    result = validate_workflow(_diamond())
    assert result.valid
    assert result.errors == []
    assert result.warnings == []


def test_duplicate_ids_are_reported():
    result = validate_workflow(_workflow(make_step("a"), make_step("a")))
    assert not result.valid
    assert "Duplicate step id: a" in result.errors


def test_unknown_dependency_is_reported():
    result = validate_workflow(_workflow(make_step("a", depends_on=("ghost",))))
    assert not result.valid
    assert "Step a depends on non-existent step ghost" in result.errors


def test_cycle_is_reported_with_path():
    """Test a two-step cycle is reported as a path back to its start."""
    result = validate_workflow(
        _workflow(make_step("a", depends_on=("b",)), make_step("b", depends_on=("a",)))
    )
    assert not result.valid
    assert any(e.startswith("Circular dependency detected: a -> b -> a") for e in result.errors)


def test_self_dependency_is_a_cycle():
    result = validate_workflow(_workflow(make_step("a", depends_on=("a",))))
    assert "Circular dependency detected: a -> a" in result.errors


def test_cycle_deep_in_graph_is_found():
    """Test a cycle not reachable from the first step is still detected."""
    result = validate_workflow(
        _workflow(
            make_step("root"),
            make_step("x", depends_on=("root", "z")),
            make_step("y", depends_on=("x",)),
            make_step("z", depends_on=("y",)),
        )
    )
    assert not result.valid
    assert any("Circular dependency detected" in e for e in result.errors)


def test_required_fields_are_reported():
    result = validate_workflow(Workflow(name="", version="", steps=()))
    assert "Workflow must have a name" in result.errors
    assert "Workflow must have a version" in result.errors
    assert "Workflow must have at least one step" in result.errors


def test_large_workflow_warns_but_is_valid():
    steps = [make_step(f"s{i}") for i in range(11)]
    result = validate_workflow(_workflow(*steps))
    assert result.valid
    assert len(result.warnings) == 1
    assert "11 steps" in result.warnings[0]


def test_validation_does_not_mutate_workflow():
    workflow = _diamond()
    before = [(s.id, s.depends_on) for s in workflow.steps]
    validate_workflow(workflow)
    assert [(s.id, s.depends_on) for s in workflow.steps] == before


def test_resolve_waves_diamond():
    """Test the canonical five-step example."""
    assert resolve_waves(_diamond()) == [["a", "b"], ["c", "d"], ["e"]]


def test_resolve_waves_is_deterministic():
    workflow = _diamond()
    assert resolve_waves(workflow) == resolve_waves(workflow)


def test_resolve_waves_rejects_cycles():
    workflow = _workflow(make_step("a", depends_on=("b",)), make_step("b", depends_on=("a",)))
    with pytest.raises(ValidationError) as excinfo:
        resolve_waves(workflow)
    assert "Circular dependency" in str(excinfo.value)


def test_next_runnable():
    """Test incremental readiness as steps settle."""
    workflow = _diamond()
    assert next_runnable(workflow, []) == {"a", "b"}
    assert next_runnable(workflow, ["a"]) == {"b", "c"}
    assert next_runnable(workflow, ["a", "b"]) == {"c", "d"}
    assert next_runnable(workflow, ["a", "b", "c", "d"]) == {"e"}
    assert next_runnable(workflow, ["a", "b", "c", "d", "e"]) == set()


def test_execution_plan_and_summary():
    plan = build_execution_plan(_diamond())

    assert plan.steps == ["a", "b", "c", "d", "e"]
    assert plan.dependencies["d"] == ["a", "b"]
    assert plan.parallel_groups == [["a", "b"], ["c", "d"], ["e"]]

    summary = plan.summary()
    assert summary.total_steps == 5
    assert summary.roots == ["a", "b"]
    assert summary.leaves == ["e"]
    assert summary.max_depth == 2


def test_level_graph_rendering():
    text = build_execution_plan(_diamond()).level_graph()
    assert text.startswith("Execution Levels (5 steps):")
    assert "Level 0: [a] [b] (2 parallel steps)" in text
    assert "Level 2: [e]" in text


@st.composite
def acyclic_workflows(draw):
    """Random DAGs: step i may only depend on steps declared before it."""
    count = draw(st.integers(min_value=1, max_value=15))
    steps = []
    for i in range(count):
        deps = draw(st.sets(st.integers(min_value=0, max_value=i - 1), max_size=3)) if i else set()
        steps.append(make_step(f"s{i}", depends_on=tuple(f"s{d}" for d in sorted(deps))))
    # Shuffle declaration order so waves cannot lean on it
    order = draw(st.permutations(steps))
    return _workflow(*order)


@pytest.mark.property
@settings(max_examples=200)
@given(workflow=acyclic_workflows())
def test_waves_respect_dependencies(workflow):
    """
    Property: every step appears in exactly one wave, and each of its
    dependencies appears in a strictly earlier wave.
    """
    waves = resolve_waves(workflow)
    position = {sid: index for index, wave in enumerate(waves) for sid in wave}

    assert sorted(position) == sorted(workflow.step_ids)
    assert sum(len(wave) for wave in waves) == len(workflow.steps)
    for step in workflow.steps:
        for dep in step.depends_on:
            assert position[dep] < position[step.id]


@pytest.mark.property
@given(workflow=acyclic_workflows())
def test_waves_are_as_early_as_possible(workflow):
    """
    Property: a step sits exactly one wave after its latest dependency
    (or in the first wave when it has none).
    """
    waves = resolve_waves(workflow)
    position = {sid: index for index, wave in enumerate(waves) for sid in wave}

    for step in workflow.steps:
        expected = max((position[d] + 1 for d in step.depends_on), default=0)
        assert position[step.id] == expected

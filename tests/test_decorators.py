"""Tests for the @skill decorator and skill discovery."""

import types

import pytest

from skillflow import FunctionSkill, SkillNotFoundError, SkillRegistry, discover_skills, skill
from skillflow.decorators import is_skill


def test_bare_decorator_marks_function():
    @skill
    async def summarizer(input):
        return input

    assert is_skill(summarizer)
    assert summarizer._skill_name == "summarizer"


def test_decorator_with_registry_registers_immediately():
    registry = SkillRegistry()

    @skill(name="web_research", registry=registry)
    async def search(input):
        return {"query": input["query"]}

    assert registry.has("web_research")
    assert isinstance(registry.resolve("web_research"), FunctionSkill)


@pytest.mark.asyncio
async def test_decorated_function_stays_callable():
    @skill
    async def double(input):
        return input * 2

    assert await double(4) == 8


@pytest.mark.asyncio
async def test_discover_skills_on_instance_binds_methods():
    class Research:
        def __init__(self, prefix):
            self.prefix = prefix

        @skill(name="web_research")
        async def search(self, input):
            return f"{self.prefix}:{input['query']}"

        @skill
        def count(self, input):
            return len(input["items"])

        async def helper(self, input):
            return None

    registry = discover_skills(Research("r"))

    assert registry.names() == ["count", "web_research"]
    assert await registry.resolve("web_research").invoke({"query": "q"}) == "r:q"
    assert await registry.resolve("count").invoke({"items": [1, 2, 3]}) == 3


def test_discover_skills_on_module_ignores_private_names():
    module = types.ModuleType("skills")

    @skill
    def visible(input):
        return input

    @skill
    def _hidden(input):
        return input

    module.visible = visible
    module._hidden = _hidden
    module.plain = lambda input: input

    registry = SkillRegistry()
    assert discover_skills(module, registry) is registry
    assert registry.names() == ["visible"]


def test_registry_rejects_bad_registrations():
    registry = SkillRegistry()
    with pytest.raises(ValueError):
        registry.register("", lambda input: input)
    with pytest.raises(TypeError):
        registry.register("number", 42)


def test_registry_unregister_and_resolve():
    registry = SkillRegistry({"a": lambda input: input})
    assert "a" in registry
    assert len(registry) == 1

    registry.unregister("a")
    registry.unregister("never-there")

    with pytest.raises(SkillNotFoundError):
        registry.resolve("a")

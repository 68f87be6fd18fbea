"""
Skill protocol and the name-keyed skill registry.

Design: Protocol-based (PEP 544) for structural typing
No inheritance required - any object with an async invoke(input) method
qualifies as a skill. The engine never branches on skill identity; it
only resolves a name to a capability and calls invoke().

From Dave Cheney:
"Let functions define the behavior they require" - the invoker only needs
invoke(), not the skill's metadata, schema or implementation details.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from skillflow.core.errors import SkillNotFoundError

logger = logging.getLogger(__name__)


@runtime_checkable
class Skill(Protocol):
    """
    Protocol for invocable capabilities.

    A skill takes a single input value (usually a mapping) and returns a
    single output value. Failures are signalled by raising.

    Usage:
        class WebResearch:
            async def invoke(self, input: dict) -> dict:
                return {"findings": await search(input["query"])}

        assert isinstance(WebResearch(), Skill)
    """

    async def invoke(self, input: Any) -> Any:
        """Run the skill on one input and return its output."""
        ...


class FunctionSkill:
    """Adapt a plain callable to the Skill protocol.

    Coroutine functions are awaited directly. Synchronous callables are
    offloaded with asyncio.to_thread so a blocking skill does not stall
    the other steps of its wave.
    """

    def __init__(self, func: Callable[[Any], Any], name: str | None = None):
        self.func = func
        self.name = name or getattr(func, "__name__", repr(func))
        self._is_async = inspect.iscoroutinefunction(func)

    async def invoke(self, input: Any) -> Any:
        if self._is_async:
            return await self.func(input)
        result = await asyncio.to_thread(self.func, input)
        # A sync callable may still hand back an awaitable (e.g. a lambda
        # wrapping a coroutine function)
        if inspect.isawaitable(result):
            return await result
        return result

    def __repr__(self) -> str:
        return f"FunctionSkill({self.name!r})"


class SkillRegistry:
    """
    Registry mapping skill names to capabilities.

    Skills are plugged in at startup. The registry is an explicit object
    passed to the invoker, not a process-wide singleton, so independent
    engines (e.g. in tests) do not interfere.

    Usage:
        registry = SkillRegistry()
        registry.register("summarizer", summarize)      # plain function
        registry.register("web_research", WebResearch()) # Skill object

        skill = registry.resolve("summarizer")
        output = await skill.invoke({"content": "..."})
    """

    def __init__(self, skills: dict[str, Any] | None = None):
        self._skills: dict[str, Skill] = {}
        for name, skill in (skills or {}).items():
            self.register(name, skill)

    def register(self, name: str, skill: Skill | Callable[[Any], Any]) -> Skill:
        """
        Register a skill under a name, replacing any previous registration.

        Args:
            name: Skill name referenced by workflow steps
            skill: Object implementing Skill, or a callable taking one input

        Returns:
            The registered Skill (callables are wrapped in FunctionSkill)

        Raises:
            TypeError: If skill is neither a Skill nor callable
            ValueError: If name is empty
        """
        if not name:
            raise ValueError("Skill name must not be empty")

        if isinstance(skill, Skill):
            capability: Skill = skill
        elif callable(skill):
            capability = FunctionSkill(skill, name=name)
        else:
            raise TypeError(
                f"Skill '{name}' must implement invoke(input) or be callable, "
                f"got {type(skill).__name__}"
            )

        if name in self._skills:
            logger.debug(f"Replacing registered skill: {name}")
        self._skills[name] = capability
        logger.debug(f"Registered skill: {name}")
        return capability

    def unregister(self, name: str) -> None:
        """Remove a skill. Unknown names are ignored."""
        self._skills.pop(name, None)

    def resolve(self, name: str) -> Skill:
        """
        Look up the capability registered under name.

        Raises:
            SkillNotFoundError: If nothing is registered under name
        """
        try:
            return self._skills[name]
        except KeyError:
            raise SkillNotFoundError(name) from None

    def has(self, name: str) -> bool:
        return name in self._skills

    def names(self) -> list[str]:
        """Registered skill names, sorted."""
        return sorted(self._skills)

    def __contains__(self, name: object) -> bool:
        return name in self._skills

    def __len__(self) -> int:
        return len(self._skills)

    def __repr__(self) -> str:
        return f"SkillRegistry({self.names()})"

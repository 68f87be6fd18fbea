"""
Decorators for declaring skills.

@skill marks a function (or method) as a skill and optionally registers it
right away. discover_skills() collects every marked callable found on a
module, class instance or other namespace into a registry.

Example:
    ```python
    registry = SkillRegistry()

    @skill(registry=registry)
    async def summarizer(input: dict) -> dict:
        return {"summary": input["content"][:200]}

    class Research:
        def __init__(self, client):
            self.client = client

        @skill(name="web_research")
        async def search(self, input: dict) -> dict:
            return {"content": await self.client.search(input["query"])}

    discover_skills(Research(client), registry)
    ```

The decorated function is returned unchanged, so it stays directly
callable in tests.
"""

from collections.abc import Callable
from typing import Any, TypeVar

from skillflow.core.skill import SkillRegistry

F = TypeVar("F", bound=Callable[..., Any])


def skill(
    func: F | None = None,
    *,
    name: str | None = None,
    registry: SkillRegistry | None = None,
) -> F:
    """
    Mark a callable as a skill.

    Works both bare (``@skill``) and with arguments
    (``@skill(name="web_research", registry=registry)``).

    Args:
        func: The function to decorate
        name: Skill name (defaults to the function name)
        registry: Register the function here immediately
    """

    def decorator(f: F) -> F:
        f._is_skill = True  # type: ignore
        f._skill_name = name or f.__name__  # type: ignore
        if registry is not None:
            registry.register(f._skill_name, f)  # type: ignore
        return f

    if func is None:
        return decorator  # type: ignore
    return decorator(func)


def is_skill(obj: Any) -> bool:
    return callable(obj) and getattr(obj, "_is_skill", False) is True


def discover_skills(namespace: Any, registry: SkillRegistry | None = None) -> SkillRegistry:
    """
    Register every @skill callable found on namespace.

    Private attributes (leading underscore) are ignored. Bound methods are
    registered bound, so instance state is available to the skill.

    Args:
        namespace: Module, class instance or any object with attributes
        registry: Registry to add to (a new one is created if omitted)

    Returns:
        The registry
    """
    registry = registry if registry is not None else SkillRegistry()

    for attr_name in dir(namespace):
        if attr_name.startswith("_"):
            continue

        attr = getattr(namespace, attr_name)
        if is_skill(attr):
            registry.register(attr._skill_name, attr)

    return registry


__all__ = ["discover_skills", "is_skill", "skill"]

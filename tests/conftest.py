"""
Pytest configuration and fixtures for skillflow tests.

Provides reusable skills, a populated registry, invokers, engines and a
small in-process stand-in for a redis.asyncio client.
"""

import asyncio
import fnmatch
from collections.abc import AsyncIterator
from typing import Any

import pytest

from skillflow import SkillInvoker, SkillRegistry, WorkflowEngine, WorkflowStep

# Sample skills for reuse across tests


async def echo(input: dict) -> dict:
    """Return the input unchanged."""
    await asyncio.sleep(0.001)
    return dict(input)


async def double(input: dict) -> dict:
    await asyncio.sleep(0.001)
    return {"value": input["value"] * 2}


async def fail(input: dict) -> dict:
    raise ValueError("boom")


async def slow(input: dict) -> dict:
    """Sleep for input["delay_ms"] (default 200ms)."""
    delay_ms = input.get("delay_ms", 200)
    await asyncio.sleep(delay_ms / 1000.0)
    return {"slept_ms": delay_ms}


class CallCounter:
    """Skill that counts its calls and returns a fixed output."""

    def __init__(self, output: Any = "ok"):
        self.calls: list[Any] = []
        self.output = output

    async def invoke(self, input: Any) -> Any:
        self.calls.append(input)
        return self.output


class Flaky:
    """Skill that fails a fixed number of times before succeeding."""

    def __init__(self, failures: int, output: Any = "recovered"):
        self.failures = failures
        self.output = output
        self.calls = 0

    async def invoke(self, input: Any) -> Any:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"transient failure {self.calls}")
        return self.output


def make_step(step_id: str, skill_name: str = "echo", input: dict | None = None, **kwargs) -> WorkflowStep:
    return WorkflowStep(id=step_id, skill_name=skill_name, input_template=input or {}, **kwargs)


@pytest.fixture
def registry() -> SkillRegistry:
    """Registry with echo, double, fail and slow skills."""
    return SkillRegistry({"echo": echo, "double": double, "fail": fail, "slow": slow})


@pytest.fixture
def sleeps() -> list[float]:
    """Delays (seconds) requested by an invoker created with fake_sleep."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    """Sleep replacement that records the delay and yields once."""

    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)
        await asyncio.sleep(0)

    return _sleep


@pytest.fixture
def invoker(registry: SkillRegistry, fake_sleep) -> SkillInvoker:
    return SkillInvoker(registry, sleep=fake_sleep)


@pytest.fixture
def engine(invoker: SkillInvoker) -> WorkflowEngine:
    return WorkflowEngine(invoker)


class FakeRedis:
    """Minimal async stand-in for redis.asyncio.Redis (get/set/scan_iter/delete)."""

    def __init__(self):
        self.data: dict[bytes, bytes] = {}
        self.ttls: dict[bytes, int] = {}
        self.closed = False

    @staticmethod
    def _key(key: str | bytes) -> bytes:
        return key.encode("utf-8") if isinstance(key, str) else key

    async def get(self, key):
        return self.data.get(self._key(key))

    async def set(self, key, value, px=None):
        self.data[self._key(key)] = value
        if px is not None:
            self.ttls[self._key(key)] = px
        return True

    async def scan_iter(self, match: str = "*") -> AsyncIterator[bytes]:
        for key in list(self.data):
            if fnmatch.fnmatchcase(key.decode("utf-8"), match):
                yield key

    async def delete(self, *keys) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(self._key(key), None) is not None:
                removed += 1
        return removed

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()

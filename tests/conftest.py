from __future__ import annotations

import os

os.environ.setdefault("AUTOPILOT_NO_LOG_FILE", "1")

import random
from datetime import datetime

import pytest

from autopilot.agent import AgentContext
from autopilot.config import Paths, Settings
from autopilot.resolver import Resolver
from autopilot.selectors import load_targets
from autopilot.timing import NoDelay


class FakeClock:
    """Monotonic time that only moves when something sleeps."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(seconds, 0.0)


class FakeLLM:
    """Returns scripted responses in order; an Exception instance is raised instead."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, str]] = []

    def complete(self, system: str, user: str, *, temperature: float = 0.7, max_tokens: int = 500) -> str:
        self.calls.append((system, user))
        if not self.responses:
            raise AssertionError("FakeLLM ran out of responses")
        r = self.responses.pop(0)
        if isinstance(r, BaseException):
            raise r
        return r


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def resolver(clock) -> Resolver:
    return Resolver(clock, timeout=2.0, poll_interval=0.5)


@pytest.fixture
def targets(tmp_path):
    # a path that does not exist, so a local config/selectors.yaml never leaks in
    return load_targets(tmp_path / "no-selectors.yaml")


@pytest.fixture
def paths(tmp_path) -> Paths:
    p = Paths(tmp_path / "home")
    p.ensure()
    return p


@pytest.fixture
def settings() -> Settings:
    return Settings(
        linkedin_email="me@example.com",
        linkedin_password="secret",
        openai_api_key="sk-test",
    )


@pytest.fixture
def ctx(settings, paths, clock, resolver, targets) -> AgentContext:
    return AgentContext(
        settings=settings,
        paths=paths,
        llm=FakeLLM(),
        delay=NoDelay(),
        clock=clock,
        resolver=resolver,
        targets=targets,
        rng=random.Random(7),
        now=lambda: datetime.now().astimezone(),
    )

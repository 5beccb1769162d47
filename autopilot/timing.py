"""Clocks and human-like pauses.

Everything that waits goes through a ``Clock`` or a ``Delay`` so tests can
swap in fakes instead of sleeping.
"""
from __future__ import annotations

import random
import time
from typing import Callable, Protocol


class Clock(Protocol):
    def monotonic(self) -> float: ...

    def sleep(self, seconds: float) -> None: ...


class SystemClock:
    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


class Delay(Protocol):
    def pause(self, min_s: float, max_s: float) -> float: ...

    def keystroke(self, char: str) -> float: ...


def keystroke_bounds(char: str) -> tuple[float, float]:
    """Per-character typing delay in seconds."""
    if char == "\n":
        return 0.2, 0.2
    if char == " ":
        return 0.05, 0.15
    return 0.03, 0.11


class HumanDelay:
    """Random sleeps between ``min_s`` and ``max_s`` seconds."""

    def __init__(
        self,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
        scale: float = 1.0,
    ) -> None:
        self.rng = rng or random.Random()
        self._sleep = sleep
        self.scale = scale

    def pause(self, min_s: float, max_s: float) -> float:
        seconds = self.rng.uniform(min_s, max_s) * self.scale
        self._sleep(seconds)
        return seconds

    def keystroke(self, char: str) -> float:
        return self.pause(*keystroke_bounds(char))


class NoDelay:
    """Never sleeps; remembers what it was asked for."""

    def __init__(self) -> None:
        self.pauses: list[tuple[float, float]] = []
        self.keystrokes: list[str] = []

    def pause(self, min_s: float, max_s: float) -> float:
        self.pauses.append((min_s, max_s))
        return 0.0

    def keystroke(self, char: str) -> float:
        self.keystrokes.append(char)
        return 0.0

"""Backoff for remote calls that fail transiently (LLM API, network)."""
from __future__ import annotations

import functools
import random
import time
from typing import Callable, Iterator, Tuple, Type

from autopilot.log import get_logger

log = get_logger(__name__)


def backoff_delays(
    attempts: int, base: float, factor: float, cap: float, jitter: bool
) -> Iterator[float]:
    """Yield the wait before each retry: ``attempts - 1`` values."""
    wait = base
    for _ in range(attempts - 1):
        yield min(wait, cap) * (0.5 + random.random() if jitter else 1.0)
        wait *= factor


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> Callable:
    """Call again on ``retryable`` errors; the final failure propagates."""

    def decorator(fn: Callable) -> Callable:
        name = fn.__qualname__

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            waits = backoff_delays(max_attempts, base_delay, backoff_factor, max_delay, jitter)
            attempt = 1
            while True:
                try:
                    return fn(*args, **kwargs)
                except retryable as exc:
                    wait = next(waits, None)
                    if wait is None:
                        log.error("%s gave up after %d attempt(s): %s", name, attempt, exc)
                        raise
                    log.warning("%s failed on attempt %d (%s); next try in %.1fs",
                                name, attempt, exc, wait)
                    sleep(wait)
                    attempt += 1

        return wrapper

    return decorator

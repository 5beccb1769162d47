from __future__ import annotations

import random
from datetime import datetime, timedelta

import pytest

from autopilot import scheduler as scheduler_mod
from autopilot.scheduler import Scheduler, build_scheduler


class WallClock:
    """Wall time and sleep in one object; sleeping moves ``now`` forward."""

    def __init__(self, start: datetime) -> None:
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self.current.timestamp()

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def wall() -> WallClock:
    return WallClock(datetime(2026, 3, 10, 8, 59, 30))


def make(wall: WallClock, **kw) -> Scheduler:
    return Scheduler(clock=wall, now=wall.now, **kw)


def test_add_plans_next_run(wall):
    s = make(wall)
    entry = s.add("hourly", "0 * * * *", lambda: None)
    assert entry.next_run == datetime(2026, 3, 10, 9, 0)


def test_run_pending_runs_only_due_entries(wall):
    ran = []
    s = make(wall)
    s.add("nine", "0 9 * * *", lambda: ran.append("nine"))
    s.add("ten", "0 10 * * *", lambda: ran.append("ten"))

    assert s.run_pending() == []
    wall.current = datetime(2026, 3, 10, 9, 0, 5)
    assert s.run_pending() == ["nine"]
    assert ran == ["nine"]
    assert s.entries[0].next_run == datetime(2026, 3, 11, 9, 0)
    # already replanned, so not run twice
    assert s.run_pending() == []


def test_failing_job_does_not_stop_others(wall):
    ran = []

    def broken():
        raise RuntimeError("boom")

    s = make(wall)
    s.add("broken", "0 9 * * *", broken)
    s.add("fine", "0 9 * * *", lambda: ran.append(1))
    wall.current = datetime(2026, 3, 10, 9, 0)
    assert s.run_pending() == ["broken", "fine"]
    assert ran == [1]
    assert s.entries[0].next_run == datetime(2026, 3, 11, 9, 0)


def test_seconds_until_next_is_clamped(wall):
    s = make(wall, tick=30.0)
    assert s.seconds_until_next() == 30.0
    s.add("nine", "0 9 * * *", lambda: None)
    assert s.seconds_until_next() == 30.0
    wall.current = datetime(2026, 3, 10, 8, 59, 50)
    assert s.seconds_until_next() == 10.0
    wall.current = datetime(2026, 3, 10, 9, 0, 0)
    assert s.seconds_until_next() == 1.0


def test_run_forever_sleeps_between_ticks(wall):
    ran = []
    s = make(wall)
    s.add("nine", "0 9 * * *", lambda: ran.append(wall.now()))
    s.run_forever(max_ticks=3)
    assert len(ran) == 1
    assert ran[0] >= datetime(2026, 3, 10, 9, 0)
    assert wall.sleeps[0] == 30.0


def test_stop_ends_the_loop(wall):
    s = make(wall)
    s.add("every", "* * * * *", lambda: s.stop())
    wall.current = datetime(2026, 3, 10, 9, 0)
    s.run_forever()
    assert wall.sleeps == []


def test_jitter_keeps_fixed_times_near_base(wall):
    s = make(wall, rng=random.Random(5), jitter_minutes=20)
    for _ in range(10):
        entry = s.add("apply", "0 14 * * *", lambda: None)
        delta = entry.next_run - datetime(2026, 3, 10, 14, 0)
        assert abs(delta) <= timedelta(minutes=20)


def test_build_scheduler_ignores_unknown_names(ctx, monkeypatch):
    calls = []
    monkeypatch.setitem(scheduler_mod.CYCLES, "messages", lambda c: calls.append(c) or {})
    ctx.settings.schedules = {"messages": "*/30 * * * *", "bogus": "0 0 * * *"}
    ctx.now = lambda: datetime(2026, 3, 10, 9, 45).astimezone()

    s = build_scheduler(ctx)

    assert [e.name for e in s.entries] == ["messages"]
    assert s.entries[0].next_run == datetime(2026, 3, 10, 10, 0)
    ctx.now = lambda: datetime(2026, 3, 10, 10, 0).astimezone()
    s.run_pending()
    assert calls == [ctx]


def test_startup_survives_queue_errors(ctx, monkeypatch):
    order = []
    monkeypatch.setattr(scheduler_mod.agent, "ensure_daily_post", lambda c: order.append("post"))
    monkeypatch.setattr(scheduler_mod.agent, "run_replies", lambda c: order.append("replies"))

    def broken(c):
        raise RuntimeError("no model")

    monkeypatch.setattr(scheduler_mod.agent, "top_up_queue", broken)
    scheduler_mod.startup(ctx)
    assert order == ["post", "replies"]

"""Long-running scheduler: cron entries run one after another in one thread."""
from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from autopilot import agent
from autopilot.agent import AgentContext
from autopilot.cron import CronSchedule
from autopilot.log import get_logger
from autopilot.timing import Clock, SystemClock

log = get_logger(__name__)

# schedule name in settings -> cycle
CYCLES: dict[str, Callable[[AgentContext], dict[str, Any]]] = {
    "post_check": agent.ensure_daily_post,
    "messages": agent.run_replies,
    "apply_morning": agent.run_applications,
    "apply_afternoon": agent.run_applications,
}


@dataclass
class Entry:
    name: str
    schedule: CronSchedule
    job: Callable[[], Any]
    next_run: datetime | None = None


class Scheduler:
    def __init__(
        self,
        *,
        clock: Clock | None = None,
        now: Callable[[], datetime] = datetime.now,
        rng: random.Random | None = None,
        jitter_minutes: int = 0,
        tick: float = 30.0,
    ) -> None:
        self.clock = clock or SystemClock()
        self.now = now
        self.rng = rng or random.Random()
        self.jitter_minutes = jitter_minutes
        self.tick = tick
        self.entries: list[Entry] = []
        self._running = False

    def add(self, name: str, expression: str, job: Callable[[], Any]) -> Entry:
        entry = Entry(name, CronSchedule.parse(expression), job)
        self._plan(entry, self.now())
        self.entries.append(entry)
        log.info("Scheduled %s: %s (next %s)", name, expression, entry.next_run)
        return entry

    def _plan(self, entry: Entry, after: datetime) -> None:
        schedule = entry.schedule
        if self.jitter_minutes:
            schedule = schedule.jittered(self.rng, self.jitter_minutes)
        entry.next_run = schedule.next_after(after)

    def run_pending(self) -> list[str]:
        """Run every entry that is due; returns their names."""
        ran: list[str] = []
        for entry in self.entries:
            now = self.now()
            if entry.next_run is None or now < entry.next_run:
                continue
            log.info("Running %s", entry.name)
            try:
                entry.job()
            except Exception:
                log.exception("%s raised", entry.name)
            ran.append(entry.name)
            self._plan(entry, self.now())
            log.info("Next %s at %s", entry.name, entry.next_run)
        return ran

    def seconds_until_next(self) -> float:
        due = [e.next_run for e in self.entries if e.next_run is not None]
        if not due:
            return self.tick
        wait = (min(due) - self.now()).total_seconds()
        return max(1.0, min(wait, self.tick))

    def run_forever(self, max_ticks: int | None = None) -> None:
        self._running = True
        ticks = 0
        while self._running and (max_ticks is None or ticks < max_ticks):
            self.run_pending()
            ticks += 1
            if self._running:
                self.clock.sleep(self.seconds_until_next())
        log.info("Scheduler stopped")

    def stop(self) -> None:
        self._running = False


def build_scheduler(ctx: AgentContext) -> Scheduler:
    s = ctx.settings
    scheduler = Scheduler(
        clock=ctx.clock,
        now=lambda: ctx.now().replace(tzinfo=None),
        rng=ctx.rng,
        jitter_minutes=s.schedule_jitter_minutes,
    )
    for name, expression in s.schedules.items():
        cycle = CYCLES.get(name)
        if cycle is None:
            log.warning("Unknown schedule %r, ignoring", name)
            continue
        scheduler.add(name, expression, lambda cycle=cycle: cycle(ctx))
    return scheduler


def startup(ctx: AgentContext) -> None:
    """What the scheduler does once before waiting for cron times."""
    agent.ensure_daily_post(ctx)
    agent.run_replies(ctx)
    try:
        agent.top_up_queue(ctx)
    except Exception:
        log.exception("Could not pre-generate posts")


def run(ctx: AgentContext, *, max_ticks: int | None = None) -> Scheduler:
    scheduler = build_scheduler(ctx)
    log.info("Scheduler started with %d entries", len(scheduler.entries))
    startup(ctx)
    scheduler.run_forever(max_ticks=max_ticks)
    return scheduler

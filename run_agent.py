#!/usr/bin/env python3
"""Entry point to run the scheduler in the foreground (same as ``python -m autopilot run``)."""
from __future__ import annotations

import sys

from autopilot import agent, scheduler
from autopilot.config import Paths, load_settings
from autopilot.log import get_logger

log = get_logger(__name__)


def _check_setup() -> bool:
    """Return True if credentials still need to be filled in."""
    missing = load_settings().missing_credentials()
    if missing:
        print()
        print(f"  Missing settings: {', '.join(missing)}")
        print("  Copy .env.example to .env and fill them in.")
        print()
        return True
    return False


if __name__ == "__main__":
    if _check_setup():
        sys.exit(1)

    ctx = agent.build_context(load_settings(), Paths.default())
    sched = scheduler.run(ctx)
    log.info("Scheduler exited after %d entries", len(sched.entries))

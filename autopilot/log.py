"""Process-wide logging for the autopilot.

Everything goes to stdout, which the daemon redirects into
``logs/scheduler.log``. Foreground commands additionally keep a per-day
debug file so a failed cycle can be inspected after the fact.
"""
from __future__ import annotations

import logging
import os
import sys
from datetime import date
from pathlib import Path

LINE = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
STAMP = "%Y-%m-%d %H:%M:%S"

# Libraries that log every HTTP round trip at INFO.
CHATTY = ("httpx", "httpcore", "openai", "urllib3", "asyncio")

_ready = False


def log_dir() -> Path:
    explicit = os.environ.get("AUTOPILOT_LOG_DIR")
    if explicit:
        return Path(explicit)
    home = os.environ.get("AUTOPILOT_HOME")
    base = Path(home) if home else Path(__file__).resolve().parent.parent
    return base / "logs"


def _level() -> int:
    name = os.environ.get("LOG_LEVEL", "INFO").upper()
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def _daily_file(formatter: logging.Formatter) -> logging.Handler | None:
    target = log_dir() / f"autopilot_{date.today():%Y-%m-%d}.log"
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(target, encoding="utf-8")
    except OSError as exc:
        print(f"file logging disabled: {exc}", file=sys.stderr)
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup() -> None:
    """Attach handlers to the root logger once per process."""
    global _ready
    if _ready:
        return
    _ready = True

    root = logging.getLogger()
    if root.handlers:
        # pytest or an embedding app already owns the handlers
        return

    formatter = logging.Formatter(LINE, datefmt=STAMP)
    console_level = _level()
    root.setLevel(min(console_level, logging.DEBUG))

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(console_level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if not os.environ.get("AUTOPILOT_NO_LOG_FILE"):
        handler = _daily_file(formatter)
        if handler is not None:
            root.addHandler(handler)

    for name in CHATTY:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    setup()
    return logging.getLogger(name)

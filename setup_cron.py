#!/usr/bin/env python3
"""Install crontab entries for the configured schedules.

An alternative to ``python -m autopilot start``: cron launches one cycle
per entry and the process exits when the cycle is done. Re-running this
script replaces the entries it installed earlier.
"""
from __future__ import annotations

import subprocess
import sys
from pathlib import Path

from autopilot.config import load_settings

ROOT = Path(__file__).resolve().parent
MARK = "# linkedin-autopilot"
FALLBACK = ROOT / "crontab.txt"

# schedule name -> CLI subcommand
COMMANDS: dict[str, str] = {
    "post_check": "post-check",
    "messages": "reply-now",
    "apply_morning": "apply-now",
    "apply_afternoon": "apply-now",
}


def interpreter() -> Path:
    venv = ROOT / ".venv" / "bin" / "python"
    return venv if venv.exists() else Path(sys.executable)


def build_entries(schedules: dict[str, str]) -> list[str]:
    python = interpreter()
    cron_log = ROOT / "logs" / "cron.log"
    return [
        f"{expr} cd {ROOT} && {python} -m autopilot {COMMANDS[name]} >> {cron_log} 2>&1 {MARK} {name}"
        for name, expr in schedules.items()
        if name in COMMANDS
    ]


def merge(existing: str, entries: list[str]) -> str:
    """Drop lines this script wrote before and append ``entries``."""
    foreign = [line for line in existing.splitlines() if MARK not in line]
    return "\n".join(foreign + entries).strip()


def _crontab(*args: str, stdin: str | None = None) -> subprocess.CompletedProcess:
    return subprocess.run(["crontab", *args], input=stdin, capture_output=True, text=True, timeout=5)


def _manual(content: str, reason: str) -> int:
    FALLBACK.write_text(content + "\n", encoding="utf-8")
    print(f"{reason}. Install by hand with:")
    print(f"  crontab {FALLBACK}")
    return 1


def main() -> int:
    entries = build_entries(load_settings().schedules)
    if not entries:
        print("No known schedules configured; nothing to install.")
        return 1
    try:
        listing = _crontab("-l")
        current = listing.stdout.strip() if listing.returncode == 0 else ""
        wanted = merge(current, entries)
        if wanted == current:
            print("Crontab already up to date.")
            return 0
        if _crontab("-", stdin=wanted + "\n").returncode != 0:
            return _manual(wanted, "crontab rejected the new table")
    except FileNotFoundError:
        print("No crontab binary; `python -m autopilot start` runs the built-in scheduler instead.")
        return _manual("\n".join(entries), "Wrote the entries anyway")
    except subprocess.TimeoutExpired:
        return _manual("\n".join(entries), "crontab did not answer")

    print(f"Installed {len(entries)} cron entr{'y' if len(entries) == 1 else 'ies'}:")
    for line in entries:
        print(f"  {line}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

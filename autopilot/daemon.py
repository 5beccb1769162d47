"""Background scheduler control, found by process listing (no PID file)."""
from __future__ import annotations

import os
import signal
import subprocess
import sys
from collections import deque
from pathlib import Path

from autopilot.config import Paths
from autopilot.log import get_logger

log = get_logger(__name__)

MARKER = "-m autopilot run"


def scheduler_log(paths: Paths) -> Path:
    return paths.logs / "scheduler.log"


def find_pids(ps_output: str, own_pid: int | None = None) -> list[int]:
    """PIDs of scheduler processes in ``ps -eo pid=,args=`` output."""
    own_pid = os.getpid() if own_pid is None else own_pid
    pids: list[int] = []
    for line in ps_output.splitlines():
        pid_text, _, args = line.strip().partition(" ")
        if not pid_text.isdigit() or MARKER not in args:
            continue
        pid = int(pid_text)
        if pid != own_pid:
            pids.append(pid)
    return pids


def running_pid() -> int | None:
    try:
        out = subprocess.run(["ps", "-eo", "pid=,args="], capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.TimeoutExpired) as e:
        log.warning("Could not list processes: %s", e)
        return None
    pids = find_pids(out.stdout)
    return pids[0] if pids else None


def tail(path: Path, lines: int = 50) -> list[str]:
    if not path.exists():
        return []
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return [line.rstrip("\n") for line in deque(f, maxlen=lines)]


def start(paths: Paths) -> tuple[bool, str]:
    pid = running_pid()
    if pid:
        return True, f"Scheduler is already running (PID {pid})"
    path = scheduler_log(paths)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as out:
        proc = subprocess.Popen(
            [sys.executable, "-m", "autopilot", "run"],
            cwd=str(paths.root),
            stdout=out,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            start_new_session=True,
        )
    log.info("Started scheduler (PID %d), logging to %s", proc.pid, path)
    return True, f"Scheduler started (PID {proc.pid}). Logs: tail -f {path}"


def stop() -> tuple[bool, str]:
    pid = running_pid()
    if not pid:
        return False, "Scheduler is not running"
    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        return False, f"Process {pid} already exited"
    except PermissionError as e:
        return False, f"Could not stop PID {pid}: {e}"
    log.info("Sent SIGTERM to scheduler PID %d", pid)
    return True, f"Scheduler stopped (PID {pid})"


def status(paths: Paths, lines: int = 20) -> str:
    pid = running_pid()
    head = f"Scheduler is running (PID {pid})" if pid else "Scheduler is not running"
    recent = tail(scheduler_log(paths), lines)
    if not recent:
        return head
    return "\n".join([head, "", f"Latest logs (last {lines} lines):", *recent])

"""One orchestrated run at a time, across processes."""
from __future__ import annotations

import fcntl
import os
from pathlib import Path

from autopilot.errors import RunInProgress
from autopilot.log import get_logger

log = get_logger(__name__)


class RunLock:
    """Non-blocking exclusive ``flock`` on ``path``.

    The lock dies with the process, so a killed run never leaves it stuck.
    """

    def __init__(self, path: Path, name: str = "run") -> None:
        self.path = path
        self.name = name
        self._f = None

    @property
    def held(self) -> bool:
        return self._f is not None

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        f = open(self.path, "a+")
        try:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            f.seek(0)
            owner = f.read().strip() or "unknown"
            f.close()
            raise RunInProgress(f"Another run is in progress ({owner}); skipping {self.name}")
        f.seek(0)
        f.truncate()
        f.write(f"pid={os.getpid()} {self.name}\n")
        f.flush()
        self._f = f
        log.debug("Run lock acquired for %s", self.name)

    def release(self) -> None:
        if self._f is None:
            return
        try:
            fcntl.flock(self._f.fileno(), fcntl.LOCK_UN)
        finally:
            self._f.close()
            self._f = None
        log.debug("Run lock released for %s", self.name)

    def __enter__(self) -> RunLock:
        self.acquire()
        return self

    def __exit__(self, *exc) -> None:
        self.release()

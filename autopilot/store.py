"""JSON files that are read whole, changed in memory and rewritten atomically."""
from __future__ import annotations

import fcntl
import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

from autopilot.log import get_logger

log = get_logger(__name__)


def _lock(f, exclusive: bool = True) -> None:
    """Advisory file lock (Unix fcntl)."""
    fcntl.flock(f.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)


def _unlock(f) -> None:
    fcntl.flock(f.fileno(), fcntl.LOCK_UN)


class JsonStore:
    def __init__(self, path: Path, default: Callable[[], Any] = list) -> None:
        self.path = path
        self.default = default

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def load(self) -> Any:
        if not self.path.exists():
            return self.default()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            log.error("%s is corrupt (%s); treating it as empty", self.path.name, e)
            return self.default()

    def save(self, data: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """Load under an exclusive lock, let the caller mutate, then save.

        Nothing is written if the block raises.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.lock_path, "a+") as lf:
            _lock(lf)
            try:
                data = self.load()
                yield data
                self.save(data)
            finally:
                _unlock(lf)

    def read(self) -> Any:
        """Load under a shared lock."""
        if not self.path.exists():
            return self.default()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.lock_path, "a+") as lf:
            _lock(lf, exclusive=False)
            try:
                return self.load()
            finally:
                _unlock(lf)

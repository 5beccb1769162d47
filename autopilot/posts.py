"""Post queue (FIFO) and posting history."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from autopilot.config import Paths
from autopilot.log import get_logger
from autopilot.models import Post, utcnow_iso
from autopilot.store import JsonStore

log = get_logger(__name__)


def _preview(text: str, limit: int = 100) -> str:
    return text[:limit] + "..." if len(text) > limit else text


class PostQueue:
    """Each operation loads the file, changes it and writes it back under a lock."""

    def __init__(self, paths: Paths) -> None:
        self.queue = JsonStore(paths.posts / "queue.json", list)
        self.log = JsonStore(paths.posts / "history.json", list)

    def items(self) -> list[Post]:
        return [Post.from_dict(d) for d in self.queue.read()]

    def __len__(self) -> int:
        return len(self.queue.read())

    def enqueue(self, *posts: Post) -> int:
        with self.queue.transaction() as q:
            q.extend(p.to_dict() for p in posts)
            size = len(q)
        log.info("Queued %d post(s); %d waiting", len(posts), size)
        return size

    def pop_next(self) -> Post | None:
        with self.queue.transaction() as q:
            if not q:
                return None
            return Post.from_dict(q.pop(0))

    def requeue_front(self, post: Post) -> None:
        with self.queue.transaction() as q:
            q.insert(0, post.to_dict())
        log.info("Post returned to the front of the queue")

    def clear(self) -> int:
        with self.queue.transaction() as q:
            n = len(q)
            q.clear()
        log.info("Cleared %d queued post(s)", n)
        return n

    def log_post(self, post: Post, success: bool, error: str | None = None) -> dict[str, Any]:
        entry = {
            "timestamp": utcnow_iso(),
            "content": _preview(post.content),
            "topic": post.topic,
            "success": success,
            "error": error,
        }
        with self.log.transaction() as h:
            h.append(entry)
        return entry

    def history(self) -> list[dict[str, Any]]:
        return self.log.read()

    def posts_today(self, now: datetime | None = None, *, successful_only: bool = True) -> list[dict[str, Any]]:
        today = (now or datetime.now().astimezone()).date()
        out = []
        for entry in self.history():
            try:
                ts = datetime.fromisoformat(entry.get("timestamp", ""))
            except ValueError:
                continue
            if ts.tzinfo is not None:
                ts = ts.astimezone()
            if ts.date() == today and (entry.get("success") or not successful_only):
                out.append(entry)
        return out

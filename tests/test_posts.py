from __future__ import annotations

from datetime import datetime, timedelta

from autopilot.models import Post
from autopilot.posts import PostQueue
from autopilot.report import build_activity_report, write_activity_report


def test_queue_is_fifo(paths):
    queue = PostQueue(paths)
    assert queue.pop_next() is None
    assert queue.enqueue(Post(content="one", topic="a"), Post(content="two", topic="b")) == 2
    assert queue.pop_next().topic == "a"
    assert len(queue) == 1


def test_requeue_front(paths):
    queue = PostQueue(paths)
    queue.enqueue(Post(content="two", topic="b"))
    queue.requeue_front(Post(content="one", topic="a"))
    assert [p.topic for p in queue.items()] == ["a", "b"]
    assert queue.clear() == 2
    assert len(queue) == 0


def test_history_preview_and_today(paths):
    queue = PostQueue(paths)
    entry = queue.log_post(Post(content="x" * 150, topic="long"), True)
    assert entry["content"] == "x" * 100 + "..."
    queue.log_post(Post(content="broken", topic="fail"), False, "editor missing")

    assert [e["topic"] for e in queue.posts_today()] == ["long"]
    assert len(queue.posts_today(successful_only=False)) == 2
    tomorrow = datetime.now().astimezone() + timedelta(days=1)
    assert queue.posts_today(tomorrow) == []


class TestActivityReport:
    TODAY = "2026-03-10"

    def test_sections(self):
        report = build_activity_report(
            posts=[
                {"timestamp": "2026-03-10T09:00:00", "topic": "AI", "content": "Agents at work", "success": True},
                {"timestamp": "2026-03-09T09:00:00", "topic": "Old", "content": "yesterday", "success": True},
            ],
            applications=[
                {"timestamp": "2026-03-10T10:00:00", "title": "Backend Engineer", "company": "Acme",
                 "url": "https://www.linkedin.com/jobs/view/1/", "outcome": "abandoned_for_review",
                 "match_score": 82, "reason": "auto-submit disabled"},
            ],
            sent_replies=[{"sentAt": "2026-03-10T11:00:00", "authorName": "Ana", "sentReply": "See you then"}],
            pending_replies=[{"generatedAt": "2026-03-10T12:00:00", "authorName": "Bo", "generatedReply": "Sure"}],
            queue_size=3,
            stats={"total": 5, "success_rate": 40.0, "review_ready": 2, "average_match_score": 71.5},
            today=self.TODAY,
        )
        assert report.startswith("# LinkedIn Activity - 2026-03-10")
        assert "**1** posted | **1** applications | **1** replies sent | **1** awaiting approval | **3** posts queued" in report
        assert "yesterday" not in report
        assert "| [Backend Engineer](https://www.linkedin.com/jobs/view/1/) | Acme | Ready for review | 82 |" in report
        assert "- Sent to **Ana**: See you then" in report
        assert "- Pending for **Bo**: Sure" in report
        assert "- Average match score: 71.5" in report

    def test_empty_day(self):
        report = build_activity_report(posts=[], applications=[], sent_replies=[], pending_replies=[],
                                       today=self.TODAY)
        assert "_No posts today._" in report
        assert "_No applications today._" in report
        assert "_No replies today._" in report
        assert "All-time" not in report

    def test_write(self, tmp_path):
        path = write_activity_report("# hi", tmp_path / "reports")
        assert path.read_text(encoding="utf-8") == "# hi"
        assert path.name.startswith("activity_")

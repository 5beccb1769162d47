from __future__ import annotations

from datetime import datetime

from autopilot import agent
from autopilot.agent import DUPLICATE_REASON, LIMIT_REASON, apply_to_jobs
from autopilot.errors import LoginFailed, VerificationRequired
from autopilot.models import ApplicantProfile, ApplyOutcome, ApplyResult, Job, Post
from autopilot.runlock import RunLock

from conftest import FakeLLM


def make_job(n: int) -> Job:
    return Job(id=str(n), title=f"Engineer {n}", company="Acme", location="Remote",
               url=f"https://www.linkedin.com/jobs/view/{n}/")


class FakeEngine:
    def __init__(self, outcome: ApplyOutcome = ApplyOutcome.SUBMITTED) -> None:
        self.outcome = outcome
        self.applied: list[str] = []

    def apply(self, job: Job, applicant: ApplicantProfile) -> ApplyResult:
        self.applied.append(job.id)
        return ApplyResult(self.outcome, reason="fake")


def test_skips_exactly_the_already_applied_job(ctx):
    ctx.tracker.add(make_job(2), ApplyResult(ApplyOutcome.FAILED, reason="earlier run"))
    engine = FakeEngine()

    summary = apply_to_jobs(ctx, engine, [make_job(1), make_job(2), make_job(3)], ApplicantProfile())

    assert engine.applied == ["1", "3"]
    assert summary["skipped"] == 1
    assert summary["skipped_jobs"] == [{"job_id": "2", "title": "Engineer 2", "reason": DUPLICATE_REASON}]
    assert summary["applied"] == 2


def test_duplicate_by_url(ctx):
    old = make_job(5)
    ctx.tracker.add(old, ApplyResult(ApplyOutcome.SUBMITTED))
    same_url = Job(id="other-id", title="Engineer", company="Acme", location="", url=old.url)
    engine = FakeEngine()
    summary = apply_to_jobs(ctx, engine, [same_url], ApplicantProfile())
    assert engine.applied == []
    assert summary["skipped"] == 1


def test_daily_cap(ctx):
    ctx.settings.max_applications_per_day = 3
    engine = FakeEngine()

    summary = apply_to_jobs(ctx, engine, [make_job(n) for n in range(1, 5)], ApplicantProfile())

    assert summary["applied"] == 3
    assert summary["skipped"] == 1
    assert summary["skipped_jobs"][0]["reason"] == LIMIT_REASON
    assert summary["skipped_jobs"][0]["job_id"] == "4"
    # limit-skipped jobs stay eligible for a later run
    assert [r["job_id"] for r in ctx.tracker.history()] == ["1", "2", "3"]


def test_cap_counts_earlier_applications_today(ctx):
    ctx.settings.max_applications_per_day = 3
    ctx.tracker.add(make_job(100), ApplyResult(ApplyOutcome.ABANDONED_FOR_REVIEW))
    ctx.tracker.add(make_job(101), ApplyResult(ApplyOutcome.FAILED))
    engine = FakeEngine()

    summary = apply_to_jobs(ctx, engine, [make_job(n) for n in range(1, 4)], ApplicantProfile())

    assert engine.applied == ["1"]
    assert [s["reason"] for s in summary["skipped_jobs"]] == [LIMIT_REASON, LIMIT_REASON]


def test_outcomes_are_counted(ctx):
    summary = apply_to_jobs(ctx, FakeEngine(ApplyOutcome.ABANDONED_FOR_REVIEW), [make_job(1)], ApplicantProfile())
    assert (summary["applied"], summary["abandoned"], summary["failed"]) == (0, 1, 0)
    summary = apply_to_jobs(ctx, FakeEngine(ApplyOutcome.FAILED), [make_job(2)], ApplicantProfile())
    assert summary["failed"] == 1


def test_pause_between_applications(ctx):
    apply_to_jobs(ctx, FakeEngine(), [make_job(1), make_job(2), make_job(3)], ApplicantProfile())
    assert ctx.delay.pauses.count((20, 50)) == 2


def test_applications_stop_before_search_when_cap_used(ctx):
    ctx.settings.max_applications_per_day = 1
    ctx.tracker.add(make_job(1), ApplyResult(ApplyOutcome.SUBMITTED))

    def no_browser(*args, **kwargs):
        raise AssertionError("browser should not open")

    ctx.session_factory = no_browser
    summary = agent.run_applications(ctx)
    assert summary["status"] == "limit_reached"


class TestCycle:
    def test_status_ok_by_default(self, ctx):
        assert agent._cycle(ctx, "test", lambda c: {"n": 1}) == {"n": 1, "status": "ok"}

    def test_verification_required(self, ctx):
        def body(c):
            raise VerificationRequired("pin")

        assert agent._cycle(ctx, "test", body)["status"] == "verification_required"

    def test_login_failed(self, ctx):
        def body(c):
            raise LoginFailed("bad password")

        assert agent._cycle(ctx, "test", body)["status"] == "login_failed"

    def test_unexpected_error(self, ctx):
        def body(c):
            raise KeyError("boom")

        summary = agent._cycle(ctx, "test", body)
        assert summary["status"] == "error"

    def test_skipped_while_another_run_holds_the_lock(self, ctx):
        called = []
        with RunLock(ctx.paths.run_lock, "other"):
            summary = agent._cycle(ctx, "test", lambda c: called.append(1) or {})
        assert summary["status"] == "skipped"
        assert called == []

    def test_lock_released_after_error(self, ctx):
        def body(c):
            raise RuntimeError("boom")

        agent._cycle(ctx, "test", body)
        assert agent._cycle(ctx, "again", lambda c: {})["status"] == "ok"


class TestDailyPost:
    def test_already_posted_today(self, ctx):
        ctx.queue.log_post(Post(content="hello", topic="t"), True)
        assert agent.ensure_daily_post(ctx)["status"] == "already_posted"

    def test_outside_posting_hours(self, ctx):
        ctx.settings.posting_start_hour = 9
        ctx.settings.posting_end_hour = 17
        ctx.now = lambda: datetime(2026, 3, 10, 22, 15).astimezone()
        assert agent.ensure_daily_post(ctx)["status"] == "outside_hours"

    def test_failed_post_is_requeued(self, ctx):
        class BrokenSession:
            def __init__(self, settings, paths):
                pass

            def __enter__(self):
                raise RuntimeError("browser would not start")

            def __exit__(self, *exc):
                return None

        ctx.session_factory = BrokenSession
        ctx.queue.enqueue(Post(content="queued post", topic="first"))
        summary = agent.run_post(ctx)

        assert summary["status"] == "error"
        assert [p.topic for p in ctx.queue.items()] == ["first"]
        assert ctx.queue.history()[-1]["success"] is False


def test_top_up_queue(ctx):
    ctx.llm = FakeLLM(*[f"Post body {i} #AI" for i in range(5)])
    ctx.settings.queue_min_size = 2
    ctx.queue.enqueue(Post(content="existing", topic="x"))
    assert agent.top_up_queue(ctx) == 1
    assert len(ctx.queue) == 2
    assert agent.top_up_queue(ctx) == 0

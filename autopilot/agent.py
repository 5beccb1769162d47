"""Orchestrators: one function per scheduled cycle.

Every cycle opens its own browser session, logs in, does its work and
returns a summary dict. Failures are logged (with a screenshot when a page is
open) and turned into a ``status`` in the summary so the long-running
scheduler keeps going.
"""
from __future__ import annotations

import random
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Iterator

from autopilot.actuator import Actuator
from autopilot.config import Paths, Settings, load_settings
from autopilot.content import generate_batch, generate_post
from autopilot.diagnostics import capture
from autopilot.easy_apply import AnswerPolicy, EasyApplyEngine
from autopilot.errors import AuthenticationError, RunInProgress, VerificationRequired
from autopilot.inbox import InboxBot, ReplyLog
from autopilot.job_search import JobSearch, save_jobs
from autopilot.llm import Completer, LLMClient
from autopilot.log import get_logger
from autopilot.matcher import JobMatcher
from autopilot.models import ApplicantProfile, ApplyOutcome, Job, SearchCriteria
from autopilot.poster import Poster
from autopilot.posts import PostQueue
from autopilot.qa import QuestionAnswerer
from autopilot.resolver import Resolver, Target
from autopilot.resume import load_resume
from autopilot.runlock import RunLock
from autopilot.selectors import load_targets
from autopilot.session import BrowserSession, LinkedInLogin
from autopilot.surfaces.base import Surface
from autopilot.timing import Clock, Delay, HumanDelay, SystemClock
from autopilot.tracker import ApplicationTracker
from autopilot.voice import VoiceLearner

log = get_logger(__name__)

LIMIT_REASON = "limit reached"
DUPLICATE_REASON = "already applied"


def _local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass
class AgentContext:
    """Everything a cycle needs, built once per process."""

    settings: Settings
    paths: Paths
    llm: Completer
    delay: Delay
    clock: Clock
    resolver: Resolver
    targets: dict[str, Target]
    session_factory: Callable[..., Any] = BrowserSession
    rng: random.Random = field(default_factory=random.Random)
    now: Callable[[], datetime] = _local_now

    @property
    def actuator(self) -> Actuator:
        return Actuator(self.delay)

    @property
    def queue(self) -> PostQueue:
        return PostQueue(self.paths)

    @property
    def tracker(self) -> ApplicationTracker:
        return ApplicationTracker(self.paths)

    @property
    def replies(self) -> ReplyLog:
        return ReplyLog(self.paths)

    def voice(self) -> VoiceLearner:
        return VoiceLearner(self.llm, self.paths, delay=self.delay, rng=self.rng).load()


def build_context(
    settings: Settings | None = None,
    paths: Paths | None = None,
    *,
    llm: Completer | None = None,
    delay: Delay | None = None,
    clock: Clock | None = None,
) -> AgentContext:
    settings = settings or load_settings()
    paths = paths or Paths.default()
    paths.ensure()
    clock = clock or SystemClock()
    if llm is None:
        llm = LLMClient(settings.openai_api_key, settings.openai_model, settings.llm_base_url)
    return AgentContext(
        settings=settings,
        paths=paths,
        llm=llm,
        delay=delay or HumanDelay(),
        clock=clock,
        resolver=Resolver(clock),
        targets=load_targets(),
    )


def _cycle(ctx: AgentContext, name: str, body: Callable[[AgentContext], dict[str, Any]]) -> dict[str, Any]:
    """Run ``body`` under the run lock; never raises."""
    lock = RunLock(ctx.paths.run_lock, name) if ctx.settings.serialize_runs else None
    log.info("=== %s ===", name)
    try:
        if lock is not None:
            lock.acquire()
        summary = body(ctx)
    except RunInProgress as e:
        log.warning("%s", e)
        return {"status": "skipped", "error": str(e)}
    except VerificationRequired as e:
        log.error("%s: operator action needed: %s. Run `autopilot login` or set VERIFICATION_CODE.", name, e)
        return {"status": "verification_required", "error": str(e)}
    except AuthenticationError as e:
        log.error("%s: login failed: %s", name, e)
        return {"status": "login_failed", "error": str(e)}
    except Exception as e:
        log.exception("%s failed", name)
        return {"status": "error", "error": str(e) or type(e).__name__}
    finally:
        if lock is not None:
            lock.release()
    summary.setdefault("status", "ok")
    log.info("%s finished: %s", name, summary)
    return summary


@contextmanager
def _browser(ctx: AgentContext, name: str) -> Iterator[Surface]:
    """Logged-in surface; unexpected errors get a screenshot before propagating."""
    with ctx.session_factory(ctx.settings, ctx.paths) as session:
        surface = session.surface
        try:
            LinkedInLogin(
                surface,
                ctx.resolver,
                ctx.targets,
                ctx.actuator,
                email=ctx.settings.linkedin_email,
                password=ctx.settings.linkedin_password,
                verification_code=ctx.settings.verification_code,
                screenshots=ctx.paths.screenshots,
            ).login()
            yield surface
        except AuthenticationError:
            raise
        except Exception:
            capture(surface, ctx.paths.screenshots, f"{name}-error")
            raise


# posting

def top_up_queue(ctx: AgentContext, minimum: int | None = None) -> int:
    """Generate posts until the queue holds ``minimum``; returns how many were added."""
    minimum = ctx.settings.queue_min_size if minimum is None else minimum
    missing = minimum - len(ctx.queue)
    if missing <= 0:
        return 0
    log.info("Post queue below %d, generating %d", minimum, missing)
    posts = generate_batch(ctx.llm, missing, ctx.settings.content, rng=ctx.rng, delay=ctx.delay)
    if posts:
        ctx.queue.enqueue(*posts)
    return len(posts)


def _post(ctx: AgentContext) -> dict[str, Any]:
    queue = ctx.queue
    if not len(queue):
        log.info("Queue empty, generating a post")
        queue.enqueue(generate_post(ctx.llm, ctx.settings.content, ctx.rng))
    post = queue.pop_next()
    if post is None:
        return {"status": "empty"}
    log.info("Posting: %s", post.topic)

    try:
        with _browser(ctx, "post") as surface:
            log.info("Waiting a little before posting")
            ctx.delay.pause(60, 180)
            ok, msg = Poster(
                surface, ctx.resolver, ctx.targets, ctx.actuator, screenshots=ctx.paths.screenshots
            ).create_post(post.content, post.image_path)
    except Exception as e:
        queue.log_post(post, False, str(e) or type(e).__name__)
        queue.requeue_front(post)
        raise
    if not ok:
        queue.log_post(post, False, msg)
        queue.requeue_front(post)
        return {"status": "failed", "error": msg}
    queue.log_post(post, True)
    return {"status": "posted", "topic": post.topic}


def run_post(ctx: AgentContext) -> dict[str, Any]:
    return _cycle(ctx, "post", _post)


def ensure_daily_post(ctx: AgentContext) -> dict[str, Any]:
    """Post once per day, inside the posting window."""
    now = ctx.now()
    if ctx.queue.posts_today(now):
        log.info("Already posted today")
        return {"status": "already_posted"}
    s = ctx.settings
    if not s.posting_start_hour <= now.hour < s.posting_end_hour:
        log.info("Outside posting hours (%d:00-%d:00)", s.posting_start_hour, s.posting_end_hour)
        return {"status": "outside_hours"}
    return run_post(ctx)


# replies

def _replies(ctx: AgentContext) -> dict[str, Any]:
    s = ctx.settings
    voice = ctx.voice()
    with _browser(ctx, "replies") as surface:
        bot = InboxBot(surface, ctx.resolver, ctx.targets, ctx.actuator, screenshots=ctx.paths.screenshots)
        summary: dict[str, Any] = bot.process_unread(
            voice.compose_reply,
            ctx.replies,
            require_approval=s.require_approval,
            max_replies=s.max_replies,
            skip_sales_pitches=s.skip_sales_pitches,
        )
        if s.reply_to_comments:
            summary["comments"] = bot.process_comments(
                voice.compose_reply,
                ctx.replies,
                require_approval=s.require_approval,
                max_replies=s.max_replies,
            )
    return summary


def run_replies(ctx: AgentContext) -> dict[str, Any]:
    return _cycle(ctx, "replies", _replies)


def _learn_voice(ctx: AgentContext, max_conversations: int = 15) -> dict[str, Any]:
    voice = ctx.voice()
    with _browser(ctx, "learn-voice") as surface:
        messages = voice.scrape_all_conversations(surface, max_conversations)
    profile = voice.analyze_voice(messages)
    return {"messages": len(messages), "profile": profile is not None}


def learn_voice(ctx: AgentContext, max_conversations: int = 15) -> dict[str, Any]:
    return _cycle(ctx, "learn-voice", lambda c: _learn_voice(c, max_conversations))


# applications

def apply_to_jobs(
    ctx: AgentContext,
    engine: EasyApplyEngine,
    jobs: list[Job],
    applicant: ApplicantProfile,
) -> dict[str, Any]:
    """Apply to ``jobs`` in order, honouring history and the daily cap.

    Jobs already in the history are skipped. Once today's applications plus
    this session's attempts reach the cap, the rest are skipped with
    ``"limit reached"`` and are not recorded, so a later run can pick them up.
    """
    tracker = ctx.tracker
    history = tracker.history()
    cap = ctx.settings.max_applications_per_day
    used = len(tracker.applications_today(ctx.now()))
    summary: dict[str, Any] = {"applied": 0, "abandoned": 0, "failed": 0, "skipped": 0, "skipped_jobs": []}
    attempts = 0

    for job in jobs:
        if tracker.has_applied(job, history):
            reason = DUPLICATE_REASON
        elif used + attempts >= cap:
            reason = LIMIT_REASON
        else:
            reason = ""
        if reason:
            log.info("Skipping %s at %s: %s", job.title, job.company, reason)
            summary["skipped"] += 1
            summary["skipped_jobs"].append({"job_id": job.id, "title": job.title, "reason": reason})
            continue

        if attempts:
            ctx.delay.pause(20, 50)
        attempts += 1
        log.info("[%d/%d] %s at %s", used + attempts, cap, job.title, job.company)
        result = engine.apply(job, applicant)
        tracker.add(job, result)
        history.append({"job_id": job.id, "url": job.url})
        if result.outcome is ApplyOutcome.SUBMITTED:
            summary["applied"] += 1
        elif result.outcome is ApplyOutcome.ABANDONED_FOR_REVIEW:
            summary["abandoned"] += 1
        else:
            summary["failed"] += 1
    return summary


def _applicant(ctx: AgentContext) -> ApplicantProfile:
    path, text = load_resume(ctx.paths.resume, ctx.settings.applicant.resume_path)
    return replace(ctx.settings.applicant, resume_path=path, resume_text=text)


def _applications(ctx: AgentContext) -> dict[str, Any]:
    s = ctx.settings
    tracker = ctx.tracker
    used = len(tracker.applications_today(ctx.now()))
    if used >= s.max_applications_per_day:
        log.info("Daily application limit reached (%d/%d)", used, s.max_applications_per_day)
        return {"status": "limit_reached", "searched": 0}

    criteria = SearchCriteria(
        keywords=s.job_keywords,
        location=s.job_location,
        experience_level=s.experience_level,
        easy_apply_only=True,
        max_results=s.max_jobs_per_search,
    )
    applicant = _applicant(ctx)

    with _browser(ctx, "applications") as surface:
        search = JobSearch(
            surface, ctx.resolver, ctx.targets,
            delay=ctx.delay, screenshots=ctx.paths.screenshots, rng=ctx.rng,
        )
        jobs = found = search.search(criteria)
        if s.use_ai_filtering and jobs:
            for job in jobs:
                search.fetch_description(job)
            matcher = JobMatcher(ctx.llm, criteria, resume_text=applicant.resume_text, delay=ctx.delay)
            jobs = matcher.filter_jobs(jobs, s.min_match_score)
        else:
            log.info("AI filtering disabled, applying to every Easy Apply result")
        save_jobs(jobs, ctx.paths.jobs)

        engine = EasyApplyEngine(
            surface,
            ctx.resolver,
            ctx.targets,
            ctx.actuator,
            answerer=QuestionAnswerer(ctx.llm),
            policy=AnswerPolicy.from_settings(s.answers),
            auto_submit=s.auto_submit,
            max_steps=s.max_form_steps,
            screenshots=ctx.paths.screenshots,
        )
        summary = apply_to_jobs(ctx, engine, jobs, applicant)

    summary["searched"] = len(found)
    tracker.export_csv()
    return summary


def run_applications(ctx: AgentContext) -> dict[str, Any]:
    return _cycle(ctx, "applications", _applications)

"""Command line interface: ``autopilot <command>`` / ``python -m autopilot <command>``."""
from __future__ import annotations

import argparse
import json
import signal
import sys
from pathlib import Path
from typing import Any, Callable

from autopilot import agent, daemon, scheduler
from autopilot.config import Paths, Settings, load_settings
from autopilot.content import generate_batch
from autopilot.inbox import ReplyLog
from autopilot.log import get_logger
from autopilot.posts import PostQueue
from autopilot.report import build_activity_report, write_activity_report
from autopilot.selectors import check_targets, load_targets
from autopilot.session import BrowserSession, interactive_login
from autopilot.surfaces.html import HtmlSurface
from autopilot.tracker import ApplicationTracker
from autopilot.voice import VoiceLearner

log = get_logger(__name__)


def _print_summary(summary: dict[str, Any]) -> int:
    print(json.dumps(summary, indent=2, default=str))
    return 0 if summary.get("status", "ok") not in ("error", "login_failed", "verification_required") else 1


def _require(settings: Settings, keys: tuple[str, ...] | None = None) -> bool:
    missing = settings.missing_credentials()
    if keys is not None:
        missing = [k for k in missing if k in keys]
    if missing:
        print(f"Missing required settings: {', '.join(missing)}")
        print("Set them in .env (see .env.example).")
        return False
    return True


def _context() -> agent.AgentContext | None:
    settings = load_settings()
    if not _require(settings):
        return None
    return agent.build_context(settings, Paths.default())


# browser cycles

def cmd_run(args: argparse.Namespace) -> int:
    ctx = _context()
    if ctx is None:
        return 1
    sched = scheduler.build_scheduler(ctx)

    def _stop(signum, frame) -> None:
        log.info("Received signal %d, stopping", signum)
        sched.stop()

    signal.signal(signal.SIGTERM, _stop)
    signal.signal(signal.SIGINT, _stop)
    scheduler.startup(ctx)
    sched.run_forever()
    return 0


def _cycle_command(fn: Callable[[agent.AgentContext], dict[str, Any]]) -> Callable[[argparse.Namespace], int]:
    def command(args: argparse.Namespace) -> int:
        ctx = _context()
        if ctx is None:
            return 1
        return _print_summary(fn(ctx))

    return command


def cmd_learn_voice(args: argparse.Namespace) -> int:
    ctx = _context()
    if ctx is None:
        return 1
    return _print_summary(agent.learn_voice(ctx, args.max))


def cmd_login(args: argparse.Namespace) -> int:
    ok = interactive_login(load_settings(), Paths.default())
    print("Login saved to the browser profile" if ok else "Timed out waiting for login")
    return 0 if ok else 1


def cmd_debug_selectors(args: argparse.Namespace) -> int:
    targets = load_targets()
    if args.html:
        path = Path(args.html)
        if not path.exists():
            print(f"{path} not found")
            return 1
        rows = check_targets(HtmlSurface.from_file(path), targets)
    else:
        settings = load_settings()
        with BrowserSession(settings, Paths.default(), headless=False) as session:
            if args.url:
                session.surface.goto(args.url, timeout=60)
            rows = check_targets(session.surface, targets)
    width = max(len(name) for name, _, _ in rows)
    for name, finder, where in rows:
        print(f"{name.ljust(width)}  {finder}  ({where})")
    missing = sum(1 for _, finder, _ in rows if finder == "-")
    print(f"\n{len(rows) - missing}/{len(rows)} targets resolved")
    return 0


# offline commands

def cmd_analyze_voice(args: argparse.Namespace) -> int:
    settings = load_settings()
    if not _require(settings, ("OPENAI_API_KEY",)):
        return 1
    ctx = agent.build_context(settings, Paths.default())
    profile = VoiceLearner(ctx.llm, ctx.paths).analyze_manual_messages()
    if profile is None:
        print("Voice analysis failed; see the log")
        return 1
    print(json.dumps(profile.to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    settings = load_settings()
    if not _require(settings, ("OPENAI_API_KEY",)):
        return 1
    ctx = agent.build_context(settings, Paths.default())
    posts = generate_batch(ctx.llm, args.count, settings.content, delay=ctx.delay)
    for i, post in enumerate(posts, 1):
        print(f"\n[Post {i}] Topic: {post.topic}")
        print("-" * 60)
        print(post.content)
    size = ctx.queue.enqueue(*posts) if posts else len(ctx.queue)
    print(f"\nGenerated {len(posts)} post(s). Posts in queue: {size}")
    return 0 if posts else 1


def cmd_queue(args: argparse.Namespace) -> int:
    items = PostQueue(Paths.default()).items()
    if not items:
        print("Queue is empty")
        return 0
    print(f"Posts in queue: {len(items)}\n")
    for i, post in enumerate(items, 1):
        print(f"[{i}] {post.topic}")
        print(f"    Generated: {post.generated_at}")
        print(f"    Preview: {post.content[:80]}...\n")
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    history = PostQueue(Paths.default()).history()
    if not history:
        print("No history yet")
        return 0
    ok = sum(1 for p in history if p.get("success"))
    print(f"Post history: {len(history)} total, {ok} successful, {len(history) - ok} failed\n")
    for p in reversed(history[-10:]):
        print(f"{'ok ' if p.get('success') else 'ERR'} {p.get('timestamp', '')}  {p.get('content', '')}")
        if not p.get("success"):
            print(f"    Error: {p.get('error')}")
    return 0


def cmd_clear(args: argparse.Namespace) -> int:
    n = PostQueue(Paths.default()).clear()
    print(f"Queue cleared ({n} post(s) removed)")
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    stats = ApplicationTracker(Paths.default()).stats()
    print(f"Total applications: {stats['total']}")
    print(f"  submitted:        {stats['successful']} ({stats['success_rate']}%)")
    print(f"  ready for review: {stats['review_ready']}")
    print(f"  failed:           {stats['failed']}")
    if stats["average_match_score"] is not None:
        print(f"Average match score: {stats['average_match_score']}")
    if stats["by_company"]:
        print("\nTop companies:")
        for company, n in stats["by_company"].items():
            print(f"  {company}: {n}")
    if stats["recent"]:
        print("\nRecent:")
        for r in stats["recent"]:
            print(f"  [{r.get('outcome')}] {r.get('title')} at {r.get('company')} - {r.get('reason')}")
    return 0


def cmd_export_csv(args: argparse.Namespace) -> int:
    path = ApplicationTracker(Paths.default()).export_csv(Path(args.output) if args.output else None)
    print(f"Exported to {path}")
    return 0


def cmd_report(args: argparse.Namespace) -> int:
    paths = Paths.default()
    queue = PostQueue(paths)
    tracker = ApplicationTracker(paths)
    replies = ReplyLog(paths)
    content = build_activity_report(
        posts=queue.history(),
        applications=tracker.history(),
        sent_replies=replies.sent(),
        pending_replies=replies.pending(),
        queue_size=len(queue),
        stats=tracker.stats(),
    )
    path = write_activity_report(content, paths.reports)
    print(content)
    print(f"\nSaved to {path}")
    return 0


# process control

def cmd_start(args: argparse.Namespace) -> int:
    ok, msg = daemon.start(Paths.default())
    print(msg)
    return 0 if ok else 1


def cmd_stop(args: argparse.Namespace) -> int:
    ok, msg = daemon.stop()
    print(msg)
    return 0 if ok else 1


def cmd_restart(args: argparse.Namespace) -> int:
    cmd_stop(args)
    return cmd_start(args)


def cmd_status(args: argparse.Namespace) -> int:
    print(daemon.status(Paths.default()))
    return 0


def cmd_logs(args: argparse.Namespace) -> int:
    lines = daemon.tail(daemon.scheduler_log(Paths.default()), args.lines)
    print("\n".join(lines) if lines else "No logs found yet")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="autopilot", description="LinkedIn posting, replies and Easy Apply automation")
    sub = parser.add_subparsers(dest="command", required=True)

    def add(name: str, fn: Callable[[argparse.Namespace], int], text: str) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=text)
        p.set_defaults(func=fn)
        return p

    add("run", cmd_run, "run the scheduler in the foreground")
    add("post-now", _cycle_command(agent.run_post), "post the next queued post now")
    add("post-check", _cycle_command(agent.ensure_daily_post), "post unless today already has a post")
    add("reply-now", _cycle_command(agent.run_replies), "reply to unread messages now")
    add("apply-now", _cycle_command(agent.run_applications), "search and apply to jobs now")
    add("login", cmd_login, "log in by hand in a visible browser")
    p = add("learn-voice", cmd_learn_voice, "scrape your sent messages and learn your voice")
    p.add_argument("--max", type=int, default=15, help="conversations to scrape")
    add("analyze-voice", cmd_analyze_voice, "learn your voice from replies/manual-messages.json")
    p = add("generate", cmd_generate, "generate posts into the queue")
    p.add_argument("count", nargs="?", type=int, default=5)
    add("queue", cmd_queue, "show queued posts")
    add("history", cmd_history, "show posting history")
    add("clear", cmd_clear, "empty the post queue")
    add("stats", cmd_stats, "application statistics")
    p = add("export-csv", cmd_export_csv, "export application history to CSV")
    p.add_argument("--output", help="CSV path (default data/applications/applications.csv)")
    add("report", cmd_report, "write today's activity report")
    p = add("debug-selectors", cmd_debug_selectors, "show which selector fallbacks match")
    p.add_argument("--html", help="saved page snapshot to check instead of a live page")
    p.add_argument("--url", help="page to open in the live browser")
    add("start", cmd_start, "start the scheduler in the background")
    add("stop", cmd_stop, "stop the background scheduler")
    add("restart", cmd_restart, "restart the background scheduler")
    add("status", cmd_status, "show scheduler status and recent logs")
    p = add("logs", cmd_logs, "show scheduler log output")
    p.add_argument("lines", nargs="?", type=int, default=50)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

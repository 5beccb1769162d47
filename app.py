"""Streamlit dashboard for LinkedIn Autopilot: ``streamlit run app.py``."""
from __future__ import annotations

import json
from pathlib import Path

import streamlit as st
from dotenv import dotenv_values, set_key

from autopilot import agent, daemon
from autopilot.config import PROJECT_ROOT, Paths, load_settings
from autopilot.content import generate_batch
from autopilot.inbox import ReplyLog
from autopilot.log import get_logger
from autopilot.posts import PostQueue
from autopilot.report import build_activity_report, write_activity_report
from autopilot.resume import find_resume
from autopilot.store import JsonStore
from autopilot.tracker import ApplicationTracker

log = get_logger(__name__)

ROOT = PROJECT_ROOT

_GLASS_CSS = """
<style>
[data-testid="stAppViewContainer"] {
    background: linear-gradient(135deg, #e8eaf6 0%, #e3f2fd 45%, #e0f2f1 100%);
}
[data-testid="stSidebar"] {
    background: rgba(255,255,255,0.55);
    backdrop-filter: blur(16px);
    -webkit-backdrop-filter: blur(16px);
    border-right: 1px solid rgba(255,255,255,0.3);
}
.block-container {
    padding-top: 2rem;
}
[data-testid="stMetric"] {
    background: rgba(255,255,255,0.6);
    backdrop-filter: blur(12px);
    -webkit-backdrop-filter: blur(12px);
    padding: 0.75rem 1rem;
    border-radius: 12px;
    border: 1px solid rgba(255,255,255,0.4);
    box-shadow: 0 4px 16px rgba(0,0,0,0.06);
}
[data-testid="stForm"],
[data-testid="stExpander"] {
    background: rgba(255,255,255,0.5);
    backdrop-filter: blur(10px);
    -webkit-backdrop-filter: blur(10px);
    border-radius: 12px;
    border: 1px solid rgba(255,255,255,0.35);
    box-shadow: 0 4px 20px rgba(0,0,0,0.04);
}
.stButton > button[kind="primary"] {
    border-radius: 8px;
    font-weight: 600;
}
h1, h2, h3 {
    color: #1a1a2e;
}
/* incoming message vs generated reply */
.reply-incoming {
    padding: 0.5rem 0.75rem; background: rgba(10,102,194,0.08);
    border-left: 3px solid #0a66c2; border-radius: 6px;
    font-size: 0.9rem; color: #333;
}
.reply-outgoing {
    padding: 0.5rem 0.75rem; background: rgba(39,174,96,0.08);
    border-left: 3px solid #27ae60; border-radius: 6px;
    font-size: 0.9rem; color: #333;
}
</style>
"""

# ── Helpers ──────────────────────────────────────────────────────────────


def _paths() -> Paths:
    paths = Paths.default()
    paths.ensure()
    return paths


ENV_FILE = ROOT / ".env"


def _load_env() -> dict[str, str]:
    return {k: v or "" for k, v in dotenv_values(ENV_FILE).items()}


def _save_env(values: dict[str, str]) -> None:
    """Update keys in .env in place; a fresh .env starts from .env.example."""
    template = ROOT / ".env.example"
    if not ENV_FILE.exists():
        ENV_FILE.write_text(template.read_text(encoding="utf-8") if template.exists() else "", encoding="utf-8")
    for key, value in values.items():
        set_key(ENV_FILE, key, value, quote_mode="never")


def _voice_profile(paths: Paths) -> dict:
    return JsonStore(paths.replies / "voice-profile.json", dict).read()


def _status(paths: Paths) -> dict[str, bool]:
    settings = load_settings()
    missing = settings.missing_credentials()
    return {
        "linkedin": "LINKEDIN_EMAIL" not in missing and "LINKEDIN_PASSWORD" not in missing,
        "openai": "OPENAI_API_KEY" not in missing,
        "resume": bool(settings.applicant.resume_path) or find_resume(paths.resume) is not None,
        "voice": bool(_voice_profile(paths)),
        "session": paths.user_data.exists(),
    }


def _check(label: str, ok: bool) -> str:
    icon = "✅" if ok else "⬜"
    return f"{icon}  {label}"


def _run_cycle(label: str, fn) -> None:
    with st.status(f"{label}…", expanded=True) as sw:
        try:
            settings = load_settings()
            missing = settings.missing_credentials()
            if missing:
                sw.update(label="Missing credentials", state="error")
                st.error(f"Set {', '.join(missing)} under **Settings** first.")
                return
            result = fn(agent.build_context(settings, _paths()))
            st.session_state["last_result"] = result
            ok = result.get("status") not in ("error", "login_failed", "verification_required")
            sw.update(label=f"{label}: {result.get('status')}", state="complete" if ok else "error")
        except Exception as exc:
            log.exception("%s failed", label)
            sw.update(label=f"{label} failed", state="error")
            st.error(str(exc))


# ── Page: Dashboard ──────────────────────────────────────────────────────


def page_dashboard() -> None:
    st.header("Dashboard")
    paths = _paths()

    pid = daemon.running_pid()
    queue = PostQueue(paths)
    tracker = ApplicationTracker(paths)
    replies = ReplyLog(paths)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Scheduler", f"PID {pid}" if pid else "Stopped")
    c2.metric("Posts queued", len(queue))
    c3.metric("Applied today", len(tracker.applications_today()))
    c4.metric("Pending replies", len(replies.pending()))

    st.divider()
    st.subheader("Scheduler")
    c1, c2, c3 = st.columns(3)
    with c1:
        if st.button("Start", type="primary", use_container_width=True, disabled=bool(pid)):
            ok, msg = daemon.start(paths)
            (st.success if ok else st.error)(msg)
    with c2:
        if st.button("Stop", use_container_width=True, disabled=not pid):
            ok, msg = daemon.stop()
            (st.success if ok else st.error)(msg)
    with c3:
        if st.button("Refresh", use_container_width=True):
            st.rerun()

    schedules = load_settings().schedules
    st.caption(" · ".join(f"**{name}** `{expr}`" for name, expr in schedules.items()))

    st.divider()
    st.subheader("Run Now")
    c1, c2, c3 = st.columns(3)
    with c1:
        if st.button("Post now", use_container_width=True):
            _run_cycle("Posting", agent.run_post)
    with c2:
        if st.button("Reply to messages", use_container_width=True):
            _run_cycle("Replying", agent.run_replies)
    with c3:
        if st.button("Apply to jobs", use_container_width=True):
            _run_cycle("Applying", agent.run_applications)

    result = st.session_state.get("last_result")
    if result:
        with st.expander("Last run", expanded=True):
            st.json(result)

    with st.expander("Scheduler log"):
        lines = daemon.tail(daemon.scheduler_log(paths), 100)
        st.code("\n".join(lines) if lines else "No logs yet", language="text")


# ── Page: Posts ──────────────────────────────────────────────────────────


def page_posts() -> None:
    st.header("Posts")
    paths = _paths()
    queue = PostQueue(paths)

    tab_queue, tab_history = st.tabs(["Queue", "History"])

    with tab_queue:
        c1, c2, c3 = st.columns([1, 1, 2])
        with c1:
            count = st.number_input("Posts to generate", 1, 20, 5)
        with c2:
            st.write("")
            generate = st.button("Generate", type="primary", use_container_width=True)
        if generate:
            settings = load_settings()
            if not settings.openai_api_key:
                st.error("Set OPENAI_API_KEY under **Settings** first.")
            else:
                with st.spinner("Generating posts…"):
                    ctx = agent.build_context(settings, paths)
                    posts = generate_batch(ctx.llm, int(count), settings.content, delay=ctx.delay)
                    if posts:
                        queue.enqueue(*posts)
                st.success(f"Generated {len(posts)} post(s).")

        items = queue.items()
        if not items:
            st.info("Queue is empty. Generate posts above or let the scheduler top it up.")
        for i, post in enumerate(items, 1):
            with st.expander(f"[{i}] {post.topic}"):
                st.caption(f"Generated {post.generated_at}")
                st.markdown(post.content)

        if items and st.button("Clear queue"):
            n = queue.clear()
            st.success(f"Removed {n} post(s).")
            st.rerun()

    with tab_history:
        history = queue.history()
        if not history:
            st.info("Nothing posted yet.")
            return
        ok = sum(1 for p in history if p.get("success"))
        c1, c2 = st.columns(2)
        c1.metric("Posted", ok)
        c2.metric("Failed", len(history) - ok)
        st.dataframe(
            list(reversed(history)),
            use_container_width=True,
            column_order=["timestamp", "topic", "success", "content", "error"],
            hide_index=True,
        )


# ── Page: Replies ────────────────────────────────────────────────────────


def page_replies() -> None:
    st.header("Replies")
    paths = _paths()
    replies = ReplyLog(paths)

    tab_pending, tab_sent, tab_voice = st.tabs(["Pending Approval", "Sent", "Voice Profile"])

    with tab_pending:
        pending = replies.pending()
        if not pending:
            st.info("No replies waiting. Turn on REQUIRE_APPROVAL to review replies before they are sent.")
        for r in reversed(pending):
            with st.expander(f"{r.get('authorName', 'Unknown')} · {r.get('generatedAt', '')}"):
                st.markdown(f"<div class='reply-incoming'>{r.get('incomingMessage', '')}</div>",
                            unsafe_allow_html=True)
                st.write("")
                st.markdown(f"<div class='reply-outgoing'>{r.get('generatedReply', '')}</div>",
                            unsafe_allow_html=True)

    with tab_sent:
        sent = replies.sent()
        if not sent:
            st.info("No replies sent yet.")
        else:
            st.dataframe(
                list(reversed(sent)),
                use_container_width=True,
                column_order=["sentAt", "authorName", "incomingMessage", "sentReply"],
                hide_index=True,
            )

    with tab_voice:
        profile = _voice_profile(paths)
        if not profile:
            st.info("No voice profile yet. Run `autopilot learn-voice` or `autopilot analyze-voice`.")
            return
        c1, c2 = st.columns(2)
        c1.metric("Messages analyzed", profile.get("message_count", 0))
        c2.metric("Analyzed", str(profile.get("analyzed_at", ""))[:10] or "-")
        st.code(json.dumps(profile, indent=2, ensure_ascii=False), language="json")


# ── Page: Applications ───────────────────────────────────────────────────


def page_applications() -> None:
    st.header("Applications")
    paths = _paths()
    tracker = ApplicationTracker(paths)

    tab_history, tab_reports = st.tabs(["Application History", "Activity Reports"])

    with tab_history:
        stats = tracker.stats()
        if not stats["total"]:
            st.info("No applications tracked yet.")
        else:
            c1, c2, c3, c4 = st.columns(4)
            c1.metric("Total", stats["total"])
            c2.metric("Submitted", f"{stats['successful']} ({stats['success_rate']}%)")
            c3.metric("Ready for review", stats["review_ready"])
            c4.metric("Avg match", stats["average_match_score"] if stats["average_match_score"] is not None else "-")

            st.dataframe(
                list(reversed(tracker.history())),
                use_container_width=True,
                column_order=["timestamp", "title", "company", "outcome", "reason", "match_score", "url"],
                column_config={
                    "url": st.column_config.LinkColumn("Job Link"),
                    "match_score": st.column_config.ProgressColumn("Match", min_value=0, max_value=100, format="%d"),
                },
                hide_index=True,
            )

            follow_up = tracker.needing_follow_up()
            if follow_up:
                with st.expander(f"Follow up ({len(follow_up)} submitted over a week ago)"):
                    for r in follow_up:
                        st.markdown(f"- **{r.get('title')}** at {r.get('company')} · {r.get('timestamp', '')[:10]}")

            if st.button("Export CSV"):
                path = tracker.export_csv()
                st.success(f"Exported → `{path}`")

    with tab_reports:
        if st.button("Write today's report", type="primary"):
            queue = PostQueue(paths)
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
            st.success(f"Report saved → `{path}`")

        reports = sorted(paths.reports.glob("activity_*.md"), reverse=True)
        if not reports:
            st.info("No reports yet.")
        else:
            selected = st.selectbox(
                "Select report",
                reports,
                format_func=lambda p: p.stem.replace("activity_", ""),
            )
            if selected:
                st.markdown(Path(selected).read_text(encoding="utf-8"))


# ── Page: Settings ───────────────────────────────────────────────────────


def page_settings() -> None:
    st.header("Settings")
    env = _load_env()

    with st.form("env_settings"):
        st.subheader("LinkedIn")
        c1, c2 = st.columns(2)
        with c1:
            li_email = st.text_input("LinkedIn Email", value=env.get("LINKEDIN_EMAIL", ""))
        with c2:
            li_pass = st.text_input("LinkedIn Password", value=env.get("LINKEDIN_PASSWORD", ""), type="password")

        st.subheader("AI")
        c1, c2 = st.columns(2)
        with c1:
            openai_key = st.text_input("OpenAI API Key", value=env.get("OPENAI_API_KEY", ""), type="password")
        with c2:
            model = st.text_input("Model", value=env.get("OPENAI_MODEL", "gpt-4o"))

        st.subheader("Job Search")
        c1, c2, c3 = st.columns(3)
        with c1:
            keywords = st.text_input("Keywords", value=env.get("JOB_KEYWORDS", "Software Engineer"))
        with c2:
            location = st.text_input("Location", value=env.get("JOB_LOCATION", "Remote"))
        with c3:
            per_day = st.text_input("Max applications / day", value=env.get("MAX_APPLICATIONS_PER_DAY", "10"))

        st.subheader("Behaviour")
        c1, c2, c3, c4 = st.columns(4)
        with c1:
            headless = st.checkbox("Headless browser", value=env.get("HEADLESS", "").lower() == "true")
        with c2:
            auto_submit = st.checkbox(
                "Submit applications", value=env.get("AUTO_SUBMIT_APPLICATIONS", "").lower() == "true",
                help="Off: forms are filled and left at the review step.",
            )
        with c3:
            approval = st.checkbox("Approve replies", value=env.get("REQUIRE_APPROVAL", "").lower() == "true")
        with c4:
            ai_filter = st.checkbox("AI job filtering", value=env.get("USE_AI_FILTERING", "").lower() == "true")

        if st.form_submit_button("Save", type="primary", use_container_width=True):
            env.update({
                "LINKEDIN_EMAIL": li_email, "LINKEDIN_PASSWORD": li_pass,
                "OPENAI_API_KEY": openai_key, "OPENAI_MODEL": model,
                "JOB_KEYWORDS": keywords, "JOB_LOCATION": location,
                "MAX_APPLICATIONS_PER_DAY": per_day,
                "HEADLESS": str(headless).lower(),
                "AUTO_SUBMIT_APPLICATIONS": str(auto_submit).lower(),
                "REQUIRE_APPROVAL": str(approval).lower(),
                "USE_AI_FILTERING": str(ai_filter).lower(),
            })
            _save_env(env)
            st.success("Saved. Restart the scheduler to pick up changes.")

    st.divider()
    st.subheader("Resume")
    paths = _paths()
    current = find_resume(paths.resume)
    st.caption(f"Current: `{current.name}`" if current else "No resume uploaded.")
    upload = st.file_uploader("Upload resume", type=["pdf", "docx", "txt"])
    if upload is not None:
        dest = paths.resume / upload.name
        dest.write_bytes(upload.getvalue())
        st.success(f"Saved → `{dest}`")


# ── Main ─────────────────────────────────────────────────────────────────


def _inject_css() -> None:
    st.markdown(_GLASS_CSS, unsafe_allow_html=True)


def _sidebar_status() -> None:
    with st.sidebar:
        st.divider()
        s = _status(_paths())
        st.markdown("**Status**")
        st.markdown(_check("LinkedIn credentials", s["linkedin"]))
        st.markdown(_check("OpenAI API key", s["openai"]))
        st.markdown(_check("Resume uploaded", s["resume"]))
        st.markdown(_check("Voice profile", s["voice"]))
        st.markdown(_check("Browser session", s["session"]))


def _wrap(page):
    def run() -> None:
        _inject_css()
        _sidebar_status()
        page()

    run.__name__ = page.__name__
    return run


pages = [
    st.Page(_wrap(page_dashboard), title="Dashboard", icon="🚀", url_path="dashboard", default=True),
    st.Page(_wrap(page_posts), title="Posts", icon="📝", url_path="posts"),
    st.Page(_wrap(page_replies), title="Replies", icon="💬", url_path="replies"),
    st.Page(_wrap(page_applications), title="Applications", icon="📋", url_path="applications"),
    st.Page(_wrap(page_settings), title="Settings", icon="⚙️", url_path="settings"),
]

nav = st.navigation(pages)
nav.run()

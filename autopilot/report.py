"""Markdown activity report: today's posts, applications and replies."""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from autopilot.log import get_logger

log = get_logger(__name__)

_OUTCOME_LABELS: dict[str, str] = {
    "submitted": "Submitted",
    "abandoned_for_review": "Ready for review",
    "failed": "Failed",
}


def _clip(text: str, n: int) -> str:
    text = " ".join((text or "").split())
    return text[:n] + ("..." if len(text) > n else "")


def _today(records: list[dict[str, Any]], key: str, today: str) -> list[dict[str, Any]]:
    out = []
    for r in records:
        try:
            ts = datetime.fromisoformat(r.get(key, ""))
        except (TypeError, ValueError):
            continue
        if ts.tzinfo is not None:
            ts = ts.astimezone()
        if ts.date().isoformat() == today:
            out.append(r)
    return out


def build_activity_report(
    *,
    posts: list[dict[str, Any]],
    applications: list[dict[str, Any]],
    sent_replies: list[dict[str, Any]],
    pending_replies: list[dict[str, Any]],
    queue_size: int = 0,
    stats: dict[str, Any] | None = None,
    today: str | None = None,
) -> str:
    """Report for ``today`` (local date, ISO format) built from the full logs."""
    today = today or datetime.now().date().isoformat()
    posts = _today(posts, "timestamp", today)
    apps = _today(applications, "timestamp", today)
    sent = _today(sent_replies, "sentAt", today)
    pending = _today(pending_replies, "generatedAt", today)

    lines: list[str] = [f"# LinkedIn Activity - {today}", ""]
    lines.append(
        f"**{sum(1 for p in posts if p.get('success'))}** posted | "
        f"**{len(apps)}** applications | **{len(sent)}** replies sent | "
        f"**{len(pending)}** awaiting approval | **{queue_size}** posts queued"
    )
    lines.append("")

    lines.append("## Posts")
    lines.append("")
    if not posts:
        lines.append("_No posts today._")
    for p in posts:
        mark = "ok" if p.get("success") else f"failed ({p.get('error') or 'unknown error'})"
        lines.append(f"- {p.get('topic') or 'Post'}: {mark}")
        lines.append(f"  > {_clip(p.get('content', ''), 120)}")
    lines.append("")

    lines.append("## Applications")
    lines.append("")
    if apps:
        lines.append("| Role | Company | Outcome | Score | Note |")
        lines.append("|------|---------|---------|------:|------|")
        for a in apps:
            outcome = _OUTCOME_LABELS.get(a.get("outcome", ""), a.get("outcome", ""))
            score = a.get("match_score")
            link = f"[{_clip(a.get('title', ''), 40)}]({a['url']})" if a.get("url") else _clip(a.get("title", ""), 40)
            lines.append(
                f"| {link} | {_clip(a.get('company', ''), 24)} | {outcome} | "
                f"{score if score is not None else '-'} | {_clip(a.get('reason', ''), 60)} |"
            )
    else:
        lines.append("_No applications today._")
    lines.append("")

    lines.append("## Replies")
    lines.append("")
    if not sent and not pending:
        lines.append("_No replies today._")
    for r in sent:
        lines.append(f"- Sent to **{r.get('authorName', 'Unknown')}**: {_clip(r.get('sentReply', ''), 100)}")
    for r in pending:
        lines.append(f"- Pending for **{r.get('authorName', 'Unknown')}**: {_clip(r.get('generatedReply', ''), 100)}")
    lines.append("")

    if stats and stats.get("total"):
        lines.append("---")
        lines.append("")
        lines.append("## All-time applications")
        lines.append("")
        lines.append(f"- Total: {stats['total']} ({stats['success_rate']}% submitted)")
        lines.append(f"- Ready for review: {stats['review_ready']}")
        if stats.get("average_match_score") is not None:
            lines.append(f"- Average match score: {stats['average_match_score']}")
        lines.append("")

    log.info("Built activity report: %d posts, %d applications, %d replies", len(posts), len(apps), len(sent))
    return "\n".join(lines)


def write_activity_report(content: str, directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"activity_{datetime.now().strftime('%Y-%m-%d')}.md"
    path.write_text(content, encoding="utf-8")
    log.info("Report written to %s", path)
    return path

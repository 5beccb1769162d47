"""Application history: append-only JSON log with stats and CSV export."""
from __future__ import annotations

import csv
from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from autopilot.config import Paths
from autopilot.log import get_logger
from autopilot.models import ApplyResult, Job, utcnow_iso
from autopilot.store import JsonStore

log = get_logger(__name__)

CSV_HEADERS: list[str] = [
    "job_id", "title", "company", "location", "url", "timestamp",
    "outcome", "success", "reason", "match_score", "match_reason",
]


def _parse_ts(value: str) -> datetime | None:
    try:
        ts = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


class ApplicationTracker:
    def __init__(self, paths: Paths) -> None:
        self.paths = paths
        self.store = JsonStore(paths.applications / "history.json", list)

    @property
    def csv_path(self) -> Path:
        return self.paths.applications / "applications.csv"

    def history(self) -> list[dict[str, Any]]:
        return self.store.read()

    def has_applied(self, job: Job, history: list[dict[str, Any]] | None = None) -> bool:
        """Any earlier record for this job id or URL, whatever its outcome."""
        records = self.history() if history is None else history
        return any(
            (job.id and r.get("job_id") == job.id) or (job.url and r.get("url") == job.url)
            for r in records
        )

    def add(self, job: Job, result: ApplyResult) -> dict[str, Any]:
        record = {
            "job_id": job.id,
            "title": job.title,
            "company": job.company,
            "location": job.location,
            "url": job.url,
            "timestamp": utcnow_iso(),
            "outcome": result.outcome.value,
            "success": result.success,
            "reason": result.reason,
            "match_score": job.match.score if job.match else None,
            "match_reason": job.match.reasoning if job.match else None,
        }
        with self.store.transaction() as records:
            records.append(record)
        log.debug("Tracked %s at %s [%s]", job.title, job.company, record["outcome"])
        return record

    def applications_today(self, now: datetime | None = None) -> list[dict[str, Any]]:
        today = (now or datetime.now().astimezone()).date()
        out = []
        for r in self.history():
            ts = _parse_ts(r.get("timestamp", ""))
            if ts is not None and ts.astimezone().date() == today:
                out.append(r)
        return out

    def stats(self) -> dict[str, Any]:
        records = self.history()
        scores = [r["match_score"] for r in records if isinstance(r.get("match_score"), (int, float))]
        successful = sum(1 for r in records if r.get("success"))
        review = sum(1 for r in records if r.get("outcome") == "abandoned_for_review")
        return {
            "total": len(records),
            "successful": successful,
            "review_ready": review,
            "failed": len(records) - successful - review,
            "success_rate": round(100 * successful / len(records), 1) if records else 0.0,
            "average_match_score": round(sum(scores) / len(scores), 1) if scores else None,
            "by_company": dict(Counter(r.get("company", "Unknown") for r in records).most_common(10)),
            "recent": records[-10:][::-1],
        }

    def needing_follow_up(self, days: int = 7, now: datetime | None = None) -> list[dict[str, Any]]:
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
        out = []
        for r in self.history():
            ts = _parse_ts(r.get("timestamp", ""))
            if r.get("success") and ts is not None and ts < cutoff:
                out.append(r)
        return out

    def export_csv(self, path: Path | None = None) -> Path:
        path = path or self.csv_path
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = csv.writer(f, quoting=csv.QUOTE_NONNUMERIC)
            w.writerow(CSV_HEADERS)
            for r in self.history():
                row = []
                for h in CSV_HEADERS:
                    value = r.get(h)
                    if isinstance(value, bool):
                        value = "yes" if value else "no"
                    row.append("" if value is None else value)
                w.writerow(row)
        log.info("Exported application history to %s", path.name)
        return path

"""LinkedIn job search: results page scraping and job descriptions."""
from __future__ import annotations

import json
import random
import re
from datetime import datetime
from pathlib import Path
from urllib.parse import urlencode, urljoin

from autopilot import selectors as sel
from autopilot.diagnostics import capture
from autopilot.log import get_logger
from autopilot.models import Job, SearchCriteria
from autopilot.resolver import Resolver, Target, first_match, first_text
from autopilot.surfaces.base import Element, Surface
from autopilot.timing import Delay, NoDelay

log = get_logger(__name__)

BASE_URL = "https://www.linkedin.com"
SEARCH_URL = f"{BASE_URL}/jobs/search/"

EXPERIENCE_CODES: dict[str, str] = {
    "entry": "1",
    "associate": "2",
    "mid-senior": "3",
    "director": "4",
    "executive": "5",
}

_JOB_ID_RE = re.compile(r"/jobs/view/(\d+)")
_SCROLLABLE_LISTS = (".jobs-search-results-list", ".jobs-search__results-list")


def experience_code(level: str) -> str:
    return EXPERIENCE_CODES.get((level or "").strip().lower(), "3")


def build_search_url(criteria: SearchCriteria) -> str:
    params = {
        "keywords": criteria.keywords,
        "location": criteria.location,
    }
    if criteria.easy_apply_only:
        params["f_AL"] = "true"
    params["f_E"] = experience_code(criteria.experience_level)
    params["sortBy"] = "DD"
    return f"{SEARCH_URL}?{urlencode(params)}"


def job_from_card(card: Element) -> Job | None:
    """Build a ``Job`` from one result card, or None when it has no title or id."""
    link = first_match(card, sel.JOB_TITLE_LINK)
    title = link.text().strip() if link else ""
    href = (link.attr("href") or "") if link else ""
    job_id = card.attr("data-job-id") or ""
    if not job_id:
        m = _JOB_ID_RE.search(href)
        job_id = m.group(1) if m else ""
    if not title or not job_id:
        return None
    url = urljoin(BASE_URL, href or f"/jobs/view/{job_id}/")
    return Job(
        id=job_id,
        title=title,
        company=first_text(card, sel.JOB_COMPANY, "Unknown"),
        location=first_text(card, sel.JOB_LOCATION, "Not specified"),
        url=url,
        easy_apply="Easy Apply" in card.text(),
    )


class JobSearch:
    def __init__(
        self,
        surface: Surface,
        resolver: Resolver,
        targets: dict[str, Target],
        *,
        delay: Delay | None = None,
        screenshots: Path | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.surface = surface
        self.resolver = resolver
        self.targets = targets
        self.delay = delay or NoDelay()
        self.screenshots = screenshots
        self.rng = rng or random.Random()

    def search(self, criteria: SearchCriteria) -> list[Job]:
        url = build_search_url(criteria)
        log.info("Searching jobs: %s in %s (%s)", criteria.keywords, criteria.location, criteria.experience_level)
        self.surface.goto(url, timeout=30)
        self.delay.pause(3, 5)

        if not self.resolver.resolve(self.surface, self.targets["results_list"], timeout=30):
            log.warning("Results list did not appear")
            if self.screenshots is not None:
                capture(self.surface, self.screenshots, "jobs-page")
        self.scroll_results()
        jobs = self.extract_listings(criteria.max_results)
        log.info("Found %d jobs", len(jobs))
        return jobs

    def scroll_results(self) -> None:
        """Scroll the results pane a few times so lazy cards render."""
        count = self.rng.randint(3, 5)
        for _ in range(count):
            if not any(self.surface.scroll(css) for css in _SCROLLABLE_LISTS):
                log.debug("No scrollable results list")
                return
            self.delay.pause(1, 2)

    def extract_listings(self, max_results: int = 25) -> list[Job]:
        cards: list[Element] = []
        for css in sel.JOB_CARDS:
            cards = self.surface.query_all(css)
            if cards:
                break
        jobs: list[Job] = []
        for card in cards[:max_results]:
            try:
                job = job_from_card(card)
            except Exception as e:
                log.debug("Skipping unreadable job card: %s", e)
                continue
            if job is not None:
                jobs.append(job)
        return jobs

    def fetch_description(self, job: Job) -> str:
        log.info("Reading description: %s", job.title)
        self.surface.goto(job.url, timeout=30)
        self.delay.pause(2, 4)
        found = self.resolver.resolve(self.surface, self.targets["job_description"], timeout=15)
        job.description = found.element.text() if found else ""
        if not job.description:
            log.warning("No description found for %s", job.title)
        return job.description


def save_jobs(jobs: list[Job], directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"jobs-{datetime.now().strftime('%Y%m%d-%H%M%S')}.json"
    with open(path, "w", encoding="utf-8") as f:
        json.dump([j.to_dict() for j in jobs], f, indent=2)
    log.info("Saved %d jobs to %s", len(jobs), path.name)
    return path

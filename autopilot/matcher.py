"""AI job-match scoring and filtering."""
from __future__ import annotations

from autopilot.llm import Completer, complete_json
from autopilot.log import get_logger
from autopilot.models import Job, MatchResult, SearchCriteria
from autopilot.timing import Delay, NoDelay

log = get_logger(__name__)

SYSTEM = (
    "You are an expert career advisor analyzing job postings. "
    "Return valid JSON only with your analysis."
)

PROMPT = """Analyze this job posting for a candidate and decide whether it is a good match.

Job:
Title: {title}
Company: {company}
Location: {location}
Description: {description}

Candidate:
- Experience level: {level}
- Looking for: {keywords}
- Preferred location: {preferred_location}
{resume}
Score it out of 100:
1. Role alignment (0-30)
2. Skills match (0-25)
3. Location fit (0-15)
4. Company quality (0-15)
5. Red flags (0-15, subtract for unrealistic expectations, vague or scammy postings)

Respond with JSON only:
{{
  "matchScore": <0-100>,
  "isGoodMatch": <true if {min_score}+>,
  "reasoning": "<2-3 sentences>",
  "breakdown": {{"roleAlignment": 0, "skillsMatch": 0, "locationFit": 0, "companyQuality": 0, "redFlags": 0}},
  "recommendation": "<apply|skip|maybe>"
}}"""


def fallback_match() -> MatchResult:
    """Used whenever scoring fails: apply rather than miss the job."""
    return MatchResult(
        is_match=True,
        score=50,
        reasoning="AI analysis failed - defaulting to apply",
        recommendation="maybe",
    )


class JobMatcher:
    def __init__(
        self,
        llm: Completer,
        criteria: SearchCriteria,
        *,
        resume_text: str = "",
        delay: Delay | None = None,
    ) -> None:
        self.llm = llm
        self.criteria = criteria
        self.resume_text = resume_text
        self.delay = delay or NoDelay()

    def _prompt(self, job: Job, min_score: int) -> str:
        resume = f"- Resume excerpt: {self.resume_text[:1500]}\n" if self.resume_text else ""
        return PROMPT.format(
            title=job.title,
            company=job.company,
            location=job.location,
            description=(job.description or "Not provided")[:4000],
            level=self.criteria.experience_level,
            keywords=self.criteria.keywords,
            preferred_location=self.criteria.location,
            resume=resume,
            min_score=min_score,
        )

    def analyze(self, job: Job, min_score: int = 60) -> MatchResult:
        log.info("Analyzing match: %s at %s", job.title, job.company)
        try:
            data = complete_json(self.llm, SYSTEM, self._prompt(job, min_score),
                                 temperature=0.3, max_tokens=800)
            score = int(data["matchScore"])
            result = MatchResult(
                is_match=score >= min_score,
                score=score,
                reasoning=str(data.get("reasoning", "")),
                recommendation=str(data.get("recommendation") or "maybe").lower(),
                breakdown=data.get("breakdown") if isinstance(data.get("breakdown"), dict) else None,
            )
        except Exception as exc:
            log.warning("Match analysis failed for %s (%s), defaulting to apply", job.title, exc)
            return fallback_match()
        log.info("  score %d/100, %s: %s", result.score, result.recommendation, result.reasoning)
        return result

    def filter_jobs(self, jobs: list[Job], min_score: int = 60) -> list[Job]:
        """Attach a match to every job, keep the matches, best first."""
        log.info("AI filtering %d jobs (min score %d)", len(jobs), min_score)
        kept: list[Job] = []
        for job in jobs:
            job.match = self.analyze(job, min_score)
            if job.match.is_match:
                kept.append(job)
            else:
                log.info("  filtered out %s (score %d)", job.title, job.match.score)
            self.delay.pause(1, 1)
        log.info("%d/%d jobs passed AI filtering", len(kept), len(jobs))
        return sorted(kept, key=lambda j: j.match.score if j.match else 0, reverse=True)

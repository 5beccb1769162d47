"""Load settings from config/settings.yaml and the environment (.env)."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from autopilot.log import get_logger
from autopilot.models import ApplicantProfile

log = get_logger(__name__)

load_dotenv()

PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = PROJECT_ROOT / "config"
SETTINGS_PATH: Path = CONFIG_DIR / "settings.yaml"
SELECTORS_PATH: Path = CONFIG_DIR / "selectors.yaml"

REQUIRED_ENV: tuple[str, ...] = ("LINKEDIN_EMAIL", "LINKEDIN_PASSWORD", "OPENAI_API_KEY")

DEFAULT_SCHEDULES: dict[str, str] = {
    "post_check": "0 * * * *",
    "messages": "*/30 * * * *",
    "apply_morning": "30 9 * * 1-5",
    "apply_afternoon": "0 14 * * 1-5",
}


@dataclass(frozen=True)
class Paths:
    root: Path

    @classmethod
    def default(cls) -> Paths:
        home = os.environ.get("AUTOPILOT_HOME")
        return cls(Path(home) if home else PROJECT_ROOT)

    @property
    def data(self) -> Path:
        return self.root / "data"

    @property
    def posts(self) -> Path:
        return self.data / "posts"

    @property
    def replies(self) -> Path:
        return self.data / "replies"

    @property
    def applications(self) -> Path:
        return self.data / "applications"

    @property
    def jobs(self) -> Path:
        return self.data / "jobs"

    @property
    def screenshots(self) -> Path:
        return self.root / "screenshots"

    @property
    def reports(self) -> Path:
        return self.root / "reports"

    @property
    def resume(self) -> Path:
        return self.root / "resume"

    @property
    def user_data(self) -> Path:
        return self.root / "user-data"

    @property
    def logs(self) -> Path:
        return self.root / "logs"

    @property
    def run_lock(self) -> Path:
        return self.data / ".run.lock"

    def ensure(self) -> None:
        for d in (self.posts, self.replies, self.applications, self.jobs,
                  self.screenshots, self.reports, self.resume, self.logs):
            d.mkdir(parents=True, exist_ok=True)


@dataclass
class Settings:
    linkedin_email: str = ""
    linkedin_password: str = ""
    verification_code: str = ""
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    llm_base_url: str = ""

    headless: bool = False
    auto_submit: bool = False
    require_approval: bool = False
    use_ai_filtering: bool = False
    serialize_runs: bool = True

    job_keywords: str = "Software Engineer"
    job_location: str = "Remote"
    experience_level: str = "mid-senior"
    max_jobs_per_search: int = 25
    max_applications_per_day: int = 10
    min_match_score: int = 60
    max_form_steps: int = 10

    posting_start_hour: int = 9
    posting_end_hour: int = 17
    queue_min_size: int = 5

    max_replies: int = 10
    skip_sales_pitches: bool = True
    reply_to_comments: bool = False

    schedules: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SCHEDULES))
    schedule_jitter_minutes: int = 0

    applicant: ApplicantProfile = field(default_factory=ApplicantProfile)
    answers: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    content: dict[str, Any] = field(default_factory=dict)

    def missing_credentials(self) -> list[str]:
        values = {
            "LINKEDIN_EMAIL": self.linkedin_email,
            "LINKEDIN_PASSWORD": self.linkedin_password,
            "OPENAI_API_KEY": self.openai_api_key,
        }
        return [k for k in REQUIRED_ENV if not values[k]]


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


# env var -> (settings attribute, converter)
_ENV_OVERRIDES: dict[str, tuple[str, Any]] = {
    "LINKEDIN_EMAIL": ("linkedin_email", str),
    "LINKEDIN_PASSWORD": ("linkedin_password", str),
    "VERIFICATION_CODE": ("verification_code", str),
    "OPENAI_API_KEY": ("openai_api_key", str),
    "OPENAI_MODEL": ("openai_model", str),
    "LLM_BASE_URL": ("llm_base_url", str),
    "HEADLESS": ("headless", _as_bool),
    "AUTO_SUBMIT_APPLICATIONS": ("auto_submit", _as_bool),
    "REQUIRE_APPROVAL": ("require_approval", _as_bool),
    "USE_AI_FILTERING": ("use_ai_filtering", _as_bool),
    "SERIALIZE_RUNS": ("serialize_runs", _as_bool),
    "JOB_KEYWORDS": ("job_keywords", str),
    "JOB_LOCATION": ("job_location", str),
    "EXPERIENCE_LEVEL": ("experience_level", str),
    "MAX_JOBS_PER_SEARCH": ("max_jobs_per_search", int),
    "MAX_APPLICATIONS_PER_DAY": ("max_applications_per_day", int),
    "MIN_MATCH_SCORE": ("min_match_score", int),
    "POSTING_START_HOUR": ("posting_start_hour", int),
    "POSTING_END_HOUR": ("posting_end_hour", int),
    "SCHEDULE_JITTER_MINUTES": ("schedule_jitter_minutes", int),
}

_APPLICANT_ENV: dict[str, str] = {
    "PHONE": "phone",
    "EMAIL": "email",
    "CITY": "city",
    "LINKEDIN_URL": "linkedin_url",
    "WEBSITE": "website",
    "GITHUB": "github",
    "YEARS_EXPERIENCE": "years_experience",
    "RESUME_PATH": "resume_path",
}

_SCHEDULE_ENV: dict[str, str] = {
    "APPLY_MORNING_SCHEDULE": "apply_morning",
    "APPLY_AFTERNOON_SCHEDULE": "apply_afternoon",
}


def _coerce(default: Any, value: Any) -> Any:
    """Convert a YAML value to the type of the setting it overrides."""
    if isinstance(default, bool):
        return _as_bool(value)
    if isinstance(default, int):
        if isinstance(value, bool):
            raise TypeError(value)
        return int(value)
    if isinstance(default, str):
        if value is None or isinstance(value, (dict, list)):
            raise TypeError(value)
        return str(value)
    if isinstance(default, dict) and not isinstance(value, dict):
        raise TypeError(value)
    return value


def load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        log.warning("Ignoring %s: top level is not a mapping", path.name)
        return {}
    return data


def load_settings(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """Defaults, then settings.yaml, then environment variables."""
    env = os.environ if env is None else env
    data = load_yaml(path or SETTINGS_PATH)
    settings = Settings()

    applicant_data = data.pop("applicant", {}) or {}
    schedules = data.pop("schedules", {}) or {}
    for key, value in data.items():
        if not hasattr(settings, key):
            log.warning("Unknown setting %r in %s", key, (path or SETTINGS_PATH).name)
            continue
        try:
            setattr(settings, key, _coerce(getattr(settings, key), value))
        except (TypeError, ValueError):
            log.warning("Ignoring setting %s=%r: expected %s", key, value, type(getattr(settings, key)).__name__)

    settings.schedules = {**DEFAULT_SCHEDULES, **schedules}
    settings.applicant = ApplicantProfile(
        **{k: str(v) for k, v in applicant_data.items() if k in ApplicantProfile.__dataclass_fields__}
    )

    for var, (attr, convert) in _ENV_OVERRIDES.items():
        raw = (env.get(var) or "").strip()
        if raw:
            try:
                setattr(settings, attr, convert(raw))
            except ValueError:
                log.warning("Ignoring %s=%r: not a valid %s", var, raw, convert.__name__)
    for var, attr in _APPLICANT_ENV.items():
        raw = (env.get(var) or "").strip()
        if raw:
            setattr(settings.applicant, attr, raw)
    for var, name in _SCHEDULE_ENV.items():
        raw = (env.get(var) or "").strip()
        if raw:
            settings.schedules[name] = raw

    if not settings.applicant.email:
        settings.applicant.email = settings.linkedin_email
    return settings

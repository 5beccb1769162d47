"""Data models for jobs, applications, posts, messages and the voice profile."""
from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class MatchResult:
    is_match: bool
    score: int
    reasoning: str
    recommendation: str = "maybe"
    breakdown: dict[str, Any] | None = None


@dataclass
class SearchCriteria:
    keywords: str = "Software Engineer"
    location: str = "Remote"
    experience_level: str = "mid-senior"
    easy_apply_only: bool = True
    max_results: int = 25


@dataclass
class Job:
    id: str
    title: str
    company: str
    location: str
    url: str
    easy_apply: bool = False
    description: str = ""
    found_at: str = field(default_factory=utcnow_iso)
    match: MatchResult | None = None

    @property
    def match_score(self) -> int | None:
        return self.match.score if self.match else None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        match = data.get("match")
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title", ""),
            company=data.get("company", ""),
            location=data.get("location", ""),
            url=data.get("url", ""),
            easy_apply=bool(data.get("easy_apply", False)),
            description=data.get("description", ""),
            found_at=data.get("found_at") or utcnow_iso(),
            match=MatchResult(**match) if isinstance(match, dict) else None,
        )


class ApplyOutcome(str, enum.Enum):
    SUBMITTED = "submitted"
    ABANDONED_FOR_REVIEW = "abandoned_for_review"
    FAILED = "failed"


class ApplyState(str, enum.Enum):
    SEARCH_RESULTS_LOADED = "search_results_loaded"
    JOB_PAGE_LOADED = "job_page_loaded"
    APPLY_MODAL_OPEN = "apply_modal_open"
    FORM_STEP = "form_step"
    REVIEW_STEP = "review_step"
    SUBMITTED = "submitted"
    ABANDONED_FOR_REVIEW = "abandoned_for_review"
    FAILED = "failed"


@dataclass
class ApplyResult:
    outcome: ApplyOutcome
    reason: str = ""
    steps: int = 0
    trace: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.outcome is ApplyOutcome.SUBMITTED

    @property
    def review_ready(self) -> bool:
        return self.outcome is ApplyOutcome.ABANDONED_FOR_REVIEW


@dataclass
class ApplicantProfile:
    phone: str = ""
    email: str = ""
    city: str = ""
    linkedin_url: str = ""
    website: str = ""
    github: str = ""
    years_experience: str = ""
    country: str = "United States"
    state: str = ""
    resume_path: str = ""
    resume_text: str = ""


@dataclass
class Post:
    content: str
    topic: str
    generated_at: str = field(default_factory=utcnow_iso)
    image_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Post:
        return cls(
            content=data.get("content", ""),
            topic=data.get("topic", ""),
            generated_at=data.get("generated_at") or data.get("generatedAt") or utcnow_iso(),
            image_path=data.get("image_path"),
        )


@dataclass
class ConversationSummary:
    thread_id: str
    author_name: str
    preview: str = ""
    unread_count: int = 1


@dataclass
class Message:
    sender: str
    content: str
    timestamp: str | None = None
    is_outgoing: bool = False
    participant: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        return cls(
            sender=data.get("sender", ""),
            content=data.get("content", ""),
            timestamp=data.get("timestamp"),
            is_outgoing=bool(data.get("is_outgoing", data.get("isOutgoing", False))),
            participant=data.get("participant"),
        )


@dataclass
class Comment:
    comment_id: str
    author_name: str
    content: str
    has_reply: bool = False
    can_reply: bool = False


@dataclass
class CommentNotification:
    author_name: str
    post_url: str | None
    text: str
    detected_at: str = field(default_factory=utcnow_iso)


@dataclass
class VoiceProfile:
    summary: str
    tone: str = "mixed"
    avg_message_length: str = "medium"
    greeting_style: str = ""
    sign_off_style: str = ""
    common_phrases: list[str] = field(default_factory=list)
    punctuation_style: dict[str, Any] = field(default_factory=dict)
    response_pattern: str = ""
    personality_traits: list[str] = field(default_factory=list)
    example_responses: dict[str, str] = field(default_factory=dict)
    analyzed_at: str = field(default_factory=utcnow_iso)
    message_count: int = 0

    # The model is asked for camelCase keys.
    _LLM_KEYS = {
        "avgMessageLength": "avg_message_length",
        "greetingStyle": "greeting_style",
        "signOffStyle": "sign_off_style",
        "commonPhrases": "common_phrases",
        "punctuationStyle": "punctuation_style",
        "responsePattern": "response_pattern",
        "personalityTraits": "personality_traits",
        "exampleResponses": "example_responses",
        "analyzedAt": "analyzed_at",
        "messageCount": "message_count",
    }

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VoiceProfile:
        if not isinstance(data, dict) or not data.get("summary"):
            raise ValueError("voice profile needs a summary")
        known = {f for f in cls.__dataclass_fields__}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = cls._LLM_KEYS.get(key, key)
            if name in known:
                kwargs[name] = value
        return cls(**kwargs)

"""Generate LinkedIn posts with the LLM."""
from __future__ import annotations

import random
from typing import Any

from autopilot.llm import Completer
from autopilot.log import get_logger
from autopilot.models import Post
from autopilot.timing import Delay, NoDelay

log = get_logger(__name__)

TOPICS: list[str] = [
    "Reliability issues when deploying LLMs in production",
    "Prompt engineering failures and what actually worked",
    "Debugging automation workflows that silently fail",
    "Cost blowups from naive LLM API usage",
    "Hallucination problems in real business use cases",
    "Latency issues when chaining multiple AI calls",
    "Context window limits breaking complex workflows",
    "Error handling in AI automation pipelines",
    "Testing strategies for non-deterministic AI systems",
    "Token optimization lessons from production",
    "Rate limiting challenges with AI APIs",
    "Data validation failures in automated systems",
    "Version control for evolving prompts",
    "Monitoring AI system drift in production",
    "Recovery strategies when automation fails",
]

STYLES: list[str] = [
    "direct problem -> solution format",
    "honest failure story with lessons learned",
    "technical breakdown of a specific issue",
    "practical workaround with code/approach",
    "data-driven comparison of approaches",
]

HASHTAGS = "#LLM #AIEngineering #ProductionAI #MLOps #Automation"

SYSTEM = (
    "You are a senior engineer writing honest, technical posts with personality and humor. "
    "Talk like a human, not a corporate robot. Share what broke and what helped."
)

PROMPT = """Write a technical LinkedIn post for {persona}.

Topic: {topic}
Style: {style}

Guidelines:
- 100-200 words
- Start with what broke (be specific, a bit funny), then what actually worked
- No marketing speak, no emojis, no em dashes, no hashtags
- Real numbers where they make sense ("went from 90s to 2s latency")
- End with a concrete takeaway or a question

Write the post now:"""


def generate_post(
    llm: Completer,
    settings: dict[str, Any] | None = None,
    rng: random.Random | None = None,
) -> Post:
    """One post on a random topic. LLM errors propagate to the caller."""
    settings = settings or {}
    rng = rng or random.Random()
    topic = rng.choice(settings.get("topics") or TOPICS)
    style = rng.choice(settings.get("styles") or STYLES)
    persona = settings.get("persona") or "an engineer who builds AI automation systems"
    hashtags = settings.get("hashtags", HASHTAGS)

    log.info("Generating post: %s (%s)", topic, style)
    text = llm.complete(
        SYSTEM,
        PROMPT.format(persona=persona, topic=topic, style=style),
        temperature=0.8,
        max_tokens=500,
    )
    text = text.strip().replace("—", " - ")
    if not text:
        raise ValueError("model returned an empty post")
    if hashtags:
        text += f"\n\n{hashtags}"
    return Post(content=text, topic=topic)


def generate_batch(
    llm: Completer,
    count: int = 5,
    settings: dict[str, Any] | None = None,
    *,
    rng: random.Random | None = None,
    delay: Delay | None = None,
) -> list[Post]:
    """Up to ``count`` posts; failed generations are logged and skipped."""
    delay = delay or NoDelay()
    posts: list[Post] = []
    for i in range(count):
        try:
            posts.append(generate_post(llm, settings, rng))
        except Exception as exc:
            log.warning("Post %d/%d generation failed: %s", i + 1, count, exc)
        delay.pause(1, 1)
    log.info("Generated %d/%d posts", len(posts), count)
    return posts

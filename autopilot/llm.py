"""Chat-completion client and JSON extraction for model responses."""
from __future__ import annotations

import json
import re
from typing import Any, Protocol

import openai
from openai import OpenAI

from autopilot.errors import LLMResponseError
from autopilot.log import get_logger
from autopilot.retry import retry

log = get_logger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_TRANSIENT = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class Completer(Protocol):
    def complete(
        self, system: str, user: str, *, temperature: float = 0.7, max_tokens: int = 500
    ) -> str: ...


class LLMClient:
    """Thin wrapper over the OpenAI SDK.

    Built once per process and handed to every call site. ``base_url`` points
    it at any OpenAI-compatible endpoint (Groq, a local server, ...).
    """

    def __init__(self, api_key: str, model: str = "gpt-4o", base_url: str = "") -> None:
        self.model = model
        self._client = OpenAI(api_key=api_key, base_url=base_url or None)

    @retry(max_attempts=3, base_delay=2.0, retryable=_TRANSIENT)
    def complete(
        self, system: str, user: str, *, temperature: float = 0.7, max_tokens: int = 500
    ) -> str:
        r = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return (r.choices[0].message.content or "").strip()


def extract_json(text: str) -> Any:
    """Parse a JSON payload, tolerating a ```json fence around it."""
    if text is None:
        raise LLMResponseError("empty response")
    body = text.strip()
    m = _FENCE.search(body)
    if m:
        body = m.group(1).strip()
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"response is not JSON: {e}; got {body[:120]!r}") from e


def complete_json(
    llm: Completer, system: str, user: str, *, temperature: float = 0.3, max_tokens: int = 800
) -> Any:
    text = llm.complete(system, user, temperature=temperature, max_tokens=max_tokens)
    log.debug("LLM response: %s", text[:300])
    return extract_json(text)

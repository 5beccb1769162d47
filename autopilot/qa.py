"""Answers for free-form application questions."""
from __future__ import annotations

from autopilot.llm import Completer, complete_json
from autopilot.log import get_logger
from autopilot.models import Job

log = get_logger(__name__)

SYSTEM = (
    "You fill in job application forms for a candidate. Answer in the first person, "
    "briefly and professionally. Return JSON only: {\"answer\": \"...\"}"
)

PROMPT = """Question on the application form: {question}

Job: {title} at {company}
Candidate resume (excerpt):
{resume}

Answer in at most 3 sentences. If the question asks for a number, answer with just the number."""


class QuestionAnswerer:
    def __init__(self, llm: Completer, *, max_chars: int = 500) -> None:
        self.llm = llm
        self.max_chars = max_chars

    def answer(self, question: str, job: Job | None = None, resume_text: str = "") -> str:
        """Returns "" when no usable answer comes back; the field is left blank."""
        prompt = PROMPT.format(
            question=question.strip(),
            title=job.title if job else "Unknown role",
            company=job.company if job else "Unknown company",
            resume=(resume_text or "Not provided")[:2000],
        )
        try:
            data = complete_json(self.llm, SYSTEM, prompt, temperature=0.7, max_tokens=150)
        except Exception as exc:
            log.warning("No answer for %r (%s), leaving blank", question[:60], exc)
            return ""
        if not isinstance(data, dict) or not isinstance(data.get("answer"), (str, int, float)):
            log.warning("Answer for %r has no 'answer' field, leaving blank", question[:60])
            return ""
        return str(data["answer"]).strip()[: self.max_chars]

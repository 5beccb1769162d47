"""Easy Apply: the multi-step application modal as a state machine.

    SEARCH_RESULTS_LOADED -> JOB_PAGE_LOADED -> APPLY_MODAL_OPEN
        -> FORM_STEP(1..N) -> REVIEW_STEP -> SUBMITTED | ABANDONED_FOR_REVIEW
    any state -> FAILED

Every form step fills what it recognises and moves on through "Next". When
there is no "Next" the modal must be at its submit step. Submission only
happens with ``auto_submit``; otherwise the application is left open for a
human to review. ``max_steps`` bounds the loop for modals we don't understand.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from autopilot.actuator import Actuator
from autopilot.diagnostics import capture
from autopilot.log import get_logger
from autopilot.models import ApplicantProfile, ApplyOutcome, ApplyResult, ApplyState, Job
from autopilot.qa import QuestionAnswerer
from autopilot.resolver import Found, Resolver, Target, first_text, tab_traverse
from autopilot.surfaces.base import Element, Surface
from autopilot.timing import Delay

log = get_logger(__name__)

TEXT_INPUTS = (
    'input[type="text"], input[type="tel"], input[type="email"], '
    "input:not([type]), textarea"
)
CONFIRMATION_PHRASES = ("Application sent", "successfully", "Your application was submitted")

REVIEW_REASON = "Saved for manual review (auto-submit disabled)"
NO_BUTTON_REASON = "Could not proceed - no Next or Submit button found"
BUDGET_REASON = "Exceeded maximum steps without completing application"


@dataclass(frozen=True)
class AnswerRule:
    """Keyword rule mapping a field label to an answer.

    ``field`` names an ``ApplicantProfile`` attribute; otherwise ``answer``
    is used verbatim.
    """

    any: tuple[str, ...] = ()
    all: tuple[str, ...] = ()
    none: tuple[str, ...] = ()
    field: str = ""
    answer: str = ""

    def matches(self, label: str) -> bool:
        low = label.lower()
        if self.any and not any(k in low for k in self.any):
            return False
        if not all(k in low for k in self.all):
            return False
        return not any(k in low for k in self.none)

    def value(self, applicant: ApplicantProfile) -> str:
        if self.field:
            return str(getattr(applicant, self.field, "") or "")
        return self.answer

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnswerRule:
        def words(key: str) -> tuple[str, ...]:
            raw = data.get(key) or ()
            if isinstance(raw, str):
                raw = [raw]
            return tuple(str(w).lower() for w in raw)

        return cls(
            any=words("any"),
            all=words("all"),
            none=words("none"),
            field=str(data.get("field", "")),
            answer=str(data.get("answer", "")),
        )


DEFAULT_RULES: dict[str, list[AnswerRule]] = {
    "text": [
        AnswerRule(any=("phone", "mobile"), field="phone"),
        AnswerRule(any=("email",), field="email"),
        AnswerRule(any=("city",), none=("citizenship",), field="city"),
        AnswerRule(any=("linkedin",), field="linkedin_url"),
        AnswerRule(any=("website", "portfolio"), field="website"),
        AnswerRule(any=("github",), field="github"),
        AnswerRule(all=("years", "experience"), field="years_experience"),
    ],
    "radio": [
        # sponsorship first: "authorized to work without sponsorship?" needs the same "no"
        AnswerRule(any=("sponsorship", "visa"), answer="no"),
        AnswerRule(any=("authorized", "authorization", "legally"), answer="yes"),
        AnswerRule(any=("citizen",), answer="yes"),
        AnswerRule(any=("commute", "relocate"), answer="yes"),
    ],
    "select": [
        AnswerRule(any=("country",), field="country"),
        AnswerRule(any=("state",), none=("united states",), field="state"),
    ],
}


def is_open_question(label: str) -> bool:
    low = label.lower()
    return "?" in label or "why" in low or "describe" in low


def is_review_text(text: str) -> bool:
    return "Review your application" in text or ("Review" in text and "Submit" in text)


def looks_like_next(el: Element) -> bool:
    text = el.text().lower()
    aria = (el.attr("aria-label") or "").lower()
    return el.tag == "button" and ("next" in text or "continue" in text or "next" in aria)


class AnswerPolicy:
    def __init__(self, rules: dict[str, list[AnswerRule]] | None = None) -> None:
        self.rules = rules or {k: list(v) for k, v in DEFAULT_RULES.items()}

    @classmethod
    def from_settings(cls, answers: dict[str, list[dict[str, Any]]] | None) -> AnswerPolicy:
        """User rules from settings.yaml go in front of the defaults."""
        rules = {k: list(v) for k, v in DEFAULT_RULES.items()}
        for kind, entries in (answers or {}).items():
            if kind not in rules:
                log.warning("Unknown answer rule kind %r (expected text, radio or select)", kind)
                continue
            rules[kind] = [AnswerRule.from_dict(e) for e in entries or []] + rules[kind]
        return cls(rules)

    def _first(self, kind: str, label: str) -> AnswerRule | None:
        return next((r for r in self.rules.get(kind, []) if r.matches(label)), None)

    def text_value(self, label: str, applicant: ApplicantProfile) -> str | None:
        """None when no rule knows the field."""
        rule = self._first("text", label)
        return rule.value(applicant) if rule else None

    def radio_choice(self, legend: str, applicant: ApplicantProfile) -> str:
        rule = self._first("radio", legend)
        return rule.value(applicant).lower() if rule else ""

    def select_value(self, label: str, applicant: ApplicantProfile) -> str:
        rule = self._first("select", label)
        return rule.value(applicant) if rule else ""


class EasyApplyEngine:
    def __init__(
        self,
        surface: Surface,
        resolver: Resolver,
        targets: dict[str, Target],
        actuator: Actuator,
        *,
        answerer: QuestionAnswerer | None = None,
        policy: AnswerPolicy | None = None,
        auto_submit: bool = False,
        max_steps: int = 10,
        screenshots: Path | None = None,
        button_timeout: float = 3.0,
    ) -> None:
        self.surface = surface
        self.resolver = resolver
        self.targets = targets
        self.actuator = actuator
        self.answerer = answerer
        self.policy = policy or AnswerPolicy()
        self.auto_submit = auto_submit
        self.max_steps = max_steps
        self.screenshots = screenshots
        self.button_timeout = button_timeout

    @property
    def delay(self) -> Delay:
        return self.actuator.delay

    def apply(self, job: Job, applicant: ApplicantProfile) -> ApplyResult:
        trace: list[str] = []
        result = ApplyResult(ApplyOutcome.FAILED, trace=trace)
        log.info("Applying: %s at %s", job.title, job.company)
        try:
            self._run(job, applicant, result)
        except Exception as e:
            log.exception("Application to %s failed unexpectedly", job.title)
            self._capture(f"apply-error-{job.id}")
            self._finish(result, ApplyOutcome.FAILED, str(e) or type(e).__name__)
        if result.outcome is ApplyOutcome.SUBMITTED:
            log.info("  submitted: %s", job.title)
        else:
            log.info("  %s: %s", result.outcome.value, result.reason)
        return result

    def _enter(self, result: ApplyResult, state: ApplyState, detail: str = "") -> None:
        label = f"{state.value}:{detail}" if detail else state.value
        result.trace.append(label)
        log.debug("  state -> %s", label)

    def _finish(self, result: ApplyResult, outcome: ApplyOutcome, reason: str) -> None:
        result.outcome = outcome
        result.reason = reason
        self._enter(result, ApplyState(outcome.value))

    def _run(self, job: Job, applicant: ApplicantProfile, result: ApplyResult) -> None:
        self._enter(result, ApplyState.SEARCH_RESULTS_LOADED)
        self.surface.goto(job.url, timeout=30)
        self.delay.pause(3, 5)
        self._enter(result, ApplyState.JOB_PAGE_LOADED)
        self._capture(f"job-{job.id}")

        button = self.resolver.resolve(self.surface, self.targets["easy_apply_button"])
        if not button or not self.actuator.click(button.element, pause=(5, 7)):
            self._finish(result, ApplyOutcome.FAILED, "No Easy Apply button found")
            return

        if not self.resolver.resolve(self.surface, self.targets["apply_modal"], timeout=15):
            log.warning("Apply modal not detected, continuing with the whole page")
        self._enter(result, ApplyState.APPLY_MODAL_OPEN)

        uploaded = False
        for step in range(1, self.max_steps + 1):
            self.delay.pause(1, 2)
            modal = self.resolver.probe(self.surface, self.targets["apply_modal"])
            scope: Element | Surface = modal.element if modal else self.surface
            page: Surface = modal.surface if modal else self.surface

            if modal and is_review_text(modal.element.text()):
                self._enter(result, ApplyState.REVIEW_STEP)
                self._capture(f"review-{job.id}")
                self._review(result, page)
                return

            result.steps = step
            self._enter(result, ApplyState.FORM_STEP, str(step))
            if not uploaded:
                uploaded = self._upload_resume(page, applicant)
            self._fill_page(page, scope, job, applicant)

            if self._advance(page):
                continue

            # no Next: this has to be the submit step
            submit = self.resolver.resolve(page, self.targets["submit_button"], timeout=self.button_timeout)
            if not submit:
                self._capture(f"stuck-{job.id}")
                self._finish(result, ApplyOutcome.FAILED, NO_BUTTON_REASON)
                return
            self._enter(result, ApplyState.REVIEW_STEP)
            self._review(result, page, submit)
            return

        self._capture(f"step-budget-{job.id}")
        self._finish(result, ApplyOutcome.FAILED, BUDGET_REASON)

    def _review(self, result: ApplyResult, page: Surface, submit: Found | None = None) -> None:
        if not self.auto_submit:
            self._finish(result, ApplyOutcome.ABANDONED_FOR_REVIEW, REVIEW_REASON)
            return
        submit = submit or self.resolver.resolve(page, self.targets["submit_button"], timeout=self.button_timeout)
        if not submit:
            self._finish(result, ApplyOutcome.FAILED, "Could not find Submit button")
            return
        if not self.actuator.click(submit.element, pause=(3, 5)):
            self._finish(result, ApplyOutcome.FAILED, "Submit click failed")
            return
        if self._confirmed():
            self._finish(result, ApplyOutcome.SUBMITTED, "Application submitted")
        else:
            self._finish(result, ApplyOutcome.FAILED, "Submit clicked but no confirmation")

    def _confirmed(self, timeout: float = 5.0) -> bool:
        clock = self.resolver.clock
        start = clock.monotonic()
        while True:
            if not self.resolver.probe(self.surface, self.targets["apply_modal"]):
                return True
            if clock.monotonic() - start >= timeout:
                break
            clock.sleep(0.5)
        body = self.surface.text()
        return any(p in body for p in CONFIRMATION_PHRASES)

    def _advance(self, page: Surface) -> bool:
        """Press Next (by selector, then by keyboard). False when there is none."""
        found = self.resolver.resolve(page, self.targets["next_button"], timeout=self.button_timeout)
        if found:
            return self.actuator.click(found.element, pause=(2, 3))
        log.info("No Next button by selector, trying keyboard navigation")
        hit = tab_traverse(page, looks_like_next, name="next_button")
        if hit:
            page.press("Enter")
            self.delay.pause(0.5, 1)
            return True
        return False

    def _upload_resume(self, page: Surface, applicant: ApplicantProfile) -> bool:
        path = applicant.resume_path
        if not path:
            return False
        found = self.resolver.probe(page, self.targets["resume_input"])
        if not found:
            return False
        if not Path(path).exists():
            log.warning("Resume %s does not exist, not uploading", path)
            return False
        found.element.set_input_files(str(path))
        log.info("  uploaded resume %s", Path(path).name)
        self.delay.pause(2, 4)
        return True

    def _fill_page(
        self, page: Surface, scope: Element | Surface, job: Job, applicant: ApplicantProfile
    ) -> None:
        for el in scope.query_all(TEXT_INPUTS):
            if not el.is_visible() or el.is_disabled() or el.value().strip():
                continue
            label = el.label()
            value = self.policy.text_value(label, applicant)
            if value is None and is_open_question(label) and self.answerer is not None:
                value = self.answerer.answer(label, job, applicant.resume_text)
            if value:
                log.debug("  fill %r", label[:60])
                self.actuator.fill(page, el, value)
                self.delay.pause(0.3, 0.6)
        self._answer_radios(scope.query_all("fieldset"), applicant)
        self._answer_selects(scope.query_all("select"), applicant)

    def _answer_radios(self, groups: Iterable[Element], applicant: ApplicantProfile) -> None:
        for group in groups:
            radios = group.query_all('input[type="radio"]')
            if not radios or any(r.is_checked() for r in radios):
                continue
            legend = first_text(group, ("legend",))
            choice = self.policy.radio_choice(legend, applicant)
            if not choice:
                continue
            labelled = [(r, r.label().strip().lower()) for r in radios]
            pick = next((r for r, text in labelled if text == choice), None)
            if pick is None:
                pick = next((r for r, text in labelled if choice in text), None)
            if pick is None:
                log.debug("  no %r option for %r", choice, legend[:60])
                continue
            ident = pick.attr("id")
            target = group.query(f'label[for="{ident}"]') if ident else None
            log.debug("  radio %r -> %s", legend[:60], choice)
            self.actuator.click(target or pick, pause=(0.2, 0.5))

    def _answer_selects(self, selects: Iterable[Element], applicant: ApplicantProfile) -> None:
        for el in selects:
            label = el.label()
            value = self.policy.select_value(label, applicant)
            if value and el.select_option(value):
                log.debug("  select %r -> %s", label[:60], value)

    def _capture(self, name: str) -> None:
        if self.screenshots is not None:
            capture(self.surface, self.screenshots, name)


from __future__ import annotations

from dataclasses import replace

import pytest

from autopilot.actuator import Actuator
from autopilot.easy_apply import (
    BUDGET_REASON,
    NO_BUTTON_REASON,
    REVIEW_REASON,
    AnswerPolicy,
    EasyApplyEngine,
)
from autopilot.models import ApplicantProfile, ApplyOutcome, Job
from autopilot.qa import QuestionAnswerer
from autopilot.resolver import CssFinder, Target
from autopilot.surfaces.html import HtmlSurface
from autopilot.timing import NoDelay

from conftest import FakeLLM

JOB_URL = "https://www.linkedin.com/jobs/view/4242/"

JOB_PAGE = """
<h1>Platform Engineer</h1>
<button class="jobs-apply-button" aria-label="Easy Apply to Platform Engineer" data-goto="contact">Easy Apply</button>
"""

CONTACT = """
<div class="jobs-easy-apply-modal" role="dialog">
  <h3>Contact info</h3>
  <label for="phone">Mobile phone number</label><input type="text" id="phone">
  <label for="mail">Email address</label><input type="email" id="mail">
  <input type="file" name="resume">
  <button aria-label="Continue to next step" data-goto="questions">Next</button>
</div>
"""

QUESTIONS = """
<div class="jobs-easy-apply-modal" role="dialog">
  <h3>Additional questions</h3>
  <fieldset>
    <legend>Will you now or in the future require visa sponsorship?</legend>
    <input type="radio" name="visa" id="visa-yes"><label for="visa-yes">Yes</label>
    <input type="radio" name="visa" id="visa-no"><label for="visa-no">No</label>
  </fieldset>
  <label for="why">Why do you want to work here?</label><input type="text" id="why">
  <label for="country">Country</label>
  <select id="country"><option>Select an option</option><option>Canada</option><option>United States</option></select>
  <input type="file" name="resume">
  <button aria-label="Review your application" data-goto="review">Review</button>
</div>
"""

REVIEW = """
<div class="jobs-easy-apply-modal" role="dialog">
  <h3>Review your application</h3>
  <button aria-label="Submit application" data-goto="done">Submit application</button>
</div>
"""

DONE = "<div><h2>Application sent</h2><p>Your application was sent to Acme.</p></div>"

LOOP = """
<div class="jobs-easy-apply-modal" role="dialog">
  <h3>Screening</h3>
  <button data-goto="loop">Next</button>
</div>
"""

DEAD_END = """
<div class="jobs-easy-apply-modal" role="dialog">
  <h3>Something new</h3>
  <button>Cancel</button>
</div>
"""

KEYBOARD_ONLY = """
<div class="jobs-easy-apply-modal" role="dialog">
  <h3>Contact info</h3>
  <button data-goto="review" class="artdeco-button">Next</button>
</div>
"""

PAGES = {
    "contact": CONTACT,
    "questions": QUESTIONS,
    "review": REVIEW,
    "done": DONE,
    "loop": LOOP,
    "dead_end": DEAD_END,
    "keyboard": KEYBOARD_ONLY,
}


def _navigate(surface, element):
    page = element.attr("data-goto")
    if page:
        surface.load(PAGES[page])


def make_surface(first_step: str = "contact") -> HtmlSurface:
    job_page = JOB_PAGE.replace('data-goto="contact"', f'data-goto="{first_step}"')
    return HtmlSurface(pages={JOB_URL: job_page}, on_click=_navigate)


@pytest.fixture
def job() -> Job:
    return Job(id="4242", title="Platform Engineer", company="Acme", location="Remote", url=JOB_URL)


@pytest.fixture
def applicant(tmp_path) -> ApplicantProfile:
    resume = tmp_path / "resume.pdf"
    resume.write_bytes(b"%PDF-1.4")
    return ApplicantProfile(
        phone="+1 555 0100",
        email="me@example.com",
        country="United States",
        resume_path=str(resume),
        resume_text="Ten years of Python.",
    )


def make_engine(surface, resolver, targets, **kw) -> EasyApplyEngine:
    kw.setdefault("button_timeout", 1.0)
    return EasyApplyEngine(surface, resolver, targets, Actuator(NoDelay()), **kw)


def test_without_auto_submit_stops_at_review(resolver, targets, job, applicant):
    surface = make_surface()
    result = make_engine(surface, resolver, targets).apply(job, applicant)

    assert result.outcome is ApplyOutcome.ABANDONED_FOR_REVIEW
    assert result.reason == REVIEW_REASON
    assert not result.success
    assert result.review_ready
    assert not any(c.attr("aria-label") == "Submit application" for c in surface.clicks)
    assert result.trace[:3] == ["search_results_loaded", "job_page_loaded", "apply_modal_open"]
    assert result.trace[-2:] == ["review_step", "abandoned_for_review"]


def test_auto_submit_submits(resolver, targets, job, applicant):
    surface = make_surface()
    result = make_engine(surface, resolver, targets, auto_submit=True).apply(job, applicant)

    assert result.outcome is ApplyOutcome.SUBMITTED
    assert result.success
    assert surface.clicks[-1].attr("aria-label") == "Submit application"
    assert result.steps == 2


def test_fills_known_fields(resolver, targets, job, applicant):
    surface = make_surface()
    filled: dict[str, str] = {}

    def record(s, el):
        # snapshot the form before the click replaces the page
        for field in s.query_all("input, select"):
            ident = field.attr("id")
            if ident:
                filled[ident] = field.selected() if field.tag == "select" else field.value()
            if field.attr("type") == "radio" and field.is_checked():
                filled["radio"] = ident
        _navigate(s, el)

    surface.on_click = record
    answerer_llm = FakeLLM('{"answer": "I like building platforms."}')

    make_engine(surface, resolver, targets, answerer=QuestionAnswerer(answerer_llm)).apply(job, applicant)

    assert filled["phone"] == "+1 555 0100"
    assert filled["mail"] == "me@example.com"
    assert filled["radio"] == "visa-no"
    assert filled["why"] == "I like building platforms."
    assert filled["country"] == "United States"


def test_resume_uploaded_once(resolver, targets, job, applicant):
    surface = make_surface()
    make_engine(surface, resolver, targets).apply(job, applicant)
    assert surface.uploads == [applicant.resume_path]


def test_missing_resume_file_is_not_uploaded(resolver, targets, job, applicant, tmp_path):
    surface = make_surface()
    applicant = replace(applicant, resume_path=str(tmp_path / "gone.pdf"))
    make_engine(surface, resolver, targets).apply(job, applicant)
    assert surface.uploads == []


def test_step_budget_exceeded(resolver, targets, job, applicant):
    surface = make_surface("loop")
    result = make_engine(surface, resolver, targets, max_steps=3).apply(job, applicant)

    assert result.outcome is ApplyOutcome.FAILED
    assert result.reason == BUDGET_REASON
    assert result.steps == 3
    assert result.trace.count("form_step:3") == 1


def test_no_next_or_submit_fails(resolver, targets, job, applicant):
    surface = make_surface("dead_end")
    result = make_engine(surface, resolver, targets, auto_submit=True).apply(job, applicant)

    assert result.outcome is ApplyOutcome.FAILED
    assert result.reason == NO_BUTTON_REASON


def test_no_easy_apply_button(resolver, targets, job, applicant):
    surface = HtmlSurface(pages={JOB_URL: "<h1>Apply on company site</h1>"})
    result = make_engine(surface, resolver, targets).apply(job, applicant)
    assert result.outcome is ApplyOutcome.FAILED
    assert "Easy Apply" in result.reason


def test_keyboard_fallback_for_next(resolver, targets, job, applicant):
    surface = make_surface("keyboard")
    blind = dict(targets, next_button=Target("next_button", (CssFinder("button.never-there"),)))
    result = make_engine(surface, resolver, blind).apply(job, applicant)

    assert "Tab" in surface.keys
    assert "Enter" in surface.keys
    assert result.outcome is ApplyOutcome.ABANDONED_FOR_REVIEW


def test_failing_click_is_failed_not_raised(resolver, targets, job, applicant):
    def boom(surface, element):
        raise RuntimeError("page crashed")

    surface = HtmlSurface(pages={JOB_URL: JOB_PAGE}, on_click=boom)
    result = make_engine(surface, resolver, targets).apply(job, applicant)
    assert result.outcome is ApplyOutcome.FAILED


class TestAnswerPolicy:
    def test_sponsorship_checked_before_authorization(self):
        policy = AnswerPolicy()
        applicant = ApplicantProfile()
        assert policy.radio_choice("Are you legally authorized to work without sponsorship?", applicant) == "no"
        assert policy.radio_choice("Are you legally authorized to work in the US?", applicant) == "yes"

    def test_text_rules_use_applicant_fields(self):
        policy = AnswerPolicy()
        applicant = ApplicantProfile(city="Austin", years_experience="6")
        assert policy.text_value("City", applicant) == "Austin"
        assert policy.text_value("Country of citizenship", applicant) is None
        assert policy.text_value("Years of experience with Python", applicant) == "6"

    def test_user_rules_go_first(self):
        policy = AnswerPolicy.from_settings({
            "text": [{"any": ["salary"], "answer": "150000"}],
            "radio": [{"any": "visa", "answer": "yes"}],
        })
        applicant = ApplicantProfile()
        assert policy.text_value("Desired salary", applicant) == "150000"
        assert policy.radio_choice("Do you hold a visa?", applicant) == "yes"
        assert policy.radio_choice("Will you require sponsorship?", applicant) == "no"

    def test_unknown_kind_is_ignored(self):
        policy = AnswerPolicy.from_settings({"checkbox": [{"any": ["x"], "answer": "y"}]})
        assert "checkbox" not in policy.rules

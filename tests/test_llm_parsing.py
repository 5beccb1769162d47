from __future__ import annotations

import json

import pytest

from autopilot.errors import LLMResponseError
from autopilot.llm import complete_json, extract_json
from autopilot.matcher import JobMatcher
from autopilot.models import Job, Message, SearchCriteria
from autopilot.qa import QuestionAnswerer
from autopilot.voice import CATEGORY_HINTS, GENERIC_REPLIES, VoiceLearner

from conftest import FakeLLM

MATCH = {"matchScore": 82, "isGoodMatch": True, "reasoning": "Strong fit.", "recommendation": "Apply"}
PROFILE = {
    "summary": "Short, warm and direct.",
    "tone": "casual",
    "commonPhrases": ["sounds good", "cheers"],
    "exampleResponses": {"thanks": "Cheers!"},
}


def fenced(data) -> str:
    return f"Here you go:\n```json\n{json.dumps(data)}\n```\nLet me know!"


def raw(data) -> str:
    return json.dumps(data)


MALFORMED = [
    "Sure! The score is 82.",
    '```json\n{"matchScore": 82,\n```',
    "",
]


class TestExtractJson:
    def test_raw(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_fenced(self):
        assert extract_json('```json\n{"a": [1, 2]}\n```') == {"a": [1, 2]}

    def test_fence_without_language(self):
        assert extract_json("```\n[1]\n```") == [1]

    @pytest.mark.parametrize("text", MALFORMED)
    def test_malformed_raises(self, text):
        with pytest.raises(LLMResponseError):
            extract_json(text)

    def test_complete_json_passes_settings(self):
        llm = FakeLLM('{"ok": true}')
        assert complete_json(llm, "sys", "user") == {"ok": True}
        assert llm.calls == [("sys", "user")]


@pytest.fixture
def job() -> Job:
    return Job(id="1", title="Backend Engineer", company="Acme", location="Remote",
               url="https://www.linkedin.com/jobs/view/1/", description="Python, Postgres")


class TestMatcher:
    @pytest.mark.parametrize("wrap", [fenced, raw])
    def test_parses_score(self, wrap, job):
        matcher = JobMatcher(FakeLLM(wrap(MATCH)), SearchCriteria())
        result = matcher.analyze(job, min_score=60)
        assert result.score == 82
        assert result.is_match
        assert result.recommendation == "apply"

    def test_threshold_decides_match(self, job):
        matcher = JobMatcher(FakeLLM(raw({**MATCH, "matchScore": 40, "isGoodMatch": True})), SearchCriteria())
        assert not matcher.analyze(job, min_score=60).is_match

    @pytest.mark.parametrize("text", MALFORMED + ['{"reasoning": "no score"}'])
    def test_malformed_falls_back_to_apply(self, text, job):
        result = JobMatcher(FakeLLM(text), SearchCriteria()).analyze(job)
        assert (result.score, result.is_match, result.recommendation) == (50, True, "maybe")

    def test_transport_error_falls_back(self, job):
        result = JobMatcher(FakeLLM(ConnectionError("down")), SearchCriteria()).analyze(job)
        assert result.score == 50

    def test_filter_jobs_keeps_matches_best_first(self):
        jobs = [Job(id=str(i), title=f"Job {i}", company="Acme", location="", url=f"u{i}") for i in range(3)]
        llm = FakeLLM(raw({**MATCH, "matchScore": 65}), raw({**MATCH, "matchScore": 20}), raw({**MATCH, "matchScore": 90}))
        kept = JobMatcher(llm, SearchCriteria()).filter_jobs(jobs, min_score=60)
        assert [j.id for j in kept] == ["2", "0"]
        assert jobs[1].match.score == 20


class TestVoice:
    def messages(self, n: int = 6) -> list[Message]:
        return [Message(sender="You", content=f"Thanks for reaching out, message {i}", is_outgoing=True)
                for i in range(n)]

    @pytest.mark.parametrize("wrap", [fenced, raw])
    def test_profile_parsed_and_saved(self, wrap, paths):
        learner = VoiceLearner(FakeLLM(wrap(PROFILE)), paths)
        profile = learner.analyze_voice(self.messages())
        assert profile is not None
        assert profile.common_phrases == ["sounds good", "cheers"]
        assert profile.message_count == 6

        reloaded = VoiceLearner(FakeLLM(), paths).load()
        assert reloaded.profile.summary == PROFILE["summary"]

    @pytest.mark.parametrize("text", MALFORMED + ['{"tone": "casual"}'])
    def test_malformed_keeps_existing_profile(self, text, paths):
        VoiceLearner(FakeLLM(raw(PROFILE)), paths).analyze_voice(self.messages())

        learner = VoiceLearner(FakeLLM(text), paths).load()
        assert learner.analyze_voice(self.messages()) is None
        assert learner.profile.summary == PROFILE["summary"]
        assert VoiceLearner(FakeLLM(), paths).load().profile.summary == PROFILE["summary"]

    def test_too_few_messages_never_calls_model(self, paths):
        llm = FakeLLM()
        assert VoiceLearner(llm, paths).analyze_voice(self.messages(4)) is None
        assert llm.calls == []

    def test_manual_messages(self, paths):
        learner = VoiceLearner(FakeLLM(raw(PROFILE)), paths)
        learner.manual_path.write_text(json.dumps(
            ["Sounds good, talk soon", {"content": "Cheers, will do"}, "Happy to help!", "ok", "Let me check and revert"]
        ), encoding="utf-8")
        profile = learner.analyze_manual_messages()
        assert profile is not None
        assert profile.message_count == 4

    def test_reply_without_profile_is_generic(self, paths):
        llm = FakeLLM()
        assert VoiceLearner(llm, paths).load().generate_reply("Hi!") in GENERIC_REPLIES
        assert llm.calls == []

    def test_reply_failure_is_generic(self, paths):
        VoiceLearner(FakeLLM(raw(PROFILE)), paths).analyze_voice(self.messages())
        learner = VoiceLearner(FakeLLM(TimeoutError("slow")), paths).load()
        assert learner.generate_reply("Hi!") in GENERIC_REPLIES

    def test_reply_uses_recent_context(self, paths):
        VoiceLearner(FakeLLM(raw(PROFILE)), paths).analyze_voice(self.messages())
        llm = FakeLLM("Cheers, sounds good!")
        learner = VoiceLearner(llm, paths).load()
        context = [Message(sender="Ana", content=f"line {i}") for i in range(8)]
        assert learner.generate_reply("Coffee next week?", context, "Ana") == "Cheers, sounds good!"
        prompt = llm.calls[0][1]
        assert "line 7" in prompt and "line 3" in prompt
        assert "line 2" not in prompt

    def test_sales_pitch_gets_brief_polite_hint(self, paths):
        VoiceLearner(FakeLLM(raw(PROFILE)), paths).analyze_voice(self.messages())
        llm = FakeLLM("Thanks, not for me right now.")
        learner = VoiceLearner(llm, paths).load()
        reply = learner.compose_reply("Book a demo of our platform this week!", [], "Vendor")
        assert reply == "Thanks, not for me right now."
        assert CATEGORY_HINTS["sales-pitch"] in llm.calls[0][1]

    def test_ordinary_message_uses_voice_prompt(self, paths):
        VoiceLearner(FakeLLM(raw(PROFILE)), paths).analyze_voice(self.messages())
        llm = FakeLLM("Cheers!")
        learner = VoiceLearner(llm, paths).load()
        assert learner.compose_reply("Congrats on the new role", [], "Ana") == "Cheers!"
        assert "CONTEXT:" not in llm.calls[0][1]
        assert "Ana" in llm.calls[0][1]

    def test_categorized_reply_without_profile_is_generic(self, paths):
        llm = FakeLLM()
        learner = VoiceLearner(llm, paths).load()
        assert learner.compose_reply("Limited time discount!") in GENERIC_REPLIES
        assert llm.calls == []


class TestQuestionAnswerer:
    @pytest.mark.parametrize("wrap", [fenced, raw])
    def test_parses_answer(self, wrap):
        qa = QuestionAnswerer(FakeLLM(wrap({"answer": "I enjoy distributed systems."})))
        assert qa.answer("Why this role?") == "I enjoy distributed systems."

    def test_numeric_answer(self):
        assert QuestionAnswerer(FakeLLM('{"answer": 5}')).answer("How many years of Go?") == "5"

    @pytest.mark.parametrize("text", MALFORMED + ['{"reply": "wrong key"}', "[1, 2]"])
    def test_malformed_leaves_blank(self, text):
        assert QuestionAnswerer(FakeLLM(text)).answer("Why this role?") == ""

    def test_answer_is_clipped(self):
        qa = QuestionAnswerer(FakeLLM(json.dumps({"answer": "x" * 900})), max_chars=100)
        assert len(qa.answer("Describe yourself")) == 100

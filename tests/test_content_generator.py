import json
from unittest.mock import MagicMock, patch

import httpx
import pytest
from groq import APIConnectionError, APIStatusError, APITimeoutError, AuthenticationError, RateLimitError

from career_pilot.agents import content_generator
from career_pilot.agents.content_generator import (
    ContentGenerator,
    InterviewPrepAgent,
    ProjectIdeasAgent,
    SkillValidationAgent,
    attempt_timeout,
    call_llm,
    extract_json,
    get_client,
)
from career_pilot.config import Settings
from career_pilot.errors import (
    GenerationFailed,
    GenerationTimeout,
    InvalidResponseShape,
    QuotaExhausted,
    RateLimited,
)

REQUEST = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")


def _status_error(cls, code):
    return cls(f"error {code}", response=httpx.Response(code, request=REQUEST), body=None)


def _answer(payload):
    """An llm callable that always answers with `payload`."""
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return lambda system, user, max_tokens: text


class TestExtractJson:

    def test_plain(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_markdown_fence(self):
        assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_prose_around_object(self):
        assert extract_json('Sure! Here it is: {"a": [1, 2]} Good luck.') == {"a": [1, 2]}

    def test_bare_list(self):
        assert extract_json('Ideas:\n[{"title": "x"}]') == [{"title": "x"}]

    def test_list_before_object(self):
        assert extract_json('[{"a": 1}, {"b": 2}]') == [{"a": 1}, {"b": 2}]

    def test_object_holding_a_list(self):
        assert extract_json('Result: {"ideas": [{"title": "x"}]}') == {"ideas": [{"title": "x"}]}

    def test_garbage(self):
        with pytest.raises(ValueError):
            extract_json("I cannot help with that.")


class TestJsonAgent:

    def test_valid_answer(self):
        agent = SkillValidationAgent(_answer({
            "role": "Data Analyst", "readiness_score": 55, "missing_skills": ["SQL"],
        }))
        artifact = agent.run({"role": "Data Analyst", "skills": ["Excel"]})
        assert artifact.readiness_score == 55
        assert artifact.missing_skills == ["SQL"]

    def test_prompt_carries_context(self):
        llm = MagicMock(return_value='{"role": "Dev", "readiness_score": 10}')
        SkillValidationAgent(llm).run({"role": "Dev", "skills": ["Go", "Rust"]})

        system, user, max_tokens = llm.call_args[0]
        assert "Go, Rust" in user
        assert "valid JSON" in system
        assert max_tokens == SkillValidationAgent.max_tokens

    def test_not_json(self):
        agent = InterviewPrepAgent(_answer("Let me think about that..."))
        with pytest.raises(InvalidResponseShape) as info:
            agent.run({"job": {"job_title": "Dev"}})
        assert info.value.action == "interview_prep"
        assert info.value.raw.startswith("Let me think")

    def test_wrong_shape(self):
        agent = SkillValidationAgent(_answer({"role": "Dev", "readiness_score": 250}))
        with pytest.raises(InvalidResponseShape):
            agent.run({"role": "Dev"})

    def test_project_ideas_accepts_bare_list(self):
        agent = ProjectIdeasAgent(_answer([{"title": "Tracker", "description": "d"}]))
        artifact = agent.run({"role": "Dev"})
        assert [idea.title for idea in artifact.ideas] == ["Tracker"]

    def test_project_ideas_list_after_prose(self):
        agent = ProjectIdeasAgent(_answer('Here are two ideas:\n[{"title": "Tracker"}, {"title": "Budgeter"}]'))
        artifact = agent.run({"role": "Dev"})
        assert [idea.title for idea in artifact.ideas] == ["Tracker", "Budgeter"]


class TestContentGenerator:

    def test_dispatches_by_action(self):
        generator = ContentGenerator(_answer({"jobs": []}))
        assert generator.generate("job_matching", {"career_role": "Dev"}).jobs == []

    def test_unknown_action(self):
        with pytest.raises(ValueError):
            ContentGenerator(_answer("{}")).generate("teleport", {})


class TestCallLlm:

    @pytest.fixture
    def client(self):
        client = MagicMock()
        with patch.object(content_generator, "get_client", return_value=client):
            yield client

    def test_returns_stripped_content(self, client):
        client.chat.completions.create.return_value.choices = [
            MagicMock(message=MagicMock(content='  {"ok": true}\n'))
        ]
        assert call_llm("system", "user") == '{"ok": true}'

    @pytest.mark.parametrize("error, expected", [
        (_status_error(RateLimitError, 429), RateLimited),
        (_status_error(AuthenticationError, 401), GenerationFailed),
        (_status_error(APIStatusError, 402), QuotaExhausted),
        (_status_error(APIStatusError, 500), GenerationFailed),
        (APITimeoutError(request=REQUEST), GenerationTimeout),
        (APIConnectionError(request=REQUEST), GenerationFailed),
    ])
    def test_gateway_errors(self, client, error, expected):
        client.chat.completions.create.side_effect = error
        with pytest.raises(expected):
            call_llm("system", "user")

    def test_rate_limit_is_a_generation_failure(self, client):
        client.chat.completions.create.side_effect = _status_error(RateLimitError, 429)
        with pytest.raises(GenerationFailed):
            call_llm("system", "user")


def test_missing_api_key(monkeypatch):
    monkeypatch.setattr(content_generator, "_client", None)
    with pytest.raises(GenerationFailed):
        get_client(Settings(groq_api_key=""))


def test_client_timeout_covers_every_attempt(monkeypatch):
    monkeypatch.setattr(content_generator, "_client", None)
    with patch.object(content_generator, "Groq") as groq:
        get_client(Settings(groq_api_key="k", llm_timeout_seconds=60, llm_max_retries=1))

    kwargs = groq.call_args.kwargs
    assert kwargs["max_retries"] == 1
    assert kwargs["timeout"] * (kwargs["max_retries"] + 1) == 60


def test_attempt_timeout_without_retries():
    assert attempt_timeout(Settings(llm_timeout_seconds=60, llm_max_retries=0)) == 60
    assert attempt_timeout(Settings(llm_timeout_seconds=60, llm_max_retries=2)) == 20

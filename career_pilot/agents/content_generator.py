"""
╔══════════════════════════════════════════════════════════════════╗
║           CAREER PILOT CONTENT GENERATOR                        ║
║           Powered by Groq (openai/gpt-oss-120b)                ║
╚══════════════════════════════════════════════════════════════════╝

Architecture:
  ContentGenerator → picks the agent for an orchestrator action
  ├── CareerAnalysisAgent    → short / mid / long term roles
  ├── SkillValidationAgent   → readiness score + skill gaps for a role
  ├── LearningPlanAgent      → learning steps + courses for one skill
  ├── ProjectIdeasAgent      → portfolio project ideas
  ├── ProjectPlanAgent       → timeline, kanban board, tasks, resources
  ├── ProjectBuildAgent      → build phases with tasks
  ├── ResumeUpgradeAgent     → resume tailored to a target role
  ├── JobMatchingAgent       → job recommendations
  └── InterviewPrepAgent     → questions, alignment, checklist

Every agent sends one JSON-only prompt through call_llm() and validates the
parsed answer against its artifact model.
"""

import json
import logging
import re
from typing import Any, Callable, Dict, Optional

from groq import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError,
    Groq,
    GroqError,
    RateLimitError,
)
from pydantic import ValidationError

from career_pilot.agents.artifacts import ARTIFACT_MODELS, Artifact
from career_pilot.config import Settings, get_settings
from career_pilot.errors import (
    GenerationFailed,
    GenerationTimeout,
    InvalidResponseShape,
    QuotaExhausted,
    RateLimited,
)

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════
#  GROQ CLIENT + SHARED LLM CALL
# ═══════════════════════════════════════════════════════════════════

API_ENV_VAR = "GROQ_API_KEY"

_client: Optional[Groq] = None

JSON_ONLY = "Return ONLY valid JSON. No prose, no markdown fences."


def attempt_timeout(settings: Settings) -> float:
    """
    Per-request timeout for the Groq client.

    The client retries a timed-out request up to llm_max_retries times, so
    LLM_TIMEOUT_SECONDS is split across all attempts and the whole call
    stays within it (retry backoff aside).
    """
    return settings.llm_timeout_seconds / (settings.llm_max_retries + 1)


def get_client(settings: Optional[Settings] = None) -> Groq:
    """Lazily initialize and return the shared Groq client."""
    global _client
    if _client is None:
        settings = settings or get_settings()
        if not settings.groq_api_key:
            raise GenerationFailed(
                f"Missing {API_ENV_VAR}. Set it in .env file or as environment variable."
            )
        _client = Groq(
            api_key=settings.groq_api_key,
            timeout=attempt_timeout(settings),
            max_retries=settings.llm_max_retries,
        )
    return _client


def call_llm(system_prompt: str, user_prompt: str, max_tokens: int = 2048) -> str:
    """
    Central function for ALL LLM calls in the system.
    Every agent must use this, no direct Groq calls elsewhere.

    Returns the raw string content from the model. Gateway errors come
    back as GenerationFailed subclasses.
    """
    settings = get_settings()
    client = get_client(settings)
    try:
        response = client.chat.completions.create(
            model=settings.llm_model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_completion_tokens=max_tokens,
            stream=False,
        )
    except RateLimitError as exc:
        raise RateLimited("Rate limits exceeded, please try again later.") from exc
    except AuthenticationError as exc:
        raise GenerationFailed(
            f"Groq authentication failed. Check {API_ENV_VAR} and use a valid key."
        ) from exc
    except APITimeoutError as exc:
        raise GenerationTimeout(
            f"LLM did not answer within {settings.llm_timeout_seconds:g}s"
        ) from exc
    except APIStatusError as exc:
        if exc.status_code == 402:
            raise QuotaExhausted("AI credits exhausted. Please add credits to continue.") from exc
        raise GenerationFailed(f"LLM gateway error ({exc.status_code})") from exc
    except (APIConnectionError, GroqError) as exc:
        raise GenerationFailed(f"LLM gateway unreachable: {exc}") from exc

    content = response.choices[0].message.content if response.choices else None
    return (content or "").strip()


def extract_json(raw: str) -> Any:
    """
    Robustly parse JSON from a model response that may contain
    markdown fences, prose preambles, or trailing text.
    """
    # Strip markdown fences
    cleaned = re.sub(r"^```(?:json)?\s*", "", raw.strip(), flags=re.IGNORECASE)
    cleaned = re.sub(r"\s*```$", "", cleaned.strip())

    # Direct parse first
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # Outermost block of whichever bracket opens first
    patterns = [r"\{.*\}", r"\[.*\]"]
    if 0 <= cleaned.find("[") < cleaned.find("{") or "{" not in cleaned:
        patterns.reverse()
    for pattern in patterns:
        match = re.search(pattern, cleaned, re.DOTALL)
        if match:
            try:
                return json.loads(match.group())
            except json.JSONDecodeError:
                continue

    raise ValueError(f"Could not extract valid JSON from LLM response:\n{raw[:500]}")


# ═══════════════════════════════════════════════════════════════════
#  AGENTS
# ═══════════════════════════════════════════════════════════════════

class JsonAgent:
    """
    One prompt, one artifact.

    Subclasses set `action`, `system` and `max_tokens` and build the user
    prompt from the orchestrator context in `prompt()`.
    """

    action = ""
    system = ""
    max_tokens = 2048
    # schema sketch shown to the model
    schema: Dict[str, Any] = {}

    def __init__(self, llm: Callable[[str, str, int], str] = None):
        self.name = type(self).__name__
        self.llm = llm or call_llm

    def prompt(self, ctx: Dict[str, Any]) -> str:
        raise NotImplementedError

    def shape(self, parsed: Any) -> Any:
        """Hook for agents whose model answers in a slightly different wrapper."""
        return parsed

    def run(self, input_data: Dict[str, Any]) -> Artifact:
        user = (
            f"{self.prompt(input_data)}\n\n"
            f"Return this exact JSON structure:\n{json.dumps(self.schema, indent=2)}"
        )
        raw = self.llm(f"{self.system} {JSON_ONLY}", user, self.max_tokens)
        try:
            parsed = extract_json(raw)
        except ValueError as exc:
            raise InvalidResponseShape(self.action, "response is not JSON", raw) from exc
        try:
            return ARTIFACT_MODELS[self.action].model_validate(self.shape(parsed))
        except ValidationError as exc:
            raise InvalidResponseShape(
                self.action, f"{exc.error_count()} field error(s)", raw
            ) from exc


class CareerAnalysisAgent(JsonAgent):
    action = "career_analysis"
    system = "You are an expert career advisor who plans realistic career paths."
    max_tokens = 2000
    schema = {
        "roles": [
            {"role": "<Specific Job Title>", "term": "short", "domain": "<Industry>",
             "match_score": "<int 0-100>", "salary_range": "<e.g. 6-10 LPA>",
             "why_fit": "<2-3 sentences>", "top_skills": ["<skill>"]},
            {"role": "<Specific Job Title>", "term": "mid", "...": "..."},
            {"role": "<Specific Job Title (THE GOAL)>", "term": "long", "...": "..."},
        ],
        "career_summary": "<2-3 sentences>",
        "total_timeline": "<e.g. Estimated 3-5 years>",
    }

    def prompt(self, ctx):
        return (
            f"Career goal: {ctx.get('goal') or 'Not specified'}\n"
            f"Profile:\n{json.dumps(ctx.get('profile') or {}, indent=2, default=str)}\n\n"
            "Recommend exactly one short-term (0-1 year), one mid-term (1-3 years) "
            "and one long-term (3-5 years) role that build toward the goal."
        )


class SkillValidationAgent(JsonAgent):
    action = "skill_validation"
    system = "You are a technical hiring manager who assesses skill readiness."
    max_tokens = 1500
    schema = {
        "role": "<target role>",
        "domain": "<domain>",
        "readiness_score": "<int 0-100>",
        "matched_skills": {"strong": ["<skill>"], "partial": ["<skill>"]},
        "missing_skills": ["<skill>"],
        "recommendation": "<one paragraph>",
    }

    def prompt(self, ctx):
        return (
            f"Target role: {ctx['role']}\n"
            f"Domain: {ctx.get('domain') or 'Technology'}\n"
            f"Candidate skills: {', '.join(ctx.get('skills') or []) or 'Not provided'}\n\n"
            "Compare the candidate with what the role requires."
        )


class LearningPlanAgent(JsonAgent):
    action = "learning_plan"
    system = "You are a learning designer who writes short, practical study plans."
    max_tokens = 2000
    schema = {
        "skill_name": "<skill>",
        "career_title": "<role>",
        "learning_steps": [{"title": "<step>", "duration": "<e.g. 1 week>", "resources": ["<link>"]}],
        "recommended_courses": [{"title": "<course>", "platform": "<platform>", "url": "<url>"}],
        "certification_links": [],
    }

    def prompt(self, ctx):
        return (
            f"Career: {ctx.get('career_title') or 'Software Developer'}\n"
            f"Skill to learn: {ctx['skill']}\n"
            f"Current level: {ctx.get('current_level', 'beginner')}\n"
            f"Required level: {ctx.get('required_level', 'intermediate')}\n\n"
            "Write 4-6 ordered learning steps and 2-4 recommended courses."
        )


class ProjectIdeasAgent(JsonAgent):
    action = "project_ideas"
    system = "You are a mentor who suggests portfolio projects."
    max_tokens = 1500
    schema = {"ideas": [{"title": "<title>", "description": "<2 sentences>", "problem": "<problem solved>"}]}

    def prompt(self, ctx):
        return (
            f"Generate 3 project ideas for a {ctx.get('role') or 'Software Developer'} "
            f"in {ctx.get('domain') or 'Technology'} utilizing {ctx.get('skill') or 'Programming'}."
        )

    def shape(self, parsed):
        # a bare list of ideas is accepted too
        return {"ideas": parsed} if isinstance(parsed, list) else parsed


class ProjectPlanAgent(JsonAgent):
    action = "project_plan"
    system = "You are a project planning expert."
    max_tokens = 3000
    schema = {
        "timeline": [{"week": 1, "milestone": "<milestone>", "tasks": ["<task>"]}],
        "kanban_board": {"todo": ["<task>"], "in_progress": [], "done": []},
        "tasks": [{"title": "<task>", "description": "<desc>", "priority": "high|medium|low", "estimated_hours": 4}],
        "resources": [{"type": "software", "name": "<name>", "description": "<desc>", "unit_cost": 0}],
    }

    def prompt(self, ctx):
        return (
            f"Project: {ctx.get('title')}\n"
            f"Problem: {ctx.get('problem') or 'Not specified'}\n"
            f"Description: {ctx.get('description') or 'Not specified'}\n\n"
            "Include 4-6 timeline entries, 8-12 tasks, and 4-6 resources."
        )


class ProjectBuildAgent(JsonAgent):
    action = "project_build"
    system = "You are a senior engineer guiding a junior developer through a build."
    max_tokens = 3000
    schema = {
        "phases": [{
            "phase_number": 1,
            "title": "<phase>",
            "description": "<what happens>",
            "tasks": [{"id": "1-1", "title": "<task>", "description": "<desc>",
                       "type": "setup|code|design|test|deploy", "estimated_time": "30 mins",
                       "is_completed": False, "guidance": "<steps>"}],
            "is_completed": False,
        }]
    }

    def prompt(self, ctx):
        return (
            f"Project: {ctx.get('title')}\n"
            f"Plan:\n{json.dumps(ctx.get('plan') or {}, indent=2, default=str)[:3000]}\n\n"
            "Break the build into 4-6 phases with 2-4 tasks each."
        )


class ResumeUpgradeAgent(JsonAgent):
    action = "resume_upgrade"
    system = "You are a professional resume writer."
    max_tokens = 3000
    schema = {
        "header": {"name": "<name>", "title": "<title>", "contact": {}},
        "summary": "<3-4 sentences>",
        "skills": {"technical": ["<skill>"], "tools": ["<tool>"], "domain": ["<domain>"]},
        "work_experience": [{"title": "<title>", "company": "<company>", "duration": "<dates>", "achievements": ["<bullet>"]}],
        "projects": [{"title": "<name>", "description": "<desc>", "technologies": ["<tech>"]}],
        "education": [{"degree": "<degree>", "institution": "<institution>", "year": "<year>"}],
        "certifications": [{"name": "<name>", "issuer": "<issuer>", "year": "<year>"}],
    }

    def prompt(self, ctx):
        return (
            f"Target role: {ctx['target_role']}\n"
            f"Current resume:\n{json.dumps(ctx.get('resume') or {}, indent=2, default=str)}\n\n"
            "Rewrite the resume for the target role. Keep facts, improve wording."
        )


class JobMatchingAgent(JsonAgent):
    action = "job_matching"
    system = "You are a recruiter who matches candidates to open roles."
    max_tokens = 2500
    schema = {
        "jobs": [{
            "job_title": "<title>", "company_name": "<company>", "location": "<City or Remote>",
            "job_description": "<2-3 sentences>", "required_skills": ["<skill>"],
            "relevance_score": 85, "job_link": "<url>",
        }]
    }

    def prompt(self, ctx):
        return (
            f"Career role: {ctx['career_role']}\n"
            f"Domain: {ctx.get('domain') or 'Technology'}\n"
            f"Skill tags: {', '.join(ctx.get('skill_tags') or [])}\n\n"
            "Recommend 5-8 realistic job openings."
        )


class InterviewPrepAgent(JsonAgent):
    action = "interview_prep"
    system = "You are an expert interview coach."
    max_tokens = 4000
    schema = {
        "job_analysis": {"key_requirements": ["<req>"], "interview_format_prediction": "<format>",
                         "difficulty_level": "medium"},
        "interview_questions": {
            "technical": [{"question": "<q>", "sample_answer": "<a>", "tips": "<tip>"}],
            "behavioral": [{"question": "<q>", "sample_answer": "<a>", "tips": "<tip>"}],
            "company_specific": [{"question": "<q>", "sample_answer": "<a>", "tips": "<tip>"}],
        },
        "resume_alignment": {"strengths": ["<s>"], "gaps": ["<g>"], "talking_points": ["<p>"]},
        "preparation_checklist": [{"task": "<task>", "priority": "high", "completed": False}],
        "readiness_score": 70,
    }

    def prompt(self, ctx):
        job = ctx.get("job") or {}
        return (
            f"Job title: {job.get('job_title') or 'Software Developer'}\n"
            f"Company: {job.get('company_name') or 'Tech Company'}\n"
            f"Required skills: {json.dumps(job.get('required_skills') or [])}\n"
            f"Candidate resume:\n{json.dumps(ctx.get('resume') or {}, indent=2, default=str)}\n\n"
            "Include 3-4 questions in each category."
        )


AGENTS = [
    CareerAnalysisAgent,
    SkillValidationAgent,
    LearningPlanAgent,
    ProjectIdeasAgent,
    ProjectPlanAgent,
    ProjectBuildAgent,
    ResumeUpgradeAgent,
    JobMatchingAgent,
    InterviewPrepAgent,
]


class ContentGenerator:
    """generate(action, context) -> validated artifact for that action."""

    def __init__(self, llm: Callable[[str, str, int], str] = None):
        self.agents: Dict[str, JsonAgent] = {cls.action: cls(llm) for cls in AGENTS}

    def generate(self, action: str, context: Dict[str, Any]) -> Artifact:
        if action not in self.agents:
            raise ValueError(f"No content agent for action '{action}'")
        agent = self.agents[action]
        logger.info("[LLM] %s generating %s", agent.name, action)
        return agent.run(context)

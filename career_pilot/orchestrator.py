"""
orchestrator.py
===============
Runs one journey action for one user:

  1. validate the upstream artifact     (PrecursorMissing)
  2. generate content                   (GenerationFailed family)
  3. persist the artifact by upsert  ┐  one Store.commit_step unit
  4. flip the action's journey flag  ┘  (PersistenceFailed)

A failure in 1-3 leaves the flag untouched. An InvalidResponseShape from
the generator is replaced by the action's fallback artifact. Results are
always returned as AgentExecutionResult, never raised.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from career_pilot.agents.artifacts import Artifact
from career_pilot.agents.fallbacks import fallback_artifact
from career_pilot.database.schemas import (
    ActionRequest,
    AgentExecutionResult,
    CareerAdviceRecord,
    ProjectPlanRecord,
    SkillValidationRecord,
)
from career_pilot.database.store import (
    CAREER_ADVICE,
    CERTIFICATIONS,
    EDUCATION_DETAILS,
    EXPERIENCE_DETAILS,
    INTERVIEW_PREPARATION,
    JOB_RECOMMENDATIONS,
    LEARNING_JOURNEY,
    PROJECT_BUILD_STEPS,
    PROJECT_DETAIL,
    PROJECT_IDEAS,
    RESUME_ANALYSIS,
    RESUME_VERSIONS,
    SKILL_VALIDATIONS,
    UPSERT_KEYS,
    USERS_PROFILE,
    Store,
    StoreWrite,
)
from career_pilot.errors import (
    ActionInProgress,
    CareerPilotError,
    InvalidResponseShape,
    PersistenceFailed,
    PrecursorMissing,
)
from career_pilot.journey_state import JourneyStateService
from career_pilot.state_machine import ACTION_FLAGS, ACTIONS, next_step_after

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "Software Developer"
DEFAULT_DOMAIN = "Technology"
MAX_LEARNING_SKILLS = 3
MAX_SKILL_TAGS = 10


# ═══════════════════════════════════════════════════════════════════
#  IN-FLIGHT GUARD
# ═══════════════════════════════════════════════════════════════════

class InFlightGuard:
    """Only one run of the same action per user at a time."""

    def __init__(self):
        self._lock = threading.Lock()
        self._running = set()

    @contextmanager
    def hold(self, user_id: str, action: str):
        key = (user_id, action)
        with self._lock:
            if key in self._running:
                raise ActionInProgress(f"{action} is already running for this user")
            self._running.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._running.discard(key)

    def is_running(self, user_id: str, action: str) -> bool:
        with self._lock:
            return (user_id, action) in self._running


# shared across orchestrator instances (one is built per request)
_in_flight = InFlightGuard()


# ═══════════════════════════════════════════════════════════════════
#  HELPERS
# ═══════════════════════════════════════════════════════════════════

def _flatten_skills(skills: Any) -> List[str]:
    if isinstance(skills, dict):
        flat = []
        for values in skills.values():
            flat.extend(_flatten_skills(values))
        return flat
    if isinstance(skills, list):
        flat = []
        for skill in skills:
            if isinstance(skill, dict):
                skill = skill.get("name")
            if skill:
                flat.append(str(skill))
        return flat
    return []


def _dump(artifact: Artifact) -> Dict[str, Any]:
    return artifact.model_dump(mode="json")


class StageOrchestrator:
    """
    Per-user action runner. `generator` is anything with
    generate(action, context) -> Artifact (ContentGenerator in production).
    """

    def __init__(self, user_id: str, store: Store, generator,
                 journey_state: Optional[JourneyStateService] = None,
                 guard: Optional[InFlightGuard] = None):
        self.user_id = user_id
        self.store = store
        self.generator = generator
        self.journey_state = journey_state or JourneyStateService(store)
        self.guard = guard or _in_flight
        self._fallback_used = False

    # ── Store shortcuts ───────────────────────────────────────────

    def _latest(self, table: str, **filters) -> Optional[Dict[str, Any]]:
        # upserts keep created_at, so the last write is found by updated_at
        return self.store.get(table, {"user_id": self.user_id, **filters},
                              single=True, order_by="updated_at")

    def _all(self, table: str, **filters) -> List[Dict[str, Any]]:
        return self.store.get(table, {"user_id": self.user_id, **filters})

    def _write(self, table: str, record: Dict[str, Any]) -> StoreWrite:
        return StoreWrite(table, {"user_id": self.user_id, **record}, UPSERT_KEYS[table])

    def _parsed_resume(self) -> Tuple[Optional[Dict[str, Any]], Dict[str, Any]]:
        row = self._latest(RESUME_ANALYSIS)
        return row, (row or {}).get("parsed_data") or {}

    def _skill_validation(self) -> SkillValidationRecord:
        row = self._latest(SKILL_VALIDATIONS)
        if not row:
            raise PrecursorMissing("No skill validation found. Run skill validation first.")
        return SkillValidationRecord.model_validate(row)

    # ── Protocol ──────────────────────────────────────────────────

    def _generate(self, action: str, context: Dict[str, Any]) -> Artifact:
        try:
            return self.generator.generate(action, context)
        except InvalidResponseShape as e:
            logger.warning("[Orchestrator] %s: invalid response shape (%s); using fallback artifact",
                           action, e)
            self._fallback_used = True
            return fallback_artifact(action, context)

    def _commit(self, action: str, writes: List[StoreWrite]) -> List[Dict[str, Any]]:
        return self.journey_state.commit_step(self.user_id, writes, ACTION_FLAGS[action])

    def _execute(self, action: str, work: Callable[[], Any]) -> AgentExecutionResult:
        self._fallback_used = False
        try:
            with self.guard.hold(self.user_id, action):
                logger.info("[Orchestrator] %s started for %s", action, self.user_id)
                try:
                    data = work()
                except ValidationError as e:
                    raise PrecursorMissing(
                        f"Stored data needed for {action} is malformed "
                        f"({e.error_count()} field error(s)). Re-run the previous step."
                    ) from e
                except ValueError as e:
                    raise PersistenceFailed(f"{action} could not be saved: {e}") from e
        except CareerPilotError as e:
            logger.error("[Orchestrator] %s failed for %s: %s", action, self.user_id, e)
            return AgentExecutionResult(
                success=False, action=action, error=str(e), error_type=type(e).__name__,
            )
        logger.info("[Orchestrator] %s completed for %s%s", action, self.user_id,
                    " (fallback)" if self._fallback_used else "")
        return AgentExecutionResult(
            success=True, action=action, data=data,
            next_step=next_step_after(action), fallback_used=self._fallback_used,
        )

    # ═══════════════════════════════════════════════════════════════
    #  ACTIONS
    # ═══════════════════════════════════════════════════════════════

    def run_career_analysis(self) -> AgentExecutionResult:
        def work():
            resume, parsed = self._parsed_resume()
            profile = self._latest(USERS_PROFILE) or {}
            if not parsed:
                education = self._all(EDUCATION_DETAILS)
                experience = self._all(EXPERIENCE_DETAILS)
                certifications = self._all(CERTIFICATIONS)
                if not (profile or education or experience or certifications):
                    raise PrecursorMissing(
                        "No profile data found. Please complete your profile or upload a resume first."
                    )
                parsed = {
                    "profile": profile,
                    "education": education,
                    "experience": experience,
                    "certifications": certifications,
                }
            context = {"profile": parsed, "goal": profile.get("goal_description")}
            artifact = self._generate("career_analysis", context)
            self._commit("career_analysis", [self._write(CAREER_ADVICE, {
                "resume_analysis_id": (resume or {}).get("id"),
                "career_advice": _dump(artifact),
            })])
            return _dump(artifact)
        return self._execute("career_analysis", work)

    def run_skill_validation(self, role: str = None) -> AgentExecutionResult:
        def work():
            row = self._latest(CAREER_ADVICE)
            if not row:
                raise PrecursorMissing("No career analysis found. Run career analysis first.")
            advice = CareerAdviceRecord.model_validate(row)
            roles = advice.roles()
            chosen = (role or "").strip() or (roles[0].role if roles else DEFAULT_ROLE)
            match = next((r for r in roles if r.role == chosen), None)
            _, parsed = self._parsed_resume()
            context = {
                "role": chosen,
                "domain": match.domain if match else None,
                "skills": _flatten_skills(parsed.get("skills")),
            }
            artifact = self._generate("skill_validation", context)
            record = _dump(artifact)
            record["role"] = chosen
            self._commit("skill_validation", [
                self._write(SKILL_VALIDATIONS, record),
                self._write(CAREER_ADVICE, {"selected_role": chosen}),
            ])
            return record
        return self._execute("skill_validation", work)

    def run_learning_plan(self, skill: str = None) -> AgentExecutionResult:
        def work():
            validation = self._skill_validation()
            skills = [skill] if skill else validation.missing_skills[:MAX_LEARNING_SKILLS]
            writes, plans = [], []
            for name in skills:
                artifact = self._generate("learning_plan", {
                    "skill": name,
                    "career_title": validation.role or DEFAULT_ROLE,
                    "current_level": "beginner",
                    "required_level": "intermediate",
                })
                plan = _dump(artifact)
                plan["skill_name"] = name
                plan.setdefault("career_title", validation.role)
                plans.append(plan)
                # a regenerated plan has new steps, so earlier progress is cleared
                writes.append(self._write(LEARNING_JOURNEY, {
                    **plan,
                    "status": "not_started",
                    "steps_completed": [False] * len(plan["learning_steps"]),
                    "progress_percentage": None,
                }))
            # nothing missing: the step completes with no plans
            self._commit("learning_plan", writes)
            return plans
        return self._execute("learning_plan", work)

    def run_project_ideas(self) -> AgentExecutionResult:
        def work():
            validation = self._skill_validation()
            learning = self._latest(LEARNING_JOURNEY) or {}
            role = validation.role or DEFAULT_ROLE
            domain = validation.domain or DEFAULT_DOMAIN
            artifact = self._generate("project_ideas", {
                "role": role,
                "domain": domain,
                "skill": learning.get("skill_name") or "Programming",
            })
            ideas = [idea.model_dump(mode="json") for idea in artifact.ideas]
            self._commit("project_ideas", [
                self._write(PROJECT_IDEAS, {**idea, "domain": domain}) for idea in ideas
            ])
            return {"projects": ideas, "role": role, "domain": domain}
        return self._execute("project_ideas", work)

    def run_project_plan(self, project_id: str) -> AgentExecutionResult:
        def work():
            idea = self._latest(PROJECT_IDEAS, id=project_id) if project_id else None
            if not idea:
                raise PrecursorMissing("Select one of your project ideas first.")
            artifact = self._generate("project_plan", {
                "title": idea.get("title"),
                "problem": idea.get("problem"),
                "description": idea.get("description"),
            })
            plan = _dump(artifact)
            self._commit("project_plan", [self._write(PROJECT_DETAIL, {**plan, "project_id": project_id})])
            return {"project_id": project_id, "plan": plan}
        return self._execute("project_plan", work)

    def run_project_build(self, project_id: str = None) -> AgentExecutionResult:
        def work():
            row = self._latest(PROJECT_DETAIL, project_id=project_id) if project_id \
                else self._latest(PROJECT_DETAIL)
            if not row:
                raise PrecursorMissing("No project plan found. Generate a project plan first.")
            plan = ProjectPlanRecord.model_validate(row)
            idea = self._latest(PROJECT_IDEAS, id=plan.project_id) or {}
            artifact = self._generate("project_build", {
                "title": idea.get("title") or "Portfolio project",
                "plan": {"timeline": plan.timeline, "tasks": plan.tasks},
            })
            build = _dump(artifact)
            self._commit("project_build", [
                self._write(PROJECT_BUILD_STEPS, {**build, "project_id": plan.project_id})
            ])
            return {"project_id": plan.project_id, "phases": build["phases"]}
        return self._execute("project_build", work)

    def run_resume_upgrade(self, target_role: str = None) -> AgentExecutionResult:
        def work():
            _, parsed = self._parsed_resume()
            resume = parsed
            if not resume:
                version = self._latest(RESUME_VERSIONS)
                if not version:
                    raise PrecursorMissing("No resume found. Upload a resume first.")
                resume = version.get("content") or {}
            role = (target_role or "").strip()
            if not role:
                validation = self._latest(SKILL_VALIDATIONS) or {}
                role = validation.get("role") or DEFAULT_ROLE
            artifact = self._generate("resume_upgrade", {"target_role": role, "resume": resume})
            content = _dump(artifact)
            self._commit("resume_upgrade", [self._write(RESUME_VERSIONS, {
                "target_role": role, "is_active": True, "content": content,
            })])
            return {"target_role": role, "content": content}
        return self._execute("resume_upgrade", work)

    def run_job_matching(self) -> AgentExecutionResult:
        def work():
            validation = self._skill_validation()
            career_role = validation.role or DEFAULT_ROLE
            domain = validation.domain or DEFAULT_DOMAIN
            artifact = self._generate("job_matching", {
                "career_role": career_role,
                "domain": domain,
                "skill_tags": validation.missing_skills[:MAX_SKILL_TAGS],
            })
            jobs = [job.model_dump(mode="json") for job in artifact.jobs]
            writes = []
            for job in jobs:
                record = {k: v for k, v in job.items() if k != "job_link"}
                record.update(career_role=career_role, job_url=job.get("job_link"))
                writes.append(self._write(JOB_RECOMMENDATIONS, record))
            self._commit("job_matching", writes)
            return {"jobs": jobs, "career_role": career_role, "domain": domain}
        return self._execute("job_matching", work)

    def run_interview_prep(self, job_id: str) -> AgentExecutionResult:
        def work():
            job = self._latest(JOB_RECOMMENDATIONS, id=job_id) if job_id else None
            if not job:
                raise PrecursorMissing("Select one of your job recommendations first.")
            _, parsed = self._parsed_resume()
            artifact = self._generate("interview_prep", {"job": job, "resume": parsed})
            prep = _dump(artifact)
            self._commit("interview_prep", [self._write(INTERVIEW_PREPARATION, {
                **prep,
                "job_id": job_id,
                "role": job.get("job_title"),
                "company": job.get("company_name"),
            })])
            return prep
        return self._execute("interview_prep", work)

    # ── Dispatch ──────────────────────────────────────────────────

    def run(self, action: str, selection: Union[ActionRequest, Dict[str, Any], None] = None
            ) -> AgentExecutionResult:
        if action not in ACTIONS:
            raise ValueError(f"Unknown action '{action}'")
        if isinstance(selection, dict):
            selection = ActionRequest(**selection)
        selection = selection or ActionRequest()
        runners = {
            "career_analysis": lambda: self.run_career_analysis(),
            "skill_validation": lambda: self.run_skill_validation(selection.role),
            "learning_plan": lambda: self.run_learning_plan(selection.skill),
            "project_ideas": lambda: self.run_project_ideas(),
            "project_plan": lambda: self.run_project_plan(selection.project_id),
            "project_build": lambda: self.run_project_build(selection.project_id),
            "resume_upgrade": lambda: self.run_resume_upgrade(selection.target_role),
            "job_matching": lambda: self.run_job_matching(),
            "interview_prep": lambda: self.run_interview_prep(selection.job_id),
        }
        return runners[action]()

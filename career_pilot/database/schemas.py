"""
schemas.py: Pydantic v2 models for stored records and API contracts.
Stored records mirror the store tables (extra fields are kept, never
dropped). Roadmap models are derived output and are never persisted.
No business logic, pure data contracts.
"""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

StepStatus = Literal["locked", "active", "completed"]
StageId = Literal["short_term", "mid_term", "long_term"]

STAGE_IDS: List[str] = ["short_term", "mid_term", "long_term"]


# ═══════════════════════════════════════════════════════════════════
#  JOURNEY STATE (sigma_journey_state)
# ═══════════════════════════════════════════════════════════════════

class JourneyFlags(BaseModel):
    model_config = ConfigDict(extra="ignore")

    profile_completed: bool = False
    career_analysis_completed: bool = False
    skill_validation_completed: bool = False
    learning_plan_completed: bool = False
    project_guidance_completed: bool = False
    project_plan_completed: bool = False
    project_build_completed: bool = False
    resume_completed: bool = False
    job_matching_completed: bool = False
    interview_completed: bool = False

    @classmethod
    def names(cls) -> List[str]:
        return list(cls.model_fields)


class TermAchievement(BaseModel):
    model_config = ConfigDict(extra="ignore")

    short_term_job_achieved: bool = False
    mid_term_job_achieved: bool = False
    long_term_job_achieved: bool = False

    @classmethod
    def names(cls) -> List[str]:
        return list(cls.model_fields)

    def achieved(self, stage_id: str) -> bool:
        return bool(getattr(self, f"{stage_id}_job_achieved", False))


class JourneyRecord(JourneyFlags, TermAchievement):
    """One row per user: milestone flags plus confirmed placements."""
    user_id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def flags(self) -> JourneyFlags:
        return JourneyFlags.model_validate(self.model_dump())

    def terms(self) -> TermAchievement:
        return TermAchievement.model_validate(self.model_dump())


# ═══════════════════════════════════════════════════════════════════
#  DOMAIN RECORDS (one table each)
# ═══════════════════════════════════════════════════════════════════

class StoredRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    user_id: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class UserProfileRecord(StoredRecord):
    goal_type: Optional[str] = None
    goal_description: Optional[str] = None


class CareerRole(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str
    domain: Optional[str] = None
    term: Optional[Literal["short", "mid", "long"]] = None
    match_score: float = 0
    salary_range: Optional[str] = None
    why_fit: Optional[str] = None
    top_skills: List[str] = []

    @field_validator("term", mode="before")
    @classmethod
    def _short_term_alias(cls, value):
        # "short_term" / "Short" both mean "short"
        if isinstance(value, str):
            value = value.strip().lower().replace("_term", "")
        return value or None


class CareerAdviceRecord(StoredRecord):
    resume_analysis_id: Optional[str] = None
    career_advice: Dict[str, Any] = {}
    selected_role: Optional[str] = None

    def roles(self) -> List[CareerRole]:
        parsed = []
        for raw in self.career_advice.get("roles") or []:
            try:
                parsed.append(CareerRole.model_validate(raw))
            except ValidationError:
                continue
        return parsed

    def role_for_term(self, term: str) -> Optional[CareerRole]:
        return next((r for r in self.roles() if r.term == term), None)


class SkillValidationRecord(StoredRecord):
    role: str = ""
    domain: Optional[str] = None
    readiness_score: float = 0
    matched_skills: Dict[str, List[str]] = {}
    missing_skills: List[str] = []
    recommendation: Optional[str] = None


class LearningJourneyRecord(StoredRecord):
    skill_name: str = ""
    career_title: Optional[str] = None
    status: str = "not_started"
    progress_percentage: Optional[float] = None
    learning_steps: List[Any] = []
    steps_completed: List[bool] = []
    recommended_courses: List[Any] = []
    certification_links: List[str] = []


class ProjectIdeaRecord(StoredRecord):
    title: str = ""
    description: str = ""
    problem: Optional[str] = None
    domain: Optional[str] = None
    status: str = "not_started"


class ProjectPlanRecord(StoredRecord):
    project_id: str = ""
    timeline: List[Dict[str, Any]] = []
    kanban_board: Dict[str, List[str]] = {}
    tasks: List[Dict[str, Any]] = []
    resources: List[Dict[str, Any]] = []


class ResumeVersionRecord(StoredRecord):
    target_role: str = ""
    is_active: bool = False
    content: Dict[str, Any] = {}


class JobRecommendationRecord(StoredRecord):
    job_title: str = ""
    company_name: str = ""
    career_role: Optional[str] = None
    location: Optional[str] = None
    relevance_score: float = 0
    required_skills: List[str] = []
    job_url: Optional[str] = None
    is_saved: bool = False


class InterviewPreparationRecord(StoredRecord):
    job_id: str = ""
    role: Optional[str] = None
    company: Optional[str] = None
    readiness_score: float = 0
    interview_questions: Dict[str, Any] = {}
    preparation_checklist: List[Dict[str, Any]] = []


class AggregateSnapshot(BaseModel):
    """Everything the state machine needs for one user, read in one pass."""
    user_id: str
    journey: JourneyRecord
    profile: Optional[UserProfileRecord] = None
    career_advice: Optional[CareerAdviceRecord] = None
    skill_validation: Optional[SkillValidationRecord] = None
    learning_journeys: List[LearningJourneyRecord] = []
    projects: List[ProjectIdeaRecord] = []
    resume_versions: List[ResumeVersionRecord] = []
    jobs: List[JobRecommendationRecord] = []
    interview_preps: List[InterviewPreparationRecord] = []
    # domains whose read failed and were replaced by defaults
    degraded: List[str] = []

    @property
    def user_goal(self) -> Optional[str]:
        if self.career_advice:
            long_term = self.career_advice.role_for_term("long")
            if long_term:
                return long_term.role
        return self.profile.goal_description if self.profile else None


# ═══════════════════════════════════════════════════════════════════
#  ROADMAP (derived, never stored)
# ═══════════════════════════════════════════════════════════════════

class Role(BaseModel):
    role: str
    domain: str = "Tech"
    salary_range: str = "Not specified"
    match_score: float = 0


class StepTimeline(BaseModel):
    duration: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class Step(BaseModel):
    id: str
    name: str
    number: int
    description: str
    status: StepStatus
    progress: int = 0
    timeline: Optional[StepTimeline] = None
    route: str
    data: List[Any] = []
    completion_text: Optional[str] = None


class Stage(BaseModel):
    id: StageId
    number: int
    name: str
    timeline: str
    status: StepStatus
    overall_progress: int = 0
    steps: List[Step] = []
    role: Optional[Role] = None
    is_job_placed: bool = False


class JourneyRoadmap(BaseModel):
    user_id: str
    user_goal: Optional[str] = None
    stages: List[Stage]
    current_stage: StageId = "short_term"
    overall_progress: int = 0
    all_completed: bool = False
    next_action: str = "career_analysis"


# ═══════════════════════════════════════════════════════════════════
#  REQUEST / RESPONSE SCHEMAS (API)
# ═══════════════════════════════════════════════════════════════════

class ActionRequest(BaseModel):
    """POST /api/journey/{user_id}/actions/{action}: optional user selection"""
    role: Optional[str] = None
    skill: Optional[str] = None
    project_id: Optional[str] = None
    job_id: Optional[str] = None
    target_role: Optional[str] = None


class PlacementRequest(BaseModel):
    """POST /api/journey/{user_id}/placement"""
    term: StageId


class AgentExecutionResult(BaseModel):
    success: bool
    action: str
    data: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    next_step: Optional[str] = None
    fallback_used: bool = False


class JourneyStateResponse(BaseModel):
    user_id: str
    flags: JourneyFlags
    terms: TermAchievement
    next_action: str


class LearningStepToggleResponse(BaseModel):
    journey: LearningJourneyRecord
    learning_progress: int = Field(ge=0, le=100)

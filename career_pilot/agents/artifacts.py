"""
artifacts.py: the shape each generation action must come back in.

ARTIFACT_MODELS is keyed by orchestrator action; ContentGenerator
validates parsed LLM output against the model for its action and treats
a ValidationError as an invalid response shape.
"""
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from career_pilot.database.schemas import CareerRole


class Artifact(BaseModel):
    model_config = ConfigDict(extra="allow")


# ── career_analysis ──────────────────────────────────────────────

class CareerAnalysisArtifact(Artifact):
    roles: List[CareerRole] = Field(min_length=1)
    career_summary: Optional[str] = None
    total_timeline: Optional[str] = None


# ── skill_validation ─────────────────────────────────────────────

class SkillValidationArtifact(Artifact):
    role: str
    domain: Optional[str] = None
    readiness_score: float = Field(ge=0, le=100)
    matched_skills: Dict[str, List[str]] = {}
    missing_skills: List[str] = []
    recommendation: Optional[str] = None


# ── learning_plan (one per skill) ────────────────────────────────

class LearningPlanArtifact(Artifact):
    skill_name: str
    career_title: Optional[str] = None
    learning_steps: List[Any] = Field(min_length=1)
    recommended_courses: List[Any] = []
    certification_links: List[str] = []


# ── project_ideas ────────────────────────────────────────────────

class ProjectIdea(Artifact):
    title: str = Field(min_length=1)
    description: str = ""
    problem: Optional[str] = None


class ProjectIdeasArtifact(Artifact):
    ideas: List[ProjectIdea] = Field(min_length=1)


# ── project_plan ─────────────────────────────────────────────────

class ProjectPlanArtifact(Artifact):
    timeline: List[Dict[str, Any]] = Field(min_length=1)
    kanban_board: Dict[str, List[str]] = {}
    tasks: List[Dict[str, Any]] = []
    resources: List[Dict[str, Any]] = []


# ── project_build ────────────────────────────────────────────────

class BuildTask(Artifact):
    id: str
    title: str
    description: str = ""
    type: str = "code"
    estimated_time: Optional[str] = None
    is_completed: bool = False
    guidance: Optional[str] = None


class BuildPhase(Artifact):
    phase_number: int
    title: str
    description: str = ""
    tasks: List[BuildTask] = []
    is_completed: bool = False


class ProjectBuildArtifact(Artifact):
    phases: List[BuildPhase] = Field(min_length=1)


# ── resume_upgrade ───────────────────────────────────────────────

class ResumeUpgradeArtifact(Artifact):
    summary: str
    header: Dict[str, Any] = {}
    skills: Dict[str, List[str]] = {}
    work_experience: List[Dict[str, Any]] = []
    projects: List[Dict[str, Any]] = []
    education: List[Dict[str, Any]] = []
    certifications: List[Dict[str, Any]] = []


# ── job_matching ─────────────────────────────────────────────────

class JobListing(Artifact):
    job_title: str = Field(min_length=1)
    company_name: str = Field(min_length=1)
    location: Optional[str] = None
    job_description: Optional[str] = None
    required_skills: List[str] = []
    relevance_score: float = Field(default=0, ge=0, le=100)
    job_link: Optional[str] = None


class JobMatchingArtifact(Artifact):
    jobs: List[JobListing] = []


# ── interview_prep ───────────────────────────────────────────────

class InterviewPrepArtifact(Artifact):
    job_analysis: Dict[str, Any] = {}
    interview_questions: Dict[str, List[Dict[str, Any]]]
    resume_alignment: Dict[str, Any] = {}
    preparation_checklist: List[Dict[str, Any]] = []
    readiness_score: float = Field(default=65, ge=0, le=100)


ARTIFACT_MODELS: Dict[str, Type[Artifact]] = {
    "career_analysis": CareerAnalysisArtifact,
    "skill_validation": SkillValidationArtifact,
    "learning_plan": LearningPlanArtifact,
    "project_ideas": ProjectIdeasArtifact,
    "project_plan": ProjectPlanArtifact,
    "project_build": ProjectBuildArtifact,
    "resume_upgrade": ResumeUpgradeArtifact,
    "job_matching": JobMatchingArtifact,
    "interview_prep": InterviewPrepArtifact,
}

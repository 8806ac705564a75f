"""
state_machine.py: derives the three-stage roadmap from journey flags.

Nothing here is stored: the roadmap is rebuilt from the flags, the term
achievements and the aggregate snapshot on every call, and building it
never raises for missing or partial data.

Chains
------
Steps:  step i is completed iff its flag is set; active iff its flag is
        not set and (i == 0 or flag i-1 is set); locked otherwise.
        Every step of a locked stage is locked.
Stages: stage i is completed iff its term is achieved and stage i-1 is
        completed; active iff not completed and (i == 0 or stage i-1 is
        completed); locked otherwise.
"""
from typing import Any, Callable, List, NamedTuple, Optional, Sequence, Tuple

from pydantic import BaseModel

from career_pilot import progress
from career_pilot.config import DEFAULT_STAGE_WEIGHTS
from career_pilot.database.schemas import (
    STAGE_IDS,
    AggregateSnapshot,
    JourneyFlags,
    JourneyRoadmap,
    Role,
    Stage,
    Step,
    StepTimeline,
    TermAchievement,
)

# ═══════════════════════════════════════════════════════════════════
#  ORCHESTRATOR ACTIONS (timeline order)
# ═══════════════════════════════════════════════════════════════════

ACTION_ORDER: List[Tuple[str, str]] = [
    ("career_analysis", "career_analysis_completed"),
    ("skill_validation", "skill_validation_completed"),
    ("learning_plan", "learning_plan_completed"),
    ("project_ideas", "project_guidance_completed"),
    ("project_plan", "project_plan_completed"),
    ("project_build", "project_build_completed"),
    ("resume_upgrade", "resume_completed"),
    ("job_matching", "job_matching_completed"),
    ("interview_prep", "interview_completed"),
]
ACTION_FLAGS = dict(ACTION_ORDER)
ACTIONS = [action for action, _ in ACTION_ORDER]
JOURNEY_COMPLETED = "completed"


def next_action(flags: JourneyFlags) -> str:
    """First action whose flag is still unset, or "completed"."""
    for action, flag in ACTION_ORDER:
        if not getattr(flags, flag, False):
            return action
    return JOURNEY_COMPLETED


def next_step_after(action: str) -> str:
    index = ACTIONS.index(action)
    return ACTIONS[index + 1] if index + 1 < len(ACTIONS) else JOURNEY_COMPLETED


# ═══════════════════════════════════════════════════════════════════
#  STEP DEFINITIONS
# ═══════════════════════════════════════════════════════════════════

Snapshot = AggregateSnapshot


class StepDefinition(NamedTuple):
    id: str
    name: str
    description: str
    duration: str
    route: str
    # journey/term field that marks the step done; None = stage term signal
    flag: Optional[str] = None
    progress: Optional[Callable[[Snapshot, bool], int]] = None
    data: Optional[Callable[[Snapshot], List[Any]]] = None
    completion_text: Optional[Callable[[Snapshot, bool], Optional[str]]] = None


def _number(value: float) -> str:
    value = float(value or 0)
    return str(int(value)) if value.is_integer() else f"{value:g}"


def _skill_progress(s: Snapshot, done: bool) -> int:
    if not s.skill_validation:
        return 0
    return progress.round_half_up(progress.clamp_percent(s.skill_validation.readiness_score))


def _skill_text(s: Snapshot, done: bool) -> Optional[str]:
    if not s.skill_validation:
        return None
    return f"{_number(s.skill_validation.readiness_score)}% Readiness"


def _learning_text(s: Snapshot, done: bool) -> str:
    finished = progress.completed_count(s.learning_journeys, progress.LEARNING_DONE_STATUS)
    return progress.completion_summary(finished, len(s.learning_journeys), "Courses Completed")


def _project_text(s: Snapshot, done: bool) -> str:
    finished = progress.completed_count(s.projects, progress.PROJECT_DONE_STATUS)
    return progress.completion_summary(finished, len(s.projects), "Projects Done")


SHORT_TERM_STEPS: List[StepDefinition] = [
    StepDefinition(
        "career-analysis", "Career Analysis",
        "Identify viable career paths based on your profile",
        "Week 1", "/sigma", "career_analysis_completed",
        progress=lambda s, done: 100 if done else 0,
        data=lambda s: [s.career_advice] if s.career_advice else [],
        completion_text=lambda s, done: "Analysis Complete" if done else None,
    ),
    StepDefinition(
        "skill-validation", "Skill Validation",
        "Assess current skills vs requirements",
        "Week 1", "/sigma", "skill_validation_completed",
        progress=_skill_progress,
        data=lambda s: [s.skill_validation] if s.skill_validation else [],
        completion_text=_skill_text,
    ),
    StepDefinition(
        "learning", "Learning Plan",
        "Build missing skills through structured courses",
        "Weeks 2-6", "/dashboard", "learning_plan_completed",
        progress=lambda s, done: progress.learning_progress(s.learning_journeys),
        data=lambda s: list(s.learning_journeys),
        completion_text=_learning_text,
    ),
    StepDefinition(
        "project", "Project Building",
        "Create portfolio projects to demonstrate skills",
        "Weeks 4-8", "/projects", "project_guidance_completed",
        progress=lambda s, done: progress.project_progress(s.projects),
        data=lambda s: list(s.projects),
        completion_text=_project_text,
    ),
    StepDefinition(
        "portfolio", "Portfolio & Resume",
        "Finalize your professional presence",
        "Week 9", "/resume", "resume_completed",
        progress=lambda s, done: progress.resume_progress(done, s.resume_versions),
        data=lambda s: list(s.resume_versions),
    ),
    StepDefinition(
        "ready-to-market", "Interview Prep",
        "Practice mock interviews and get ready",
        "Week 10", "/interview", "interview_completed",
        progress=lambda s, done: progress.interview_progress(s.interview_preps),
        data=lambda s: list(s.interview_preps),
    ),
    StepDefinition(
        "job", "Job Application",
        "Apply and land your short-term role",
        "Week 11+", "/dashboard", "short_term_job_achieved",
        progress=lambda s, done: progress.job_application_progress(done, s.jobs),
        data=lambda s: list(s.jobs),
    ),
]

MID_TERM_STEPS: List[StepDefinition] = [
    StepDefinition("skill-validation-mid", "Advanced Skill Validation",
                   "Assess skills for mid-level role", "Week 1", "/sigma"),
    StepDefinition("learning-mid", "Advanced Learning",
                   "Master advanced concepts", "Months 1-3", "/dashboard"),
    StepDefinition("project-mid", "Complex Projects",
                   "Build scalable systems", "Months 3-6", "/projects"),
    StepDefinition("job-mid", "Mid-Level Transition",
                   "Move to mid-level role", "Year 2+", "/dashboard"),
]

LONG_TERM_STEPS: List[StepDefinition] = [
    StepDefinition("skill-validation-long", "Leadership Skills",
                   "Assess leadership & architecture skills", "Week 1", "/sigma"),
    StepDefinition("learning-long", "Strategic Learning",
                   "Focus on strategy and management", "Months 1-6", "/dashboard"),
    StepDefinition("job-long", "Dream Role",
                   "Achieve your ultimate career goal", "Year 4+", "/dashboard"),
]


class StageDefinition(NamedTuple):
    id: str
    name: str
    timeline: str
    term: str
    steps: List[StepDefinition]


STAGES: List[StageDefinition] = [
    StageDefinition("short_term", "Short Term Goal", "0-12 Months", "short", SHORT_TERM_STEPS),
    StageDefinition("mid_term", "Mid Term Goal", "1-3 Years", "mid", MID_TERM_STEPS),
    StageDefinition("long_term", "Long Term Goal", "3-5 Years", "long", LONG_TERM_STEPS),
]


# ═══════════════════════════════════════════════════════════════════
#  EVALUATORS
# ═══════════════════════════════════════════════════════════════════

def evaluate_chain(done: Sequence[bool], locked: bool = False) -> List[str]:
    """Ordered step statuses for a list of completion flags."""
    if locked:
        return ["locked"] * len(done)
    statuses = []
    for i, is_done in enumerate(done):
        if is_done:
            statuses.append("completed")
        elif i == 0 or done[i - 1]:
            statuses.append("active")
        else:
            statuses.append("locked")
    return statuses


def evaluate_stage_chain(achieved: Sequence[bool]) -> List[str]:
    """Stage statuses: a stage completes only after the previous one."""
    statuses = []
    previous_completed = True
    for is_achieved in achieved:
        if is_achieved and previous_completed:
            statuses.append("completed")
        elif previous_completed:
            statuses.append("active")
        else:
            statuses.append("locked")
        previous_completed = statuses[-1] == "completed"
    return statuses


def _flag_accessor(flags: JourneyFlags, terms: TermAchievement, stage: StageDefinition):
    def is_done(step: StepDefinition) -> bool:
        if step.flag is None:
            return terms.achieved(stage.id)
        source = terms if step.flag in TermAchievement.model_fields else flags
        return bool(getattr(source, step.flag, False))
    return is_done


def _plain(record: Any) -> Any:
    return record.model_dump() if isinstance(record, BaseModel) else record


def _build_step(number: int, definition: StepDefinition, status: str, snapshot: Snapshot) -> Step:
    done = status == "completed"
    value = definition.progress(snapshot, done) if definition.progress else 0
    return Step(
        id=definition.id,
        name=definition.name,
        number=number,
        description=definition.description,
        status=status,
        progress=100 if done else max(0, min(100, int(value))),
        timeline=StepTimeline(duration=definition.duration),
        route=definition.route,
        data=[_plain(d) for d in definition.data(snapshot)] if definition.data else [],
        completion_text=definition.completion_text(snapshot, done) if definition.completion_text else None,
    )


def _stage_role(snapshot: Snapshot, term: str) -> Optional[Role]:
    if not snapshot.career_advice:
        return None
    found = snapshot.career_advice.role_for_term(term)
    if not found:
        return None
    return Role(
        role=found.role,
        domain=found.domain or "Tech",
        salary_range=found.salary_range or "Not specified",
        match_score=found.match_score or 0,
    )


def compute_stages(
    flags: JourneyFlags,
    snapshot: AggregateSnapshot,
    term_achievement: TermAchievement,
    weights: Sequence[float] = DEFAULT_STAGE_WEIGHTS,
) -> JourneyRoadmap:
    stage_statuses = evaluate_stage_chain(
        [term_achievement.achieved(stage.id) for stage in STAGES]
    )

    stages = []
    for number, (definition, status) in enumerate(zip(STAGES, stage_statuses), start=1):
        is_done = _flag_accessor(flags, term_achievement, definition)
        step_statuses = evaluate_chain(
            [is_done(step) for step in definition.steps],
            locked=status == "locked",
        )
        steps = [
            _build_step(i, step, step_status, snapshot)
            for i, (step, step_status) in enumerate(zip(definition.steps, step_statuses), start=1)
        ]
        stages.append(Stage(
            id=definition.id,
            number=number,
            name=definition.name,
            timeline=definition.timeline,
            status=status,
            overall_progress=progress.stage_progress(steps),
            steps=steps,
            role=_stage_role(snapshot, definition.term),
            is_job_placed=term_achievement.achieved(definition.id),
        ))

    current = next((s.id for s in stages if s.status == "active"), STAGE_IDS[0])
    overall = progress.weighted_overall(*(s.overall_progress for s in stages), weights=weights)

    return JourneyRoadmap(
        user_id=snapshot.user_id,
        user_goal=snapshot.user_goal,
        stages=stages,
        current_stage=current,
        overall_progress=overall,
        all_completed=all(s.status == "completed" for s in stages),
        next_action=next_action(flags),
    )

"""
progress.py: per-domain completion percentages.

Every function is pure, takes raw records (models or plain dicts) and
returns an int in [0, 100]. Empty inputs give 0, never NaN / Infinity.
Rounding is half-up so 44.5 -> 45, the same as the web dashboard does.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional, Sequence

from career_pilot.config import DEFAULT_STAGE_WEIGHTS

PROJECT_DONE_STATUS = "Completed"
LEARNING_DONE_STATUS = "completed"


def _get(record: Any, key: str, default: Any = None) -> Any:
    if isinstance(record, dict):
        return record.get(key, default)
    return getattr(record, key, default)


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamp_percent(value: Optional[float]) -> float:
    try:
        value = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    if value != value:  # NaN
        return 0.0
    return max(0.0, min(100.0, value))


def ratio_percent(part: float, whole: float) -> float:
    """part / whole * 100, 0 when whole is 0."""
    if not whole:
        return 0.0
    return clamp_percent(part / whole * 100.0)


def mean_percent(values: Iterable[float]) -> int:
    values = [clamp_percent(v) for v in values]
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


# ── Learning ──────────────────────────────────────────────────────

def _course_title(course: Any) -> str:
    if isinstance(course, dict):
        return course.get("title") or course.get("name") or course.get("course_name") or ""
    return str(course or "")


def journey_completion(journey: Any) -> float:
    """
    Completion of a single learning journey.

    Stored progress_percentage wins. Otherwise the sub-step booleans are
    used (half sub-steps, half courses that have a certification uploaded,
    when the journey recommends courses). Journeys with neither count as
    100 when their status is "completed" and 0 otherwise.
    """
    stored = _get(journey, "progress_percentage")
    if stored is not None:
        return clamp_percent(stored)

    steps_completed = _get(journey, "steps_completed") or []
    learning_steps = _get(journey, "learning_steps") or []
    if steps_completed:
        total_steps = len(learning_steps) or len(steps_completed)
        steps_pct = ratio_percent(sum(1 for done in steps_completed if done), total_steps)

        courses = _get(journey, "recommended_courses") or []
        if not courses:
            return steps_pct
        certs = [c.lower() for c in (_get(journey, "certification_links") or [])]
        certified = 0
        for course in courses:
            title = _course_title(course).lower()
            if title and any(title in cert for cert in certs):
                certified += 1
        return steps_pct * 0.5 + ratio_percent(certified, len(courses)) * 0.5

    return 100.0 if _get(journey, "status") == LEARNING_DONE_STATUS else 0.0


def learning_status(completion: float) -> str:
    if completion >= 100:
        return "completed"
    if completion > 0:
        return "in_progress"
    return "not_started"


def learning_progress(journeys: Sequence[Any]) -> int:
    return mean_percent(journey_completion(j) for j in journeys)


# ── Projects / interview / resume / job ──────────────────────────

def project_progress(projects: Sequence[Any]) -> int:
    # exact, case-sensitive match on purpose: "completed" != "Completed"
    done = sum(1 for p in projects if _get(p, "status") == PROJECT_DONE_STATUS)
    return round_half_up(ratio_percent(done, len(projects)))


def interview_progress(preps: Sequence[Any]) -> int:
    return mean_percent(_get(p, "readiness_score", 0) for p in preps)


def resume_progress(resume_completed: bool, versions: Sequence[Any]) -> int:
    """
    Partial-credit heuristic: a drafted resume version is worth half the
    step before the resume flag is set.
    """
    if resume_completed:
        return 100
    return 50 if versions else 0


def job_application_progress(job_achieved: bool, jobs: Sequence[Any]) -> int:
    if job_achieved:
        return 100
    return 20 if jobs else 0


# ── Aggregates ───────────────────────────────────────────────────

def stage_progress(steps: Sequence[Any]) -> int:
    """Mean of step progress; a completed step always counts as 100."""
    return mean_percent(
        100 if _get(s, "status") == "completed" else _get(s, "progress", 0)
        for s in steps
    )


def weighted_overall(
    short: float,
    mid: float,
    long: float,
    weights: Sequence[float] = DEFAULT_STAGE_WEIGHTS,
) -> int:
    w_short, w_mid, w_long = weights
    total = (
        clamp_percent(short) * w_short
        + clamp_percent(mid) * w_mid
        + clamp_percent(long) * w_long
    )
    return round_half_up(clamp_percent(total))


def completed_count(items: Sequence[Any], status: str) -> int:
    return sum(1 for i in items if _get(i, "status") == status)


def completion_summary(done: int, total: int, noun: str) -> str:
    return f"{done}/{total} {noun}"


__all__: List[str] = [
    "round_half_up",
    "ratio_percent",
    "mean_percent",
    "journey_completion",
    "learning_status",
    "learning_progress",
    "project_progress",
    "interview_progress",
    "resume_progress",
    "job_application_progress",
    "stage_progress",
    "weighted_overall",
    "completed_count",
    "completion_summary",
]

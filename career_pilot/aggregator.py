"""
aggregator.py: reads everything the roadmap needs for one user.

The aggregator never writes: a user without a journey record gets a
blank one in the snapshot. The journey record is the only read that may
fail the whole call. Every domain read is independent: when one fails it
is logged, replaced by its empty default and listed in `snapshot.degraded`.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from career_pilot.config import get_settings
from career_pilot.database.schemas import (
    AggregateSnapshot,
    CareerAdviceRecord,
    InterviewPreparationRecord,
    JobRecommendationRecord,
    JourneyRoadmap,
    LearningJourneyRecord,
    ProjectIdeaRecord,
    ResumeVersionRecord,
    SkillValidationRecord,
    UserProfileRecord,
)
from career_pilot.database.store import (
    CAREER_ADVICE,
    INTERVIEW_PREPARATION,
    JOB_RECOMMENDATIONS,
    LEARNING_JOURNEY,
    PROJECT_IDEAS,
    RESUME_VERSIONS,
    SKILL_VALIDATIONS,
    USERS_PROFILE,
    Store,
)
from career_pilot.errors import AggregationFailed, CareerPilotError
from career_pilot.journey_state import JourneyStateService
from career_pilot.state_machine import compute_stages

logger = logging.getLogger(__name__)

# snapshot field -> (table, model, latest-only)
DOMAIN_READS: Dict[str, Tuple[str, Type[BaseModel], bool]] = {
    "profile": (USERS_PROFILE, UserProfileRecord, True),
    "career_advice": (CAREER_ADVICE, CareerAdviceRecord, True),
    "skill_validation": (SKILL_VALIDATIONS, SkillValidationRecord, True),
    "learning_journeys": (LEARNING_JOURNEY, LearningJourneyRecord, False),
    "projects": (PROJECT_IDEAS, ProjectIdeaRecord, False),
    "resume_versions": (RESUME_VERSIONS, ResumeVersionRecord, False),
    "jobs": (JOB_RECOMMENDATIONS, JobRecommendationRecord, False),
    "interview_preps": (INTERVIEW_PREPARATION, InterviewPreparationRecord, False),
}


def _validate(model: Type[BaseModel], row: Dict[str, Any], table: str) -> Optional[BaseModel]:
    try:
        return model.model_validate(row)
    except ValidationError as e:
        logger.warning("[Aggregator] dropping malformed %s row %s: %s",
                       table, row.get("id"), e.error_count())
        return None


class StageDataAggregator:

    def __init__(self, store: Store, journey_state: Optional[JourneyStateService] = None,
                 max_workers: Optional[int] = None):
        self.store = store
        self.journey_state = journey_state or JourneyStateService(store)
        self.max_workers = max_workers or get_settings().aggregator_workers

    def _read_domain(self, user_id: str, field: str) -> Any:
        table, model, latest = DOMAIN_READS[field]
        if latest:
            row = self.store.get(table, {"user_id": user_id}, single=True, order_by="updated_at")
            return _validate(model, row, table) if row else None
        rows = self.store.get(table, {"user_id": user_id})
        return [rec for rec in (_validate(model, r, table) for r in rows) if rec is not None]

    def fetch_all(self, user_id: str) -> AggregateSnapshot:
        fields = list(DOMAIN_READS)
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            journey_future = pool.submit(self.journey_state.read_journey, user_id)
            futures = {f: pool.submit(self._read_domain, user_id, f) for f in fields}

            try:
                journey = journey_future.result()
            except (CareerPilotError, ValidationError, OSError) as e:
                for future in futures.values():
                    future.cancel()
                logger.error("[Aggregator] journey state read failed for %s: %s", user_id, e)
                raise AggregationFailed(f"Could not read journey state for {user_id}: {e}") from e

            values: Dict[str, Any] = {}
            degraded: List[str] = []
            for field, future in futures.items():
                try:
                    value = future.result()
                except (CareerPilotError, ValidationError, OSError, ValueError) as e:
                    logger.warning("[Aggregator] %s read failed for %s, using default: %s",
                                   field, user_id, e)
                    degraded.append(field)
                    continue
                if value is not None:
                    values[field] = value

        return AggregateSnapshot(user_id=user_id, journey=journey, degraded=degraded, **values)


def build_roadmap(aggregator: StageDataAggregator, user_id: str) -> JourneyRoadmap:
    """fetch_all + compute_stages with the configured stage weights."""
    snapshot = aggregator.fetch_all(user_id)
    return compute_stages(
        snapshot.journey.flags(),
        snapshot,
        snapshot.journey.terms(),
        weights=get_settings().stage_weights,
    )

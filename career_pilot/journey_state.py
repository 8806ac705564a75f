"""
journey_state.py: the one owner of journey flags and term achievements.

Every read or write of the `sigma_journey_state` record goes through
JourneyStateService; the orchestrator, the aggregator and the API never
touch the table directly.
"""
import logging
from typing import List, Optional, Sequence, Tuple

from career_pilot import progress
from career_pilot.database.schemas import (
    STAGE_IDS,
    JourneyFlags,
    JourneyRecord,
    LearningJourneyRecord,
    TermAchievement,
)
from career_pilot.database.store import JOURNEY_STATE, LEARNING_JOURNEY, Store, StoreWrite
from career_pilot.errors import PrecursorMissing

logger = logging.getLogger(__name__)

FLAG_NAMES = JourneyFlags.names()
TERM_NAMES = TermAchievement.names()


class JourneyStateService:

    def __init__(self, store: Store):
        self.store = store

    # ── Reads ─────────────────────────────────────────────────────

    def read_journey(self, user_id: str) -> JourneyRecord:
        """Journey record for a user without creating one; a blank record if none."""
        row = self.store.rpc("get_sigma_journey_state", {"user_id": user_id})
        return JourneyRecord.model_validate(row or {"user_id": user_id})

    def get_journey(self, user_id: str) -> JourneyRecord:
        """Journey record for a user; a blank one is created on first read."""
        row = self.store.rpc("get_sigma_journey_state", {"user_id": user_id})
        if row is None:
            logger.info("[JourneyState] creating journey record for %s", user_id)
            row = self.store.upsert(JOURNEY_STATE, {"user_id": user_id}, ["user_id"])
        return JourneyRecord.model_validate(row)

    def get_flags(self, user_id: str) -> JourneyFlags:
        return self.get_journey(user_id).flags()

    def get_terms(self, user_id: str) -> TermAchievement:
        return self.get_journey(user_id).terms()

    # ── Writes ────────────────────────────────────────────────────

    @staticmethod
    def _check_flag(flag_name: str, allowed: Sequence[str]) -> None:
        if flag_name not in allowed:
            raise ValueError(f"Unknown journey flag '{flag_name}'")

    def mark_completed(self, user_id: str, flag_name: str) -> JourneyRecord:
        self._check_flag(flag_name, FLAG_NAMES)
        row = self.store.rpc("update_sigma_state_flag", {
            "user_id": user_id, "flag_name": flag_name, "flag_value": True,
        })
        return JourneyRecord.model_validate(row)

    def commit_step(self, user_id: str, writes: Sequence[StoreWrite],
                    flag_name: Optional[str]) -> List[dict]:
        """Persist a step's artifacts and set its flag in one unit."""
        if flag_name is not None:
            self._check_flag(flag_name, FLAG_NAMES)
        return self.store.commit_step(user_id, writes, flag_name)

    def reset_flag(self, user_id: str, flag_name: str) -> JourneyRecord:
        """Undo: the only path that clears a flag or a term achievement."""
        self._check_flag(flag_name, FLAG_NAMES + TERM_NAMES)
        self.get_journey(user_id)
        row = self.store.rpc("update_sigma_state_flag", {
            "user_id": user_id, "flag_name": flag_name, "flag_value": False,
        })
        logger.info("[JourneyState] %s reset for %s", flag_name, user_id)
        return JourneyRecord.model_validate(row)

    def confirm_placement(self, user_id: str, term: str) -> JourneyRecord:
        """The user got the job for `term`; earlier terms must be confirmed first."""
        if term not in STAGE_IDS:
            raise ValueError(f"Unknown term '{term}'")
        terms = self.get_terms(user_id)
        for earlier in STAGE_IDS[:STAGE_IDS.index(term)]:
            if not terms.achieved(earlier):
                raise PrecursorMissing(
                    f"Confirm your {earlier.replace('_', ' ')} placement before {term.replace('_', ' ')}."
                )
        row = self.store.rpc("update_sigma_state_flag", {
            "user_id": user_id, "flag_name": f"{term}_job_achieved", "flag_value": True,
        })
        logger.info("[JourneyState] %s placement confirmed for %s", term, user_id)
        return JourneyRecord.model_validate(row)

    # ── Learning sub-steps ────────────────────────────────────────

    def toggle_learning_step(self, user_id: str, journey_id: str,
                             index: int) -> Tuple[LearningJourneyRecord, int]:
        """
        Flip one sub-step of a learning journey.

        The journey's progress_percentage and status are recomputed from
        its sub-steps (and certified courses), then the user's overall
        learning progress is returned alongside the updated journey.
        """
        row = self.store.get(LEARNING_JOURNEY, {"user_id": user_id, "id": journey_id}, single=True)
        if row is None:
            raise ValueError(f"Learning journey '{journey_id}' not found")
        journey = LearningJourneyRecord.model_validate(row)

        total = len(journey.learning_steps) or len(journey.steps_completed)
        if not 0 <= index < total:
            raise ValueError(f"Step index {index} out of range (0..{total - 1})")

        steps = list(journey.steps_completed) + [False] * (total - len(journey.steps_completed))
        steps[index] = not steps[index]

        recomputed = journey.model_copy(update={"steps_completed": steps, "progress_percentage": None})
        completion = progress.round_half_up(progress.journey_completion(recomputed))
        patch = {
            "steps_completed": steps,
            "progress_percentage": completion,
            "status": progress.learning_status(completion),
        }
        updated = self.store.update(LEARNING_JOURNEY, {"user_id": user_id, "id": journey_id}, patch)
        journey = LearningJourneyRecord.model_validate(updated[0] if updated else {**row, **patch})

        all_journeys = self.store.get(LEARNING_JOURNEY, {"user_id": user_id})
        return journey, progress.learning_progress(all_journeys)

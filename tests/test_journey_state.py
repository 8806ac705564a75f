import pytest

from career_pilot.database.store import JOURNEY_STATE, LEARNING_JOURNEY
from career_pilot.errors import PrecursorMissing
from career_pilot.journey_state import JourneyStateService

USER = "user-1"


@pytest.fixture
def service(store):
    return JourneyStateService(store)


def test_first_read_creates_default_record(service, store):
    journey = service.get_journey(USER)

    assert journey.user_id == USER
    assert not any(journey.flags().model_dump().values())
    assert not any(journey.terms().model_dump().values())
    assert store.get(JOURNEY_STATE, {"user_id": USER}, single=True) is not None


def test_mark_completed_and_reset(service):
    service.mark_completed(USER, "career_analysis_completed")
    assert service.get_flags(USER).career_analysis_completed

    service.reset_flag(USER, "career_analysis_completed")
    assert not service.get_flags(USER).career_analysis_completed


def test_unknown_flag_rejected(service):
    with pytest.raises(ValueError):
        service.mark_completed(USER, "definitely_not_a_flag")
    with pytest.raises(ValueError):
        service.reset_flag(USER, "definitely_not_a_flag")


class TestPlacement:

    def test_terms_must_be_confirmed_in_order(self, service):
        with pytest.raises(PrecursorMissing):
            service.confirm_placement(USER, "mid_term")

        service.confirm_placement(USER, "short_term")
        journey = service.confirm_placement(USER, "mid_term")
        assert journey.short_term_job_achieved
        assert journey.mid_term_job_achieved
        assert not journey.long_term_job_achieved

    def test_unknown_term(self, service):
        with pytest.raises(ValueError):
            service.confirm_placement(USER, "next_week")

    def test_placement_can_be_undone(self, service):
        service.confirm_placement(USER, "short_term")
        service.reset_flag(USER, "short_term_job_achieved")
        assert not service.get_terms(USER).short_term_job_achieved


class TestLearningSteps:

    @pytest.fixture
    def journey_id(self, store):
        row = store.insert(LEARNING_JOURNEY, {
            "user_id": USER,
            "skill_name": "SQL",
            "learning_steps": ["select", "joins", "indexes", "window functions"],
            "steps_completed": [False, False, False, False],
            "status": "not_started",
        })
        store.insert(LEARNING_JOURNEY, {
            "user_id": USER, "skill_name": "Excel", "progress_percentage": 100, "status": "completed",
        })
        return row["id"]

    def test_toggle_recomputes_progress_and_status(self, service, journey_id):
        journey, overall = service.toggle_learning_step(USER, journey_id, 1)

        assert journey.steps_completed == [False, True, False, False]
        assert journey.progress_percentage == 25
        assert journey.status == "in_progress"
        assert overall == 63  # (25 + 100) / 2 = 62.5

    def test_all_steps_complete_the_journey(self, service, journey_id):
        for index in range(4):
            journey, _ = service.toggle_learning_step(USER, journey_id, index)
        assert journey.progress_percentage == 100
        assert journey.status == "completed"

    def test_toggle_back(self, service, journey_id):
        service.toggle_learning_step(USER, journey_id, 0)
        journey, _ = service.toggle_learning_step(USER, journey_id, 0)
        assert journey.status == "not_started"
        assert journey.progress_percentage == 0

    def test_bad_index_or_id(self, service, journey_id):
        with pytest.raises(ValueError):
            service.toggle_learning_step(USER, journey_id, 9)
        with pytest.raises(ValueError):
            service.toggle_learning_step(USER, "missing", 0)

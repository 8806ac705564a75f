import pytest

from career_pilot.aggregator import StageDataAggregator, build_roadmap
from career_pilot.database.json_store import JsonStore
from career_pilot.database.store import (
    CAREER_ADVICE,
    JOB_RECOMMENDATIONS,
    JOURNEY_STATE,
    LEARNING_JOURNEY,
    PROJECT_IDEAS,
    SKILL_VALIDATIONS,
    USERS_PROFILE,
)
from career_pilot.errors import AggregationFailed, StoreUnavailable

USER = "user-1"


class FlakyStore(JsonStore):
    """JsonStore whose reads of some tables (or the journey rpc) fail."""

    def __init__(self, data_dir, failing_tables=(), fail_journey=False):
        super().__init__(data_dir)
        self.failing_tables = set(failing_tables)
        self.fail_journey = fail_journey

    def get(self, table, filters, **kwargs):
        if table in self.failing_tables:
            raise StoreUnavailable(f"{table} is down")
        return super().get(table, filters, **kwargs)

    def rpc(self, name, args):
        if self.fail_journey:
            raise StoreUnavailable("journey table is down")
        return super().rpc(name, args)


def test_empty_user_gets_defaults(store):
    snapshot = StageDataAggregator(store, max_workers=2).fetch_all(USER)

    assert snapshot.journey.user_id == USER
    assert snapshot.career_advice is None
    assert snapshot.skill_validation is None
    assert snapshot.learning_journeys == []
    assert snapshot.jobs == []
    assert snapshot.degraded == []


def test_reading_does_not_create_a_journey(store):
    snapshot = StageDataAggregator(store, max_workers=2).fetch_all(USER)

    assert snapshot.journey.flags().career_analysis_completed is False
    assert store.get(JOURNEY_STATE, {"user_id": USER}, single=True) is None


def test_latest_row_is_the_last_written(store):
    for role, score in (("Data Analyst", 40), ("QA Engineer", 55), ("Data Analyst", 70)):
        store.upsert(SKILL_VALIDATIONS, {"user_id": USER, "role": role, "readiness_score": score})

    snapshot = StageDataAggregator(store, max_workers=2).fetch_all(USER)

    assert snapshot.skill_validation.role == "Data Analyst"
    assert snapshot.skill_validation.readiness_score == 70


def test_reads_every_domain(store):
    store.insert(USERS_PROFILE, {"user_id": USER, "goal_description": "Become a data scientist"})
    store.insert(CAREER_ADVICE, {"user_id": USER, "career_advice": {"roles": []},
                                 "created_at": "2024-01-01T00:00:00"})
    store.insert(CAREER_ADVICE, {"user_id": USER, "career_advice": {"roles": [
        {"role": "ML Engineer", "term": "long"}]}, "created_at": "2025-01-01T00:00:00"})
    store.insert(PROJECT_IDEAS, {"user_id": USER, "title": "A", "status": "Completed"})
    store.insert(PROJECT_IDEAS, {"user_id": USER, "title": "B"})
    store.insert(JOB_RECOMMENDATIONS, {"user_id": USER, "job_title": "Analyst", "company_name": "Acme"})

    snapshot = StageDataAggregator(store).fetch_all(USER)

    assert snapshot.profile.goal_description == "Become a data scientist"
    assert snapshot.user_goal == "ML Engineer"  # latest advice wins over profile goal
    assert len(snapshot.projects) == 2
    assert snapshot.jobs[0].company_name == "Acme"


def test_domain_failure_degrades_to_default(tmp_path):
    store = FlakyStore(str(tmp_path), failing_tables={PROJECT_IDEAS, CAREER_ADVICE})
    store.insert(JOB_RECOMMENDATIONS, {"user_id": USER, "job_title": "Analyst", "company_name": "Acme"})

    snapshot = StageDataAggregator(store).fetch_all(USER)

    assert snapshot.projects == []
    assert snapshot.career_advice is None
    assert sorted(snapshot.degraded) == ["career_advice", "projects"]
    assert len(snapshot.jobs) == 1


def test_journey_failure_is_fatal(tmp_path):
    store = FlakyStore(str(tmp_path), fail_journey=True)
    with pytest.raises(AggregationFailed):
        StageDataAggregator(store).fetch_all(USER)


def test_malformed_rows_are_dropped(store):
    store.insert(LEARNING_JOURNEY, {"user_id": USER, "skill_name": "SQL", "steps_completed": "yes"})
    store.insert(LEARNING_JOURNEY, {"user_id": USER, "skill_name": "Python", "progress_percentage": 40})

    snapshot = StageDataAggregator(store).fetch_all(USER)
    assert [j.skill_name for j in snapshot.learning_journeys] == ["Python"]


def test_build_roadmap(store):
    store.insert(PROJECT_IDEAS, {"user_id": USER, "title": "A", "status": "Completed"})

    roadmap = build_roadmap(StageDataAggregator(store), USER)

    assert roadmap.user_id == USER
    assert roadmap.current_stage == "short_term"
    assert roadmap.stages[0].steps[3].progress == 100
    assert roadmap.stages[0].steps[3].completion_text == "1/1 Projects Done"

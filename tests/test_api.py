import pytest
from fastapi.testclient import TestClient

from career_pilot.database.json_store import JsonStore
from career_pilot.database.store import CAREER_ADVICE, LEARNING_JOURNEY, SKILL_VALIDATIONS
from career_pilot.errors import QuotaExhausted, StoreUnavailable
from career_pilot.main import app, generator_dependency, store_dependency

from conftest import USER, FakeGenerator


class DownStore(JsonStore):
    def rpc(self, name, args):
        raise StoreUnavailable("journey table is down")


@pytest.fixture
def api(store, generator):
    app.dependency_overrides[store_dependency] = lambda: store
    app.dependency_overrides[generator_dependency] = lambda: generator
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(api):
    body = api.get("/health").json()
    assert body["status"] == "ok"
    assert body["store"] == "json"


class TestRoadmap:

    def test_fresh_user(self, api):
        response = api.get(f"/api/journey/{USER}/roadmap")
        assert response.status_code == 200
        body = response.json()
        assert body["current_stage"] == "short_term"
        assert body["next_action"] == "career_analysis"
        assert len(body["stages"]) == 3

    def test_store_down_is_503(self, api, tmp_path):
        app.dependency_overrides[store_dependency] = lambda: DownStore(str(tmp_path / "down"))
        assert api.get(f"/api/journey/{USER}/roadmap").status_code == 503
        assert api.get(f"/api/journey/{USER}/state").status_code == 503


def test_state(api):
    body = api.get(f"/api/journey/{USER}/state").json()
    assert body["user_id"] == USER
    assert body["flags"]["career_analysis_completed"] is False
    assert body["next_action"] == "career_analysis"


class TestActions:

    def test_missing_precursor_is_409(self, api):
        response = api.post(f"/api/journey/{USER}/actions/skill_validation")
        assert response.status_code == 409
        assert response.json()["error_type"] == "PrecursorMissing"

    def test_successful_action(self, api, user_with_resume):
        response = api.post(f"/api/journey/{USER}/actions/career_analysis")
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["next_step"] == "skill_validation"
        assert api.get(f"/api/journey/{USER}/state").json()["next_action"] == "skill_validation"

    def test_selection_body(self, api, store):
        store.upsert(CAREER_ADVICE, {"user_id": USER, "career_advice": {"roles": []}})
        response = api.post(f"/api/journey/{USER}/actions/skill_validation", json={"role": "QA Engineer"})
        assert response.json()["data"]["role"] == "QA Engineer"

    def test_generation_failure_is_200_with_error(self, api, store, user_with_resume):
        app.dependency_overrides[generator_dependency] = lambda: FakeGenerator(
            {"career_analysis": QuotaExhausted("AI credits exhausted")})
        response = api.post(f"/api/journey/{USER}/actions/career_analysis")
        assert response.status_code == 200
        assert response.json()["error_type"] == "QuotaExhausted"

    def test_unknown_action_is_404(self, api):
        assert api.post(f"/api/journey/{USER}/actions/teleport").status_code == 404

    def test_malformed_stored_data_is_409(self, api, store):
        store.upsert(SKILL_VALIDATIONS, {"user_id": USER, "role": "Dev", "readiness_score": "n/a"})
        response = api.post(f"/api/journey/{USER}/actions/learning_plan")
        assert response.status_code == 409
        assert response.json()["error_type"] == "PrecursorMissing"


class TestPlacementAndUndo:

    def test_placement_order(self, api):
        assert api.post(f"/api/journey/{USER}/placement", json={"term": "mid_term"}).status_code == 409
        response = api.post(f"/api/journey/{USER}/placement", json={"term": "short_term"})
        assert response.status_code == 200
        assert response.json()["terms"]["short_term_job_achieved"] is True

    def test_unknown_term_is_rejected(self, api):
        assert api.post(f"/api/journey/{USER}/placement", json={"term": "someday"}).status_code == 422

    def test_reset_flag(self, api):
        assert api.delete(f"/api/journey/{USER}/flags/not_a_flag").status_code == 400
        response = api.delete(f"/api/journey/{USER}/flags/resume_completed")
        assert response.status_code == 200
        assert response.json()["flags"]["resume_completed"] is False


def test_learning_step_toggle(api, store):
    row = store.insert(LEARNING_JOURNEY, {
        "user_id": USER, "skill_name": "SQL",
        "learning_steps": ["a", "b"], "steps_completed": [False, False],
    })

    response = api.post(f"/api/journey/{USER}/learning/{row['id']}/steps/0")
    assert response.status_code == 200
    assert response.json()["journey"]["progress_percentage"] == 50
    assert response.json()["learning_progress"] == 50

    assert api.post(f"/api/journey/{USER}/learning/{row['id']}/steps/7").status_code == 404

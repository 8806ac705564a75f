"""Shared fixtures: a JSON store on tmp_path and a scripted content generator."""
import pytest

from career_pilot.agents.artifacts import ARTIFACT_MODELS
from career_pilot.agents.fallbacks import FALLBACKS
from career_pilot.database.json_store import JsonStore
from career_pilot.database.schemas import AggregateSnapshot, JourneyRecord
from career_pilot.database.store import RESUME_ANALYSIS

USER = "user-1"

PARSED_RESUME = {
    "name": "Asha Rao",
    "skills": {"technical": ["Python", "SQL"], "tools": ["Git"]},
    "experience": [{"title": "Intern", "company": "Acme"}],
}


class FakeGenerator:
    """
    Stands in for ContentGenerator.

    `responses` maps action -> dict | callable(context) | Exception. Actions
    without a scripted response get the fallback content for that action.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def generate(self, action, context):
        self.calls.append((action, context))
        response = self.responses.get(action)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(context)
        if response is None:
            response = FALLBACKS[action](context)
        return ARTIFACT_MODELS[action].model_validate(response)

    def actions(self):
        return [action for action, _ in self.calls]


@pytest.fixture
def store(tmp_path):
    return JsonStore(str(tmp_path / "journeys"))


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def user_with_resume(store):
    store.insert(RESUME_ANALYSIS, {"user_id": USER, "parsed_data": PARSED_RESUME})
    return USER


def make_snapshot(user_id=USER, **fields):
    return AggregateSnapshot(user_id=user_id, journey=JourneyRecord(user_id=user_id), **fields)

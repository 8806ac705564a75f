import pytest

from career_pilot.database.store import (
    JOURNEY_STATE,
    PROJECT_IDEAS,
    SKILL_VALIDATIONS,
    StoreWrite,
)

USER = "user-1"


def test_insert_stamps_id_and_timestamps(store):
    row = store.insert(PROJECT_IDEAS, {"user_id": USER, "title": "Tracker"})
    assert len(row["id"]) == 32
    assert row["created_at"] and row["updated_at"]
    assert store.get_path(USER).name == "user-1_journey.json"


def test_upsert_keeps_id_and_created_at(store):
    first = store.upsert(SKILL_VALIDATIONS, {"user_id": USER, "role": "Dev", "readiness_score": 40})
    second = store.upsert(SKILL_VALIDATIONS, {"user_id": USER, "role": "Dev", "readiness_score": 70})

    rows = store.get(SKILL_VALIDATIONS, {"user_id": USER})
    assert len(rows) == 1
    assert second["id"] == first["id"]
    assert second["created_at"] == first["created_at"]
    assert rows[0]["readiness_score"] == 70


def test_upsert_with_other_key_adds_row(store):
    store.upsert(SKILL_VALIDATIONS, {"user_id": USER, "role": "Dev"})
    store.upsert(SKILL_VALIDATIONS, {"user_id": USER, "role": "Analyst"})
    assert len(store.get(SKILL_VALIDATIONS, {"user_id": USER})) == 2


def test_get_orders_newest_first(store):
    store.insert(PROJECT_IDEAS, {"user_id": USER, "title": "old", "created_at": "2024-01-01T00:00:00"})
    store.insert(PROJECT_IDEAS, {"user_id": USER, "title": "new", "created_at": "2025-01-01T00:00:00"})

    assert store.get(PROJECT_IDEAS, {"user_id": USER}, single=True)["title"] == "new"
    oldest = store.get(PROJECT_IDEAS, {"user_id": USER}, descending=False, limit=1)
    assert [r["title"] for r in oldest] == ["old"]


def test_get_missing_returns_empty(store):
    assert store.get(PROJECT_IDEAS, {"user_id": "nobody"}) == []
    assert store.get(PROJECT_IDEAS, {"user_id": "nobody"}, single=True) is None


def test_user_id_is_required(store):
    with pytest.raises(ValueError):
        store.get(PROJECT_IDEAS, {"title": "x"})
    with pytest.raises(ValueError):
        store.insert(PROJECT_IDEAS, {"title": "x"})


def test_update_and_delete(store):
    row = store.insert(PROJECT_IDEAS, {"user_id": USER, "title": "Tracker", "status": "not_started"})

    updated = store.update(PROJECT_IDEAS, {"user_id": USER, "id": row["id"]}, {"status": "Completed"})
    assert updated[0]["status"] == "Completed"
    assert store.delete(PROJECT_IDEAS, {"user_id": USER, "id": row["id"]}) == 1
    assert store.get(PROJECT_IDEAS, {"user_id": USER}) == []


def test_rpc_flag_round_trip(store):
    assert store.rpc("get_sigma_journey_state", {"user_id": USER}) is None

    store.rpc("update_sigma_state_flag", {
        "user_id": USER, "flag_name": "career_analysis_completed", "flag_value": True,
    })
    state = store.rpc("get_sigma_journey_state", {"user_id": USER})
    assert state["career_analysis_completed"] is True

    with pytest.raises(ValueError):
        store.rpc("drop_everything", {"user_id": USER})


def test_commit_step_writes_and_flags_together(store):
    writes = [
        StoreWrite(PROJECT_IDEAS, {"user_id": USER, "title": "A"}, ("user_id", "title")),
        StoreWrite(PROJECT_IDEAS, {"user_id": USER, "title": "B"}, ("user_id", "title")),
    ]
    saved = store.commit_step(USER, writes, "project_guidance_completed")

    assert [r["title"] for r in saved] == ["A", "B"]
    state = store.get(JOURNEY_STATE, {"user_id": USER}, single=True)
    assert state["project_guidance_completed"] is True


def test_commit_step_is_all_or_nothing(store):
    writes = [
        StoreWrite(PROJECT_IDEAS, {"user_id": USER, "title": "A"}, ("user_id", "title")),
        StoreWrite(PROJECT_IDEAS, {"user_id": USER}, ("user_id", "title")),  # no title
    ]
    with pytest.raises(ValueError):
        store.commit_step(USER, writes, "project_guidance_completed")

    assert store.get(PROJECT_IDEAS, {"user_id": USER}) == []
    assert store.get(JOURNEY_STATE, {"user_id": USER}, single=True) is None


def test_commit_step_rejects_other_users_records(store):
    writes = [StoreWrite(PROJECT_IDEAS, {"user_id": "someone-else", "title": "A"}, ("user_id", "title"))]
    with pytest.raises(ValueError):
        store.commit_step(USER, writes, None)


def test_clear_user(store):
    store.insert(PROJECT_IDEAS, {"user_id": USER, "title": "A"})
    store.clear_user(USER)
    assert not store.get_path(USER).exists()

"""
store.py: the record-store contract shared by every backend.

A Store holds one table per domain record. Every record is a plain dict
carrying `id`, `user_id`, `created_at` and `updated_at`. Backends implement
the six primitives; the journey-state RPCs are built on top of them here.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Sequence, Union

# ── Tables ────────────────────────────────────────────────────────
JOURNEY_STATE = "sigma_journey_state"
USERS_PROFILE = "users_profile"
RESUME_ANALYSIS = "resume_analysis"
EDUCATION_DETAILS = "education_details"
EXPERIENCE_DETAILS = "experience_details"
CERTIFICATIONS = "certifications"
CAREER_ADVICE = "resume_career_advice"
SKILL_VALIDATIONS = "skill_validations"
LEARNING_JOURNEY = "user_learning_journey"
PROJECT_IDEAS = "project_ideas"
PROJECT_DETAIL = "project_detail"
PROJECT_BUILD_STEPS = "project_build_steps"
RESUME_VERSIONS = "resume_versions"
JOB_RECOMMENDATIONS = "ai_job_recommendations"
INTERVIEW_PREPARATION = "interview_preparation"

# conflict keys used by every upsert into a table
UPSERT_KEYS: Dict[str, Sequence[str]] = {
    JOURNEY_STATE: ("user_id",),
    CAREER_ADVICE: ("user_id",),
    SKILL_VALIDATIONS: ("user_id", "role"),
    LEARNING_JOURNEY: ("user_id", "skill_name"),
    PROJECT_IDEAS: ("user_id", "title"),
    PROJECT_DETAIL: ("user_id", "project_id"),
    PROJECT_BUILD_STEPS: ("user_id", "project_id"),
    RESUME_VERSIONS: ("user_id", "target_role"),
    JOB_RECOMMENDATIONS: ("user_id", "job_title", "company_name"),
    INTERVIEW_PREPARATION: ("user_id", "job_id"),
}


class StoreWrite(NamedTuple):
    """One upsert inside a commit_step unit."""
    table: str
    record: Dict[str, Any]
    conflict_keys: Sequence[str]


def new_id() -> str:
    return uuid.uuid4().hex


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def stamp_new(record: Dict[str, Any]) -> Dict[str, Any]:
    """Fill id / timestamps on a record that is about to be created."""
    doc = {k: v for k, v in record.items() if k != "_id"}
    now = now_iso()
    doc.setdefault("id", new_id())
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    return doc


def conflict_filter(record: Dict[str, Any], conflict_keys: Iterable[str]) -> Dict[str, Any]:
    keys = list(conflict_keys)
    missing = [k for k in keys if record.get(k) in (None, "")]
    if missing:
        raise ValueError(f"upsert record is missing conflict key(s) {missing}")
    return {k: record[k] for k in keys}


class Store:
    """
    Interface every backend implements.

    get() returns a list of dicts (newest first by default), or a single
    dict / None when `single=True`. Reads raise StoreUnavailable, writes
    raise PersistenceFailed.
    """

    name = "store"

    def get(
        self,
        table: str,
        filters: Dict[str, Any],
        single: bool = False,
        order_by: Optional[str] = "created_at",
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> Union[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
        raise NotImplementedError

    def upsert(self, table: str, record: Dict[str, Any],
               conflict_keys: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        raise NotImplementedError

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def update(self, table: str, filters: Dict[str, Any], patch: Dict[str, Any]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def delete(self, table: str, filters: Dict[str, Any]) -> int:
        raise NotImplementedError

    def commit_step(self, user_id: str, writes: Sequence[StoreWrite],
                    flag_name: Optional[str]) -> List[Dict[str, Any]]:
        """Persist `writes` and set `flag_name` true as one unit."""
        raise NotImplementedError

    # ── RPCs ──────────────────────────────────────────────────────

    def rpc(self, name: str, args: Dict[str, Any]) -> Any:
        if name == "get_sigma_journey_state":
            return self.get(JOURNEY_STATE, {"user_id": args["user_id"]}, single=True)
        if name == "update_sigma_state_flag":
            return self.upsert(
                JOURNEY_STATE,
                {"user_id": args["user_id"], args["flag_name"]: bool(args["flag_value"])},
                UPSERT_KEYS[JOURNEY_STATE],
            )
        raise ValueError(f"Unknown rpc '{name}'")


def keys_for(table: str, conflict_keys: Optional[Sequence[str]]) -> Sequence[str]:
    if conflict_keys:
        return conflict_keys
    if table not in UPSERT_KEYS:
        raise ValueError(f"No upsert key known for table '{table}'")
    return UPSERT_KEYS[table]

"""
JSON File Store

Keeps every table of one user in a single JSON file
(`<dir>/<user_id>_journey.json`). Used when MongoDB is not configured or
unreachable, and by the test-suite.

Every read and write names the user (`user_id` in the filters or the
record), so a file is only ever touched for that user. Writes go to a
temp file that replaces the original, so a crash never leaves a half
written file behind.
"""

import copy
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from career_pilot.database.store import (
    JOURNEY_STATE,
    UPSERT_KEYS,
    Store,
    StoreWrite,
    conflict_filter,
    keys_for,
    now_iso,
    stamp_new,
)
from career_pilot.errors import PersistenceFailed, StoreUnavailable

logger = logging.getLogger(__name__)


def _matches(row: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    return all(row.get(k) == v for k, v in filters.items())


class JsonStore(Store):
    """
    Per-user JSON files under `data_dir`.

    File layout:
        {"user_id": ..., "last_updated": ..., "tables": {table: [row, ...]}}
    """

    name = "json"

    def __init__(self, data_dir: Optional[str] = None):
        if data_dir is None:
            data_dir = os.path.join(os.getcwd(), "data", "journeys")
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        # one lock for the whole directory: a commit_step touches one file
        self._lock = threading.RLock()
        logger.info("[Store] JSON store at %s", self.data_dir)

    # ── File handling ─────────────────────────────────────────────

    def get_path(self, user_id: str) -> Path:
        safe = "".join(c for c in str(user_id) if c.isalnum() or c in "-_.@")
        if not safe:
            raise ValueError(f"Invalid user_id {user_id!r}")
        return self.data_dir / f"{safe}_journey.json"

    def _load(self, user_id: str) -> Dict[str, Any]:
        path = self.get_path(user_id)
        if not path.exists():
            return {"user_id": user_id, "tables": {}}
        try:
            with open(path, "r", encoding="utf-8") as f:
                doc = json.load(f)
        except (OSError, ValueError) as e:
            raise StoreUnavailable(f"Could not read {path.name}: {e}") from e
        doc.setdefault("tables", {})
        return doc

    def _save(self, user_id: str, doc: Dict[str, Any]) -> None:
        path = self.get_path(user_id)
        tmp = path.with_suffix(".json.tmp")
        doc["last_updated"] = now_iso()
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(doc, f, indent=2, default=str)
            os.replace(tmp, path)
        except OSError as e:
            raise PersistenceFailed(f"Could not write {path.name}: {e}") from e

    @staticmethod
    def _user_of(filters: Dict[str, Any]) -> str:
        user_id = filters.get("user_id")
        if not user_id:
            raise ValueError("JsonStore needs user_id in every filter and record")
        return user_id

    # ── Row helpers (operate on a loaded doc) ─────────────────────

    @staticmethod
    def _upsert_row(doc: Dict[str, Any], table: str, record: Dict[str, Any],
                    conflict_keys: Sequence[str]) -> Dict[str, Any]:
        rows = doc["tables"].setdefault(table, [])
        key = conflict_filter(record, conflict_keys)
        for row in rows:
            if _matches(row, key):
                patch = {k: v for k, v in record.items() if k not in ("id", "created_at", "_id")}
                row.update(patch)
                row["updated_at"] = now_iso()
                return row
        row = stamp_new(record)
        rows.append(row)
        return row

    @staticmethod
    def _set_flag(doc: Dict[str, Any], user_id: str, flag_name: str) -> Dict[str, Any]:
        return JsonStore._upsert_row(
            doc, JOURNEY_STATE, {"user_id": user_id, flag_name: True},
            UPSERT_KEYS[JOURNEY_STATE],
        )

    # ── Store interface ───────────────────────────────────────────

    def get(self, table, filters, single=False, order_by="created_at",
            descending=True, limit=None):
        user_id = self._user_of(filters)
        with self._lock:
            doc = self._load(user_id)
        rows = [r for r in doc["tables"].get(table, []) if _matches(r, filters)]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is not None, r.get(order_by) or ""),
                      reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        rows = copy.deepcopy(rows)
        if single:
            return rows[0] if rows else None
        return rows

    def upsert(self, table, record, conflict_keys=None):
        user_id = self._user_of(record)
        keys = keys_for(table, conflict_keys)
        with self._lock:
            doc = self._load(user_id)
            row = self._upsert_row(doc, table, record, keys)
            self._save(user_id, doc)
        return copy.deepcopy(row)

    def insert(self, table, record):
        user_id = self._user_of(record)
        with self._lock:
            doc = self._load(user_id)
            row = stamp_new(record)
            doc["tables"].setdefault(table, []).append(row)
            self._save(user_id, doc)
        return copy.deepcopy(row)

    def update(self, table, filters, patch):
        user_id = self._user_of(filters)
        changed = []
        with self._lock:
            doc = self._load(user_id)
            for row in doc["tables"].get(table, []):
                if _matches(row, filters):
                    row.update({k: v for k, v in patch.items() if k not in ("id", "user_id")})
                    row["updated_at"] = now_iso()
                    changed.append(row)
            if changed:
                self._save(user_id, doc)
        return copy.deepcopy(changed)

    def delete(self, table, filters):
        user_id = self._user_of(filters)
        with self._lock:
            doc = self._load(user_id)
            rows = doc["tables"].get(table, [])
            kept = [r for r in rows if not _matches(r, filters)]
            removed = len(rows) - len(kept)
            if removed:
                doc["tables"][table] = kept
                self._save(user_id, doc)
        return removed

    def commit_step(self, user_id: str, writes: Sequence[StoreWrite],
                    flag_name: Optional[str]) -> List[Dict[str, Any]]:
        """All writes plus the flag land in one file replace, or none do."""
        with self._lock:
            doc = self._load(user_id)
            saved = []
            for write in writes:
                if write.record.get("user_id") != user_id:
                    raise ValueError(f"commit_step write for {write.table} belongs to another user")
                saved.append(self._upsert_row(doc, write.table, write.record,
                                              keys_for(write.table, write.conflict_keys)))
            if flag_name:
                self._set_flag(doc, user_id, flag_name)
            self._save(user_id, doc)
        logger.debug("[Store] committed %d write(s) + %s for %s", len(writes), flag_name, user_id)
        return copy.deepcopy(saved)

    def clear_user(self, user_id: str) -> None:
        """Remove every table of a user (use with caution)."""
        path = self.get_path(user_id)
        with self._lock:
            if path.exists():
                path.unlink()

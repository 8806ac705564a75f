"""
db.py: MongoDB store and the store factory used by the API.

One collection per table. Works with MongoDB Atlas (mongodb+srv://...) and
plain mongod alike. When Mongo is not configured or not reachable the
factory hands out a JsonStore instead, so the API keeps working locally.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import OperationFailure, PyMongoError
from pymongo.server_api import ServerApi

from career_pilot.config import Settings, get_settings
from career_pilot.database.json_store import JsonStore
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

_NO_ID = {"_id": 0}
# "Transaction numbers are only allowed on a replica set member or mongos"
_ILLEGAL_OPERATION = 20


def _setup_indexes(db) -> None:
    """Create indexes for common queries (idempotent)."""
    try:
        for table, keys in UPSERT_KEYS.items():
            db[table].create_index([(k, ASCENDING) for k in keys], unique=True)
            db[table].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    except PyMongoError as e:
        logger.warning("[Store] Index creation warning: %s", e)


def _transactions_unsupported(exc: OperationFailure) -> bool:
    return exc.code == _ILLEGAL_OPERATION or "replica set" in str(exc)


class MongoStore(Store):
    """
    Store backed by MongoDB.
    Uses ServerApi(version='1') for Atlas. Reads raise StoreUnavailable,
    writes raise PersistenceFailed; nothing is silently dropped.
    """

    name = "mongo"

    def __init__(self, settings: Optional[Settings] = None, client: Optional[MongoClient] = None):
        settings = settings or get_settings()
        try:
            if client is None:
                if not settings.mongo_uri:
                    raise StoreUnavailable("MONGO_URI is not set")
                options: Dict[str, Any] = dict(
                    serverSelectionTimeoutMS=15000,     # 15 s for Atlas cold-start
                    connectTimeoutMS=15000,
                    socketTimeoutMS=30000,
                    retryWrites=True,
                )
                if settings.mongo_uri.startswith("mongodb+srv://"):
                    options["server_api"] = ServerApi("1")
                    options["tls"] = True
                client = MongoClient(settings.mongo_uri, **options)
            client.admin.command("ping")            # verify reachable
        except PyMongoError as e:
            raise StoreUnavailable(f"MongoDB connection failed: {e}") from e

        self._client = client
        self._db = client[settings.mongo_db]
        self._supports_transactions = True
        _setup_indexes(self._db)
        logger.info("[Store] Connected to MongoDB -> %s", settings.mongo_db)

    # ── Store interface ───────────────────────────────────────────

    def get(self, table, filters, single=False, order_by="created_at",
            descending=True, limit=None):
        try:
            cursor = self._db[table].find(filters, _NO_ID)
            if order_by:
                cursor = cursor.sort(order_by, DESCENDING if descending else ASCENDING)
            if single:
                cursor = cursor.limit(1)
            elif limit:
                cursor = cursor.limit(limit)
            rows = list(cursor)
        except PyMongoError as e:
            raise StoreUnavailable(f"read {table} failed: {e}") from e
        if single:
            return rows[0] if rows else None
        return rows

    def _upsert(self, table: str, record: Dict[str, Any], conflict_keys: Sequence[str],
                session=None) -> Dict[str, Any]:
        key = conflict_filter(record, conflict_keys)
        created = stamp_new(record)
        on_insert = {"id": created["id"], "created_at": created["created_at"]}
        fields = {k: v for k, v in created.items() if k not in on_insert}
        return self._db[table].find_one_and_update(
            key,
            {"$set": fields, "$setOnInsert": on_insert},
            upsert=True,
            projection=_NO_ID,
            return_document=ReturnDocument.AFTER,
            session=session,
        )

    def upsert(self, table, record, conflict_keys=None):
        try:
            return self._upsert(table, record, keys_for(table, conflict_keys))
        except PyMongoError as e:
            raise PersistenceFailed(f"upsert {table} failed: {e}") from e

    def insert(self, table, record):
        doc = stamp_new(record)
        try:
            self._db[table].insert_one(dict(doc))
        except PyMongoError as e:
            raise PersistenceFailed(f"insert {table} failed: {e}") from e
        return doc

    def update(self, table, filters, patch):
        fields = {k: v for k, v in patch.items() if k not in ("_id", "id", "user_id")}
        fields["updated_at"] = now_iso()
        try:
            self._db[table].update_many(filters, {"$set": fields})
        except PyMongoError as e:
            raise PersistenceFailed(f"update {table} failed: {e}") from e
        return self.get(table, filters)

    def delete(self, table, filters):
        try:
            return self._db[table].delete_many(filters).deleted_count
        except PyMongoError as e:
            raise PersistenceFailed(f"delete {table} failed: {e}") from e

    # ── Atomic step commit ────────────────────────────────────────

    def _apply(self, user_id: str, writes: Sequence[StoreWrite], flag_name: Optional[str],
               session=None) -> List[Dict[str, Any]]:
        saved = [
            self._upsert(w.table, w.record, keys_for(w.table, w.conflict_keys), session=session)
            for w in writes
        ]
        if flag_name:
            self._upsert(JOURNEY_STATE, {"user_id": user_id, flag_name: True},
                         UPSERT_KEYS[JOURNEY_STATE], session=session)
        return saved

    def commit_step(self, user_id, writes, flag_name):
        for w in writes:
            if w.record.get("user_id") != user_id:
                raise ValueError(f"commit_step write for {w.table} belongs to another user")
        try:
            if self._supports_transactions:
                try:
                    with self._client.start_session() as session:
                        return session.with_transaction(
                            lambda s: self._apply(user_id, writes, flag_name, session=s)
                        )
                except OperationFailure as e:
                    if not _transactions_unsupported(e):
                        raise
                    self._supports_transactions = False
                    logger.warning("[Store] Transactions unsupported (standalone mongod); "
                                   "committing steps sequentially")
            # flag goes last: a failure before it leaves the step incomplete
            return self._apply(user_id, writes, flag_name)
        except PyMongoError as e:
            raise PersistenceFailed(f"commit_step for {user_id} failed: {e}") from e


# ── Factory ──────────────────────────────────────────────────────

def get_store(settings: Optional[Settings] = None) -> Store:
    """Mongo when configured and reachable, otherwise the JSON file store."""
    settings = settings or get_settings()
    if settings.store_backend == "json":
        return JsonStore(settings.json_store_dir)
    if not settings.mongo_uri:
        logger.warning("[Store] MONGO_URI is not set; using JSON files in %s",
                       settings.json_store_dir)
        return JsonStore(settings.json_store_dir)
    try:
        return MongoStore(settings)
    except StoreUnavailable as e:
        logger.warning("[Store] %s; using JSON files in %s", e, settings.json_store_dir)
        return JsonStore(settings.json_store_dir)

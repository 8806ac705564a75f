"""
Database layer: the Store contract, the JSON file backend and the
record schemas. The MongoDB backend lives in career_pilot.db.
"""
from .json_store import JsonStore
from .store import UPSERT_KEYS, Store, StoreWrite

__all__ = [
    "JsonStore",
    "Store",
    "StoreWrite",
    "UPSERT_KEYS",
]

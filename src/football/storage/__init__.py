"""Signal record persistence."""

from src.football.storage.base import RecordStore, StoreError
from src.football.storage.memory import MemoryRecordStore
from src.football.storage.jsonl import JsonlRecordStore

__all__ = [
    "RecordStore",
    "StoreError",
    "MemoryRecordStore",
    "JsonlRecordStore",
]

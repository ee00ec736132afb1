"""In-memory record store."""

from datetime import datetime
from typing import Optional

from src.football.models.records import SignalRecord
from src.football.storage.base import StoreError


class MemoryRecordStore:
    """Dict-backed store; insertion order is trigger order."""

    def __init__(self):
        self._records: dict[str, SignalRecord] = {}

    def add(self, record: SignalRecord) -> None:
        if record.id in self._records:
            raise StoreError(f"duplicate record id {record.id}")
        self._records[record.id] = record

    def update(self, record: SignalRecord) -> None:
        if record.id not in self._records:
            raise StoreError(f"unknown record id {record.id}")
        self._records[record.id] = record

    def get(self, record_id: str) -> Optional[SignalRecord]:
        return self._records.get(record_id)

    def list_records(self) -> list[SignalRecord]:
        return list(reversed(self._records.values()))

    def pending(self) -> list[SignalRecord]:
        return [r for r in self._records.values() if r.is_pending]

    def prune(self, before: datetime) -> int:
        stale = [rid for rid, r in self._records.items() if r.triggered_at < before]
        for rid in stale:
            del self._records[rid]
        return len(stale)

    def __len__(self) -> int:
        return len(self._records)

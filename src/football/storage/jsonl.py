"""
JSON-lines record store.

One SignalRecord per line. New records are appended; status updates and
pruning rewrite the file through a temporary file and an atomic replace.
The in-memory index is only changed after the write succeeded.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import orjson
import structlog
from pydantic import ValidationError

from src.football.models.records import SignalRecord
from src.football.storage.base import StoreError
from src.football.storage.memory import MemoryRecordStore

logger = structlog.get_logger()


class JsonlRecordStore:
    """File-backed store that keeps an in-memory index of all records."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = logger.bind(component="jsonl_store", path=str(self.path))
        self._index = MemoryRecordStore()
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path, "rb") as f:
                for line_no, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    record = SignalRecord.model_validate(orjson.loads(line))
                    self._index.add(record)
        except (OSError, orjson.JSONDecodeError, ValidationError) as e:
            raise StoreError(f"failed to load {self.path}: {e}") from e
        self.logger.info("record_store_loaded", records=len(self._index))

    @staticmethod
    def _dump(record: SignalRecord) -> bytes:
        return orjson.dumps(record.model_dump(mode="json")) + b"\n"

    def _rewrite(self, records: list[SignalRecord]) -> None:
        """Replace the file with records, oldest first."""
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "wb") as f:
                for record in records:
                    f.write(self._dump(record))
            os.replace(tmp, self.path)
        except OSError as e:
            raise StoreError(f"failed to write {self.path}: {e}") from e

    def add(self, record: SignalRecord) -> None:
        # The index only changes once the line is on disk
        if self._index.get(record.id) is not None:
            raise StoreError(f"duplicate record id {record.id}")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "ab") as f:
                f.write(self._dump(record))
        except OSError as e:
            raise StoreError(f"failed to append to {self.path}: {e}") from e
        self._index.add(record)

    def update(self, record: SignalRecord) -> None:
        if self._index.get(record.id) is None:
            raise StoreError(f"unknown record id {record.id}")
        self._rewrite([
            record if r.id == record.id else r
            for r in reversed(self._index.list_records())
        ])
        self._index.update(record)

    def get(self, record_id: str) -> Optional[SignalRecord]:
        return self._index.get(record_id)

    def list_records(self) -> list[SignalRecord]:
        return self._index.list_records()

    def pending(self) -> list[SignalRecord]:
        return self._index.pending()

    def prune(self, before: datetime) -> int:
        kept = [r for r in reversed(self._index.list_records()) if r.triggered_at >= before]
        if len(kept) == len(self._index):
            return 0
        self._rewrite(kept)
        removed = self._index.prune(before)
        self.logger.info("records_pruned", removed=removed)
        return removed

    def __len__(self) -> int:
        return len(self._index)

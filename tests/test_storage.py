"""Tests for the record stores."""

import os
from datetime import datetime, timedelta, timezone

import pytest

from src.football.models.records import SignalRecord, SignalStatus
from src.football.storage import JsonlRecordStore, MemoryRecordStore, StoreError

NOW = datetime(2026, 3, 14, 21, 0, tzinfo=timezone.utc)


def make_record(**overrides) -> SignalRecord:
    values = dict(
        fixture_id=1,
        match_name="Home vs Away",
        triggered_at=NOW,
        trigger_minute=78,
        signal_strength=74,
        tier="high",
        reasons_top3=["Attacking pressure"],
    )
    values.update(overrides)
    return SignalRecord(**values)


@pytest.fixture(params=["memory", "jsonl"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryRecordStore()
    return JsonlRecordStore(tmp_path / "records.jsonl")


class TestRecordStore:
    """Behaviour shared by every store."""

    def test_add_and_get(self, store):
        record = make_record()
        store.add(record)
        assert store.get(record.id) == record
        assert store.get("missing") is None

    def test_duplicate_add(self, store):
        record = make_record()
        store.add(record)
        with pytest.raises(StoreError):
            store.add(record)

    def test_unknown_update(self, store):
        with pytest.raises(StoreError):
            store.update(make_record())

    def test_newest_first_and_pending(self, store):
        first = make_record(fixture_id=1)
        second = make_record(fixture_id=2)
        store.add(first)
        store.add(second)
        store.update(second.model_copy(update={"status": SignalStatus.MISS}))

        assert [r.id for r in store.list_records()] == [second.id, first.id]
        assert store.pending() == [first]

    def test_prune(self, store):
        store.add(make_record(triggered_at=NOW - timedelta(days=10)))
        keep = make_record()
        store.add(keep)
        assert store.prune(NOW - timedelta(days=7)) == 1
        assert store.list_records() == [keep]


class TestJsonlRecordStore:
    """Persistence specific to JsonlRecordStore."""

    def test_reload(self, tmp_path):
        path = tmp_path / "records.jsonl"
        store = JsonlRecordStore(path)
        record = make_record()
        store.add(record)
        store.update(record.model_copy(update={
            "status": SignalStatus.HIT,
            "settled_at": NOW,
            "goal_minute": 81,
        }))

        reloaded = JsonlRecordStore(path)
        restored = reloaded.get(record.id)
        assert restored.status == SignalStatus.HIT
        assert restored.goal_minute == 81
        assert restored.triggered_at == NOW
        assert len(path.read_text().splitlines()) == 1

    def test_missing_file_is_empty(self, tmp_path):
        assert len(JsonlRecordStore(tmp_path / "nested" / "records.jsonl")) == 0

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "records.jsonl"
        path.write_text('{"id": "sig-1", "fixture_id": \n')
        with pytest.raises(StoreError):
            JsonlRecordStore(path)

    def test_invalid_record(self, tmp_path):
        path = tmp_path / "records.jsonl"
        path.write_text('{"id": "sig-1"}\n')
        with pytest.raises(StoreError):
            JsonlRecordStore(path)

    def test_failed_writes_leave_index_untouched(self, tmp_path, monkeypatch):
        path = tmp_path / "records.jsonl"
        store = JsonlRecordStore(path)
        record = make_record()
        store.add(record)

        def fail(*_args):
            raise OSError("read-only file system")

        monkeypatch.setattr(os, "replace", fail)
        with pytest.raises(StoreError):
            store.update(record.model_copy(update={"status": SignalStatus.MISS}))
        assert store.pending() == [record]

        # Appending to a directory fails
        monkeypatch.setattr(store, "path", tmp_path)
        with pytest.raises(StoreError):
            store.add(make_record(fixture_id=2))
        assert len(store) == 1

        monkeypatch.undo()
        assert JsonlRecordStore(path).list_records() == [record]

"""
Record store interface.

The settlement tracker persists SignalRecords through this protocol. Any
read or write failure surfaces as StoreError so callers have one exception
to catch at the boundary.
"""

from datetime import datetime
from typing import Optional, Protocol

from src.football.models.records import SignalRecord


class StoreError(Exception):
    """A record store read or write failed."""


class RecordStore(Protocol):
    """Persistence seam for signal records."""

    def add(self, record: SignalRecord) -> None:
        """Store a new record. Raises StoreError if the id already exists."""
        ...

    def update(self, record: SignalRecord) -> None:
        """Replace an existing record. Raises StoreError if it is unknown."""
        ...

    def get(self, record_id: str) -> Optional[SignalRecord]:
        ...

    def list_records(self) -> list[SignalRecord]:
        """All records, newest first."""
        ...

    def pending(self) -> list[SignalRecord]:
        ...

    def prune(self, before: datetime) -> int:
        """Drop records triggered before ``before``; return how many."""
        ...

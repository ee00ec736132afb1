"""
Persisted record models.

Signal records and calibration samples cross the persistence boundary, so
they are pydantic models that serialize straight to JSON lines.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class SignalStatus(str, Enum):
    """Settlement lifecycle of an emitted signal."""
    PENDING = "pending"
    HIT = "hit"
    MISS = "miss"
    EXPIRED = "expired"


class SignalRecord(BaseModel):
    """
    An emitted signal awaiting (or after) settlement.

    Created when a tier promotion to "high" is confirmed and not on cooldown.
    Only the settlement tracker changes its status.
    """
    id: str = Field(default_factory=lambda: f"sig-{uuid4().hex[:12]}")
    fixture_id: int
    match_name: str
    triggered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    trigger_minute: int
    signal_strength: int
    tier: str
    reasons_top3: list[str] = Field(default_factory=list)
    odds_at_trigger: Optional[float] = None
    line_at_trigger: Optional[str] = None

    status: SignalStatus = SignalStatus.PENDING
    settled_at: Optional[datetime] = None
    goal_minute: Optional[int] = None
    settlement_note: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == SignalStatus.PENDING


class CalibrationRecord(BaseModel):
    """One settled outcome used to recalibrate strength buckets."""
    signal_strength: int
    hit: bool
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    fixture_id: Optional[int] = None


class GoalEvent(BaseModel):
    """A goal inferred from a score increment between two snapshots."""
    fixture_id: int
    minute: int
    team: str
    score_home: int
    score_away: int


class HitRateStats(BaseModel):
    """Hit-rate aggregation over signal records."""
    total: int = 0
    hits: int = 0
    misses: int = 0
    pending: int = 0
    expired: int = 0
    hit_rate: int = 0  # percent of settled (hit + miss), rounded


class CalibrationBucket(BaseModel):
    """Observed hit rate for one signal-strength band."""
    signal_min: int
    signal_max: int
    sample_size: int = 0
    hit_count: int = 0
    goal_rate: float  # 0-1
    confidence: float = 0.0  # 0-1, grows with sample size
    last_updated: Optional[datetime] = None


class CalibrationTable(BaseModel):
    """All calibration buckets plus the records they were built from."""
    version: str = "v1.0-default"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    total_samples: int = 0
    buckets: list[CalibrationBucket]
    records: list[CalibrationRecord] = Field(default_factory=list)

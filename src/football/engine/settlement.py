"""
Signal settlement tracker.

Each tick compares every match to its previous snapshot to infer goals, then
settles pending signal records:

- goal in (trigger, trigger + window]  -> hit
- minute past trigger + window         -> miss
- match finished without such a goal   -> miss
- still pending after max_pending_hours -> expired

Settled hits and misses are fed to the calibration map. Processing the same
snapshots twice changes nothing: snapshots are replaced per tick and settled
records are never revisited.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import structlog

from config.settings import SettlementSettings, settings
from src.football.engine.calibration import CalibrationMap
from src.football.models.records import GoalEvent, HitRateStats, SignalRecord, SignalStatus
from src.football.models.schemas import MatchStateInput, Side, Tier
from src.football.storage.base import RecordStore, StoreError

logger = structlog.get_logger()


@dataclass(frozen=True)
class ScoreSnapshot:
    """Last seen score of a fixture."""
    score_home: int
    score_away: int
    minute: int
    status: str


@dataclass
class SettlementState:
    """Per-fixture settlement memory owned by the caller."""
    snapshots: dict[int, ScoreSnapshot] = field(default_factory=dict)
    goal_events: dict[int, list[GoalEvent]] = field(default_factory=dict)

    def discard(self, fixture_id: int) -> None:
        self.snapshots.pop(fixture_id, None)
        self.goal_events.pop(fixture_id, None)


def calculate_hit_rate(records: Iterable[SignalRecord]) -> HitRateStats:
    """Counts per status; hit rate is hits over settled (hit + miss)."""
    stats = HitRateStats()
    for record in records:
        stats.total += 1
        if record.status == SignalStatus.HIT:
            stats.hits += 1
        elif record.status == SignalStatus.MISS:
            stats.misses += 1
        elif record.status == SignalStatus.EXPIRED:
            stats.expired += 1
        else:
            stats.pending += 1
    settled = stats.hits + stats.misses
    stats.hit_rate = round(stats.hits / settled * 100) if settled else 0
    return stats


class SettlementTracker:
    """Creates, settles and aggregates signal records."""

    def __init__(
        self,
        store: RecordStore,
        calibration: Optional[CalibrationMap] = None,
        config: Optional[SettlementSettings] = None,
    ):
        self.store = store
        self.calibration = calibration
        self.config = config or settings.settlement
        self.logger = logger.bind(component="settlement")

    # =========================================================================
    # Record creation
    # =========================================================================

    def create_signal_record(
        self,
        fixture_id: int,
        match_name: str,
        minute: int,
        signal_strength: int,
        tier: Tier,
        reasons_top3: Optional[list[str]] = None,
        odds: Optional[float] = None,
        line: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[SignalRecord]:
        """
        Build and store a pending record.

        Returns None (and stores nothing) when the strength is below
        ``min_signal_strength``.

        Raises:
            StoreError: if the store rejects the record
        """
        if signal_strength < self.config.min_signal_strength:
            return None

        record = SignalRecord(
            fixture_id=fixture_id,
            match_name=match_name,
            triggered_at=now or datetime.now(timezone.utc),
            trigger_minute=minute,
            signal_strength=signal_strength,
            tier=tier.value,
            reasons_top3=list(reasons_top3 or [])[:3],
            odds_at_trigger=odds,
            line_at_trigger=line,
        )
        self.store.add(record)
        self.logger.info(
            "signal_recorded",
            record_id=record.id,
            fixture_id=fixture_id,
            minute=minute,
            signal_strength=signal_strength,
        )
        return record

    # =========================================================================
    # Goal detection
    # =========================================================================

    @staticmethod
    def detect_goals(state: SettlementState, match: MatchStateInput) -> list[GoalEvent]:
        """
        Compare with the previous snapshot and record one event per goal.

        Each event carries the running score right after that goal. An event
        whose team and running score are already recorded for the fixture is
        dropped, so replayed or corrected feeds never count a goal twice. The
        first snapshot of a fixture only primes the state.
        """
        previous = state.snapshots.get(match.fixture_id)
        state.snapshots[match.fixture_id] = ScoreSnapshot(
            score_home=match.score_home,
            score_away=match.score_away,
            minute=match.minute,
            status=match.status,
        )
        if previous is None:
            return []

        known = state.goal_events.get(match.fixture_id, [])
        seen = {(e.team, e.score_home, e.score_away) for e in known}

        candidates = []
        for i in range(1, max(0, match.score_home - previous.score_home) + 1):
            candidates.append((Side.HOME, previous.score_home + i, previous.score_away))
        for j in range(1, max(0, match.score_away - previous.score_away) + 1):
            candidates.append((Side.AWAY, match.score_home, previous.score_away + j))

        events = []
        for side, score_home, score_away in candidates:
            key = (side.value, score_home, score_away)
            if key in seen:
                continue
            seen.add(key)
            events.append(GoalEvent(
                fixture_id=match.fixture_id,
                minute=match.minute,
                team=side.value,
                score_home=score_home,
                score_away=score_away,
            ))

        if events:
            state.goal_events.setdefault(match.fixture_id, []).extend(events)
        return events

    # =========================================================================
    # Settlement
    # =========================================================================

    def settle_record(
        self,
        record: SignalRecord,
        match: Optional[MatchStateInput],
        goals: list[GoalEvent],
        now: datetime,
    ) -> SignalRecord:
        """Apply the settlement rules to one record; returns it unchanged if still pending."""
        if not record.is_pending:
            return record

        window = self.config.window_minutes
        window_end = record.trigger_minute + window

        if match is not None:
            in_window = sorted(
                g.minute for g in goals
                if record.trigger_minute < g.minute <= window_end
            )
            if in_window:
                goal_minute = in_window[0]
                return record.model_copy(update={
                    "status": SignalStatus.HIT,
                    "settled_at": now,
                    "goal_minute": goal_minute,
                    "settlement_note": (
                        f"goal at {goal_minute}', "
                        f"{goal_minute - record.trigger_minute} min after trigger"
                    ),
                })
            if match.minute > window_end:
                return record.model_copy(update={
                    "status": SignalStatus.MISS,
                    "settled_at": now,
                    "settlement_note": f"no goal within {window} minutes",
                })
            if match.is_finished:
                return record.model_copy(update={
                    "status": SignalStatus.MISS,
                    "settled_at": now,
                    "settlement_note": "match finished without a goal",
                })

        if now - record.triggered_at > timedelta(hours=self.config.max_pending_hours):
            return record.model_copy(update={
                "status": SignalStatus.EXPIRED,
                "settled_at": now,
                "settlement_note": f"unsettled after {self.config.max_pending_hours:g} hours",
            })

        return record

    def process(
        self,
        state: SettlementState,
        matches: Iterable[MatchStateInput],
        now: Optional[datetime] = None,
    ) -> list[SignalRecord]:
        """
        Detect goals in a batch of snapshots and settle pending records.

        A record whose update fails to persist stays pending and is retried
        on the next batch.

        Returns:
            Records settled in this call
        """
        now = now or datetime.now(timezone.utc)
        by_fixture = {}
        for match in matches:
            by_fixture[match.fixture_id] = match
            goals = self.detect_goals(state, match)
            if goals:
                self.logger.info(
                    "goals_detected",
                    fixture_id=match.fixture_id,
                    minute=match.minute,
                    count=len(goals),
                    score=f"{match.score_home}-{match.score_away}",
                )

        settled = []
        for record in self.store.pending():
            match = by_fixture.get(record.fixture_id)
            goals = state.goal_events.get(record.fixture_id, [])
            updated = self.settle_record(record, match, goals, now)
            if updated is record:
                continue

            try:
                self.store.update(updated)
            except StoreError as e:
                self.logger.error(
                    "settlement_write_failed",
                    record_id=record.id,
                    fixture_id=record.fixture_id,
                    error=str(e),
                )
                continue

            if self.calibration is not None and updated.status in (SignalStatus.HIT, SignalStatus.MISS):
                self.calibration.record(
                    updated.signal_strength,
                    updated.status == SignalStatus.HIT,
                    fixture_id=updated.fixture_id,
                )

            self.logger.info(
                "signal_settled",
                record_id=updated.id,
                fixture_id=updated.fixture_id,
                status=updated.status.value,
                note=updated.settlement_note,
            )
            settled.append(updated)

        return settled

    # =========================================================================
    # Aggregation and housekeeping
    # =========================================================================

    def get_today_stats(self, now: Optional[datetime] = None) -> HitRateStats:
        """Hit rate of records triggered since UTC midnight."""
        now = now or datetime.now(timezone.utc)
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return calculate_hit_rate(
            r for r in self.store.list_records() if r.triggered_at >= midnight
        )

    def get_recent_signals(self, limit: Optional[int] = None) -> list[SignalRecord]:
        limit = limit if limit is not None else self.config.recent_signals_limit
        return self.store.list_records()[:limit]

    @staticmethod
    def cleanup_goal_events(state: SettlementState, active_fixture_ids: Iterable[int]) -> int:
        """Forget goal events of fixtures no longer tracked; return how many fixtures."""
        active = set(active_fixture_ids)
        stale = [fid for fid in state.goal_events if fid not in active]
        for fid in stale:
            del state.goal_events[fid]
        return len(stale)

    def prune_old_records(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        return self.store.prune(now - timedelta(days=self.config.storage_retention_days))

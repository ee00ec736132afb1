"""
Tick evaluator.

Runs one polling tick over a batch of fixtures:

1. settle pending records against the new scores
2. per fixture: record the odds snapshot, score, blend the signal strength,
   debounce the tier, build the late-phase signal
3. on a confirmed promotion to the high tier (and off cooldown) create a
   signal record
4. evict fixtures that have not been seen for ``stale_fixture_seconds``

All mutable state lives in an EngineState owned by the caller. A failure in
one fixture is logged and reported in the result; the other fixtures are
still evaluated.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional, Union

import structlog

from config.settings import Settings, settings
from src.football.engine.calibration import CalibrationMap
from src.football.engine.hysteresis import TierHysteresis, TierState, TierTransition
from src.football.engine.late_module import LateModule
from src.football.engine.odds_analyzer import (
    OddsAnalysisResult,
    OddsHistory,
    analyze_match,
    record_snapshot,
)
from src.football.engine.reasons import extract_reasons, get_reason_labels
from src.football.engine.scoring import MultiFactorScorer, ScoreResult, UnscoreableResult
from src.football.engine.settlement import SettlementState, SettlementTracker
from src.football.engine.strength import SignalStrengthResult, calculate_signal_strength
from src.football.models.records import SignalRecord
from src.football.models.schemas import (
    FixtureTick,
    MatchStateInput,
    OddsSnapshot,
    Tier,
    UnifiedSignal,
)
from src.football.storage.base import RecordStore, StoreError
from src.football.storage.memory import MemoryRecordStore

logger = structlog.get_logger()

HIGH_SIGNAL = "high_signal"


@dataclass
class EngineState:
    """Everything the engine remembers between ticks."""
    tier_states: dict[int, TierState] = field(default_factory=dict)
    odds_history: OddsHistory = field(default_factory=OddsHistory)
    settlement: SettlementState = field(default_factory=SettlementState)
    last_signals: dict[int, UnifiedSignal] = field(default_factory=dict)
    last_seen_ms: dict[int, int] = field(default_factory=dict)

    @property
    def tracked_fixtures(self) -> set[int]:
        return set(self.last_seen_ms)

    def discard(self, fixture_id: int) -> None:
        """Forget a fixture in every map."""
        self.tier_states.pop(fixture_id, None)
        self.odds_history.discard(fixture_id)
        self.settlement.discard(fixture_id)
        self.last_signals.pop(fixture_id, None)
        self.last_seen_ms.pop(fixture_id, None)


@dataclass
class FixtureEvaluation:
    """Per-fixture output of one tick."""
    fixture_id: int
    score: Union[ScoreResult, UnscoreableResult]
    strength: Optional[SignalStrengthResult] = None
    transition: Optional[TierTransition] = None
    signal: Optional[UnifiedSignal] = None
    odds_analysis: Optional[OddsAnalysisResult] = None
    record: Optional[SignalRecord] = None


@dataclass
class EvaluationResult:
    """Output of one tick."""
    signals: list[UnifiedSignal]
    records: list[SignalRecord]
    settled: list[SignalRecord]
    errors: dict[int, str]
    state: EngineState
    fixtures: dict[int, FixtureEvaluation] = field(default_factory=dict)
    evicted: list[int] = field(default_factory=list)

    @property
    def ranked(self) -> list[FixtureEvaluation]:
        """Scored fixtures, strongest signal first."""
        scored = [f for f in self.fixtures.values() if f.strength is not None]
        return sorted(scored, key=lambda f: f.strength.signal_strength, reverse=True)


class SignalEvaluator:
    """Wires the engine components together for one tick at a time."""

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        calibration: Optional[CalibrationMap] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or settings
        self.store = store if store is not None else MemoryRecordStore()
        self.calibration = calibration or CalibrationMap(self.config.calibration)

        self.scorer = MultiFactorScorer(self.config.scoring, self.config.odds)
        self.late_module = LateModule(self.config.late_module, self.config.temporal)
        self.hysteresis = TierHysteresis(self.config.hysteresis, self.config.tiers)
        self.tracker = SettlementTracker(self.store, self.calibration, self.config.settlement)

        self.logger = logger.bind(component="evaluator")

    def evaluate(
        self,
        ticks: Iterable[FixtureTick],
        state: EngineState,
        now_ms: Optional[int] = None,
    ) -> EvaluationResult:
        """
        Evaluate one polling tick.

        Args:
            ticks: One FixtureTick per live fixture
            state: Engine state, updated in place
            now_ms: Tick time in epoch milliseconds (defaults to the clock)

        Returns:
            EvaluationResult with signals, new records, settled records and
            per-fixture errors
        """
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        now = datetime.fromtimestamp(now_ms / 1000, tz=timezone.utc)
        ticks = list(ticks)
        result = EvaluationResult(signals=[], records=[], settled=[], errors={}, state=state)

        try:
            result.settled = self.tracker.process(state.settlement, [t.match for t in ticks], now)
        except StoreError as e:
            self.logger.error("settlement_failed", error=str(e))

        for tick in ticks:
            fixture_id = tick.fixture_id
            state.last_seen_ms[fixture_id] = now_ms
            try:
                evaluation = self._evaluate_fixture(tick, state, now_ms, now)
            except Exception as e:
                self.logger.error(
                    "fixture_evaluation_failed",
                    fixture_id=fixture_id,
                    error=str(e),
                    exc_info=True,
                )
                result.errors[fixture_id] = f"{type(e).__name__}: {e}"
                continue

            result.fixtures[fixture_id] = evaluation
            if evaluation.signal is not None:
                result.signals.append(evaluation.signal)
            if evaluation.record is not None:
                result.records.append(evaluation.record)

        result.evicted = self.evict_stale(state, now_ms)

        self.logger.debug(
            "tick_evaluated",
            fixtures=len(ticks),
            signals=len(result.signals),
            records=len(result.records),
            settled=len(result.settled),
            errors=len(result.errors),
        )
        return result

    def _evaluate_fixture(
        self,
        tick: FixtureTick,
        state: EngineState,
        now_ms: int,
        now: datetime,
    ) -> FixtureEvaluation:
        match, market = tick.match, tick.market
        fixture_id = match.fixture_id

        odds_analysis = None
        if market is not None:
            snapshot = OddsSnapshot.from_market(market, match.minute, now_ms)
            record_snapshot(state.odds_history, fixture_id, snapshot, self.config.odds)
            odds_analysis = analyze_match(state.odds_history, match, market, now_ms, self.config.odds)

        score = self.scorer.score(match, market, tick.history, tick.strength, state.odds_history)
        evaluation = FixtureEvaluation(
            fixture_id=fixture_id,
            score=score,
            odds_analysis=odds_analysis,
        )
        if isinstance(score, UnscoreableResult):
            # No stats, no late signal
            state.last_signals.pop(fixture_id, None)
            return evaluation

        evaluation.signal = self.late_module.evaluate(match, market, tick.strength, now)
        state.last_signals[fixture_id] = evaluation.signal

        strength = calculate_signal_strength(
            score.total_score,
            match,
            market,
            self.calibration,
            blend=self.config.blend,
            temporal=self.config.temporal,
            tiers=self.config.tiers,
            kelly=self.config.kelly,
        )
        transition = self.hysteresis.update(
            state.tier_states, fixture_id, strength.signal_strength, now_ms
        )
        evaluation.strength = strength
        evaluation.transition = transition

        if transition.is_upgrade and transition.tier == Tier.HIGH:
            if self.hysteresis.should_emit_signal(state.tier_states, fixture_id, HIGH_SIGNAL, now_ms):
                evaluation.record = self._create_record(score, match, tick, strength, transition, now)

        return evaluation

    def _create_record(
        self,
        score: ScoreResult,
        match: MatchStateInput,
        tick: FixtureTick,
        strength: SignalStrengthResult,
        transition: TierTransition,
        now: datetime,
    ) -> Optional[SignalRecord]:
        reasons = extract_reasons(score, match, tick.strength)
        odds_info = strength.kelly.odds_info
        record = self.tracker.create_signal_record(
            fixture_id=match.fixture_id,
            match_name=match.match_name,
            minute=match.minute,
            signal_strength=strength.signal_strength,
            tier=transition.tier,
            reasons_top3=get_reason_labels(reasons),
            odds=odds_info.odds if odds_info else None,
            line=odds_info.line if odds_info else None,
            now=now,
        )
        if record is not None:
            self.logger.info(
                "high_signal_emitted",
                fixture_id=match.fixture_id,
                match=match.match_name,
                minute=match.minute,
                signal_strength=strength.signal_strength,
                reasons=record.reasons_top3,
            )
        return record

    def evict_stale(self, state: EngineState, now_ms: int) -> list[int]:
        """Drop fixtures not seen within ``stale_fixture_seconds``."""
        cutoff = now_ms - int(self.config.hysteresis.stale_fixture_seconds * 1000)
        stale = [fid for fid, seen in state.last_seen_ms.items() if seen < cutoff]
        for fid in stale:
            state.discard(fid)
        if stale:
            self.logger.info("fixtures_evicted", fixture_ids=stale)
        return stale


def evaluate(
    ticks: Iterable[FixtureTick],
    state: EngineState,
    now_ms: Optional[int] = None,
    evaluator: Optional[SignalEvaluator] = None,
) -> EvaluationResult:
    """Evaluate one tick with a default (in-memory) evaluator unless one is given."""
    return (evaluator or SignalEvaluator()).evaluate(ticks, state, now_ms)

"""Tests for the unified late-phase module."""

from datetime import datetime, timezone

import pytest

from src.football.engine.kelly import extract_real_odds
from src.football.engine.late_module import (
    LateModule,
    get_late_module_phase,
    is_signal_worth_watching,
    should_trigger_late_module,
)
from src.football.models.schemas import (
    Action,
    LatePhase,
    MarketStateInput,
    MatchStateInput,
    ScenarioTag,
    TeamStrengthInput,
)

NOW = datetime(2026, 3, 14, 21, 0, tzinfo=timezone.utc)

ACTIVE_STATS = dict(
    shots_home=10,
    shots_away=6,
    shots_on_home=5,
    shots_on_away=2,
    shots_last_15=6,
    xg_last_15=0.6,
    corners_last_15=2,
)


def make_match(**overrides) -> MatchStateInput:
    values = dict(fixture_id=101, minute=88, score_home=0, score_away=0, xg_home=1.5, xg_away=1.2)
    values.update(ACTIVE_STATS)
    values.update(overrides)
    return MatchStateInput(**values)


@pytest.fixture
def late_module():
    return LateModule()


@pytest.fixture
def hot_market():
    """Falling over price on a live half-goal line."""
    return MarketStateInput(
        fixture_id=101,
        over_odds=1.45,
        over_odds_prev=1.80,
        under_odds=2.60,
        ou_line=0.5,
        ou_line_prev=0.5,
        is_live=True,
    )


class TestPhaseGate:
    """Tests for should_trigger_late_module and get_late_module_phase."""

    def test_trigger_boundary(self):
        for minute in range(0, 65):
            assert not should_trigger_late_module(minute)
        for minute in range(65, 100):
            assert should_trigger_late_module(minute)

    @pytest.mark.parametrize("minute,phase", [
        (60, LatePhase.INACTIVE),
        (64, LatePhase.INACTIVE),
        (65, LatePhase.WARMUP),
        (79, LatePhase.WARMUP),
        (80, LatePhase.ACTIVE),
        (95, LatePhase.ACTIVE),
    ])
    def test_phase_boundaries(self, minute, phase):
        assert get_late_module_phase(minute) == phase


class TestLateModuleEvaluate:
    """Tests for LateModule.evaluate."""

    def test_blowout_is_ignored(self, late_module):
        """Minute 85, 4-0: BLOWOUT and IGNORE."""
        signal = late_module.evaluate(make_match(minute=85, score_home=4, xg_home=3.2), now=NOW)
        assert signal.scenario_tag == ScenarioTag.BLOWOUT
        assert signal.action == Action.IGNORE
        assert signal.bet_plan is None
        assert not is_signal_worth_watching(signal)

    def test_deadlock_break_scores_high(self, late_module):
        """Minute 88, 0-0, xG 1.5/1.2: DEADLOCK_BREAK above 65."""
        signal = late_module.evaluate(make_match(), now=NOW)
        assert signal.scenario_tag == ScenarioTag.DEADLOCK_BREAK
        assert signal.score > 65
        assert signal.score == pytest.approx(74.4)
        assert signal.phase == LatePhase.ACTIVE

    def test_no_market_watch_without_plan(self, late_module):
        signal = late_module.evaluate(make_match(), now=NOW)
        assert signal.score_breakdown.market.total == 0.0
        assert not signal.score_breakdown.market.data_available
        assert signal.confidence_breakdown.market_confirmation == 0.0
        assert signal.action == Action.WATCH
        assert signal.bet_plan is None

    def test_market_confirms_bet(self, late_module, hot_market):
        signal = late_module.evaluate(make_match(), hot_market, now=NOW)
        assert signal.score_breakdown.market.total == 20.0
        assert signal.confidence == 85.0
        assert signal.action == Action.BET

        plan = signal.bet_plan
        assert plan is not None
        assert plan.market == "OU"
        assert plan.selection == "OVER"
        assert plan.line == 0.5
        assert plan.odds_min == 1.50
        assert plan.stake_pct == 2.0
        assert plan.ttl_minutes == 2

    def test_unquoted_line_matches_kelly_label(self, late_module):
        market = MarketStateInput(
            fixture_id=101,
            over_odds=1.45,
            over_odds_prev=1.80,
            under_odds=2.60,
            is_live=True,
        )
        signal = late_module.evaluate(make_match(), market, now=NOW)
        assert signal.bet_plan.line == 2.5
        assert extract_real_odds(market).line == f"Over {signal.bet_plan.line}"

    def test_warmup_with_strong_stats(self, late_module, hot_market):
        """Minute 75 with strong stats: capped score, no bet plan."""
        signal = late_module.evaluate(make_match(minute=75), hot_market, now=NOW)
        assert signal.phase == LatePhase.WARMUP
        assert signal.is_warmup
        assert signal.score <= 75
        assert signal.action in (Action.WATCH, Action.IGNORE)
        assert signal.bet_plan is None
        assert "WARMUP" in signal.reasons.tags

    @pytest.mark.parametrize("minute", range(65, 80))
    def test_warmup_invariants(self, late_module, hot_market, minute):
        variants = [
            make_match(minute=minute),
            make_match(minute=minute, score_home=1, xg_home=3.5, shots_last_15=15, xg_last_15=1.5),
            make_match(minute=minute, score_home=0, score_away=1, corners_last_15=8),
        ]
        strength = TeamStrengthInput(home_strength=85, away_strength=40)
        for match in variants:
            for market in (None, hot_market):
                signal = late_module.evaluate(match, market, strength, now=NOW)
                assert signal.score <= 75
                assert signal.bet_plan is None
                assert signal.action in (Action.WATCH, Action.IGNORE)

    def test_inactive_phase(self, late_module):
        signal = late_module.evaluate(make_match(minute=60), now=NOW)
        assert signal.phase == LatePhase.INACTIVE
        assert signal.scenario_tag == ScenarioTag.GENERIC
        assert signal.action == Action.IGNORE

    def test_strong_behind_uses_asian_handicap(self, late_module):
        match = make_match(minute=86, score_home=0, score_away=1, xg_home=2.4, xg_away=0.4)
        market = MarketStateInput(
            fixture_id=101,
            over_odds=1.40,
            over_odds_prev=1.75,
            ou_line=1.5,
            ah_line=-0.5,
            ah_home=1.70,
            ah_away=2.20,
            is_live=True,
        )
        strength = TeamStrengthInput(home_strength=85, away_strength=60)
        signal = late_module.evaluate(match, market, strength, now=NOW)
        assert signal.scenario_tag == ScenarioTag.STRONG_BEHIND
        if signal.bet_plan is not None:
            assert signal.bet_plan.market == "AH"
            assert signal.bet_plan.selection == "HOME"

    def test_bounds(self, late_module, hot_market):
        for minute in (0, 30, 66, 80, 90, 96):
            signal = late_module.evaluate(make_match(minute=minute), hot_market, now=NOW)
            assert 0 <= signal.score <= 100
            assert 0 <= signal.confidence <= 100

    def test_fresh_data_raises_quality(self, late_module):
        stale = late_module.evaluate(make_match(data_timestamp="2026-03-14T20:50:00Z"), now=NOW)
        fresh = late_module.evaluate(make_match(data_timestamp="2026-03-14T20:59:40Z"), now=NOW)
        assert fresh.score_breakdown.quality.freshness == 3.0
        assert stale.score_breakdown.quality.freshness == -3.0
        assert fresh.score > stale.score

    def test_zero_shots_anomaly(self, late_module):
        match = make_match(shots_home=0, shots_away=0, shots_on_home=0, shots_on_away=0)
        signal = late_module.evaluate(match, now=NOW)
        assert signal.score_breakdown.quality.anomaly == -5.0

    def test_deterministic(self, late_module, hot_market):
        a = late_module.evaluate(make_match(), hot_market, now=NOW)
        b = late_module.evaluate(make_match(), hot_market, now=NOW)
        assert a == b

    def test_reasons_bundle(self, late_module, hot_market):
        signal = late_module.evaluate(make_match(), hot_market, now=NOW)
        assert signal.reasons.state["score_home"] == 0
        assert signal.reasons.market["available"] is True
        assert "DEADLOCK_BREAK" in signal.reasons.tags
        assert "SCORELESS" in signal.reasons.tags

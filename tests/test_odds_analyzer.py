"""Tests for the market odds divergence analyzer."""

import pytest

from src.football.engine.odds_analyzer import (
    AlertSeverity,
    DivergenceSeverity,
    DivergenceType,
    MarketTrends,
    OddsAlertType,
    OddsChangeType,
    OddsHistory,
    OddsRecommendation,
    OddsTrend,
    RiskLevel,
    analyze_match,
    analyze_money_flow,
    derive_trends,
    detect_divergence,
    detect_rapid_changes,
    record_snapshot,
)
from src.football.models.schemas import MarketStateInput, MatchStateInput, OddsSnapshot, Side

T0 = 1_700_000_000_000
MINUTE_MS = 60_000


def make_match(**overrides) -> MatchStateInput:
    values = dict(fixture_id=5, minute=82, score_home=0, score_away=1)
    values.update(overrides)
    return MatchStateInput(**values)


def snap(offset_ms: int, handicap_home: float = 1.95, over: float = 2.0, under: float = 1.85) -> OddsSnapshot:
    return OddsSnapshot(
        timestamp_ms=T0 + offset_ms,
        minute=80,
        handicap_home=handicap_home,
        handicap_value=-0.5,
        over=over,
        total=2.5,
        under=under,
    )


@pytest.fixture
def tightening_market():
    """Home favourite trailing while its handicap price shortens."""
    return MarketStateInput(
        fixture_id=5,
        ah_line=-0.5,
        ah_home=1.80,
        ah_home_prev=1.95,
        over_odds=1.80,
        over_odds_prev=2.00,
        ou_line=2.5,
    )


@pytest.fixture
def tightening_history():
    history = OddsHistory()
    record_snapshot(history, 5, snap(0, handicap_home=1.95, over=2.00))
    record_snapshot(history, 5, snap(MINUTE_MS, handicap_home=1.80, over=1.80))
    return history


class TestHistory:
    """Tests for record_snapshot."""

    def test_prunes_old_snapshots(self):
        history = OddsHistory()
        record_snapshot(history, 5, snap(0))
        record_snapshot(history, 5, snap(10 * MINUTE_MS))
        record_snapshot(history, 5, snap(31 * MINUTE_MS))

        kept = history.get(5)
        assert [s.timestamp_ms for s in kept] == [T0 + 10 * MINUTE_MS, T0 + 31 * MINUTE_MS]
        assert history.latest(5).timestamp_ms == T0 + 31 * MINUTE_MS

    def test_fixtures_are_independent(self):
        history = OddsHistory()
        record_snapshot(history, 5, snap(0))
        record_snapshot(history, 6, snap(0))
        history.discard(6)
        assert len(history) == 1
        assert history.get(6) == []
        assert history.latest(6) is None


class TestTrends:
    """Tests for derive_trends."""

    def test_no_market(self):
        assert derive_trends(None) == MarketTrends()

    def test_directions(self, tightening_market):
        trends = derive_trends(tightening_market)
        assert trends.handicap_home == OddsTrend.DOWN
        assert trends.over == OddsTrend.DOWN
        assert trends.handicap_away == OddsTrend.STABLE

    def test_small_moves_are_stable(self):
        market = MarketStateInput(fixture_id=5, over_odds=1.90, over_odds_prev=1.91)
        assert derive_trends(market).over == OddsTrend.STABLE


class TestRapidChanges:
    """Tests for detect_rapid_changes."""

    def test_detects_inside_window(self):
        history = OddsHistory()
        record_snapshot(history, 5, snap(0, handicap_home=1.90, over=2.00, under=1.85))
        record_snapshot(history, 5, snap(MINUTE_MS, handicap_home=1.75, over=1.85, under=1.95))

        changes = detect_rapid_changes(history, 5)
        assert [c.change_type for c in changes] == [OddsChangeType.HANDICAP_HOME, OddsChangeType.OVER]
        assert changes[0].change == pytest.approx(-0.15)
        assert changes[0].change_pct == pytest.approx(-0.15 / 1.90 * 100)
        assert changes[0].time_elapsed == 60

    def test_outside_window(self):
        history = OddsHistory()
        record_snapshot(history, 5, snap(0, handicap_home=1.90))
        record_snapshot(history, 5, snap(2 * MINUTE_MS, handicap_home=1.60))
        assert detect_rapid_changes(history, 5) == []

    def test_single_snapshot(self):
        history = OddsHistory()
        record_snapshot(history, 5, snap(0))
        assert detect_rapid_changes(history, 5) == []

    def test_missing_price_is_skipped(self):
        history = OddsHistory()
        record_snapshot(history, 5, snap(0, handicap_home=1.90, over=2.00))
        record_snapshot(history, 5, OddsSnapshot(timestamp_ms=T0 + 30_000, minute=80, over=1.85))

        changes = detect_rapid_changes(history, 5)
        assert [c.change_type for c in changes] == [OddsChangeType.OVER]


class TestMoneyFlow:
    """Tests for analyze_money_flow."""

    def test_balanced(self):
        flow = analyze_money_flow(OddsHistory(), make_match(), MarketTrends())
        assert flow.home_pct == 50
        assert flow.away_pct == 50
        assert flow.direction is None
        assert flow.confidence == 50

    def test_money_on_home(self):
        history = OddsHistory()
        for i, price in enumerate((2.0, 1.9, 1.8)):
            record_snapshot(history, 5, snap(i * MINUTE_MS, handicap_home=price))
        trends = MarketTrends(
            handicap_home=OddsTrend.DOWN,
            handicap_away=OddsTrend.UP,
            over=OddsTrend.DOWN,
        )
        match = make_match(shots_home=15, shots_away=5)

        flow = analyze_money_flow(history, match, trends)
        assert flow.home_pct == 76
        assert flow.away_pct == 24
        assert flow.direction == Side.HOME
        assert flow.confidence == 90

    @pytest.mark.parametrize("home,away", [
        (OddsTrend.DOWN, OddsTrend.UP),
        (OddsTrend.UP, OddsTrend.DOWN),
        (OddsTrend.STABLE, OddsTrend.STABLE),
    ])
    def test_bounded(self, home, away):
        history = OddsHistory()
        step = 0.2 if home == OddsTrend.UP else -0.2
        for i in range(6):
            record_snapshot(history, 5, snap(i * MINUTE_MS, handicap_home=2.0 + step * i))
        trends = MarketTrends(handicap_home=home, handicap_away=away, over=OddsTrend.DOWN)
        for match in (make_match(shots_home=20), make_match(shots_away=20)):
            flow = analyze_money_flow(history, match, trends)
            assert 20 <= flow.home_pct <= 80
            assert flow.home_pct + flow.away_pct == 100


class TestDivergence:
    """Tests for detect_divergence."""

    def test_trailing_favourite_tightening(self, tightening_history, tightening_market):
        match = make_match()
        trends = derive_trends(tightening_market)
        signal = detect_divergence(tightening_history, match, tightening_market, trends)

        assert signal.detected
        assert signal.divergence_type == DivergenceType.SCORE_BEHIND_ODDS_TIGHT
        assert signal.triggered_factors == 2
        assert signal.factors.score_odds == pytest.approx(21.75)
        assert signal.factors.time == 18
        assert signal.total_score == pytest.approx(9.225, abs=0.01)
        assert signal.severity == DivergenceSeverity.WEAK
        assert signal.confidence == 70
        assert signal.recommendation == "watch for a home goal"

    def test_quiet_match(self):
        match = make_match(minute=50, score_away=0)
        signal = detect_divergence(OddsHistory(), match, None, MarketTrends())
        assert not signal.detected
        assert signal.divergence_type is None
        assert signal.severity is None
        assert signal.confidence == 0


class TestAnalyzeMatch:
    """Tests for analyze_match."""

    def test_full_analysis(self, tightening_history, tightening_market):
        result = analyze_match(tightening_history, make_match(), tightening_market)

        kinds = [(a.alert_type, a.severity) for a in result.alerts]
        assert kinds == [
            (OddsAlertType.HANDICAP_RAPID_CHANGE, AlertSeverity.WARNING),
            (OddsAlertType.OVER_RAPID_DROP, AlertSeverity.CRITICAL),
            (OddsAlertType.ODDS_DIVERGENCE, AlertSeverity.INFO),
        ]
        assert result.money_flow.home_pct == 58
        assert result.money_flow.direction == Side.HOME
        assert result.risk_score == pytest.approx(7.8)
        assert result.risk_level == RiskLevel.MEDIUM
        assert result.recommendation == OddsRecommendation.BUY

    def test_nothing_to_see(self):
        match = make_match(minute=30, score_away=0)
        result = analyze_match(OddsHistory(), match, None)
        assert result.alerts == []
        assert result.risk_level == RiskLevel.LOW
        assert result.recommendation == OddsRecommendation.HOLD

    def test_unquoted_handicap_is_not_a_move(self):
        full = MarketStateInput(
            fixture_id=5,
            ah_line=-0.5,
            ah_home=1.95,
            ah_away=1.90,
            over_odds=2.00,
            under_odds=1.85,
            ou_line=2.5,
        )
        # Provider dropped the handicap market for one tick
        partial = MarketStateInput(fixture_id=5, over_odds=2.00, under_odds=1.85, ou_line=2.5)
        history = OddsHistory()
        record_snapshot(history, 5, OddsSnapshot.from_market(full, 80, T0))
        record_snapshot(history, 5, OddsSnapshot.from_market(partial, 80, T0 + 30_000))

        assert history.latest(5).handicap_home is None
        result = analyze_match(history, make_match(minute=80, score_away=0), partial)
        assert result.recent_changes == []
        assert result.alerts == []
        assert result.risk_level == RiskLevel.LOW
        assert result.recommendation == OddsRecommendation.HOLD

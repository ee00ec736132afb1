"""Tests for Kelly stake sizing."""

import pytest

from src.football.engine.kelly import calculate_kelly, extract_real_odds, format_odds_display
from src.football.models.schemas import MarketStateInput


def make_market(over_odds, **overrides) -> MarketStateInput:
    values = dict(fixture_id=1, over_odds=over_odds, ou_line=2.5, bookmaker="Pinnacle")
    values.update(overrides)
    return MarketStateInput(**values)


class TestExtractRealOdds:
    """Tests for extract_real_odds."""

    def test_live_price(self):
        odds = extract_real_odds(make_market(1.85))
        assert odds.odds == 1.85
        assert odds.line == "Over 2.5"
        assert odds.source == "live"
        assert odds.bookmaker == "Pinnacle"
        assert format_odds_display(odds) == "Over 2.5 @1.85"

    def test_prematch_and_default_line(self):
        odds = extract_real_odds(make_market(1.85, ou_line=None, is_live=False))
        assert odds.source == "prematch"
        assert odds.line == "Over 2.5"

    @pytest.mark.parametrize("market", [
        None,
        MarketStateInput(fixture_id=1),
        MarketStateInput(fixture_id=1, over_odds=1.01),
        MarketStateInput(fixture_id=1, over_odds=0.0),
    ])
    def test_no_usable_price(self, market):
        assert extract_real_odds(market) is None
        assert format_odds_display(None) == "no live odds"


class TestCalculateKelly:
    """Tests for calculate_kelly."""

    def test_no_price_means_no_stake(self):
        result = calculate_kelly(80, None)
        assert not result.has_real_odds
        assert result.kelly_fraction is None
        assert result.bet_suggestion is None
        assert result.odds_info is None

    def test_capped_at_max_stake(self):
        # p = 0.68, b = 1 -> kelly 0.36 -> 9% before the cap
        result = calculate_kelly(80, make_market(2.0))
        assert result.kelly_fraction == pytest.approx(0.36)
        assert result.bet_suggestion == 5.0

    def test_quarter_kelly(self):
        result = calculate_kelly(60, make_market(2.2))
        assert result.kelly_fraction == pytest.approx(0.10)
        assert result.bet_suggestion == pytest.approx(2.5)

    def test_floored_at_min_stake(self):
        result = calculate_kelly(50, make_market(2.4))
        assert result.kelly_fraction == pytest.approx(0.01)
        assert result.bet_suggestion == 0.5

    def test_negative_edge_is_zero(self):
        result = calculate_kelly(50, make_market(2.0))
        assert result.has_real_odds
        assert result.kelly_fraction == 0.0
        assert result.bet_suggestion is None

    def test_fraction_never_negative(self):
        for probability in range(0, 101, 5):
            for odds in (1.05, 1.3, 1.8, 2.5, 4.0, 10.0):
                result = calculate_kelly(probability, make_market(odds))
                assert result.kelly_fraction >= 0
                p = probability / 100 * 0.85
                b = odds - 1
                if b * p <= 1 - p:
                    assert result.kelly_fraction == 0
                    assert result.bet_suggestion is None

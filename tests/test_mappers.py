"""Tests for the continuous score mappers."""

import pytest

from src.football.engine.mappers import (
    calculate_pressure_index,
    goals_to_bonus,
    minute_to_window_score,
    over_odds_change_to_score,
    score_diff_to_base,
    shot_accuracy_to_score,
    trailing_state_to_score,
    xg_velocity_to_score,
)


class TestPressureIndex:
    """Tests for calculate_pressure_index."""

    def test_interpolates_between_knots(self):
        # raw = 5 + 2*2 + 0.5*3 + 2*0.5 = 11.5 -> between 8 (7) and 15 (10)
        assert calculate_pressure_index(5, 2, 0.5, 2) == pytest.approx(8.5)

    def test_estimates_shots_on_target(self):
        assert calculate_pressure_index(5, None, 0.5, 2) == pytest.approx(
            calculate_pressure_index(5, 2, 0.5, 2)
        )

    def test_bounds(self):
        assert calculate_pressure_index(0, 0, 0.0, 0) == 0.0
        assert calculate_pressure_index(40, 20, 5.0, 15) == 12.0

    def test_monotonic(self):
        values = [calculate_pressure_index(s, None, s * 0.1, 1) for s in range(0, 20)]
        assert values == sorted(values)


class TestXgVelocity:
    """Tests for xg_velocity_to_score."""

    def test_knots(self):
        assert xg_velocity_to_score(0.0) == 0.0
        assert xg_velocity_to_score(0.15) == pytest.approx(2.0)
        assert xg_velocity_to_score(0.6) == pytest.approx(6.0)

    def test_capped(self):
        assert xg_velocity_to_score(5.0) == 8.0


class TestOverOddsChange:
    """Tests for over_odds_change_to_score."""

    def test_drop_scores(self):
        assert over_odds_change_to_score(2.0, 1.94) == pytest.approx(2.0)

    def test_large_drop_capped(self):
        assert over_odds_change_to_score(2.2, 1.8) == 10.0

    def test_rise_or_missing_is_zero(self):
        assert over_odds_change_to_score(1.8, 2.0) == 0.0
        assert over_odds_change_to_score(None, 1.8) == 0.0
        assert over_odds_change_to_score(1.8, None) == 0.0


class TestDiscreteMappers:
    """Tests for the step mappers."""

    @pytest.mark.parametrize("diff,goals,expected", [
        (0, 0, 8.0),
        (0, 2, 6.0),
        (0, 4, 4.0),
        (1, 3, 5.0),
        (-2, 2, 2.0),
        (3, 3, 0.0),
    ])
    def test_score_diff_to_base(self, diff, goals, expected):
        assert score_diff_to_base(diff, goals) == expected

    def test_goals_to_bonus(self):
        assert goals_to_bonus(0) == 5.0
        assert goals_to_bonus(1) == 6.0
        assert goals_to_bonus(7) == 1.0

    def test_shot_accuracy(self):
        assert shot_accuracy_to_score(55) == 6.0
        assert shot_accuracy_to_score(45) == 4.0
        assert shot_accuracy_to_score(30) == 2.0
        assert shot_accuracy_to_score(10) == 0.0

    def test_trailing_state(self):
        assert trailing_state_to_score(-1, 86) == 6.0
        assert trailing_state_to_score(1, 81) == 5.0
        assert trailing_state_to_score(0, 82) == 4.0
        assert trailing_state_to_score(0, 70) == 0.0


class TestWindowScore:
    """Tests for minute_to_window_score."""

    @pytest.mark.parametrize("minute,expected", [
        (64, 0.0),
        (65, 2.0),
        (75, 8.0),
        (80, 12.0),
        (85, 16.0),
        (87, 17.6),
        (90, 20.0),
        (95, 20.0),
    ])
    def test_curve(self, minute, expected):
        assert minute_to_window_score(minute) == pytest.approx(expected)

"""Tests for the late-game temporal model."""

import pytest

from config.settings import TemporalSettings
from src.football.engine.temporal import (
    calculate_urgency_bonus,
    get_time_multiplier,
    get_time_phase,
    poisson_late_goal_probability,
    remaining_minutes,
)
from src.football.models.schemas import TimePhase


class TestTimePhase:
    """Tests for phase classification."""

    @pytest.mark.parametrize("minute,phase", [
        (0, TimePhase.EARLY),
        (14, TimePhase.EARLY),
        (15, TimePhase.MID),
        (74, TimePhase.MID),
        (75, TimePhase.LATE),
        (84, TimePhase.LATE),
        (85, TimePhase.EXTRA_LATE),
        (93, TimePhase.EXTRA_LATE),
    ])
    def test_phase_boundaries(self, minute, phase):
        assert get_time_phase(minute) == phase


class TestTimeMultiplier:
    """Tests for get_time_multiplier."""

    def test_early_and_mid(self):
        assert get_time_multiplier(10, 0).value == pytest.approx(0.85)
        assert get_time_multiplier(50, 0).value == pytest.approx(1.0)

    def test_fatigue_after_late_minute(self):
        result = get_time_multiplier(80, 0)
        assert result.phase == TimePhase.LATE
        assert result.fatigue == pytest.approx(0.015)
        assert result.value == pytest.approx(1.265)

    def test_desperation_when_behind(self):
        result = get_time_multiplier(88, -1)
        assert result.desperation == pytest.approx(0.15)
        assert result.value == pytest.approx(1.45 + 13 * 0.003 + 0.15)

    def test_no_desperation_when_level_or_ahead(self):
        assert get_time_multiplier(88, 0).desperation == 0.0
        assert get_time_multiplier(88, 2).desperation == 0.0

    def test_custom_config(self):
        cfg = TemporalSettings(late_multiplier=2.0, fatigue_per_minute=0.0)
        assert get_time_multiplier(80, 0, cfg).value == pytest.approx(2.0)


class TestPoisson:
    """Tests for poisson_late_goal_probability."""

    def test_known_value(self):
        # lambda = 2.0 / 90 * 15 * 1.265
        assert poisson_late_goal_probability(2.0, 80, 0) == 34

    def test_zero_xg_gives_zero(self):
        assert poisson_late_goal_probability(0.0, 80) == 0

    def test_no_time_left_gives_zero(self):
        assert remaining_minutes(96) == 0
        assert poisson_late_goal_probability(3.0, 96) == 0

    def test_monotonic_in_xg(self):
        values = [poisson_late_goal_probability(xg, 82, 0) for xg in (0.5, 1.0, 2.0, 3.0, 4.0)]
        assert values == sorted(values)
        assert values[0] < values[-1]

    def test_bounded(self):
        for xg in (0.1, 1.0, 10.0, 100.0):
            assert 0 <= poisson_late_goal_probability(xg, 20, -1) <= 100

    def test_phase_steps_and_decay(self):
        # Jumps up where a new phase starts, decays inside a phase
        values = {m: poisson_late_goal_probability(2.0, m, 0) for m in (74, 75, 76, 84, 85)}
        assert values == {74: 37, 75: 43, 76: 41, 84: 27, 85: 28}


class TestUrgencyBonus:
    """Tests for calculate_urgency_bonus."""

    def test_zero_before_minute_80(self):
        assert calculate_urgency_bonus(79, 1, 1) == 0.0

    def test_tie(self):
        assert calculate_urgency_bonus(84, 1, 1) == pytest.approx(10.0)

    def test_scoreless_extra(self):
        assert calculate_urgency_bonus(85, 0, 0) == pytest.approx(15.5)

    def test_one_goal_margins(self):
        trailing = calculate_urgency_bonus(85, 1, 2)
        leading = calculate_urgency_bonus(85, 2, 1)
        tied = calculate_urgency_bonus(85, 1, 1)
        assert trailing == pytest.approx(14.5)
        assert leading == pytest.approx(7.5)
        assert trailing > tied > leading

    def test_decided_games(self):
        assert calculate_urgency_bonus(88, 0, 2) == 6
        assert calculate_urgency_bonus(88, 3, 0) == 0

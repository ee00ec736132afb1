"""Tests for tier hysteresis and emission cooldown."""

import pytest

from config.settings import HysteresisSettings
from src.football.engine.hysteresis import TierHysteresis
from src.football.models.schemas import Tier

T0 = 1_700_000_000_000
MINUTE_MS = 60_000


@pytest.fixture
def hysteresis():
    return TierHysteresis()


@pytest.fixture
def states():
    return {}


class TestTierUpdate:
    """Tests for TierHysteresis.update."""

    def test_new_fixture_adopts_raw_tier(self, hysteresis, states):
        result = hysteresis.update(states, 1, 75, T0)
        assert result.tier == Tier.HIGH
        assert result.is_stable
        assert not result.changed

    def test_needs_two_confirmations(self, hysteresis, states):
        hysteresis.update(states, 1, 40, T0)

        first = hysteresis.update(states, 1, 75, T0 + 1)
        assert first.tier == Tier.LOW
        assert first.raw_tier == Tier.HIGH
        assert not first.is_stable
        assert states[1].pending_tier == Tier.HIGH
        assert states[1].confirm_count == 1

        second = hysteresis.update(states, 1, 78, T0 + 2)
        assert second.tier == Tier.HIGH
        assert second.is_stable
        assert second.is_upgrade
        assert states[1].pending_tier is None
        assert states[1].confirm_count == 0

    def test_differing_tick_resets_pending(self, hysteresis, states):
        hysteresis.update(states, 1, 40, T0)
        hysteresis.update(states, 1, 75, T0 + 1)   # pending high
        hysteresis.update(states, 1, 55, T0 + 2)   # pending watch, count back to 1
        assert states[1].pending_tier == Tier.WATCH
        assert states[1].confirm_count == 1

        result = hysteresis.update(states, 1, 75, T0 + 3)
        assert result.tier == Tier.LOW
        assert states[1].confirm_count == 1

        result = hysteresis.update(states, 1, 75, T0 + 4)
        assert result.tier == Tier.HIGH

    def test_same_tier_clears_pending(self, hysteresis, states):
        hysteresis.update(states, 1, 40, T0)
        hysteresis.update(states, 1, 75, T0 + 1)
        result = hysteresis.update(states, 1, 30, T0 + 2)
        assert result.is_stable
        assert states[1].pending_tier is None
        assert states[1].confirm_count == 0

    def test_downgrade(self, hysteresis, states):
        hysteresis.update(states, 1, 80, T0)
        hysteresis.update(states, 1, 20, T0 + 1)
        result = hysteresis.update(states, 1, 20, T0 + 2)
        assert result.is_downgrade
        assert result.tier == Tier.LOW

    def test_custom_threshold(self, states):
        hysteresis = TierHysteresis(HysteresisSettings(confirm_threshold=3))
        hysteresis.update(states, 1, 40, T0)
        hysteresis.update(states, 1, 75, T0 + 1)
        assert hysteresis.update(states, 1, 75, T0 + 2).tier == Tier.LOW
        assert hysteresis.update(states, 1, 75, T0 + 3).tier == Tier.HIGH

    def test_stable_tier_lookup(self, hysteresis, states):
        assert TierHysteresis.get_stable_tier(states, 9) is None
        hysteresis.update(states, 9, 55, T0)
        assert TierHysteresis.get_stable_tier(states, 9) == Tier.WATCH
        TierHysteresis.reset(states)
        assert states == {}


class TestEmissionCooldown:
    """Tests for TierHysteresis.should_emit_signal."""

    def test_second_emission_within_cooldown_suppressed(self, hysteresis, states):
        assert hysteresis.should_emit_signal(states, 1, "high_signal", T0)
        assert not hysteresis.should_emit_signal(states, 1, "high_signal", T0 + 2 * MINUTE_MS)

    def test_emits_again_after_cooldown(self, hysteresis, states):
        assert hysteresis.should_emit_signal(states, 1, "high_signal", T0)
        assert not hysteresis.should_emit_signal(states, 1, "high_signal", T0 + 5 * MINUTE_MS)
        assert hysteresis.should_emit_signal(states, 1, "high_signal", T0 + 5 * MINUTE_MS + 1)

    def test_cooldown_per_type_and_fixture(self, hysteresis, states):
        assert hysteresis.should_emit_signal(states, 1, "high_signal", T0)
        assert hysteresis.should_emit_signal(states, 1, "late_bet", T0)
        assert hysteresis.should_emit_signal(states, 2, "high_signal", T0)

    def test_cooldown_survives_tier_reconfirmation(self, hysteresis, states):
        hysteresis.update(states, 1, 40, T0)
        hysteresis.update(states, 1, 75, T0 + 1)
        assert hysteresis.update(states, 1, 75, T0 + 2).is_upgrade
        assert hysteresis.should_emit_signal(states, 1, "high_signal", T0 + 2)

        hysteresis.update(states, 1, 40, T0 + 3)
        hysteresis.update(states, 1, 40, T0 + 4)
        hysteresis.update(states, 1, 75, T0 + 5)
        assert hysteresis.update(states, 1, 75, T0 + 6).is_upgrade
        assert not hysteresis.should_emit_signal(states, 1, "high_signal", T0 + 6)


class TestEviction:
    """Tests for TierHysteresis.evict_stale."""

    def test_evicts_fixtures_not_seen(self, hysteresis, states):
        hysteresis.update(states, 1, 40, T0)
        hysteresis.update(states, 2, 40, T0 + 20 * MINUTE_MS)

        evicted = hysteresis.evict_stale(states, T0 + 31 * MINUTE_MS)
        assert evicted == [1]
        assert set(states) == {2}

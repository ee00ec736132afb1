"""
Tier hysteresis and emission cooldown.

A fixture's visible tier only changes after the same new raw tier has been
seen ``confirm_threshold`` ticks in a row. Separately, each (fixture, signal
type) pair may emit at most once per cooldown window.

State lives in a plain dict of TierState keyed by fixture id that the caller
owns and passes in.
"""

from dataclasses import dataclass, field
from typing import Optional

import structlog

from config.settings import HysteresisSettings, TierSettings, settings
from src.football.engine.strength import determine_tier
from src.football.models.schemas import Tier

logger = structlog.get_logger()


@dataclass
class TierState:
    """Hysteresis state of one fixture."""
    current_tier: Tier
    pending_tier: Optional[Tier] = None
    confirm_count: int = 0
    last_signal_ms: dict[str, int] = field(default_factory=dict)
    last_seen_ms: int = 0


@dataclass(frozen=True)
class TierTransition:
    """Result of one hysteresis update."""
    fixture_id: int
    tier: Tier
    raw_tier: Tier
    is_stable: bool
    is_upgrade: bool = False
    is_downgrade: bool = False

    @property
    def changed(self) -> bool:
        return self.is_upgrade or self.is_downgrade


class TierHysteresis:
    """Debounces raw tiers and rate-limits emissions per fixture."""

    def __init__(
        self,
        config: Optional[HysteresisSettings] = None,
        tiers: Optional[TierSettings] = None,
    ):
        self.config = config or settings.hysteresis
        self.tiers = tiers or settings.tiers
        self.logger = logger.bind(component="tier_hysteresis")

    def update(
        self,
        states: dict[int, TierState],
        fixture_id: int,
        signal_strength: float,
        now_ms: int,
    ) -> TierTransition:
        """
        Feed one signal strength and return the visible tier.

        A fixture seen for the first time adopts its raw tier immediately.
        """
        raw_tier = determine_tier(signal_strength, self.tiers)
        state = states.get(fixture_id)

        if state is None:
            states[fixture_id] = TierState(current_tier=raw_tier, last_seen_ms=now_ms)
            return TierTransition(fixture_id, raw_tier, raw_tier, is_stable=True)

        state.last_seen_ms = now_ms

        if raw_tier == state.current_tier:
            state.pending_tier = None
            state.confirm_count = 0
            return TierTransition(fixture_id, state.current_tier, raw_tier, is_stable=True)

        if raw_tier == state.pending_tier:
            state.confirm_count += 1
        else:
            state.pending_tier = raw_tier
            state.confirm_count = 1

        if state.confirm_count < self.config.confirm_threshold:
            return TierTransition(fixture_id, state.current_tier, raw_tier, is_stable=False)

        previous = state.current_tier
        state.current_tier = raw_tier
        state.pending_tier = None
        state.confirm_count = 0

        transition = TierTransition(
            fixture_id,
            raw_tier,
            raw_tier,
            is_stable=True,
            is_upgrade=raw_tier.rank > previous.rank,
            is_downgrade=raw_tier.rank < previous.rank,
        )
        self.logger.info(
            "tier_changed",
            fixture_id=fixture_id,
            from_tier=previous.value,
            to_tier=raw_tier.value,
            signal_strength=signal_strength,
        )
        return transition

    def should_emit_signal(
        self,
        states: dict[int, TierState],
        fixture_id: int,
        signal_type: str,
        now_ms: int,
    ) -> bool:
        """
        True at most once per cooldown window for a (fixture, type) pair.

        A True answer records ``now_ms`` as the last emission.
        """
        state = states.get(fixture_id)
        if state is None:
            state = states[fixture_id] = TierState(current_tier=Tier.LOW, last_seen_ms=now_ms)

        cooldown_ms = self.config.cooldown_seconds * 1000
        last = state.last_signal_ms.get(signal_type)
        if last is None or now_ms - last > cooldown_ms:
            state.last_signal_ms[signal_type] = now_ms
            return True

        self.logger.debug(
            "signal_on_cooldown",
            fixture_id=fixture_id,
            signal_type=signal_type,
            seconds_left=round((cooldown_ms - (now_ms - last)) / 1000),
        )
        return False

    @staticmethod
    def get_stable_tier(states: dict[int, TierState], fixture_id: int) -> Optional[Tier]:
        state = states.get(fixture_id)
        return state.current_tier if state else None

    @staticmethod
    def reset(states: dict[int, TierState]) -> None:
        states.clear()

    def evict_stale(self, states: dict[int, TierState], now_ms: int) -> list[int]:
        """Drop fixtures not updated within the stale window; return their ids."""
        cutoff = now_ms - self.config.stale_fixture_seconds * 1000
        stale = [fid for fid, s in states.items() if s.last_seen_ms < cutoff]
        for fid in stale:
            del states[fid]
        return stale

"""
Signal strength blender.

    adjusted = base_score * time_multiplier + urgency_bonus
    signal   = clamp(round(adjusted * 0.7 + poisson * 0.3), 0, 100)

The signal strength is the single number used for tiering, calibration and
stake sizing.
"""

from dataclasses import dataclass
from typing import Optional

from config.settings import BlendSettings, KellySettings, TemporalSettings, TierSettings, settings
from src.football.engine.calibration import CalibratedProbability, CalibrationMap
from src.football.engine.kelly import KellyResult, calculate_kelly
from src.football.engine.temporal import (
    calculate_urgency_bonus,
    get_time_multiplier,
    poisson_late_goal_probability,
)
from src.football.models.schemas import MarketStateInput, MatchStateInput, Tier, TimePhase


@dataclass(frozen=True)
class StrengthComponents:
    base_score: float
    time_multiplier: float
    time_phase: TimePhase
    poisson_estimate: int
    urgency_bonus: float


@dataclass(frozen=True)
class SignalStrengthResult:
    signal_strength: int
    tier: Tier
    calibration: CalibratedProbability
    components: StrengthComponents
    kelly: KellyResult
    minute: int
    score_diff: int


def determine_tier(signal_strength: float, config: Optional[TierSettings] = None) -> Tier:
    """Raw tier from the high/watch thresholds."""
    cfg = config or settings.tiers
    if signal_strength >= cfg.high_threshold:
        return Tier.HIGH
    if signal_strength >= cfg.watch_threshold:
        return Tier.WATCH
    return Tier.LOW


def calculate_signal_strength(
    base_score: float,
    match: MatchStateInput,
    market: Optional[MarketStateInput] = None,
    calibration: Optional[CalibrationMap] = None,
    blend: Optional[BlendSettings] = None,
    temporal: Optional[TemporalSettings] = None,
    tiers: Optional[TierSettings] = None,
    kelly: Optional[KellySettings] = None,
) -> SignalStrengthResult:
    """
    Blend a multi-factor score with the temporal model.

    Args:
        base_score: Multi-factor total score (0-100)
        match: Current match snapshot
        market: Optional prices for stake sizing
        calibration: Calibration map; a fresh default map when omitted

    Returns:
        SignalStrengthResult with tier, calibration and Kelly sizing
    """
    blend = blend or settings.blend
    temporal = temporal or settings.temporal
    calibration = calibration or CalibrationMap()

    score_diff = match.score_diff
    multiplier = get_time_multiplier(match.minute, score_diff, temporal)
    poisson = poisson_late_goal_probability(match.total_xg, match.minute, score_diff, temporal)
    urgency = calculate_urgency_bonus(match.minute, match.score_home, match.score_away, temporal)

    adjusted = base_score * multiplier.value + urgency
    blended = adjusted * blend.adjusted_weight + poisson * blend.poisson_weight
    signal_strength = min(100, max(0, round(blended)))

    calibrated = calibration.lookup(signal_strength)
    probability = calibration.resolve_probability(signal_strength)

    return SignalStrengthResult(
        signal_strength=signal_strength,
        tier=determine_tier(signal_strength, tiers),
        calibration=calibrated,
        components=StrengthComponents(
            base_score=base_score,
            time_multiplier=multiplier.value,
            time_phase=multiplier.phase,
            poisson_estimate=poisson,
            urgency_bonus=urgency,
        ),
        kelly=calculate_kelly(probability, market, kelly),
        minute=match.minute,
        score_diff=score_diff,
    )

"""
Late-Game Temporal Model.

Three pure functions over the match clock:
- get_time_multiplier: phase multiplier plus fatigue and desperation terms
- poisson_late_goal_probability: chance of at least one more goal
- calculate_urgency_bonus: flat bonus for close games after minute 80
"""

import math
from dataclasses import dataclass
from typing import Optional

from config.settings import TemporalSettings, settings
from src.football.models.schemas import TimePhase


@dataclass(frozen=True)
class TimeMultiplier:
    """Phase multiplier with its components."""
    value: float
    phase: TimePhase
    base: float
    fatigue: float
    desperation: float


def _config(config: Optional[TemporalSettings]) -> TemporalSettings:
    return config or settings.temporal


def get_time_phase(minute: int, config: Optional[TemporalSettings] = None) -> TimePhase:
    """Classify the match minute into early, mid, late or extra-late."""
    cfg = _config(config)
    if minute < cfg.early_minute:
        return TimePhase.EARLY
    if minute >= cfg.extra_late_minute:
        return TimePhase.EXTRA_LATE
    if minute >= cfg.late_minute:
        return TimePhase.LATE
    return TimePhase.MID


def get_time_multiplier(
    minute: int,
    score_diff: int,
    config: Optional[TemporalSettings] = None,
) -> TimeMultiplier:
    """
    Calculate the temporal multiplier for a base score.

    Args:
        minute: Current match minute
        score_diff: Goals of the observed side minus the opponent's;
            negative means the observed side is behind
        config: Temporal settings (defaults to global settings)

    Returns:
        TimeMultiplier whose value is base + fatigue + desperation
    """
    cfg = _config(config)
    phase = get_time_phase(minute, cfg)

    base = {
        TimePhase.EARLY: cfg.early_multiplier,
        TimePhase.MID: cfg.mid_multiplier,
        TimePhase.LATE: cfg.late_multiplier,
        TimePhase.EXTRA_LATE: cfg.extra_late_multiplier,
    }[phase]

    fatigue = 0.0
    if minute > cfg.late_minute:
        fatigue = (minute - cfg.late_minute) * cfg.fatigue_per_minute

    desperation = cfg.desperation_bonus if score_diff < 0 else 0.0

    return TimeMultiplier(
        value=base + fatigue + desperation,
        phase=phase,
        base=base,
        fatigue=fatigue,
        desperation=desperation,
    )


def remaining_minutes(minute: int, config: Optional[TemporalSettings] = None) -> int:
    """Regulation minutes left plus the fixed stoppage allowance."""
    cfg = _config(config)
    return max(0, cfg.regulation_minutes - minute + cfg.stoppage_allowance)


def poisson_late_goal_probability(
    total_xg: float,
    minute: int,
    score_diff: int = 0,
    config: Optional[TemporalSettings] = None,
) -> int:
    """
    Probability (0-100) of at least one more goal before the final whistle.

    The match xG rate is projected over the remaining minutes and scaled by
    the time multiplier: lambda = xg / 90 * remaining * multiplier, and
    P(goal) = 1 - exp(-lambda).
    """
    cfg = _config(config)
    remaining = remaining_minutes(minute, cfg)
    if remaining <= 0 or total_xg <= 0:
        return 0

    multiplier = get_time_multiplier(minute, score_diff, cfg).value
    lam = total_xg / cfg.regulation_minutes * remaining * multiplier
    probability = 1 - math.exp(-lam)
    return max(0, min(100, round(probability * 100)))


def calculate_urgency_bonus(
    minute: int,
    home_score: int,
    away_score: int,
    config: Optional[TemporalSettings] = None,
) -> float:
    """
    Urgency bonus for close games late on.

    Zero before minute 80. After that a one-goal deficit earns the most,
    a tie slightly less, a one-goal lead less again, and games decided by
    two or more goals earn little or nothing. A scoreless match past
    minute 85 gets an extra flat bonus.
    """
    cfg = _config(config)
    if minute < cfg.urgency_start_minute:
        return 0.0

    time_urgency = (minute - cfg.urgency_start_minute) * cfg.urgency_per_minute
    score_diff = home_score - away_score
    abs_diff = abs(score_diff)

    if abs_diff == 0:
        bonus = 8 + time_urgency
    elif abs_diff == 1:
        bonus = (12 if score_diff < 0 else 5) + time_urgency
    else:
        bonus = 6 if score_diff < 0 else 0

    if home_score == 0 and away_score == 0 and minute >= cfg.scoreless_bonus_minute:
        bonus += cfg.scoreless_bonus

    return bonus

"""
Continuous score mappers.

Piecewise-linear curves that turn raw match statistics into bounded
component scores. Values below the first knot map to the first output,
values beyond the last knot map to the cap.
"""

from typing import Optional

import numpy as np


# (input knots, output knots)
PRESSURE_INDEX_CURVE = ([0.0, 3.0, 8.0, 15.0, 25.0], [0.0, 3.0, 7.0, 10.0, 12.0])
XG_VELOCITY_CURVE = ([0.0, 0.15, 0.4, 0.8, 1.2], [0.0, 2.0, 5.0, 7.0, 8.0])

# Weights of the raw pressure index
PRESSURE_WEIGHTS = {
    "shots": 1.0,
    "shots_on": 2.0,
    "xg": 3.0,
    "corners": 0.5,
}

# Share of recent shots assumed on target when only shot counts are known
ASSUMED_ON_TARGET_RATIO = 0.4


def piecewise(value: float, curve: tuple[list[float], list[float]]) -> float:
    """Linear interpolation over a knot curve, clamped at both ends."""
    xp, fp = curve
    return float(np.interp(value, xp, fp))


def calculate_pressure_index(
    shots_last_15: float,
    shots_on_last_15: Optional[float],
    xg_last_15: float,
    corners_last_15: float,
) -> float:
    """
    Pressure index (0-12) from the last 15 minutes of play.

    When shots on target are not reported separately they are estimated as
    40% of recent shots.
    """
    if shots_on_last_15 is None:
        shots_on_last_15 = round(shots_last_15 * ASSUMED_ON_TARGET_RATIO)

    raw = (
        shots_last_15 * PRESSURE_WEIGHTS["shots"]
        + shots_on_last_15 * PRESSURE_WEIGHTS["shots_on"]
        + xg_last_15 * PRESSURE_WEIGHTS["xg"]
        + corners_last_15 * PRESSURE_WEIGHTS["corners"]
    )
    return piecewise(raw, PRESSURE_INDEX_CURVE)


def xg_velocity_to_score(xg_last_15: float) -> float:
    """xG gained in the last 15 minutes mapped to 0-8."""
    return piecewise(xg_last_15, XG_VELOCITY_CURVE)


def over_odds_change_to_score(prev_odds: Optional[float], curr_odds: Optional[float]) -> float:
    """
    Falling over price mapped to 0-10.

    One point per 0.03 drop, full marks from a 0.30 drop. Rising or missing
    prices score zero.
    """
    if not prev_odds or not curr_odds:
        return 0.0
    change = prev_odds - curr_odds
    if change <= 0:
        return 0.0
    if change >= 0.3:
        return 10.0
    return change / 0.03


def score_diff_to_base(diff: int, total_goals: int) -> float:
    """Score-state base (0-8); level and tight games favour another goal."""
    abs_diff = abs(diff)
    if abs_diff == 0:
        if total_goals == 0:
            return 8.0
        if total_goals <= 2:
            return 6.0
        return 4.0
    if abs_diff == 1:
        return 5.0
    if abs_diff == 2:
        return 2.0
    return 0.0


def goals_to_bonus(total_goals: int) -> float:
    """Open-game bonus (0-6) by goals already scored."""
    return {0: 5.0, 1: 6.0, 2: 5.0, 3: 3.0}.get(total_goals, 1.0)


def shot_accuracy_to_score(accuracy_pct: float) -> float:
    """Shot quality (0-6) from shots-on-target percentage."""
    if accuracy_pct >= 50:
        return 6.0
    if accuracy_pct >= 40:
        return 4.0
    if accuracy_pct >= 30:
        return 2.0
    return 0.0


def trailing_state_to_score(score_diff: int, minute: int) -> float:
    """Chasing pressure (0-6) for one-goal games and late draws."""
    abs_diff = abs(score_diff)
    if abs_diff == 1:
        if minute >= 85:
            return 6.0
        return 5.0 if minute >= 80 else 3.0
    if abs_diff == 0 and minute >= 80:
        return 4.0
    if abs_diff == 2 and minute >= 85:
        return 2.0
    return 0.0


def minute_to_window_score(minute: int) -> float:
    """Timing window curve (0-20) peaking from minute 90."""
    if minute < 65:
        return 0.0
    if minute < 75:
        return 2 + (minute - 65) * 0.6
    if minute < 80:
        return 8 + (minute - 75) * 0.8
    if minute < 85:
        return 12 + (minute - 80) * 0.8
    if minute < 90:
        return 16 + (minute - 85) * 0.8
    return 20.0

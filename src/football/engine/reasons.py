"""
Top-3 reason extraction for scored matches.

Each candidate reason carries a concrete value so a reader can check it
against the match. Candidates are ranked by priority and the best three kept.
"""

from dataclasses import dataclass
from typing import Optional

from src.football.engine.scoring import ScoreResult
from src.football.engine.temporal import remaining_minutes
from src.football.models.schemas import MatchStateInput, TeamStrengthInput

TOP_N = 3


@dataclass(frozen=True)
class ReasonItem:
    label: str
    score: float
    detail: str
    priority: float

    def __str__(self) -> str:
        return f"{self.label} ({self.detail})"


def extract_reasons(
    result: ScoreResult,
    match: MatchStateInput,
    strength: Optional[TeamStrengthInput] = None,
    limit: int = TOP_N,
) -> list[ReasonItem]:
    """Return the highest-priority reasons behind a score, best first."""
    reasons = []

    attack = result.attack_factor.score
    if attack >= 12:
        reasons.append(ReasonItem(
            label="Attacking pressure",
            score=attack,
            detail=f"shots on target {match.shots_on_home}-{match.shots_on_away}",
            priority=attack,
        ))

    momentum = result.momentum_factor.score
    if momentum >= 15:
        recent = match.shots_last_15 or 0
        reasons.append(ReasonItem(
            label="Momentum surge",
            score=momentum,
            detail=f"{recent} recent shots" if recent > 0 else "pressure rising",
            priority=momentum + 5,
        ))

    history = result.history_factor.score
    if history >= 12 and match.xg_debt > 0.3:
        reasons.append(ReasonItem(
            label="xG debt",
            score=history,
            detail=f"xG {match.total_xg:.1f} from {match.total_goals} goals",
            priority=history + 3,
        ))

    score_state = result.score_factor.score
    if score_state >= 10:
        diff = match.score_diff
        if diff < 0:
            label = "Home chasing"
        elif diff > 0:
            label = "Home ahead"
        else:
            label = "Level game"
        reasons.append(ReasonItem(
            label=label,
            score=score_state,
            detail=f"{match.score_home}-{match.score_away}",
            priority=score_state,
        ))

    if result.is_strong_team_behind:
        gap = strength.strength_gap if strength else 0.0
        reasons.append(ReasonItem(
            label="Strong side behind",
            score=15,
            detail=f"strength gap {gap:.0f}" if gap > 0 else "stronger on paper",
            priority=20,
        ))

    odds = result.odds_factor
    if odds is not None and odds.data_available and odds.score >= 8:
        reasons.append(ReasonItem(
            label="Market support",
            score=odds.score,
            detail="prices moving towards goals",
            priority=odds.score,
        ))

    if match.minute >= 80:
        reasons.append(ReasonItem(
            label="Final stretch",
            score=8,
            detail=f"{remaining_minutes(match.minute)} minutes left",
            priority=10,
        ))

    corner_diff = match.corners_home - match.corners_away
    if abs(corner_diff) >= 4:
        reasons.append(ReasonItem(
            label="Corner dominance",
            score=6,
            detail=f"corners {match.corners_home}-{match.corners_away}",
            priority=6,
        ))

    reasons.sort(key=lambda r: r.priority, reverse=True)
    return reasons[:limit]


def get_reason_labels(reasons: list[ReasonItem]) -> list[str]:
    return [r.label for r in reasons]

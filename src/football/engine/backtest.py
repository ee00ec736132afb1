"""
Signal filters and backtest aggregation for unified signals.

A signal is validated against the final score of its match: it is a hit
when at least one goal was scored after the trigger.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from src.football.models.schemas import Action, UnifiedSignal

SCORE_RANGES = (
    ("0-50", 0),
    ("50-60", 50),
    ("60-70", 60),
    ("70-80", 70),
    ("80-90", 80),
    ("90-100", 90),
)
CONFIDENCE_RANGES = (
    ("0-40", 0),
    ("40-60", 40),
    ("60-80", 60),
    ("80-100", 80),
)

HIT_CRITERIA = "GOAL_AFTER_TRIGGER"


@dataclass(frozen=True)
class SignalValidation:
    """Outcome of one signal once its match is over."""
    signal_id: str
    fixture_id: int
    action: Action
    trigger_minute: int
    trigger_score: float
    trigger_confidence: float
    goals_after_trigger: int
    first_goal_minute: Optional[int]
    final_score_home: int
    final_score_away: int
    is_hit: bool
    profit_if_bet: Optional[float]
    hit_criteria: str = HIT_CRITERIA

    @property
    def had_goal_after(self) -> bool:
        return self.goals_after_trigger > 0


@dataclass
class GroupStats:
    count: int = 0
    hit_count: int = 0

    @property
    def hit_rate(self) -> float:
        return self.hit_count / self.count if self.count else 0.0

    def add(self, is_hit: bool) -> None:
        self.count += 1
        if is_hit:
            self.hit_count += 1


@dataclass
class BacktestResult:
    total_signals: int = 0
    hit_count: int = 0
    by_action: dict[str, GroupStats] = field(default_factory=dict)
    by_score_range: dict[str, GroupStats] = field(default_factory=dict)
    by_confidence_range: dict[str, GroupStats] = field(default_factory=dict)

    @property
    def hit_rate(self) -> float:
        return self.hit_count / self.total_signals if self.total_signals else 0.0


# =============================================================================
# Filters
# =============================================================================

def filter_high_score_signals(signals: Iterable[UnifiedSignal], min_score: float = 70) -> list[UnifiedSignal]:
    """Signals scoring at least ``min_score``, best first."""
    return sorted((s for s in signals if s.score >= min_score), key=lambda s: s.score, reverse=True)


def filter_by_action(signals: Iterable[UnifiedSignal], action: Action) -> list[UnifiedSignal]:
    """Signals with the given action, best first."""
    return sorted((s for s in signals if s.action == action), key=lambda s: s.score, reverse=True)


# =============================================================================
# Validation and aggregation
# =============================================================================

def validate_signal(
    signal: UnifiedSignal,
    final_score_home: int,
    final_score_away: int,
    goal_minutes: Optional[list[int]] = None,
) -> SignalValidation:
    """
    Compare a signal with the final result of its match.

    Profit assumes the bet plan was taken at its minimum odds; signals
    without a bet plan carry no profit figure.
    """
    trigger_goals = signal.reasons.state.get("score_home", 0) + signal.reasons.state.get("score_away", 0)
    goals_after = final_score_home + final_score_away - trigger_goals
    first_goal = next((m for m in sorted(goal_minutes or []) if m > signal.minute), None)
    is_hit = goals_after > 0

    profit = None
    if signal.bet_plan is not None:
        plan = signal.bet_plan
        profit = round((plan.odds_min - 1) * plan.stake_pct, 2) if is_hit else -plan.stake_pct

    return SignalValidation(
        signal_id=f"{signal.fixture_id}_{signal.module}_{signal.minute}",
        fixture_id=signal.fixture_id,
        action=signal.action,
        trigger_minute=signal.minute,
        trigger_score=signal.score,
        trigger_confidence=signal.confidence,
        goals_after_trigger=goals_after,
        first_goal_minute=first_goal,
        final_score_home=final_score_home,
        final_score_away=final_score_away,
        is_hit=is_hit,
        profit_if_bet=profit,
    )


def _range_label(value: float, ranges: tuple[tuple[str, int], ...]) -> str:
    label = ranges[0][0]
    for name, lower in ranges:
        if value >= lower:
            label = name
    return label


def aggregate_backtest_results(validations: Iterable[SignalValidation]) -> BacktestResult:
    """Hit rates overall, by action, by score range and by confidence range."""
    result = BacktestResult(
        by_action={a.value: GroupStats() for a in Action},
        by_score_range={name: GroupStats() for name, _ in SCORE_RANGES},
        by_confidence_range={name: GroupStats() for name, _ in CONFIDENCE_RANGES},
    )
    for v in validations:
        result.total_signals += 1
        if v.is_hit:
            result.hit_count += 1
        result.by_action[v.action.value].add(v.is_hit)
        result.by_score_range[_range_label(v.trigger_score, SCORE_RANGES)].add(v.is_hit)
        result.by_confidence_range[_range_label(v.trigger_confidence, CONFIDENCE_RANGES)].add(v.is_hit)
    return result


# =============================================================================
# Formatting
# =============================================================================

def format_signal_summary(signal: UnifiedSignal) -> str:
    return f"[{signal.module}] {signal.score:g} pts / {signal.confidence:g}% conf -> {signal.action.value}"


def format_backtest_report(result: BacktestResult) -> str:
    lines = [
        f"Signals: {result.total_signals}  hits: {result.hit_count}  "
        f"hit rate: {result.hit_rate * 100:.1f}%",
    ]
    for title, groups in (
        ("By action", result.by_action),
        ("By score", result.by_score_range),
        ("By confidence", result.by_confidence_range),
    ):
        lines.append(f"{title}:")
        for name, stats in groups.items():
            if stats.count:
                lines.append(f"  {name:>8}: {stats.hit_count}/{stats.count} ({stats.hit_rate * 100:.1f}%)")
    return "\n".join(lines)

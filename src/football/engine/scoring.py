"""
Multi-Factor Scoring Engine.

Scores a live match for the chance of another goal:

    total = base (30) + score_state + attack + momentum + history + special [+ odds]

clamped to 0-100. A match without usable statistics is not scored at all;
the scorer returns an UnscoreableResult instead of a misleading zero.
"""

from dataclasses import dataclass, field, replace
from typing import Iterable, Optional, Union

import structlog

from config.settings import OddsSettings, ScoringSettings, settings
from src.football.engine.odds_analyzer import OddsHistory, detect_rapid_changes
from src.football.models.schemas import (
    DataQuality,
    FixtureTick,
    HistoricalRates,
    MarketStateInput,
    MatchStateInput,
    Recommendation,
    Side,
    TeamStrengthInput,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class FactorResult:
    """One scored factor with the facts behind it."""
    name: str
    score: float
    details: dict = field(default_factory=dict)
    data_available: bool = True
    data_quality: DataQuality = DataQuality.REAL


@dataclass(frozen=True)
class ScoreResult:
    """Output of the multi-factor scorer."""
    fixture_id: int
    match_name: str
    minute: int
    score_factor: FactorResult
    attack_factor: FactorResult
    momentum_factor: FactorResult
    history_factor: FactorResult
    special_factor: FactorResult
    odds_factor: Optional[FactorResult]
    base_score: float
    total_score: float
    stars: int
    recommendation: Recommendation
    is_strong_team_behind: bool
    alerts: list[str]
    confidence: float

    @property
    def factors(self) -> dict[str, FactorResult]:
        result = {
            "score": self.score_factor,
            "attack": self.attack_factor,
            "momentum": self.momentum_factor,
            "history": self.history_factor,
            "special": self.special_factor,
        }
        if self.odds_factor is not None:
            result["odds"] = self.odds_factor
        return result

    @property
    def has_odds(self) -> bool:
        return self.odds_factor is not None and self.odds_factor.data_available


@dataclass(frozen=True)
class UnscoreableResult:
    """The match could not be scored; distinct from a zero score."""
    fixture_id: int
    reason: str
    match_info: str = ""


@dataclass(frozen=True)
class ScoreLevel:
    label: str
    color: str


ScoringOutcome = Union[ScoreResult, UnscoreableResult]


def get_strong_side(
    market: Optional[MarketStateInput] = None,
    strength: Optional[TeamStrengthInput] = None,
) -> Optional[Side]:
    """
    Side the market or the table considers stronger.

    Team strength wins when supplied; otherwise the Asian handicap sign
    (home giving goals means home is stronger).
    """
    if strength is not None:
        if strength.is_home_strong:
            return Side.HOME
        if strength.is_away_strong:
            return Side.AWAY
        return None
    if market is not None and market.ah_line:
        return Side.HOME if market.ah_line < 0 else Side.AWAY
    return None


class MultiFactorScorer:
    """
    Multi-factor goal-likelihood scorer.

    Factors:
    - score state (-10..25): how open the scoreline keeps the game
    - attack (0..30): shot volume and quality, corners, xG
    - momentum (0..35): recent pressure, only with real statistics
    - history (0..25): historical late-goal tendencies
    - special (-20..20): cards, substitutions, VAR, stalemates
    - odds (-10..20): market moves, only when prices are supplied
    """

    def __init__(
        self,
        config: Optional[ScoringSettings] = None,
        odds_config: Optional[OddsSettings] = None,
    ):
        self.config = config or settings.scoring
        self.odds_config = odds_config or settings.odds
        self.logger = logger.bind(component="multi_factor_scorer")

    # =========================================================================
    # Entry points
    # =========================================================================

    def check_scoreability(self, match: MatchStateInput) -> Optional[str]:
        """Return the reason a match cannot be scored, or None."""
        if not match.stats_available:
            return "STATS_UNAVAILABLE"
        if match.total_shots == 0 and match.minute > self.config.zero_shots_minute:
            return "SUSPICIOUS_ZERO_SHOTS"
        return None

    def score(
        self,
        match: MatchStateInput,
        market: Optional[MarketStateInput] = None,
        history: Optional[HistoricalRates] = None,
        strength: Optional[TeamStrengthInput] = None,
        odds_history: Optional[OddsHistory] = None,
    ) -> ScoringOutcome:
        """
        Score one match snapshot.

        Args:
            match: Current match snapshot
            market: Optional live prices; enables the odds factor
            history: Optional historical late-goal rates
            strength: Optional team strength, used to find the strong side
            odds_history: Optional snapshot history for live-shift detection

        Returns:
            ScoreResult, or UnscoreableResult when statistics are missing
        """
        reason = self.check_scoreability(match)
        if reason:
            self.logger.debug(
                "match_unscoreable",
                fixture_id=match.fixture_id,
                match=match.match_name,
                reason=reason,
            )
            return UnscoreableResult(
                fixture_id=match.fixture_id,
                reason=reason,
                match_info=f"{match.match_name} ({match.minute}')",
            )

        strong_side = get_strong_side(market, strength)
        score_factor = self._score_factor(match, strong_side)
        attack = self._attack_factor(match)
        momentum = self._momentum_factor(match)
        hist = self._history_factor(match, history)
        special = self._special_factor(match)
        odds = self._odds_factor(match, market, odds_history) if market is not None else None

        raw = (
            self.config.base_score
            + score_factor.score
            + attack.score
            + momentum.score
            + hist.score
            + special.score
            + (odds.score if odds else 0.0)
        )
        total = max(0.0, min(100.0, raw))
        has_odds = odds is not None

        confidence = self._confidence(match, hist.data_available, momentum.data_quality)
        if has_odds:
            confidence = min(100.0, confidence + 10)

        is_strong_behind = score_factor.details["strong_behind"]
        result = ScoreResult(
            fixture_id=match.fixture_id,
            match_name=match.match_name,
            minute=match.minute,
            score_factor=score_factor,
            attack_factor=attack,
            momentum_factor=momentum,
            history_factor=hist,
            special_factor=special,
            odds_factor=odds,
            base_score=self.config.base_score,
            total_score=total,
            stars=self._stars(total, has_odds),
            recommendation=self._recommendation(total, has_odds),
            is_strong_team_behind=is_strong_behind,
            alerts=[],
            confidence=confidence,
        )
        return replace(result, alerts=self._alerts(result, match))

    # =========================================================================
    # Factors
    # =========================================================================

    def _score_factor(self, match: MatchStateInput, strong_side: Optional[Side]) -> FactorResult:
        diff = abs(match.score_diff)
        home, away = match.score_home, match.score_away

        strong_behind = (
            (strong_side == Side.HOME and home < away)
            or (strong_side == Side.AWAY and away < home)
        )
        strong_lead_by_one = (
            (strong_side == Side.HOME and home - away == 1)
            or (strong_side == Side.AWAY and away - home == 1)
        )

        if diff == 0:
            score = 18
        elif diff == 1:
            score = 12
        elif diff == 2:
            score = 5
        else:
            score = -10

        if strong_behind:
            score += 15
        if strong_lead_by_one:
            score += 5

        return FactorResult(
            name="score",
            score=float(max(-10, min(25, score))),
            details={
                "is_draw": diff == 0,
                "one_goal_diff": diff == 1,
                "two_goal_diff": diff == 2,
                "large_gap": diff >= 3,
                "strong_behind": strong_behind,
                "strong_lead_by_one": strong_lead_by_one,
                "strong_side": strong_side.value if strong_side else None,
            },
        )

    def _attack_factor(self, match: MatchStateInput) -> FactorResult:
        shots = match.total_shots
        accuracy = match.shot_accuracy
        corners = match.total_corners
        xg = match.total_xg
        goals = match.total_goals

        score = 0
        if shots >= 25:
            score += 10
        elif shots >= 18:
            score += 6

        if accuracy >= 45:
            score += 8
        elif accuracy >= 35:
            score += 4

        if corners >= 12:
            score += 6
        elif corners >= 8:
            score += 3

        if xg >= 3.0:
            score += 10
        elif xg >= 2.0:
            score += 5

        # Chances owed: xG well above goals
        if goals > 0 and xg > goals * 1.5:
            score += 8

        return FactorResult(
            name="attack",
            score=float(min(30, score)),
            details={
                "total_shots": shots,
                "shots_on_target": match.total_shots_on,
                "shot_accuracy": round(accuracy, 1),
                "corners": corners,
                "xg_total": round(xg, 2),
                "xg_debt": round(match.xg_debt, 2),
            },
        )

    def _momentum_factor(self, match: MatchStateInput) -> FactorResult:
        recent_shots = match.shots_last_15 or 0

        intensity = 1.0
        intensity_real = False
        first, second = match.shots_first_half, match.shots_second_half
        if first is not None and second is not None:
            if first > 0:
                intensity = second / first
                intensity_real = True
            elif second > 0:
                intensity = 2.0
                intensity_real = True

        losing_possession = 0.0
        if match.score_home < match.score_away:
            losing_possession = match.possession_home
        elif match.score_away < match.score_home:
            losing_possession = match.possession_away

        total_dangerous = match.dangerous_home + match.dangerous_away
        density_rising = total_dangerous > 0 and match.minute > 0 and total_dangerous > match.minute * 0.3

        if not match.stats_available:
            quality = DataQuality.UNAVAILABLE
        elif intensity_real:
            quality = DataQuality.REAL
        else:
            quality = DataQuality.PARTIAL

        score = 0
        if match.stats_available:
            if recent_shots >= 5:
                score += 15
            elif recent_shots >= 3:
                score += 8
            elif recent_shots >= 1:
                score += 4

            if intensity_real and intensity > 1.5:
                score += 10

            if match.score_home != match.score_away:
                if losing_possession >= 60:
                    score += 10
                elif losing_possession >= 55:
                    score += 5

            if density_rising:
                score += 8

        return FactorResult(
            name="momentum",
            score=float(min(35, score)),
            details={
                "recent_shots": recent_shots,
                "second_half_intensity": round(intensity, 2),
                "losing_team_possession": losing_possession,
                "attack_density_rising": density_rising,
            },
            data_available=match.stats_available,
            data_quality=quality,
        )

    def _history_factor(
        self,
        match: MatchStateInput,
        history: Optional[HistoricalRates],
    ) -> FactorResult:
        history = history or HistoricalRates()
        home_rate = history.home_late_goal_rate or 0.0
        away_rate = history.away_late_goal_rate or 0.0

        score = 0
        if home_rate > 40 and away_rate > 40:
            score += 12
        elif home_rate > 30 and away_rate > 30:
            score += 6

        if home_rate > 50 or away_rate > 50:
            score += 8

        if history.h2h_late_goals >= 4:
            score += 10
        elif history.h2h_late_goals >= 2:
            score += 5

        if history.league_late_goal_avg > 0.6:
            score += 5

        if history.comeback_rate > 40 and match.score_home != match.score_away:
            score += 8

        return FactorResult(
            name="history",
            score=float(min(25, score)),
            details={
                "home_late_goal_rate": home_rate,
                "away_late_goal_rate": away_rate,
                "h2h_late_goals": history.h2h_late_goals,
                "league_late_goal_avg": history.league_late_goal_avg,
                "comeback_rate": history.comeback_rate,
            },
            data_available=history.data_available,
            data_quality=DataQuality.REAL if history.data_available else DataQuality.UNAVAILABLE,
        )

    def _special_factor(self, match: MatchStateInput) -> FactorResult:
        red_home, red_away = match.red_cards_home, match.red_cards_away
        red_card_advantage = (red_home > 0 and red_away == 0) or (red_away > 0 and red_home == 0)
        high_scoring = match.total_goals >= 3
        subs_remaining = match.subs_remaining_home > 0 and match.subs_remaining_away > 0
        recent_attack_sub = match.recent_subs_attack > 0
        all_subs_used = match.subs_remaining_home == 0 and match.subs_remaining_away == 0
        too_many_fouls = match.fouls_home + match.fouls_away > 25
        stalemate = abs(match.possession_home - 50) < 5

        score = 0
        if red_card_advantage:
            score += 12
        if high_scoring:
            score += 8
        if subs_remaining:
            score += 5
        if recent_attack_sub:
            score += 6
        if match.var_cancelled:
            score += 5
        if all_subs_used:
            score -= 8
        if too_many_fouls:
            score -= 5
        if stalemate:
            score -= 3

        return FactorResult(
            name="special",
            score=float(max(-20, min(20, score))),
            details={
                "red_card_advantage": red_card_advantage,
                "high_scoring_match": high_scoring,
                "subs_remaining": subs_remaining,
                "recent_attack_sub": recent_attack_sub,
                "var_cancelled": match.var_cancelled,
                "all_subs_used": all_subs_used,
                "too_many_fouls": too_many_fouls,
                "possession_stalemate": stalemate,
            },
        )

    def _odds_factor(
        self,
        match: MatchStateInput,
        market: MarketStateInput,
        odds_history: Optional[OddsHistory],
    ) -> FactorResult:
        over = market.over_odds

        if over is None:
            goal_expectation = "MEDIUM"
        elif over < 1.70:
            goal_expectation = "HIGH"
        elif over > 2.20:
            goal_expectation = "LOW"
        else:
            goal_expectation = "MEDIUM"

        score = 0
        if goal_expectation == "HIGH":
            score += 6
        elif goal_expectation == "LOW":
            score -= 3

        tightening = widening = False
        if market.ah_line is not None and market.ah_line_prev is not None:
            curr, prev = abs(market.ah_line), abs(market.ah_line_prev)
            if curr < prev - 0.25:
                tightening = True
                score += 10
            if curr > prev + 0.25:
                widening = True
                score -= 5

        over_drop = False
        if over and market.over_odds_prev and market.over_odds_prev - over > 0.15:
            over_drop = True
            score += 8

        live_shift = False
        if odds_history is not None and 0 < match.minute < self.config.live_shift_max_minute:
            moves = [
                c for c in detect_rapid_changes(odds_history, match.fixture_id, config=self.odds_config)
                if abs(c.change_pct) > self.config.live_shift_pct
            ]
            if len(moves) >= 2:
                live_shift = True
                score += 8

        xg_divergence = False
        if over and match.total_xg > match.total_goals + 1.5 and over > 2.0:
            xg_divergence = True
            score += 6

        return FactorResult(
            name="odds",
            score=float(max(-10, min(20, score))),
            details={
                "goal_expectation": goal_expectation,
                "handicap_tightening": tightening,
                "handicap_widening": widening,
                "over_odds_drop": over_drop,
                "live_odds_shift": live_shift,
                "odds_xg_divergence": xg_divergence,
            },
        )

    # =========================================================================
    # Derived outputs
    # =========================================================================

    def _confidence(
        self,
        match: MatchStateInput,
        history_available: bool,
        momentum_quality: DataQuality,
    ) -> float:
        """Confidence from data completeness."""
        confidence = 30
        if match.stats_available:
            confidence += 25
        if match.shots_home > 0:
            confidence += 10
        if match.xg_home > 0:
            confidence += 10
        if momentum_quality == DataQuality.REAL:
            confidence += 10
        elif momentum_quality == DataQuality.PARTIAL:
            confidence += 5
        if history_available:
            confidence += 10
        if match.minute >= 70:
            confidence += 5
        return float(min(100, confidence))

    @staticmethod
    def _stars(score: float, has_odds: bool) -> int:
        thresholds = (100, 85, 75, 65) if has_odds else (90, 80, 70, 60)
        for stars, threshold in zip((5, 4, 3, 2), thresholds):
            if score >= threshold:
                return stars
        return 1

    @staticmethod
    def _recommendation(score: float, has_odds: bool) -> Recommendation:
        strong, buy, hold = (90, 75, 55) if has_odds else (80, 70, 50)
        if score >= strong:
            return Recommendation.STRONG_BUY
        if score >= buy:
            return Recommendation.BUY
        if score >= hold:
            return Recommendation.HOLD
        return Recommendation.AVOID

    def _alerts(self, result: ScoreResult, match: MatchStateInput) -> list[str]:
        alerts = []
        total = result.total_score
        if total >= 90:
            alerts.append("Very high goal probability (90+)")
        elif total >= 80:
            alerts.append("High goal probability (80+)")
        elif total >= 70:
            alerts.append("Elevated goal probability (70+)")

        sd = result.score_factor.details
        if sd["strong_behind"]:
            alerts.append("Strong side behind, expect a push")
        if match.minute >= 80 and sd["one_goal_diff"]:
            alerts.append("Key window: 80+ and one goal in it")
        if match.minute >= 80 and sd["is_draw"]:
            alerts.append("Level after 80, both sides have a reason to attack")

        ad = result.attack_factor.details
        if ad["total_shots"] >= 25:
            alerts.append("Heavy shooting: 25+ shots")
        if ad["xg_debt"] > 1.5:
            alerts.append("xG debt: expected goals well above actual")

        if result.momentum_factor.details["recent_shots"] >= 8:
            alerts.append("Attacking burst: 8+ recent shots")

        spd = result.special_factor.details
        if spd["red_card_advantage"]:
            alerts.append("Red card advantage")
        if spd["recent_attack_sub"]:
            alerts.append("Attacking substitution just made")
        if spd["var_cancelled"]:
            alerts.append("Goal cancelled by VAR")

        if result.odds_factor is not None:
            od = result.odds_factor.details
            if od["handicap_tightening"]:
                alerts.append("Handicap tightening")
            if od["over_odds_drop"]:
                alerts.append("Over price falling sharply")
            if od["live_odds_shift"]:
                alerts.append("Live odds shifting")
            if od["odds_xg_divergence"]:
                alerts.append("Over price ignores xG")
            if od["handicap_widening"]:
                alerts.append("Handicap widening")
            if od["goal_expectation"] == "HIGH":
                alerts.append("Market expects goals")

        return alerts


# =============================================================================
# Batch helpers
# =============================================================================

def score_all(
    ticks: Iterable[FixtureTick],
    scorer: Optional[MultiFactorScorer] = None,
) -> dict[int, ScoreResult]:
    """Score every tick; unscoreable matches are left out."""
    scorer = scorer or MultiFactorScorer()
    results = {}
    for tick in ticks:
        result = scorer.score(tick.match, tick.market, tick.history, tick.strength)
        if isinstance(result, ScoreResult):
            results[tick.fixture_id] = result
    return results


def filter_high_score(
    ticks: Iterable[FixtureTick],
    min_score: Optional[float] = None,
    scorer: Optional[MultiFactorScorer] = None,
) -> list[FixtureTick]:
    scorer = scorer or MultiFactorScorer()
    threshold = min_score if min_score is not None else scorer.config.high_score
    kept = []
    for tick in ticks:
        result = scorer.score(tick.match, tick.market, tick.history, tick.strength)
        if isinstance(result, ScoreResult) and result.total_score >= threshold:
            kept.append(tick)
    return kept


def filter_strong_team_behind(
    ticks: Iterable[FixtureTick],
    scorer: Optional[MultiFactorScorer] = None,
) -> list[FixtureTick]:
    scorer = scorer or MultiFactorScorer()
    kept = []
    for tick in ticks:
        result = scorer.score(tick.match, tick.market, tick.history, tick.strength)
        if isinstance(result, ScoreResult) and result.is_strong_team_behind:
            kept.append(tick)
    return kept


def get_score_level(score: float) -> ScoreLevel:
    if score >= 80:
        return ScoreLevel("very high", "red")
    if score >= 70:
        return ScoreLevel("high", "orange")
    if score >= 60:
        return ScoreLevel("medium", "yellow")
    if score >= 50:
        return ScoreLevel("fair", "green")
    return ScoreLevel("low", "gray")


def format_score_breakdown(result: ScoreResult) -> str:
    """Multi-line factor breakdown for debugging."""
    lines = [
        f"Score breakdown (total: {result.total_score:.0f})",
        f"  base:     {result.base_score:.0f}",
    ]
    for name, factor in result.factors.items():
        lines.append(f"  {name + ':':<9} {factor.score:+.0f}")
    return "\n".join(lines)

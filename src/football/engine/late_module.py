"""
Unified Late-Phase Module.

From minute 65 the late module recomputes an edge-weighted signal:

    score = base + edge + timing + market + quality

Phase gate:
- inactive (<65): scored for display, action is always IGNORE
- warmup (65-79): score capped at 75, action WATCH or IGNORE, no bet plan
- active (>=80): full BET / PREPARE / WATCH / IGNORE ladder

Missing market data zeroes the market component and the market part of
confidence; it never blocks scoring.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog

from config.settings import LateModuleSettings, TemporalSettings, settings
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
from src.football.engine.scenarios import classify_scenario, get_scenario_label
from src.football.engine.temporal import calculate_urgency_bonus, poisson_late_goal_probability
from src.football.models.schemas import (
    Action,
    BaseComponent,
    BetPlan,
    DEFAULT_OU_LINE,
    EdgeComponent,
    LateConfidenceBreakdown,
    LatePhase,
    MarketComponent,
    MarketStateInput,
    MatchStateInput,
    QualityComponent,
    ScenarioTag,
    ScoreBreakdown,
    SignalReasons,
    TeamStrengthInput,
    TimingComponent,
    UnifiedSignal,
)

logger = structlog.get_logger()

MODULE_VERSION = "v1.0"


def should_trigger_late_module(minute: int, config: Optional[LateModuleSettings] = None) -> bool:
    """True once the match reaches the warm-up minute."""
    cfg = config or settings.late_module
    return minute >= cfg.warmup_minute


def get_late_module_phase(minute: int, config: Optional[LateModuleSettings] = None) -> LatePhase:
    """inactive below 65, warmup for 65-79, active from 80."""
    cfg = config or settings.late_module
    if minute < cfg.warmup_minute:
        return LatePhase.INACTIVE
    if minute < cfg.active_minute:
        return LatePhase.WARMUP
    return LatePhase.ACTIVE


def is_signal_worth_watching(signal: UnifiedSignal) -> bool:
    return signal.action != Action.IGNORE and signal.scenario_tag != ScenarioTag.BLOWOUT


class LateModule:
    """
    Computes UnifiedSignal objects for late-game fixtures.

    Stateless apart from configuration: the same inputs always produce the
    same signal (given the same ``now``).
    """

    def __init__(
        self,
        config: Optional[LateModuleSettings] = None,
        temporal: Optional[TemporalSettings] = None,
    ):
        self.config = config or settings.late_module
        self.temporal = temporal or settings.temporal
        self.logger = logger.bind(component="late_module")

    # =========================================================================
    # Core Evaluation
    # =========================================================================

    def evaluate(
        self,
        match: MatchStateInput,
        market: Optional[MarketStateInput] = None,
        strength: Optional[TeamStrengthInput] = None,
        now: Optional[datetime] = None,
    ) -> UnifiedSignal:
        """
        Build the unified signal for one match snapshot.

        Args:
            match: Current match snapshot
            market: Optional market prices
            strength: Optional team strength
            now: Evaluation time, used for data freshness (defaults to UTC now)

        Returns:
            A new, immutable UnifiedSignal
        """
        now = now or datetime.now(timezone.utc)
        phase = get_late_module_phase(match.minute, self.config)
        is_warmup = phase == LatePhase.WARMUP

        if phase == LatePhase.INACTIVE:
            scenario = ScenarioTag.GENERIC
        else:
            scenario = classify_scenario(match, strength, self.config)

        base = self._calculate_base(match)
        edge = self._calculate_edge(match, scenario, strength)
        timing = self._calculate_timing(match, is_warmup)
        market_component = self._calculate_market(match, market, scenario)
        quality = self._calculate_quality(match, now)

        score = base.score_state + edge.total + timing.total + market_component.total + quality.total
        if is_warmup:
            score = min(score, self.config.warmup_score_cap)
        score = round(max(0.0, min(100.0, score)), 1)

        confidence = self._calculate_confidence(match, market, quality, scenario, is_warmup)
        action = self._calculate_action(score, confidence.total, phase, scenario)
        bet_plan = self._generate_bet_plan(confidence.total, match, scenario, market, action, phase, strength)
        tags = self._generate_tags(match, scenario, edge, is_warmup)
        reasons = self._build_reasons(match, market, tags, quality, now)

        poisson = poisson_late_goal_probability(
            match.total_xg, match.minute, match.score_diff, self.temporal
        )

        signal = UnifiedSignal(
            fixture_id=match.fixture_id,
            minute=match.minute,
            captured_at=now.isoformat(),
            score=score,
            confidence=confidence.total,
            action=action,
            scenario_tag=scenario,
            phase=phase,
            score_breakdown=ScoreBreakdown(
                base=base,
                edge=edge,
                timing=timing,
                market=market_component,
                quality=quality,
            ),
            confidence_breakdown=confidence,
            reasons=reasons,
            bet_plan=bet_plan,
            team_strength=strength,
            poisson_goal_prob=poisson,
            version=MODULE_VERSION,
        )

        self.logger.debug(
            "late_signal_computed",
            fixture_id=match.fixture_id,
            minute=match.minute,
            phase=phase.value,
            scenario=scenario.value,
            score=score,
            confidence=confidence.total,
            action=action.value,
        )
        return signal

    # =========================================================================
    # Score Components
    # =========================================================================

    def _calculate_base(self, match: MatchStateInput) -> BaseComponent:
        """Score-state component (0-20)."""
        diff_base = score_diff_to_base(match.score_diff, match.total_goals)
        goals_bonus = goals_to_bonus(match.total_goals)
        urgency = calculate_urgency_bonus(
            match.minute, match.score_home, match.score_away, self.temporal
        )
        return BaseComponent(
            score_state=min(20.0, diff_base + goals_bonus + min(4.0, urgency / 3)),
            score_diff_base=diff_base,
            goals_bonus=goals_bonus,
            urgency=urgency,
        )

    def _calculate_edge(
        self,
        match: MatchStateInput,
        scenario: ScenarioTag,
        strength: Optional[TeamStrengthInput],
    ) -> EdgeComponent:
        """Edge component (0-30)."""
        shots_15 = match.shots_last_15 or 0
        xg_15 = match.xg_last_15 or 0.0
        corners_15 = match.corners_last_15 or 0

        pressure_index = calculate_pressure_index(shots_15, None, xg_15, corners_15)
        xg_velocity = xg_velocity_to_score(xg_15)
        shot_quality = shot_accuracy_to_score(match.shot_accuracy)

        raw_gap = strength.strength_gap if strength else 0.0
        strength_gap = min(8.0, raw_gap / 5)

        trailing = trailing_state_to_score(match.score_diff, match.minute)

        if scenario == ScenarioTag.OVER_SPRINT:
            scenario_bonus = min(10.0, match.xg_debt * 4)
        elif scenario == ScenarioTag.STRONG_BEHIND:
            scenario_bonus = 10.0 if raw_gap >= 15 else 7.0 if raw_gap >= 10 else 4.0
        elif scenario == ScenarioTag.DEADLOCK_BREAK:
            scenario_bonus = 8.0 if match.total_goals == 0 and match.total_xg >= 1.5 else 5.0
        elif scenario == ScenarioTag.WEAK_DEFEND:
            scenario_bonus = 3.0
        elif scenario == ScenarioTag.BLOWOUT:
            scenario_bonus = -5.0
        elif scenario == ScenarioTag.BALANCED_LATE:
            scenario_bonus = 2.0
        else:
            scenario_bonus = 0.0

        total = pressure_index + xg_velocity + shot_quality + strength_gap + trailing + scenario_bonus

        notes = []
        if pressure_index >= 8:
            notes.append(f"high pressure ({pressure_index:.1f}/12)")
        if xg_velocity >= 5:
            notes.append("xG rising fast")
        if shot_quality >= 4:
            notes.append("good shot quality")
        if strength_gap >= 5:
            notes.append("clear strength gap")
        if trailing >= 4:
            notes.append("chasing pressure")
        if scenario_bonus >= 6:
            notes.append(f"favourable scenario ({get_scenario_label(scenario)})")

        return EdgeComponent(
            total=max(0.0, min(30.0, total)),
            pressure_index=pressure_index,
            xg_velocity=xg_velocity,
            shot_quality=shot_quality,
            strength_gap=strength_gap,
            trailing_pressure=trailing,
            scenario_bonus=scenario_bonus,
            description="; ".join(notes),
        )

    def _calculate_timing(self, match: MatchStateInput, is_warmup: bool) -> TimingComponent:
        """Timing window plus urgency (urgency only outside warm-up)."""
        minute = match.minute
        urgency = 0.0
        if not is_warmup:
            diff = abs(match.score_diff)
            if minute >= 88 and diff <= 1:
                urgency = 4.0
            elif minute >= 85 and diff == 0:
                urgency = 3.0
            elif minute >= 82 and diff == 1:
                urgency = 2.0

        return TimingComponent(
            minute=minute,
            window_score=minute_to_window_score(minute),
            is_peak_window=self.config.active_minute <= minute <= 90,
            urgency_bonus=urgency,
        )

    def _calculate_market(
        self,
        match: MatchStateInput,
        market: Optional[MarketStateInput],
        scenario: ScenarioTag,
    ) -> MarketComponent:
        """Market component (0-20); all zero without market data."""
        if market is None:
            return MarketComponent()

        over = market.over_odds
        line_movement = over_odds_change_to_score(market.over_odds_prev, over)

        price_drift = 0.0
        if over:
            if over < 1.5:
                price_drift = 6.0
            elif over < 1.65:
                price_drift = 4.0
            elif over < 1.8:
                price_drift = 2.0

        consistency = 0.0
        if scenario in (ScenarioTag.OVER_SPRINT, ScenarioTag.DEADLOCK_BREAK):
            debt = match.xg_debt
            if debt > 1.0 and over and over < 1.8:
                consistency = 6.0
            elif debt > 0.5 and over and over < 2.0:
                consistency = 3.0
            # Over price still falling after the line itself came down
            if (
                over and market.over_odds_prev and over < market.over_odds_prev
                and market.ou_line is not None and market.ou_line_prev is not None
                and market.ou_line < market.ou_line_prev
            ):
                consistency += 4.0
        elif scenario == ScenarioTag.STRONG_BEHIND:
            if market.ah_home and market.ah_away and abs(market.ah_home - market.ah_away) > 0.2:
                consistency = 4.0

        return MarketComponent(
            total=min(20.0, line_movement + price_drift + consistency),
            line_movement=line_movement,
            price_drift=price_drift,
            consistency=consistency,
            data_available=True,
        )

    def _calculate_quality(self, match: MatchStateInput, now: datetime) -> QualityComponent:
        """Data quality adjustment (-10..10)."""
        completeness = 0.0
        if match.stats_available:
            completeness += 3
        if match.events_available:
            completeness += 2
        if not match.stats_available and not match.events_available:
            completeness = -5.0

        freshness = 0.0
        age = match.data_age_seconds(now)
        if age is not None:
            if age < 60:
                freshness = 3.0
            elif age < 120:
                freshness = 1.0
            elif age > 300:
                freshness = -3.0

        anomaly = 0.0
        anomaly_reason = None
        if match.minute > 30 and match.total_shots == 0:
            anomaly = -5.0
            anomaly_reason = "no shots recorded after minute 30"

        return QualityComponent(
            total=max(-10.0, min(10.0, completeness + freshness + anomaly)),
            completeness=completeness,
            freshness=freshness,
            anomaly=anomaly,
            anomaly_reason=anomaly_reason,
        )

    # =========================================================================
    # Confidence and Action
    # =========================================================================

    def _calculate_confidence(
        self,
        match: MatchStateInput,
        market: Optional[MarketStateInput],
        quality: QualityComponent,
        scenario: ScenarioTag,
        is_warmup: bool,
    ) -> LateConfidenceBreakdown:
        # Data completeness (0-35)
        completeness = 0.0
        if match.stats_available:
            completeness += 15
        if match.events_available:
            completeness += 10
        if match.xg_home > 0 or match.xg_away > 0:
            completeness += 5
        if match.shots_last_15 is not None:
            completeness += 5

        # Freshness and stability (0-20)
        stability = 10.0
        if quality.freshness > 0:
            stability += quality.freshness * 3
        if quality.anomaly < 0:
            stability += quality.anomaly * 2
        stability = max(0.0, min(20.0, stability))

        # Cross-source consistency (0-25)
        consistency = 10.0
        if match.total_shots > 0 and match.total_xg > 0:
            xg_per_shot = match.total_xg / match.total_shots
            consistency += 10 if 0.05 <= xg_per_shot <= 0.2 else -5
        consistency = max(0.0, min(25.0, consistency))

        # Market confirmation (0-20)
        market_confirmation = 0.0
        if market is not None:
            market_confirmation = 5.0
            if market.is_live:
                market_confirmation += 5
            if scenario in (ScenarioTag.OVER_SPRINT, ScenarioTag.DEADLOCK_BREAK):
                if (
                    match.total_xg > match.total_goals + 1.0
                    and market.over_odds and market.over_odds < 1.8
                ):
                    market_confirmation += 10

        total = completeness + stability + consistency + market_confirmation
        if is_warmup:
            total = round(total * self.config.warmup_confidence_factor)

        return LateConfidenceBreakdown(
            total=max(0.0, min(100.0, total)),
            data_completeness=completeness,
            freshness_stability=stability,
            cross_source_consistency=consistency,
            market_confirmation=market_confirmation,
        )

    def _calculate_action(
        self,
        score: float,
        confidence: float,
        phase: LatePhase,
        scenario: ScenarioTag,
    ) -> Action:
        cfg = self.config
        if scenario == ScenarioTag.BLOWOUT or phase == LatePhase.INACTIVE:
            return Action.IGNORE

        if phase == LatePhase.WARMUP:
            if score >= cfg.warmup_watch_score and confidence >= cfg.warmup_watch_confidence:
                return Action.WATCH
            return Action.IGNORE

        if score >= cfg.bet_score and confidence >= cfg.bet_confidence:
            return Action.BET
        if score >= cfg.prepare_score and confidence >= cfg.prepare_confidence:
            return Action.PREPARE
        if score >= cfg.watch_score:
            return Action.WATCH
        return Action.IGNORE

    def _generate_bet_plan(
        self,
        confidence: float,
        match: MatchStateInput,
        scenario: ScenarioTag,
        market: Optional[MarketStateInput],
        action: Action,
        phase: LatePhase,
        strength: Optional[TeamStrengthInput],
    ) -> Optional[BetPlan]:
        """Stake plan for active BET/PREPARE signals only."""
        if phase != LatePhase.ACTIVE or action not in (Action.BET, Action.PREPARE):
            return None

        plan_market = "OU"
        selection = "OVER"
        line = market.line_or_default if market else DEFAULT_OU_LINE

        if scenario == ScenarioTag.STRONG_BEHIND and market and market.ah_line is not None:
            plan_market = "AH"
            line = market.ah_line
            selection = "AWAY" if strength and strength.is_away_strong else "HOME"
        elif scenario == ScenarioTag.WEAK_DEFEND:
            selection = "UNDER"

        odds_min = 1.50 if confidence >= 80 else 1.65 if confidence >= 70 else 1.80
        if action == Action.BET:
            stake_pct = 2.0 if confidence >= 80 else 1.5
        else:
            stake_pct = 1.0 if confidence >= 65 else 0.5

        minute = match.minute
        ttl = 2 if minute >= 88 else 3 if minute >= 85 else 5 if minute >= 80 else 8

        return BetPlan(
            market=plan_market,
            line=line,
            selection=selection,
            odds_min=odds_min,
            stake_pct=stake_pct,
            ttl_minutes=ttl,
        )

    # =========================================================================
    # Explainability
    # =========================================================================

    def _generate_tags(
        self,
        match: MatchStateInput,
        scenario: ScenarioTag,
        edge: EdgeComponent,
        is_warmup: bool,
    ) -> tuple[str, ...]:
        tags = [scenario.value]
        if is_warmup:
            tags.append("WARMUP")

        minute = match.minute
        if minute >= 88:
            tags.append("INJURY_TIME")
        elif minute >= 85:
            tags.append("FINAL_PUSH")
        elif minute >= 80:
            tags.append("LATE_STAGE")
        elif minute >= 70:
            tags.append("WARMING_UP")

        diff = abs(match.score_diff)
        if match.total_goals == 0:
            tags.append("SCORELESS")
        if diff == 1 and minute >= 80:
            tags.append("ONE_GOAL_GAME")
        if diff == 0 and minute >= 75:
            tags.append("DRAW_PRESSURE")

        if edge.pressure_index >= 10:
            tags.append("HIGH_PRESSURE")
        if edge.xg_velocity >= 6:
            tags.append("XG_SURGE")

        if match.xg_debt >= 1.5:
            tags.append("XG_DEBT_HIGH")
        elif match.xg_debt >= 1.0:
            tags.append("XG_DEBT")

        return tuple(tags)

    def _build_reasons(
        self,
        match: MatchStateInput,
        market: Optional[MarketStateInput],
        tags: tuple[str, ...],
        quality: QualityComponent,
        now: datetime,
    ) -> SignalReasons:
        shots_diff = match.shots_home - match.shots_away
        if shots_diff > 5:
            pressure_direction = "HOME"
        elif shots_diff < -5:
            pressure_direction = "AWAY"
        else:
            pressure_direction = "BALANCED"

        shots_delta = (match.shots_last_15 or 0) - (match.shots_prev_15 or 0)
        if shots_delta > 2:
            momentum = "INCREASING"
        elif shots_delta < -2:
            momentum = "DECREASING"
        else:
            momentum = "STABLE"

        sentiment = None
        line_movement = None
        market_summary: dict = {"available": market is not None}
        if market is not None:
            if market.win_home and market.win_away:
                if market.win_home < market.win_away - 0.3:
                    sentiment = "HOME_FAVORED"
                elif market.win_away < market.win_home - 0.3:
                    sentiment = "AWAY_FAVORED"
                else:
                    sentiment = "BALANCED"
            if market.over_odds and market.over_odds_prev:
                change = market.over_odds - market.over_odds_prev
                if change < -0.05:
                    line_movement = "DOWN"
                elif change > 0.05:
                    line_movement = "UP"
                else:
                    line_movement = "STABLE"
            market_summary.update(
                over_odds=market.over_odds,
                under_odds=market.under_odds,
                ah_line=market.ah_line,
                ah_home=market.ah_home,
                ah_away=market.ah_away,
                implied_over_prob=round(1 / market.over_odds * 100 * 0.95) if market.over_odds else None,
                line_movement=line_movement,
                market_sentiment=sentiment,
                bookmaker=market.bookmaker,
            )

        if match.score_home > match.score_away:
            status = "home_leading"
        elif match.score_away > match.score_home:
            status = "away_leading"
        else:
            status = "draw"

        age = match.data_age_seconds(now)
        return SignalReasons(
            state={
                "minute": match.minute,
                "score_home": match.score_home,
                "score_away": match.score_away,
                "status": status,
                "score_diff": match.score_diff,
                "is_second_half": match.minute > 45,
                "is_injury_time": match.minute > 90,
            },
            stats={
                "shots_total": match.total_shots,
                "shots_on_total": match.total_shots_on,
                "shot_accuracy": round(match.shot_accuracy, 1),
                "xg_home": match.xg_home,
                "xg_away": match.xg_away,
                "xg_total": round(match.total_xg, 2),
                "xg_debt": round(match.xg_debt, 2),
                "corners_total": match.total_corners,
                "possession_home": match.possession_home,
                "possession_away": match.possession_away,
                "dangerous_attacks_home": match.dangerous_home,
                "dangerous_attacks_away": match.dangerous_away,
            },
            market=market_summary,
            deltas={
                "shots_last_15": match.shots_last_15 or 0,
                "shots_delta": shots_delta,
                "xg_last_15": match.xg_last_15 or 0.0,
                "xg_velocity": (match.xg_last_15 or 0.0) if match.minute > 15 else 0.0,
                "corners_last_15": match.corners_last_15 or 0,
                "pressure_direction": pressure_direction,
                "momentum_trend": momentum,
            },
            tags=tags,
            checks={
                "has_stats": match.stats_available,
                "has_events": match.events_available,
                "has_odds": market is not None,
                "stats_fresh": age is not None and age < self.config.stats_fresh_seconds,
                "data_anomaly": quality.anomaly < 0,
                "anomaly_reason": quality.anomaly_reason,
            },
        )

"""
Market Odds Divergence Analyzer.

Pure functions over an explicit OddsHistory owned by the caller:

- record_snapshot: append a snapshot and prune anything older than 30 minutes
- detect_rapid_changes: oldest vs newest snapshot inside a 90 second window
- analyze_money_flow: odds-implied home/away money split, clamped to [20, 80]
- detect_divergence: weighted six-factor model of market vs pitch mismatch
- generate_alerts / analyze_match: alert list, risk level and recommendation

The reference clock is ``now_ms`` when given, otherwise the timestamp of the
newest snapshot of the fixture, so replays are deterministic.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import structlog

from config.settings import OddsSettings, settings
from src.football.models.schemas import MarketStateInput, MatchStateInput, OddsSnapshot, Side

logger = structlog.get_logger()


class OddsTrend(str, Enum):
    """Direction of a price versus the previous capture."""
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class FlowTrend(str, Enum):
    ACCELERATING = "accelerating"
    DECELERATING = "decelerating"
    STABLE = "stable"


class OddsChangeType(str, Enum):
    HANDICAP_HOME = "handicap_home"
    HANDICAP_AWAY = "handicap_away"
    OVER = "over"
    UNDER = "under"


class OddsAlertType(str, Enum):
    HANDICAP_RAPID_CHANGE = "handicap_rapid_change"
    OVER_RAPID_DROP = "over_rapid_drop"
    UNDER_RAPID_DROP = "under_rapid_drop"
    ODDS_DIVERGENCE = "odds_divergence"
    LATE_ODDS_SHIFT = "late_odds_shift"


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class DivergenceType(str, Enum):
    SCORE_BEHIND_ODDS_TIGHT = "score_behind_odds_tight"
    SCORE_AHEAD_ODDS_LOOSE = "score_ahead_odds_loose"
    XG_MISMATCH = "xg_mismatch"
    PRESSURE_MISMATCH = "pressure_mismatch"
    MULTI_FACTOR = "multi_factor_divergence"


class DivergenceSeverity(str, Enum):
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"


class RiskLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class OddsRecommendation(str, Enum):
    STRONG_BUY = "strong_buy"
    BUY = "buy"
    HOLD = "hold"
    AVOID = "avoid"


# =============================================================================
# Data structures
# =============================================================================

@dataclass
class OddsHistory:
    """Per-fixture snapshot lists, oldest first."""
    snapshots: dict[int, list[OddsSnapshot]] = field(default_factory=dict)

    def get(self, fixture_id: int) -> list[OddsSnapshot]:
        return self.snapshots.get(fixture_id, [])

    def latest(self, fixture_id: int) -> Optional[OddsSnapshot]:
        history = self.snapshots.get(fixture_id)
        return history[-1] if history else None

    def discard(self, fixture_id: int) -> None:
        self.snapshots.pop(fixture_id, None)

    def __len__(self) -> int:
        return len(self.snapshots)


@dataclass(frozen=True)
class MarketTrends:
    """Up/down/stable direction of each tracked price."""
    handicap_home: OddsTrend = OddsTrend.STABLE
    handicap_away: OddsTrend = OddsTrend.STABLE
    over: OddsTrend = OddsTrend.STABLE
    under: OddsTrend = OddsTrend.STABLE

    def for_side(self, side: Side) -> OddsTrend:
        return self.handicap_home if side == Side.HOME else self.handicap_away


@dataclass(frozen=True)
class OddsChange:
    """A price move that crossed its rapid-change threshold."""
    change_type: OddsChangeType
    old_value: float
    new_value: float
    change: float
    change_pct: float
    time_elapsed: float  # seconds
    minute: int


@dataclass(frozen=True)
class OddsShift:
    handicap_home_shift: float = 0.0
    handicap_away_shift: float = 0.0
    over_shift: float = 0.0
    under_shift: float = 0.0
    trend: FlowTrend = FlowTrend.STABLE


@dataclass(frozen=True)
class MoneyFlow:
    home_pct: int
    away_pct: int
    trend: FlowTrend
    direction: Optional[Side]  # None when balanced
    confidence: int


@dataclass(frozen=True)
class DivergenceFactors:
    """Raw (unweighted) factor scores."""
    score_odds: float = 0.0
    time: float = 0.0
    pressure: float = 0.0
    xg: float = 0.0
    subs: float = 0.0
    corners: float = 0.0


@dataclass(frozen=True)
class DivergenceSignal:
    detected: bool
    divergence_type: Optional[DivergenceType]
    severity: Optional[DivergenceSeverity]
    confidence: int
    total_score: float
    triggered_factors: int
    factors: DivergenceFactors
    description: str = ""
    recommendation: str = ""


@dataclass(frozen=True)
class OddsAlert:
    alert_type: OddsAlertType
    severity: AlertSeverity
    fixture_id: int
    title: str
    message: str
    change: Optional[float] = None
    direction: Optional[str] = None
    confidence: Optional[int] = None


@dataclass(frozen=True)
class OddsAnalysisResult:
    fixture_id: int
    alerts: list[OddsAlert]
    money_flow: MoneyFlow
    divergence: DivergenceSignal
    recent_changes: list[OddsChange]
    risk_score: float
    risk_level: RiskLevel
    recommendation: OddsRecommendation


# =============================================================================
# History maintenance
# =============================================================================

def _config(config: Optional[OddsSettings]) -> OddsSettings:
    return config or settings.odds


def record_snapshot(
    history: OddsHistory,
    fixture_id: int,
    snapshot: OddsSnapshot,
    config: Optional[OddsSettings] = None,
) -> OddsHistory:
    """
    Append a snapshot and drop entries older than the retention window.

    The window is measured back from the new snapshot's timestamp.
    """
    cfg = _config(config)
    cutoff = snapshot.timestamp_ms - int(cfg.history_minutes * 60 * 1000)
    kept = [s for s in history.get(fixture_id) if s.timestamp_ms > cutoff]
    kept.append(snapshot)
    history.snapshots[fixture_id] = kept
    return history


def _reference_time(history: list[OddsSnapshot], now_ms: Optional[int]) -> int:
    if now_ms is not None:
        return now_ms
    return history[-1].timestamp_ms


def _trend(current: Optional[float], previous: Optional[float], epsilon: float) -> OddsTrend:
    if not current or not previous:
        return OddsTrend.STABLE
    delta = current - previous
    if delta > epsilon:
        return OddsTrend.UP
    if delta < -epsilon:
        return OddsTrend.DOWN
    return OddsTrend.STABLE


def derive_trends(
    market: Optional[MarketStateInput],
    config: Optional[OddsSettings] = None,
) -> MarketTrends:
    """Price directions from the current vs previous market capture."""
    if market is None:
        return MarketTrends()
    eps = _config(config).trend_epsilon
    return MarketTrends(
        handicap_home=_trend(market.ah_home, market.ah_home_prev, eps),
        handicap_away=_trend(market.ah_away, market.ah_away_prev, eps),
        over=_trend(market.over_odds, market.over_odds_prev, eps),
        under=_trend(market.under_odds, market.under_odds_prev, eps),
    )


def get_pressure_side(match: MatchStateInput, margin: int = 5) -> Optional[Side]:
    """Side with clearly more shots, or None when balanced."""
    diff = match.shots_home - match.shots_away
    if diff > margin:
        return Side.HOME
    if diff < -margin:
        return Side.AWAY
    return None


# =============================================================================
# Shifts and rapid changes
# =============================================================================

def _delta(old: Optional[float], new: Optional[float]) -> Optional[float]:
    """Price move between two snapshots, or None when either side is unquoted."""
    if old is None or new is None:
        return None
    return new - old


def _shift(first: OddsSnapshot, last: OddsSnapshot, trend: FlowTrend = FlowTrend.STABLE) -> OddsShift:
    return OddsShift(
        handicap_home_shift=_delta(first.handicap_home, last.handicap_home) or 0.0,
        handicap_away_shift=_delta(first.handicap_away, last.handicap_away) or 0.0,
        over_shift=_delta(first.over, last.over) or 0.0,
        under_shift=_delta(first.under, last.under) or 0.0,
        trend=trend,
    )


def calculate_odds_shift(
    history: OddsHistory,
    fixture_id: int,
    window_minutes: Optional[float] = None,
    now_ms: Optional[int] = None,
    config: Optional[OddsSettings] = None,
) -> OddsShift:
    """First-to-last price shift inside the trend window."""
    cfg = _config(config)
    snapshots = history.get(fixture_id)
    if len(snapshots) < 2:
        return OddsShift()

    window = window_minutes if window_minutes is not None else cfg.trend_window_minutes
    start = _reference_time(snapshots, now_ms) - int(window * 60 * 1000)
    recent = [s for s in snapshots if s.timestamp_ms >= start]

    if len(recent) < 2:
        return _shift(snapshots[0], snapshots[-1])

    first, last = recent[0], recent[-1]
    trend = FlowTrend.STABLE
    if len(recent) >= 3:
        mid = recent[len(recent) // 2]
        first_half = _delta(first.handicap_home, mid.handicap_home)
        second_half = _delta(mid.handicap_home, last.handicap_home)
        if first_half is not None and second_half is not None:
            if abs(second_half) > abs(first_half) * 1.5:
                trend = FlowTrend.ACCELERATING
            elif abs(second_half) < abs(first_half) * 0.5:
                trend = FlowTrend.DECELERATING

    return _shift(first, last, trend)


def _change(
    change_type: OddsChangeType,
    old: float,
    new: float,
    elapsed: float,
    minute: int,
) -> OddsChange:
    delta = new - old
    return OddsChange(
        change_type=change_type,
        old_value=old,
        new_value=new,
        change=delta,
        change_pct=delta / old * 100 if old else 0.0,
        time_elapsed=elapsed,
        minute=minute,
    )


def detect_rapid_changes(
    history: OddsHistory,
    fixture_id: int,
    now_ms: Optional[int] = None,
    config: Optional[OddsSettings] = None,
) -> list[OddsChange]:
    """
    Compare the oldest and newest snapshot inside the rapid-change window.

    Handicap prices are flagged on a move of either sign; over and under
    prices only when they drop.
    """
    cfg = _config(config)
    snapshots = history.get(fixture_id)
    if len(snapshots) < 2:
        return []

    start = _reference_time(snapshots, now_ms) - int(cfg.rapid_change_window_seconds * 1000)
    recent = [s for s in snapshots if s.timestamp_ms >= start]
    if len(recent) < 2:
        return []

    first, last = recent[0], recent[-1]
    elapsed = (last.timestamp_ms - first.timestamp_ms) / 1000
    changes = []

    for change_type, old, new in (
        (OddsChangeType.HANDICAP_HOME, first.handicap_home, last.handicap_home),
        (OddsChangeType.HANDICAP_AWAY, first.handicap_away, last.handicap_away),
    ):
        delta = _delta(old, new)
        if delta is not None and abs(delta) >= cfg.handicap_rapid_change_threshold:
            changes.append(_change(change_type, old, new, elapsed, last.minute))

    for change_type, old, new, threshold in (
        (OddsChangeType.OVER, first.over, last.over, cfg.over_rapid_drop_threshold),
        (OddsChangeType.UNDER, first.under, last.under, cfg.under_rapid_drop_threshold),
    ):
        delta = _delta(old, new)
        if delta is not None and delta <= -threshold:
            changes.append(_change(change_type, old, new, elapsed, last.minute))

    return changes


# =============================================================================
# Money flow
# =============================================================================

def analyze_money_flow(
    history: OddsHistory,
    match: MatchStateInput,
    trends: MarketTrends,
) -> MoneyFlow:
    """
    Infer where money is going from price directions.

    A falling price means money coming in on that side.
    """
    home_flow = 50.0

    if trends.handicap_home == OddsTrend.DOWN:
        home_flow += 8
    elif trends.handicap_home == OddsTrend.UP:
        home_flow -= 8

    if trends.handicap_away == OddsTrend.DOWN:
        home_flow -= 8
    elif trends.handicap_away == OddsTrend.UP:
        home_flow += 8

    if trends.over == OddsTrend.DOWN:
        pressure = get_pressure_side(match)
        if pressure == Side.HOME:
            home_flow += 5
        elif pressure == Side.AWAY:
            home_flow -= 5

    snapshots = history.get(match.fixture_id)
    if len(snapshots) >= 3:
        recent = snapshots[-3:]
        handicap_trend = _delta(recent[0].handicap_home, recent[-1].handicap_home)
        if handicap_trend is not None and handicap_trend < -0.1:
            home_flow += 5
        elif handicap_trend is not None and handicap_trend > 0.1:
            home_flow -= 5

    home_flow = max(20.0, min(80.0, home_flow))

    trend = FlowTrend.STABLE
    if len(snapshots) >= 5:
        recent = snapshots[-5:]
        deltas = [_delta(a.handicap_home, b.handicap_home) for a, b in zip(recent, recent[1:])]
        if None not in deltas:
            avg_change = sum(deltas) / len(deltas)
            last_change = deltas[-1]
            if abs(last_change) > abs(avg_change) * 1.5:
                trend = FlowTrend.ACCELERATING
            elif abs(last_change) < abs(avg_change) * 0.5:
                trend = FlowTrend.DECELERATING

    direction = None
    if home_flow >= 58:
        direction = Side.HOME
    elif home_flow <= 42:
        direction = Side.AWAY

    confidence = min(90.0, 50 + abs(home_flow - 50) * 1.5 + len(snapshots) * 2)

    return MoneyFlow(
        home_pct=round(home_flow),
        away_pct=round(100 - home_flow),
        trend=trend,
        direction=direction,
        confidence=round(confidence),
    )


# =============================================================================
# Divergence
# =============================================================================

def detect_divergence(
    history: OddsHistory,
    match: MatchStateInput,
    market: Optional[MarketStateInput],
    trends: MarketTrends,
    now_ms: Optional[int] = None,
    config: Optional[OddsSettings] = None,
) -> DivergenceSignal:
    """
    Weighted six-factor divergence model.

    Factors and weights: score vs odds trend (0.30), match time (0.15),
    on-pitch pressure (0.20), xG (0.15), attacking substitutions (0.10),
    corner density (0.10). Detected on two or more triggered factors or a
    weighted total of at least 15.
    """
    cfg = _config(config)
    minute = match.minute
    score_diff = match.score_diff
    handicap_value = market.ah_line if market and market.ah_line is not None else 0.0
    shift = calculate_odds_shift(history, match.fixture_id, now_ms=now_ms, config=cfg)
    snapshots = history.get(match.fixture_id)

    triggered = 0
    detected_type: Optional[DivergenceType] = None
    description = ""
    recommendation = ""

    # Score vs odds trend
    score_odds = 0.0
    if score_diff < 0 and handicap_value < 0:
        tightening = (
            trends.handicap_home == OddsTrend.DOWN
            or shift.handicap_home_shift < -cfg.divergence_weak_threshold
        )
        if tightening:
            magnitude = abs(shift.handicap_home_shift)
            score_odds = abs(score_diff) * 10 + magnitude * 30
            if magnitude >= cfg.divergence_strong_threshold:
                score_odds *= 1.3
            triggered += 1
            detected_type = DivergenceType.SCORE_BEHIND_ODDS_TIGHT
            description = (
                f"home behind by {abs(score_diff)} but handicap tightening "
                f"({shift.handicap_home_shift:.2f})"
            )
            recommendation = "watch for a home goal" if minute >= 75 else "keep tracking odds"

    if score_diff > 0 and handicap_value > 0:
        tightening = (
            trends.handicap_away == OddsTrend.DOWN
            or shift.handicap_away_shift < -cfg.divergence_weak_threshold
        )
        if tightening:
            magnitude = abs(shift.handicap_away_shift)
            score_odds = abs(score_diff) * 10 + magnitude * 30
            if magnitude >= cfg.divergence_strong_threshold:
                score_odds *= 1.3
            triggered += 1
            detected_type = DivergenceType.SCORE_BEHIND_ODDS_TIGHT
            description = (
                f"away behind by {abs(score_diff)} but handicap tightening "
                f"({shift.handicap_away_shift:.2f})"
            )
            recommendation = "watch for an away goal" if minute >= 75 else "keep tracking odds"

    if score_odds > 0:
        if minute >= cfg.critical_minute:
            score_odds *= 1.5
        elif minute >= cfg.late_game_minute:
            score_odds *= 1.2

    if score_diff > 0 and handicap_value < 0 and score_odds == 0:
        loosening = (
            trends.handicap_home == OddsTrend.UP
            or shift.handicap_home_shift > cfg.divergence_weak_threshold
        )
        if loosening:
            score_odds = 8 + abs(shift.handicap_home_shift) * 20
            triggered += 1
            detected_type = DivergenceType.SCORE_AHEAD_ODDS_LOOSE
            description = "leader's handicap loosening, market expects them to sit deep"
            recommendation = "consider unders or the trailing side"

    # Match time
    if minute >= 85:
        time_factor = 25.0
    elif minute >= 80:
        time_factor = 18.0
    elif minute >= 75:
        time_factor = 12.0
    elif minute >= 70:
        time_factor = 8.0
    else:
        time_factor = 0.0
    if time_factor > 0 and score_odds > 0:
        triggered += 1

    # On-pitch pressure
    pressure_factor = 0.0
    danger_diff = match.dangerous_home - match.dangerous_away
    if match.dangerous_home or match.dangerous_away:
        if danger_diff >= cfg.pressure_diff_threshold and trends.handicap_home == OddsTrend.UP:
            pressure_factor = danger_diff * 1.5
            triggered += 1
        elif danger_diff <= -cfg.pressure_diff_threshold and trends.handicap_away == OddsTrend.UP:
            pressure_factor = abs(danger_diff) * 1.5
            triggered += 1
        if pressure_factor > 0 and detected_type is None:
            detected_type = DivergenceType.PRESSURE_MISMATCH
            description = (
                f"pressure disagrees with handicap move "
                f"(dangerous attacks {match.dangerous_home}:{match.dangerous_away})"
            )
            recommendation = "follow the live play closely"

        pressure_side = get_pressure_side(match)
        if pressure_side is not None and trends.for_side(pressure_side) == OddsTrend.UP:
            pressure_factor += 8

    # xG
    xg_factor = 0.0
    if match.xg_home or match.xg_away:
        xg_diff = match.xg_home - match.xg_away
        if xg_diff > cfg.xg_diff_threshold and trends.handicap_home == OddsTrend.UP:
            xg_factor = xg_diff * 15
            triggered += 1
        elif xg_diff < -cfg.xg_diff_threshold and trends.handicap_away == OddsTrend.UP:
            xg_factor = abs(xg_diff) * 15
            triggered += 1
        if xg_factor > 0 and detected_type is None:
            detected_type = DivergenceType.XG_MISMATCH
            description = f"xG disagrees with odds (home {match.xg_home:.2f} vs away {match.xg_away:.2f})"
            recommendation = "check the run of play"

        if match.xg_home > match.xg_away + 0.5 and score_diff <= 0:
            xg_factor += 5
        elif match.xg_away > match.xg_home + 0.5 and score_diff >= 0:
            xg_factor += 5

    # Attacking substitutions
    subs_factor = 0.0
    attack_subs = match.recent_subs_attack
    if attack_subs >= 2 and trends.over != OddsTrend.DOWN:
        subs_factor = attack_subs * 5.0
        triggered += 1
    if score_diff != 0 and attack_subs >= 1:
        behind = Side.HOME if score_diff < 0 else Side.AWAY
        if trends.for_side(behind) == OddsTrend.DOWN:
            subs_factor += 8

    # Corner density
    corner_factor = 0.0
    recent_corners = match.corners_last_15 or 0
    if recent_corners >= 2 and trends.over != OddsTrend.DOWN:
        corner_factor = recent_corners * 4.0
        triggered += 1
    corner_diff = abs(match.corners_home - match.corners_away)
    if corner_diff >= 4:
        leader = Side.HOME if match.corners_home > match.corners_away else Side.AWAY
        if trends.for_side(leader) == OddsTrend.UP:
            corner_factor += corner_diff * 2

    total = (
        score_odds * cfg.weight_score_odds
        + time_factor * cfg.weight_time
        + pressure_factor * cfg.weight_pressure
        + xg_factor * cfg.weight_xg
        + subs_factor * cfg.weight_subs
        + corner_factor * cfg.weight_corners
    )

    detected = triggered >= cfg.divergence_min_triggers or total >= cfg.divergence_detect_score

    if triggered >= 3 and detected_type is None:
        detected_type = DivergenceType.MULTI_FACTOR
        description = f"multi-factor divergence ({triggered} factors triggered)"
        recommendation = "strong combined signal, prioritise this fixture"

    severity = None
    if detected:
        if total >= 30 or (total >= 20 and minute >= cfg.critical_minute):
            severity = DivergenceSeverity.STRONG
        elif total >= 18 or triggered >= 3:
            severity = DivergenceSeverity.MODERATE
        else:
            severity = DivergenceSeverity.WEAK

    confidence = min(95, round(
        25
        + triggered * 12
        + total * 1.2
        + (10 if minute >= cfg.late_game_minute else 0)
        + (8 if len(snapshots) >= 3 else 0)
        + (5 if shift.trend == FlowTrend.ACCELERATING else 0)
    ))

    return DivergenceSignal(
        detected=detected,
        divergence_type=detected_type,
        severity=severity,
        confidence=confidence if detected else 0,
        total_score=round(total, 2),
        triggered_factors=triggered,
        factors=DivergenceFactors(
            score_odds=score_odds,
            time=time_factor,
            pressure=pressure_factor,
            xg=xg_factor,
            subs=subs_factor,
            corners=corner_factor,
        ),
        description=description or ("market anomaly detected" if detected else ""),
        recommendation=recommendation or ("worth watching" if detected else ""),
    )


# =============================================================================
# Alerts and full analysis
# =============================================================================

def generate_alerts(
    history: OddsHistory,
    match: MatchStateInput,
    divergence: DivergenceSignal,
    now_ms: Optional[int] = None,
    config: Optional[OddsSettings] = None,
) -> list[OddsAlert]:
    cfg = _config(config)
    fixture_id = match.fixture_id
    alerts = []

    for change in detect_rapid_changes(history, fixture_id, now_ms=now_ms, config=cfg):
        if change.change_type in (OddsChangeType.HANDICAP_HOME, OddsChangeType.HANDICAP_AWAY):
            side = "home" if change.change_type == OddsChangeType.HANDICAP_HOME else "away"
            alerts.append(OddsAlert(
                alert_type=OddsAlertType.HANDICAP_RAPID_CHANGE,
                severity=(
                    AlertSeverity.CRITICAL
                    if abs(change.change) >= cfg.handicap_critical_change
                    else AlertSeverity.WARNING
                ),
                fixture_id=fixture_id,
                title="Handicap moving fast",
                message=f"{side} price {change.old_value:.2f} -> {change.new_value:.2f} ({change.change:+.2f})",
                change=change.change,
                direction=side,
            ))
        elif change.change_type == OddsChangeType.OVER:
            alerts.append(OddsAlert(
                alert_type=OddsAlertType.OVER_RAPID_DROP,
                severity=(
                    AlertSeverity.CRITICAL
                    if abs(change.change) >= cfg.over_critical_drop
                    else AlertSeverity.WARNING
                ),
                fixture_id=fixture_id,
                title="Over price dropping",
                message=f"over {change.old_value:.2f} -> {change.new_value:.2f} ({change.change:+.2f})",
                change=change.change,
                direction="over",
            ))
        else:
            alerts.append(OddsAlert(
                alert_type=OddsAlertType.UNDER_RAPID_DROP,
                severity=AlertSeverity.WARNING,
                fixture_id=fixture_id,
                title="Under price dropping",
                message=f"under {change.old_value:.2f} -> {change.new_value:.2f} ({change.change:+.2f})",
                change=change.change,
                direction="under",
            ))

    if divergence.detected:
        severity = {
            DivergenceSeverity.STRONG: AlertSeverity.CRITICAL,
            DivergenceSeverity.MODERATE: AlertSeverity.WARNING,
        }.get(divergence.severity, AlertSeverity.INFO)
        alerts.append(OddsAlert(
            alert_type=OddsAlertType.ODDS_DIVERGENCE,
            severity=severity,
            fixture_id=fixture_id,
            title="Odds divergence",
            message=divergence.description,
            confidence=divergence.confidence,
        ))

    if match.minute >= 75:
        recent = history.get(fixture_id)[-5:]
        if len(recent) >= 2:
            shift = _delta(recent[0].handicap_home, recent[-1].handicap_home)
            total_change = abs(shift) if shift is not None else 0.0
            if total_change >= cfg.late_shift_threshold:
                alerts.append(OddsAlert(
                    alert_type=OddsAlertType.LATE_ODDS_SHIFT,
                    severity=AlertSeverity.CRITICAL,
                    fixture_id=fixture_id,
                    title="Late handicap shift",
                    message=f"handicap moved {total_change:.2f} after minute 75",
                    change=total_change,
                ))

    return alerts


def analyze_match(
    history: OddsHistory,
    match: MatchStateInput,
    market: Optional[MarketStateInput],
    now_ms: Optional[int] = None,
    config: Optional[OddsSettings] = None,
) -> OddsAnalysisResult:
    """
    Full odds analysis for one fixture.

    Does not record a snapshot; call record_snapshot first.
    """
    cfg = _config(config)
    trends = derive_trends(market, cfg)
    divergence = detect_divergence(history, match, market, trends, now_ms=now_ms, config=cfg)
    alerts = generate_alerts(history, match, divergence, now_ms=now_ms, config=cfg)
    money_flow = analyze_money_flow(history, match, trends)
    recent_changes = detect_rapid_changes(history, match.fixture_id, now_ms=now_ms, config=cfg)

    risk = 0.0
    risk += sum(3 for a in alerts if a.severity == AlertSeverity.CRITICAL)
    risk += sum(2 for a in alerts if a.severity == AlertSeverity.WARNING)
    if divergence.detected:
        risk += {
            DivergenceSeverity.STRONG: 4,
            DivergenceSeverity.MODERATE: 2,
        }.get(divergence.severity, 1)
    if abs(money_flow.home_pct - 50) >= 15:
        risk += 2

    if match.minute >= 80:
        risk *= 1.3
    elif match.minute >= 70:
        risk *= 1.15

    if risk >= 8:
        risk_level = RiskLevel.HIGH
    elif risk >= 4:
        risk_level = RiskLevel.MEDIUM
    else:
        risk_level = RiskLevel.LOW

    recommendation = OddsRecommendation.HOLD
    if (
        divergence.detected
        and divergence.severity == DivergenceSeverity.STRONG
        and match.minute >= 75
    ):
        recommendation = OddsRecommendation.STRONG_BUY
    elif any(a.severity == AlertSeverity.CRITICAL for a in alerts) and match.minute >= 70:
        recommendation = OddsRecommendation.BUY
    elif risk_level == RiskLevel.HIGH and money_flow.confidence >= 70:
        recommendation = OddsRecommendation.BUY

    if not alerts and not divergence.detected and money_flow.confidence < 50:
        recommendation = OddsRecommendation.AVOID

    if alerts:
        logger.debug(
            "odds_alerts_generated",
            fixture_id=match.fixture_id,
            count=len(alerts),
            risk_level=risk_level.value,
            recommendation=recommendation.value,
        )

    return OddsAnalysisResult(
        fixture_id=match.fixture_id,
        alerts=alerts,
        money_flow=money_flow,
        divergence=divergence,
        recent_changes=recent_changes,
        risk_score=round(risk, 2),
        risk_level=risk_level,
        recommendation=recommendation,
    )

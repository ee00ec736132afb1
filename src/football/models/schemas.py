"""
In-play football data models and schemas.

Defines the core data structures for:
- Match and market snapshots supplied by the data-acquisition layer
- Optional team strength and historical late-goal context
- Odds history snapshots
- The unified signal produced once per evaluation cycle
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class Side(str, Enum):
    """Team side."""
    HOME = "home"
    AWAY = "away"


class Tier(str, Enum):
    """Signal strength tier."""
    HIGH = "high"
    WATCH = "watch"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Ordering used to tell upgrades from downgrades."""
        return {Tier.HIGH: 3, Tier.WATCH: 2, Tier.LOW: 1}[self]


class Action(str, Enum):
    """Discrete action recommendation."""
    BET = "BET"
    PREPARE = "PREPARE"
    WATCH = "WATCH"
    IGNORE = "IGNORE"


class ScenarioTag(str, Enum):
    """Late-game scenario classification."""
    BLOWOUT = "BLOWOUT"
    STRONG_BEHIND = "STRONG_BEHIND"
    WEAK_DEFEND = "WEAK_DEFEND"
    DEADLOCK_BREAK = "DEADLOCK_BREAK"
    OVER_SPRINT = "OVER_SPRINT"
    BALANCED_LATE = "BALANCED_LATE"
    GENERIC = "GENERIC"


class LatePhase(str, Enum):
    """Late module phase gate."""
    INACTIVE = "inactive"
    WARMUP = "warmup"
    ACTIVE = "active"


class TimePhase(str, Enum):
    """Match phase used by the time multiplier."""
    EARLY = "early"
    MID = "mid"
    LATE = "late"
    EXTRA_LATE = "extra_late"


class Recommendation(str, Enum):
    """Multi-factor scorer recommendation."""
    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    HOLD = "HOLD"
    AVOID = "AVOID"


class DataQuality(str, Enum):
    """Quality of the data behind a factor."""
    REAL = "real"
    PARTIAL = "partial"
    UNAVAILABLE = "unavailable"


FINISHED_STATUSES = frozenset({"FT", "AET", "PEN"})

# Headline total assumed when a market quotes an over price without its line
DEFAULT_OU_LINE = 2.5


# =============================================================================
# Inputs
# =============================================================================

@dataclass(frozen=True)
class MatchStateInput:
    """
    Immutable snapshot of a single live match.

    Produced fresh each polling cycle by the external normalizer. Percentages
    are 0-100, xG values are summed per side, ``data_timestamp`` is ISO 8601.
    """
    fixture_id: int
    minute: int
    score_home: int = 0
    score_away: int = 0
    status: str = "2H"

    home_team: str = "Home"
    away_team: str = "Away"

    # Cumulative statistics
    shots_home: int = 0
    shots_away: int = 0
    shots_on_home: int = 0
    shots_on_away: int = 0
    xg_home: float = 0.0
    xg_away: float = 0.0
    corners_home: int = 0
    corners_away: int = 0
    possession_home: float = 50.0
    possession_away: float = 50.0
    dangerous_home: int = 0
    dangerous_away: int = 0
    fouls_home: int = 0
    fouls_away: int = 0

    # Rolling 15-minute deltas
    shots_last_15: Optional[int] = None
    xg_last_15: Optional[float] = None
    corners_last_15: Optional[int] = None
    shots_prev_15: Optional[int] = None
    xg_prev_15: Optional[float] = None

    # Half split of shots, when the provider reports it
    shots_first_half: Optional[int] = None
    shots_second_half: Optional[int] = None

    # Events
    red_cards_home: int = 0
    red_cards_away: int = 0
    recent_goals: int = 0
    recent_subs_attack: int = 0
    subs_remaining_home: int = 5
    subs_remaining_away: int = 5
    var_cancelled: bool = False

    # Data availability
    stats_available: bool = True
    events_available: bool = True
    data_timestamp: Optional[str] = None

    def __post_init__(self):
        if self.minute < 0:
            raise ValueError(f"minute must be non-negative, got {self.minute}")
        if self.score_home < 0 or self.score_away < 0:
            raise ValueError("scores must be non-negative")

    @property
    def match_name(self) -> str:
        """Human-readable fixture name."""
        return f"{self.home_team} vs {self.away_team}"

    @property
    def score_diff(self) -> int:
        """Home minus away goals."""
        return self.score_home - self.score_away

    @property
    def total_goals(self) -> int:
        return self.score_home + self.score_away

    @property
    def total_shots(self) -> int:
        return self.shots_home + self.shots_away

    @property
    def total_shots_on(self) -> int:
        return self.shots_on_home + self.shots_on_away

    @property
    def total_xg(self) -> float:
        return self.xg_home + self.xg_away

    @property
    def total_corners(self) -> int:
        return self.corners_home + self.corners_away

    @property
    def xg_debt(self) -> float:
        """Combined xG minus goals actually scored."""
        return self.total_xg - self.total_goals

    @property
    def shot_accuracy(self) -> float:
        """Shots on target as a percentage of all shots."""
        if self.total_shots == 0:
            return 0.0
        return self.total_shots_on / self.total_shots * 100

    @property
    def is_finished(self) -> bool:
        return self.status.upper() in FINISHED_STATUSES

    def data_age_seconds(self, now: Optional[datetime] = None) -> Optional[float]:
        """Seconds since ``data_timestamp``, or None when unknown."""
        if not self.data_timestamp:
            return None
        captured = parse_timestamp(self.data_timestamp)
        if captured is None:
            return None
        now = now or datetime.now(timezone.utc)
        return (now - captured).total_seconds()


@dataclass(frozen=True)
class MarketStateInput:
    """
    Live (or pre-match) market prices for one fixture.

    Every price is decimal odds. Any field may be missing; consumers degrade
    rather than fail.
    """
    fixture_id: int

    # Over/under
    over_odds: Optional[float] = None
    under_odds: Optional[float] = None
    ou_line: Optional[float] = None

    # Asian handicap
    ah_line: Optional[float] = None
    ah_home: Optional[float] = None
    ah_away: Optional[float] = None

    # 1X2
    win_home: Optional[float] = None
    win_draw: Optional[float] = None
    win_away: Optional[float] = None

    # Previous capture
    over_odds_prev: Optional[float] = None
    under_odds_prev: Optional[float] = None
    ou_line_prev: Optional[float] = None
    ah_line_prev: Optional[float] = None
    ah_home_prev: Optional[float] = None
    ah_away_prev: Optional[float] = None

    # Metadata
    bookmaker: str = ""
    is_live: bool = True
    captured_at: Optional[str] = None

    @property
    def has_over_under(self) -> bool:
        return self.over_odds is not None and self.over_odds > 0

    @property
    def line_or_default(self) -> float:
        return self.ou_line if self.ou_line is not None else DEFAULT_OU_LINE


@dataclass(frozen=True)
class TeamStrengthInput:
    """
    Externally supplied strength of both sides (0-100).

    Only used to bias scenario classification and the strong-side checks of
    the multi-factor scorer.
    """
    home_strength: float
    away_strength: float

    @property
    def strength_gap(self) -> float:
        return abs(self.home_strength - self.away_strength)

    @property
    def is_home_strong(self) -> bool:
        return self.home_strength > self.away_strength

    @property
    def is_away_strong(self) -> bool:
        return self.away_strength > self.home_strength

    @classmethod
    def from_standings(
        cls,
        home_rank: int,
        away_rank: int,
        league_size: int = 20,
        home_form: float = 0.0,
        away_form: float = 0.0,
    ) -> "TeamStrengthInput":
        """
        Derive strengths from league position plus a form adjustment.

        Form is the recent points-per-game minus the league average and adds
        up to 10 points either way.
        """
        def _strength(rank: int, form: float) -> float:
            base = (league_size - rank + 1) / league_size * 100
            return max(0.0, min(100.0, base + max(-10.0, min(10.0, form * 10))))

        return cls(
            home_strength=round(_strength(home_rank, home_form), 1),
            away_strength=round(_strength(away_rank, away_form), 1),
        )


@dataclass(frozen=True)
class HistoricalRates:
    """Historical late-goal context for the multi-factor scorer."""
    home_late_goal_rate: Optional[float] = None  # % of goals scored 76-90
    away_late_goal_rate: Optional[float] = None
    h2h_late_goals: int = 0
    league_late_goal_avg: float = 0.5
    comeback_rate: float = 30.0

    @property
    def data_available(self) -> bool:
        return self.home_late_goal_rate is not None or self.away_late_goal_rate is not None


@dataclass(frozen=True)
class FixtureTick:
    """Everything supplied for one fixture in one polling tick."""
    match: MatchStateInput
    market: Optional[MarketStateInput] = None
    strength: Optional[TeamStrengthInput] = None
    history: Optional[HistoricalRates] = None

    @property
    def fixture_id(self) -> int:
        return self.match.fixture_id

    @classmethod
    def from_dict(cls, data: dict) -> "FixtureTick":
        """
        Build a tick from its JSON form.

        ``match`` is required; ``market``, ``strength`` and ``history`` may be
        missing or null. Unknown keys raise TypeError.
        """
        market = data.get("market")
        strength = data.get("strength")
        history = data.get("history")
        return cls(
            match=MatchStateInput(**data["match"]),
            market=MarketStateInput(**market) if market else None,
            strength=TeamStrengthInput(**strength) if strength else None,
            history=HistoricalRates(**history) if history else None,
        )


# =============================================================================
# Odds history
# =============================================================================

@dataclass(frozen=True)
class OddsSnapshot:
    """
    Timestamped copy of handicap and over/under prices.

    Prices the provider did not quote are None, never zero.
    """
    timestamp_ms: int
    minute: int
    handicap_home: Optional[float] = None
    handicap_value: Optional[float] = None
    handicap_away: Optional[float] = None
    over: Optional[float] = None
    total: Optional[float] = None
    under: Optional[float] = None

    @classmethod
    def from_market(cls, market: MarketStateInput, minute: int, timestamp_ms: int) -> "OddsSnapshot":
        return cls(
            timestamp_ms=timestamp_ms,
            minute=minute,
            handicap_home=market.ah_home,
            handicap_value=market.ah_line,
            handicap_away=market.ah_away,
            over=market.over_odds,
            total=market.ou_line,
            under=market.under_odds,
        )


# =============================================================================
# Unified signal
# =============================================================================

@dataclass(frozen=True)
class BaseComponent:
    """Score-state component (0-20)."""
    score_state: float
    score_diff_base: float
    goals_bonus: float
    urgency: float


@dataclass(frozen=True)
class EdgeComponent:
    """Edge component (0-30) with its bounded sub-scores."""
    total: float
    pressure_index: float
    xg_velocity: float
    shot_quality: float
    strength_gap: float
    trailing_pressure: float
    scenario_bonus: float
    description: str = ""


@dataclass(frozen=True)
class TimingComponent:
    """Timing component (window curve plus urgency)."""
    minute: int
    window_score: float
    is_peak_window: bool
    urgency_bonus: float

    @property
    def total(self) -> float:
        return self.window_score + self.urgency_bonus


@dataclass(frozen=True)
class MarketComponent:
    """Market component (0-20); zero without market data."""
    total: float = 0.0
    line_movement: float = 0.0
    price_drift: float = 0.0
    consistency: float = 0.0
    data_available: bool = False


@dataclass(frozen=True)
class QualityComponent:
    """Data quality adjustment (-10..10)."""
    total: float
    completeness: float
    freshness: float
    anomaly: float
    anomaly_reason: Optional[str] = None


@dataclass(frozen=True)
class ScoreBreakdown:
    base: BaseComponent
    edge: EdgeComponent
    timing: TimingComponent
    market: MarketComponent
    quality: QualityComponent


@dataclass(frozen=True)
class LateConfidenceBreakdown:
    """Breakdown of the late module confidence."""
    total: float
    data_completeness: float
    freshness_stability: float
    cross_source_consistency: float
    market_confirmation: float


@dataclass(frozen=True)
class BetPlan:
    """Stake plan attached to BET/PREPARE signals."""
    market: str          # "OU" or "AH"
    line: float
    selection: str       # "OVER", "UNDER", "HOME", "AWAY"
    odds_min: float
    stake_pct: float
    ttl_minutes: int


@dataclass(frozen=True)
class SignalReasons:
    """Explainability bundle attached to every unified signal."""
    state: dict = field(default_factory=dict)
    stats: dict = field(default_factory=dict)
    market: dict = field(default_factory=dict)
    deltas: dict = field(default_factory=dict)
    tags: tuple[str, ...] = ()
    checks: dict = field(default_factory=dict)


@dataclass(frozen=True)
class UnifiedSignal:
    """
    Engine output for one fixture in one evaluation cycle.

    Never mutated after creation; the next cycle produces a new signal.
    """
    fixture_id: int
    minute: int
    captured_at: str
    score: float
    confidence: float
    action: Action
    scenario_tag: ScenarioTag
    phase: LatePhase
    score_breakdown: ScoreBreakdown
    confidence_breakdown: LateConfidenceBreakdown
    reasons: SignalReasons
    bet_plan: Optional[BetPlan] = None
    team_strength: Optional[TeamStrengthInput] = None
    poisson_goal_prob: int = 0
    module: str = "LATE"
    version: str = "v1.0"

    @property
    def is_warmup(self) -> bool:
        return self.phase == LatePhase.WARMUP


# =============================================================================
# Utility Functions
# =============================================================================

def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp, assuming UTC when no offset is given."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

"""
Configuration settings for the in-play football signal engine.
Uses pydantic-settings for validation and environment variable loading.

Every tuned constant of the engine lives here so it can be overridden from
the environment, e.g. ``TIERS__HIGH_THRESHOLD=75`` or
``KELLY__MAX_STAKE_PCT=3``.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TierSettings(BaseSettings):
    """Signal strength cutoffs for the raw tier."""

    high_threshold: int = 70
    watch_threshold: int = 50

    @model_validator(mode="after")
    def _check_order(self) -> "TierSettings":
        if self.watch_threshold >= self.high_threshold:
            raise ValueError("watch_threshold must be below high_threshold")
        return self


class HysteresisSettings(BaseSettings):
    """Tier debouncing and emission cooldown."""

    confirm_threshold: int = Field(default=2, ge=1)
    cooldown_seconds: float = 300.0  # 5 minutes per (fixture, signal type)
    stale_fixture_seconds: float = 1800.0  # evict fixtures not seen for 30 min


class SettlementSettings(BaseSettings):
    """Signal settlement windows."""

    window_minutes: int = 10
    max_pending_hours: float = 3.0
    storage_retention_days: int = 7
    min_signal_strength: int = 65  # only record signals at or above this
    recent_signals_limit: int = 20


class KellySettings(BaseSettings):
    """Fractional Kelly stake sizing."""

    conservative_factor: float = 0.85
    position_fraction: float = 0.25  # quarter Kelly
    min_stake_pct: float = 0.5
    max_stake_pct: float = 5.0
    min_valid_odds: float = 1.01

    @model_validator(mode="after")
    def _check_bounds(self) -> "KellySettings":
        if self.min_stake_pct > self.max_stake_pct:
            raise ValueError("min_stake_pct must not exceed max_stake_pct")
        return self


class OddsSettings(BaseSettings):
    """Market odds anomaly and divergence detection."""

    history_minutes: float = 30.0

    # Rapid change detection
    rapid_change_window_seconds: float = 90.0
    handicap_rapid_change_threshold: float = 0.12
    handicap_critical_change: float = 0.18
    over_rapid_drop_threshold: float = 0.10
    over_critical_drop: float = 0.15
    under_rapid_drop_threshold: float = 0.10
    late_shift_threshold: float = 0.20

    # Time references
    trend_window_minutes: float = 5.0
    late_game_minute: int = 70
    critical_minute: int = 80

    # Divergence
    divergence_weak_threshold: float = 0.08
    divergence_strong_threshold: float = 0.18
    xg_diff_threshold: float = 0.5
    pressure_diff_threshold: int = 8
    divergence_detect_score: float = 15.0
    divergence_min_triggers: int = 2

    # Factor weights (score-odds, time, pressure, xG, subs, corners)
    weight_score_odds: float = 0.30
    weight_time: float = 0.15
    weight_pressure: float = 0.20
    weight_xg: float = 0.15
    weight_subs: float = 0.10
    weight_corners: float = 0.10

    # Direction of a price move below this is "stable"
    trend_epsilon: float = 0.02


class TemporalSettings(BaseSettings):
    """Phase multipliers and the late-goal Poisson model."""

    early_minute: int = 15
    late_minute: int = 75
    extra_late_minute: int = 85

    early_multiplier: float = 0.85
    mid_multiplier: float = 1.0
    late_multiplier: float = 1.25
    extra_late_multiplier: float = 1.45

    fatigue_per_minute: float = 0.003
    desperation_bonus: float = 0.15

    regulation_minutes: int = 90
    stoppage_allowance: int = 5

    urgency_start_minute: int = 80
    urgency_per_minute: float = 0.5
    scoreless_bonus_minute: int = 85
    scoreless_bonus: float = 5.0


class BlendSettings(BaseSettings):
    """Weights of the signal strength blend."""

    adjusted_weight: float = 0.7
    poisson_weight: float = 0.3

    @model_validator(mode="after")
    def _check_sum(self) -> "BlendSettings":
        if abs(self.adjusted_weight + self.poisson_weight - 1.0) > 1e-6:
            raise ValueError("blend weights must sum to 1")
        return self


class ScoringSettings(BaseSettings):
    """Multi-factor scorer."""

    base_score: float = 30.0
    zero_shots_minute: int = 10  # no shots after this minute means missing data
    high_score: float = 70.0
    live_shift_pct: float = 5.0
    live_shift_max_minute: int = 80


class LateModuleSettings(BaseSettings):
    """Unified late-phase module gates and action thresholds."""

    warmup_minute: int = 65
    active_minute: int = 80
    warmup_score_cap: float = 75.0
    warmup_confidence_factor: float = 0.8

    warmup_watch_score: float = 60.0
    warmup_watch_confidence: float = 40.0

    bet_score: float = 85.0
    bet_confidence: float = 70.0
    prepare_score: float = 75.0
    prepare_confidence: float = 55.0
    watch_score: float = 65.0

    # Scenario classification
    blowout_goal_diff: int = 3
    strong_gap: float = 10.0
    deadlock_minute: int = 70
    deadlock_min_xg: float = 0.5
    deadlock_debt_minute: int = 75
    deadlock_debt: float = 1.5
    over_sprint_debt: float = 1.0
    over_sprint_shots: int = 20
    over_sprint_xg: float = 2.0

    stats_fresh_seconds: float = 120.0


class CalibrationSettings(BaseSettings):
    """Probability calibration buckets."""

    bucket_width: int = 10
    min_sample_size: int = 30
    high_confidence_size: int = 100
    min_calibrated_buckets: int = 3
    max_records: int = 5000
    default_rates: list[float] = Field(default_factory=lambda: [
        0.10, 0.15, 0.20, 0.28, 0.35, 0.42, 0.50, 0.58, 0.68, 0.78,
    ])

    @model_validator(mode="after")
    def _check_buckets(self) -> "CalibrationSettings":
        if len(self.default_rates) * self.bucket_width != 100:
            raise ValueError("default_rates must cover 0-100 exactly")
        return self


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore"
    )

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    # Record store
    data_dir: str = Field(default="data", description="Directory for JSONL record files")

    # Replay loop
    tick_interval_seconds: float = 5.0

    # Sub-settings
    tiers: TierSettings = Field(default_factory=TierSettings)
    hysteresis: HysteresisSettings = Field(default_factory=HysteresisSettings)
    settlement: SettlementSettings = Field(default_factory=SettlementSettings)
    kelly: KellySettings = Field(default_factory=KellySettings)
    odds: OddsSettings = Field(default_factory=OddsSettings)
    temporal: TemporalSettings = Field(default_factory=TemporalSettings)
    blend: BlendSettings = Field(default_factory=BlendSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    late_module: LateModuleSettings = Field(default_factory=LateModuleSettings)
    calibration: CalibrationSettings = Field(default_factory=CalibrationSettings)


# Global settings instance
settings = Settings()

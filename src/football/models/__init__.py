"""Football data models and schemas."""

from src.football.models.schemas import (
    Side,
    Tier,
    Action,
    ScenarioTag,
    LatePhase,
    TimePhase,
    Recommendation,
    DataQuality,
    MatchStateInput,
    MarketStateInput,
    TeamStrengthInput,
    HistoricalRates,
    FixtureTick,
    OddsSnapshot,
    BetPlan,
    UnifiedSignal,
)
from src.football.models.records import (
    SignalStatus,
    SignalRecord,
    CalibrationRecord,
    CalibrationBucket,
    CalibrationTable,
    GoalEvent,
    HitRateStats,
)

__all__ = [
    "Side",
    "Tier",
    "Action",
    "ScenarioTag",
    "LatePhase",
    "TimePhase",
    "Recommendation",
    "DataQuality",
    "MatchStateInput",
    "MarketStateInput",
    "TeamStrengthInput",
    "HistoricalRates",
    "FixtureTick",
    "OddsSnapshot",
    "BetPlan",
    "UnifiedSignal",
    "SignalStatus",
    "SignalRecord",
    "CalibrationRecord",
    "CalibrationBucket",
    "CalibrationTable",
    "GoalEvent",
    "HitRateStats",
]

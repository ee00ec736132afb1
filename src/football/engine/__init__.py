"""Scoring, late-phase signal and settlement engines."""

from src.football.engine.scoring import MultiFactorScorer
from src.football.engine.late_module import LateModule
from src.football.engine.calibration import CalibrationMap
from src.football.engine.hysteresis import TierHysteresis, TierState
from src.football.engine.odds_analyzer import OddsHistory
from src.football.engine.settlement import SettlementTracker
from src.football.engine.strength import calculate_signal_strength
from src.football.engine.kelly import calculate_kelly
from src.football.engine.evaluator import EngineState, EvaluationResult, SignalEvaluator, evaluate

__all__ = [
    "MultiFactorScorer",
    "LateModule",
    "CalibrationMap",
    "TierHysteresis",
    "TierState",
    "OddsHistory",
    "SettlementTracker",
    "calculate_signal_strength",
    "calculate_kelly",
    "EngineState",
    "EvaluationResult",
    "SignalEvaluator",
    "evaluate",
]

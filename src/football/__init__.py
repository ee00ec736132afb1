"""
In-Play Football Signal Engine.

Turns live match snapshots (score, shots, xG, corners, cards, substitutions)
and optional market odds into explainable late-goal signals, then settles
those signals against what actually happened.

Architecture:
- models/: Match, market and signal schemas
- engine/: Scoring, temporal model, late module, calibration, Kelly,
  odds divergence, hysteresis, settlement and the tick evaluator
- storage/: Record stores for signal history

All engine state is held in an explicit EngineState container owned by the
caller; nothing is kept in module globals.
"""

__version__ = "0.1.0"

"""Utility modules."""

from src.utils.logging import setup_logging, SignalLogger, PerformanceTracker

__all__ = [
    "setup_logging",
    "SignalLogger",
    "PerformanceTracker",
]

"""
Logging setup and signal journals for the signal engine.
"""

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import orjson
import structlog
from structlog.processors import JSONRenderer, TimeStamper

from src.football.models.records import SignalRecord
from src.football.models.schemas import UnifiedSignal


def setup_logging(log_level: str = "INFO", log_dir: str = "logs") -> None:
    """
    Configure structlog for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for log files
    """
    Path(log_dir).mkdir(parents=True, exist_ok=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            TimeStamper(fmt="iso"),
            JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


class SignalLogger:
    """
    Journal of emitted signals and settlements.

    One JSON line per entry in a daily ``signals_YYYY-MM-DD.jsonl`` file.
    """

    def __init__(self, log_dir: str = "logs"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.logger = structlog.get_logger("signal_logger")

        self._current_date: Optional[str] = None
        self._current_file: Optional[Path] = None
        self._file_handle = None

    def _get_log_file(self) -> Path:
        """Get current day's log file, rotating if needed."""
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")

        if today != self._current_date:
            if self._file_handle:
                self._file_handle.close()

            self._current_date = today
            self._current_file = self.log_dir / f"signals_{today}.jsonl"
            self._file_handle = open(self._current_file, "ab")

        return self._current_file

    def _write(self, entry: dict) -> None:
        self._get_log_file()
        self._file_handle.write(orjson.dumps(entry) + b"\n")
        self._file_handle.flush()

    def log_signal(self, signal: UnifiedSignal) -> None:
        """Write a unified signal (BET / PREPARE / WATCH) to the journal."""
        self._write({
            "type": "signal",
            "timestamp_ms": int(time.time() * 1000),
            "signal": signal,
        })
        self.logger.info(
            "signal_logged",
            fixture_id=signal.fixture_id,
            minute=signal.minute,
            action=signal.action.value,
            score=signal.score,
            confidence=signal.confidence,
        )

    def log_record(self, record: SignalRecord) -> None:
        """Write a newly created signal record."""
        self._write({
            "type": "record",
            "timestamp_ms": int(time.time() * 1000),
            "record": record.model_dump(mode="json"),
        })
        self.logger.info(
            "record_logged",
            record_id=record.id,
            fixture_id=record.fixture_id,
            signal_strength=record.signal_strength,
        )

    def log_settlement(self, record: SignalRecord) -> None:
        """Write the outcome of a settled record."""
        self._write({
            "type": "settlement",
            "timestamp_ms": int(time.time() * 1000),
            "record_id": record.id,
            "fixture_id": record.fixture_id,
            "status": record.status.value,
            "goal_minute": record.goal_minute,
            "note": record.settlement_note,
        })
        self.logger.debug("settlement_logged", record_id=record.id, status=record.status.value)

    def close(self) -> None:
        """Close log file handle."""
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None


class PerformanceTracker:
    """
    Running counters for a replay or live session.
    """

    def __init__(self):
        self.logger = structlog.get_logger("performance_tracker")

        self._ticks = 0
        self._fixture_errors = 0
        self._signals_by_action: dict[str, int] = {}
        self._records = 0
        self._settled_by_status: dict[str, int] = {}
        self._tick_latencies: list[float] = []

    def record_tick(self, latency_ms: float, errors: int = 0) -> None:
        self._ticks += 1
        self._fixture_errors += errors
        self._tick_latencies.append(latency_ms)

    def record_signal(self, action: str) -> None:
        self._signals_by_action[action] = self._signals_by_action.get(action, 0) + 1

    def record_created(self) -> None:
        self._records += 1

    def record_settlement(self, status: str) -> None:
        self._settled_by_status[status] = self._settled_by_status.get(status, 0) + 1

    def get_hit_rate(self) -> float:
        """Hits over settled hits and misses."""
        hits = self._settled_by_status.get("hit", 0)
        settled = hits + self._settled_by_status.get("miss", 0)
        if settled == 0:
            return 0.0
        return hits / settled

    def get_latency_stats(self) -> dict:
        """Tick latency statistics."""
        if not self._tick_latencies:
            return {"count": 0, "mean": 0, "p95": 0}

        sorted_lats = sorted(self._tick_latencies)
        n = len(sorted_lats)

        return {
            "count": n,
            "mean": sum(sorted_lats) / n,
            "p95": sorted_lats[int(n * 0.95)] if n >= 20 else sorted_lats[-1],
        }

    def get_summary(self) -> dict:
        return {
            "ticks": self._ticks,
            "fixture_errors": self._fixture_errors,
            "signals": dict(self._signals_by_action),
            "records": self._records,
            "settled": dict(self._settled_by_status),
            "hit_rate": self.get_hit_rate(),
            "latency": self.get_latency_stats(),
        }

    def print_report(self) -> None:
        """Print formatted session report."""
        summary = self.get_summary()
        latency = summary["latency"]
        settled = summary["settled"]

        print("""
╔════════════════════════════════════════════════════════════╗
║                    SESSION REPORT                          ║
╠════════════════════════════════════════════════════════════╣
║ Ticks:           {ticks:>6}                                 ║
║ Fixture errors:  {errors:>6}                                 ║
╠════════════════════════════════════════════════════════════╣
║ SIGNALS                                                    ║
║ BET:             {bet:>6}                                 ║
║ PREPARE:         {prepare:>6}                                 ║
║ WATCH:           {watch:>6}                                 ║
║ Records:         {records:>6}                                 ║
╠════════════════════════════════════════════════════════════╣
║ SETTLEMENT                                                 ║
║ Hit:             {hit:>6}                                 ║
║ Miss:            {miss:>6}                                 ║
║ Expired:         {expired:>6}                                 ║
║ Hit Rate:        {hitrate:>5.1f}%                                ║
╠════════════════════════════════════════════════════════════╣
║ TICK LATENCY (ms)                                          ║
║ Mean:            {lat_mean:>6.1f}                                 ║
║ P95:             {lat_p95:>6.1f}                                 ║
╚════════════════════════════════════════════════════════════╝
""".format(
            ticks=summary["ticks"],
            errors=summary["fixture_errors"],
            bet=summary["signals"].get("BET", 0),
            prepare=summary["signals"].get("PREPARE", 0),
            watch=summary["signals"].get("WATCH", 0),
            records=summary["records"],
            hit=settled.get("hit", 0),
            miss=settled.get("miss", 0),
            expired=settled.get("expired", 0),
            hitrate=summary["hit_rate"] * 100,
            lat_mean=latency["mean"],
            lat_p95=latency["p95"],
        ))

"""
In-play signal engine - replay runner.

Feeds recorded ticks through the engine at the configured cadence:
1. Read one tick (a batch of fixture snapshots) from a JSON-lines file
2. Evaluate it (settlement, scoring, tiers, late-phase signals)
3. Journal BET / PREPARE / WATCH signals, new records and settlements
4. Persist records and the calibration map

Each line of the replay file is
``{"timestamp_ms": <int>, "fixtures": [{"match": {...}, "market": {...}}, ...]}``.

Usage:
    python -m src.football.main ticks.jsonl

Environment Variables:
    LOG_LEVEL              - DEBUG|INFO|WARNING|ERROR (default: INFO)
    DATA_DIR               - Directory for records and calibration (default: data)
    TICK_INTERVAL_SECONDS  - Delay between replayed ticks (default: 5)
"""

import asyncio
import signal
import sys
import time
from pathlib import Path
from typing import Iterator, Optional

import orjson
import structlog
from pydantic import ValidationError

from config.settings import Settings, settings
from src.football.engine.calibration import CalibrationMap
from src.football.engine.evaluator import EngineState, EvaluationResult, SignalEvaluator
from src.football.engine.late_module import is_signal_worth_watching
from src.football.models.schemas import FixtureTick
from src.football.storage.jsonl import JsonlRecordStore
from src.utils.logging import PerformanceTracker, SignalLogger, setup_logging

logger = structlog.get_logger()


def read_ticks(path: Path) -> Iterator[tuple[Optional[int], list[FixtureTick]]]:
    """
    Yield ``(timestamp_ms, ticks)`` per line of a replay file.

    Malformed lines are logged and skipped.
    """
    with open(path, "rb") as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                payload = orjson.loads(line)
                ticks = [FixtureTick.from_dict(item) for item in payload["fixtures"]]
            except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning("replay_line_skipped", line=line_no, error=str(e))
                continue
            yield payload.get("timestamp_ms"), ticks


class ReplayRunner:
    """
    Drives the signal engine over a recorded tick file.

    Owns the engine state, the record store and the calibration map; the
    engine itself stays synchronous.
    """

    def __init__(self, replay_path: Path, config: Optional[Settings] = None):
        self.settings = config or settings
        self.replay_path = replay_path
        self.logger = logger.bind(component="replay_runner")

        data_dir = Path(self.settings.data_dir)
        data_dir.mkdir(parents=True, exist_ok=True)
        self._calibration_path = data_dir / "calibration.json"

        self.store = JsonlRecordStore(data_dir / "signal_records.jsonl")
        self.calibration = CalibrationMap(self.settings.calibration)
        self.evaluator = SignalEvaluator(self.store, self.calibration, self.settings)
        self.state = EngineState()

        self.signal_logger = SignalLogger(self.settings.log_dir)
        self.performance = PerformanceTracker()

        self._running = False
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Load calibration and replay until the file ends or shutdown."""
        self.logger.info(
            "Starting replay",
            file=str(self.replay_path),
            tick_interval=self.settings.tick_interval_seconds,
            pending_records=len(self.store.pending()),
        )
        self._load_calibration()
        self._running = True

        try:
            await self._replay_loop()
        except asyncio.CancelledError:
            self.logger.info("Replay cancelled")

        await self.stop()

    async def stop(self) -> None:
        """Persist calibration and print the session report."""
        self.logger.info("Stopping replay...")
        self._running = False

        self.calibration.recalculate()
        self._calibration_path.write_text(self.calibration.export_json())
        pruned = self.evaluator.tracker.prune_old_records()

        self.signal_logger.close()
        self.logger.info(
            "Replay stopped",
            today=self.evaluator.tracker.get_today_stats().model_dump(),
            pruned=pruned,
        )
        self.performance.print_report()

    def shutdown(self) -> None:
        """Trigger graceful shutdown."""
        self._shutdown_event.set()
        self._running = False

    def _load_calibration(self) -> None:
        if not self._calibration_path.exists():
            return
        try:
            self.calibration.import_json(self._calibration_path.read_text())
        except ValidationError as e:
            self.logger.warning("calibration_load_failed", error=str(e))

    # =========================================================================
    # Main Loop
    # =========================================================================

    async def _replay_loop(self) -> None:
        for timestamp_ms, ticks in read_ticks(self.replay_path):
            if not self._running:
                break

            started = time.perf_counter()
            result = self.evaluator.evaluate(ticks, self.state, now_ms=timestamp_ms)
            self.performance.record_tick((time.perf_counter() - started) * 1000, len(result.errors))
            self._handle_result(result)

            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.settings.tick_interval_seconds,
                )
            except asyncio.TimeoutError:
                continue

    def _handle_result(self, result: EvaluationResult) -> None:
        for sig in result.signals:
            if is_signal_worth_watching(sig):
                self.signal_logger.log_signal(sig)
                self.performance.record_signal(sig.action.value)

        for record in result.records:
            self.signal_logger.log_record(record)
            self.performance.record_created()

        for record in result.settled:
            self.signal_logger.log_settlement(record)
            self.performance.record_settlement(record.status.value)

        top = result.ranked[:3]
        if top:
            self.logger.info(
                "tick_summary",
                fixtures=len(result.fixtures),
                top=[
                    f"{f.fixture_id}:{f.strength.signal_strength}({f.transition.tier.value})"
                    for f in top
                ],
                errors=len(result.errors),
            )


def main():
    """Main entry point."""
    if len(sys.argv) != 2:
        print("Usage: python -m src.football.main <ticks.jsonl>")
        sys.exit(2)

    replay_path = Path(sys.argv[1])
    if not replay_path.exists():
        print(f"❌ Replay file not found: {replay_path}")
        sys.exit(1)

    setup_logging(settings.log_level, settings.log_dir)
    runner = ReplayRunner(replay_path)

    def signal_handler(sig, frame):
        print("\n🛑 Shutdown requested...")
        runner.shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        asyncio.run(runner.start())
    except KeyboardInterrupt:
        print("\n⚠️ Interrupted")


if __name__ == "__main__":
    main()

"""
Probability calibration map.

Ten signal-strength buckets (0-10, 10-20, ... 90-100) each carry an observed
goal rate. A bucket counts as calibrated once it holds at least
``min_sample_size`` settled outcomes; until then callers fall back to the raw
signal strength as the probability.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import numpy as np
import structlog

from config.settings import CalibrationSettings, settings
from src.football.models.records import CalibrationBucket, CalibrationRecord, CalibrationTable

logger = structlog.get_logger()


@dataclass(frozen=True)
class CalibratedProbability:
    probability: int  # 0-100
    is_calibrated: bool
    confidence: float  # 0-1
    sample_size: int


@dataclass(frozen=True)
class BucketStats:
    range: str
    samples: int
    hit_rate: int
    is_calibrated: bool


@dataclass(frozen=True)
class CalibrationStats:
    total_records: int
    total_hits: int
    total_misses: int
    overall_hit_rate: int
    buckets: list[BucketStats]
    ready_for_calibration: bool


class CalibrationMap:
    """
    Bucketed signal-strength to hit-rate map.

    Holds the settled outcome records (bounded) and the bucket table built
    from them. ``record`` only appends; ``recalculate`` rebuilds the table.
    """

    def __init__(self, config: Optional[CalibrationSettings] = None):
        self.config = config or settings.calibration
        self.logger = logger.bind(component="calibration")
        self._records: list[CalibrationRecord] = []
        self._table = self._default_table()

    def _default_table(self) -> CalibrationTable:
        width = self.config.bucket_width
        return CalibrationTable(
            buckets=[
                CalibrationBucket(signal_min=i * width, signal_max=(i + 1) * width, goal_rate=rate)
                for i, rate in enumerate(self.config.default_rates)
            ],
        )

    @property
    def table(self) -> CalibrationTable:
        return self._table

    @property
    def records(self) -> list[CalibrationRecord]:
        return list(self._records)

    # =========================================================================
    # Lookup
    # =========================================================================

    def _bucket_index(self, signal_strength: float) -> int:
        index = int(signal_strength // self.config.bucket_width)
        return max(0, min(len(self._table.buckets) - 1, index))

    def lookup(self, signal_strength: float) -> CalibratedProbability:
        """Calibrated probability for a 0-100 signal strength."""
        bucket = self._table.buckets[self._bucket_index(signal_strength)]
        return CalibratedProbability(
            probability=round(bucket.goal_rate * 100),
            is_calibrated=bucket.sample_size >= self.config.min_sample_size,
            confidence=bucket.confidence,
            sample_size=bucket.sample_size,
        )

    def resolve_probability(self, signal_strength: float) -> float:
        """Calibrated probability when the bucket is calibrated, else the raw strength."""
        result = self.lookup(signal_strength)
        return float(result.probability) if result.is_calibrated else float(signal_strength)

    # =========================================================================
    # Learning
    # =========================================================================

    def record(self, signal_strength: int, hit: bool, fixture_id: Optional[int] = None) -> None:
        """Append one settled outcome, keeping the newest ``max_records``."""
        self._records.append(CalibrationRecord(
            signal_strength=signal_strength,
            hit=hit,
            fixture_id=fixture_id,
        ))
        overflow = len(self._records) - self.config.max_records
        if overflow > 0:
            del self._records[:overflow]

    def recalculate(self) -> CalibrationTable:
        """Rebuild every bucket from the stored records."""
        n_buckets = len(self.config.default_rates)
        strengths = np.array([r.signal_strength for r in self._records], dtype=int)
        hits = np.array([r.hit for r in self._records], dtype=bool)

        indices = np.clip(strengths // self.config.bucket_width, 0, n_buckets - 1)
        samples = np.bincount(indices, minlength=n_buckets)
        hit_counts = np.bincount(indices[hits], minlength=n_buckets)

        now = datetime.now(timezone.utc)
        width = self.config.bucket_width
        buckets = []
        for i in range(n_buckets):
            size = int(samples[i])
            if size > 0:
                buckets.append(CalibrationBucket(
                    signal_min=i * width,
                    signal_max=(i + 1) * width,
                    sample_size=size,
                    hit_count=int(hit_counts[i]),
                    goal_rate=float(hit_counts[i] / size),
                    confidence=min(1.0, size / self.config.high_confidence_size),
                    last_updated=now,
                ))
            else:
                buckets.append(CalibrationBucket(
                    signal_min=i * width,
                    signal_max=(i + 1) * width,
                    goal_rate=self.config.default_rates[i],
                ))

        self._table = CalibrationTable(
            version=f"v1.1-{int(now.timestamp() * 1000)}",
            created_at=now,
            total_samples=len(self._records),
            buckets=buckets,
        )
        self.logger.info(
            "calibration_recalculated",
            total_samples=len(self._records),
            calibrated_buckets=sum(1 for b in buckets if b.sample_size >= self.config.min_sample_size),
        )
        return self._table

    # =========================================================================
    # Reporting and persistence
    # =========================================================================

    def get_stats(self) -> CalibrationStats:
        total = len(self._records)
        hits = sum(1 for r in self._records if r.hit)
        min_sample = self.config.min_sample_size
        bucket_stats = [
            BucketStats(
                range=f"{b.signal_min}-{b.signal_max}",
                samples=b.sample_size,
                hit_rate=round(b.goal_rate * 100),
                is_calibrated=b.sample_size >= min_sample,
            )
            for b in self._table.buckets
        ]
        calibrated = sum(1 for b in bucket_stats if b.is_calibrated)
        return CalibrationStats(
            total_records=total,
            total_hits=hits,
            total_misses=total - hits,
            overall_hit_rate=round(hits / total * 100) if total else 0,
            buckets=bucket_stats,
            ready_for_calibration=calibrated >= self.config.min_calibrated_buckets,
        )

    def export_json(self) -> str:
        """Table plus records as a JSON document."""
        snapshot = self._table.model_copy(update={"records": list(self._records)})
        return snapshot.model_dump_json(indent=2)

    def import_json(self, payload: str) -> None:
        """
        Replace table and records from an exported document.

        Raises:
            pydantic.ValidationError: if the payload is not a valid export
        """
        imported = CalibrationTable.model_validate_json(payload)
        self._records = list(imported.records)[-self.config.max_records:]
        self._table = imported.model_copy(update={"records": []})
        self.logger.info("calibration_imported", total_samples=imported.total_samples)

    def reset(self) -> None:
        self._records.clear()
        self._table = self._default_table()

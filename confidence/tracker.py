"""
Adaptive confidence tracking.

Each scoring pass reports the regression R², the number of price points behind
it and the resulting risk level. Directional risk levels (below 0.45 or above
0.55) are kept as at most one prediction snapshot per UTC day and graded once
30, 60 and 90 days have passed. Adaptive confidence is the asset's static
baseline adjusted by:

  R² bonus          (mean of last 30 R² - 0.85) * 5       clamped to [-0.5, 1.0]
  Data-point bonus  log2(points / 365) / 4, above 365      clamped to [0, 1]
  Accuracy bonus    (30-day hit rate - 0.5) * 2            clamped to [-1, 1]

The result never drops more than one level below the baseline and never
exceeds 9.
"""
import asyncio
import math
from datetime import datetime
from typing import Iterable, Optional

from common.logger import get_logger
from common.models import (
    AdaptiveConfidenceResult,
    ConfidenceMetrics,
    PredictionSnapshot,
    RSquaredSnapshot,
    as_utc,
    day_string,
    risk_category,
    utc_now,
)
from config.assets import ALL_CONFIGS, DEFAULT_CONFIDENCE_LEVEL, for_coin
from config.settings import CONFIDENCE_FLUSH_DELAY
from scoring.statistics import mean
from storage.metrics_store import MetricsStore

logger = get_logger("confidence")

MAX_R_SQUARED_HISTORY = 180
MAX_PREDICTION_SNAPSHOTS = 365
R_SQUARED_WINDOW = 30
MAX_CONFIDENCE = 9

NEUTRAL_LOW = 0.45
NEUTRAL_HIGH = 0.55
OUTCOME_THRESHOLD = 0.05
HORIZONS = (30, 60, 90)


def _clamp(value: float, low: float, high: float) -> float:
    if math.isnan(value):
        return low
    return max(low, min(high, value))


class ConfidenceTracker:
    """Per-asset confidence state. Updates to one asset are serialized; assets don't block each other."""

    def __init__(self, store: Optional[MetricsStore] = None,
                 flush_delay: float = CONFIDENCE_FLUSH_DELAY):
        self._store = store
        self._flush_delay = flush_delay
        self._metrics: dict[str, ConfidenceMetrics] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._dirty: set[str] = set()
        self._flush_tasks: dict[str, asyncio.Task] = {}

    @classmethod
    async def create(cls, store: Optional[MetricsStore] = None, load_from_store: bool = True,
                     asset_ids: Optional[Iterable[str]] = None,
                     flush_delay: float = CONFIDENCE_FLUSH_DELAY) -> "ConfidenceTracker":
        tracker = cls(store, flush_delay=flush_delay)
        if store is not None and load_from_store:
            await tracker.load(asset_ids)
        return tracker

    def _lock(self, asset_id: str) -> asyncio.Lock:
        return self._locks.setdefault(asset_id, asyncio.Lock())

    async def load(self, asset_ids: Optional[Iterable[str]] = None) -> int:
        """Load stored records (all configured assets by default). Returns how many were found."""
        if self._store is None:
            return 0
        ids = [a.upper() for a in asset_ids] if asset_ids is not None else [c.asset_id for c in ALL_CONFIGS]
        loaded = 0
        for asset_id in ids:
            async with self._lock(asset_id):
                record = await self._store.get(asset_id)
                if record is not None:
                    self._metrics[asset_id] = record
                    loaded += 1
        logger.info(f"Loaded confidence metrics for {loaded}/{len(ids)} assets")
        return loaded

    # ── Recording ─────────────────────────────────────────────────────────────

    async def record_calculation(self, asset_id: str, r_squared: float, data_point_count: int,
                                 risk_level: float, price: float,
                                 date: Optional[datetime] = None) -> None:
        date = as_utc(date or utc_now())
        key = asset_id.upper()

        async with self._lock(key):
            metrics = self._metrics.get(key) or ConfidenceMetrics(asset_id=key, last_updated=date)

            if math.isfinite(r_squared):
                metrics.r_squared_history.append(
                    RSquaredSnapshot(date=date, r_squared=r_squared, data_point_count=data_point_count)
                )
                del metrics.r_squared_history[:-MAX_R_SQUARED_HISTORY]
            else:
                logger.warning(f"{key}: ignoring non-finite R² {r_squared}")

            is_directional = risk_level < NEUTRAL_LOW or risk_level > NEUTRAL_HIGH
            today = day_string(date)
            already_today = any(day_string(s.snapshot_date) == today for s in metrics.prediction_snapshots)
            if is_directional and not already_today:
                metrics.prediction_snapshots.append(PredictionSnapshot(
                    asset_id=key,
                    snapshot_date=date,
                    risk_level=risk_level,
                    risk_category=risk_category(risk_level),
                    price_at_snapshot=price,
                ))
                del metrics.prediction_snapshots[:-MAX_PREDICTION_SNAPSHOTS]

            self._validate_pending(metrics, price, date)

            metrics.last_updated = date
            self._metrics[key] = metrics
            self._dirty.add(key)

            if self._store is not None and self._flush_delay <= 0:
                await self._write(key)

        if self._store is not None and self._flush_delay > 0:
            self._schedule_flush(key)

    @staticmethod
    def _validate_pending(metrics: ConfidenceMetrics, current_price: float, current_date: datetime) -> None:
        for snapshot in metrics.prediction_snapshots:
            if snapshot.is_correct_90_day is not None:
                continue
            days = (current_date - as_utc(snapshot.snapshot_date)).days
            for horizon in HORIZONS:
                if days < horizon or getattr(snapshot, f"price_at_{horizon}_days") is not None:
                    continue
                setattr(snapshot, f"price_at_{horizon}_days", current_price)
                setattr(snapshot, f"is_correct_{horizon}_day", ConfidenceTracker.evaluate_prediction(
                    snapshot.risk_level, snapshot.price_at_snapshot, current_price,
                ))
                if horizon == HORIZONS[-1]:
                    snapshot.validated_at = current_date

    @staticmethod
    def evaluate_prediction(risk_level: float, snapshot_price: float, outcome_price: float) -> bool:
        """High risk is right after a drop of 5% or more, low risk after a rise of 5% or more."""
        if snapshot_price <= 0:
            return False
        change = (outcome_price - snapshot_price) / snapshot_price
        if risk_level >= NEUTRAL_HIGH:
            return change <= -OUTCOME_THRESHOLD
        if risk_level < NEUTRAL_LOW:
            return change >= OUTCOME_THRESHOLD
        return False

    # ── Reading ───────────────────────────────────────────────────────────────

    async def compute_adaptive_confidence(self, asset_id: str) -> AdaptiveConfidenceResult:
        key = asset_id.upper()
        config = for_coin(key)
        static = config.confidence_level if config else DEFAULT_CONFIDENCE_LEVEL

        async with self._lock(key):
            metrics = self._metrics.get(key)
            if metrics is None:
                return AdaptiveConfidenceResult(asset_id=key, static_confidence=static,
                                                adaptive_confidence=static)

            recent = [s.r_squared for s in metrics.r_squared_history[-R_SQUARED_WINDOW:]
                      if math.isfinite(s.r_squared)]
            r_squared = mean(recent) if recent else None
            r_squared_bonus = _clamp((r_squared - 0.85) * 5.0, -0.5, 1.0) if r_squared is not None else 0.0

            points = metrics.r_squared_history[-1].data_point_count if metrics.r_squared_history else 0
            data_point_bonus = _clamp(math.log2(points / 365.0) / 4.0, 0.0, 1.0) if points > 365 else 0.0

            graded = [s for s in metrics.prediction_snapshots if s.is_graded]
            accuracy = None
            accuracy_bonus = 0.0
            if graded:
                accuracy = sum(1 for s in graded if s.is_correct_30_day) / len(graded)
                accuracy_bonus = _clamp((accuracy - 0.5) * 2.0, -1.0, 1.0)

            raw = static + r_squared_bonus + data_point_bonus + accuracy_bonus
            floor = max(1, static - 1)
            adaptive = int(math.floor(_clamp(raw, floor, MAX_CONFIDENCE) + 0.5))

            return AdaptiveConfidenceResult(
                asset_id=key,
                static_confidence=static,
                adaptive_confidence=adaptive,
                r_squared=r_squared,
                data_point_count=points,
                prediction_accuracy=accuracy,
                validated_prediction_count=len(graded),
                total_prediction_count=len(metrics.prediction_snapshots),
                r_squared_bonus=r_squared_bonus,
                data_point_bonus=data_point_bonus,
                accuracy_bonus=accuracy_bonus,
                last_updated=metrics.last_updated,
            )

    async def metrics(self, asset_id: str) -> Optional[ConfidenceMetrics]:
        key = asset_id.upper()
        async with self._lock(key):
            record = self._metrics.get(key)
            return record.model_copy(deep=True) if record else None

    # ── Persistence ───────────────────────────────────────────────────────────

    def _schedule_flush(self, asset_id: str) -> None:
        task = self._flush_tasks.get(asset_id)
        if task is not None and not task.done():
            return
        self._flush_tasks[asset_id] = asyncio.create_task(self._delayed_flush(asset_id))

    async def _delayed_flush(self, asset_id: str) -> None:
        await asyncio.sleep(self._flush_delay)
        self._flush_tasks.pop(asset_id, None)
        async with self._lock(asset_id):
            await self._write(asset_id)

    async def _write(self, asset_id: str) -> None:
        """Caller holds the asset's lock. On failure the asset stays dirty for the next flush."""
        if asset_id not in self._dirty:
            return
        try:
            await self._store.put(self._metrics[asset_id].model_copy(deep=True))
        except Exception as e:
            logger.error(f"Failed to persist confidence metrics for {asset_id}: {e}")
            return
        self._dirty.discard(asset_id)
        logger.debug(f"Flushed confidence metrics for {asset_id}")

    @property
    def dirty_assets(self) -> set[str]:
        return set(self._dirty)

    async def flush(self) -> None:
        """Write every pending record now."""
        if self._store is None:
            return
        for asset_id in list(self._dirty):
            async with self._lock(asset_id):
                await self._write(asset_id)

    async def close(self) -> None:
        tasks = list(self._flush_tasks.values())
        self._flush_tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.flush()

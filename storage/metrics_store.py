"""Key-value stores for per-asset confidence metrics.

The confidence tracker only needs get/put by asset id. DatabaseMetricsStore
goes through storage.database (files or PostgreSQL); InMemoryMetricsStore keeps
records in a dict for tests and short-lived runs.
"""
from abc import ABC, abstractmethod
from typing import Optional

from common.models import ConfidenceMetrics
from storage import database


class MetricsStore(ABC):
    """Async get/put of ConfidenceMetrics keyed by asset id."""

    @abstractmethod
    async def get(self, asset_id: str) -> Optional[ConfidenceMetrics]:
        """Return the stored record, or None if there is none."""

    @abstractmethod
    async def put(self, metrics: ConfidenceMetrics) -> None:
        """Store the record, replacing any previous one for the same asset."""


class InMemoryMetricsStore(MetricsStore):
    def __init__(self, initial: Optional[dict[str, ConfidenceMetrics]] = None):
        self.records: dict[str, ConfidenceMetrics] = dict(initial or {})
        self.put_count = 0

    async def get(self, asset_id: str) -> Optional[ConfidenceMetrics]:
        record = self.records.get(asset_id)
        return record.model_copy(deep=True) if record else None

    async def put(self, metrics: ConfidenceMetrics) -> None:
        self.records[metrics.asset_id] = metrics.model_copy(deep=True)
        self.put_count += 1


class DatabaseMetricsStore(MetricsStore):
    async def get(self, asset_id: str) -> Optional[ConfidenceMetrics]:
        return await database.load_metrics(asset_id)

    async def put(self, metrics: ConfidenceMetrics) -> None:
        await database.save_metrics(metrics)

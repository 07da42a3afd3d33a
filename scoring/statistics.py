"""Descriptive statistics: mean, standard deviation, z-scores and SD bands.

All functions are pure. Calls that need more data than they were given
return None instead of raising.
"""
import math
from typing import Optional, Sequence

import numpy as np
from pydantic import BaseModel, ConfigDict

from config.settings import ROLLING_ZSCORE_WINDOW

MIN_ZSCORE_HISTORY = 20


def normal_cdf(x: float) -> float:
    return 0.5 * (1.0 + math.erf(x / math.sqrt(2.0)))


class ZScoreResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    mean: float
    standard_deviation: float
    z_score: float

    @property
    def is_extreme(self) -> bool:
        return abs(self.z_score) >= 3.0

    @property
    def is_significant(self) -> bool:
        return abs(self.z_score) >= 2.0

    @property
    def description(self) -> str:
        high = self.z_score > 0
        if self.is_extreme:
            return "Extremely High" if high else "Extremely Low"
        if self.is_significant:
            return "Significantly High" if high else "Significantly Low"
        if abs(self.z_score) >= 1.0:
            return "Above Average" if high else "Below Average"
        return "Normal Range"

    @property
    def percentile(self) -> float:
        """Percentile under a normal distribution."""
        return normal_cdf(self.z_score) * 100

    @property
    def rarity(self) -> Optional[int]:
        """How rare a move this size is (1 in N), two-tailed."""
        p = (1.0 - normal_cdf(abs(self.z_score))) * 2
        if p <= 0:
            return None
        return int(1.0 / p)

    @property
    def formatted(self) -> str:
        return f"{self.z_score:+.1f}σ"


class SDBands(BaseModel):
    model_config = ConfigDict(frozen=True)

    mean: float
    plus_1_sd: float
    plus_2_sd: float
    plus_3_sd: float
    minus_1_sd: float
    minus_2_sd: float
    minus_3_sd: float


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(values))


def standard_deviation(values: Sequence[float]) -> float:
    """Sample standard deviation (n-1)."""
    if len(values) < 2:
        return 0.0
    return float(np.std(values, ddof=1))


def population_standard_deviation(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.std(values, ddof=0))


def calculate_z_score(current_value: float, history: Sequence[float]) -> Optional[ZScoreResult]:
    if len(history) < MIN_ZSCORE_HISTORY:
        return None
    avg = mean(history)
    sd = standard_deviation(history)
    if sd <= 0:
        return None
    return ZScoreResult(mean=avg, standard_deviation=sd, z_score=(current_value - avg) / sd)


def rolling_z_score(current_value: float, history: Sequence[float],
                    window_size: int = ROLLING_ZSCORE_WINDOW) -> Optional[ZScoreResult]:
    """Z-score against only the most recent window_size history values (oldest first)."""
    window = list(history)[-window_size:] if window_size > 0 else []
    return calculate_z_score(current_value, window)


def sd_bands(mean: float, sd: float) -> SDBands:
    return SDBands(
        mean=mean,
        plus_1_sd=mean + sd,
        plus_2_sd=mean + 2 * sd,
        plus_3_sd=mean + 3 * sd,
        minus_1_sd=mean - sd,
        minus_2_sd=mean - 2 * sd,
        minus_3_sd=mean - 3 * sd,
    )


def sd_bands_from(values: Sequence[float]) -> Optional[SDBands]:
    if len(values) < 2:
        return None
    sd = standard_deviation(values)
    if sd <= 0:
        return None
    return sd_bands(mean(values), sd)

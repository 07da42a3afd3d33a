"""
Logarithmic regression fair-value model.

Fits a power law anchored at the asset's origin date:

    log10(price) = a + b * log10(days_since_origin)

Fair value at a date is 10^(a + b*log10(days)). The signed log10 gap between
the actual price and fair value is the deviation; it is mapped onto 0..1 with
the asset's deviation bounds (0.5 = at fair value).
"""
from datetime import datetime
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict

from common.models import PricePoint, as_utc
from config.assets import DeviationBounds

MIN_REGRESSION_POINTS = 10
SECONDS_PER_DAY = 86400.0

PriceInput = Union[PricePoint, tuple]


def days_since(origin: datetime, date: datetime) -> float:
    return (as_utc(date) - as_utc(origin)).total_seconds() / SECONDS_PER_DAY


class RegressionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    a: float              # intercept
    b: float              # slope
    r_squared: float
    origin_date: datetime
    data_point_count: int = 0

    def fair_value_at(self, date: datetime) -> float:
        days = days_since(self.origin_date, date)
        if days <= 0:
            return 0.0
        return float(10 ** (self.a + self.b * np.log10(days)))


def price_points_from_series(series: pd.Series) -> list[PricePoint]:
    """Convert a date-indexed close-price Series into price points."""
    series = series.dropna()
    return [PricePoint(date=pd.Timestamp(ts).to_pydatetime(), price=float(price))
            for ts, price in series.items()]


def as_price_point(point: PriceInput) -> PricePoint:
    if isinstance(point, PricePoint):
        return point
    date, price = point
    return PricePoint(date=date, price=price)


def fit(prices: Iterable[PriceInput] | pd.Series, origin_date: datetime) -> Optional[RegressionResult]:
    """Least-squares fit in log-log space. None when fewer than 10 usable points."""
    if isinstance(prices, pd.Series):
        prices = price_points_from_series(prices)
    points = [as_price_point(p) for p in prices]

    days = np.array([days_since(origin_date, p.date) for p in points], dtype=float)
    values = np.array([p.price for p in points], dtype=float)
    valid = np.isfinite(days) & np.isfinite(values) & (days > 0) & (values > 0)
    if valid.sum() < MIN_REGRESSION_POINTS:
        return None

    x = np.log10(days[valid])
    y = np.log10(values[valid])
    n = float(len(x))

    denominator = n * np.sum(x * x) - np.sum(x) ** 2
    if abs(denominator) <= 1e-10:
        return None

    b = (n * np.sum(x * y) - np.sum(x) * np.sum(y)) / denominator
    a = (np.sum(y) - b * np.sum(x)) / n

    predicted = a + b * x
    ss_total = np.sum((y - y.mean()) ** 2)
    ss_residual = np.sum((y - predicted) ** 2)
    r_squared = 1 - ss_residual / ss_total if ss_total > 0 else 0.0
    if not np.all(np.isfinite([a, b, r_squared])):
        return None

    return RegressionResult(
        a=float(a), b=float(b), r_squared=float(r_squared),
        origin_date=as_utc(origin_date), data_point_count=int(n),
    )


def log_deviation(actual_price: float, fair_value: float) -> float:
    """Positive = overvalued, negative = undervalued."""
    if not (np.isfinite(actual_price) and np.isfinite(fair_value)):
        return 0.0
    if actual_price <= 0 or fair_value <= 0:
        return 0.0
    return float(np.log10(actual_price) - np.log10(fair_value))


def normalize_deviation(deviation: float, bounds: DeviationBounds) -> float:
    span = bounds.high - bounds.low
    if span <= 0 or np.isnan(deviation):
        return 0.5
    clamped = max(bounds.low, min(bounds.high, deviation))
    return (clamped - bounds.low) / span

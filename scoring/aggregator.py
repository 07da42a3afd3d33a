"""
RISK PULSE — Multi-Factor Risk Aggregator

Combines the log-regression fair-value deviation with six supplementary
indicators into one composite risk level (0.0 .. 1.0).

Default weights:
  Log Regression     35% — fair-value deviation, the backbone of the score
  RSI                12% — momentum overheating
  SMA Position       12% — price vs 200-day SMA
  Bull Market Bands  11% — price vs 20W SMA / 21W EMA support
  Funding Rate       10% — perpetual futures leverage
  Fear & Greed       10% — crowd sentiment
  Macro Risk         10% — VIX + DXY

Factors whose input is missing are marked unavailable and the remaining
weights are rescaled to sum to 1.0.
"""
from datetime import datetime, timedelta
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from common.logger import get_logger
from common.models import (
    DEFAULT_WEIGHTS,
    MultiFactorRiskPoint,
    RiskFactor,
    RiskFactorData,
    RiskFactorType,
    RiskFactorWeights,
    RiskHistoryPoint,
    as_utc,
    risk_category,
    utc_now,
)
from config.assets import AssetRiskConfig
from scoring import log_regression
from scoring import normalizer
from scoring.log_regression import PriceInput, RegressionResult

logger = get_logger("aggregator")

__all__ = ["RiskCalculator", "risk_category", "build_explanation"]


def build_explanation(point: MultiFactorRiskPoint) -> str:
    """One-line summary of the factors pulling the score furthest from neutral."""
    parts = []
    for f in point.factors:
        if not f.is_available:
            continue
        n = f.normalized_value
        if n >= 0.7:
            parts.append(f"{f.type.value} hot ({f.normalized_value_display})")
        elif n <= 0.3:
            parts.append(f"{f.type.value} cool ({f.normalized_value_display})")

    missing = 7 - point.available_factor_count
    summary = " | ".join(parts) if parts else "no factor far from neutral"
    if missing:
        summary += f" | {missing} factor(s) unavailable"
    return summary


class RiskCalculator:
    """Turns price history plus indicator inputs into risk points for one asset at a time."""

    def __init__(self):
        self._regression_cache: dict[str, RegressionResult] = {}

    # ── Regression-only risk ──────────────────────────────────────────────────

    def calculate_risk(self, price: float, date: datetime, config: AssetRiskConfig,
                       regression: Optional[RegressionResult] = None,
                       price_history: Optional[Sequence[PriceInput]] = None) -> Optional[RiskHistoryPoint]:
        reg = regression
        if reg is None and price_history is not None:
            reg = log_regression.fit(price_history, config.origin_date)
        if reg is None and regression is None and price_history is None:
            reg = self._regression_cache.get(config.asset_id)
        if reg is None:
            return None

        fair_value = reg.fair_value_at(date)
        if not np.isfinite(fair_value) or fair_value <= 0:
            return None

        deviation = log_regression.log_deviation(price, fair_value)
        level = log_regression.normalize_deviation(deviation, config.deviation_bounds)
        return RiskHistoryPoint.at(date, risk_level=level, price=price,
                                   fair_value=fair_value, deviation=deviation)

    def calculate_risk_history(self, prices: Sequence[PriceInput],
                               config: AssetRiskConfig) -> list[RiskHistoryPoint]:
        if isinstance(prices, pd.Series):
            prices = log_regression.price_points_from_series(prices)
        points = [log_regression.as_price_point(p) for p in prices]
        regression = log_regression.fit(points, config.origin_date)
        if regression is None:
            logger.warning(f"{config.asset_id}: not enough price history for regression ({len(points)} points)")
            return []

        self._regression_cache[config.asset_id] = regression
        history = []
        for p in points:
            point = self.calculate_risk(p.price, p.date, config, regression=regression)
            if point is not None:
                history.append(point)
        return sorted(history, key=lambda h: h.date)

    def cached_regression(self, asset_id: str) -> Optional[RegressionResult]:
        return self._regression_cache.get(asset_id)

    def cache_regression(self, asset_id: str, regression: RegressionResult) -> None:
        self._regression_cache[asset_id] = regression

    def clear_cache(self, asset_id: Optional[str] = None) -> None:
        if asset_id is None:
            self._regression_cache.clear()
        else:
            self._regression_cache.pop(asset_id, None)

    # ── Multi-factor risk ─────────────────────────────────────────────────────

    def calculate_multi_factor_risk(self, price: float, date: datetime, config: AssetRiskConfig,
                                    factor_data: Optional[RiskFactorData] = None,
                                    weights: RiskFactorWeights = DEFAULT_WEIGHTS,
                                    regression: Optional[RegressionResult] = None,
                                    price_history: Optional[Sequence[PriceInput]] = None,
                                    ) -> Optional[MultiFactorRiskPoint]:
        """Composite risk at one price point. None when the base regression is unavailable."""
        base = self.calculate_risk(price, date, config, regression=regression,
                                   price_history=price_history)
        if base is None:
            return None

        data = factor_data or RiskFactorData.empty()
        factors = [
            RiskFactor(type=RiskFactorType.LOG_REGRESSION, raw_value=base.deviation,
                       normalized_value=base.risk_level, weight=weights.log_regression),
            self._rsi_factor(data, weights),
            self._sma_factor(data, price, weights),
            self._bands_factor(data, weights),
            self._funding_factor(data, weights),
            self._fear_greed_factor(data, weights),
            self._macro_factor(data, weights),
        ]

        factors = normalizer.renormalize_weights(factors)
        composite = sum(f.weighted_contribution for f in factors if f.is_available)
        composite = float(np.clip(composite, 0.0, 1.0))

        return MultiFactorRiskPoint.at(
            date, risk_level=composite, price=price, fair_value=base.fair_value,
            deviation=base.deviation, factors=factors, weights=weights,
        )

    @staticmethod
    def _rsi_factor(data: RiskFactorData, weights: RiskFactorWeights) -> RiskFactor:
        if data.rsi is None:
            return RiskFactor.unavailable(RiskFactorType.RSI, weights.rsi)
        return RiskFactor(type=RiskFactorType.RSI, raw_value=data.rsi,
                          normalized_value=normalizer.normalize_rsi(data.rsi), weight=weights.rsi)

    @staticmethod
    def _sma_factor(data: RiskFactorData, price: float, weights: RiskFactorWeights) -> RiskFactor:
        if data.sma200 is None:
            return RiskFactor.unavailable(RiskFactorType.SMA_POSITION, weights.sma_position)
        current = data.current_price if data.current_price is not None else price
        # raw value records the binary side of the SMA: 0.3 above, 0.7 below
        return RiskFactor(
            type=RiskFactorType.SMA_POSITION,
            raw_value=0.3 if current > data.sma200 else 0.7,
            normalized_value=normalizer.normalize_sma_position(current, data.sma200),
            weight=weights.sma_position,
        )

    @staticmethod
    def _bands_factor(data: RiskFactorData, weights: RiskFactorWeights) -> RiskFactor:
        bands = data.bull_market_bands
        if bands is None:
            return RiskFactor.unavailable(RiskFactorType.BULL_MARKET_BANDS, weights.bull_market_bands)
        avg_band = (bands.sma_20_week + bands.ema_21_week) / 2.0
        pct = (bands.current_price - avg_band) / avg_band * 100 if avg_band > 0 else 0.0
        return RiskFactor(
            type=RiskFactorType.BULL_MARKET_BANDS,
            raw_value=pct,
            normalized_value=normalizer.normalize_bull_market_bands(bands),
            weight=weights.bull_market_bands,
        )

    @staticmethod
    def _funding_factor(data: RiskFactorData, weights: RiskFactorWeights) -> RiskFactor:
        if data.funding_rate is None:
            return RiskFactor.unavailable(RiskFactorType.FUNDING_RATE, weights.funding_rate)
        return RiskFactor(type=RiskFactorType.FUNDING_RATE, raw_value=data.funding_rate,
                          normalized_value=normalizer.normalize_funding_rate(data.funding_rate),
                          weight=weights.funding_rate)

    @staticmethod
    def _fear_greed_factor(data: RiskFactorData, weights: RiskFactorWeights) -> RiskFactor:
        if data.fear_greed_value is None:
            return RiskFactor.unavailable(RiskFactorType.FEAR_GREED, weights.fear_greed)
        return RiskFactor(type=RiskFactorType.FEAR_GREED, raw_value=data.fear_greed_value,
                          normalized_value=normalizer.normalize_fear_greed(data.fear_greed_value),
                          weight=weights.fear_greed)

    @staticmethod
    def _macro_factor(data: RiskFactorData, weights: RiskFactorWeights) -> RiskFactor:
        normalized = normalizer.normalize_macro_risk(data.vix_value, data.dxy_value)
        if normalized is None:
            return RiskFactor.unavailable(RiskFactorType.MACRO_RISK, weights.macro_risk)
        raw = [v for v in (data.vix_value, data.dxy_value) if v is not None]
        return RiskFactor(type=RiskFactorType.MACRO_RISK, raw_value=sum(raw) / len(raw),
                          normalized_value=normalized, weight=weights.macro_risk)

    # ── Chart sampling ────────────────────────────────────────────────────────

    @staticmethod
    def sample_history(history: Sequence[RiskHistoryPoint], days: Optional[int] = None,
                       max_points: int = 100, now: Optional[datetime] = None) -> list[RiskHistoryPoint]:
        """Thin a history for display, always keeping the most recent point."""
        filtered = list(history)
        if days is not None:
            cutoff = as_utc(now or utc_now()) - timedelta(days=days)
            filtered = [h for h in filtered if h.date >= cutoff]

        if len(filtered) <= max_points:
            return filtered
        if max_points <= 0:
            return filtered[-1:]

        step = len(filtered) // max_points
        sampled = filtered[::step]
        if sampled[-1].date != filtered[-1].date:
            sampled.append(filtered[-1])
        return sampled

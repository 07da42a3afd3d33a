"""
Risk factor normalization.

Maps each raw indicator onto a common 0..1 risk scale (1.0 = highest implied
risk) so indicators with unrelated units can be weighted together:

  RSI            (rsi - 30) / 40                 30 → 0.0, 70 → 1.0
  SMA-200        stepwise by % from the SMA       far above 0.2 ... far below 0.8
  Bull bands     stepwise by % from band average  far above 0.1 ... far below 0.9
  Funding rate   (rate + 0.001) / 0.002           0 → 0.5
  Fear & Greed   index / 100
  VIX            0.3 + 0.4 * (40 - vix) / 30      inverse, always in [0.3, 0.7]
  DXY            (dxy - 90) / 20                  100 → 0.5
  Macro          mean of available VIX/DXY values

Step boundaries belong to the riskier bucket: exactly +20% above the SMA is 0.3,
exactly at the SMA is 0.6.
"""
import math
from typing import Optional

import numpy as np

from common.models import BandPosition, BullMarketSupportBands, RiskFactor


def _clamp01(value: float) -> float:
    if math.isnan(value):
        return 0.5
    return float(np.clip(value, 0.0, 1.0))


def normalize_rsi(rsi: float) -> float:
    return _clamp01((rsi - 30.0) / 40.0)


def normalize_sma_position(price: float, sma200: float) -> float:
    if not (math.isfinite(price) and math.isfinite(sma200)) or sma200 <= 0:
        return 0.5
    pct = (price - sma200) / sma200
    if pct > 0.20:  return 0.2
    if pct > 0.10:  return 0.3
    if pct > 0:     return 0.4
    if pct > -0.10: return 0.6
    if pct > -0.20: return 0.7
    return 0.8


def normalize_funding_rate(rate: float) -> float:
    return _clamp01((rate + 0.001) / 0.002)


def normalize_fear_greed(fear_greed: float) -> float:
    return _clamp01(fear_greed / 100.0)


def normalize_vix(vix: float) -> float:
    """Low VIX reads as complacency (higher risk), high VIX as capitulation (lower risk)."""
    scaled = _clamp01((40.0 - vix) / 30.0)
    return 0.3 + scaled * 0.4


def normalize_dxy(dxy: float) -> float:
    return _clamp01((dxy - 90.0) / 20.0)


def normalize_macro_risk(vix: Optional[float], dxy: Optional[float]) -> Optional[float]:
    parts = []
    if vix is not None:
        parts.append(normalize_vix(vix))
    if dxy is not None:
        parts.append(normalize_dxy(dxy))
    if not parts:
        return None
    return sum(parts) / len(parts)


def normalize_bull_market_bands(bands: BullMarketSupportBands) -> float:
    avg_band = (bands.sma_20_week + bands.ema_21_week) / 2.0
    if not (math.isfinite(avg_band) and math.isfinite(bands.current_price)) or avg_band <= 0:
        return 0.5
    pct = (bands.current_price - avg_band) / avg_band

    position = bands.position
    if position is BandPosition.ABOVE_BOTH:
        if pct > 0.20: return 0.1
        if pct > 0.10: return 0.2
        return 0.3
    if position is BandPosition.BELOW_BOTH:
        if pct < -0.20: return 0.9
        if pct < -0.10: return 0.8
        return 0.7
    return 0.5


def renormalize_weights(factors: list[RiskFactor]) -> list[RiskFactor]:
    """
    Rescale available factors' weights to sum to 1.0.
    Unavailable factors keep their declared weight; with nothing available the
    list is returned unchanged.
    """
    available_weight = sum(f.weight for f in factors if f.is_available)
    if available_weight <= 0:
        return list(factors)
    return [
        f.model_copy(update={"weight": f.weight / available_weight}) if f.is_available else f
        for f in factors
    ]

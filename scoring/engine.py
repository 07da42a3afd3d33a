"""
Scoring pass: regression fit → multi-factor risk → confidence tracking → history.

Every pass gets its own pass id so all log lines from it can be correlated.
"""
from datetime import datetime
from typing import Mapping, Optional, Sequence

import pandas as pd
from pydantic import BaseModel

from common.logger import get_logger, new_pass_id
from common.models import (
    AdaptiveConfidenceResult,
    MultiFactorRiskPoint,
    RiskFactorData,
    RiskFactorWeights,
    weights_for_preset,
)
from config.assets import resolve
from config.settings import WEIGHT_PRESET
from confidence.tracker import ConfidenceTracker
from scoring import log_regression
from scoring.aggregator import RiskCalculator, build_explanation
from scoring.log_regression import PriceInput
from storage import database

logger = get_logger("engine")


class ScoringOutcome(BaseModel):
    point: MultiFactorRiskPoint
    confidence: AdaptiveConfidenceResult
    explanation: str = ""


class RiskEngine:
    def __init__(self, tracker: Optional[ConfidenceTracker] = None,
                 calculator: Optional[RiskCalculator] = None,
                 weights: Optional[RiskFactorWeights] = None,
                 save_history: bool = True):
        self.tracker = tracker or ConfidenceTracker()
        self.calculator = calculator or RiskCalculator()
        self.weights = weights or weights_for_preset(WEIGHT_PRESET)
        self.save_history = save_history

    async def score_asset(self, symbol: str, prices: Sequence[PriceInput],
                          factor_data: Optional[RiskFactorData] = None,
                          weights: Optional[RiskFactorWeights] = None,
                          date: Optional[datetime] = None) -> Optional[ScoringOutcome]:
        new_pass_id()
        config = resolve(symbol)
        if config is None:
            logger.warning(f"{symbol}: no risk configuration, skipping")
            return None

        if isinstance(prices, pd.Series):
            prices = log_regression.price_points_from_series(prices)
        points = sorted((log_regression.as_price_point(p) for p in prices), key=lambda p: p.date)
        if not points:
            logger.warning(f"{config.asset_id}: empty price history")
            return None

        regression = log_regression.fit(points, config.origin_date)
        if regression is None:
            logger.warning(f"{config.asset_id}: regression needs at least "
                           f"{log_regression.MIN_REGRESSION_POINTS} valid prices, got {len(points)}")
            return None
        self.calculator.cache_regression(config.asset_id, regression)

        latest = points[-1]
        at = date or latest.date
        point = self.calculator.calculate_multi_factor_risk(
            latest.price, at, config, factor_data=factor_data,
            weights=weights or self.weights, regression=regression,
        )
        if point is None:
            logger.warning(f"{config.asset_id}: no fair value at {at.isoformat()}")
            return None

        await self.tracker.record_calculation(
            config.asset_id, regression.r_squared, regression.data_point_count,
            point.risk_level, point.price, date=at,
        )
        confidence = await self.tracker.compute_adaptive_confidence(config.asset_id)

        if self.save_history:
            await database.save_risk_history(config.asset_id, [point.to_risk_history_point()])

        explanation = build_explanation(point)
        logger.info(
            f"{config.asset_id}: risk={point.risk_level:.3f} ({point.risk_category}) "
            f"R²={regression.r_squared:.3f} confidence={confidence.adaptive_confidence}/9 | {explanation}"
        )
        return ScoringOutcome(point=point, confidence=confidence, explanation=explanation)

    async def score_all(self, inputs: Mapping[str, tuple[Sequence[PriceInput], Optional[RiskFactorData]]],
                        ) -> dict[str, ScoringOutcome]:
        """Score several assets; an asset that fails is logged and left out."""
        outcomes = {}
        for symbol, (prices, factor_data) in inputs.items():
            try:
                outcome = await self.score_asset(symbol, prices, factor_data)
            except Exception as e:
                logger.error(f"❌ {symbol}: {e}")
                continue
            if outcome is not None:
                outcomes[symbol] = outcome
        logger.info(f"✅ Done: {len(outcomes)}/{len(inputs)} assets scored")
        return outcomes

"""Tests for scoring.normalizer."""
import math

import pytest

from common.models import BullMarketSupportBands, RiskFactor, RiskFactorType
from config.assets import DeviationBounds
from scoring.log_regression import normalize_deviation
from scoring.normalizer import (
    normalize_bull_market_bands,
    normalize_dxy,
    normalize_fear_greed,
    normalize_funding_rate,
    normalize_macro_risk,
    normalize_rsi,
    normalize_sma_position,
    normalize_vix,
    renormalize_weights,
)


class TestLinear:
    def test_rsi(self):
        assert normalize_rsi(30) == 0.0
        assert normalize_rsi(70) == 1.0
        assert normalize_rsi(50) == pytest.approx(0.5)

    def test_rsi_clamped(self):
        assert normalize_rsi(5) == 0.0
        assert normalize_rsi(99) == 1.0

    def test_funding_rate(self):
        assert normalize_funding_rate(0.0) == pytest.approx(0.5)
        assert normalize_funding_rate(0.001) == pytest.approx(1.0)
        assert normalize_funding_rate(-0.01) == 0.0

    def test_fear_greed(self):
        assert normalize_fear_greed(25) == pytest.approx(0.25)
        assert normalize_fear_greed(150) == 1.0

    def test_dxy(self):
        assert normalize_dxy(90) == 0.0
        assert normalize_dxy(100) == pytest.approx(0.5)
        assert normalize_dxy(110) == 1.0

    def test_vix_inverse_and_bounded(self):
        assert normalize_vix(10) == pytest.approx(0.7)
        assert normalize_vix(40) == pytest.approx(0.3)
        assert normalize_vix(25) == pytest.approx(0.5)
        assert normalize_vix(80) == pytest.approx(0.3)
        assert normalize_vix(-5) == pytest.approx(0.7)

    @pytest.mark.parametrize("value", [-1e9, -1.0, 0.0, 1e9, math.inf, -math.inf])
    def test_outputs_stay_in_unit_range(self, value):
        for fn in (normalize_rsi, normalize_funding_rate, normalize_fear_greed, normalize_vix, normalize_dxy):
            out = fn(value)
            assert 0.0 <= out <= 1.0, f"{fn.__name__}({value}) = {out}"
        outputs = [
            normalize_sma_position(value, 100.0),
            normalize_sma_position(100.0, value),
            normalize_bull_market_bands(BullMarketSupportBands(sma_20_week=value, ema_21_week=100.0, current_price=100.0)),
            normalize_bull_market_bands(BullMarketSupportBands(sma_20_week=100.0, ema_21_week=100.0, current_price=value)),
            normalize_deviation(value, DeviationBounds(low=-0.8, high=0.8)),
        ]
        assert all(0.0 <= out <= 1.0 for out in outputs), outputs

    @pytest.mark.parametrize("value", [math.inf, -math.inf, math.nan])
    def test_non_finite_inputs_read_neutral(self, value):
        assert normalize_sma_position(value, 100.0) == 0.5
        assert normalize_sma_position(100.0, value) == 0.5
        bands = BullMarketSupportBands(sma_20_week=100.0, ema_21_week=100.0, current_price=value)
        assert normalize_bull_market_bands(bands) == 0.5
        assert normalize_deviation(math.nan, DeviationBounds(low=-0.8, high=0.8)) == 0.5


class TestMacro:
    def test_absent_when_both_missing(self):
        assert normalize_macro_risk(None, None) is None

    def test_single_input(self):
        assert normalize_macro_risk(None, 100) == pytest.approx(0.5)
        assert normalize_macro_risk(10, None) == pytest.approx(0.7)

    def test_mean_of_both(self):
        assert normalize_macro_risk(10, 90) == pytest.approx(0.35)


class TestSMAPosition:
    @pytest.mark.parametrize("price,expected", [
        (130.0, 0.2),
        (120.0, 0.3),   # exactly +20% falls in the riskier bucket
        (115.0, 0.3),
        (110.0, 0.4),   # exactly +10%
        (105.0, 0.4),
        (100.0, 0.6),   # at the SMA
        (95.0, 0.6),
        (90.0, 0.7),    # exactly -10%
        (85.0, 0.7),
        (80.0, 0.8),    # exactly -20%
        (50.0, 0.8),
    ])
    def test_step_table(self, price, expected):
        assert normalize_sma_position(price, 100.0) == expected

    def test_non_positive_sma(self):
        assert normalize_sma_position(100.0, 0.0) == 0.5
        assert normalize_sma_position(100.0, -3.0) == 0.5


class TestBullMarketBands:
    def bands(self, price: float, sma: float = 100.0, ema: float = 100.0) -> BullMarketSupportBands:
        return BullMarketSupportBands(sma_20_week=sma, ema_21_week=ema, current_price=price)

    @pytest.mark.parametrize("price,expected", [
        (125.0, 0.1),
        (120.0, 0.2),
        (115.0, 0.2),
        (110.0, 0.3),
        (101.0, 0.3),
        (99.0, 0.7),
        (90.0, 0.7),
        (85.0, 0.8),
        (80.0, 0.8),
        (70.0, 0.9),
    ])
    def test_step_table(self, price, expected):
        assert normalize_bull_market_bands(self.bands(price)) == expected

    def test_in_band(self):
        assert normalize_bull_market_bands(self.bands(100.0, sma=95.0, ema=105.0)) == 0.5

    def test_zero_bands(self):
        assert normalize_bull_market_bands(self.bands(10.0, sma=0.0, ema=0.0)) == 0.5


class TestRenormalize:
    def factors(self):
        return [
            RiskFactor(type=RiskFactorType.LOG_REGRESSION, raw_value=0.1, normalized_value=0.6, weight=0.35),
            RiskFactor(type=RiskFactorType.RSI, raw_value=50, normalized_value=0.5, weight=0.12),
            RiskFactor.unavailable(RiskFactorType.SMA_POSITION, 0.12),
            RiskFactor.unavailable(RiskFactorType.FUNDING_RATE, 0.10),
        ]

    def test_available_weights_sum_to_one(self):
        result = renormalize_weights(self.factors())
        total = sum(f.weight for f in result if f.is_available)
        assert total == pytest.approx(1.0, abs=1e-3)
        assert result[0].weight == pytest.approx(0.35 / 0.47)

    def test_unavailable_keep_declared_weight(self):
        result = renormalize_weights(self.factors())
        assert result[2].weight == 0.12
        assert result[3].weight == 0.10

    def test_nothing_available_unchanged(self):
        factors = [RiskFactor.unavailable(t, t.default_weight) for t in RiskFactorType]
        result = renormalize_weights(factors)
        assert [f.weight for f in result] == [f.weight for f in factors]

    def test_preserves_order(self):
        result = renormalize_weights(self.factors())
        assert [f.type for f in result] == [f.type for f in self.factors()]

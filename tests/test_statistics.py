"""Tests for scoring.statistics."""
import pytest

from scoring.statistics import (
    MIN_ZSCORE_HISTORY,
    ZScoreResult,
    calculate_z_score,
    mean,
    population_standard_deviation,
    rolling_z_score,
    sd_bands,
    sd_bands_from,
    standard_deviation,
)


class TestDescriptive:
    def test_mean(self):
        assert mean([1.0, 2.0, 3.0, 4.0]) == pytest.approx(2.5)

    def test_empty_inputs_return_zero(self):
        assert mean([]) == 0.0
        assert standard_deviation([]) == 0.0
        assert population_standard_deviation([]) == 0.0

    def test_singleton_sample_sd_is_zero(self):
        assert standard_deviation([5.0]) == 0.0
        assert population_standard_deviation([5.0]) == 0.0

    def test_sample_vs_population(self):
        values = [2, 4, 4, 4, 5, 5, 7, 9]
        assert population_standard_deviation(values) == pytest.approx(2.0)
        assert standard_deviation(values) == pytest.approx(2.138, abs=1e-3)


class TestZScore:
    def test_requires_min_history(self):
        history = list(range(MIN_ZSCORE_HISTORY - 1))
        assert calculate_z_score(5.0, history) is None

    def test_zero_variance_returns_none(self):
        assert calculate_z_score(1.0, [3.0] * 30) is None

    def test_positive_for_high_value(self):
        history = [float(i) for i in range(1, 31)]
        result = calculate_z_score(40.0, history)
        assert result is not None
        assert result.z_score > 0
        assert result.mean == pytest.approx(15.5)

    def test_rolling_window_positive_at_recent_high(self):
        history = [float(i) for i in range(200)]
        result = rolling_z_score(199.0, history, window_size=50)
        assert result is not None
        assert result.z_score > 0
        assert result.mean == pytest.approx(174.5)

    def test_rolling_window_too_small(self):
        history = [float(i) for i in range(200)]
        assert rolling_z_score(199.0, history, window_size=10) is None


class TestZScoreLabels:
    def make(self, z: float) -> ZScoreResult:
        return ZScoreResult(mean=0.0, standard_deviation=1.0, z_score=z)

    def test_flags(self):
        assert self.make(2.0).is_significant
        assert not self.make(2.0).is_extreme
        assert self.make(-3.0).is_extreme

    @pytest.mark.parametrize("z,label", [
        (3.5, "Extremely High"),
        (-3.5, "Extremely Low"),
        (2.4, "Significantly High"),
        (-2.4, "Significantly Low"),
        (1.2, "Above Average"),
        (-1.2, "Below Average"),
        (0.3, "Normal Range"),
    ])
    def test_description(self, z, label):
        assert self.make(z).description == label

    def test_formatted(self):
        assert self.make(1.5).formatted == "+1.5σ"
        assert self.make(-0.3).formatted == "-0.3σ"

    def test_percentile(self):
        assert self.make(0.0).percentile == pytest.approx(50.0)
        assert self.make(2.0).percentile == pytest.approx(97.72, abs=0.01)

    def test_rarity(self):
        assert self.make(2.0).rarity == 21
        assert self.make(0.0).rarity == 1


class TestSDBands:
    def test_symmetric(self):
        bands = sd_bands(10.0, 2.0)
        assert bands.plus_1_sd == 12.0
        assert bands.minus_3_sd == 4.0
        assert bands.plus_3_sd - bands.mean == bands.mean - bands.minus_3_sd

    def test_from_values(self):
        bands = sd_bands_from([1.0, 2.0, 3.0])
        assert bands is not None
        assert bands.mean == pytest.approx(2.0)
        assert bands.plus_1_sd == pytest.approx(3.0)

    def test_from_values_needs_two_points(self):
        assert sd_bands_from([1.0]) is None

    def test_from_values_zero_sd(self):
        assert sd_bands_from([4.0, 4.0, 4.0]) is None

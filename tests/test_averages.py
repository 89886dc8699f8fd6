"""
Unit Tests for Average Definitions
==================================
"""

import numpy as np
import pytest

from pivotlab.core.averages import AverageDefinition, AverageSet, AverageType, rolling_average
from pivotlab.core.exceptions import ConfigurationError


def sma(period, *smooths):
    return AverageDefinition(AverageType.SMA, period, smooths or (1,))


class TestAverageSetValidation:

    def test_valid_set(self, averages):
        assert len(averages) == 3
        assert averages.max_period == 8

    def test_periods_must_ascend(self):
        with pytest.raises(ConfigurationError):
            AverageSet([sma(10), sma(5)])

    def test_equal_periods_rejected(self):
        with pytest.raises(ConfigurationError):
            AverageSet([sma(5), sma(5)])

    def test_period_must_be_multiple(self):
        with pytest.raises(ConfigurationError, match="multiple"):
            AverageSet([sma(5), sma(12)])

    def test_smooths_required(self):
        with pytest.raises(ConfigurationError):
            AverageDefinition(AverageType.SMA, 5, ())

    def test_non_positive_values_rejected(self):
        with pytest.raises(ConfigurationError):
            AverageDefinition(AverageType.SMA, 0, (3,))
        with pytest.raises(ConfigurationError):
            AverageDefinition(AverageType.SMA, 5, (3, 0))

    def test_empty_set_rejected(self):
        with pytest.raises(ConfigurationError):
            AverageSet([])


class TestAverageSetStructure:

    def test_candle_sizes_and_counts(self, averages):
        # size(k) = 1 or period(k-1); count(k) = period(k) / size(k) * (N - k)
        assert averages.candle_levels() == [(1, 6), (2, 4), (4, 2)]
        assert averages.total_candles() == 12

    def test_structural_equality(self):
        first = AverageSet([sma(5, 3), sma(25, 3)])
        second = AverageSet([sma(5, 3), sma(25, 3)])
        different = AverageSet([sma(5, 3), sma(25, 5)])
        assert first == second
        assert first != different

    def test_json_round_trip(self, averages):
        assert AverageSet.from_json(averages.to_json()) == averages

    def test_column_names(self, averages):
        assert averages.average_names() == ["average_2", "average_4", "average_8"]
        assert averages.spread_names("raw") == ["spread_2_4_raw", "spread_2_8_raw", "spread_4_8_raw"]
        assert averages.raw_feature_names()[:3] == ["slope_2_raw", "slope_4_raw", "slope_8_raw"]

    def test_pattern_width(self, averages):
        names = averages.pattern_input_names()
        # 3 slopes + 3 spreads + 12 windows * 5 features
        assert len(names) == 66
        assert names[6] == "candle_1_0_range"
        assert names[-1] == "candle_4_1_sign"


class TestAverageComputation:

    def test_sma_uses_available_values_at_start(self):
        result = rolling_average(np.array([1.0, 2.0, 3.0, 4.0, 5.0]), 2, AverageType.SMA)
        np.testing.assert_allclose(result, [1.0, 1.5, 2.5, 3.5, 4.5])

    def test_wma_weights_newest_highest(self):
        result = rolling_average(np.array([1.0, 2.0, 3.0]), 2, AverageType.WMA)
        np.testing.assert_allclose(result, [1.0, 5.0 / 3.0, 8.0 / 3.0])

    def test_smoothing_applies_in_order(self):
        values = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
        definition = AverageDefinition(AverageType.SMA, 2, (2,))
        raw = rolling_average(values, 2, AverageType.SMA)
        expected = rolling_average(raw, 2, AverageType.SMA)
        np.testing.assert_allclose(definition.compute(values), expected)

    def test_constant_series_is_unchanged(self):
        values = np.full(20, 7.0)
        definition = AverageDefinition(AverageType.WMA, 5, (3, 2))
        np.testing.assert_allclose(definition.compute(values), values)

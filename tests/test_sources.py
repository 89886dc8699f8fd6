"""
Unit Tests for Source Values
============================
"""

import numpy as np
import pandas as pd

from pivotlab.statistics.sources import SourceCalculator


class TestSourceCalculator:

    def test_columns(self, averages, ohlc_frame):
        frame = SourceCalculator(averages).compute(ohlc_frame)

        expected = ["time"] + averages.average_names() + averages.raw_feature_names()
        assert sorted(frame.columns) == sorted(expected)
        assert len(frame) == len(ohlc_frame)

    def test_slope_is_relative_change(self, averages, ohlc_frame):
        frame = SourceCalculator(averages).compute(ohlc_frame)
        average = frame["average_2"].to_numpy()

        assert frame["slope_2_raw"].iloc[0] == 0.0
        np.testing.assert_allclose(frame["slope_2_raw"].to_numpy()[1:], average[1:] / average[:-1] - 1)

    def test_spread_is_fast_over_slow(self, averages, ohlc_frame):
        frame = SourceCalculator(averages).compute(ohlc_frame)
        np.testing.assert_allclose(
            frame["spread_2_8_raw"], frame["average_2"] / frame["average_8"] - 1
        )

    def test_zero_divisor_gives_zero(self, averages):
        bars = pd.DataFrame({"time": np.arange(5), "close": [0.0, 0.0, 1.0, 2.0, 3.0]})
        frame = SourceCalculator(averages).compute(bars)

        assert frame["slope_2_raw"].iloc[1] == 0.0
        assert frame["spread_2_4_raw"].iloc[0] == 0.0
        assert np.isfinite(frame.drop(columns="time").to_numpy()).all()

    def test_flat_series_has_zero_features(self, averages):
        bars = pd.DataFrame({"time": np.arange(30), "close": np.full(30, 50.0)})
        frame = SourceCalculator(averages).compute(bars)
        assert (frame[averages.raw_feature_names()].to_numpy() == 0).all()

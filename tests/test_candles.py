"""
Unit Tests for Candle Aggregation
=================================
"""

import threading

import numpy as np
import pytest

from pivotlab.core.candles import shape_features, weighted_close
from pivotlab.statistics.candles import CandleAggregator, SizeWindows
from pivotlab.statistics.ranges import Normalizer


def find_row(rows, size, order):
    return next(row for row in rows if row["size"] == size and row["norder"] == order)


# =============================================================================
# SHAPE FEATURES
# =============================================================================

class TestShapeFeatures:

    def test_bullish_candle(self):
        features = shape_features(
            np.array([1.0]), np.array([3.0]), np.array([0.0]), np.array([2.0]), np.array([1.4])
        )
        assert features["range"][0] == pytest.approx(3.0)
        assert features["body_factor"][0] == pytest.approx(1 / 3)
        assert features["body_pos"][0] == pytest.approx(0.5)
        assert features["sign"][0] == pytest.approx(1 / 3)
        # wcp = (3 + 0 + 2 * 2) / 4 = 1.75
        assert features["rel_pos"][0] == pytest.approx(0.25)

    def test_bearish_sign_is_negative(self):
        features = shape_features(
            np.array([2.0]), np.array([3.0]), np.array([0.0]), np.array([1.0]), np.array([np.nan])
        )
        assert features["sign"][0] == pytest.approx(-1 / 3)
        assert features["rel_pos"][0] == 0.0

    def test_zero_range_candle(self):
        flat = np.array([5.0])
        features = shape_features(flat, flat, flat, flat, np.array([5.0]))
        assert features["range"][0] == 0.0
        assert features["body_factor"][0] == 0.0
        assert features["body_pos"][0] == 0.0
        assert features["sign"][0] == 0.0


# =============================================================================
# WINDOWS
# =============================================================================

class TestSizeWindows:

    def test_window_bounds(self, ohlc_frame):
        windows = SizeWindows(ohlc_frame, size=4)
        start, end = windows.bounds(np.array([10]), order=1)
        assert (start[0], end[0]) == (3, 6)

    def test_window_clamped_at_series_start(self, ohlc_frame):
        windows = SizeWindows(ohlc_frame, size=4)
        start, end = windows.bounds(np.array([2, 5]), order=1)
        np.testing.assert_array_equal(start, [0, 0])
        np.testing.assert_array_equal(end, [2, 3])


class TestCandleAggregator:

    def test_window_reproduces_ohlc(self, averages, ohlc_frame):
        aggregator = CandleAggregator(averages)
        anchor, rows = next(aggregator.iter_anchors(ohlc_frame, start_index=50))
        row = find_row(rows, size=4, order=1)

        # order 1 of size 4 at anchor 50 covers bars 43..46
        window = ohlc_frame.iloc[43:47]
        assert anchor == 50
        assert row["time"] == ohlc_frame["time"].iloc[50]
        assert row["candle_time"] == ohlc_frame["time"].iloc[43]
        assert row["open"] == pytest.approx(window["open"].iloc[0])
        assert row["high"] == pytest.approx(window["high"].max())
        assert row["low"] == pytest.approx(window["low"].min())
        assert row["close"] == pytest.approx(window["close"].iloc[-1])

    def test_rel_pos_uses_adjacent_older_window(self, averages, ohlc_frame):
        aggregator = CandleAggregator(averages)
        _, rows = next(aggregator.iter_anchors(ohlc_frame, start_index=50))
        row = find_row(rows, size=4, order=1)

        older = ohlc_frame.iloc[39:43]
        wcp_previous = weighted_close(older["high"].max(), older["low"].min(), older["close"].iloc[-1])
        wcp = weighted_close(row["high"], row["low"], row["close"])
        assert row["rel_pos_raw"] == pytest.approx(wcp / wcp_previous - 1)

    def test_rows_per_anchor(self, averages, ohlc_frame):
        aggregator = CandleAggregator(averages, chunk_size=16)
        counts = [len(rows) for _, rows in aggregator.iter_anchors(ohlc_frame)]

        assert len(counts) == len(ohlc_frame)
        assert set(counts) == {averages.total_candles()}

    def test_first_bar_windows_are_the_bar_itself(self, averages, ohlc_frame):
        _, rows = next(CandleAggregator(averages).iter_anchors(ohlc_frame))
        first = ohlc_frame.iloc[0]

        for row in rows:
            assert row["candle_time"] == first["time"]
            assert row["open"] == pytest.approx(first["open"])
            assert row["close"] == pytest.approx(first["close"])
            assert row["rel_pos_raw"] == 0.0

    def test_normalized_features(self, averages, ohlc_frame):
        normalizers = {"candle_1_range": Normalizer(data_high=2.0, data_low=0.0)}
        _, rows = next(CandleAggregator(averages, normalizers).iter_anchors(ohlc_frame, 10))
        row = find_row(rows, size=1, order=0)

        assert row["range_nrm"] == pytest.approx(row["range_raw"] - 1.0)
        assert np.isnan(row["sign_nrm"])

    def test_generate_from_start_index(self, averages, ohlc_frame):
        anchors = []
        result = CandleAggregator(averages).generate(
            ohlc_frame, start_index=100, on_anchor=lambda anchor, rows: anchors.append(anchor)
        )

        assert anchors == list(range(100, len(ohlc_frame)))
        assert result.processed == len(ohlc_frame) - 100
        assert result.rows == result.processed * averages.total_candles()
        assert result.last_time == ohlc_frame["time"].iloc[-1]

    def test_generate_cancelled(self, averages, ohlc_frame):
        cancel = threading.Event()

        def on_anchor(anchor, rows):
            if anchor == 9:
                cancel.set()

        result = CandleAggregator(averages).generate(ohlc_frame, cancel=cancel, on_anchor=on_anchor)

        assert result.cancelled
        assert result.processed == 10
        assert result.last_time == ohlc_frame["time"].iloc[9]

"""
Candle Aggregation
==================
Multi-resolution OHLC aggregates per anchor bar.

For average index k the window size is 1 (k == 0) or the period of the
previous average, and count(k) consecutive windows are built backward from
each anchor bar:

    order j covers bars [anchor - (j+1)*size + 1, anchor - j*size]

Windows reaching before the first bar start at bar 0 and keep at most
`size` bars. Each window carries OHLC plus five shape features, raw and
normalized.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from pivotlab.core.averages import AverageSet
from pivotlab.core.candles import CANDLE_FEATURES, candle_range_name, shape_features


class SizeWindows:
    """Window arithmetic over one series for one window size."""

    def __init__(self, bars: pd.DataFrame, size: int):
        self.size = size
        self.time = bars["time"].to_numpy()
        self.open = bars["open"].to_numpy(dtype=float)
        self.close = bars["close"].to_numpy(dtype=float)
        # High/low over the `size` bars ending at each index (fewer at the start)
        self.high = pd.Series(bars["high"].to_numpy(dtype=float)).rolling(size, min_periods=1).max().to_numpy()
        self.low = pd.Series(bars["low"].to_numpy(dtype=float)).rolling(size, min_periods=1).min().to_numpy()

    def bounds(self, anchors: np.ndarray, order: int) -> Tuple[np.ndarray, np.ndarray]:
        start = np.maximum(0, anchors - (order + 1) * self.size + 1)
        end = np.minimum(start + self.size - 1, anchors)
        return start, end

    def windows(self, anchors: np.ndarray, order: int) -> Dict[str, np.ndarray]:
        """OHLC, raw shape features and first bar time of window `order` for each anchor."""
        start, end = self.bounds(anchors, order)
        open_ = self.open[start]
        high = self.high[end]
        low = self.low[end]
        close = self.close[end]

        # Adjacent older window ends right before this one starts
        previous_end = np.maximum(start - 1, 0)
        wcp_previous = (self.high[previous_end] + self.low[previous_end] + 2 * self.close[previous_end]) / 4
        wcp_previous = np.where(start > 0, wcp_previous, np.nan)

        window = {
            "candle_time": self.time[start],
            "open": open_,
            "high": high,
            "low": low,
            "close": close,
        }
        window.update(shape_features(open_, high, low, close, wcp_previous))
        return window


@dataclass
class CandleResult:
    rows: int
    processed: int
    last_time: Optional[int]
    cancelled: bool = False


class CandleAggregator:
    """
    Builds the candle rows of every anchor bar.

    Usage:
        aggregator = CandleAggregator(averages, normalizers)
        result = aggregator.generate(bars, start_index=0, on_anchor=write_rows)
    """

    def __init__(
        self,
        averages: AverageSet,
        normalizers: Optional[Mapping[str, Any]] = None,
        chunk_size: int = 1000
    ):
        self.averages = averages
        self.normalizers = dict(normalizers or {})
        self.chunk_size = chunk_size

    def order_zero_features(self, bars: pd.DataFrame, size: int) -> Dict[str, np.ndarray]:
        """Raw shape features of the window of `size` bars ending at every bar."""
        windows = SizeWindows(bars, size)
        window = windows.windows(np.arange(len(bars)), 0)
        return {feature: window[feature] for feature in CANDLE_FEATURES}

    def _normalize(self, size: int, feature: str, values: np.ndarray) -> np.ndarray:
        normalizer = self.normalizers.get(candle_range_name(size, feature))
        if normalizer is None:
            return np.full(len(values), np.nan)
        return normalizer.normalize(values)

    def iter_anchors(self, bars: pd.DataFrame, start_index: int = 0) -> Iterator[Tuple[int, List[Dict[str, Any]]]]:
        """Yield (anchor index, candle rows) for every bar from `start_index`."""
        n = len(bars)
        levels = self.averages.candle_levels()
        size_windows = {size: SizeWindows(bars, size) for size in sorted({size for size, _ in levels})}
        times = bars["time"].to_numpy()

        for chunk_start in range(start_index, n, self.chunk_size):
            anchors = np.arange(chunk_start, min(chunk_start + self.chunk_size, n))

            # (size, order) -> column arrays over the chunk
            blocks = []
            for size, count in levels:
                for order in range(count):
                    window = size_windows[size].windows(anchors, order)
                    for feature in CANDLE_FEATURES:
                        raw = window.pop(feature)
                        window[f"{feature}_raw"] = raw
                        window[f"{feature}_nrm"] = self._normalize(size, feature, raw)
                    blocks.append((size, order, window))

            for position, anchor in enumerate(anchors):
                rows = []
                for size, order, window in blocks:
                    row = {"time": int(times[anchor]), "size": size, "norder": order}
                    row.update({name: values[position] for name, values in window.items()})
                    rows.append(row)
                yield int(anchor), rows

    def generate(
        self,
        bars: pd.DataFrame,
        start_index: int = 0,
        cancel: Optional[threading.Event] = None,
        on_anchor: Optional[Callable[[int, List[Dict[str, Any]]], None]] = None
    ) -> CandleResult:
        """
        Produce candle rows for bars from `start_index`.

        Args:
            bars: Full bar series (earlier bars feed the windows)
            start_index: First anchor to produce
            cancel: Checked before each anchor
            on_anchor: Receives (anchor index, rows) for each anchor

        Returns:
            CandleResult with the time of the last completed anchor
        """
        result = CandleResult(rows=0, processed=0, last_time=None)
        times = bars["time"].to_numpy()

        for anchor, rows in self.iter_anchors(bars, start_index):
            if cancel is not None and cancel.is_set():
                result.cancelled = True
                break
            if on_anchor is not None:
                on_anchor(anchor, rows)
            result.rows += len(rows)
            result.processed += 1
            result.last_time = int(times[anchor])

        return result

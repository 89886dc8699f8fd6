"""
Source Values
=============
Smoothed averages of the closing price, their slopes and the spreads
between every ordered pair of averages.
"""

from typing import Dict

import numpy as np
import pandas as pd

from pivotlab.core.averages import AverageSet, spread_name


def _relative_change(current: np.ndarray, reference: np.ndarray) -> np.ndarray:
    """current / reference - 1, 0 where reference is 0."""
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.where(reference != 0, current / reference - 1, 0.0)


class SourceCalculator:
    """
    Computes the average, slope and spread columns of the bar table.

    Usage:
        calculator = SourceCalculator(averages)
        frame = calculator.compute(bars)  # time, average_*, slope_*_raw, spread_*_raw
    """

    def __init__(self, averages: AverageSet):
        self.averages = averages

    def compute(self, bars: pd.DataFrame, price: str = "close") -> pd.DataFrame:
        values = bars[price].to_numpy(dtype=float)
        columns: Dict[str, np.ndarray] = {"time": bars["time"].to_numpy()}

        series: Dict[int, np.ndarray] = {}
        for avg in self.averages:
            average = avg.compute(values)
            series[avg.period] = average
            columns[avg.name] = average

            # First bar compares with itself
            previous = np.concatenate([average[:1], average[:-1]])
            columns[avg.slope_name("raw")] = _relative_change(average, previous)

        for fast, slow in self.averages.pairs():
            columns[spread_name(fast, slow, "raw")] = _relative_change(series[fast.period], series[slow.period])

        return pd.DataFrame(columns)

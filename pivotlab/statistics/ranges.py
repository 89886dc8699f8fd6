"""
Range Statistics
================
Mean, population standard deviation, minimum and maximum per raw feature,
and the linear normalizer that maps [mean - 2*std, mean + 2*std] onto
[-1, +1].
"""

from dataclasses import asdict, dataclass
from typing import Dict, List

import numpy as np
import pandas as pd
from loguru import logger

from pivotlab.core.averages import AverageSet
from pivotlab.core.candles import CANDLE_FEATURES, candle_range_name
from pivotlab.statistics.candles import CandleAggregator


@dataclass(frozen=True)
class Normalizer:
    """
    Linear rescaling from a data range to an output range.

    Values outside the data range extrapolate past the output bounds. A
    zero-width data range maps everything to the output midpoint.
    """
    data_high: float
    data_low: float
    out_high: float = 1.0
    out_low: float = -1.0

    def normalize(self, values):
        values = np.asarray(values, dtype=float)
        width = self.data_high - self.data_low
        if width == 0:
            return np.full(values.shape, (self.out_high + self.out_low) / 2)
        return self.out_low + (values - self.data_low) * (self.out_high - self.out_low) / width


@dataclass
class RangeStat:
    name: str
    mean: float
    std: float
    minimum: float
    maximum: float

    @classmethod
    def from_values(cls, name: str, values) -> "RangeStat":
        values = np.asarray(values, dtype=float)
        values = values[~np.isnan(values)]
        if len(values) == 0:
            return cls(name, 0.0, 0.0, 0.0, 0.0)
        return cls(
            name=name,
            mean=float(values.mean()),
            std=float(values.std(ddof=0)),
            minimum=float(values.min()),
            maximum=float(values.max()),
        )

    @classmethod
    def from_row(cls, row: Dict) -> "RangeStat":
        return cls(
            name=row["name"],
            mean=float(row["mean"]),
            std=float(row["std"]),
            minimum=float(row["minimum"]),
            maximum=float(row["maximum"]),
        )

    def to_row(self) -> Dict:
        return asdict(self)

    def normalizer(self) -> Normalizer:
        return Normalizer(data_high=self.mean + 2 * self.std, data_low=self.mean - 2 * self.std)


def compute_bar_ranges(averages: AverageSet, sources: pd.DataFrame) -> List[RangeStat]:
    """Ranges of every raw slope and spread column."""
    return [RangeStat.from_values(name, sources[name]) for name in averages.raw_feature_names()]


def compute_candle_ranges(averages: AverageSet, bars: pd.DataFrame) -> List[RangeStat]:
    """Ranges of every shape feature per candle size, over the windows ending at each bar."""
    aggregator = CandleAggregator(averages)
    stats = []
    for size in sorted({size for size, _ in averages.candle_levels()}):
        features = aggregator.order_zero_features(bars, size)
        for feature in CANDLE_FEATURES:
            stats.append(RangeStat.from_values(candle_range_name(size, feature), features[feature]))
    return stats


def compute_ranges(averages: AverageSet, bars: pd.DataFrame) -> Dict[str, RangeStat]:
    """
    All ranges of an average set.

    Args:
        averages: Average set defining the features
        bars: Bar series with OHLC and the raw slope/spread columns

    Returns:
        Dict of feature name to RangeStat
    """
    stats = compute_bar_ranges(averages, bars) + compute_candle_ranges(averages, bars)
    logger.debug(f"Computed {len(stats)} ranges over {len(bars)} bars")
    return {stat.name: stat for stat in stats}


def build_normalizers(ranges: Dict[str, RangeStat]) -> Dict[str, Normalizer]:
    return {name: stat.normalizer() for name, stat in ranges.items()}

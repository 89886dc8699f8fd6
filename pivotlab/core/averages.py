"""
Average Definitions
===================
Smoothed moving averages used as movement descriptors, and the validated
ordered set of averages that shapes every derived table.

The set drives:
- the average, slope and spread columns of the bar table
- the candle window sizes and counts of the aggregator
- the width of the pattern rows
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Sequence, Tuple

import numpy as np
import pandas as pd

from pivotlab.core.candles import CANDLE_FEATURES, candle_feature_name, candle_range_name
from pivotlab.core.exceptions import ConfigurationError


class AverageType(str, Enum):
    """Supported average types."""
    SMA = "SMA"
    WMA = "WMA"


def _weighted_mean(window: np.ndarray) -> float:
    """Linear weights 1..k, oldest value weight 1."""
    weights = np.arange(1, len(window) + 1, dtype=float)
    return float(np.dot(window, weights) / weights.sum())


def rolling_average(values: np.ndarray, period: int, kind: AverageType) -> np.ndarray:
    """
    Average of the last `period` values at every position.

    At the start of the series fewer values are available and the average
    uses all of them.
    """
    series = pd.Series(np.asarray(values, dtype=float))
    rolling = series.rolling(period, min_periods=1)
    if kind == AverageType.SMA:
        return rolling.mean().to_numpy()
    return rolling.apply(_weighted_mean, raw=True).to_numpy()


@dataclass(frozen=True)
class AverageDefinition:
    """
    A smoothed average.

    The raw average of `period` values is smoothed successively by each
    value in `smooths`, averaging the previous output with the same type.
    """
    type: AverageType
    period: int
    smooths: Tuple[int, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "type", AverageType(self.type))
        object.__setattr__(self, "smooths", tuple(int(s) for s in self.smooths))
        if self.period <= 0:
            raise ConfigurationError(f"Period must be greater than zero: {self.period}")
        if not self.smooths:
            raise ConfigurationError(f"Average {self.period} requires at least one smooth value")
        for smooth in self.smooths:
            if smooth <= 0:
                raise ConfigurationError(f"Smooth values must be greater than zero: {smooth}")

    @property
    def name(self) -> str:
        return f"average_{self.period}"

    def slope_name(self, suffix: str) -> str:
        return f"slope_{self.period}_{suffix}"

    def compute(self, values: np.ndarray) -> np.ndarray:
        """Return the smoothed average series for `values`."""
        average = rolling_average(values, self.period, self.type)
        for smooth in self.smooths:
            average = rolling_average(average, smooth, self.type)
        return average

    def to_dict(self) -> Dict:
        return {"type": self.type.value, "period": self.period, "smooths": list(self.smooths)}

    def __str__(self) -> str:
        smooths = ", ".join(str(s) for s in self.smooths)
        return f"{self.type.value}({self.period}) ({smooths})"


def spread_name(fast: AverageDefinition, slow: AverageDefinition, suffix: str) -> str:
    return f"spread_{fast.period}_{slow.period}_{suffix}"


class AverageSet:
    """
    Ordered, validated list of averages.

    Periods must be strictly ascending and each one an exact multiple of its
    predecessor. Two sets are equal when their ordered definitions are equal.

    Usage:
        averages = AverageSet([
            AverageDefinition(AverageType.SMA, 5, (3,)),
            AverageDefinition(AverageType.SMA, 25, (3,)),
        ])
        averages.candle_size(1)   # 5
        averages.candle_count(1)  # (25 / 5) * 1 = 5
    """

    def __init__(self, averages: Sequence[AverageDefinition]):
        self._averages: List[AverageDefinition] = list(averages)
        self._validate()

    def _validate(self) -> None:
        if not self._averages:
            raise ConfigurationError("At least one average is required")
        for previous, current in zip(self._averages, self._averages[1:]):
            if current.period <= previous.period:
                raise ConfigurationError(
                    f"Periods must be strictly ascending: {previous.period} -> {current.period}"
                )
            if current.period % previous.period != 0:
                raise ConfigurationError(
                    f"Period {current.period} is not a multiple of {previous.period}"
                )

    def __len__(self) -> int:
        return len(self._averages)

    def __iter__(self) -> Iterator[AverageDefinition]:
        return iter(self._averages)

    def __getitem__(self, index: int) -> AverageDefinition:
        return self._averages[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, AverageSet):
            return NotImplemented
        return self._averages == other._averages

    def __hash__(self) -> int:
        return hash(tuple(self._averages))

    def __repr__(self) -> str:
        return f"AverageSet([{'; '.join(str(a) for a in self._averages)}])"

    @property
    def max_period(self) -> int:
        return self._averages[-1].period

    def pairs(self) -> Iterator[Tuple[AverageDefinition, AverageDefinition]]:
        """Ordered (fast, slow) pairs."""
        for i, fast in enumerate(self._averages):
            for slow in self._averages[i + 1:]:
                yield fast, slow

    # -------------------------------------------------------------------------
    # Candle windows
    # -------------------------------------------------------------------------

    def candle_size(self, index: int) -> int:
        """Window length of the candles derived from average `index`."""
        return 1 if index == 0 else self._averages[index - 1].period

    def candle_count(self, index: int) -> int:
        """Number of windows of size `candle_size(index)` per anchor bar."""
        size = self.candle_size(index)
        return (self._averages[index].period // size) * (len(self._averages) - index)

    def candle_levels(self) -> List[Tuple[int, int]]:
        """(size, count) per average, in order."""
        return [(self.candle_size(i), self.candle_count(i)) for i in range(len(self._averages))]

    def total_candles(self) -> int:
        return sum(count for _, count in self.candle_levels())

    # -------------------------------------------------------------------------
    # Column names
    # -------------------------------------------------------------------------

    def average_names(self) -> List[str]:
        return [avg.name for avg in self._averages]

    def slope_names(self, suffix: str) -> List[str]:
        return [avg.slope_name(suffix) for avg in self._averages]

    def spread_names(self, suffix: str) -> List[str]:
        return [spread_name(fast, slow, suffix) for fast, slow in self.pairs()]

    def raw_feature_names(self) -> List[str]:
        """Bar columns that get a normalized counterpart."""
        return self.slope_names("raw") + self.spread_names("raw")

    def candle_range_names(self) -> List[str]:
        names = []
        for size in sorted({size for size, _ in self.candle_levels()}):
            names.extend(candle_range_name(size, feature) for feature in CANDLE_FEATURES)
        return names

    def candle_input_names(self) -> List[str]:
        names = []
        for size, count in self.candle_levels():
            for order in range(count):
                names.extend(candle_feature_name(size, order, feature) for feature in CANDLE_FEATURES)
        return names

    def pattern_input_names(self) -> List[str]:
        """Input columns of a pattern row, in export order."""
        slopes = [f"slope_{avg.period}" for avg in self._averages]
        spreads = [f"spread_{fast.period}_{slow.period}" for fast, slow in self.pairs()]
        return slopes + spreads + self.candle_input_names()

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_json(self) -> str:
        return json.dumps([avg.to_dict() for avg in self._averages])

    @classmethod
    def from_json(cls, text: str) -> "AverageSet":
        return cls.from_dicts(json.loads(text))

    @classmethod
    def from_dicts(cls, items: Sequence[Dict]) -> "AverageSet":
        return cls([
            AverageDefinition(
                type=AverageType(item["type"]),
                period=int(item["period"]),
                smooths=tuple(item.get("smooths") or ()),
            )
            for item in items
        ])

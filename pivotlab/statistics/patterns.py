"""
Pattern Assembly
================
Merges, per bar time, the labels, the normalized slopes and spreads of the
bar row and the normalized shape features of every candle window into one
fixed-width pattern row.

Candle rows arrive ordered by time; a time group is complete when the time
changes or the stream ends.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from pivotlab.core.averages import AverageSet
from pivotlab.core.candles import CANDLE_FEATURES, candle_feature_name
from pivotlab.core.exceptions import MissingBarError


def group_by_time(rows: Iterable[Mapping[str, Any]]) -> Iterator[Tuple[int, List[Mapping[str, Any]]]]:
    """Yield (time, rows) for consecutive rows sharing a time."""
    current_time = None
    group: List[Mapping[str, Any]] = []
    for row in rows:
        time = int(row["time"])
        if current_time is not None and time != current_time:
            yield current_time, group
            group = []
        current_time = time
        group.append(row)
    if group:
        yield current_time, group


@dataclass
class PatternResult:
    patterns: int
    last_time: Optional[int]
    cancelled: bool = False


class PatternAssembler:
    """
    Builds pattern rows from bar and candle rows.

    Usage:
        assembler = PatternAssembler(averages, bars)
        result = assembler.generate(store.iter_candles(after, until), on_pattern=write_row)
    """

    def __init__(self, averages: AverageSet, bars: pd.DataFrame):
        self.averages = averages
        self.input_names = averages.pattern_input_names()
        self._positions = {int(t): i for i, t in enumerate(bars["time"].to_numpy())}

        self._bar_columns: Dict[str, np.ndarray] = {
            "label": bars["label"].to_numpy(),
            "label_edit": bars["label_edit"].to_numpy(),
        }
        for avg in averages:
            self._bar_columns[f"slope_{avg.period}"] = bars[avg.slope_name("nrm")].to_numpy(dtype=float)
        for fast, slow in averages.pairs():
            name = f"spread_{fast.period}_{slow.period}"
            self._bar_columns[name] = bars[f"{name}_nrm"].to_numpy(dtype=float)

    def assemble(self, time: int, candles: List[Mapping[str, Any]]) -> Dict[str, Any]:
        """One pattern row for `time`."""
        position = self._positions.get(int(time))
        if position is None:
            raise MissingBarError(time)

        pattern: Dict[str, Any] = {"time": int(time)}
        pattern.update({name: values[position] for name, values in self._bar_columns.items()})
        for name in self.input_names:
            pattern.setdefault(name, None)

        for candle in candles:
            size, order = int(candle["size"]), int(candle["norder"])
            for feature in CANDLE_FEATURES:
                name = candle_feature_name(size, order, feature)
                if name in pattern:
                    pattern[name] = candle[f"{feature}_nrm"]

        return pattern

    def generate(
        self,
        candles: Iterable[Mapping[str, Any]],
        cancel: Optional[threading.Event] = None,
        on_pattern: Optional[Callable[[Dict[str, Any]], None]] = None
    ) -> PatternResult:
        """
        Assemble a pattern for every complete time group of `candles`.

        Raises:
            MissingBarError: A candle time has no bar row
        """
        result = PatternResult(patterns=0, last_time=None)
        for time, group in group_by_time(candles):
            if cancel is not None and cancel.is_set():
                result.cancelled = True
                break
            pattern = self.assemble(time, group)
            if on_pattern is not None:
                on_pattern(pattern)
            result.patterns += 1
            result.last_time = time
        return result

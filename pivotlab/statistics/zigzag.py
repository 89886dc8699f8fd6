"""
ZigZag Pivot Detection
======================
Sliding-window local extremum detection over the closing prices.

A bar is a top when every value within `bars_ahead` bars on both sides is
strictly lower, and a bottom when every value on both sides is greater or
equal. The backward window stops early after the previous confirmed pivot, and
two consecutive pivots never share sign.

Only bars with at least `bars_ahead` bars on each side can become pivots.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from pivotlab.core.exceptions import ConfigurationError, PivotStateError


@dataclass
class ZigZagResult:
    """Pivot (-1, 0, 1) and reference value per bar."""
    pivots: np.ndarray
    ref_values: np.ndarray
    processed: int
    cancelled: bool = False

    @property
    def pivot_indices(self) -> np.ndarray:
        return np.flatnonzero(self.pivots)

    @property
    def num_tops(self) -> int:
        return int((self.pivots == 1).sum())

    @property
    def num_bottoms(self) -> int:
        return int((self.pivots == -1).sum())


class ZigZagDetector:
    """
    Detects alternating tops and bottoms.

    Usage:
        detector = ZigZagDetector(bars_ahead=2)
        result = detector.detect(np.array([1, 2, 3, 2, 1, 2, 3, 4, 3, 2]))
        result.pivots  # [0, 0, 1, 0, -1, 0, 0, 1, 0, 0]
    """

    def __init__(self, bars_ahead: int):
        if bars_ahead <= 0:
            raise ConfigurationError(f"Invalid bars ahead {bars_ahead}")
        self.bars_ahead = bars_ahead

    def _scan_backward(self, values: np.ndarray, i: int, previous_index: Optional[int]):
        value = values[i]
        top, bottom = True, True
        stop = max(0, i - self.bars_ahead)
        for j in range(i - 1, stop - 1, -1):
            check = values[j]
            if check >= value:
                top = False
            if check < value:
                bottom = False
            if not top and not bottom:
                break
            # The previous pivot bar is compared, older bars are not
            if previous_index is not None and j == previous_index:
                break
        return top, bottom

    def _scan_forward(self, values: np.ndarray, i: int):
        value = values[i]
        top, bottom = True, True
        stop = min(len(values) - 1, i + self.bars_ahead)
        for j in range(i + 1, stop + 1):
            check = values[j]
            if check >= value:
                top = False
            if check < value:
                bottom = False
            if not top and not bottom:
                break
        return top, bottom

    def detect(
        self,
        values: np.ndarray,
        cancel: Optional[threading.Event] = None,
        on_bar: Optional[Callable[[int, int, float], None]] = None
    ) -> ZigZagResult:
        """
        Scan all bars once.

        Args:
            values: Evaluation value per bar, ascending time order
            cancel: Checked before each bar, the scan stops when set
            on_bar: Called with (index, pivot, ref_value) after each bar

        Returns:
            ZigZagResult; on cancellation only the first `processed` bars are final

        Raises:
            PivotStateError: A bar is both a top and a bottom
        """
        values = np.asarray(values, dtype=float)
        n = len(values)
        pivots = np.zeros(n, dtype=np.int8)
        ref_values = values.copy()

        previous_pivot = 0
        previous_index: Optional[int] = None
        processed = 0

        for i in range(n):
            if cancel is not None and cancel.is_set():
                return ZigZagResult(pivots, ref_values, processed, cancelled=True)

            if self.bars_ahead <= i <= n - 1 - self.bars_ahead:
                top_back, bottom_back = self._scan_backward(values, i, previous_index)
                top_fwd, bottom_fwd = self._scan_forward(values, i)

                top = top_back and top_fwd
                bottom = bottom_back and bottom_fwd
                if top and bottom:
                    raise PivotStateError(i, values[i])

                pivot = 1 if top else (-1 if bottom else 0)
                if pivot != 0 and pivot == previous_pivot:
                    pivot = 0
                if pivot != 0:
                    previous_pivot = pivot
                    previous_index = i
                pivots[i] = pivot

            processed = i + 1
            if on_bar is not None:
                on_bar(i, int(pivots[i]), float(ref_values[i]))

        return ZigZagResult(pivots, ref_values, processed)

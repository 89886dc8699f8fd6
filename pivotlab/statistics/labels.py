"""
Label Propagation
=================
Assigns a directional label to every bar from the confirmed pivots.

For each pivot, bars whose reference value lies within `percent` of the
move from the neighbouring pivot are a transition zone (label 0). The
remaining bars leading into a top are labeled +1, into a bottom -1.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from pivotlab.core.exceptions import ConfigurationError


@dataclass
class LabelResult:
    labels: np.ndarray
    label_set: np.ndarray
    processed: int
    cancelled: bool = False

    def counts(self) -> dict:
        labeled = self.labels[self.label_set]
        return {
            "up": int((labeled == 1).sum()),
            "down": int((labeled == -1).sum()),
            "flat": int((labeled == 0).sum()),
            "unset": int((~self.label_set).sum()),
        }


class LabelPropagator:
    """
    Threshold-based label propagation between pivots.

    Usage:
        propagator = LabelPropagator(percent_calc=10)
        result = propagator.propagate(pivots, ref_values)
    """

    def __init__(self, percent_calc: float):
        if percent_calc <= 0 or percent_calc >= 50:
            raise ConfigurationError(f"Invalid label percentage {percent_calc}, must be in (0, 50)")
        self.percent_calc = percent_calc

    def propagate(
        self,
        pivots: np.ndarray,
        ref_values: np.ndarray,
        cancel: Optional[threading.Event] = None,
        on_settled: Optional[Callable[[int, int, np.ndarray, np.ndarray], None]] = None
    ) -> LabelResult:
        """
        Label all bars.

        Args:
            pivots: Pivot per bar (-1, 0, 1)
            ref_values: Reference value per bar
            cancel: Checked before each bar, the pass stops when set
            on_settled: Called with (start, stop, labels, label_set) when bars
                [start, stop) can no longer change

        Returns:
            LabelResult
        """
        pivots = np.asarray(pivots)
        refs = np.asarray(ref_values, dtype=float)
        n = len(pivots)
        labels = np.zeros(n, dtype=np.int8)
        label_set = np.zeros(n, dtype=bool)

        pivot_indices = np.flatnonzero(pivots)
        settled = 0
        processed = 0
        cancelled = False

        for i in range(n):
            if cancel is not None and cancel.is_set():
                cancelled = True
                break
            processed = i + 1
            if pivots[i] == 0:
                continue

            labels[i] = 0
            label_set[i] = True

            position = np.searchsorted(pivot_indices, i)
            prev_index = int(pivot_indices[position - 1]) if position > 0 else 0
            next_index = int(pivot_indices[position + 1]) if position + 1 < len(pivot_indices) else n - 1

            # Toward the previous pivot
            eval_prev = abs(refs[i] - refs[prev_index]) * self.percent_calc / 100
            self._mark_zone(refs, labels, label_set, i, range(prev_index, i), eval_prev)
            if label_set[prev_index]:
                direction = 1 if pivots[i] == 1 else -1
                for j in range(prev_index, i):
                    if not label_set[j]:
                        labels[j] = direction
                        label_set[j] = True

            # Toward the next pivot
            eval_next = abs(refs[i] - refs[next_index]) * self.percent_calc / 100
            self._mark_zone(refs, labels, label_set, i, range(next_index, i, -1), eval_next)

            if on_settled is not None and i + 1 > settled:
                on_settled(settled, i + 1, labels, label_set)
                settled = i + 1

        if on_settled is not None and settled < n and not cancelled:
            # Bars already marked past the last pivot never change again
            on_settled(settled, n, labels, label_set)

        return LabelResult(labels, label_set, processed, cancelled)

    @staticmethod
    def _mark_zone(refs, labels, label_set, pivot_index, walk, threshold) -> None:
        """From the first unlabeled bar of `walk` within threshold of the pivot, zero all unlabeled bars."""
        value = refs[pivot_index]
        in_zone = False
        for j in walk:
            if label_set[j]:
                continue
            if in_zone or abs(value - refs[j]) <= threshold:
                in_zone = True
                labels[j] = 0
                label_set[j] = True

"""
Unit Tests for Label Propagation
================================
"""

import threading

import numpy as np
import pytest

from pivotlab.core.exceptions import ConfigurationError
from pivotlab.statistics.labels import LabelPropagator
from pivotlab.statistics.zigzag import ZigZagDetector


def pivots_at(n, **marks):
    pivots = np.zeros(n, dtype=np.int8)
    for index, sign in marks.items():
        pivots[int(index[1:])] = sign
    return pivots


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def swing():
    """Bottom at 0 (100), top at 6 (110), bottom at 12 (100)."""
    refs = np.array([100, 102, 104, 106, 108, 109.5, 110, 108.5, 106, 104, 102, 100.5, 100])
    pivots = pivots_at(len(refs), i0=-1, i6=1, i12=-1)
    return pivots, refs


# =============================================================================
# PROPAGATION
# =============================================================================

class TestLabelPropagation:

    def test_threshold_zones(self):
        refs = np.array([100, 100.5, 101, 102, 104, 101, 106, 108, 109, 109.5, 110])
        pivots = pivots_at(len(refs), i0=-1, i10=1)

        result = LabelPropagator(10).propagate(pivots, refs)

        # Pivot 0 zeros 1..5 from bar 5 (|100 - 101| <= 1) onward,
        # pivot 10 zeros 8..9 and fills 6..7 upward
        np.testing.assert_array_equal(result.labels, [0, 0, 0, 0, 0, 0, 1, 1, 0, 0, 0])
        assert result.label_set.all()

    def test_swing_directions(self, swing):
        pivots, refs = swing
        result = LabelPropagator(10).propagate(pivots, refs)

        np.testing.assert_array_equal(
            result.labels, [0, 1, 1, 1, 1, 0, 0, -1, -1, -1, -1, 0, 0]
        )
        assert result.counts() == {"up": 4, "down": 4, "flat": 5, "unset": 0}

    def test_pivots_are_flat(self, swing):
        pivots, refs = swing
        result = LabelPropagator(25).propagate(pivots, refs)
        assert (result.labels[np.flatnonzero(pivots)] == 0).all()

    def test_no_pivots_leaves_bars_unset(self):
        result = LabelPropagator(10).propagate(np.zeros(20), np.linspace(1, 2, 20))
        assert not result.label_set.any()
        assert result.counts()["unset"] == 20

    def test_coverage_between_pivots(self):
        np.random.seed(3)
        values = 100 + np.cumsum(np.random.randn(300))
        zigzag = ZigZagDetector(bars_ahead=6).detect(values)
        result = LabelPropagator(10).propagate(zigzag.pivots, zigzag.ref_values)

        first, last = zigzag.pivot_indices[0], zigzag.pivot_indices[-1]
        assert result.label_set[first:last + 1].all()

    def test_settled_ranges_are_contiguous(self, swing):
        pivots, refs = swing
        ranges = []

        def on_settled(start, stop, labels, label_set):
            ranges.append((start, stop))

        LabelPropagator(10).propagate(pivots, refs, on_settled=on_settled)

        assert ranges[0][0] == 0
        assert ranges[-1][1] == len(refs)
        assert all(a[1] == b[0] for a, b in zip(ranges, ranges[1:]))


class TestLabelParameters:

    @pytest.mark.parametrize("percent", [0, 50, 60, -5])
    def test_invalid_percent(self, percent):
        with pytest.raises(ConfigurationError):
            LabelPropagator(percent)

    def test_cancel_skips_trailing_settled_range(self, swing):
        pivots, refs = swing
        cancel = threading.Event()
        ranges = []

        def on_settled(start, stop, labels, label_set):
            ranges.append((start, stop))
            cancel.set()

        result = LabelPropagator(10).propagate(pivots, refs, cancel=cancel, on_settled=on_settled)

        assert result.cancelled
        assert result.processed == 1
        assert ranges == [(0, 1)]

    def test_cancel_before_start(self, swing):
        pivots, refs = swing
        cancel = threading.Event()
        cancel.set()

        result = LabelPropagator(10).propagate(pivots, refs, cancel=cancel)

        assert result.cancelled
        assert result.processed == 0
        assert not result.label_set.any()

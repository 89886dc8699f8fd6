"""Statistics passes: sources, zigzag pivots, labels, ranges, candles, patterns and export."""

from pivotlab.statistics.candles import CandleAggregator
from pivotlab.statistics.export import PatternExporter
from pivotlab.statistics.labels import LabelPropagator, LabelResult
from pivotlab.statistics.patterns import PatternAssembler
from pivotlab.statistics.ranges import Normalizer, RangeStat, compute_ranges
from pivotlab.statistics.sources import SourceCalculator
from pivotlab.statistics.zigzag import ZigZagDetector, ZigZagResult

__all__ = [
    "CandleAggregator",
    "LabelPropagator",
    "LabelResult",
    "Normalizer",
    "PatternAssembler",
    "PatternExporter",
    "RangeStat",
    "SourceCalculator",
    "ZigZagDetector",
    "ZigZagResult",
    "compute_ranges",
]

"""
Ranges Stage
============
Computes the feature ranges when the average set changed (or none are
stored yet), otherwise loads the stored ones.
"""

from typing import Optional

from loguru import logger

from pivotlab.statistics.ranges import RangeStat, compute_ranges
from .base import BaseStage, StageContext, StageOutput


class RangesStage(BaseStage):
    """Range statistics of slopes, spreads and candle features."""

    def __init__(self):
        super().__init__("Ranges")

    def execute(self, context: StageContext, watermark: Optional[int]) -> StageOutput:
        stored = context.store.load_ranges()
        expected = set(context.averages.raw_feature_names()) | set(context.averages.candle_range_names())

        if stored and not context.averages_changed and expected <= {row["name"] for row in stored}:
            context.ranges = {row["name"]: RangeStat.from_row(row) for row in stored}
            logger.info(f"Loaded {len(context.ranges)} stored ranges")
            return StageOutput(details={"recomputed": False, "ranges": len(context.ranges)})

        bars = context.store.load_bars()
        context.ranges = compute_ranges(context.averages, bars)
        context.store.save_ranges([stat.to_row() for stat in context.ranges.values()])
        # Stored normalized values no longer match the new ranges
        context.watermarks["normalize"] = None

        logger.info(f"Computed {len(context.ranges)} ranges over {len(bars)} bars")
        return StageOutput(
            processed=len(bars),
            details={"recomputed": True, "ranges": len(context.ranges)}
        )

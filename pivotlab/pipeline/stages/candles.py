"""
Candles Stage
=============
Appends the candle rows of every bar after the watermark.
"""

from typing import Optional

from loguru import logger

from pivotlab.statistics.candles import CandleAggregator
from pivotlab.statistics.ranges import build_normalizers
from .base import BaseStage, StageContext, StageOutput, first_index_after


class CandlesStage(BaseStage):
    """Multi-resolution candle aggregation."""

    key = "candles"

    def __init__(self):
        super().__init__("Candles")

    def execute(self, context: StageContext, watermark: Optional[int]) -> StageOutput:
        bars = context.store.load_bars(["open", "high", "low", "close"])
        start = first_index_after(bars["time"].to_numpy(), watermark)
        total = len(bars) - start
        if total == 0:
            logger.info("No new bars")
            return StageOutput(watermark=watermark)

        aggregator = CandleAggregator(context.averages, build_normalizers(context.ranges))

        with context.writer() as writer:
            def on_anchor(index, rows) -> None:
                for row in rows:
                    writer.insert("candles", row)
                context.report(self.name, index - start + 1, total)

            result = aggregator.generate(bars, start, context.cancel_event, on_anchor)

        logger.info(f"{result.rows} candles for {result.processed} bars")
        return StageOutput(
            watermark=result.last_time if result.last_time is not None else watermark,
            processed=result.processed,
            cancelled=result.cancelled,
            details={"candles": result.rows}
        )

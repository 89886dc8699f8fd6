"""
Sources Stage
=============
Writes averages, raw slopes and raw spreads of the bars after the
watermark.
"""

from typing import Optional

from loguru import logger

from pivotlab.statistics.sources import SourceCalculator
from .base import BaseStage, StageContext, StageOutput, first_index_after


class SourcesStage(BaseStage):
    """Average, slope and spread columns of new bars."""

    key = "sources"

    def __init__(self):
        super().__init__("Sources")

    def execute(self, context: StageContext, watermark: Optional[int]) -> StageOutput:
        bars = context.store.load_bars(["close"])
        frame = SourceCalculator(context.averages).compute(bars)

        times = frame["time"].to_numpy()
        start = first_index_after(times, watermark)
        total = len(frame) - start
        if total == 0:
            logger.info("No new bars")
            return StageOutput(watermark=watermark)

        columns = [c for c in frame.columns if c != "time"]
        values = frame[columns].to_numpy()

        output = StageOutput(watermark=watermark)
        with context.writer() as writer:
            for i in range(start, len(frame)):
                if context.cancelled:
                    output.cancelled = True
                    break
                row = {"time": int(times[i])}
                row.update(zip(columns, values[i]))
                writer.update(row)
                output.processed += 1
                output.watermark = int(times[i])
                context.report(self.name, output.processed, total)

        logger.info(f"Source values for {output.processed} of {total} new bars")
        return output

"""
Patterns Stage
==============
Assembles the pattern rows between the pattern watermark and the candle
watermark.
"""

from typing import Optional

from loguru import logger

from pivotlab.statistics.patterns import PatternAssembler
from .base import BaseStage, StageContext, StageOutput, first_index_after


class PatternsStage(BaseStage):
    """Pattern assembly, trailing the committed candles."""

    key = "patterns"

    def __init__(self):
        super().__init__("Patterns")

    def execute(self, context: StageContext, watermark: Optional[int]) -> StageOutput:
        candle_watermark = context.watermarks.get("candles")
        if candle_watermark is None or (watermark is not None and watermark >= candle_watermark):
            logger.info("No new candles")
            return StageOutput(watermark=watermark)

        averages = context.averages
        columns = ["label", "label_edit"] + averages.slope_names("nrm") + averages.spread_names("nrm")
        bars = context.store.load_bars(columns)
        times = bars["time"].to_numpy()
        total = first_index_after(times, candle_watermark) - first_index_after(times, watermark)

        assembler = PatternAssembler(averages, bars)
        done = 0

        with context.writer() as writer:
            def on_pattern(pattern) -> None:
                nonlocal done
                writer.insert("patterns", pattern)
                done += 1
                context.report(self.name, done, total)

            result = assembler.generate(
                context.store.iter_candles(watermark, candle_watermark),
                context.cancel_event,
                on_pattern
            )

        logger.info(f"{result.patterns} patterns assembled")
        return StageOutput(
            watermark=result.last_time if result.last_time is not None else watermark,
            processed=result.patterns,
            cancelled=result.cancelled
        )

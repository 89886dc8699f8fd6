"""
ZigZag Stage
============
Recomputes pivot and reference value of every bar.
"""

from typing import Optional

from loguru import logger

from pivotlab.statistics.zigzag import ZigZagDetector
from .base import BaseStage, StageContext, StageOutput


class ZigZagStage(BaseStage):
    """Pivot detection over the whole series."""

    def __init__(self):
        super().__init__("ZigZag Pivots")

    def execute(self, context: StageContext, watermark: Optional[int]) -> StageOutput:
        detector = ZigZagDetector(context.config.bars_ahead)
        bars = context.store.load_bars(["close"])
        times = bars["time"].to_numpy()
        total = len(bars)

        context.store.reset({"pivot": 0})
        context.store.copy_columns({"ref_value": "close"})

        with context.writer() as writer:
            def on_bar(index: int, pivot: int, ref_value: float) -> None:
                writer.update({"time": int(times[index]), "pivot": pivot, "ref_value": ref_value})
                context.report(self.name, index + 1, total)

            result = detector.detect(bars["close"].to_numpy(), context.cancel_event, on_bar)

        logger.info(f"Pivots: {result.num_tops} tops, {result.num_bottoms} bottoms over {result.processed} bars")
        return StageOutput(
            processed=result.processed,
            cancelled=result.cancelled,
            details={"tops": result.num_tops, "bottoms": result.num_bottoms}
        )

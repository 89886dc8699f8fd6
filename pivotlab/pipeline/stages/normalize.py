"""
Normalize Stage
===============
Writes the normalized slope and spread columns of the bars after the
watermark.
"""

from typing import Optional

import numpy as np
from loguru import logger

from .base import BaseStage, StageContext, StageOutput, first_index_after


class NormalizeStage(BaseStage):
    """`_nrm` columns of the bar table."""

    key = "normalize"

    def __init__(self):
        super().__init__("Normalize")

    def execute(self, context: StageContext, watermark: Optional[int]) -> StageOutput:
        raw_names = context.averages.raw_feature_names()
        bars = context.store.load_bars(raw_names)
        times = bars["time"].to_numpy()
        start = first_index_after(times, watermark)
        total = len(bars) - start
        if total == 0:
            logger.info("No bars to normalize")
            return StageOutput(watermark=watermark)

        names = [name[:-len("raw")] + "nrm" for name in raw_names]
        values = np.column_stack([
            context.ranges[raw].normalizer().normalize(bars[raw].to_numpy(dtype=float)[start:])
            for raw in raw_names
        ])

        output = StageOutput(watermark=watermark)
        with context.writer() as writer:
            for offset in range(total):
                if context.cancelled:
                    output.cancelled = True
                    break
                row = {"time": int(times[start + offset])}
                row.update(zip(names, values[offset]))
                writer.update(row)
                output.processed += 1
                output.watermark = row["time"]
                context.report(self.name, output.processed, total)

        return output

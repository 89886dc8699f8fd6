"""
Labels Stage
============
Recomputes label and label_set of every bar from the stored pivots.
"""

from typing import Optional

from loguru import logger

from pivotlab.statistics.labels import LabelPropagator
from .base import BaseStage, StageContext, StageOutput


class LabelsStage(BaseStage):
    """Label propagation over the whole series."""

    def __init__(self):
        super().__init__("Labels")

    def execute(self, context: StageContext, watermark: Optional[int]) -> StageOutput:
        propagator = LabelPropagator(context.config.percent_calc)
        bars = context.store.load_bars(["pivot", "ref_value"])
        times = bars["time"].to_numpy()
        total = len(bars)

        context.store.reset({"label": 0, "label_set": 0})

        with context.writer() as writer:
            def on_settled(start, stop, labels, label_set) -> None:
                # Unset bars keep the reset values
                for j in range(start, stop):
                    if label_set[j]:
                        writer.update({"time": int(times[j]), "label": int(labels[j]), "label_set": True})
                context.report(self.name, stop, total)

            result = propagator.propagate(
                bars["pivot"].fillna(0).to_numpy(),
                bars["ref_value"].to_numpy(),
                cancel=context.cancel_event,
                on_settled=on_settled
            )

        counts = result.counts()
        logger.info(
            f"Labels: {counts['up']} up, {counts['down']} down, {counts['flat']} flat, "
            f"{counts['unset']} unset"
        )
        return StageOutput(processed=result.processed, cancelled=result.cancelled, details=counts)

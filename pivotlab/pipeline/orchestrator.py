"""
Statistics Pipeline Orchestrator
================================
Chains the statistics passes of one instance.

Pipeline Flow:
1. Sources (averages, slopes, spreads)
2. ZigZag pivots
3. Labels
4. Ranges
5. Normalization
6. Candles
7. Patterns

Each stage starts only after the previous one committed. The run stops at
the first failed or cancelled stage. Watermarks are read from the store
before the run, threaded through the stages and persisted after each one.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from loguru import logger

from pivotlab.config.settings import PipelineSettings, get_settings
from pivotlab.config.statistics import StatisticsConfig
from pivotlab.data.store import SQLiteBarStore
from pivotlab.pipeline.stages import (
    BaseStage,
    CandlesStage,
    LabelsStage,
    NormalizeStage,
    PatternsStage,
    RangesStage,
    SourcesStage,
    StageContext,
    StageResult,
    ZigZagStage,
)
from pivotlab.pipeline.stages.base import ProgressCallback


WATERMARK_KEYS = ("sources", "normalize", "candles", "patterns")


@dataclass
class PipelineResult:
    """Complete result of a pipeline run."""
    name: str
    timestamp: str
    averages_changed: bool = False
    stage_results: List[StageResult] = field(default_factory=list)

    @property
    def is_successful(self) -> bool:
        """All stages ran to completion."""
        return all(sr.success and not sr.cancelled for sr in self.stage_results)

    @property
    def cancelled(self) -> bool:
        return any(sr.cancelled for sr in self.stage_results)

    @property
    def total_duration(self) -> float:
        """Total pipeline duration in seconds."""
        return sum(sr.duration_seconds for sr in self.stage_results)

    def summary(self) -> str:
        lines = [f"Pipeline {self.name} ({self.timestamp})"]
        lines.extend(f"  {sr}" + (f": {sr.error}" if sr.error else "") for sr in self.stage_results)
        lines.append(f"  total {self.total_duration:.2f}s")
        return "\n".join(lines)


class StatisticsPipeline:
    """
    Runs all statistics passes over the bars of one store.

    Usage:
        pipeline = StatisticsPipeline(StatisticsConfig.from_yaml("eurusd.yaml"))
        result = pipeline.run()
        print(result.summary())

    `cancel()` may be called from another thread; the running stage stops
    before its next bar and later stages are skipped.
    """

    def __init__(
        self,
        config: StatisticsConfig,
        settings: Optional[PipelineSettings] = None,
        store: Optional[SQLiteBarStore] = None
    ):
        self.config = config
        self.settings = settings or get_settings()
        self.averages = config.average_set()
        self.store = store or SQLiteBarStore(self.settings.db_path, self.averages)
        if self.store.averages != self.averages:
            raise ValueError("Store was opened with a different average set")
        self.cancel_event = threading.Event()

        self.stages: List[BaseStage] = [
            SourcesStage(),
            ZigZagStage(),
            LabelsStage(),
            RangesStage(),
            NormalizeStage(),
            CandlesStage(),
            PatternsStage(),
        ]

        logger.info(f"StatisticsPipeline initialized for {config.name} at {self.store.db_path}")

    def cancel(self) -> None:
        """Request cooperative cancellation."""
        self.cancel_event.set()

    def check_averages(self) -> bool:
        """
        Compare the configured average set with the one stored by the last run.

        On a change, candle and pattern tables are rebuilt and all watermarks
        reset, so every pass starts from the first bar.

        Returns:
            True when the derived data must be recomputed
        """
        stored = self.store.stored_averages()
        if stored == self.averages:
            return False

        if stored is None:
            logger.info(f"New instance, averages {self.averages}")
        else:
            logger.warning(f"Averages changed: {stored} -> {self.averages}")
            self.store.rebuild_derived()
        self.store.clear_watermarks()
        self.store.save_averages()
        return True

    def run(self, progress: Optional[ProgressCallback] = None) -> PipelineResult:
        """
        Run all stages in order.

        Args:
            progress: Optional callback receiving (stage name, done, total)

        Returns:
            PipelineResult with one StageResult per stage that ran
        """
        logger.info("=" * 60)
        logger.info(f"STARTING STATISTICS PIPELINE: {self.config.name}")
        logger.info("=" * 60)

        self.cancel_event.clear()
        result = PipelineResult(name=self.config.name, timestamp=datetime.now().isoformat())
        result.averages_changed = self.check_averages()

        context = StageContext(
            store=self.store,
            config=self.config,
            settings=self.settings,
            cancel_event=self.cancel_event,
            progress=progress,
            averages_changed=result.averages_changed,
            watermarks={key: self.store.get_watermark(key) for key in WATERMARK_KEYS},
        )

        for stage in self.stages:
            watermark = context.watermarks.get(stage.key) if stage.key else None
            stage_result = stage.run(context, watermark)
            result.stage_results.append(stage_result)

            if not stage_result.success:
                logger.error(f"Pipeline stopped at {stage.name}")
                break

            # Committed work of a cancelled stage still advances its watermark
            if stage.key:
                context.watermarks[stage.key] = stage_result.watermark
                self.store.set_watermark(stage.key, stage_result.watermark)

            if stage_result.cancelled:
                logger.warning(f"Pipeline cancelled during {stage.name}")
                break

        logger.info(result.summary())
        return result

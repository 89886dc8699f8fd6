"""
Base Stage Interface
====================
Base class and shared types for pipeline stages.

Every stage receives its watermark (last bar time it committed, None when
it starts from scratch) and returns the new one in its StageOutput. The
orchestrator persists watermarks, stages never infer them.
"""

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import numpy as np
from loguru import logger

from pivotlab.config.settings import PipelineSettings
from pivotlab.config.statistics import StatisticsConfig
from pivotlab.data.store import SQLiteBarStore
from pivotlab.data.writer import BatchWriter


ProgressCallback = Callable[[str, int, int], None]


def first_index_after(times: np.ndarray, watermark: Optional[int]) -> int:
    """Position of the first bar strictly after `watermark`."""
    if watermark is None:
        return 0
    return int(np.searchsorted(times, watermark, side="right"))


@dataclass
class StageContext:
    """Shared context passed between pipeline stages."""

    store: SQLiteBarStore
    config: StatisticsConfig
    settings: PipelineSettings
    cancel_event: threading.Event = field(default_factory=threading.Event)
    progress: Optional[ProgressCallback] = None

    # Run state
    averages_changed: bool = False
    ranges: Dict[str, Any] = field(default_factory=dict)
    watermarks: Dict[str, Optional[int]] = field(default_factory=dict)

    @property
    def averages(self):
        return self.store.averages

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def writer(self) -> BatchWriter:
        return BatchWriter(
            self.store,
            batch_size=self.settings.batch_size,
            pool_size=self.settings.pool_size
        )

    def report(self, stage: str, done: int, total: int) -> None:
        """Forward progress; logged every `progress_every` bars."""
        if self.progress is not None:
            self.progress(stage, done, total)
        if done == total or done % self.settings.progress_every == 0:
            logger.debug(f"{stage}: {done}/{total}")


@dataclass
class StageOutput:
    """What a stage's execute() hands back to run()."""
    watermark: Optional[int] = None
    processed: int = 0
    cancelled: bool = False
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StageResult:
    """Result from a single pipeline stage."""
    stage_name: str
    success: bool
    duration_seconds: float
    watermark: Optional[int] = None
    processed: int = 0
    cancelled: bool = False
    result: Any = None
    error: Optional[str] = None

    def __str__(self):
        if not self.success:
            status = "❌"
        elif self.cancelled:
            status = "⏸"
        else:
            status = "✅"
        return f"{status} {self.stage_name} ({self.processed} bars, {self.duration_seconds:.2f}s)"


class BaseStage(ABC):
    """
    Base class for all pipeline stages.

    Each stage:
    - Receives the shared context and its own watermark
    - Performs its pass, checking cancellation once per bar
    - Returns its new watermark
    - Logs progress
    """

    # Stages with a key persist a watermark under it
    key: Optional[str] = None

    def __init__(self, name: str):
        self.name = name

    def run(self, context: StageContext, watermark: Optional[int] = None) -> StageResult:
        """
        Execute stage with error handling and timing.

        Args:
            context: Shared pipeline context
            watermark: Last committed bar time of this stage

        Returns:
            StageResult with success status and the new watermark
        """
        logger.info(f"{'='*60}")
        logger.info(f"Stage: {self.name}")
        logger.info(f"{'='*60}")

        start_time = time.time()

        try:
            output = self.execute(context, watermark)
        except Exception as e:
            duration = time.time() - start_time
            logger.exception(f"❌ {self.name} failed: {e}")
            return StageResult(
                stage_name=self.name,
                success=False,
                duration_seconds=duration,
                watermark=watermark,
                error=str(e)
            )

        duration = time.time() - start_time
        stage_result = StageResult(
            stage_name=self.name,
            success=True,
            duration_seconds=duration,
            watermark=output.watermark,
            processed=output.processed,
            cancelled=output.cancelled,
            result=output.details
        )

        if output.cancelled:
            logger.warning(f"⏸ {self.name} cancelled after {output.processed} bars")
        else:
            logger.info(f"✅ {self.name} completed in {duration:.2f}s ({output.processed} bars)")
        return stage_result

    @abstractmethod
    def execute(self, context: StageContext, watermark: Optional[int]) -> StageOutput:
        """
        Stage-specific execution logic.

        Args:
            context: Pipeline context
            watermark: Last committed bar time, None to start from the first bar

        Returns:
            StageOutput
        """
        pass

"""Pipeline: stage chain and orchestrator."""

from pivotlab.pipeline.orchestrator import PipelineResult, StatisticsPipeline

__all__ = ["PipelineResult", "StatisticsPipeline"]

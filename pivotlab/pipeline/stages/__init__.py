"""
Pipeline Stages Package
=======================
One stage per statistics pass, run in this order:

- Sources: averages, raw slopes and spreads
- ZigZag: pivots and reference values
- Labels: label propagation
- Ranges: feature ranges
- Normalize: normalized slopes and spreads
- Candles: multi-resolution candle rows
- Patterns: pattern rows

Usage:
    from pivotlab.pipeline.stages import ZigZagStage

    stage = ZigZagStage()
    result = stage.run(context)
"""

from .base import BaseStage, StageContext, StageOutput, StageResult
from .sources import SourcesStage
from .zigzag import ZigZagStage
from .labels import LabelsStage
from .ranges import RangesStage
from .normalize import NormalizeStage
from .candles import CandlesStage
from .patterns import PatternsStage

__all__ = [
    'BaseStage',
    'StageContext',
    'StageOutput',
    'StageResult',
    'SourcesStage',
    'ZigZagStage',
    'LabelsStage',
    'RangesStage',
    'NormalizeStage',
    'CandlesStage',
    'PatternsStage',
]

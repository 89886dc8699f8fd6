"""Configuration: runtime settings and statistics parameters."""

from pivotlab.config.settings import PipelineSettings, get_settings
from pivotlab.config.statistics import AverageConfig, StatisticsConfig

__all__ = ["PipelineSettings", "get_settings", "AverageConfig", "StatisticsConfig"]

"""Core types: averages, candle shape features and exceptions."""

from pivotlab.core.averages import AverageDefinition, AverageSet, AverageType
from pivotlab.core.candles import CANDLE_FEATURES
from pivotlab.core.exceptions import ConfigurationError, MissingBarError, PivotStateError

__all__ = [
    "AverageDefinition",
    "AverageSet",
    "AverageType",
    "CANDLE_FEATURES",
    "ConfigurationError",
    "MissingBarError",
    "PivotStateError",
]

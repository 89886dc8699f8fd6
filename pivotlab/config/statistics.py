"""
Statistics Configuration
========================
Parameters of one statistics instance: the ordered averages, the zigzag
look-ahead and the label thresholds. Loaded from and saved to YAML.

Example YAML:

    name: eurusd_1m
    averages:
      - {type: SMA, period: 5, smooths: [3]}
      - {type: SMA, period: 25, smooths: [3]}
      - {type: WMA, period: 100, smooths: [5, 3]}
    bars_ahead: 100
    percent_calc: 10
    percent_edit: 10
"""

from typing import List

from pydantic import BaseModel, Field, field_validator, model_validator

from pivotlab.core.averages import AverageDefinition, AverageSet, AverageType


class AverageConfig(BaseModel):
    """One average entry."""
    type: AverageType = AverageType.SMA
    period: int
    smooths: List[int] = Field(default_factory=list)

    def to_definition(self) -> AverageDefinition:
        return AverageDefinition(type=self.type, period=self.period, smooths=tuple(self.smooths))


class StatisticsConfig(BaseModel):
    """
    Master configuration of a statistics instance.

    Usage:
        config = StatisticsConfig.from_yaml("configs/eurusd.yaml")
        averages = config.average_set()
    """
    name: str = "statistics"
    averages: List[AverageConfig] = Field(default_factory=lambda: [
        AverageConfig(type=AverageType.SMA, period=5, smooths=[3]),
        AverageConfig(type=AverageType.SMA, period=25, smooths=[3]),
        AverageConfig(type=AverageType.SMA, period=100, smooths=[5]),
    ])
    bars_ahead: int = 100
    percent_calc: float = 10.0
    percent_edit: float = 10.0

    @field_validator("bars_ahead")
    @classmethod
    def check_bars_ahead(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"Invalid bars ahead {v}")
        return v

    @field_validator("percent_calc", "percent_edit")
    @classmethod
    def check_percent(cls, v: float) -> float:
        if v <= 0 or v >= 50:
            raise ValueError(f"Invalid label percentage {v}, must be in (0, 50)")
        return v

    @model_validator(mode="after")
    def check_averages(self) -> "StatisticsConfig":
        # Raises ConfigurationError (a ValueError) on ordering or smooth violations
        self.average_set()
        return self

    def average_set(self) -> AverageSet:
        return AverageSet([avg.to_definition() for avg in self.averages])

    @classmethod
    def from_yaml(cls, path: str) -> "StatisticsConfig":
        """Load configuration from YAML file."""
        import yaml
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls(**data)

    def to_yaml(self, path: str):
        """Save configuration to YAML file."""
        import yaml
        with open(path, "w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)

"""
Pipeline Settings
=================
Runtime settings loaded from environment variables (prefix PIVOTLAB_)
or a .env file, with sensible defaults.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PipelineSettings(BaseSettings):
    """Storage, logging and batching settings of a statistics instance."""

    model_config = SettingsConfigDict(
        env_prefix="PIVOTLAB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Storage
    db_path: str = Field(default="./pivotlab.db", description="SQLite database of the instance")
    export_dir: str = Field(default="./exports", description="Directory for exported pattern files")

    # Logging
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: str = Field(default="./logs", description="Directory for log files")

    # Persistence
    batch_size: int = Field(default=500, description="Pending row writes before a flush")
    pool_size: int = Field(default=50, description="Concurrent writer threads per flush")
    progress_every: int = Field(default=1000, description="Bars between progress log lines")

    @field_validator("batch_size", "pool_size", "progress_every")
    @classmethod
    def check_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"must be greater than zero, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        return v.upper()


@lru_cache()
def get_settings() -> PipelineSettings:
    """
    Get cached settings instance.

    Call get_settings.cache_clear() to reload settings.
    """
    return PipelineSettings()

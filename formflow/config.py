"""Configuration management using Pydantic Settings.

Settings are read from the environment with the ``FORMFLOW_`` prefix, e.g.
``FORMFLOW_SUCCESS_DISPLAY_SECONDS=3``. Durations are in the units of the
clock in use (seconds for SystemClock).
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FormSettings(BaseSettings):
    """FormFlow settings"""

    model_config = SettingsConfigDict(env_prefix="FORMFLOW_", extra="ignore")

    success_display_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long the success confirmation stays before auto-reset",
    )
    submit_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Delay of the simulated submit collaborator",
    )
    max_recorded_events: Optional[int] = Field(
        default=None,
        ge=1,
        description="Cap on each form's recorded event log (None keeps every event)",
    )
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the logging level name"""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache()
def get_settings() -> FormSettings:
    """Get cached settings instance"""
    return FormSettings()

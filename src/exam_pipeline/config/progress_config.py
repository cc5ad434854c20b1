# ============================================================================
# src/exam_pipeline/config/progress_config.py
# ============================================================================
"""
Synthetic Progress Settings
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProgressSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PROGRESS_INTERVAL_SECONDS: float = Field(
        default=0.3,
        description="Tick interval while an extraction is outstanding"
    )
    PROGRESS_CAP: float = Field(
        default=90.0,
        description="Synthetic progress never passes this until the result arrives"
    )
    PROGRESS_MAX_STEP: float = Field(
        default=2.0,
        description="Upper bound of the random increment per tick"
    )
    PROGRESS_HOLD_SECONDS: float = Field(
        default=0.5,
        description="How long 100% stays visible before reset"
    )

    @model_validator(mode="after")
    def validate_cap(self):
        if not 0 < self.PROGRESS_CAP <= 100:
            raise ValueError("PROGRESS_CAP must be in (0, 100]")
        return self


progress_settings = ProgressSettings()

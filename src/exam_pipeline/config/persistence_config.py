# ============================================================================
# src/exam_pipeline/config/persistence_config.py
# ============================================================================
"""
Persistence Settings
- Save retry bound and backoff
- Lifetime of temporary blob URLs
- Files staged per batch
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PersistenceSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    SAVE_MAX_ATTEMPTS: int = Field(
        default=3,
        ge=1,
        description="Full save attempts before giving up"
    )
    SAVE_BACKOFF_SECONDS: float = Field(
        default=1.0,
        ge=0,
        description="Fixed wait between save attempts"
    )
    BLOB_URL_TTL_SECONDS: float = Field(
        default=5.0,
        ge=0,
        description="Delay before a temporary blob URL is revoked"
    )
    MAX_FILES_PER_BATCH: int = Field(
        default=10,
        ge=1,
        description="Files accepted by one add; the rest of the batch is dropped"
    )


persistence_settings = PersistenceSettings()

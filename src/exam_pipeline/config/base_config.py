# ============================================================================
# src/exam_pipeline/config/base_config.py
# ============================================================================
"""
Base Configuration
- Project root
- Local object store directory
- Record store database
"""

from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseSettingsConfig(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Root project directory
    PROJECT_ROOT: Path = Field(
        default_factory=lambda: Path(__file__).parent.parent.parent.parent,
        description="Root directory of the project"
    )

    # Attachment blobs (LocalObjectStore root)
    STORAGE_ROOT: Path = Field(
        default=Path("data/storage"),
        description="Directory backing the local object store"
    )

    # Exams and linked notes
    RECORD_DB_PATH: Path = Field(
        default=Path("data/records.db"),
        description="SQLite database for exam and note records"
    )

    def create_directories(self):
        """Create all necessary directories if they don't exist"""
        dirs = [
            self.STORAGE_ROOT,
            self.RECORD_DB_PATH.parent
        ]
        for directory in dirs:
            directory.mkdir(parents=True, exist_ok=True)


# Global instance
base_settings = BaseSettingsConfig()

# ============================================================================
# src/exam_pipeline/config/extraction_config.py
# ============================================================================
"""
Extraction Service Settings
- Endpoint and request timeout
- Upload limits
- OCR image preparation
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExtractionSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    EXTRACTION_ENDPOINT: str = Field(
        default="http://localhost:8080/extract",
        description="URL of the extraction service (multipart POST)"
    )
    EXTRACTION_TIMEOUT_SECONDS: float = Field(
        default=60.0,
        description="Total timeout for one extraction request"
    )
    EXTRACT_TYPE: str = Field(
        default="exam",
        description="Value sent in the extractType form field"
    )
    MAX_UPLOAD_BYTES: int = Field(
        default=15 * 1024 * 1024,
        description="Files larger than this are rejected before extraction"
    )
    OCR_PREPARE_IMAGES: bool = Field(
        default=True,
        description="EXIF-orient and downscale images before OCR submission"
    )
    OCR_MAX_IMAGE_DIMENSION: int = Field(
        default=2500,
        description="Longest image side sent to OCR; larger photos are downscaled"
    )

    @field_validator("EXTRACTION_TIMEOUT_SECONDS")
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("EXTRACTION_TIMEOUT_SECONDS must be positive")
        return v


extraction_settings = ExtractionSettings()

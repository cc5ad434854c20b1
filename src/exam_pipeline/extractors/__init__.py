# ============================================================================
# src/exam_pipeline/extractors/__init__.py
# ============================================================================
"""
Extraction: routing, service client and image preparation
"""

from .extraction_client import ExtractionClient, classify_response
from .extraction_router import ExtractionRouter
from .image_preparation import PreparedImage, prepare_image

__all__ = [
    "ExtractionClient",
    "classify_response",
    "ExtractionRouter",
    "PreparedImage",
    "prepare_image",
]

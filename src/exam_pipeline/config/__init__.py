# ============================================================================
# src/exam_pipeline/config/__init__.py
# ============================================================================
"""
Convenient imports for all settings
"""

from .base_config import base_settings
from .extraction_config import extraction_settings
from .progress_config import progress_settings
from .persistence_config import persistence_settings
from .logging_config import logging_settings

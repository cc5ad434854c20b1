# ============================================================================
# src/exam_pipeline/constants/__init__.py
# ============================================================================
"""
Constants: exam taxonomy and file type signals
"""

from .exam_categories import (
    ExamCategory,
    DEFAULT_CATEGORY,
    CATEGORY_TITLES,
    CANONICAL_EXAMS,
    is_known_category,
    is_canonical_exam,
    category_title,
)
from .file_types import (
    PDF_MIME_TYPE,
    DOCX_MIME_TYPE,
    PDF_EXTENSIONS,
    DOCX_EXTENSIONS,
    IMAGE_EXTENSIONS,
)

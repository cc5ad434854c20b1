# ============================================================================
# src/exam_pipeline/core/models/enums.py
# ============================================================================
"""
Pipeline Enums
- Extraction outcome kinds
- Result entry kinds
- Notification severities
- Save attempt states
"""

from enum import Enum


class FileKind(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    IMAGE_QUALITY_FAILURE = "image_quality_failure"
    FAILURE = "failure"


class EntryKind(str, Enum):
    CANONICAL = "canonical"  # name from the fixed per-category list
    OVERFLOW = "overflow"    # any other name returned by extraction


class Severity(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AttemptStatus(str, Enum):
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    FATAL_AFTER_MAX_ATTEMPTS = "fatal_after_max_attempts"


class ResolutionStrategy(str, Enum):
    FILE_URL = "file_url"
    ALTERNATE_URL = "alternate_url"
    LOCAL_BLOB = "local_blob"
    STORAGE_PATH = "storage_path"
    EXAM_PATH = "exam_path"
    NOTE_PATH = "note_path"

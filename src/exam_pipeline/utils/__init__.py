# ============================================================================
# src/exam_pipeline/utils/__init__.py
# ============================================================================
"""
Utility modules for the exam pipeline.
"""

from .exceptions import (
    ExamPipelineError,
    ValidationError,
    BlobResolutionError,
    StorageError,
    ObjectNotFoundError,
    AttachmentUploadError,
    AttachmentResolutionError,
    RecordStoreError,
    RecordNotFoundError,
    SaveFailedError,
)

from .logging import (
    setup_logging,
    configure_from_settings,
    get_logger,
    JsonFormatter,
    LogContext,
    log_performance,
)

from .file_utils import (
    format_file_size,
    guess_mime_type,
    get_extension,
    sanitize_filename,
)

__all__ = [
    # Exceptions
    'ExamPipelineError',
    'ValidationError',
    'BlobResolutionError',
    'StorageError',
    'ObjectNotFoundError',
    'AttachmentUploadError',
    'AttachmentResolutionError',
    'RecordStoreError',
    'RecordNotFoundError',
    'SaveFailedError',
    # Logging
    'setup_logging',
    'configure_from_settings',
    'get_logger',
    'JsonFormatter',
    'LogContext',
    'log_performance',
    # File Utils
    'format_file_size',
    'guess_mime_type',
    'get_extension',
    'sanitize_filename',
]

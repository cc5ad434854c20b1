# ============================================================================
# src/exam_pipeline/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the exam ingestion pipeline.
"""

from typing import Optional


class ExamPipelineError(Exception):
    """Base exception for all exam pipeline errors."""
    pass


class ValidationError(ExamPipelineError):
    """Input rejected before any remote call (unsupported file, missing title)."""
    pass


class BlobResolutionError(ExamPipelineError):
    """Could not obtain the bytes of a file for extraction."""
    pass


class StorageError(ExamPipelineError):
    """Error talking to the object store."""
    pass


class ObjectNotFoundError(StorageError):
    """No object stored under the requested path."""

    def __init__(self, path: str):
        super().__init__(f"Object not found: {path}")
        self.path = path


class AttachmentUploadError(StorageError):
    """Uploading an attachment blob failed."""

    def __init__(self, message: str, file_name: str):
        super().__init__(message)
        self.file_name = file_name


class AttachmentResolutionError(StorageError):
    """Every URL resolution strategy failed for an attachment."""

    def __init__(self, message: str, file_name: str, tried: Optional[list] = None):
        super().__init__(message)
        self.file_name = file_name
        self.tried = tried or []


class RecordStoreError(ExamPipelineError):
    """Error reading or writing exam/note records."""
    pass


class RecordNotFoundError(RecordStoreError):
    """Requested record does not exist."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} not found: {record_id}")
        self.kind = kind
        self.record_id = record_id


class SaveFailedError(ExamPipelineError):
    """Exam could not be saved within the allowed number of attempts."""

    def __init__(
        self,
        attempts: int,
        last_error: Optional[BaseException] = None,
        exam_id: Optional[str] = None,
    ):
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"Exam could not be saved after {attempts} attempts{detail}")
        self.attempts = attempts
        self.last_error = last_error
        # Set when an earlier attempt already created the exam record
        self.exam_id = exam_id

# ============================================================================
# src/exam_pipeline/storage/__init__.py
# ============================================================================
"""
Object and record storage
"""

from .object_store import ObjectStore, LocalObjectStore
from .record_store import RecordStore, SQLiteRecordStore
from .attachment_store import AttachmentStore, RemovalResult, ResolveContext, ResolvedUrl
from .paths import (
    EXAM_PATH_TEMPLATE,
    NOTE_PATH_TEMPLATE,
    exam_folder,
    exam_attachment_path,
    reconstruction_candidates,
)

__all__ = [
    "ObjectStore",
    "LocalObjectStore",
    "RecordStore",
    "SQLiteRecordStore",
    "AttachmentStore",
    "RemovalResult",
    "ResolveContext",
    "ResolvedUrl",
    "EXAM_PATH_TEMPLATE",
    "NOTE_PATH_TEMPLATE",
    "exam_folder",
    "exam_attachment_path",
    "reconstruction_candidates",
]

# ============================================================================
# src/exam_pipeline/core/models/__init__.py
# ============================================================================
"""
Data models shared by the pipeline components.
"""

from .enums import (
    FileKind,
    OutcomeKind,
    EntryKind,
    Severity,
    AttemptStatus,
    ResolutionStrategy,
)
from .attachment import Attachment, ALTERNATE_URL_FIELDS
from .result_table import ExtractionResultTable, ResultEntry
from .exam import Exam, ExamDraft, PatientRef
from .note import LinkedNote, NOTE_TYPE, NOTE_CATEGORY
from .outcomes import (
    ExtractionOutcome,
    ExtractionSuccess,
    ExtractionWarning,
    ImageQualityFailure,
    ExtractionFailure,
    DEFAULT_QUALITY_SUGGESTION,
)

__all__ = [
    "FileKind",
    "OutcomeKind",
    "EntryKind",
    "Severity",
    "AttemptStatus",
    "ResolutionStrategy",
    "Attachment",
    "ALTERNATE_URL_FIELDS",
    "ExtractionResultTable",
    "ResultEntry",
    "Exam",
    "ExamDraft",
    "PatientRef",
    "LinkedNote",
    "NOTE_TYPE",
    "NOTE_CATEGORY",
    "ExtractionOutcome",
    "ExtractionSuccess",
    "ExtractionWarning",
    "ImageQualityFailure",
    "ExtractionFailure",
    "DEFAULT_QUALITY_SUGGESTION",
]

# ============================================================================
# src/exam_pipeline/storage/paths.py
# ============================================================================
"""
Storage path templates.

Attachments are written only under the exam path. The note path is where
older records kept exam files; it is read when resolving, never written.
"""

from typing import List, Optional, Tuple

from ..core.models import PatientRef, ResolutionStrategy
from ..utils.file_utils import sanitize_filename

EXAM_PATH_TEMPLATE = "{owner}/patients/{patient}/exams/{exam}/{file}"
NOTE_PATH_TEMPLATE = "{owner}/patients/{patient}/notes/{note}/{file}"


def exam_folder(patient: PatientRef, exam_id: str) -> str:
    return f"{patient.base_path}/exams/{exam_id}"


def exam_attachment_path(patient: PatientRef, exam_id: str, file_name: str) -> str:
    return EXAM_PATH_TEMPLATE.format(
        owner=patient.owner_id,
        patient=patient.patient_id,
        exam=exam_id,
        file=sanitize_filename(file_name),
    )


def reconstruction_candidates(
    patient: PatientRef,
    exam_id: Optional[str],
    file_name: str,
    note_id: Optional[str] = None,
) -> List[Tuple[ResolutionStrategy, str]]:
    """
    Ordered, bounded list of paths an attachment may live under.

    Legacy data used the exam id as the note id, so that is the default.
    """
    if not exam_id or not file_name:
        return []

    values = {
        "owner": patient.owner_id,
        "patient": patient.patient_id,
        "file": sanitize_filename(file_name),
    }
    return [
        (ResolutionStrategy.EXAM_PATH, EXAM_PATH_TEMPLATE.format(exam=exam_id, **values)),
        (ResolutionStrategy.NOTE_PATH, NOTE_PATH_TEMPLATE.format(note=note_id or exam_id, **values)),
    ]

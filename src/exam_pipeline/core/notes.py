# ============================================================================
# src/exam_pipeline/core/notes.py
# ============================================================================
"""
Linked note builder.

Every saved exam gets one note on the patient timeline. Note text is in
Portuguese, like the rest of the clinical record.
"""

from datetime import date, datetime
from typing import Optional

from .models import ExamDraft, LinkedNote

MONTHS_PT = [
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
]

RESULTS_MARKER_CREATED = "Exame processado com resultados estruturados."
RESULTS_MARKER_UPDATED = "Exame possui resultados estruturados."


def format_long_date(value: date) -> str:
    """15 de março de 2024"""
    return f"{value.day:02d} de {MONTHS_PT[value.month - 1]} de {value.year}"


def format_short_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def note_title(title: str) -> str:
    return f"Exame - {title}"


def note_text(exam_date: date, has_results: bool, updating: bool = False) -> str:
    if updating:
        text = f"Exame atualizado em {format_long_date(exam_date)}."
        marker = RESULTS_MARKER_UPDATED
    else:
        text = f"Exame realizado em {format_long_date(exam_date)}."
        marker = RESULTS_MARKER_CREATED
    if has_results:
        text += f"\n\n{marker}"
    return text


def build_linked_note(
    draft: ExamDraft,
    exam_id: str,
    has_results: bool,
    existing: Optional[LinkedNote] = None,
    now: Optional[datetime] = None,
) -> LinkedNote:
    """
    Build the note for an exam, as a new note or as an update of `existing`.

    Args:
        draft: Exam fields being saved
        exam_id: Persisted exam id (stored as exameId on the note)
        has_results: Whether the exam carries structured results
        existing: Note already linked to the exam, if any
        now: Timestamp override
    """
    timestamp = (now or datetime.now()).isoformat()
    title = draft.title.strip()
    updating = existing is not None

    return LinkedNote(
        id=existing.id if existing else None,
        note_title=note_title(title),
        note_text=note_text(draft.exam_date, has_results, updating=updating),
        consultation_date=draft.exam_date,
        exame_id=exam_id,
        created_at=existing.created_at if existing and existing.created_at else timestamp,
        last_modified=timestamp,
    )

# ============================================================================
# src/exam_pipeline/core/models/note.py
# ============================================================================
"""
Clinical note derived from an exam (the patient timeline entry).
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Mapping, Optional

NOTE_TYPE = "Exame"
NOTE_CATEGORY = "Exames"


@dataclass
class LinkedNote:
    note_title: str
    note_text: str
    consultation_date: date
    exame_id: str
    note_type: str = NOTE_TYPE
    category: str = NOTE_CATEGORY
    id: Optional[str] = None
    created_at: Optional[str] = None
    last_modified: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        record = {
            "noteTitle": self.note_title,
            "noteText": self.note_text,
            "noteType": self.note_type,
            "category": self.category,
            "consultationDate": self.consultation_date.isoformat(),
            "exameId": self.exame_id,
        }
        if self.id:
            record["id"] = self.id
        if self.created_at:
            record["createdAt"] = self.created_at
        if self.last_modified:
            record["lastModified"] = self.last_modified
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "LinkedNote":
        consultation = record.get("consultationDate")
        return cls(
            id=record.get("id"),
            note_title=record.get("noteTitle", ""),
            note_text=record.get("noteText", ""),
            note_type=record.get("noteType", NOTE_TYPE),
            category=record.get("category", NOTE_CATEGORY),
            consultation_date=(
                date.fromisoformat(consultation[:10]) if consultation else date.today()
            ),
            exame_id=record.get("exameId", ""),
            created_at=record.get("createdAt"),
            last_modified=record.get("lastModified"),
        )

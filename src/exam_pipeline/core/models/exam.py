# ============================================================================
# src/exam_pipeline/core/models/exam.py
# ============================================================================
"""
Exam, draft and ownership models.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from ...constants.exam_categories import DEFAULT_CATEGORY
from .attachment import Attachment
from .result_table import ExtractionResultTable


@dataclass(frozen=True)
class PatientRef:
    """Owner of an exam: the account and the patient record inside it."""

    owner_id: str
    patient_id: str

    @property
    def base_path(self) -> str:
        return f"{self.owner_id}/patients/{self.patient_id}"


@dataclass
class ExamDraft:
    """Scalar exam fields as edited by the user, before or after creation."""

    title: str = ""
    exam_date: date = field(default_factory=date.today)
    category: str = DEFAULT_CATEGORY.value
    observations: str = ""
    id: Optional[str] = None

    def to_fields(self) -> Dict[str, Any]:
        return {
            "title": self.title.strip(),
            "examDate": self.exam_date.isoformat(),
            "category": self.category,
            "observations": self.observations,
        }


@dataclass
class Exam:
    id: str
    title: str
    exam_date: date
    category: str = DEFAULT_CATEGORY.value
    observations: str = ""
    results: ExtractionResultTable = field(default_factory=ExtractionResultTable)
    attachments: List[Attachment] = field(default_factory=list)
    created_at: Optional[datetime] = None
    last_modified: Optional[datetime] = None

    def draft(self) -> ExamDraft:
        return ExamDraft(
            title=self.title,
            exam_date=self.exam_date,
            category=self.category,
            observations=self.observations,
            id=self.id,
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "examDate": self.exam_date.isoformat(),
            "category": self.category,
            "observations": self.observations,
            "results": self.results.to_dict(),
            "attachments": [a.to_record() for a in self.attachments],
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "lastModified": self.last_modified.isoformat() if self.last_modified else None,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Exam":
        return cls(
            id=record["id"],
            title=record.get("title", ""),
            exam_date=_parse_date(record.get("examDate")),
            category=record.get("category") or DEFAULT_CATEGORY.value,
            observations=record.get("observations") or "",
            results=ExtractionResultTable.from_dict(record.get("results")),
            attachments=[
                Attachment.from_record(item) for item in record.get("attachments") or []
            ],
            created_at=_parse_datetime(record.get("createdAt")),
            last_modified=_parse_datetime(record.get("lastModified")),
        )


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            pass
    return date.today()


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None

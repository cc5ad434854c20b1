# ============================================================================
# src/exam_pipeline/core/models/result_table.py
# ============================================================================
"""
Extraction Result Table

category id -> exam name -> ResultEntry. Entries are tagged canonical or
overflow when written, so readers never re-scan the canonical lists.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from ...constants.exam_categories import is_canonical_exam
from .enums import EntryKind


@dataclass(frozen=True)
class ResultEntry:
    value: str
    kind: EntryKind

    @property
    def is_overflow(self) -> bool:
        return self.kind is EntryKind.OVERFLOW


class ExtractionResultTable:
    """
    Result values grouped by category.

    Categories and exam names are looked up by key; iteration order carries
    no meaning. Unknown category ids are kept as-is.
    """

    def __init__(self, buckets: Optional[Dict[str, Dict[str, ResultEntry]]] = None):
        self._buckets: Dict[str, Dict[str, ResultEntry]] = {
            category: dict(entries) for category, entries in (buckets or {}).items()
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping]) -> "ExtractionResultTable":
        """Rebuild a table from the plain nested map stored in records."""
        table = cls()
        for category, exams in (data or {}).items():
            if not isinstance(exams, Mapping):
                continue
            for exam_name, value in exams.items():
                table.set_value(str(category), str(exam_name), value)
        return table

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {
            category: {name: entry.value for name, entry in entries.items()}
            for category, entries in self._buckets.items()
        }

    def copy(self) -> "ExtractionResultTable":
        return ExtractionResultTable(self._buckets)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------
    def get(self, category: str, exam_name: str, default: Optional[str] = None) -> Optional[str]:
        entry = self.entry(category, exam_name)
        return entry.value if entry else default

    def entry(self, category: str, exam_name: str) -> Optional[ResultEntry]:
        return self._buckets.get(category, {}).get(exam_name)

    def bucket(self, category: str) -> Dict[str, ResultEntry]:
        return dict(self._buckets.get(category, {}))

    def categories(self) -> List[str]:
        return list(self._buckets.keys())

    def entries(self) -> Iterator[Tuple[str, str, ResultEntry]]:
        for category, entries in self._buckets.items():
            for name, entry in entries.items():
                yield category, name, entry

    def is_empty(self) -> bool:
        return not any(self._buckets.values())

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------
    def ensure_category(self, category: str) -> None:
        self._buckets.setdefault(category, {})

    def set_value(self, category: str, exam_name: str, value) -> ResultEntry:
        """Set one value, tagging it canonical or overflow."""
        kind = (
            EntryKind.CANONICAL if is_canonical_exam(category, exam_name)
            else EntryKind.OVERFLOW
        )
        entry = ResultEntry(value="" if value is None else str(value), kind=kind)
        self._buckets.setdefault(category, {})[exam_name] = entry
        return entry

    def clear_value(self, category: str, exam_name: str) -> bool:
        """Explicit user clear. Returns True if a value was removed."""
        entries = self._buckets.get(category)
        if not entries or exam_name not in entries:
            return False
        del entries[exam_name]
        if not entries:
            del self._buckets[category]
        return True

    # ------------------------------------------------------------------
    # Dunder
    # ------------------------------------------------------------------
    def __contains__(self, category: object) -> bool:
        return category in self._buckets

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._buckets.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ExtractionResultTable):
            return NotImplemented
        return self._buckets == other._buckets

    def __repr__(self) -> str:
        return f"ExtractionResultTable({self.to_dict()!r})"

# ============================================================================
# src/exam_pipeline/core/result_merger.py
# ============================================================================
"""
Result Merger

Folds the category map returned by the extraction service into an exam's
result table:
- Creates missing category buckets
- Last merge wins per (category, exam name); no history kept
- Names outside the canonical list are stored as overflow, never dropped
- Unknown category ids are kept verbatim
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..constants.exam_categories import CANONICAL_EXAMS, is_known_category
from .models import EntryKind, ExtractionResultTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionStats:
    filled: int
    total: int

    @property
    def ratio(self) -> float:
        return self.filled / self.total if self.total else 0.0


class ResultMerger:
    """Stateless merge of extraction payloads into result tables."""

    def merge(
        self,
        existing: Optional[ExtractionResultTable],
        incoming: Optional[Mapping[str, Any]],
    ) -> ExtractionResultTable:
        """
        Merge an incoming category map into a copy of `existing`.

        Args:
            existing: Current table (not mutated)
            incoming: {category_id: {exam_name: value}} from the service

        Returns:
            New merged table
        """
        merged = existing.copy() if existing is not None else ExtractionResultTable()

        for category, exams in (incoming or {}).items():
            if not isinstance(exams, Mapping):
                logger.warning(
                    f"Skipping category {category!r}: expected a mapping, "
                    f"got {type(exams).__name__}"
                )
                continue

            category_id = str(category)
            if not is_known_category(category_id):
                logger.info(f"Keeping results under unknown category {category_id!r}")
            merged.ensure_category(category_id)
            for exam_name, value in exams.items():
                merged.set_value(category_id, str(exam_name), value)

        logger.debug(
            f"Merged {len(incoming or {})} categories; table now has {len(merged)} values"
        )
        return merged

    def canonical_entries(self, table: ExtractionResultTable, category: str) -> Dict[str, str]:
        return {
            name: entry.value
            for name, entry in table.bucket(category).items()
            if entry.kind is EntryKind.CANONICAL
        }

    def overflow_entries(self, table: ExtractionResultTable, category: str) -> Dict[str, str]:
        """Values whose names are not in the category's canonical list."""
        return {
            name: entry.value
            for name, entry in table.bucket(category).items()
            if entry.kind is EntryKind.OVERFLOW
        }

    def completion_stats(self, table: ExtractionResultTable) -> CompletionStats:
        """Filled vs total canonical fields across the fixed vocabulary."""
        total = sum(len(names) for names in CANONICAL_EXAMS.values())
        filled = sum(
            1
            for category, names in CANONICAL_EXAMS.items()
            for name in names
            if (table.get(category.value, name) or "").strip()
        )
        return CompletionStats(filled=filled, total=total)


result_merger = ResultMerger()


def merge_results(
    existing: Optional[ExtractionResultTable],
    incoming: Optional[Mapping[str, Any]],
) -> ExtractionResultTable:
    return result_merger.merge(existing, incoming)

# ============================================================================
# src/exam_pipeline/core/save_coordinator.py
# ============================================================================
"""
Save Coordinator

Persists an exam as one logical (not transactional) unit of work.

One attempt:
1. Create or update the exam fields + result table (+ already persisted
   attachment metadata, never blobs)
2. Upload every staged attachment concurrently; each upload settles on its own
3. If any upload succeeded, write the persisted + newly uploaded attachments
4. Upsert the linked note (failure here is reported, not fatal)

Steps 1-3 failing fail the attempt. Attempts are bounded with a fixed
backoff; the exam id from a successful step 1 is reused so a retry updates
instead of creating a duplicate.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Union

from ..config import persistence_settings
from ..constants.exam_categories import is_known_category
from ..storage.attachment_store import AttachmentStore
from ..storage.paths import exam_folder
from ..storage.record_store import RecordStore
from ..utils.exceptions import SaveFailedError, StorageError, ValidationError
from ..utils.logging import LogContext, log_performance
from .models import Attachment, Exam, ExamDraft, ExtractionResultTable, PatientRef, Severity
from .notes import build_linked_note
from .notifications import LoggingNotificationSink, NotificationSink
from .retry import retry_async

logger = logging.getLogger(__name__)


@dataclass
class FailedItem:
    file_name: str
    error: str


@dataclass
class SaveResult:
    exam_id: str
    attempts: int = 1
    attachments: List[Attachment] = field(default_factory=list)
    failed_uploads: List[FailedItem] = field(default_factory=list)
    note_id: Optional[str] = None
    note_error: Optional[str] = None
    exam: Optional[Exam] = None

    @property
    def failed_upload_count(self) -> int:
        return len(self.failed_uploads)

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_uploads) or self.note_error is not None

    def to_dict(self) -> dict:
        return {
            "exam_id": self.exam_id,
            "attempts": self.attempts,
            "attachments": [a.to_record() for a in self.attachments],
            "failed_upload_count": self.failed_upload_count,
            "failed_uploads": [{"file_name": f.file_name, "error": f.error} for f in self.failed_uploads],
            "note_id": self.note_id,
            "note_error": self.note_error,
        }


@dataclass
class DeleteResult:
    exam_id: str
    removed_objects: int = 0
    failed_removals: List[FailedItem] = field(default_factory=list)
    note_deleted: bool = False


@dataclass
class _SaveState:
    """Carried across attempts of one save."""

    exam_id: Optional[str]


class SaveCoordinator:
    """
    Multi-step exam persistence with bounded retry.

    Args:
        records: Exam / note record store
        attachments: Attachment store used for uploads and removals
        notifier: Receives note failures (logging sink if None)
        max_attempts: Hard bound on attempts (settings default: 3)
        backoff_seconds: Fixed wait between attempts (settings default: 1.0)
        sleep: Sleep coroutine, injectable for tests
    """

    def __init__(
        self,
        records: RecordStore,
        attachments: AttachmentStore,
        notifier: Optional[NotificationSink] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.records = records
        self.attachments = attachments
        self.notifier = notifier or LoggingNotificationSink()
        self.max_attempts = max_attempts or persistence_settings.SAVE_MAX_ATTEMPTS
        self.backoff_seconds = (
            persistence_settings.SAVE_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        )
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------
    @log_performance(logger, "Exam save")
    async def save(
        self,
        patient: PatientRef,
        draft: ExamDraft,
        attachments: List[Attachment],
        results: Optional[ExtractionResultTable] = None,
    ) -> SaveResult:
        """
        Persist exam fields, results, attachments and the linked note.

        Raises:
            ValidationError: Missing title or unknown category (before any remote call)
            SaveFailedError: Every attempt failed; carries the exam id if one was created
        """
        if not draft.title.strip():
            raise ValidationError("Exam title is required")
        if not is_known_category(draft.category):
            raise ValidationError(f"Unknown exam category: {draft.category!r}")

        results = results or ExtractionResultTable()
        state = _SaveState(exam_id=draft.id)

        async def attempt(number: int) -> SaveResult:
            with LogContext(logger, exam_id=state.exam_id, attempt=number):
                return await self._attempt(patient, draft, attachments, results, state)

        outcome = await retry_async(
            attempt,
            max_attempts=self.max_attempts,
            backoff_seconds=self.backoff_seconds,
            sleep=self._sleep,
        )

        if not outcome.succeeded:
            raise SaveFailedError(outcome.attempts, outcome.last_error, exam_id=state.exam_id)

        result = outcome.value
        result.attempts = outcome.attempts
        logger.info(
            f"Saved exam {result.exam_id} in {result.attempts} attempt(s); "
            f"{len(result.attachments)} attachment(s), {result.failed_upload_count} failed"
        )
        return result

    async def _attempt(
        self,
        patient: PatientRef,
        draft: ExamDraft,
        attachments: List[Attachment],
        results: ExtractionResultTable,
        state: _SaveState,
    ) -> SaveResult:
        persisted = [a for a in attachments if a.is_persisted]
        staged = [a for a in attachments if a.is_staged]

        # Step 1: exam fields
        fields = draft.to_fields()
        fields["results"] = results.to_dict()
        fields["attachments"] = [a.to_record() for a in persisted]

        if state.exam_id:
            exam = await self.records.update_exam(patient, state.exam_id, fields)
        else:
            exam = await self.records.create_exam(patient, fields)
            state.exam_id = exam.id
            logger.info(f"Created exam {exam.id}")

        # Step 2: concurrent uploads, all settle
        folder = exam_folder(patient, exam.id)
        outcomes = await asyncio.gather(
            *(self.attachments.upload(a, folder) for a in staged),
            return_exceptions=True,
        )

        uploaded: List[Attachment] = []
        failed: List[FailedItem] = []
        for source, outcome in zip(staged, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Upload failed for {source.file_name!r}: {outcome}")
                failed.append(FailedItem(source.file_name, str(outcome)))
            else:
                uploaded.append(outcome)

        # Step 3: attachment list
        final_attachments = persisted + uploaded
        if uploaded:
            exam = await self.records.update_exam(
                patient, exam.id, {"attachments": [a.to_record() for a in final_attachments]}
            )

        result = SaveResult(
            exam_id=exam.id,
            attachments=final_attachments,
            failed_uploads=failed,
            exam=exam,
        )

        # Step 4: linked note
        try:
            result.note_id = await self._upsert_note(patient, draft, exam.id, not results.is_empty())
        except Exception as e:
            logger.warning(f"Linked note for exam {exam.id} failed: {e}")
            result.note_error = str(e)
            self.notifier.notify(
                f"Exam saved, but its timeline note could not be updated: {e}",
                Severity.WARNING,
            )

        return result

    async def _upsert_note(
        self,
        patient: PatientRef,
        draft: ExamDraft,
        exam_id: str,
        has_results: bool,
    ) -> Optional[str]:
        existing = await self.records.find_note_for_exam(patient, exam_id)
        note = build_linked_note(draft, exam_id, has_results, existing=existing)

        if existing and existing.id:
            saved = await self.records.update_note(patient, existing.id, note)
            logger.info(f"Updated note {saved.id} for exam {exam_id}")
        else:
            saved = await self.records.create_note(patient, note)
            logger.info(f"Created note {saved.id} for exam {exam_id}")
        return saved.id

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------
    @log_performance(logger, "Exam delete")
    async def delete(self, patient: PatientRef, exam: Union[Exam, str]) -> DeleteResult:
        """Remove stored attachment objects, then the exam record and its note."""
        if isinstance(exam, str):
            exam = await self.records.get_exam(patient, exam)

        persisted = [a for a in exam.attachments if a.is_persisted]
        outcomes = await asyncio.gather(
            *(self.attachments.delete_remote(a) for a in persisted),
            return_exceptions=True,
        )

        result = DeleteResult(exam_id=exam.id)
        for attachment, outcome in zip(persisted, outcomes):
            if isinstance(outcome, StorageError):
                logger.warning(f"Could not remove {attachment.file_name!r}: {outcome}")
                result.failed_removals.append(FailedItem(attachment.file_name, str(outcome)))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.removed_objects += 1

        await self.records.delete_exam(patient, exam.id)

        note = await self.records.find_note_for_exam(patient, exam.id)
        if note and note.id:
            await self.records.delete_note(patient, note.id)
            result.note_deleted = True

        logger.info(
            f"Deleted exam {exam.id}: {result.removed_objects} object(s) removed, "
            f"{len(result.failed_removals)} failed"
        )
        return result

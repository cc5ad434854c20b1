# ============================================================================
# src/exam_pipeline/core/exam_session.py
# ============================================================================
"""
Exam Editing Session

Thin adapter between the pipeline components and whoever edits one exam
(a dialog, an API request). It holds the editing state, turns typed
outcomes into state changes plus (message, severity) notifications, and
is the only place where unexpected errors are converted into a generic
failure message.

One session edits one exam. A second extraction while one is outstanding
is rejected; a cancelled extraction's late response is discarded.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from ..config import persistence_settings
from ..constants.exam_categories import category_title
from ..extractors.extraction_router import ExtractionRouter
from ..storage.attachment_store import AttachmentStore, ResolveContext, ResolvedUrl
from ..utils.exceptions import AttachmentResolutionError, SaveFailedError, ValidationError
from .models import (
    Attachment,
    Exam,
    ExamDraft,
    ExtractionFailure,
    ExtractionOutcome,
    ExtractionResultTable,
    ExtractionSuccess,
    ExtractionWarning,
    OutcomeKind,
    PatientRef,
    Severity,
)
from .notes import format_short_date
from .notifications import LoggingNotificationSink, NotificationSink
from .progress import ProgressEmitter, ProgressToken
from .result_merger import ResultMerger
from .save_coordinator import DeleteResult, SaveCoordinator, SaveResult

logger = logging.getLogger(__name__)

ALREADY_IN_PROGRESS = "extraction already in progress"
AUTO_PROCESSED_MARKER = "Processado automaticamente"
GENERIC_ERROR = "An unexpected error occurred. Please try again."


@dataclass
class ProcessingReport:
    outcome: Optional[ExtractionOutcome]
    applied: bool = False
    cancelled: bool = False


class ExamEditingSession:
    """
    Editing state for one exam.

    Args:
        patient: Owner of the exam
        router: Extraction router
        coordinator: Save coordinator (its record store is reused for removals)
        attachment_store: Staging, removal and URL resolution
        notifier: Receives user-facing messages
        exam: Existing exam to edit; a new exam when None
        progress: Progress emitter for extractions
        on_progress: Receives progress values (0-100)
        on_status: Receives extraction stage text
    """

    def __init__(
        self,
        patient: PatientRef,
        router: ExtractionRouter,
        coordinator: SaveCoordinator,
        attachment_store: AttachmentStore,
        notifier: Optional[NotificationSink] = None,
        exam: Optional[Exam] = None,
        progress: Optional[ProgressEmitter] = None,
        merger: Optional[ResultMerger] = None,
        on_progress: Optional[Callable[[float], None]] = None,
        on_status: Optional[Callable[[str], None]] = None,
    ):
        self.patient = patient
        self.router = router
        self.coordinator = coordinator
        self.attachment_store = attachment_store
        self.notifier = notifier or LoggingNotificationSink()
        self.progress = progress or ProgressEmitter()
        self.merger = merger or ResultMerger()
        self._on_progress = on_progress
        self._on_status = on_status

        self.draft = exam.draft() if exam else ExamDraft()
        self.attachments: List[Attachment] = list(exam.attachments) if exam else []
        self.results = exam.results.copy() if exam else ExtractionResultTable()
        self.show_results = bool(exam and not exam.results.is_empty())

        self.progress_value = 0.0
        self.status_text = ""
        self._token: Optional[ProgressToken] = None

    @property
    def exam_id(self) -> Optional[str]:
        return self.draft.id

    @property
    def is_processing(self) -> bool:
        return self._token is not None

    def _set_progress(self, value: float) -> None:
        self.progress_value = value
        if self._on_progress is not None:
            self._on_progress(value)

    def _set_status(self, text: str) -> None:
        self.status_text = text
        if self._on_status is not None:
            self._on_status(text)

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------
    def add_files(self, files: Iterable[Tuple[str, bytes, Optional[str]]]) -> List[Attachment]:
        """
        Stage (file_name, data, file_type) triples; nothing is uploaded until save().

        Only the first MAX_FILES_PER_BATCH files of one call are staged.
        """
        files = list(files)
        limit = persistence_settings.MAX_FILES_PER_BATCH
        if len(files) > limit:
            self.notifier.notify(
                f"Limit of {limit} files per batch. Only the first {limit} were added.",
                Severity.WARNING,
            )
            files = files[:limit]

        added = [
            self.attachment_store.stage(name, data, file_type)
            for name, data, file_type in files
        ]
        self.attachments.extend(added)
        if added:
            self.notifier.notify(
                f"{len(added)} file(s) added. They will be uploaded when the exam is saved.",
                Severity.INFO,
            )
        return added

    async def remove_attachment(self, index: int) -> bool:
        removal = await self.attachment_store.remove(self.attachments, index)
        self.attachments = removal.attachments

        if removal.error:
            self.notifier.notify(
                f"Attachment removed, but its stored file could not be deleted: {removal.error}",
                Severity.WARNING,
            )
        else:
            self.notifier.notify("Attachment removed.", Severity.SUCCESS)

        if self.exam_id and removal.removed is not None and removal.removed.is_persisted:
            await self.coordinator.records.update_exam(
                self.patient,
                self.exam_id,
                {"attachments": [a.to_record() for a in self.attachments if a.is_persisted]},
            )
        return removal.error is None

    async def open_attachment(self, index: int) -> Optional[ResolvedUrl]:
        """Resolve a URL for an attachment; temporary URLs are revoked after a delay."""
        attachment = self.attachments[index]
        context = ResolveContext(patient=self.patient, exam_id=self.exam_id)
        try:
            resolved = await self.attachment_store.resolve_url(attachment, context)
        except AttachmentResolutionError as e:
            logger.error(f"{e} (tried: {', '.join(e.tried) or 'nothing'})")
            self.notifier.notify(
                f"Could not open {attachment.file_name}: file location not found.",
                Severity.ERROR,
            )
            return None

        if resolved.needs_revoke:
            resolved.schedule_revoke()
        return resolved

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------
    def set_result(self, category: str, exam_name: str, value: str) -> None:
        self.results.set_value(category, exam_name, value)

    def clear_result(self, category: str, exam_name: str) -> bool:
        return self.results.clear_value(category, exam_name)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------
    async def process_file(
        self, file_name: str, data: bytes, file_type: Optional[str] = None
    ) -> ProcessingReport:
        """Stage a new file and run extraction on it."""
        attachment = self.attachment_store.stage(file_name, data, file_type)
        self.attachments.append(attachment)
        return await self._process(attachment)

    async def process_attachment(self, index: int) -> ProcessingReport:
        return await self._process(self.attachments[index])

    def cancel_processing(self) -> None:
        """Abandon the outstanding extraction; its response will be ignored."""
        token = self._token
        if token is None:
            return
        token.cancel()
        token.reset()
        self._token = None
        self._set_status("")
        logger.info("Extraction cancelled by user")

    async def _process(self, source: Attachment) -> ProcessingReport:
        if self._token is not None:
            outcome = ExtractionWarning(ALREADY_IN_PROGRESS)
            self.notifier.notify(outcome.user_message, Severity.WARNING)
            return ProcessingReport(outcome)

        token = self.progress.start(self._set_progress)
        self._token = token

        def on_status(text: str) -> None:
            if self._token is token:
                self._set_status(text)

        try:
            outcome = await self.progress.track(
                self.router.extract(source, on_status=on_status), token=token
            )
        except Exception as e:
            if self._token is not token:
                logger.info(f"Cancelled extraction of {source.file_name!r} ended with: {e}")
                return ProcessingReport(None, cancelled=True)
            logger.exception(f"Unexpected error while processing {source.file_name!r}")
            self.notifier.notify(GENERIC_ERROR, Severity.ERROR)
            return ProcessingReport(ExtractionFailure(str(e)))
        finally:
            superseded = self._token is not token
            if not superseded:
                self._token = None
                self._set_status("")

        if superseded or token.cancelled:
            logger.info(f"Discarding late extraction response for {source.file_name!r}")
            return ProcessingReport(outcome, cancelled=True)

        return self._apply(outcome)

    def _apply(self, outcome: ExtractionOutcome) -> ProcessingReport:
        if isinstance(outcome, ExtractionSuccess):
            self.results = self.merger.merge(self.results, outcome.data)
            self.show_results = True
            self._suggest_title()
            self._mark_auto_processed()
            self.notifier.notify(outcome.user_message, Severity.SUCCESS)
            return ProcessingReport(outcome, applied=True)

        if outcome.kind is OutcomeKind.FAILURE:
            self.notifier.notify(outcome.user_message, Severity.ERROR)
        else:
            self.notifier.notify(outcome.user_message, Severity.WARNING)
        return ProcessingReport(outcome)

    def _suggest_title(self) -> None:
        if self.draft.title.strip():
            return
        name = category_title(self.draft.category) or ""
        self.draft.title = f"{name} - {format_short_date(self.draft.exam_date)}"

    def _mark_auto_processed(self, now: Optional[datetime] = None) -> None:
        if AUTO_PROCESSED_MARKER in self.draft.observations:
            return
        stamp = (now or datetime.now()).strftime("%d/%m/%Y %H:%M:%S")
        prefix = f"{self.draft.observations}\n\n" if self.draft.observations else ""
        self.draft.observations = f"{prefix}{AUTO_PROCESSED_MARKER} pela IA em {stamp}."

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    async def save(self) -> Optional[SaveResult]:
        if not self.draft.title.strip():
            self.notifier.notify("Please enter a title for the exam.", Severity.WARNING)
            return None

        try:
            result = await self.coordinator.save(
                self.patient, self.draft, self.attachments, self.results
            )
        except ValidationError as e:
            self.notifier.notify(str(e), Severity.WARNING)
            return None
        except SaveFailedError as e:
            if e.exam_id:
                # The record exists; the next save must update it
                self.draft.id = e.exam_id
            self.notifier.notify(
                f"Could not save the exam after {e.attempts} attempts. "
                "Check your connection and try again.",
                Severity.ERROR,
            )
            return None
        except Exception:
            logger.exception("Unexpected error while saving exam")
            self.notifier.notify(GENERIC_ERROR, Severity.ERROR)
            return None

        failed_names = {f.file_name for f in result.failed_uploads}
        still_staged = [a for a in self.attachments if a.is_staged and a.file_name in failed_names]
        self.draft.id = result.exam_id
        self.attachments = result.attachments + still_staged

        if result.failed_upload_count:
            self.notifier.notify(
                f"Exam saved, but {result.failed_upload_count} attachment(s) failed to upload.",
                Severity.WARNING,
            )
        else:
            self.notifier.notify("Exam saved successfully.", Severity.SUCCESS)
        return result

    async def delete(self) -> Optional[DeleteResult]:
        if not self.exam_id:
            self.notifier.notify("This exam has not been saved yet.", Severity.WARNING)
            return None

        try:
            result = await self.coordinator.delete(self.patient, self.exam_id)
        except Exception:
            logger.exception(f"Unexpected error while deleting exam {self.exam_id}")
            self.notifier.notify(GENERIC_ERROR, Severity.ERROR)
            return None

        if result.failed_removals:
            self.notifier.notify(
                f"Exam deleted, but {len(result.failed_removals)} attachment file(s) "
                "could not be removed.",
                Severity.WARNING,
            )
        else:
            self.notifier.notify("Exam deleted.", Severity.SUCCESS)
        return result

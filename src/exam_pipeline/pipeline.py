# ============================================================================
# src/exam_pipeline/pipeline.py
# ============================================================================
"""
Pipeline wiring

Builds every component from settings (or explicit overrides) so the API,
scripts and tests share one construction path.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .classifiers.file_classifier import FileClassifier
from .config import base_settings
from .core.exam_session import ExamEditingSession
from .core.models import Exam, PatientRef
from .core.notifications import LoggingNotificationSink, NotificationSink
from .core.progress import ProgressEmitter
from .core.result_merger import ResultMerger
from .core.save_coordinator import SaveCoordinator
from .extractors.extraction_client import ExtractionClient
from .extractors.extraction_router import ExtractionRouter
from .storage.attachment_store import AttachmentStore
from .storage.object_store import LocalObjectStore, ObjectStore
from .storage.record_store import RecordStore, SQLiteRecordStore

logger = logging.getLogger(__name__)


@dataclass
class ExamPipeline:
    classifier: FileClassifier
    merger: ResultMerger
    client: ExtractionClient
    object_store: ObjectStore
    records: RecordStore
    attachments: AttachmentStore
    router: ExtractionRouter
    coordinator: SaveCoordinator

    @classmethod
    def from_settings(
        cls,
        storage_root: Optional[Path] = None,
        db_path: Optional[Path] = None,
        endpoint: Optional[str] = None,
        notifier: Optional[NotificationSink] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> "ExamPipeline":
        """
        Wire the pipeline.

        Args:
            storage_root: Local object store directory (STORAGE_ROOT)
            db_path: SQLite record store file (RECORD_DB_PATH)
            endpoint: Extraction service URL (EXTRACTION_ENDPOINT)
            notifier: Sink for coordinator warnings
            max_attempts: Save attempt bound (SAVE_MAX_ATTEMPTS)
            backoff_seconds: Wait between save attempts (SAVE_BACKOFF_SECONDS)
            sleep: Sleep coroutine used between save attempts
        """
        if storage_root is None or db_path is None:
            base_settings.create_directories()

        classifier = FileClassifier()
        client = ExtractionClient(endpoint=endpoint)
        object_store = LocalObjectStore(storage_root or base_settings.STORAGE_ROOT)
        records = SQLiteRecordStore(db_path or base_settings.RECORD_DB_PATH)
        attachments = AttachmentStore(object_store)

        pipeline = cls(
            classifier=classifier,
            merger=ResultMerger(),
            client=client,
            object_store=object_store,
            records=records,
            attachments=attachments,
            router=ExtractionRouter(client, object_store=object_store, classifier=classifier),
            coordinator=SaveCoordinator(
                records,
                attachments,
                notifier=notifier or LoggingNotificationSink(),
                max_attempts=max_attempts,
                backoff_seconds=backoff_seconds,
                sleep=sleep,
            ),
        )
        logger.info(f"Exam pipeline ready (extraction endpoint: {client.endpoint})")
        return pipeline

    def session(
        self,
        patient: PatientRef,
        exam: Optional[Exam] = None,
        notifier: Optional[NotificationSink] = None,
        progress: Optional[ProgressEmitter] = None,
    ) -> ExamEditingSession:
        """New editing session over this pipeline's components."""
        return ExamEditingSession(
            patient=patient,
            router=self.router,
            coordinator=self.coordinator,
            attachment_store=self.attachments,
            notifier=notifier,
            exam=exam,
            progress=progress,
            merger=self.merger,
        )

    async def close(self) -> None:
        await self.client.close()

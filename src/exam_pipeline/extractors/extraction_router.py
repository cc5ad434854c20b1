# ============================================================================
# src/exam_pipeline/extractors/extraction_router.py
# ============================================================================
"""
Extraction Router

Picks the extraction path for one attachment:

1. CLASSIFY (metadata only)
   - Unsupported, empty or oversized files end as warnings, no remote call

2. RESOLVE BYTES (first match wins)
   - In-memory blob
   - Remote URL (file_url, then legacy url fields)
   - Storage path through the object store

3. DELEGATE
   - Image: EXIF/resize preparation, then OCR-backed extraction
   - PDF / DOCX: sent as-is for AI document extraction

Byte resolution failures become ExtractionFailure with the cause preserved.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..classifiers.file_classifier import FileClassifier
from ..config import extraction_settings
from ..core.models import (
    ALTERNATE_URL_FIELDS,
    Attachment,
    ExtractionFailure,
    ExtractionOutcome,
    ExtractionWarning,
    FileKind,
)
from ..storage.object_store import ObjectStore
from ..utils.exceptions import BlobResolutionError, StorageError
from ..utils.file_utils import format_file_size
from ..utils.logging import log_performance
from .extraction_client import ExtractionClient
from .image_preparation import prepare_image

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str], None]

UNSUPPORTED_TYPE = "unsupported type"
EMPTY_FILE = "empty file"

STATUS_IMAGE_OCR = "Processing image with OCR..."
STATUS_IMAGE_EXTRACT = "Extracting exam data from the image..."
STATUS_DOCUMENT = "Processing document with AI..."
STATUS_FETCHING = "Fetching file..."


class ExtractionRouter:
    """
    Routes attachments to the extraction service.

    Args:
        client: Extraction service client
        object_store: Used to resolve attachments known only by storage path
        classifier: File classifier (default instance if None)
        max_upload_bytes: Files above this size are rejected (settings default)
        prepare_images: EXIF-orient and downscale images before OCR
    """

    def __init__(
        self,
        client: ExtractionClient,
        object_store: Optional[ObjectStore] = None,
        classifier: Optional[FileClassifier] = None,
        max_upload_bytes: Optional[int] = None,
        prepare_images: Optional[bool] = None,
    ):
        self.client = client
        self.object_store = object_store
        self.classifier = classifier or FileClassifier()
        self.max_upload_bytes = max_upload_bytes or extraction_settings.MAX_UPLOAD_BYTES
        self.prepare_images = (
            extraction_settings.OCR_PREPARE_IMAGES if prepare_images is None else prepare_images
        )

    def check_size(self, size: Optional[int]) -> Optional[ExtractionWarning]:
        """Warning for empty or oversized files, None when the size is acceptable or unknown."""
        if size is None:
            return None
        if size == 0:
            return ExtractionWarning(EMPTY_FILE)
        if size > self.max_upload_bytes:
            return ExtractionWarning(
                f"file too large ({format_file_size(size)}; "
                f"limit {format_file_size(self.max_upload_bytes)})"
            )
        return None

    @log_performance(logger, "Exam extraction")
    async def extract(
        self,
        source: Attachment,
        on_status: Optional[StatusCallback] = None,
    ) -> ExtractionOutcome:
        """
        Extract structured exam data from one attachment.

        Args:
            source: Staged or persisted attachment
            on_status: Receives human-readable stage text

        Returns:
            ExtractionOutcome
        """
        def report(text: str) -> None:
            if on_status is not None:
                on_status(text)

        classification = self.classifier.classify(source)
        if not classification.is_supported:
            logger.info(f"Rejected {source.file_name!r}: unsupported type {source.file_type!r}")
            return ExtractionWarning(UNSUPPORTED_TYPE)

        rejection = self.check_size(source.file_size)
        if rejection:
            return rejection

        try:
            if not source.is_staged:
                report(STATUS_FETCHING)
            data = await self.resolve_bytes(source)
        except BlobResolutionError as e:
            logger.error(f"Could not obtain bytes for {source.file_name!r}: {e}")
            return ExtractionFailure(str(e))

        rejection = self.check_size(len(data))
        if rejection:
            return rejection

        if classification.kind is FileKind.IMAGE:
            report(STATUS_IMAGE_OCR)
            file_name, content_type = source.file_name, source.file_type or None
            if self.prepare_images:
                prepared = await asyncio.to_thread(prepare_image, data, file_name, content_type)
                data, file_name, content_type = prepared.data, prepared.file_name, prepared.content_type
            report(STATUS_IMAGE_EXTRACT)
            return await self.client.submit(data, file_name, content_type)

        report(STATUS_DOCUMENT)
        return await self.client.submit(data, source.file_name, source.file_type or None)

    async def resolve_bytes(self, source: Attachment) -> bytes:
        """
        Obtain the file bytes, first match wins.

        Raises:
            BlobResolutionError: No strategy produced the bytes
        """
        if source.blob is not None:
            return source.blob

        urls = [source.file_url] + [source.alternate_urls.get(k) for k in ALTERNATE_URL_FIELDS]
        url = next((u for u in urls if u), None)
        if url:
            return await self.client.fetch_bytes(url)

        if source.storage_path:
            if self.object_store is None:
                raise BlobResolutionError(
                    f"No object store configured to resolve {source.storage_path}"
                )
            try:
                url = await self.object_store.get_url(source.storage_path)
            except StorageError as e:
                raise BlobResolutionError(f"Storage resolution failed: {e}") from e
            return await self.client.fetch_bytes(url)

        raise BlobResolutionError(f"No data or location known for {source.file_name!r}")

# ============================================================================
# src/exam_pipeline/storage/attachment_store.py
# ============================================================================
"""
Attachment Store

Lifecycle of exam attachments:
- stage: wrap a local file as an attachment holding its blob (no remote call)
- upload: push a staged blob to the object store, get a persisted attachment
- remove: delete the remote object (if any) and drop the entry
- resolve_url: find a URL the attachment can be opened from

resolve_url tries, in order: stored URLs, the local blob (as a temporary
file URL that must be revoked), the stored path, then an explicit list of
reconstructed paths. It never returns a guessed URL.
"""

import asyncio
import logging
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..config import persistence_settings
from ..core.models import (
    ALTERNATE_URL_FIELDS,
    Attachment,
    PatientRef,
    ResolutionStrategy,
)
from ..utils.exceptions import (
    AttachmentResolutionError,
    AttachmentUploadError,
    StorageError,
)
from ..utils.file_utils import get_extension, guess_mime_type, sanitize_filename
from .object_store import ObjectStore
from .paths import reconstruction_candidates

logger = logging.getLogger(__name__)


@dataclass
class RemovalResult:
    attachments: List[Attachment]
    removed: Optional[Attachment] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ResolveContext:
    """Where an attachment belongs, for path reconstruction."""

    patient: PatientRef
    exam_id: Optional[str] = None
    note_id: Optional[str] = None


@dataclass
class ResolvedUrl:
    url: str
    strategy: ResolutionStrategy
    temp_path: Optional[Path] = None
    tried: List[str] = field(default_factory=list)

    @property
    def needs_revoke(self) -> bool:
        return self.temp_path is not None

    def revoke(self) -> None:
        """Release a temporary blob URL. No-op for remote URLs."""
        if self.temp_path is None:
            return
        self.temp_path.unlink(missing_ok=True)
        logger.debug(f"Revoked temporary URL {self.url}")
        self.temp_path = None

    def schedule_revoke(self, delay: Optional[float] = None) -> Optional[asyncio.TimerHandle]:
        if self.temp_path is None:
            return None
        delay = persistence_settings.BLOB_URL_TTL_SECONDS if delay is None else delay
        return asyncio.get_running_loop().call_later(delay, self.revoke)


class AttachmentStore:
    """
    Stages, uploads, removes and resolves attachments against an ObjectStore.

    Args:
        object_store: Backend holding persisted blobs
        temp_dir: Directory for temporary blob URLs (system temp by default)
    """

    def __init__(self, object_store: ObjectStore, temp_dir: Optional[Path] = None):
        self.object_store = object_store
        self.temp_dir = Path(temp_dir) if temp_dir else None

    # ------------------------------------------------------------------
    # Stage
    # ------------------------------------------------------------------
    def stage(self, file_name: str, data: bytes, file_type: Optional[str] = None) -> Attachment:
        return Attachment(
            file_name=file_name,
            file_type=file_type or guess_mime_type(file_name),
            file_size=len(data),
            blob=data,
        )

    def stage_path(self, path: Path) -> Attachment:
        path = Path(path)
        return self.stage(path.name, path.read_bytes())

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------
    async def upload(self, attachment: Attachment, owner_path: str) -> Attachment:
        """
        Upload a staged attachment to `{owner_path}/{file_name}`.

        Raises:
            AttachmentUploadError: Nothing to upload, or the store failed
        """
        if not attachment.is_staged:
            raise AttachmentUploadError(
                f"Attachment {attachment.file_name!r} has no local data to upload",
                attachment.file_name,
            )

        path = f"{owner_path.rstrip('/')}/{sanitize_filename(attachment.file_name)}"
        try:
            url = await self.object_store.upload(path, attachment.blob, attachment.file_type)
        except StorageError as e:
            raise AttachmentUploadError(
                f"Upload of {attachment.file_name!r} failed: {e}", attachment.file_name
            ) from e

        logger.info(f"Uploaded {attachment.file_name!r} ({attachment.display_size}) to {path}")
        return attachment.persisted(storage_path=path, file_url=url, uploaded_at=datetime.now())

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------
    def _storage_path_of(self, attachment: Attachment) -> Optional[str]:
        if attachment.storage_path:
            return attachment.storage_path
        for url in [attachment.file_url, *attachment.alternate_urls.values()]:
            path = self.object_store.path_from_url(url) if url else None
            if path:
                return path
        return None

    async def delete_remote(self, attachment: Attachment) -> None:
        """
        Delete the stored object behind a persisted attachment.

        Raises:
            StorageError: No known path, or the store failed
        """
        path = self._storage_path_of(attachment)
        if not path:
            raise StorageError(f"No storage path known for {attachment.file_name!r}")
        await self.object_store.delete(path)

    async def remove(self, attachments: List[Attachment], index: int) -> RemovalResult:
        """
        Remove attachment `index` from the list.

        Persisted attachments lose their remote object first. A failed remote
        delete still drops the entry; the error is reported on the result.
        """
        if not 0 <= index < len(attachments):
            raise IndexError(f"Attachment index out of range: {index}")

        target = attachments[index]
        remaining = attachments[:index] + attachments[index + 1:]
        error = None

        if target.is_persisted:
            try:
                await self.delete_remote(target)
            except StorageError as e:
                error = str(e)
                logger.warning(f"Remote delete failed for {target.file_name!r}: {e}")

        return RemovalResult(attachments=remaining, removed=target, error=error)

    # ------------------------------------------------------------------
    # Resolve
    # ------------------------------------------------------------------
    async def resolve_url(self, attachment: Attachment, context: ResolveContext) -> ResolvedUrl:
        """
        Find a URL to open the attachment.

        Raises:
            AttachmentResolutionError: Every strategy failed
        """
        tried: List[str] = []

        if attachment.file_url:
            return ResolvedUrl(attachment.file_url, ResolutionStrategy.FILE_URL)

        for key in ALTERNATE_URL_FIELDS:
            url = attachment.alternate_urls.get(key)
            if url:
                return ResolvedUrl(url, ResolutionStrategy.ALTERNATE_URL)

        if attachment.is_staged:
            return await asyncio.to_thread(self._blob_url, attachment)

        if attachment.storage_path:
            tried.append(attachment.storage_path)
            try:
                url = await self.object_store.get_url(attachment.storage_path)
                return ResolvedUrl(url, ResolutionStrategy.STORAGE_PATH, tried=tried)
            except StorageError as e:
                logger.warning(f"Stored path failed for {attachment.file_name!r}: {e}")

        candidates = reconstruction_candidates(
            context.patient, context.exam_id, attachment.file_name, context.note_id
        )
        for strategy, path in candidates:
            if path in tried:
                continue
            tried.append(path)
            try:
                url = await self.object_store.get_url(path)
            except StorageError:
                logger.debug(f"No object at reconstructed path {path}")
                continue
            logger.info(f"Resolved {attachment.file_name!r} via {strategy.value}: {path}")
            return ResolvedUrl(url, strategy, tried=tried)

        raise AttachmentResolutionError(
            f"Could not resolve a URL for {attachment.file_name!r}",
            attachment.file_name,
            tried=tried,
        )

    def _blob_url(self, attachment: Attachment) -> ResolvedUrl:
        extension = get_extension(attachment.file_name)
        with tempfile.NamedTemporaryFile(
            suffix=f".{extension}" if extension else "",
            dir=self.temp_dir,
            delete=False,
        ) as handle:
            handle.write(attachment.blob)
            temp_path = Path(handle.name)
        return ResolvedUrl(temp_path.as_uri(), ResolutionStrategy.LOCAL_BLOB, temp_path=temp_path)

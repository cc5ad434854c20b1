# ============================================================================
# src/exam_pipeline/storage/object_store.py
# ============================================================================
"""
Object Store

Attachment blobs are addressed by slash-separated paths. The pipeline only
talks to the ObjectStore interface; LocalObjectStore keeps objects on the
filesystem under one root and hands out file:// URLs.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

from ..utils.exceptions import ObjectNotFoundError, StorageError

logger = logging.getLogger(__name__)


class ObjectStore(ABC):
    """Async object store keyed by path."""

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Store `data` under `path` and return its download URL."""

    @abstractmethod
    async def get_url(self, path: str) -> str:
        """Download URL of an existing object. Raises ObjectNotFoundError."""

    @abstractmethod
    async def download(self, path: str) -> bytes:
        ...

    @abstractmethod
    async def delete(self, path: str) -> None:
        ...

    @abstractmethod
    def path_from_url(self, url: str) -> Optional[str]:
        """Recover the object path from one of this store's URLs, if possible."""


class LocalObjectStore(ObjectStore):
    """
    Filesystem-backed object store.

    Args:
        root: Directory holding every object; paths are relative to it
    """

    def __init__(self, root: Path):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Local object store initialized: {self.root}")

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path.lstrip("/"))
        if not path or ".." in relative.parts:
            raise StorageError(f"Invalid object path: {path!r}")
        target = (self.root / Path(*relative.parts)).resolve()
        if target != self.root and self.root not in target.parents:
            raise StorageError(f"Object path escapes store root: {path!r}")
        return target

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------
    async def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        target = self._resolve(path)

        def _write():
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

        logger.debug(f"Stored {len(data)} bytes at {path}")
        return target.as_uri()

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(target.unlink)
        except FileNotFoundError as e:
            raise ObjectNotFoundError(path) from e
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}") from e
        logger.debug(f"Deleted object {path}")

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------
    async def get_url(self, path: str) -> str:
        target = self._resolve(path)
        if not await asyncio.to_thread(target.is_file):
            raise ObjectNotFoundError(path)
        return target.as_uri()

    async def download(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError as e:
            raise ObjectNotFoundError(path) from e
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def path_from_url(self, url: str) -> Optional[str]:
        if not url or not url.startswith("file:"):
            return None
        local = Path(url2pathname(urlparse(url).path)).resolve()
        if self.root not in local.parents:
            return None
        return local.relative_to(self.root).as_posix()

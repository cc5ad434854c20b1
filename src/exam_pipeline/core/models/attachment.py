# ============================================================================
# src/exam_pipeline/core/models/attachment.py
# ============================================================================
"""
Attachment representation
- Either a locally staged blob (pre-upload) or a persisted reference
- Serialized record form never carries the blob
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from ...utils.file_utils import format_file_size

# Legacy records stored the download URL under one of these keys
ALTERNATE_URL_FIELDS = ("url", "downloadURL")


@dataclass
class Attachment:
    file_name: str
    file_type: str = ""
    file_size: Optional[int] = None  # bytes
    uploaded_at: Optional[datetime] = None

    # Local, transient
    blob: Optional[bytes] = field(default=None, repr=False)

    # Persisted reference
    file_url: Optional[str] = None
    storage_path: Optional[str] = None
    alternate_urls: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.blob is not None and self.is_persisted:
            raise ValueError(
                f"Attachment {self.file_name!r} cannot hold both a local blob "
                "and a persisted reference"
            )
        if self.file_size is None and self.blob is not None:
            self.file_size = len(self.blob)

    @property
    def is_staged(self) -> bool:
        return self.blob is not None

    @property
    def is_persisted(self) -> bool:
        return bool(self.file_url or self.storage_path or self.alternate_urls)

    @property
    def display_size(self) -> str:
        return format_file_size(self.file_size)

    def persisted(
        self,
        storage_path: str,
        file_url: str,
        uploaded_at: Optional[datetime] = None,
    ) -> "Attachment":
        """Copy of a staged attachment after a successful upload (blob dropped)."""
        return replace(
            self,
            blob=None,
            storage_path=storage_path,
            file_url=file_url,
            uploaded_at=uploaded_at or datetime.now(),
            alternate_urls={},
        )

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "fileName": self.file_name,
            "fileType": self.file_type,
            "fileSize": self.file_size,
            "fileSizeDisplay": self.display_size,
            "uploadedAt": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }
        if self.file_url:
            record["fileUrl"] = self.file_url
        if self.storage_path:
            record["storagePath"] = self.storage_path
        for key, value in self.alternate_urls.items():
            record.setdefault(key, value)
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Attachment":
        """
        Rebuild a persisted attachment from its record.

        Accepts legacy shapes: size stored as a display string, URL stored
        under `url` / `downloadURL`, missing `storagePath`.
        """
        uploaded_at = record.get("uploadedAt")
        if isinstance(uploaded_at, str):
            try:
                uploaded_at = datetime.fromisoformat(uploaded_at)
            except ValueError:
                uploaded_at = None

        size = record.get("fileSize")
        if isinstance(size, str):
            size = int(size) if size.isdigit() else None
        elif not isinstance(size, int):
            size = None

        return cls(
            file_name=record.get("fileName") or record.get("name") or "",
            file_type=record.get("fileType") or record.get("type") or "",
            file_size=size,
            uploaded_at=uploaded_at if isinstance(uploaded_at, datetime) else None,
            file_url=record.get("fileUrl") or None,
            storage_path=record.get("storagePath") or None,
            alternate_urls={
                key: record[key] for key in ALTERNATE_URL_FIELDS if record.get(key)
            },
        )

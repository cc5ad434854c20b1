# ============================================================================
# src/exam_pipeline/classifiers/file_classifier.py
# ============================================================================
"""
File Classifier

Decides the document kind of an upload or attachment from metadata only:

1. MIME SIGNAL
   - "pdf" substring -> PDF
   - "word" substring or the DOCX MIME -> DOCX
   - "image/" prefix -> image

2. EXTENSION SIGNAL (case-insensitive, from the display name)
   - pdf / docx, doc / jpg, jpeg, png, gif, bmp, webp

Signals are OR-combined per kind, so a file with an empty MIME but a known
extension still classifies. Never raises: malformed input is unsupported.
"""

import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, Mapping, Tuple

from ..constants.file_types import (
    PDF_EXTENSIONS,
    DOCX_EXTENSIONS,
    IMAGE_EXTENSIONS,
    PDF_MIME_MARKERS,
    DOCX_MIME_MARKERS,
    IMAGE_MIME_PREFIX,
)
from ..core.models import FileKind
from ..utils.file_utils import get_extension

logger = logging.getLogger(__name__)

_NAME_KEYS = ("fileName", "file_name", "name", "filename")
_TYPE_KEYS = ("fileType", "file_type", "type", "content_type", "mimeType")
_NAME_ATTRS = ("file_name", "name", "filename")
_TYPE_ATTRS = ("file_type", "content_type", "type", "mime_type")


@dataclass(frozen=True)
class FileClassification:
    is_pdf: bool = False
    is_docx: bool = False
    is_image: bool = False

    @property
    def is_supported(self) -> bool:
        return self.is_pdf or self.is_docx or self.is_image

    @property
    def kind(self) -> FileKind:
        """Kind used for routing. Image wins over the document kinds."""
        if self.is_image:
            return FileKind.IMAGE
        if self.is_pdf:
            return FileKind.PDF
        if self.is_docx:
            return FileKind.DOCX
        return FileKind.UNSUPPORTED

    def to_dict(self) -> dict:
        return {
            "is_pdf": self.is_pdf,
            "is_docx": self.is_docx,
            "is_image": self.is_image,
            "is_supported": self.is_supported,
            "kind": self.kind.value,
        }


UNSUPPORTED = FileClassification()


def _first_str(values) -> str:
    for value in values:
        if isinstance(value, str) and value:
            return value
    return ""


def _describe(file_ref: Any) -> Tuple[str, str]:
    """Extract (display name, MIME-like string) from any supported shape."""
    if isinstance(file_ref, (str, PurePath)):
        return str(file_ref), ""
    if isinstance(file_ref, Mapping):
        name = _first_str(file_ref.get(key) for key in _NAME_KEYS)
        mime = _first_str(file_ref.get(key) for key in _TYPE_KEYS)
        return name, mime
    name = _first_str(getattr(file_ref, attr, None) for attr in _NAME_ATTRS)
    mime = _first_str(getattr(file_ref, attr, None) for attr in _TYPE_ATTRS)
    return name, mime


class FileClassifier:
    """Pure, idempotent classification of file references."""

    def classify(self, file_ref: Any) -> FileClassification:
        if file_ref is None:
            return UNSUPPORTED

        try:
            name, mime = _describe(file_ref)
        except Exception as e:
            logger.warning(f"Could not read file metadata for classification: {e}")
            return UNSUPPORTED

        mime = mime.lower()
        extension = get_extension(name)

        classification = FileClassification(
            is_pdf=any(marker in mime for marker in PDF_MIME_MARKERS)
            or extension in PDF_EXTENSIONS,
            is_docx=any(marker in mime for marker in DOCX_MIME_MARKERS)
            or extension in DOCX_EXTENSIONS,
            is_image=mime.startswith(IMAGE_MIME_PREFIX)
            or extension in IMAGE_EXTENSIONS,
        )

        logger.debug(
            f"Classified {name!r} (type={mime!r}) as {classification.kind.value}"
        )
        return classification


file_classifier = FileClassifier()


def classify(file_ref: Any) -> FileClassification:
    return file_classifier.classify(file_ref)

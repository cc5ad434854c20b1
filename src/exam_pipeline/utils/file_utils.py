# ============================================================================
# src/exam_pipeline/utils/file_utils.py
# ============================================================================
"""
File utilities for the exam pipeline.
"""

import mimetypes
import re
from pathlib import Path
from typing import Optional


def format_file_size(size_in_bytes: Optional[int]) -> str:
    """
    Human readable size: bytes, KB, MB, GB with one decimal.

    Args:
        size_in_bytes: Size in bytes

    Returns:
        Formatted size string (e.g. "1.5 MB")
    """
    if size_in_bytes is None:
        return ""
    if size_in_bytes < 1024:
        return f"{size_in_bytes} bytes"
    if size_in_bytes < 1024 * 1024:
        return f"{size_in_bytes / 1024:.1f} KB"
    if size_in_bytes < 1024 * 1024 * 1024:
        return f"{size_in_bytes / (1024 * 1024):.1f} MB"
    return f"{size_in_bytes / (1024 * 1024 * 1024):.1f} GB"


def guess_mime_type(file_name: str, default: str = "application/octet-stream") -> str:
    """Guess a MIME type from a file name."""
    mime_type, _ = mimetypes.guess_type(file_name or "")
    return mime_type or default


def get_extension(file_name: str) -> str:
    """Lower-case extension without the dot ("" when there is none)."""
    suffix = Path(file_name or "").suffix
    return suffix[1:].lower() if suffix else ""


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename for use as the last segment of a storage path.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename
    """
    # Path separators would create extra levels in the object store
    sanitized = re.sub(r'[\\/]', '_', filename or "")
    sanitized = re.sub(r'[<>:"|?*\x00-\x1f]', '_', sanitized)
    sanitized = sanitized.strip('. ')
    return sanitized or "file"

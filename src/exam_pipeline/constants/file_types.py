# ============================================================================
# src/exam_pipeline/constants/file_types.py
# ============================================================================
"""
File type signals used to classify exam documents.
"""

PDF_MIME_TYPE = "application/pdf"
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

PDF_EXTENSIONS = frozenset({"pdf"})
DOCX_EXTENSIONS = frozenset({"docx", "doc"})
IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "bmp", "webp"})

# Substrings matched against the declared MIME type
PDF_MIME_MARKERS = ("pdf",)
DOCX_MIME_MARKERS = ("word", DOCX_MIME_TYPE)
IMAGE_MIME_PREFIX = "image/"

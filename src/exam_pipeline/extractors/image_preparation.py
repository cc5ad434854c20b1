# ============================================================================
# src/exam_pipeline/extractors/image_preparation.py
# ============================================================================
"""
Image preparation before OCR submission.

Phone photos of lab reports usually arrive rotated through an EXIF tag and
far larger than OCR needs. Images are EXIF-transposed and downscaled to the
configured max dimension; anything that does not need either is sent as-is.
"""

import io
import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from ..config import extraction_settings

logger = logging.getLogger(__name__)

EXIF_ORIENTATION_TAG = 0x0112


@dataclass(frozen=True)
class PreparedImage:
    data: bytes
    file_name: str
    content_type: Optional[str]
    resized: bool = False
    transposed: bool = False

    @property
    def changed(self) -> bool:
        return self.resized or self.transposed


def prepare_image(
    data: bytes,
    file_name: str,
    content_type: Optional[str] = None,
    max_dimension: Optional[int] = None,
) -> PreparedImage:
    """
    EXIF-orient and downscale an image.

    Args:
        data: Raw image bytes
        file_name: Display name, kept unless the image is re-encoded
        content_type: Declared MIME type
        max_dimension: Longest side after resize (settings default)

    Returns:
        PreparedImage; the original bytes when decoding fails
    """
    max_dimension = max_dimension or extraction_settings.OCR_MAX_IMAGE_DIMENSION
    original = PreparedImage(data=data, file_name=file_name, content_type=content_type)

    try:
        with Image.open(io.BytesIO(data)) as img:
            orientation = img.getexif().get(EXIF_ORIENTATION_TAG, 1)
            transposed = orientation not in (None, 1)
            w, h = img.size
            resized = max(w, h) > max_dimension

            if not (transposed or resized):
                return original

            out = ImageOps.exif_transpose(img) if transposed else img.copy()

            if resized:
                scale = max_dimension / max(w, h)
                new_w, new_h = max(1, int(w * scale)), max(1, int(h * scale))
                out = out.resize((new_w, new_h), Image.LANCZOS)
                logger.info(f"OCR: resized image {w}x{h} -> {new_w}x{new_h}")

            if out.mode not in ("RGB", "L"):
                out = out.convert("RGB")

            buf = io.BytesIO()
            out.save(buf, format="JPEG", quality=90)

    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning(f"Image preparation failed for {file_name!r} ({e}), sending original")
        return original

    return PreparedImage(
        data=buf.getvalue(),
        file_name=f"{PurePath(file_name).stem or 'image'}.jpg",
        content_type="image/jpeg",
        resized=resized,
        transposed=transposed,
    )

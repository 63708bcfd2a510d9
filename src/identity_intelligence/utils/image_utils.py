"""
Image utilities for the Identity Intelligence System.

Pillow-based inspection of uploaded image bytes. Images are never modified;
the recognition service receives the original bytes.
"""

import io
import logging
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# Pillow format name -> MIME type accepted by the recognition service
PIL_FORMAT_TO_MIME = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "BMP": "image/bmp",
    "WEBP": "image/webp",
    "TIFF": "image/tiff",
}

PDF_MAGIC = b"%PDF-"


def detect_mime_type(content: bytes) -> Optional[str]:
    """
    Detect the MIME type of image bytes.

    Args:
        content: Raw file bytes

    Returns:
        MIME type string, or None if the bytes are not a recognizable image
        or PDF.
    """
    if not content:
        return None

    if content.startswith(PDF_MAGIC):
        return "application/pdf"

    try:
        with Image.open(io.BytesIO(content)) as image:
            image_format = image.format
    except (UnidentifiedImageError, OSError) as e:
        logger.debug(f"Could not identify image bytes: {e}")
        return None

    return PIL_FORMAT_TO_MIME.get(image_format or "")


def get_image_dimensions(content: bytes) -> Optional[Tuple[int, int]]:
    """
    Get (width, height) of image bytes without decoding pixel data.

    Returns:
        Tuple of width and height, or None for non-image content.
    """
    if not content or content.startswith(PDF_MAGIC):
        return None

    try:
        with Image.open(io.BytesIO(content)) as image:
            return image.size
    except (UnidentifiedImageError, OSError):
        return None

"""Utility functions for identity intelligence system."""

from .file_utils import ensure_directory, generate_unique_id, read_image_upload
from .image_utils import detect_mime_type
from .text_utils import normalize_whitespace, strip_separators

__all__ = [
    "ensure_directory",
    "generate_unique_id",
    "read_image_upload",
    "detect_mime_type",
    "normalize_whitespace",
    "strip_separators",
]

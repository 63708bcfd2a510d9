"""
File utilities for the Identity Intelligence System.

Provides functions for reading uploaded images, discovering role-named files
in batch directories, and writing results safely.
"""

import os
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from ..models.data_structures import ImageRole, ImageUpload
from .image_utils import detect_mime_type

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".pdf")


def ensure_directory(path: str) -> None:
    """
    Create directory if it doesn't exist, including parent directories.

    Args:
        path: Directory path to create

    Raises:
        OSError: If directory creation fails
    """
    try:
        Path(path).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OSError(f"Failed to create directory {path}: {e}")


def read_image_upload(file_path: str) -> ImageUpload:
    """
    Read an image file into an ImageUpload.

    The MIME type is detected from the bytes; the file name is kept as the
    upload's file reference.

    Args:
        file_path: Path to the image file

    Returns:
        ImageUpload with content, detected MIME type and file name

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    if not os.path.isfile(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")

    with open(file_path, "rb") as f:
        content = f.read()

    return ImageUpload(
        content=content,
        mime_type=detect_mime_type(content),
        filename=os.path.basename(file_path),
    )


def find_role_images(directory: str) -> Dict[ImageRole, str]:
    """
    Find role-named images (id_front.jpg, license-back.png, ...) in a directory.

    Only the first file per role (sorted by name) is used.

    Args:
        directory: Directory to scan (not recursive)

    Returns:
        Mapping of image role to absolute file path

    Raises:
        NotADirectoryError: If path is not a directory
    """
    if not os.path.isdir(directory):
        raise NotADirectoryError(f"Not a directory: {directory}")

    found: Dict[ImageRole, str] = {}
    for item in sorted(os.listdir(directory)):
        item_path = os.path.join(directory, item)
        stem, ext = os.path.splitext(item)
        if not os.path.isfile(item_path) or ext.lower() not in IMAGE_EXTENSIONS:
            continue
        try:
            role = ImageRole.from_value(stem)
        except ValueError:
            continue
        found.setdefault(role, os.path.abspath(item_path))

    return found


def list_subdirectories(directory: str) -> List[str]:
    """
    List immediate subdirectories sorted by name.

    Raises:
        NotADirectoryError: If path is not a directory
    """
    if not os.path.isdir(directory):
        raise NotADirectoryError(f"Not a directory: {directory}")

    return sorted(
        os.path.abspath(os.path.join(directory, item))
        for item in os.listdir(directory)
        if os.path.isdir(os.path.join(directory, item))
    )


def safe_filename(filename: str, max_length: int = 255) -> str:
    """
    Sanitize filename for safe filesystem use.

    Removes/replaces unsafe characters and limits length.
    """
    filename = os.path.basename(filename)

    unsafe_chars = ["<", ">", ":", '"', "/", "\\", "|", "?", "*"]
    for char in unsafe_chars:
        filename = filename.replace(char, "_")

    filename = filename.strip(". ")

    if not filename:
        filename = "unnamed"

    if len(filename) > max_length:
        name, ext = os.path.splitext(filename)
        filename = name[: max_length - len(ext)] + ext

    return filename


def generate_unique_id(prefix: str = "") -> str:
    """
    Generate unique ID with optional prefix.

    Format: PREFIX-YYYYMMDD-HHMMSS-UUID
    Example: REC-20251102-143022-a1b2c3d4
    """
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    unique_suffix = uuid.uuid4().hex[:8]

    if prefix:
        return f"{prefix}-{timestamp}-{unique_suffix}"
    return f"{timestamp}-{unique_suffix}"


def atomic_write(
    file_path: str, content: str, encoding: Optional[str] = "utf-8"
) -> None:
    """
    Write file atomically using temporary file and rename.

    Raises:
        OSError: If write fails
    """
    directory = os.path.dirname(file_path)
    if directory:
        ensure_directory(directory)

    temp_path = f"{file_path}.tmp.{uuid.uuid4().hex[:8]}"

    try:
        with open(temp_path, "w", encoding=encoding) as f:
            f.write(content)
        os.replace(temp_path, file_path)
    except OSError as e:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise OSError(f"Atomic write failed for {file_path}: {e}")

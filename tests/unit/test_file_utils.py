"""
Unit tests for file_utils module.
"""

from pathlib import Path

import pytest

from identity_intelligence.models.data_structures import ImageRole
from identity_intelligence.utils import file_utils


class TestEnsureDirectory:
    """Tests for ensure_directory function."""

    def test_create_nested_directories(self, tmp_path):
        """Test creating nested directories."""
        nested_dir = tmp_path / "level1" / "level2"

        file_utils.ensure_directory(str(nested_dir))

        assert nested_dir.is_dir()

    def test_existing_directory_no_error(self, tmp_path):
        """Test that existing directory doesn't raise error."""
        file_utils.ensure_directory(str(tmp_path))


class TestReadImageUpload:
    """Tests for read_image_upload function."""

    def test_reads_bytes_and_detects_type(self, tmp_path, png_bytes):
        path = tmp_path / "recto.png"
        path.write_bytes(png_bytes)

        upload = file_utils.read_image_upload(str(path))

        assert upload.content == png_bytes
        assert upload.mime_type == "image/png"
        assert upload.filename == "recto.png"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            file_utils.read_image_upload(str(tmp_path / "absent.jpg"))


class TestFindRoleImages:
    """Tests for find_role_images function."""

    def test_role_named_files(self, tmp_path, png_bytes):
        for name in ("id_front.png", "ID-BACK.jpg", "license_front.pdf", "notes.txt", "selfie.jpg"):
            (tmp_path / name).write_bytes(png_bytes)

        found = file_utils.find_role_images(str(tmp_path))

        assert set(found) == {ImageRole.ID_FRONT, ImageRole.ID_BACK, ImageRole.LICENSE_FRONT}
        assert found[ImageRole.ID_BACK].endswith("ID-BACK.jpg")

    def test_first_file_per_role_wins(self, tmp_path, png_bytes):
        (tmp_path / "id_front.jpg").write_bytes(png_bytes)
        (tmp_path / "id_front.png").write_bytes(png_bytes)

        found = file_utils.find_role_images(str(tmp_path))

        assert found[ImageRole.ID_FRONT].endswith("id_front.jpg")

    def test_not_a_directory(self, tmp_path):
        with pytest.raises(NotADirectoryError):
            file_utils.find_role_images(str(tmp_path / "missing"))


class TestListSubdirectories:
    """Tests for list_subdirectories function."""

    def test_sorted(self, tmp_path):
        (tmp_path / "client_b").mkdir()
        (tmp_path / "client_a").mkdir()
        (tmp_path / "file.txt").write_text("x")

        result = file_utils.list_subdirectories(str(tmp_path))

        assert [Path(p).name for p in result] == ["client_a", "client_b"]


class TestSafeFilename:
    """Tests for safe_filename function."""

    def test_unsafe_characters_replaced(self):
        assert file_utils.safe_filename('client:1*?.json') == "client_1__.json"

    def test_empty_name(self):
        assert file_utils.safe_filename("...") == "unnamed"


class TestAtomicWrite:
    """Tests for atomic_write function."""

    def test_write_creates_parent(self, tmp_path):
        target = tmp_path / "out" / "client.json"

        file_utils.atomic_write(str(target), '{"ok": true}')

        assert target.read_text(encoding="utf-8") == '{"ok": true}'
        assert [p.name for p in target.parent.iterdir()] == ["client.json"]


def test_generate_unique_id():
    first = file_utils.generate_unique_id("BATCH")
    second = file_utils.generate_unique_id("BATCH")

    assert first.startswith("BATCH-")
    assert first != second

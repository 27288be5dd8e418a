"""Tests for uploaded file storage."""
import logging
from unittest.mock import patch

import pytest

from noteflow.exceptions import ErrorCode, StorageError, ValidationError
from noteflow.storage.upload_store import UploadStore, build_upload_filename


@pytest.fixture
def uploads(temp_dirs):
    return UploadStore(temp_dirs / "uploads")


class TestUploadFilename:
    """Tests for on-disk naming."""

    @pytest.mark.parametrize(
        "original, expected",
        [
            ("report.pdf", "file_abc.pdf"),
            ("photo.final.JPG", "file_abc.JPG"),
            ("Makefile", "file_abc"),
            ("weird.t@r", "file_abc.tr"),
            ("trailing.", "file_abc"),
        ],
    )
    def test_extension_taken_from_original(self, original, expected):
        assert build_upload_filename("file_abc", original) == expected


class TestUploadStore:
    """Tests for saving, reading and removing uploads."""

    def test_directory_created_lazily(self, uploads):
        assert not uploads.uploads_dir.exists()
        uploads.save("file_1", "a.txt", b"hello")
        assert uploads.uploads_dir.is_dir()

    def test_save_and_read(self, uploads):
        path = uploads.save("file_1", "notes.txt", b"hello")

        assert path == "file_1.txt"
        assert uploads.read(path) == b"hello"

    def test_read_missing_raises(self, uploads):
        with pytest.raises(StorageError) as exc_info:
            uploads.read("file_missing.txt")
        assert exc_info.value.message == "File not found on disk"
        assert exc_info.value.code == ErrorCode.STORAGE_READ_FAILED

    @pytest.mark.parametrize("path", ["../users.json", "sub/file.txt", "..", ""])
    def test_resolve_rejects_traversal(self, uploads, path):
        with pytest.raises(ValidationError) as exc_info:
            uploads.resolve(path)
        assert exc_info.value.code == ErrorCode.PATH_TRAVERSAL_DETECTED

    def test_remove(self, uploads):
        path = uploads.save("file_1", "a.txt", b"x")
        assert uploads.remove(path) is True
        assert not (uploads.uploads_dir / path).exists()

    def test_remove_missing_is_noop(self, uploads):
        assert uploads.remove("file_missing.txt") is False

    def test_remove_failure_is_logged_not_raised(self, uploads, caplog):
        path = uploads.save("file_1", "a.txt", b"x")
        with patch(
            "noteflow.storage.upload_store.os.remove",
            side_effect=PermissionError("Permission denied"),
        ):
            with caplog.at_level(logging.WARNING, logger="noteflow.storage.upload_store"):
                assert uploads.remove(path) is False
        assert "Failed to delete uploaded file" in caplog.text

    def test_remove_unsafe_path_is_logged_not_raised(self, uploads, caplog):
        with caplog.at_level(logging.WARNING, logger="noteflow.storage.upload_store"):
            assert uploads.remove("../users.json") is False
        assert "users.json" in caplog.text

    def test_save_failure_raises(self, temp_dirs):
        # A file where the uploads directory should be
        blocker = temp_dirs / "uploads"
        blocker.write_text("not a directory")
        uploads = UploadStore(blocker)

        with pytest.raises(StorageError) as exc_info:
            uploads.save("file_1", "a.txt", b"x")
        assert exc_info.value.operation == "upload"

"""Storage for uploaded attachment bytes."""
import logging
import os
from pathlib import Path

from noteflow.exceptions import ErrorCode, StorageError, ValidationError
from noteflow.models.schema import validate_safe_filename

logger = logging.getLogger(__name__)


def build_upload_filename(file_id: str, original_name: str) -> str:
    """Build the on-disk name for an upload: file ID plus original extension.

    Examples:
        ("file_abc", "report.PDF") -> "file_abc.PDF"
        ("file_abc", "Makefile") -> "file_abc"
    """
    _, dot, extension = original_name.rpartition(".")
    extension = "".join(c for c in extension if c.isalnum()) if dot else ""
    return f"{file_id}.{extension}" if extension else file_id


class UploadStore:
    """A flat directory of uploaded files, addressed by relative filename.

    The directory is created on first use. Stored paths are plain filenames;
    anything that could escape the directory is rejected.
    """

    def __init__(self, uploads_dir: Path):
        self.uploads_dir = Path(uploads_dir)

    def ensure(self) -> Path:
        """Create the uploads directory if missing and return it."""
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        return self.uploads_dir

    def resolve(self, relative_path: str) -> Path:
        """Get the absolute path of a stored file.

        Raises:
            ValidationError: If the path is not a plain filename.
        """
        try:
            validate_safe_filename(relative_path, "File path")
        except ValueError as e:
            raise ValidationError(
                str(e),
                field="path",
                value=relative_path,
                code=ErrorCode.PATH_TRAVERSAL_DETECTED,
            ) from e
        return self.uploads_dir / relative_path

    def save(self, file_id: str, original_name: str, data: bytes) -> str:
        """Write uploaded bytes and return the relative filename.

        Raises:
            StorageError: If the file cannot be written.
        """
        filename = build_upload_filename(file_id, original_name)
        file_path = self.resolve(filename)
        try:
            self.ensure()
            file_path.write_bytes(data)
        except OSError as e:
            raise StorageError(
                f"Failed to write file {file_id}",
                operation="upload",
                path=filename,
                original_error=e,
            ) from e
        return filename

    def read(self, relative_path: str) -> bytes:
        """Read a stored file.

        Raises:
            StorageError: If the file is missing or unreadable.
        """
        file_path = self.resolve(relative_path)
        try:
            return file_path.read_bytes()
        except OSError as e:
            raise StorageError(
                "File not found on disk",
                operation="read",
                path=relative_path,
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=e,
            ) from e

    def remove(self, relative_path: str) -> bool:
        """Best-effort delete of a stored file.

        Failures are logged and swallowed so callers can still drop the
        metadata entry.

        Returns:
            True if a file was deleted, False otherwise.
        """
        try:
            file_path = self.resolve(relative_path)
            if not file_path.exists():
                return False
            os.remove(file_path)
            return True
        except (OSError, ValidationError) as e:
            logger.warning(f"Failed to delete uploaded file {relative_path}: {e}")
            return False

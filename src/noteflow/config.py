"""Configuration module for the Noteflow server."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from noteflow import __version__

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config, lives alongside the default data directory
_USER_ENV = Path.home() / ".noteflow" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

# Collection documents, one JSON array each
USERS_FILE = "users.json"
NOTES_FILE = "notes.json"
LABELS_FILE = "labels.json"
TASKS_FILE = "tasks.json"
TASK_LABELS_FILE = "task-labels.json"


class NoteflowConfig(BaseModel):
    """Configuration for the Noteflow server."""

    # Base directory that relative paths resolve against
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEFLOW_BASE_DIR", "."))
    )
    # Directory holding the collection documents
    data_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEFLOW_DATA_DIR", "data"))
    )
    # Uploaded note attachments
    uploads_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTEFLOW_UPLOADS_DIR", "data/uploads")
        )
    )
    # Uploaded task attachments
    task_uploads_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTEFLOW_TASK_UPLOADS_DIR", "data/task-uploads")
        )
    )
    # Days added to "now" when a task is created without a due date
    default_due_days: int = Field(
        default_factory=lambda: int(os.getenv("NOTEFLOW_DEFAULT_DUE_DAYS", "2"))
    )
    # Largest attachment accepted by the tool server
    max_upload_bytes: int = Field(
        default_factory=lambda: int(
            os.getenv("NOTEFLOW_MAX_UPLOAD_BYTES", str(10 * 1024 * 1024))
        )
    )
    # Logging
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("NOTEFLOW_LOG_DIR"))
            if os.getenv("NOTEFLOW_LOG_DIR")
            else None
        )
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("NOTEFLOW_LOG_LEVEL", "INFO")
    )
    # Server configuration
    server_name: str = Field(default=os.getenv("NOTEFLOW_SERVER_NAME", "noteflow"))
    server_version: str = Field(default=__version__)

    @model_validator(mode="after")
    def _validate_limits(self) -> "NoteflowConfig":
        """Reject settings the storage layer cannot work with."""
        if self.default_due_days < 0:
            raise ValueError("default_due_days must be >= 0")
        if self.max_upload_bytes < 1:
            raise ValueError("max_upload_bytes must be >= 1")
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_collection_path(self, filename: str) -> Path:
        """Get the absolute path of a collection document inside data_dir."""
        return self.get_absolute_path(self.data_dir) / filename

    def get_uploads_dir(self, tasks: bool = False) -> Path:
        """Get the absolute uploads directory for notes or tasks.

        The directory is not created here; the upload store creates it lazily.
        """
        return self.get_absolute_path(
            self.task_uploads_dir if tasks else self.uploads_dir
        )


# Create a global config instance
config = NoteflowConfig()

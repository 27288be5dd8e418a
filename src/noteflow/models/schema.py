"""Data models for the Noteflow server.

Records are stored with camelCase keys and ISO 8601 UTC timestamps with
millisecond precision (``2025-08-11T11:22:26.209Z``) so that existing data
files stay readable.
"""

import datetime
import os
import re
import threading
from datetime import timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, Field, PlainSerializer
from pydantic.alias_generators import to_camel

HEX_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")


def validate_safe_filename(value: str, field_name: str = "value") -> str:
    """Validate that a value names a single file directly inside an uploads dir.

    Only path separators and parent directory references are rejected; stored
    names such as ``file_abc.jpég`` or ``file_abc.`` from older uploads stay
    addressable.

    Raises:
        ValueError: If the value is empty or could escape the directory
    """
    if not value:
        raise ValueError(f"{field_name} cannot be empty")

    if ".." in value:
        raise ValueError(f"{field_name} cannot contain '..' (path traversal)")

    if "/" in value or "\\" in value:
        raise ValueError(f"{field_name} cannot contain path separators")

    return value


def utc_now() -> datetime.datetime:
    """Get current UTC time, truncated to the millisecond precision we persist.

    Returns:
        Current time with UTC timezone info attached.
    """
    now = datetime.datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def next_timestamp(previous: Optional[datetime.datetime] = None) -> datetime.datetime:
    """Get a modification timestamp strictly later than ``previous``.

    Two writes inside the same millisecond would otherwise share an
    ``updatedAt`` value.
    """
    now = utc_now()
    if previous is not None and now <= previous:
        return previous + datetime.timedelta(milliseconds=1)
    return now


def ensure_timezone_aware(dt_value: datetime.datetime) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC."""
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value.astimezone(timezone.utc)


def normalize_timestamp(dt_value: datetime.datetime) -> datetime.datetime:
    """Make a datetime UTC-aware and drop sub-millisecond precision."""
    dt_value = ensure_timezone_aware(dt_value)
    return dt_value.replace(microsecond=(dt_value.microsecond // 1000) * 1000)


def format_timestamp(dt_value: datetime.datetime) -> str:
    """Format a datetime the way records store it: ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    dt_value = ensure_timezone_aware(dt_value)
    return dt_value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt_value.microsecond // 1000:03d}Z"


Timestamp = Annotated[
    datetime.datetime,
    AfterValidator(normalize_timestamp),
    PlainSerializer(format_timestamp, return_type=str, when_used="json"),
]


# Thread-safe counter for uniqueness (seeded from PID for cross-process safety)
_id_lock = threading.Lock()
_last_timestamp = 0
_counter = (os.getpid() * 7) % 1_000_000


def generate_id(prefix: str) -> str:
    """Generate a kind-prefixed, timestamp-based ID with guaranteed uniqueness.

    Returns:
        A string ``<prefix>_YYYYMMDDtHHMMSSsssssscccccc`` where ssssss is the
        microsecond component and cccccc a counter for same-microsecond and
        cross-process uniqueness.
    """
    global _last_timestamp, _counter

    with _id_lock:
        now = datetime.datetime.now(timezone.utc)
        current_timestamp = int(now.timestamp() * 1_000_000)

        if current_timestamp == _last_timestamp:
            _counter += 1
        else:
            _last_timestamp = current_timestamp
            _counter = (os.getpid() * 7) % 1_000_000

        _counter %= 1_000_000

        date_time = now.strftime("%Y%m%dt%H%M%S")
        return f"{prefix}_{date_time}{now.microsecond:06d}{_counter:06d}"


class TaskStatus(str, Enum):
    """Workflow states of a task. Any state may move to any other."""

    TODO = "Todo"
    IN_PROGRESS = "In Progress"
    DONE = "Done"


class Record(BaseModel):
    """Base for persisted records: camelCase on disk, snake_case in Python."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "validate_assignment": True,
        "extra": "ignore",
    }

    def to_record(self) -> Dict[str, Any]:
        """Dump to the JSON-compatible dict written to the collection document."""
        return self.model_dump(mode="json", by_alias=True)


class Label(Record):
    """A named colour label. Note-labels and task-labels share this shape."""

    id: str = Field(..., description="Unique ID of the label")
    name: str = Field(..., description="Label name, unique case-insensitively")
    color: str = Field(..., description="Hex colour, e.g. #3b82f6")
    created_at: Timestamp = Field(default_factory=utc_now)
    updated_at: Timestamp = Field(default_factory=utc_now)


class Attachment(Record):
    """Metadata of an uploaded file attached to a note or task."""

    id: str = Field(..., description="Unique ID of the file")
    name: str = Field(..., description="Original filename")
    size: int = Field(..., ge=0, description="Size in bytes")
    type: str = Field(default="application/octet-stream", description="MIME type")
    path: str = Field(..., description="Filename relative to the uploads directory")
    uploaded_at: Timestamp = Field(default_factory=utc_now)


class Note(Record):
    """A note owned by one user, with embedded label snapshots and files."""

    id: str = Field(..., description="Unique ID of the note")
    title: str = Field(..., description="Title of the note")
    content: str = Field(..., description="Content of the note")
    user_id: str = Field(..., description="Owner of the note")
    labels: List[Label] = Field(
        default_factory=list,
        description="Copies of the labels taken when the note was last saved",
    )
    files: List[Attachment] = Field(default_factory=list)
    created_at: Timestamp = Field(default_factory=utc_now)
    updated_at: Timestamp = Field(default_factory=utc_now)

    def has_label(self, label_id: str) -> bool:
        """Check whether a label with this ID is embedded."""
        return any(label.id == label_id for label in self.labels)

    def get_file(self, file_id: str) -> Optional[Attachment]:
        """Get attachment metadata by file ID."""
        for attachment in self.files:
            if attachment.id == file_id:
                return attachment
        return None


class Task(Note):
    """A note with a workflow status and a due date."""

    status: TaskStatus = Field(default=TaskStatus.TODO)
    due_date: Timestamp = Field(..., description="When the task is due (UTC)")


class User(Record):
    """A registered user. ``password`` holds a salted hash."""

    id: str
    email: str
    password: str
    name: str
    created_at: Timestamp = Field(default_factory=utc_now)
    updated_at: Timestamp = Field(default_factory=utc_now)

    def public(self) -> Dict[str, Any]:
        """Return the record without the password field."""
        data = self.to_record()
        data.pop("password", None)
        return data


class TaskStats(Record):
    """Task counts per status for one user."""

    total: int = 0
    todo: int = 0
    in_progress: int = 0
    done: int = 0
    overdue: int = 0

"""Request contracts validated at the service boundary.

These replace free-form request bodies: every field a caller may send is
declared here, and anything else is rejected before reaching a repository.
"""

import re
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from noteflow.exceptions import ValidationError
from noteflow.models.schema import HEX_COLOR_PATTERN, TaskStatus, Timestamp

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MIN_PASSWORD_LENGTH = 6


def _validate_color(v: str) -> str:
    if not HEX_COLOR_PATTERN.match(v):
        raise ValueError("Color must be a valid hex color (e.g., #ff6b6b)")
    return v.lower()


class RequestModel(BaseModel):
    """Base for request contracts: accepts camelCase or snake_case keys."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "extra": "forbid",
    }

    def provided(self) -> dict:
        """Fields the caller actually set, by Python name."""
        return self.model_dump(exclude_unset=True)


class CreateNoteRequest(RequestModel):
    title: str
    content: str
    label_ids: List[str] = Field(default_factory=list)

    @field_validator("title", "content")
    @classmethod
    def validate_required(cls, v: str) -> str:
        """Title and content are required."""
        if not v or not v.strip():
            raise ValueError("Title and content are required")
        return v


class UpdateNoteRequest(RequestModel):
    title: Optional[str] = None
    content: Optional[str] = None
    label_ids: Optional[List[str]] = None


class CreateTaskRequest(CreateNoteRequest):
    status: TaskStatus = TaskStatus.TODO
    due_date: Optional[Timestamp] = None


class UpdateTaskRequest(UpdateNoteRequest):
    status: Optional[TaskStatus] = None
    due_date: Optional[Timestamp] = None


class CreateLabelRequest(RequestModel):
    name: str
    color: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Trim the name and require it to be non-empty."""
        v = v.strip()
        if not v:
            raise ValueError("Name and color are required")
        return v

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        return _validate_color(v)


class UpdateLabelRequest(RequestModel):
    name: Optional[str] = None
    color: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("Label name cannot be empty")
        return v

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return _validate_color(v)


class SignupRequest(RequestModel):
    """Sign-up form: all fields required, passwords must match."""

    name: str
    email: str
    password: str
    confirm_password: str

    @field_validator("name", "email", "password", "confirm_password")
    @classmethod
    def validate_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("All fields are required")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Please enter a valid email address")
        return v

    @model_validator(mode="after")
    def _check_passwords(self) -> "SignupRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        if len(self.password) < MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )
        return self


class SigninRequest(RequestModel):
    email: str
    password: str

    @field_validator("email", "password")
    @classmethod
    def validate_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Email and password are required")
        return v


class TaskFilter(RequestModel):
    """Optional task list filters; ``due`` selects a window relative to now."""

    status: Optional[TaskStatus] = None
    label_id: Optional[str] = None
    due: Optional[Literal["overdue", "today", "week", "month"]] = None


R = TypeVar("R", bound=RequestModel)


def parse_request(model: Type[R], data: Union[R, Dict[str, Any]]) -> R:
    """Validate raw request data into ``model``.

    Raises:
        ValidationError: With the first failure's message and field.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        message = first.get("msg", "Invalid request")
        # pydantic prefixes messages raised from our validators
        message = message.removeprefix("Value error, ")
        raise ValidationError(message, field=field) from e

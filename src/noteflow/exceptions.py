"""Custom exceptions for the Noteflow server.

Provides a structured exception hierarchy with error codes and
machine-readable error information for better error handling.

Repository lookups that miss return ``None``/``False`` instead of raising;
the exceptions here cover conflicts, persistence failures and boundary
validation.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Record errors (1xxx)
    NOTE_NOT_FOUND = 1001
    TASK_NOT_FOUND = 1002
    FILE_NOT_FOUND = 1003

    # Label errors (3xxx)
    LABEL_NOT_FOUND = 3001
    LABEL_ALREADY_EXISTS = 3002

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_DELETE_FAILED = 4003

    # Auth errors (6xxx)
    USER_ALREADY_EXISTS = 6001
    AUTHENTICATION_FAILED = 6002

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001
    INVALID_STATUS = 7002
    PATH_TRAVERSAL_DETECTED = 7005
    FILE_TOO_LARGE = 7006


class NoteflowError(Exception):
    """Base exception for all Noteflow errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class LabelConflictError(NoteflowError):
    """Raised when a label name clashes (case-insensitively) with another label."""

    def __init__(self, name: str, message: str = "Label with this name already exists"):
        super().__init__(
            message,
            code=ErrorCode.LABEL_ALREADY_EXISTS,
            details={"name": name[:100]}
        )
        self.name = name


class UserConflictError(NoteflowError):
    """Raised when signing up with an email that is already registered."""

    def __init__(self, email: str):
        super().__init__(
            "User with this email already exists",
            code=ErrorCode.USER_ALREADY_EXISTS,
            details={"email": email[:100]}
        )
        self.email = email


class AuthenticationError(NoteflowError):
    """Raised when credentials do not match a registered user."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message, code=ErrorCode.AUTHENTICATION_FAILED)


class RecordNotFoundError(NoteflowError):
    """Raised by the service layer when a caller asks for a record it cannot see.

    Repositories never raise this; they return ``None``/``False``.
    """

    def __init__(self, kind: str, record_id: str, code: ErrorCode = ErrorCode.NOTE_NOT_FOUND):
        super().__init__(
            f"{kind.capitalize()} not found",
            code=code,
            details={f"{kind}_id": record_id}
        )
        self.kind = kind
        self.record_id = record_id


class StorageError(NoteflowError):
    """Raised for storage/persistence errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if path:
            # Don't expose full paths in error messages
            details["path_hint"] = path.split("/")[-1] if "/" in path else path
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.path = path
        self.original_error = original_error


class ValidationError(NoteflowError):
    """Raised for general validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value

"""MCP server implementation for Noteflow."""

import base64
import binascii
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from noteflow.config import config
from noteflow.exceptions import ErrorCode, NoteflowError, ValidationError
from noteflow.models.schema import TaskStatus
from noteflow.observability import metrics, timed_operation
from noteflow.services.auth_service import AuthService
from noteflow.services.note_service import NoteService
from noteflow.services.record_service import RecordService
from noteflow.services.task_service import TaskService

logger = logging.getLogger(__name__)

RECORD_KINDS = ("note", "task")


def _split_ids(value: Optional[str]) -> Optional[List[str]]:
    """Parse a comma-separated ID list. An empty string means "no IDs"."""
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


class NoteflowMcpServer:
    """MCP server exposing notes, tasks, labels, files and accounts as tools."""

    def __init__(
        self,
        note_service: Optional[NoteService] = None,
        task_service: Optional[TaskService] = None,
        auth_service: Optional[AuthService] = None,
    ):
        """Initialize the MCP server.

        Args:
            note_service: Note service. Created from the global config if None.
            task_service: Task service. Created from the global config if None.
            auth_service: Account service. Created from the global config if None.
        """
        self.mcp = FastMCP(config.server_name)
        self.note_service = note_service or NoteService()
        self.task_service = task_service or TaskService()
        self.auth_service = auth_service or AuthService()
        self.initialize()
        self._register_tools()

    def initialize(self) -> None:
        """Initialize services."""
        logger.info("Noteflow MCP server initialized")

    def format_error_response(self, error: Exception) -> str:
        """Format an error response in a consistent way.

        Args:
            error: The exception that occurred

        Returns:
            Formatted error message with appropriate level of detail
        """
        error_id = str(uuid.uuid4())[:8]

        if isinstance(error, NoteflowError):
            logger.error(
                f"[{error.code.name}] [{error_id}]: {error.message}",
                extra={"error_details": error.details},
            )
            return f"Error: {error.message}"
        elif isinstance(error, ValueError):
            logger.error(f"Validation error [{error_id}]: {str(error)}")
            return f"Error: Invalid input (ref: {error_id})"
        elif isinstance(error, OSError):
            logger.error(f"File system error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: A file system error occurred (ref: {error_id})"
        else:
            logger.error(f"Unexpected error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: An unexpected error occurred (ref: {error_id})"

    def _tool_error(self, op: Dict[str, Any], error: Exception) -> str:
        """Mark the timed tool call as failed and format the error for the client."""
        op["error"] = error
        return self.format_error_response(error)

    def _service_for(self, kind: str) -> RecordService:
        """Get the service owning a record kind ("note" or "task")."""
        if kind == "note":
            return self.note_service
        if kind == "task":
            return self.task_service
        raise ValidationError(
            f"Unknown record kind '{kind}', expected one of: {', '.join(RECORD_KINDS)}",
            field="kind",
            value=kind,
        )

    def _decode_upload(self, content_base64: str) -> bytes:
        """Decode an upload and enforce the configured size limit."""
        try:
            data = base64.b64decode(content_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError(
                "File content must be base64 encoded", field="content_base64"
            ) from e
        if len(data) > config.max_upload_bytes:
            raise ValidationError(
                f"File exceeds maximum size of {config.max_upload_bytes} bytes",
                field="content_base64",
                value=len(data),
                code=ErrorCode.FILE_TOO_LARGE,
            )
        return data

    def _register_tools(self) -> None:
        """Register MCP tools."""

        # =====================================================================
        # Accounts
        # =====================================================================

        @self.mcp.tool(name="nf_signup")
        def nf_signup(name: str, email: str, password: str, confirm_password: str) -> str:
            """Register a new user.
            Args:
                name: Display name
                email: Email address, unique and case-insensitive
                password: At least 6 characters
                confirm_password: Must match password
            """
            with timed_operation("nf_signup") as op:
                try:
                    user = self.auth_service.signup(
                        {
                            "name": name,
                            "email": email,
                            "password": password,
                            "confirm_password": confirm_password,
                        }
                    )
                    return _dump(user)
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_signin")
        def nf_signin(email: str, password: str) -> str:
            """Check credentials and return the user (without password).
            Args:
                email: Registered email address
                password: The user's password
            """
            with timed_operation("nf_signin") as op:
                try:
                    user = self.auth_service.signin({"email": email, "password": password})
                    return _dump(user)
                except Exception as e:
                    return self._tool_error(op, e)

        # =====================================================================
        # Notes
        # =====================================================================

        @self.mcp.tool(name="nf_list_notes")
        def nf_list_notes(user_id: str, label_id: Optional[str] = None) -> str:
            """List a user's notes.
            Args:
                user_id: Owner of the notes
                label_id: Only notes carrying this label (optional)
            """
            with timed_operation("nf_list_notes", user_id=user_id) as op:
                try:
                    notes = self.note_service.list_records(user_id, label_id=label_id)
                    op["result_count"] = len(notes)
                    return _dump([note.to_record() for note in notes])
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_get_note")
        def nf_get_note(user_id: str, note_id: str) -> str:
            """Get one of a user's notes.
            Args:
                user_id: Owner of the note
                note_id: ID of the note
            """
            with timed_operation("nf_get_note", note_id=note_id) as op:
                try:
                    return _dump(self.note_service.get_record(user_id, note_id).to_record())
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_create_note")
        def nf_create_note(
            user_id: str, title: str, content: str, label_ids: Optional[str] = None
        ) -> str:
            """Create a note.
            Args:
                user_id: Owner of the new note
                title: Note title
                content: Note body
                label_ids: Comma-separated note label IDs (optional)
            """
            with timed_operation("nf_create_note", title=title[:30]) as op:
                try:
                    note = self.note_service.create_record(
                        user_id,
                        {
                            "title": title,
                            "content": content,
                            "label_ids": _split_ids(label_ids) or [],
                        },
                    )
                    op["note_id"] = note.id
                    return _dump(note.to_record())
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_update_note")
        def nf_update_note(
            user_id: str,
            note_id: str,
            title: Optional[str] = None,
            content: Optional[str] = None,
            label_ids: Optional[str] = None,
        ) -> str:
            """Update a note. Only the given fields change.
            Args:
                user_id: Owner of the note
                note_id: ID of the note
                title: New title (optional)
                content: New body (optional)
                label_ids: Comma-separated label IDs replacing the current labels;
                    an empty string removes all labels (optional)
            """
            with timed_operation("nf_update_note", note_id=note_id) as op:
                try:
                    changes: Dict[str, Any] = {}
                    if title is not None:
                        changes["title"] = title
                    if content is not None:
                        changes["content"] = content
                    if label_ids is not None:
                        changes["label_ids"] = _split_ids(label_ids)
                    note = self.note_service.update_record(user_id, note_id, changes)
                    return _dump(note.to_record())
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_delete_note")
        def nf_delete_note(user_id: str, note_id: str) -> str:
            """Delete a note and its attached files.
            Args:
                user_id: Owner of the note
                note_id: ID of the note
            """
            with timed_operation("nf_delete_note", note_id=note_id) as op:
                try:
                    self.note_service.delete_record(user_id, note_id)
                    return f"Note deleted successfully: {note_id}"
                except Exception as e:
                    return self._tool_error(op, e)

        # =====================================================================
        # Tasks
        # =====================================================================

        @self.mcp.tool(name="nf_list_tasks")
        def nf_list_tasks(
            user_id: str,
            status: Optional[str] = None,
            label_id: Optional[str] = None,
            due: Optional[str] = None,
        ) -> str:
            """List a user's tasks.
            Args:
                user_id: Owner of the tasks
                status: Only tasks in this status: Todo, In Progress, Done (optional)
                label_id: Only tasks carrying this task label (optional)
                due: Only tasks due in this window: overdue, today, week, month (optional)
            """
            with timed_operation("nf_list_tasks", user_id=user_id) as op:
                try:
                    filters = {
                        key: value
                        for key, value in (
                            ("status", status),
                            ("label_id", label_id),
                            ("due", due),
                        )
                        if value
                    }
                    tasks = self.task_service.list_tasks(user_id, filters)
                    op["result_count"] = len(tasks)
                    return _dump([task.to_record() for task in tasks])
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_get_task")
        def nf_get_task(user_id: str, task_id: str) -> str:
            """Get one of a user's tasks.
            Args:
                user_id: Owner of the task
                task_id: ID of the task
            """
            with timed_operation("nf_get_task", task_id=task_id) as op:
                try:
                    return _dump(self.task_service.get_record(user_id, task_id).to_record())
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_create_task")
        def nf_create_task(
            user_id: str,
            title: str,
            content: str,
            status: Optional[str] = None,
            due_date: Optional[str] = None,
            label_ids: Optional[str] = None,
        ) -> str:
            """Create a task.
            Args:
                user_id: Owner of the new task
                title: Task title
                content: Task description
                status: Todo (default), In Progress or Done
                due_date: ISO 8601 due date; defaults to two days from now
                label_ids: Comma-separated task label IDs (optional)
            """
            with timed_operation("nf_create_task", title=title[:30]) as op:
                try:
                    request: Dict[str, Any] = {
                        "title": title,
                        "content": content,
                        "label_ids": _split_ids(label_ids) or [],
                    }
                    if status:
                        request["status"] = status
                    if due_date:
                        request["due_date"] = due_date
                    task = self.task_service.create_record(user_id, request)
                    op["task_id"] = task.id
                    return _dump(task.to_record())
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_update_task")
        def nf_update_task(
            user_id: str,
            task_id: str,
            title: Optional[str] = None,
            content: Optional[str] = None,
            status: Optional[str] = None,
            due_date: Optional[str] = None,
            label_ids: Optional[str] = None,
        ) -> str:
            """Update a task. Only the given fields change.
            Args:
                user_id: Owner of the task
                task_id: ID of the task
                title: New title (optional)
                content: New description (optional)
                status: New status; any status may follow any other (optional)
                due_date: New ISO 8601 due date (optional)
                label_ids: Comma-separated task label IDs replacing the current
                    labels; an empty string removes all labels (optional)
            """
            with timed_operation("nf_update_task", task_id=task_id) as op:
                try:
                    changes: Dict[str, Any] = {}
                    for key, value in (
                        ("title", title),
                        ("content", content),
                        ("status", status),
                        ("due_date", due_date),
                    ):
                        if value is not None:
                            changes[key] = value
                    if label_ids is not None:
                        changes["label_ids"] = _split_ids(label_ids)
                    task = self.task_service.update_record(user_id, task_id, changes)
                    return _dump(task.to_record())
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_delete_task")
        def nf_delete_task(user_id: str, task_id: str) -> str:
            """Delete a task and its attached files.
            Args:
                user_id: Owner of the task
                task_id: ID of the task
            """
            with timed_operation("nf_delete_task", task_id=task_id) as op:
                try:
                    self.task_service.delete_record(user_id, task_id)
                    return f"Task deleted successfully: {task_id}"
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_delete_done_tasks")
        def nf_delete_done_tasks(user_id: str, status: str = TaskStatus.DONE.value) -> str:
            """Delete all of a user's tasks in a status. Only "Done" is accepted.
            Args:
                user_id: Owner of the tasks
                status: Must be "Done"
            """
            with timed_operation("nf_delete_done_tasks", user_id=user_id) as op:
                try:
                    deleted = self.task_service.delete_tasks_by_status(user_id, status)
                    op["deleted"] = deleted
                    return f"Deleted {deleted} done tasks"
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_task_stats")
        def nf_task_stats(user_id: str) -> str:
            """Count a user's tasks per status, plus overdue tasks.
            Args:
                user_id: Owner of the tasks
            """
            with timed_operation("nf_task_stats", user_id=user_id) as op:
                try:
                    return _dump(self.task_service.get_stats(user_id).to_record())
                except Exception as e:
                    return self._tool_error(op, e)

        # =====================================================================
        # Labels (kind = "note" for note labels, "task" for task labels)
        # =====================================================================

        @self.mcp.tool(name="nf_list_labels")
        def nf_list_labels(kind: str = "note") -> str:
            """List labels.
            Args:
                kind: "note" for note labels (default), "task" for task labels
            """
            with timed_operation("nf_list_labels", kind=kind) as op:
                try:
                    labels = self._service_for(kind).list_labels()
                    op["result_count"] = len(labels)
                    return _dump([label.to_record() for label in labels])
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_create_label")
        def nf_create_label(name: str, color: str, kind: str = "note") -> str:
            """Create a label. Names are unique case-insensitively per kind.
            Args:
                name: Label name
                color: Hex colour such as #3b82f6
                kind: "note" for a note label (default), "task" for a task label
            """
            with timed_operation("nf_create_label", kind=kind, name=name[:30]) as op:
                try:
                    label = self._service_for(kind).create_label(
                        {"name": name, "color": color}
                    )
                    return _dump(label.to_record())
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_update_label")
        def nf_update_label(
            label_id: str,
            name: Optional[str] = None,
            color: Optional[str] = None,
            kind: str = "note",
        ) -> str:
            """Rename and/or recolour a label.
            Args:
                label_id: ID of the label
                name: New name (optional)
                color: New hex colour (optional)
                kind: "note" (default) or "task"
            """
            with timed_operation("nf_update_label", label_id=label_id) as op:
                try:
                    changes: Dict[str, Any] = {}
                    if name is not None:
                        changes["name"] = name
                    if color is not None:
                        changes["color"] = color
                    label = self._service_for(kind).update_label(label_id, changes)
                    return _dump(label.to_record())
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_delete_label")
        def nf_delete_label(label_id: str, kind: str = "note") -> str:
            """Delete a label and remove it from every note or task carrying it.
            Args:
                label_id: ID of the label
                kind: "note" (default) or "task"
            """
            with timed_operation("nf_delete_label", label_id=label_id) as op:
                try:
                    self._service_for(kind).delete_label(label_id)
                    return f"Label deleted successfully: {label_id}"
                except Exception as e:
                    return self._tool_error(op, e)

        # =====================================================================
        # Files (kind = "note" or "task")
        # =====================================================================

        @self.mcp.tool(name="nf_upload_file")
        def nf_upload_file(
            user_id: str,
            record_id: str,
            filename: str,
            content_base64: str,
            content_type: Optional[str] = None,
            kind: str = "note",
        ) -> str:
            """Attach a file to a note or task.
            Args:
                user_id: Owner of the note or task
                record_id: ID of the note or task
                filename: Original filename
                content_base64: File contents, base64 encoded
                content_type: MIME type; guessed from the filename if omitted
                kind: "note" (default) or "task"
            """
            with timed_operation("nf_upload_file", record_id=record_id) as op:
                try:
                    service = self._service_for(kind)
                    data = self._decode_upload(content_base64)
                    attachment = service.upload_file(
                        user_id, record_id, filename, data, content_type
                    )
                    op["size"] = attachment.size
                    return _dump(attachment.to_record())
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_remove_file")
        def nf_remove_file(user_id: str, record_id: str, file_id: str, kind: str = "note") -> str:
            """Detach a file from a note or task and delete it.
            Args:
                user_id: Owner of the note or task
                record_id: ID of the note or task
                file_id: ID of the attached file
                kind: "note" (default) or "task"
            """
            with timed_operation("nf_remove_file", file_id=file_id) as op:
                try:
                    self._service_for(kind).remove_file(user_id, record_id, file_id)
                    return f"File removed successfully: {file_id}"
                except Exception as e:
                    return self._tool_error(op, e)

        @self.mcp.tool(name="nf_get_file")
        def nf_get_file(user_id: str, record_id: str, file_id: str, kind: str = "note") -> str:
            """Download an attached file.
            Args:
                user_id: Owner of the note or task
                record_id: ID of the note or task
                file_id: ID of the attached file
                kind: "note" (default) or "task"
            Returns:
                File metadata, whether it can be viewed inline, and the
                base64-encoded contents.
            """
            with timed_operation("nf_get_file", file_id=file_id) as op:
                try:
                    service = self._service_for(kind)
                    attachment, data = service.get_file(user_id, record_id, file_id)
                    result = attachment.to_record()
                    result["viewable"] = service.is_viewable(attachment)
                    result["contentBase64"] = base64.b64encode(data).decode("ascii")
                    return _dump(result)
                except Exception as e:
                    return self._tool_error(op, e)

        # =====================================================================
        # Health
        # =====================================================================

        @self.mcp.tool(name="nf_health")
        def nf_health() -> str:
            """Report server status, version, uptime and operation metrics."""
            try:
                summary = metrics.get_summary()
                return _dump(
                    {
                        "status": "healthy",
                        "version": config.server_version,
                        "uptimeSeconds": round(summary["uptime_seconds"], 1),
                        "totalOperations": summary["total_operations"],
                        "totalErrors": summary["total_errors"],
                        "operations": metrics.get_metrics(),
                    }
                )
            except Exception as e:
                return self.format_error_response(e)

    def run(self) -> None:
        """Run the MCP server."""
        self.mcp.run()

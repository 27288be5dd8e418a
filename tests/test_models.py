# tests/test_models.py
"""Tests for the record and request models."""
import datetime
import re
from datetime import timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from noteflow.exceptions import ValidationError
from noteflow.models.requests import (
    CreateLabelRequest,
    CreateNoteRequest,
    CreateTaskRequest,
    SigninRequest,
    SignupRequest,
    TaskFilter,
    UpdateLabelRequest,
    UpdateTaskRequest,
    parse_request,
)
from noteflow.models.schema import (
    Attachment,
    Label,
    Note,
    Task,
    TaskStatus,
    User,
    format_timestamp,
    generate_id,
    next_timestamp,
    utc_now,
)

ID_PATTERN = re.compile(r"^note_\d{8}t\d{6}\d{12}$")


class TestIdentifiers:
    """Tests for generate_id."""

    def test_prefix_and_shape(self):
        """IDs carry their entity prefix followed by a timestamp and counter."""
        assert ID_PATTERN.match(generate_id("note"))
        assert generate_id("task_label").startswith("task_label_")
        assert generate_id("file").startswith("file_")

    def test_ids_are_unique(self):
        """A burst of IDs never repeats."""
        ids = {generate_id("label") for _ in range(2000)}
        assert len(ids) == 2000


class TestTimestamps:
    """Tests for timestamp helpers and the on-disk format."""

    def test_format_has_millis_and_z(self):
        value = datetime.datetime(2025, 8, 11, 11, 22, 26, 209456, tzinfo=timezone.utc)
        assert format_timestamp(value) == "2025-08-11T11:22:26.209Z"

    def test_naive_datetime_treated_as_utc(self):
        value = datetime.datetime(2025, 1, 2, 3, 4, 5)
        assert format_timestamp(value) == "2025-01-02T03:04:05.000Z"

    def test_next_timestamp_is_strictly_later(self):
        """Even a timestamp from the future is advanced."""
        future = utc_now() + datetime.timedelta(hours=1)
        assert next_timestamp(future) > future
        assert next_timestamp(future) - future == datetime.timedelta(milliseconds=1)

    def test_next_timestamp_without_previous(self):
        before = utc_now()
        assert next_timestamp() >= before

    def test_parses_z_suffix(self):
        label = Label.model_validate(
            {
                "id": "label_1",
                "name": "Work",
                "color": "#3b82f6",
                "createdAt": "2025-08-11T11:22:26.209Z",
                "updatedAt": "2025-08-11T11:22:26.209Z",
            }
        )
        assert label.created_at.tzinfo is not None
        assert label.created_at.microsecond == 209000


class TestRecords:
    """Tests for record serialization."""

    def _task(self, **overrides):
        now = utc_now()
        data = dict(
            id="task_1",
            title="Ship",
            content="Ship it",
            user_id="user_1",
            due_date=now,
            created_at=now,
            updated_at=now,
        )
        data.update(overrides)
        return Task(**data)

    def test_to_record_uses_camel_case(self):
        record = self._task(status=TaskStatus.IN_PROGRESS).to_record()
        assert set(record) == {
            "id",
            "title",
            "content",
            "userId",
            "labels",
            "files",
            "status",
            "dueDate",
            "createdAt",
            "updatedAt",
        }
        assert record["status"] == "In Progress"
        assert record["dueDate"].endswith("Z")

    def test_round_trip_through_record_is_equal(self):
        task = self._task()
        assert Task.model_validate(task.to_record()) == task

    def test_task_requires_due_date(self):
        with pytest.raises(PydanticValidationError):
            Task(id="task_1", title="t", content="c", user_id="u")

    def test_default_status_is_todo(self):
        assert self._task().status == TaskStatus.TODO

    def test_status_accepts_any_value_on_assignment(self):
        """No transition guards: Done can go straight back to Todo."""
        task = self._task(status=TaskStatus.DONE)
        task.status = TaskStatus.TODO
        assert task.status == TaskStatus.TODO

    def test_unknown_keys_are_ignored(self):
        note = Note.model_validate(
            {
                "id": "note_1",
                "title": "t",
                "content": "c",
                "userId": "u",
                "legacyField": True,
            }
        )
        assert not hasattr(note, "legacyField")

    def test_note_helpers(self):
        label = Label(id="label_1", name="Work", color="#3b82f6")
        attachment = Attachment(id="file_1", name="a.txt", size=3, path="file_1.txt")
        note = Note(
            id="note_1", title="t", content="c", user_id="u",
            labels=[label], files=[attachment],
        )
        assert note.has_label("label_1")
        assert not note.has_label("label_2")
        assert note.get_file("file_1") == attachment
        assert note.get_file("file_2") is None

    @pytest.mark.parametrize("path", ["file_abc.jpég", "file_abc.", "file_abc.tar.gz"])
    def test_attachment_keeps_stored_path_verbatim(self, path):
        """Paths are only checked when the upload store touches the disk."""
        attachment = Attachment.model_validate(
            {"id": "file_abc", "name": "x", "size": 1, "path": path}
        )
        assert attachment.path == path

    def test_user_public_view_drops_password(self):
        user = User(id="user_1", email="a@b.co", password="hash", name="A")
        public = user.public()
        assert "password" not in public
        assert public["email"] == "a@b.co"


class TestRequests:
    """Tests for the request contracts."""

    def test_create_note_requires_title_and_content(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_request(CreateNoteRequest, {"title": "  ", "content": "body"})
        assert exc_info.value.message == "Title and content are required"

    def test_create_note_accepts_camel_case_label_ids(self):
        request = parse_request(
            CreateNoteRequest, {"title": "t", "content": "c", "labelIds": ["label_1"]}
        )
        assert request.label_ids == ["label_1"]

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(ValidationError):
            parse_request(CreateNoteRequest, {"title": "t", "content": "c", "userId": "x"})

    def test_create_task_defaults(self):
        request = parse_request(CreateTaskRequest, {"title": "t", "content": "c"})
        assert request.status == TaskStatus.TODO
        assert request.due_date is None

    def test_create_task_rejects_unknown_status(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_request(CreateTaskRequest, {"title": "t", "content": "c", "status": "Blocked"})
        assert exc_info.value.field == "status"

    def test_update_task_tracks_provided_fields(self):
        request = parse_request(UpdateTaskRequest, {"status": "Done"})
        assert request.provided() == {"status": TaskStatus.DONE}

    def test_label_name_trimmed_and_color_lowercased(self):
        request = parse_request(CreateLabelRequest, {"name": "  Work ", "color": "#3B82F6"})
        assert request.name == "Work"
        assert request.color == "#3b82f6"

    @pytest.mark.parametrize("color", ["blue", "#fff", "3b82f6", "#3b82f6ff", "#gggggg"])
    def test_label_color_must_be_hex(self, color):
        with pytest.raises(ValidationError) as exc_info:
            parse_request(CreateLabelRequest, {"name": "Work", "color": color})
        assert "hex color" in exc_info.value.message

    def test_update_label_rejects_blank_name(self):
        with pytest.raises(ValidationError):
            parse_request(UpdateLabelRequest, {"name": "   "})

    def test_signup_passwords_must_match(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_request(
                SignupRequest,
                {
                    "name": "Ada",
                    "email": "ada@example.com",
                    "password": "secret1",
                    "confirmPassword": "secret2",
                },
            )
        assert exc_info.value.message == "Passwords do not match"

    def test_signup_password_length(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_request(
                SignupRequest,
                {
                    "name": "Ada",
                    "email": "ada@example.com",
                    "password": "abc",
                    "confirmPassword": "abc",
                },
            )
        assert "at least 6 characters" in exc_info.value.message

    def test_signup_email_format(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_request(
                SignupRequest,
                {
                    "name": "Ada",
                    "email": "not-an-email",
                    "password": "secret1",
                    "confirmPassword": "secret1",
                },
            )
        assert exc_info.value.message == "Please enter a valid email address"

    def test_signin_requires_both_fields(self):
        with pytest.raises(ValidationError):
            parse_request(SigninRequest, {"email": "", "password": "x"})

    def test_task_filter_aliases(self):
        task_filter = parse_request(TaskFilter, {"labelId": "task_label_1", "due": "week"})
        assert task_filter.label_id == "task_label_1"
        assert task_filter.due == "week"

    def test_task_filter_rejects_unknown_window(self):
        with pytest.raises(ValidationError):
            parse_request(TaskFilter, {"due": "year"})

    def test_parse_request_passes_instances_through(self):
        request = CreateNoteRequest(title="t", content="c")
        assert parse_request(CreateNoteRequest, request) is request

"""Tests for the NoteService class."""
from unittest.mock import patch

import pytest

from noteflow.exceptions import (
    ErrorCode,
    LabelConflictError,
    RecordNotFoundError,
    StorageError,
    ValidationError,
)
from noteflow.models.schema import Attachment


class TestNoteCrud:
    """Tests for note operations through the service."""

    def test_create_resolves_label_snapshots(self, note_service):
        work = note_service.create_label({"name": "Work", "color": "#3B82F6"})
        note = note_service.create_record(
            "user_a",
            {"title": "Standup", "content": "...", "labelIds": [work.id, "label_missing"]},
        )

        assert note.user_id == "user_a"
        assert [label.id for label in note.labels] == [work.id]
        assert note.labels[0].color == "#3b82f6"

    def test_create_validates(self, note_service):
        with pytest.raises(ValidationError) as exc_info:
            note_service.create_record("user_a", {"title": "", "content": "c"})
        assert exc_info.value.message == "Title and content are required"
        assert note_service.repository.find_all() == []

    def test_get_other_users_note_is_not_found(self, note_service):
        note = note_service.create_record("user_a", {"title": "t", "content": "c"})

        with pytest.raises(RecordNotFoundError) as exc_info:
            note_service.get_record("user_b", note.id)
        assert exc_info.value.code == ErrorCode.NOTE_NOT_FOUND
        assert exc_info.value.message == "Note not found"

    def test_list_with_label_filter(self, note_service):
        work = note_service.create_label({"name": "Work", "color": "#3b82f6"})
        tagged = note_service.create_record(
            "user_a", {"title": "a", "content": "c", "labelIds": [work.id]}
        )
        untagged = note_service.create_record("user_a", {"title": "b", "content": "c"})

        assert note_service.list_records("user_a") == [tagged, untagged]
        assert note_service.list_records("user_a", label_id=work.id) == [tagged]

    def test_update_only_provided_fields(self, note_service):
        note = note_service.create_record("user_a", {"title": "Old", "content": "Body"})
        updated = note_service.update_record("user_a", note.id, {"title": "New"})

        assert updated.title == "New"
        assert updated.content == "Body"

    def test_update_label_ids_refreshes_snapshots(self, note_service):
        work = note_service.create_label({"name": "Work", "color": "#3b82f6"})
        note = note_service.create_record(
            "user_a", {"title": "t", "content": "c", "labelIds": [work.id]}
        )
        note_service.update_label(work.id, {"name": "Office"})

        updated = note_service.update_record("user_a", note.id, {"labelIds": [work.id]})
        assert updated.labels[0].name == "Office"

        cleared = note_service.update_record("user_a", note.id, {"labelIds": []})
        assert cleared.labels == []

    def test_update_missing(self, note_service):
        with pytest.raises(RecordNotFoundError):
            note_service.update_record("user_a", "note_missing", {"title": "x"})

    def test_delete(self, note_service):
        note = note_service.create_record("user_a", {"title": "t", "content": "c"})
        note_service.delete_record("user_a", note.id)

        with pytest.raises(RecordNotFoundError):
            note_service.delete_record("user_a", note.id)


class TestNoteLabels:
    """Tests for note label operations through the service."""

    def test_conflict(self, note_service):
        note_service.create_label({"name": "Work", "color": "#3b82f6"})
        with pytest.raises(LabelConflictError):
            note_service.create_label({"name": " work ", "color": "#3b82f6"})

    def test_invalid_color(self, note_service):
        with pytest.raises(ValidationError):
            note_service.create_label({"name": "Work", "color": "blue"})

    def test_update_and_delete_missing(self, note_service):
        with pytest.raises(RecordNotFoundError) as exc_info:
            note_service.update_label("label_missing", {"name": "x"})
        assert exc_info.value.code == ErrorCode.LABEL_NOT_FOUND

        with pytest.raises(RecordNotFoundError):
            note_service.delete_label("label_missing")

    def test_delete_cascades(self, note_service):
        work = note_service.create_label({"name": "Work", "color": "#3b82f6"})
        note = note_service.create_record(
            "user_a", {"title": "t", "content": "c", "labelIds": [work.id]}
        )

        note_service.delete_label(work.id)

        assert note_service.get_record("user_a", note.id).labels == []
        assert note_service.list_labels() == []


class TestNoteFiles:
    """Tests for attachments through the service."""

    def test_upload_and_get(self, note_service):
        note = note_service.create_record("user_a", {"title": "t", "content": "c"})
        attachment = note_service.upload_file("user_a", note.id, "photo.png", b"\x89PNG")

        assert attachment.id.startswith("file_")
        assert attachment.path == f"{attachment.id}.png"
        assert attachment.type == "image/png"
        assert attachment.size == 4
        assert note_service.get_record("user_a", note.id).files == [attachment]

        meta, data = note_service.get_file("user_a", note.id, attachment.id)
        assert meta == attachment
        assert data == b"\x89PNG"

    def test_upload_to_missing_note_writes_nothing(self, note_service, test_config):
        with pytest.raises(RecordNotFoundError):
            note_service.upload_file("user_a", "note_missing", "a.txt", b"x")
        uploads_dir = test_config.get_uploads_dir()
        assert not uploads_dir.exists() or list(uploads_dir.iterdir()) == []

    def test_failed_metadata_write_removes_uploaded_bytes(self, note_service, test_config):
        note = note_service.create_record("user_a", {"title": "t", "content": "c"})
        store = note_service.repository.store
        failure = StorageError("Failed to save note data", operation="write")

        with patch.object(store, "write_all", side_effect=failure):
            with pytest.raises(StorageError):
                note_service.upload_file("user_a", note.id, "a.txt", b"hello")

        assert list(test_config.get_uploads_dir().iterdir()) == []
        assert note_service.get_record("user_a", note.id).files == []

    def test_explicit_content_type(self, note_service):
        note = note_service.create_record("user_a", {"title": "t", "content": "c"})
        attachment = note_service.upload_file(
            "user_a", note.id, "blob", b"x", content_type="text/markdown"
        )
        assert attachment.type == "text/markdown"
        assert attachment.path == attachment.id

    def test_unknown_type_defaults_to_octet_stream(self, note_service):
        note = note_service.create_record("user_a", {"title": "t", "content": "c"})
        attachment = note_service.upload_file("user_a", note.id, "blob", b"x")
        assert attachment.type == "application/octet-stream"

    def test_get_file_of_other_user(self, note_service):
        note = note_service.create_record("user_a", {"title": "t", "content": "c"})
        attachment = note_service.upload_file("user_a", note.id, "a.txt", b"x")

        with pytest.raises(RecordNotFoundError):
            note_service.get_file("user_b", note.id, attachment.id)

    def test_get_unknown_file(self, note_service):
        note = note_service.create_record("user_a", {"title": "t", "content": "c"})
        with pytest.raises(RecordNotFoundError) as exc_info:
            note_service.get_file("user_a", note.id, "file_missing")
        assert exc_info.value.code == ErrorCode.FILE_NOT_FOUND

    def test_get_file_missing_on_disk(self, note_service):
        note = note_service.create_record("user_a", {"title": "t", "content": "c"})
        attachment = note_service.upload_file("user_a", note.id, "a.txt", b"x")
        (note_service.repository.uploads.uploads_dir / attachment.path).unlink()

        with pytest.raises(StorageError) as exc_info:
            note_service.get_file("user_a", note.id, attachment.id)
        assert exc_info.value.message == "File not found on disk"

    def test_remove_file(self, note_service):
        note = note_service.create_record("user_a", {"title": "t", "content": "c"})
        attachment = note_service.upload_file("user_a", note.id, "a.txt", b"x")

        updated = note_service.remove_file("user_a", note.id, attachment.id)

        assert updated.files == []
        with pytest.raises(RecordNotFoundError):
            note_service.remove_file("user_a", note.id, attachment.id)

    @pytest.mark.parametrize(
        "mime, viewable",
        [
            ("image/png", True),
            ("image/svg+xml", True),
            ("application/pdf", True),
            ("application/zip", False),
            ("text/plain", False),
        ],
    )
    def test_is_viewable(self, note_service, mime, viewable):
        attachment = Attachment(id="file_1", name="x", size=1, type=mime, path="file_1")
        assert note_service.is_viewable(attachment) is viewable

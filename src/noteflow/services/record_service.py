"""Shared service logic for notes and tasks."""

import logging
import mimetypes
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar, Union

from noteflow.exceptions import ErrorCode, RecordNotFoundError, StorageError
from noteflow.models.requests import (
    CreateLabelRequest,
    RequestModel,
    UpdateLabelRequest,
    parse_request,
)
from noteflow.models.schema import Attachment, Label, Note
from noteflow.storage.base import Repository
from noteflow.storage.label_repository import LabelRepository

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Note)

VIEWABLE_TYPES = frozenset({"application/pdf"})

RequestData = Union[RequestModel, Dict[str, Any]]


def is_viewable(attachment: Attachment) -> bool:
    """Check whether an attachment can be shown inline (images and PDF)."""
    return attachment.type.startswith("image/") or attachment.type in VIEWABLE_TYPES


class RecordService(Generic[T]):
    """Request validation and orchestration over a record repository and its labels.

    Subclasses name the record kind and its request contracts. Lookups that
    miss raise ``RecordNotFoundError`` here; repositories below only return
    ``None``/``False``.
    """

    kind = "record"
    not_found_code = ErrorCode.NOTE_NOT_FOUND
    create_request: Type[RequestModel]
    update_request: Type[RequestModel]

    def __init__(self, repository: Repository[T], labels: LabelRepository):
        self.repository = repository
        self.labels = labels

    # =========================================================================
    # Records
    # =========================================================================

    def list_records(self, user_id: str, label_id: Optional[str] = None) -> List[T]:
        """Get a user's records, optionally only those carrying ``label_id``."""
        if label_id:
            return self.repository.find_by_label(user_id, label_id)
        return self.repository.find_all_by_user(user_id)

    def get_record(self, user_id: str, record_id: str) -> T:
        """Get a user's record.

        Raises:
            RecordNotFoundError: If the user has no record with this ID.
        """
        record = self.repository.find_by_id_and_user(record_id, user_id)
        if record is None:
            raise RecordNotFoundError(self.kind, record_id, self.not_found_code)
        return record

    def create_record(self, user_id: str, data: RequestData) -> T:
        """Validate a create request and store the record.

        ``labelIds`` are resolved into embedded label snapshots; unknown IDs
        are dropped.
        """
        request = parse_request(self.create_request, data)
        fields = request.model_dump(exclude={"label_ids"})
        fields["labels"] = self.labels.find_by_ids(request.label_ids)
        return self.repository.create(user_id=user_id, **fields)

    def update_record(self, user_id: str, record_id: str, data: RequestData) -> T:
        """Validate an update request and merge the provided fields.

        Only fields present in the request change. Passing ``labelIds``
        replaces the embedded labels with fresh snapshots.

        Raises:
            RecordNotFoundError: If the user has no record with this ID.
        """
        request = parse_request(self.update_request, data)
        fields = request.provided()
        label_ids = fields.pop("label_ids", None)
        if label_ids is not None:
            fields["labels"] = self.labels.find_by_ids(label_ids)
        # Explicit nulls mean "leave unchanged"
        fields = {k: v for k, v in fields.items() if v is not None}

        updated = self.repository.update(record_id, user_id, **fields)
        if updated is None:
            raise RecordNotFoundError(self.kind, record_id, self.not_found_code)
        return updated

    def delete_record(self, user_id: str, record_id: str) -> None:
        """Delete a user's record together with its files.

        Raises:
            RecordNotFoundError: If the user has no record with this ID.
        """
        if not self.repository.delete(record_id, user_id):
            raise RecordNotFoundError(self.kind, record_id, self.not_found_code)

    # =========================================================================
    # Labels
    # =========================================================================

    def list_labels(self) -> List[Label]:
        """Get every label of this family."""
        return self.labels.find_all()

    def create_label(self, data: RequestData) -> Label:
        """Validate and create a label."""
        request = parse_request(CreateLabelRequest, data)
        return self.labels.create(request.name, request.color)

    def update_label(self, label_id: str, data: RequestData) -> Label:
        """Validate and apply a label rename and/or recolour.

        Raises:
            RecordNotFoundError: If no label has this ID.
        """
        request = parse_request(UpdateLabelRequest, data)
        updated = self.labels.update(label_id, name=request.name, color=request.color)
        if updated is None:
            raise RecordNotFoundError("label", label_id, ErrorCode.LABEL_NOT_FOUND)
        return updated

    def delete_label(self, label_id: str) -> None:
        """Delete a label and strip it from every record carrying it.

        Raises:
            RecordNotFoundError: If no label has this ID.
        """
        if not self.labels.delete(label_id):
            raise RecordNotFoundError("label", label_id, ErrorCode.LABEL_NOT_FOUND)

    # =========================================================================
    # Files
    # =========================================================================

    def upload_file(
        self,
        user_id: str,
        record_id: str,
        filename: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> Attachment:
        """Store uploaded bytes and attach their metadata to a user's record.

        Args:
            user_id: Owner of the record.
            record_id: Record to attach the file to.
            filename: Original filename, kept as the attachment name.
            data: File contents.
            content_type: MIME type; guessed from the filename when omitted.

        Returns:
            The new attachment metadata.

        Raises:
            RecordNotFoundError: If the user has no record with this ID.
            StorageError: If the bytes or the metadata cannot be written. No
                file is left behind in the uploads directory.
        """
        self.get_record(user_id, record_id)

        file_id = self.repository.new_file_id()
        path = self.repository.uploads.save(file_id, filename, data)
        attachment = Attachment(
            id=file_id,
            name=filename,
            size=len(data),
            type=content_type
            or mimetypes.guess_type(filename)[0]
            or "application/octet-stream",
            path=path,
        )

        try:
            updated = self.repository.add_file(record_id, user_id, attachment)
        except StorageError:
            self.repository.uploads.remove(path)
            raise
        if updated is None:
            # Record vanished between the check and the write
            self.repository.uploads.remove(path)
            raise RecordNotFoundError(self.kind, record_id, self.not_found_code)
        logger.info(f"Attached file {file_id} to {self.kind} {record_id}")
        return attachment

    def remove_file(self, user_id: str, record_id: str, file_id: str) -> T:
        """Detach a file from a user's record and delete it from disk.

        Raises:
            RecordNotFoundError: If the record or the file does not exist.
        """
        self.get_record(user_id, record_id)
        updated = self.repository.remove_file(record_id, user_id, file_id)
        if updated is None:
            raise RecordNotFoundError("file", file_id, ErrorCode.FILE_NOT_FOUND)
        return updated

    def get_file(
        self, user_id: str, record_id: str, file_id: str
    ) -> Tuple[Attachment, bytes]:
        """Get attachment metadata and bytes from a user's record.

        Raises:
            RecordNotFoundError: If the record or the file metadata does not exist.
            StorageError: If the metadata exists but the bytes are gone.
        """
        record = self.get_record(user_id, record_id)
        attachment = record.get_file(file_id)
        if attachment is None:
            raise RecordNotFoundError("file", file_id, ErrorCode.FILE_NOT_FOUND)
        try:
            return attachment, self.repository.uploads.read(attachment.path)
        except StorageError:
            logger.error(f"File {file_id} of {self.kind} {record_id} missing on disk")
            raise

    @staticmethod
    def is_viewable(attachment: Attachment) -> bool:
        """Check whether an attachment can be shown inline."""
        return is_viewable(attachment)

"""Service layer for notes and note labels."""

import logging
from typing import Optional

from noteflow.config import LABELS_FILE, NOTES_FILE, config
from noteflow.exceptions import ErrorCode
from noteflow.models.requests import CreateNoteRequest, UpdateNoteRequest
from noteflow.models.schema import Label, Note
from noteflow.services.record_service import RecordService
from noteflow.storage.collection_store import CollectionStore
from noteflow.storage.label_repository import LabelRepository
from noteflow.storage.note_repository import NoteRepository
from noteflow.storage.upload_store import UploadStore

logger = logging.getLogger(__name__)


class NoteService(RecordService[Note]):
    """Service for managing notes, their labels and attachments."""

    kind = "note"
    not_found_code = ErrorCode.NOTE_NOT_FOUND
    create_request = CreateNoteRequest
    update_request = UpdateNoteRequest

    def __init__(
        self,
        repository: Optional[NoteRepository] = None,
        labels: Optional[LabelRepository] = None,
    ):
        """Initialize the service.

        Args:
            repository: Note storage. Created from the global config if None.
            labels: Note-label storage. Created from the global config if None.
        """
        if repository is None:
            repository = NoteRepository(
                CollectionStore(config.get_collection_path(NOTES_FILE), Note, "note"),
                UploadStore(config.get_uploads_dir()),
            )
        if labels is None:
            labels = LabelRepository(
                CollectionStore(config.get_collection_path(LABELS_FILE), Label, "label"),
                repository,
            )
        super().__init__(repository, labels)

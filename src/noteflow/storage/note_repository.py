"""Repository for note storage and retrieval."""
import logging

from noteflow.models.schema import Note
from noteflow.storage.base import Repository

logger = logging.getLogger(__name__)


class NoteRepository(Repository[Note]):
    """Repository for notes.

    Notes live in one JSON array document; attachment bytes live in the
    notes uploads directory and are referenced by relative filename.
    """

    id_prefix = "note"
    file_id_prefix = "file"

"""Shared repository behaviour for user-owned records (notes and tasks)."""
import logging
from typing import Any, Generic, List, Optional, Tuple, TypeVar

from noteflow.models.schema import Attachment, Note, generate_id, next_timestamp, utc_now
from noteflow.storage.collection_store import CollectionStore
from noteflow.storage.upload_store import UploadStore

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Note)

# Fields callers may never change through update()
IMMUTABLE_FIELDS = frozenset({"id", "user_id", "created_at", "updated_at"})

# Fields create() always generates itself
GENERATED_FIELDS = frozenset({"id", "created_at", "updated_at"})


class Repository(Generic[T]):
    """Repository for records owned by a single user.

    Every operation reads the entire collection, works on it in memory and,
    when it mutates anything, writes the entire collection back. Lookups that
    miss return ``None``/``False``; callers map that to "not found".

    ``find_by_id`` performs no ownership check. Code acting on behalf of a
    user must go through ``find_by_id_and_user`` or the user-scoped mutators.
    """

    id_prefix = "record"
    file_id_prefix = "file"

    def __init__(self, store: CollectionStore[T], uploads: UploadStore):
        """Initialize the repository.

        Args:
            store: Collection document holding the records.
            uploads: Directory holding the records' attachment bytes.
        """
        self.store = store
        self.uploads = uploads

    # =========================================================================
    # Queries
    # =========================================================================

    def find_all(self) -> List[T]:
        """Get every record regardless of owner."""
        return self.store.read_all()

    def find_all_by_user(self, user_id: str) -> List[T]:
        """Get all records owned by a user, in storage order."""
        return [r for r in self.store.read_all() if r.user_id == user_id]

    def find_by_id(self, id: str) -> Optional[T]:
        """Get a record by ID without any ownership check."""
        for record in self.store.read_all():
            if record.id == id:
                return record
        return None

    def find_by_id_and_user(self, id: str, user_id: str) -> Optional[T]:
        """Get a record by ID only if it belongs to ``user_id``."""
        _, index, record = self._locate(id, user_id)
        return record if index is not None else None

    def find_by_label(self, user_id: str, label_id: str) -> List[T]:
        """Get a user's records carrying the given label."""
        return [r for r in self.find_all_by_user(user_id) if r.has_label(label_id)]

    # =========================================================================
    # Mutations
    # =========================================================================

    def create(self, **fields: Any) -> T:
        """Create a record from everything except id and timestamps.

        Both timestamps are set to the same instant.
        """
        records = self.store.read_all()
        now = utc_now()
        data = {k: v for k, v in fields.items() if k not in GENERATED_FIELDS}
        record = self.store.model(
            id=generate_id(self.id_prefix),
            created_at=now,
            updated_at=now,
            **data,
        )
        records.append(record)
        self.store.write_all(records)
        logger.info(f"Created {self.store.entity} {record.id}")
        return record

    def update(self, id: str, user_id: str, /, **fields: Any) -> Optional[T]:
        """Shallow-merge ``fields`` into a user's record.

        ``id``, ``user_id``, ``created_at`` and ``updated_at`` in ``fields`` are
        ignored; ``updated_at`` is always re-stamped.

        Returns:
            The updated record, or None if the user has no such record.
        """
        records, index, record = self._locate(id, user_id)
        if index is None:
            return None

        for name, value in fields.items():
            if name in IMMUTABLE_FIELDS:
                continue
            setattr(record, name, value)
        record.updated_at = next_timestamp(record.updated_at)

        records[index] = record
        self.store.write_all(records)
        return record

    def delete(self, id: str, user_id: str) -> bool:
        """Delete a user's record and, best-effort, its attachment files.

        Returns:
            True if the record was deleted, False if the user has no such record.
        """
        records, index, record = self._locate(id, user_id)
        if index is None:
            return False

        self._remove_files(record)
        del records[index]
        self.store.write_all(records)
        logger.info(f"Deleted {self.store.entity} {id}")
        return True

    def delete_many(self, user_id: str, predicate) -> int:
        """Delete every record of a user matching ``predicate`` in one write.

        Returns:
            Number of records deleted.
        """
        records = self.store.read_all()
        doomed = [r for r in records if r.user_id == user_id and predicate(r)]
        if not doomed:
            return 0

        for record in doomed:
            self._remove_files(record)
        doomed_ids = {r.id for r in doomed}
        self.store.write_all([r for r in records if r.id not in doomed_ids])
        logger.info(f"Bulk deleted {len(doomed)} {self.store.entity} records")
        return len(doomed)

    def new_file_id(self) -> str:
        """Generate an ID for a new attachment of this record kind."""
        return generate_id(self.file_id_prefix)

    def add_file(self, id: str, user_id: str, attachment: Attachment) -> Optional[T]:
        """Append attachment metadata to a user's record.

        Returns:
            The updated record, or None if the user has no such record.
        """
        records, index, record = self._locate(id, user_id)
        if index is None:
            return None

        record.files = [*record.files, attachment]
        record.updated_at = next_timestamp(record.updated_at)
        records[index] = record
        self.store.write_all(records)
        return record

    def remove_file(self, id: str, user_id: str, file_id: str) -> Optional[T]:
        """Remove an attachment from a user's record and delete its bytes.

        The disk delete is best-effort; the metadata entry is removed even
        when it fails.

        Returns:
            The updated record, or None if the record or file does not exist.
        """
        records, index, record = self._locate(id, user_id)
        if index is None:
            return None
        attachment = record.get_file(file_id)
        if attachment is None:
            return None

        self.uploads.remove(attachment.path)
        record.files = [f for f in record.files if f.id != file_id]
        record.updated_at = next_timestamp(record.updated_at)
        records[index] = record
        self.store.write_all(records)
        return record

    def strip_label(self, label_id: str) -> int:
        """Remove an embedded label from every record that carries it.

        Only records that actually change get a new ``updated_at``. The
        collection is written once, and only if something changed.

        Returns:
            Number of records modified.
        """
        records = self.store.read_all()
        modified = 0
        for record in records:
            if not record.has_label(label_id):
                continue
            record.labels = [label for label in record.labels if label.id != label_id]
            record.updated_at = next_timestamp(record.updated_at)
            modified += 1

        if modified:
            self.store.write_all(records)
        return modified

    # =========================================================================
    # Helpers
    # =========================================================================

    def _locate(self, id: str, user_id: str) -> Tuple[List[T], Optional[int], Optional[T]]:
        """Read the collection and find a user's record by ID."""
        records = self.store.read_all()
        for index, record in enumerate(records):
            if record.id == id and record.user_id == user_id:
                return records, index, record
        return records, None, None

    def _remove_files(self, record: T) -> None:
        """Best-effort delete of every attachment of a record."""
        for attachment in record.files:
            self.uploads.remove(attachment.path)

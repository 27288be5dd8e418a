"""Repository for label storage and retrieval."""
import logging
from typing import List, Optional

from noteflow.exceptions import LabelConflictError
from noteflow.models.schema import Label, generate_id, next_timestamp, utc_now
from noteflow.storage.base import Repository
from noteflow.storage.collection_store import CollectionStore

logger = logging.getLogger(__name__)


class LabelRepository:
    """Repository for one family of labels (note labels or task labels).

    Label names are unique case-insensitively within the family. Parent
    records embed copies of labels, so deleting a label strips those copies
    from the parent collection before the label itself is removed.
    """

    def __init__(
        self,
        store: CollectionStore[Label],
        parents: Repository,
        id_prefix: str = "label",
        conflict_message: str = "Label with this name already exists",
    ):
        """Initialize the label repository.

        Args:
            store: Collection document holding the labels.
            parents: Repository whose records embed these labels.
            id_prefix: Prefix for generated label IDs.
            conflict_message: Message raised on a duplicate name.
        """
        self.store = store
        self.parents = parents
        self.id_prefix = id_prefix
        self.conflict_message = conflict_message

    def find_all(self) -> List[Label]:
        """Get all labels in storage order."""
        return self.store.read_all()

    def find_by_id(self, id: str) -> Optional[Label]:
        """Get a label by ID."""
        for label in self.store.read_all():
            if label.id == id:
                return label
        return None

    def find_by_ids(self, ids: List[str]) -> List[Label]:
        """Get the labels whose IDs are listed, in storage order.

        Unknown IDs are skipped.
        """
        wanted = set(ids)
        return [label for label in self.store.read_all() if label.id in wanted]

    def create(self, name: str, color: str) -> Label:
        """Create a label.

        Raises:
            LabelConflictError: If a label with the same name exists
                (case-insensitive). Storage is left untouched.
        """
        labels = self.store.read_all()
        self._check_unique(labels, name)

        now = utc_now()
        label = Label(
            id=generate_id(self.id_prefix),
            name=name,
            color=color,
            created_at=now,
            updated_at=now,
        )
        labels.append(label)
        self.store.write_all(labels)
        logger.info(f"Created {self.store.entity} {label.id} ({label.name})")
        return label

    def update(
        self, id: str, name: Optional[str] = None, color: Optional[str] = None
    ) -> Optional[Label]:
        """Rename and/or recolour a label.

        Existing embedded copies in parent records are not touched.

        Returns:
            The updated label, or None if no label has this ID.

        Raises:
            LabelConflictError: If the new name clashes with another label.
        """
        labels = self.store.read_all()
        index = next((i for i, label in enumerate(labels) if label.id == id), None)
        if index is None:
            return None

        label = labels[index]
        if name:
            self._check_unique(labels, name, exclude_id=id)
            label.name = name
        if color is not None:
            label.color = color
        label.updated_at = next_timestamp(label.updated_at)

        labels[index] = label
        self.store.write_all(labels)
        return label

    def delete(self, id: str) -> bool:
        """Delete a label and strip it from every parent record.

        The parent collection is written first, then the label collection.
        There is no rollback: if the second write fails the label survives
        while already detached from all parents.

        Returns:
            True if the label existed, False otherwise.
        """
        labels = self.store.read_all()
        if not any(label.id == id for label in labels):
            return False

        stripped = self.parents.strip_label(id)
        self.store.write_all([label for label in labels if label.id != id])
        logger.info(
            f"Deleted {self.store.entity} {id} (removed from {stripped} records)"
        )
        return True

    def _check_unique(
        self, labels: List[Label], name: str, exclude_id: Optional[str] = None
    ) -> None:
        lowered = name.lower()
        for label in labels:
            if label.id != exclude_id and label.name.lower() == lowered:
                raise LabelConflictError(name, self.conflict_message)

"""Whole-document JSON storage for one collection of records."""

import json
import logging
from pathlib import Path
from typing import Any, Generic, List, Sequence, Tuple, Type, TypeVar

from pydantic import ValidationError as PydanticValidationError

from noteflow.exceptions import StorageError
from noteflow.models.schema import Record

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Record)


class CollectionStore(Generic[T]):
    """A collection persisted as a single pretty-printed JSON array.

    Every read parses the whole document and every write replaces it. Writes
    go through one ``write_text`` call without a temp file and rename, so a
    crash mid-write can leave a truncated document; the next read then sees an
    empty collection. There is no locking: two overlapping read-modify-write
    sequences lose the earlier write.

    Array elements that do not validate as ``model`` are skipped on read and
    carried over unchanged on write, so one odd record never takes the rest
    of the collection down with it.
    """

    def __init__(self, path: Path, model: Type[T], entity: str):
        """Initialize the store.

        Args:
            path: Location of the JSON document.
            model: Record model each array element is parsed into.
            entity: Human-readable name used in error messages ("note",
                "task label", ...).
        """
        self.path = Path(path)
        self.model = model
        self.entity = entity

    def ensure(self) -> None:
        """Create the parent directory and an empty array document if missing."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.write_text("[]", encoding="utf-8")

    def read_all(self) -> List[T]:
        """Read every valid record in the collection.

        Missing, unreadable or corrupt documents are logged and read as an
        empty collection. Individual invalid records are logged and skipped.
        """
        try:
            self.ensure()
            entries = self._load_entries()
        except (OSError, ValueError) as e:
            logger.error(f"Error reading {self.entity} file {self.path.name}: {e}")
            return []
        records, skipped = self._split_entries(entries)
        if skipped:
            logger.warning(
                f"Skipped {len(skipped)} unreadable {self.entity} record(s) "
                f"in {self.path.name}"
            )
        return records

    def write_all(self, items: Sequence[T]) -> None:
        """Replace the collection with ``items``.

        Records currently on disk that fail validation are appended unchanged.

        Raises:
            StorageError: If the document cannot be written.
        """
        try:
            self.ensure()
            payload = [item.to_record() for item in items] + self._unreadable_entries()
            self.path.write_text(
                json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8"
            )
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error writing {self.entity} file {self.path.name}: {e}")
            raise StorageError(
                f"Failed to save {self.entity} data",
                operation="write",
                path=str(self.path),
                original_error=e,
            ) from e

    def _load_entries(self) -> List[Any]:
        """Parse the document into its raw array elements.

        Raises:
            OSError: If the document cannot be read.
            ValueError: If it is not a JSON array.
        """
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise ValueError(f"expected a JSON array, got {type(data).__name__}")
        return data

    def _split_entries(self, entries: List[Any]) -> Tuple[List[T], List[Any]]:
        """Validate entries one at a time into (records, raw invalid entries)."""
        records: List[T] = []
        skipped: List[Any] = []
        for index, entry in enumerate(entries):
            try:
                records.append(self.model.model_validate(entry))
            except PydanticValidationError as e:
                logger.warning(
                    f"Invalid {self.entity} record at index {index} in "
                    f"{self.path.name}: {e.error_count()} error(s)"
                )
                skipped.append(entry)
        return records, skipped

    def _unreadable_entries(self) -> List[Any]:
        """Raw entries on disk that read_all would skip.

        An unreadable or corrupt document has nothing worth keeping.
        """
        try:
            entries = self._load_entries()
        except (OSError, ValueError):
            return []
        return self._split_entries(entries)[1]

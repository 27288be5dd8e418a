"""Repository for task storage and retrieval."""
import datetime
import logging
from typing import Any, List, Optional

from noteflow.models.schema import Task, TaskStatus, utc_now
from noteflow.storage.base import Repository
from noteflow.storage.collection_store import CollectionStore
from noteflow.storage.upload_store import UploadStore

logger = logging.getLogger(__name__)

DEFAULT_DUE_DAYS = 2


def default_due_date(
    now: Optional[datetime.datetime] = None, days: int = DEFAULT_DUE_DAYS
) -> datetime.datetime:
    """Get the due date used when a task is created without one."""
    return (now or utc_now()) + datetime.timedelta(days=days)


class TaskRepository(Repository[Task]):
    """Repository for tasks.

    Same storage model as notes, plus a workflow status and a due date.
    The status machine has no guards: any status may be set directly.
    """

    id_prefix = "task"
    file_id_prefix = "task_file"

    def __init__(
        self,
        store: CollectionStore[Task],
        uploads: UploadStore,
        default_due_days: int = DEFAULT_DUE_DAYS,
    ):
        super().__init__(store, uploads)
        self.default_due_days = default_due_days

    def create(self, **fields: Any) -> Task:
        """Create a task, defaulting ``due_date`` to now plus the configured days."""
        if fields.get("due_date") is None:
            fields["due_date"] = default_due_date(days=self.default_due_days)
        if fields.get("status") is None:
            fields["status"] = TaskStatus.TODO
        return super().create(**fields)

    def find_by_status(self, user_id: str, status: TaskStatus) -> List[Task]:
        """Get a user's tasks in the given status."""
        return [t for t in self.find_all_by_user(user_id) if t.status == status]

    def delete_all_done(self, user_id: str) -> int:
        """Delete every ``Done`` task of a user, with their files, in one write.

        Returns:
            Number of tasks deleted.
        """
        return self.delete_many(user_id, lambda task: task.status == TaskStatus.DONE)

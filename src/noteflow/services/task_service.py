"""Service layer for tasks and task labels."""

import datetime
import logging
from typing import List, Optional, Union

from noteflow.config import TASK_LABELS_FILE, TASKS_FILE, config
from noteflow.exceptions import ErrorCode, ValidationError
from noteflow.models.requests import (
    CreateTaskRequest,
    TaskFilter,
    UpdateTaskRequest,
    parse_request,
)
from noteflow.models.schema import Label, Task, TaskStats, TaskStatus, utc_now
from noteflow.services.record_service import RecordService
from noteflow.storage.collection_store import CollectionStore
from noteflow.storage.label_repository import LabelRepository
from noteflow.storage.task_repository import TaskRepository
from noteflow.storage.upload_store import UploadStore

logger = logging.getLogger(__name__)

# Forward-looking due windows, measured from now
DUE_WINDOWS = {
    "week": datetime.timedelta(days=7),
    "month": datetime.timedelta(days=30),
}


def is_overdue(task: Task, now: datetime.datetime) -> bool:
    """A task is overdue when it is not done and its due date has passed."""
    return task.status != TaskStatus.DONE and task.due_date < now


def matches_due(task: Task, due: str, now: datetime.datetime) -> bool:
    """Check a task against a due filter (overdue, today, week, month)."""
    if due == "overdue":
        return is_overdue(task, now)
    if due == "today":
        return task.due_date.date() == now.date()
    return now <= task.due_date <= now + DUE_WINDOWS[due]


class TaskService(RecordService[Task]):
    """Service for managing tasks, their labels and attachments."""

    kind = "task"
    not_found_code = ErrorCode.TASK_NOT_FOUND
    create_request = CreateTaskRequest
    update_request = UpdateTaskRequest

    def __init__(
        self,
        repository: Optional[TaskRepository] = None,
        labels: Optional[LabelRepository] = None,
    ):
        """Initialize the service.

        Args:
            repository: Task storage. Created from the global config if None.
            labels: Task-label storage. Created from the global config if None.
        """
        if repository is None:
            repository = TaskRepository(
                CollectionStore(config.get_collection_path(TASKS_FILE), Task, "task"),
                UploadStore(config.get_uploads_dir(tasks=True)),
                default_due_days=config.default_due_days,
            )
        if labels is None:
            labels = LabelRepository(
                CollectionStore(
                    config.get_collection_path(TASK_LABELS_FILE), Label, "task label"
                ),
                repository,
                id_prefix="task_label",
                conflict_message="Task label with this name already exists",
            )
        super().__init__(repository, labels)

    def list_tasks(
        self,
        user_id: str,
        filters: Union[TaskFilter, dict, None] = None,
        now: Optional[datetime.datetime] = None,
    ) -> List[Task]:
        """Get a user's tasks matching every given filter.

        Args:
            user_id: Owner of the tasks.
            filters: Optional status, labelId and due window.
            now: Reference time for due windows. Defaults to the current time.
        """
        task_filter = parse_request(TaskFilter, filters or {})
        now = now or utc_now()

        tasks = self.repository.find_all_by_user(user_id)
        if task_filter.status is not None:
            tasks = [t for t in tasks if t.status == task_filter.status]
        if task_filter.label_id:
            tasks = [t for t in tasks if t.has_label(task_filter.label_id)]
        if task_filter.due:
            tasks = [t for t in tasks if matches_due(t, task_filter.due, now)]
        return tasks

    def delete_tasks_by_status(self, user_id: str, status: Union[TaskStatus, str]) -> int:
        """Bulk delete a user's tasks in a given status.

        Only ``Done`` tasks may be bulk deleted.

        Returns:
            Number of tasks deleted.

        Raises:
            ValidationError: For any status other than ``Done``.
        """
        if status != TaskStatus.DONE:
            raise ValidationError(
                "Only Done tasks can be bulk deleted",
                field="status",
                value=getattr(status, "value", status),
                code=ErrorCode.INVALID_STATUS,
            )
        deleted = self.repository.delete_all_done(user_id)
        logger.info(f"Deleted {deleted} done tasks for user {user_id}")
        return deleted

    def get_stats(self, user_id: str, now: Optional[datetime.datetime] = None) -> TaskStats:
        """Count a user's tasks per status, plus how many are overdue."""
        now = now or utc_now()
        tasks = self.repository.find_all_by_user(user_id)
        return TaskStats(
            total=len(tasks),
            todo=sum(1 for t in tasks if t.status == TaskStatus.TODO),
            in_progress=sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS),
            done=sum(1 for t in tasks if t.status == TaskStatus.DONE),
            overdue=sum(1 for t in tasks if is_overdue(t, now)),
        )

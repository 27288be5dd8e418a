"""Storage layer for the Noteflow server."""

from noteflow.storage.base import Repository
from noteflow.storage.collection_store import CollectionStore
from noteflow.storage.label_repository import LabelRepository
from noteflow.storage.note_repository import NoteRepository
from noteflow.storage.task_repository import TaskRepository
from noteflow.storage.upload_store import UploadStore
from noteflow.storage.user_repository import UserRepository

__all__ = [
    "CollectionStore",
    "UploadStore",
    "Repository",
    "NoteRepository",
    "TaskRepository",
    "LabelRepository",
    "UserRepository",
]

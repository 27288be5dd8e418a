"""Common test fixtures for the Noteflow server."""

import tempfile
from pathlib import Path

import pytest

from noteflow.config import config
from noteflow.observability import metrics
from noteflow.services.auth_service import AuthService
from noteflow.services.note_service import NoteService
from noteflow.services.task_service import TaskService


@pytest.fixture
def temp_dirs():
    """Create a temporary storage root."""
    with tempfile.TemporaryDirectory() as base_dir:
        yield Path(base_dir)


@pytest.fixture
def test_config(temp_dirs, monkeypatch):
    """Point the global config at the temporary root (auto-restored)."""
    monkeypatch.setattr(config, "base_dir", temp_dirs)
    monkeypatch.setattr(config, "data_dir", Path("data"))
    monkeypatch.setattr(config, "uploads_dir", Path("data/uploads"))
    monkeypatch.setattr(config, "task_uploads_dir", Path("data/task-uploads"))
    monkeypatch.setattr(config, "default_due_days", 2)
    yield config


@pytest.fixture
def note_service(test_config):
    """Create a NoteService backed by the temporary root."""
    yield NoteService()


@pytest.fixture
def task_service(test_config):
    """Create a TaskService backed by the temporary root."""
    yield TaskService()


@pytest.fixture
def auth_service(test_config):
    """Create an AuthService backed by the temporary root."""
    yield AuthService()


@pytest.fixture
def note_repository(note_service):
    return note_service.repository


@pytest.fixture
def label_repository(note_service):
    return note_service.labels


@pytest.fixture
def task_repository(task_service):
    return task_service.repository


@pytest.fixture
def task_label_repository(task_service):
    return task_service.labels


@pytest.fixture
def user_repository(auth_service):
    return auth_service.repository


@pytest.fixture
def reset_metrics():
    """Start from empty in-memory metrics."""
    metrics.reset()
    yield metrics
    metrics.reset()

"""Core module - Shared models, errors, and configuration."""

from matrixtodo.core.config import (
    DOCUMENT_VERSION,
    REMOTE_FILE_PATH,
    SETTINGS_FILE,
    TODOS_FILE,
    RemoteConfig,
    get_data_dir,
)
from matrixtodo.core.errors import (
    MatrixTodoError,
    NotFoundError,
    ParseError,
    StorageError,
    ValidationError,
)
from matrixtodo.core.models import Task, TaskCollection
from matrixtodo.core.types import Quadrant, SyncOutcome

__all__ = [
    # Config
    "DOCUMENT_VERSION",
    "REMOTE_FILE_PATH",
    "SETTINGS_FILE",
    "TODOS_FILE",
    "RemoteConfig",
    "get_data_dir",
    # Errors
    "MatrixTodoError",
    "NotFoundError",
    "ParseError",
    "StorageError",
    "ValidationError",
    # Models
    "Task",
    "TaskCollection",
    # Types
    "Quadrant",
    "SyncOutcome",
]

"""Persistence of task forests, raw notes and completion logs."""

from project_stickies.storage.exceptions import InvalidProjectNameError, StorageError
from project_stickies.storage.json_store import JsonFileStore, TaskStore, atomic_write

__all__ = [
    "InvalidProjectNameError",
    "JsonFileStore",
    "StorageError",
    "TaskStore",
    "atomic_write",
]

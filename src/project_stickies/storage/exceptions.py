"""Exceptions for task persistence."""


class StorageError(Exception):
    """Raised when a notes, raw-text or completion file cannot be read or written."""


class InvalidProjectNameError(StorageError):
    """Raised when a project name cannot be used as a storage directory."""

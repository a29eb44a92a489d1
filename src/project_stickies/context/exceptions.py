"""Context-gathering exceptions.

These never escape the public entry points of the context package; they mark
advisory failures that are logged and converted to partial or empty context.
"""


class ContextError(Exception):
    """Base exception for context-gathering operations."""


class FileTreeError(ContextError):
    """Raised when no directory-listing tool could produce a file tree."""


class ContextLoadError(ContextError):
    """Raised when a context file cannot be read."""

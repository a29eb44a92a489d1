"""Exceptions for model-backed agent operations."""


class AgentError(Exception):
    """Base exception for all agent operations."""


class FileSelectionError(AgentError):
    """Raised when the discovery model call fails."""


class FormattingError(AgentError):
    """Raised when task formatting fails."""


class ResponseParseError(FormattingError):
    """Raised when the formatting reply holds no parseable structured payload."""

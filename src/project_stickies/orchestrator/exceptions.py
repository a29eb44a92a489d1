"""Exceptions for format operations."""


class OrchestratorError(Exception):
    """Base exception for all orchestrator operations."""


class GraphBuildError(OrchestratorError):
    """Raised when the format graph cannot be constructed or the task graph cannot be built."""


class PipelineBusyError(OrchestratorError):
    """Raised when a format operation is already in flight for the project."""


class OperationCancelledError(OrchestratorError):
    """Raised when a format operation was cancelled before graph construction."""


class FormatOperationError(OrchestratorError):
    """Raised when a format operation fails for a reason with no more specific type."""


class StatusTransitionError(OrchestratorError):
    """Raised on a transition the format status machine does not allow."""

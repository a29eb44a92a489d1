"""LangGraph orchestration of format operations."""

from project_stickies.orchestrator.exceptions import (
    FormatOperationError,
    GraphBuildError,
    OperationCancelledError,
    OrchestratorError,
    PipelineBusyError,
    StatusTransitionError,
)
from project_stickies.orchestrator.graph import build_format_graph
from project_stickies.orchestrator.pipeline import FormatPipeline, FormatResult, new_lines_since
from project_stickies.orchestrator.state import FormatState, make_initial_state
from project_stickies.orchestrator.status import FormatStatus, StatusTracker

__all__ = [
    "FormatOperationError",
    "FormatPipeline",
    "FormatResult",
    "FormatState",
    "FormatStatus",
    "GraphBuildError",
    "OperationCancelledError",
    "OrchestratorError",
    "PipelineBusyError",
    "StatusTracker",
    "StatusTransitionError",
    "build_format_graph",
    "make_initial_state",
    "new_lines_since",
]

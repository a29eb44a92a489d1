"""Model-backed agents: file selection and task formatting."""

from project_stickies.agents.exceptions import (
    AgentError,
    FileSelectionError,
    FormattingError,
    ResponseParseError,
)
from project_stickies.agents.file_selector import FileSelector, parse_discovery_response
from project_stickies.agents.task_formatter import TaskFormatter, parse_format_response

__all__ = [
    "AgentError",
    "FileSelectionError",
    "FileSelector",
    "FormattingError",
    "ResponseParseError",
    "TaskFormatter",
    "parse_discovery_response",
    "parse_format_response",
]

"""State definition for the format-operation graph."""

import operator
from typing import Annotated, TypedDict

from project_stickies.models import (
    CompletionLogEntry,
    FormatPreferences,
    FormatResponse,
    GatheredContext,
    ProjectType,
    TaskNode,
)
from project_stickies.tasks import BuildResult


class FormatState(TypedDict):
    """State for one format operation.

    Fields with Annotated[list, operator.add] reducers accumulate across nodes.
    All other fields use default overwrite semantics.
    """

    # Input
    raw_text: str
    project_root: str
    project_type: ProjectType
    is_voice_input: bool
    preferences: FormatPreferences
    use_autocontext: bool
    existing_tasks: list[TaskNode]
    completions: list[CompletionLogEntry]
    existing_task_context: str

    # Gathering; a caller-supplied context_string skips the gather node
    gathered: GatheredContext | None
    context_string: str | None

    # Analysis and graph construction
    response: FormatResponse | None
    build: BuildResult | None

    # First fatal exception, re-raised by the pipeline
    failure: BaseException | None

    warnings: Annotated[list[str], operator.add]
    errors: Annotated[list[str], operator.add]


def make_initial_state(
    raw_text: str,
    project_root: str = "",
    *,
    project_type: ProjectType = ProjectType.CODE,
    is_voice_input: bool = False,
    preferences: FormatPreferences | None = None,
    use_autocontext: bool = True,
    existing_tasks: list[TaskNode] | None = None,
    completions: list[CompletionLogEntry] | None = None,
    existing_task_context: str = "",
    context_string: str | None = None,
) -> FormatState:
    """Create the initial state for a format operation.

    Returns:
        FormatState dict with all fields initialised to defaults.
    """
    return {
        "raw_text": raw_text,
        "project_root": project_root,
        "project_type": ProjectType(project_type),
        "is_voice_input": is_voice_input,
        "preferences": preferences or FormatPreferences(),
        "use_autocontext": use_autocontext,
        "existing_tasks": list(existing_tasks or []),
        "completions": list(completions or []),
        "existing_task_context": existing_task_context,
        "gathered": None,
        "context_string": context_string,
        "response": None,
        "build": None,
        "failure": None,
        "warnings": [],
        "errors": [],
    }

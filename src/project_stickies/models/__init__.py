"""Data models for project stickies."""

from project_stickies.models.context_models import (
    DiscoveredFile,
    DiscoveryResult,
    FileContext,
    GatheredContext,
)
from project_stickies.models.format_models import (
    ByIndex,
    BySlug,
    CompletionLog,
    CompletionLogEntry,
    ContextUsage,
    FormatPreferences,
    FormatResponse,
    FormatSection,
    NotesFile,
    PROJECT_CATEGORIES,
    ProjectType,
    TaskDescriptor,
    TaskReference,
    categories_for,
    parse_reference,
)
from project_stickies.models.task_models import (
    Citation,
    ContextFileRef,
    NodeKind,
    Priority,
    TaskMetadata,
    TaskNode,
)

__all__ = [
    "ByIndex",
    "BySlug",
    "Citation",
    "CompletionLog",
    "CompletionLogEntry",
    "ContextFileRef",
    "ContextUsage",
    "DiscoveredFile",
    "DiscoveryResult",
    "FileContext",
    "FormatPreferences",
    "FormatResponse",
    "FormatSection",
    "GatheredContext",
    "NodeKind",
    "NotesFile",
    "Priority",
    "PROJECT_CATEGORIES",
    "ProjectType",
    "TaskDescriptor",
    "TaskMetadata",
    "TaskNode",
    "TaskReference",
    "categories_for",
    "parse_reference",
]

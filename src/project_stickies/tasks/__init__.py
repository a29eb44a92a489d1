"""Task forest helpers: traversal, reference resolution and graph building."""

from project_stickies.tasks.graph_builder import BuildResult, TaskGraphBuilder, normalize_priority
from project_stickies.tasks.references import ReferenceResolver, Resolution
from project_stickies.tasks.relevance import (
    build_task_context,
    existing_task_context,
    extract_keywords,
    filter_relevant_tasks,
)
from project_stickies.tasks.tree import (
    all_ids,
    find_task,
    flatten_tasks,
    generate_title_from_text,
    is_blocked,
    iter_tasks,
)

__all__ = [
    "BuildResult",
    "ReferenceResolver",
    "Resolution",
    "TaskGraphBuilder",
    "all_ids",
    "build_task_context",
    "existing_task_context",
    "extract_keywords",
    "filter_relevant_tasks",
    "find_task",
    "flatten_tasks",
    "generate_title_from_text",
    "is_blocked",
    "iter_tasks",
    "normalize_priority",
]

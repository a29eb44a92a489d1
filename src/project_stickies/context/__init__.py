"""Context gathering: explicit mentions, import following and auto-discovery."""

from project_stickies.context.auto_discovery import AutoDiscoveryService, grep_excerpt
from project_stickies.context.exceptions import ContextError, ContextLoadError, FileTreeError
from project_stickies.context.explicit_loader import (
    ExplicitContextLoader,
    format_context_for_prompt,
)
from project_stickies.context.file_tree import (
    DirectoryLister,
    FileTreeCache,
    SubprocessDirectoryLister,
)
from project_stickies.context.imports import resolve_import, resolve_imports
from project_stickies.context.mentions import extract_mentions
from project_stickies.context.merger import (
    ContextMerger,
    format_gathered_context,
    merge_contexts,
)
from project_stickies.context.strategy import (
    CodeContextStrategy,
    ContextStrategy,
    LifeAdminContextStrategy,
    get_context_strategy,
)

__all__ = [
    "AutoDiscoveryService",
    "CodeContextStrategy",
    "ContextError",
    "ContextLoadError",
    "ContextMerger",
    "ContextStrategy",
    "DirectoryLister",
    "ExplicitContextLoader",
    "FileTreeCache",
    "FileTreeError",
    "LifeAdminContextStrategy",
    "SubprocessDirectoryLister",
    "extract_mentions",
    "format_context_for_prompt",
    "format_gathered_context",
    "get_context_strategy",
    "grep_excerpt",
    "merge_contexts",
    "resolve_import",
    "resolve_imports",
]

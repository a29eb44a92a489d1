"""Loader for files referenced explicitly with ``@path`` mentions."""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path

from project_stickies.context.exceptions import ContextLoadError
from project_stickies.context.imports import resolve_imports
from project_stickies.context.mentions import extract_mentions, mention_to_path
from project_stickies.models import FileContext
from project_stickies.utils.text import count_lines, truncate

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 50 * 1024  # characters per file
MAX_DEPTH = 3
MAX_FILES_PER_MENTION = 10


class ExplicitContextLoader:
    """Loads mentioned files and, recursively, the files they import."""

    def __init__(
        self,
        max_file_size: int = MAX_FILE_SIZE,
        max_depth: int = MAX_DEPTH,
        max_files_per_mention: int = MAX_FILES_PER_MENTION,
    ):
        """Initialize the loader.

        Args:
            max_file_size: Characters kept per file before truncation
            max_depth: Recursion bound; top-level mentions are depth 0
            max_files_per_mention: Imports followed per loaded file
        """
        self.max_file_size = max_file_size
        self.max_depth = max_depth
        self.max_files_per_mention = max_files_per_mention

    async def gather(self, raw_text: str, project_root: str | Path) -> dict[str, FileContext]:
        """Load every file mentioned in ``raw_text``."""
        return await self.load(extract_mentions(raw_text), project_root)

    async def load(
        self, mentions: Iterable[str], project_root: str | Path
    ) -> dict[str, FileContext]:
        """Load mentioned files with their import closure.

        Args:
            mentions: ``@path`` tokens relative to the project root
            project_root: Project root directory

        Returns:
            Insertion-ordered mapping of mention token to loaded (or errored) context
        """
        root = Path(project_root).resolve()
        context: dict[str, FileContext] = {}
        for mention in mentions:
            await self._load_with_deps(mention, root, context, 0)
        return context

    async def _load_with_deps(
        self, mention: str, root: Path, context: dict[str, FileContext], depth: int
    ) -> None:
        if depth >= self.max_depth or mention in context:
            return

        try:
            file_context = await asyncio.to_thread(self._read_mention, mention, root)
        except ContextLoadError as exc:
            logger.warning("Failed to load context for %s: %s", mention, exc)
            context[mention] = FileContext(
                path=mention,
                content=f"Error loading file: {exc}",
                error=str(exc),
            )
            return

        context[mention] = file_context
        for dependency in file_context.dependencies[: self.max_files_per_mention]:
            await self._load_with_deps(dependency, root, context, depth + 1)

    def _read_mention(self, mention: str, root: Path) -> FileContext:
        path = (root / mention_to_path(mention)).resolve()
        if not path.is_relative_to(root):
            raise ContextLoadError(f"{mention} is outside the project root")

        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise ContextLoadError(str(exc)) from exc

        if len(content) > self.max_file_size:
            logger.info("File %s exceeds size limit, truncating", mention)
            content = truncate(content, self.max_file_size)

        return FileContext(
            path=mention,
            content=content,
            line_count=count_lines(content),
            dependencies=resolve_imports(content, path, root),
        )


def format_context_for_prompt(context: Mapping[str, FileContext] | Iterable[FileContext]) -> str:
    """Render loaded files as fenced blocks for the model prompt."""
    entries = context.values() if isinstance(context, Mapping) else context
    return "\n\n".join(f"File: {entry.path}\n```\n{entry.content}\n```" for entry in entries)

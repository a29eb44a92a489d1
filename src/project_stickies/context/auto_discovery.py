"""Automatic discovery of relevant project files for raw task notes."""

import asyncio
import logging
from pathlib import Path

from project_stickies.agents.exceptions import FileSelectionError
from project_stickies.agents.file_selector import FileSelector
from project_stickies.context.exceptions import ContextError, ContextLoadError
from project_stickies.context.explicit_loader import MAX_FILE_SIZE
from project_stickies.context.file_tree import (
    DEFAULT_TREE_DEPTH,
    DirectoryLister,
    FileTreeCache,
    SubprocessDirectoryLister,
)
from project_stickies.models import DiscoveryResult, FileContext, GatheredContext
from project_stickies.utils.text import count_lines, truncate

logger = logging.getLogger(__name__)

GREP_CONTEXT_LINES = 3
MAX_GREP_LINES = 120


def grep_excerpt(
    text: str,
    keywords: list[str],
    context_lines: int = GREP_CONTEXT_LINES,
    max_lines: int = MAX_GREP_LINES,
) -> tuple[str, list[str], int]:
    """Extract numbered lines around case-insensitive keyword matches.

    Returns:
        Tuple of (excerpt, keywords that matched, number of excerpt lines)
    """
    lines = text.splitlines()
    lowered = [kw.lower() for kw in keywords if kw.strip()]
    hits = [i for i, line in enumerate(lines) if any(kw in line.lower() for kw in lowered)]
    if not hits:
        return "", [], 0
    matched = [kw for kw in keywords if kw.strip() and any(kw.lower() in lines[i].lower() for i in hits)]

    ranges: list[list[int]] = []
    for i in hits:
        start, end = max(0, i - context_lines), min(len(lines) - 1, i + context_lines)
        if ranges and start <= ranges[-1][1] + 1:
            ranges[-1][1] = max(ranges[-1][1], end)
        else:
            ranges.append([start, end])

    out: list[str] = []
    emitted = 0
    for start, end in ranges:
        if out:
            out.append("...")
        for i in range(start, end + 1):
            if emitted >= max_lines:
                out.append("... [excerpt truncated]")
                return "\n".join(out), matched, emitted
            out.append(f"{i + 1}: {lines[i]}")
            emitted += 1
    return "\n".join(out), matched, emitted


class AutoDiscoveryService:
    """Gathers context without explicit mentions.

    Lists the project tree (through a TTL cache), asks the discovery model to
    pick files, then reads them fully or as keyword excerpts. Every failure
    degrades to partial or empty context.
    """

    def __init__(
        self,
        selector: FileSelector,
        cache: FileTreeCache | None = None,
        lister: DirectoryLister | None = None,
        tree_depth: int = DEFAULT_TREE_DEPTH,
        max_file_size: int = MAX_FILE_SIZE,
    ):
        self.selector = selector
        self.cache = cache if cache is not None else FileTreeCache()
        self.lister = lister if lister is not None else SubprocessDirectoryLister()
        self.tree_depth = tree_depth
        self.max_file_size = max_file_size

    async def get_file_tree(self, project_root: str | Path) -> tuple[str, bool]:
        """Return the project listing and whether it came from the cache.

        Raises:
            FileTreeError: If the listing could not be produced
        """
        root = Path(project_root).resolve()
        cached = self.cache.get(root)
        if cached is not None:
            return cached, True
        tree = await self.lister.list_tree(root, self.tree_depth)
        self.cache.put(root, tree)
        return tree, False

    async def discover(self, raw_text: str, project_root: str | Path) -> GatheredContext:
        """Discover and load relevant files for ``raw_text``.

        Args:
            raw_text: The user's raw task notes
            project_root: Project root directory

        Returns:
            GatheredContext with one entry per loaded file; never raises for
            listing, model or read failures
        """
        root = Path(project_root).resolve()
        try:
            tree, cache_hit = await self.get_file_tree(root)
        except ContextError as exc:
            logger.warning("Auto-discovery skipped, no file tree for %s: %s", root, exc)
            return GatheredContext(cache_misses=1)

        try:
            selection = await self.selector.select_files(tree, raw_text)
        except FileSelectionError as exc:
            logger.warning("Auto-discovery model call failed: %s", exc)
            selection = DiscoveryResult.failed(str(exc))

        if selection.reasoning:
            logger.debug("Discovery reasoning: %s", selection.reasoning)

        files = await asyncio.to_thread(self._load_selection, selection, root)
        return GatheredContext(
            files=files,
            total_lines=sum(f.line_count for f in files),
            cache_hits=1 if cache_hit else 0,
            cache_misses=0 if cache_hit else 1,
        )

    def _load_selection(self, selection: DiscoveryResult, root: Path) -> list[FileContext]:
        files: list[FileContext] = []
        requests = [(path, True, []) for path in selection.explicit]
        requests += [(d.file, d.read_fully, d.keywords) for d in selection.discovered]
        seen: set[str] = set()
        for requested, read_fully, keywords in requests:
            try:
                path = self._resolve(requested, root)
                text = path.read_text(encoding="utf-8", errors="replace")
            except (ContextLoadError, OSError) as exc:
                logger.warning("Skipping discovered file %s: %s", requested, exc)
                continue

            relative = path.relative_to(root).as_posix()
            if relative in seen:
                continue
            seen.add(relative)

            if read_fully:
                content = truncate(text, self.max_file_size)
                files.append(FileContext(path=relative, content=content, line_count=count_lines(content)))
                continue

            excerpt, matched, line_count = grep_excerpt(text, keywords)
            if not excerpt:
                excerpt = f"(no lines matched keywords: {', '.join(keywords)})"
            files.append(
                FileContext(
                    path=relative,
                    content=excerpt,
                    line_count=line_count,
                    was_grepped=True,
                    matched_keywords=matched,
                )
            )
        return files

    @staticmethod
    def _resolve(relative: str, root: Path) -> Path:
        candidate = Path(relative)
        path = (candidate if candidate.is_absolute() else root / candidate).resolve()
        if not path.is_relative_to(root):
            raise ContextLoadError(f"{relative} is outside the project root")
        if not path.is_file():
            raise ContextLoadError(f"{relative} does not exist")
        return path

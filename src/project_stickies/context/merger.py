"""Merges explicit-mention and auto-discovered context into one payload."""

import asyncio
import logging
from pathlib import Path

from project_stickies.context.auto_discovery import AutoDiscoveryService
from project_stickies.context.explicit_loader import (
    ExplicitContextLoader,
    format_context_for_prompt,
)
from project_stickies.context.mentions import mention_to_path
from project_stickies.models import FileContext, GatheredContext
from project_stickies.utils.text import count_lines

logger = logging.getLogger(__name__)

SYNTHETIC_MENTIONS_PATH = "@mentions"


class ContextMerger:
    """Combines the explicit loader and auto-discovery for one project root.

    Both sources run concurrently. Explicit entries always come first; the
    directory-tree cache counters come from the discovery side.
    """

    def __init__(
        self,
        explicit_loader: ExplicitContextLoader,
        discovery: AutoDiscoveryService | None = None,
        auto_context_enabled: bool = True,
    ):
        self.explicit_loader = explicit_loader
        self.discovery = discovery
        self.auto_context_enabled = auto_context_enabled and discovery is not None

    async def gather_project_context(
        self, raw_text: str, project_root: str | Path, auto_discover: bool = True
    ) -> GatheredContext:
        """Gather all context for ``raw_text``.

        Args:
            raw_text: The user's raw task notes
            project_root: Project root directory
            auto_discover: Per-call switch; discovery also needs the global flag

        Returns:
            Merged GatheredContext; context gathering failures never propagate
        """
        if not (self.auto_context_enabled and auto_discover):
            return await self._explicit_only(raw_text, project_root)

        explicit_result, discovered_result = await asyncio.gather(
            self.explicit_loader.gather(raw_text, project_root),
            self.discovery.discover(raw_text, project_root),
            return_exceptions=True,
        )
        if isinstance(explicit_result, asyncio.CancelledError):
            raise explicit_result
        if isinstance(discovered_result, asyncio.CancelledError):
            raise discovered_result
        if isinstance(explicit_result, Exception):
            logger.warning("Explicit context loading failed: %s", explicit_result)
            explicit_result = {}
        if isinstance(discovered_result, Exception):
            logger.warning("Auto-discovery failed: %s", discovered_result)
            discovered_result = GatheredContext(cache_misses=1)

        return merge_contexts(explicit_result.values(), discovered_result)

    async def _explicit_only(self, raw_text: str, project_root: str | Path) -> GatheredContext:
        try:
            explicit = await self.explicit_loader.gather(raw_text, project_root)
        except (OSError, ValueError) as exc:
            logger.warning("Explicit context loading failed: %s", exc)
            explicit = {}

        content = format_context_for_prompt(explicit)
        line_count = count_lines(content)
        return GatheredContext(
            files=[FileContext(path=SYNTHETIC_MENTIONS_PATH, content=content, line_count=line_count)],
            total_lines=line_count,
            cache_hits=0,
            cache_misses=1,
        )


def merge_contexts(explicit, discovered: GatheredContext) -> GatheredContext:
    """Prepend explicit file entries to a discovery result.

    Explicit paths are stored without the ``@`` prefix; discovered entries
    whose path is already present are dropped.
    """
    files: list[FileContext] = []
    seen: set[str] = set()
    for entry in explicit:
        path = mention_to_path(entry.path)
        if path in seen:
            continue
        seen.add(path)
        files.append(entry.model_copy(update={"path": path}))

    for entry in discovered.files:
        if entry.path in seen:
            continue
        seen.add(entry.path)
        files.append(entry)

    return GatheredContext(
        files=files,
        total_lines=sum(f.line_count for f in files),
        cache_hits=discovered.cache_hits,
        cache_misses=discovered.cache_misses,
    )


def format_gathered_context(context: GatheredContext) -> str:
    """Render a GatheredContext for the formatting prompt.

    Grepped entries are labelled with the keywords that selected them.
    """
    blocks = []
    for entry in context.files:
        if entry.path == SYNTHETIC_MENTIONS_PATH:
            if entry.content.strip():
                blocks.append(entry.content)
            continue
        header = f"File: {entry.path}"
        if entry.was_grepped:
            keywords = ", ".join(entry.matched_keywords) or "none"
            header += f" (excerpt, keywords: {keywords})"
        blocks.append(f"{header}\n```\n{entry.content}\n```")
    return "\n\n".join(blocks)

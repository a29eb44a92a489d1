"""Depth-bounded directory listings and their time-to-live cache."""

import asyncio
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from project_stickies.context.exceptions import FileTreeError

logger = logging.getLogger(__name__)

FILE_TREE_CACHE_TTL = 5 * 60  # seconds, measured from the cache write
DEFAULT_TREE_DEPTH = 4
MAX_LISTING_BYTES = 1024 * 1024
LISTING_TIMEOUT = 30.0

EXCLUDED_DIRS = (
    "node_modules",
    ".git",
    "out",
    ".webpack",
    ".vite",
    "coverage",
    "dist",
    "build",
    "__pycache__",
    ".venv",
)


@dataclass(frozen=True)
class FileTreeSnapshot:
    """Immutable directory listing and the wall-clock time it was written."""

    tree: str
    timestamp: float


class FileTreeCache:
    """Directory listings keyed by resolved project root, expiring after a fixed TTL.

    Expiry is pure TTL from the write time; reads do not extend an entry.
    Writers replace the whole snapshot, so a race between two writers for
    the same root leaves the last one in place. Every access to the entries
    holds the lock, so one cache can be shared with worker threads.
    """

    def __init__(self, ttl: float = FILE_TREE_CACHE_TTL, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, FileTreeSnapshot] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(project_root: str | Path) -> str:
        return str(Path(project_root).resolve())

    def get(self, project_root: str | Path) -> str | None:
        """Return the cached listing, or None when absent or expired."""
        key = self._key(project_root)
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or self._clock() - entry.timestamp >= self.ttl:
            return None
        return entry.tree

    def put(self, project_root: str | Path, tree: str) -> None:
        key = self._key(project_root)
        snapshot = FileTreeSnapshot(tree=tree, timestamp=self._clock())
        with self._lock:
            self._entries[key] = snapshot

    def invalidate(self, project_root: str | Path | None = None) -> None:
        with self._lock:
            if project_root is None:
                self._entries.clear()
            else:
                self._entries.pop(self._key(project_root), None)


class DirectoryLister(Protocol):
    """Produces a textual listing of a project tree."""

    async def list_tree(self, project_root: Path, max_depth: int) -> str: ...


class SubprocessDirectoryLister:
    """Lists a directory with ``tree``, falling back to ``find``."""

    def __init__(self, excluded: tuple[str, ...] = EXCLUDED_DIRS, timeout: float = LISTING_TIMEOUT):
        self.excluded = excluded
        self.timeout = timeout

    def _tree_command(self, project_root: Path, max_depth: int) -> list[str]:
        return ["tree", "-L", str(max_depth), "-I", "|".join(self.excluded), str(project_root)]

    def _find_command(self, project_root: Path, max_depth: int) -> list[str]:
        command = ["find", str(project_root), "-maxdepth", str(max_depth), "-type", "f"]
        for name in self.excluded:
            command.extend(["!", "-path", f"*/{name}/*"])
        return command

    async def list_tree(self, project_root: Path, max_depth: int) -> str:
        """Run the listing tools in order of preference.

        Raises:
            FileTreeError: If every tool is missing or fails
        """
        failures = []
        for command in (
            self._tree_command(project_root, max_depth),
            self._find_command(project_root, max_depth),
        ):
            try:
                return await self._run(command)
            except (OSError, FileTreeError, asyncio.TimeoutError) as exc:
                logger.debug("Directory listing with %s failed: %s", command[0], exc)
                failures.append(f"{command[0]}: {exc or type(exc).__name__}")
        raise FileTreeError("Failed to generate file tree: " + "; ".join(failures))

    async def _run(self, command: list[str]) -> str:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            process.kill()
            await process.wait()
            raise
        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise FileTreeError(message or f"exit code {process.returncode}")
        return stdout[:MAX_LISTING_BYTES].decode("utf-8", errors="replace")

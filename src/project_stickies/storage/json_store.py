"""JSON file persistence for task forests, raw notes and completion logs.

Layout under the storage root (default ``~/.project-stickies``)::

    <project>/notes.json        NotesFile
    <project>/raw.txt           unformatted scratch text
    <project>/completions.json  CompletionLog
"""

import asyncio
import json
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from project_stickies.models import CompletionLog, CompletionLogEntry, NotesFile, TaskNode
from project_stickies.storage.exceptions import InvalidProjectNameError, StorageError

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_DIR = Path.home() / ".project-stickies"
NOTES_FILENAME = "notes.json"
RAW_FILENAME = "raw.txt"
COMPLETIONS_FILENAME = "completions.json"
COMPLETION_RETENTION = 100
RECENT_COMPLETIONS = 10

_PROJECT_NAME = re.compile(r"[\w][\w .\-]*")


class TaskStore(Protocol):
    """Persistence collaborator used by the format pipeline."""

    async def load(self, project_name: str) -> NotesFile | None: ...

    async def save(self, project_name: str, notes: NotesFile) -> None: ...

    async def load_raw_text(self, project_name: str) -> str | None: ...

    async def save_raw_text(self, project_name: str, text: str) -> None: ...

    async def get_recent_completions(
        self, project_name: str, limit: int = RECENT_COMPLETIONS
    ) -> list[CompletionLogEntry]: ...


def atomic_write(path: Path, data: str) -> None:
    """Write ``data`` to a temp file beside ``path`` and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
        os.replace(temp_path, path)
    except BaseException:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


class JsonFileStore:
    """File-backed TaskStore; blocking file I/O runs in worker threads."""

    def __init__(self, root: str | Path | None = None):
        self.root = Path(root).expanduser() if root else DEFAULT_STORAGE_DIR

    def project_dir(self, project_name: str) -> Path:
        """Storage directory of ``project_name``.

        Raises:
            InvalidProjectNameError: If the name is empty or contains path separators
        """
        if not project_name or not _PROJECT_NAME.fullmatch(project_name) or ".." in project_name:
            raise InvalidProjectNameError(f"Invalid project name: {project_name!r}")
        return self.root / project_name

    async def load(self, project_name: str) -> NotesFile | None:
        return await asyncio.to_thread(self._load_notes, project_name)

    async def save(self, project_name: str, notes: NotesFile) -> None:
        await asyncio.to_thread(self._save_notes, project_name, notes)

    async def save_tasks(
        self,
        project_name: str,
        tasks: list[TaskNode],
        project_path: str = "",
        last_formatted_raw: str = "",
    ) -> NotesFile:
        notes = NotesFile(
            project_path=project_path,
            last_modified=time.time() * 1000,
            tasks=tasks,
            last_formatted_raw=last_formatted_raw,
        )
        await self.save(project_name, notes)
        return notes

    async def load_raw_text(self, project_name: str) -> str | None:
        return await asyncio.to_thread(self._read_text, self.project_dir(project_name) / RAW_FILENAME)

    async def save_raw_text(self, project_name: str, text: str) -> None:
        path = self.project_dir(project_name) / RAW_FILENAME
        await asyncio.to_thread(self._write, path, text)

    async def get_recent_completions(
        self, project_name: str, limit: int = RECENT_COMPLETIONS
    ) -> list[CompletionLogEntry]:
        """Most recent completion records, newest first."""
        log = await asyncio.to_thread(self._load_completions, project_name)
        recent = sorted(log.completions, key=lambda entry: entry.completed_at, reverse=True)
        return recent[:limit]

    async def record_completion(self, project_name: str, entry: CompletionLogEntry) -> None:
        """Append a completion record, keeping only the newest hundred."""
        await asyncio.to_thread(self._append_completion, project_name, entry)

    def _load_notes(self, project_name: str) -> NotesFile | None:
        path = self.project_dir(project_name) / NOTES_FILENAME
        text = self._read_text(path)
        if text is None:
            return None
        try:
            return NotesFile.model_validate_json(text)
        except ValidationError as exc:
            raise StorageError(f"Corrupt notes file {path}: {exc}") from exc

    def _save_notes(self, project_name: str, notes: NotesFile) -> None:
        path = self.project_dir(project_name) / NOTES_FILENAME
        self._write(path, notes.model_dump_json(indent=2, exclude_none=True))
        logger.debug("Saved %d task(s) to %s", len(notes.tasks), path)

    def _load_completions(self, project_name: str) -> CompletionLog:
        path = self.project_dir(project_name) / COMPLETIONS_FILENAME
        text = self._read_text(path)
        if text is None:
            return CompletionLog()
        try:
            return CompletionLog.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable completion log %s: %s", path, exc)
            return CompletionLog()

    def _append_completion(self, project_name: str, entry: CompletionLogEntry) -> None:
        log = self._load_completions(project_name)
        log.completions.append(entry)
        log.completions = log.completions[-COMPLETION_RETENTION:]
        path = self.project_dir(project_name) / COMPLETIONS_FILENAME
        self._write(path, log.model_dump_json(indent=2))

    @staticmethod
    def _read_text(path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc

    @staticmethod
    def _write(path: Path, data: str) -> None:
        try:
            atomic_write(path, data)
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc

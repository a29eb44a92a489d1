"""Format pipeline: the operations exposed to the UI layer and the CLI."""

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from project_stickies.agents import TaskFormatter
from project_stickies.context import ContextMerger, ContextStrategy, get_context_strategy
from project_stickies.models import (
    CompletionLogEntry,
    FormatPreferences,
    FormatResponse,
    GatheredContext,
    NotesFile,
    ProjectType,
    TaskNode,
)
from project_stickies.orchestrator.exceptions import (
    FormatOperationError,
    OperationCancelledError,
    PipelineBusyError,
)
from project_stickies.orchestrator.graph import build_format_graph
from project_stickies.orchestrator.state import FormatState, make_initial_state
from project_stickies.orchestrator.status import (
    SEARCH_HINT_DELAY,
    FormatStatus,
    StatusListener,
    StatusTracker,
)
from project_stickies.storage import StorageError, TaskStore
from project_stickies.tasks import TaskGraphBuilder, existing_task_context

logger = logging.getLogger(__name__)

NO_NEW_CHANGES = "No new changes to format"
DEFAULT_OPERATION_KEY = "__default__"


@dataclass
class FormatResult:
    new_tasks: list[TaskNode] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    gathered: GatheredContext | None = None
    response: FormatResponse | None = None
    committed: bool = False


@dataclass
class _Operation:
    task: asyncio.Task
    tracker: StatusTracker
    cancel_requested: bool = False


def new_lines_since(raw_text: str, last_formatted_raw: str) -> list[str]:
    """Non-blank lines of ``raw_text`` absent from the last formatted text."""
    previous = {line for line in last_formatted_raw.split("\n") if line.strip()}
    return [line for line in raw_text.split("\n") if line.strip() and line not in previous]


class FormatPipeline:
    """Runs format operations, one at a time per project.

    Every operation walks the status machine, can be cancelled until graph
    construction starts, and commits to the store only after the whole graph
    succeeded.
    """

    def __init__(
        self,
        formatter: TaskFormatter,
        merger: ContextMerger,
        store: TaskStore | None = None,
        builder: TaskGraphBuilder | None = None,
        search_delay: float = SEARCH_HINT_DELAY,
    ):
        self.formatter = formatter
        self.merger = merger
        self.store = store
        self.builder = builder or TaskGraphBuilder()
        self.search_delay = search_delay
        self._listeners: list[StatusListener] = []
        self._operations: dict[str, _Operation] = {}

    def on_status(self, listener: StatusListener):
        """Register a status listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def status(self, project_name: str) -> FormatStatus:
        operation = self._operations.get(project_name)
        return operation.tracker.status if operation else FormatStatus.IDLE

    def is_busy(self, project_name: str) -> bool:
        return project_name in self._operations

    def cancel(self, project_name: str) -> bool:
        """Cancel the in-flight operation of ``project_name``.

        Returns:
            True if a cancellation was requested; False when nothing is running
            or graph construction has already started
        """
        operation = self._operations.get(project_name)
        if operation is None or not operation.tracker.cancellable:
            return False
        operation.cancel_requested = True
        operation.task.cancel()
        logger.info("Cancellation requested for %s", project_name)
        return True

    def _strategy(self, project_type: ProjectType) -> ContextStrategy:
        return get_context_strategy(project_type, self.merger)

    async def gather_project_context(
        self,
        raw_text: str,
        project_root: str | Path,
        project_type: ProjectType | str = ProjectType.CODE,
        use_autocontext: bool = True,
    ) -> GatheredContext:
        """Gather context for ``raw_text``; never raises for gathering failures."""
        strategy = self._strategy(ProjectType(project_type))
        return await strategy.gather_context(raw_text, project_root, use_autocontext)

    async def format_raw_text(
        self,
        raw_text: str,
        context_string: str,
        is_voice_input: bool = False,
        existing_tasks: Sequence[TaskNode] = (),
        preferences: FormatPreferences | None = None,
        project_type: ProjectType | str = ProjectType.CODE,
        completions: Sequence[CompletionLogEntry] | None = None,
        project_name: str | None = None,
    ) -> FormatResult:
        """Format raw text with a caller-supplied context string.

        Nothing is persisted; the caller owns the returned tasks.

        Raises:
            PipelineBusyError: If an operation is in flight for ``project_name``
            AgentError: If the formatting call fails or its reply is unparsable
            OperationCancelledError: If the operation was cancelled
        """
        state = make_initial_state(
            raw_text,
            project_type=ProjectType(project_type),
            is_voice_input=is_voice_input,
            preferences=preferences,
            existing_tasks=list(existing_tasks),
            completions=list(completions or []),
            existing_task_context=existing_task_context(existing_tasks, raw_text),
            context_string=context_string or "",
        )
        key = project_name or DEFAULT_OPERATION_KEY
        operation = self._reserve(key)
        try:
            return await self._execute(key, operation, state)
        finally:
            self._release(key, operation)

    async def format_single_task(
        self,
        task_text: str,
        project_root: str | Path,
        use_autocontext: bool = True,
        existing_tasks: Sequence[TaskNode] = (),
        preferences: FormatPreferences | None = None,
        project_type: ProjectType | str = ProjectType.CODE,
        project_name: str | None = None,
    ) -> TaskNode:
        """Format one task with freshly gathered context.

        Raises:
            FormatOperationError: If the model produced no task
        """
        state = make_initial_state(
            task_text,
            str(project_root),
            project_type=ProjectType(project_type),
            preferences=preferences,
            use_autocontext=use_autocontext,
            existing_tasks=list(existing_tasks),
            existing_task_context=existing_task_context(existing_tasks, task_text),
        )
        key = project_name or DEFAULT_OPERATION_KEY
        operation = self._reserve(key)
        try:
            result = await self._execute(key, operation, state)
        finally:
            self._release(key, operation)
        if not result.new_tasks:
            raise FormatOperationError("The model returned no task for the given text")
        if len(result.new_tasks) > 1:
            logger.warning(
                "Expected one task, got %d; keeping the first", len(result.new_tasks)
            )
        return result.new_tasks[0]

    async def run(
        self,
        project_name: str,
        raw_text: str,
        project_root: str | Path,
        *,
        is_voice_input: bool = False,
        preferences: FormatPreferences | None = None,
        use_autocontext: bool = True,
        project_type: ProjectType | str = ProjectType.CODE,
        dry_run: bool = False,
    ) -> FormatResult:
        """Full format operation: load, gather, format, build and commit.

        Typed input is formatted incrementally: only lines not present in the
        last formatted text are sent. The new tasks are appended to the stored
        forest and the raw scratch text is cleared, both only after every
        earlier step succeeded.

        Raises:
            FormatOperationError: If no store is configured
            PipelineBusyError: If an operation is in flight for the project
            AgentError: If the formatting call fails or its reply is unparsable
            OrchestratorError: If the operation was cancelled or the build failed
            StorageError: If the forest cannot be loaded or saved
        """
        if self.store is None:
            raise FormatOperationError("A task store is required to run a format operation")
        operation = self._reserve(project_name)
        try:
            return await self._run_reserved(
                operation,
                project_name,
                raw_text,
                project_root,
                is_voice_input=is_voice_input,
                preferences=preferences,
                use_autocontext=use_autocontext,
                project_type=project_type,
                dry_run=dry_run,
            )
        finally:
            self._release(project_name, operation)

    async def _run_reserved(
        self,
        operation: _Operation,
        project_name: str,
        raw_text: str,
        project_root: str | Path,
        *,
        is_voice_input: bool,
        preferences: FormatPreferences | None,
        use_autocontext: bool,
        project_type: ProjectType | str,
        dry_run: bool,
    ) -> FormatResult:
        store = self.store

        notes = await store.load(project_name)
        if notes is None:
            notes = NotesFile(project_path=str(project_root))
        existing = list(notes.tasks)

        text_to_format = raw_text
        if not is_voice_input:
            lines = new_lines_since(raw_text, notes.last_formatted_raw)
            if not lines:
                logger.info("%s: %s", project_name, NO_NEW_CHANGES)
                return FormatResult(warnings=[NO_NEW_CHANGES])
            text_to_format = "\n".join(lines)

        try:
            completions = await store.get_recent_completions(project_name)
        except StorageError as exc:
            logger.warning("Completion history unavailable: %s", exc)
            completions = []

        state = make_initial_state(
            text_to_format,
            str(project_root),
            project_type=ProjectType(project_type),
            is_voice_input=is_voice_input,
            preferences=preferences,
            use_autocontext=use_autocontext,
            existing_tasks=existing,
            completions=completions,
            existing_task_context=existing_task_context(existing, text_to_format),
        )

        async def commit(result: FormatResult) -> None:
            updated = NotesFile(
                project_path=str(project_root),
                last_modified=time.time() * 1000,
                tasks=[*existing, *result.new_tasks],
                last_formatted_raw=raw_text,
            )
            await store.save(project_name, updated)
            await store.save_raw_text(project_name, "")

        return await self._execute(project_name, operation, state, None if dry_run else commit)

    def _reserve(self, key: str) -> _Operation:
        """Claim the operation slot for ``key`` before anything is awaited."""
        if key in self._operations:
            raise PipelineBusyError(f"A format operation is already running for {key}")
        tracker = StatusTracker(key, self._listeners, self.search_delay)
        operation = _Operation(task=asyncio.current_task(), tracker=tracker)
        self._operations[key] = operation
        return operation

    def _release(self, key: str, operation: _Operation) -> None:
        if self._operations.get(key) is operation:
            del self._operations[key]

    async def _execute(
        self, key: str, operation: _Operation, state: FormatState, commit=None
    ) -> FormatResult:
        tracker = operation.tracker
        try:
            graph = build_format_graph(self._strategy, self.formatter, self.builder, tracker)
            final = await graph.ainvoke(state)

            if final.get("failure") is not None:
                raise final["failure"]
            if final.get("errors"):
                raise FormatOperationError("; ".join(final["errors"]))

            build = final["build"]
            result = FormatResult(
                new_tasks=build.new_tasks,
                warnings=list(final.get("warnings", [])),
                gathered=final.get("gathered"),
                response=final.get("response"),
            )
            if commit is not None:
                await asyncio.shield(commit(result))
                result.committed = True
            tracker.transition(FormatStatus.IDLE)
            return result
        except asyncio.CancelledError:
            if not operation.cancel_requested:
                tracker.fail("Operation interrupted")
                raise
            operation.task.uncancel()
            tracker.fail("Operation cancelled")
            raise OperationCancelledError(f"Format operation for {key} was cancelled") from None
        except Exception as exc:
            logger.error("Format operation for %s failed: %s", key, exc)
            tracker.fail(str(exc))
            raise

"""Builds new task nodes from a formatting response."""

import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from project_stickies.agents.task_formatter import cited_keys
from project_stickies.context.mentions import mention_to_path
from project_stickies.context.merger import SYNTHETIC_MENTIONS_PATH
from project_stickies.models import (
    ContextFileRef,
    FormatResponse,
    GatheredContext,
    NodeKind,
    Priority,
    TaskDescriptor,
    TaskMetadata,
    TaskNode,
)
from project_stickies.tasks.references import ReferenceResolver
from project_stickies.tasks.tree import all_ids, generate_title_from_text

logger = logging.getLogger(__name__)

_PRIORITY_ALIASES = {
    "critical": Priority.HIGH,
    "urgent": Priority.HIGH,
    "high": Priority.HIGH,
    "medium": Priority.MEDIUM,
    "normal": Priority.MEDIUM,
    "low": Priority.LOW,
}


def normalize_priority(value: str | None) -> Priority | None:
    if not value:
        return None
    return _PRIORITY_ALIASES.get(value.strip().lower())


@dataclass
class BuildResult:
    new_tasks: list[TaskNode] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class TaskGraphBuilder:
    """Turns task descriptors into owned TaskNode trees with resolved references.

    Construction happens in two passes: every node (subtasks included) is
    created and given an id first, then ``depends_on``, ``related_to`` and
    ``blocked_by`` are resolved, so forward references inside the batch work.
    Existing tasks are read but never modified.
    """

    def __init__(self, id_factory: Callable[[], str] | None = None):
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))

    def build(
        self,
        response: FormatResponse,
        existing_tasks: Sequence[TaskNode],
        gathered: GatheredContext | None = None,
    ) -> BuildResult:
        """Construct the new batch.

        Args:
            response: Parsed formatting response
            existing_tasks: The current forest, used for slug and id lookups
            gathered: Context of this operation, recorded on top-level tasks

        Returns:
            BuildResult with the new top-level tasks and resolution warnings
        """
        used_ids = all_ids(existing_tasks)
        created: list[tuple[TaskNode, TaskDescriptor]] = []
        context_files = self._context_files(response, gathered)

        batch: list[TaskNode] = []
        for section in response.sections:
            section_priority = normalize_priority(section.priority)
            for descriptor in section.tasks:
                node = self._create_node(
                    descriptor, section.category, section_priority, response, used_ids, created
                )
                node.metadata.context_files = [ref.model_copy() for ref in context_files]
                batch.append(node)

        resolver = ReferenceResolver(batch, [node for node, _ in created], existing_tasks)
        warnings = list(response.warnings)
        for node, descriptor in created:
            metadata = node.metadata
            for field_name in ("depends_on", "related_to", "blocked_by"):
                resolution = resolver.resolve(getattr(descriptor, field_name), node.id)
                setattr(metadata, field_name, resolution.ids)
                for reference in resolution.unresolved:
                    message = (
                        f'Task "{node.text}": could not resolve {field_name} '
                        f'reference "{reference}"'
                    )
                    logger.warning(message)
                    warnings.append(message)

        logger.info("Built %d new task(s) with %d warning(s)", len(batch), len(warnings))
        return BuildResult(new_tasks=batch, warnings=warnings)

    def _new_id(self, used_ids: set[str]) -> str:
        task_id = self._id_factory()
        while task_id in used_ids:
            task_id = self._id_factory()
        used_ids.add(task_id)
        return task_id

    def _create_node(
        self,
        descriptor: TaskDescriptor,
        category: str,
        fallback_priority: Priority | None,
        response: FormatResponse,
        used_ids: set[str],
        created: list[tuple[TaskNode, TaskDescriptor]],
    ) -> TaskNode:
        priority = normalize_priority(descriptor.priority) or fallback_priority
        notes = list(descriptor.notes)
        if descriptor.needs:
            notes.append(f"Needs: {', '.join(descriptor.needs)}")
        tags = list(dict.fromkeys(descriptor.tags))
        if category and category.lower() not in tags:
            tags.append(category.lower())

        keys = cited_keys(descriptor.text, *descriptor.notes)
        citations = {key: response.citations[key] for key in keys if key in response.citations}

        node = TaskNode(
            id=self._new_id(used_ids),
            text=descriptor.text,
            kind=NodeKind.SUBTASK_BEARING if descriptor.subtasks else NodeKind.HIERARCHICAL,
            metadata=TaskMetadata(
                priority=priority,
                original_priority=priority,
                notes=notes,
                deadline=descriptor.deadline,
                effort_estimate=descriptor.effort_estimate,
                tags=tags,
                title=descriptor.title or generate_title_from_text(descriptor.text),
                formatted=True,
                citations=citations,
            ),
        )
        created.append((node, descriptor))
        node.subtasks = [
            self._create_node(sub, "", priority, response, used_ids, created)
            for sub in descriptor.subtasks
        ]
        return node

    @staticmethod
    def _context_files(
        response: FormatResponse, gathered: GatheredContext | None
    ) -> list[ContextFileRef]:
        if gathered is None:
            return []
        used = {mention_to_path(usage.file) for usage in response.context_used}
        refs = []
        for entry in gathered.files:
            if entry.path == SYNTHETIC_MENTIONS_PATH or entry.error:
                continue
            if used and entry.path not in used:
                continue
            refs.append(
                ContextFileRef(
                    path=entry.path,
                    was_grepped=entry.was_grepped,
                    matched_keywords=list(entry.matched_keywords),
                )
            )
        return refs

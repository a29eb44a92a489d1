"""Resolution of batch-index and slug references to task ids."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from project_stickies.models import ByIndex, BySlug, TaskNode
from project_stickies.tasks.tree import flatten_tasks, task_title

logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    ids: list[str] = field(default_factory=list)
    unresolved: list[ByIndex | BySlug] = field(default_factory=list)


class ReferenceResolver:
    """Maps references from one formatting response onto task ids.

    Positional references address ``batch``, the top-level tasks of the
    response in document order. Slugs are looked up in the new tasks first
    and then in the existing forest; within either scope the task that comes
    later in forest order (the more recently created one) wins. A slug that
    matches no title is finally tried as an exact task id.
    """

    def __init__(
        self,
        batch: Sequence[TaskNode],
        new_tasks: Sequence[TaskNode],
        existing_tasks: Sequence[TaskNode],
    ):
        """Initialize the resolver.

        Args:
            batch: Top-level new tasks, the scope of positional references
            new_tasks: Every new task, subtasks included, in creation order
            existing_tasks: The pre-existing forest (never modified)
        """
        self.batch = list(batch)
        flat_existing = flatten_tasks(existing_tasks)

        self._existing_slugs: dict[str, str] = {}
        for task in flat_existing:
            self._existing_slugs[task_title(task)] = task.id
        self._new_slugs: dict[str, str] = {}
        for task in new_tasks:
            self._new_slugs[task_title(task)] = task.id

        self._known_ids = {task.id for task in flat_existing} | {task.id for task in new_tasks}

    def resolve_one(self, reference: ByIndex | BySlug) -> str | None:
        if isinstance(reference, ByIndex):
            if 0 <= reference.index < len(self.batch):
                return self.batch[reference.index].id
            return None

        slug = reference.slug
        if slug in self._new_slugs:
            return self._new_slugs[slug]
        if slug in self._existing_slugs:
            return self._existing_slugs[slug]
        if slug in self._known_ids:
            return slug
        return None

    def resolve(self, references: Sequence[ByIndex | BySlug], owner_id: str) -> Resolution:
        """Resolve ``references`` declared by the task ``owner_id``.

        Self references are dropped silently; duplicates collapse to the
        first occurrence.
        """
        resolution = Resolution()
        seen: set[str] = set()
        for reference in references:
            task_id = self.resolve_one(reference)
            if task_id is None:
                resolution.unresolved.append(reference)
                continue
            if task_id == owner_id:
                logger.debug("Dropping self reference %s on task %s", reference, owner_id)
                continue
            if task_id not in seen:
                seen.add(task_id)
                resolution.ids.append(task_id)
        return resolution

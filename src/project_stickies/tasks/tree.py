"""Traversal and lookup helpers for the task forest."""

import re
from collections.abc import Iterable, Iterator

from project_stickies.models import NodeKind, TaskNode

_NON_WORD = re.compile(r"[^\w\s]")
MAX_TITLE_LENGTH = 50
TITLE_WORDS = 4


def descendants_of(node: TaskNode) -> list[TaskNode]:
    """Direct descendants of ``node`` according to its kind.

    A subtask-bearing node never exposes its ``children``.
    """
    if node.kind == NodeKind.SUBTASK_BEARING:
        return node.subtasks
    return node.children


def iter_tasks(tasks: Iterable[TaskNode]) -> Iterator[TaskNode]:
    """Depth-first, pre-order walk over a forest."""
    for task in tasks:
        yield task
        yield from iter_tasks(descendants_of(task))


def flatten_tasks(tasks: Iterable[TaskNode]) -> list[TaskNode]:
    return list(iter_tasks(tasks))


def all_ids(tasks: Iterable[TaskNode]) -> set[str]:
    return {task.id for task in iter_tasks(tasks)}


def find_task(tasks: Iterable[TaskNode], task_id: str) -> TaskNode | None:
    for task in iter_tasks(tasks):
        if task.id == task_id:
            return task
    return None


def generate_title_from_text(text: str) -> str:
    """Derive a kebab-case slug from task text.

    Lowercases, strips punctuation, keeps the first four words longer than
    two characters and caps the result at 50 characters.
    """
    words = [word for word in _NON_WORD.sub("", text.lower()).split() if len(word) > 2]
    return "-".join(words[:TITLE_WORDS])[:MAX_TITLE_LENGTH]


def task_title(task: TaskNode) -> str:
    """The task's stored slug, or one generated from its text."""
    return task.title or generate_title_from_text(task.text)


def is_blocked(task: TaskNode, forest: Iterable[TaskNode]) -> bool:
    """Whether any dependency of ``task`` is still open.

    ``depends_on`` and legacy ``blocked_by`` are treated as one set.
    Dependencies that no longer exist do not block.
    """
    dependency_ids = set(task.dependency_ids)
    if not dependency_ids:
        return False
    return any(
        not other.checked for other in iter_tasks(forest) if other.id in dependency_ids
    )

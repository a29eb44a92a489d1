"""Selection and compression of existing tasks handed to the formatting model."""

import json
import re
import time
from collections.abc import Sequence
from typing import Any

from project_stickies.models import Priority, TaskNode
from project_stickies.tasks.tree import flatten_tasks, task_title

MAX_KEYWORDS = 20
MAX_CONTEXT_TASKS = 50
RECENT_DAYS = 7

UNCHECKED_SCORE = 100
RECENTLY_COMPLETED_SCORE = 50
HIGH_PRIORITY_SCORE = 30
HAS_RELATIONS_SCORE = 20
KEYWORD_MATCH_SCORE = 40

TASK_CONTEXT_HEADER = "\nExisting tasks (for dependency references):\n"

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "as", "is", "was", "are", "were", "be",
        "been", "being", "have", "has", "had", "do", "does", "did", "will",
        "would", "should", "could", "may", "might", "must", "can", "need",
    }
)

_PUNCTUATION = re.compile(r"[^\w\s]")


def extract_keywords(text: str) -> list[str]:
    """Up to 20 lowercase words longer than two characters, stop words removed."""
    words = _PUNCTUATION.sub(" ", text.lower()).split()
    return [word for word in words if len(word) > 2 and word not in STOP_WORDS][:MAX_KEYWORDS]


def has_keyword_match(task: TaskNode, keywords: Sequence[str]) -> bool:
    if not keywords:
        return False
    parts = [task.text.lower()]
    if task.metadata:
        parts.append(" ".join(task.metadata.notes).lower())
        parts.append(" ".join(task.metadata.tags).lower())
    haystack = " ".join(parts)
    return any(keyword in haystack for keyword in keywords)


def is_recently_completed(task: TaskNode, days: int = RECENT_DAYS, now_ms: float | None = None) -> bool:
    metadata = task.metadata
    if not task.checked or metadata is None or not metadata.duration:
        return False
    if metadata.start_time is None:
        return False
    now_ms = time.time() * 1000 if now_ms is None else now_ms
    completed_at = metadata.start_time + metadata.duration
    return completed_at > now_ms - days * 24 * 60 * 60 * 1000


def is_high_priority(task: TaskNode) -> bool:
    return task.metadata is not None and task.metadata.priority == Priority.HIGH


def has_relations(task: TaskNode) -> bool:
    metadata = task.metadata
    if metadata is None:
        return False
    return bool(metadata.depends_on or metadata.blocked_by or metadata.related_to)


def score_task(task: TaskNode, keywords: Sequence[str], now_ms: float | None = None) -> int:
    score = 0
    if not task.checked:
        score += UNCHECKED_SCORE
    if is_recently_completed(task, now_ms=now_ms):
        score += RECENTLY_COMPLETED_SCORE
    if is_high_priority(task):
        score += HIGH_PRIORITY_SCORE
    if has_relations(task):
        score += HAS_RELATIONS_SCORE
    if has_keyword_match(task, keywords):
        score += KEYWORD_MATCH_SCORE
    return score


def filter_relevant_tasks(
    tasks: Sequence[TaskNode],
    keywords: Sequence[str],
    max_tasks: int = MAX_CONTEXT_TASKS,
    now_ms: float | None = None,
) -> list[TaskNode]:
    """Highest-scoring tasks of the flattened forest.

    Ties keep forest order.
    """
    flat = flatten_tasks(tasks)
    scored = sorted(
        enumerate(flat),
        key=lambda item: (-score_task(item[1], keywords, now_ms), item[0]),
    )
    return [task for _, task in scored[:max_tasks]]


def compress_task(task: TaskNode, full: bool) -> dict[str, Any]:
    """Minimal (id and title) or full representation of a task."""
    compressed: dict[str, Any] = {"id": task.id, "title": task_title(task)}
    if not full:
        return compressed
    metadata = task.metadata
    compressed["text"] = task.text
    if metadata and metadata.priority:
        compressed["priority"] = metadata.priority.value
    compressed["checked"] = task.checked
    if metadata and metadata.depends_on:
        compressed["depends_on"] = list(metadata.depends_on)
    if metadata and metadata.related_to:
        compressed["related_to"] = list(metadata.related_to)
    return compressed


def build_task_context(tasks: Sequence[TaskNode]) -> str:
    """Serialize tasks for the prompt; open or high-priority tasks in full."""
    if not tasks:
        return ""
    compressed = [
        compress_task(task, full=not task.checked or is_high_priority(task)) for task in tasks
    ]
    return TASK_CONTEXT_HEADER + json.dumps(compressed, indent=2)


def existing_task_context(existing_tasks: Sequence[TaskNode], raw_text: str) -> str:
    """Relevant existing tasks for ``raw_text``, ready for the prompt."""
    return build_task_context(filter_relevant_tasks(existing_tasks, extract_keywords(raw_text)))

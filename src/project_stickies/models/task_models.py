"""Task-related models for project stickies."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Priority(str, Enum):
    """User-facing priority of a task."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class NodeKind(str, Enum):
    """How a node nests its descendants.

    HIERARCHICAL nodes use ``children`` (flat indentation-based nesting).
    SUBTASK_BEARING nodes use ``subtasks`` (model-generated breakdowns);
    their ``children`` are never traversed.
    """

    HIERARCHICAL = "hierarchical"
    SUBTASK_BEARING = "subtasks"


class ContextFileRef(BaseModel):
    """A project file that informed the creation of a task."""

    model_config = ConfigDict(frozen=False, populate_by_name=True)

    path: str
    was_grepped: bool = Field(default=False, alias="wasGrepped")
    matched_keywords: list[str] = Field(default_factory=list, alias="matchedKeywords")


class Citation(BaseModel):
    """A web source backing a claim in a task's text or notes."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str = ""


class TaskMetadata(BaseModel):
    """Optional metadata attached to a task."""

    model_config = ConfigDict(frozen=False)

    priority: Priority | None = None
    original_priority: Priority | None = None  # model's suggestion, kept for learning
    priority_edited: bool = False
    depends_on: list[str] = Field(default_factory=list)  # resolved task ids
    related_to: list[str] = Field(default_factory=list)  # resolved task ids
    blocked_by: list[str] = Field(default_factory=list)  # legacy alias of depends_on
    notes: list[str] = Field(default_factory=list)
    deadline: str | None = None
    effort_estimate: str | None = None
    tags: list[str] = Field(default_factory=list)
    title: str | None = None
    formatted: bool = False
    context_files: list[ContextFileRef] = Field(default_factory=list)
    citations: dict[str, Citation] = Field(default_factory=dict)
    start_time: float | None = None  # unix ms; active if set and duration is None
    duration: float | None = None  # elapsed ms; presence means completed


class TaskNode(BaseModel):
    """A node in the task forest."""

    model_config = ConfigDict(frozen=False)

    id: str
    text: str
    checked: bool = False
    indent: int = 0
    kind: NodeKind = NodeKind.HIERARCHICAL
    children: list["TaskNode"] = Field(default_factory=list)
    subtasks: list["TaskNode"] = Field(default_factory=list)
    metadata: TaskMetadata | None = None

    @model_validator(mode="before")
    @classmethod
    def _infer_kind(cls, data: Any) -> Any:
        # Persisted forests predate the explicit tag; infer it from the payload.
        if isinstance(data, dict) and "kind" not in data:
            kind = NodeKind.SUBTASK_BEARING if data.get("subtasks") else NodeKind.HIERARCHICAL
            data = {**data, "kind": kind}
        return data

    @property
    def title(self) -> str | None:
        return self.metadata.title if self.metadata else None

    @property
    def dependency_ids(self) -> list[str]:
        """Union of ``depends_on`` and legacy ``blocked_by`` ids, in order."""
        if self.metadata is None:
            return []
        return list(dict.fromkeys([*self.metadata.depends_on, *self.metadata.blocked_by]))

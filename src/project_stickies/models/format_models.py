"""Models for the structured formatting response and its inputs."""

import re
import time
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from project_stickies.models.task_models import Citation, TaskNode

_INTEGER_PATTERN = re.compile(r"-?(0|[1-9]\d*)")


class ProjectType(str, Enum):
    """Category of a project; drives context gathering and prompt wording."""

    CODE = "code"
    LIFE_ADMIN = "life_admin"


PROJECT_CATEGORIES: dict[ProjectType, list[str]] = {
    ProjectType.CODE: ["FEATURE", "BUG", "REFACTOR", "ADMIN", "DOCS", "PERFORMANCE"],
    ProjectType.LIFE_ADMIN: ["FINANCE", "HEALTH", "HOUSEHOLD", "LEGAL", "PERSONAL", "ERRANDS"],
}


def categories_for(project_type: ProjectType | str) -> list[str]:
    """Section categories offered to the model for a project type."""
    return list(PROJECT_CATEGORIES[ProjectType(project_type)])


class ByIndex(BaseModel):
    """Reference to a task of the current batch by zero-based position."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["index"] = "index"
    index: int

    def __str__(self) -> str:
        return str(self.index)


class BySlug(BaseModel):
    """Reference to a task by title slug (or, failing that, by id)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["slug"] = "slug"
    slug: str

    def __str__(self) -> str:
        return self.slug


TaskReference = Annotated[Union[ByIndex, BySlug], Field(discriminator="kind")]


def parse_reference(raw: Any) -> ByIndex | BySlug | None:
    """Classify one raw reference value from the model output.

    Integers and canonical integer strings ("0", "12") address the batch by
    position; any other non-empty string is a slug. Values of other types
    carry no usable reference and yield None.
    """
    if isinstance(raw, (ByIndex, BySlug)):
        return raw
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return ByIndex(index=raw)
    if isinstance(raw, float) and raw.is_integer():
        return ByIndex(index=int(raw))
    if isinstance(raw, str):
        value = raw.strip()
        if not value:
            return None
        if _INTEGER_PATTERN.fullmatch(value):
            return ByIndex(index=int(value))
        return BySlug(slug=value)
    return None


def _parse_references(value: Any) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        value = [value]
    parsed = []
    for raw in value:
        ref = parse_reference(raw)
        if ref is not None:
            parsed.append(ref.model_dump())
    return parsed


def _as_string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (int, float)):
        return [str(value)]
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"expected a string or a list of strings, got {type(value).__name__}")
    return [str(item) for item in value if item is not None and str(item).strip()]


class TaskDescriptor(BaseModel):
    """A task as described by the formatting model, before graph construction."""

    model_config = ConfigDict(frozen=False, extra="ignore")

    text: str
    title: str | None = None
    priority: str | None = None
    notes: list[str] = Field(default_factory=list)
    depends_on: list[TaskReference] = Field(default_factory=list)
    related_to: list[TaskReference] = Field(default_factory=list)
    blocked_by: list[TaskReference] = Field(default_factory=list)
    needs: list[str] = Field(default_factory=list)
    deadline: str | None = None
    effort_estimate: str | None = None
    tags: list[str] = Field(default_factory=list)
    subtasks: list["TaskDescriptor"] = Field(default_factory=list)

    @field_validator("depends_on", "related_to", "blocked_by", mode="before")
    @classmethod
    def _references(cls, value: Any) -> list[dict[str, Any]]:
        return _parse_references(value)

    @field_validator("notes", "needs", "tags", mode="before")
    @classmethod
    def _string_lists(cls, value: Any) -> list[str]:
        return _as_string_list(value)

    @field_validator("deadline", "effort_estimate", "title", "priority", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> str | None:
        if value is None:
            return None
        value = str(value).strip()
        return value or None


class FormatSection(BaseModel):
    """A category of tasks in the formatting response."""

    model_config = ConfigDict(frozen=False, extra="ignore")

    category: str = ""
    priority: str = ""
    tasks: list[TaskDescriptor] = Field(default_factory=list)


class ContextUsage(BaseModel):
    """Why the model used a given context file."""

    model_config = ConfigDict(frozen=False, extra="ignore")

    file: str
    reason: str = ""


class FormatResponse(BaseModel):
    """Structured reply of the formatting model."""

    model_config = ConfigDict(frozen=False, extra="ignore")

    sections: list[FormatSection] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    context_used: list[ContextUsage] = Field(default_factory=list)
    citations: dict[str, Citation] = Field(default_factory=dict)

    @field_validator("warnings", mode="before")
    @classmethod
    def _warnings(cls, value: Any) -> list[str]:
        return _as_string_list(value)

    def top_level_tasks(self) -> list[TaskDescriptor]:
        """Tasks of every section in document order (the addressing batch)."""
        return [task for section in self.sections for task in section.tasks]


class FormatPreferences(BaseModel):
    """User preferences that shape the formatting prompt."""

    model_config = ConfigDict(frozen=True)

    analysis_style: Literal["concise", "balanced", "detailed"] = "balanced"
    suggest_solutions: bool = True
    auto_detect_missing_tasks: bool = True
    enable_web_search: bool = False


class CompletionLogEntry(BaseModel):
    """Timing record of a completed task, used to calibrate estimates."""

    model_config = ConfigDict(frozen=False)

    task_id: str
    text: str
    estimated_time: str | None = None
    actual_time: float  # milliseconds
    completed_at: float  # unix ms


class CompletionLog(BaseModel):
    """Persisted completion records of one project, newest last."""

    model_config = ConfigDict(frozen=False)

    version: str = "1.0"
    retention_policy: str = "last_100"
    completions: list[CompletionLogEntry] = Field(default_factory=list)


class NotesFile(BaseModel):
    """Persisted task forest of one project."""

    model_config = ConfigDict(frozen=False)

    version: str = "1.0"
    project_path: str = ""
    last_modified: float = Field(default_factory=lambda: time.time() * 1000)
    tasks: list[TaskNode] = Field(default_factory=list)
    last_formatted_raw: str = ""

"""Per-project-type context strategies."""

from abc import ABC, abstractmethod
from pathlib import Path

from project_stickies.context.merger import ContextMerger
from project_stickies.models import PROJECT_CATEGORIES, GatheredContext, ProjectType


class ContextStrategy(ABC):
    """Decides how context is gathered and which categories the prompt offers."""

    project_type: ProjectType
    categories: list[str]
    shows_file_tree: bool

    @abstractmethod
    async def gather_context(
        self, raw_text: str, project_root: str | Path, auto_discover: bool = True
    ) -> GatheredContext:
        """Gather the context for one format operation."""


class CodeContextStrategy(ContextStrategy):
    """Software projects: explicit mentions plus auto-discovered files."""

    project_type = ProjectType.CODE
    categories = PROJECT_CATEGORIES[ProjectType.CODE]
    shows_file_tree = True

    def __init__(self, merger: ContextMerger):
        self.merger = merger

    async def gather_context(
        self, raw_text: str, project_root: str | Path, auto_discover: bool = True
    ) -> GatheredContext:
        return await self.merger.gather_project_context(raw_text, project_root, auto_discover)


class LifeAdminContextStrategy(ContextStrategy):
    """Personal projects carry no file context."""

    project_type = ProjectType.LIFE_ADMIN
    categories = PROJECT_CATEGORIES[ProjectType.LIFE_ADMIN]
    shows_file_tree = False

    async def gather_context(
        self, raw_text: str, project_root: str | Path, auto_discover: bool = True
    ) -> GatheredContext:
        return GatheredContext.empty()


def get_context_strategy(project_type: ProjectType | str, merger: ContextMerger) -> ContextStrategy:
    """Return the strategy for ``project_type``.

    Raises:
        ValueError: If the project type is unknown
    """
    project_type = ProjectType(project_type)
    if project_type == ProjectType.CODE:
        return CodeContextStrategy(merger)
    return LifeAdminContextStrategy()

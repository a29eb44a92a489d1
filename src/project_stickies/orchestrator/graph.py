"""LangGraph wiring of one format operation.

gather_node collects project context, analyze_node issues the primary model
call and build_node turns the response into new task nodes. Nodes record a
failure in state instead of raising; routing then ends the graph early.
"""

import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from langgraph.graph import END, START, StateGraph

from project_stickies.agents import AgentError, TaskFormatter
from project_stickies.context import ContextStrategy, format_gathered_context
from project_stickies.models import ProjectType
from project_stickies.orchestrator.exceptions import GraphBuildError
from project_stickies.orchestrator.state import FormatState
from project_stickies.orchestrator.status import FormatStatus, StatusTracker
from project_stickies.tasks import TaskGraphBuilder

logger = logging.getLogger(__name__)

NodeFn = Callable[[FormatState], Awaitable[dict]]


def make_gather_node(
    strategies: Callable[[ProjectType], ContextStrategy], tracker: StatusTracker
) -> NodeFn:
    """Factory: returns a node closure that gathers project context.

    Context gathering is advisory: an unexpected failure yields an empty
    context string and a warning, never an error.
    """

    async def gather_node(state: FormatState) -> dict:
        tracker.transition(FormatStatus.GATHERING)
        strategy = strategies(state["project_type"])
        try:
            gathered = await strategy.gather_context(
                state["raw_text"], Path(state["project_root"]), state["use_autocontext"]
            )
        except Exception as exc:
            logger.warning("Context gathering failed: %s", exc)
            return {
                "gathered": None,
                "context_string": "",
                "warnings": [f"Context gathering failed: {exc}"],
            }
        logger.info(
            "Gathered %d file(s), %d line(s) of context",
            len(gathered.files),
            gathered.total_lines,
        )
        return {"gathered": gathered, "context_string": format_gathered_context(gathered)}

    return gather_node


def make_analyze_node(formatter: TaskFormatter, tracker: StatusTracker) -> NodeFn:
    """Factory: returns a node closure that runs the formatting model call.

    On AgentError: returns {"errors": [str], "failure": exc}
    """

    async def analyze_node(state: FormatState) -> dict:
        tracker.transition(FormatStatus.ANALYZING)
        preferences = state["preferences"]
        if preferences.enable_web_search:
            tracker.start_search_timer()
        try:
            response = await formatter.format_tasks(
                state["raw_text"],
                state.get("context_string") or "",
                is_voice_input=state["is_voice_input"],
                preferences=preferences,
                project_type=state["project_type"],
                completions=state["completions"],
                existing_task_context=state["existing_task_context"],
            )
        except AgentError as exc:
            return {"errors": [f"analyze_node error: {exc}"], "failure": exc}
        finally:
            tracker.cancel_search_timer()
        return {"response": response}

    return analyze_node


def make_build_node(builder: TaskGraphBuilder, tracker: StatusTracker) -> NodeFn:
    """Factory: returns a node closure that builds the new task batch.

    Once this node starts the operation is no longer cancellable.
    """

    async def build_node(state: FormatState) -> dict:
        tracker.transition(FormatStatus.FORMATTING)
        try:
            result = builder.build(
                state["response"], state["existing_tasks"], state.get("gathered")
            )
        except Exception as exc:
            error = GraphBuildError(f"Failed to build task graph: {exc}")
            error.__cause__ = exc
            return {"errors": [f"build_node error: {exc}"], "failure": error}
        return {"build": result, "warnings": result.warnings}

    return build_node


def route_start(state: FormatState) -> str:
    return "analyze" if state.get("context_string") is not None else "gather"


def route_on_errors(state: FormatState) -> str:
    return "error" if state.get("errors") else "continue"


def build_format_graph(
    strategies: Callable[[ProjectType], ContextStrategy],
    formatter: TaskFormatter,
    builder: TaskGraphBuilder,
    tracker: StatusTracker,
):
    """Build and compile the format-operation StateGraph.

    Edge topology:
      START -> conditional(route_start) -> {gather_node, analyze_node}
      gather_node -> analyze_node
      analyze_node -> conditional(route_on_errors) -> {build_node, END}
      build_node -> END

    Args:
        strategies: Returns the context strategy for a project type
        formatter: Task formatting agent
        builder: Task graph builder
        tracker: Status tracker of this operation

    Returns:
        CompiledStateGraph ready to invoke.

    Raises:
        GraphBuildError: If graph construction fails.
    """
    try:
        graph = StateGraph(FormatState)

        graph.add_node("gather_node", make_gather_node(strategies, tracker))
        graph.add_node("analyze_node", make_analyze_node(formatter, tracker))
        graph.add_node("build_node", make_build_node(builder, tracker))

        graph.add_conditional_edges(
            START,
            route_start,
            {"gather": "gather_node", "analyze": "analyze_node"},
        )
        graph.add_edge("gather_node", "analyze_node")
        graph.add_conditional_edges(
            "analyze_node",
            route_on_errors,
            {"continue": "build_node", "error": END},
        )
        graph.add_edge("build_node", END)

        return graph.compile()
    except Exception as exc:
        raise GraphBuildError(f"Failed to build format graph: {exc}") from exc

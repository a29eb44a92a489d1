"""Task formatting agent: turns raw notes into a structured task response."""

import logging
import re
from collections.abc import Sequence

from pydantic import ValidationError

from project_stickies.agents.exceptions import FormattingError, ResponseParseError
from project_stickies.llm import LLMClient, ModelReply, Operation, ProviderError
from project_stickies.models import (
    Citation,
    CompletionLogEntry,
    FormatPreferences,
    FormatResponse,
    ProjectType,
    categories_for,
)
from project_stickies.utils.json_extract import JSONExtractionError, parse_json_object
from project_stickies.utils.text import snippet

logger = logging.getLogger(__name__)

FORMAT_MAX_TOKENS = 8192
CALIBRATION_WINDOW = 10
PAYLOAD_SNIPPET_CHARS = 200

CITE_TAG_PATTERN = re.compile(r'[(<]cite index="([^"]+)">')

_STYLE_INSTRUCTIONS = {
    "concise": "Keep notes short: at most one note per task, no elaboration.",
    "balanced": "Add notes where they help: the key file, the likely cause or the next step.",
    "detailed": (
        "Give thorough notes: relevant files and functions, edge cases, and a suggested "
        "order of work for each task."
    ),
}

_SCHEMA = """{
  "sections": [{
    "category": string,
    "priority": "high" | "medium" | "low",
    "tasks": [{
      "text": string,
      "title": string,
      "priority": "high" | "medium" | "low",
      "notes": string[],
      "depends_on": (number | string)[],
      "related_to": (number | string)[],
      "deadline": string,
      "effort_estimate": string,
      "tags": string[],
      "subtasks": [ ...same shape as a task... ]
    }]
  }],
  "warnings": string[],
  "context_used": [{"file": string, "reason": string}]
}"""


def format_duration(milliseconds: float) -> str:
    minutes = round(milliseconds / 60000)
    if minutes < 60:
        return f"{minutes}m"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m" if minutes else f"{hours}h"


def build_calibration_block(completions: Sequence[CompletionLogEntry] | None) -> str:
    """Few-shot block of recent estimated vs. actual task durations."""
    if not completions:
        return ""
    recent = sorted(completions, key=lambda entry: entry.completed_at, reverse=True)
    lines = [
        f'- "{entry.text}": estimated {entry.estimated_time or "none"}, '
        f"actual {format_duration(entry.actual_time)}"
        for entry in recent[:CALIBRATION_WINDOW]
    ]
    return (
        "\n\nRecent completed tasks (estimated vs. actual time). "
        "Calibrate effort_estimate values against this history:\n" + "\n".join(lines)
    )


def build_system_prompt(
    preferences: FormatPreferences,
    project_type: ProjectType | str = ProjectType.CODE,
    completions: Sequence[CompletionLogEntry] | None = None,
) -> str:
    """Assemble the system prompt for one formatting call.

    Args:
        preferences: Style and behavior toggles
        project_type: Selects the category vocabulary and the assistant's framing
        completions: Completion records used for effort calibration

    Returns:
        The system prompt text
    """
    project_type = ProjectType(project_type)
    if project_type == ProjectType.LIFE_ADMIN:
        role = "You are a task analysis assistant for personal life administration."
        source = "raw bullet-point notes"
    else:
        role = "You are a task analysis assistant for software developers."
        source = "raw bullet-point tasks and code context"

    steps = [
        f"Parse the tasks into sections using these categories: {', '.join(categories_for(project_type))}",
        "Give every task a short kebab-case \"title\" slug that is unique in your reply",
        "Identify dependencies: \"depends_on\" and \"related_to\" hold either the zero-based "
        "index of a task in this reply (counting top-level tasks across all sections in order) "
        "or the title slug of a task in this reply or in the existing tasks",
        "Break large tasks into \"subtasks\" where it helps",
    ]
    if preferences.auto_detect_missing_tasks:
        steps.append("Detect tasks that are missing but implied by the notes or the context")
    if preferences.suggest_solutions:
        steps.append("Suggest a concrete approach in the notes of each task")
    if preferences.enable_web_search:
        steps.append("Use web search when current external information would change a task")
    numbered = "\n".join(f"{i}. {step}" for i, step in enumerate(steps, 1))

    prompt = (
        f"{role}\n\nGiven {source}, you should:\n{numbered}\n\n"
        f"{_STYLE_INSTRUCTIONS[preferences.analysis_style]}\n\n"
        f"Output JSON matching this schema:\n{_SCHEMA}\n\n"
        "DO NOT include any text outside the JSON. Validate output is parseable."
    )
    return prompt + build_calibration_block(completions)


def build_user_prompt(
    raw_text: str,
    context_string: str,
    is_voice_input: bool = False,
    existing_task_context: str = "",
) -> str:
    parts = []
    if is_voice_input:
        parts.append(
            "The following notes were transcribed from speech. Ignore filler words and "
            "self-corrections, and infer task boundaries from the spoken flow."
        )
    parts.append(f"Raw tasks:\n{raw_text}")
    if context_string.strip():
        parts.append(f"Context:\n{context_string}")
    if existing_task_context.strip():
        parts.append(existing_task_context.strip())
    parts.append("Analyze and structure these tasks.")
    return "\n\n".join(parts)


def extract_citations(reply: ModelReply) -> dict[str, Citation]:
    """Key every citation as ``{contentBlockIndex}-{citationIndex}``."""
    citations: dict[str, Citation] = {}
    for block in reply.text_blocks():
        for position, citation in enumerate(block.citations):
            citations[f"{block.index}-{position}"] = Citation(url=citation.url, title=citation.title)
    return citations


def cited_keys(*texts: str) -> list[str]:
    """Citation keys referenced by cite tags, in order of first appearance."""
    keys: dict[str, None] = {}
    for text in texts:
        for key in CITE_TAG_PATTERN.findall(text or ""):
            keys.setdefault(key)
    return list(keys)


def parse_format_response(text: str | None) -> FormatResponse:
    """Parse the structured payload of the formatting reply.

    Raises:
        ResponseParseError: If no valid JSON object of the expected shape is found
    """
    if not text:
        raise ResponseParseError("Formatting reply contained no text block")
    try:
        payload = parse_json_object(text)
    except JSONExtractionError as exc:
        raise ResponseParseError(
            f"{exc}; payload: {snippet(exc.payload, PAYLOAD_SNIPPET_CHARS)}"
        ) from exc
    try:
        return FormatResponse.model_validate(payload)
    except ValidationError as exc:
        raise ResponseParseError(
            f"Response JSON does not match the task schema: {exc.error_count()} error(s); "
            f"payload: {snippet(text, PAYLOAD_SNIPPET_CHARS)}"
        ) from exc


class TaskFormatter:
    """Issues the primary formatting call and parses its structured reply."""

    def __init__(self, client: LLMClient, max_tokens: int = FORMAT_MAX_TOKENS):
        self.client = client
        self.max_tokens = max_tokens

    async def format_tasks(
        self,
        raw_text: str,
        context_string: str = "",
        is_voice_input: bool = False,
        preferences: FormatPreferences | None = None,
        project_type: ProjectType | str = ProjectType.CODE,
        completions: Sequence[CompletionLogEntry] | None = None,
        existing_task_context: str = "",
    ) -> FormatResponse:
        """Format raw notes into sections of task descriptors.

        Args:
            raw_text: The user's raw task notes
            context_string: Rendered project context
            is_voice_input: Whether the notes were transcribed from speech
            preferences: Style and behavior toggles
            project_type: Code or life-admin project
            completions: Completion records for effort calibration
            existing_task_context: Serialized existing tasks the reply may reference

        Returns:
            Parsed FormatResponse with citations attached

        Raises:
            FormattingError: If the model call fails
            ResponseParseError: If the reply cannot be parsed
        """
        preferences = preferences or FormatPreferences()
        try:
            reply = await self.client.create_message(
                operation=Operation.GENERATION,
                system=build_system_prompt(preferences, project_type, completions),
                prompt=build_user_prompt(
                    raw_text, context_string, is_voice_input, existing_task_context
                ),
                max_tokens=self.max_tokens,
                web_search=preferences.enable_web_search,
            )
        except ProviderError as exc:
            raise FormattingError(f"Failed to format tasks: {exc}") from exc

        if reply.stop_reason == "max_tokens":
            logger.warning("Formatting reply hit the token limit; JSON may be incomplete")

        response = parse_format_response(reply.last_text())
        response.citations = extract_citations(reply)
        logger.info(
            "Formatted %d section(s), %d top-level task(s)",
            len(response.sections),
            len(response.top_level_tasks()),
        )
        return response

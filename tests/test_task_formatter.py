"""Unit tests for the task formatting agent and its prompt helpers."""

import json

import pytest

from project_stickies.agents import FormattingError, ResponseParseError, TaskFormatter
from project_stickies.agents.task_formatter import (
    CALIBRATION_WINDOW,
    build_calibration_block,
    build_system_prompt,
    build_user_prompt,
    cited_keys,
    extract_citations,
    format_duration,
    parse_format_response,
)
from project_stickies.llm import Operation, ProviderError, ReplyCitation
from project_stickies.models import CompletionLogEntry, FormatPreferences, ProjectType

from conftest import make_reply

SAMPLE_RESPONSE = {
    "sections": [
        {
            "category": "BUG",
            "priority": "high",
            "tasks": [
                {
                    "text": "Fix auth bug",
                    "title": "fix-auth-bug",
                    "notes": ['Token check is wrong <cite index="2-0">see docs</cite>'],
                    "depends_on": [],
                }
            ],
        }
    ],
    "warnings": [],
    "context_used": [{"file": "src/auth.ts", "reason": "mentioned"}],
}


def make_completion(i: int, estimated: str | None = "30m") -> CompletionLogEntry:
    return CompletionLogEntry(
        task_id=f"t{i}",
        text=f"Task {i}",
        estimated_time=estimated,
        actual_time=45 * 60000,
        completed_at=1_000_000 + i,
    )


class TestPromptHelpers:
    def test_format_duration(self):
        assert format_duration(45 * 60000) == "45m"
        assert format_duration(90 * 60000) == "1h 30m"
        assert format_duration(120 * 60000) == "2h"

    def test_calibration_block_newest_first_and_windowed(self):
        block = build_calibration_block([make_completion(i) for i in range(15)])
        lines = [line for line in block.splitlines() if line.startswith("- ")]
        assert len(lines) == CALIBRATION_WINDOW
        assert lines[0].startswith('- "Task 14"')
        assert "estimated 30m, actual 45m" in lines[0]

    def test_calibration_block_empty(self):
        assert build_calibration_block([]) == ""
        assert build_calibration_block(None) == ""

    def test_system_prompt_code_categories(self):
        prompt = build_system_prompt(FormatPreferences(), ProjectType.CODE)
        assert "software developers" in prompt
        assert "FEATURE, BUG, REFACTOR" in prompt
        assert "Detect tasks that are missing" in prompt

    def test_system_prompt_life_admin(self):
        prompt = build_system_prompt(FormatPreferences(), "life_admin")
        assert "life administration" in prompt
        assert "FINANCE" in prompt
        assert "BUG" not in prompt

    def test_system_prompt_toggles(self):
        preferences = FormatPreferences(
            analysis_style="concise",
            suggest_solutions=False,
            auto_detect_missing_tasks=False,
            enable_web_search=True,
        )
        prompt = build_system_prompt(preferences)
        assert "Detect tasks that are missing" not in prompt
        assert "Suggest a concrete approach" not in prompt
        assert "web search" in prompt
        assert "at most one note per task" in prompt

    def test_system_prompt_includes_calibration(self):
        prompt = build_system_prompt(FormatPreferences(), completions=[make_completion(1)])
        assert "Calibrate effort_estimate" in prompt

    def test_user_prompt(self):
        prompt = build_user_prompt("fix it", "File: a.ts", is_voice_input=True, existing_task_context="Existing tasks: []")
        assert prompt.startswith("The following notes were transcribed from speech")
        assert "Raw tasks:\nfix it" in prompt
        assert "Context:\nFile: a.ts" in prompt
        assert "Existing tasks: []" in prompt

    def test_user_prompt_omits_empty_context(self):
        prompt = build_user_prompt("fix it", "  ")
        assert "Context:" not in prompt
        assert "transcribed" not in prompt


class TestCitations:
    def test_extract_citations_keys(self):
        citation = ReplyCitation(url="https://a.example", title="A")
        reply = make_reply("intro", None, "body", citations={2: [citation, citation]})
        citations = extract_citations(reply)
        assert list(citations) == ["2-0", "2-1"]
        assert citations["2-0"].url == "https://a.example"

    def test_cited_keys_in_order(self):
        texts = ['a <cite index="1-0">x</cite>', 'b (cite index="0-2">y) <cite index="1-0">']
        assert cited_keys(*texts) == ["1-0", "0-2"]


class TestParseFormatResponse:
    def test_parses_sections(self):
        response = parse_format_response("Here:\n" + json.dumps(SAMPLE_RESPONSE))
        assert response.sections[0].category == "BUG"
        assert response.top_level_tasks()[0].title == "fix-auth-bug"
        assert response.context_used[0].file == "src/auth.ts"

    def test_references_are_classified(self):
        payload = {"sections": [{"tasks": [{"text": "a", "depends_on": [0, "1", "setup-db", None, True]}]}]}
        task = parse_format_response(json.dumps(payload)).top_level_tasks()[0]
        assert [ref.kind for ref in task.depends_on] == ["index", "index", "slug"]
        assert [str(ref) for ref in task.depends_on] == ["0", "1", "setup-db"]

    def test_no_json(self):
        with pytest.raises(ResponseParseError, match="payload: Sorry"):
            parse_format_response("Sorry, I cannot help with that.")

    def test_empty_reply(self):
        with pytest.raises(ResponseParseError, match="no text block"):
            parse_format_response(None)

    def test_schema_mismatch(self):
        with pytest.raises(ResponseParseError, match="does not match the task schema"):
            parse_format_response('{"sections": [{"tasks": [{"notes": []}]}]}')

    def test_scalar_notes_and_tags_are_wrapped(self):
        payload = {"sections": [{"category": "BUG", "tasks": [{"text": "x", "notes": 5, "tags": "auth"}]}]}
        task = parse_format_response(json.dumps(payload)).top_level_tasks()[0]
        assert task.notes == ["5"]
        assert task.tags == ["auth"]

    @pytest.mark.parametrize("field", ["notes", "tags"])
    def test_object_valued_list_field_is_a_parse_error(self, field):
        payload = {"sections": [{"category": "BUG", "tasks": [{"text": "x", field: {"a": 1}}]}]}
        with pytest.raises(ResponseParseError, match="payload: "):
            parse_format_response(json.dumps(payload))

    def test_object_valued_warnings_is_a_parse_error(self):
        payload = {"sections": [], "warnings": {"a": 1}}
        with pytest.raises(ResponseParseError, match="does not match the task schema"):
            parse_format_response(json.dumps(payload))

    def test_parse_error_is_a_formatting_error(self):
        assert issubclass(ResponseParseError, FormattingError)


class TestTaskFormatter:
    async def test_formats_and_attaches_citations(self, mock_client):
        citation = ReplyCitation(url="https://docs.example", title="Docs")
        mock_client.create_message.return_value = make_reply(
            "Let me check the docs.", None, json.dumps(SAMPLE_RESPONSE), citations={2: [citation]}
        )
        formatter = TaskFormatter(mock_client)

        response = await formatter.format_tasks(
            "fix auth",
            "File: src/auth.ts",
            preferences=FormatPreferences(enable_web_search=True),
        )

        kwargs = mock_client.create_message.await_args.kwargs
        assert kwargs["operation"] == Operation.GENERATION
        assert kwargs["web_search"] is True
        assert "File: src/auth.ts" in kwargs["prompt"]
        assert response.citations["2-0"].title == "Docs"
        assert len(response.top_level_tasks()) == 1

    async def test_provider_error_becomes_formatting_error(self, mock_client):
        mock_client.create_message.side_effect = ProviderError("rate limited")
        with pytest.raises(FormattingError, match="rate limited"):
            await TaskFormatter(mock_client).format_tasks("fix")

    async def test_unparsable_reply(self, mock_client):
        mock_client.create_message.return_value = make_reply("no json at all")
        with pytest.raises(ResponseParseError):
            await TaskFormatter(mock_client).format_tasks("fix")

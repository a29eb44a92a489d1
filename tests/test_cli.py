"""Unit tests for the CLI module (project_stickies.cli.main)."""

from __future__ import annotations

import json
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from project_stickies.agents.exceptions import FormattingError
from project_stickies.cli.main import (
    EXIT_AGENT_ERROR,
    EXIT_INVALID_INPUT,
    EXIT_KEYBOARD_INTERRUPT,
    EXIT_ORCHESTRATOR_ERROR,
    EXIT_STORAGE_ERROR,
    EXIT_SUCCESS,
    EXIT_UNEXPECTED,
    build_parser,
    create_pipeline,
    format_result_json,
    main,
    validate_project_root,
)
from project_stickies.config import Settings
from project_stickies.llm.exceptions import ProviderError
from project_stickies.models import FileContext, GatheredContext, TaskMetadata, TaskNode
from project_stickies.orchestrator import FormatResult, OperationCancelledError
from project_stickies.storage import StorageError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _mock_components(result: FormatResult | None = None, raw_text: str | None = None):
    """Return a component dict matching create_pipeline() output."""
    pipeline = MagicMock()
    pipeline.run = AsyncMock(return_value=result or _result())
    pipeline.gather_project_context = AsyncMock(
        return_value=GatheredContext(
            files=[FileContext(path="src/auth.ts", content="x", line_count=1)], total_lines=1
        )
    )
    store = MagicMock()
    store.load_raw_text = AsyncMock(return_value=raw_text)
    store.save_raw_text = AsyncMock()
    return {"pipeline": pipeline, "store": store}


def _result(**overrides) -> FormatResult:
    base = {
        "new_tasks": [
            TaskNode(id="t1", text="Fix login", metadata=TaskMetadata(notes=["Check token"]))
        ],
        "warnings": [],
        "committed": True,
    }
    base.update(overrides)
    return FormatResult(**base)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """main() installs its own handler on the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture()
def settings(tmp_path):
    with patch("project_stickies.cli.main.load_settings", return_value=Settings(home=tmp_path / "home")) as mock:
        yield mock


@pytest.fixture()
def components():
    comps = _mock_components()
    with patch("project_stickies.cli.main.create_pipeline", return_value=comps):
        yield comps


# ---------------------------------------------------------------------------
# TestBuildParser
# ---------------------------------------------------------------------------
class TestBuildParser:
    def test_format_positional_args(self):
        args = build_parser().parse_args(["format", "proj", "/tmp", "fix login"])
        assert args.command == "format"
        assert args.project_name == "proj"
        assert args.project_root == "/tmp"
        assert args.raw_text == "fix login"

    def test_format_raw_text_is_optional(self):
        args = build_parser().parse_args(["format", "proj", "/tmp"])
        assert args.raw_text is None

    def test_format_flags(self):
        args = build_parser().parse_args([
            "format", "proj", "/tmp",
            "--dry-run", "--voice", "--web-search", "--no-autocontext",
            "--analysis-style", "detailed",
            "--project-type", "life_admin",
            "--model-profile", "haiku",
            "--llm-provider", "openai",
            "--output-json", "--verbose",
        ])
        assert args.dry_run and args.voice and args.web_search and args.no_autocontext
        assert args.analysis_style == "detailed"
        assert args.project_type == "life_admin"
        assert args.model_profile == "haiku"
        assert args.llm_provider == "openai"

    def test_defaults(self):
        args = build_parser().parse_args(["context", "fix it", "/tmp"])
        assert args.project_type == "code"
        assert args.model_profile is None
        assert args.no_autocontext is False
        assert not hasattr(args, "dry_run")

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


# ---------------------------------------------------------------------------
# TestValidateProjectRoot
# ---------------------------------------------------------------------------
class TestValidateProjectRoot:
    def test_valid_dir(self, tmp_path):
        assert validate_project_root(str(tmp_path)) == tmp_path.resolve()

    def test_nonexistent(self):
        with pytest.raises(SystemExit) as exc_info:
            validate_project_root("/nonexistent/path/xyz_abc_123")
        assert exc_info.value.code == EXIT_INVALID_INPUT


# ---------------------------------------------------------------------------
# TestCreatePipeline
# ---------------------------------------------------------------------------
class TestCreatePipeline:
    def test_cli_flags_override_settings(self, tmp_path):
        args = build_parser().parse_args(["format", "proj", str(tmp_path), "--model-profile", "haiku"])
        settings = Settings(anthropic_api_key="key", home=tmp_path, auto_context_enabled=False)
        with patch("project_stickies.llm.LLMClient") as client_cls:
            comps = create_pipeline(args, settings)

        kwargs = client_cls.call_args.kwargs
        assert kwargs["api_key"] == "key"
        assert kwargs["model_profile"] == "haiku"
        assert kwargs["llm_provider"] == "auto"
        assert comps["pipeline"].merger.auto_context_enabled is False
        assert comps["store"].root == tmp_path


# ---------------------------------------------------------------------------
# TestFormatResultJson
# ---------------------------------------------------------------------------
class TestFormatResultJson:
    def test_payload(self):
        payload = json.loads(format_result_json(_result(warnings=["w"])))
        assert payload["new_tasks"][0]["id"] == "t1"
        assert payload["warnings"] == ["w"]
        assert payload["committed"] is True
        assert payload["context"] is None


# ---------------------------------------------------------------------------
# TestMain
# ---------------------------------------------------------------------------
class TestMain:
    def test_format_success(self, tmp_path, settings, components, capsys):
        code = main(["format", "proj", str(tmp_path), "fix login"])

        assert code == EXIT_SUCCESS
        components["store"].save_raw_text.assert_awaited_once_with("proj", "fix login")
        kwargs = components["pipeline"].run.await_args.kwargs
        assert kwargs["dry_run"] is False
        assert kwargs["use_autocontext"] is True
        assert "Fix login" in capsys.readouterr().out

    def test_format_json_output(self, tmp_path, settings, components, capsys):
        code = main(["format", "proj", str(tmp_path), "x", "--output-json"])
        assert code == EXIT_SUCCESS
        assert json.loads(capsys.readouterr().out)["new_tasks"][0]["text"] == "Fix login"

    def test_dry_run_does_not_save_raw_text(self, tmp_path, settings, components):
        main(["format", "proj", str(tmp_path), "x", "--dry-run"])
        components["store"].save_raw_text.assert_not_awaited()
        assert components["pipeline"].run.await_args.kwargs["dry_run"] is True

    def test_format_uses_saved_scratch_text(self, tmp_path, settings):
        comps = _mock_components(raw_text="- saved note")
        with patch("project_stickies.cli.main.create_pipeline", return_value=comps):
            code = main(["format", "proj", str(tmp_path)])
        assert code == EXIT_SUCCESS
        assert comps["pipeline"].run.await_args.args[1] == "- saved note"

    def test_format_without_any_text(self, tmp_path, settings, components):
        assert main(["format", "proj", str(tmp_path)]) == EXIT_INVALID_INPUT
        components["pipeline"].run.assert_not_awaited()

    def test_context_json(self, tmp_path, settings, components, capsys):
        code = main(["context", "fix @src/auth.ts", str(tmp_path), "--output-json", "--no-autocontext"])

        assert code == EXIT_SUCCESS
        payload = json.loads(capsys.readouterr().out)
        assert payload["files"][0]["path"] == "src/auth.ts"
        assert payload["totalLines"] == 1
        assert components["pipeline"].gather_project_context.await_args.kwargs["use_autocontext"] is False

    def test_invalid_project_root(self, settings):
        assert main(["format", "proj", "/nonexistent/xyz_abc_123", "x"]) == EXIT_INVALID_INPUT

    @pytest.mark.parametrize(
        "error, expected",
        [
            (FormattingError("bad reply"), EXIT_AGENT_ERROR),
            (ProviderError("no key"), EXIT_AGENT_ERROR),
            (OperationCancelledError("cancelled"), EXIT_ORCHESTRATOR_ERROR),
            (StorageError("disk full"), EXIT_STORAGE_ERROR),
            (RuntimeError("surprise"), EXIT_UNEXPECTED),
            (KeyboardInterrupt(), EXIT_KEYBOARD_INTERRUPT),
        ],
    )
    def test_error_exit_codes(self, tmp_path, settings, components, capsys, error, expected):
        components["pipeline"].run.side_effect = error
        assert main(["format", "proj", str(tmp_path), "x"]) == expected

    def test_configuration_error(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STICKIES_MODEL_PROFILE", "nonsense")
        assert main(["format", "proj", str(tmp_path), "x"]) == EXIT_INVALID_INPUT

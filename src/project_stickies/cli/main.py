"""CLI entry point for project stickies."""
import argparse
import asyncio
import json
import sys
import traceback
from pathlib import Path

from dotenv import load_dotenv

from project_stickies.agents.exceptions import AgentError
from project_stickies.config import ConfigError, Settings, load_settings
from project_stickies.llm.exceptions import LLMError
from project_stickies.llm.profiles import ModelProfile
from project_stickies.models import FormatPreferences, GatheredContext, ProjectType, TaskNode
from project_stickies.orchestrator.exceptions import OrchestratorError
from project_stickies.storage.exceptions import StorageError
from project_stickies.utils.logging import setup_logging

load_dotenv()

# Exit codes
EXIT_SUCCESS = 0
EXIT_INVALID_INPUT = 1
EXIT_AGENT_ERROR = 2
EXIT_ORCHESTRATOR_ERROR = 3
EXIT_STORAGE_ERROR = 4
EXIT_UNEXPECTED = 5
EXIT_KEYBOARD_INTERRUPT = 130


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("--output-json", action="store_true", help="Output results as JSON")
    parser.add_argument(
        "--no-autocontext",
        action="store_true",
        help="Only load @mentioned files; skip model-driven file discovery",
    )
    parser.add_argument(
        "--project-type",
        type=str,
        default=ProjectType.CODE.value,
        choices=[t.value for t in ProjectType],
        help="Project type (default: code)",
    )
    parser.add_argument(
        "--model-profile",
        type=str,
        default=None,
        choices=[p.value for p in ModelProfile],
        help="Model profile (default: STICKIES_MODEL_PROFILE or balanced)",
    )
    parser.add_argument(
        "--llm-provider",
        type=str,
        default=None,
        choices=("auto", "anthropic", "openai"),
        help="LLM provider: auto (default), anthropic, or openai",
    )
    parser.add_argument(
        "--llm-fallback-provider",
        type=str,
        default=None,
        choices=("anthropic", "openai"),
        help="Provider tried when the primary provider fails",
    )
    parser.add_argument(
        "--allow-llm-fallback",
        action="store_true",
        help="Allow falling back to the alternate provider",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="stickies",
        description="Turn raw bullet-point notes into a dependency-aware task list",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    context_parser = subparsers.add_parser("context", help="Print the context gathered for raw text")
    context_parser.add_argument("raw_text", type=str, help="Raw task notes ('-' reads stdin)")
    context_parser.add_argument("project_root", type=str, help="Path to the project root")
    _add_common_arguments(context_parser)

    format_parser = subparsers.add_parser("format", help="Format raw notes into tasks and save them")
    format_parser.add_argument("project_name", type=str, help="Project name used for storage")
    format_parser.add_argument("project_root", type=str, help="Path to the project root")
    format_parser.add_argument(
        "raw_text",
        type=str,
        nargs="?",
        default=None,
        help="Raw task notes ('-' reads stdin; omitted uses the saved scratch text)",
    )
    _add_common_arguments(format_parser)
    format_parser.add_argument(
        "--dry-run", action="store_true", help="Format and print without saving"
    )
    format_parser.add_argument(
        "--voice", action="store_true", help="Treat the notes as transcribed speech"
    )
    format_parser.add_argument(
        "--web-search", action="store_true", help="Let the model search the web"
    )
    format_parser.add_argument(
        "--analysis-style",
        type=str,
        default="balanced",
        choices=("concise", "balanced", "detailed"),
        help="How much detail task notes carry (default: balanced)",
    )
    return parser


def validate_project_root(raw_path: str) -> Path:
    """Validate and resolve the project root.

    Raises:
        SystemExit: If path is not a valid directory.
    """
    resolved = Path(raw_path).expanduser().resolve()
    if not resolved.is_dir():
        print(f"Error: '{raw_path}' is not a valid directory.", file=sys.stderr)
        raise SystemExit(EXIT_INVALID_INPUT)
    return resolved


def read_raw_text(value: str | None) -> str | None:
    if value == "-":
        return sys.stdin.read()
    return value


def create_pipeline(args: argparse.Namespace, settings: Settings) -> dict:
    """Create the pipeline and its collaborators from CLI arguments.

    Imports are deferred so ``--help`` does not load the model SDKs.

    Returns:
        Dict with keys: pipeline, store.
    """
    from project_stickies.agents import FileSelector, TaskFormatter
    from project_stickies.context import AutoDiscoveryService, ContextMerger, ExplicitContextLoader
    from project_stickies.llm import LLMClient
    from project_stickies.orchestrator import FormatPipeline
    from project_stickies.storage import JsonFileStore

    client = LLMClient(
        api_key=settings.anthropic_api_key,
        openai_api_key=settings.openai_api_key,
        model_profile=args.model_profile or settings.model_profile,
        llm_provider=args.llm_provider or settings.llm_provider,
        llm_fallback_provider=args.llm_fallback_provider or settings.llm_fallback_provider,
        allow_fallback=args.allow_llm_fallback or settings.allow_llm_fallback,
    )
    merger = ContextMerger(
        ExplicitContextLoader(),
        AutoDiscoveryService(FileSelector(client)),
        auto_context_enabled=settings.auto_context_enabled,
    )
    store = JsonFileStore(settings.home)
    pipeline = FormatPipeline(TaskFormatter(client), merger, store=store)
    return {"pipeline": pipeline, "store": store}


def gathered_to_dict(gathered: GatheredContext | None) -> dict | None:
    if gathered is None:
        return None
    return gathered.model_dump(by_alias=True)


def print_context_human(gathered: GatheredContext) -> None:
    print(f"\nContext files ({len(gathered.files)}), {gathered.total_lines} line(s)")
    print(f"Directory cache: {gathered.cache_hits} hit(s), {gathered.cache_misses} miss(es)")
    for entry in gathered.files:
        detail = f"{entry.line_count} lines"
        if entry.was_grepped:
            detail += f", grepped: {', '.join(entry.matched_keywords) or 'no matches'}"
        if entry.error:
            detail = f"error: {entry.error}"
        print(f"  {entry.path} ({detail})")


def _print_task(task: TaskNode, depth: int = 0) -> None:
    indent = "  " * depth
    metadata = task.metadata
    priority = f"[{metadata.priority.value}] " if metadata and metadata.priority else ""
    print(f"{indent}- {priority}{task.text}")
    if metadata:
        for note in metadata.notes:
            print(f"{indent}    note: {note}")
        if metadata.depends_on:
            print(f"{indent}    depends on: {', '.join(metadata.depends_on)}")
        if metadata.effort_estimate:
            print(f"{indent}    effort: {metadata.effort_estimate}")
    for subtask in task.subtasks:
        _print_task(subtask, depth + 1)


def print_result_human(result) -> None:
    """Print a format result in human-readable format."""
    print(f"\n{'='*60}")
    print("Formatted Tasks")
    print(f"{'='*60}")
    for task in result.new_tasks:
        _print_task(task)
    if result.warnings:
        print("\nWarnings:")
        for warning in result.warnings:
            print(f"  - {warning}")
    print(f"\nSaved: {'yes' if result.committed else 'no'}")


def format_result_json(result) -> str:
    payload = {
        "new_tasks": [task.model_dump(mode="json", exclude_none=True) for task in result.new_tasks],
        "warnings": result.warnings,
        "committed": result.committed,
        "context": gathered_to_dict(result.gathered),
    }
    return json.dumps(payload, indent=2, default=str)


async def _run_context(args: argparse.Namespace, settings: Settings, project_root: Path) -> int:
    raw_text = read_raw_text(args.raw_text) or ""
    components = create_pipeline(args, settings)
    gathered = await components["pipeline"].gather_project_context(
        raw_text,
        project_root,
        project_type=args.project_type,
        use_autocontext=not args.no_autocontext,
    )
    if args.output_json:
        print(json.dumps(gathered_to_dict(gathered), indent=2))
    else:
        print_context_human(gathered)
    return EXIT_SUCCESS


async def _run_format(args: argparse.Namespace, settings: Settings, project_root: Path) -> int:
    components = create_pipeline(args, settings)
    pipeline, store = components["pipeline"], components["store"]

    raw_text = read_raw_text(args.raw_text)
    if raw_text is None:
        raw_text = await store.load_raw_text(args.project_name)
    elif not args.dry_run:
        await store.save_raw_text(args.project_name, raw_text)
    if not raw_text or not raw_text.strip():
        print("Error: no raw text to format.", file=sys.stderr)
        return EXIT_INVALID_INPUT

    if args.verbose:
        pipeline.on_status(
            lambda project, status, message: print(
                f"[{project}] {status.value}" + (f": {message}" if message else ""),
                file=sys.stderr,
            )
        )

    preferences = FormatPreferences(
        analysis_style=args.analysis_style,
        enable_web_search=args.web_search,
    )
    result = await pipeline.run(
        args.project_name,
        raw_text,
        project_root,
        is_voice_input=args.voice,
        preferences=preferences,
        use_autocontext=not args.no_autocontext,
        project_type=args.project_type,
        dry_run=args.dry_run,
    )
    if args.output_json:
        print(format_result_json(result))
    else:
        print_result_human(result)
    return EXIT_SUCCESS


def _handle_error(label: str, exc: BaseException, verbose: bool, exit_code: int) -> int:
    """Print error message to stderr and return the exit code."""
    print(f"{label}: {exc}", file=sys.stderr)
    if verbose:
        traceback.print_exc(file=sys.stderr)
    return exit_code


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code integer.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except ConfigError as exc:
        return _handle_error("Configuration error", exc, args.verbose, EXIT_INVALID_INPUT)

    setup_logging("DEBUG" if args.verbose else settings.log_level)

    try:
        project_root = validate_project_root(args.project_root)
    except SystemExit as exc:
        return exc.code

    try:
        if args.command == "context":
            return asyncio.run(_run_context(args, settings, project_root))
        return asyncio.run(_run_format(args, settings, project_root))

    except (AgentError, LLMError) as exc:
        return _handle_error("Agent error", exc, args.verbose, EXIT_AGENT_ERROR)

    except OrchestratorError as exc:
        return _handle_error("Orchestrator error", exc, args.verbose, EXIT_ORCHESTRATOR_ERROR)

    except StorageError as exc:
        return _handle_error("Storage error", exc, args.verbose, EXIT_STORAGE_ERROR)

    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_KEYBOARD_INTERRUPT

    except Exception as exc:
        return _handle_error("Unexpected error", exc, args.verbose, EXIT_UNEXPECTED)


if __name__ == "__main__":
    sys.exit(main())

"""CLI entry point for the autofix bot."""
import argparse
from dotenv import load_dotenv
import base64
import json
import logging
import mimetypes
import os
import sys
import time
import traceback
from pathlib import Path

from autofix_bot.agents.exceptions import AgentError
from autofix_bot.orchestrator.exceptions import OrchestratorError
from autofix_bot.storage.exceptions import ContentStoreError

load_dotenv()

# Exit codes
EXIT_SUCCESS = 0
EXIT_INVALID_INPUT = 1
EXIT_AGENT_ERROR = 2
EXIT_ORCHESTRATOR_ERROR = 3
EXIT_FAILED = 4
EXIT_UNEXPECTED = 5
EXIT_KEYBOARD_INTERRUPT = 130

# Defaults
DEFAULT_ROOT = "./projects"
DEFAULT_TIMEOUT = 30
DEFAULT_MAX_ATTEMPTS = 5
WAIT_POLL_SECONDS = 0.5

# Safe keys allowed in config output (no secrets)
_SAFE_CONFIG_KEYS = frozenset({
    "command", "root", "project", "instruction", "run_command", "max_attempts",
    "port", "open_file", "model", "timeout", "verbose", "dry_run", "output_json",
    "llm_provider", "llm_fallback_provider", "allow_llm_fallback", "file", "prompt",
})


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="autofix-bot",
        description="Run, repair and chat about projects in a local workspace",
    )
    parser.add_argument(
        "--root",
        type=str,
        default=os.getenv("AUTOFIX_BOT_ROOT", DEFAULT_ROOT),
        help=f"Projects root directory (default: $AUTOFIX_BOT_ROOT or {DEFAULT_ROOT})",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT,
        help=f"Timeout in seconds for foreground commands (default: {DEFAULT_TIMEOUT})",
    )
    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Model ID to use (default: provider specific)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--dry-run", action="store_true", help="Print config and exit without running"
    )
    parser.add_argument(
        "--output-json", action="store_true", help="Output results as JSON"
    )
    parser.add_argument(
        "--llm-provider",
        type=str,
        default="auto",
        choices=("auto", "huggingface", "openai", "anthropic"),
        help="Completion provider: auto (default), huggingface, openai or anthropic",
    )
    parser.add_argument(
        "--llm-fallback-provider",
        type=str,
        default="",
        choices=("", "huggingface", "openai", "anthropic"),
        help="Optional explicit fallback provider when the primary provider fails",
    )
    parser.add_argument(
        "--allow-llm-fallback",
        action="store_true",
        help="Allow fallback to the alternate provider when the primary provider fails",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    repair = commands.add_parser("repair", help="Run a project and fix it until it works")
    repair.add_argument("project", type=str, help="Project name under the root")
    repair.add_argument(
        "--run-command",
        type=str,
        default=None,
        help="Command to verify with (default: detected from the project files)",
    )
    repair.add_argument(
        "--max-attempts",
        type=int,
        default=DEFAULT_MAX_ATTEMPTS,
        help=f"Maximum repair attempts, 1-5 (default: {DEFAULT_MAX_ATTEMPTS})",
    )

    run = commands.add_parser("run", help="Run a shell command in a project")
    run.add_argument("run_command", type=str, help="Shell command to run")
    run.add_argument("--project", type=str, default=None, help="Project to run in")

    chat = commands.add_parser("chat", help="Send an instruction to the assistant")
    chat.add_argument("instruction", type=str, help="Chat instruction")
    chat.add_argument("--project", type=str, default=None, help="Project to act on")
    chat.add_argument(
        "--open-file", type=str, default=None, help="Project file to include as context"
    )
    chat.add_argument(
        "--image", type=str, default=None, help="Image path, URL or data URL to attach"
    )

    preview = commands.add_parser("preview", help="Serve a project over HTTP")
    preview.add_argument("project", type=str, help="Project name under the root")
    preview.add_argument("--port", type=int, default=None, help="Port (default: random)")

    for name, verb in (("analyze", "Analyze a file for issues"), ("explain", "Explain a file")):
        assist = commands.add_parser(name, help=verb)
        assist.add_argument("file", type=str, help="File path (project-relative with --project)")
        assist.add_argument(
            "--project", type=str, default=None, help="Read the file from this project"
        )

    generate = commands.add_parser("generate", help="Generate code from a description")
    generate.add_argument("prompt", type=str, help="What to generate")
    return parser


def validate_root(raw_path: str) -> str:
    """Resolve the projects root.

    Raises:
        SystemExit: If the path exists but is not a directory.
    """
    resolved = Path(raw_path).resolve()
    if resolved.exists() and not resolved.is_dir():
        print(f"Error: '{raw_path}' is not a valid directory.", file=sys.stderr)
        raise SystemExit(EXIT_INVALID_INPUT)
    return str(resolved)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_provider(args: argparse.Namespace):
    """Create the completion provider from CLI arguments.

    The SDK imports are deferred to keep --help and --dry-run fast.
    """
    from autofix_bot.agents.completion import CompletionProvider

    return CompletionProvider(
        model=args.model,
        llm_provider=args.llm_provider,
        llm_fallback_provider=args.llm_fallback_provider or None,
        allow_fallback=args.allow_llm_fallback,
    )


def create_service(args: argparse.Namespace, root: str, with_provider: bool):
    from autofix_bot.runtime import CommandRunner, ProcessRegistry
    from autofix_bot.service import WorkspaceService
    from autofix_bot.storage import FileSystemContentStore

    registry = ProcessRegistry()
    runner = CommandRunner(registry, default_timeout=args.timeout)
    return WorkspaceService(
        FileSystemContentStore(root),
        provider=create_provider(args) if with_provider else None,
        registry=registry,
        runner=runner,
        max_attempts=getattr(args, "max_attempts", DEFAULT_MAX_ATTEMPTS),
    )


def load_image(raw: str | None) -> str | None:
    """Return ``raw`` as a URL, reading local files into a base64 data URL."""
    if not raw or raw.startswith(("data:", "http://", "https://")):
        return raw
    path = Path(raw)
    media_type = mimetypes.guess_type(path.name)[0] or "image/png"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


def format_result_json(result) -> str:
    """Serialize a pydantic result (or a list of them) to a JSON string."""

    def _serialize(obj):
        if hasattr(obj, "model_dump"):
            return obj.model_dump(mode="json")
        return obj

    if isinstance(result, list):
        return json.dumps([_serialize(item) for item in result], indent=2, default=str)
    return json.dumps(_serialize(result), indent=2, default=str)


def print_repair_human(result) -> None:
    """Print a RepairResult in human-readable format."""
    print(f"\n{'='*60}")
    print("Auto-Repair Results")
    print(f"{'='*60}")
    if result.command:
        print(f"\nCommand: {result.command}")
    for attempt in result.attempts:
        print(f"\n[{attempt.index}] {attempt.outcome.value}")
        if attempt.explanation:
            print(f"  {attempt.explanation}")
        if attempt.applied_files:
            print(f"  Files: {', '.join(attempt.applied_files)}")
        if attempt.command_output:
            print(attempt.command_output)
    print(f"\nStatus: {result.status.value}")
    print(result.message)
    print(f"\n{'='*60}")


def print_chat_human(outcome) -> None:
    print(outcome.response)
    if outcome.content is not None and outcome.action.value == "read_file":
        print(f"\n{outcome.content}")


def print_config_human(config: dict) -> None:
    """Print configuration in human-readable format.

    Only prints keys in the safe allowlist to prevent secret leakage.
    """
    print("\nConfiguration:")
    print(f"{'='*40}")
    for key, value in config.items():
        if key in _SAFE_CONFIG_KEYS:
            print(f"  {key}: {value}")
    print(f"{'='*40}")


def wait_for_interrupt(service) -> None:
    """Block while background processes or preview servers are alive."""
    try:
        while service.registry.list_all() or service.previews.list_all():
            time.sleep(WAIT_POLL_SECONDS)
    finally:
        service.shutdown()


def _handle_error(label: str, exc: BaseException, verbose: bool, exit_code: int) -> int:
    """Print error message to stderr and return the exit code."""
    print(f"{label}: {exc}", file=sys.stderr)
    if verbose:
        traceback.print_exc(file=sys.stderr)
    return exit_code


def _cmd_repair(args: argparse.Namespace, root: str) -> int:
    service = create_service(args, root, with_provider=True)
    result = service.start_auto_repair(args.project, args.run_command)
    if args.output_json:
        print(format_result_json(result))
    else:
        print_repair_human(result)
    return EXIT_SUCCESS if result.success else EXIT_FAILED


def _cmd_run(args: argparse.Namespace, root: str) -> int:
    service = create_service(args, root, with_provider=False)
    result = service.run_command(args.run_command, args.project)
    if args.output_json:
        print(format_result_json(result))
    else:
        print(result.output)
    if result.background:
        if not args.output_json:
            print("\nPress Ctrl+C to stop.", file=sys.stderr)
        wait_for_interrupt(service)
    return EXIT_FAILED if result.exit_failed else EXIT_SUCCESS


def _cmd_chat(args: argparse.Namespace, root: str) -> int:
    from autofix_bot.models import ChatAction

    service = create_service(args, root, with_provider=True)
    open_code = None
    if args.open_file and args.project:
        open_code = service.store.read_file(args.project, args.open_file)

    outcome = service.chat(
        args.instruction,
        project=args.project,
        open_file=args.open_file,
        open_code=open_code,
        image=load_image(args.image),
    )
    if args.output_json:
        print(format_result_json(outcome))
    else:
        print_chat_human(outcome)

    if outcome.action == ChatAction.AUTO_FIX:
        result = service.start_auto_repair(args.project)
        if args.output_json:
            print(format_result_json(result))
        else:
            print_repair_human(result)
        return EXIT_SUCCESS if result.success else EXIT_FAILED
    return EXIT_SUCCESS


def _cmd_preview(args: argparse.Namespace, root: str) -> int:
    service = create_service(args, root, with_provider=False)
    result = service.host_preview(args.project, args.port)
    if args.output_json:
        print(format_result_json(result))
    else:
        print(f"{result.message}: {result.url}" if result.url else result.message)
    if not result.success:
        return EXIT_FAILED
    if not args.output_json:
        print("Press Ctrl+C to stop.", file=sys.stderr)
    wait_for_interrupt(service)
    return EXIT_SUCCESS


def _read_code(service, args: argparse.Namespace) -> str:
    if args.project:
        return service.store.read_file(args.project, args.file)
    return Path(args.file).read_text(encoding="utf-8")


def _print_reply(args: argparse.Namespace, key: str, reply: str) -> None:
    if args.output_json:
        print(format_result_json({key: reply}))
    else:
        print(reply)


def _cmd_analyze(args: argparse.Namespace, root: str) -> int:
    service = create_service(args, root, with_provider=True)
    _print_reply(args, "analysis", service.analyze_code(_read_code(service, args), args.file))
    return EXIT_SUCCESS


def _cmd_explain(args: argparse.Namespace, root: str) -> int:
    service = create_service(args, root, with_provider=True)
    _print_reply(args, "explanation", service.explain_code(_read_code(service, args), args.file))
    return EXIT_SUCCESS


def _cmd_generate(args: argparse.Namespace, root: str) -> int:
    service = create_service(args, root, with_provider=True)
    _print_reply(args, "suggestion", service.generate_code(args.prompt))
    return EXIT_SUCCESS


COMMANDS = {
    "repair": _cmd_repair,
    "run": _cmd_run,
    "chat": _cmd_chat,
    "preview": _cmd_preview,
    "analyze": _cmd_analyze,
    "explain": _cmd_explain,
    "generate": _cmd_generate,
}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code integer.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        root = validate_root(args.root)
    except SystemExit as exc:
        return exc.code

    if getattr(args, "max_attempts", DEFAULT_MAX_ATTEMPTS) < 1:
        print("Error: --max-attempts must be at least 1.", file=sys.stderr)
        return EXIT_INVALID_INPUT

    config = {key: value for key, value in vars(args).items() if value is not None}
    config["root"] = root

    if args.dry_run:
        if args.output_json:
            print(json.dumps(
                {k: v for k, v in config.items() if k in _SAFE_CONFIG_KEYS}, indent=2
            ))
        else:
            print_config_human(config)
        return EXIT_SUCCESS

    try:
        return COMMANDS[args.command](args, root)

    except AgentError as exc:
        return _handle_error("Agent error", exc, args.verbose, EXIT_AGENT_ERROR)

    except OrchestratorError as exc:
        return _handle_error("Orchestrator error", exc, args.verbose, EXIT_ORCHESTRATOR_ERROR)

    except (ContentStoreError, OSError) as exc:
        return _handle_error("Workspace error", exc, args.verbose, EXIT_INVALID_INPUT)

    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_KEYBOARD_INTERRUPT

    except Exception as exc:
        return _handle_error("Unexpected error", exc, args.verbose, EXIT_UNEXPECTED)

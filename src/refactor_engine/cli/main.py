"""CLI entry point for the refactor engine."""
import argparse
import asyncio
import json
import logging
import sys
import traceback
from pathlib import Path

from dotenv import load_dotenv
from pydantic import TypeAdapter, ValidationError

from refactor_engine.agents.exceptions import AgentError
from refactor_engine.history.exceptions import HistoryError
from refactor_engine.history.undo_manager import MAX_UNDO_STACK_SIZE, UndoManager
from refactor_engine.logger import configure_logging
from refactor_engine.models import ApplyReport, BatchRefactorResult, Change, ProjectState
from refactor_engine.orchestrator.exceptions import OrchestratorError, RefactorApplyError
from refactor_engine.patching import describe_failure

load_dotenv()

# Exit codes
EXIT_SUCCESS = 0
EXIT_INVALID_INPUT = 1
EXIT_AGENT_ERROR = 2
EXIT_APPLY_ERROR = 3
EXIT_PARTIAL_APPLY = 4
EXIT_UNEXPECTED = 5
EXIT_KEYBOARD_INTERRUPT = 130

# Defaults
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

_CHANGE_LIST = TypeAdapter(list[Change])


class InputFileError(Exception):
    """Raised when a state or changes file cannot be read."""


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="refactor-engine",
        description="Apply AI-suggested snippet changes to a saved project state",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--output-json", action="store_true", help="Output results as JSON"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    apply_parser = subparsers.add_parser(
        "apply", help="Apply a batch of changes to the project state"
    )
    apply_parser.add_argument("state_path", type=str, help="Project state JSON file")
    apply_parser.add_argument("changes_path", type=str, help="Change batch JSON file")
    apply_parser.add_argument(
        "--instruction",
        type=str,
        default="",
        help="Instruction the changes were generated from (used for self-correction)",
    )
    apply_parser.add_argument(
        "--self-correct",
        action="store_true",
        help="Ask an LLM to repair snippets that cannot be found",
    )
    apply_parser.add_argument(
        "--max-attempts",
        type=int,
        default=DEFAULT_MAX_ATTEMPTS,
        help=f"Maximum apply attempts with --self-correct (default: {DEFAULT_MAX_ATTEMPTS})",
    )
    apply_parser.add_argument(
        "--model",
        type=str,
        default=DEFAULT_MODEL,
        help=f"Model ID to use (default: {DEFAULT_MODEL})",
    )
    apply_parser.add_argument(
        "--llm-provider",
        type=str,
        default="auto",
        choices=("auto", "anthropic", "openai"),
        help="LLM provider for self-correction: auto (default), anthropic, or openai",
    )
    apply_parser.add_argument(
        "--llm-fallback-provider",
        type=str,
        default="",
        choices=("", "anthropic", "openai"),
        help="Optional fallback provider when the primary provider fails",
    )
    apply_parser.add_argument(
        "--allow-llm-fallback",
        action="store_true",
        help="Allow fallback to the alternate provider when the primary provider fails",
    )
    apply_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be applied without writing the state file",
    )

    undo_parser = subparsers.add_parser("undo", help="Revert the most recent applied batch")
    undo_parser.add_argument("state_path", type=str, help="Project state JSON file")

    return parser


def load_state(path: str) -> tuple[ProjectState, UndoManager]:
    """Read a project state file; a missing file is an empty project.

    Raises:
        InputFileError: If the file is not valid JSON or not a valid state.
    """
    state_path = Path(path)
    if not state_path.exists():
        return ProjectState(), UndoManager()
    try:
        payload = json.loads(state_path.read_text(encoding="utf-8"))
        project = ProjectState.model_validate(payload.get("project", {}))
        undo_manager = UndoManager.from_json(
            payload.get("undo_stack", []), capacity=MAX_UNDO_STACK_SIZE
        )
    except (OSError, json.JSONDecodeError, AttributeError, ValidationError, HistoryError) as exc:
        raise InputFileError(f"Invalid state file '{path}': {exc}") from exc
    return project, undo_manager


def save_state(path: str, project: ProjectState, undo_manager: UndoManager) -> None:
    state_path = Path(path).expanduser().resolve()
    state_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "project": project.model_dump(mode="json"),
        "undo_stack": undo_manager.to_list(),
    }
    state_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def load_changes(path: str) -> BatchRefactorResult:
    """Read a change batch: either a list of changes or a batch result object.

    Raises:
        InputFileError: If the file cannot be parsed into changes.
    """
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        if isinstance(payload, list):
            return BatchRefactorResult(changes=_CHANGE_LIST.validate_python(payload))
        return BatchRefactorResult.model_validate(payload)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise InputFileError(f"Invalid changes file '{path}': {exc}") from exc


def create_generator(args: argparse.Namespace):
    """Create the LLM change generator used by --self-correct."""
    from refactor_engine.agents.change_generator import LLMChangeGenerator

    return LLMChangeGenerator(
        model=args.model,
        llm_provider=args.llm_provider,
        llm_fallback_provider=args.llm_fallback_provider or None,
        allow_fallback=args.allow_llm_fallback,
    )


def format_report_json(report: ApplyReport) -> str:
    return json.dumps(report.model_dump(mode="json"), indent=2)


def print_report_human(report: ApplyReport) -> None:
    """Print an apply report in human-readable format."""
    print(f"\n{'='*60}")
    print("Refactor Engine Results")
    print(f"{'='*60}")
    print(f"\nApplied changes: {len(report.applied)} (attempts: {report.attempts})")
    for file_name in report.touched_files:
        print(f"  ~ {file_name}")

    if report.failed:
        print(f"\nNot applied ({len(report.failed)}):")
        for failure in report.failed:
            print(f"  - {describe_failure(failure)}")

    if report.manual_steps:
        print("\nManual steps:")
        for step in report.manual_steps:
            target = f" [{step.file_name}]" if step.file_name else ""
            print(f"  * {step.title}{target}: {step.description}")

    if report.warnings:
        print("\nWarnings:")
        for warning in report.warnings:
            print(f"  ! {warning}")

    print(f"\n{'='*60}")


def _handle_error(label: str, exc: BaseException, verbose: bool, exit_code: int) -> int:
    """Print error message to stderr and return the exit code."""
    print(f"{label}: {exc}", file=sys.stderr)
    if verbose:
        traceback.print_exc(file=sys.stderr)
    return exit_code


def run_apply(args: argparse.Namespace) -> int:
    from refactor_engine.orchestrator.session import RefactorSession

    project, undo_manager = load_state(args.state_path)
    batch = load_changes(args.changes_path)
    generator = create_generator(args) if args.self_correct else None

    session = RefactorSession(
        project=project,
        generator=generator,
        undo_manager=undo_manager,
        max_attempts=args.max_attempts,
    )
    report = asyncio.run(session.apply_batch(batch, instruction=args.instruction))

    if not args.dry_run:
        save_state(args.state_path, session.project, session.undo_manager)

    if args.output_json:
        print(format_report_json(report))
    else:
        print_report_human(report)

    if report.failed:
        return EXIT_PARTIAL_APPLY
    return EXIT_SUCCESS


def run_undo(args: argparse.Namespace) -> int:
    _, undo_manager = load_state(args.state_path)
    snapshot = undo_manager.pop()
    if snapshot is None:
        print("Nothing to undo.", file=sys.stderr)
        return EXIT_SUCCESS

    save_state(args.state_path, snapshot.project, undo_manager)
    if args.output_json:
        print(json.dumps({"undone": True, "remaining": len(undo_manager)}))
    else:
        print(f"Reverted last batch ({len(undo_manager)} undo step(s) left).")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code integer.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        if args.command == "undo":
            return run_undo(args)
        return run_apply(args)

    except InputFileError as exc:
        return _handle_error("Invalid input", exc, args.verbose, EXIT_INVALID_INPUT)

    except AgentError as exc:
        return _handle_error("Agent error", exc, args.verbose, EXIT_AGENT_ERROR)

    except RefactorApplyError as exc:
        return _handle_error("Apply failed", exc, args.verbose, EXIT_APPLY_ERROR)

    except OrchestratorError as exc:
        return _handle_error("Orchestrator error", exc, args.verbose, EXIT_APPLY_ERROR)

    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_KEYBOARD_INTERRUPT

    except Exception as exc:
        return _handle_error("Unexpected error", exc, args.verbose, EXIT_UNEXPECTED)


if __name__ == "__main__":
    sys.exit(main())

"""
agentsync CLI - Check command.

Reports drift between canonical rules and managed blocks without writing.
"""

from pathlib import Path

import typer

from agentsync.cli.common import build_service, execute, print_run_result, resolve_project_dir
from agentsync.cli.errors import ExitCode
from agentsync.core.sync import SyncMode


def check(
    targets: list[str] | None = typer.Option(
        None,
        "--target",
        "-t",
        help="Only check this target (repeatable)",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only print the summary line",
    ),
    project_dir: Path | None = typer.Option(
        None,
        "--project-dir",
        help="Project root (defaults to the enclosing project)",
    ),
) -> None:
    """
    Report drift for every managed block without writing anything.

    Exits non-zero if any block is not in sync or any target file failed
    to parse, which makes it suitable for CI.

    Examples:
        agentsync check                 # Check all configured targets
        agentsync check -t claude       # Check CLAUDE.md only
        agentsync check -q              # Summary line only
    """
    root = resolve_project_dir(project_dir)
    service = build_service(root, targets)
    result = execute(service, SyncMode.CHECK)
    print_run_result(result, quiet=quiet)

    if not result.success:
        raise typer.Exit(ExitCode.GENERAL_ERROR)

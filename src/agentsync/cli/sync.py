"""
agentsync CLI - Sync command.

Applies every safe reconciliation action to the target files.
"""

from pathlib import Path

import typer

from agentsync.cli.common import (
    build_service,
    console,
    execute,
    print_run_result,
    resolve_project_dir,
)
from agentsync.cli.errors import ExitCode
from agentsync.core.sync import SyncMode


def sync(
    force: bool = typer.Option(
        False,
        "--force",
        help="Resolve conflicts by taking the canonical side",
    ),
    targets: list[str] | None = typer.Option(
        None,
        "--target",
        "-t",
        help="Only sync this target (repeatable)",
    ),
    project_dir: Path | None = typer.Option(
        None,
        "--project-dir",
        help="Project root (defaults to the enclosing project)",
    ),
) -> None:
    """
    Sync managed blocks from canonical rules into target files.

    New blocks are inserted, upstream changes are applied, and orphaned
    blocks are removed. Locally edited blocks are kept. Blocks changed on
    both sides are left alone unless --force is given.

    Examples:
        agentsync sync                  # Apply all safe changes
        agentsync sync --force          # Also overwrite conflicting blocks
        agentsync sync -t codex         # Sync AGENTS.md only
    """
    root = resolve_project_dir(project_dir)
    service = build_service(root, targets)
    result = execute(service, SyncMode.SYNC, force=force)
    print_run_result(result, show_diff=False)

    if result.conflict_count:
        console.print(
            f"[yellow]⚠[/yellow]  {result.conflict_count} conflict(s) left unresolved. "
            "Review the target files, then re-run with --force to take the canonical side."
        )

    if not result.success:
        raise typer.Exit(ExitCode.GENERAL_ERROR)

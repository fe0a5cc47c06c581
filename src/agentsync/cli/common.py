"""
Shared plumbing for agentsync commands.

Resolves the project root, builds a SyncService from layered configuration,
runs it with interrupt handling, and renders run results.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from agentsync.cli.errors import (
    ExitCode,
    print_config_error,
    print_interrupted,
    print_not_project_root_error,
)
from agentsync.core.config import load_config, load_layered_env
from agentsync.core.sync import (
    AgentSyncError,
    BlockOutcome,
    SyncMode,
    SyncRunResult,
    SyncService,
    Verdict,
)
from agentsync.utils.project import find_project_root

console = Console()

# Verdict -> (icon, color, label)
VERDICT_STYLES: dict[Verdict, tuple[str, str, str]] = {
    Verdict.IN_SYNC: ("✓", "green", "in sync"),
    Verdict.SOURCE_UPDATED: ("↓", "cyan", "source updated"),
    Verdict.LOCALLY_EDITED: ("✎", "yellow", "locally edited"),
    Verdict.CONFLICT: ("⚠", "red", "conflict"),
    Verdict.NEW_BLOCK: ("+", "cyan", "new block"),
    Verdict.ORPHANED_BLOCK: ("-", "magenta", "orphaned"),
}


def resolve_project_dir(project_dir: Path | None) -> Path:
    """
    Return the explicit project dir, or discover it from the cwd.

    The project's layered .env files are loaded once the root is known,
    so settings follow --project-dir rather than the working directory.
    """
    if project_dir is not None:
        if not project_dir.is_dir():
            print_not_project_root_error()
            raise typer.Exit(ExitCode.USER_ERROR)
        root = project_dir.resolve()
    else:
        found = find_project_root()
        if found is None:
            print_not_project_root_error()
            raise typer.Exit(ExitCode.USER_ERROR)
        root = found

    # Precedence: OS env > project .env > user .env
    load_layered_env(project_dir=root)
    return root


def build_service(project_dir: Path, target_names: list[str] | None = None) -> SyncService:
    """Load configuration and rules for ``project_dir`` or exit with USER_ERROR."""
    try:
        config = load_config(project_dir, use_cache=False)
        return SyncService.from_config(config, project_dir, target_names or None)
    except AgentSyncError as e:
        print_config_error(e)
        raise typer.Exit(ExitCode.USER_ERROR)


def execute(service: SyncService, mode: SyncMode, *, force: bool = False) -> SyncRunResult:
    """
    Run the service, turning Ctrl+C into the SIGINT exit code.

    An interrupted run still reports what finished before exiting.
    """
    try:
        result = service.run(mode, force=force)
    except KeyboardInterrupt:
        print_interrupted()
        raise typer.Exit(ExitCode.SIGINT)

    if result.interrupted:
        print_run_result(result, show_diff=False)
        print_interrupted()
        raise typer.Exit(ExitCode.SIGINT)
    return result


def _action_text(mode: SyncMode, block: BlockOutcome) -> str:
    if block.verdict == Verdict.IN_SYNC:
        return ""
    if mode == SyncMode.CHECK:
        if block.verdict == Verdict.LOCALLY_EDITED:
            return "[dim]kept[/dim]"
        return "[dim]needs sync[/dim]"
    if block.blocked:
        return "[red]blocked[/red]"
    if block.forced:
        return "[yellow]forced[/yellow]"
    if block.applied:
        return "[green]applied[/green]"
    return "[dim]kept[/dim]"


def print_run_result(result: SyncRunResult, *, quiet: bool = False, show_diff: bool = True) -> None:
    """Render per-block verdicts, errors, diffs, and the summary line."""
    if not quiet:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Target", style="cyan")
        table.add_column("Block")
        table.add_column("Verdict")
        table.add_column("Action")

        for file in result.files:
            target = f"{file.tool} ({file.path.name})"
            if file.failed:
                table.add_row(target, "", f"[red]✗ {file.error_kind}[/red]", "")
                continue
            if file.skipped:
                table.add_row(target, "", "[dim]skipped[/dim]", "")
                continue
            if not file.blocks:
                table.add_row(target, "[dim]no blocks[/dim]", "", "")
            for block in file.blocks:
                icon, color, label = VERDICT_STYLES[block.verdict]
                table.add_row(
                    target,
                    block.id,
                    f"[{color}]{icon} {label}[/{color}]",
                    _action_text(result.mode, block),
                )
        console.print(table)

        for file in result.failed_files:
            console.print(f"[red]✗[/red] {escape(file.error or '')}")

        if show_diff:
            for file in result.files:
                for block in file.drifted_blocks:
                    if not block.diff:
                        continue
                    syntax = Syntax(block.diff, "diff", theme="monokai", line_numbers=False)
                    console.print(
                        Panel(syntax, title=f"{file.tool}: {block.id}", border_style="cyan")
                    )

    color = "green" if result.success else "red"
    icon = "✓" if result.success else "✗"
    console.print(f"[{color}]{icon}[/{color}] {result.summary()}")

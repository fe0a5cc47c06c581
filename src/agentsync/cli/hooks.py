"""
Git hook commands.

Installs the pre-commit hook that runs ``agentsync check`` before every
commit, so drifted managed content is caught before it is committed.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from agentsync.cli.common import resolve_project_dir
from agentsync.cli.errors import ExitCode, print_error
from agentsync.core.hooks import install_pre_commit_hook
from agentsync.core.sync import HookError

app = typer.Typer(
    name="hooks",
    help="Manage the git pre-commit hook",
    no_args_is_help=True,
)

console = Console()


@app.command(name="install")
def install(
    project_dir: Path | None = typer.Option(
        None,
        "--project-dir",
        help="Project root (defaults to the enclosing project)",
    ),
) -> None:
    """
    Install the agentsync pre-commit hook.

    An existing pre-commit hook is kept; the agentsync section is appended
    to it, or updated in place if it is already there.

    Examples:
        agentsync hooks install
        agentsync hooks install --project-dir ../other
    """
    root = resolve_project_dir(project_dir)

    try:
        result = install_pre_commit_hook(root)
    except HookError as e:
        print_error(
            str(e),
            solution="git init  # the hook lives in the repository's hooks directory",
        )
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    icon = "[green]✓[/green]" if result.changed else "[dim]·[/dim]"
    console.print(f"{icon} {escape(result.message)}")

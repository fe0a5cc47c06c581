"""
agentsync CLI - Targets command.

List the tool target files agentsync knows how to write.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from agentsync.cli.errors import ExitCode, print_config_error
from agentsync.core.config import load_config, load_layered_env
from agentsync.core.sync import ConfigError
from agentsync.core.targets import registry_for_config
from agentsync.utils.project import find_project_root

console = Console()


def targets(
    project_dir: Path | None = typer.Option(
        None,
        "--project-dir",
        help="Project root (defaults to the enclosing project)",
    ),
) -> None:
    """
    List built-in and configured targets.

    Targets enabled in configuration are marked with ✓.

    Examples:
        agentsync targets
    """
    root = (project_dir or find_project_root() or Path.cwd()).resolve()
    load_layered_env(project_dir=root)
    try:
        config = load_config(root, use_cache=False)
        registry = registry_for_config(config)
    except ConfigError as e:
        print_config_error(e)
        raise typer.Exit(ExitCode.USER_ERROR)

    enabled = set(config.targets)

    table = Table(show_header=True, header_style="bold")
    table.add_column("", width=1)
    table.add_column("Name", style="cyan")
    table.add_column("Path")
    table.add_column("Comments", style="dim")
    table.add_column("Description")

    for target in registry.all():
        table.add_row(
            "[green]✓[/green]" if target.name in enabled else "",
            target.name,
            target.path,
            target.comment_style.value,
            target.description,
        )

    console.print(table)

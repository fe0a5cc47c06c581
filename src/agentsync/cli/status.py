"""
agentsync CLI - Status command.

Show the last-synced snapshot recorded for every managed block.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from agentsync.cli.common import resolve_project_dir
from agentsync.cli.errors import ExitCode, print_config_error
from agentsync.core.config import load_config
from agentsync.core.sync import ConfigError, SnapshotStore
from agentsync.core.sync.prefix import to_marker_prefix

console = Console()


def status(
    project_dir: Path | None = typer.Option(
        None,
        "--project-dir",
        help="Project root (defaults to the enclosing project)",
    ),
) -> None:
    """
    Show the snapshot recorded by the last sync for every block.

    Examples:
        agentsync status
    """
    root = resolve_project_dir(project_dir)
    try:
        config = load_config(root, use_cache=False)
    except ConfigError as e:
        print_config_error(e)
        raise typer.Exit(ExitCode.USER_ERROR)

    store = SnapshotStore(root / config.state_file)
    store.load()
    entries = store.all_entries()

    if not entries:
        console.print("[dim]No snapshots recorded yet. Run 'agentsync sync' first.[/dim]")
        return

    table = Table(title=f"Snapshots ({config.state_file})", show_header=True, header_style="bold")
    table.add_column("Target", style="cyan")
    table.add_column("Block")
    table.add_column("Prefix", style="dim")
    table.add_column("Canonical hash")
    table.add_column("Body hash")

    for target_path, snapshots in entries.items():
        for snapshot in snapshots:
            table.add_row(
                target_path,
                snapshot.id,
                to_marker_prefix(snapshot.prefix),
                snapshot.last_canonical_hash,
                snapshot.last_body_hash,
            )

    console.print(table)
    total = sum(len(s) for s in entries.values())
    console.print(f"[dim]{total} block(s) across {len(entries)} target(s)[/dim]")

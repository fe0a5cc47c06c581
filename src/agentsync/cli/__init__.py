"""
agentsync CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys

import typer
from rich.console import Console

from agentsync import __version__
from agentsync.cli import check, hooks, status, sync, targets

# Create the main Typer app
app = typer.Typer(
    name="agentsync",
    help="Keep AI coding assistant instruction files in sync with canonical rules",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for agentsync commands.

    Args:
        debug: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    agentsync - mirror canonical rules into AI tool instruction files.

    Rules from one canonical source are written as managed blocks into
    CLAUDE.md, AGENTS.md and friends. Text outside the blocks is never
    touched, and blocks you edit by hand are never silently overwritten.

    Common Workflows:
        agentsync check              # Report drift (CI friendly)
        agentsync sync               # Apply upstream changes
        agentsync sync --force       # Also resolve conflicts upstream-wins
        agentsync status             # Show last-synced snapshots
        agentsync targets            # List known tool targets
        agentsync hooks install      # Check drift before every commit
    """
    setup_logging(debug)

    # Store debug flag in context for subcommands
    ctx.obj = {"debug": debug}


app.command(name="check")(check.check)
app.command(name="sync")(sync.sync)
app.command(name="status")(status.status)
app.command(name="targets")(targets.targets)
app.add_typer(hooks.app, name="hooks")


@app.command()
def version() -> None:
    """Show agentsync version and exit."""
    console.print(f"agentsync version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]

"""
Standardized error handling and exit codes for the agentsync CLI.

This module provides consistent error messaging with actionable guidance
and standardized exit codes across all CLI commands.
"""

from enum import IntEnum

from rich.console import Console
from rich.markup import escape

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for agentsync CLI operations."""

    SUCCESS = 0
    """All targets in sync, or every safe action applied."""

    GENERAL_ERROR = 1
    """Drift found in check mode, unresolved conflicts, or a target file failed."""

    USER_ERROR = 2
    """User configuration or input error (actionable by user)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Unknown target: cursorr",
        ...     reason="Known targets: claude, codex, gemini, copilot, cursor",
        ...     solution="agentsync targets",
        ... )
    """
    console.print(f"[red]Error:[/red] {escape(problem)}")

    if reason:
        console.print(f"[dim]{escape(reason)}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_config_error(error: Exception) -> None:
    """Print error when configuration or canonical rules cannot be loaded."""
    print_error(
        "Invalid agentsync configuration",
        reason=str(error),
        solution="check .agentsync.json and AGENTSYNC_* environment variables",
    )


def print_not_project_root_error() -> None:
    """Print error when no project root can be found."""
    print_error(
        "Not in an agentsync project directory",
        reason="Could not find .agentsync.json, .agentsync/, or .git/",
        solution="agentsync check --project-dir <path>  # or cd to your project root",
    )


def print_interrupted() -> None:
    """Print notice when a run was interrupted."""
    console.print("[yellow]Interrupted.[/yellow] Files not yet started were left untouched.")


__all__ = [
    "ExitCode",
    "console",
    "print_config_error",
    "print_error",
    "print_interrupted",
    "print_not_project_root_error",
]

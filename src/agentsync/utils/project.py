"""
Project root discovery utilities for agentsync.

The project root is where target files and the snapshot store live. It is
the git work tree root when there is one, otherwise the nearest directory
carrying an agentsync marker.
"""

from pathlib import Path

from .git import get_repo_root

# Markers that indicate a project root, in order of priority
PROJECT_ROOT_MARKERS = [
    ".agentsync.json",  # Project configuration file
    ".agentsync",  # Snapshot store directory
]


def find_project_root(start: Path | None = None) -> Path | None:
    """
    Find the project root directory.

    Searches from the start directory upward for agentsync markers, then
    falls back to the enclosing git repository root.

    Args:
        start: Directory to start searching from. Defaults to current working directory.

    Returns:
        Path to the project root directory, or None if not found.

    Example:
        >>> find_project_root()  # From /project/src/module/
        PosixPath('/project')
    """
    if start is None:
        start = Path.cwd()

    start = start.resolve()

    for current in (start, *start.parents):
        for marker in PROJECT_ROOT_MARKERS:
            if (current / marker).exists():
                return current

    return get_repo_root(start)


def get_project_root(start: Path | None = None) -> Path:
    """
    Get the project root directory, raising an error if not found.

    Raises:
        FileNotFoundError: If no project root can be found.
    """
    root = find_project_root(start)
    if root is None:
        start_dir = start.resolve() if start else Path.cwd()
        raise FileNotFoundError(
            f"Could not find project root from {start_dir}. "
            f"Expected a git repository or one of: {', '.join(PROJECT_ROOT_MARKERS)}"
        )
    return root

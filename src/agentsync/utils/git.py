"""
Git utilities for agentsync.

Supplies the repository root and organization name used to resolve where
canonical rules live. The sync engine treats both as opaque strings.
"""

from __future__ import annotations

import re
from pathlib import Path

from git import InvalidGitRepositoryError, NoSuchPathError, Repo

# Matches git@host:org/repo(.git), ssh://git@host/org/repo and https://host/org/repo
_REMOTE_ORG_PATTERN = re.compile(r"^(?:[^@/]+@[^:/]+:|[a-z+]+://[^/]+/)(?P<org>[^/]+)/[^/]+?/?$")


def _open_repo(path: Path | None) -> Repo | None:
    try:
        return Repo(path or Path.cwd(), search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return None


def get_repo_root(path: Path | None = None) -> Path | None:
    """Get the working tree root of the repository containing ``path``.

    Returns:
        Repository root, or None if ``path`` is not inside a git work tree
    """
    repo = _open_repo(path)
    if repo is None or repo.working_tree_dir is None:
        return None
    return Path(repo.working_tree_dir)


def parse_org_from_url(url: str) -> str | None:
    """Extract the organization (owner) segment from a remote URL.

    Example:
        >>> parse_org_from_url("git@github.com:acme/standards.git")
        'acme'
        >>> parse_org_from_url("https://github.com/acme/standards")
        'acme'
    """
    match = _REMOTE_ORG_PATTERN.match(url.strip())
    if match is None:
        return None
    return match.group("org")


def get_org_name(path: Path | None = None, remote: str = "origin") -> str | None:
    """Get the organization name from a repository's remote URL.

    Returns:
        Organization name, or None if there is no repo, remote, or parsable URL
    """
    repo = _open_repo(path)
    if repo is None:
        return None
    try:
        url = repo.remote(remote).url
    except ValueError:
        # No such remote
        return None
    return parse_org_from_url(url)


def get_hooks_dir(path: Path | None = None) -> Path | None:
    """Get the directory git runs hooks from for the repository containing ``path``.

    Honors ``core.hooksPath`` (relative values are resolved against the work
    tree root) and falls back to ``<git dir>/hooks``.

    Returns:
        Hooks directory, or None if ``path`` is not inside a git repository
    """
    repo = _open_repo(path)
    if repo is None:
        return None
    hooks_path = repo.config_reader().get_value("core", "hooksPath", "")
    if hooks_path:
        configured = Path(str(hooks_path)).expanduser()
        if not configured.is_absolute():
            base = Path(repo.working_tree_dir or repo.git_dir)
            configured = base / configured
        return configured
    return Path(repo.git_dir) / "hooks"

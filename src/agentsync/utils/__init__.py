"""Utility modules for agentsync."""

from .fs import ensure_dir, read_text, write_atomic
from .git import get_org_name, get_repo_root, parse_org_from_url
from .project import find_project_root, get_project_root

__all__ = [
    "ensure_dir",
    "find_project_root",
    "get_org_name",
    "get_project_root",
    "get_repo_root",
    "parse_org_from_url",
    "read_text",
    "write_atomic",
]

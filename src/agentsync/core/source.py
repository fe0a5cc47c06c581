"""
Canonical source resolution.

Turns the configured source into concrete rules and skills directories. A relative
``source.path`` is resolved against the project root; an unset one falls
back to ``~/.config/agentsync/sources/<org>``, where ``<org>`` comes from the
repository's origin remote.
"""

from __future__ import annotations

from pathlib import Path

from agentsync.core.config.loader import get_xdg_config_home
from agentsync.core.config.models import AgentSyncConfig
from agentsync.core.sync.errors import ConfigError
from agentsync.utils.git import get_org_name


def default_source_dir(org: str) -> Path:
    return get_xdg_config_home() / "agentsync" / "sources" / org


def resolve_source_dir(config: AgentSyncConfig, project_dir: Path) -> Path:
    """
    Resolve the canonical source directory.

    Raises:
        ConfigError: If no source is configured and no organization can be
            determined from git.
    """
    if config.source.path:
        source = Path(config.source.path).expanduser()
        return source if source.is_absolute() else (project_dir / source).resolve()

    org = get_org_name(project_dir)
    if org is None:
        raise ConfigError(
            "No canonical source configured and no git organization found. "
            "Set 'source.path' in .agentsync.json or AGENTSYNC_SOURCE."
        )
    return default_source_dir(org)


def resolve_rules_dir(config: AgentSyncConfig, project_dir: Path) -> Path:
    """Resolve the directory holding canonical rule files."""
    return resolve_source_dir(config, project_dir) / config.source.rules_dir


def resolve_skills_dir(config: AgentSyncConfig, project_dir: Path) -> Path:
    """Resolve the directory holding canonical skill directories."""
    return resolve_source_dir(config, project_dir) / config.source.skills_dir


__all__ = [
    "default_source_dir",
    "resolve_rules_dir",
    "resolve_skills_dir",
    "resolve_source_dir",
]

"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

import json
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from agentsync.core.sync.errors import ConfigError

from .models import AgentSyncConfig

# Cache per project directory to avoid reloading config multiple times per session
_config_cache: dict[Path, AgentSyncConfig] = {}


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/agentsync/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "agentsync" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Project directory (defaults to current directory)

    Returns:
        Path to .agentsync.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".agentsync.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`.
    Nested dicts are merged, not replaced.

    Example:
        >>> base = {"a": 1, "b": {"x": 10, "y": 20}}
        >>> override = {"b": {"y": 30, "z": 40}, "c": 3}
        >>> deep_merge(base, override)
        {'a': 1, 'b': {'x': 10, 'y': 30, 'z': 40}, 'c': 3}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        # Config system should be resilient: warn and continue
        print(f"Warning: Failed to parse config at {path}: {e}")
        return None


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        AGENTSYNC_MARKER_PREFIX - overrides marker_prefix
        AGENTSYNC_SOURCE - overrides source.path
        AGENTSYNC_TARGETS - overrides targets (comma-separated)
        AGENTSYNC_WORKERS - overrides workers

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()

    if prefix := os.environ.get("AGENTSYNC_MARKER_PREFIX"):
        result["marker_prefix"] = prefix

    if source := os.environ.get("AGENTSYNC_SOURCE"):
        source_section = dict(result.get("source") or {})
        source_section["path"] = source
        result["source"] = source_section

    if targets := os.environ.get("AGENTSYNC_TARGETS"):
        names = [t.strip() for t in targets.split(",") if t.strip()]
        if names:
            result["targets"] = names
        else:
            print(f"Warning: Invalid AGENTSYNC_TARGETS value '{targets}', ignoring")

    if workers_str := os.environ.get("AGENTSYNC_WORKERS"):
        try:
            workers = int(workers_str)
            if workers < 1:
                print(f"Warning: AGENTSYNC_WORKERS must be >= 1, got {workers}, ignoring")
            else:
                result["workers"] = workers
        except ValueError:
            print(f"Warning: Invalid AGENTSYNC_WORKERS value '{workers_str}', ignoring")

    return result


def get_default_config() -> dict[str, Any]:
    """
    Get hardcoded default configuration.

    Returns:
        Dictionary with default configuration values
    """
    return {
        "marker_prefix": "agentsync",
        "source": {"path": None, "rules_dir": "rules", "skills_dir": "skills"},
        "targets": ["claude", "codex"],
        "state_file": ".agentsync/state.json",
        "workers": 4,
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> AgentSyncConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (AGENTSYNC_*)
        2. Project config (.agentsync.json)
        3. User config (~/.config/agentsync/config.json)
        4. Hardcoded defaults

    Args:
        project_dir: Project directory to load .agentsync.json from (defaults to cwd)
        use_cache: If True, return cached config from a previous load

    Returns:
        Validated AgentSyncConfig instance

    Raises:
        ConfigError: If the merged config fails validation

    Example:
        >>> config = load_config()
        >>> config.marker_prefix
        'agentsync'
    """
    cache_key = (project_dir or Path.cwd()).resolve()

    if use_cache and cache_key in _config_cache:
        return _config_cache[cache_key]

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    try:
        config = AgentSyncConfig(**merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    _config_cache[cache_key] = config

    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    _config_cache.clear()

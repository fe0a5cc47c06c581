"""Project-scoped ``.env`` loading.

``AGENTSYNC_*`` settings may live in ``.env`` files next to the project
they configure. Layers, lowest precedence first:

- User environment file (``$XDG_CONFIG_HOME/agentsync/.env``)
- Project environment files (``<project>/.env``, then ``<project>/.env.local``)
- OS environment (always wins)

Loading is tied to one project root. Commands call ``load_layered_env``
once the root is known (``--project-dir`` or discovery), so a command run
from another directory still sees the project's own ``.env``. Keys set by a
previous load are unloaded first, which keeps repeated in-process runs
(tests, CliRunner) from leaking one project's values into another.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

# Keys this module put into os.environ, with the value it set
_applied: dict[str, str] = {}
_lock = threading.Lock()


def user_env_file() -> Path:
    """Path of the user-level ``.env`` file."""
    xdg_home = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
    return xdg_home / "agentsync" / ".env"


def project_env_files(project_dir: Path) -> list[Path]:
    """Project-level ``.env`` files in load order."""
    return [project_dir / ".env", project_dir / ".env.local"]


def _read_env(path: Path) -> dict[str, str]:
    if not path.is_file():
        return {}
    return {str(k): str(v) for k, v in dotenv_values(path).items() if k and v is not None}


def _unload() -> None:
    for key, value in _applied.items():
        # Leave the key alone if something else changed it since we set it
        if os.environ.get(key) == value:
            del os.environ[key]
    _applied.clear()


def unload_env() -> None:
    """Remove every variable a previous ``load_layered_env`` call set."""
    with _lock:
        _unload()


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> dict[str, str]:
    """Load user and project ``.env`` files into ``os.environ``.

    Args:
        project_dir: Project root whose ``.env`` files are read (defaults to cwd)
        user_env_paths: Explicit user env file paths
        project_env_paths: Explicit project env file paths

    Returns:
        The variables that were applied, after layering.

    Notes:
        Project values override user values. A variable already present in
        the OS environment is never overridden.
    """
    if project_dir is None:
        project_dir = Path.cwd()
    if user_env_paths is None:
        user_env_paths = [user_env_file()]
    if project_env_paths is None:
        project_env_paths = project_env_files(project_dir)

    layered: dict[str, str] = {}
    for path in [*user_env_paths, *project_env_paths]:
        values = _read_env(Path(path))
        if values:
            logger.debug("Loaded %d variable(s) from %s", len(values), path)
        layered.update(values)

    with _lock:
        _unload()
        for key, value in layered.items():
            if key in os.environ:
                continue
            os.environ[key] = value
            _applied[key] = value
        return dict(_applied)


__all__ = ["load_layered_env", "project_env_files", "unload_env", "user_env_file"]

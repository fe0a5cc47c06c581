"""
Pytest configuration and shared fixtures.

Provides a temporary project with a canonical rule source, isolation from
the developer's own agentsync configuration, and small helpers for
building services and rules in tests.
"""

import json
from pathlib import Path
from typing import Any, Callable, Iterator

import pytest

from agentsync.core.config import clear_cache, unload_env
from agentsync.core.skills import CanonicalSkill
from agentsync.core.sync import CanonicalRule, SnapshotStore, SyncService
from agentsync.core.targets import TargetSpec

PREFIX = "agentsync"


# ==============================================================================
# Environment Isolation
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep user config, AGENTSYNC_* variables and the config cache out of tests."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in (
        "AGENTSYNC_MARKER_PREFIX",
        "AGENTSYNC_SOURCE",
        "AGENTSYNC_TARGETS",
        "AGENTSYNC_WORKERS",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_cache()
    yield
    unload_env()
    clear_cache()


# ==============================================================================
# Project Fixtures
# ==============================================================================


def _write_rule(rules_dir: Path, name: str, body: str, **metadata: Any) -> Path:
    """Write a canonical rule file, with frontmatter when metadata is given."""
    path = rules_dir / f"{name}.md"
    path.parent.mkdir(parents=True, exist_ok=True)
    if metadata:
        header = "\n".join(f"{key}: {json.dumps(value)}" for key, value in metadata.items())
        path.write_text(f"---\n{header}\n---\n{body}\n")
    else:
        path.write_text(f"{body}\n")
    return path


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary project with a canonical source.

    Creates:
    - .agentsync.json pointing source.path at ./canon
    - canon/rules/style.md
    """
    project = tmp_path / "project"
    project.mkdir()

    config = {"source": {"path": "canon"}, "targets": ["claude", "codex"]}
    (project / ".agentsync.json").write_text(json.dumps(config, indent=2))

    _write_rule(project / "canon" / "rules", "style", "Use tabs for indentation.")
    return project


@pytest.fixture
def rules_dir(project_dir: Path) -> Path:
    """The canonical rules directory of ``project_dir``."""
    return project_dir / "canon" / "rules"


@pytest.fixture
def write_rule(rules_dir: Path) -> Callable[..., Path]:
    """Write a rule file into the project's rules directory."""

    def writer(name: str, body: str, **metadata: Any) -> Path:
        return _write_rule(rules_dir, name, body, **metadata)

    return writer


@pytest.fixture
def state_path(project_dir: Path) -> Path:
    return project_dir / ".agentsync" / "state.json"


# ==============================================================================
# Service Fixtures
# ==============================================================================


@pytest.fixture
def make_service(project_dir: Path, state_path: Path) -> Callable[..., SyncService]:
    """Factory building a SyncService over ``project_dir`` from in-memory rules."""

    def factory(
        rules: list[CanonicalRule],
        targets: list[TargetSpec] | None = None,
        workers: int = 2,
        skills: list[CanonicalSkill] | None = None,
    ) -> SyncService:
        if targets is None:
            targets = [TargetSpec(name="claude", path="CLAUDE.md")]
        return SyncService(
            project_dir,
            prefix=PREFIX,
            targets=targets,
            rules=rules,
            store=SnapshotStore(state_path),
            skills=skills,
            workers=workers,
        )

    return factory

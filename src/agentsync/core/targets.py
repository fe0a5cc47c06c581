"""
Tool target registry.

Each AI coding tool reads its instructions from its own file and tolerates
a particular comment syntax. A target binds a tool name to that file path
(relative to the project root) and the comment style used for markers.
Targets that support skills also name the directory skills are copied into.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from agentsync.core.sync.errors import ConfigError
from agentsync.core.sync.markers import CommentStyle

if TYPE_CHECKING:
    from agentsync.core.config.models import AgentSyncConfig


class TargetSpec(BaseModel):
    """A tool-specific target file."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Tool identifier, e.g. 'claude'")
    path: str = Field(description="File path relative to the project root")
    comment_style: CommentStyle = Field(default=CommentStyle.HTML)
    description: str = ""
    skills_dir: str | None = Field(
        default=None,
        description="Directory canonical skills are copied into (None = no skills)",
    )

    def resolve(self, project_dir: Path) -> Path:
        return project_dir / self.path

    def resolve_skills(self, project_dir: Path) -> Path | None:
        return project_dir / self.skills_dir if self.skills_dir else None


BUILTIN_TARGETS: tuple[TargetSpec, ...] = (
    TargetSpec(
        name="claude",
        path="CLAUDE.md",
        description="Claude Code",
        skills_dir=".claude/skills",
    ),
    TargetSpec(
        name="codex",
        path="AGENTS.md",
        description="OpenAI Codex and AGENTS.md readers",
        skills_dir=".codex/skills",
    ),
    TargetSpec(name="gemini", path="GEMINI.md", description="Gemini CLI"),
    TargetSpec(
        name="copilot",
        path=".github/copilot-instructions.md",
        description="GitHub Copilot",
    ),
    TargetSpec(
        name="cursor",
        path=".cursorrules",
        comment_style=CommentStyle.HASH,
        description="Cursor (legacy rules file)",
    ),
)


class TargetRegistry:
    """Registry of known targets, keyed by name."""

    def __init__(self) -> None:
        self._targets: dict[str, TargetSpec] = {}

    def register(self, target: TargetSpec) -> None:
        if target.name in self._targets:
            raise ConfigError(f"Target '{target.name}' is already registered")
        self._targets[target.name] = target

    def get(self, name: str) -> TargetSpec | None:
        return self._targets.get(name)

    def names(self) -> list[str]:
        return list(self._targets)

    def all(self) -> list[TargetSpec]:
        return list(self._targets.values())

    def resolve(self, names: list[str]) -> list[TargetSpec]:
        """
        Look up targets by name, preserving order and dropping repeats.

        Raises:
            ConfigError: If any name is unknown, or two targets share a path or
                skills directory.
        """
        unknown = [n for n in names if n not in self._targets]
        if unknown:
            raise ConfigError(
                f"Unknown target(s): {', '.join(unknown)}. "
                f"Known targets: {', '.join(self.names())}"
            )
        resolved: list[TargetSpec] = []
        paths: dict[str, str] = {}
        for name in dict.fromkeys(names):
            target = self._targets[name]
            if target.path in paths:
                raise ConfigError(
                    f"Targets '{paths[target.path]}' and '{name}' both write {target.path}"
                )
            paths[target.path] = name
            if target.skills_dir:
                if target.skills_dir in paths:
                    raise ConfigError(
                        f"Targets '{paths[target.skills_dir]}' and '{name}' both write "
                        f"{target.skills_dir}"
                    )
                paths[target.skills_dir] = name
            resolved.append(target)
        return resolved


def create_registry(extra: list[TargetSpec] | None = None) -> TargetRegistry:
    """Create a registry with the built-in targets plus any configured extras."""
    registry = TargetRegistry()
    for target in BUILTIN_TARGETS:
        registry.register(target)
    for target in extra or []:
        registry.register(target)
    return registry


def registry_for_config(config: AgentSyncConfig) -> TargetRegistry:
    """Create a registry with the built-ins plus the config's custom targets."""
    return create_registry(
        [
            TargetSpec(
                name=t.name,
                path=t.path,
                comment_style=CommentStyle(t.comment_style),
                description=t.description,
                skills_dir=t.skills_dir,
            )
            for t in config.custom_targets
        ]
    )


__all__ = [
    "BUILTIN_TARGETS",
    "TargetRegistry",
    "TargetSpec",
    "create_registry",
    "registry_for_config",
]

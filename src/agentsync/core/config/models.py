"""
Configuration data models for agentsync.

These models define the structure of .agentsync.json and
~/.config/agentsync/config.json files, with validation via Pydantic.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from agentsync.core.sync.prefix import validate_prefix


class SourceConfig(BaseModel):
    """
    Where canonical rules come from.

    ``path`` may be absolute or relative to the project root. When unset,
    the source resolves to ~/.config/agentsync/sources/<org>, with <org>
    taken from the repository's origin remote.
    """
    path: Optional[str] = Field(
        default=None,
        description="Directory of the canonical source"
    )
    rules_dir: str = Field(
        default="rules",
        description="Rules directory inside the canonical source"
    )
    skills_dir: str = Field(
        default="skills",
        description="Skills directory inside the canonical source"
    )


class CustomTargetConfig(BaseModel):
    """An additional tool target declared in configuration."""
    name: str = Field(..., min_length=1, description="Target name")
    path: str = Field(..., min_length=1, description="File path relative to project root")
    comment_style: str = Field(
        default="html",
        pattern="^(html|hash|slash)$",
        description="Marker comment syntax: 'html', 'hash' or 'slash'"
    )
    description: str = ""
    skills_dir: Optional[str] = Field(
        default=None,
        description="Directory skills are copied into, relative to project root"
    )


class AgentSyncConfig(BaseModel):
    """
    Top-level agentsync configuration.

    Loaded from defaults, user config, project config, and env vars.

    Example:
        >>> config = AgentSyncConfig(marker_prefix="acme-rules", targets=["claude"])
        >>> config.workers
        4
    """
    marker_prefix: str = Field(
        default="agentsync",
        description=(
            "Prefix written verbatim into block markers; snapshots and skill "
            "metadata store it with dashes converted to underscores"
        )
    )
    source: SourceConfig = Field(
        default_factory=SourceConfig,
        description="Canonical rule source"
    )
    targets: list[str] = Field(
        default_factory=lambda: ["claude", "codex"],
        description="Target names to keep in sync"
    )
    custom_targets: list[CustomTargetConfig] = Field(
        default_factory=list,
        description="Additional targets beyond the built-ins"
    )
    state_file: str = Field(
        default=".agentsync/state.json",
        description="Snapshot store path relative to the project root"
    )
    workers: int = Field(
        default=4,
        ge=1,
        description="Maximum target files processed in parallel"
    )

    model_config = ConfigDict(
        extra="allow",  # Allow extra fields for forward compatibility
        validate_assignment=True,
    )

    @field_validator('marker_prefix')
    @classmethod
    def validate_marker_prefix(cls, v: str) -> str:
        """Reject prefixes that cannot round-trip between marker and metadata form."""
        return validate_prefix(v)

    @field_validator('targets', mode='before')
    @classmethod
    def validate_targets(cls, v: Union[str, list[str]]) -> list[str]:
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            return [t.strip() for t in v.split(",") if t.strip()]
        return v

    @field_validator('source', mode='before')
    @classmethod
    def validate_source(cls, v: Union[str, dict, SourceConfig]) -> Union[dict, SourceConfig]:
        """Convert a bare source path string to SourceConfig."""
        if isinstance(v, str):
            return {"path": v}
        return v

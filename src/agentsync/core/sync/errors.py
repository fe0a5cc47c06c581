"""
Exceptions raised by the sync engine.

Failures are scoped to a single target file: the orchestrator catches
ParseError and TargetIOError per file and keeps processing siblings.
"""

from __future__ import annotations

from pathlib import Path


class AgentSyncError(Exception):
    """Base exception for agentsync."""

    pass


class ParseError(AgentSyncError):
    """Malformed, unmatched, or duplicate markers in a target file."""

    def __init__(
        self,
        message: str,
        *,
        marker: str = "",
        line: int | None = None,
        path: Path | None = None,
    ) -> None:
        self.message = message
        self.marker = marker
        self.line = line
        self.path = path
        super().__init__(str(self))

    def __str__(self) -> str:
        location = ""
        if self.path is not None:
            location = str(self.path)
        if self.line is not None:
            location = f"{location}:{self.line}" if location else f"line {self.line}"
        text = f"{location}: {self.message}" if location else self.message
        if self.marker:
            text = f"{text} ({self.marker.strip()})"
        return text

    def with_path(self, path: Path) -> ParseError:
        """Return a copy of this error located in ``path``."""
        return ParseError(self.message, marker=self.marker, line=self.line, path=path)


class ConflictError(AgentSyncError):
    """Both canonical content and target body changed since the last sync."""

    def __init__(self, block_id: str, canonical_hash: str | None, body_hash: str | None):
        self.block_id = block_id
        self.canonical_hash = canonical_hash
        self.body_hash = body_hash
        super().__init__(
            f"Conflict in '{block_id}': canonical={canonical_hash} "
            f"target={body_hash}. Re-run with --force to take the canonical side."
        )


class TargetIOError(AgentSyncError):
    """Reading, writing, or renaming a target file failed."""

    def __init__(self, path: Path, operation: str, cause: OSError):
        self.path = path
        self.operation = operation
        self.cause = cause
        super().__init__(f"Failed to {operation} {path}: {cause}")


class RuleLoadError(AgentSyncError):
    """Canonical rules could not be loaded."""

    pass


class ConfigError(AgentSyncError):
    """Configuration is invalid or incomplete."""

    pass


class HashMismatchWarning(UserWarning):
    """
    A marker's stored hash disagrees with the recomputed body hash.

    Never raised: the block is downgraded to LocallyEdited and the message
    is recorded on the block outcome.
    """

    pass


class HookError(AgentSyncError):
    """The git pre-commit hook could not be installed."""

    pass

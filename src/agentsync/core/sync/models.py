"""
Data models for the managed content sync engine.

Defines Pydantic models for canonical rules, parsed managed blocks,
persisted snapshots, reconciliation verdicts, and run results.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from agentsync.core.sync.hashing import content_hash


class SyncMode(str, Enum):
    """Whether a run only reports drift or also applies it."""

    CHECK = "check"
    SYNC = "sync"


class Verdict(str, Enum):
    """Relationship between canonical content, snapshot, and target body."""

    IN_SYNC = "in_sync"
    SOURCE_UPDATED = "source_updated"
    LOCALLY_EDITED = "locally_edited"
    CONFLICT = "conflict"
    NEW_BLOCK = "new_block"
    ORPHANED_BLOCK = "orphaned_block"


class CanonicalRule(BaseModel):
    """
    Upstream-authored content a managed block should mirror.

    Immutable for the duration of a run.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Rule id, unique within the canonical set")
    prefix: str = Field(description="Marker (dash-form) prefix")
    body: str = Field(description="Rule body text")
    source_path: str | None = Field(
        default=None,
        description="Path of the rule file relative to the rules directory",
    )
    targets: list[str] | None = Field(
        default=None,
        description="Target names this rule applies to (None = all targets)",
    )

    @property
    def content_hash(self) -> str:
        return content_hash(self.body)

    def applies_to(self, target_name: str) -> bool:
        return self.targets is None or target_name in self.targets


class ManagedBlock(BaseModel):
    """
    One marker-delimited region found inside a target file.

    ``span`` covers the start-marker line through the end-marker line
    (including its terminator) as offsets into the file's raw text.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    prefix: str
    content_hash: str
    body: str
    span: tuple[int, int] = (0, 0)
    line: int = Field(default=1, description="1-based line of the start marker")

    @property
    def key(self) -> tuple[str, str]:
        return (self.id, self.prefix)

    @property
    def body_hash(self) -> str:
        """Hash recomputed from the body, independent of the marker field."""
        return content_hash(self.body)

    @property
    def hash_matches_body(self) -> bool:
        return self.content_hash == self.body_hash


class TargetFile(BaseModel):
    """A target file's raw text with its managed blocks in on-disk order."""

    path: Path
    tool: str
    raw_text: str = ""
    blocks: list[ManagedBlock] = Field(default_factory=list)
    exists: bool = True

    def find_block(self, block_id: str, prefix: str) -> ManagedBlock | None:
        for block in self.blocks:
            if block.id == block_id and block.prefix == prefix:
                return block
        return None


class SyncSnapshot(BaseModel):
    """
    Last-synced hash pair for one block of one target file.

    ``prefix`` is stored in metadata (underscore) form.
    """

    id: str
    prefix: str
    last_canonical_hash: str
    last_body_hash: str


class BlockOutcome(BaseModel):
    """Verdict and resulting action for one block id in one target file."""

    id: str
    prefix: str
    verdict: Verdict
    canonical_hash: str | None = None
    body_hash: str | None = None
    snapshot_canonical_hash: str | None = None
    snapshot_body_hash: str | None = None
    applied: bool = Field(
        default=False,
        description="Whether sync mode changed the target for this block",
    )
    forced: bool = False
    blocked: bool = Field(
        default=False,
        description="Conflict left unresolved (no force)",
    )
    diff: str = ""
    warnings: list[str] = Field(default_factory=list)

    @property
    def drifted(self) -> bool:
        return self.verdict != Verdict.IN_SYNC


class FileOutcome(BaseModel):
    """Aggregate outcome for one target file."""

    path: Path
    tool: str
    blocks: list[BlockOutcome] = Field(default_factory=list)
    written: bool = False
    error: str | None = None
    error_kind: str | None = Field(
        default=None,
        description="Error class name (ParseError, TargetIOError) when the file failed",
    )
    skipped: bool = Field(
        default=False,
        description="File was not started because a stop was requested",
    )

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def drifted_blocks(self) -> list[BlockOutcome]:
        return [b for b in self.blocks if b.drifted]

    @property
    def unresolved_conflicts(self) -> list[BlockOutcome]:
        return [b for b in self.blocks if b.blocked]


class SyncRunResult(BaseModel):
    """Result of a check or sync run across every target file."""

    mode: SyncMode
    files: list[FileOutcome] = Field(default_factory=list)
    interrupted: bool = Field(
        default=False,
        description="The run was interrupted; files not started are marked skipped",
    )

    @property
    def drift_count(self) -> int:
        return sum(len(f.drifted_blocks) for f in self.files)

    @property
    def conflict_count(self) -> int:
        return sum(len(f.unresolved_conflicts) for f in self.files)

    @property
    def failed_files(self) -> list[FileOutcome]:
        return [f for f in self.files if f.failed]

    @property
    def success(self) -> bool:
        """
        Overall success signal.

        Check mode fails on any drift; sync mode fails only on unresolved
        conflicts or per-file errors. An interrupted run never succeeds.
        """
        if self.interrupted or self.failed_files:
            return False
        if self.mode == SyncMode.CHECK:
            return self.drift_count == 0
        return self.conflict_count == 0

    def summary(self) -> str:
        """Generate a human-readable summary of the run."""
        parts = [f"{len(self.files)} file(s) {self.mode.value}ed"]
        if self.mode == SyncMode.SYNC:
            written = sum(1 for f in self.files if f.written)
            parts.append(f"{written} written")
        if self.drift_count:
            parts.append(f"{self.drift_count} block(s) drifted")
        if self.conflict_count:
            parts.append(f"{self.conflict_count} unresolved conflict(s)")
        if self.failed_files:
            parts.append(f"{len(self.failed_files)} failed")
        skipped = sum(1 for f in self.files if f.skipped)
        if skipped:
            parts.append(f"{skipped} skipped")
        if self.interrupted:
            parts.append("interrupted")
        return ", ".join(parts)

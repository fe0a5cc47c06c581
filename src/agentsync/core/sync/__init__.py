"""
Managed content synchronization engine.

Injects and updates machine-owned blocks inside otherwise human-edited tool
files (CLAUDE.md, AGENTS.md, ...), detects drift on either side since the
last sync, and decides per block whether to overwrite, keep, or flag a
conflict. Human edits are never silently discarded and upstream changes are
never silently dropped.

Example:
    >>> from agentsync.core.sync import SyncService
    >>> service = SyncService.from_config(load_config(), Path("."))
    >>> result = service.sync()
    >>> for file in result.files:
    ...     print(file.path, [b.verdict for b in file.blocks])
"""

from agentsync.core.sync.errors import (
    AgentSyncError,
    ConfigError,
    ConflictError,
    HashMismatchWarning,
    HookError,
    ParseError,
    RuleLoadError,
    TargetIOError,
)
from agentsync.core.sync.models import (
    BlockOutcome,
    CanonicalRule,
    FileOutcome,
    ManagedBlock,
    SyncMode,
    SyncRunResult,
    SyncSnapshot,
    TargetFile,
    Verdict,
)
from agentsync.core.sync.service import SyncService
from agentsync.core.sync.snapshots import SnapshotStore

__all__ = [
    "AgentSyncError",
    "BlockOutcome",
    "CanonicalRule",
    "ConfigError",
    "ConflictError",
    "FileOutcome",
    "HashMismatchWarning",
    "HookError",
    "ManagedBlock",
    "ParseError",
    "RuleLoadError",
    "SnapshotStore",
    "SyncMode",
    "SyncRunResult",
    "SyncService",
    "SyncSnapshot",
    "TargetFile",
    "TargetIOError",
    "Verdict",
]

"""
Persistent snapshot store.

Stores the last-synced hash pair for every (target path, block id, prefix)
in a single JSON file (default ``.agentsync/state.json``):

    {
      "version": 1,
      "targets": {
        "CLAUDE.md": [
          {"id": "style", "prefix": "acme_rules",
           "last_canonical_hash": "sha256:...", "last_body_hash": "sha256:..."}
        ]
      }
    }

Prefixes are stored in metadata (underscore) form. The store is shared by
all target workers of a run; ``commit`` is serialized with a lock and
persists atomically, and is only called after a target's own rename has
succeeded.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from agentsync.core.sync.models import SyncSnapshot
from agentsync.core.sync.prefix import to_metadata_prefix
from agentsync.utils.fs import read_text, write_atomic

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class SnapshotFile(BaseModel):
    """On-disk layout of the snapshot store."""

    version: int = STATE_VERSION
    targets: dict[str, list[SyncSnapshot]] = Field(default_factory=dict)


class SnapshotStore:
    """
    Load, query, and atomically update persisted snapshots.

    Example:
        >>> store = SnapshotStore(Path(".agentsync/state.json"))
        >>> store.load()
        >>> store.entries_for("CLAUDE.md", "acme-rules")
        {}
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._data = SnapshotFile()
        self._lock = threading.Lock()

    def load(self) -> None:
        """Load the store from disk; a missing or unreadable file yields an empty store."""
        text = read_text(self.path)
        if text is None:
            self._data = SnapshotFile()
            return
        try:
            self._data = SnapshotFile.model_validate_json(text)
        except (json.JSONDecodeError, ValidationError, ValueError) as e:
            logger.warning(
                "Failed to load snapshot store %s (%s); falling back to marker hashes",
                self.path,
                e,
            )
            self._data = SnapshotFile()

    def entries_for(self, target_key: str, prefix: str) -> dict[str, SyncSnapshot]:
        """
        Snapshot entries for one target and prefix, keyed by block id.

        Args:
            target_key: Target path relative to the project root (posix).
            prefix: Prefix in either form.
        """
        metadata_prefix = to_metadata_prefix(prefix)
        with self._lock:
            entries = list(self._data.targets.get(target_key, []))
        return {e.id: e for e in entries if e.prefix == metadata_prefix}

    def all_entries(self) -> dict[str, list[SyncSnapshot]]:
        with self._lock:
            return {key: list(entries) for key, entries in self._data.targets.items()}

    def commit(self, target_key: str, prefix: str, entries: list[SyncSnapshot]) -> None:
        """
        Replace all entries for (target, prefix) and persist the store.

        Entries recorded under other prefixes for the same target are kept.

        Raises:
            OSError: If persisting fails; the in-memory store is rolled back.
        """
        metadata_prefix = to_metadata_prefix(prefix)
        with self._lock:
            previous = self._data.targets.get(target_key)
            kept = [e for e in previous or [] if e.prefix != metadata_prefix]
            merged = kept + list(entries)
            if merged:
                self._data.targets[target_key] = merged
            else:
                self._data.targets.pop(target_key, None)
            try:
                self._save()
            except OSError:
                if previous is None:
                    self._data.targets.pop(target_key, None)
                else:
                    self._data.targets[target_key] = previous
                raise

    def _save(self) -> None:
        ordered = SnapshotFile(
            version=STATE_VERSION,
            targets={key: self._data.targets[key] for key in sorted(self._data.targets)},
        )
        write_atomic(self.path, ordered.model_dump_json(indent=2) + "\n")
        logger.debug("Saved snapshot store %s", self.path)


__all__ = ["STATE_VERSION", "SnapshotFile", "SnapshotStore"]

"""
Drift reconciliation for managed blocks.

Each block id in a target file is classified independently by comparing
three things: the current canonical rule, the last-synced snapshot, and the
body currently in the target file.

    canonical vs snapshot | body vs snapshot | verdict
    ----------------------+------------------+----------------
    equal                 | equal            | IN_SYNC
    equal                 | differ           | LOCALLY_EDITED
    differ                | equal            | SOURCE_UPDATED
    differ                | differ           | CONFLICT
    no snapshot, no block |                  | NEW_BLOCK
    rule removed          |                  | ORPHANED_BLOCK

Without a snapshot, the hash stored in the block's start marker serves as
the baseline for both sides, since it records what was last written.

Conflicts never resolve on their own. ``decide_action`` raises ConflictError
for them unless the caller passes ``force``.

Everything here is pure: no I/O, no shared state.
"""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass
from enum import Enum

from agentsync.core.sync.errors import ConflictError, HashMismatchWarning
from agentsync.core.sync.hashing import normalize_body
from agentsync.core.sync.models import (
    BlockOutcome,
    CanonicalRule,
    ManagedBlock,
    SyncSnapshot,
    TargetFile,
    Verdict,
)
from agentsync.core.sync.prefix import to_metadata_prefix

logger = logging.getLogger(__name__)


class Action(str, Enum):
    """What sync mode does to the target for one block."""

    KEEP = "keep"
    WRITE = "write"
    INSERT = "insert"
    REMOVE = "remove"


@dataclass(frozen=True)
class Pairing:
    """The three inputs reconciled for one block id."""

    block_id: str
    prefix: str
    rule: CanonicalRule | None
    block: ManagedBlock | None
    snapshot: SyncSnapshot | None


def pair_blocks(
    target: TargetFile,
    rules: list[CanonicalRule],
    snapshots: dict[str, SyncSnapshot],
    prefix: str,
) -> list[Pairing]:
    """
    Pair every canonical rule and every existing block for one target.

    Rules come first in canonical order, followed by blocks that no rule
    claims (orphans) in on-disk order. Blocks with a different prefix
    belong to another source and are left out.

    Args:
        target: Parsed target file.
        rules: Canonical rules applicable to this target, in declared order.
        snapshots: Snapshot entries for this target keyed by block id.
        prefix: Marker (dash-form) prefix this run manages.
    """
    pairings: list[Pairing] = []
    rule_ids = set()

    for rule in rules:
        rule_ids.add(rule.id)
        pairings.append(
            Pairing(
                block_id=rule.id,
                prefix=prefix,
                rule=rule,
                block=target.find_block(rule.id, prefix),
                snapshot=snapshots.get(rule.id),
            )
        )

    for block in target.blocks:
        if block.prefix != prefix or block.id in rule_ids:
            continue
        pairings.append(
            Pairing(
                block_id=block.id,
                prefix=prefix,
                rule=None,
                block=block,
                snapshot=snapshots.get(block.id),
            )
        )

    return pairings


def _diff(pairing: Pairing) -> str:
    before = normalize_body(pairing.block.body) if pairing.block else ""
    after = normalize_body(pairing.rule.body) if pairing.rule else ""
    if before == after:
        return ""
    lines = difflib.unified_diff(
        before.splitlines(keepends=False),
        after.splitlines(keepends=False),
        fromfile=f"{pairing.block_id} (target)",
        tofile=f"{pairing.block_id} (canonical)",
        lineterm="",
    )
    return "\n".join(lines)


def classify(pairing: Pairing) -> BlockOutcome:
    """Classify one pairing into a verdict."""
    rule, block, snapshot = pairing.rule, pairing.block, pairing.snapshot
    canonical_hash = rule.content_hash if rule else None
    body_hash = block.body_hash if block else None
    warnings: list[str] = []

    def outcome(verdict: Verdict) -> BlockOutcome:
        return BlockOutcome(
            id=pairing.block_id,
            prefix=pairing.prefix,
            verdict=verdict,
            canonical_hash=canonical_hash,
            body_hash=body_hash,
            snapshot_canonical_hash=snapshot.last_canonical_hash if snapshot else None,
            snapshot_body_hash=snapshot.last_body_hash if snapshot else None,
            diff="" if verdict == Verdict.IN_SYNC else _diff(pairing),
            warnings=warnings,
        )

    if block is None:
        if rule is None:
            raise ValueError(f"Nothing to reconcile for block '{pairing.block_id}'")
        return outcome(Verdict.NEW_BLOCK)

    tampered = not block.hash_matches_body
    if tampered:
        message = (
            f"Block '{block.id}' marker hash {block.content_hash} does not match "
            f"its body ({body_hash}); treating the body as locally edited"
        )
        logger.warning(message)
        warnings.append(f"{HashMismatchWarning.__name__}: {message}")

    if snapshot is not None:
        baseline_canonical = snapshot.last_canonical_hash
        baseline_body = snapshot.last_body_hash
    else:
        baseline_canonical = baseline_body = block.content_hash

    assert body_hash is not None
    return outcome(
        judge(canonical_hash, body_hash, baseline_canonical, baseline_body, tampered=tampered)
    )


def judge(
    canonical_hash: str | None,
    body_hash: str,
    baseline_canonical: str,
    baseline_body: str,
    *,
    tampered: bool = False,
) -> Verdict:
    """
    Apply the verdict table to an item that exists in the target.

    ``canonical_hash`` is None when the item was removed upstream. A
    ``tampered`` item counts as changed and never short-circuits to IN_SYNC.
    """
    body_changed = tampered or body_hash != baseline_body

    if canonical_hash is None:
        return Verdict.CONFLICT if body_changed else Verdict.ORPHANED_BLOCK

    if not tampered and body_hash == canonical_hash:
        return Verdict.IN_SYNC

    source_changed = canonical_hash != baseline_canonical
    if source_changed and body_changed:
        return Verdict.CONFLICT
    if source_changed:
        return Verdict.SOURCE_UPDATED
    if body_changed:
        return Verdict.LOCALLY_EDITED
    return Verdict.IN_SYNC


def decide_action(pairing: Pairing, outcome: BlockOutcome, *, force: bool = False) -> Action:
    """
    Map a verdict to the action sync mode takes.

    Raises:
        ConflictError: If the verdict is CONFLICT and ``force`` is not set.
    """
    return action_for(outcome, has_canonical=pairing.rule is not None, force=force)


def action_for(outcome: BlockOutcome, *, has_canonical: bool, force: bool = False) -> Action:
    """
    Map a verdict to an action for an item with or without a canonical side.

    Raises:
        ConflictError: If the verdict is CONFLICT and ``force`` is not set.
    """
    verdict = outcome.verdict
    if verdict == Verdict.CONFLICT:
        if not force:
            raise ConflictError(outcome.id, outcome.canonical_hash, outcome.body_hash)
        return Action.WRITE if has_canonical else Action.REMOVE
    if verdict == Verdict.SOURCE_UPDATED:
        return Action.WRITE
    if verdict == Verdict.NEW_BLOCK:
        return Action.INSERT
    if verdict == Verdict.ORPHANED_BLOCK:
        return Action.REMOVE
    return Action.KEEP


def next_snapshot(pairing: Pairing, outcome: BlockOutcome, action: Action) -> SyncSnapshot | None:
    """
    Snapshot to record for a block once its target file is persisted.

    Returns None when the entry should be dropped.
    """
    metadata_prefix = to_metadata_prefix(pairing.prefix)

    if action == Action.REMOVE:
        return None

    if action in (Action.WRITE, Action.INSERT):
        assert pairing.rule is not None
        return SyncSnapshot(
            id=pairing.block_id,
            prefix=metadata_prefix,
            last_canonical_hash=pairing.rule.content_hash,
            last_body_hash=pairing.rule.content_hash,
        )

    if outcome.verdict == Verdict.IN_SYNC:
        assert outcome.canonical_hash is not None and outcome.body_hash is not None
        return SyncSnapshot(
            id=pairing.block_id,
            prefix=metadata_prefix,
            last_canonical_hash=outcome.canonical_hash,
            last_body_hash=outcome.body_hash,
        )

    # Kept as-is (locally edited or unresolved conflict): the baseline must not move.
    if pairing.snapshot is not None:
        return pairing.snapshot
    if pairing.block is not None:
        return SyncSnapshot(
            id=pairing.block_id,
            prefix=metadata_prefix,
            last_canonical_hash=pairing.block.content_hash,
            last_body_hash=pairing.block.content_hash,
        )
    return None


__all__ = [
    "Action",
    "Pairing",
    "action_for",
    "classify",
    "decide_action",
    "judge",
    "next_snapshot",
    "pair_blocks",
]

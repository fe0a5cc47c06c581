"""
Canonical skill sync.

A skill is a directory holding a ``SKILL.md`` (YAML frontmatter with
``name`` and ``description``) and any supporting files. Skills from the
canonical source's skills directory are copied into every target that has
a skills directory, e.g. ``.claude/skills/<name>/``.

The copied SKILL.md carries managed metadata under its ``metadata`` key,
with keys in metadata (underscore) prefix form:

    metadata:
      acme_rules_content_hash: sha256:0c1d2e3f4a5b
      acme_rules_managed: 'true'

The content hash covers the frontmatter without the managed keys, the
SKILL.md body, and every supporting file. Like a block's marker hash it
records what was last written, so hand edits are detected even without a
snapshot. Skills are reconciled with the same verdict table as managed
blocks; skill directories without managed metadata for this prefix are
never touched unless a canonical skill of the same name is forced over them.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import frontmatter  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict

from agentsync.core.sync.errors import RuleLoadError
from agentsync.core.sync.hashing import content_hash, normalize_body
from agentsync.core.sync.models import BlockOutcome, SyncSnapshot, Verdict
from agentsync.core.sync.prefix import to_metadata_prefix
from agentsync.core.sync.reconciler import Action, judge

logger = logging.getLogger(__name__)

SKILL_FILE = "SKILL.md"
SKILL_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class CanonicalSkill(BaseModel):
    """A skill directory in the canonical source."""

    model_config = ConfigDict(frozen=True)

    name: str
    source_dir: Path
    content_hash: str


@dataclass(frozen=True)
class SkillPairing:
    """Canonical skill, target directory, and snapshot for one skill name."""

    name: str
    skill: CanonicalSkill | None
    target_dir: Path | None
    stored_hash: str | None
    body_hash: str | None
    snapshot: SyncSnapshot | None


def managed_keys(prefix: str) -> tuple[str, str]:
    """Return the (managed flag, content hash) metadata keys for ``prefix``."""
    metadata_prefix = to_metadata_prefix(prefix)
    return f"{metadata_prefix}_managed", f"{metadata_prefix}_content_hash"


def _strip_managed(metadata: dict[str, Any], prefix: str) -> dict[str, Any]:
    result = copy.deepcopy(metadata)
    nested = result.get("metadata")
    if isinstance(nested, dict):
        for key in managed_keys(prefix):
            nested.pop(key, None)
        if not nested:
            del result["metadata"]
    return result


def _load_skill_md(path: Path) -> frontmatter.Post:
    try:
        return frontmatter.load(path)
    except Exception as e:
        raise RuleLoadError(f"Failed to read skill file {path}: {e}") from e


def _supporting_files(skill_dir: Path) -> list[Path]:
    top_level = skill_dir / SKILL_FILE
    return sorted(p for p in skill_dir.rglob("*") if p.is_file() and p != top_level)


def skill_hash(skill_dir: Path, prefix: str) -> str:
    """
    Fingerprint a skill directory, ignoring its managed metadata.

    Raises:
        RuleLoadError: If SKILL.md cannot be parsed.
    """
    post = _load_skill_md(skill_dir / SKILL_FILE)
    parts = [
        json.dumps(_strip_managed(post.metadata, prefix), sort_keys=True, default=str),
        normalize_body(post.content),
    ]
    for path in _supporting_files(skill_dir):
        digest = hashlib.sha256(path.read_bytes()).hexdigest()
        parts.append(f"{path.relative_to(skill_dir).as_posix()} {digest}")
    return content_hash("\n".join(parts))


def read_stored_hash(skill_dir: Path, prefix: str) -> str | None:
    """Return the content hash recorded in a managed SKILL.md, or None if unmanaged."""
    skill_md = skill_dir / SKILL_FILE
    if not skill_md.is_file():
        return None
    nested = _load_skill_md(skill_md).metadata.get("metadata")
    if not isinstance(nested, dict):
        return None
    managed_key, hash_key = managed_keys(prefix)
    if str(nested.get(managed_key, "")).lower() != "true":
        return None
    stored = nested.get(hash_key)
    return str(stored) if stored else None


def load_skills(skills_dir: Path, prefix: str) -> list[CanonicalSkill]:
    """
    Load every skill under ``skills_dir``, sorted by name.

    A missing directory yields no skills. Hidden directories are skipped.

    Raises:
        RuleLoadError: If a skill has no SKILL.md, lacks ``name`` or
            ``description``, or has a non-mapping ``metadata`` field.
    """
    if not skills_dir.is_dir():
        logger.debug("Skills directory %s does not exist", skills_dir)
        return []

    skills: list[CanonicalSkill] = []
    for entry in sorted(skills_dir.iterdir()):
        if not entry.is_dir() or entry.name.startswith("."):
            continue
        if not SKILL_NAME_PATTERN.match(entry.name):
            raise RuleLoadError(f"Invalid skill directory name {entry.name!r}")

        skill_md = entry / SKILL_FILE
        if not skill_md.is_file():
            raise RuleLoadError(f"Skill '{entry.name}' has no {SKILL_FILE}")

        metadata = _load_skill_md(skill_md).metadata
        missing = [key for key in ("name", "description") if not metadata.get(key)]
        if missing:
            raise RuleLoadError(
                f"Skill '{entry.name}' {SKILL_FILE} is missing required field(s): "
                f"{', '.join(missing)}"
            )
        if "metadata" in metadata and not isinstance(metadata["metadata"], dict):
            raise RuleLoadError(f"Skill '{entry.name}': 'metadata' must be a mapping")

        skills.append(
            CanonicalSkill(
                name=entry.name,
                source_dir=entry,
                content_hash=skill_hash(entry, prefix),
            )
        )

    logger.debug("Loaded %d skill(s) from %s", len(skills), skills_dir)
    return skills


def pair_skills(
    target_skills_dir: Path,
    skills: list[CanonicalSkill],
    snapshots: dict[str, SyncSnapshot],
    prefix: str,
) -> list[SkillPairing]:
    """
    Pair canonical skills with the skill directories present in a target.

    Canonical skills come first, followed by managed directories no
    canonical skill claims (orphans). Unmanaged directories are left out.
    """

    def existing(name: str) -> tuple[Path | None, str | None, str | None]:
        skill_dir = target_skills_dir / name
        if not (skill_dir / SKILL_FILE).is_file():
            return None, None, None
        return skill_dir, read_stored_hash(skill_dir, prefix), skill_hash(skill_dir, prefix)

    pairings: list[SkillPairing] = []
    names = set()
    for skill in skills:
        names.add(skill.name)
        target_dir, stored, body = existing(skill.name)
        pairings.append(
            SkillPairing(
                name=skill.name,
                skill=skill,
                target_dir=target_dir,
                stored_hash=stored,
                body_hash=body,
                snapshot=snapshots.get(skill.name),
            )
        )

    if target_skills_dir.is_dir():
        for entry in sorted(target_skills_dir.iterdir()):
            if entry.name in names or not entry.is_dir():
                continue
            target_dir, stored, body = existing(entry.name)
            if target_dir is None or stored is None:
                continue
            pairings.append(
                SkillPairing(
                    name=entry.name,
                    skill=None,
                    target_dir=target_dir,
                    stored_hash=stored,
                    body_hash=body,
                    snapshot=snapshots.get(entry.name),
                )
            )

    return pairings


def classify_skill(pairing: SkillPairing, prefix: str) -> BlockOutcome:
    """Classify one skill pairing with the managed block verdict table."""
    snapshot = pairing.snapshot
    canonical_hash = pairing.skill.content_hash if pairing.skill else None
    warnings: list[str] = []

    def outcome(verdict: Verdict) -> BlockOutcome:
        return BlockOutcome(
            id=pairing.name,
            prefix=prefix,
            verdict=verdict,
            canonical_hash=canonical_hash,
            body_hash=pairing.body_hash,
            snapshot_canonical_hash=snapshot.last_canonical_hash if snapshot else None,
            snapshot_body_hash=snapshot.last_body_hash if snapshot else None,
            warnings=warnings,
        )

    if pairing.target_dir is None or pairing.body_hash is None:
        return outcome(Verdict.NEW_BLOCK)

    unmanaged = pairing.stored_hash is None
    if unmanaged:
        warnings.append(f"Skill '{pairing.name}' exists in the target but is not managed")

    if snapshot is not None:
        baseline_canonical = snapshot.last_canonical_hash
        baseline_body = snapshot.last_body_hash
    elif pairing.stored_hash is not None:
        baseline_canonical = baseline_body = pairing.stored_hash
    else:
        # Unknown provenance: someone else's skill under the same name
        return outcome(Verdict.CONFLICT)

    verdict = judge(
        canonical_hash,
        pairing.body_hash,
        baseline_canonical,
        baseline_body,
        tampered=unmanaged,
    )
    return outcome(verdict)


def next_skill_snapshot(
    pairing: SkillPairing, outcome: BlockOutcome, action: Action, prefix: str
) -> SyncSnapshot | None:
    """Snapshot to record for a skill once its directory is persisted."""
    metadata_prefix = to_metadata_prefix(prefix)

    if action == Action.REMOVE:
        return None
    if action in (Action.WRITE, Action.INSERT):
        assert pairing.skill is not None
        return SyncSnapshot(
            id=pairing.name,
            prefix=metadata_prefix,
            last_canonical_hash=pairing.skill.content_hash,
            last_body_hash=pairing.skill.content_hash,
        )
    if outcome.verdict == Verdict.IN_SYNC:
        assert outcome.canonical_hash is not None and outcome.body_hash is not None
        return SyncSnapshot(
            id=pairing.name,
            prefix=metadata_prefix,
            last_canonical_hash=outcome.canonical_hash,
            last_body_hash=outcome.body_hash,
        )
    if pairing.snapshot is not None:
        return pairing.snapshot
    if pairing.stored_hash is not None:
        return SyncSnapshot(
            id=pairing.name,
            prefix=metadata_prefix,
            last_canonical_hash=pairing.stored_hash,
            last_body_hash=pairing.stored_hash,
        )
    return None


def render_skill_md(skill: CanonicalSkill, prefix: str) -> str:
    """Return the canonical SKILL.md text with managed metadata added."""
    post = _load_skill_md(skill.source_dir / SKILL_FILE)
    metadata = _strip_managed(post.metadata, prefix)
    nested = dict(metadata.get("metadata") or {})
    managed_key, hash_key = managed_keys(prefix)
    nested[managed_key] = "true"
    nested[hash_key] = skill.content_hash
    metadata["metadata"] = nested
    post.metadata = metadata
    return frontmatter.dumps(post) + "\n"


def write_skill(skill: CanonicalSkill, dest: Path, prefix: str) -> None:
    """
    Replace ``dest`` with a managed copy of ``skill``.

    The copy is staged in a sibling temporary directory and swapped in with
    renames, so ``dest`` is either the old or the new skill on failure.

    Raises:
        OSError: If staging or swapping fails.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".tmp"))
    backup: Path | None = None

    def ignore(directory: str, names: list[str]) -> list[str]:
        # Only the top-level SKILL.md is rewritten; nested ones are copied as-is
        return [SKILL_FILE] if Path(directory) == skill.source_dir else []

    try:
        staged = staging / dest.name
        shutil.copytree(skill.source_dir, staged, symlinks=False, ignore=ignore)
        with (staged / SKILL_FILE).open("w", encoding="utf-8") as f:
            f.write(render_skill_md(skill, prefix))

        if dest.exists():
            backup = staging / f"{dest.name}.old"
            os.replace(dest, backup)
        try:
            os.replace(staged, dest)
        except OSError:
            if backup is not None:
                os.replace(backup, dest)
                backup = None
            raise
    finally:
        shutil.rmtree(staging, ignore_errors=True)


def remove_skill(skill_dir: Path) -> None:
    """Delete a managed skill directory."""
    shutil.rmtree(skill_dir)


__all__ = [
    "SKILL_FILE",
    "CanonicalSkill",
    "SkillPairing",
    "classify_skill",
    "load_skills",
    "managed_keys",
    "next_skill_snapshot",
    "pair_skills",
    "read_stored_hash",
    "remove_skill",
    "render_skill_md",
    "skill_hash",
    "write_skill",
]

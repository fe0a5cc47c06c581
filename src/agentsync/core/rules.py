"""
Canonical rule loading.

Rules are markdown files under the canonical source's rules directory,
optionally carrying YAML frontmatter:

    ---
    id: style
    order: 10
    targets: [claude, codex]
    ---
    Use tabs for indentation.

``id`` defaults to the path relative to the rules directory without its
suffix (``security/api-auth``). Rules are returned in canonical-declared
order: by ``order`` then by relative path.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import frontmatter  # type: ignore[import-untyped]

from agentsync.core.sync.errors import RuleLoadError
from agentsync.core.sync.models import CanonicalRule

logger = logging.getLogger(__name__)

RULE_ID_PATTERN = re.compile(r"^[A-Za-z0-9._/-]+$")


def _rule_targets(value: Any, path: Path) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    if isinstance(value, list) and all(isinstance(t, str) for t in value):
        return list(value)
    raise RuleLoadError(f"{path}: 'targets' must be a list of target names")


def load_rule(path: Path, rules_dir: Path, prefix: str) -> tuple[int, CanonicalRule]:
    """
    Load one rule file.

    Returns:
        (order, rule) so callers can sort by declared order.

    Raises:
        RuleLoadError: If the file cannot be read or its frontmatter is invalid.
    """
    relative = path.relative_to(rules_dir).as_posix()
    try:
        post = frontmatter.load(path)
    except Exception as e:
        raise RuleLoadError(f"Failed to read rule {relative}: {e}") from e

    rule_id = str(post.metadata.get("id") or relative.rsplit(".", 1)[0])
    if not RULE_ID_PATTERN.match(rule_id):
        raise RuleLoadError(
            f"Invalid rule id {rule_id!r} in {relative}: "
            "use letters, digits, '.', '_', '/' and '-'"
        )

    order = post.metadata.get("order", 0)
    if not isinstance(order, int) or isinstance(order, bool):
        raise RuleLoadError(f"{relative}: 'order' must be an integer")

    rule = CanonicalRule(
        id=rule_id,
        prefix=prefix,
        body=post.content,
        source_path=relative,
        targets=_rule_targets(post.metadata.get("targets"), path),
    )
    return order, rule


def load_rules(rules_dir: Path, prefix: str) -> list[CanonicalRule]:
    """
    Load every ``*.md`` rule under ``rules_dir`` in canonical order.

    A missing directory yields no rules.

    Raises:
        RuleLoadError: On unreadable files, invalid frontmatter, or duplicate ids.
    """
    if not rules_dir.is_dir():
        logger.debug("Rules directory %s does not exist", rules_dir)
        return []

    loaded: list[tuple[int, str, CanonicalRule]] = []
    seen: dict[str, str] = {}
    for path in sorted(rules_dir.rglob("*.md")):
        if not path.is_file():
            continue
        order, rule = load_rule(path, rules_dir, prefix)
        assert rule.source_path is not None
        if rule.id in seen:
            raise RuleLoadError(
                f"Duplicate rule id '{rule.id}' in {seen[rule.id]} and {rule.source_path}"
            )
        seen[rule.id] = rule.source_path
        loaded.append((order, rule.source_path, rule))

    loaded.sort(key=lambda item: (item[0], item[1]))
    logger.debug("Loaded %d rule(s) from %s", len(loaded), rules_dir)
    return [rule for _, _, rule in loaded]


def rules_for_target(rules: list[CanonicalRule], target_name: str) -> list[CanonicalRule]:
    """Filter rules to those that apply to ``target_name``, keeping order."""
    return [rule for rule in rules if rule.applies_to(target_name)]


__all__ = ["RULE_ID_PATTERN", "load_rule", "load_rules", "rules_for_target"]

"""
Git pre-commit hook installer.

The hook runs ``agentsync check --quiet`` before every commit and blocks the
commit when managed content has drifted. Its logic lives in a section
delimited by marker comments:

    # agentsync:hook:start
    ...
    # agentsync:hook:end

so it can be appended to an existing pre-commit hook and updated in place
later without touching the rest of that hook. Installation covers three
cases:

- No pre-commit hook: write a standalone ``#!/bin/sh`` hook.
- Hook with our section: replace the section, or do nothing if current.
- Any other hook: append our section after its content.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from agentsync.core.sync.errors import HookError
from agentsync.utils.fs import ensure_dir, read_text, write_atomic
from agentsync.utils.git import get_hooks_dir

logger = logging.getLogger(__name__)

HOOK_NAME = "pre-commit"
HOOK_MARKER_START = "# agentsync:hook:start"
HOOK_MARKER_END = "# agentsync:hook:end"

_HOOK_SECTION = f"""{HOOK_MARKER_START}
# agentsync pre-commit hook - DO NOT EDIT THIS SECTION
_agentsync_check() {{
    repo_root=$(git rev-parse --show-toplevel) || return 0
    if [ ! -f "$repo_root/.agentsync.json" ] && [ ! -d "$repo_root/.agentsync" ]; then
        return 0
    fi
    command -v agentsync >/dev/null 2>&1 || return 0
    if ! check_output=$(cd "$repo_root" && agentsync check --quiet 2>&1); then
        echo ""
        echo "Error: managed content is out of sync"
        echo ""
        echo "$check_output"
        echo ""
        echo "Options:"
        echo "  1. Restore managed content: agentsync sync"
        echo "  2. Move your edits into the canonical rules, then run agentsync sync"
        echo "  3. Skip this check: git commit --no-verify"
        echo ""
        return 1
    fi
    return 0
}}
_agentsync_check || exit 1
{HOOK_MARKER_END}"""


class HookInstallResult(BaseModel):
    """Result of installing the pre-commit hook."""

    path: Path = Field(description="Path of the pre-commit hook")
    already_existed: bool = Field(
        default=False, description="Whether a pre-commit hook was present before"
    )
    was_updated: bool = Field(
        default=False, description="Whether an outdated agentsync section was replaced"
    )
    was_appended: bool = Field(
        default=False, description="Whether the section lives inside a custom hook"
    )
    changed: bool = Field(default=True, description="Whether the hook file was written")

    @property
    def message(self) -> str:
        if not self.changed:
            return f"Pre-commit hook already up to date: {self.path}"
        if self.was_updated:
            return f"Updated agentsync section in {self.path}"
        if self.was_appended:
            return f"Added agentsync section to existing hook {self.path}"
        return f"Installed pre-commit hook: {self.path}"


def generate_hook_section() -> str:
    """Return the marker-delimited section that performs the check."""
    return _HOOK_SECTION


def generate_pre_commit_hook() -> str:
    """Return a standalone pre-commit hook script."""
    return f"#!/bin/sh\n{generate_hook_section()}\nexit 0\n"


def replace_hook_section(content: str, section: str) -> str | None:
    """
    Replace the existing agentsync section in ``content``.

    Returns:
        The new content, or None if ``content`` has no agentsync section.

    Raises:
        HookError: If only one of the section markers is present, or they
            are out of order.
    """
    start = content.find(HOOK_MARKER_START)
    end = content.find(HOOK_MARKER_END)
    if start == -1 and end == -1:
        return None
    if start == -1 or end == -1 or end < start:
        raise HookError(
            "Pre-commit hook has an incomplete agentsync section; "
            f"remove the {HOOK_MARKER_START!r} / {HOOK_MARKER_END!r} lines and re-run"
        )
    return content[:start] + section + content[end + len(HOOK_MARKER_END) :]


def install_pre_commit_hook(project_dir: Path) -> HookInstallResult:
    """
    Install or update the agentsync pre-commit hook.

    Args:
        project_dir: Directory inside the git repository

    Returns:
        HookInstallResult describing what was done

    Raises:
        HookError: If ``project_dir`` is not in a git repository, the existing
            hook has a broken agentsync section, or the hook cannot be written.

    Example:
        >>> result = install_pre_commit_hook(Path("."))
        >>> result.path.name
        'pre-commit'
    """
    hooks_dir = get_hooks_dir(project_dir)
    if hooks_dir is None:
        raise HookError(f"{project_dir} is not inside a git repository")
    hook_path = hooks_dir / HOOK_NAME

    try:
        existing = read_text(hook_path)
    except OSError as e:
        raise HookError(f"Failed to read {hook_path}: {e}") from e

    section = generate_hook_section()
    if existing is None:
        new_content = generate_pre_commit_hook()
        result = HookInstallResult(path=hook_path)
    else:
        replaced = replace_hook_section(existing, section)
        if replaced is None:
            separator = "\n" if existing.endswith("\n") else "\n\n"
            new_content = f"{existing}{separator}{section}\n"
            result = HookInstallResult(path=hook_path, already_existed=True, was_appended=True)
        else:
            new_content = replaced
            result = HookInstallResult(
                path=hook_path,
                already_existed=True,
                was_updated=replaced != existing,
                was_appended=not existing.startswith(f"#!/bin/sh\n{HOOK_MARKER_START}"),
                changed=replaced != existing,
            )

    try:
        if result.changed:
            ensure_dir(hooks_dir)
            write_atomic(hook_path, new_content)
            logger.info("%s", result.message)
        # Also repairs a current hook that lost its executable bit
        hook_path.chmod(0o755)
    except OSError as e:
        raise HookError(f"Failed to write {hook_path}: {e}") from e

    return result


__all__ = [
    "HOOK_MARKER_END",
    "HOOK_MARKER_START",
    "HookInstallResult",
    "generate_hook_section",
    "generate_pre_commit_hook",
    "install_pre_commit_hook",
    "replace_hook_section",
]

"""
agentsync - keep AI coding assistant instructions in sync

A CLI that mirrors canonical rules into tool-specific instruction files
(CLAUDE.md, AGENTS.md, ...) as managed blocks, without clobbering human edits.
"""

__version__ = "0.1.0"

# Re-export core models for convenience
from agentsync.core.config.models import AgentSyncConfig
from agentsync.core.sync.models import CanonicalRule, SyncRunResult, Verdict

__all__ = ["AgentSyncConfig", "CanonicalRule", "SyncRunResult", "Verdict", "__version__"]

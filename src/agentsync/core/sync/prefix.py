"""
Prefix conversion between marker form and metadata form.

Marker prefixes use dashes (``acme-rules``) because they appear inside
comment markers in target files. Metadata prefixes use underscores
(``acme_rules``) because they appear as keys in the snapshot store.

For a prefix with no underscore, ``to_marker_prefix(to_metadata_prefix(p)) == p``.
For a prefix with no dash, the converse holds. Prefixes mixing both are not
round-trip safe and are rejected by configuration validation.
"""

from __future__ import annotations

import re

PREFIX_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def to_metadata_prefix(marker_prefix: str) -> str:
    """Convert a marker prefix (dashes) to a metadata prefix (underscores)."""
    return marker_prefix.replace("-", "_")


def to_marker_prefix(metadata_prefix: str) -> str:
    """Convert a metadata prefix (underscores) to a marker prefix (dashes)."""
    return metadata_prefix.replace("_", "-")


def is_mixed_prefix(prefix: str) -> bool:
    """Return True if the prefix contains both dashes and underscores."""
    return "-" in prefix and "_" in prefix


def validate_prefix(prefix: str) -> str:
    """
    Validate a prefix for use in markers and metadata keys.

    Args:
        prefix: Prefix in either form.

    Returns:
        The prefix unchanged.

    Raises:
        ValueError: If the prefix is empty, contains characters other than
            letters, digits, dash and underscore, or mixes dash and underscore.
    """
    if not PREFIX_PATTERN.match(prefix):
        raise ValueError(
            f"Invalid prefix {prefix!r}: only letters, digits, '-' and '_' are allowed"
        )
    if is_mixed_prefix(prefix):
        raise ValueError(
            f"Invalid prefix {prefix!r}: mixing '-' and '_' is reserved "
            "(conversion between marker and metadata form is not reversible)"
        )
    return prefix

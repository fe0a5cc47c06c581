"""Content hashing for managed block bodies."""

from __future__ import annotations

import hashlib

HASH_ALGORITHM = "sha256"
HASH_LENGTH = 12


def normalize_body(body: str) -> str:
    """
    Normalize a body so incidental formatting never registers as drift.

    Line endings become LF, trailing whitespace is removed from every line,
    and leading/trailing blank lines are dropped.
    """
    text = body.replace("\r\n", "\n").replace("\r", "\n")
    lines = [line.rstrip() for line in text.split("\n")]
    return "\n".join(lines).strip("\n")


def content_hash(body: str) -> str:
    """Compute the ``sha256:<hex>`` fingerprint of a normalized body."""
    digest = hashlib.sha256(normalize_body(body).encode("utf-8")).hexdigest()
    return f"{HASH_ALGORITHM}:{digest[:HASH_LENGTH]}"

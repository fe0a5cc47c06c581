"""
Filesystem helpers.

Reads treat a missing file as ``None`` rather than an error, and writes go
through a temporary file in the destination directory followed by an atomic
rename, so readers never observe a half-written file.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


def read_text(path: Path) -> str | None:
    """
    Read a UTF-8 text file.

    Returns:
        File contents, or None if the file does not exist.

    Raises:
        OSError: For any failure other than the file being absent.
    """
    try:
        # newline="" keeps CRLF intact so untouched bytes round-trip exactly
        with path.open("r", encoding="utf-8", newline="") as f:
            return f.read()
    except FileNotFoundError:
        return None


def ensure_dir(path: Path) -> Path:
    """Create a directory (and parents) if needed and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_atomic(path: Path, text: str) -> None:
    """
    Write text to ``path`` atomically.

    The temporary file is always closed and is either renamed into place or
    removed, on every exit path.

    Raises:
        OSError: If the write or rename fails. The destination is untouched.
    """
    ensure_dir(path.parent)
    fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())

        # Atomic rename (replaces existing file)
        os.replace(temp_path, path)

    except BaseException:
        # Clean up temp file on error
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise

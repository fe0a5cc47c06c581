"""
Managed block markers: tokenizer, parser, and renderer.

Managed blocks are delimited by whole-line markers wrapped in the target
file's comment syntax. With HTML comments a block looks like:

    <!-- agentsync:start id=style prefix=acme-rules hash=sha256:0c1d2e3f4a5b -->
    Use tabs for indentation.
    <!-- agentsync:end id=style prefix=acme-rules -->

Parsing happens in two passes. ``tokenize`` turns raw text into a typed
sequence of StartToken / EndToken / TextToken events. ``parse_blocks`` then
pairs starts with ends in a single pass, which makes unmatched and
duplicate markers structural errors rather than regex edge cases.

A block's body is exactly the text between the start-marker line's
terminator and the first byte of the end-marker line. Nothing outside
block spans is ever transformed.

A body may not contain a line that reads as a marker in the target's
comment style, otherwise the rendered block could not be parsed back.
``check_body`` enforces this and ``render_block`` calls it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Union

from agentsync.core.sync.errors import ParseError
from agentsync.core.sync.hashing import content_hash
from agentsync.core.sync.models import ManagedBlock, TargetFile

MARKER_NAMESPACE = "agentsync"

_ATTR_PATTERN = re.compile(r"([A-Za-z_]+)=(\S+)")


class CommentStyle(str, Enum):
    """Comment syntax a target file uses for markers."""

    HTML = "html"
    HASH = "hash"
    SLASH = "slash"

    @property
    def delimiters(self) -> tuple[str, str]:
        return _DELIMITERS[self]


_DELIMITERS: dict[CommentStyle, tuple[str, str]] = {
    CommentStyle.HTML: ("<!--", "-->"),
    CommentStyle.HASH: ("#", ""),
    CommentStyle.SLASH: ("//", ""),
}


@dataclass(frozen=True)
class StartToken:
    line: int
    start: int
    end: int
    id: str
    prefix: str
    hash: str
    raw: str


@dataclass(frozen=True)
class EndToken:
    line: int
    start: int
    end: int
    id: str
    prefix: str
    raw: str


@dataclass(frozen=True)
class TextToken:
    line: int
    start: int
    end: int


Token = Union[StartToken, EndToken, TextToken]


def _marker_patterns(style: CommentStyle) -> tuple[re.Pattern[str], re.Pattern[str]]:
    """Return (candidate, full) patterns for marker lines in ``style``."""
    opener, closer = (re.escape(d) for d in style.delimiters)
    candidate = re.compile(rf"^[ \t]*{opener}[ \t]*{MARKER_NAMESPACE}:(start|end)\b")
    full = re.compile(
        rf"^[ \t]*{opener}[ \t]*{MARKER_NAMESPACE}:(?P<kind>start|end)"
        rf"(?P<attrs>(?:[ \t]+[A-Za-z_]+=\S+?)*)[ \t]*{closer}[ \t]*$"
    )
    return candidate, full


def _iter_lines(text: str) -> Iterator[tuple[int, int, int, str]]:
    """Yield (line_number, start, end, line_without_terminator) for each line."""
    pos = 0
    number = 1
    length = len(text)
    while pos < length:
        newline = text.find("\n", pos)
        end = length if newline == -1 else newline + 1
        content = text[pos:end].rstrip("\n")
        if content.endswith("\r"):
            content = content[:-1]
        yield number, pos, end, content
        pos = end
        number += 1


def _parse_attrs(attrs: str) -> dict[str, str]:
    return {m.group(1): m.group(2) for m in _ATTR_PATTERN.finditer(attrs)}


def tokenize(text: str, style: CommentStyle = CommentStyle.HTML) -> list[Token]:
    """
    Split raw text into marker and text tokens.

    Consecutive non-marker lines collapse into a single TextToken.

    Raises:
        ParseError: If a line opens like a marker but is malformed.
    """
    candidate, full = _marker_patterns(style)
    tokens: list[Token] = []
    text_start: tuple[int, int] | None = None

    def flush(until: int) -> None:
        nonlocal text_start
        if text_start is not None:
            tokens.append(TextToken(line=text_start[0], start=text_start[1], end=until))
            text_start = None

    for number, start, end, line in _iter_lines(text):
        if not candidate.match(line):
            if text_start is None:
                text_start = (number, start)
            continue

        match = full.match(line)
        if match is None:
            raise ParseError("Malformed marker", marker=line, line=number)

        attrs = _parse_attrs(match.group("attrs"))
        missing = [key for key in ("id", "prefix") if key not in attrs]
        if match.group("kind") == "start" and "hash" not in attrs:
            missing.append("hash")
        if missing:
            raise ParseError(
                f"Marker is missing attribute(s): {', '.join(missing)}",
                marker=line,
                line=number,
            )

        flush(start)
        if match.group("kind") == "start":
            tokens.append(
                StartToken(
                    line=number,
                    start=start,
                    end=end,
                    id=attrs["id"],
                    prefix=attrs["prefix"],
                    hash=attrs["hash"],
                    raw=line,
                )
            )
        else:
            tokens.append(
                EndToken(
                    line=number,
                    start=start,
                    end=end,
                    id=attrs["id"],
                    prefix=attrs["prefix"],
                    raw=line,
                )
            )

    flush(len(text))
    return tokens


def parse_blocks(text: str, style: CommentStyle = CommentStyle.HTML) -> list[ManagedBlock]:
    """
    Extract managed blocks from raw text in on-disk order.

    Raises:
        ParseError: On an unmatched start marker, an end marker with no
            matching start, or two blocks sharing (id, prefix).
    """
    blocks: list[ManagedBlock] = []
    seen: dict[tuple[str, str], int] = {}
    open_start: StartToken | None = None

    for token in tokenize(text, style):
        if isinstance(token, TextToken):
            continue

        if isinstance(token, StartToken):
            if open_start is not None:
                raise ParseError(
                    f"Start marker for block '{open_start.id}' has no matching end marker",
                    marker=open_start.raw,
                    line=open_start.line,
                )
            open_start = token
            continue

        if open_start is None or (token.id, token.prefix) != (open_start.id, open_start.prefix):
            raise ParseError(
                f"End marker for block '{token.id}' has no matching start marker",
                marker=token.raw,
                line=token.line,
            )

        key = (open_start.id, open_start.prefix)
        if key in seen:
            raise ParseError(
                f"Duplicate block '{open_start.id}' with prefix '{open_start.prefix}' "
                f"(first defined on line {seen[key]})",
                marker=open_start.raw,
                line=open_start.line,
            )
        seen[key] = open_start.line

        blocks.append(
            ManagedBlock(
                id=open_start.id,
                prefix=open_start.prefix,
                content_hash=open_start.hash,
                body=text[open_start.end : token.start],
                span=(open_start.start, token.end),
                line=open_start.line,
            )
        )
        open_start = None

    if open_start is not None:
        raise ParseError(
            f"Start marker for block '{open_start.id}' has no matching end marker",
            marker=open_start.raw,
            line=open_start.line,
        )

    return blocks


def parse_target(
    text: str,
    *,
    path: Path,
    tool: str,
    style: CommentStyle = CommentStyle.HTML,
    exists: bool = True,
) -> TargetFile:
    """Parse a target file's text into a TargetFile, locating errors in ``path``."""
    try:
        blocks = parse_blocks(text, style)
    except ParseError as e:
        raise e.with_path(path) from None
    return TargetFile(path=path, tool=tool, raw_text=text, blocks=blocks, exists=exists)


def detect_newline(text: str) -> str:
    """Return the line terminator a file predominantly uses."""
    crlf = text.count("\r\n")
    if crlf and crlf * 2 >= text.count("\n"):
        return "\r\n"
    return "\n"


def start_marker(block_id: str, prefix: str, hash_value: str, style: CommentStyle) -> str:
    opener, closer = style.delimiters
    line = f"{opener} {MARKER_NAMESPACE}:start id={block_id} prefix={prefix} hash={hash_value}"
    return f"{line} {closer}" if closer else line


def end_marker(block_id: str, prefix: str, style: CommentStyle) -> str:
    opener, closer = style.delimiters
    line = f"{opener} {MARKER_NAMESPACE}:end id={block_id} prefix={prefix}"
    return f"{line} {closer}" if closer else line


def frame_body(body: str, newline: str = "\n") -> str:
    """Ensure a non-empty body ends with a line terminator."""
    if body and not body.endswith("\n"):
        return body + newline
    return body


def find_marker_line(body: str, style: CommentStyle = CommentStyle.HTML) -> tuple[int, str] | None:
    """Return (line_number, line) of the first body line that reads as a marker."""
    candidate, _ = _marker_patterns(style)
    for number, _, _, line in _iter_lines(body):
        if candidate.match(line):
            return number, line
    return None


def check_body(block_id: str, body: str, style: CommentStyle = CommentStyle.HTML) -> None:
    """
    Ensure ``body`` can be written between markers and parsed back.

    Raises:
        ParseError: If a body line would be read as a start or end marker.
    """
    found = find_marker_line(body, style)
    if found is not None:
        number, line = found
        raise ParseError(
            f"Body of block '{block_id}' contains a marker line (body line {number}) "
            f"and cannot be written as a {style.value}-style managed block",
            marker=line,
        )


def build_block(block_id: str, prefix: str, body: str, newline: str = "\n") -> ManagedBlock:
    """
    Create a block whose stored hash is computed from its (framed) body.

    Line terminators inside ``body`` are converted to ``newline`` so a new
    block matches the file it is written into.
    """
    lines = body.replace("\r\n", "\n").replace("\r", "\n")
    if newline != "\n":
        lines = lines.replace("\n", newline)
    framed = frame_body(lines, newline)
    return ManagedBlock(
        id=block_id,
        prefix=prefix,
        content_hash=content_hash(framed),
        body=framed,
    )


def render_block(
    block: ManagedBlock,
    style: CommentStyle = CommentStyle.HTML,
    newline: str = "\n",
) -> str:
    """
    Serialize a block into marker-delimited text.

    The hash is always recomputed from the body, so a rendered block is
    consistent by construction regardless of ``block.content_hash``.

    Raises:
        ParseError: If the body contains a marker line (see ``check_body``).
    """
    check_body(block.id, block.body, style)
    body = frame_body(block.body, newline)
    return (
        start_marker(block.id, block.prefix, content_hash(body), style)
        + newline
        + body
        + end_marker(block.id, block.prefix, style)
        + newline
    )


@dataclass(frozen=True)
class Edit:
    """Replace ``text[start:end]`` with ``replacement``; zero-width edits insert."""

    start: int
    end: int
    replacement: str
    order: int = 0


def splice(text: str, edits: list[Edit]) -> str:
    """
    Apply non-overlapping edits against the original text.

    Insertions at the same offset keep their ``order``; text outside edit
    spans is copied verbatim.
    """
    out: list[str] = []
    cursor = 0
    for edit in sorted(edits, key=lambda e: (e.start, e.end, e.order)):
        if edit.start < cursor:
            raise ValueError(f"Overlapping edit at offset {edit.start}")
        out.append(text[cursor : edit.start])
        out.append(edit.replacement)
        cursor = edit.end
    out.append(text[cursor:])
    return "".join(out)


__all__ = [
    "MARKER_NAMESPACE",
    "CommentStyle",
    "Edit",
    "EndToken",
    "StartToken",
    "TextToken",
    "Token",
    "build_block",
    "check_body",
    "detect_newline",
    "end_marker",
    "find_marker_line",
    "frame_body",
    "parse_blocks",
    "parse_target",
    "render_block",
    "splice",
    "start_marker",
    "tokenize",
]

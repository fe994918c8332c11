"""
Config patcher — idempotent, anchored edits of text configuration files.

Three primitives, each safe to re-run:

    replace_line  — the single line matching an anchor regex is replaced;
                    no match is reported as PatchAnchorNotFound, never an
                    append.
    append_block  — a block is appended under a marker line, only while the
                    marker is absent from the file.
    ensure_line   — companion lines are appended only while a probe line is
                    absent.

Files are read and written with ``newline=""`` so line endings survive
untouched: a replace changes exactly one line and nothing else. Every
write goes to a temp file in the same directory and is renamed into
place, so an interrupted run never leaves a half-written config.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from pathlib import Path

from src.core.errors import ApplyError, PatchAnchorNotFound

logger = logging.getLogger(__name__)

_NEW_FILE_MODE = 0o644


# ── Pure text helpers (used by checks) ──────────────────────────


def _split_ending(raw: str) -> tuple[str, str]:
    body = raw.rstrip("\r\n")
    return body, raw[len(body):]


def compile_anchor(pattern: str) -> re.Pattern[str]:
    """Compile an anchor regex.

    Raises:
        ApplyError: The pattern is not a valid regular expression.
    """
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ApplyError(f"invalid anchor pattern {pattern!r}: {e}") from e


def anchor_matches(text: str, pattern: str) -> list[int]:
    """Indexes of lines (without their endings) matching ``pattern``."""
    anchor = compile_anchor(pattern)
    return [
        i
        for i, raw in enumerate(text.splitlines(keepends=True))
        if anchor.search(_split_ending(raw)[0])
    ]


def line_replaced(text: str | None, pattern: str, line: str) -> bool:
    """True when exactly one line matches the anchor and it already equals ``line``."""
    if text is None:
        return False
    lines = text.splitlines(keepends=True)
    hits = anchor_matches(text, pattern)
    return len(hits) == 1 and _split_ending(lines[hits[0]])[0] == line


def has_marker(text: str | None, marker: str) -> bool:
    return text is not None and marker in text


def has_line(text: str | None, probe: str) -> bool:
    """True when some line equals ``probe``, ignoring surrounding whitespace."""
    if text is None:
        return False
    wanted = probe.strip()
    return any(raw.strip() == wanted for raw in text.splitlines())


# ── File I/O ────────────────────────────────────────────────────


def read_text(path: Path) -> str:
    """Read a file with line endings preserved.

    Raises:
        ApplyError: The file does not exist or cannot be read.
    """
    try:
        with open(path, encoding="utf-8", newline="") as f:
            return f.read()
    except FileNotFoundError as e:
        raise ApplyError(f"{path} does not exist") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ApplyError(f"cannot read {path}: {e}") from e


def write_atomic(path: Path, content: str, mode: int | None = None) -> None:
    """Write ``content`` to ``path`` atomically (temp file + rename).

    Permission bits are taken from ``mode``, else from the existing
    file, else 0644. Parent directories are created.

    Raises:
        ApplyError: The write or rename failed.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    except OSError as e:
        raise ApplyError(f"cannot write {path}: {e}") from e

    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            os.chmod(tmp, mode)
        elif path.exists():
            shutil.copymode(path, tmp)
        else:
            os.chmod(tmp, _NEW_FILE_MODE)
        os.replace(tmp, path)
        logger.debug("Wrote %s (%d bytes)", path, len(content))
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise ApplyError(f"cannot write {path}: {e}") from e


def _with_trailing_newline(text: str) -> str:
    return text if not text or text.endswith("\n") else text + "\n"


# ── Primitives ──────────────────────────────────────────────────


def replace_line(path: Path, pattern: str, line: str) -> bool:
    """Replace the one line matching ``pattern`` with ``line``.

    The replaced line keeps its original line ending; every other byte
    of the file is left as it was.

    Returns:
        True if the file changed, False if the line was already correct.

    Raises:
        ApplyError: Invalid pattern, file missing/unreadable, or the
            anchor is ambiguous.
        PatchAnchorNotFound: No line matches the anchor.
    """
    compile_anchor(pattern)
    text = read_text(path)
    hits = anchor_matches(text, pattern)
    if not hits:
        raise PatchAnchorNotFound(str(path), pattern)
    if len(hits) > 1:
        raise ApplyError(
            f"anchor {pattern!r} is ambiguous in {path}: {len(hits)} lines match"
        )

    lines = text.splitlines(keepends=True)
    body, ending = _split_ending(lines[hits[0]])
    if body == line:
        return False

    lines[hits[0]] = line + ending
    write_atomic(path, "".join(lines))
    logger.info("Patched %s line %d", path, hits[0] + 1)
    return True


def append_block(path: Path, marker: str, content: str) -> bool:
    """Append ``marker`` + ``content`` unless the marker is already present.

    A missing file is created.

    Returns:
        True if the block was appended, False if the marker was present.
    """
    if path.exists():
        text = read_text(path)
    else:
        text = ""
    if has_marker(text, marker):
        return False

    parts = [_with_trailing_newline(text)]
    if text:
        parts.append("\n")
    parts.append(marker.rstrip("\n") + "\n")
    parts.append(_with_trailing_newline(content))
    write_atomic(path, "".join(parts))
    logger.info("Appended block %r to %s", marker, path)
    return True


def ensure_line(path: Path, probe: str, lines: list[str] | tuple[str, ...]) -> bool:
    """Append ``lines`` unless a line equal to ``probe`` already exists.

    Returns:
        True if lines were appended, False if the probe line was present.

    Raises:
        ApplyError: The file does not exist.
    """
    text = read_text(path)
    if has_line(text, probe):
        return False

    addition = "".join(entry + "\n" for entry in lines)
    write_atomic(path, _with_trailing_newline(text) + addition)
    logger.info("Inserted %d line(s) into %s", len(lines), path)
    return True

"""
FileWritten handler — a file with given content or a downloaded source.

Existing-file policy follows ``overwrite``:

    overwrite=True   the file is converged: content differing from the
                     target is rewritten.
    overwrite=False  seed-once: any existing file satisfies the step and
                     is never touched.

Unprivileged writes go through the patcher's atomic temp-file + rename.
Privileged writes as a non-root user stage the content in a temp file
and move it into place with ``sudo install``; the overwrite check reads
such files back through ``sudo -n cat`` when they are not readable.
"""

from __future__ import annotations

import logging
import os
import tempfile
import urllib.error
import urllib.request
from collections.abc import Callable
from pathlib import Path

from src.adapters.base import ApplyContext, StepHandler
from src.core.errors import ApplyError
from src.core.models.facts import FactQuery, HostFacts
from src.core.models.step import FileTarget, Step, StepKind
from src.core.services.patcher import write_atomic

logger = logging.getLogger(__name__)

_USER_AGENT = "system-setup/1.0"
_CHUNK_SIZE = 64 * 1024


def download_text(url: str, timeout: float, on_chunk: Callable[[], None] | None = None) -> str:
    """Fetch a small text resource.

    ``timeout`` bounds each socket operation; ``on_chunk`` runs after
    every chunk read and may raise to abort a slow transfer.

    Raises:
        ApplyError: Network error, HTTP error, or undecodable body.
    """
    req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            chunks = []
            while True:
                chunk = resp.read(_CHUNK_SIZE)
                if not chunk:
                    break
                chunks.append(chunk)
                if on_chunk is not None:
                    on_chunk()
            return b"".join(chunks).decode("utf-8")
    except (urllib.error.URLError, TimeoutError, OSError) as e:
        raise ApplyError(f"download failed: {url}: {e}") from e
    except UnicodeDecodeError as e:
        raise ApplyError(f"download is not UTF-8 text: {url}") from e


class FileWrittenHandler(StepHandler):

    @property
    def kind(self) -> StepKind:
        return StepKind.FILE_WRITTEN

    def facts_needed(self, step: Step) -> FactQuery:
        target: FileTarget = step.target
        if target.overwrite:
            privileged = (target.path,) if target.privileged else ()
            return FactQuery(paths=(target.path,), files=(target.path,), privileged_files=privileged)
        return FactQuery(paths=(target.path,))

    def check(self, step: Step, facts: HostFacts) -> bool:
        target: FileTarget = step.target
        if not target.overwrite:
            return facts.exists(target.path)
        return facts.file_text(target.path) == target.content

    def apply(self, step: Step, ctx: ApplyContext) -> str:
        target: FileTarget = step.target
        if target.source_url is not None:
            logger.info("Downloading %s", target.source_url)
            text = download_text(
                target.source_url, timeout=max(ctx.remaining(), 1), on_chunk=ctx.check_deadline,
            )
            ctx.check_deadline()
        else:
            text = target.content or ""

        path = Path(target.path)
        if target.privileged and not ctx.runner.is_root:
            self._install_privileged(path, text, target.mode, ctx)
        else:
            write_atomic(path, text, target.mode)
        return f"wrote {path} ({len(text)} bytes)"

    def _install_privileged(self, path: Path, text: str, mode: int | None, ctx: ApplyContext) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix="system-setup-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(text)
            mode_arg = f"{mode if mode is not None else 0o644:o}"
            ctx.run(["install", "-D", "-m", mode_arg, tmp_name, str(path)], privileged=True)
        finally:
            Path(tmp_name).unlink(missing_ok=True)

    def describe(self, step: Step) -> str:
        target: FileTarget = step.target
        source = target.source_url or "inline content"
        policy = "" if target.overwrite else " (if absent)"
        return step.description or f"write {target.path} from {source}{policy}"

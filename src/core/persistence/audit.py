"""
Audit ledger — append-only run history.

Every apply appends one entry to ``<state_dir>/audit.ndjson``
(newline-delimited JSON). Entries are never modified or deleted; the
last-run state file answers "what happened last time", the ledger
answers "what has this machine been through".
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_FILE = "audit.ndjson"


class AuditEntry(BaseModel):
    """A single audit log entry (one run)."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = ""
    profile: str = ""
    os_id: str = ""
    user: str = ""

    # Results
    status: str = ""               # ok, partial, failed, cancelled
    dry_run: bool = False
    steps_total: int = 0
    steps_applied: int = 0
    steps_skipped: int = 0
    steps_failed: int = 0
    applied_ids: list[str] = Field(default_factory=list)
    duration_ms: int = 0

    # Failure messages, "step-id: error"
    errors: list[str] = Field(default_factory=list)


class AuditWriter:
    """Append-only audit ledger writer."""

    def __init__(self, path: Path | None = None, state_dir: Path | None = None):
        if path is not None:
            self._path = path
        elif state_dir is not None:
            self._path = state_dir / DEFAULT_AUDIT_FILE
        else:
            self._path = Path(DEFAULT_AUDIT_FILE)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append an entry. Failure to write is logged, never raised."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Audit entry written: %s", entry.run_id)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)

    def read_all(self) -> list[AuditEntry]:
        """All entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except Exception as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        return self.read_all()[-n:]

    def entry_count(self) -> int:
        if not self._path.is_file():
            return 0
        try:
            with self._path.open("r", encoding="utf-8") as f:
                return sum(1 for line in f if line.strip())
        except OSError:
            return 0

"""
Status use case — summarize the last run from the state file and ledger.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from src.core.models.state import RunState
from src.core.persistence.audit import AuditEntry, AuditWriter
from src.core.persistence.state_file import default_state_dir, load_state, state_path


@dataclass
class StatusResult:
    """Last run plus ledger totals."""

    state: RunState | None = None
    state_dir: Path | None = None
    run_count: int = 0
    recent: list[AuditEntry] = field(default_factory=list)

    @property
    def has_run(self) -> bool:
        return self.state is not None and self.state.has_run

    def to_dict(self) -> dict:
        result: dict = {
            "state_dir": str(self.state_dir) if self.state_dir else None,
            "run_count": self.run_count,
            "last_run": None,
        }
        if self.has_run:
            assert self.state is not None
            result["last_run"] = self.state.model_dump(mode="json")
        result["recent"] = [
            {"run_id": e.run_id, "timestamp": e.timestamp, "profile": e.profile, "status": e.status}
            for e in self.recent
        ]
        return result


def get_status(state_dir: Path | None = None, recent: int = 5) -> StatusResult:
    """Read the last-run state and the tail of the audit ledger.

    Args:
        state_dir: Override for the state directory.
        recent: How many ledger entries to include.
    """
    state_dir = state_dir or default_state_dir()
    audit = AuditWriter(state_dir=state_dir)
    return StatusResult(
        state=load_state(state_path(state_dir)),
        state_dir=state_dir,
        run_count=audit.entry_count(),
        recent=audit.read_recent(recent),
    )

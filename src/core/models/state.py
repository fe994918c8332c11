"""
RunState — the record of the last provisioning run.

Serialized to ``<state_dir>/last-run.json`` after every apply and read
back by ``system-setup status``. Host facts are never stored here: the
file records what the engine did, not what the host looks like.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from src.core.models.result import PlanResult


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class RunState(BaseModel):
    """Root state model — serialized to last-run.json.

    Disposable: delete it and the next run simply has no history.
    """

    # ── Schema ───────────────────────────────────────────────────
    schema_version: int = 1

    # ── Identity ─────────────────────────────────────────────────
    run_id: str = ""
    profile: str = ""
    os_id: str = ""
    family: str = ""

    # ── Timestamps ───────────────────────────────────────────────
    started_at: str = ""
    ended_at: str = ""
    updated_at: str = Field(default_factory=_now_iso)

    # ── Outcome ──────────────────────────────────────────────────
    status: str = ""  # ok, partial, failed, cancelled
    cancelled: bool = False
    applied: int = 0
    skipped: int = 0
    failed: int = 0
    results: list[PlanResult] = Field(default_factory=list)

    # ── Extensible metadata ──────────────────────────────────────
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def has_run(self) -> bool:
        return bool(self.run_id)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()

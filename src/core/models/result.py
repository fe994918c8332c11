"""
PlanResult — the outcome of executing one Step.

Results are immutable once produced. The ordered list of results is
the execution record of a run; the reporter aggregates it and the run
state file persists it.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.core.models.step import StepKind


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class StepStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


class PlanResult(BaseModel):
    """Outcome of one step: applied, skipped (already satisfied), or failed."""

    model_config = ConfigDict(frozen=True)

    step_id: str
    kind: StepKind
    status: StepStatus
    detail: str = ""
    error: str | None = None
    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status != StepStatus.FAILED

    @property
    def failed(self) -> bool:
        return self.status == StepStatus.FAILED

    @classmethod
    def applied(cls, step_id: str, kind: StepKind, detail: str = "", **kwargs: Any) -> PlanResult:
        return cls(step_id=step_id, kind=kind, status=StepStatus.APPLIED, detail=detail, **kwargs)

    @classmethod
    def skipped(cls, step_id: str, kind: StepKind, detail: str = "", **kwargs: Any) -> PlanResult:
        return cls(step_id=step_id, kind=kind, status=StepStatus.SKIPPED, detail=detail, **kwargs)

    @classmethod
    def failure(
        cls,
        step_id: str,
        kind: StepKind,
        error: str,
        detail: str = "",
        **kwargs: Any,
    ) -> PlanResult:
        return cls(
            step_id=step_id,
            kind=kind,
            status=StepStatus.FAILED,
            detail=detail or error,
            error=error,
            **kwargs,
        )

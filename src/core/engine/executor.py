"""
Engine executor — the check/apply loop.

Takes an ordered plan and converges the host one step at a time:

    for each step:
        snapshot facts → check → (satisfied) Skipped
                               → apply → re-check → Applied | Failed

Strictly sequential: package managers hold exclusive locks, and later
steps routinely depend on earlier ones (a clone needs git installed).
No automatic retries: a failed step is reported, and re-running the
plan is the retry, because every satisfied step is skipped.

Nothing raised by a handler escapes this module; every outcome becomes
a PlanResult.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from src.adapters.base import ApplyContext
from src.adapters.registry import HandlerRegistry
from src.adapters.shell.runner import CommandRunner
from src.core.engine.interrupts import CancelToken
from src.core.errors import PatchAnchorNotFound, ProvisionError, StepTimeout
from src.core.models.result import PlanResult, StepStatus
from src.core.models.step import Step
from src.core.services.facts import FactProbe

logger = logging.getLogger(__name__)

_MARKERS = {
    StepStatus.APPLIED: "✓",
    StepStatus.SKIPPED: "⊘",
    StepStatus.FAILED: "✗",
}


@dataclass
class ExecutionSettings:
    """Executor policy for one run."""

    continue_on_error: bool = False
    accept_partial: bool = False
    step_timeout: float = 600
    verify: bool = True
    dry_run: bool = False


@dataclass
class ExecutionReport:
    """Result of executing a plan."""

    run_id: str = ""
    profile: str = ""
    dry_run: bool = False
    continue_on_error: bool = False
    accept_partial: bool = False
    cancelled: bool = False
    planned: int = 0
    results: list[PlanResult] = field(default_factory=list)
    started_at: str = ""
    ended_at: str = ""

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def applied(self) -> int:
        return sum(1 for r in self.results if r.status == StepStatus.APPLIED)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == StepStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.failed)

    @property
    def not_run(self) -> int:
        """Steps never reached (halted or cancelled)."""
        return self.planned - self.total

    @property
    def all_ok(self) -> bool:
        return self.failed == 0 and not self.cancelled

    @property
    def status(self) -> str:
        if self.cancelled:
            return "cancelled"
        if self.failed == 0:
            return "ok"
        if self.applied + self.skipped > 0:
            return "partial"
        return "failed"

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "profile": self.profile,
            "status": self.status,
            "dry_run": self.dry_run,
            "cancelled": self.cancelled,
            "planned": self.planned,
            "applied": self.applied,
            "skipped": self.skipped,
            "failed": self.failed,
            "not_run": self.not_run,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "results": [r.model_dump(mode="json") for r in self.results],
        }


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def run_step(
    step: Step,
    registry: HandlerRegistry,
    probe: FactProbe,
    runner: CommandRunner,
    settings: ExecutionSettings,
) -> PlanResult:
    """Check, and if needed apply, a single step. Never raises."""
    started_at = _now_iso()
    start = time.monotonic()

    def _elapsed() -> dict:
        return {"started_at": started_at, "duration_ms": int((time.monotonic() - start) * 1000)}

    handler = registry.get(step.kind)
    if handler is None:
        return PlanResult.failure(
            step.id, step.kind, f"no handler registered for {step.kind.value}", **_elapsed(),
        )

    try:
        facts = probe.snapshot(handler.facts_needed(step))
        if handler.check(step, facts):
            return PlanResult.skipped(step.id, step.kind, "already satisfied", **_elapsed())

        if settings.dry_run:
            return PlanResult.skipped(
                step.id, step.kind, f"[dry-run] would {handler.describe(step)}", **_elapsed(),
            )

        ctx = ApplyContext(runner=runner, timeout=settings.step_timeout, facts=facts)
        detail = handler.apply(step, ctx)

        if settings.verify:
            after = probe.snapshot(handler.facts_needed(step))
            if not handler.check(step, after):
                return PlanResult.failure(
                    step.id, step.kind, "apply finished but the step did not converge",
                    detail=f"did not converge: {detail}", **_elapsed(),
                )

        return PlanResult.applied(step.id, step.kind, detail, **_elapsed())

    except PatchAnchorNotFound as e:
        return PlanResult.skipped(step.id, step.kind, str(e), **_elapsed())
    except StepTimeout as e:
        label = f"{int(e.timeout)}s" if e.timeout is not None else "deadline"
        return PlanResult.failure(
            step.id, step.kind, str(e), detail=f"timed out after {label}", **_elapsed(),
        )
    except ProvisionError as e:
        return PlanResult.failure(step.id, step.kind, str(e), **_elapsed())
    except Exception as e:
        # Handlers should only raise ProvisionError, but a bug in one
        # must not take down the rest of the run.
        logger.exception("Handler for %s raised unexpectedly", step.id)
        return PlanResult.failure(step.id, step.kind, f"unexpected error: {e}", **_elapsed())


def execute_plan(
    steps: list[Step],
    registry: HandlerRegistry,
    probe: FactProbe,
    settings: ExecutionSettings | None = None,
    *,
    runner: CommandRunner | None = None,
    cancel: CancelToken | None = None,
    run_id: str = "",
    profile: str = "",
    on_result: Callable[[Step, PlanResult], None] | None = None,
) -> ExecutionReport:
    """Execute a plan in declaration order.

    Args:
        steps: The plan, as built by ``build_plan``.
        registry: Handler per step kind.
        probe: Fact source for checks.
        settings: Policy; defaults to halt-on-failure with verification.
        runner: Command runner for applies (defaults to the probe's).
        cancel: Polled between steps; a cancelled token stops the run.
        run_id: Identifier recorded in the report.
        profile: Profile name recorded in the report.
        on_result: Called after each step (progress output).

    Returns:
        ExecutionReport with one result per step that ran.
    """
    settings = settings or ExecutionSettings()
    runner = runner or probe.runner
    report = ExecutionReport(
        run_id=run_id or generate_run_id(),
        profile=profile,
        dry_run=settings.dry_run,
        continue_on_error=settings.continue_on_error,
        accept_partial=settings.accept_partial,
        planned=len(steps),
        started_at=_now_iso(),
    )

    for step in steps:
        if cancel is not None and cancel.cancelled:
            report.cancelled = True
            logger.warning("Run cancelled (%s) before step %s", cancel.signal_name, step.id)
            break

        result = run_step(step, registry, probe, runner, settings)
        report.results.append(result)
        logger.info("%s %s → %s %s", _MARKERS[result.status], step.id, result.status.value, result.detail)
        if on_result is not None:
            on_result(step, result)

        if result.failed and not settings.continue_on_error:
            logger.error("Halting after failed step %s", step.id)
            break

    report.ended_at = _now_iso()
    return report


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"

"""
Reporter — turns an ExecutionReport into counts, lines and an exit code.

Output is deliberately plain: one line per step with its id and the
handler's detail, never a traceback. Tracebacks belong in the debug log.

Exit codes:
    0    no step failed
    0    steps failed, but both continue_on_error and accept_partial are set
    130  the run was cancelled by a signal
    1    anything else
"""

from __future__ import annotations

from dataclasses import dataclass, field

from src.core.engine.executor import ExecutionReport
from src.core.models.result import StepStatus

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130

_MARKERS = {
    StepStatus.APPLIED: "✓",
    StepStatus.SKIPPED: "⊘",
    StepStatus.FAILED: "✗",
}


@dataclass
class Summary:
    """Aggregated counts of one run."""

    applied: int = 0
    skipped: int = 0
    failed: int = 0
    not_run: int = 0
    cancelled: bool = False
    failed_ids: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.applied + self.skipped + self.failed

    def to_dict(self) -> dict:
        return {
            "applied": self.applied,
            "skipped": self.skipped,
            "failed": self.failed,
            "not_run": self.not_run,
            "cancelled": self.cancelled,
            "failed_ids": self.failed_ids,
        }


def build_summary(report: ExecutionReport) -> Summary:
    return Summary(
        applied=report.applied,
        skipped=report.skipped,
        failed=report.failed,
        not_run=report.not_run,
        cancelled=report.cancelled,
        failed_ids=[r.step_id for r in report.results if r.failed],
    )


def render_summary(report: ExecutionReport, include_steps: bool = True) -> list[str]:
    """Human-readable lines: one per step (optional), the totals, then advice."""
    lines = []
    if include_steps:
        lines = [
            f"{_MARKERS[r.status]} {r.step_id}: {r.detail}" if r.detail else f"{_MARKERS[r.status]} {r.step_id}"
            for r in report.results
        ]

    summary = build_summary(report)
    totals = f"{summary.applied} applied, {summary.skipped} skipped, {summary.failed} failed"
    if summary.not_run:
        totals += f", {summary.not_run} not run"
    if report.dry_run:
        totals += " (dry run)"
    lines.append(totals)

    if summary.cancelled:
        lines.append("Run cancelled before completion; re-run to continue.")
    elif summary.failed and not report.continue_on_error:
        lines.append(f"Halted at {summary.failed_ids[0]}; fix it and re-run.")
    return lines


def exit_code(report: ExecutionReport, accept_partial: bool | None = None) -> int:
    """Process exit status for a finished run.

    Args:
        report: The run.
        accept_partial: Overrides the flag recorded in the report.
    """
    if report.cancelled:
        return EXIT_CANCELLED
    if report.failed == 0:
        return EXIT_OK
    partial_ok = report.accept_partial if accept_partial is None else accept_partial
    if report.continue_on_error and partial_ok:
        return EXIT_OK
    return EXIT_FAILED

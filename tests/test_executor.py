"""
Tests for the engine executor — the check/apply loop.
"""

import pytest

from src.adapters.base import ApplyContext, StepHandler
from src.adapters.mock import MockHandler
from src.adapters.registry import HandlerRegistry
from src.core.engine.executor import ExecutionSettings, execute_plan, generate_run_id, run_step
from src.core.engine.interrupts import CancelToken
from src.core.errors import PatchAnchorNotFound, StepTimeout
from src.core.models.facts import FactQuery, HostFacts, Platform
from src.core.models.result import StepStatus
from src.core.models.step import CommandTarget, Step, StepKind
from src.core.services.facts import FactProbe


def _steps(*ids: str) -> list[Step]:
    return [
        Step(id=i, kind=StepKind.COMMAND_RUN, target=CommandTarget(command="true", creates=f"/tmp/{i}"))
        for i in ids
    ]


@pytest.fixture
def mock() -> MockHandler:
    return MockHandler()


@pytest.fixture
def registry(mock: MockHandler) -> HandlerRegistry:
    reg = HandlerRegistry()
    reg.register(mock)
    return reg


@pytest.fixture
def probe(fake_host) -> FactProbe:
    return FactProbe(fake_host)


# ── Single Step Tests ────────────────────────────────────────────────


class TestRunStep:
    def test_satisfied_step_is_skipped_without_apply(self, mock, registry, probe):
        mock.satisfied.add("a")
        result = run_step(_steps("a")[0], registry, probe, probe.runner, ExecutionSettings())
        assert result.status == StepStatus.SKIPPED
        assert result.detail == "already satisfied"
        assert mock.apply_count == 0

    def test_unsatisfied_step_is_applied(self, mock, registry, probe):
        result = run_step(_steps("a")[0], registry, probe, probe.runner, ExecutionSettings())
        assert result.status == StepStatus.APPLIED
        assert result.detail == "[mock] applied a"
        assert mock.call_log == [("check", "a"), ("apply", "a"), ("check", "a")]

    def test_apply_that_does_not_converge_fails(self, probe):
        reg = HandlerRegistry()
        reg.register(MockHandler(converge=False))
        result = run_step(_steps("a")[0], reg, probe, probe.runner, ExecutionSettings())
        assert result.failed
        assert result.detail.startswith("did not converge")

    def test_no_verify_trusts_apply(self, probe):
        reg = HandlerRegistry()
        reg.register(MockHandler(converge=False))
        result = run_step(_steps("a")[0], reg, probe, probe.runner, ExecutionSettings(verify=False))
        assert result.status == StepStatus.APPLIED

    def test_missing_handler(self, probe):
        result = run_step(_steps("a")[0], HandlerRegistry(), probe, probe.runner, ExecutionSettings())
        assert result.failed
        assert "no handler registered for CommandRun" in result.error

    def test_anchor_not_found_is_skipped(self, mock, registry, probe):
        mock.set_failure("a", PatchAnchorNotFound("/home/alice/.zshrc", "^EDITOR="))
        result = run_step(_steps("a")[0], registry, probe, probe.runner, ExecutionSettings())
        assert result.status == StepStatus.SKIPPED
        assert "not found" in result.detail

    def test_timeout_detail(self, mock, registry, probe):
        mock.set_failure("a", StepTimeout(30, "apt-get install -y zsh"))
        result = run_step(_steps("a")[0], registry, probe, probe.runner, ExecutionSettings())
        assert result.failed
        assert result.detail == "timed out after 30s"

    def test_unexpected_exception_is_contained(self, mock, registry, probe):
        mock.set_failure("a", RuntimeError("bug"))
        result = run_step(_steps("a")[0], registry, probe, probe.runner, ExecutionSettings())
        assert result.failed
        assert result.error == "unexpected error: bug"

    def test_dry_run_never_applies(self, mock, registry, probe):
        result = run_step(_steps("a")[0], registry, probe, probe.runner, ExecutionSettings(dry_run=True))
        assert result.status == StepStatus.SKIPPED
        assert result.detail.startswith("[dry-run] would ")
        assert mock.apply_count == 0


# ── Plan Execution Tests ─────────────────────────────────────────────


class TestExecutePlan:
    def test_runs_in_declaration_order(self, mock, registry, probe):
        report = execute_plan(_steps("c", "a", "b"), registry, probe)
        assert [r.step_id for r in report.results] == ["c", "a", "b"]
        assert mock.applied_ids() == ["c", "a", "b"]
        assert report.status == "ok"
        assert report.all_ok

    def test_second_run_is_all_skipped(self, mock, registry, probe):
        steps = _steps("a", "b", "c")
        first = execute_plan(steps, registry, probe)
        second = execute_plan(steps, registry, probe)

        assert first.applied == 3
        assert second.applied == 0
        assert second.skipped == 3
        assert mock.apply_count == 3

    def test_one_result_per_step(self, mock, registry, probe):
        mock.satisfied.add("b")
        report = execute_plan(_steps("a", "b", "c"), registry, probe)
        assert report.total == report.planned == 3
        assert (report.applied, report.skipped, report.failed) == (2, 1, 0)

    def test_halts_on_failure(self, mock, registry, probe):
        mock.set_failure("b", "apt-get failed (exit 100)")
        report = execute_plan(_steps("a", "b", "c"), registry, probe)

        assert [r.status for r in report.results] == [StepStatus.APPLIED, StepStatus.FAILED]
        assert report.not_run == 1
        assert "c" not in mock.applied_ids()
        assert report.status == "partial"

    def test_continue_on_error(self, mock, registry, probe):
        mock.set_failure("b")
        settings = ExecutionSettings(continue_on_error=True)
        report = execute_plan(_steps("a", "b", "c"), registry, probe, settings)

        assert [r.step_id for r in report.results] == ["a", "b", "c"]
        assert report.failed == 1
        assert report.not_run == 0

    def test_all_failed_status(self, mock, registry, probe):
        mock.set_failure("a")
        report = execute_plan(_steps("a"), registry, probe)
        assert report.status == "failed"

    def test_rerun_after_fix_resumes(self, mock, registry, probe):
        steps = _steps("a", "b", "c")
        mock.set_failure("b")
        execute_plan(steps, registry, probe)

        mock.clear_failure("b")
        report = execute_plan(steps, registry, probe)

        assert [r.status for r in report.results] == [
            StepStatus.SKIPPED, StepStatus.APPLIED, StepStatus.APPLIED,
        ]

    def test_cancel_stops_before_next_step(self, mock, registry, probe):
        token = CancelToken()

        def _cancel_after_first(step, result):
            token.cancel("SIGINT")

        report = execute_plan(
            _steps("a", "b", "c"), registry, probe, cancel=token, on_result=_cancel_after_first,
        )

        assert [r.step_id for r in report.results] == ["a"]
        assert report.results[0].status == StepStatus.APPLIED
        assert report.cancelled
        assert report.status == "cancelled"

    def test_cancel_during_last_step_completes_run(self, mock, registry, probe):
        token = CancelToken()

        def _cancel_on_last(step, result):
            if step.id == "b":
                token.cancel("SIGTERM")

        report = execute_plan(_steps("a", "b"), registry, probe, cancel=token, on_result=_cancel_on_last)
        assert not report.cancelled
        assert report.total == 2

    def test_on_result_sees_every_step(self, mock, registry, probe):
        seen = []
        execute_plan(_steps("a", "b"), registry, probe, on_result=lambda s, r: seen.append((s.id, r.status)))
        assert seen == [("a", StepStatus.APPLIED), ("b", StepStatus.APPLIED)]

    def test_dry_run_reports_pending(self, mock, registry, probe):
        mock.satisfied.add("a")
        report = execute_plan(_steps("a", "b"), registry, probe, ExecutionSettings(dry_run=True))
        assert report.dry_run
        assert report.results[0].detail == "already satisfied"
        assert report.results[1].detail.startswith("[dry-run]")
        assert mock.apply_count == 0

    def test_report_to_dict(self, mock, registry, probe):
        report = execute_plan(_steps("a"), registry, probe, run_id="run-x", profile="zsh")
        data = report.to_dict()
        assert data["run_id"] == "run-x"
        assert data["profile"] == "zsh"
        assert data["status"] == "ok"
        assert data["results"][0]["status"] == "applied"


class _FactReadingHandler(StepHandler):
    """Records the snapshot each check receives."""

    def __init__(self):
        self.snapshots: list[HostFacts] = []

    @property
    def kind(self) -> StepKind:
        return StepKind.COMMAND_RUN

    def facts_needed(self, step: Step) -> FactQuery:
        return FactQuery(packages=("zsh",))

    def check(self, step: Step, facts: HostFacts) -> bool:
        self.snapshots.append(facts)
        return facts.has_package("zsh")

    def apply(self, step: Step, ctx: ApplyContext) -> str:
        ctx.runner.installed.add("zsh")
        return "installed zsh"


class TestFactsPerCheck:
    def test_fresh_snapshot_for_every_check(self, fake_host):
        handler = _FactReadingHandler()
        reg = HandlerRegistry()
        reg.register(handler)
        probe = FactProbe(fake_host, Platform(os_id="debian", family="debian"))

        report = execute_plan(_steps("a", "b"), reg, probe)

        # a: check (absent), apply, verify (present); b: check (present)
        assert [f.has_package("zsh") for f in handler.snapshots] == [False, True, True]
        assert [r.status for r in report.results] == [StepStatus.APPLIED, StepStatus.SKIPPED]


class TestRunId:
    def test_format_and_uniqueness(self):
        a, b = generate_run_id(), generate_run_id()
        assert a.startswith("run-")
        assert a != b

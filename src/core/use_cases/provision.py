"""
Provision use case — load a profile, build the plan, converge the host.

This is the full vertical slice behind ``apply`` and ``plan``:

    profile → detect platform → build plan → preflight → execute
            → persist state + audit (apply only)

Only configuration and platform problems surface as ``error``; every
step outcome lives in the report.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from src.adapters.registry import HandlerRegistry
from src.adapters.shell.runner import CommandRunner
from src.core.config.loader import resolve_request
from src.core.engine.executor import (
    ExecutionReport,
    ExecutionSettings,
    execute_plan,
    generate_run_id,
)
from src.core.engine.interrupts import CancelToken, deferred_interrupts
from src.core.engine.planner import build_plan, requires_privilege
from src.core.engine.reporter import EXIT_FAILED, exit_code
from src.core.errors import ConfigError, UnsupportedPlatform
from src.core.models.facts import Platform
from src.core.models.request import ProvisionRequest
from src.core.models.result import PlanResult, StepStatus
from src.core.models.state import RunState
from src.core.models.step import Step
from src.core.persistence.audit import AuditEntry, AuditWriter
from src.core.persistence.state_file import default_state_dir, save_state, state_path
from src.core.services.facts import FactProbe, detect_platform, invoking_user
from src.core.services.package_managers import manager_for

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Result of a plan or apply run."""

    request: ProvisionRequest | None = None
    source: str = ""
    platform: Platform | None = None
    user: str = ""
    home: str = ""
    steps: list[Step] = field(default_factory=list)
    descriptions: dict[str, str] = field(default_factory=dict)
    report: ExecutionReport | None = None
    error: str | None = None
    exit_code: int = 0

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        result["profile"] = self.request.name if self.request else ""
        result["source"] = self.source
        if self.platform:
            result["platform"] = self.platform.model_dump()
        result["user"] = self.user
        result["steps"] = [
            {"id": s.id, "kind": s.kind.value, "description": self.descriptions.get(s.id, "")}
            for s in self.steps
        ]
        if self.report:
            result["report"] = self.report.to_dict()
        result["exit_code"] = self.exit_code
        return result


def _merge_settings(
    request: ProvisionRequest,
    *,
    dry_run: bool,
    continue_on_error: bool | None,
    accept_partial: bool | None,
    timeout: int | None,
) -> ExecutionSettings:
    """Profile settings with command-line overrides applied."""
    s = request.settings
    return ExecutionSettings(
        continue_on_error=s.continue_on_error if continue_on_error is None else continue_on_error,
        accept_partial=s.accept_partial if accept_partial is None else accept_partial,
        step_timeout=s.step_timeout if timeout is None else timeout,
        verify=s.verify,
        dry_run=dry_run,
    )


def run_provision(
    config_path: Path | None = None,
    profile: str | None = None,
    *,
    dry_run: bool = False,
    continue_on_error: bool | None = None,
    accept_partial: bool | None = None,
    timeout: int | None = None,
    state_dir: Path | None = None,
    os_release: Path | None = None,
    user: str | None = None,
    home: str | None = None,
    runner: CommandRunner | None = None,
    registry: HandlerRegistry | None = None,
    cancel: CancelToken | None = None,
    on_result: Callable[[Step, PlanResult], None] | None = None,
) -> ProvisionResult:
    """Plan (dry run) or apply a provisioning profile on this host.

    Args:
        config_path: Explicit provision.yml.
        profile: Built-in profile name (wins over ``config_path``).
        dry_run: Evaluate checks only; nothing is applied or persisted.
        continue_on_error: Override the profile setting.
        accept_partial: Override the profile setting.
        timeout: Per-step timeout override, in seconds.
        state_dir: Where last-run.json and audit.ndjson live.
        os_release: os-release override (tests).
        user: Target user override (tests).
        home: Target home override (tests).
        runner: Command runner override (tests).
        registry: Handler registry override (tests).
        cancel: Cancellation token; a fresh one is created if None.
        on_result: Per-step progress callback.

    Returns:
        ProvisionResult with report and exit code.
    """
    result = ProvisionResult()

    # ── Load profile and detect host ─────────────────────────────
    try:
        request, source = resolve_request(config_path, profile)
        result.request, result.source = request, source

        platform = detect_platform(os_release)
        result.platform = platform

        if user is None or home is None:
            default_user, default_home = invoking_user()
            user = user or default_user
            home = home or default_home
        result.user, result.home = user, home

        steps = build_plan(request, platform, user=user, home=home)
        result.steps = steps
        manager = manager_for(platform.family)
    except (ConfigError, UnsupportedPlatform) as e:
        result.error = str(e)
        result.exit_code = EXIT_FAILED
        return result

    settings = _merge_settings(
        request,
        dry_run=dry_run,
        continue_on_error=continue_on_error,
        accept_partial=accept_partial,
        timeout=timeout,
    )

    runner = runner or CommandRunner(default_timeout=settings.step_timeout)
    registry = registry or HandlerRegistry.with_defaults(manager)
    probe = FactProbe(runner, platform, manager)

    for step in steps:
        handler = registry.get(step.kind)
        result.descriptions[step.id] = handler.describe(step) if handler else step.kind.value

    # ── Preflight ────────────────────────────────────────────────
    if not dry_run and any(requires_privilege(s) for s in steps) and not probe.has_elevated_access():
        pending = _pending_privileged(steps, registry, probe)
        if pending:
            result.error = (
                f"Steps {', '.join(pending)} need root: run as root or configure "
                "passwordless sudo (sudo -n true must succeed)."
            )
            result.exit_code = EXIT_FAILED
            return result

    # ── Execute ──────────────────────────────────────────────────
    run_id = generate_run_id()
    token = cancel or CancelToken()
    start = time.monotonic()
    with deferred_interrupts(token):
        report = execute_plan(
            steps,
            registry,
            probe,
            settings,
            runner=runner,
            cancel=token,
            run_id=run_id,
            profile=request.name,
            on_result=on_result,
        )
    duration_ms = int((time.monotonic() - start) * 1000)
    result.report = report
    result.exit_code = exit_code(report)

    # ── Persist ──────────────────────────────────────────────────
    if not dry_run:
        _persist(report, platform, user, state_dir or default_state_dir(), duration_ms)

    return result


def _persist(
    report: ExecutionReport,
    platform: Platform,
    user: str,
    state_dir: Path,
    duration_ms: int,
) -> None:
    state = RunState(
        run_id=report.run_id,
        profile=report.profile,
        os_id=platform.os_id,
        family=platform.family,
        started_at=report.started_at,
        ended_at=report.ended_at,
        status=report.status,
        cancelled=report.cancelled,
        applied=report.applied,
        skipped=report.skipped,
        failed=report.failed,
        results=list(report.results),
        metadata={"user": user, "planned": report.planned},
    )
    try:
        save_state(state, state_path(state_dir))
    except OSError as e:
        logger.warning("Run state not saved: %s", e)

    AuditWriter(state_dir=state_dir).write(
        AuditEntry(
            run_id=report.run_id,
            profile=report.profile,
            os_id=platform.os_id,
            user=user,
            status=report.status,
            dry_run=report.dry_run,
            steps_total=report.planned,
            steps_applied=report.applied,
            steps_skipped=report.skipped,
            steps_failed=report.failed,
            applied_ids=[r.step_id for r in report.results if r.status == StepStatus.APPLIED],
            duration_ms=duration_ms,
            errors=[f"{r.step_id}: {r.error}" for r in report.results if r.failed],
        )
    )


def _pending_privileged(steps: list[Step], registry: HandlerRegistry, probe: FactProbe) -> list[str]:
    """Ids of privileged steps that are not yet satisfied."""
    pending = []
    for step in steps:
        handler = registry.get(step.kind)
        if handler is None or not requires_privilege(step):
            continue
        if not handler.check(step, probe.snapshot(handler.facts_needed(step))):
            pending.append(step.id)
    return pending

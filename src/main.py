"""
System Setup — CLI entrypoint.

Usage:
    system-setup --help
    system-setup plan
    system-setup apply --profile zsh
    system-setup config check
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from src import __version__
from src.core.models.result import PlanResult, StepStatus
from src.core.models.step import Step
from src.core.observability.logging_config import setup_from_env

_STATUS_STYLE = {
    StepStatus.APPLIED: ("✓", "green"),
    StepStatus.SKIPPED: ("⊘", "yellow"),
    StepStatus.FAILED: ("✗", "red"),
}


@click.group()
@click.version_option(version=__version__, prog_name="system-setup")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to provision.yml (default: auto-detect, else the built-in profile).",
)
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Where run state and the audit ledger live.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    state_dir: str | None,
) -> None:
    """System Setup — idempotent host provisioning."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["state_dir"] = Path(state_dir) if state_dir else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_from_env(debug=debug, verbose=verbose, quiet=quiet)


def _echo_step(step: Step, result: PlanResult) -> None:
    """Progress line for one step, printed as it finishes."""
    marker, color = _STATUS_STYLE[result.status]
    if result.detail.startswith("[dry-run]"):
        marker, color = "→", "cyan"
    click.secho(f"   {marker} {step.id}", fg=color, nl=False)
    timing = f" ({result.duration_ms}ms)" if result.status == StepStatus.APPLIED else ""
    click.echo(f"{timing}  {result.detail}" if result.detail else timing)


def _profile_option(f):
    return click.option(
        "--profile",
        "-p",
        default=None,
        help="Built-in profile (system, zsh). Overrides --config.",
    )(f)


# ── Plan / Apply ────────────────────────────────────────────────


def _run(ctx: click.Context, profile: str | None, as_json: bool, *, dry_run: bool, **overrides):
    """Run plan/apply; in human mode print a header and live step lines."""
    from src.core.use_cases.provision import run_provision

    if not as_json and not ctx.obj.get("quiet"):
        click.secho(f"\n⚡ {'plan' if dry_run else 'apply'}", fg="cyan", bold=True)
        click.echo()

    return run_provision(
        config_path=ctx.obj.get("config_path"),
        profile=profile,
        dry_run=dry_run,
        state_dir=ctx.obj.get("state_dir"),
        on_result=None if as_json else _echo_step,
        **overrides,
    )


@cli.command()
@_profile_option
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(ctx: click.Context, profile: str | None, as_json: bool) -> None:
    """Show what apply would change (checks only, nothing is modified)."""
    result = _run(ctx, profile, as_json, dry_run=True)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    report = result.report
    assert report is not None
    pending = sum(1 for r in report.results if r.detail.startswith("[dry-run]"))
    click.echo()
    if pending:
        click.secho(
            f"   {pending} step(s) would change, {report.total - pending} already satisfied",
            bold=True,
        )
    else:
        click.secho("   ✅ Host is converged, nothing to do", fg="green", bold=True)
    click.echo()


@cli.command()
@_profile_option
@click.option("--continue-on-error", is_flag=True, default=None, help="Keep going after a failed step.")
@click.option(
    "--accept-partial",
    is_flag=True,
    default=None,
    help="With --continue-on-error, exit 0 even if some steps failed.",
)
@click.option("--timeout", type=click.IntRange(min=1), default=None, help="Per-step timeout in seconds.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def apply(
    ctx: click.Context,
    profile: str | None,
    continue_on_error: bool | None,
    accept_partial: bool | None,
    timeout: int | None,
    as_json: bool,
) -> None:
    """Converge this host to the profile.

    Examples:

        system-setup apply

        system-setup apply --profile zsh

        system-setup --config ./provision.yml apply --continue-on-error
    """
    from src.core.engine.reporter import render_summary

    result = _run(
        ctx,
        profile,
        as_json,
        dry_run=False,
        continue_on_error=continue_on_error,
        accept_partial=accept_partial,
        timeout=timeout,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    report = result.report
    assert report is not None
    status_color = {"ok": "green", "partial": "yellow", "failed": "red", "cancelled": "yellow"}.get(
        report.status, "white"
    )
    totals, *advice = render_summary(report, include_steps=False)
    click.echo()
    click.secho(f"   Result: {totals}", fg=status_color, bold=True)
    for line in advice:
        click.echo(f"   {line}")
    click.echo()
    sys.exit(result.exit_code)


# ── Facts / Status ──────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def facts(as_json: bool) -> None:
    """Show the detected platform and the invoking user."""
    from src.core.use_cases.facts import gather_facts

    result = gather_facts()

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    platform = result.platform
    assert platform is not None
    click.secho(f"\n🖥️  {platform.pretty_name or platform.os_id}", fg="cyan", bold=True)
    click.echo(f"   OS id:           {platform.os_id}")
    click.echo(f"   Family:          {platform.family} ({result.package_manager})")
    click.echo(f"   User:            {result.user} ({result.home})")
    click.echo(f"   Login shell:     {result.login_shell or 'unknown'}")
    access = "root" if result.is_root else "passwordless sudo" if result.elevated else "none"
    color = "green" if result.elevated else "yellow"
    click.echo("   Elevated access: ", nl=False)
    click.secho(access, fg=color)
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show the outcome of the last apply."""
    from src.core.use_cases.status import get_status

    result = get_status(state_dir=ctx.obj.get("state_dir"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if not result.has_run:
        click.secho("⊘ No recorded runs yet. Run 'system-setup apply'.", fg="yellow")
        return

    state = result.state
    assert state is not None
    status_color = {"ok": "green", "partial": "yellow", "failed": "red", "cancelled": "yellow"}.get(
        state.status, "white"
    )
    click.secho(f"\n📋 {state.profile}", fg="cyan", bold=True)
    click.echo(f"   Run:    {state.run_id}")
    click.echo(f"   Host:   {state.os_id} ({state.family})")
    click.echo(f"   Ended:  {state.ended_at}")
    click.echo("   Status: ", nl=False)
    click.secho(state.status, fg=status_color)
    click.echo(f"   Steps:  {state.applied} applied, {state.skipped} skipped, {state.failed} failed")

    failures = [r for r in state.results if r.failed]
    if failures:
        click.echo()
        click.secho("   Failed steps:", fg="red", bold=True)
        for r in failures:
            click.echo(f"     ✗ {r.step_id}: {r.detail}")

    click.echo(f"\n   Runs recorded: {result.run_count}")
    click.echo()


# ── Config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Profile configuration commands."""


@config.command("check")
@_profile_option
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, profile: str | None, as_json: bool) -> None:
    """Validate a profile and build its plan for every OS family."""
    from src.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"), profile=profile)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.request is not None
        click.secho("✅ Profile is valid", fg="green", bold=True)
        click.echo(f"   Profile: {result.request.name} ({result.source})")
        click.echo(f"   Entries: {len(result.request.steps)}")
        for family, count in result.step_counts.items():
            click.echo(f"     • {family}: {count} steps")
    else:
        click.secho("❌ Profile errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    click.echo()
    if not result.valid:
        sys.exit(1)


# ── Sub-groups ──────────────────────────────────────────────────

from src.ui.cli.patch import patch  # noqa: E402

cli.add_command(patch)


if __name__ == "__main__":
    cli()

"""
CommandRun handler — an opaque command made idempotent by its guards.

Vendor installers (curl | sh), repository setup and editor bootstraps
have no declarative equivalent. A CommandRun wraps one with:

    creates  path that exists once the command has run
    unless   read-only probe command; exit 0 means "already done"

The step is satisfied when every declared guard holds.
"""

from __future__ import annotations

import logging

from src.adapters.base import ApplyContext, StepHandler
from src.core.models.facts import FactQuery, HostFacts, ProbeCommand
from src.core.models.step import CommandTarget, Step, StepKind

logger = logging.getLogger(__name__)


class CommandRunHandler(StepHandler):

    @property
    def kind(self) -> StepKind:
        return StepKind.COMMAND_RUN

    def facts_needed(self, step: Step) -> FactQuery:
        target: CommandTarget = step.target
        paths = (target.creates,) if target.creates else ()
        probes = (
            (ProbeCommand(target.unless, privileged=target.privileged),)
            if target.unless else ()
        )
        return FactQuery(paths=paths, probes=probes)

    def check(self, step: Step, facts: HostFacts) -> bool:
        target: CommandTarget = step.target
        if target.creates and not facts.exists(target.creates):
            return False
        if target.unless and not facts.probe_ok(target.unless):
            return False
        return True

    def apply(self, step: Step, ctx: ApplyContext) -> str:
        target: CommandTarget = step.target
        command = target.command if target.shell else list(target.command)
        logger.info("Running: %s", target.display)
        ctx.run(command, privileged=target.privileged)
        return f"ran {target.display}"

    def describe(self, step: Step) -> str:
        target: CommandTarget = step.target
        return step.description or f"run {target.display}"

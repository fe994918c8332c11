"""
ServiceEnabled handler — a systemd unit enabled and running.

Both halves matter: a unit that is running but not enabled will not
survive a reboot, and an enabled unit that is stopped is not converged.
``systemctl enable --now`` fixes either half in one call.
"""

from __future__ import annotations

from src.adapters.base import ApplyContext, StepHandler
from src.core.models.facts import FactQuery, HostFacts
from src.core.models.step import ServiceTarget, Step, StepKind


class ServiceEnabledHandler(StepHandler):

    @property
    def kind(self) -> StepKind:
        return StepKind.SERVICE_ENABLED

    def facts_needed(self, step: Step) -> FactQuery:
        target: ServiceTarget = step.target
        return FactQuery(services=(target.service,))

    def check(self, step: Step, facts: HostFacts) -> bool:
        target: ServiceTarget = step.target
        return facts.service_running(target.service)

    def apply(self, step: Step, ctx: ApplyContext) -> str:
        target: ServiceTarget = step.target
        ctx.run(["systemctl", "enable", "--now", target.service], privileged=True)
        return f"enabled and started {target.service}"

    def describe(self, step: Step) -> str:
        target: ServiceTarget = step.target
        return step.description or f"enable and start {target.service}"

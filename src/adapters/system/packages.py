"""
PackagesPresent handler — native packages installed via the family's manager.

Satisfied when every package in the target is installed. Apply installs
only the missing ones in a single transaction, after a metadata refresh
on managers that need one (apt, zypper).
"""

from __future__ import annotations

import logging

from src.adapters.base import ApplyContext, StepHandler
from src.core.models.facts import FactQuery, HostFacts
from src.core.models.step import PackagesTarget, Step, StepKind
from src.core.services.package_managers import PackageManager

logger = logging.getLogger(__name__)


class PackagesPresentHandler(StepHandler):
    """Install missing packages with the host's package manager."""

    def __init__(self, manager: PackageManager):
        self._manager = manager

    @property
    def kind(self) -> StepKind:
        return StepKind.PACKAGES_PRESENT

    def facts_needed(self, step: Step) -> FactQuery:
        target: PackagesTarget = step.target
        return FactQuery(packages=target.packages)

    def check(self, step: Step, facts: HostFacts) -> bool:
        target: PackagesTarget = step.target
        return all(facts.has_package(p) for p in target.packages)

    def apply(self, step: Step, ctx: ApplyContext) -> str:
        target: PackagesTarget = step.target
        missing = [p for p in target.packages if not ctx.facts.has_package(p)]
        if not missing:
            missing = list(target.packages)

        if self._manager.refresh:
            logger.info("Refreshing %s metadata", self._manager.name)
            ctx.run(list(self._manager.refresh), privileged=True)

        logger.info("Installing via %s: %s", self._manager.name, " ".join(missing))
        ctx.run(self._manager.install_argv(missing), privileged=True)
        return f"installed {' '.join(missing)}"

    def describe(self, step: Step) -> str:
        target: PackagesTarget = step.target
        return step.description or f"install {', '.join(target.packages)} ({self._manager.name})"

"""
DirectoryCloned handler — a git repository cloned to a path.

Seed-once: the check is "destination exists", so an existing checkout
is never pulled, reset or replaced. Updating a clone is the user's
business, not the provisioner's.
"""

from __future__ import annotations

import logging
from pathlib import Path

from src.adapters.base import ApplyContext, StepHandler
from src.core.errors import ApplyError
from src.core.models.facts import FactQuery, HostFacts
from src.core.models.step import CloneTarget, Step, StepKind

logger = logging.getLogger(__name__)


def clone_argv(target: CloneTarget) -> list[str]:
    argv = ["git", "clone"]
    if target.depth:
        argv += ["--depth", str(target.depth)]
    return [*argv, target.url, target.dest]


class DirectoryClonedHandler(StepHandler):
    """Clone with the git CLI (runs as the invoking user)."""

    @property
    def kind(self) -> StepKind:
        return StepKind.DIRECTORY_CLONED

    def facts_needed(self, step: Step) -> FactQuery:
        target: CloneTarget = step.target
        return FactQuery(paths=(target.dest,))

    def check(self, step: Step, facts: HostFacts) -> bool:
        target: CloneTarget = step.target
        return facts.exists(target.dest)

    def apply(self, step: Step, ctx: ApplyContext) -> str:
        target: CloneTarget = step.target
        parent = Path(target.dest).parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ApplyError(f"cannot create {parent}: {e}") from e

        logger.info("Cloning %s → %s", target.url, target.dest)
        ctx.run(clone_argv(target))
        return f"cloned {target.url}"

    def describe(self, step: Step) -> str:
        target: CloneTarget = step.target
        return step.description or f"clone {target.url} to {target.dest}"

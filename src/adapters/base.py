"""
Step handler base — the contract between the executor and the host.

Every step kind has exactly one handler. A handler answers three
questions for a step:

    facts_needed(step) → which facts the check reads
    check(step, facts) → is the desired state already present?
    apply(step, ctx)   → make it present (raise on failure)

``check`` is pure: it only reads the HostFacts snapshot it is given.
``apply`` is the only place side effects happen, and every external
command it runs goes through ``ApplyContext.run`` so the step deadline
is enforced.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from src.adapters.shell.runner import Command, CommandResult, CommandRunner
from src.core.errors import ApplyError, StepTimeout
from src.core.models.facts import FactQuery, HostFacts
from src.core.models.step import Step, StepKind

# Tail of stderr quoted in failure messages.
_ERROR_TAIL = 400


@dataclass
class ApplyContext:
    """Everything a handler needs to apply one step.

    Attributes:
        runner: Spawns external commands.
        timeout: Step budget in seconds.
        facts: The snapshot the (failed) check was evaluated against.
        deadline: Monotonic time after which the step has timed out.
    """

    runner: CommandRunner
    timeout: float
    facts: HostFacts = field(default_factory=HostFacts)
    deadline: float = 0.0

    def __post_init__(self) -> None:
        if not self.deadline:
            self.deadline = time.monotonic() + self.timeout

    def remaining(self) -> float:
        """Seconds left in the step budget (may be negative)."""
        return self.deadline - time.monotonic()

    def check_deadline(self) -> None:
        if self.remaining() <= 0:
            raise StepTimeout(self.timeout)

    def run(
        self,
        command: Command,
        *,
        privileged: bool = False,
        input: str | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        """Run a command within the step budget; non-zero exit raises.

        Raises:
            StepTimeout: The step budget ran out.
            ApplyError: The command failed to start or exited non-zero.
        """
        remaining = self.remaining()
        if remaining <= 0:
            raise StepTimeout(self.timeout)
        try:
            result = self.runner.run(
                command, privileged=privileged, timeout=remaining, input=input, cwd=cwd,
            )
        except StepTimeout as e:
            # Report the step budget, not the leftover slice.
            raise StepTimeout(self.timeout, e.command) from e
        if not result.ok:
            tail = (result.stderr or result.stdout).strip()[-_ERROR_TAIL:]
            message = f"{result.display} failed (exit {result.returncode})"
            raise ApplyError(f"{message}: {tail}" if tail else message)
        return result


class StepHandler(ABC):
    """Abstract base class for step handlers.

    To add a step kind:
        1. Add a target model and StepKind member
        2. Subclass StepHandler and implement the four hooks
        3. Register it in ``HandlerRegistry.with_defaults``
    """

    @property
    @abstractmethod
    def kind(self) -> StepKind:
        """The step kind this handler converges."""

    @abstractmethod
    def facts_needed(self, step: Step) -> FactQuery:
        """Facts the check for ``step`` reads."""

    @abstractmethod
    def check(self, step: Step, facts: HostFacts) -> bool:
        """True when the desired state is already present. No side effects."""

    @abstractmethod
    def apply(self, step: Step, ctx: ApplyContext) -> str:
        """Converge the host and return a short detail line.

        Raises:
            ApplyError: The host could not be converged.
            PatchAnchorNotFound: A replace patch found no anchor.
        """

    def describe(self, step: Step) -> str:
        """One-line human description used by ``plan``."""
        return step.description or f"{self.kind.value} {step.id}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} kind={self.kind.value!r}>"

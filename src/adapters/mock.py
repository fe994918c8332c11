"""
Mock handler — test double for any step kind.

Simulates a host in memory: a step is satisfied once its id is in
``satisfied``. ``apply`` marks it satisfied (unless told not to
converge) or raises a configured error. Every call is logged so tests
can assert ordering and idempotence.
"""

from __future__ import annotations

from src.adapters.base import ApplyContext, StepHandler
from src.core.errors import ApplyError
from src.core.models.facts import FactQuery, HostFacts
from src.core.models.step import Step, StepKind


class MockHandler(StepHandler):
    """In-memory handler for executor tests."""

    def __init__(self, kind: StepKind = StepKind.COMMAND_RUN, converge: bool = True):
        self._kind = kind
        self._converge = converge
        self.satisfied: set[str] = set()
        self._failures: dict[str, Exception] = {}
        self.call_log: list[tuple[str, str]] = []   # (operation, step id)

    @property
    def kind(self) -> StepKind:
        return self._kind

    @property
    def apply_count(self) -> int:
        return sum(1 for op, _ in self.call_log if op == "apply")

    def applied_ids(self) -> list[str]:
        return [step_id for op, step_id in self.call_log if op == "apply"]

    def set_failure(self, step_id: str, error: Exception | str = "Mock failure") -> None:
        """Make ``apply`` raise for one step id."""
        self._failures[step_id] = ApplyError(error) if isinstance(error, str) else error

    def clear_failure(self, step_id: str) -> None:
        self._failures.pop(step_id, None)

    def facts_needed(self, step: Step) -> FactQuery:
        return FactQuery()

    def check(self, step: Step, facts: HostFacts) -> bool:
        self.call_log.append(("check", step.id))
        return step.id in self.satisfied

    def apply(self, step: Step, ctx: ApplyContext) -> str:
        self.call_log.append(("apply", step.id))
        if step.id in self._failures:
            raise self._failures[step.id]
        if self._converge:
            self.satisfied.add(step.id)
        return f"[mock] applied {step.id}"

    def reset(self) -> None:
        """Clear call log, failures and host state."""
        self.call_log.clear()
        self._failures.clear()
        self.satisfied.clear()

"""
Patch handlers — LinePatched and BlockAppended steps over the patcher.

Checks evaluate the patcher's pure text helpers against the file text
in the snapshot; applies call the patcher primitives. A replace whose
anchor is missing raises PatchAnchorNotFound, which the executor
records as Skipped.
"""

from __future__ import annotations

from pathlib import Path

from src.adapters.base import ApplyContext, StepHandler
from src.core.models.facts import FactQuery, HostFacts
from src.core.models.step import BlockTarget, LinePatchTarget, Step, StepKind
from src.core.services import patcher


class LinePatchedHandler(StepHandler):
    """replace: one anchored line rewritten. ensure: lines added if absent."""

    @property
    def kind(self) -> StepKind:
        return StepKind.LINE_PATCHED

    def facts_needed(self, step: Step) -> FactQuery:
        target: LinePatchTarget = step.target
        return FactQuery(files=(target.path,))

    def check(self, step: Step, facts: HostFacts) -> bool:
        target: LinePatchTarget = step.target
        text = facts.file_text(target.path)
        if target.mode == "replace":
            return patcher.line_replaced(text, target.pattern, target.line)
        return patcher.has_line(text, target.probe)

    def apply(self, step: Step, ctx: ApplyContext) -> str:
        target: LinePatchTarget = step.target
        path = Path(target.path)
        if target.mode == "replace":
            changed = patcher.replace_line(path, target.pattern, target.line)
            return f"replaced line in {path}" if changed else f"{path} already correct"
        changed = patcher.ensure_line(path, target.probe, target.lines)
        return f"inserted {len(target.lines)} line(s) into {path}" if changed else f"{path} already correct"

    def describe(self, step: Step) -> str:
        target: LinePatchTarget = step.target
        if target.mode == "replace":
            return step.description or f"set {target.line!r} in {target.path}"
        return step.description or f"ensure {target.probe!r} in {target.path}"


class BlockAppendedHandler(StepHandler):
    """Append a marker-guarded block; present marker means done."""

    @property
    def kind(self) -> StepKind:
        return StepKind.BLOCK_APPENDED

    def facts_needed(self, step: Step) -> FactQuery:
        target: BlockTarget = step.target
        return FactQuery(files=(target.path,))

    def check(self, step: Step, facts: HostFacts) -> bool:
        target: BlockTarget = step.target
        return patcher.has_marker(facts.file_text(target.path), target.marker)

    def apply(self, step: Step, ctx: ApplyContext) -> str:
        target: BlockTarget = step.target
        path = Path(target.path)
        patcher.append_block(path, target.marker, target.content)
        return f"appended block {target.marker!r} to {path}"

    def describe(self, step: Step) -> str:
        target: BlockTarget = step.target
        return step.description or f"append block {target.marker!r} to {target.path}"

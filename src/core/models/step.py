"""
Step model — one declarative unit of desired host state.

A Step is pure data: an id, a kind, and a kind-specific target. The
check/apply pair lives in the step handler registered for the kind
(see ``src.adapters``). Steps are built once by the planner and never
mutated afterwards, so every model here is frozen.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class StepKind(str, Enum):
    """Every kind of desired state the engine knows how to converge."""

    PACKAGES_PRESENT = "PackagesPresent"
    DIRECTORY_CLONED = "DirectoryCloned"
    FILE_WRITTEN = "FileWritten"
    SERVICE_ENABLED = "ServiceEnabled"
    LINE_PATCHED = "LinePatched"
    BLOCK_APPENDED = "BlockAppended"
    COMMAND_RUN = "CommandRun"
    LOGIN_SHELL_SET = "LoginShellSet"
    GROUP_MEMBER = "GroupMember"


class _Target(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class PackagesTarget(_Target):
    """Native package names (already resolved for the host's family)."""

    packages: tuple[str, ...]
    logical: tuple[str, ...] = ()


class CloneTarget(_Target):
    url: str
    dest: str
    depth: int | None = None


class FileTarget(_Target):
    """A file with inline content or a download source.

    ``overwrite`` decides the existing-file policy: True converges the
    content, False seeds the file once and leaves it alone afterwards.
    """

    path: str
    content: str | None = None
    source_url: str | None = None
    mode: int | None = None
    overwrite: bool = True
    privileged: bool = False

    @model_validator(mode="after")
    def _one_source(self) -> FileTarget:
        if (self.content is None) == (self.source_url is None):
            raise ValueError("exactly one of 'content' or 'source_url' is required")
        if self.source_url is not None and self.overwrite:
            raise ValueError("downloaded files are seed-once: set overwrite to false")
        return self


class ServiceTarget(_Target):
    service: str


class LinePatchTarget(_Target):
    """Anchored edit of a single line, or conditional insertion.

    replace: the one line matching ``pattern`` becomes ``line``.
    ensure:  ``lines`` are appended unless a line equal to ``probe`` exists.
    """

    path: str
    mode: Literal["replace", "ensure"] = "replace"
    pattern: str | None = None
    line: str | None = None
    probe: str | None = None
    lines: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _mode_fields(self) -> LinePatchTarget:
        if self.mode == "replace":
            if self.pattern is None or self.line is None:
                raise ValueError("replace mode requires 'pattern' and 'line'")
            try:
                anchor = re.compile(self.pattern)
            except re.error as e:
                raise ValueError(f"invalid anchor pattern {self.pattern!r}: {e}") from e
            # The replacement must still match the anchor, or check can
            # never become true after apply.
            if not anchor.search(self.line):
                raise ValueError(
                    f"replacement line {self.line!r} does not match anchor {self.pattern!r}"
                )
        else:
            if self.probe is None or not self.lines:
                raise ValueError("ensure mode requires 'probe' and 'lines'")
            if self.probe.strip() not in (entry.strip() for entry in self.lines):
                raise ValueError("ensure mode: 'lines' must contain the probe line")
        return self


class BlockTarget(_Target):
    path: str
    marker: str
    content: str

    @field_validator("marker")
    @classmethod
    def _marker_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("marker must not be blank")
        return v


class CommandTarget(_Target):
    """An opaque command guarded by ``creates`` and/or ``unless``.

    The step is satisfied when every declared guard holds.
    """

    command: Union[str, tuple[str, ...]]
    creates: str | None = None
    unless: str | None = None
    privileged: bool = False

    @model_validator(mode="after")
    def _guarded(self) -> CommandTarget:
        if self.creates is None and self.unless is None:
            raise ValueError("a command step needs a 'creates' path or an 'unless' probe")
        if not self.command:
            raise ValueError("command must not be empty")
        return self

    @property
    def shell(self) -> bool:
        return isinstance(self.command, str)

    @property
    def display(self) -> str:
        return self.command if isinstance(self.command, str) else " ".join(self.command)


class LoginShellTarget(_Target):
    user: str
    shell: str


class GroupTarget(_Target):
    user: str
    group: str


Target = Union[
    PackagesTarget,
    CloneTarget,
    FileTarget,
    ServiceTarget,
    LinePatchTarget,
    BlockTarget,
    CommandTarget,
    LoginShellTarget,
    GroupTarget,
]

TARGET_TYPES: dict[StepKind, type[_Target]] = {
    StepKind.PACKAGES_PRESENT: PackagesTarget,
    StepKind.DIRECTORY_CLONED: CloneTarget,
    StepKind.FILE_WRITTEN: FileTarget,
    StepKind.SERVICE_ENABLED: ServiceTarget,
    StepKind.LINE_PATCHED: LinePatchTarget,
    StepKind.BLOCK_APPENDED: BlockTarget,
    StepKind.COMMAND_RUN: CommandTarget,
    StepKind.LOGIN_SHELL_SET: LoginShellTarget,
    StepKind.GROUP_MEMBER: GroupTarget,
}


class Step(BaseModel):
    """A unit of desired state: what to converge, not how."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: StepKind
    target: Target
    description: str = ""

    @model_validator(mode="after")
    def _target_matches_kind(self) -> Step:
        expected = TARGET_TYPES[self.kind]
        if not isinstance(self.target, expected):
            raise ValueError(
                f"step '{self.id}': kind {self.kind.value} needs a {expected.__name__}, "
                f"got {type(self.target).__name__}"
            )
        return self

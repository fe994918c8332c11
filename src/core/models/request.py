"""
ProvisionRequest — the validated form of a provisioning profile.

A profile (``provision.yml`` or a built-in) lists the desired state as
an ordered sequence of typed entries. Entries still carry logical
package names and ``{home}``/``{user}`` placeholders; the planner turns
them into concrete Steps for one host.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.core.data.platforms import KNOWN_FAMILIES


class Settings(BaseModel):
    """Executor policy for one run."""

    model_config = ConfigDict(extra="forbid")

    continue_on_error: bool = False
    accept_partial: bool = False
    step_timeout: int = Field(default=600, gt=0)   # seconds, per step
    verify: bool = True                            # re-check after apply


class PackageSpec(BaseModel):
    """A package entry with inline per-family names.

    Used for software missing from the built-in table, or to override
    it: ``{name: tmux, per_family: {arch: [tmux]}}``.
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    per_family: dict[str, list[str]] = Field(default_factory=dict)


class _Entry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    description: str = ""
    only_on: list[str] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("step id must not be blank")
        return v.strip()

    @field_validator("only_on")
    @classmethod
    def _known_families(cls, v: list[str]) -> list[str]:
        unknown = [f for f in v if f not in KNOWN_FAMILIES]
        if unknown:
            raise ValueError(
                f"unknown families {unknown}; known: {', '.join(KNOWN_FAMILIES)}"
            )
        return v


class PackagesEntry(_Entry):
    kind: Literal["PackagesPresent"]
    packages: list[Union[str, PackageSpec]]


class CloneEntry(_Entry):
    kind: Literal["DirectoryCloned"]
    url: str
    dest: str
    depth: int | None = None


class FileEntry(_Entry):
    kind: Literal["FileWritten"]
    path: str
    content: str | None = None
    source_url: str | None = None
    mode: str | None = None          # octal string, e.g. "0644"
    overwrite: bool = True
    privileged: bool = False

    @field_validator("mode")
    @classmethod
    def _octal(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            int(v, 8)
        except ValueError as e:
            raise ValueError(f"mode must be an octal string like '0644', got {v!r}") from e
        return v


class ServiceEntry(_Entry):
    kind: Literal["ServiceEnabled"]
    service: str


class LinePatchEntry(_Entry):
    kind: Literal["LinePatched"]
    path: str
    mode: Literal["replace", "ensure"] = "replace"
    pattern: str | None = None
    line: str | None = None
    probe: str | None = None
    lines: list[str] = Field(default_factory=list)


class BlockEntry(_Entry):
    kind: Literal["BlockAppended"]
    path: str
    marker: str
    content: str


class CommandEntry(_Entry):
    kind: Literal["CommandRun"]
    command: Union[str, list[str]]
    creates: str | None = None
    unless: str | None = None
    privileged: bool = False


class LoginShellEntry(_Entry):
    kind: Literal["LoginShellSet"]
    shell: str
    user: str = "{user}"


class GroupEntry(_Entry):
    kind: Literal["GroupMember"]
    group: str
    user: str = "{user}"


StepEntry = Annotated[
    Union[
        PackagesEntry,
        CloneEntry,
        FileEntry,
        ServiceEntry,
        LinePatchEntry,
        BlockEntry,
        CommandEntry,
        LoginShellEntry,
        GroupEntry,
    ],
    Field(discriminator="kind"),
]


class ProvisionRequest(BaseModel):
    """Root of a provisioning profile."""

    model_config = ConfigDict(extra="forbid")

    name: str
    description: str = ""
    settings: Settings = Field(default_factory=Settings)
    steps: list[StepEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self) -> ProvisionRequest:
        seen: set[str] = set()
        dupes: list[str] = []
        for entry in self.steps:
            if entry.id in seen:
                dupes.append(entry.id)
            seen.add(entry.id)
        if dupes:
            raise ValueError(f"duplicate step ids: {', '.join(sorted(set(dupes)))}")
        return self

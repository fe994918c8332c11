"""
Host facts — what a step's check is evaluated against.

A FactQuery names the facts a handler needs for one step; the fact
probe answers it with a HostFacts snapshot taken from the live system.
Snapshots are rebuilt for every check and never persisted, because
earlier steps change the host (a package just installed, a file just
written).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict


class Platform(BaseModel):
    """Detected operating system: raw identifier plus package family."""

    model_config = ConfigDict(frozen=True)

    os_id: str
    family: str
    pretty_name: str = ""
    version_id: str = ""


@dataclass(frozen=True)
class ProbeCommand:
    """A read-only shell command whose exit status is a fact."""

    command: str
    privileged: bool = False


@dataclass(frozen=True)
class FactQuery:
    """The facts one check needs. Empty query → empty snapshot."""

    packages: tuple[str, ...] = ()
    paths: tuple[str, ...] = ()
    services: tuple[str, ...] = ()
    files: tuple[str, ...] = ()
    privileged_files: tuple[str, ...] = ()  # subset of files read via sudo when needed
    shells: tuple[str, ...] = ()     # users whose login shell is needed
    groups: tuple[str, ...] = ()     # users whose group list is needed
    binaries: tuple[str, ...] = ()   # names or paths to resolve
    probes: tuple[ProbeCommand, ...] = ()


@dataclass(frozen=True)
class HostFacts:
    """Point-in-time snapshot answering one FactQuery."""

    platform: Platform | None = None
    packages: frozenset[str] = frozenset()
    paths: frozenset[str] = frozenset()
    active_services: frozenset[str] = frozenset()
    enabled_services: frozenset[str] = frozenset()
    files: dict[str, str | None] = field(default_factory=dict)
    shells: dict[str, str | None] = field(default_factory=dict)
    groups: dict[str, frozenset[str]] = field(default_factory=dict)
    binaries: dict[str, str | None] = field(default_factory=dict)
    probes: dict[str, bool] = field(default_factory=dict)

    def has_package(self, name: str) -> bool:
        return name in self.packages

    def exists(self, path: str) -> bool:
        return path in self.paths

    def service_running(self, name: str) -> bool:
        return name in self.active_services and name in self.enabled_services

    def file_text(self, path: str) -> str | None:
        return self.files.get(path)

    def login_shell(self, user: str) -> str | None:
        return self.shells.get(user)

    def in_group(self, user: str, group: str) -> bool:
        return group in self.groups.get(user, frozenset())

    def binary(self, name: str) -> str | None:
        return self.binaries.get(name)

    def probe_ok(self, command: str) -> bool:
        return self.probes.get(command, False)

    def same_file(self, a: str | None, b: str | None) -> bool:
        """Compare two paths after resolving symlinks (/bin → /usr/bin)."""
        if not a or not b:
            return False
        return a == b or os.path.realpath(a) == os.path.realpath(b)

"""
Package managers — per-family command tables.

The engine treats every package manager as opaque: it builds argv
lists from this table and interprets exit codes (plus the one status
string dpkg prints). Package-manager output is never parsed beyond that.

    apt    → dpkg-query -W -f='${Status}' PKG
    zypper → rpm -q PKG
    pacman → pacman -Q PKG
    dnf    → rpm -q PKG
"""

from __future__ import annotations

from dataclasses import dataclass

from src.core.errors import UnsupportedPlatform


@dataclass(frozen=True)
class PackageManager:
    """How to query, refresh and install on one package family."""

    name: str
    query: tuple[str, ...]
    install: tuple[str, ...]
    refresh: tuple[str, ...] | None = None
    installed_marker: str | None = None   # stdout marker; None → exit code decides

    def query_argv(self, package: str) -> list[str]:
        return [*self.query, package]

    def install_argv(self, packages: list[str]) -> list[str]:
        return [*self.install, *packages]

    def is_installed(self, returncode: int, stdout: str) -> bool:
        """Interpret the result of ``query_argv``."""
        if self.installed_marker is not None:
            return self.installed_marker in stdout
        return returncode == 0


MANAGERS: dict[str, PackageManager] = {
    "debian": PackageManager(
        name="apt",
        query=("dpkg-query", "-W", "-f=${Status}"),
        install=("env", "DEBIAN_FRONTEND=noninteractive", "apt-get", "install", "-y"),
        refresh=("apt-get", "update"),
        installed_marker="install ok installed",
    ),
    "suse": PackageManager(
        name="zypper",
        query=("rpm", "-q"),
        install=("zypper", "--non-interactive", "install"),
        refresh=("zypper", "--non-interactive", "refresh"),
    ),
    "arch": PackageManager(
        name="pacman",
        query=("pacman", "-Q"),
        # -Syu refreshes and upgrades in one transaction; partial
        # upgrades are unsupported on Arch.
        install=("pacman", "-Syu", "--noconfirm", "--needed"),
    ),
    "fedora": PackageManager(
        name="dnf",
        query=("rpm", "-q"),
        install=("dnf", "install", "-y"),
    ),
}


def manager_for(family: str) -> PackageManager:
    """Look up the package manager for a family.

    Raises:
        UnsupportedPlatform: No manager is defined for the family.
    """
    try:
        return MANAGERS[family]
    except KeyError:
        raise UnsupportedPlatform(f"No package manager for family '{family}'") from None

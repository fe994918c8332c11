"""
Fact probe — read-only queries against the live host.

Every query fails softly: if the underlying command is missing, times
out, or errors, the fact is reported as absent (``False`` / ``None``)
and a warning is logged. Absence of evidence is "not present", which
is what a check-then-apply step wants.

The one hard failure is platform detection: an unreadable or
unrecognized /etc/os-release raises ``UnsupportedPlatform``, because
every package-name mapping depends on the family.
"""

from __future__ import annotations

import getpass
import logging
import os
import shutil
from pathlib import Path

from src.adapters.shell.runner import Command, CommandRunner
from src.core.data.platforms import OS_FAMILIES
from src.core.errors import ApplyError, ProbeError, UnsupportedPlatform
from src.core.models.facts import FactQuery, HostFacts, Platform
from src.core.services.package_managers import PackageManager, manager_for

logger = logging.getLogger(__name__)

OS_RELEASE_PATH = Path("/etc/os-release")

# Fact queries are quick; anything slower is treated as unknown.
_QUERY_TIMEOUT = 10


# ── Platform detection ──────────────────────────────────────────


def parse_os_release(text: str) -> dict[str, str]:
    """Parse os-release ``KEY=value`` lines, unquoting values."""
    fields: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        fields[key.strip()] = value
    return fields


def detect_platform(os_release: Path | None = None) -> Platform:
    """Detect the OS family from the ``ID`` field of os-release.

    Args:
        os_release: Override path (tests). Defaults to /etc/os-release.

    Raises:
        UnsupportedPlatform: File missing, no ID, or ID not in the table.
    """
    path = os_release or OS_RELEASE_PATH
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise UnsupportedPlatform(f"Cannot detect the operating system: {path} ({e})") from e

    fields = parse_os_release(text)
    os_id = fields.get("ID", "").lower()
    if not os_id:
        raise UnsupportedPlatform(f"No ID field in {path}")

    family = OS_FAMILIES.get(os_id)
    if family is None:
        raise UnsupportedPlatform(f"Unsupported operating system: {os_id}")

    platform = Platform(
        os_id=os_id,
        family=family,
        pretty_name=fields.get("PRETTY_NAME", ""),
        version_id=fields.get("VERSION_ID", ""),
    )
    logger.info("Detected OS: %s (family=%s)", os_id, family)
    return platform


def invoking_user() -> tuple[str, str]:
    """(login name, home directory) of the user the per-user steps target.

    The engine is meant to run as that user and escalate per command;
    the process owner is therefore the target.
    """
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = str(os.getuid())
    return user, str(Path.home())


# ── Probe ───────────────────────────────────────────────────────


class FactProbe:
    """Answers fact queries from the live host through a command runner."""

    def __init__(
        self,
        runner: CommandRunner,
        platform: Platform | None = None,
        manager: PackageManager | None = None,
    ):
        self._runner = runner
        self._platform = platform
        if manager is None and platform is not None:
            manager = manager_for(platform.family)
        self._manager = manager

    @property
    def platform(self) -> Platform | None:
        return self._platform

    @property
    def runner(self) -> CommandRunner:
        return self._runner

    def _query(self, command: Command, privileged: bool = False):
        try:
            return self._runner.run(command, privileged=privileged, timeout=_QUERY_TIMEOUT)
        except ApplyError as e:
            raise ProbeError(str(e)) from e

    # ── Individual facts ────────────────────────────────────────

    def is_package_installed(self, name: str) -> bool:
        if self._manager is None:
            logger.warning("No package manager known; treating %s as absent", name)
            return False
        try:
            r = self._query(self._manager.query_argv(name))
        except ProbeError as e:
            logger.warning("Package probe failed for %s (%s): %s", name, self._manager.name, e)
            return False
        return self._manager.is_installed(r.returncode, r.stdout)

    def path_exists(self, path: str) -> bool:
        try:
            return os.path.lexists(path)
        except OSError as e:
            logger.warning("Path probe failed for %s: %s", path, e)
            return False

    def is_service_active(self, name: str) -> bool:
        return self._systemctl_quiet("is-active", name)

    def is_service_enabled(self, name: str) -> bool:
        return self._systemctl_quiet("is-enabled", name)

    def _systemctl_quiet(self, verb: str, name: str) -> bool:
        try:
            r = self._query(["systemctl", verb, "--quiet", name])
        except ProbeError as e:
            logger.warning("Service probe (%s) failed for %s: %s", verb, name, e)
            return False
        return r.ok

    def current_shell(self, user: str) -> str | None:
        """Login shell from the passwd database (field 7)."""
        try:
            r = self._query(["getent", "passwd", user])
        except ProbeError as e:
            logger.warning("Shell probe failed for %s: %s", user, e)
            return None
        if not r.ok:
            return None
        fields = r.stdout.strip().split(":")
        return fields[6] if len(fields) >= 7 and fields[6] else None

    def groups_of(self, user: str) -> frozenset[str]:
        try:
            r = self._query(["id", "-nG", user])
        except ProbeError as e:
            logger.warning("Group probe failed for %s: %s", user, e)
            return frozenset()
        if not r.ok:
            return frozenset()
        return frozenset(r.stdout.split())

    def is_group_member(self, user: str, group: str) -> bool:
        return group in self.groups_of(user)

    def read_file(self, path: str, privileged: bool = False) -> str | None:
        """File content with line endings preserved, or None if unreadable.

        With ``privileged``, a file this process may not read is read
        through ``sudo -n cat`` instead.
        """
        try:
            with open(path, encoding="utf-8", newline="") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except PermissionError as e:
            if privileged and not self._runner.is_root:
                return self._read_privileged(path)
            logger.warning("Cannot read %s: %s", path, e)
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read %s: %s", path, e)
            return None

    def _read_privileged(self, path: str) -> str | None:
        try:
            r = self._query(["cat", "--", path], privileged=True)
        except ProbeError as e:
            logger.warning("Privileged read failed for %s: %s", path, e)
            return None
        if not r.ok:
            logger.warning("Privileged read failed for %s: exit %d", path, r.returncode)
            return None
        return r.stdout

    def binary_path(self, name: str) -> str | None:
        """Resolve a program name (or absolute path) to an existing path."""
        if os.path.isabs(name):
            return name if os.path.exists(name) else None
        return shutil.which(name)

    def command_succeeds(self, command: str, privileged: bool = False) -> bool:
        try:
            return self._query(command, privileged=privileged).ok
        except ProbeError as e:
            logger.warning("Probe command failed (%s): %s", command, e)
            return False

    def has_elevated_access(self) -> bool:
        """Root, or a user with passwordless sudo."""
        if self._runner.is_root:
            return True
        try:
            return self._query(["sudo", "-n", "true"]).ok
        except ProbeError:
            return False

    # ── Snapshot ────────────────────────────────────────────────

    def snapshot(self, query: FactQuery) -> HostFacts:
        """Answer a FactQuery from the live host. Never cached."""
        return HostFacts(
            platform=self._platform,
            packages=frozenset(p for p in query.packages if self.is_package_installed(p)),
            paths=frozenset(p for p in query.paths if self.path_exists(p)),
            active_services=frozenset(s for s in query.services if self.is_service_active(s)),
            enabled_services=frozenset(s for s in query.services if self.is_service_enabled(s)),
            files={p: self.read_file(p, p in query.privileged_files) for p in query.files},
            shells={u: self.current_shell(u) for u in query.shells},
            groups={u: self.groups_of(u) for u in query.groups},
            binaries={b: self.binary_path(b) for b in query.binaries},
            probes={
                p.command: self.command_succeeds(p.command, privileged=p.privileged)
                for p in query.probes
            },
        )

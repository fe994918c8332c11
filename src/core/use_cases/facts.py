"""
Facts use case — what the engine sees on this host.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from src.adapters.shell.runner import CommandRunner
from src.core.errors import UnsupportedPlatform
from src.core.models.facts import Platform
from src.core.services.facts import FactProbe, detect_platform, invoking_user
from src.core.services.package_managers import manager_for


@dataclass
class FactsResult:
    platform: Platform | None = None
    package_manager: str = ""
    user: str = ""
    home: str = ""
    login_shell: str | None = None
    is_root: bool = False
    elevated: bool = False
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "platform": self.platform.model_dump() if self.platform else None,
            "package_manager": self.package_manager,
            "user": self.user,
            "home": self.home,
            "login_shell": self.login_shell,
            "is_root": self.is_root,
            "elevated": self.elevated,
        }


def gather_facts(os_release: Path | None = None, runner: CommandRunner | None = None) -> FactsResult:
    """Detect the platform and the invoking user's situation."""
    result = FactsResult()
    try:
        platform = detect_platform(os_release)
    except UnsupportedPlatform as e:
        result.error = str(e)
        return result

    runner = runner or CommandRunner()
    manager = manager_for(platform.family)
    probe = FactProbe(runner, platform, manager)

    result.platform = platform
    result.package_manager = manager.name
    result.user, result.home = invoking_user()
    result.login_shell = probe.current_shell(result.user)
    result.is_root = runner.is_root
    result.elevated = probe.has_elevated_access()
    return result

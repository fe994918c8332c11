"""
Shared test fixtures and configuration.

``FakeHost`` stands in for ``CommandRunner``: it answers the commands
the fact probe and the handlers issue (dpkg-query, systemctl, getent,
git clone, ...) from in-memory state, and records every argv it saw.
Paths are real, under ``tmp_path``.
"""

import shutil
import textwrap
from pathlib import Path

import pytest

from src.adapters.shell.runner import CommandResult, build_argv
from src.core.errors import StepTimeout


class FakeHost:
    """In-memory host that speaks the CommandRunner interface."""

    def __init__(self, is_root: bool = True):
        self.is_root = is_root
        self.default_timeout = 600
        self.installed: set[str] = set()
        self.active: set[str] = set()
        self.enabled: set[str] = set()
        self.shells: dict[str, str] = {}
        self.groups: dict[str, set[str]] = {}
        self.sudo_ok = True
        self.shell_scripts: dict[str, object] = {}   # sh -c command → callable or exit code
        self.calls: list[list[str]] = []
        self._failures: dict[str, tuple[int, str]] = {}
        self._hangs: set[str] = set()

    # ── Test controls ───────────────────────────────────────────

    def fail_on(self, program: str, returncode: int = 1, stderr: str = "boom") -> None:
        """Make every invocation of ``program`` exit non-zero."""
        self._failures[program] = (returncode, stderr)

    def hang_on(self, program: str) -> None:
        """Make every invocation of ``program`` time out."""
        self._hangs.add(program)

    def ran(self, program: str) -> list[list[str]]:
        """Recorded argvs (sudo prefix stripped) whose program is ``program``."""
        return [inner for inner in map(self._strip_sudo, self.calls) if inner and inner[0] == program]

    # ── CommandRunner interface ─────────────────────────────────

    def run(self, command, *, privileged=False, timeout=None, input=None, cwd=None) -> CommandResult:
        argv = build_argv(command, privileged=privileged, is_root=self.is_root)
        self.calls.append(argv)

        if argv[:2] == ["sudo", "-n"] and not self.sudo_ok:
            return CommandResult(argv=argv, returncode=1, stderr="sudo: a password is required")

        inner = self._strip_sudo(argv)
        program = inner[0]
        if program in self._hangs:
            raise StepTimeout(timeout, " ".join(argv))
        if program in self._failures:
            rc, stderr = self._failures[program]
            return CommandResult(argv=argv, returncode=rc, stderr=stderr)

        handler = getattr(self, f"_cmd_{program.replace('-', '_')}", None)
        if handler is None:
            return CommandResult(argv=argv, returncode=0)
        rc, stdout = handler(inner[1:])
        return CommandResult(argv=argv, returncode=rc, stdout=stdout)

    @staticmethod
    def _strip_sudo(argv: list[str]) -> list[str]:
        return argv[2:] if argv[:2] == ["sudo", "-n"] else argv

    # ── Simulated programs ──────────────────────────────────────

    def _cmd_dpkg_query(self, args):
        name = args[-1]
        if name in self.installed:
            return 0, "install ok installed"
        return 1, ""

    def _cmd_rpm(self, args):
        return (0, args[-1]) if args[-1] in self.installed else (1, "")

    def _cmd_env(self, args):
        # env DEBIAN_FRONTEND=noninteractive apt-get install -y PKG...
        self.installed.update(args[4:])
        return 0, ""

    def _cmd_systemctl(self, args):
        if args[0] == "is-active":
            return (0 if args[-1] in self.active else 3), ""
        if args[0] == "is-enabled":
            return (0 if args[-1] in self.enabled else 1), ""
        if args[:2] == ["enable", "--now"]:
            self.active.add(args[2])
            self.enabled.add(args[2])
        return 0, ""

    def _cmd_getent(self, args):
        user = args[-1]
        if user not in self.shells:
            return 2, ""
        return 0, f"{user}:x:1000:1000::/home/{user}:{self.shells[user]}\n"

    def _cmd_id(self, args):
        user = args[-1]
        return 0, " ".join(sorted(self.groups.get(user, {user}))) + "\n"

    def _cmd_chsh(self, args):
        self.shells[args[2]] = args[1]
        return 0, ""

    def _cmd_usermod(self, args):
        self.groups.setdefault(args[2], {args[2]}).add(args[1])
        return 0, ""

    def _cmd_git(self, args):
        dest = Path(args[-1])
        (dest / ".git").mkdir(parents=True)
        return 0, ""

    def _cmd_install(self, args):
        # install -D -m MODE SRC DEST
        src, dest = Path(args[-2]), Path(args[-1])
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dest)
        dest.chmod(int(args[2], 8))
        return 0, ""

    def _cmd_cat(self, args):
        path = Path(args[-1])
        if not path.is_file():
            return 1, ""
        return 0, path.read_text()

    def _cmd_sh(self, args):
        script = self.shell_scripts.get(args[1], 0)
        if callable(script):
            script = script() or 0
        return script, ""


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for state files."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def fake_host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def debian_release(tmp_path: Path) -> Path:
    """An os-release file for Debian 12."""
    path = tmp_path / "os-release"
    path.write_text(textwrap.dedent("""\
        PRETTY_NAME="Debian GNU/Linux 12 (bookworm)"
        NAME="Debian GNU/Linux"
        VERSION_ID="12"
        ID=debian
    """))
    return path


@pytest.fixture
def home_dir(tmp_path: Path) -> Path:
    home = tmp_path / "home" / "alice"
    home.mkdir(parents=True)
    return home

"""
Command runner — the single place where external processes are spawned.

Every package-manager call, git clone, systemctl invocation and fact
query goes through ``CommandRunner.run``. Privilege escalation, timeouts
and process-session handling are centralised here.

Invariants:
    - Privileged commands run as-is when already root, otherwise behind
      ``sudo -n`` (never prompts; a missing sudo grant is a failure).
    - Children start in their own session, so a terminal Ctrl-C reaches
      the engine only and never interrupts a step mid-flight.
    - A non-zero exit is returned, not raised. Only spawn failures and
      timeouts raise.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass, field
from typing import Sequence, Union

from src.core.errors import ApplyError, StepTimeout

logger = logging.getLogger(__name__)

Command = Union[str, Sequence[str]]

# Keep the tail of captured output; package managers are chatty.
_OUTPUT_TAIL = 2000


@dataclass
class CommandResult:
    """Exit status and captured output of one command."""

    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def display(self) -> str:
        return " ".join(self.argv)


def build_argv(command: Command, *, privileged: bool = False, is_root: bool = True) -> list[str]:
    """Turn a command (argv list or shell string) into the final argv.

    Shell strings run through ``sh -c``. Privileged commands get a
    ``sudo -n`` prefix unless the process is already root.
    """
    if isinstance(command, str):
        argv = ["sh", "-c", command]
    else:
        argv = list(command)
    if privileged and not is_root:
        argv = ["sudo", "-n", *argv]
    return argv


@dataclass
class CommandRunner:
    """Run commands synchronously and capture their output.

    Attributes:
        is_root: Whether the engine runs with uid 0. Detected at
            construction; tests pass it explicitly.
        default_timeout: Used when the caller gives no timeout.
    """

    is_root: bool = field(default_factory=lambda: os.geteuid() == 0)
    default_timeout: float = 600

    def run(
        self,
        command: Command,
        *,
        privileged: bool = False,
        timeout: float | None = None,
        input: str | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        """Run a command to completion.

        Args:
            command: argv list, or a shell string run through ``sh -c``.
            privileged: Whether the command needs root.
            timeout: Seconds before the child is killed.
            input: Data piped to stdin.
            cwd: Working directory for the child.

        Returns:
            CommandResult (also for non-zero exits).

        Raises:
            StepTimeout: The command exceeded ``timeout``.
            ApplyError: The command could not be started.
        """
        argv = build_argv(command, privileged=privileged, is_root=self.is_root)
        limit = self.default_timeout if timeout is None else timeout
        if limit <= 0:
            raise StepTimeout(limit, " ".join(argv))

        logger.debug("Running: %s (timeout=%ss)", " ".join(argv), int(limit))
        start = time.monotonic()
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=limit,
                input=input,
                cwd=cwd,
                start_new_session=True,
            )
        except subprocess.TimeoutExpired as e:
            raise StepTimeout(limit, " ".join(argv)) from e
        except FileNotFoundError as e:
            raise ApplyError(f"command not found: {argv[0]}") from e
        except OSError as e:
            raise ApplyError(f"cannot run {argv[0]}: {e}") from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        result = CommandResult(
            argv=argv,
            returncode=proc.returncode,
            stdout=proc.stdout[-_OUTPUT_TAIL:] if proc.stdout else "",
            stderr=proc.stderr[-_OUTPUT_TAIL:] if proc.stderr else "",
            elapsed_ms=elapsed_ms,
        )
        logger.debug("→ exit %d in %dms", result.returncode, elapsed_ms)
        return result

"""
Error taxonomy for the provisioning engine.

Only ``UnsupportedPlatform`` and ``ConfigError`` ever escape to the
caller, and both are raised before a plan starts executing. Everything
raised by a step handler is captured by the executor into the step's
PlanResult.
"""

from __future__ import annotations


class ProvisionError(Exception):
    """Base class for all provisioning errors."""


class ConfigError(ProvisionError):
    """Raised when a profile is missing, malformed, or cannot be planned."""


class UnsupportedPlatform(ProvisionError):
    """The host's OS identifier is not in the family table. Fatal."""


class ProbeError(ProvisionError):
    """A fact query could not determine host state.

    Absorbed inside the fact probe: the fact is reported as absent.
    """


class ApplyError(ProvisionError):
    """An external command or file operation invoked by a step failed."""


class StepTimeout(ApplyError):
    """A step exceeded its allotted duration."""

    def __init__(self, timeout: float | None, command: str = ""):
        self.timeout = timeout
        self.command = command
        label = f"{int(timeout)}s" if timeout is not None else "deadline"
        suffix = f": {command}" if command else ""
        super().__init__(f"timed out after {label}{suffix}")


class PatchAnchorNotFound(ProvisionError):
    """No line in the target file matched the anchor pattern.

    Recorded as Skipped: the file may already be in a different but
    acceptable state.
    """

    def __init__(self, path: str, pattern: str):
        self.path = path
        self.pattern = pattern
        super().__init__(f"anchor {pattern!r} not found in {path}")

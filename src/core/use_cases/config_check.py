"""
Config check use case — validate a profile and build its plan on every family.

A profile that validates can still fail at plan time on a family it was
never tried on (a package with no name there, say). Building the plan
for each known family catches that from any machine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from src.core.config.loader import resolve_request
from src.core.data.platforms import KNOWN_FAMILIES, OS_FAMILIES
from src.core.engine.planner import build_plan
from src.core.errors import ConfigError
from src.core.models.facts import Platform
from src.core.models.request import ProvisionRequest

# Representative os id per family, used for {os_id} when planning.
_SAMPLE_OS = {family: next(i for i, f in OS_FAMILIES.items() if f == family) for family in KNOWN_FAMILIES}


@dataclass
class ConfigCheckResult:
    """Result of profile validation."""

    valid: bool = False
    request: ProvisionRequest | None = None
    source: str = ""
    step_counts: dict[str, int] = field(default_factory=dict)   # family → planned steps
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "source": self.source,
            "profile": self.request.name if self.request else None,
            "entry_count": len(self.request.steps) if self.request else 0,
            "step_counts": self.step_counts,
            "errors": self.errors,
            "warnings": self.warnings,
        }


def check_config(config_path: Path | None = None, profile: str | None = None) -> ConfigCheckResult:
    """Validate a profile and plan it for every known family.

    Args:
        config_path: Explicit provision.yml.
        profile: Built-in profile name instead of a file.
    """
    result = ConfigCheckResult()

    try:
        request, source = resolve_request(config_path, profile)
    except ConfigError as e:
        result.errors.append(str(e))
        return result
    result.request, result.source = request, source

    if not request.steps:
        result.warnings.append("No steps defined. The profile does nothing.")

    planned_ids: set[str] = set()
    for family in KNOWN_FAMILIES:
        platform = Platform(os_id=_SAMPLE_OS[family], family=family)
        try:
            steps = build_plan(request, platform, user="user", home="/home/user")
        except ConfigError as e:
            result.errors.append(f"[{family}] {e}")
            continue
        result.step_counts[family] = len(steps)
        planned_ids.update(s.id for s in steps)

    if not result.errors:
        for entry in request.steps:
            if entry.id not in planned_ids:
                result.warnings.append(f"Step '{entry.id}' is not planned on any family.")

    result.valid = len(result.errors) == 0
    return result

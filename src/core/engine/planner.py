"""
Plan builder — ProvisionRequest + host identity → ordered list of Steps.

Pure function of its inputs: the platform, user and home directory are
passed in, never read from the environment here. That keeps plans
reproducible in tests and lets ``config check`` build the plan for
every family from one machine.

Rendering:
    - ``{home}``, ``{user}``, ``{family}``, ``{os_id}`` are replaced in
      every string field except anchor patterns. Unknown ``{...}``
      tokens are left alone (shell snippets use braces too).
    - A leading ``~`` in a path field expands to the home directory.

Package resolution:
    Logical names go through PACKAGE_MAP for the host's family; inline
    ``per_family`` entries override the table. A name with no mapping
    is a ConfigError. A step whose names all resolve to nothing on this
    family is dropped.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from src.core.data.packages import PACKAGE_MAP
from src.core.errors import ConfigError
from src.core.models.facts import Platform
from src.core.models.request import PackagesEntry, PackageSpec, ProvisionRequest
from src.core.models.step import TARGET_TYPES, CommandTarget, FileTarget, Step, StepKind

logger = logging.getLogger(__name__)

# Entry fields that are not part of the target.
_ENTRY_FIELDS = {"id", "kind", "description", "only_on"}
# Fields never rendered (regular expressions).
_RAW_FIELDS = {"pattern"}
# Fields where a leading ~ means the home directory.
_PATH_FIELDS = {"path", "dest", "creates"}

_ALWAYS_PRIVILEGED = {
    StepKind.PACKAGES_PRESENT,
    StepKind.SERVICE_ENABLED,
    StepKind.LOGIN_SHELL_SET,
    StepKind.GROUP_MEMBER,
}


def render(template: str, variables: dict[str, str]) -> str:
    """Substitute known ``{key}`` placeholders; leave everything else."""
    result = template
    for key, value in variables.items():
        result = result.replace("{" + key + "}", value)
    return result


def _expand_home(value: str, home: str) -> str:
    if value == "~" or value.startswith("~/"):
        return home + value[1:]
    return value


def _render_value(name: str, value: Any, variables: dict[str, str]) -> Any:
    if name in _RAW_FIELDS:
        return value
    if isinstance(value, str):
        rendered = render(value, variables)
        if name in _PATH_FIELDS:
            rendered = _expand_home(rendered, variables["home"])
        return rendered
    if isinstance(value, list):
        return tuple(_render_value(name, v, variables) for v in value)
    return value


def resolve_packages(items: list[str | PackageSpec], family: str) -> list[str]:
    """Map logical package names to native names for ``family``.

    Raises:
        ConfigError: A name has no mapping at all for the family.
    """
    resolved: list[str] = []
    for item in items:
        if isinstance(item, PackageSpec):
            name = item.name
            if family in item.per_family:
                natives = item.per_family[family]
            elif name in PACKAGE_MAP and family in PACKAGE_MAP[name]:
                natives = PACKAGE_MAP[name][family]
            else:
                raise ConfigError(f"package '{name}' has no name on family '{family}'")
        else:
            if item not in PACKAGE_MAP:
                raise ConfigError(
                    f"unknown package '{item}': add it to the package table "
                    f"or give per_family names inline"
                )
            natives = PACKAGE_MAP[item].get(family)
            if natives is None:
                raise ConfigError(f"package '{item}' has no name on family '{family}'")
        for native in natives:
            if native not in resolved:
                resolved.append(native)
    return resolved


def _logical_name(item: str | PackageSpec) -> str:
    return item.name if isinstance(item, PackageSpec) else item


def _target_fields(entry: Any, variables: dict[str, str], family: str) -> dict[str, Any] | None:
    if isinstance(entry, PackagesEntry):
        packages = resolve_packages(entry.packages, family)
        if not packages:
            return None
        return {
            "packages": tuple(packages),
            "logical": tuple(_logical_name(p) for p in entry.packages),
        }

    raw = entry.model_dump(exclude=_ENTRY_FIELDS, exclude_none=True)
    fields = {name: _render_value(name, value, variables) for name, value in raw.items()}
    if entry.kind == StepKind.FILE_WRITTEN.value and "mode" in fields:
        fields["mode"] = int(fields["mode"], 8)
    return fields


def build_plan(
    request: ProvisionRequest,
    platform: Platform,
    *,
    user: str,
    home: str,
) -> list[Step]:
    """Build the ordered plan for one host.

    Args:
        request: The validated profile.
        platform: Detected (or assumed) OS identity.
        user: Login name the per-user steps apply to.
        home: That user's home directory.

    Returns:
        Steps in request order, minus entries filtered out by
        ``only_on`` and package steps with nothing to install.

    Raises:
        ConfigError: Unknown package, or an entry that renders into an
            invalid step.
    """
    variables = {
        "home": home.rstrip("/") or "/",
        "user": user,
        "family": platform.family,
        "os_id": platform.os_id,
    }

    steps: list[Step] = []
    for entry in request.steps:
        if entry.only_on and platform.family not in entry.only_on:
            logger.debug("Step %s not for family %s", entry.id, platform.family)
            continue

        fields = _target_fields(entry, variables, platform.family)
        if fields is None:
            logger.debug("Step %s has no packages on %s", entry.id, platform.family)
            continue

        kind = StepKind(entry.kind)
        try:
            steps.append(
                Step(
                    id=entry.id,
                    kind=kind,
                    target=TARGET_TYPES[kind].model_validate(fields),
                    description=render(entry.description, variables),
                )
            )
        except ValidationError as e:
            raise ConfigError(f"step '{entry.id}': {_first_error(e)}") from e

    logger.info("Built plan: %d step(s) for %s (%s)", len(steps), platform.os_id, platform.family)
    return steps


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    msg = err.get("msg", str(e))
    return f"{loc}: {msg}" if loc else msg


def requires_privilege(step: Step) -> bool:
    """Whether applying ``step`` needs root."""
    if step.kind in _ALWAYS_PRIVILEGED:
        return True
    if isinstance(step.target, (CommandTarget, FileTarget)):
        return step.target.privileged
    return False

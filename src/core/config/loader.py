"""
Configuration loader — reads a provisioning profile into a ProvisionRequest.

A profile comes from one of two places:

    1. a ``provision.yml`` file (explicit ``--config``, or found by
       walking up from the working directory)
    2. a built-in profile by name (``system``, ``zsh``)

Both are validated by the same Pydantic schema; any problem is a
ConfigError raised before a plan is built.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from src.core.data.profiles import PROFILES
from src.core.errors import ConfigError
from src.core.models.request import ProvisionRequest

logger = logging.getLogger(__name__)

PROFILE_CONFIG_FILE = "provision.yml"
DEFAULT_PROFILE = "system"


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for provision.yml starting from ``start_dir``, walking up.

    Returns:
        Path to the file, or None if no ancestor has one.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / PROFILE_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def parse_request(data: Any, source: str) -> ProvisionRequest:
    """Validate raw profile data.

    Raises:
        ConfigError: Not a mapping, or fails schema validation.
    """
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {source}, got {type(data).__name__}")
    try:
        return ProvisionRequest.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid profile {source}: {_format_errors(e)}") from e


def _format_errors(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg', '')}" if loc else err.get("msg", ""))
    return "; ".join(parts)


def load_request(path: Path) -> ProvisionRequest:
    """Load and validate a profile file.

    Raises:
        ConfigError: Missing, unreadable, not YAML, or invalid.
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading profile from %s", path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    request = parse_request(data, str(path))
    logger.info("Loaded profile '%s' with %d steps from %s", request.name, len(request.steps), path)
    return request


def load_profile(name: str) -> ProvisionRequest:
    """Load a built-in profile.

    Raises:
        ConfigError: No built-in profile has that name.
    """
    if name not in PROFILES:
        raise ConfigError(
            f"Unknown profile '{name}'. Built-in profiles: {', '.join(sorted(PROFILES))}"
        )
    return parse_request(PROFILES[name], f"built-in profile '{name}'")


def resolve_request(
    config_path: Path | None = None,
    profile: str | None = None,
) -> tuple[ProvisionRequest, str]:
    """Pick the profile for a command.

    Precedence: explicit ``profile`` name > explicit ``config_path`` >
    provision.yml found upward from cwd > the default built-in profile.

    Returns:
        (request, source) where source describes where it came from.
    """
    if profile:
        return load_profile(profile), f"built-in:{profile}"
    path = config_path or find_config_file()
    if path is not None:
        return load_request(path), str(path)
    return load_profile(DEFAULT_PROFILE), f"built-in:{DEFAULT_PROFILE}"

"""
Logging configuration — central setup for the CLI.

Called once at startup by main.py. Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    --debug / --verbose / --quiet  >  SYSTEM_SETUP_LOG_LEVEL  >  WARNING

Optional file output via SYSTEM_SETUP_LOG_FILE, with its own level in
SYSTEM_SETUP_LOG_FILE_LEVEL. A file log at DEBUG is the recommended way
to keep a record of what a provisioning run executed.
"""

from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "SYSTEM_SETUP_LOG_LEVEL"
LOG_FILE_ENV = "SYSTEM_SETUP_LOG_FILE"
LOG_FILE_LEVEL_ENV = "SYSTEM_SETUP_LOG_FILE_LEVEL"

# ── Format strings ──────────────────────────────────────────────

# WARNING and above: the message, prefixed by its level
_FMT_MINIMAL = "%(levelname)s: %(message)s"

# INFO: timestamped, with the emitting module
_FMT_VERBOSE = "%(asctime)s [%(name)s] %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG: file:line for every record
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"

# File output: full date, always detailed
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"


def resolve_level(debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Pick the console level from CLI flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(LOG_LEVEL_ENV, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure logging for the whole process.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional log file path (appended to).
        log_file_level: Level for the file; defaults to ``level``.
    """
    numeric_level = _parse_level(level)

    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_VERBOSE
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_VERBOSE
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    effective_level = numeric_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)
        try:
            fh = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            root.warning("Cannot open log file %s: %s", log_file, e)
        else:
            fh.setLevel(file_level)
            fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
            root.addHandler(fh)

    root.setLevel(effective_level)

    logging.raiseExceptions = False


def setup_from_env(debug: bool = False, verbose: bool = False, quiet: bool = False) -> None:
    """``setup_logging`` with the level and file taken from flags and env."""
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(LOG_FILE_ENV),
        log_file_level=os.environ.get(LOG_FILE_LEVEL_ENV),
    )


def _parse_level(level: str | None) -> int:
    """Level name → numeric constant; unknown names mean WARNING."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric

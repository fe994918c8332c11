"""
State file persistence — atomic read/write for RunState.

The last run is stored as JSON in ``<state_dir>/last-run.json``. Writes
are atomic (write to temp file, then rename) so a crash mid-write never
leaves a truncated file behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from src.core.models.state import RunState

logger = logging.getLogger(__name__)

STATE_DIR_ENV = "SYSTEM_SETUP_STATE_DIR"
DEFAULT_STATE_FILE = "last-run.json"


def default_state_dir() -> Path:
    """``$SYSTEM_SETUP_STATE_DIR``, else ``$XDG_STATE_HOME/system-setup``,
    else ``~/.local/state/system-setup``."""
    env = os.environ.get(STATE_DIR_ENV)
    if env:
        return Path(env).expanduser()
    xdg = os.environ.get("XDG_STATE_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".local" / "state"
    return base / "system-setup"


def state_path(state_dir: Path) -> Path:
    return state_dir / DEFAULT_STATE_FILE


def load_state(path: Path) -> RunState:
    """Load the last-run state.

    Returns:
        RunState. A missing or unreadable file yields an empty state.
    """
    if not path.is_file():
        logger.info("No state file at %s", path)
        return RunState()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        state = RunState.model_validate(data)
        logger.debug("Loaded state from %s (run_id=%s)", path, state.run_id)
        return state
    except json.JSONDecodeError as e:
        logger.warning("Corrupt state file %s: %s", path, e)
        return RunState()
    except Exception as e:
        logger.warning("Cannot load state from %s: %s", path, e)
        return RunState()


def save_state(state: RunState, path: Path) -> None:
    """Save run state (atomic write).

    Raises:
        OSError: The directory or file could not be written.
    """
    state.touch()
    path.parent.mkdir(parents=True, exist_ok=True)

    content = json.dumps(state.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

    try:
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".last-run_", suffix=".tmp")
        os.close(fd)
        tmp = Path(tmp_path)
        try:
            tmp.write_text(content, encoding="utf-8")
            tmp.replace(path)
            logger.debug("State saved to %s", path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except Exception as e:
        logger.error("Failed to save state to %s: %s", path, e)
        raise

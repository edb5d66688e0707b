"""
State file persistence — atomic read/write for DeploymentState.

State is stored as JSON in .state/current.json beside the config
store. Writes are atomic (temp file, then rename).
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from agentdeploy.core.models.state import DeploymentState

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = ".state"
DEFAULT_STATE_FILE = "current.json"


def default_state_path(root: Path) -> Path:
    """State file path for a working directory."""
    return root / DEFAULT_STATE_DIR / DEFAULT_STATE_FILE


def load_state(path: Path) -> DeploymentState:
    """Load deployment state; a missing or corrupt file gives a fresh state."""
    if not path.is_file():
        logger.info("No state file at %s — starting fresh", path)
        return DeploymentState()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        state = DeploymentState.model_validate(data)
        logger.debug("Loaded state from %s (updated_at=%s)", path, state.updated_at)
        return state
    except json.JSONDecodeError as e:
        logger.warning("Corrupt state file %s: %s — starting fresh", path, e)
        return DeploymentState()
    except Exception as e:
        logger.warning("Cannot load state from %s: %s — starting fresh", path, e)
        return DeploymentState()


def save_state(state: DeploymentState, path: Path) -> None:
    """Save deployment state (atomic write)."""
    state.touch()
    path.parent.mkdir(parents=True, exist_ok=True)

    content = json.dumps(state.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

    _fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=".state_",
        suffix=".tmp",
    )
    tmp = Path(tmp_path)
    try:
        with open(_fd, "w", encoding="utf-8") as f:
            f.write(content)
        tmp.replace(path)
        logger.debug("State saved to %s", path)
    except Exception as e:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to save state to %s: %s", path, e)
        raise

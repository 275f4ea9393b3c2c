"""Persistence of the tracked status message id."""

import json
import logging
from pathlib import Path
from typing import Optional

LOGGER = logging.getLogger(__name__)

STATE_KEY = "status_message_id"


def load_message_id(path: str | Path) -> Optional[int]:
    """Return the persisted message id, or None if there is none usable."""
    state_path = Path(path)
    if not state_path.exists():
        return None
    try:
        data = json.loads(state_path.read_text(encoding="utf-8"))
        message_id = int(data.get(STATE_KEY) or 0)
    except (OSError, ValueError, TypeError, AttributeError) as exc:
        LOGGER.warning("Ignoring unreadable state file %s: %s", state_path, exc)
        return None
    return message_id if message_id > 0 else None


def save_message_id(path: str | Path, message_id: int) -> bool:
    state_path = Path(path)
    try:
        state_path.parent.mkdir(parents=True, exist_ok=True)
        state_path.write_text(
            json.dumps({STATE_KEY: message_id}, indent=2), encoding="utf-8"
        )
    except OSError as exc:
        LOGGER.warning("Failed to save state file %s: %s", state_path, exc)
        return False
    return True

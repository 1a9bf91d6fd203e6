import os
import json
import logging
from pathlib import Path
from typing import Dict, Any

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(os.environ.get("SCHEMANAV_HOME") or (Path(os.path.expanduser("~")) / ".schemanav"))
CONFIG_DIR.mkdir(parents=True, exist_ok=True)
SETTINGS_PATH = CONFIG_DIR / "settings.json"
APP_STATE_PATH = CONFIG_DIR / "app_state.json"

DEFAULT_SETTINGS: Dict[str, Any] = {
    # maximum rows fetched per result set by the query view
    "row_limit": 1000,
    # per-statement execution timeout in seconds
    "execution_timeout": 30,
    "log_level": "DEBUG",
}


def _coerce(key: str, value: Any) -> Any:
    default = DEFAULT_SETTINGS[key]
    if isinstance(default, int):
        try:
            value = int(value)
        except (TypeError, ValueError):
            return default
        return value if value > 0 else default
    return str(value).upper() if key == "log_level" else str(value)


def load_settings() -> Dict[str, Any]:
    """Load application settings.

    Resolution order for each key:
      - environment variable SCHEMANAV_<KEY> (e.g. SCHEMANAV_ROW_LIMIT)
      - value stored in settings.json
      - built-in default
    Invalid values fall back to the default.
    """
    stored: Dict[str, Any] = {}
    if SETTINGS_PATH.exists():
        try:
            with open(SETTINGS_PATH, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                stored = data
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable settings file %s", SETTINGS_PATH)

    settings = dict(DEFAULT_SETTINGS)
    for key in DEFAULT_SETTINGS:
        env_val = os.environ.get(f"SCHEMANAV_{key.upper()}")
        if env_val is not None:
            settings[key] = _coerce(key, env_val)
        elif key in stored:
            settings[key] = _coerce(key, stored[key])
    return settings


def save_settings(settings: Dict[str, Any]) -> None:
    """Save known settings keys to settings.json. Raises on write failures."""
    data = {k: _coerce(k, settings.get(k, v)) for k, v in DEFAULT_SETTINGS.items()}
    with open(SETTINGS_PATH, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def load_app_state() -> dict:
    """Load simple application state from app_state.json.

    Returns a dict; on error or missing file returns empty dict.
    Used to restore the last SQL text and the selected connection between sessions.
    """
    if not APP_STATE_PATH.exists():
        return {}
    try:
        with open(APP_STATE_PATH, "r", encoding="utf-8") as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
    except (OSError, json.JSONDecodeError):
        logger.debug("Ignoring unreadable app state %s", APP_STATE_PATH)
    return {}


def save_app_state(state: dict) -> None:
    """Save application state (dict) to app_state.json. Raises on write failures."""
    with open(APP_STATE_PATH, "w", encoding="utf-8") as f:
        json.dump(state or {}, f, indent=2)

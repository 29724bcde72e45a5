import json
from mt.common.logger import log
from mt.common.setup import PATHS

#region === Keys and Paths ===

# Storage keys, one JSON document each under PATHS.store
SESSION_KEY = "active-meeting-session"
HISTORY_KEY = "meeting-history"

STORE_DIR = PATHS.store
SETTINGS_PATH = PATHS.settings

# Default values for settings.json.
_SETTINGS_DEFAULTS = {
    "history_limit": 10,
    "tick_interval_ms": 1000,
}

# Basic sanity rules for each setting; anything failing these is replaced with the default.
_SETTINGS_RULES = {
    "history_limit": lambda v: isinstance(v, int) and not isinstance(v, bool) and v >= 1,
    "tick_interval_ms": lambda v: isinstance(v, int) and not isinstance(v, bool) and v >= 50,
}

def default_settings():
    return dict(_SETTINGS_DEFAULTS)

#endregion === Keys and Paths ===

#region === Loading and Saving Settings ===

# Loads settings.json, filling in and logging any missing or invalid values. Falls back to the defaults on any read
# error, never raises.
def load_settings():
    if not SETTINGS_PATH.exists():
        log.info(f"No settings found at '{SETTINGS_PATH}', using defaults.")
        return default_settings()
    try:
        with open(SETTINGS_PATH, "r", encoding="utf-8") as f:
            settings = json.load(f)
        if not isinstance(settings, dict):
            raise TypeError(f"settings.json must hold an object, got {type(settings).__name__}")
    except (json.JSONDecodeError, OSError, TypeError, UnicodeDecodeError):
        log.warning(f"Ran into an error while trying to load '{SETTINGS_PATH}', falling back to default settings.", exc_info=True)
        return default_settings()

    defaulted_values = set()
    for key, default in _SETTINGS_DEFAULTS.items():
        if key not in settings or not _SETTINGS_RULES[key](settings[key]):
            defaulted_values.add(key)
            settings[key] = default

    if defaulted_values:
        log.warning(f"Loaded settings from '{SETTINGS_PATH}', but with missing values that were defaulted: {', '.join(sorted(defaulted_values))}")
    else:
        log.info(f"Successfully loaded settings from '{SETTINGS_PATH}'.")
    return settings

# Writes the given settings dict to settings.json. Returns False (and logs) if the write failed.
def save_settings(settings):
    try:
        with open(SETTINGS_PATH, "w", encoding="utf-8") as f:
            json.dump(settings, f, indent=2)
    except OSError:
        log.error(f"Failed to save settings to '{SETTINGS_PATH}'", exc_info=True)
        return False
    log.info(f"Successfully saved settings to '{SETTINGS_PATH}'")
    return True

#endregion === Loading and Saving Settings ===

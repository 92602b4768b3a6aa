"""
RefViewer Configuration Manager
Handles settings persistence via a JSON file in the app directory.
Keys are upper-case attributes in memory and lower-case on disk.
"""

import os
import json
import shutil
from datetime import datetime

from refviewer.logger import get_app_dir, log


class Config:
    """Application configuration with sensible defaults."""

    APP_NAME = "RefViewer"
    APP_VERSION = "1.0.0"

    # --- Viewer (presentation only, stored for the window) ---
    ZOOM = 1.0
    OVERWRITE = True
    THEME = "dark"
    TOOLTIPS = True

    # --- Capture ---
    AUTOSAVE = False
    SAVEDIR = ""
    AUTOSAVE_FILENAME_PATTERN = "screenshot_{YYYY}-{MM}-{DD}_{hh}-{mm}-{ss}"
    CAPTURE_WATCHDOG_SECONDS = 5.0

    # --- Editing ---
    HISTORY_LIMIT = 15
    PALETTE_SIZE = 6
    OUTPUT_JPEG_QUALITY = 90

    # --- Persisted State ---
    LAST_SAVE_DIR = ""

    _STATE_KEYS = {"LAST_SAVE_DIR"}

    _THEMES = ("dark", "light")

    # Inclusive bounds for numeric settings
    _RANGES = {
        "ZOOM": (0.05, 16.0),
        "CAPTURE_WATCHDOG_SECONDS": (0.1, 60.0),
        "HISTORY_LIMIT": (1, 500),
        "PALETTE_SIZE": (1, 32),
        "OUTPUT_JPEG_QUALITY": (1, 100),
    }

    def __init__(self, config_dir=None):
        self._config_dir = config_dir or get_app_dir()
        os.makedirs(self._config_dir, exist_ok=True)
        self._config_file = os.path.join(self._config_dir, "config.json")
        self._load()

    def _get_saveable_keys(self):
        return [k for k in dir(self) if k.isupper() and not k.startswith('_')]

    def _coerce(self, key, value):
        """`value` in the type of the class default, or ValueError."""
        default = getattr(Config, key)
        if isinstance(default, bool):
            if not isinstance(value, bool):
                raise ValueError(f"{key.lower()} must be true or false")
        elif isinstance(default, (int, float)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{key.lower()} must be a number")
            if isinstance(default, int) and isinstance(value, float) and not value.is_integer():
                raise ValueError(f"{key.lower()} must be a whole number")
            value = type(default)(value)
            lo, hi = self._RANGES.get(key, (value, value))
            if not lo <= value <= hi:
                raise ValueError(f"{key.lower()} must be between {lo} and {hi}")
        elif not isinstance(value, type(default)):
            raise ValueError(f"{key.lower()} must be a {type(default).__name__}")
        if key == "THEME" and value not in self._THEMES:
            raise ValueError(f"Unknown theme: {value}")
        return value

    def _load(self):
        if not os.path.exists(self._config_file):
            return
        try:
            with open(self._config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except ValueError:
            self._backup_corrupt()
            return
        except OSError as e:
            log.warning(f"Could not read config: {e}")
            return

        if not isinstance(data, dict):
            self._backup_corrupt()
            return
        for key, value in data.items():
            attr = key.upper()
            if attr.startswith('_') or not hasattr(Config, attr):
                continue
            try:
                setattr(self, attr, self._coerce(attr, value))
            except ValueError as e:
                log.warning(f"Ignoring config value {key}={value!r}: {e}")

    def _backup_corrupt(self):
        backup = self._config_file + ".corrupt"
        log.warning(f"Config file is corrupt, backing up to {backup}")
        try:
            shutil.copy2(self._config_file, backup)
        except OSError:
            pass

    def update(self, values):
        """Validate and apply {KEY: value} pairs, then save.

        Nothing is applied if any value is invalid.
        """
        coerced = {}
        for key, value in values.items():
            attr = key.upper()
            if attr.startswith('_') or not hasattr(Config, attr):
                raise ValueError(f"Unknown setting: {key}")
            coerced[attr] = self._coerce(attr, value)
        for attr, value in coerced.items():
            setattr(self, attr, value)
        self.save()

    def save(self):
        data = {k.lower(): getattr(self, k) for k in self._get_saveable_keys()}
        try:
            tmp_path = self._config_file + ".tmp"
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self._config_file)
        except OSError as e:
            log.error(f"Could not save config: {e}")

    def reset_to_defaults(self):
        """Reset all settings to class-level defaults (preserves state keys)."""
        saved_state = {k: getattr(self, k) for k in self._STATE_KEYS}
        for key in self._get_saveable_keys():
            if key in self._STATE_KEYS:
                continue
            setattr(self, key, getattr(Config, key))
        for k, v in saved_state.items():
            setattr(self, k, v)
        self.save()

    def autosave_filename(self, directory, ext="png"):
        """Reserve a timestamped, non-clobbering path for an autosaved capture.

        An empty placeholder is created so a second capture in the same
        second gets a different name. Raises OSError if `directory` is not
        writable.
        """
        now = datetime.now()
        name = self.AUTOSAVE_FILENAME_PATTERN
        name = name.replace("{YYYY}", now.strftime("%Y"))
        name = name.replace("{MM}", now.strftime("%m"))
        name = name.replace("{DD}", now.strftime("%d"))
        name = name.replace("{hh}", now.strftime("%H"))
        name = name.replace("{mm}", now.strftime("%M"))
        name = name.replace("{ss}", now.strftime("%S"))

        full_path = os.path.join(directory, f"{name}.{ext}")
        counter = 1
        while True:
            try:
                with open(full_path, 'x'):
                    pass
                return full_path
            except FileExistsError:
                full_path = os.path.join(directory, f"{name}_{counter}.{ext}")
                counter += 1

    @property
    def config_dir(self):
        return self._config_dir

    @property
    def config_file(self):
        return self._config_file


# Global config instance
config = Config()

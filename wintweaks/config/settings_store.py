"""Settings store
Persistent key-value settings stored in ~/.wintweaks/settings.json
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from .engine_config import DEFAULT_SETTINGS_PATH

HISTORY_KEY = "appliedTweakHistory"
HISTORY_LIMIT = 200


class SettingsStore:
    """
    Manages settings that persist across sessions.
    Values are merged over DEFAULT_SETTINGS on load, so keys added in a
    newer version get their default.
    """

    DEFAULT_SETTINGS = {
        HISTORY_KEY: [],
        "lastPreset": None,
        "confirmRiskyPresets": True,
    }

    def __init__(self, path: Optional[Path] = None):
        self.settings_file = Path(path) if path else DEFAULT_SETTINGS_PATH
        self.settings: Dict[str, Any] = json.loads(json.dumps(self.DEFAULT_SETTINGS))
        self._lock = threading.RLock()
        self._load()

    def _load(self):
        """Load settings from file."""
        if not self.settings_file.exists():
            return
        try:
            with open(self.settings_file, 'r', encoding='utf-8') as f:
                saved = json.load(f)
            if isinstance(saved, dict):
                self.settings.update(saved)
                logging.info(f"Loaded settings from {self.settings_file}")
            else:
                logging.warning(f"Ignoring settings file {self.settings_file}: not a JSON object")
        except (OSError, ValueError) as e:
            logging.warning(f"Could not load settings: {e}")

    def _save(self):
        """Save settings to file."""
        try:
            self.settings_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.settings_file, 'w', encoding='utf-8') as f:
                json.dump(self.settings, f, indent=2)
        except OSError as e:
            logging.error(f"Could not save settings: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a setting value."""
        with self._lock:
            return self.settings.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a setting value and save."""
        with self._lock:
            self.settings[key] = value
            self._save()

    def record_applied(self, tweak_id: str, enabled: bool, timestamp: str) -> None:
        """Append a toggle outcome to the applied-tweak history"""
        with self._lock:
            history: List[Dict[str, Any]] = list(self.get(HISTORY_KEY, []) or [])
            history.append({"id": tweak_id, "enabled": enabled, "timestamp": timestamp})
            self.set(HISTORY_KEY, history[-HISTORY_LIMIT:])

    @property
    def applied_history(self) -> List[Dict[str, Any]]:
        return list(self.get(HISTORY_KEY, []) or [])

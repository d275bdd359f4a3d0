"""Per-user settings stored in ~/.claude-receipts.config.json."""
import json
import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "version": "1.0.0",
}

SETTABLE_KEYS = ("location", "timezone", "printer")


class SettingsManager:
    """Loads and saves the user's receipt settings file."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or os.path.join(os.path.expanduser("~"), ".claude-receipts.config.json")

    def load(self) -> dict:
        """Load settings, falling back to defaults if missing or unreadable."""
        if not os.path.exists(self.path):
            return dict(DEFAULT_SETTINGS)

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                settings = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to parse settings file %s, using defaults: %s", self.path, e)
            return dict(DEFAULT_SETTINGS)

        if not isinstance(settings, dict):
            logger.warning("Settings file %s is not a JSON object, using defaults", self.path)
            return dict(DEFAULT_SETTINGS)
        return {**DEFAULT_SETTINGS, **settings}

    def save(self, settings: dict) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(settings, f, indent=2)

    def set(self, key: str, value: str) -> dict:
        """Update one settable key and save."""
        if key not in SETTABLE_KEYS:
            raise ValueError(f"Invalid key '{key}'. Valid keys: {', '.join(SETTABLE_KEYS)}")
        settings = self.load()
        settings[key] = value
        self.save(settings)
        return settings

    def reset(self) -> None:
        self.save(dict(DEFAULT_SETTINGS))

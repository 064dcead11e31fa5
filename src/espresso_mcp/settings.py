"""Persistent user settings: org directories and the custom pin order.

Settings live in a small YAML file. The pin order stored here is what the
indexer consults (through ``get_pin_order``) whenever it publishes pins.
"""

import logging
import threading
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

SETTINGS_VERSION = 1

DEFAULT_SETTINGS: dict[str, Any] = {
    "version": SETTINGS_VERSION,
    "org_directories": [],
    "pin_order": [],
}


class SettingsStore:
    """YAML-backed settings with defaults for missing or invalid values."""

    def __init__(self, settings_path: Path):
        self.settings_path = settings_path
        self._lock = threading.Lock()
        self._data = self._load()

    def _load(self) -> dict[str, Any]:
        data = dict(DEFAULT_SETTINGS)
        if not self.settings_path.exists():
            return data

        try:
            raw = yaml.safe_load(self.settings_path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Invalid settings file %s, using defaults: %s", self.settings_path, e)
            return data

        if not isinstance(raw, dict):
            return data

        dirs = raw.get("org_directories")
        if isinstance(dirs, list):
            data["org_directories"] = [str(d) for d in dirs]
        order = raw.get("pin_order")
        if isinstance(order, list):
            data["pin_order"] = [str(pin_id) for pin_id in order]
        return data

    def _save(self) -> None:
        self.settings_path.parent.mkdir(parents=True, exist_ok=True)
        self.settings_path.write_text(
            yaml.safe_dump(self._data, sort_keys=False), encoding="utf-8"
        )

    def get_org_directories(self) -> list[str]:
        return list(self._data["org_directories"])

    def set_org_directories(self, directories: list[str]) -> None:
        with self._lock:
            self._data["org_directories"] = [str(d) for d in directories]
            self._save()
        logger.info("Saved %d org directories", len(directories))

    def get_pin_order(self) -> list[str]:
        """Current custom pin order (most prominent first)."""
        return list(self._data["pin_order"])

    def set_pin_order(self, pin_ids: list[str]) -> None:
        with self._lock:
            self._data["pin_order"] = [str(pin_id) for pin_id in pin_ids]
            self._save()
        logger.debug("Saved pin order with %d ids", len(pin_ids))

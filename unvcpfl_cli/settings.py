"""Settings manager for settings.yaml.

Settings live in a single user-scope YAML file and are deep-merged over the
built-in defaults:

    profiles:
      default: global          # profile used when nothing else matches
    timeouts:
      external_call: 2.0       # seconds per compositor / GPU tool call
    logging:
      level: INFO
"""

import logging
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: dict[str, Any] = {
    "profiles": {"default": "global"},
    "timeouts": {"external_call": 2.0},
    "logging": {"level": "INFO"},
}


class SettingsManager:
    """Reads and updates the user settings file."""

    def __init__(self, settings_file: Path):
        """Initialize settings manager.

        Args:
            settings_file: Path to settings.yaml (need not exist yet)
        """
        self.settings_file = settings_file

    def get_merged_settings(self) -> dict[str, Any]:
        """Get defaults merged with the settings file (file wins).

        Returns:
            Merged settings dictionary
        """
        user = self._read_settings(self.settings_file) or {}
        return self._deep_merge(DEFAULT_SETTINGS, user)

    def get_default_profile(self) -> str | None:
        """Name of the global default profile, or None if disabled."""
        value = self._section("profiles").get("default")
        return str(value) if value else None

    def set_default_profile(self, name: str | None) -> None:
        """Set (or clear, with None) the global default profile."""
        self._update_settings(self.settings_file, {"profiles": {"default": name}})
        logger.info(f"Set default profile to: {name}")

    def get_external_call_timeout(self) -> float:
        """Timeout in seconds for compositor and GPU tool calls."""
        value = self._section("timeouts").get("external_call")
        try:
            timeout = float(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid timeouts.external_call {value!r}; using default")
            return DEFAULT_SETTINGS["timeouts"]["external_call"]
        if timeout <= 0:
            logger.warning(f"Non-positive timeouts.external_call {timeout}; using default")
            return DEFAULT_SETTINGS["timeouts"]["external_call"]
        return timeout

    def get_log_level(self) -> str:
        return str(self._section("logging").get("level", "INFO")).upper()

    def _section(self, name: str) -> dict[str, Any]:
        section = self.get_merged_settings().get(name)
        return section if isinstance(section, dict) else {}

    def _read_settings(self, path: Path) -> dict[str, Any] | None:
        """Read settings from YAML file.

        Args:
            path: Path to settings file

        Returns:
            Settings dict or None if file doesn't exist or is unreadable
        """
        if not path.exists():
            return None

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to read settings from {path}: {e}")
            return None

        if data is None:
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring settings file {path}: top level is not a mapping")
            return None
        return data

    def _write_settings(self, path: Path, settings: dict[str, Any]) -> None:
        """Write settings to YAML file.

        Args:
            path: Path to settings file
            settings: Settings dictionary
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(path, "w") as f:
                yaml.dump(settings, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            logger.error(f"Failed to write settings to {path}: {e}")
            raise

    def _update_settings(self, path: Path, updates: dict[str, Any]) -> None:
        """Update settings file with new values (deep merge)."""
        existing = self._read_settings(path) or {}
        merged = self._deep_merge(existing, updates)
        self._write_settings(path, merged)

    def _deep_merge(self, base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries.

        Args:
            base: Base dictionary
            overlay: Overlay dictionary (takes precedence)

        Returns:
            Merged dictionary
        """
        result = base.copy()

        for key, value in overlay.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

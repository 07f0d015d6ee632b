"""CLI-specific path policy and dependency injection helpers.

This module centralizes the path decisions of the CLI. Stores, settings and
the log sink receive their paths via injection; this module provides the
CLI's choices (XDG base directories).
"""

import os
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .gpu.lact import LactProfileSwitch
    from .profiles.store import ProfileStore
    from .screen.compositor import CompositorAdapter
    from .settings import SettingsManager

APP_DIR_NAME = "unvcpfl"


def _xdg_dir(env_var: str, fallback: Path) -> Path:
    value = os.environ.get(env_var)
    return Path(value) if value else fallback


def get_config_dir() -> Path:
    """User config directory, e.g. ~/.config/unvcpfl."""
    return _xdg_dir("XDG_CONFIG_HOME", Path.home() / ".config") / APP_DIR_NAME


def get_state_dir() -> Path:
    """User state directory for logs, e.g. ~/.local/state/unvcpfl."""
    return _xdg_dir("XDG_STATE_HOME", Path.home() / ".local" / "state") / APP_DIR_NAME


def get_profiles_dir() -> Path:
    """Directory holding one TOML document per profile."""
    return get_config_dir() / "profiles"


def get_settings_file() -> Path:
    return get_config_dir() / "settings.yaml"


def get_default_log_path() -> Path:
    return get_state_dir() / "unvcpfl.log.jsonl"


# ===== FACTORIES =====


def create_settings_manager() -> "SettingsManager":
    """Create the settings manager with CLI paths."""
    from .settings import SettingsManager

    return SettingsManager(settings_file=get_settings_file())


def create_profile_store() -> "ProfileStore":
    """Create the profile store with CLI paths and the configured default profile."""
    from .profiles.store import ProfileStore

    settings = create_settings_manager()
    return ProfileStore(get_profiles_dir(), default_profile=settings.get_default_profile())


def create_compositor() -> "CompositorAdapter":
    """Create the compositor adapter for the running desktop, using the configured timeout."""
    from .screen.compositor import create_compositor_adapter

    settings = create_settings_manager()
    return create_compositor_adapter(timeout=settings.get_external_call_timeout())


def create_gpu_switch() -> "LactProfileSwitch":
    """Create the LACT-backed GPU power profile switch."""
    from .gpu.lact import LactProfileSwitch

    settings = create_settings_manager()
    return LactProfileSwitch(timeout=settings.get_external_call_timeout())

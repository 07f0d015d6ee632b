"""File-backed profile store.

One TOML document per profile in a single directory. Documents are validated
through the pydantic schema on the way in, so every profile handed out by the
store has already had its default-substitution rules applied.
"""

from __future__ import annotations

import contextlib
import logging
import tempfile
import tomllib
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import ValidationError

from ..errors import ProfileStoreError
from .schema import Profile

logger = logging.getLogger(__name__)

REPAIR_PASSES = 3


def profile_filename(name: str) -> str:
    """File name for a profile: lower case, spaces as underscores."""
    return f"{name.strip().lower().replace(' ', '_')}.toml"


def _drop_invalid_field(data: dict[str, Any], loc: tuple[Any, ...]) -> str | None:
    """Remove the deepest key of an error location that exists in the document.

    Returns the dotted field path, or None when nothing can be dropped. The
    profile name is never dropped: without it the document cannot be stored.
    """
    parent: dict[str, Any] | None = None
    key = None
    node: Any = data
    path = []
    for part in loc:
        if not isinstance(node, dict) or part not in node:
            break
        parent, key, node = node, part, node[part]
        path.append(str(part))

    if parent is None or path == ["name"]:
        return None
    del parent[key]
    return ".".join(path)


class ProfileStore:
    """
    Persists and retrieves profiles.

    Contract:
    - Inputs: profile names, Profile objects
    - Outputs: validated Profile objects, or None when absent
    - Side Effects: writes <profiles_dir>/<slug>.toml atomically
    - Errors: ProfileStoreError for invalid names and I/O failures
    """

    def __init__(self, profiles_dir: Path, default_profile: str | None = "global"):
        """Initialize with the directory that holds profile documents.

        Args:
            profiles_dir: Directory of *.toml profiles (created on first write)
            default_profile: Name of the global fallback profile, None to disable
        """
        self.profiles_dir = profiles_dir
        self.default_profile = default_profile

    def _path_for(self, name: str) -> Path:
        if not name or not name.strip():
            raise ProfileStoreError("Profile name cannot be empty")
        if "/" in name or "\\" in name or name.strip() in (".", ".."):
            raise ProfileStoreError(f"Invalid profile name: {name}")
        return self.profiles_dir / profile_filename(name)

    def _load_file(self, path: Path) -> Profile | None:
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning(f"Skipping unreadable profile {path}: {e}")
            return None
        return self._validate(data, path)

    def _validate(self, data: dict[str, Any], path: Path) -> Profile | None:
        """Validate a document, dropping mistyped fields so their defaults apply."""
        dropped: list[str] = []
        for _ in range(REPAIR_PASSES):
            try:
                profile = Profile(**data)
            except ValidationError as e:
                removed = [
                    (field, err["msg"]) for err in e.errors() if (field := _drop_invalid_field(data, err["loc"]))
                ]
                if not removed:
                    logger.warning(f"Skipping invalid profile {path}: {e}")
                    return None
                for field, msg in removed:
                    message = f"{field}: {msg}; using the default"
                    logger.warning(f"Profile {path.name}: {message}")
                    dropped.append(message)
                continue

            profile.degraded = dropped + profile.degraded
            return profile

        logger.warning(f"Skipping invalid profile {path}: still invalid after dropping {len(dropped)} field(s)")
        return None

    def get(self, name: str) -> Profile | None:
        """
        Load a profile by name.

        Returns:
            Profile, or None if it does not exist or cannot be parsed
        """
        path = self._path_for(name)
        if not path.exists():
            return None
        return self._load_file(path)

    def list(self) -> list[Profile]:
        """All readable profiles, sorted by name."""
        if not self.profiles_dir.exists():
            return []

        profiles = []
        for path in sorted(self.profiles_dir.glob("*.toml")):
            profile = self._load_file(path)
            if profile is not None:
                profiles.append(profile)

        return sorted(profiles, key=lambda p: p.name.lower())

    def list_templates(self) -> list[Profile]:
        """Reusable templates only."""
        return [p for p in self.list() if p.is_template]

    def list_bindings(self) -> list[Profile]:
        """Per-game profiles only."""
        return [p for p in self.list() if not p.is_template]

    def put(self, profile: Profile) -> None:
        """
        Save a profile atomically.

        Raises:
            ProfileStoreError: If the name is invalid, shares its file with a
                differently named profile, or the write fails
        """
        path = self._path_for(profile.name)
        if path.exists():
            existing = self._load_file(path)
            if existing is not None and existing.name != profile.name:
                raise ProfileStoreError(
                    f"Profile name '{profile.name}' collides with existing profile '{existing.name}'"
                )
        self.profiles_dir.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            mode="wb", dir=self.profiles_dir, prefix="profile_", suffix=".tmp", delete=False
        ) as tmp_file:
            temp_path = Path(tmp_file.name)
            try:
                tomli_w.dump(profile.to_document(), tmp_file)
                tmp_file.flush()
                temp_path.replace(path)
            except Exception as e:
                with contextlib.suppress(OSError):
                    temp_path.unlink()
                raise ProfileStoreError(f"Failed to save profile '{profile.name}': {e}") from e

        logger.debug(f"Saved profile '{profile.name}' to {path}")

    def delete(self, name: str) -> None:
        """
        Delete a profile.

        Raises:
            ProfileStoreError: If the profile does not exist or cannot be removed
        """
        path = self._path_for(name)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise ProfileStoreError(f"Profile '{name}' not found") from e
        except OSError as e:
            raise ProfileStoreError(f"Failed to delete profile '{name}': {e}") from e

        logger.info(f"Deleted profile '{name}'")

    def duplicate(self, source_name: str, new_name: str) -> Profile:
        """Copy a profile under a new name and save it."""
        source = self.get(source_name)
        if source is None:
            raise ProfileStoreError(f"Profile '{source_name}' not found")
        if self.get(new_name) is not None:
            raise ProfileStoreError(f"Profile '{new_name}' already exists")

        copy = source.model_copy(update={"name": new_name}, deep=True)
        self.put(copy)
        return copy

    def apply_template(self, template_name: str, game_name: str) -> Profile:
        """
        Create a per-game profile from a template and save it.

        The new profile keeps every setting of the template but is not itself
        a template and carries no game binding yet.
        """
        template = self.get(template_name)
        if template is None or not template.is_template:
            raise ProfileStoreError(f"Template '{template_name}' not found")

        profile = template.model_copy(
            update={
                "name": game_name,
                "is_template": False,
                "description": template.description or f"From template {template.name}",
            },
            deep=True,
        )
        self.put(profile)
        return profile

    def find_by_store_id(self, steam_appid: int) -> Profile | None:
        for profile in self.list_bindings():
            if profile.steam_appid == steam_appid:
                return profile
        return None

    def find_by_executable(self, executable: str) -> Profile | None:
        exe_name = Path(executable).name
        for profile in self.list_bindings():
            if profile.executable_match and profile.executable_match == exe_name:
                return profile
        return None

    def resolve(
        self,
        *,
        steam_appid: int | None = None,
        executable: str | None = None,
        name: str | None = None,
    ) -> Profile | None:
        """
        Find the profile for a game.

        Precedence: exact store-id match > executable match > name match >
        global default profile.

        Returns:
            Matching profile, or None if nothing (not even the default) exists
        """
        if steam_appid is not None:
            profile = self.find_by_store_id(steam_appid)
            if profile:
                logger.debug(f"Resolved profile '{profile.name}' by store id {steam_appid}")
                return profile

        if executable:
            profile = self.find_by_executable(executable)
            if profile:
                logger.debug(f"Resolved profile '{profile.name}' by executable {executable}")
                return profile

        if name:
            profile = self.get(name)
            if profile:
                return profile

        if self.default_profile:
            profile = self.get(self.default_profile)
            if profile:
                logger.debug(f"Falling back to default profile '{profile.name}'")
                return profile

        return None

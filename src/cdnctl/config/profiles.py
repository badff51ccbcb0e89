"""
Credential profile storage for cdnctl.

This module owns the YAML file that holds named access-key/secret pairs and
the notion of a default profile. All reads and writes of that file go
through ProfileStore, which is constructed with an explicit path.

File format:
    default_profile: prod
    profiles:
      - name: prod
        accessKey: AK1
        accessKeySecret: SK1

Storage Design:
    - Secrets are stored in plaintext; the file is written owner-only (0600)
    - The file is bootstrapped with an empty profile set on first use
    - Every mutation rewrites the whole file atomically (temp file + rename)
    - Read-modify-write without locking: concurrent invocations against the
      same file race and the last writer wins
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from cdnctl.config.settings import DEFAULT_PROFILES_FILE

logger = logging.getLogger(__name__)


class ProfileError(Exception):
    """Base exception for profile store errors."""

    pass


class StorageError(ProfileError):
    """Raised when the profiles file or its directory cannot be read or written."""

    pass


class ParseError(ProfileError):
    """Raised when the profiles file content is malformed."""

    pass


class NotFoundError(ProfileError):
    """Raised when a named profile does not exist."""

    pass


class DuplicateNameError(ProfileError):
    """Raised when inserting a profile whose name is already taken."""

    pass


class NoProfilesError(ProfileError):
    """Raised when resolving a profile while the store is empty."""

    pass


@dataclass(frozen=True)
class Profile:
    """A named access-key/secret pair used to authenticate API calls."""

    name: str
    access_key: str
    access_key_secret: str

    def to_dict(self) -> dict[str, str]:
        """Return the on-disk representation of this profile."""
        return {
            "name": self.name,
            "accessKey": self.access_key,
            "accessKeySecret": self.access_key_secret,
        }


@dataclass
class ProfileSet:
    """
    All stored profiles plus the default profile name.

    Attributes:
        default_profile: Name of the default profile, or "" when unset.
        profiles: Profiles in insertion order.
    """

    default_profile: str = ""
    profiles: list[Profile] = field(default_factory=list)

    def find(self, name: str) -> Profile | None:
        """Return the profile called ``name``, or None."""
        for profile in self.profiles:
            if profile.name == name:
                return profile
        return None

    @property
    def effective_default(self) -> str:
        """
        Name of the profile used when none is given.

        Falls back to the first profile when no default is stored. The
        fallback is computed at read time and never written back.
        """
        if self.default_profile:
            return self.default_profile
        if self.profiles:
            return self.profiles[0].name
        return ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "default_profile": self.default_profile,
            "profiles": [p.to_dict() for p in self.profiles],
        }


class ProfileStore:
    """
    YAML-backed store of credential profiles.

    Usage:
        store = ProfileStore(Path("~/.config/cdnctl/config.yaml").expanduser())
        store.insert("prod", "AK1", "SK1", make_default=True)
        profile = store.resolve("")   # -> Profile("prod", "AK1", "SK1")
        store.remove("prod")

    Attributes:
        path: Path to the profiles YAML file.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = Path(path) if path is not None else DEFAULT_PROFILES_FILE

    def bootstrap(self) -> None:
        """
        Create the profiles file with an empty profile set if it is missing.

        Safe to call before every operation; an existing file is never touched.

        Raises:
            StorageError: If the directory or file cannot be created.
        """
        if self.path.exists():
            return

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Cannot create config directory {self.path.parent}: {e}"
            ) from e

        self._save(ProfileSet())
        logger.debug(f"Created empty profiles file: {self.path}")

    def load(self) -> ProfileSet:
        """
        Read and parse the profiles file.

        Returns:
            The stored ProfileSet. An empty file reads as an empty set.

        Raises:
            StorageError: If the file cannot be read.
            ParseError: If the content is not valid YAML or has the wrong shape.
        """
        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ParseError(f"Invalid YAML in profiles file {self.path}: {e}") from e
        except UnicodeDecodeError as e:
            raise ParseError(f"Profiles file {self.path} is not valid UTF-8: {e}") from e
        except OSError as e:
            raise StorageError(f"Cannot read profiles file {self.path}: {e}") from e

        return _parse_profile_set(data, self.path)

    def resolve(self, name: str = "") -> Profile:
        """
        Resolve which profile to use.

        Precedence: explicit ``name``, then the stored default, then the
        first profile in insertion order.

        Args:
            name: Profile name, or "" to use the default.

        Returns:
            The resolved Profile.

        Raises:
            NotFoundError: If ``name`` (or the stored default) does not exist.
            NoProfilesError: If ``name`` is empty and no profiles are stored.
        """
        profile_set = self._read()

        if name:
            profile = profile_set.find(name)
            if profile is None:
                raise NotFoundError(f"Profile '{name}' not found")
            return profile

        if not profile_set.profiles:
            raise NoProfilesError(
                "No profiles found. Add one with 'cdnctl config add'."
            )

        default_name = profile_set.effective_default
        profile = profile_set.find(default_name)
        if profile is None:
            raise NotFoundError(f"Default profile '{default_name}' not found")
        logger.debug(f"Resolved default profile: {profile.name}")
        return profile

    def insert(
        self,
        name: str,
        access_key: str,
        access_key_secret: str,
        make_default: bool = False,
    ) -> None:
        """
        Add a new profile.

        The profile becomes the default when ``make_default`` is set or when
        the stored default is unset or names no existing profile.

        Raises:
            ValueError: If ``name`` is empty.
            DuplicateNameError: If a profile with this name already exists.
            StorageError: If the file cannot be written.
        """
        if not name:
            raise ValueError("Profile name must not be empty")

        profile_set = self._read()

        if profile_set.find(name) is not None:
            raise DuplicateNameError(f"Profile with name '{name}' already exists")

        profile_set.profiles.append(
            Profile(name=name, access_key=access_key, access_key_secret=access_key_secret)
        )
        # A missing or dangling default is replaced by the new profile
        if make_default or profile_set.find(profile_set.default_profile) is None:
            profile_set.default_profile = name

        self._save(profile_set)
        logger.info(f"Added profile '{name}'")
        if profile_set.default_profile == name:
            logger.info(f"Default profile set to '{name}'")

    def remove(self, name: str) -> None:
        """
        Remove a profile.

        If it was the default, the first remaining profile becomes the
        default, or the default is cleared when none remain.

        Raises:
            NotFoundError: If no profile has this name.
            StorageError: If the file cannot be written.
        """
        profile_set = self._read()

        profile = profile_set.find(name)
        if profile is None:
            raise NotFoundError(f"Profile with name '{name}' not found")

        profile_set.profiles.remove(profile)

        if profile_set.default_profile == name:
            if profile_set.profiles:
                profile_set.default_profile = profile_set.profiles[0].name
                logger.info(
                    f"Default profile changed to '{profile_set.default_profile}'"
                )
            else:
                profile_set.default_profile = ""

        self._save(profile_set)
        logger.info(f"Removed profile '{name}'")

    def set_default(self, name: str) -> None:
        """
        Mark an existing profile as the default.

        Raises:
            NotFoundError: If no profile has this name.
            StorageError: If the file cannot be written.
        """
        profile_set = self._read()

        if profile_set.find(name) is None:
            raise NotFoundError(f"Profile with name '{name}' not found")

        profile_set.default_profile = name
        self._save(profile_set)
        logger.info(f"Default profile set to '{name}'")

    def list_profiles(self) -> ProfileSet:
        """Return the current profile set for display."""
        return self._read()

    def _read(self) -> ProfileSet:
        self.bootstrap()
        return self.load()

    def _save(self, profile_set: ProfileSet) -> None:
        """Serialize and write the profile set."""
        data = yaml.safe_dump(
            profile_set.to_dict(), default_flow_style=False, sort_keys=False
        )
        self._write_secure_file(self.path, data.encode("utf-8"))

    def _write_secure_file(self, path: Path, data: bytes) -> None:
        """
        Write data to file with restrictive permissions.

        Uses atomic write (write to temp, then rename) so a failed write
        leaves the previous file intact.

        Raises:
            StorageError: If the file cannot be written.
        """
        temp_path = path.with_name(path.name + ".tmp")

        try:
            temp_path.write_bytes(data)

            # Owner read/write only
            try:
                os.chmod(temp_path, 0o600)
            except OSError:
                # Windows or permission error - continue anyway
                pass

            temp_path.replace(path)

        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise StorageError(f"Cannot write profiles file {path}: {e}") from e


def _parse_profile_set(data: Any, path: Path) -> ProfileSet:
    """Validate parsed YAML and build a ProfileSet from it."""
    if data is None:
        return ProfileSet()
    if not isinstance(data, dict):
        raise ParseError(f"Profiles file {path} must contain a mapping")

    default_profile = data.get("default_profile") or ""
    if not isinstance(default_profile, str):
        raise ParseError(f"default_profile in {path} must be a string")

    raw_profiles = data.get("profiles") or []
    if not isinstance(raw_profiles, list):
        raise ParseError(f"profiles in {path} must be a list")

    profiles: list[Profile] = []
    seen: set[str] = set()
    for index, entry in enumerate(raw_profiles):
        if not isinstance(entry, dict):
            raise ParseError(f"Profile #{index + 1} in {path} must be a mapping")

        name = entry.get("name")
        if not isinstance(name, str) or not name:
            raise ParseError(f"Profile #{index + 1} in {path} has no name")
        if name in seen:
            raise ParseError(f"Duplicate profile name '{name}' in {path}")
        seen.add(name)

        access_key = entry.get("accessKey", "")
        access_key_secret = entry.get("accessKeySecret", "")
        if not isinstance(access_key, str) or not isinstance(access_key_secret, str):
            raise ParseError(f"Profile '{name}' in {path} has non-string keys")

        profiles.append(
            Profile(
                name=name,
                access_key=access_key,
                access_key_secret=access_key_secret,
            )
        )

    return ProfileSet(default_profile=default_profile, profiles=profiles)


def add_profile(
    store: ProfileStore,
    name: str,
    access_key: str,
    access_key_secret: str,
    make_default: bool = False,
) -> None:
    """Add a profile; see ProfileStore.insert."""
    store.insert(name, access_key, access_key_secret, make_default)


def remove_profile(store: ProfileStore, name: str) -> None:
    """Remove a profile; see ProfileStore.remove."""
    store.remove(name)


def show_profiles(store: ProfileStore, name: str = "") -> ProfileSet:
    """
    Get a read-only view of stored profiles for display.

    Args:
        store: Profile store to read.
        name: When given, the view holds only that profile, looked up with
              the same resolution used before signing requests.

    Returns:
        A ProfileSet view.

    Raises:
        NotFoundError: If ``name`` does not exist.
    """
    profile_set = store.list_profiles()
    if not name:
        return profile_set

    profile = store.resolve(name)
    return ProfileSet(default_profile=profile_set.default_profile, profiles=[profile])

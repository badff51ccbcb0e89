"""
Configuration management for cdnctl.

This module handles loading and validating tool settings, as well as the
local store of named credential profiles.
"""

from cdnctl.config.profiles import (
    DuplicateNameError,
    NoProfilesError,
    NotFoundError,
    ParseError,
    Profile,
    ProfileError,
    ProfileSet,
    ProfileStore,
    StorageError,
    add_profile,
    remove_profile,
    show_profiles,
)
from cdnctl.config.settings import (
    ConfigurationError,
    EndpointConfig,
    Settings,
    load_config,
)

__all__ = [
    # Settings
    "Settings",
    "EndpointConfig",
    "load_config",
    "ConfigurationError",
    # Profiles
    "Profile",
    "ProfileSet",
    "ProfileStore",
    "ProfileError",
    "StorageError",
    "ParseError",
    "NotFoundError",
    "DuplicateNameError",
    "NoProfilesError",
    "add_profile",
    "remove_profile",
    "show_profiles",
]

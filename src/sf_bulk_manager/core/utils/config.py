# -*- coding: utf-8 -*-

"""
Connection configuration for the Bulk API client.

Values are resolved from explicit arguments first, then environment
variables, then a named profile stored in a YAML file under the user's
config directory.
"""

import os
import logging
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Optional

import platformdirs

from .errors import ConfigurationError
from .misc import read_yaml, write_yaml


DEFAULT_TIMEOUT = 120.0

ENV_VARS = {
    'url': 'SF_LOGIN_URL',
    'username': 'SF_USERNAME',
    'password': 'SF_PASSWORD',
    'token': 'SF_SECURITY_TOKEN',
    'api_version': 'SF_API_VERSION',
}

REQUIRED_FIELDS = ('url', 'username', 'password', 'token', 'api_version')

# Secrets are never written to profile files.
PROFILE_FIELDS = ('url', 'username', 'api_version', 'timeout')


def default_profiles_path() -> Path:
    """Get the platform-specific profiles file path."""
    config_dir = platformdirs.user_config_dir("sf-bulk-manager", "sf-bulk-manager")
    return Path(config_dir) / "profiles.yaml"


@dataclass
class BulkApiConfig:
    """Login host, credentials and API version for one Bulk API connection."""

    url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    api_version: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self):
        if self.url:
            self.url = self.url.rstrip('/')
        if self.api_version is not None:
            self.api_version = str(self.api_version)

    def missing_fields(self) -> list:
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]

    def validate(self):
        """
        Fail fast when a required value is missing.

        Raises:
            ConfigurationError: Naming every missing field.
        """
        missing = self.missing_fields()
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )
        return self

    def merged_with(self, **overrides):
        """Return a copy where every non-None override replaces the current value."""
        values = asdict(self)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return BulkApiConfig(**values)

    @classmethod
    def from_env(cls, **overrides):
        """
        Build a configuration from SF_* environment variables.

        Args:
            **overrides: Explicit values that take precedence over the environment.
        """
        values = {name: os.getenv(var) for name, var in ENV_VARS.items()}
        config = cls(**values)
        return config.merged_with(**overrides)

    @classmethod
    def from_profile(cls, name: str, path: str | Path = None):
        """
        Load a named profile from the profiles YAML file.

        Raises:
            ConfigurationError: If the file or the profile does not exist.
        """
        path = Path(path) if path else default_profiles_path()
        if not path.exists():
            raise ConfigurationError(f"Profiles file not found: {path}")
        profiles = (read_yaml(path) or {}).get('profiles', {})
        if name not in profiles:
            raise ConfigurationError(f"Profile '{name}' not found in {path}")
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in (profiles[name] or {}).items() if k in known}
        logging.debug(f"Loaded profile '{name}' from {path}")
        return cls(**values)

    @classmethod
    def resolve(cls, profile: str = None, profiles_path: str | Path = None, **overrides):
        """
        Resolve a configuration: overrides, then environment, then profile.

        The result is not validated; call validate() before connecting.
        """
        base = cls.from_profile(profile, profiles_path) if profile else cls()
        env_values = {name: os.getenv(var) for name, var in ENV_VARS.items()}
        return base.merged_with(**env_values).merged_with(**overrides)


def save_profile(name: str, config: BulkApiConfig, path: str | Path = None) -> Path:
    """
    Save the non-secret part of a configuration as a named profile.

    Returns:
        Path: The profiles file that was written.
    """
    path = Path(path) if path else default_profiles_path()
    data = (read_yaml(path) or {}) if path.exists() else {}
    data.setdefault('profiles', {})
    data['profiles'][name] = {
        key: getattr(config, key) for key in PROFILE_FIELDS
        if getattr(config, key) is not None
    }
    write_yaml(data, path)
    logging.info(f"Saved profile '{name}' to {path}")
    return path

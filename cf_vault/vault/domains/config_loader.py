"""Profile store backed by a YAML document in ~/.cf-vault/."""
import os
import logging
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigurationError, ProfileNotFoundError
from .models import Profile

logger = logging.getLogger(__name__)

PROJECT_NAME = "cf-vault"
CONFIG_PATH_ENV = "CF_VAULT_CONFIG"


def get_config_dir() -> Path:
    """Directory holding the profile document and the fallback key file."""
    return Path.home() / f".{PROJECT_NAME}"


def get_config_path() -> Path:
    """
    Resolve the profile document path.

    Priority order:
    1. CF_VAULT_CONFIG environment variable
    2. Default location: ~/.cf-vault/config.yml

    Resolved on every call so overrides take effect without a restart.
    """
    override = os.getenv(CONFIG_PATH_ENV)
    if override:
        logger.debug(f"Using config path from {CONFIG_PATH_ENV}: {override}")
        return Path(override).expanduser()
    return get_config_dir() / "config.yml"


class ProfileStore:
    """Durable mapping of profile name to Profile."""

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path else None
        # Top-level keys other than "profiles", written back untouched.
        self._other_sections: Dict[str, Any] = {}

    @property
    def path(self) -> Path:
        return self._path if self._path else get_config_path()

    def load(self) -> Dict[str, Profile]:
        """
        Load all profiles.

        Returns:
            Mapping of profile name to Profile; empty if the file doesn't exist

        Raises:
            ConfigurationError: If the file can't be read or parsed
        """
        path = self.path
        if not path.exists():
            logger.debug(f"No config file at {path}, starting with no profiles")
            self._other_sections = {}
            return {}

        try:
            with open(path, 'r') as f:
                document = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML config at {path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read config file at {path}: {e}")

        if document is None:
            document = {}
        if not isinstance(document, dict):
            raise ConfigurationError(f"Config file at {path} must contain a mapping at the top level")

        raw_profiles = document.get("profiles") or {}
        if not isinstance(raw_profiles, dict):
            raise ConfigurationError(f"'profiles' in {path} must be a mapping of profile name to settings")

        self._other_sections = {k: v for k, v in document.items() if k != "profiles"}

        profiles = {}
        for name, data in raw_profiles.items():
            if not isinstance(data, dict):
                raise ConfigurationError(f"Profile '{name}' in {path} must be a mapping")
            try:
                profiles[str(name)] = Profile.from_dict(data)
            except (KeyError, TypeError, AttributeError) as e:
                raise ConfigurationError(f"Profile '{name}' in {path} is malformed: {e}")

        logger.debug(f"Loaded {len(profiles)} profile(s) from {path}")
        return profiles

    def get(self, name: str) -> Profile:
        """Load a single profile, raising ProfileNotFoundError if missing."""
        profiles = self.load()
        if name not in profiles:
            raise ProfileNotFoundError(name, str(self.path))
        return profiles[name]

    def save(self, profiles: Dict[str, Profile]) -> None:
        """
        Persist all profiles, replacing the file atomically.

        Args:
            profiles: Mapping of profile name to Profile

        Raises:
            ConfigurationError: If the file can't be written
        """
        path = self.path
        document = dict(self._other_sections)
        document["profiles"] = {name: profile.to_dict() for name, profile in profiles.items()}

        try:
            path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".config-", suffix=".tmp", dir=str(path.parent))
            try:
                with os.fdopen(fd, 'w') as f:
                    yaml.safe_dump(document, f, default_flow_style=False, sort_keys=False)
                    f.flush()
                    os.fsync(f.fileno())
                os.chmod(tmp_name, 0o600)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise ConfigurationError(f"Failed to save config file at {path}: {e}")

        logger.debug(f"Saved {len(profiles)} profile(s) to {path}")

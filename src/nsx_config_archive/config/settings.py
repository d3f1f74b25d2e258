"""Exporter settings loaded from YAML configuration.

Example ``settings.yaml``:

```yaml
manager:
  host: nsxmgr.example.com
  username: admin
  password_env: NSX_PASSWORD
  verify_ssl: false
  timeout: 60
git:
  path: /usr/bin/git
  branch: master
  commit_message: "nsxdrift: automated configuration export"
output_dir: /var/lib/nsxdrift/exports
```
"""
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_COMMIT_MESSAGE = "nsxdrift: automated NSX configuration export"


def _project_root() -> Path:
    """Find the program's project root, or the package directory when installed."""
    current = Path(__file__).resolve()
    package_dir = current.parent.parent
    for parent in package_dir.parents:
        if (parent / "pyproject.toml").exists():
            return parent
    return package_dir


DEFAULT_OUTPUT_DIR = _project_root() / "exports"


@dataclass
class ManagerConfig:
    """Connection settings for NSX Manager."""
    host: str
    username: str = "admin"
    password: Optional[str] = None
    password_env: str = "NSX_PASSWORD"
    verify_ssl: bool = True
    timeout: int = 60

    def get_password(self) -> str:
        """Get password from config or environment variable."""
        if self.password:
            return self.password
        return os.environ.get(self.password_env, "")


@dataclass
class GitConfig:
    """Settings for the git executable and upstream."""
    path: Optional[str] = None
    remote: str = "origin"
    branch: str = "master"
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    push: bool = True
    strict_push: bool = False


@dataclass
class ArchiveSettings:
    """Complete exporter configuration."""
    manager: Optional[ManagerConfig] = None
    git: GitConfig = field(default_factory=GitConfig)
    output_dir: Path = DEFAULT_OUTPUT_DIR

    @classmethod
    def from_dict(cls, data: dict) -> "ArchiveSettings":
        """Build settings from parsed YAML.

        Raises:
            ValueError: If a section has the wrong shape or lacks a required key
        """
        if not isinstance(data, dict):
            raise ValueError(f"Settings must be a mapping, got {type(data).__name__}")

        manager_data = _section(data, "manager")
        if manager_data and not manager_data.get("host"):
            raise ValueError("Missing required setting: manager.host")
        manager = ManagerConfig(**_known(ManagerConfig, manager_data)) if manager_data else None
        git = GitConfig(**_known(GitConfig, _section(data, "git")))

        output_dir = data.get("output_dir")
        return cls(
            manager=manager,
            git=git,
            output_dir=Path(output_dir).expanduser() if output_dir else DEFAULT_OUTPUT_DIR,
        )


def _section(data: dict, name: str) -> dict:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Settings section '{name}' must be a mapping, got {type(section).__name__}")
    return section


def _known(cls, data: dict) -> dict:
    """Drop keys the dataclass does not define, warning about each."""
    names = {f.name for f in fields(cls)}
    for key in data:
        if key not in names:
            logger.warning(f"Ignoring unknown {cls.__name__} setting: {key}")
    return {k: v for k, v in data.items() if k in names}


def find_settings_file() -> Optional[Path]:
    """Find settings.yaml in the usual locations."""
    env_path = os.environ.get("NSXDRIFT_CONFIG")
    if env_path:
        return Path(env_path)

    search_paths = [
        Path.cwd() / "configs" / "settings.yaml",
        Path.cwd() / "settings.yaml",
        Path.home() / ".config" / "nsxdrift" / "settings.yaml",
        Path("/etc/nsxdrift/settings.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            return path
    return None


def load_settings(config_path: Optional[Path] = None) -> ArchiveSettings:
    """Load settings from YAML, falling back to defaults when no file exists.

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
        yaml.YAMLError: If the file is not valid YAML
        ValueError: If the settings are malformed
    """
    path = config_path or find_settings_file()
    if path is None:
        logger.debug("No settings file found, using defaults")
        return ArchiveSettings()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    logger.debug(f"Loaded settings from {path}")
    return ArchiveSettings.from_dict(data)

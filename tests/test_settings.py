"""Tests for settings loading."""
from pathlib import Path

import pytest
import yaml

from nsx_config_archive.config import (
    ArchiveSettings,
    DEFAULT_OUTPUT_DIR,
    ManagerConfig,
    load_settings,
)
from nsx_config_archive.config.settings import DEFAULT_COMMIT_MESSAGE, find_settings_file


SETTINGS_YAML = """
manager:
  host: nsxmgr.example.com
  username: auditor
  password_env: NSX_AUDIT_PASSWORD
  verify_ssl: false
  timeout: 90
git:
  path: /usr/bin/git
  branch: main
output_dir: /srv/nsx-history
"""


class TestManagerConfig:
    """Tests for ManagerConfig."""

    def test_inline_password(self):
        assert ManagerConfig(host="h", password="pw").get_password() == "pw"

    def test_password_from_env(self, monkeypatch):
        monkeypatch.setenv("NSX_PASSWORD", "from-env")
        assert ManagerConfig(host="h").get_password() == "from-env"

    def test_missing_password(self, monkeypatch):
        monkeypatch.delenv("NSX_PASSWORD", raising=False)
        assert ManagerConfig(host="h").get_password() == ""


class TestLoadSettings:
    """Tests for load_settings."""

    def test_full_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(SETTINGS_YAML)

        settings = load_settings(path)

        assert settings.manager.host == "nsxmgr.example.com"
        assert settings.manager.username == "auditor"
        assert settings.manager.verify_ssl is False
        assert settings.manager.timeout == 90
        assert settings.git.path == "/usr/bin/git"
        assert settings.git.branch == "main"
        assert settings.git.remote == "origin"
        assert settings.git.commit_message == DEFAULT_COMMIT_MESSAGE
        assert settings.output_dir == Path("/srv/nsx-history")

    def test_defaults_for_empty_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("")

        settings = load_settings(path)

        assert settings.manager is None
        assert settings.git.path is None
        assert settings.git.push is True
        assert settings.output_dir == DEFAULT_OUTPUT_DIR

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("manager:\n  host: h\n  colour: blue\ngit:\n  speed: fast\n")

        settings = load_settings(path)

        assert settings.manager.host == "h"

    def test_explicit_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nope.yaml")

    def test_env_var_location(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text(SETTINGS_YAML)
        monkeypatch.setenv("NSXDRIFT_CONFIG", str(path))

        assert find_settings_file() == path
        assert load_settings().git.branch == "main"

    def test_no_file_found(self, tmp_path, monkeypatch):
        monkeypatch.delenv("NSXDRIFT_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))

        assert find_settings_file() is None
        settings = load_settings()
        assert isinstance(settings, ArchiveSettings)
        assert settings.manager is None

    def test_default_output_dir_is_under_project(self):
        assert DEFAULT_OUTPUT_DIR.name == "exports"


class TestMalformedSettings:
    """Tests for settings files with the wrong shape."""

    def test_manager_without_host(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("manager:\n  username: admin\n")

        with pytest.raises(ValueError, match="manager.host"):
            load_settings(path)

    def test_section_not_a_mapping(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("git: /usr/bin/git\n")

        with pytest.raises(ValueError, match="'git'"):
            load_settings(path)

    def test_top_level_not_a_mapping(self):
        with pytest.raises(ValueError):
            ArchiveSettings.from_dict(["manager", "git"])

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("manager: [unclosed\n")

        with pytest.raises(yaml.YAMLError):
            load_settings(path)

"""Tests for config and data directory resolution."""

import sys
from pathlib import Path

import pytest

from gigsettle.utils.platform import get_config_file, get_data_dir, user_dir


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("GIGSETTLE_CONFIG_DIR", "GIGSETTLE_DATA_DIR", "XDG_CONFIG_HOME",
                "XDG_DATA_HOME", "APPDATA", "LOCALAPPDATA"):
        monkeypatch.delenv(key, raising=False)


class TestUserDir:
    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GIGSETTLE_DATA_DIR", str(tmp_path / "db"))
        assert get_data_dir() == tmp_path / "db"

    def test_config_file_under_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GIGSETTLE_CONFIG_DIR", str(tmp_path))
        assert get_config_file() == tmp_path / "config.yaml"

    def test_xdg_on_linux(self, monkeypatch, tmp_path):
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "share"))
        assert user_dir("config") == tmp_path / "cfg" / "gigsettle"
        assert user_dir("data") == tmp_path / "share" / "gigsettle"

    def test_linux_fallback_under_home(self, monkeypatch, tmp_path):
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert user_dir("data") == tmp_path / ".local" / "share" / "gigsettle"

    def test_windows_uses_appdata(self, monkeypatch, tmp_path):
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.setenv("APPDATA", str(tmp_path / "Roaming"))
        monkeypatch.setenv("LOCALAPPDATA", str(tmp_path / "Local"))
        assert user_dir("config") == tmp_path / "Roaming" / "gigsettle"
        assert user_dir("data") == tmp_path / "Local" / "gigsettle"

    def test_macos_application_support(self, monkeypatch, tmp_path):
        monkeypatch.setattr(sys, "platform", "darwin")
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        expected = tmp_path / "Library" / "Application Support" / "gigsettle"
        assert user_dir("config") == expected
        assert user_dir("data") == expected

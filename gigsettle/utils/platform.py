"""Locations of the gigsettle config file and webhook database."""

from __future__ import annotations

import os
import sys
from pathlib import Path

APP_NAME = "gigsettle"

# kind -> (Windows env var, fallback under home), (XDG env var, fallback under home)
_BASES: dict[str, tuple[tuple[str, str], tuple[str, str]]] = {
    "config": (("APPDATA", "AppData/Roaming"), ("XDG_CONFIG_HOME", ".config")),
    "data": (("LOCALAPPDATA", "AppData/Local"), ("XDG_DATA_HOME", ".local/share")),
}


def user_dir(kind: str) -> Path:
    """Per-user ``config`` or ``data`` directory.

    ``GIGSETTLE_CONFIG_DIR`` / ``GIGSETTLE_DATA_DIR`` take precedence. macOS
    keeps both under Application Support.
    """
    override = os.environ.get(f"GIGSETTLE_{kind.upper()}_DIR")
    if override:
        return Path(override)

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME

    windows, xdg = _BASES[kind]
    env_var, fallback = windows if sys.platform == "win32" else xdg
    return Path(os.environ.get(env_var) or Path.home() / fallback) / APP_NAME


def get_config_file() -> Path:
    return user_dir("config") / "config.yaml"


def get_data_dir() -> Path:
    return user_dir("data")

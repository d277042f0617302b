"""Platform-specific paths for per-user data.

Keeps user configuration and logs out of the install folder. Relies on
standard environment variables only.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

APP_DIR_NAME = "Pacesetter"
CONFIG_FILENAME = "config.json"


def is_windows() -> bool:
    return os.name == "nt"


def is_frozen() -> bool:
    # PyInstaller sets sys.frozen; other freezers may too.
    return bool(getattr(sys, "frozen", False))


def get_user_data_dir(app_name: str = APP_DIR_NAME) -> Path:
    """Return a persistent per-user data directory.

    Windows: %APPDATA%\\Pacesetter, elsewhere ~/.pacesetter. The
    ``PACESETTER_HOME`` environment variable overrides both.
    """
    override = os.getenv("PACESETTER_HOME")
    if override:
        return Path(override)

    if is_windows():
        base = os.getenv("APPDATA")
        if base:
            return Path(base) / app_name
        return Path.home() / "AppData" / "Roaming" / app_name

    return Path.home() / f".{app_name.lower()}"


def get_config_path(app_name: str = APP_DIR_NAME) -> Path:
    return get_user_data_dir(app_name) / CONFIG_FILENAME


def ensure_dir(path: Path) -> Path:
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path

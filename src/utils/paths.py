"""File path resolution using platformdirs.

Persistent data (the run history database) lives in the platform user
data directory unless CRMFORGE_DATA_DIR points elsewhere:
  macOS: ~/Library/Application Support/crmforge/
  Linux: ~/.local/share/crmforge/
  Windows: %LOCALAPPDATA%/crmforge/
"""

import os
from pathlib import Path

import platformdirs

APP_NAME = "crmforge"


def get_data_dir() -> Path:
    """Return the directory for persistent data (DB)."""
    override = os.environ.get("CRMFORGE_DATA_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def get_config_dir() -> Path:
    """Return the per-user config directory searched for crmforge.yaml."""
    return Path(platformdirs.user_config_dir(APP_NAME, appauthor=False))


def get_default_db_path() -> Path:
    """Return the default SQLite database file path."""
    return get_data_dir() / "crmforge.db"


def ensure_dirs_exist() -> None:
    """Create the data directory if it doesn't exist."""
    get_data_dir().mkdir(parents=True, exist_ok=True)

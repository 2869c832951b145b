"""File path resolution using platformdirs.

SHEETCHAT_DATA_DIR overrides the data directory (handy for tests and
containers). Otherwise paths use platform-appropriate directories:
  macOS: ~/Library/Application Support/sheetchat/
  Linux: ~/.local/share/sheetchat/
  Windows: %LOCALAPPDATA%/sheetchat/
"""

import os
from pathlib import Path

import platformdirs

APP_NAME = "sheetchat"


def get_data_dir() -> Path:
    """Return the directory for persistent data (database, workbook)."""
    override = os.environ.get("SHEETCHAT_DATA_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def get_default_db_path() -> Path:
    """Return the default SQLite database file path."""
    return get_data_dir() / "sheetchat.db"


def get_default_workbook_path() -> Path:
    """Return the default workbook path.

    SHEETCHAT_WORKBOOK_PATH takes precedence over the data directory.
    """
    override = os.environ.get("SHEETCHAT_WORKBOOK_PATH", "").strip()
    if override:
        return Path(override).expanduser()
    return get_data_dir() / "example.xlsx"


def ensure_dirs_exist() -> None:
    """Create the data directory if it doesn't exist."""
    get_data_dir().mkdir(parents=True, exist_ok=True)

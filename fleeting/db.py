from __future__ import annotations
import sqlite3
from pathlib import Path
from typing import Union

DB_NAME = "fleeting.sqlite3"
APP_NAME = "Fleeting"
DATA_DIR_ENV = "FLEETING_DATA_DIR"


def data_dir(app_name: str = APP_NAME) -> Path:
    # Cross-platform local app data dir
    # macOS: ~/Library/Application Support/Fleeting
    # Windows: %APPDATA%\Fleeting
    # Linux: $XDG_DATA_HOME/Fleeting (~/.local/share/Fleeting)
    override = _get_env(DATA_DIR_ENV, "")
    if override:
        d = Path(override).expanduser()
        d.mkdir(parents=True, exist_ok=True)
        return d

    home = Path.home()
    if _is_macos():
        base = home / "Library" / "Application Support"
    elif _is_windows():
        base = Path(_get_env("APPDATA", str(home)))
    else:
        base = Path(_get_env("XDG_DATA_HOME", str(home / ".local" / "share")))
    d = base / app_name
    d.mkdir(parents=True, exist_ok=True)
    return d


def db_path() -> Path:
    return data_dir() / DB_NAME


def connect(path: Union[str, Path, None] = None) -> sqlite3.Connection:
    conn = sqlite3.connect(str(path or db_path()))
    conn.row_factory = sqlite3.Row
    return conn


def migrate(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS state (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
        """
    )

    # Defaults if missing. timeZone is left unset so it follows the system zone.
    defaults = {
        "maxAllowedDays": "3",
        "defaultDurationHours": "1",
        "resetFrequency": "daily",
        "resetTime": "00:00",
        "selectedWeekdays": "1",
    }
    for key, value in defaults.items():
        conn.execute("INSERT OR IGNORE INTO settings(key,value) VALUES(?,?)", (key, value))

    conn.commit()


def _is_windows() -> bool:
    import sys
    return sys.platform.startswith("win")


def _is_macos() -> bool:
    import sys
    return sys.platform == "darwin"


def _get_env(k: str, default: str) -> str:
    import os
    return os.environ.get(k, default)

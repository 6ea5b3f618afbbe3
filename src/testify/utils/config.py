# Testify
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Runtime configuration for the Testify persistence layer."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Final

APP_NAME: Final[str] = "Testify"
APP_VERSION: Final[str] = "1.2.0"
DB_FILENAME: Final[str] = "testify.db"
PLACEHOLDER_STUDENT_NAME: Final[str] = "Aluno Não Identificado"

# Sortable, so that lexicographic ``date DESC`` ordering is also chronological.
DEFAULT_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "DB_FILENAME",
    "PLACEHOLDER_STUDENT_NAME",
    "DEFAULT_DATE_FORMAT",
    "Settings",
    "default_data_dir",
]


def default_data_dir(app_name: str = APP_NAME) -> Path:
    """
    Return the platform data directory used when no override is configured.

    - Windows: %LOCALAPPDATA%\\AppName
    - macOS: ~/Library/Application Support/AppName
    - Linux: $XDG_DATA_HOME/AppName (default ~/.local/share/AppName)
    """
    home = Path.home()
    if sys.platform == "win32":
        return Path(os.environ.get("LOCALAPPDATA", home / "AppData" / "Local")) / app_name
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / app_name
    return Path(os.environ.get("XDG_DATA_HOME", home / ".local" / "share")) / app_name


@dataclass(frozen=True)
class Settings:
    """Resolved settings for one process."""

    db_path: Path
    log_dir: Path | None = None
    date_format: str = DEFAULT_DATE_FORMAT

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        """Build settings from ``TESTIFY_*`` environment variables."""

        env = os.environ if environ is None else environ

        data_dir_raw = (env.get("TESTIFY_DATA_DIR") or "").strip()
        data_dir = Path(data_dir_raw).expanduser() if data_dir_raw else default_data_dir()

        db_raw = (env.get("TESTIFY_DB_PATH") or "").strip()
        db_path = Path(db_raw).expanduser() if db_raw else data_dir / DB_FILENAME

        log_raw = (env.get("TESTIFY_LOG_DIR") or "").strip()
        log_dir = Path(log_raw).expanduser() if log_raw else None

        date_format = (env.get("TESTIFY_DATE_FORMAT") or "").strip() or DEFAULT_DATE_FORMAT
        return cls(db_path=db_path, log_dir=log_dir, date_format=date_format)

    def with_db_path(self, db_path: str | os.PathLike[str]) -> Settings:
        return replace(self, db_path=Path(db_path))

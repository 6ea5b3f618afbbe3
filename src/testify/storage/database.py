# Testify
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Process-wide database handle.

A :class:`Database` lazily opens one :class:`DbWriter` (and with it the single
SQLite connection) on first use and keeps it open until :meth:`close`. Every
store call is funnelled through :meth:`Database.run`, so the writer thread is
the only code that ever touches the connection.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable

from testify.storage.errors import translate_errors
from testify.storage.sqlite.db_writer import DbWriter
from testify.utils.config import Settings

log = logging.getLogger(__name__)

__all__ = ["Database", "get_database", "reset_database"]

MEMORY = ":memory:"


class Database:
    """Lazily opened, serialized access to one SQLite database file."""

    def __init__(
        self,
        path: str | os.PathLike[str] = MEMORY,
        *,
        pragmas: dict[str, Any] | None = None,
    ) -> None:
        self.path: str | Path = MEMORY if str(path) == MEMORY else Path(path)
        self._pragmas = pragmas
        self._writer: DbWriter | None = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Database(path={str(self.path)!r}, open={self.is_open})"

    @property
    def is_open(self) -> bool:
        return self._writer is not None and not self._writer.closed

    @property
    def writer(self) -> DbWriter:
        """Return the writer, opening the connection on first access.

        Raises:
            IOFailure: if the database file cannot be opened
        """

        with self._lock:
            if self._writer is None or self._writer.closed:
                with translate_errors(f"open {self.path}"):
                    self._writer = DbWriter(self.path, pragmas=self._pragmas)
                log.info("Opened database %s", self.path)
            return self._writer

    def run(self, func: Callable[[sqlite3.Connection], Any]) -> Any:
        """Run ``func(conn)`` on the writer thread and wait for the result."""

        return self.writer.run(func)

    def submit(self, func: Callable[[sqlite3.Connection], Any]) -> Future:
        """Queue ``func(conn)`` on the writer thread and return its future."""

        return self.writer.submit(func)

    def close(self) -> None:
        with self._lock:
            writer, self._writer = self._writer, None
        if writer is not None:
            writer.close()
            log.info("Closed database %s", self.path)

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


_instance: Database | None = None
_instance_lock = threading.Lock()


def get_database(path: str | os.PathLike[str] | None = None) -> Database:
    """
    Return the process-wide :class:`Database`.

    The first call fixes the path (``path`` or the configured default); later
    calls return the same handle. Asking for a different path while one is
    active raises ``ValueError``; call :func:`reset_database` first.
    """

    global _instance
    with _instance_lock:
        if _instance is None:
            if path is None:
                path = Settings.from_env().db_path
            _instance = Database(path)
        elif path is not None and str(Path(path)) != str(_instance.path):
            raise ValueError(
                f"database already bound to {_instance.path}; cannot switch to {path}"
            )
        return _instance


def reset_database() -> None:
    """Close and forget the process-wide handle (teardown and tests)."""

    global _instance
    with _instance_lock:
        instance, _instance = _instance, None
    if instance is not None:
        instance.close()

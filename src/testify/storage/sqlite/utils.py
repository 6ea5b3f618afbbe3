# Testify
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""
Connection helpers for the SQLite store: opening, pragmas and transactions.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path

__all__ = ["DEFAULT_PRAGMAS", "open_db", "set_pragmas", "transaction"]

DEFAULT_PRAGMAS: dict[str, object] = {
    "foreign_keys": True,
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "busy_timeout_ms": 10000,
}


def open_db(
    path: str | Path,
    *,
    pragmas: Mapping[str, object] | None = None,
) -> sqlite3.Connection:
    """
    Open a SQLite database with predictable defaults.

    The connection runs in autocommit mode (``isolation_level=None``): single
    statements are atomic on their own and multi-statement work goes through
    :func:`transaction`. ``foreign_keys`` is always enabled because cascade
    deletes depend on it.
    """

    target = str(path)
    if target != ":memory:":
        Path(target).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(target, check_same_thread=False, isolation_level=None)
    conn.row_factory = sqlite3.Row
    opts = dict(DEFAULT_PRAGMAS)
    if pragmas:
        opts.update(pragmas)
    opts["foreign_keys"] = True
    try:
        set_pragmas(conn, opts)
    except Exception:
        conn.close()
        raise
    return conn


def set_pragmas(conn: sqlite3.Connection, opts: Mapping[str, object]) -> None:
    """Apply selected pragmas.

    Only keys present in ``opts`` are applied. Supported keys are
    ``foreign_keys``, ``journal_mode``, ``synchronous`` and ``busy_timeout_ms``.
    """

    norm = {str(key).lower(): value for key, value in opts.items()}
    for key, value in norm.items():
        if key == "foreign_keys":
            conn.execute(f"PRAGMA foreign_keys={'ON' if value else 'OFF'}")
        elif key == "journal_mode":
            conn.execute(f"PRAGMA journal_mode={value}")
        elif key == "synchronous":
            conn.execute(f"PRAGMA synchronous={value}")
        elif key == "busy_timeout_ms":
            conn.execute(f"PRAGMA busy_timeout={int(value)}")


@contextmanager
def transaction(
    conn: sqlite3.Connection,
    *,
    begin: str = "BEGIN IMMEDIATE",
) -> Iterator[sqlite3.Connection]:
    """
    Transaction wrapper that commits on success and rolls back on error.
    Uses BEGIN IMMEDIATE by default to take the write lock up front.
    """

    conn.execute(begin)
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")

# Testify
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Serialized SQLite access service.

The writer owns the process's single ``sqlite3.Connection``
(``check_same_thread=False``) and executes all submitted callables on a
dedicated worker thread.  This gives the guarantees the stores rely on:

* Only one statement or transaction runs at a time (single-writer).
* Work submitted by one caller completes in submission order.
* A reader never observes a half-applied insert, because reads queue behind it.

Usage:
    writer = DbWriter(db_path)
    writer.run(lambda conn: conn.execute("INSERT ..."))
    future = writer.submit(lambda conn: conn.execute("SELECT ...").fetchall())
    writer.barrier()  # Wait until the queue is empty
    writer.close()
"""

from __future__ import annotations

import logging
import queue
import sqlite3
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable

from testify.storage.errors import IOFailure
from testify.storage.sqlite.utils import open_db

__all__ = ["DbWriter", "WriterClosed"]

log = logging.getLogger(__name__)


class WriterClosed(IOFailure):
    """Raised when a submission is attempted after the writer is closed."""


class DbWriter:
    """Single-owner work queue for one SQLite connection."""

    def __init__(
        self,
        db_path: str | Path,
        *,
        pragmas: dict[str, Any] | None = None,
        connection: sqlite3.Connection | None = None,
    ) -> None:
        self.db_path = db_path
        self._queue: "queue.Queue[tuple[Future, Callable[[sqlite3.Connection], Any]]]" = queue.Queue()
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._worker, name="DbWriter", daemon=True)
        self._owns_conn = connection is None

        if connection is not None:
            self.conn = connection
        else:
            self.conn = open_db(db_path, pragmas=pragmas)

        self._closed = False
        self._thread.start()
        log.debug("DbWriter started for %s", db_path)

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    @property
    def closed(self) -> bool:
        return self._closed

    def run(self, func: Callable[[sqlite3.Connection], Any]) -> Any:
        """Submit ``func`` to run on the writer thread and return its result."""

        if threading.current_thread() is self._thread:
            # Re-entrant call from queued work; the queue would deadlock.
            return func(self.conn)
        return self.submit(func).result()

    def submit(self, func: Callable[[sqlite3.Connection], Any]) -> Future:
        """Submit ``func`` asynchronously and return the future."""

        future: Future = Future()
        with self._lock:
            if self._closed:
                future.set_exception(WriterClosed("Writer is closed"))
                return future
            self._queue.put((future, func))
        return future

    def barrier(self) -> None:
        """Block until all queued work has been processed."""

        self.run(lambda _conn: None)

    def close(self) -> None:
        """Shut down the worker thread and close the connection."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
            sentinel: Future = Future()
            sentinel.set_result(None)
            self._queue.put((sentinel, lambda _conn: None))
        self._stop.set()
        if self._thread.is_alive():
            self._thread.join(timeout=5)
        if self._owns_conn:
            try:
                self.conn.close()
            except sqlite3.Error as exc:
                log.warning("Error closing database connection: %s", exc)
        log.debug("DbWriter closed for %s", self.db_path)

    # ------------------------------------------------------------------ #
    # Internal worker                                                    #
    # ------------------------------------------------------------------ #
    def _worker(self) -> None:
        while True:
            try:
                future, func = self._queue.get(timeout=0.1)
            except queue.Empty:
                if self._stop.is_set():
                    break
                continue

            try:
                if future.done() or not future.set_running_or_notify_cancel():
                    # Sentinel or cancelled submission.
                    continue
                try:
                    result = func(self.conn)
                except BaseException as exc:
                    future.set_exception(exc)
                else:
                    future.set_result(result)
            finally:
                self._queue.task_done()

    # ------------------------------------------------------------------ #
    # Context manager helpers                                            #
    # ------------------------------------------------------------------ #
    def __enter__(self) -> "DbWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

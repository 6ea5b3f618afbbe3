import sqlite3
import threading

import pytest

from testify.storage.database import Database, get_database, reset_database
from testify.storage.errors import IOFailure
from testify.storage.sqlite import utils as sqlite_utils
from testify.storage.sqlite.db_writer import DbWriter, WriterClosed
from testify.storage.sqlite.utils import open_db


def _make_writer(tmp_path) -> DbWriter:
    writer = DbWriter(tmp_path / "writer.db")
    writer.run(lambda conn: conn.execute("CREATE TABLE log (seq INTEGER NOT NULL, source TEXT NOT NULL)"))
    return writer


def test_submissions_complete_in_issue_order(tmp_path):
    with _make_writer(tmp_path) as writer:
        futures = [
            writer.submit(lambda conn, i=i: conn.execute("INSERT INTO log VALUES (?, 'main')", (i,)))
            for i in range(50)
        ]
        for future in futures:
            future.result()
        rows = writer.run(lambda conn: conn.execute("SELECT seq FROM log ORDER BY rowid").fetchall())

    assert [row[0] for row in rows] == list(range(50))


def test_concurrent_writers_are_serialized(tmp_path):
    with _make_writer(tmp_path) as writer:

        def _worker(name: str) -> None:
            for i in range(25):
                writer.run(lambda conn, i=i: conn.execute("INSERT INTO log VALUES (?, ?)", (i, name)))

        threads = [threading.Thread(target=_worker, args=(f"w{n}",)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        writer.barrier()

        per_source = writer.run(
            lambda conn: conn.execute("SELECT source, COUNT(*) FROM log GROUP BY source").fetchall()
        )
        ordered = writer.run(
            lambda conn: conn.execute("SELECT source, seq FROM log ORDER BY rowid").fetchall()
        )

    assert {row[0]: row[1] for row in per_source} == {"w0": 25, "w1": 25, "w2": 25, "w3": 25}
    for source in ("w0", "w1", "w2", "w3"):
        assert [seq for src, seq in ordered if src == source] == list(range(25))


def test_errors_propagate_through_future(tmp_path):
    with _make_writer(tmp_path) as writer:
        future = writer.submit(lambda conn: conn.execute("INSERT INTO missing_table VALUES (1)"))
        with pytest.raises(sqlite3.OperationalError):
            future.result()
        # The worker keeps serving after a failure
        assert writer.run(lambda conn: conn.execute("SELECT 1").fetchone()[0]) == 1


def test_closed_writer_rejects_work(tmp_path):
    writer = _make_writer(tmp_path)
    writer.close()

    with pytest.raises(WriterClosed):
        writer.run(lambda conn: None)
    assert isinstance(writer.submit(lambda conn: None).exception(), IOFailure)


def test_foreign_keys_are_enabled(tmp_path):
    with DbWriter(tmp_path / "fk.db") as writer:
        assert writer.run(lambda conn: conn.execute("PRAGMA foreign_keys").fetchone()[0]) == 1


def test_database_opens_lazily_and_reopens_after_close(tmp_path):
    db = Database(tmp_path / "lazy.db")
    assert not db.is_open
    assert not (tmp_path / "lazy.db").exists()

    assert db.run(lambda conn: conn.execute("SELECT 42").fetchone()[0]) == 42
    assert db.is_open
    db.close()
    assert not db.is_open

    assert db.run(lambda conn: conn.execute("SELECT 7").fetchone()[0]) == 7
    db.close()


def test_process_wide_database_is_a_singleton(tmp_path):
    reset_database()
    try:
        first = get_database(tmp_path / "shared.db")
        assert get_database() is first
        assert get_database(tmp_path / "shared.db") is first
        with pytest.raises(ValueError):
            get_database(tmp_path / "other.db")
    finally:
        reset_database()


def test_submissions_racing_close_always_resolve(tmp_path):
    writer = _make_writer(tmp_path)
    futures = []
    start = threading.Barrier(5)

    def _submitter() -> None:
        start.wait()
        for i in range(200):
            futures.append(writer.submit(lambda conn, i=i: i))

    threads = [threading.Thread(target=_submitter) for _ in range(4)]
    for thread in threads:
        thread.start()
    start.wait()
    writer.close()
    for thread in threads:
        thread.join()

    assert len(futures) == 800
    for future in futures:
        error = future.exception(timeout=5)
        assert error is None or isinstance(error, WriterClosed)


def test_open_db_closes_connection_when_pragmas_fail(tmp_path, monkeypatch):
    opened = []
    connect = sqlite3.connect

    def _tracking_connect(*args, **kwargs):
        conn = connect(*args, **kwargs)
        opened.append(conn)
        return conn

    monkeypatch.setattr(sqlite_utils.sqlite3, "connect", _tracking_connect)

    with pytest.raises(ValueError):
        open_db(tmp_path / "bad.db", pragmas={"busy_timeout_ms": "soon"})

    (conn,) = opened
    with pytest.raises(sqlite3.ProgrammingError):
        conn.execute("SELECT 1")

import sqlite3
from pathlib import Path

import pytest

from testify.services.client_facade import ClientFacade
from testify.storage.database import Database
from testify.storage.errors import InitializationFailure
from testify.storage.sqlite import templates as _templates
from testify.storage.sqlite.schema import (
    MIGRATIONS,
    SCHEMA_VERSION,
    SchemaManager,
    ensure_schema,
    get_user_version,
    set_user_version,
    table_columns,
)
from testify.storage.sqlite.utils import open_db
from testify.storage.stores import ensure_database_schema

TEMPLATE_COLUMNS = [
    "id",
    "title",
    "date",
    "questionCount",
    "correctAnswers",
    "generatedImagePath",
    "mapPath",
]
RESULT_COLUMNS = [
    "id",
    "templateId",
    "studentName",
    "studentMatricula",
    "studentTurma",
    "score",
    "correct",
    "incorrect",
]


def _make_v1_database(path: Path, *, with_image_column: bool = False) -> None:
    """Write a database the way the first releases laid it out."""

    image_column = ", generatedImagePath TEXT NULL" if with_image_column else ""
    conn = sqlite3.connect(path)
    conn.executescript(
        f"""
        CREATE TABLE templates (
            id TEXT PRIMARY KEY NOT NULL,
            title TEXT NOT NULL,
            date TEXT NOT NULL,
            questionCount INTEGER NOT NULL,
            correctAnswers TEXT NOT NULL{image_column}
        );
        CREATE TABLE results (
            id TEXT PRIMARY KEY NOT NULL,
            templateId TEXT NOT NULL,
            studentName TEXT NOT NULL,
            studentMatricula TEXT,
            studentTurma TEXT,
            score TEXT NOT NULL,
            correct INTEGER NOT NULL,
            incorrect INTEGER NOT NULL,
            FOREIGN KEY (templateId) REFERENCES templates(id) ON DELETE CASCADE
        );
        INSERT INTO templates (id, title, date, questionCount, correctAnswers)
        VALUES ('old', 'Prova antiga', '2024-05-02 08:00:00', 2, '["A", "D"]');
        PRAGMA user_version = 1;
        """
    )
    conn.commit()
    conn.close()


def test_fresh_database_gets_current_schema(tmp_path):
    conn = open_db(tmp_path / "testify.db")
    try:
        ensure_schema(conn)
        assert table_columns(conn, "templates") == TEMPLATE_COLUMNS
        assert table_columns(conn, "results") == RESULT_COLUMNS
        assert get_user_version(conn) == SCHEMA_VERSION
        fks = conn.execute("PRAGMA foreign_key_list(results)").fetchall()
        assert [(fk["table"], fk["from"], fk["on_delete"]) for fk in fks] == [
            ("templates", "templateId", "CASCADE")
        ]
    finally:
        conn.close()


def test_ensure_schema_twice_is_a_no_op(tmp_path):
    conn = open_db(tmp_path / "testify.db")
    try:
        ensure_schema(conn)
        first = (table_columns(conn, "templates"), table_columns(conn, "results"))
        applied = ensure_schema(conn)
        second = (table_columns(conn, "templates"), table_columns(conn, "results"))
    finally:
        conn.close()

    assert applied == []
    assert first == second


def test_v1_database_is_migrated_and_backfilled(tmp_path):
    path = tmp_path / "legacy.db"
    _make_v1_database(path)

    conn = open_db(path)
    try:
        applied = SchemaManager(conn).ensure_schema()
        assert [step.version for step in applied] == [2, 3]
        assert table_columns(conn, "templates") == TEMPLATE_COLUMNS
        assert get_user_version(conn) == SCHEMA_VERSION

        raw = conn.execute("SELECT mapPath, generatedImagePath FROM templates WHERE id = 'old'").fetchone()
        assert raw["mapPath"] == ""
        assert raw["generatedImagePath"] is None

        (template,) = _templates.fetch_templates(conn)
    finally:
        conn.close()

    assert template.id == "old"
    assert template.correct_answers == ["A", "D"]
    assert template.map_path == ""
    assert template.generated_image_path is None


def test_partially_migrated_database_only_gets_missing_columns(tmp_path):
    path = tmp_path / "v2.db"
    _make_v1_database(path, with_image_column=True)

    conn = open_db(path)
    try:
        applied = ensure_schema(conn)
        again = ensure_schema(conn)
        columns = table_columns(conn, "templates")
    finally:
        conn.close()

    assert [step.column for step in applied] == ["mapPath"]
    assert again == []
    assert columns == TEMPLATE_COLUMNS


def test_migration_steps_are_ordered_and_additive():
    versions = [step.version for step in MIGRATIONS]
    assert versions == sorted(versions)
    assert versions[-1] == SCHEMA_VERSION
    for step in MIGRATIONS:
        assert "DROP" not in step.definition.upper()


def test_newer_schema_version_is_left_alone(tmp_path):
    conn = open_db(tmp_path / "future.db")
    try:
        ensure_schema(conn)
        set_user_version(conn, SCHEMA_VERSION + 4)
        assert ensure_schema(conn) == []
        assert get_user_version(conn) == SCHEMA_VERSION + 4
    finally:
        conn.close()


def test_unwritable_location_is_an_initialization_failure(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    db = Database(blocker / "nested" / "testify.db")
    try:
        with pytest.raises(InitializationFailure):
            ensure_database_schema(db)
    finally:
        db.close()


def _make_mobile_database(path: Path) -> None:
    """Write a database with the column names used by the first mobile releases."""

    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE templates (
            id TEXT PRIMARY KEY NOT NULL,
            title TEXT NOT NULL,
            date TEXT NOT NULL,
            numQuestoes INTEGER NOT NULL,
            correctAnswers TEXT NOT NULL,
            gabaritoImagePath TEXT NULL
        );
        CREATE TABLE results (
            id TEXT PRIMARY KEY NOT NULL,
            templateId TEXT NOT NULL,
            studentName TEXT NOT NULL,
            studentMatricula TEXT,
            studentTurma TEXT,
            score TEXT NOT NULL,
            correct INTEGER NOT NULL,
            incorrect INTEGER NOT NULL,
            FOREIGN KEY (templateId) REFERENCES templates(id) ON DELETE CASCADE
        );
        INSERT INTO templates (id, title, date, numQuestoes, correctAnswers, gabaritoImagePath)
        VALUES ('mobile', 'Simulado', '2024-04-10 09:00:00', 3, '["B", "C", "A"]', 'file:///gabarito.png');
        INSERT INTO results (id, templateId, studentName, score, correct, incorrect)
        VALUES ('r1', 'mobile', 'Ana', '6.7 / 10.0', 2, 1);
        """
    )
    conn.commit()
    conn.close()


def test_mobile_database_is_carried_forward(tmp_path):
    path = tmp_path / "mobile.db"
    _make_mobile_database(path)

    conn = open_db(path)
    try:
        applied = ensure_schema(conn)
        columns = table_columns(conn, "templates")
        (template,) = _templates.fetch_templates(conn)
        new = template.model_copy(update={"id": "fresh", "question_count": 1})
        _templates.insert_template(conn, new)
        mirrored = conn.execute(
            "SELECT numQuestoes, gabaritoImagePath FROM templates WHERE id = 'fresh'"
        ).fetchone()
    finally:
        conn.close()

    assert [step.column for step in applied] == ["questionCount", "generatedImagePath", "mapPath"]
    assert {"numQuestoes", "gabaritoImagePath"} <= set(columns)
    assert set(TEMPLATE_COLUMNS) <= set(columns)
    assert template.question_count == 3
    assert template.generated_image_path == "file:///gabarito.png"
    assert template.correct_answers == ["B", "C", "A"]
    assert template.map_path == ""
    assert (mirrored["numQuestoes"], mirrored["gabaritoImagePath"]) == (1, "file:///gabarito.png")


def test_mobile_database_opens_through_the_facade(tmp_path):
    path = tmp_path / "mobile.db"
    _make_mobile_database(path)

    with ClientFacade(Database(path)) as facade:
        (template,) = facade.initialize()
        assert [r.student_name for r in template.results] == ["Ana"]
        facade.create_template("Prova nova", 2, ["A", "B"], template_id="novo")
        assert [t.id for t in facade.list_templates()] == ["novo", "mobile"]

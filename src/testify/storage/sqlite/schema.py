# Testify
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""
Schema definition and forward-only migrations for the Testify database.

Schema history:

- v0: files written by the first mobile releases, where ``templates`` carries
  ``numQuestoes`` and ``gabaritoImagePath``. Those columns are kept and copied
  forward into ``questionCount`` and ``generatedImagePath``.
- v1: ``templates`` (id, title, date, questionCount, correctAnswers) and
  ``results`` with the cascading foreign key.
- v2: ``templates.generatedImagePath`` (nullable).
- v3: ``templates.mapPath`` (``NOT NULL DEFAULT ''``).

``ensure_schema`` creates the current tables when absent and then walks
``MIGRATIONS`` in order, so a file written by any earlier release converges to
the current column set. Migrations only ever add columns.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass

from testify.storage.errors import InitializationFailure
from testify.storage.sqlite.utils import transaction

log = logging.getLogger(__name__)

__all__ = [
    "SCHEMA_VERSION",
    "MIGRATIONS",
    "AddColumn",
    "SchemaManager",
    "ensure_schema",
    "table_columns",
    "get_user_version",
    "set_user_version",
]

SCHEMA_VERSION = 3

_CREATE_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS templates (
        id TEXT PRIMARY KEY NOT NULL,
        title TEXT NOT NULL,
        date TEXT NOT NULL,
        questionCount INTEGER NOT NULL,
        correctAnswers TEXT NOT NULL,
        generatedImagePath TEXT NULL,
        mapPath TEXT NOT NULL DEFAULT ''
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS results (
        id TEXT PRIMARY KEY NOT NULL,
        templateId TEXT NOT NULL,
        studentName TEXT NOT NULL,
        studentMatricula TEXT,
        studentTurma TEXT,
        score TEXT NOT NULL,
        correct INTEGER NOT NULL,
        incorrect INTEGER NOT NULL,
        FOREIGN KEY (templateId) REFERENCES templates(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS results_template_name ON results(templateId, studentName)",
)


@dataclass(frozen=True)
class AddColumn:
    """One additive migration step: add ``column`` to ``table`` if it is missing."""

    version: int
    table: str
    column: str
    definition: str
    backfill: object | None = None
    copy_from: str | None = None

    def is_applicable(self, conn: sqlite3.Connection) -> bool:
        return self.column not in table_columns(conn, self.table)

    def apply(self, conn: sqlite3.Connection) -> bool:
        """Run the step; return ``False`` when the column already exists."""

        with transaction(conn):
            if not self.is_applicable(conn):
                return False
            conn.execute(
                f'ALTER TABLE "{self.table}" ADD COLUMN "{self.column}" {self.definition}'
            )
            if self.backfill is not None:
                conn.execute(
                    f'UPDATE "{self.table}" SET "{self.column}" = ? WHERE "{self.column}" IS NULL',
                    (self.backfill,),
                )
            if self.copy_from is not None and self.copy_from in table_columns(conn, self.table):
                conn.execute(
                    f'UPDATE "{self.table}" SET "{self.column}" = "{self.copy_from}" '
                    f'WHERE "{self.copy_from}" IS NOT NULL'
                )
        log.info("Added column %s.%s (schema v%d)", self.table, self.column, self.version)
        return True


MIGRATIONS: tuple[AddColumn, ...] = (
    AddColumn(
        version=1,
        table="templates",
        column="questionCount",
        definition="INTEGER NOT NULL DEFAULT 0",
        copy_from="numQuestoes",
    ),
    AddColumn(
        version=2,
        table="templates",
        column="generatedImagePath",
        definition="TEXT NULL",
        copy_from="gabaritoImagePath",
    ),
    AddColumn(
        version=3,
        table="templates",
        column="mapPath",
        definition="TEXT NOT NULL DEFAULT ''",
        backfill="",
    ),
)


def table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    """Return the column names of ``table`` in declaration order."""

    rows = conn.execute(f'PRAGMA table_info("{table}")').fetchall()
    return [row[1] for row in rows]


def get_user_version(conn: sqlite3.Connection) -> int:
    """Return the PRAGMA user_version value."""

    row = conn.execute("PRAGMA user_version").fetchone()
    return int(row[0]) if row and row[0] is not None else 0


def set_user_version(conn: sqlite3.Connection, version: int) -> None:
    """Update the PRAGMA user_version value."""

    conn.execute(f"PRAGMA user_version = {int(version)}")


class SchemaManager:
    """Bring a connection's schema up to :data:`SCHEMA_VERSION`."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        migrations: tuple[AddColumn, ...] = MIGRATIONS,
        schema_version: int = SCHEMA_VERSION,
    ) -> None:
        self.conn = conn
        self.migrations = tuple(sorted(migrations, key=lambda step: step.version))
        self.schema_version = schema_version

    def ensure_schema(self) -> list[AddColumn]:
        """
        Create missing tables and apply pending additive migrations.

        Safe to call on every start. Returns the migration steps that actually
        ran (empty on a second call).

        Raises:
            InitializationFailure: if the schema cannot be created or migrated
        """

        try:
            found = get_user_version(self.conn)
            if found > self.schema_version:
                log.warning(
                    "Database schema v%d is newer than supported v%d; opening as-is",
                    found,
                    self.schema_version,
                )

            with transaction(self.conn):
                for statement in _CREATE_STATEMENTS:
                    self.conn.execute(statement)

            applied = [step for step in self.migrations if step.apply(self.conn)]

            if found < self.schema_version:
                set_user_version(self.conn, self.schema_version)
                log.info("Schema at v%d (was v%d)", self.schema_version, found)
        except (sqlite3.Error, OSError) as exc:
            log.error("Schema initialization failed: %s", exc)
            raise InitializationFailure(f"could not ensure schema: {exc}") from exc
        return applied


def ensure_schema(conn: sqlite3.Connection) -> list[AddColumn]:
    """Module-level shortcut for ``SchemaManager(conn).ensure_schema()``."""

    return SchemaManager(conn).ensure_schema()

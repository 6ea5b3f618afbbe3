# Testify
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""
Template table persistence helpers.
"""

from __future__ import annotations

import json
import logging
import sqlite3

from pydantic import ValidationError

from testify.core.models import Template
from testify.storage.errors import DecodeFailure
from testify.storage.sqlite.schema import table_columns

log = logging.getLogger(__name__)

__all__ = [
    "encode_answers",
    "decode_answers",
    "row_to_template",
    "insert_template",
    "fetch_templates",
    "fetch_template",
    "delete_template",
]

_SELECT = (
    "SELECT id, title, date, questionCount, correctAnswers, generatedImagePath, mapPath "
    "FROM templates"
)

# Columns kept from files written by the first mobile releases; both are
# written alongside their current counterparts so NOT NULL still holds.
_LEGACY_MIRRORS = {
    "numQuestoes": "question_count",
    "gabaritoImagePath": "generated_image_path",
}


def encode_answers(answers: list[str]) -> str:
    return json.dumps(list(answers), ensure_ascii=False)


def decode_answers(payload: str | None) -> list[str]:
    """Decode a stored answers payload back into the ordered list.

    Raises:
        DecodeFailure: if the payload is not a JSON array of strings
    """

    if payload is None or payload == "":
        return []
    try:
        value = json.loads(payload)
    except (TypeError, ValueError) as exc:
        raise DecodeFailure(f"answers payload is not JSON: {payload!r}") from exc
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise DecodeFailure(f"answers payload is not a list of strings: {payload!r}")
    return value


def row_to_template(row: sqlite3.Row) -> Template:
    """Convert one stored row.

    Raises:
        DecodeFailure: if the row does not form a valid template
    """

    try:
        answers = decode_answers(row["correctAnswers"])
    except DecodeFailure as exc:
        log.warning("Template %s: %s; using empty answer list", row["id"], exc)
        answers = []
    try:
        return Template(
            id=row["id"],
            title=row["title"],
            created_date=row["date"],
            question_count=int(row["questionCount"]),
            correct_answers=answers,
            generated_image_path=row["generatedImagePath"],
            map_path=row["mapPath"],
        )
    except (ValidationError, TypeError, ValueError) as exc:
        raise DecodeFailure(f"template row {row['id']!r} is invalid: {exc}") from exc


def insert_template(conn: sqlite3.Connection, template: Template) -> None:
    columns = ["id", "title", "date", "questionCount", "correctAnswers", "generatedImagePath", "mapPath"]
    values = [
        template.id,
        template.title,
        template.created_date,
        template.question_count,
        encode_answers(template.correct_answers),
        template.generated_image_path,
        template.map_path or "",
    ]
    present = set(table_columns(conn, "templates"))
    for legacy, field in _LEGACY_MIRRORS.items():
        if legacy in present:
            columns.append(legacy)
            values.append(getattr(template, field))

    placeholders = ", ".join("?" for _ in columns)
    conn.execute(
        f"INSERT INTO templates ({', '.join(columns)}) VALUES ({placeholders})",
        values,
    )


def fetch_templates(conn: sqlite3.Connection) -> list[Template]:
    """Return every template, newest ``date`` first (ties: latest insert first)."""

    rows = conn.execute(f"{_SELECT} ORDER BY date DESC, rowid DESC").fetchall()
    return [row_to_template(row) for row in rows]


def fetch_template(conn: sqlite3.Connection, template_id: str) -> Template | None:
    row = conn.execute(f"{_SELECT} WHERE id = ?", (template_id,)).fetchone()
    return row_to_template(row) if row is not None else None


def delete_template(conn: sqlite3.Connection, template_id: str) -> int:
    """Delete one template; its results go with it through the cascade."""

    cur = conn.execute("DELETE FROM templates WHERE id = ?", (template_id,))
    return cur.rowcount

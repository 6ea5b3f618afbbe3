# Testify
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""
Result table persistence helpers.
"""

from __future__ import annotations

import sqlite3
from collections import defaultdict

from pydantic import ValidationError

from testify.core.models import ReportResult
from testify.storage.errors import DecodeFailure

__all__ = ["row_to_result", "insert_result", "fetch_results", "fetch_results_grouped"]

_SELECT = (
    "SELECT id, templateId, studentName, studentMatricula, studentTurma, score, correct, incorrect "
    "FROM results"
)


def row_to_result(row: sqlite3.Row) -> ReportResult:
    try:
        return ReportResult(
            id=row["id"],
            template_id=row["templateId"],
            student_name=row["studentName"],
            student_matricula=row["studentMatricula"],
            student_turma=row["studentTurma"],
            score=row["score"],
            correct=int(row["correct"]),
            incorrect=int(row["incorrect"]),
        )
    except (ValidationError, TypeError, ValueError) as exc:
        raise DecodeFailure(f"result row {row['id']!r} is invalid: {exc}") from exc


def insert_result(conn: sqlite3.Connection, result: ReportResult) -> None:
    conn.execute(
        """
        INSERT INTO results (id, templateId, studentName, studentMatricula, studentTurma, score, correct, incorrect)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            result.id,
            result.template_id,
            result.student_name,
            result.student_matricula,
            result.student_turma,
            result.score,
            result.correct,
            result.incorrect,
        ),
    )


def fetch_results(conn: sqlite3.Connection, template_id: str) -> list[ReportResult]:
    """Return the results of one template ordered by student name."""

    rows = conn.execute(
        f"{_SELECT} WHERE templateId = ? ORDER BY studentName ASC, rowid ASC",
        (template_id,),
    ).fetchall()
    return [row_to_result(row) for row in rows]


def fetch_results_grouped(conn: sqlite3.Connection) -> dict[str, list[ReportResult]]:
    """Return every result keyed by template id, each list ordered by student name."""

    grouped: dict[str, list[ReportResult]] = defaultdict(list)
    rows = conn.execute(f"{_SELECT} ORDER BY templateId, studentName ASC, rowid ASC").fetchall()
    for row in rows:
        grouped[row["templateId"]].append(row_to_result(row))
    return dict(grouped)

# Testify
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Durable CRUD for templates and results.

Both stores run every statement on the database writer thread and translate
``sqlite3`` errors into :mod:`testify.storage.errors`. Rows are converted to
typed records before they leave the store.
"""

from __future__ import annotations

import logging

from testify.core.models import ReportResult, ScoreInfo, Template
from testify.storage.database import Database
from testify.storage.errors import InitializationFailure, StorageError, translate_errors
from testify.storage.sqlite import results as _results
from testify.storage.sqlite import templates as _templates
from testify.storage.sqlite.schema import SchemaManager

log = logging.getLogger(__name__)

__all__ = ["TemplateStore", "ResultStore", "ensure_database_schema"]


def ensure_database_schema(db: Database) -> None:
    """Run :class:`SchemaManager` on the writer thread.

    Raises:
        InitializationFailure: on any schema or open error
    """

    try:
        db.run(lambda conn: SchemaManager(conn).ensure_schema())
    except InitializationFailure:
        raise
    except StorageError as exc:
        raise InitializationFailure(str(exc)) from exc


class TemplateStore:
    """Templates table. No update operation is exposed."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def insert(self, template: Template) -> Template:
        """Insert a new template.

        Raises:
            ConstraintViolation: if ``template.id`` already exists
        """

        with translate_errors(f"insert template {template.id}"):
            self.db.run(lambda conn: _templates.insert_template(conn, template))
        log.info("Template %s saved (%r, %d questions)", template.id, template.title, template.question_count)
        return template

    def list_all(self) -> list[Template]:
        with translate_errors("list templates"):
            return self.db.run(_templates.fetch_templates)

    def get(self, template_id: str) -> Template | None:
        with translate_errors(f"get template {template_id}"):
            return self.db.run(lambda conn: _templates.fetch_template(conn, template_id))

    def delete_by_id(self, template_id: str) -> bool:
        """Delete a template and, through the cascade, its results.

        Unknown ids are a no-op; returns whether a row was removed.
        """

        with translate_errors(f"delete template {template_id}"):
            removed = self.db.run(lambda conn: _templates.delete_template(conn, template_id))
        if removed:
            log.info("Template %s deleted", template_id)
        else:
            log.debug("Template %s not found; nothing deleted", template_id)
        return bool(removed)


class ResultStore:
    """Results table; every result belongs to a template."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def insert(
        self,
        template_id: str,
        score_info: ScoreInfo,
        student_name: str | None = None,
        matricula: str | None = None,
        turma: str | None = None,
    ) -> ReportResult:
        """Insert a result under a fresh id.

        A blank ``student_name`` is stored as the placeholder name.

        Raises:
            ForeignKeyViolation: if ``template_id`` does not exist
        """

        result = ReportResult(
            template_id=template_id,
            student_name=student_name,
            student_matricula=matricula,
            student_turma=turma,
            score=score_info.score,
            correct=score_info.correct,
            incorrect=score_info.incorrect,
        )
        with translate_errors(f"insert result for template {template_id}"):
            self.db.run(lambda conn: _results.insert_result(conn, result))
        log.info("Result %s saved for %s (template %s)", result.id, result.student_name, template_id)
        return result

    def list_by_template(self, template_id: str) -> list[ReportResult]:
        with translate_errors(f"list results for template {template_id}"):
            return self.db.run(lambda conn: _results.fetch_results(conn, template_id))

    def list_all_grouped(self) -> dict[str, list[ReportResult]]:
        with translate_errors("list results"):
            return self.db.run(_results.fetch_results_grouped)

"""Service interfaces and typing helpers."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

from testify.core.models import ReportResult, ScoreInfo, Template

__all__ = ["TemplateRepository", "ResultRepository", "SnapshotListener", "Snapshot"]

Snapshot = tuple[Template, ...]
SnapshotListener = Callable[[Snapshot], None]


@runtime_checkable
class TemplateRepository(Protocol):
    """Durable template storage."""

    def insert(self, template: Template) -> Template: ...

    def list_all(self) -> Sequence[Template]: ...

    def delete_by_id(self, template_id: str) -> bool: ...


@runtime_checkable
class ResultRepository(Protocol):
    """Durable result storage scoped to a template."""

    def insert(
        self,
        template_id: str,
        score_info: ScoreInfo,
        student_name: str | None = None,
        matricula: str | None = None,
        turma: str | None = None,
    ) -> ReportResult: ...

    def list_by_template(self, template_id: str) -> Sequence[ReportResult]: ...

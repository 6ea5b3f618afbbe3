# Testify
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Typed records for answer-key templates and grading results."""

from __future__ import annotations

import uuid as _uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from testify.utils.config import DEFAULT_DATE_FORMAT, PLACEHOLDER_STUDENT_NAME

__all__ = ["ReportResult", "ScoreInfo", "Template", "new_id", "validate_answer_key"]


def new_id() -> str:
    return _uuid.uuid4().hex


def validate_answer_key(question_count: int, answers: list[str]) -> list[str]:
    """Check an answer key against its question count and normalise the choices."""

    if question_count < 1:
        raise ValueError("question_count must be >= 1")
    if len(answers) != question_count:
        raise ValueError(
            f"expected {question_count} answers, got {len(answers)}"
        )
    normalized = []
    for number, choice in enumerate(answers, start=1):
        text = str(choice or "").strip().upper()
        if len(text) != 1 or not text.isalpha():
            raise ValueError(f"answer {number} must be a single letter, got {choice!r}")
        normalized.append(text)
    return normalized


class ScoreInfo(BaseModel):
    """Grading outcome returned by the correction service, stored verbatim."""

    model_config = ConfigDict(frozen=True)

    score: str
    correct: int = Field(ge=0)
    incorrect: int = Field(ge=0)

    @classmethod
    def from_counts(cls, correct: int, total: int, *, max_score: float = 10.0) -> ScoreInfo:
        """Build the display score and the ``incorrect`` count on the caller side."""

        if total <= 0:
            raise ValueError("total must be > 0")
        if not 0 <= correct <= total:
            raise ValueError("correct must be within 0..total")
        earned = max_score * correct / total
        return cls(
            score=f"{earned:.1f} / {max_score:.1f}",
            correct=correct,
            incorrect=total - correct,
        )


class ReportResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    template_id: str
    student_name: str = PLACEHOLDER_STUDENT_NAME
    student_matricula: str | None = None
    student_turma: str | None = None
    score: str
    correct: int = Field(ge=0)
    incorrect: int = Field(ge=0)

    @field_validator("student_name", mode="before")
    def _placeholder_name(cls, value):
        text = str(value or "").strip()
        return text or PLACEHOLDER_STUDENT_NAME

    @field_validator("student_matricula", "student_turma", mode="before")
    def _blank_to_none(cls, value):
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class Template(BaseModel):
    """An answer-key definition together with the results graded against it.

    Rows read back from the store only go through the type checks below; the
    answer-key rules are enforced once, by :meth:`new`, so a row whose answers
    payload was unreadable still loads with an empty list.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = Field(min_length=1)
    created_date: str
    question_count: int
    correct_answers: list[str] = Field(default_factory=list)
    generated_image_path: str | None = None
    map_path: str = ""
    results: list[ReportResult] = Field(default_factory=list)

    @field_validator("map_path", mode="before")
    def _map_path_default(cls, value):
        return "" if value is None else value

    @classmethod
    def new(
        cls,
        title: str,
        question_count: int,
        answers: list[str],
        *,
        image_path: str | None = None,
        map_path: str | None = "",
        template_id: str | None = None,
        date_format: str = DEFAULT_DATE_FORMAT,
        now: datetime | None = None,
    ) -> Template:
        """Create a fresh template, validating the answer key."""

        title = str(title or "").strip()
        if not title:
            raise ValueError("title must not be empty")
        count = int(question_count)
        created = (now or datetime.now()).strftime(date_format)
        return cls(
            id=template_id or new_id(),
            title=title,
            created_date=created,
            question_count=count,
            correct_answers=validate_answer_key(count, list(answers)),
            generated_image_path=image_path or None,
            map_path=map_path or "",
        )

    def with_results(self, results: list[ReportResult]) -> Template:
        return self.model_copy(update={"results": list(results)})

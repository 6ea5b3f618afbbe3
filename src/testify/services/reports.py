# Testify
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Per-template report tables and class summaries."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from testify.core.models import Template

__all__ = ["REPORT_COLUMNS", "ReportSummary", "results_dataframe", "summarize", "export_results_csv"]

REPORT_COLUMNS = [
    "student_name",
    "student_matricula",
    "student_turma",
    "score",
    "earned",
    "maximum",
    "correct",
    "incorrect",
]

# "9.0 / 10.0", "9,5/10" or a bare "7"
_SCORE_PATTERN = r"^\s*(\d+(?:[.,]\d+)?)\s*(?:/\s*(\d+(?:[.,]\d+)?))?\s*$"


@dataclass(frozen=True)
class ReportSummary:
    template_id: str
    title: str
    total: int
    class_average: float
    top_performer: str
    low_performer: str

    def as_dict(self) -> dict[str, object]:
        return {
            "template_id": self.template_id,
            "title": self.title,
            "total": self.total,
            "class_average": self.class_average,
            "top_performer": self.top_performer,
            "low_performer": self.low_performer,
        }


def _split_score(scores: pd.Series) -> tuple[pd.Series, pd.Series]:
    """Split ``"9.0 / 10.0"`` strings into numeric earned/maximum columns."""

    parts = scores.astype("string").str.extract(_SCORE_PATTERN)
    earned = pd.to_numeric(parts[0].str.replace(",", ".", regex=False), errors="coerce")
    maximum = pd.to_numeric(parts[1].str.replace(",", ".", regex=False), errors="coerce")
    return earned.astype("float64"), maximum.astype("float64")


def results_dataframe(template: Template) -> pd.DataFrame:
    """Return one row per result, in the template's result order."""

    if not template.results:
        return pd.DataFrame({col: pd.Series(dtype="object") for col in REPORT_COLUMNS})

    df = pd.DataFrame([result.model_dump() for result in template.results])
    df["earned"], df["maximum"] = _split_score(df["score"])
    return df[REPORT_COLUMNS].reset_index(drop=True)


def summarize(template: Template) -> ReportSummary:
    """Class average of the earned score plus best and worst students.

    Results whose score cannot be parsed are left out of the average and the
    rankings but still count towards ``total``.
    """

    df = results_dataframe(template)
    scored = df.dropna(subset=["earned"]) if not df.empty else df
    if scored.empty:
        return ReportSummary(
            template_id=template.id,
            title=template.title,
            total=len(df),
            class_average=0.0,
            top_performer="N/A",
            low_performer="N/A",
        )

    earned = scored["earned"].astype(float)
    return ReportSummary(
        template_id=template.id,
        title=template.title,
        total=len(df),
        class_average=round(float(earned.mean()), 1),
        top_performer=str(scored.loc[earned.idxmax(), "student_name"]),
        low_performer=str(scored.loc[earned.idxmin(), "student_name"]),
    )


def export_results_csv(template: Template, path: str | os.PathLike[str]) -> Path:
    """Write the report table for ``template`` to ``path`` as UTF-8 CSV."""

    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    results_dataframe(template).to_csv(out, index=False, encoding="utf-8")
    return out

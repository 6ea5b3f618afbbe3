from datetime import datetime

import pandas as pd
import pytest

from testify.core.models import ReportResult, Template
from testify.services.reports import REPORT_COLUMNS, export_results_csv, results_dataframe, summarize


def _template_with_results(*rows) -> Template:
    template = Template.new("Prova 1", 10, list("ABCDEABCDE"), template_id="t1", now=datetime(2025, 3, 1))
    results = [
        ReportResult(
            template_id="t1",
            student_name=name,
            score=score,
            correct=correct,
            incorrect=10 - correct,
        )
        for name, score, correct in rows
    ]
    return template.with_results(results)


def test_summary_reports_average_and_extremes():
    template = _template_with_results(
        ("Ana", "9.0 / 10.0", 9),
        ("Bruno", "5.0 / 10.0", 5),
        ("Carla", "7,5 / 10", 7),
    )

    summary = summarize(template)

    assert summary.total == 3
    assert summary.class_average == pytest.approx(7.2)
    assert summary.top_performer == "Ana"
    assert summary.low_performer == "Bruno"
    assert summary.as_dict()["title"] == "Prova 1"


def test_summary_without_results():
    summary = summarize(_template_with_results())

    assert summary.total == 0
    assert summary.class_average == 0.0
    assert summary.top_performer == "N/A"
    assert summary.low_performer == "N/A"


def test_unparsable_scores_are_ignored_in_rankings():
    template = _template_with_results(("Ana", "pendente", 0), ("Bruno", "4.0 / 10.0", 4))

    summary = summarize(template)

    assert summary.total == 2
    assert summary.class_average == pytest.approx(4.0)
    assert summary.top_performer == summary.low_performer == "Bruno"


def test_dataframe_splits_score_columns():
    df = results_dataframe(_template_with_results(("Ana", "9.0 / 10.0", 9), ("Bruno", "7", 7)))

    assert list(df.columns) == REPORT_COLUMNS
    assert df["earned"].tolist() == [9.0, 7.0]
    assert df.loc[0, "maximum"] == 10.0
    assert pd.isna(df.loc[1, "maximum"])


def test_export_csv_round_trip(tmp_path):
    template = _template_with_results(("Ana", "9.0 / 10.0", 9), ("João", "6.0 / 10.0", 6))

    out = export_results_csv(template, tmp_path / "exports" / "t1.csv")

    df = pd.read_csv(out)
    assert df["student_name"].tolist() == ["Ana", "João"]
    assert df["correct"].tolist() == [9, 6]
    assert df["incorrect"].tolist() == [1, 4]

import csv
from pathlib import Path

import numpy as np
import pandas as pd

from ldeaths_forecaster_src.file_utils import (
    append_metrics_csv_row, md_table_from_df, resolve_path, write_report_md
)


def test_md_table_formats_floats_and_index():
    df = pd.DataFrame({"RMSE": [np.float64(1.23456)], "n": [12]}, index=pd.Index(["m1"], name="model"))
    text = md_table_from_df(df, index=True, floatfmt=".2f")
    assert text.splitlines() == [
        "| model | RMSE | n |",
        "| --- | --- | --- |",
        "| m1 | 1.23 | 12 |",
    ]
    assert md_table_from_df(pd.DataFrame()) == ""


def test_metrics_csv_header_written_once(tmp_path: Path):
    path = tmp_path / "out" / "metrics.csv"
    header = ["model", "RMSE"]
    append_metrics_csv_row(path, {"model": "a", "RMSE": 1.0, "ignored": 5}, header)
    append_metrics_csv_row(path, {"model": "b", "RMSE": 2.0}, header)
    append_metrics_csv_row(None, {"model": "c"}, header)

    with path.open(newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows == [["model", "RMSE"], ["a", "1.0"], ["b", "2.0"]]


def test_report_sections(tmp_path: Path):
    out = write_report_md(tmp_path / "r" / "report.md", "Title", [("One", "body 1"), ("Two", "body 2\n\n")])
    text = out.read_text(encoding="utf-8")
    assert text.startswith("# Title\n")
    assert "\n## One\n\nbody 1\n" in text
    assert text.endswith("## Two\n\nbody 2\n")


def test_resolve_path(tmp_path: Path):
    assert resolve_path("data/x.csv", tmp_path) == tmp_path / "data" / "x.csv"
    assert resolve_path(str(tmp_path / "abs.csv"), Path("/elsewhere")) == tmp_path / "abs.csv"

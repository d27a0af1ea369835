"""End-to-end workflow with the order search replaced by fixed selections."""

import importlib
from pathlib import Path
from types import SimpleNamespace

import pandas as pd

import pytest

from ldeaths_forecaster_src.model_types import CandidateFit, SearchResult, SeasonalOrder

main_module = importlib.import_module("ldeaths_forecaster_src.main")

PICKS = {
    "exhaustive": SeasonalOrder(0, 0, 1, 0, 1, 1, 12),
    "stepwise": SeasonalOrder(1, 0, 0, 0, 1, 1, 12),
}


def _fake_search(endog, d=0, D=1, s=12, mode="exhaustive", bounds=None,
                 allow_drift=True, criterion="aic", maxiter=200):
    order = PICKS[mode]
    cand = CandidateFit(order=order, drift=False, aic=700.0, aicc=701.0, bic=705.0)
    return SearchResult(mode=mode, criterion=criterion, order=order, drift=False,
                        value=700.0, candidates=[cand])


@pytest.fixture
def workflow(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(main_module, "search_orders", _fake_search)
    args = SimpleNamespace(mode="both", split_boundary="1978-12", intervals="80,95")
    figures = tmp_path / "figures"
    metrics = tmp_path / "metrics.csv"
    report = tmp_path / "report.md"
    results = main_module.run_analysis_workflow(None, figures, metrics, report, args)
    return results, figures, metrics, report


def test_workflow_outputs(workflow):
    results, figures, metrics, report = workflow

    assert set(results["searches"]) == {"exhaustive", "stepwise"}
    assert len(results["models"]) == 2
    assert list(results["accuracy"].index) == [
        "ARIMA(0,0,1)(0,1,1)[12] [exhaustive]",
        "ARIMA(1,0,0)(0,1,1)[12] [stepwise]",
        "seasonal naive",
    ]
    assert len(results["dm"]) == 1
    for fc in results["forecasts"].values():
        assert list(fc.index) == list(results["test"].index)


def test_workflow_writes_files(workflow):
    results, figures, metrics, report = workflow

    for name in ["Series.png", "SeasonalSubseries.png", "ACF_Differencing.png",
                 "Forecast_Comparison.png", "Accuracy.png",
                 "OrderSearch_exhaustive.csv", "OrderSearch_stepwise.csv"]:
        assert (figures / name).exists(), name
    assert list(figures.glob("*_LjungBox.csv"))
    assert list(figures.glob("Forecast_ARIMA*.png"))

    df = pd.read_csv(metrics)
    assert len(df) == 3
    assert set(df["mode"]) == {"exhaustive", "stepwise", "benchmark"}
    assert {"RMSE", "MASE", "PI80_hit_rate", "PI95_hit_rate", "LB_pvalue"} <= set(df.columns)

    text = report.read_text(encoding="utf-8")
    assert "Accuracy on the held-out window" in text
    assert "Residual diagnostics" in text


def test_metrics_csv_appends_across_runs(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(main_module, "search_orders", _fake_search)
    args = SimpleNamespace(mode="stepwise")
    metrics = tmp_path / "metrics.csv"
    for _ in range(2):
        main_module.run_analysis_workflow(None, tmp_path / "figs", metrics, None, args)

    df = pd.read_csv(metrics)
    assert len(df) == 4
    assert list(df["model"]).count("seasonal naive") == 2


def test_cli_invalid_split_exits_with_status_one(tmp_path: Path):
    with pytest.raises(SystemExit) as exc:
        main_module.main(["--split-boundary", "1985-01", "--figures-dir", str(tmp_path / "figs")])
    assert exc.value.code == 1
    assert not (tmp_path / "figs").exists()

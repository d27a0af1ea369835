# ldeaths_forecaster_src/diagnostics_utils.py

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from diagnostics import DiagnosticResult, ResidualDiagnostics
from .model_types import FittedModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResidualReport:
    """Residual diagnostics for one fitted model."""

    model_name: str
    residuals: pd.Series = field(repr=False)
    n_dropped: int
    acf: pd.DataFrame = field(repr=False)
    ljung_box: DiagnosticResult
    shapiro_wilk: DiagnosticResult
    jarque_bera: Optional[DiagnosticResult] = None
    summary: Dict[str, float] = field(default_factory=dict)
    assessment: Dict[str, Any] = field(default_factory=dict)

    @property
    def n_residuals(self) -> int:
        return int(len(self.residuals))

    def tests_table(self) -> pd.DataFrame:
        rows = [self.ljung_box.as_dict(), self.shapiro_wilk.as_dict()]
        if self.jarque_bera is not None:
            rows.append(self.jarque_bera.as_dict())
        df = pd.DataFrame(rows)
        df.insert(0, "model", self.model_name)
        return df


def residual_series(model: FittedModel, train: pd.Series, drop_burn_in: bool = False) -> pd.Series:
    """
    Innovations of a fitted model over its training window.

    The model is estimated on the differenced series, so the first
    ``d + D*s`` observations only supply starting values and carry a zero
    innovation. The returned series spans the whole window unless
    ``drop_burn_in`` removes those start-up points.

    Parameters
    ----------
    model : FittedModel
        Model returned by ``fit_sarima``
    train : pd.Series
        The series the model was fitted on
    drop_burn_in : bool, default=False
        Drop the start-up observations lost to differencing

    Returns
    -------
    pd.Series
        Residuals indexed by date
    """
    if model.results is None:
        raise ValueError(f"model {model.name} carries no estimation results")

    innovations = np.asarray(model.results.resid, dtype=float).reshape(-1)
    n_start = model.order.d + model.order.D * model.order.s
    if len(innovations) + n_start != len(train):
        raise ValueError(
            f"{model.name}: {len(innovations)} residuals after {n_start} start-up observations "
            f"for a training window of {len(train)} observations"
        )

    resid = pd.Series(np.r_[np.zeros(n_start), innovations], index=train.index, name="residual")
    if drop_burn_in:
        resid = resid.iloc[n_start:]
    return resid


def diagnose_residuals(model: FittedModel,
                       train: pd.Series,
                       acf_lags: int = 36,
                       lb_lag: int = 24,
                       alpha: float = 0.05,
                       drop_burn_in: bool = False) -> ResidualReport:
    """
    Residual ACF, Ljung-Box and Shapiro-Wilk tests for a fitted model.

    The Ljung-Box degrees of freedom are reduced by the number of estimated
    coefficients (innovation variance excluded).

    Parameters
    ----------
    model : FittedModel
        Model returned by ``fit_sarima``
    train : pd.Series
        The series the model was fitted on
    acf_lags : int, default=36
        Maximum lag of the residual ACF
    lb_lag : int, default=24
        Lag of the joint Ljung-Box test
    alpha : float, default=0.05
        Significance level used for interpretation
    drop_burn_in : bool, default=False
        See ``residual_series``

    Returns
    -------
    ResidualReport
        Tests, ACF, summary statistics and adequacy assessment
    """
    resid = residual_series(model, train, drop_burn_in=drop_burn_in)
    n_dropped = len(train) - len(resid)
    logger.info("Diagnosing %s on %d residuals (%d start-up observations dropped)",
                model.name, len(resid), n_dropped)

    diag = ResidualDiagnostics(significance_level=alpha, ljung_box_lag=lb_lag, acf_lags=acf_lags)
    out = diag.run_comprehensive_diagnostics(resid, model_df=model.n_coefficients, model_name=model.name)
    tests = out["test_results"]

    lb = tests["ljung_box"]
    sw = tests["shapiro_wilk"]
    logger.info("%s: Ljung-Box Q*=%.3f df=%s p=%.4f; Shapiro-Wilk W=%.4f p=%.3g",
                model.name, lb.test_statistic, lb.degrees_of_freedom, lb.p_value,
                sw.test_statistic, sw.p_value)

    return ResidualReport(
        model_name=model.name,
        residuals=resid,
        n_dropped=int(n_dropped),
        acf=out["acf"],
        ljung_box=lb,
        shapiro_wilk=sw,
        jarque_bera=tests.get("jarque_bera"),
        summary=out["summary_statistics"],
        assessment=out["overall_assessment"],
    )


def save_residual_diagnostics(report: ResidualReport,
                              out_dir: Path,
                              acf_lags: int = 36,
                              lb_lag: int = 24,
                              model_df: int = 0) -> Dict[str, Path]:
    """
    Save residual plots, the residual ACF and a Ljung-Box table across lags.

    Notes
    -----
    Creates the following files (``<stem>`` derived from the model name):
    - <stem>_residuals.png: time plot, ACF panel and histogram
    - <stem>_qq_plot.png: normal Q-Q plot
    - <stem>_LjungBox.csv: Ljung-Box statistics for lags 1..lb_lag
    - <stem>_ACF.csv: residual autocorrelations with the white-noise band
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    diag = ResidualDiagnostics(significance_level=report.ljung_box.significance_level,
                               ljung_box_lag=lb_lag, acf_lags=acf_lags)

    paths = diag.create_diagnostic_plots(report.residuals, out_dir, report.model_name)
    stem = paths["residuals"].name[: -len("_residuals.png")]

    lb_path = out_dir / f"{stem}_LjungBox.csv"
    diag.ljung_box_table(report.residuals, max_lag=lb_lag, model_df=model_df).to_csv(lb_path, index=True)
    paths["ljung_box_table"] = lb_path

    acf_path = out_dir / f"{stem}_ACF.csv"
    report.acf.to_csv(acf_path, index=True)
    paths["acf_table"] = acf_path

    logger.debug("Residual diagnostics for %s saved to %s", report.model_name, out_dir)
    return paths


def diagnostics_table(reports: Dict[str, ResidualReport]) -> pd.DataFrame:
    """One row per model with the Ljung-Box and Shapiro-Wilk results side by side."""
    rows = []
    for name, rep in reports.items():
        rows.append({
            "model": name,
            "n_residuals": rep.n_residuals,
            "LB_stat": rep.ljung_box.test_statistic,
            "LB_df": rep.ljung_box.degrees_of_freedom,
            "LB_pvalue": rep.ljung_box.p_value,
            "SW_stat": rep.shapiro_wilk.test_statistic,
            "SW_pvalue": rep.shapiro_wilk.p_value,
            "adequate": bool(rep.assessment.get("overall_adequate", False)),
        })
    return pd.DataFrame(rows)

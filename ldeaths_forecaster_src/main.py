# ldeaths_forecaster_src/main.py

"""
Seasonal ARIMA modelling of monthly UK lung-disease deaths (1974-1979).

Purpose
-------
- Load the 72-month deaths series (bundled CSV unless --series-csv is given)
- Hold out 1979 and summarise the 1974-1978 training window
- Visualise the series, its seasonal subseries and the ACF before/after
  lag-12 differencing
- Select SARIMA orders with d=0, D=1, s=12 by exhaustive and stepwise search
- Fit the selected models, run residual diagnostics (ACF, Ljung-Box, Shapiro-Wilk)
- Forecast the held-out year with 80%/95% intervals and score the forecasts
  against the actual values and a seasonal naive benchmark

Configuration-Driven Workflow
-----------------------------
Search bounds, differencing orders, horizons and test settings live in
config/model.yaml. CLI arguments override configuration values where applicable.
"""

import argparse
import logging
import warnings
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
from statsmodels.tools.sm_exceptions import ConvergenceWarning

from .config_utils import initialize_config, get_config_value
from .data_utils import load_ldeaths_series, split_train_test, summary_statistics
from .diagnostics_utils import diagnose_residuals, diagnostics_table, save_residual_diagnostics
from .errors import ForecastPipelineError
from .file_utils import (
    ensure_dir, append_metrics_csv_row, md_table_from_df, resolve_path, write_report_md
)
from .forecasting_utils import (
    fit_sarima, forecast_models, seasonal_naive_forecast, hash_forecast
)
from .metrics_utils import ACCURACY_COLUMNS, evaluate_forecasts, pairwise_diebold_mariano
from .parsing_utils import (
    parse_intervals_arg, resolve_search_bounds, validate_criterion,
    validate_log_level, validate_search_mode
)
from .plotting_utils import (
    plot_series, plot_seasonal_subseries, plot_acf_comparison,
    plot_all_forecasts, plot_forecast_comparison, plot_metric_comparison
)
from .search_utils import search_orders
from .transform_utils import acf_comparison, seasonal_difference, stationarity_summary

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent.parent


def _metrics_header(levels: List[int]) -> List[str]:
    return (
        ["run_timestamp", "model", "mode", "order", "drift", "AIC", "AICc", "BIC"]
        + ACCURACY_COLUMNS
        + [f"PI{lvl}_hit_rate" for lvl in levels]
        + ["LB_pvalue", "SW_pvalue", "hash"]
    )


def _export_metrics(metrics_csv_path: Optional[Path],
                    accuracy: pd.DataFrame,
                    models: Dict[str, Any],
                    modes: Dict[str, str],
                    reports: Dict[str, Any],
                    forecasts: Dict[str, Any],
                    levels: List[int]) -> None:
    """Append one row per forecast (SARIMA models and the benchmark) to the metrics CSV."""
    if metrics_csv_path is None:
        return

    header = _metrics_header(levels)
    ts = datetime.now(timezone.utc).isoformat(timespec="seconds")
    for name, acc in accuracy.iterrows():
        fitted = models.get(name)
        rep = reports.get(name)
        row: Dict[str, Any] = {
            "run_timestamp": ts,
            "model": name,
            "mode": modes.get(name, "benchmark"),
            "order": str(fitted.order) if fitted is not None else "",
            "drift": fitted.drift if fitted is not None else "",
            "AIC": fitted.aic if fitted is not None else "",
            "AICc": fitted.aicc if fitted is not None else "",
            "BIC": fitted.bic if fitted is not None else "",
            "LB_pvalue": rep.ljung_box.p_value if rep is not None else "",
            "SW_pvalue": rep.shapiro_wilk.p_value if rep is not None else "",
            "hash": hash_forecast(forecasts[name].mean),
        }
        row.update({k: acc[k] for k in acc.index if k in header})
        append_metrics_csv_row(metrics_csv_path, row, header)
    logger.info("Appended %d metrics rows to %s", len(accuracy), metrics_csv_path)


def _build_report(results: Dict[str, Any]) -> List[tuple]:
    """Markdown sections for the run report (plain table dump)."""
    sections = []

    summary = pd.DataFrame([results["summary"]])
    sections.append(("Training window summary", md_table_from_df(summary, floatfmt=".2f")))
    sections.append(("ACF before and after lag-12 differencing",
                     md_table_from_df(results["acf_comparison"], index=True)))

    rows = []
    for mode, sr in results["searches"].items():
        rows.append({"mode": mode, "order": str(sr.order), "drift": sr.drift,
                     sr.criterion.upper(): sr.value, "candidates": sr.n_evaluated})
    sections.append(("Order search", md_table_from_df(pd.DataFrame(rows))))

    for name, fitted in results["models"].items():
        ic = pd.DataFrame([fitted.information_criteria()])
        body = md_table_from_df(fitted.coefficients, index=True, floatfmt=".4f")
        body += "\n\n" + md_table_from_df(ic, floatfmt=".2f")
        body += f"\n\nsigma^2 = {fitted.sigma2:.1f}"
        sections.append((f"Coefficients: {name}", body))

    sections.append(("Residual diagnostics",
                     md_table_from_df(diagnostics_table(results["diagnostics"]), floatfmt=".4f")))

    for name, fc in results["forecasts"].items():
        frame = fc.frame.copy()
        frame.index = frame.index.strftime("%Y-%m")
        sections.append((f"Forecasts: {name}", md_table_from_df(frame, index=True, floatfmt=".1f")))

    sections.append(("Accuracy on the held-out window", md_table_from_df(results["accuracy"], index=True)))
    if not results["dm"].empty:
        sections.append(("Diebold-Mariano tests", md_table_from_df(results["dm"], floatfmt=".4f")))
    return sections


def run_analysis_workflow(series_csv: Optional[Path],
                          figures_dir: Path,
                          metrics_csv_path: Optional[Path] = None,
                          report_md: Optional[Path] = None,
                          args: Optional[argparse.Namespace] = None) -> Dict[str, Any]:
    """
    Execute the full lung-deaths SARIMA analysis.

    Parameters
    ----------
    series_csv : Optional[Path]
        CSV with 'date' and 'deaths' columns; None uses the bundled series
    figures_dir : Path
        Output directory for figures and diagnostic tables (created if missing)
    metrics_csv_path : Optional[Path]
        If provided, append one accuracy row per forecast to this CSV
    report_md : Optional[Path]
        If provided, write a markdown report of all reportable values
    args : Optional[argparse.Namespace]
        CLI arguments; override configuration values

    Returns
    -------
    Dict[str, Any]
        series, train, test, summary, searches, models, diagnostics,
        forecasts, accuracy and dm

    Workflow
    --------
    - Load and split the series at the configured boundary (default 1978-12)
    - Plot the training series, its seasonal subseries and the ACF before/after differencing
    - Run the requested order searches and fit each selected order
    - Residual diagnostics per fitted model
    - Forecast the held-out window; add a seasonal naive benchmark
    - Accuracy table, pairwise Diebold-Mariano tests, figures, metrics CSV and report
    """
    boundary = get_config_value("data.split_boundary", "1978-12", args, "split_boundary")
    d = int(get_config_value("model.fixed_parameters.d", 0))
    D = int(get_config_value("model.fixed_parameters.D", 1))
    s = int(get_config_value("model.fixed_parameters.s", 12))
    allow_drift = bool(get_config_value("model.allow_drift", True, args, "allow_drift"))
    criterion = validate_criterion(get_config_value("model.criterion", "aic", args, "criterion"))
    maxiter = int(get_config_value("model.maxiter", 200))
    modes = validate_search_mode(get_config_value("model.search_mode", "both", args, "mode"))
    bounds = resolve_search_bounds(args)
    horizon = int(get_config_value("forecast.horizon", 12))
    levels = parse_intervals_arg(get_config_value("forecast.intervals", "80,95", args, "intervals"))
    acf_lags = int(get_config_value("diagnostics.acf_lags", 36))
    lb_lag = int(get_config_value("diagnostics.ljung_box_lag", 24))
    alpha = float(get_config_value("diagnostics.significance_level", 0.05))
    drop_burn_in = bool(get_config_value("diagnostics.drop_burn_in", False))
    m = int(get_config_value("evaluation.seasonal_period", s))

    # Load and split
    series = load_ldeaths_series(series_csv)
    train, test = split_train_test(series, boundary)
    if len(test) != horizon:
        logger.warning("Held-out window has %d points but the forecast horizon is %d", len(test), horizon)

    summary = summary_statistics(train)
    logger.info("Training summary: min=%.0f max=%.0f mean=%.2f median=%.1f sd=%.2f",
                summary["min"], summary["max"], summary["mean"], summary["median"], summary["std"])

    # Exploratory figures and the differencing check
    ensure_dir(figures_dir)
    differenced = seasonal_difference(train, lag=s)
    acf_table = acf_comparison(train, lag=s, nlags=acf_lags)
    stat = stationarity_summary(train, lag=s)
    logger.info("Lag-%d differencing: %d -> %d observations; ACF at lag %d %.3f -> %.3f; ADF p %.3f -> %.3f",
                s, len(train), len(differenced), s,
                acf_table["original"].get(s, float("nan")), acf_table["differenced"].get(s, float("nan")),
                stat["adf_p_original"], stat["adf_p_differenced"])

    plot_series(series, figures_dir / "Series.png")
    plot_seasonal_subseries(train, figures_dir / "SeasonalSubseries.png")
    plot_acf_comparison(train, differenced, figures_dir / "ACF_Differencing.png", nlags=acf_lags, lag=s)

    # Order search and estimation
    searches = {}
    models = {}
    mode_of = {}
    for mode in modes:
        sr = search_orders(train, d=d, D=D, s=s, mode=mode, bounds=bounds,
                           allow_drift=allow_drift, criterion=criterion, maxiter=maxiter)
        searches[mode] = sr
        sr.table().to_csv(figures_dir / f"OrderSearch_{mode}.csv", index=False)

        label = f"{sr.order}{' with drift' if sr.drift else ''} [{mode}]"
        fitted = fit_sarima(train, sr.order, drift=sr.drift, maxiter=maxiter, label=label)
        models[fitted.name] = fitted
        mode_of[fitted.name] = mode
        logger.info("%s: loglik=%.2f AIC=%.2f AICc=%.2f BIC=%.2f",
                    fitted.name, fitted.loglik, fitted.aic, fitted.aicc, fitted.bic)

    # Residual diagnostics
    reports = {}
    for name, fitted in models.items():
        rep = diagnose_residuals(fitted, train, acf_lags=acf_lags, lb_lag=lb_lag,
                                 alpha=alpha, drop_burn_in=drop_burn_in)
        save_residual_diagnostics(rep, figures_dir, acf_lags=acf_lags, lb_lag=lb_lag,
                                  model_df=fitted.n_coefficients)
        reports[name] = rep

    # Forecasts and accuracy
    forecasts = forecast_models(models.values(), horizon=horizon, levels=levels)
    sarima_forecasts = dict(forecasts)
    naive = seasonal_naive_forecast(train, horizon=horizon, m=m, levels=levels)
    forecasts[naive.model_name] = naive

    accuracy = evaluate_forecasts(forecasts, test, train, m=m)
    dm = pairwise_diebold_mariano(sarima_forecasts, test) if len(sarima_forecasts) > 1 else pd.DataFrame()
    logger.info("Accuracy on held-out window:\n%s", accuracy.to_string(float_format=lambda x: f"{x:.3f}"))

    plot_all_forecasts(train, test, sarima_forecasts, figures_dir)
    plot_forecast_comparison(test, forecasts, figures_dir / "Forecast_Comparison.png")
    plot_metric_comparison(accuracy, ["RMSE", "MAE", "MAPE", "MASE"], figures_dir / "Accuracy.png")

    results = {
        "series": series,
        "train": train,
        "test": test,
        "summary": summary,
        "acf_comparison": acf_table,
        "searches": searches,
        "models": models,
        "diagnostics": reports,
        "forecasts": forecasts,
        "accuracy": accuracy,
        "dm": dm,
    }

    _export_metrics(metrics_csv_path, accuracy, models, mode_of, reports, forecasts, levels)
    if report_md is not None:
        write_report_md(report_md, "UK lung-disease deaths: SARIMA forecasts", _build_report(results))

    logger.info("Analysis workflow completed successfully")
    return results


def setup_cli_parser() -> argparse.ArgumentParser:
    """
    Set up the command-line argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        description="Seasonal ARIMA modelling of monthly UK lung-disease deaths (1974-1979)."
    )

    # Data and output arguments
    parser.add_argument(
        "--series-csv", type=str, default=None,
        help="CSV with columns 'date' and 'deaths'. Defaults to the bundled series."
    )
    parser.add_argument(
        "--figures-dir", type=str, default="figures",
        help="Directory to write figure files and diagnostic tables."
    )
    parser.add_argument(
        "--metrics-csv", type=str, default=None,
        help="If provided, append evaluation metrics rows to this CSV (resolved relative to base_dir if not absolute)."
    )
    parser.add_argument(
        "--report-md", type=str, default=None,
        help="If provided, write a markdown report of the run to this path."
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="YAML configuration file. Defaults to config/model.yaml."
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity level."
    )

    # Split and search controls
    parser.add_argument(
        "--split-boundary", type=str, default=None,
        help="Last month of the training window (e.g., '1978-12'). Uses config default if not specified."
    )
    parser.add_argument(
        "--mode", type=str, default=None, choices=["both", "exhaustive", "stepwise"],
        help="Order search strategy. Uses config default ('both') if not specified."
    )
    parser.add_argument(
        "--criterion", type=str, default=None, choices=["aic", "aicc", "bic"],
        help="Information criterion minimised by the order search."
    )
    parser.add_argument("--max-p", dest="max_p", type=int, default=None, help="Upper bound for AR order p.")
    parser.add_argument("--max-q", dest="max_q", type=int, default=None, help="Upper bound for MA order q.")
    parser.add_argument("--max-P", dest="max_P", type=int, default=None, help="Upper bound for seasonal AR order P.")
    parser.add_argument("--max-Q", dest="max_Q", type=int, default=None, help="Upper bound for seasonal MA order Q.")
    parser.add_argument(
        "--max-order", dest="max_order", type=int, default=None,
        help="Upper bound for p+q+P+Q."
    )
    parser.add_argument(
        "--no-drift", dest="allow_drift", action="store_const", const=False, default=None,
        help="Never include a drift term."
    )

    # Forecast intervals
    parser.add_argument(
        "--intervals", type=str, default=None,
        help="Comma-separated predictive interval coverages (e.g., '80,95')."
    )

    return parser


def setup_logging(log_level: str) -> None:
    """
    Configure logging with specified level and warning filters.

    Parameters
    ----------
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = validate_log_level(log_level)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # Configure warnings based on log level
    if level == "DEBUG":
        warnings.resetwarnings()
        warnings.filterwarnings("default")
    else:
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=UserWarning, module="statsmodels")


def main(argv: Optional[List[str]] = None) -> None:
    """
    Main entry point for the lung-deaths forecasting application.

    Pipeline errors are logged with their stage and turned into exit status 1.
    """
    parser = setup_cli_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    initialize_config(resolve_path(args.config, BASE_DIR) if args.config else None)

    series_arg = args.series_csv or get_config_value("data.csv_path", None)
    series_csv = resolve_path(series_arg, BASE_DIR) if series_arg else None
    figures_dir = resolve_path(args.figures_dir, BASE_DIR)
    metrics_csv_path = resolve_path(args.metrics_csv, BASE_DIR) if args.metrics_csv else None
    report_md = resolve_path(args.report_md, BASE_DIR) if args.report_md else None

    try:
        run_analysis_workflow(series_csv, figures_dir, metrics_csv_path, report_md, args)
    except ForecastPipelineError as e:
        logger.error("Pipeline failed at stage '%s': %s", e.stage, e.detail)
        raise SystemExit(1) from e


if __name__ == "__main__":
    main()

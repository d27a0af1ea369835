# ldeaths_forecaster_src/plotting_utils.py

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from pathlib import Path
from typing import Dict, Mapping, Optional
import logging

from statsmodels.graphics.tsaplots import month_plot, plot_acf

from .model_types import Forecast

logger = logging.getLogger(__name__)

_COLORS = ["tab:red", "tab:blue", "tab:green", "tab:orange", "tab:purple"]


def ensure_dir(path: Path) -> None:
    """
    Create directory if it doesn't exist, including all parent directories.

    Parameters
    ----------
    path : Path
        Directory path to create
    """
    path.mkdir(parents=True, exist_ok=True)


def plot_series(series: pd.Series,
                out_path: Path,
                title: str = "Monthly deaths from lung diseases, UK",
                ylabel: str = "Deaths") -> None:
    """
    Render and save a time plot of the monthly series.

    Parameters
    ----------
    series : pd.Series
        Series with a DatetimeIndex
    out_path : Path
        File path to save the rendered PNG (parents are created if missing)
    title : str
        Plot title
    ylabel : str
        Y-axis label
    """
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots(figsize=(9, 4))
    ax.plot(series.index, series.values, color="black", linewidth=1)
    ax.set_xlabel("Date")
    ax.set_ylabel(ylabel)
    ax.set_title(title)
    fig.autofmt_xdate()
    plt.tight_layout()
    plt.savefig(out_path, dpi=300)
    plt.close(fig)


def plot_seasonal_subseries(series: pd.Series, out_path: Path, ylabel: str = "Deaths") -> None:
    """
    Seasonal subseries plot: one mini time plot per calendar month with its mean.

    Notes
    -----
    Uses statsmodels' ``month_plot``, which needs a monthly PeriodIndex.
    """
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots(figsize=(9, 4))
    month_plot(series.to_period("M"), ylabel=ylabel, ax=ax)
    ax.set_title("Seasonal subseries")
    plt.tight_layout()
    fig.savefig(out_path, dpi=300)
    plt.close(fig)


def plot_acf_comparison(series: pd.Series,
                        differenced: pd.Series,
                        out_path: Path,
                        nlags: int = 36,
                        lag: int = 12) -> None:
    """
    Sample ACF of the series before and after seasonal differencing.

    Parameters
    ----------
    series : pd.Series
        Original (training) series
    differenced : pd.Series
        Seasonally differenced series
    out_path : Path
        Output file path for the plot
    nlags : int, default=36
        Maximum lag shown (capped at n-1 per panel)
    lag : int, default=12
        Differencing lag, used in the lower panel title
    """
    ensure_dir(out_path.parent)
    fig, axes = plt.subplots(2, 1, figsize=(8, 6), dpi=150)
    plot_acf(series.dropna(), ax=axes[0], lags=min(nlags, len(series) - 1), zero=False)
    axes[0].set_title("ACF of the series")
    plot_acf(differenced.dropna(), ax=axes[1], lags=min(nlags, len(differenced) - 1), zero=False)
    axes[1].set_title(f"ACF after lag-{lag} differencing")
    fig.tight_layout()
    fig.savefig(out_path, dpi=300)
    plt.close(fig)


def plot_forecast(train: pd.Series,
                  forecast: Forecast,
                  out_path: Path,
                  test: Optional[pd.Series] = None,
                  title: Optional[str] = None,
                  ylabel: str = "Deaths") -> None:
    """
    Training series, point forecasts and shaded prediction intervals.

    Wider intervals are drawn lighter. The held-out observations are overlaid
    when ``test`` is given.
    """
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots(figsize=(9, 4))
    ax.plot(train.index, train.values, color="black", linewidth=1, label="observed")

    for i, lvl in enumerate(sorted(forecast.levels, reverse=True)):
        lo, hi = forecast.interval(lvl)
        ax.fill_between(forecast.index, lo.values, hi.values, color="tab:blue",
                        alpha=0.15 + 0.15 * i, linewidth=0, label=f"{lvl}% interval")
    ax.plot(forecast.index, forecast.mean.values, color="tab:blue", linewidth=1.5, label="forecast")

    if test is not None:
        ax.plot(test.index, test.values, color="tab:red", linewidth=1, linestyle="--", label="actual")

    ax.set_ylabel(ylabel)
    ax.set_title(title or f"Forecasts from {forecast.model_name}")
    ax.legend(loc="upper right", fontsize=7)
    fig.autofmt_xdate()
    plt.tight_layout()
    fig.savefig(out_path, dpi=300)
    plt.close(fig)


def plot_forecast_comparison(y_true: pd.Series,
                             forecasts: Mapping[str, Forecast],
                             out_path: Path,
                             title: str = "Forecast Comparison",
                             ylabel: str = "Deaths") -> None:
    """
    Create a comparison plot of actual vs predicted values for multiple models.

    Parameters
    ----------
    y_true : pd.Series
        Held-out values with datetime index
    forecasts : Mapping[str, Forecast]
        Forecasts keyed by model name
    out_path : Path
        Output file path for the plot
    title : str, default="Forecast Comparison"
        Plot title
    ylabel : str
        Y-axis label
    """
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots()

    ax.plot(y_true.index, y_true.values, color="black", linewidth=1.5, label="actual")

    for i, (name, fc) in enumerate(forecasts.items()):
        color = _COLORS[i % len(_COLORS)]
        ax.plot(fc.index, fc.mean.values, color=color, linestyle="--", label=name)

    ax.set_ylabel(ylabel)
    ax.set_title(title)
    ax.legend(fontsize=7)
    fig.autofmt_xdate()
    plt.tight_layout()
    fig.savefig(out_path, dpi=300)
    plt.close(fig)


def plot_metric_comparison(df: pd.DataFrame,
                           metrics: Optional[list] = None,
                           out_path: Optional[Path] = None,
                           title: str = "Forecast accuracy on the held-out year") -> None:
    """
    Bar charts of accuracy metrics, one panel per metric and one bar per model.

    Parameters
    ----------
    df : pd.DataFrame
        Accuracy table indexed by model name
    metrics : list, optional
        Metric columns to plot (default RMSE, MAE, MAPE)
    out_path : Path
        Output file path for the plot
    title : str
        Plot title
    """
    metrics = [m for m in (metrics or ["RMSE", "MAE", "MAPE"]) if m in df.columns]
    if df.empty or not metrics or out_path is None:
        logger.warning("Cannot create metric comparison: missing data or metric columns")
        return

    ensure_dir(out_path.parent)
    models = list(df.index)

    fig, axes = plt.subplots(1, len(metrics), figsize=(3.2 * len(metrics), 4), squeeze=False)
    for j, metric in enumerate(metrics):
        ax = axes[0, j]
        vals = pd.to_numeric(df[metric], errors="coerce").values
        ax.bar(np.arange(len(models)), vals, width=0.6,
               color=[_COLORS[i % len(_COLORS)] for i in range(len(models))], alpha=0.8)
        ax.set_xticks(np.arange(len(models)))
        ax.set_xticklabels(models, rotation=45, ha="right", fontsize=6)
        ax.set_title(metric)
        ymax = np.nanmax(vals) if np.isfinite(vals).any() else np.nan
        if np.isfinite(ymax) and ymax > 0:
            ax.set_ylim(0, ymax * 1.2)

    fig.suptitle(title)
    plt.tight_layout()
    plt.savefig(out_path, dpi=300)
    plt.close(fig)
    logger.debug("Metric comparison saved to %s", out_path)


def plot_all_forecasts(train: pd.Series,
                       test: pd.Series,
                       forecasts: Dict[str, Forecast],
                       out_dir: Path,
                       prefix: str = "Forecast") -> Dict[str, Path]:
    """Save one forecast plot per model; returns the written paths keyed by model name."""
    paths: Dict[str, Path] = {}
    for name, fc in forecasts.items():
        safe = "_".join(part for part in "".join(ch if ch.isalnum() else "_" for ch in name).split("_") if part)
        path = out_dir / f"{prefix}_{safe}.png"
        plot_forecast(train, fc, path, test=test)
        paths[name] = path
    return paths

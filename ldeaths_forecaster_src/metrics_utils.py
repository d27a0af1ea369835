# ldeaths_forecaster_src/metrics_utils.py

import math
import logging
from itertools import combinations
from typing import Dict, List, Mapping, Union

import numpy as np
import pandas as pd

from .errors import MisalignedSeries
from .model_types import Forecast

logger = logging.getLogger(__name__)

ArrayLike = Union[List[float], np.ndarray, pd.Series]

ACCURACY_COLUMNS = ["ME", "RMSE", "MAE", "MPE", "MAPE", "sMAPE", "MASE", "ACF1", "TheilU"]


def to_1d_array(x: ArrayLike) -> np.ndarray:
    """
    Convert input to 1D numpy array, filtering out non-finite values.

    Parameters
    ----------
    x : Union[List[float], np.ndarray, pd.Series]
        Input data to convert

    Returns
    -------
    np.ndarray
        1D array containing only finite values
    """
    arr = np.asarray(x, dtype=float).ravel()
    return arr[np.isfinite(arr)]


def _paired(y_true: ArrayLike, y_hat: ArrayLike):
    yt = np.asarray(y_true, dtype=float).ravel()
    yh = np.asarray(y_hat, dtype=float).ravel()
    n = min(len(yt), len(yh))
    yt, yh = yt[:n], yh[:n]
    ok = np.isfinite(yt) & np.isfinite(yh)
    return yt[ok], yh[ok]


def mean_error(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """Mean of the errors ``actual - forecast``; positive means under-forecasting."""
    yt, yh = _paired(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    return float(np.mean(yt - yh))


def rmse(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Calculate Root Mean Square Error.

    Parameters
    ----------
    y_true : Union[List[float], np.ndarray, pd.Series]
        True values
    y_hat : Union[List[float], np.ndarray, pd.Series]
        Predicted values

    Returns
    -------
    float
        Root mean square error, or NaN if no valid data
    """
    yt, yh = _paired(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    return float(np.sqrt(np.mean((yt - yh) ** 2)))


def mae(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """Mean Absolute Error, or NaN if no valid data."""
    yt, yh = _paired(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    return float(np.mean(np.abs(yt - yh)))


def mpe(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """Mean Percentage Error in percent; zero actuals are skipped."""
    yt, yh = _paired(y_true, y_hat)
    ok = yt != 0.0
    if not ok.any():
        return float("nan")
    return float(np.mean((yt[ok] - yh[ok]) / yt[ok]) * 100.0)


def mape(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Calculate Mean Absolute Percentage Error.

    Observations with a zero actual value are skipped rather than stabilised;
    death counts are strictly positive.

    Returns
    -------
    float
        MAPE as percentage (0-100+), or NaN if no valid data
    """
    yt, yh = _paired(y_true, y_hat)
    ok = yt != 0.0
    if not ok.any():
        return float("nan")
    return float(np.mean(np.abs((yt[ok] - yh[ok]) / yt[ok])) * 100.0)


def smape(y_true: ArrayLike, y_hat: ArrayLike, eps: float = 1e-12) -> float:
    """
    Calculate Symmetric Mean Absolute Percentage Error.

    Parameters
    ----------
    y_true : Union[List[float], np.ndarray, pd.Series]
        True values
    y_hat : Union[List[float], np.ndarray, pd.Series]
        Predicted values
    eps : float, default=1e-12
        Small value to prevent division by zero

    Returns
    -------
    float
        sMAPE as percentage (0-200), or NaN if no valid data
    """
    yt, yh = _paired(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    denom = np.maximum(np.abs(yt) + np.abs(yh), eps)
    return float(np.mean(2.0 * np.abs(yh - yt) / denom) * 100.0)


def mase_metric(y_true: ArrayLike,
                y_hat: ArrayLike,
                y_train: ArrayLike,
                m: int = 12) -> float:
    """
    Calculate Mean Absolute Scaled Error.

    MASE scales the out-of-sample MAE by the in-sample MAE of the seasonal
    naive forecast on the training data.

    Parameters
    ----------
    y_true : Union[List[float], np.ndarray, pd.Series]
        True values
    y_hat : Union[List[float], np.ndarray, pd.Series]
        Predicted values
    y_train : Union[List[float], np.ndarray, pd.Series]
        Training data for scaling reference
    m : int, default=12
        Seasonal period for naive forecast (12 for monthly data)

    Returns
    -------
    float
        MASE value, or NaN if computation is not possible

    Notes
    -----
    Values < 1 indicate the forecast is better than the in-sample seasonal naive forecast.
    """
    num = mae(y_true, y_hat)
    tr = to_1d_array(y_train)
    if len(tr) <= m or not np.isfinite(num):
        return float("nan")

    denom = np.mean(np.abs(tr[m:] - tr[:-m]))
    if not np.isfinite(denom) or denom <= 0.0:
        return float("nan")
    return float(num / denom)


def error_acf1(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """Lag-1 autocorrelation of the forecast errors."""
    yt, yh = _paired(y_true, y_hat)
    e = yt - yh
    if e.size < 3:
        return float("nan")
    e = e - e.mean()
    denom = float(np.sum(e * e))
    if denom <= 0.0:
        return float("nan")
    return float(np.sum(e[1:] * e[:-1]) / denom)


def theil_u(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Theil's U statistic on relative changes.

    Compares the forecast relative changes ``f[t+1]/y[t] - 1`` with the
    actual relative changes ``y[t+1]/y[t] - 1``; a no-change forecast scores 1.

    Returns
    -------
    float
        Theil's U, or NaN if computation is not possible
    """
    yt, yh = _paired(y_true, y_hat)
    if yt.size < 2 or np.any(yt[:-1] == 0.0):
        return float("nan")

    fpe = yh[1:] / yt[:-1] - 1.0
    ape = yt[1:] / yt[:-1] - 1.0
    denom = float(np.sum(ape ** 2))
    if denom <= 0.0:
        return float("nan")
    return float(math.sqrt(float(np.sum((fpe - ape) ** 2)) / denom))


def interval_hit_rate(y_true: ArrayLike, lower: ArrayLike, upper: ArrayLike) -> float:
    """Share of actual values falling inside ``[lower, upper]``."""
    yt = np.asarray(y_true, dtype=float).ravel()
    lo = np.asarray(lower, dtype=float).ravel()
    hi = np.asarray(upper, dtype=float).ravel()
    n = min(len(yt), len(lo), len(hi))
    if n == 0:
        return float("nan")
    inside = (yt[:n] >= lo[:n]) & (yt[:n] <= hi[:n])
    return float(np.mean(inside))


def norm_cdf(z: float) -> float:
    """
    Calculate the cumulative distribution function of the standard normal distribution.

    Parameters
    ----------
    z : float
        Standard normal variable

    Returns
    -------
    float
        Probability that a standard normal random variable is less than z
    """
    return 0.5 * (1.0 + math.erf(z / math.sqrt(2.0)))


def dm_newey_west_var(d: np.ndarray, h: int) -> float:
    """
    Calculate Newey-West variance estimator for Diebold-Mariano test.

    Parameters
    ----------
    d : np.ndarray
        Array of loss differentials
    h : int
        Forecast horizon

    Returns
    -------
    float
        Variance estimate, or NaN if computation fails
    """
    n = len(d)
    if n < 3:
        return float("nan")

    dbar = float(np.mean(d))
    e = d - dbar
    L = max(0, int(h) - 1)

    # Auto-covariances
    gamma0 = float(np.mean(e * e))
    s_hat = gamma0
    for k in range(1, L + 1):
        cov = float(np.mean(e[k:] * e[:-k]))
        w = 1.0 - (k / (L + 1.0))
        s_hat += 2.0 * w * cov

    var_dbar = s_hat / n
    return float(var_dbar) if var_dbar > 0.0 else float("nan")


def diebold_mariano(y_true: ArrayLike,
                    y_hat1: ArrayLike,
                    y_hat2: ArrayLike,
                    h: int = 1, power: int = 2) -> tuple:
    """
    Perform the Diebold-Mariano test for predictive accuracy.

    Parameters
    ----------
    y_true : Union[List[float], np.ndarray, pd.Series]
        True values
    y_hat1 : Union[List[float], np.ndarray, pd.Series]
        Predictions from first method
    y_hat2 : Union[List[float], np.ndarray, pd.Series]
        Predictions from second method
    h : int, default=1
        Forecast horizon for variance adjustment
    power : int, default=2
        Power for loss function (1=absolute, 2=squared)

    Returns
    -------
    tuple[float, float]
        (test_statistic, p_value), both NaN if test cannot be performed

    Notes
    -----
    Null hypothesis: both methods have equal predictive accuracy. A negative
    statistic means method 1 has the smaller loss.
    """
    yt = np.asarray(y_true, dtype=float).ravel()
    y1 = np.asarray(y_hat1, dtype=float).ravel()
    y2 = np.asarray(y_hat2, dtype=float).ravel()
    n = min(len(yt), len(y1), len(y2))
    if n < 3:
        return float("nan"), float("nan")

    e1 = yt[:n] - y1[:n]
    e2 = yt[:n] - y2[:n]
    if power == 1:
        d = np.abs(e1) - np.abs(e2)
    else:
        d = e1 ** 2 - e2 ** 2
    d = d[np.isfinite(d)]

    var_dbar = dm_newey_west_var(d, h=h)
    if not np.isfinite(var_dbar) or var_dbar <= 0.0:
        return float("nan"), float("nan")

    dm_t = float(np.mean(d)) / math.sqrt(var_dbar)
    p = 2.0 * (1.0 - norm_cdf(abs(dm_t)))
    return float(dm_t), float(min(max(p, 0.0), 1.0))


def compute_metrics(y_true: ArrayLike,
                    y_hat: ArrayLike,
                    y_train: ArrayLike,
                    m: int = 12) -> Dict[str, float]:
    """
    Compute the point-forecast accuracy measures for one forecast.

    Parameters
    ----------
    y_true : Union[List[float], np.ndarray, pd.Series]
        Held-out values
    y_hat : Union[List[float], np.ndarray, pd.Series]
        Point forecasts
    y_train : Union[List[float], np.ndarray, pd.Series]
        Training data for MASE scaling
    m : int, default=12
        Seasonal period for MASE computation

    Returns
    -------
    Dict[str, float]
        ME, RMSE, MAE, MPE, MAPE, sMAPE, MASE, ACF1 and TheilU
    """
    return {
        "ME": mean_error(y_true, y_hat),
        "RMSE": rmse(y_true, y_hat),
        "MAE": mae(y_true, y_hat),
        "MPE": mpe(y_true, y_hat),
        "MAPE": mape(y_true, y_hat),
        "sMAPE": smape(y_true, y_hat),
        "MASE": mase_metric(y_true, y_hat, y_train, m=m),
        "ACF1": error_acf1(y_true, y_hat),
        "TheilU": theil_u(y_true, y_hat),
    }


def check_alignment(forecast: Forecast, test: pd.Series) -> None:
    """Raise MisalignedSeries unless the forecast timestamps equal the held-out timestamps."""
    if len(forecast.index) == len(test.index) and forecast.index.equals(test.index):
        return

    def _span(idx) -> str:
        if len(idx) == 0:
            return "empty"
        return f"{idx[0]:%Y-%m}..{idx[-1]:%Y-%m} ({len(idx)} points)"

    raise MisalignedSeries(
        f"forecast {forecast.model_name!r} covers {_span(forecast.index)}, held-out series covers {_span(test.index)}"
    )


def evaluate_forecasts(forecasts: Mapping[str, Forecast],
                       test: pd.Series,
                       train: pd.Series,
                       m: int = 12) -> pd.DataFrame:
    """
    Accuracy table with one row per model, scored against the held-out window.

    Parameters
    ----------
    forecasts : Mapping[str, Forecast]
        Forecasts keyed by model name
    test : pd.Series
        Held-out observations
    train : pd.Series
        Training observations (MASE scaling)
    m : int, default=12
        Seasonal period

    Returns
    -------
    pd.DataFrame
        Indexed by model name with the accuracy columns plus one
        ``PI<level>_hit_rate`` column per interval level

    Raises
    ------
    MisalignedSeries
        If any forecast index differs from ``test.index``
    """
    if not forecasts:
        raise ValueError("no forecasts to evaluate")

    rows: Dict[str, Dict[str, float]] = {}
    for name, fc in forecasts.items():
        check_alignment(fc, test)
        actual = test.to_numpy(dtype=float)
        row = compute_metrics(actual, fc.mean.to_numpy(dtype=float), train, m=m)
        for lvl in fc.levels:
            lo, hi = fc.interval(lvl)
            row[f"PI{lvl}_hit_rate"] = interval_hit_rate(actual, lo, hi)
        rows[name] = row
        logger.info("%s: RMSE=%.2f MAE=%.2f MAPE=%.2f%% MASE=%.3f",
                    name, row["RMSE"], row["MAE"], row["MAPE"], row["MASE"])

    table = pd.DataFrame.from_dict(rows, orient="index")
    table.index.name = "model"
    extra = [c for c in table.columns if c not in ACCURACY_COLUMNS]
    return table[ACCURACY_COLUMNS + extra]


def pairwise_diebold_mariano(forecasts: Mapping[str, Forecast],
                             test: pd.Series,
                             h: int = 1,
                             power: int = 2) -> pd.DataFrame:
    """Diebold-Mariano test for every pair of forecasts (first vs second)."""
    rows = []
    for (n1, f1), (n2, f2) in combinations(forecasts.items(), 2):
        check_alignment(f1, test)
        check_alignment(f2, test)
        dm_t, dm_p = diebold_mariano(test.to_numpy(dtype=float), f1.mean.to_numpy(), f2.mean.to_numpy(),
                                     h=h, power=power)
        rows.append({"model_1": n1, "model_2": n2, "DM_t": dm_t, "DM_p": dm_p})
    return pd.DataFrame(rows, columns=["model_1", "model_2", "DM_t", "DM_p"])

# ldeaths_forecaster_src/transform_utils.py

import logging
import warnings
from typing import Dict, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


def seasonal_difference(series: pd.Series, lag: int = 12) -> pd.Series:
    """
    Apply a lag-k difference to remove a seasonal pattern.

    The output at the later timestamp is ``y[t] - y[t - lag]`` so the result is
    ``lag`` observations shorter than the input and keeps the input's frequency.
    Used for diagnostics only; the estimator applies its own differencing from
    the model order.

    Parameters
    ----------
    series : pd.Series
        Input time series
    lag : int, default=12
        Differencing lag (seasonal period for monthly data)

    Returns
    -------
    pd.Series
        Differenced series of length ``len(series) - lag``

    Raises
    ------
    ValueError
        If lag is not a positive integer smaller than the series length

    Examples
    --------
    >>> s = pd.Series([1.0, 2.0, 4.0, 7.0])
    >>> seasonal_difference(s, lag=2).tolist()
    [3.0, 5.0]
    """
    if not isinstance(lag, (int, np.integer)) or lag <= 0:
        raise ValueError(f"lag must be a positive integer, got {lag!r}")
    if lag >= len(series):
        raise ValueError(f"lag {lag} leaves nothing of a series of length {len(series)}")

    out = series.diff(lag).iloc[lag:]
    if series.name is not None:
        out = out.rename(f"{series.name}_diff{lag}")
    logger.debug("Seasonal difference at lag %d: %d -> %d observations", lag, len(series), len(out))
    return out


def sample_acf(series: Union[pd.Series, np.ndarray], nlags: int = 36) -> pd.Series:
    """
    Sample autocorrelation function indexed by lag (lag 0 included).

    ``nlags`` is capped at ``n - 1``.
    """
    from statsmodels.tsa.stattools import acf

    values = pd.Series(series).dropna().to_numpy(dtype=float)
    if values.size < 2:
        raise ValueError("at least two observations are required for an ACF")
    nlags = int(min(nlags, values.size - 1))
    acf_vals = acf(values, nlags=nlags, fft=False)
    return pd.Series(acf_vals, index=pd.RangeIndex(0, nlags + 1, name="lag"), name="acf")


def acf_comparison(series: pd.Series, lag: int = 12, nlags: int = 36) -> pd.DataFrame:
    """
    ACF of a series next to the ACF of its seasonal difference.

    Returns a frame indexed by lag with columns ``original`` and ``differenced``.
    Lags beyond the shorter series' range are NaN.
    """
    original = sample_acf(series, nlags=nlags)
    differenced = sample_acf(seasonal_difference(series, lag=lag), nlags=nlags)
    return pd.concat({"original": original, "differenced": differenced}, axis=1)


def safe_adf_pval(series: pd.Series) -> float:
    """
    Safely compute ADF test p-value with error handling.

    This function performs the Augmented Dickey-Fuller test on a time series
    while handling edge cases like insufficient data or numerical issues.

    Parameters
    ----------
    series : pd.Series
        Time series to test for stationarity

    Returns
    -------
    float
        ADF test p-value, or NaN if test cannot be performed

    Notes
    -----
    Requires at least 12 observations to perform the test reliably.
    """
    from statsmodels.tsa.stattools import adfuller

    s = pd.Series(series).dropna()
    if len(s) < 12:
        return float("nan")
    try:
        with warnings.catch_warnings():
            # newer statsmodels warn about the tuple return type
            warnings.simplefilter("ignore", FutureWarning)
            out = adfuller(s)
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.debug("ADF test failed: %s", e)
        return float("nan")
    pvalue = getattr(out, "pvalue", None)
    return float(out[1] if pvalue is None else pvalue)


def stationarity_summary(series: pd.Series, lag: int = 12) -> Dict[str, float]:
    """ADF p-values of the series before and after seasonal differencing."""
    return {
        "adf_p_original": safe_adf_pval(series),
        "adf_p_differenced": safe_adf_pval(seasonal_difference(series, lag=lag)),
    }

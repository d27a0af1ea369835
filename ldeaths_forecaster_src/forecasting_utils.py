# ldeaths_forecaster_src/forecasting_utils.py

import hashlib
import logging
import warnings
from typing import Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from scipy.stats import norm
from statsmodels.tools.sm_exceptions import ConvergenceWarning
from statsmodels.tsa.arima_process import arma2ma
from statsmodels.tsa.statespace.sarimax import SARIMAX

from .errors import NonConvergence
from .model_types import FittedModel, Forecast, SeasonalOrder

logger = logging.getLogger(__name__)

ROOT_TOLERANCE = 1.01


def validate_sarima_inputs(endog: pd.Series, order: SeasonalOrder, drift: bool = False) -> pd.Series:
    """
    Validate and normalise a training series for SARIMA estimation.

    Parameters
    ----------
    endog : pd.Series
        Training series with a DatetimeIndex
    order : SeasonalOrder
        Candidate order (used to check the series is long enough)
    drift : bool
        Whether a drift term will be estimated

    Returns
    -------
    pd.Series
        Float series whose index carries an explicit frequency

    Raises
    ------
    ValueError
        If the series is empty, contains NaNs, has an irregular index, or is
        too short for the requested number of parameters
    """
    if endog.empty:
        raise ValueError("Endogenous series cannot be empty")
    if endog.isna().any():
        raise ValueError(f"Endogenous series contains {int(endog.isna().sum())} missing values")

    if not isinstance(endog.index, pd.DatetimeIndex):
        raise ValueError("Endogenous series must carry a DatetimeIndex")
    if endog.index.freq is None:
        freq = pd.infer_freq(endog.index) if len(endog) >= 3 else None
        if freq is None:
            raise ValueError("Cannot infer a regular frequency for the endogenous series index")
        endog = endog.asfreq(freq)

    n_effective = len(endog) - order.d - order.D * order.s
    n_params = order.n_arma + int(drift) + 1
    if n_effective <= n_params:
        raise ValueError(
            f"Insufficient observations for {order}: {n_effective} after differencing, {n_params} parameters"
        )
    return endog.astype(float)


def _coefficient_table(results) -> pd.DataFrame:
    params = pd.Series(results.params)
    keep = [name for name in params.index if name != "sigma2"]

    table = pd.DataFrame({
        "estimate": params[keep],
        "std_error": pd.Series(results.bse)[keep],
        "z": pd.Series(results.zvalues)[keep],
        "p_value": pd.Series(results.pvalues)[keep],
    })
    table["significant"] = table["p_value"] < 0.05
    table.index.name = "term"
    return table


def min_root_modulus(results) -> float:
    roots: List[float] = []
    for attr in ("arroots", "maroots"):
        vals = np.asarray(getattr(results, attr, np.array([])))
        if vals.size:
            roots.extend(np.abs(vals).tolist())
    return float(min(roots)) if roots else float("inf")


def differencing_polynomial(order: SeasonalOrder) -> np.ndarray:
    """Coefficients of (1 - B)^d (1 - B^s)^D in increasing lag order."""
    poly = np.array([1.0])
    for _ in range(order.d):
        poly = np.polymul(poly, [1.0, -1.0])
    seasonal = np.zeros(order.s + 1)
    seasonal[0], seasonal[-1] = 1.0, -1.0
    for _ in range(order.D):
        poly = np.polymul(poly, seasonal)
    return poly


def _time_trend(start: int, n: int, index=None) -> pd.DataFrame:
    return pd.DataFrame({"drift": np.arange(start, start + n, dtype=float)}, index=index)


def fit_sarima(endog: pd.Series,
               order: SeasonalOrder,
               drift: bool = False,
               maxiter: int = 200,
               check_roots: bool = False,
               label: Optional[str] = None) -> FittedModel:
    """
    Fit a seasonal ARIMA model by maximum likelihood.

    The series is differenced ahead of estimation (``simple_differencing``),
    so the likelihood is that of the stationary ARMA process on the
    differenced data and the first ``d + D*s`` observations only provide
    starting values. With ``drift`` a linear time trend enters as a
    regressor; after one order of differencing it is a constant whose
    coefficient is the per-period drift.

    Parameters
    ----------
    endog : pd.Series
        Training series
    order : SeasonalOrder
        Full (p,d,q)x(P,D,Q)[s] order
    drift : bool, default=False
        Include a linear time trend
    maxiter : int, default=200
        Iteration cap for the likelihood optimiser
    check_roots : bool, default=False
        Reject fits whose AR or MA roots lie within 1.01 of the unit circle
    label : Optional[str]
        Display name for reports; defaults to the order string

    Returns
    -------
    FittedModel
        Immutable fitted model with coefficient table and fit statistics

    Raises
    ------
    NonConvergence
        If the optimiser does not converge, the fit raises a numerical error,
        the information criteria are not finite, or (with ``check_roots``)
        the fitted polynomials are numerically non-stationary/non-invertible
    """
    window = "empty window"
    if len(endog) and isinstance(endog.index, pd.DatetimeIndex):
        window = f"{endog.index[0].strftime('%Y-%m')}..{endog.index[-1].strftime('%Y-%m')}"
    what = f"{order}{' with drift' if drift else ''} on {window}"

    try:
        endog = validate_sarima_inputs(endog, order, drift)
    except ValueError as e:
        raise NonConvergence(f"{what}: {e}") from e

    exog = _time_trend(1, len(endog), endog.index) if drift else None
    model = SARIMAX(
        endog,
        exog,
        order=order.order,
        seasonal_order=order.seasonal_order,
        simple_differencing=True,
    )

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", ConvergenceWarning)
        try:
            res = model.fit(maxiter=maxiter, disp=False)
        except (ValueError, np.linalg.LinAlgError, OverflowError) as e:
            raise NonConvergence(f"{what}: estimation failed: {e}") from e

    retvals = getattr(res, "mle_retvals", None) or {}
    converged = bool(retvals.get("converged", True))
    if not converged or any(issubclass(w.category, ConvergenceWarning) for w in caught):
        raise NonConvergence(f"{what}: optimiser did not converge within {maxiter} iterations")

    aic, aicc, bic = float(res.aic), float(res.aicc), float(res.bic)
    if not np.all(np.isfinite([aic, aicc, bic, float(res.llf)])):
        raise NonConvergence(f"{what}: non-finite likelihood or information criteria")

    if check_roots:
        min_root = min_root_modulus(res)
        if min_root < ROOT_TOLERANCE:
            raise NonConvergence(f"{what}: root modulus {min_root:.4f} too close to the unit circle")

    fitted = FittedModel(
        order=order,
        drift=drift,
        coefficients=_coefficient_table(res),
        loglik=float(res.llf),
        aic=aic,
        aicc=aicc,
        bic=bic,
        sigma2=float(pd.Series(res.params).get("sigma2", np.nan)),
        n_obs=int(res.nobs),
        n_params=int(len(res.params)),
        results=res,
        label=label,
        endog=endog,
    )
    logger.debug("Fitted %s: AIC=%.3f AICc=%.3f BIC=%.3f", fitted.name, aic, aicc, bic)
    return fitted


def forecast_sarima(model: FittedModel,
                    horizon: int = 12,
                    levels: Sequence[int] = (80, 95)) -> Forecast:
    """
    Multi-step forecasts with prediction intervals from a fitted model.

    The estimated model describes the differenced series, so its forecasts
    are integrated back to levels with the last ``d + D*s`` training values.
    Forecast variances come from the state-space forecast of the differenced
    series plus the psi-weight contribution of the integration, which is
    zero for steps up to one season ahead when ``d == 0``.

    Parameters
    ----------
    model : FittedModel
        Model returned by ``fit_sarima``
    horizon : int, default=12
        Number of steps past the end of the training window
    levels : Sequence[int], default=(80, 95)
        Interval coverage levels in percent

    Returns
    -------
    Forecast
        Forecast whose index continues the training index at its frequency
    """
    if horizon <= 0:
        raise ValueError(f"horizon must be positive, got {horizon}")
    if model.results is None or model.endog is None:
        raise ValueError(f"model {model.name} carries no estimation results to forecast from")

    endog = model.endog
    exog = _time_trend(len(endog) + 1, horizon).to_numpy() if model.drift else None
    fc = model.results.get_forecast(steps=horizon, exog=exog)
    diff_mean = np.asarray(fc.predicted_mean, dtype=float)
    diff_var = np.asarray(fc.var_pred_mean, dtype=float).reshape(-1)

    delta = differencing_polynomial(model.order)
    history = list(endog.to_numpy(dtype=float))
    mean = np.empty(horizon)
    for h in range(horizon):
        # y[t] = w[t] - sum_k delta[k] * y[t-k]
        mean[h] = diff_mean[h] - sum(delta[k] * history[-k] for k in range(1, len(delta)))
        history.append(mean[h])

    res = model.results
    psi = arma2ma(res.polynomial_reduced_ar, res.polynomial_reduced_ma, lags=horizon)
    psi_level = arma2ma(np.polymul(res.polynomial_reduced_ar, delta), res.polynomial_reduced_ma, lags=horizon)
    extra = model.sigma2 * (np.cumsum(psi_level ** 2) - np.cumsum(psi ** 2))
    std = np.sqrt(diff_var + np.maximum(extra, 0.0))

    freq = endog.index.freq or pd.infer_freq(endog.index)
    index = pd.date_range(endog.index[-1], periods=horizon + 1, freq=freq)[1:]
    frame = pd.DataFrame({"mean": mean}, index=index)
    for lvl in sorted(set(int(x) for x in levels)):
        z = float(norm.ppf(0.5 + lvl / 200.0))
        frame[f"lower_{lvl}"] = mean - z * std
        frame[f"upper_{lvl}"] = mean + z * std
    frame.index.name = "date"

    logger.info("Forecast %d steps from %s (%s to %s)", horizon, model.name,
                frame.index[0].strftime("%Y-%m"), frame.index[-1].strftime("%Y-%m"))
    return Forecast(model_name=model.name, frame=frame, levels=tuple(sorted(set(int(x) for x in levels))))


def forecast_models(models: Iterable[FittedModel],
                    horizon: int = 12,
                    levels: Sequence[int] = (80, 95)) -> Dict[str, Forecast]:
    """Forecast several models over the same horizon, keyed by model name."""
    out: Dict[str, Forecast] = {}
    for m in models:
        if m.name in out:
            raise ValueError(f"duplicate model name {m.name!r}; pass a distinct label")
        out[m.name] = forecast_sarima(m, horizon=horizon, levels=levels)
    return out


def seasonal_naive_forecast(endog: pd.Series,
                            horizon: int = 12,
                            m: int = 12,
                            levels: Sequence[int] = (80, 95),
                            name: str = "seasonal naive") -> Forecast:
    """
    Seasonal naive benchmark: each month repeats its value from one season earlier.

    Interval half-widths use the root mean square of the in-sample seasonal
    differences, scaled by ``sqrt(k)`` where ``k`` is the number of seasons
    the step lies ahead.
    """
    if len(endog) < m:
        raise ValueError(f"need at least {m} observations for a seasonal naive forecast, got {len(endog)}")
    freq = endog.index.freq or pd.infer_freq(endog.index)
    if freq is None:
        raise ValueError("Cannot infer a regular frequency for the seasonal naive forecast")

    index = pd.date_range(endog.index[-1], periods=horizon + 1, freq=freq)[1:]
    last_season = endog.iloc[-m:].to_numpy(dtype=float)
    mean = np.array([last_season[h % m] for h in range(horizon)])

    resid = (endog - endog.shift(m)).dropna().to_numpy(dtype=float)
    sigma = float(np.sqrt(np.mean(resid ** 2))) if resid.size else float("nan")
    k = np.floor(np.arange(horizon) / m) + 1.0

    frame = pd.DataFrame({"mean": mean}, index=index)
    for lvl in sorted(set(int(x) for x in levels)):
        z = float(norm.ppf(0.5 + lvl / 200.0))
        half = z * sigma * np.sqrt(k)
        frame[f"lower_{lvl}"] = mean - half
        frame[f"upper_{lvl}"] = mean + half
    frame.index.name = "date"
    return Forecast(model_name=name, frame=frame, levels=tuple(sorted(set(int(x) for x in levels))))


def hash_forecast(seq: Union[List[float], np.ndarray, pd.Series]) -> str:
    """
    Generate a hash fingerprint for a forecast sequence.

    This function creates a unique identifier for forecast outputs, useful for
    detecting duplicate runs or verifying forecast reproducibility.

    Parameters
    ----------
    seq : Union[List[float], np.ndarray, pd.Series]
        Forecast sequence to hash

    Returns
    -------
    str
        16-character SHA-1 hash of the forecast sequence
    """
    arr = np.ascontiguousarray(np.asarray(seq, dtype=np.float64))
    return hashlib.sha1(arr.tobytes()).hexdigest()[:16]

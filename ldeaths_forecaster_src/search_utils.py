# ldeaths_forecaster_src/search_utils.py

"""
Automatic SARIMA order selection by information criterion.

Two strategies share one candidate evaluator:

- ``exhaustive`` fits every (p, q, P, Q) within the bounds, each with and
  without drift, and keeps the best.
- ``stepwise`` starts from a handful of seed orders and greedily moves to the
  first neighbouring order that improves the criterion until none does.

Both modes draw candidates from the same bounded set, so the exhaustive
selection never scores worse than the stepwise one on the same data.
"""

import logging
from dataclasses import dataclass
from itertools import product
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd
from tqdm.auto import tqdm

from .errors import NoConvergentModel, NonConvergence
from .forecasting_utils import ROOT_TOLERANCE, fit_sarima, min_root_modulus
from .model_types import CandidateFit, SearchResult, SeasonalOrder

logger = logging.getLogger(__name__)

SEARCH_MODES = ("exhaustive", "stepwise")
CRITERIA = ("aic", "aicc", "bic")
STEPWISE_MAX_MODELS = 94

CandidateKey = Tuple[Tuple[int, int, int, int], bool]


@dataclass(frozen=True)
class SearchBounds:
    """Upper bounds for the searched order components (lower bounds are zero)."""

    max_p: int = 5
    max_q: int = 5
    max_P: int = 2
    max_Q: int = 2
    max_order: int = 5

    def __post_init__(self):
        for name in ("max_p", "max_q", "max_P", "max_Q", "max_order"):
            val = getattr(self, name)
            if not isinstance(val, (int, np.integer)) or val < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {val!r}")

    def contains(self, p: int, q: int, P: int, Q: int) -> bool:
        return (
            0 <= p <= self.max_p
            and 0 <= q <= self.max_q
            and 0 <= P <= self.max_P
            and 0 <= Q <= self.max_Q
            and p + q + P + Q <= self.max_order
        )

    def grid(self) -> List[Tuple[int, int, int, int]]:
        """Every admissible (p, q, P, Q), most parsimonious first."""
        combos = [
            c for c in product(range(self.max_p + 1), range(self.max_q + 1),
                               range(self.max_P + 1), range(self.max_Q + 1))
            if sum(c) <= self.max_order
        ]
        return sorted(combos, key=lambda c: (sum(c), c))


def drift_options(d: int, D: int, allow_drift: bool = True) -> Tuple[bool, ...]:
    """
    Drift settings worth comparing for the given differencing.

    A linear trend survives exactly one order of differencing as a constant,
    so drift is only estimable when ``d + D == 1``.
    """
    if allow_drift and d + D == 1:
        return (False, True)
    return (False,)


def selection_key(candidate: CandidateFit, criterion: str) -> Tuple[float, int, bool]:
    """Sort key: criterion, then fewer ARMA terms, then no drift before drift."""
    value = candidate.criterion(criterion)
    if not candidate.usable or not np.isfinite(value):
        value = float("inf")
    return (value, candidate.order.n_arma, candidate.drift)


def evaluate_candidate(endog: pd.Series,
                       order: SeasonalOrder,
                       drift: bool,
                       maxiter: int = 200) -> CandidateFit:
    """
    Fit one candidate and record the outcome instead of raising.

    Failed estimations are marked ``failed``; fits with AR or MA roots inside
    the 1.01 tolerance of the unit circle are marked ``unstable``.
    """
    try:
        fitted = fit_sarima(endog, order, drift=drift, maxiter=maxiter)
    except NonConvergence as e:
        logger.debug("Candidate %s drift=%s failed: %s", order, drift, e.detail)
        return CandidateFit(order=order, drift=drift, status="failed", message=e.detail)

    if fitted.results is not None:
        min_root = min_root_modulus(fitted.results)
        if min_root < ROOT_TOLERANCE:
            return CandidateFit(
                order=order, drift=drift, aic=fitted.aic, aicc=fitted.aicc, bic=fitted.bic,
                status="unstable", message=f"root modulus {min_root:.4f} < {ROOT_TOLERANCE}",
            )

    return CandidateFit(order=order, drift=drift, aic=fitted.aic, aicc=fitted.aicc, bic=fitted.bic)


def _finish(mode: str, criterion: str, endog: pd.Series,
            candidates: List[CandidateFit]) -> SearchResult:
    usable = [c for c in candidates if c.usable and np.isfinite(c.criterion(criterion))]
    if not usable:
        window = f"{endog.index[0]}..{endog.index[-1]}" if len(endog) else "empty window"
        raise NoConvergentModel(
            f"{mode} search over {len(candidates)} candidates on {window} produced no stable fit"
        )
    best = min(usable, key=lambda c: selection_key(c, criterion))
    n_failed = len(candidates) - len(usable)
    logger.info("%s search: selected %s%s with %s=%.3f (%d candidates, %d rejected)",
                mode, best.order, " with drift" if best.drift else "", criterion.upper(),
                best.criterion(criterion), len(candidates), n_failed)
    return SearchResult(
        mode=mode,
        criterion=criterion,
        order=best.order,
        drift=best.drift,
        value=best.criterion(criterion),
        candidates=list(candidates),
    )


def exhaustive_search(endog: pd.Series,
                      d: int = 0,
                      D: int = 1,
                      s: int = 12,
                      bounds: Optional[SearchBounds] = None,
                      allow_drift: bool = True,
                      criterion: str = "aic",
                      maxiter: int = 200,
                      progress: bool = True) -> SearchResult:
    """
    Grid-search SARIMA orders and rank them by information criterion.

    This function fits every (p, q, P, Q) combination admitted by ``bounds``
    with the differencing orders fixed, once with and once without drift
    where drift is estimable, and selects the best usable candidate.

    Parameters
    ----------
    endog : pd.Series
        Training series
    d, D, s : int
        Non-seasonal differencing, seasonal differencing and seasonal period
    bounds : Optional[SearchBounds]
        Component bounds; defaults to p, q <= 5, P, Q <= 2, p+q+P+Q <= 5
    allow_drift : bool, default=True
        Compare drift/no-drift variants of each order
    criterion : str, default="aic"
        One of 'aic', 'aicc', 'bic'
    maxiter : int, default=200
        Optimiser iteration cap per candidate
    progress : bool, default=True
        Display a tqdm progress bar

    Returns
    -------
    SearchResult
        Selected order plus the full candidate table

    Raises
    ------
    NoConvergentModel
        If no candidate produced a usable fit
    """
    bounds = bounds or SearchBounds()
    criterion = _check_criterion(criterion)

    jobs = [(pqPQ, drift) for pqPQ in bounds.grid() for drift in drift_options(d, D, allow_drift)]
    candidates: List[CandidateFit] = []
    for pqPQ, drift in tqdm(jobs, desc="Exhaustive SARIMA search", disable=not progress):
        order = SeasonalOrder.from_pqPQ(pqPQ, d, D, s)
        candidates.append(evaluate_candidate(endog, order, drift, maxiter=maxiter))

    return _finish("exhaustive", criterion, endog, candidates)


def _seed_keys(bounds: SearchBounds, drifts: Tuple[bool, ...]) -> List[CandidateKey]:
    with_drift = drifts[-1]
    keys: List[CandidateKey] = [
        (pqPQ, with_drift) for pqPQ in [(2, 2, 1, 1), (0, 0, 0, 0), (1, 0, 1, 0), (0, 1, 0, 1)]
    ]
    if with_drift:
        keys.append(((0, 0, 0, 0), False))

    out: List[CandidateKey] = []
    for key in keys:
        if key not in out and bounds.contains(*key[0]):
            out.append(key)
    return out


# (P, Q) moves before (p, q) moves: single steps down, single steps up,
# then the four joint moves
_STEPS = [(-1, 0), (0, -1), (1, 0), (0, 1), (-1, -1), (-1, 1), (1, -1), (1, 1)]
NEIGHBOUR_MOVES = (
    [(0, 0, a, b) for a, b in _STEPS]
    + [(a, b, 0, 0) for a, b in _STEPS]
)


def _neighbours(key: CandidateKey, bounds: SearchBounds,
                drifts: Tuple[bool, ...]) -> Iterator[CandidateKey]:
    (p, q, P, Q), drift = key
    for dp, dq, dP, dQ in NEIGHBOUR_MOVES:
        cand = (p + dp, q + dq, P + dP, Q + dQ)
        if bounds.contains(*cand):
            yield (cand, drift)
    if len(drifts) > 1:
        yield ((p, q, P, Q), not drift)


def stepwise_search(endog: pd.Series,
                    d: int = 0,
                    D: int = 1,
                    s: int = 12,
                    bounds: Optional[SearchBounds] = None,
                    allow_drift: bool = True,
                    criterion: str = "aic",
                    maxiter: int = 200,
                    max_models: int = STEPWISE_MAX_MODELS) -> SearchResult:
    """
    Greedy stepwise order search.

    Seeds ARIMA(2,d,2)(1,D,1), (0,d,0)(0,D,0), (1,d,0)(1,D,0) and
    (0,d,1)(0,D,1), all with drift when estimable, plus the null model
    without drift. From the best seed, the incumbent is replaced by the first
    neighbour (one or both of p/q or P/Q moved by one, or drift toggled) that
    strictly improves the criterion. The search stops at a local optimum or
    after ``max_models`` fitted candidates.

    A local optimum may score worse than the exhaustive optimum; that is the
    expected trade-off, not an error.

    Raises
    ------
    NoConvergentModel
        If neither the seeds nor any visited neighbour produced a usable fit
    """
    bounds = bounds or SearchBounds()
    criterion = _check_criterion(criterion)
    drifts = drift_options(d, D, allow_drift)
    cache: Dict[CandidateKey, CandidateFit] = {}

    def visit(key: CandidateKey) -> CandidateFit:
        if key not in cache:
            order = SeasonalOrder.from_pqPQ(key[0], d, D, s)
            cache[key] = evaluate_candidate(endog, order, key[1], maxiter=maxiter)
        return cache[key]

    seeds = [visit(k) for k in _seed_keys(bounds, drifts)]
    best = min(seeds, key=lambda c: selection_key(c, criterion))

    improved = True
    while improved and len(cache) < max_models:
        improved = False
        best_key: CandidateKey = (best.order.pqPQ, best.drift)
        for key in _neighbours(best_key, bounds, drifts):
            if len(cache) >= max_models:
                logger.info("Stepwise search stopped after %d candidates", len(cache))
                break
            cand = visit(key)
            if selection_key(cand, criterion)[0] < selection_key(best, criterion)[0]:
                logger.debug("Stepwise move %s -> %s (%s %.3f -> %.3f)",
                             best_key, key, criterion, best.criterion(criterion), cand.criterion(criterion))
                best = cand
                improved = True
                break

    return _finish("stepwise", criterion, endog, list(cache.values()))


def search_orders(endog: pd.Series,
                  d: int = 0,
                  D: int = 1,
                  s: int = 12,
                  mode: str = "exhaustive",
                  bounds: Optional[SearchBounds] = None,
                  allow_drift: bool = True,
                  criterion: str = "aic",
                  maxiter: int = 200) -> SearchResult:
    """Dispatch to the exhaustive or stepwise order search."""
    mode = (mode or "").lower()
    if mode == "exhaustive":
        return exhaustive_search(endog, d=d, D=D, s=s, bounds=bounds, allow_drift=allow_drift,
                                 criterion=criterion, maxiter=maxiter)
    if mode == "stepwise":
        return stepwise_search(endog, d=d, D=D, s=s, bounds=bounds, allow_drift=allow_drift,
                               criterion=criterion, maxiter=maxiter)
    raise ValueError(f"Invalid search mode '{mode}'. Must be one of: {list(SEARCH_MODES)}")


def _check_criterion(criterion: str) -> str:
    crit = (criterion or "").lower()
    if crit not in CRITERIA:
        raise ValueError(f"Invalid criterion '{criterion}'. Must be one of: {list(CRITERIA)}")
    return crit

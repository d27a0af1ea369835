import types

import numpy as np
import pandas as pd

import pytest

from ldeaths_forecaster_src import search_utils as su
from ldeaths_forecaster_src.errors import NoConvergentModel, NonConvergence
from ldeaths_forecaster_src.model_types import FittedModel, SeasonalOrder
from ldeaths_forecaster_src.search_utils import (
    SearchBounds, drift_options, exhaustive_search, search_orders, stepwise_search
)


def _stub_fit(score, calls=None, fail=None, roots=None):
    """Replacement for fit_sarima scoring candidates with ``score(pqPQ, drift)``."""

    def _fit(endog, order, drift=False, maxiter=200, **kwargs):
        key = (order.pqPQ, drift)
        if calls is not None:
            calls.append(key)
        if fail is not None and fail(*key):
            raise NonConvergence(f"{order} did not converge")
        value = float(score(*key))
        results = None
        if roots is not None:
            results = types.SimpleNamespace(arroots=np.array([roots(*key)]), maroots=np.array([]))
        return FittedModel(
            order=order, drift=drift, coefficients=pd.DataFrame(), loglik=-value / 2.0,
            aic=value, aicc=value + 1.0, bic=value + 2.0, sigma2=1.0, n_obs=60,
            n_params=order.n_arma + int(drift) + 1, results=results,
        )

    return _fit


def _bowl(pqPQ, drift):
    p, q, P, Q = pqPQ
    return 100.0 + (p - 2) ** 2 + q ** 2 + (P - 1) ** 2 + Q ** 2 - 2.0 * drift


def test_drift_only_with_single_differencing():
    assert drift_options(0, 1) == (False, True)
    assert drift_options(1, 1) == (False,)
    assert drift_options(0, 0) == (False,)
    assert drift_options(0, 1, allow_drift=False) == (False,)


def test_bounds_grid_respects_max_order():
    bounds = SearchBounds(max_p=5, max_q=5, max_P=2, max_Q=2, max_order=5)
    grid = bounds.grid()
    assert grid[0] == (0, 0, 0, 0)
    assert all(sum(c) <= 5 for c in grid)
    assert (5, 0, 0, 0) in grid and (3, 2, 1, 0) not in grid
    assert len(grid) == len(set(grid))


def test_exhaustive_picks_minimum(monkeypatch, train_test):
    train, _ = train_test
    monkeypatch.setattr(su, "fit_sarima", _stub_fit(_bowl))

    res = exhaustive_search(train, bounds=SearchBounds(3, 2, 2, 1, 5), progress=False)
    assert res.order == SeasonalOrder(2, 0, 0, 1, 1, 0, 12)
    assert res.drift is True
    assert res.value == pytest.approx(98.0)
    # every admissible order, with and without drift
    assert res.n_evaluated == 2 * len(SearchBounds(3, 2, 2, 1, 5).grid())


def test_tie_break_prefers_fewer_terms_then_no_drift(monkeypatch, train_test):
    train, _ = train_test

    def _flat(pqPQ, drift):
        return 100.0 if sum(pqPQ) <= 1 else 110.0

    monkeypatch.setattr(su, "fit_sarima", _stub_fit(_flat))
    res = exhaustive_search(train, bounds=SearchBounds(2, 2, 1, 1, 3), progress=False)
    assert res.order.pqPQ == (0, 0, 0, 0)
    assert res.drift is False

    def _drift_vs_ar(pqPQ, drift):
        if pqPQ == (0, 0, 0, 0) and drift:
            return 100.0
        if pqPQ == (1, 0, 0, 0) and not drift:
            return 100.0
        return 120.0

    monkeypatch.setattr(su, "fit_sarima", _stub_fit(_drift_vs_ar))
    res = exhaustive_search(train, bounds=SearchBounds(2, 2, 1, 1, 3), progress=False)
    assert res.order.pqPQ == (0, 0, 0, 0)
    assert res.drift is True


def test_failed_and_unstable_fits_are_recorded_not_raised(monkeypatch, train_test):
    train, _ = train_test
    monkeypatch.setattr(su, "fit_sarima", _stub_fit(
        lambda pqPQ, drift: 100.0 - sum(pqPQ),
        fail=lambda pqPQ, drift: pqPQ[0] >= 2,
        roots=lambda pqPQ, drift: 1.001 if pqPQ[1] >= 1 else 1.5,
    ))

    res = exhaustive_search(train, bounds=SearchBounds(2, 1, 1, 1, 4), progress=False)
    table = res.table()
    assert set(table["status"]) == {"ok", "failed", "unstable"}
    assert (table.loc[table["status"] == "failed", "(p,q,P,Q)"].map(lambda c: c[0]) >= 2).all()
    # the lowest AIC candidates were excluded, so the winner has p<=1 and q=0
    assert res.order.pqPQ == (1, 0, 1, 1)
    assert table.iloc[0]["status"] == "ok"


def test_no_usable_candidate_raises(monkeypatch, train_test):
    train, _ = train_test
    monkeypatch.setattr(su, "fit_sarima", _stub_fit(lambda *k: 100.0, fail=lambda *k: True))

    with pytest.raises(NoConvergentModel) as exc:
        search_orders(train, mode="stepwise", bounds=SearchBounds(1, 1, 1, 1, 2))
    assert exc.value.stage == "order_search"


def test_stepwise_walks_to_bowl_minimum(monkeypatch, train_test):
    train, _ = train_test
    calls = []
    monkeypatch.setattr(su, "fit_sarima", _stub_fit(_bowl, calls=calls))

    res = stepwise_search(train)
    assert res.order.pqPQ == (2, 0, 1, 0)
    assert res.drift is True
    assert res.value == pytest.approx(98.0)
    # seeds come first (2,2,1,1 exceeds max_order=5) and nothing is fitted twice
    assert calls[:4] == [
        ((0, 0, 0, 0), True), ((1, 0, 1, 0), True), ((0, 1, 0, 1), True), ((0, 0, 0, 0), False),
    ]
    assert len(calls) == len(set(calls)) == res.n_evaluated


def test_stepwise_stops_at_local_optimum_and_exhaustive_dominates(monkeypatch, train_test):
    train, _ = train_test

    def _trap(pqPQ, drift):
        # an isolated global minimum no single step can reach from the null model
        if pqPQ == (2, 0, 2, 0) and not drift:
            return 50.0
        return 100.0 + sum(pqPQ) + 0.5 * drift

    monkeypatch.setattr(su, "fit_sarima", _stub_fit(_trap))
    step = stepwise_search(train)
    full = exhaustive_search(train, progress=False)

    assert step.order.pqPQ == (0, 0, 0, 0) and step.drift is False
    assert step.value == pytest.approx(100.0)
    # 4 seeds plus the 6 admissible order moves around the null model
    assert step.n_evaluated == 10
    assert full.order.pqPQ == (2, 0, 2, 0)
    assert full.value <= step.value


def test_stepwise_respects_max_models(monkeypatch, train_test):
    train, _ = train_test
    calls = []
    monkeypatch.setattr(su, "fit_sarima", _stub_fit(_bowl, calls=calls))

    res = stepwise_search(train, max_models=7)
    assert res.n_evaluated <= 7
    assert len(calls) <= 7


def test_invalid_mode_and_criterion(train_test):
    train, _ = train_test
    with pytest.raises(ValueError, match="search mode"):
        search_orders(train, mode="random")
    with pytest.raises(ValueError, match="criterion"):
        search_orders(train, mode="stepwise", criterion="hqic")


def test_bic_criterion_is_used(monkeypatch, train_test):
    train, _ = train_test

    def _fit(endog, order, drift=False, maxiter=200, **kwargs):
        # AIC favours the larger model, BIC the null model
        big = order.pqPQ == (1, 0, 0, 0)
        return FittedModel(order=order, drift=drift, coefficients=pd.DataFrame(), loglik=0.0,
                           aic=90.0 if big else 100.0, aicc=100.0, bic=120.0 if big else 100.0 + drift,
                           sigma2=1.0, n_obs=60, n_params=1)

    monkeypatch.setattr(su, "fit_sarima", _fit)
    bounds = SearchBounds(1, 0, 0, 0, 1)
    assert exhaustive_search(train, bounds=bounds, criterion="aic", progress=False).order.pqPQ == (1, 0, 0, 0)
    res = exhaustive_search(train, bounds=bounds, criterion="BIC", progress=False)
    assert res.order.pqPQ == (0, 0, 0, 0) and res.drift is False
    assert res.criterion == "bic"


def test_seeds_outside_bounds_are_skipped():
    keys = su._seed_keys(SearchBounds(1, 1, 1, 1, 4), (False, True))
    assert keys == [
        ((0, 0, 0, 0), True), ((1, 0, 1, 0), True), ((0, 1, 0, 1), True), ((0, 0, 0, 0), False),
    ]
    assert su._seed_keys(SearchBounds(0, 0, 0, 0, 0), (False,)) == [((0, 0, 0, 0), False)]


def test_neighbours_try_seasonal_moves_first():
    out = list(su._neighbours(((1, 1, 1, 1), True), SearchBounds(), (False, True)))
    assert out == [
        ((1, 1, 0, 1), True), ((1, 1, 1, 0), True), ((1, 1, 2, 1), True), ((1, 1, 1, 2), True),
        ((1, 1, 0, 0), True), ((1, 1, 0, 2), True), ((1, 1, 2, 0), True),
        ((0, 1, 1, 1), True), ((1, 0, 1, 1), True), ((2, 1, 1, 1), True), ((1, 2, 1, 1), True),
        ((0, 0, 1, 1), True), ((0, 2, 1, 1), True), ((2, 0, 1, 1), True),
        ((1, 1, 1, 1), False),
    ]


def test_stepwise_takes_first_improving_neighbour(monkeypatch, train_test):
    train, _ = train_test
    calls = []

    def _score(pqPQ, drift):
        return {(0, 1, 0, 1): 95.0, (0, 1, 0, 0): 90.0}.get(pqPQ, 100.0 + sum(pqPQ)) + 0.5 * (not drift)

    monkeypatch.setattr(su, "fit_sarima", _stub_fit(_score, calls=calls))
    res = stepwise_search(train)
    # best seed is (0,1,0,1); dropping Q is tried before raising P
    assert calls[4] == ((0, 1, 0, 0), True)
    assert res.order.pqPQ == (0, 1, 0, 0)
    assert res.drift is True
    assert res.value == pytest.approx(90.0)


def test_near_unit_root_candidate_is_unstable(train_test):
    train, _ = train_test
    cand = su.evaluate_candidate(train, SeasonalOrder(0, 0, 1, 2, 1, 0, 12), drift=True)
    assert cand.status == "unstable"
    assert not cand.usable
    assert np.isfinite(cand.aic)

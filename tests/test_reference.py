"""
Full order searches on the 1974-1978 window compared with published results.

These fit several hundred models; deselect with ``pytest -m 'not slow'``.
"""

import pytest

from ldeaths_forecaster_src.diagnostics_utils import diagnose_residuals
from ldeaths_forecaster_src.forecasting_utils import fit_sarima
from ldeaths_forecaster_src.search_utils import exhaustive_search, stepwise_search

pytestmark = pytest.mark.slow


@pytest.fixture(scope="module")
def exhaustive(train_test):
    train, _ = train_test
    return exhaustive_search(train, progress=False)


@pytest.fixture(scope="module")
def stepwise(train_test):
    train, _ = train_test
    return stepwise_search(train)


def test_exhaustive_selection(exhaustive):
    assert exhaustive.order.pqPQ == (2, 0, 1, 0)
    assert exhaustive.drift is True
    assert exhaustive.value == pytest.approx(692.14, abs=0.5)


def test_stepwise_selection(stepwise, exhaustive):
    assert stepwise.order.pqPQ == (0, 2, 1, 0)
    assert stepwise.drift is True
    assert stepwise.value == pytest.approx(693.32, abs=0.5)
    assert exhaustive.value <= stepwise.value
    assert stepwise.n_evaluated <= 94


@pytest.mark.parametrize("which,lb_p", [("exhaustive", 0.469), ("stepwise", 0.584)])
def test_selected_model_residuals(request, train_test, which, lb_p):
    train, _ = train_test
    sr = request.getfixturevalue(which)
    fitted = fit_sarima(train, sr.order, drift=sr.drift)
    report = diagnose_residuals(fitted, train)

    assert report.ljung_box.p_value == pytest.approx(lb_p, abs=0.05)
    assert not report.ljung_box.is_significant
    # a few large winter residuals make the distribution heavy-tailed
    assert report.shapiro_wilk.p_value < 0.001

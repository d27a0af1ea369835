import warnings

import pandas as pd
import numpy as np

import pytest

from ldeaths_forecaster_src.transform_utils import (
    acf_comparison, safe_adf_pval, sample_acf, seasonal_difference, stationarity_summary
)


def test_seasonal_difference_length_and_values(train_test):
    train, _ = train_test
    diffed = seasonal_difference(train, lag=12)

    assert len(diffed) == 48
    assert diffed.index[0] == pd.Timestamp("1975-01-01")
    # output[i] = input[i + 12] - input[i]
    assert diffed.iloc[0] == pytest.approx(train.iloc[12] - train.iloc[0])
    assert diffed.iloc[-1] == pytest.approx(train.iloc[-1] - train.iloc[-13])
    assert diffed.name == "deaths_diff12"


def test_differencing_removes_lag12_correlation(train_test):
    train, _ = train_test
    table = acf_comparison(train, lag=12, nlags=36)

    assert list(table.columns) == ["original", "differenced"]
    assert table.loc[0, "original"] == pytest.approx(1.0)
    assert table.loc[12, "original"] > 0.4
    assert abs(table.loc[12, "differenced"]) < abs(table.loc[12, "original"])


def test_repeated_differencing_keeps_shortening(train_test):
    train, _ = train_test
    twice = seasonal_difference(seasonal_difference(train, 12), 12)
    assert len(twice) == 36


@pytest.mark.parametrize("lag", [0, -1, 60, 1.5])
def test_invalid_lag(train_test, lag):
    train, _ = train_test
    with pytest.raises(ValueError):
        seasonal_difference(train, lag=lag)


def test_sample_acf_caps_lags():
    s = pd.Series(np.sin(np.arange(10)))
    acf = sample_acf(s, nlags=36)
    assert acf.index.max() == 9
    assert acf.iloc[0] == pytest.approx(1.0)


def test_stationarity_summary_keys(train_test):
    train, _ = train_test
    out = stationarity_summary(train, lag=12)
    assert set(out) == {"adf_p_original", "adf_p_differenced"}
    assert all(0.0 <= v <= 1.0 for v in out.values())


def test_adf_p_value_without_future_warnings(train_test):
    train, _ = train_test
    with warnings.catch_warnings():
        warnings.simplefilter("error", FutureWarning)
        pval = safe_adf_pval(train)
    assert 0.0 <= pval <= 1.0
    assert np.isnan(safe_adf_pval(train.iloc[:8]))

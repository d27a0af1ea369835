import pandas as pd
import numpy as np
from pathlib import Path

import pytest

from ldeaths_forecaster_src.data_utils import (
    load_ldeaths_series, parse_boundary, split_train_test, summary_statistics
)
from ldeaths_forecaster_src.errors import DataUnavailable, InvalidSplit


def test_bundled_series_shape(ldeaths):
    assert len(ldeaths) == 72
    assert ldeaths.index[0] == pd.Timestamp("1974-01-01")
    assert ldeaths.index[-1] == pd.Timestamp("1979-12-01")
    assert ldeaths.index.freqstr == "MS"
    assert ldeaths.name == "deaths"
    assert (ldeaths >= 0).all()


def test_split_sizes_contiguous_and_disjoint(train_test):
    train, test = train_test
    assert len(train) == 60
    assert len(test) == 12
    assert train.index[-1] == pd.Timestamp("1978-12-01")
    assert test.index[0] == pd.Timestamp("1979-01-01")
    assert train.index.intersection(test.index).empty
    # Slicing keeps the monthly frequency statsmodels needs
    assert train.index.freqstr == "MS"
    assert test.index.freqstr == "MS"


def test_held_out_values(train_test):
    _, test = train_test
    expected = [3084, 2605, 2573, 2143, 1693, 1504, 1461, 1354, 1333, 1492, 1781, 1915]
    assert test.tolist() == pytest.approx(expected)


def test_training_summary_statistics(train_test):
    train, _ = train_test
    stats = summary_statistics(train)
    assert stats["n"] == 60
    assert stats["min"] == pytest.approx(1300.0)
    assert stats["max"] == pytest.approx(3891.0)
    assert stats["mean"] == pytest.approx(2086.0, abs=0.5)
    assert stats["median"] == pytest.approx(1920.0, abs=0.5)
    assert stats["std"] == pytest.approx(617.54, abs=0.01)


@pytest.mark.parametrize("boundary", ["1973-12", "1979-12", "1985-01"])
def test_boundary_outside_series_is_rejected(ldeaths, boundary):
    with pytest.raises(InvalidSplit) as exc:
        split_train_test(ldeaths, boundary)
    assert exc.value.stage == "split"


def test_unparseable_boundary():
    with pytest.raises(InvalidSplit):
        parse_boundary("not-a-date")


def test_split_accepts_timestamp_and_first_month(ldeaths):
    train, test = split_train_test(ldeaths, pd.Timestamp("1974-01-01"))
    assert len(train) == 1
    assert len(test) == 71


def test_missing_csv_raises(tmp_path: Path):
    with pytest.raises(DataUnavailable) as exc:
        load_ldeaths_series(tmp_path / "nope.csv")
    assert "nope.csv" in str(exc.value)
    assert str(exc.value).startswith("[load]")


def test_csv_with_gap_or_wrong_columns(tmp_path: Path):
    idx = pd.date_range("1974-01-01", periods=6, freq="MS").delete(3)
    gap_csv = tmp_path / "gap.csv"
    pd.DataFrame({"date": idx, "deaths": np.arange(5) + 100}).to_csv(gap_csv, index=False)
    with pytest.raises(DataUnavailable, match="not contiguous"):
        load_ldeaths_series(gap_csv)

    bad_cols = tmp_path / "cols.csv"
    pd.DataFrame({"month": idx, "count": np.arange(5)}).to_csv(bad_cols, index=False)
    with pytest.raises(DataUnavailable, match="columns"):
        load_ldeaths_series(bad_cols)


def test_negative_counts_rejected(tmp_path: Path):
    idx = pd.date_range("1974-01-01", periods=4, freq="MS")
    csv_path = tmp_path / "neg.csv"
    pd.DataFrame({"date": idx, "deaths": [10, -1, 12, 13]}).to_csv(csv_path, index=False)
    with pytest.raises(DataUnavailable, match="negative"):
        load_ldeaths_series(csv_path)


def test_persist_copy_roundtrips(tmp_path: Path, ldeaths):
    out = tmp_path / "copy" / "ldeaths.csv"
    again = load_ldeaths_series(persist_to=out)
    assert out.exists()
    reloaded = load_ldeaths_series(out)
    pd.testing.assert_series_equal(reloaded, again)
    pd.testing.assert_series_equal(reloaded, ldeaths)

# ldeaths_forecaster_src/data_utils.py

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .errors import DataUnavailable, InvalidSplit

logger = logging.getLogger(__name__)

BUNDLED_SERIES_CSV = Path(__file__).resolve().parent / "data" / "ldeaths.csv"
SERIES_NAME = "deaths"


def load_ldeaths_series(csv_path: Optional[Path] = None,
                        persist_to: Optional[Path] = None) -> pd.Series:
    """
    Load the monthly UK lung-disease deaths series (Jan 1974 - Dec 1979).

    This function reads the series from a CSV with ``date`` and ``deaths``
    columns and returns it as an explicitly time-indexed Series with monthly
    (month-start) frequency, ready for SARIMA modelling.

    Parameters
    ----------
    csv_path : Optional[Path]
        CSV to read. When None the copy bundled with the package is used.
    persist_to : Optional[Path]
        If provided, the loaded series is written to this CSV path (parents created).

    Returns
    -------
    pd.Series
        Float series named 'deaths' with a ``freq="MS"`` DatetimeIndex.

    Raises
    ------
    DataUnavailable
        If the file does not exist, lacks the required columns, contains no
        valid rows, has gaps or duplicated months, or holds negative counts.
    """
    path = Path(csv_path) if csv_path is not None else BUNDLED_SERIES_CSV
    if not path.is_file():
        raise DataUnavailable(f"series CSV not found: {path}")

    logger.info("Loading deaths series from: %s", path)
    try:
        df = pd.read_csv(path)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise DataUnavailable(f"failed to parse {path}: {e}") from e

    if "date" not in df.columns or SERIES_NAME not in df.columns:
        raise DataUnavailable(f"{path} must contain 'date' and '{SERIES_NAME}' columns, got {list(df.columns)}")

    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    df[SERIES_NAME] = pd.to_numeric(df[SERIES_NAME], errors="coerce")
    df = df.dropna(subset=["date", SERIES_NAME]).sort_values("date").reset_index(drop=True)

    if df.empty:
        raise DataUnavailable(f"no valid rows found in {path} after parsing")

    if df["date"].duplicated().any():
        dups = df.loc[df["date"].duplicated(), "date"].dt.strftime("%Y-%m").tolist()
        raise DataUnavailable(f"duplicated months in {path}: {dups}")

    if (df[SERIES_NAME] < 0).any():
        raise DataUnavailable(f"negative death counts in {path}")

    index = pd.DatetimeIndex(df["date"]).to_period("M").to_timestamp(how="start")
    expected = pd.date_range(index[0], periods=len(index), freq="MS")
    if not index.equals(expected):
        missing = expected.difference(index).strftime("%Y-%m").tolist()
        raise DataUnavailable(f"monthly index of {path} is not contiguous (gaps near {missing[:5]})")

    series = pd.Series(df[SERIES_NAME].astype(float).values, index=expected, name=SERIES_NAME)

    if persist_to is not None:
        persist_to = Path(persist_to)
        persist_to.parent.mkdir(parents=True, exist_ok=True)
        series.rename_axis("date").to_frame().to_csv(persist_to, date_format="%Y-%m-%d")
        logger.info("Persisted series copy to %s", persist_to)

    logger.info("Loaded %d monthly observations (%s to %s)",
                len(series), series.index[0].strftime("%Y-%m"), series.index[-1].strftime("%Y-%m"))
    return series


def summary_statistics(series: pd.Series) -> Dict[str, float]:
    """
    Basic descriptive statistics of a series.

    Returns
    -------
    Dict[str, float]
        Keys: n, min, max, mean, median, std (sample standard deviation, ddof=1).
    """
    values = pd.Series(series).dropna().astype(float)
    return {
        "n": int(len(values)),
        "min": float(values.min()),
        "max": float(values.max()),
        "mean": float(values.mean()),
        "median": float(values.median()),
        "std": float(np.std(values.to_numpy(), ddof=1)) if len(values) > 1 else float("nan"),
    }


def parse_boundary(boundary: Union[str, pd.Timestamp]) -> pd.Timestamp:
    """
    Convert a split boundary ('1978-12', '1978-12-31' or a Timestamp) to a Timestamp.

    Raises
    ------
    InvalidSplit
        If the value cannot be interpreted as a date.
    """
    try:
        ts = pd.Timestamp(boundary)
    except (ValueError, TypeError) as e:
        raise InvalidSplit(f"cannot interpret split boundary {boundary!r} as a date") from e
    if pd.isna(ts):
        raise InvalidSplit(f"cannot interpret split boundary {boundary!r} as a date")
    return ts


def split_train_test(series: pd.Series,
                     boundary: Union[str, pd.Timestamp]) -> Tuple[pd.Series, pd.Series]:
    """
    Partition a time-indexed series at a timestamp boundary.

    Parameters
    ----------
    series : pd.Series
        Series with a DatetimeIndex
    boundary : Union[str, pd.Timestamp]
        Last timestamp belonging to the training window

    Returns
    -------
    Tuple[pd.Series, pd.Series]
        (train, test) where train holds every point with timestamp <= boundary
        and test holds the remainder.

    Raises
    ------
    InvalidSplit
        If the boundary lies before the first observation or at/after the last
        one, i.e. when either side of the split would be empty.
    """
    if not isinstance(series.index, pd.DatetimeIndex):
        raise InvalidSplit("series must carry a DatetimeIndex to be split by timestamp")
    if series.empty:
        raise InvalidSplit("cannot split an empty series")

    ts = parse_boundary(boundary)
    first, last = series.index[0], series.index[-1]
    if ts < first or ts >= last:
        raise InvalidSplit(
            f"boundary {ts.date()} must fall inside [{first.date()}, {last.date()}) "
            f"so both windows are non-empty"
        )

    # Positional slicing keeps the index frequency that statsmodels relies on
    pos = int(series.index.searchsorted(ts, side="right"))
    train = series.iloc[:pos]
    test = series.iloc[pos:]

    logger.info("Split at %s: train=%d, test=%d", ts.strftime("%Y-%m"), len(train), len(test))
    return train, test

# ldeaths_forecaster_src/model_types.py

"""
Immutable value types passed between pipeline stages.

Each stage produces one of these once and later stages only read them:
SeasonalOrder -> FittedModel -> (ResidualReport, Forecast) -> accuracy table.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd


@dataclass(frozen=True, order=True)
class SeasonalOrder:
    """SARIMA(p,d,q)x(P,D,Q)[s] order."""

    p: int = 0
    d: int = 0
    q: int = 0
    P: int = 0
    D: int = 1
    Q: int = 0
    s: int = 12

    def __post_init__(self):
        for name in ("p", "d", "q", "P", "D", "Q", "s"):
            val = getattr(self, name)
            if not isinstance(val, (int, np.integer)) or val < 0:
                raise ValueError(f"order component {name} must be a non-negative integer, got {val!r}")
        if (self.P or self.D or self.Q) and self.s < 2:
            raise ValueError(f"seasonal terms need a period s >= 2, got s={self.s}")

    @classmethod
    def from_pqPQ(cls, pqPQ: Tuple[int, int, int, int], d: int, D: int, s: int) -> "SeasonalOrder":
        p, q, P, Q = (int(x) for x in pqPQ)
        return cls(p=p, d=d, q=q, P=P, D=D, Q=Q, s=s)

    @property
    def order(self) -> Tuple[int, int, int]:
        return (self.p, self.d, self.q)

    @property
    def seasonal_order(self) -> Tuple[int, int, int, int]:
        return (self.P, self.D, self.Q, self.s)

    @property
    def pqPQ(self) -> Tuple[int, int, int, int]:
        return (self.p, self.q, self.P, self.Q)

    @property
    def n_arma(self) -> int:
        """Number of ARMA coefficients, p + q + P + Q."""
        return self.p + self.q + self.P + self.Q

    def with_pqPQ(self, p: int, q: int, P: int, Q: int) -> "SeasonalOrder":
        return SeasonalOrder(p=p, d=self.d, q=q, P=P, D=self.D, Q=Q, s=self.s)

    def __str__(self) -> str:
        return f"ARIMA({self.p},{self.d},{self.q})({self.P},{self.D},{self.Q})[{self.s}]"


@dataclass(frozen=True)
class FittedModel:
    """
    A maximum-likelihood fit of one SARIMA order on one training window.

    ``coefficients`` excludes the innovation variance, which is reported
    separately as ``sigma2``. ``results`` describes the differenced series;
    ``endog`` keeps the training levels needed to integrate its forecasts.
    """

    order: SeasonalOrder
    drift: bool
    coefficients: pd.DataFrame = field(compare=False, repr=False)
    loglik: float
    aic: float
    aicc: float
    bic: float
    sigma2: float
    n_obs: int
    n_params: int
    results: Any = field(default=None, compare=False, repr=False)
    label: Optional[str] = None
    endog: Optional[pd.Series] = field(default=None, compare=False, repr=False)

    @property
    def name(self) -> str:
        if self.label:
            return self.label
        return f"{self.order}{' with drift' if self.drift else ''}"

    @property
    def n_coefficients(self) -> int:
        """Estimated coefficients excluding sigma2 (Ljung-Box degrees-of-freedom adjustment)."""
        return int(len(self.coefficients))

    def information_criteria(self) -> Dict[str, float]:
        return {"loglik": self.loglik, "AIC": self.aic, "AICc": self.aicc, "BIC": self.bic}


@dataclass(frozen=True)
class CandidateFit:
    """One order evaluated during the order search."""

    order: SeasonalOrder
    drift: bool
    aic: float = float("nan")
    aicc: float = float("nan")
    bic: float = float("nan")
    status: str = "ok"
    message: str = ""

    @property
    def usable(self) -> bool:
        return self.status == "ok"

    def criterion(self, name: str) -> float:
        return float(getattr(self, name.lower()))

    def as_row(self) -> Dict[str, Any]:
        return {
            "order": str(self.order),
            "(p,q,P,Q)": self.order.pqPQ,
            "drift": self.drift,
            "AIC": self.aic,
            "AICc": self.aicc,
            "BIC": self.bic,
            "status": self.status,
            "message": self.message,
        }


@dataclass(frozen=True)
class SearchResult:
    """Outcome of an order search: the selected order and every candidate tried."""

    mode: str
    criterion: str
    order: SeasonalOrder
    drift: bool
    value: float
    candidates: List[CandidateFit] = field(default_factory=list, compare=False, repr=False)

    @property
    def n_evaluated(self) -> int:
        return len(self.candidates)

    def table(self) -> pd.DataFrame:
        """Usable candidates first, each group sorted by the search criterion."""
        df = pd.DataFrame([c.as_row() for c in self.candidates])
        if df.empty:
            return df
        key = {"aic": "AIC", "aicc": "AICc", "bic": "BIC"}[self.criterion]
        df["_rejected"] = df["status"] != "ok"
        df = df.sort_values(by=["_rejected", key], ascending=True, na_position="last", kind="mergesort")
        return df.drop(columns="_rejected").reset_index(drop=True)


@dataclass(frozen=True)
class Forecast:
    """
    Point forecasts and interval bounds for one model.

    ``frame`` is indexed by forecast timestamp with column ``mean`` and one
    ``lower_<level>`` / ``upper_<level>`` pair per interval level.
    """

    model_name: str
    frame: pd.DataFrame = field(compare=False)
    levels: Tuple[int, ...] = (80, 95)

    @property
    def index(self) -> pd.DatetimeIndex:
        return self.frame.index

    @property
    def mean(self) -> pd.Series:
        return self.frame["mean"].rename(self.model_name)

    def interval(self, level: int) -> Tuple[pd.Series, pd.Series]:
        return self.frame[f"lower_{level}"], self.frame[f"upper_{level}"]

    def __len__(self) -> int:
        return len(self.frame)

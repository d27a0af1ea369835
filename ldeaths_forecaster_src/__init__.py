# ldeaths_forecaster_src/__init__.py

"""
Lung-Deaths Forecaster SARIMA - seasonal ARIMA analysis of monthly UK deaths

This package fits seasonal ARIMA models to the monthly UK lung-disease deaths
series (1974-1979), selects orders automatically, validates the residuals
and scores 12-month forecasts against the held-out year.

Key Components
--------------
- config_utils: Configuration management and CLI override support
- data_utils: Series loading, summary statistics and the train/test split
- transform_utils: Seasonal differencing and ACF comparison
- search_utils: Exhaustive and stepwise order search
- forecasting_utils: SARIMA estimation and forecasting
- diagnostics_utils: Residual diagnostics for fitted models
- metrics_utils: Forecast accuracy measures and Diebold-Mariano tests
- plotting_utils: Figures
- parsing_utils, file_utils: CLI parsing, CSV and markdown output
- main: Main entry point and workflow orchestration

Usage
-----
    # Command-line usage
    python forecaster_SARIMA.py --mode both --report-md analysis/report.md

    # Programmatic usage
    from ldeaths_forecaster_src import load_ldeaths_series, split_train_test, search_orders
"""

__version__ = "1.0.0"

from .config_utils import initialize_config, get_config_value
from .data_utils import load_ldeaths_series, split_train_test, summary_statistics
from .errors import (
    ForecastPipelineError, DataUnavailable, InvalidSplit,
    NoConvergentModel, NonConvergence, MisalignedSeries
)
from .model_types import SeasonalOrder, FittedModel, Forecast, SearchResult
from .transform_utils import seasonal_difference
from .search_utils import SearchBounds, search_orders, exhaustive_search, stepwise_search
from .forecasting_utils import fit_sarima, forecast_sarima, forecast_models
from .diagnostics_utils import diagnose_residuals
from .metrics_utils import evaluate_forecasts
from .main import main, run_analysis_workflow

__all__ = [
    "main",
    "run_analysis_workflow",
    "initialize_config",
    "get_config_value",
    "load_ldeaths_series",
    "split_train_test",
    "summary_statistics",
    "seasonal_difference",
    "SearchBounds",
    "search_orders",
    "exhaustive_search",
    "stepwise_search",
    "fit_sarima",
    "forecast_sarima",
    "forecast_models",
    "diagnose_residuals",
    "evaluate_forecasts",
    "SeasonalOrder",
    "FittedModel",
    "Forecast",
    "SearchResult",
    "ForecastPipelineError",
    "DataUnavailable",
    "InvalidSplit",
    "NoConvergentModel",
    "NonConvergence",
    "MisalignedSeries",
    "__version__",
]

#!/usr/bin/env python3
"""
Seasonal ARIMA modelling of monthly UK lung-disease deaths (1974-1979).

Usage
-----
    python forecaster_SARIMA.py --help
    python forecaster_SARIMA.py
    python forecaster_SARIMA.py --mode stepwise --max-p 3 --max-q 3
    python forecaster_SARIMA.py --metrics-csv analysis/metrics.csv --report-md analysis/report.md

Module Structure
----------------
The code is organized in ldeaths_forecaster_src/ with these modules:
- config_utils.py: Configuration management
- data_utils.py: Series loading and train/test split
- transform_utils.py: Seasonal differencing and ACF
- search_utils.py: Exhaustive and stepwise order search
- forecasting_utils.py: SARIMA estimation and forecasting
- diagnostics_utils.py: Residual diagnostics
- metrics_utils.py: Forecast accuracy
- plotting_utils.py: Visualization functions
- parsing_utils.py / file_utils.py: CLI parsing and outputs
- main.py: Main entry point
"""

from ldeaths_forecaster_src.main import main

if __name__ == "__main__":
    main()

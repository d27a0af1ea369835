# ldeaths_forecaster_src/errors.py

"""
Exception hierarchy for the lung-deaths SARIMA pipeline.

Every error names the pipeline stage that failed and the input that caused it,
so a failed run can be traced without re-running with DEBUG logging.
"""

from typing import Optional


class ForecastPipelineError(Exception):
    """Base class for terminal failures of a pipeline stage."""

    stage = "pipeline"

    def __init__(self, detail: str, stage: Optional[str] = None):
        if stage is not None:
            self.stage = stage
        self.detail = detail
        super().__init__(f"[{self.stage}] {detail}")


class DataUnavailable(ForecastPipelineError):
    """The monthly series could not be located or parsed."""

    stage = "load"


class InvalidSplit(ForecastPipelineError):
    """The train/test boundary does not fall strictly inside the series."""

    stage = "split"


class NoConvergentModel(ForecastPipelineError):
    """Order search finished without a single usable candidate."""

    stage = "order_search"


class NonConvergence(ForecastPipelineError):
    """Maximum-likelihood estimation did not reach a stable solution."""

    stage = "estimate"


class MisalignedSeries(ForecastPipelineError):
    """Forecast timestamps do not match the held-out timestamps."""

    stage = "evaluate"

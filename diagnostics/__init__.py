"""Residual diagnostics for the lung-deaths SARIMA forecaster.

This package provides the residual test battery used to validate fitted
models:
- Ljung-Box portmanteau test with degrees-of-freedom adjustment
- Shapiro-Wilk and Jarque-Bera normality tests
- Residual ACF and diagnostic plots
"""

from .residual_diagnostics import (
    ResidualDiagnostics,
    DiagnosticResult,
    DiagnosticTest,
    run_comprehensive_diagnostics
)

__all__ = [
    'ResidualDiagnostics',
    'DiagnosticResult',
    'DiagnosticTest',
    'run_comprehensive_diagnostics'
]

# Version info
__version__ = '1.0.0'

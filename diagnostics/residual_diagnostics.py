"""Residual diagnostics for fitted SARIMA models.

This module provides systematic residual diagnostic testing to validate
model adequacy on the lung-deaths series.

Features:
- Ljung-Box portmanteau test with degrees-of-freedom adjustment
- Shapiro-Wilk and Jarque-Bera tests for normality
- Residual ACF with white-noise bands
- Diagnostic plots (time plot, ACF, histogram, Q-Q)
- Overall adequacy assessment
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.stats.stattools import jarque_bera
from statsmodels.tsa.stattools import acf

logger = logging.getLogger(__name__)


class DiagnosticTest(Enum):
    """Types of residual diagnostic tests."""
    LJUNG_BOX = "ljung_box"
    SHAPIRO_WILK = "shapiro_wilk"
    JARQUE_BERA = "jarque_bera"


@dataclass
class DiagnosticResult:
    """Results from a single diagnostic test."""

    test_name: str
    test_type: DiagnosticTest
    test_statistic: float
    p_value: float
    significance_level: float = 0.05
    degrees_of_freedom: Optional[int] = None

    # Additional test-specific information
    test_description: Optional[str] = None
    additional_stats: Dict[str, float] = field(default_factory=dict)

    @property
    def is_significant(self) -> bool:
        """Check if test rejects null hypothesis."""
        return self.p_value < self.significance_level

    @property
    def interpretation(self) -> str:
        """Get interpretation of test result."""
        if self.test_type == DiagnosticTest.LJUNG_BOX:
            if self.is_significant:
                return "Serial correlation detected in residuals"
            return "No significant serial correlation in residuals"
        if self.test_type in (DiagnosticTest.SHAPIRO_WILK, DiagnosticTest.JARQUE_BERA):
            if self.is_significant:
                return "Residuals not normally distributed"
            return "Residuals appear normally distributed"
        if self.is_significant:
            return f"Null hypothesis rejected (p={self.p_value:.4f})"
        return f"Null hypothesis not rejected (p={self.p_value:.4f})"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "test": self.test_name,
            "statistic": self.test_statistic,
            "p_value": self.p_value,
            "df": self.degrees_of_freedom,
            "significant": self.is_significant,
            "interpretation": self.interpretation,
        }


class ResidualDiagnostics:
    """Residual diagnostic testing for SARIMA residuals."""

    def __init__(self, significance_level: float = 0.05,
                 ljung_box_lag: int = 24, acf_lags: int = 36):
        """Initialize residual diagnostics.

        Parameters
        ----------
        significance_level : float, default 0.05
            Significance level for all tests
        ljung_box_lag : int, default 24
            Lag at which the joint Ljung-Box statistic is reported
        acf_lags : int, default 36
            Maximum lag of the residual ACF
        """
        if not 0.0 < significance_level < 1.0:
            raise ValueError(f"significance_level must be in (0, 1), got {significance_level}")
        self.significance_level = significance_level
        self.ljung_box_lag = ljung_box_lag
        self.acf_lags = acf_lags

    def ljung_box_test(self, residuals: pd.Series, lags: Optional[int] = None,
                       model_df: int = 0) -> DiagnosticResult:
        """Ljung-Box test for serial correlation in residuals.

        Parameters
        ----------
        residuals : pd.Series
            Model residuals
        lags : int, optional
            Lag of the joint test (default ``ljung_box_lag``)
        model_df : int, default 0
            Number of estimated coefficients subtracted from the degrees of freedom

        Returns
        -------
        DiagnosticResult
            Ljung-Box test results
        """
        if lags is None:
            lags = self.ljung_box_lag
        resid = pd.Series(residuals).dropna()
        if lags >= len(resid):
            raise ValueError(f"Ljung-Box lag {lags} needs more than {len(resid)} residuals")
        if model_df >= lags:
            raise ValueError(f"model_df={model_df} leaves no degrees of freedom at lag {lags}")

        logger.debug("Running Ljung-Box test with %d lags, model_df=%d", lags, model_df)
        lb = acorr_ljungbox(resid, lags=[lags], model_df=model_df, return_df=True)

        return DiagnosticResult(
            test_name="Ljung-Box Test",
            test_type=DiagnosticTest.LJUNG_BOX,
            test_statistic=float(lb["lb_stat"].iloc[-1]),
            p_value=float(lb["lb_pvalue"].iloc[-1]),
            degrees_of_freedom=int(lags - model_df),
            significance_level=self.significance_level,
            test_description=f"Test for serial correlation in residuals (H0: No serial correlation, lags={lags})",
            additional_stats={"lag": float(lags), "model_df": float(model_df)},
        )

    def ljung_box_table(self, residuals: pd.Series, max_lag: Optional[int] = None,
                        model_df: int = 0) -> pd.DataFrame:
        """Ljung-Box statistics for every lag 1..max_lag (p-values NaN where df <= 0)."""
        resid = pd.Series(residuals).dropna()
        max_lag = int(min(max_lag or self.ljung_box_lag, len(resid) - 1))
        df_lb = acorr_ljungbox(resid, lags=np.arange(1, max_lag + 1), model_df=model_df, return_df=True)
        df_lb.index.name = "lag"
        return df_lb

    def shapiro_wilk_test(self, residuals: pd.Series) -> DiagnosticResult:
        """Shapiro-Wilk test for normality (for smaller samples).

        Parameters
        ----------
        residuals : pd.Series
            Model residuals

        Returns
        -------
        DiagnosticResult
            Shapiro-Wilk test results
        """
        logger.debug("Running Shapiro-Wilk normality test")
        resid = pd.Series(residuals).dropna()
        if len(resid) < 3:
            raise ValueError("Shapiro-Wilk test needs at least 3 residuals")
        if len(resid) > 5000:
            logger.warning("Shapiro-Wilk test may be unreliable for large samples (n=%d)", len(resid))

        sw_stat, sw_pval = stats.shapiro(resid.to_numpy(dtype=float))

        return DiagnosticResult(
            test_name="Shapiro-Wilk Test",
            test_type=DiagnosticTest.SHAPIRO_WILK,
            test_statistic=float(sw_stat),
            p_value=float(sw_pval),
            significance_level=self.significance_level,
            test_description="Test for normality of residuals (H0: Residuals are normally distributed)",
        )

    def jarque_bera_test(self, residuals: pd.Series) -> DiagnosticResult:
        """Jarque-Bera test for normality of residuals."""
        logger.debug("Running Jarque-Bera normality test")
        jb_stat, jb_pval, skew, kurtosis = jarque_bera(pd.Series(residuals).dropna())

        return DiagnosticResult(
            test_name="Jarque-Bera Test",
            test_type=DiagnosticTest.JARQUE_BERA,
            test_statistic=float(jb_stat),
            p_value=float(jb_pval),
            degrees_of_freedom=2,
            significance_level=self.significance_level,
            test_description="Test for normality of residuals (H0: Residuals are normally distributed)",
            additional_stats={"skewness": float(skew), "kurtosis": float(kurtosis)},
        )

    def compute_acf(self, residuals: pd.Series, lags: Optional[int] = None) -> pd.DataFrame:
        """Residual ACF with the approximate 95% white-noise band.

        Returns
        -------
        pd.DataFrame
            Indexed by lag (0..lags) with columns 'acf', 'lower', 'upper'
        """
        resid = pd.Series(residuals).dropna()
        n = len(resid)
        if lags is None:
            lags = self.acf_lags
        lags = int(min(lags, n - 1))

        logger.debug("Computing ACF with %d lags", lags)
        acf_vals = acf(resid.to_numpy(dtype=float), nlags=lags, fft=False)
        band = 1.96 / np.sqrt(n)
        return pd.DataFrame(
            {"acf": acf_vals, "lower": -band, "upper": band},
            index=pd.RangeIndex(0, lags + 1, name="lag"),
        )

    def create_diagnostic_plots(self, residuals: pd.Series,
                                output_dir: Path,
                                model_name: str = "SARIMA") -> Dict[str, Path]:
        """Create residual time plot, ACF, histogram and Q-Q plot.

        Returns
        -------
        dict
            Dictionary mapping plot names to file paths
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        stem = _file_stem(model_name)
        resid = pd.Series(residuals).dropna()
        plot_paths: Dict[str, Path] = {}

        logger.info("Creating diagnostic plots for %s", model_name)

        # Time plot, ACF and histogram in one panel
        fig = plt.figure(figsize=(10, 7))
        ax_ts = fig.add_subplot(2, 1, 1)
        ax_acf = fig.add_subplot(2, 2, 3)
        ax_hist = fig.add_subplot(2, 2, 4)

        ax_ts.plot(resid.index, resid.values, color="black", linewidth=1)
        ax_ts.axhline(0, color="red", linestyle="--", alpha=0.5)
        ax_ts.set_title(f"Residuals from {model_name}")

        acf_df = self.compute_acf(resid).iloc[1:]
        ax_acf.vlines(acf_df.index, 0, acf_df["acf"], color="tab:blue")
        ax_acf.axhline(0, color="black", linewidth=0.8)
        ax_acf.axhline(acf_df["upper"].iloc[0], color="tab:blue", linestyle="--", linewidth=0.8)
        ax_acf.axhline(acf_df["lower"].iloc[0], color="tab:blue", linestyle="--", linewidth=0.8)
        ax_acf.set_xlabel("Lag")
        ax_acf.set_ylabel("ACF")

        ax_hist.hist(resid.values, bins=15, density=True, alpha=0.7, color="skyblue")
        x = np.linspace(resid.min(), resid.max(), 100)
        ax_hist.plot(x, stats.norm.pdf(x, resid.mean(), resid.std()), "r-", linewidth=2)
        ax_hist.set_xlabel("Residuals")

        fig.tight_layout()
        path = output_dir / f"{stem}_residuals.png"
        fig.savefig(path, dpi=300)
        plt.close(fig)
        plot_paths["residuals"] = path

        # Q-Q plot
        fig, ax = plt.subplots(figsize=(6, 6))
        stats.probplot(resid.values, dist="norm", plot=ax)
        ax.set_title(f"{model_name} Q-Q Plot (Normal)")
        ax.grid(True, alpha=0.3)
        fig.tight_layout()
        path = output_dir / f"{stem}_qq_plot.png"
        fig.savefig(path, dpi=300)
        plt.close(fig)
        plot_paths["qq_plot"] = path

        logger.info("Created %d diagnostic plots", len(plot_paths))
        return plot_paths

    def run_comprehensive_diagnostics(self,
                                      residuals: pd.Series,
                                      model_df: int = 0,
                                      model_name: str = "SARIMA",
                                      output_dir: Optional[Path] = None) -> Dict[str, Any]:
        """Run the full residual test battery.

        Parameters
        ----------
        residuals : pd.Series
            Model residuals
        model_df : int
            Estimated coefficients, passed to the Ljung-Box test
        model_name : str
            Model name for reporting
        output_dir : Path, optional
            When given, plots and the Ljung-Box table are written here

        Returns
        -------
        dict
            Summary statistics, test results, ACF and overall assessment
        """
        resid = pd.Series(residuals).dropna()
        logger.info("Running residual diagnostics for %s (%d residuals)", model_name, len(resid))

        results: Dict[str, Any] = {
            "model_name": model_name,
            "n_residuals": len(resid),
            "summary_statistics": {
                "mean": float(resid.mean()),
                "std": float(resid.std()),
                "skewness": float(resid.skew()),
                "kurtosis": float(resid.kurtosis()),
                "min": float(resid.min()),
                "max": float(resid.max()),
            },
            "test_results": {
                "ljung_box": self.ljung_box_test(resid, model_df=model_df),
                "shapiro_wilk": self.shapiro_wilk_test(resid),
                "jarque_bera": self.jarque_bera_test(resid),
            },
            "acf": self.compute_acf(resid),
            "plots": {},
        }

        if output_dir is not None:
            output_dir.mkdir(parents=True, exist_ok=True)
            results["plots"] = self.create_diagnostic_plots(resid, output_dir, model_name)
            lb_path = output_dir / f"{_file_stem(model_name)}_LjungBox.csv"
            self.ljung_box_table(resid, model_df=model_df).to_csv(lb_path, index=True)
            results["plots"]["ljung_box_table"] = lb_path

        results["overall_assessment"] = self._assess_model_adequacy(results["test_results"])
        logger.info("Residual diagnostics completed for %s", model_name)
        return results

    def _assess_model_adequacy(self, test_results: Dict[str, DiagnosticResult]) -> Dict[str, Any]:
        """Assess overall model adequacy based on test results."""
        assessment: Dict[str, Any] = {
            "issues_detected": [],
            "warnings": [],
            "recommendations": [],
            "overall_adequate": True,
        }

        for result in test_results.values():
            if not result.is_significant:
                continue
            if result.test_type == DiagnosticTest.LJUNG_BOX:
                assessment["issues_detected"].append("Serial correlation in residuals")
                assessment["recommendations"].append("Consider increasing AR or MA order")
                assessment["overall_adequate"] = False
            elif "Residuals not normally distributed" not in assessment["warnings"]:
                assessment["warnings"].append("Residuals not normally distributed")
                assessment["recommendations"].append(
                    "Prediction intervals assume normal errors; treat their coverage with caution"
                )

        if not assessment["issues_detected"] and not assessment["warnings"]:
            assessment["recommendations"].append("Model diagnostics look good - no major issues detected")

        return assessment


def _file_stem(model_name: str) -> str:
    keep = [ch if ch.isalnum() else "_" for ch in model_name]
    return "_".join(part for part in "".join(keep).split("_") if part)


def run_comprehensive_diagnostics(residuals: pd.Series,
                                  model_df: int = 0,
                                  model_name: str = "SARIMA",
                                  output_dir: Optional[Path] = None,
                                  significance_level: float = 0.05,
                                  ljung_box_lag: int = 24,
                                  acf_lags: int = 36) -> Dict[str, Any]:
    """Convenience function for comprehensive residual diagnostics."""
    diagnostics = ResidualDiagnostics(significance_level, ljung_box_lag=ljung_box_lag, acf_lags=acf_lags)
    return diagnostics.run_comprehensive_diagnostics(
        residuals, model_df=model_df, model_name=model_name, output_dir=output_dir
    )

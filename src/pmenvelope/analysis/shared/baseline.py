"""
Baseline and variability estimation for concentration series.

Whole-series baselines are percentile estimates over finite samples. Local
baselines describe the trailing window immediately before a reference index
and feed the first-response threshold.
"""

import logging

from collections.abc import Callable

import numpy as np

from scipy import stats

from pmenvelope.constants import BaselineConstants as BC
from pmenvelope.constants import BaselineStatistic, VariabilityMethod

logger = logging.getLogger(__name__)

__all__ = ["BaselineEstimator", "finite_values"]


def finite_values(values: np.ndarray) -> np.ndarray:
    """Return only the finite samples of an array."""
    arr = np.asarray(values, dtype=float)
    return arr[np.isfinite(arr)]


class BaselineEstimator:
    """
    Computes robust baseline levels for concentration series.

    Example:
        >>> estimator = BaselineEstimator()
        >>> level = estimator.baseline(outdoor_pm25, percentile=20)
        >>> pre = estimator.local_baseline(indoor, index=120, window=3)
    """

    def __init__(self, method: str = BC.PERCENTILE_METHOD):
        """
        Initialize the estimator.

        Args:
            method: numpy percentile interpolation method
        """
        self.method = method

    def baseline(self, series: np.ndarray, percentile: float = BC.PERCENTILE) -> float:
        """
        Percentile of all finite samples.

        Args:
            series: Concentration samples (may contain NaN)
            percentile: Percentile in [0, 100]

        Returns:
            Baseline level, NaN if the series holds no finite samples
        """
        values = finite_values(series)
        if values.size == 0:
            logger.debug("No finite samples; baseline undefined")
            return float("nan")
        return float(np.percentile(values, percentile, method=self.method))

    def baseline_profile(
        self, series: np.ndarray, percentile: float = BC.PERCENTILE
    ) -> Callable[[int], float]:
        """Baseline as a function of sample index (constant over the series)."""
        level = self.baseline(series, percentile)

        def _at(index: int) -> float:
            return level

        return _at

    @staticmethod
    def window_indices(index: int, window: int) -> slice:
        """Trailing window [max(0, index - window), index - 1] as a slice."""
        return slice(max(0, index - window), max(0, index))

    def local_baseline(
        self,
        series: np.ndarray,
        index: int,
        window: int,
        statistic: BaselineStatistic | str = BaselineStatistic.MEDIAN,
    ) -> float:
        """
        Mean or median of the trailing window ending one sample before index.

        Args:
            series: Concentration samples
            index: Reference index (the window excludes it)
            window: Window length in samples
            statistic: "mean" or "median"

        Returns:
            Window statistic, NaN if the window is empty or has no finite samples
        """
        values = finite_values(np.asarray(series)[self.window_indices(index, window)])
        if values.size == 0:
            return float("nan")

        if BaselineStatistic(statistic) == BaselineStatistic.MEDIAN:
            return float(np.median(values))
        return float(np.mean(values))

    def pre_event_profile(
        self,
        series: np.ndarray,
        window: int,
        statistic: BaselineStatistic | str = BaselineStatistic.MEAN,
    ) -> Callable[[int], float]:
        """
        Baseline as a function of sample index, taken from the trailing window.

        Follows level shifts in the series, unlike baseline_profile().
        """
        series = np.asarray(series, dtype=float)

        def _at(index: int) -> float:
            return self.local_baseline(series, index, window, statistic)

        return _at

    def variability(
        self,
        series: np.ndarray,
        index: int,
        window: int,
        method: VariabilityMethod | str = VariabilityMethod.STDEV,
    ) -> float:
        """
        Dispersion of the trailing window ending one sample before index.

        Standard deviation uses ddof=1 and is zero for a single sample. MAD is
        scaled so that it estimates the standard deviation of normally
        distributed data.

        Returns:
            Dispersion, NaN if the window holds no finite samples
        """
        values = finite_values(np.asarray(series)[self.window_indices(index, window)])
        if values.size == 0:
            return float("nan")

        if VariabilityMethod(method) == VariabilityMethod.MAD:
            return float(stats.median_abs_deviation(values, scale="normal"))

        if values.size == 1:
            return 0.0
        return float(np.std(values, ddof=1))

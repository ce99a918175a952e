"""
Tests for percentile baselines and local pre-event statistics.
"""

import math

import numpy as np
import pytest

from pmenvelope.analysis.shared.baseline import BaselineEstimator, finite_values


class TestWholeSeriesBaseline:
    """Test percentile baselines over a full series."""

    @pytest.fixture
    def estimator(self):
        return BaselineEstimator()

    def test_midpoint_percentile(self, estimator):
        series = np.arange(1.0, 11.0)
        assert estimator.baseline(series, 20) == pytest.approx(2.5)

    def test_median_percentile(self, estimator):
        series = np.array([3.0, 1.0, 2.0])
        assert estimator.baseline(series, 50) == pytest.approx(2.0)

    def test_ignores_nan(self, estimator):
        series = np.concatenate(([np.nan], np.arange(1.0, 11.0), [np.nan]))
        assert estimator.baseline(series, 20) == pytest.approx(2.5)

    def test_all_nan_is_undefined(self, estimator):
        assert math.isnan(estimator.baseline(np.full(5, np.nan), 20))

    def test_empty_is_undefined(self, estimator):
        assert math.isnan(estimator.baseline(np.array([]), 20))

    def test_profile_is_constant(self, estimator):
        series = np.arange(1.0, 11.0)
        profile = estimator.baseline_profile(series, 20)
        assert profile(0) == pytest.approx(2.5)
        assert profile(9) == pytest.approx(2.5)

    def test_pre_event_profile_tracks_level(self, estimator):
        series = np.array([5.0, 5.0, 5.0, 20.0, 20.0, 20.0, 60.0])
        profile = estimator.pre_event_profile(series, 3)
        assert profile(3) == pytest.approx(5.0)
        assert profile(6) == pytest.approx(20.0)
        assert math.isnan(profile(0))

    def test_finite_values(self):
        values = finite_values(np.array([1.0, np.nan, np.inf, 2.0]))
        np.testing.assert_array_equal(values, [1.0, 2.0])


class TestLocalBaseline:
    """Test trailing-window statistics before a reference index."""

    @pytest.fixture
    def estimator(self):
        return BaselineEstimator()

    @pytest.fixture
    def series(self):
        return np.array([1.0, 2.0, 6.0, 4.0, 5.0])

    def test_window_excludes_reference_index(self, estimator, series):
        assert estimator.local_baseline(series, 3, 3, "median") == pytest.approx(2.0)
        assert estimator.local_baseline(series, 3, 3, "mean") == pytest.approx(3.0)

    def test_window_clamped_at_series_start(self, estimator, series):
        assert estimator.local_baseline(series, 1, 3, "median") == pytest.approx(1.0)

    def test_empty_window_is_undefined(self, estimator, series):
        assert math.isnan(estimator.local_baseline(series, 0, 3, "median"))
        assert math.isnan(estimator.variability(series, 0, 3, "stdev"))

    def test_window_indices(self):
        assert BaselineEstimator.window_indices(5, 3) == slice(2, 5)
        assert BaselineEstimator.window_indices(1, 3) == slice(0, 1)

    def test_sample_standard_deviation(self, estimator):
        series = np.array([1.0, 2.0, 3.0, 10.0])
        assert estimator.variability(series, 3, 3, "stdev") == pytest.approx(1.0)

    def test_single_sample_deviation_is_zero(self, estimator):
        series = np.array([4.0, 10.0])
        assert estimator.variability(series, 1, 3, "stdev") == 0.0

    def test_mad_scaled_to_normal(self, estimator):
        series = np.array([1.0, 2.0, 3.0, 10.0])
        assert estimator.variability(series, 3, 3, "mad") == pytest.approx(
            1.4826, rel=1e-4
        )

    def test_nan_in_window_ignored(self, estimator):
        series = np.array([1.0, np.nan, 3.0, 10.0])
        assert estimator.local_baseline(series, 3, 3, "mean") == pytest.approx(2.0)
        assert estimator.variability(series, 3, 3, "stdev") == pytest.approx(
            math.sqrt(2)
        )

"""
Tests for return-to-baseline estimation after events.
"""

import math

import numpy as np
import pytest

from pmenvelope.analysis.shared.response import ReturnToBaselineEstimator
from tests.helpers.synthetic_data import make_event


class TestReturnToBaseline:
    """Test the sliding hold window inside the tolerance band."""

    @pytest.fixture
    def indoor(self):
        # Samples from event end onward: 12, 11, 10, 10, 10, 13
        return np.array([10, 10, 10, 10, 12, 11, 10, 10, 10, 13], dtype=float)

    @pytest.fixture
    def event(self):
        return make_event(start=2, end=4)

    def test_scenario(self, indoor, event):
        estimator = ReturnToBaselineEstimator(
            tolerance_fraction=0.1, hold=3, lookahead=24, min_trailing=5
        )
        # Window at end + 1 is [11, 10, 10], the first fully inside [9, 11]
        assert estimator.time_to_return(event, indoor, 10.0) == 1.0

    def test_immediate_return_is_zero(self, event):
        indoor = np.full(12, 10.0)
        estimator = ReturnToBaselineEstimator(hold=2, min_trailing=2)
        assert estimator.time_to_return(event, indoor, 10.0) == 0.0

    def test_insufficient_trailing_data(self, indoor, event):
        estimator = ReturnToBaselineEstimator(hold=3, min_trailing=6)
        assert math.isnan(estimator.time_to_return(event, indoor, 10.0))

    def test_no_window_in_band(self, indoor, event):
        estimator = ReturnToBaselineEstimator(
            tolerance_fraction=0.1, hold=5, min_trailing=5
        )
        # Both candidate windows contain a sample outside [9, 11]
        assert math.isnan(estimator.time_to_return(event, indoor, 10.0))

    def test_lookahead_bounds_search(self, indoor, event):
        estimator = ReturnToBaselineEstimator(
            tolerance_fraction=0.1, hold=3, lookahead=3, min_trailing=5
        )
        # Last window may start at end + lookahead - hold + 1 = end + 1
        assert estimator.time_to_return(event, indoor, 10.0) == 1.0

        tighter = ReturnToBaselineEstimator(
            tolerance_fraction=0.1, hold=3, lookahead=2, min_trailing=5
        )
        assert math.isnan(tighter.time_to_return(event, indoor, 10.0))

    def test_nan_never_in_band(self, event):
        indoor = np.array([10, 10, 10, 10, 10, np.nan, 10, 10, 10, 10], dtype=float)
        estimator = ReturnToBaselineEstimator(hold=3, min_trailing=5)
        assert estimator.time_to_return(event, indoor, 10.0) == 2.0

    def test_baseline_evaluated_at_event_start(self, indoor, event):
        estimator = ReturnToBaselineEstimator(hold=3, min_trailing=5)
        per_index = np.full(len(indoor), 100.0)
        per_index[event.start] = 10.0

        assert estimator.time_to_return(event, indoor, per_index) == 1.0
        assert estimator.time_to_return(
            event, indoor, lambda i: 10.0 if i == event.start else 100.0
        ) == 1.0

    def test_estimate_vector(self, indoor):
        estimator = ReturnToBaselineEstimator(hold=3, min_trailing=5)
        times = estimator.estimate(
            [make_event(2, 4), make_event(6, 8)], indoor, 10.0
        )
        assert times[0] == 1.0
        assert math.isnan(times[1])

    def test_invalid_hold(self):
        with pytest.raises(ValueError):
            ReturnToBaselineEstimator(hold=0)

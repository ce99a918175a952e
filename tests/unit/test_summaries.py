"""
Tests for median/IQR event metric summaries.
"""

import numpy as np
import pytest

from pmenvelope.analysis.shared.types import ResponseMetrics, ResponseSummary
from pmenvelope.analysis.summaries import (
    is_flagged,
    metric_spread,
    summarize_event_metrics,
)
from pmenvelope.constants import Leakage, Pollutant
from tests.helpers.synthetic_data import make_event


class TestMetricSpread:
    """Test median and interquartile range of metric vectors."""

    def test_spread(self):
        spread = metric_spread(np.array([4.0, 1.0, np.nan, 3.0, 2.0]))
        assert spread.median == pytest.approx(2.5)
        assert spread.iqr == pytest.approx(2.0)

    def test_single_value(self):
        spread = metric_spread(np.array([7.0]))
        assert (spread.median, spread.iqr) == (7.0, 0.0)

    def test_undefined(self):
        assert metric_spread(np.array([np.nan, np.nan])) is None
        assert metric_spread(np.array([])) is None


class TestSummarizeEventMetrics:
    """Test grouping counts and flag exclusion."""

    def test_flagged_events_excluded(self):
        events = [
            make_event(0, 2),
            make_event(5, 7),
            make_event(10, 12, merged=True),
            make_event(15, 17, nan_gap=True),
        ]
        response = ResponseSummary(
            metrics=[
                ResponseMetrics(lag_time=1.0, recovery_time=3.0),
                ResponseMetrics(lag_time=3.0),
                ResponseMetrics(lag_time=100.0, recovery_time=100.0),
                ResponseMetrics(lag_time=-50.0),
            ]
        )

        summary = summarize_event_metrics(
            events, response, Pollutant.PM25, Leakage.TIGHT
        )

        assert summary.n_events == 4
        assert summary.n_flagged == 2
        assert summary.metrics["lag_time"].median == pytest.approx(2.0)
        assert summary.metrics["recovery_time"].median == pytest.approx(3.0)
        assert summary.metrics["peak_reduction"] is None

    def test_no_events(self):
        summary = summarize_event_metrics(
            [], ResponseSummary(), Pollutant.PM10, Leakage.LEAKY
        )
        assert summary.n_events == 0
        assert all(spread is None for spread in summary.metrics.values())

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            summarize_event_metrics(
                [make_event(0, 2)], ResponseSummary(), Pollutant.PM25, Leakage.TIGHT
            )

    def test_is_flagged(self):
        assert not is_flagged(make_event(0, 2))
        assert is_flagged(make_event(0, 2, nan_gap=True))

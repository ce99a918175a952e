"""
Tests for joint PM2.5/PM10 event detection.
"""

import numpy as np
import pytest

from pmenvelope.analysis.shared.event_detector import CombinedEventDetector


class TestCombinedDetection:
    """Test events requiring both series above fixed thresholds."""

    @pytest.fixture
    def detector(self):
        return CombinedEventDetector(min_duration=2)

    def test_both_series_required(self, detector):
        pm25 = np.array([5, 10, 10, 10, 5, 10, 10, 5], dtype=float)
        pm10 = np.array([60, 60, 54, 60, 60, 60, 40, 60], dtype=float)

        events = detector.detect(pm25, pm10, threshold_a=9.1, threshold_b=54.0)

        assert [(ev.start, ev.end) for ev in events] == [(1, 3)]

    def test_threshold_is_inclusive(self, detector):
        pm25 = np.array([9.1, 9.1, 1.0], dtype=float)
        pm10 = np.array([54.0, 54.0, 1.0], dtype=float)
        events = detector.detect(pm25, pm10, threshold_a=9.1, threshold_b=54.0)
        assert [(ev.start, ev.end) for ev in events] == [(0, 1)]

    def test_peak_on_summed_series(self, detector):
        pm25 = np.array([5, 10, 12, 10, 5], dtype=float)
        pm10 = np.array([60, 70, 55, 70, 60], dtype=float)

        event = detector.detect(pm25, pm10)[0]

        assert event.peak_time == 1
        assert event.peak_value == 10.0
        assert event.peak_secondary == 70.0

    def test_runs_not_merged(self, detector):
        pm25 = np.array([10, 10, 5, 10, 10], dtype=float)
        pm10 = np.full(5, 60.0)
        events = detector.detect(pm25, pm10)
        assert [(ev.start, ev.end) for ev in events] == [(0, 1), (3, 4)]

    def test_nan_is_never_above(self, detector):
        pm25 = np.array([10, 10, 10, 10], dtype=float)
        pm10 = np.array([60, np.nan, 60, 60], dtype=float)
        events = detector.detect(pm25, pm10)
        assert [(ev.start, ev.end) for ev in events] == [(2, 3)]

    def test_placeholder_baseline_and_override(self, detector):
        pm25 = np.array([5, 10, 10, 5], dtype=float)
        pm10 = np.full(4, 60.0)

        event = detector.detect(pm25, pm10, threshold_a=9.1)[0]
        assert event.baseline == pytest.approx(9.1)

        rebased = event.with_baseline(4.0)
        assert rebased.baseline == rebased.baseline_out == 4.0
        assert rebased.severity == pytest.approx(2.5)
        assert event.baseline == pytest.approx(9.1)

    def test_no_events(self, detector):
        assert detector.detect(np.zeros(6), np.zeros(6)) == []

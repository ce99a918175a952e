"""
Integration tests for the configuration analysis pipeline.

Tests focus on:
1. Outdoor detection → indoor response → tight/leaky envelopes
2. Combined PM2.5/PM10 events with percentile baselines
3. Intervention events from a control signal
4. Parallel analysis of independent configurations
"""

import json
import math

import numpy as np
import pytest

from pmenvelope.analysis.params import DEFAULT_PARAMS
from pmenvelope.analysis.service import EventAnalysisService
from pmenvelope.constants import Leakage, Pollutant
from tests.helpers.synthetic_data import EVENT_SPANS, make_event, make_record


@pytest.fixture
def service():
    return EventAnalysisService(DEFAULT_PARAMS)


@pytest.fixture
def summary(service):
    return service.analyze_configuration(make_record())


class TestConfigurationAnalysis:
    """Verify the full workflow on a synthetic configuration."""

    @pytest.mark.parametrize("pollutant", list(Pollutant))
    def test_outdoor_events_found(self, summary, pollutant):
        detection = summary.pollutants[pollutant].detection
        assert [(ev.start, ev.end) for ev in detection.events] == EVENT_SPANS

    def test_response_per_variant(self, summary):
        analysis = summary.pollutants[Pollutant.PM25]
        for leakage in Leakage:
            response = analysis.variants[leakage].response
            assert response.num_events == len(EVENT_SPANS)
            assert response.mean("peak_reduction") is not None

    def test_response_envelope(self, summary):
        analysis = summary.pollutants[Pollutant.PM25]
        bound = analysis.response_bounds["peak_reduction"]
        tight = analysis.variants[Leakage.TIGHT].response.mean("peak_reduction")
        leaky = analysis.variants[Leakage.LEAKY].response.mean("peak_reduction")

        assert bound.lower == min(tight, leaky)
        assert bound.upper == max(tight, leaky)
        assert bound.mean == pytest.approx((tight + leaky) / 2)
        # The tighter building removes more of the outdoor peak
        assert tight > leaky

    def test_series_envelope(self, summary):
        series = summary.pollutants[Pollutant.PM10].series
        assert series.mean_bounds.lower < series.mean_bounds.upper
        assert (series.hourly_lower <= series.hourly_upper).all()
        assert len(series.hourly_mean) == summary.num_samples

    def test_combined_events(self, summary):
        combined = summary.combined

        assert [(ev.start, ev.end) for ev in combined.events] == EVENT_SPANS
        assert combined.events_tight == []
        assert len(combined.events_leaky) == len(EVENT_SPANS)

        outdoor_baseline = combined.events[0].baseline
        assert 7.0 <= outdoor_baseline <= 9.0
        assert all(sev > 1 for sev in combined.severities)
        assert combined.severities_tight == []

    def test_combined_count_and_duration_envelopes(self, summary):
        combined = summary.combined

        assert (combined.total_events.lower, combined.total_events.upper) == (0.0, 3.0)
        assert combined.avg_event_duration is None

        notices = [n for n in summary.notices if "avg_event_duration" in n.metric]
        assert len(notices) == 1
        assert notices[0].missing == ["tight"]
        assert notices[0].context == "Boston/MERV13/active"

    def test_combined_response(self, summary):
        response = summary.combined.response
        assert set(response) == set(Leakage)
        assert response[Leakage.TIGHT].num_events == len(EVENT_SPANS)

    def test_event_summaries(self, summary):
        assert len(summary.event_summary) == len(Pollutant) * len(Leakage)
        for item in summary.event_summary:
            assert item.n_events == len(EVENT_SPANS)
            assert item.n_flagged == 0

    def test_json_serializable(self, summary):
        data = json.loads(summary.model_dump_json())
        assert data["key"]["filter_type"] == "MERV13"
        assert data["combined"]["avg_event_duration"] is None


class TestEdgeConfigurations:
    """Verify configurations that yield undefined results."""

    def test_quiet_configuration(self, service):
        record = make_record()
        quiet = record.model_copy(
            update={
                "outdoor_pm25": record.outdoor_pm25 * 0 + 8.0,
                "outdoor_pm10": record.outdoor_pm10 * 0 + 20.0,
            }
        )

        summary = service.analyze_configuration(quiet)

        analysis = summary.pollutants[Pollutant.PM25]
        assert len(analysis.detection) == 0
        assert all(bound is None for bound in analysis.response_bounds.values())
        assert summary.combined.events == []
        # Nothing defined on either side, so nothing to report
        assert not any(n.metric.startswith("PM2.5 avg_") for n in summary.notices)

    def test_missing_samples_flagged(self, service):
        record = make_record()
        record.outdoor_pm25[42] = math.nan

        summary = service.analyze_configuration(record)

        event = summary.pollutants[Pollutant.PM25].detection.events[0]
        assert (event.start, event.end) == EVENT_SPANS[0]
        assert event.quality.nan_gap

        pm25_summaries = [
            s for s in summary.event_summary if s.pollutant == Pollutant.PM25
        ]
        assert all(s.n_flagged == 1 for s in pm25_summaries)


class TestInterventionAnalysis:
    """Verify intervention events from a control signal."""

    @pytest.fixture
    def record(self):
        record = make_record()
        control = np.zeros(len(record))
        for start, end in EVENT_SPANS:
            control[start : end + 1] = 1.0
        return record.model_copy(update={"intervention": control})

    def test_no_control_signal(self, summary):
        assert summary.intervention is None

    def test_events_follow_control(self, service, record):
        summary = service.analyze_configuration(record)

        intervention = summary.intervention
        assert [(ev.start, ev.end) for ev in intervention.events] == EVENT_SPANS
        for event in intervention.events:
            assert event.start <= event.peak_time <= event.end
            assert event.peak_value == record.outdoor_pm25[event.peak_time]

    def test_response_envelope(self, service, record):
        summary = service.analyze_configuration(record)

        intervention = summary.intervention
        assert set(intervention.response) == set(Leakage)
        # Same spans, peaks and baseline as the threshold-detected events
        threshold_bounds = summary.pollutants[Pollutant.PM25].response_bounds
        assert (
            intervention.response_bounds["peak_reduction"]
            == threshold_bounds["peak_reduction"]
        )

    def test_json_serializable(self, service, record):
        data = json.loads(service.analyze_configuration(record).model_dump_json())
        assert len(data["intervention"]["events"]) == len(EVENT_SPANS)


class TestReturnToBaselineReference:
    """Verify return-to-baseline uses the indoor level before each event."""

    def test_follows_indoor_level_shift(self, service):
        indoor = np.full(250, 5.0)
        indoor[150:] = 20.0
        indoor[160:163] = 60.0
        outdoor = np.full(250, 10.0)
        outdoor[160:163] = 80.0

        response = service.variant_response(
            [make_event(160, 162, peak_value=80.0)], outdoor, indoor
        )

        # Band [18, 22] around the pre-event mean of 20
        assert response.metrics[0].return_to_baseline_time == 1.0


class TestParallelAnalysis:
    """Verify independent configurations run in parallel."""

    def test_analyze_all_preserves_order(self, service):
        records = [make_record(seed=i, location=f"Site{i}") for i in range(4)]
        summaries = service.analyze_all(records, max_workers=2)
        assert [s.key.location for s in summaries] == [
            "Site0",
            "Site1",
            "Site2",
            "Site3",
        ]

    def test_failed_configuration_skipped(self, service, monkeypatch, caplog):
        analyze = service.analyze_configuration

        def flaky(record):
            if record.key.location == "Broken":
                raise RuntimeError("simulated failure")
            return analyze(record)

        monkeypatch.setattr(service, "analyze_configuration", flaky)

        records = [
            make_record(location="Boston"),
            make_record(location="Broken"),
            make_record(location="Denver"),
        ]
        summaries = service.analyze_all(records, max_workers=3)

        assert [s.key.location for s in summaries] == ["Boston", "Denver"]
        assert "Analysis failed for Broken/MERV13/active" in caplog.text

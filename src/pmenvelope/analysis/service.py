"""
Analysis service for orchestrating event detection and response analysis.

This module provides the main interface for analyzing simulated building
configurations: outdoor event detection, indoor response metrics under both
leakage variants and the tight/leaky envelopes of every aggregate.
"""

import logging
import time

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed

import numpy as np

from pmenvelope.analysis.envelope import (
    EnvelopeAggregator,
    EnvelopeBound,
    series_envelope,
)
from pmenvelope.analysis.params import DEFAULT_PARAMS, AnalysisParams
from pmenvelope.analysis.shared.baseline import BaselineEstimator
from pmenvelope.analysis.shared.event_detector import (
    CombinedEventDetector,
    InterventionEventDetector,
    ThresholdEventDetector,
)
from pmenvelope.analysis.shared.response import (
    FirstResponseDetector,
    ResponseMetricsCalculator,
    ReturnToBaselineEstimator,
    trigger_response_times,
)
from pmenvelope.analysis.shared.types import Event, ResponseSummary, nan_mean
from pmenvelope.analysis.summaries import summarize_event_metrics
from pmenvelope.analysis.types import (
    CombinedEventAnalysis,
    ConfigurationRecord,
    ConfigurationSummary,
    InterventionAnalysis,
    PollutantAnalysis,
    VariantAnalysis,
)
from pmenvelope.constants import Leakage, Pollutant

logger = logging.getLogger(__name__)

__all__ = ["EventAnalysisService"]


class EventAnalysisService:
    """
    Service for running event and response analysis on configurations.

    This service handles:
    - Threshold event detection on outdoor PM2.5 and PM10
    - Combined PM2.5/PM10 event detection outdoors and indoors
    - Intervention events from an optional control signal
    - Indoor response metrics for each leakage variant
    - Tight/leaky envelopes with notices for one-sided results

    Example:
        >>> service = EventAnalysisService()
        >>> summary = service.analyze_configuration(record)
        >>> summary.pollutants[Pollutant.PM25].response_bounds["peak_reduction"]
    """

    def __init__(self, params: AnalysisParams = DEFAULT_PARAMS):
        """
        Initialize analysis service.

        Args:
            params: Fully populated analysis parameters
        """
        self.params = params

        self.baseline_estimator = BaselineEstimator(method=params.baseline.method)
        self.event_detector = ThresholdEventDetector(
            min_duration=params.detection.min_duration_hours,
            min_separation=params.detection.min_separation_hours,
            max_nan_gap=params.detection.max_nan_gap_hours,
            percentile=params.baseline.percentile,
            baseline_estimator=self.baseline_estimator,
        )
        self.combined_detector = CombinedEventDetector(
            min_duration=params.detection.min_duration_hours
        )
        self.intervention_detector = InterventionEventDetector(
            percentile=params.baseline.percentile,
            baseline_estimator=self.baseline_estimator,
        )
        self.response_calculator = ResponseMetricsCalculator(
            lookahead=params.response.lookahead_hours,
            recovery_factor=params.response.recovery_factor,
            first_response=FirstResponseDetector(
                baseline_window=params.first_response.baseline_window_hours,
                baseline_statistic=params.first_response.baseline_statistic,
                variability_method=params.first_response.variability_method,
                abs_threshold=params.first_response.abs_threshold,
                departure_multiplier=params.first_response.departure_multiplier,
                lookahead=params.response.lookahead_hours,
                baseline_estimator=self.baseline_estimator,
            ),
            return_to_baseline=ReturnToBaselineEstimator(
                tolerance_fraction=params.rtb.tolerance_fraction,
                hold=params.rtb.hold_time_hours,
                lookahead=params.response.lookahead_hours,
                min_trailing=params.rtb.min_data_hours,
            ),
        )

    def _threshold_multiplier(self, pollutant: Pollutant) -> float:
        if pollutant == Pollutant.PM25:
            return self.params.detection.threshold_multiplier_pm25
        return self.params.detection.threshold_multiplier_pm10

    def variant_response(
        self,
        events: Sequence[Event],
        outdoor: np.ndarray,
        indoor: np.ndarray,
    ) -> ResponseSummary:
        """
        Response metrics of one indoor variant to a set of outdoor events.

        Return-to-baseline is measured against the indoor level just before
        each event, so it follows slow drifts in the indoor series.
        """
        rtb_baseline = self.baseline_estimator.pre_event_profile(
            indoor, self.response_calculator.pre_event_samples
        )
        return self.response_calculator.compute(events, outdoor, indoor, rtb_baseline)

    def _response_bounds(
        self,
        aggregator: EnvelopeAggregator,
        prefix: str,
        tight: ResponseSummary,
        leaky: ResponseSummary,
    ) -> dict[str, EnvelopeBound | None]:
        tight_means = tight.means()
        leaky_means = leaky.means()
        return {
            name: aggregator.combine(
                f"{prefix} avg_{name}", tight_means[name], leaky_means[name]
            )
            for name in tight_means
        }

    def _pm25_response(
        self,
        events: Sequence[Event],
        record: ConfigurationRecord,
        aggregator: EnvelopeAggregator,
        prefix: str,
    ) -> tuple[dict[Leakage, ResponseSummary], dict[str, EnvelopeBound | None]]:
        if not events:
            return {}, {}
        outdoor = record.outdoor(Pollutant.PM25)
        response = {
            leakage: self.variant_response(
                events, outdoor, record.indoor(Pollutant.PM25, leakage)
            )
            for leakage in Leakage
        }
        bounds = self._response_bounds(
            aggregator, prefix, response[Leakage.TIGHT], response[Leakage.LEAKY]
        )
        return response, bounds

    def analyze_pollutant(
        self,
        record: ConfigurationRecord,
        pollutant: Pollutant,
        aggregator: EnvelopeAggregator,
    ) -> PollutantAnalysis:
        """
        Detect outdoor events for one pollutant and score the indoor response.

        Args:
            record: Aligned configuration series
            pollutant: Pollutant to analyze
            aggregator: Collects envelope notices for the configuration

        Returns:
            PollutantAnalysis with detection, per-variant metrics and envelopes
        """
        outdoor = record.outdoor(pollutant)
        detection = self.event_detector.detect(
            outdoor,
            timestamps=record.timestamps,
            threshold_multiplier=self._threshold_multiplier(pollutant),
        )
        logger.info(
            f"{record.key.label} {pollutant.value}: {len(detection)} outdoor events"
        )

        rp = self.params.response
        variants = {}
        for leakage in Leakage:
            indoor = record.indoor(pollutant, leakage)
            trigger = trigger_response_times(
                indoor,
                outdoor,
                diff_threshold=rp.diff_threshold,
                target_fraction=rp.target_fraction,
                lookahead=rp.lookahead_hours,
            )
            variants[leakage] = VariantAnalysis(
                leakage=leakage,
                response=self.variant_response(detection.events, outdoor, indoor),
                trigger_response_times=trigger.times,
            )

        tight = variants[Leakage.TIGHT]
        leaky = variants[Leakage.LEAKY]

        return PollutantAnalysis(
            pollutant=pollutant,
            detection=detection,
            variants=variants,
            response_bounds=self._response_bounds(
                aggregator, pollutant.value, tight.response, leaky.response
            ),
            trigger_response_bounds=aggregator.combine_vectors(
                f"{pollutant.value} trigger_response_time",
                tight.trigger_response_times,
                leaky.trigger_response_times,
            ),
            series=series_envelope(
                record.indoor(pollutant, Leakage.TIGHT),
                record.indoor(pollutant, Leakage.LEAKY),
                aggregator=aggregator,
                metric=f"{pollutant.value} mean_concentration",
            ),
        )

    def analyze_combined(
        self, record: ConfigurationRecord, aggregator: EnvelopeAggregator
    ) -> CombinedEventAnalysis:
        """
        Detect jointly elevated PM2.5/PM10 periods outdoors and indoors.

        Detector placeholder baselines are replaced with the configured
        percentile of each PM2.5 series before severities are computed.
        """
        dp = self.params.detection
        percentile = self.params.baseline.percentile

        def detect(pm25: np.ndarray, pm10: np.ndarray) -> list[Event]:
            events = self.combined_detector.detect(
                pm25,
                pm10,
                threshold_a=dp.combined_threshold_pm25,
                threshold_b=dp.combined_threshold_pm10,
                timestamps=record.timestamps,
            )
            baseline = self.baseline_estimator.baseline(pm25, percentile)
            return [event.with_baseline(baseline) for event in events]

        events = detect(record.outdoor(Pollutant.PM25), record.outdoor(Pollutant.PM10))
        indoor_events = {
            leakage: detect(
                record.indoor(Pollutant.PM25, leakage),
                record.indoor(Pollutant.PM10, leakage),
            )
            for leakage in Leakage
        }
        tight_events = indoor_events[Leakage.TIGHT]
        leaky_events = indoor_events[Leakage.LEAKY]

        logger.info(
            f"{record.key.label} combined: {len(events)} outdoor, "
            f"{len(tight_events)} tight, {len(leaky_events)} leaky events"
        )

        response, response_bounds = self._pm25_response(
            events, record, aggregator, "combined"
        )

        return CombinedEventAnalysis(
            events=events,
            events_tight=tight_events,
            events_leaky=leaky_events,
            # Event counts are always defined, zero included
            total_events=aggregator.combine(
                "combined total_events",
                float(len(tight_events)),
                float(len(leaky_events)),
            ),
            avg_event_duration=aggregator.combine(
                "combined avg_event_duration",
                nan_mean([ev.duration for ev in tight_events]),
                nan_mean([ev.duration for ev in leaky_events]),
            ),
            severities=[ev.severity for ev in events],
            severities_tight=[ev.severity for ev in tight_events],
            severities_leaky=[ev.severity for ev in leaky_events],
            response=response,
            response_bounds=response_bounds,
        )

    def analyze_interventions(
        self, record: ConfigurationRecord, aggregator: EnvelopeAggregator
    ) -> InterventionAnalysis | None:
        """
        Score the indoor PM2.5 response to intervention activation periods.

        Returns:
            InterventionAnalysis, or None when the record has no control signal
        """
        if record.intervention is None:
            return None

        events = self.intervention_detector.detect(
            record.intervention,
            record.outdoor(Pollutant.PM25),
            timestamps=record.timestamps,
        )
        logger.info(f"{record.key.label}: {len(events)} intervention events")

        response, response_bounds = self._pm25_response(
            events, record, aggregator, "intervention"
        )
        return InterventionAnalysis(
            events=events, response=response, response_bounds=response_bounds
        )

    def analyze_configuration(
        self, record: ConfigurationRecord
    ) -> ConfigurationSummary:
        """
        Run the full analysis for one configuration.

        Args:
            record: Aligned configuration series (validated on construction)

        Returns:
            ConfigurationSummary with per-pollutant and combined results
        """
        logger.info(f"Analyzing {record.key.label} ({len(record)} samples)")
        start_time = time.time()

        aggregator = EnvelopeAggregator(context=record.key.label)

        pollutants = {
            pollutant: self.analyze_pollutant(record, pollutant, aggregator)
            for pollutant in Pollutant
        }
        combined = self.analyze_combined(record, aggregator)
        intervention = self.analyze_interventions(record, aggregator)

        event_summary = [
            summarize_event_metrics(
                analysis.detection.events,
                analysis.variants[leakage].response,
                pollutant,
                leakage,
            )
            for pollutant, analysis in pollutants.items()
            for leakage in Leakage
        ]

        elapsed = time.time() - start_time
        logger.info(
            f"Finished {record.key.label} in {elapsed:.2f}s "
            f"({len(aggregator.notices)} envelope notices)"
        )

        return ConfigurationSummary(
            key=record.key,
            num_samples=len(record),
            pollutants=pollutants,
            combined=combined,
            intervention=intervention,
            event_summary=event_summary,
            notices=aggregator.notices,
        )

    def analyze_all(
        self,
        records: Sequence[ConfigurationRecord],
        max_workers: int | None = None,
    ) -> list[ConfigurationSummary]:
        """
        Analyze independent configurations in parallel.

        A configuration whose analysis raises is logged and skipped; the
        remaining configurations are still analyzed.

        Args:
            records: Configurations to analyze
            max_workers: Thread pool size (None = executor default)

        Returns:
            Summaries in input order, failed configurations omitted
        """
        results: dict[int, ConfigurationSummary] = {}

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_index = {
                executor.submit(self.analyze_configuration, record): i
                for i, record in enumerate(records)
            }

            for future in as_completed(future_to_index):
                i = future_to_index[future]
                try:
                    results[i] = future.result()
                except Exception as e:
                    logger.error(
                        f"Analysis failed for {records[i].key.label}: {e}",
                        exc_info=True,
                    )

        skipped = len(records) - len(results)
        if skipped:
            logger.warning(f"Skipped {skipped} of {len(records)} configurations")

        return [results[i] for i in sorted(results)]

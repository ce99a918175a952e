"""
Indoor response metrics for detected outdoor events.

All calculators return NaN for a metric that cannot be computed (empty
pre-event window, zero denominator, too little trailing data) and never raise
for missing data, so callers can keep scoring the remaining events.
"""

import logging
import math

from collections.abc import Callable, Sequence

import numpy as np

from pmenvelope.analysis.shared.baseline import BaselineEstimator, finite_values
from pmenvelope.analysis.shared.event_detector import first_max_index
from pmenvelope.analysis.shared.types import (
    Event,
    ResponseMetrics,
    ResponseSummary,
    TriggerResponse,
)
from pmenvelope.constants import BaselineStatistic, VariabilityMethod
from pmenvelope.constants import FirstResponseConstants as FRC
from pmenvelope.constants import ResponseConstants as RC
from pmenvelope.constants import ReturnToBaselineConstants as RTBC

logger = logging.getLogger(__name__)

__all__ = [
    "FirstResponseDetector",
    "ResponseMetricsCalculator",
    "ReturnToBaselineEstimator",
    "trigger_response_times",
]

BaselineSource = float | np.ndarray | Sequence[float] | Callable[[int], float]


def _is_zero(value: float) -> bool:
    return abs(value) < RC.ZERO_TOLERANCE


class FirstResponseDetector:
    """
    Finds the first sample at which indoor concentration departs from its
    pre-event baseline.

    The departure threshold is base + max(abs_threshold, multiplier * var),
    combining an absolute floor with a variability-scaled floor.
    """

    def __init__(
        self,
        baseline_window: int = FRC.BASELINE_WINDOW_HOURS,
        baseline_statistic: BaselineStatistic | str = FRC.BASELINE_STATISTIC,
        variability_method: VariabilityMethod | str = FRC.VARIABILITY_METHOD,
        abs_threshold: float = FRC.ABS_THRESHOLD,
        departure_multiplier: float = FRC.DEPARTURE_MULTIPLIER,
        lookahead: int = RC.LOOKAHEAD_HOURS,
        baseline_estimator: BaselineEstimator | None = None,
    ):
        self.baseline_window = baseline_window
        self.baseline_statistic = BaselineStatistic(baseline_statistic)
        self.variability_method = VariabilityMethod(variability_method)
        self.abs_threshold = abs_threshold
        self.departure_multiplier = departure_multiplier
        self.lookahead = lookahead
        self.baseline_estimator = baseline_estimator or BaselineEstimator()

    def threshold(self, event: Event, indoor: np.ndarray) -> float:
        """Dynamic departure threshold for an event, NaN if no baseline window."""
        base = self.baseline_estimator.local_baseline(
            indoor, event.start, self.baseline_window, self.baseline_statistic
        )
        if math.isnan(base):
            return math.nan

        varb = self.baseline_estimator.variability(
            indoor, event.start, self.baseline_window, self.variability_method
        )
        relative = self.departure_multiplier * varb
        # An undefined dispersion leaves only the absolute floor
        floor = self.abs_threshold if math.isnan(relative) else max(
            self.abs_threshold, relative
        )
        return base + floor

    def first_response(self, event: Event, indoor: np.ndarray) -> float:
        """
        Offset of the first indoor sample strictly above the departure threshold.

        The offset is 1-based from event.start: the sample at event.start
        itself is offset 1.

        Args:
            event: Detected outdoor event
            indoor: Indoor concentration series aligned with the outdoor series

        Returns:
            Offset in samples, NaN if the baseline window is empty or no sample
            within the lookahead exceeds the threshold
        """
        indoor = np.asarray(indoor, dtype=float)
        threshold = self.threshold(event, indoor)
        if math.isnan(threshold):
            return math.nan

        stop = min(len(indoor), event.start + self.lookahead + 1)
        search = indoor[event.start : stop]
        with np.errstate(invalid="ignore"):
            hits = np.flatnonzero(search > threshold)

        if hits.size == 0:
            return math.nan
        return float(hits[0] + 1)

    def detect(self, events: Sequence[Event], indoor: np.ndarray) -> np.ndarray:
        """First-response offsets for each event (NaN where undefined)."""
        indoor = np.asarray(indoor, dtype=float)
        return np.array([self.first_response(ev, indoor) for ev in events], dtype=float)


class ReturnToBaselineEstimator:
    """
    Estimates time until indoor concentration re-enters and holds within a
    tolerance band around its pre-event baseline.
    """

    def __init__(
        self,
        tolerance_fraction: float = RTBC.TOLERANCE_FRACTION,
        hold: int = RTBC.HOLD_TIME_HOURS,
        lookahead: int = RC.LOOKAHEAD_HOURS,
        min_trailing: int = RTBC.MIN_DATA_HOURS,
    ):
        if hold < 1:
            raise ValueError(f"hold must be >= 1, got {hold}")
        self.tolerance_fraction = tolerance_fraction
        self.hold = hold
        self.lookahead = lookahead
        self.min_trailing = min_trailing

    @staticmethod
    def baseline_at(baseline: BaselineSource, index: int) -> float:
        """Resolve a scalar, per-index array or callable baseline at index."""
        if callable(baseline):
            return float(baseline(index))
        if np.ndim(baseline) == 0:
            return float(baseline)  # type: ignore[arg-type]
        return float(np.asarray(baseline, dtype=float)[index])

    def time_to_return(
        self, event: Event, indoor: np.ndarray, baseline: BaselineSource
    ) -> float:
        """
        Offset from event.end of the first window fully inside the band.

        Windows of `hold` samples start at event.end and slide forward while
        they fit inside min(N - 1, event.end + lookahead).

        Args:
            event: Detected event
            indoor: Indoor concentration series
            baseline: Baseline level; evaluated at event.start

        Returns:
            Offset in samples (0 when the window starting at event.end already
            qualifies), NaN when skipped or no window qualifies
        """
        indoor = np.asarray(indoor, dtype=float)
        n = len(indoor)

        if n - 1 - event.end < self.min_trailing:
            logger.debug(
                f"  Event {event.start}-{event.end}: only {n - 1 - event.end} "
                f"trailing samples, skipping return-to-baseline"
            )
            return math.nan

        base = self.baseline_at(baseline, event.start)
        if math.isnan(base):
            return math.nan

        band_low = base * (1 - self.tolerance_fraction)
        band_high = base * (1 + self.tolerance_fraction)

        search_end = min(n - 1, event.end + self.lookahead)
        with np.errstate(invalid="ignore"):
            in_band = (indoor >= band_low) & (indoor <= band_high)

        for t in range(event.end, search_end - self.hold + 2):
            if in_band[t : t + self.hold].all():
                return float(t - event.end)

        return math.nan

    def estimate(
        self, events: Sequence[Event], indoor: np.ndarray, baseline: BaselineSource
    ) -> np.ndarray:
        """Return-to-baseline offsets for each event (NaN where undefined)."""
        indoor = np.asarray(indoor, dtype=float)
        return np.array(
            [self.time_to_return(ev, indoor, baseline) for ev in events], dtype=float
        )


class ResponseMetricsCalculator:
    """
    Computes lag, peak reduction, integrated reduction and recovery time for
    outdoor events against a paired indoor series.

    Peak reduction compares the indoor peak with the peak expected under a
    1:1 outdoor-to-indoor transfer: base + (outdoor_peak - outdoor_baseline).

    Example:
        >>> calc = ResponseMetricsCalculator(lookahead=24, recovery_factor=1.1)
        >>> summary = calc.compute(events, outdoor_pm25, indoor_pm25_tight)
        >>> summary.mean("peak_reduction")
    """

    def __init__(
        self,
        lookahead: int = RC.LOOKAHEAD_HOURS,
        recovery_factor: float = RC.RECOVERY_FACTOR,
        pre_event_samples: int = RC.PRE_EVENT_SAMPLES,
        post_event_samples: int = RC.POST_EVENT_SAMPLES,
        first_response: FirstResponseDetector | None = None,
        return_to_baseline: ReturnToBaselineEstimator | None = None,
    ):
        """
        Initialize the calculator.

        Args:
            lookahead: Recovery search horizon after event end (samples)
            recovery_factor: Recovered once indoor < base * factor
            pre_event_samples: Samples before start used for the indoor base
            post_event_samples: Samples after end included in the event window
            first_response: Optional detector filling response_time
            return_to_baseline: Optional estimator filling
                return_to_baseline_time
        """
        self.lookahead = lookahead
        self.recovery_factor = recovery_factor
        self.pre_event_samples = pre_event_samples
        self.post_event_samples = post_event_samples
        self.first_response = first_response
        self.return_to_baseline = return_to_baseline

    def compute(
        self,
        events: Sequence[Event],
        outdoor: np.ndarray,
        indoor: np.ndarray,
        rtb_baseline: BaselineSource | None = None,
    ) -> ResponseSummary:
        """
        Compute per-event response metrics.

        Args:
            events: Outdoor events
            outdoor: Outdoor concentration series
            indoor: Indoor concentration series aligned with outdoor
            rtb_baseline: Baseline for return-to-baseline; required for that
                metric to be computed

        Returns:
            ResponseSummary with one ResponseMetrics per event
        """
        outdoor = np.asarray(outdoor, dtype=float)
        indoor = np.asarray(indoor, dtype=float)

        metrics = [
            self.compute_event(event, outdoor, indoor, rtb_baseline) for event in events
        ]
        summary = ResponseSummary(metrics=metrics)

        logger.debug(
            f"Response metrics for {len(metrics)} events: "
            f"avg_peak_reduction={summary.mean('peak_reduction')}, "
            f"avg_integrated_reduction={summary.mean('integrated_reduction')}"
        )
        return summary

    def indoor_base(self, event: Event, indoor: np.ndarray) -> float:
        """Mean indoor level over the samples immediately preceding the event."""
        pre = indoor[max(0, event.start - self.pre_event_samples) : event.start]
        values = finite_values(pre)
        if values.size == 0:
            return math.nan
        return float(np.mean(values))

    def compute_event(
        self,
        event: Event,
        outdoor: np.ndarray,
        indoor: np.ndarray,
        rtb_baseline: BaselineSource | None = None,
    ) -> ResponseMetrics:
        """Response metrics for a single event."""
        n = len(indoor)
        base = self.indoor_base(event, indoor)
        win = slice(event.start, min(n, event.end + self.post_event_samples + 1))

        lag_time = math.nan
        peak_reduction = math.nan
        peak_idx = first_max_index(indoor[win])
        if peak_idx is not None:
            indoor_peak = float(indoor[win][peak_idx])
            lag_time = float(event.start + peak_idx - event.peak_time)

            expected = base + (event.peak_value - event.baseline)
            if math.isfinite(expected) and not _is_zero(expected):
                peak_reduction = 100.0 * (expected - indoor_peak) / expected

        outdoor_sum = float(np.sum(outdoor[win] - event.baseline))
        indoor_sum = float(np.sum(indoor[win] - base))
        integrated_reduction = math.nan
        if math.isfinite(outdoor_sum) and not _is_zero(outdoor_sum):
            integrated_reduction = 100.0 * (1.0 - indoor_sum / outdoor_sum)

        recovery_time = self.recovery_time(event, indoor, base)

        response_time = math.nan
        if self.first_response is not None:
            response_time = self.first_response.first_response(event, indoor)

        rtb_time = math.nan
        if self.return_to_baseline is not None and rtb_baseline is not None:
            rtb_time = self.return_to_baseline.time_to_return(
                event, indoor, rtb_baseline
            )

        return ResponseMetrics(
            lag_time=lag_time,
            peak_reduction=peak_reduction,
            integrated_reduction=integrated_reduction,
            recovery_time=recovery_time,
            response_time=response_time,
            return_to_baseline_time=rtb_time,
        )

    def recovery_time(self, event: Event, indoor: np.ndarray, base: float) -> float:
        """
        Samples until indoor drops below base * recovery_factor.

        Only computed when a full lookahead window remains after the event.
        The offset is 1-based from event.end: the sample at event.end itself
        is offset 1.
        """
        n = len(indoor)
        if not event.end + self.lookahead < n - 1 or math.isnan(base):
            return math.nan

        post = indoor[event.end : event.end + self.lookahead + 1]
        thresh = base * self.recovery_factor
        with np.errstate(invalid="ignore"):
            hits = np.flatnonzero(post < thresh)

        if hits.size == 0:
            return math.nan
        return float(hits[0] + 1)


def trigger_response_times(
    indoor: np.ndarray,
    outdoor: np.ndarray,
    diff_threshold: float = RC.DIFF_THRESHOLD,
    target_fraction: float = RC.TARGET_FRACTION,
    lookahead: int = RC.LOOKAHEAD_HOURS,
) -> TriggerResponse:
    """
    Response times following sharp outdoor increases.

    Every sample k where outdoor[k + 1] - outdoor[k] exceeds diff_threshold
    starts a search over indoor[k : k + lookahead]; the response time is the
    1-based position of the first sample below indoor[k] * target_fraction.
    Triggers without a full lookahead window or without a response are dropped.

    Returns:
        TriggerResponse holding the observed times
    """
    indoor = np.asarray(indoor, dtype=float)
    outdoor = np.asarray(outdoor, dtype=float)

    with np.errstate(invalid="ignore"):
        triggers = np.flatnonzero(np.diff(outdoor) > diff_threshold)

    times = []
    for k in triggers:
        if k + lookahead >= len(indoor):
            continue
        window = indoor[k : k + lookahead + 1]
        target = indoor[k] * target_fraction
        with np.errstate(invalid="ignore"):
            hits = np.flatnonzero(window < target)
        if hits.size:
            times.append(float(hits[0] + 1))

    return TriggerResponse(times=np.array(times, dtype=float))

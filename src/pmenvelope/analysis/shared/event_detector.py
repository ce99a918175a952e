"""
Event detection for concentration series.

ThresholdEventDetector segments one series against a baseline-derived
threshold, merging near-adjacent runs and discarding short ones.
CombinedEventDetector requires two co-occurring series to exceed fixed
thresholds together. InterventionEventDetector takes event boundaries from
a control signal instead of a threshold.
"""

import logging

from collections.abc import Sequence
from typing import Any

import numpy as np

from pmenvelope.analysis.shared.baseline import BaselineEstimator
from pmenvelope.analysis.shared.types import Event, EventDetectionResult, EventQuality
from pmenvelope.constants import BaselineConstants as BC
from pmenvelope.constants import DetectionConstants as DC

logger = logging.getLogger(__name__)

__all__ = [
    "ThresholdEventDetector",
    "CombinedEventDetector",
    "InterventionEventDetector",
    "default_timestamps",
    "find_runs",
    "first_max_index",
]


def default_timestamps(length: int) -> np.ndarray:
    """Timestamps 1..N used when the caller supplies none."""
    return np.arange(1, length + 1)


def find_runs(mask: np.ndarray) -> list[tuple[int, int]]:
    """
    Maximal contiguous True runs of a boolean mask.

    Uses rising/falling edge detection on the padded mask.

    Returns:
        List of (start, end) inclusive index pairs, ordered by start
    """
    mask = np.asarray(mask, dtype=bool)
    if mask.size == 0:
        return []

    padded = np.concatenate(([False], mask, [False])).astype(np.int8)
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1) - 1

    return [(int(s), int(e)) for s, e in zip(starts, ends)]


def first_max_index(values: np.ndarray) -> int | None:
    """
    Index of the maximum finite value, first occurrence on ties.

    Returns:
        Index into values, or None when no value is finite
    """
    arr = np.asarray(values, dtype=float)
    finite = np.isfinite(arr)
    if not finite.any():
        return None
    return int(np.argmax(np.where(finite, arr, -np.inf)))


def _above(series: np.ndarray, threshold: float, inclusive: bool = False) -> np.ndarray:
    """Boolean mask of finite samples above threshold; NaN is always below."""
    with np.errstate(invalid="ignore"):
        above = series >= threshold if inclusive else series > threshold
    return above & np.isfinite(series)


def _resolve_timestamps(
    timestamps: Sequence[Any] | np.ndarray | None, length: int
) -> Sequence[Any] | np.ndarray:
    if timestamps is None:
        return default_timestamps(length)
    return timestamps


def _timestamp(timestamps: Sequence[Any] | np.ndarray, index: int) -> Any:
    value = timestamps[index]
    if isinstance(value, np.generic):
        return value.item()
    return value


class ThresholdEventDetector:
    """
    Detects events where a series exceeds a multiple of its baseline.

    The scan is sequential: runs are discovered left to right, merged when the
    gap between them is at most min_separation samples, then filtered by
    min_duration.

    Example:
        >>> detector = ThresholdEventDetector(min_duration=2, min_separation=1)
        >>> result = detector.detect(outdoor_pm25, threshold_multiplier=1.5)
        >>> for event in result.events:
        ...     print(event.start, event.end, event.peak_value)
    """

    def __init__(
        self,
        min_duration: int = DC.MIN_DURATION_HOURS,
        min_separation: int = DC.MIN_SEPARATION_HOURS,
        max_nan_gap: int = DC.MAX_NAN_GAP_HOURS,
        percentile: float = BC.PERCENTILE,
        baseline_estimator: BaselineEstimator | None = None,
    ):
        """
        Initialize the detector.

        Args:
            min_duration: Minimum event length in samples
            min_separation: Runs separated by at most this many below-threshold
                samples are merged
            max_nan_gap: Gaps of at most this many samples that are all
                missing are bridged without setting quality.merged; longer
                outages go through the min_separation rule
            percentile: Baseline percentile
            baseline_estimator: Estimator used for the whole-series baseline
        """
        if min_duration < 1:
            raise ValueError(f"min_duration must be >= 1, got {min_duration}")
        if min_separation < 0:
            raise ValueError(f"min_separation must be >= 0, got {min_separation}")
        if max_nan_gap < 0:
            raise ValueError(f"max_nan_gap must be >= 0, got {max_nan_gap}")

        self.min_duration = min_duration
        self.min_separation = min_separation
        self.max_nan_gap = max_nan_gap
        self.percentile = percentile
        self.baseline_estimator = baseline_estimator or BaselineEstimator()

    def detect(
        self,
        series: np.ndarray,
        timestamps: Sequence[Any] | np.ndarray | None = None,
        threshold_multiplier: float = DC.THRESHOLD_MULTIPLIER_PM25,
    ) -> EventDetectionResult:
        """
        Detect events in a concentration series.

        Args:
            series: Concentration samples (NaN allowed)
            timestamps: Timestamps aligned with series (default 1..N)
            threshold_multiplier: Threshold = baseline * multiplier

        Returns:
            EventDetectionResult with ordered, non-overlapping events
        """
        series = np.asarray(series, dtype=float)
        timestamps = _resolve_timestamps(timestamps, len(series))

        baseline = self.baseline_estimator.baseline(series, self.percentile)
        threshold = baseline * threshold_multiplier

        if not np.isfinite(threshold):
            logger.info("Series has no finite samples; no events detected")
            return EventDetectionResult(
                events=[], baseline=baseline, threshold=threshold, candidate_runs=0
            )

        runs = find_runs(_above(series, threshold))
        merged_runs = self._merge_runs(runs, np.isfinite(series))

        events = []
        for start, end, merged in merged_runs:
            duration = end - start + 1
            if duration < self.min_duration:
                logger.debug(
                    f"  Discarding run {start}-{end}: "
                    f"duration {duration} < {self.min_duration}"
                )
                continue
            events.append(
                self._build_event(series, timestamps, start, end, merged, baseline)
            )

        logger.debug(
            f"Threshold detection: baseline={baseline:.3f}, threshold={threshold:.3f}, "
            f"{len(runs)} runs -> {len(merged_runs)} merged -> {len(events)} events"
        )

        return EventDetectionResult(
            events=events,
            baseline=baseline,
            threshold=threshold,
            candidate_runs=len(runs),
        )

    def _merge_runs(
        self, runs: list[tuple[int, int]], finite: np.ndarray
    ) -> list[tuple[int, int, bool]]:
        """
        Merge runs whose separating gap is at most min_separation samples.

        A short gap (at most max_nan_gap samples) made only of missing
        samples is bridged without counting as a merge, so isolated NaN
        readings never split an event. A longer outage is treated like any
        other gap.

        Returns:
            List of (start, end, merged) tuples
        """
        if not runs:
            return []

        merged_runs = []
        cur_start, cur_end = runs[0]
        merged = False

        for next_start, next_end in runs[1:]:
            gap = next_start - cur_end - 1
            nan_only = not finite[cur_end + 1 : next_start].any()
            if nan_only and gap <= self.max_nan_gap:
                cur_end = next_end
            elif gap <= self.min_separation:
                cur_end = next_end
                merged = True
            else:
                merged_runs.append((cur_start, cur_end, merged))
                cur_start, cur_end = next_start, next_end
                merged = False

        merged_runs.append((cur_start, cur_end, merged))
        return merged_runs

    def _build_event(
        self,
        series: np.ndarray,
        timestamps: Sequence[Any] | np.ndarray,
        start: int,
        end: int,
        merged: bool,
        baseline: float,
    ) -> Event:
        window = series[start : end + 1]
        # Runs always start on a finite above-threshold sample
        peak_time = start + (first_max_index(window) or 0)

        return Event(
            start=start,
            end=end,
            duration=end - start + 1,
            peak_time=peak_time,
            peak_value=float(series[peak_time]),
            baseline=baseline,
            baseline_out=baseline,
            start_time=_timestamp(timestamps, start),
            end_time=_timestamp(timestamps, end),
            peak_timestamp=_timestamp(timestamps, peak_time),
            quality=EventQuality(
                merged=merged,
                short=False,
                nan_gap=bool(np.any(~np.isfinite(window))),
            ),
        )


class CombinedEventDetector:
    """
    Detects events where two co-occurring series both exceed fixed thresholds.

    An event starts when both series are at or above their thresholds and ends
    once either drops below. No merge pass is applied.
    """

    def __init__(self, min_duration: int = DC.MIN_DURATION_HOURS):
        """
        Initialize the detector.

        Args:
            min_duration: Minimum event length in samples
        """
        if min_duration < 1:
            raise ValueError(f"min_duration must be >= 1, got {min_duration}")
        self.min_duration = min_duration

    def detect(
        self,
        series_a: np.ndarray,
        series_b: np.ndarray,
        threshold_a: float = DC.COMBINED_THRESHOLD_PM25,
        threshold_b: float = DC.COMBINED_THRESHOLD_PM10,
        timestamps: Sequence[Any] | np.ndarray | None = None,
        threshold_multiplier: float = 1.0,
    ) -> list[Event]:
        """
        Detect jointly elevated periods.

        The returned events carry a placeholder baseline of
        threshold_a / threshold_multiplier; callers replace it with a
        percentile baseline via Event.with_baseline().

        Args:
            series_a: Primary series (e.g. PM2.5); peak_value comes from here
            series_b: Secondary series (e.g. PM10)
            threshold_a: Fixed threshold for series_a
            threshold_b: Fixed threshold for series_b
            timestamps: Timestamps aligned with both series (default 1..N)
            threshold_multiplier: Divisor for the placeholder baseline

        Returns:
            Events ordered by start
        """
        series_a = np.asarray(series_a, dtype=float)
        series_b = np.asarray(series_b, dtype=float)
        timestamps = _resolve_timestamps(timestamps, len(series_a))

        mask = _above(series_a, threshold_a, inclusive=True) & _above(
            series_b, threshold_b, inclusive=True
        )
        placeholder = threshold_a / threshold_multiplier

        events = []
        for start, end in find_runs(mask):
            duration = end - start + 1
            if duration < self.min_duration:
                continue

            combined = series_a[start : end + 1] + series_b[start : end + 1]
            peak_time = start + (first_max_index(combined) or 0)

            events.append(
                Event(
                    start=start,
                    end=end,
                    duration=duration,
                    peak_time=peak_time,
                    peak_value=float(series_a[peak_time]),
                    peak_secondary=float(series_b[peak_time]),
                    baseline=placeholder,
                    baseline_out=placeholder,
                    start_time=_timestamp(timestamps, start),
                    end_time=_timestamp(timestamps, end),
                    peak_timestamp=_timestamp(timestamps, peak_time),
                    quality=EventQuality(),
                )
            )

        logger.debug(
            f"Combined detection: thresholds=({threshold_a}, {threshold_b}), "
            f"{len(events)} events"
        )
        return events


class InterventionEventDetector:
    """
    Derives events from an intervention control signal.

    Start and end come from the active periods of the control signal; the
    outdoor series only supplies the peak and the baseline. A period still
    active at the last sample ends there.
    """

    def __init__(
        self,
        percentile: float = BC.PERCENTILE,
        baseline_estimator: BaselineEstimator | None = None,
    ):
        self.percentile = percentile
        self.baseline_estimator = baseline_estimator or BaselineEstimator()

    @staticmethod
    def active_mask(control: np.ndarray) -> np.ndarray:
        """Nonzero finite control samples; missing samples are inactive."""
        control = np.asarray(control, dtype=float)
        return np.isfinite(control) & (control != 0)

    def detect(
        self,
        control: np.ndarray,
        outdoor: np.ndarray,
        timestamps: Sequence[Any] | np.ndarray | None = None,
    ) -> list[Event]:
        """
        Detect intervention activation periods.

        Args:
            control: Control signal aligned with outdoor (nonzero = active)
            outdoor: Outdoor concentration; locates each event's peak
            timestamps: Timestamps aligned with both series (default 1..N)

        Returns:
            Events ordered by start, baseline set to the outdoor percentile
        """
        outdoor = np.asarray(outdoor, dtype=float)
        mask = self.active_mask(control)
        if mask.shape != outdoor.shape:
            raise ValueError(
                f"Control signal has {mask.size} samples, outdoor has {outdoor.size}"
            )
        timestamps = _resolve_timestamps(timestamps, len(outdoor))
        baseline = self.baseline_estimator.baseline(outdoor, self.percentile)

        events = []
        for start, end in find_runs(mask):
            window = outdoor[start : end + 1]
            peak_time = start + (first_max_index(window) or 0)
            events.append(
                Event(
                    start=start,
                    end=end,
                    duration=end - start + 1,
                    peak_time=peak_time,
                    peak_value=float(outdoor[peak_time]),
                    baseline=baseline,
                    baseline_out=baseline,
                    start_time=_timestamp(timestamps, start),
                    end_time=_timestamp(timestamps, end),
                    peak_timestamp=_timestamp(timestamps, peak_time),
                    quality=EventQuality(nan_gap=bool(np.any(~np.isfinite(window)))),
                )
            )

        logger.debug(
            f"Intervention detection: {int(mask.sum())} active samples, "
            f"{len(events)} events"
        )
        return events

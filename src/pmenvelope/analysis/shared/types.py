"""Shared analysis algorithm type definitions."""

import math

from typing import Annotated, Any

import numpy as np

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer

# ============================================================================
# Array Field Type
# ============================================================================


def _as_float_array(value: Any) -> np.ndarray:
    if isinstance(value, np.ndarray):
        return value.astype(float, copy=False)
    return np.array([math.nan if v is None else v for v in value], dtype=float)


def _as_json_list(value: np.ndarray) -> list[float | None]:
    return [v if math.isfinite(v) else None for v in value.tolist()]


# 1-D float array; null <-> NaN at the JSON boundary
FloatArray = Annotated[
    np.ndarray,
    BeforeValidator(_as_float_array),
    PlainSerializer(_as_json_list, return_type=list[float | None], when_used="json"),
]


# ============================================================================
# Event Detection Types
# ============================================================================


class EventQuality(BaseModel):
    """
    Quality flags attached to a detected event.

    Attributes:
        merged: Event absorbed one or more adjacent candidate runs
        short: Reserved; always False for events that survive filtering
        nan_gap: At least one non-finite sample inside [start, end]
    """

    model_config = ConfigDict(frozen=True)

    merged: bool = Field(default=False, description="Absorbed adjacent runs")
    short: bool = Field(default=False, description="Reserved short-run flag")
    nan_gap: bool = Field(default=False, description="Contains missing samples")


class Event(BaseModel):
    """
    Detected pollution or intervention event.

    Indices are 0-based and inclusive. Timestamps come from the timestamp
    vector supplied to the detector (1..N by default).

    Attributes:
        start: First sample index of the event
        end: Last sample index of the event (inclusive)
        duration: Number of samples, end - start + 1
        peak_time: Index of the maximum sample (first occurrence on ties)
        peak_value: Sample value at peak_time
        peak_secondary: Co-pollutant value at peak_time (combined events only)
        baseline: Reference level used to derive the detection threshold
        baseline_out: Same value as baseline, kept for outdoor-specific use
        start_time: Timestamp at start
        end_time: Timestamp at end
        peak_timestamp: Timestamp at peak_time
        quality: Merge/NaN quality flags
    """

    model_config = ConfigDict(frozen=True)

    start: int = Field(ge=0, description="Start sample index (inclusive)")
    end: int = Field(ge=0, description="End sample index (inclusive)")
    duration: int = Field(ge=1, description="Event length in samples")
    peak_time: int = Field(ge=0, description="Index of the peak sample")
    peak_value: float = Field(description="Concentration at the peak")
    peak_secondary: float | None = Field(
        default=None, description="Co-pollutant concentration at the peak"
    )
    baseline: float = Field(description="Baseline used for thresholding")
    baseline_out: float = Field(description="Outdoor baseline (same as baseline)")
    start_time: Any = Field(description="Timestamp at start")
    end_time: Any = Field(description="Timestamp at end")
    peak_timestamp: Any = Field(description="Timestamp at peak")
    quality: EventQuality = Field(default_factory=EventQuality)

    @property
    def severity(self) -> float:
        """Peak-to-baseline ratio, NaN when the baseline is zero or undefined."""
        if not math.isfinite(self.baseline) or self.baseline == 0:
            return math.nan
        return self.peak_value / self.baseline

    def with_baseline(self, baseline: float) -> "Event":
        """Copy of this event with both baseline slots replaced."""
        return self.model_copy(
            update={"baseline": float(baseline), "baseline_out": float(baseline)}
        )


class EventDetectionResult(BaseModel):
    """
    Events detected in a single series plus the levels used to find them.

    Attributes:
        events: Events ordered by start, non-overlapping
        baseline: Baseline level (NaN when the series has no finite samples)
        threshold: Detection threshold
        candidate_runs: Number of above-threshold runs before merge/filter
    """

    events: list[Event] = Field(default_factory=list, description="Detected events")
    baseline: float = Field(description="Baseline level")
    threshold: float = Field(description="Detection threshold")
    candidate_runs: int = Field(ge=0, description="Raw runs before merge/filter")

    def __len__(self) -> int:
        return len(self.events)


# ============================================================================
# Response Metric Types
# ============================================================================


class ResponseMetrics(BaseModel):
    """
    Indoor response to a single outdoor event.

    Undefined metrics are NaN.

    Attributes:
        lag_time: Indoor peak index minus outdoor peak index (samples)
        peak_reduction: Percent reduction versus 1:1 transfer expectation
        integrated_reduction: Percent reduction of integrated excess dose
        recovery_time: Samples after end until indoor < baseline * factor
        response_time: Samples after start until first indoor departure
        return_to_baseline_time: Samples after end until held inside band
    """

    lag_time: float = Field(default=math.nan, description="Peak lag (samples)")
    peak_reduction: float = Field(default=math.nan, description="Peak reduction (%)")
    integrated_reduction: float = Field(
        default=math.nan, description="Integrated reduction (%)"
    )
    recovery_time: float = Field(default=math.nan, description="Recovery (samples)")
    response_time: float = Field(
        default=math.nan, description="First departure offset (samples)"
    )
    return_to_baseline_time: float = Field(
        default=math.nan, description="Return-to-baseline offset (samples)"
    )


METRIC_NAMES: tuple[str, ...] = tuple(ResponseMetrics.model_fields)


def nan_mean(values: Any) -> float | None:
    """Mean ignoring undefined entries; None when nothing is defined."""
    arr = np.asarray(values, dtype=float)
    finite = arr[np.isfinite(arr)]
    if finite.size == 0:
        return None
    return float(np.mean(finite))


class ResponseSummary(BaseModel):
    """
    Per-event response metric vectors for one series pairing.

    Attributes:
        metrics: One ResponseMetrics per event, in event order
    """

    metrics: list[ResponseMetrics] = Field(default_factory=list)

    @property
    def num_events(self) -> int:
        return len(self.metrics)

    def vector(self, name: str) -> np.ndarray:
        """Metric values across events as a float array (NaN = undefined)."""
        if name not in METRIC_NAMES:
            raise KeyError(f"Unknown response metric: {name}")
        return np.array([getattr(m, name) for m in self.metrics], dtype=float)

    def mean(self, name: str) -> float | None:
        """Mean of a metric ignoring undefined values."""
        return nan_mean(self.vector(name))

    def means(self) -> dict[str, float | None]:
        return {name: self.mean(name) for name in METRIC_NAMES}


class TriggerResponse(BaseModel):
    """
    Indoor response times following sharp outdoor increases.

    Attributes:
        times: One response time (samples) per answered trigger
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    times: FloatArray = Field(description="Response times in samples")

    @property
    def mean(self) -> float | None:
        return nan_mean(self.times)

    @property
    def std(self) -> float | None:
        """
        Sample standard deviation of the finite times.

        A single observation has zero spread; None when there are none.
        """
        finite = self.times[np.isfinite(self.times)]
        if finite.size == 0:
            return None
        if finite.size == 1:
            return 0.0
        return float(np.std(finite, ddof=1))

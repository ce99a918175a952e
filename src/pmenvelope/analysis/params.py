"""Analysis parameter bundle.

Every option carries a default so components never branch on whether an
option exists. Durations are in samples (hours for hourly data).
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pmenvelope.constants import PARAMS_VERSION, BaselineStatistic, VariabilityMethod
from pmenvelope.constants import BaselineConstants as BC
from pmenvelope.constants import DetectionConstants as DC
from pmenvelope.constants import FirstResponseConstants as FRC
from pmenvelope.constants import ResponseConstants as RC
from pmenvelope.constants import ReturnToBaselineConstants as RTBC

__all__ = [
    "AnalysisParams",
    "BaselineParams",
    "DetectionParams",
    "FirstResponseParams",
    "ResponseParams",
    "ReturnToBaselineParams",
    "DEFAULT_PARAMS",
]


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class BaselineParams(_Section):
    """Whole-series baseline estimation."""

    percentile: float = Field(
        default=BC.PERCENTILE, ge=0, le=100, description="Baseline percentile"
    )
    method: str = Field(
        default=BC.PERCENTILE_METHOD,
        description="numpy percentile interpolation method",
    )


class DetectionParams(_Section):
    """Threshold event detection."""

    threshold_multiplier_pm25: float = Field(
        default=DC.THRESHOLD_MULTIPLIER_PM25,
        ge=0,
        description="Multiple of baseline flagging PM2.5 events",
    )
    threshold_multiplier_pm10: float = Field(
        default=DC.THRESHOLD_MULTIPLIER_PM10,
        ge=0,
        description="Multiple of baseline flagging PM10 events",
    )
    min_duration_hours: int = Field(
        default=DC.MIN_DURATION_HOURS, ge=1, description="Minimum event duration"
    )
    min_separation_hours: int = Field(
        default=DC.MIN_SEPARATION_HOURS,
        ge=0,
        description="Gaps up to this length are merged",
    )
    max_nan_gap_hours: int = Field(
        default=DC.MAX_NAN_GAP_HOURS,
        ge=0,
        description="All-missing gaps up to this length never split an event",
    )
    combined_threshold_pm25: float = Field(
        default=DC.COMBINED_THRESHOLD_PM25,
        description="Fixed PM2.5 threshold for combined events (µg/m³)",
    )
    combined_threshold_pm10: float = Field(
        default=DC.COMBINED_THRESHOLD_PM10,
        description="Fixed PM10 threshold for combined events (µg/m³)",
    )


class ResponseParams(_Section):
    """Indoor response metrics."""

    lookahead_hours: int = Field(
        default=RC.LOOKAHEAD_HOURS, ge=0, description="Search horizon after events"
    )
    recovery_factor: float = Field(
        default=RC.RECOVERY_FACTOR,
        gt=0,
        description="Recovered once indoor < baseline * factor",
    )
    diff_threshold: float = Field(
        default=RC.DIFF_THRESHOLD,
        description="Outdoor increase that triggers a response search",
    )
    target_fraction: float = Field(
        default=RC.TARGET_FRACTION,
        gt=0,
        description="Fraction of trigger level considered a response",
    )


class FirstResponseParams(_Section):
    """First indoor departure from the pre-event baseline."""

    baseline_window_hours: int = Field(
        default=FRC.BASELINE_WINDOW_HOURS, ge=1, description="Pre-event window"
    )
    baseline_statistic: BaselineStatistic = Field(
        default=FRC.BASELINE_STATISTIC, description="mean or median"
    )
    variability_method: VariabilityMethod = Field(
        default=FRC.VARIABILITY_METHOD, description="stdev or mad"
    )
    abs_threshold: float = Field(
        default=FRC.ABS_THRESHOLD, ge=0, description="Minimum rise above baseline"
    )
    departure_multiplier: float = Field(
        default=FRC.DEPARTURE_MULTIPLIER,
        ge=0,
        description="Multiples of baseline variability",
    )


class ReturnToBaselineParams(_Section):
    """Return to a tolerance band around the pre-event baseline."""

    tolerance_fraction: float = Field(
        default=RTBC.TOLERANCE_FRACTION, ge=0, description="Band half-width"
    )
    hold_time_hours: int = Field(
        default=RTBC.HOLD_TIME_HOURS, ge=1, description="Samples that must stay in band"
    )
    min_data_hours: int = Field(
        default=RTBC.MIN_DATA_HOURS,
        ge=0,
        description="Required samples after the event end",
    )


class AnalysisParams(BaseModel):
    """
    Complete, resolved parameter bundle for one analysis run.

    Nested sections mirror the TOML parameter file layout, e.g.
    ``[detection] min_duration_hours = 2``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    params_version: int = Field(default=PARAMS_VERSION, description="Schema version")
    baseline: BaselineParams = Field(default_factory=BaselineParams)
    detection: DetectionParams = Field(default_factory=DetectionParams)
    response: ResponseParams = Field(default_factory=ResponseParams)
    first_response: FirstResponseParams = Field(default_factory=FirstResponseParams)
    rtb: ReturnToBaselineParams = Field(default_factory=ReturnToBaselineParams)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "AnalysisParams":
        """Build parameters from a nested mapping, filling unset options."""
        return cls.model_validate(data)

    def to_mapping(self) -> dict[str, Any]:
        """Nested plain-data mapping suitable for TOML serialization."""
        return self.model_dump(mode="json")

    def with_overrides(self, **sections: dict[str, Any]) -> "AnalysisParams":
        """Return a copy with selected section options replaced."""
        data = self.to_mapping()
        for section, values in sections.items():
            if section not in data or not isinstance(data[section], dict):
                raise ValueError(f"Unknown parameter section: {section}")
            data[section].update(values)
        return self.from_mapping(data)


DEFAULT_PARAMS = AnalysisParams()

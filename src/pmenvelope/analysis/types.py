"""Per-configuration input records and analysis result types."""

from typing import Any

import numpy as np

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pmenvelope.analysis.envelope import EnvelopeBound, EnvelopeNotice, SeriesEnvelope
from pmenvelope.analysis.shared.types import (
    Event,
    EventDetectionResult,
    FloatArray,
    ResponseSummary,
)
from pmenvelope.constants import Leakage, Pollutant
from pmenvelope.utils.validation import validate_alignment

# ============================================================================
# Input Records
# ============================================================================


class ConfigurationKey(BaseModel):
    """
    Identity of one simulated building configuration.

    Attributes:
        location: Site name (e.g. "Boston")
        filter_type: Filter installed (e.g. "MERV13")
        mode: Operating mode of the system (e.g. "active")
    """

    model_config = ConfigDict(frozen=True)

    location: str = Field(description="Site name")
    filter_type: str = Field(description="Filter installed")
    mode: str = Field(default="active", description="Operating mode")

    @property
    def label(self) -> str:
        return f"{self.location}/{self.filter_type}/{self.mode}"


class ConfigurationRecord(BaseModel):
    """
    Aligned outdoor and indoor series for one configuration.

    Indoor series come in two leakage variants that bound the plausible
    building behavior. JSON null entries are read as missing (NaN) samples.
    An optional intervention control signal marks when the system was
    actively running.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: ConfigurationKey = Field(description="Configuration identity")
    outdoor_pm25: FloatArray = Field(description="Outdoor PM2.5 (µg/m³)")
    outdoor_pm10: FloatArray = Field(description="Outdoor PM10 (µg/m³)")
    indoor_pm25_tight: FloatArray = Field(description="Indoor PM2.5, tight building")
    indoor_pm25_leaky: FloatArray = Field(description="Indoor PM2.5, leaky building")
    indoor_pm10_tight: FloatArray = Field(description="Indoor PM10, tight building")
    indoor_pm10_leaky: FloatArray = Field(description="Indoor PM10, leaky building")
    timestamps: list[Any] | None = Field(
        default=None, description="Shared timestamps (default 1..N)"
    )
    intervention: FloatArray | None = Field(
        default=None, description="Intervention control signal (nonzero = active)"
    )

    @model_validator(mode="after")
    def _check_alignment(self) -> "ConfigurationRecord":
        series = self.series()
        if self.intervention is not None:
            series["intervention"] = self.intervention
        validate_alignment(series, self.timestamps)
        return self

    def series(self) -> dict[str, np.ndarray]:
        """All concentration series keyed by field name."""
        return {
            "outdoor_pm25": self.outdoor_pm25,
            "outdoor_pm10": self.outdoor_pm10,
            "indoor_pm25_tight": self.indoor_pm25_tight,
            "indoor_pm25_leaky": self.indoor_pm25_leaky,
            "indoor_pm10_tight": self.indoor_pm10_tight,
            "indoor_pm10_leaky": self.indoor_pm10_leaky,
        }

    def __len__(self) -> int:
        return len(self.outdoor_pm25)

    def outdoor(self, pollutant: Pollutant) -> np.ndarray:
        if pollutant == Pollutant.PM25:
            return self.outdoor_pm25
        return self.outdoor_pm10

    def indoor(self, pollutant: Pollutant, leakage: Leakage) -> np.ndarray:
        prefix = "indoor_pm25" if pollutant == Pollutant.PM25 else "indoor_pm10"
        return getattr(self, f"{prefix}_{Leakage(leakage).value}")


# ============================================================================
# Results
# ============================================================================


class VariantAnalysis(BaseModel):
    """
    Indoor response under one leakage variant.

    Attributes:
        leakage: Building leakage variant
        response: Per-event response metrics
        trigger_response_times: Response times after sharp outdoor rises
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    leakage: Leakage = Field(description="Leakage variant")
    response: ResponseSummary = Field(description="Per-event response metrics")
    trigger_response_times: FloatArray = Field(
        description="Trigger-based response times (samples)"
    )


class PollutantAnalysis(BaseModel):
    """
    Threshold-detected outdoor events for one pollutant and the indoor
    response envelope across leakage variants.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    pollutant: Pollutant = Field(description="Pollutant analyzed")
    detection: EventDetectionResult = Field(description="Outdoor event detection")
    variants: dict[Leakage, VariantAnalysis] = Field(description="Per-variant response")
    response_bounds: dict[str, EnvelopeBound | None] = Field(
        description="Envelope of each mean response metric"
    )
    trigger_response_bounds: EnvelopeBound | None = Field(
        default=None, description="Envelope of mean trigger response time"
    )
    series: SeriesEnvelope = Field(description="Indoor concentration envelope")


class CombinedEventAnalysis(BaseModel):
    """
    Periods when PM2.5 and PM10 are jointly elevated.

    Outdoor combined events carry a percentile baseline of outdoor PM2.5;
    indoor tight/leaky events carry a percentile baseline of their own
    PM2.5 series.
    """

    events: list[Event] = Field(description="Outdoor combined events")
    events_tight: list[Event] = Field(description="Indoor combined events, tight")
    events_leaky: list[Event] = Field(description="Indoor combined events, leaky")
    total_events: EnvelopeBound | None = Field(
        description="Envelope of indoor combined event counts"
    )
    avg_event_duration: EnvelopeBound | None = Field(
        description="Envelope of mean indoor combined event duration"
    )
    severities: list[float] = Field(description="Outdoor peak / baseline ratios")
    severities_tight: list[float] = Field(description="Tight peak / baseline ratios")
    severities_leaky: list[float] = Field(description="Leaky peak / baseline ratios")
    response: dict[Leakage, ResponseSummary] = Field(
        default_factory=dict, description="PM2.5 response to outdoor combined events"
    )
    response_bounds: dict[str, EnvelopeBound | None] = Field(
        default_factory=dict, description="Envelope of each mean response metric"
    )


class InterventionAnalysis(BaseModel):
    """
    Intervention activation periods and the indoor PM2.5 response to them.

    Event boundaries come from the control signal; peaks and baselines come
    from outdoor PM2.5.
    """

    events: list[Event] = Field(description="Activation periods")
    response: dict[Leakage, ResponseSummary] = Field(
        default_factory=dict, description="PM2.5 response per leakage variant"
    )
    response_bounds: dict[str, EnvelopeBound | None] = Field(
        default_factory=dict, description="Envelope of each mean response metric"
    )


class MetricSpread(BaseModel):
    """Median and interquartile range of one metric."""

    model_config = ConfigDict(frozen=True)

    median: float = Field(description="Median")
    iqr: float = Field(ge=0, description="75th minus 25th percentile")


class EventMetricSummary(BaseModel):
    """
    Robust summary of per-event metrics for one pollutant and variant.

    Flagged events are counted but excluded from every spread.
    """

    pollutant: Pollutant = Field(description="Pollutant")
    leakage: Leakage = Field(description="Leakage variant")
    n_events: int = Field(ge=0, description="Events scored")
    n_flagged: int = Field(ge=0, description="Events with a quality flag")
    metrics: dict[str, MetricSpread | None] = Field(
        description="Median/IQR per metric (None when no valid values)"
    )


class ConfigurationSummary(BaseModel):
    """Complete analysis of one configuration."""

    key: ConfigurationKey = Field(description="Configuration identity")
    num_samples: int = Field(ge=0, description="Series length")
    pollutants: dict[Pollutant, PollutantAnalysis] = Field(
        description="Per-pollutant analysis"
    )
    combined: CombinedEventAnalysis = Field(description="Combined PM2.5/PM10 events")
    intervention: InterventionAnalysis | None = Field(
        default=None, description="Intervention events, if a control signal is given"
    )
    event_summary: list[EventMetricSummary] = Field(
        default_factory=list, description="Median/IQR summaries"
    )
    notices: list[EnvelopeNotice] = Field(
        default_factory=list, description="Incomplete envelope notices"
    )

"""
Deterministic tight/leaky uncertainty envelopes.

The two building-leakage variants are treated as the extremes of plausible
behavior. Bounds are (min, max) of the two variant values and the central
value is their arithmetic mean; no statistical interval is implied.
"""

import logging
import math

from typing import Any

import numpy as np

from pydantic import BaseModel, ConfigDict, Field

from pmenvelope.analysis.shared.types import FloatArray, nan_mean

logger = logging.getLogger(__name__)

__all__ = [
    "EnvelopeAggregator",
    "EnvelopeBound",
    "EnvelopeNotice",
    "SeriesEnvelope",
    "series_envelope",
]


class EnvelopeBound(BaseModel):
    """
    Two-point envelope of a scalar metric.

    Attributes:
        mean: (tight + leaky) / 2
        lower: min(tight, leaky)
        upper: max(tight, leaky)
    """

    model_config = ConfigDict(frozen=True)

    mean: float = Field(description="Midpoint of the two variants")
    lower: float = Field(description="Smaller variant value")
    upper: float = Field(description="Larger variant value")

    @property
    def width(self) -> float:
        return self.upper - self.lower


class EnvelopeNotice(BaseModel):
    """
    Warning raised when one variant has no value where the other does.

    Attributes:
        metric: Metric name
        context: Configuration label the metric belongs to
        missing: Which variant(s) lacked a value
    """

    model_config = ConfigDict(frozen=True)

    metric: str = Field(description="Metric name")
    context: str = Field(default="", description="Configuration label")
    missing: list[str] = Field(description="Variants without a value")

    def __str__(self) -> str:
        where = f" [{self.context}]" if self.context else ""
        return f"{self.metric}{where}: no value for {', '.join(self.missing)}"


def _defined(value: float | None) -> bool:
    return value is not None and math.isfinite(value)


class EnvelopeAggregator:
    """
    Folds tight and leaky results into EnvelopeBound values.

    A metric missing on either side yields no bound; an EnvelopeNotice is
    recorded and logged instead of falling back to the available side.

    Example:
        >>> agg = EnvelopeAggregator(context="Boston/MERV13/active")
        >>> bound = agg.combine("avg_lag_time", 2.0, 4.0)
        >>> bound.lower, bound.upper
        (2.0, 4.0)
    """

    def __init__(self, context: str = ""):
        self.context = context
        self.notices: list[EnvelopeNotice] = []

    def combine(
        self, metric: str, tight: float | None, leaky: float | None
    ) -> EnvelopeBound | None:
        """
        Envelope of two scalar results.

        Args:
            metric: Metric name (for notices)
            tight: Value under the tight variant (None/NaN = undefined)
            leaky: Value under the leaky variant (None/NaN = undefined)

        Returns:
            EnvelopeBound, or None if either side is undefined
        """
        if not (_defined(tight) and _defined(leaky)):
            missing = [
                name
                for name, value in (("tight", tight), ("leaky", leaky))
                if not _defined(value)
            ]
            # Nothing to warn about when neither side produced a value
            if len(missing) == 1:
                notice = EnvelopeNotice(
                    metric=metric, context=self.context, missing=missing
                )
                self.notices.append(notice)
                logger.warning(f"Envelope incomplete: {notice}")
            return None

        return EnvelopeBound(
            mean=(tight + leaky) / 2,
            lower=min(tight, leaky),
            upper=max(tight, leaky),
        )

    def combine_vectors(
        self, metric: str, tight: Any, leaky: Any
    ) -> EnvelopeBound | None:
        """Envelope of the NaN-ignoring means of two per-event vectors."""
        return self.combine(metric, nan_mean(tight), nan_mean(leaky))

    def combine_many(
        self, tight: dict[str, float | None], leaky: dict[str, float | None]
    ) -> dict[str, EnvelopeBound | None]:
        """Envelope every metric present in either mapping."""
        names = list(dict.fromkeys([*tight, *leaky]))
        return {
            name: self.combine(name, tight.get(name), leaky.get(name))
            for name in names
        }


class SeriesEnvelope(BaseModel):
    """
    Envelope of two full indoor concentration series.

    Attributes:
        mean_bounds: Envelope of the two series means
        range_percent: 100 * (upper - lower) / mean of the series means
        hourly_lower: Sample-wise min of the two series
        hourly_upper: Sample-wise max of the two series
        hourly_mean: Sample-wise mean of the two series
        uncertainty_mean: Mean absolute tight/leaky difference
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    mean_bounds: EnvelopeBound | None = Field(description="Bounds of series means")
    range_percent: float | None = Field(description="Relative envelope width (%)")
    hourly_lower: FloatArray = Field(description="Sample-wise lower bound")
    hourly_upper: FloatArray = Field(description="Sample-wise upper bound")
    hourly_mean: FloatArray = Field(description="Sample-wise midpoint")
    uncertainty_mean: float | None = Field(description="Mean |tight - leaky|")


def series_envelope(
    tight: np.ndarray,
    leaky: np.ndarray,
    aggregator: EnvelopeAggregator | None = None,
    metric: str = "mean_concentration",
) -> SeriesEnvelope:
    """
    Bound two aligned indoor series sample by sample and by their means.

    NaN in either series propagates to that sample's bounds.
    """
    tight = np.asarray(tight, dtype=float)
    leaky = np.asarray(leaky, dtype=float)
    aggregator = aggregator or EnvelopeAggregator()

    bounds = aggregator.combine(metric, nan_mean(tight), nan_mean(leaky))

    range_percent = None
    if bounds is not None and bounds.mean != 0:
        range_percent = 100.0 * bounds.width / bounds.mean

    return SeriesEnvelope(
        mean_bounds=bounds,
        range_percent=range_percent,
        hourly_lower=np.minimum(tight, leaky),
        hourly_upper=np.maximum(tight, leaky),
        hourly_mean=(tight + leaky) / 2,
        uncertainty_mean=nan_mean(np.abs(tight - leaky)),
    )

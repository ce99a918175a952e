"""Median/IQR summaries of per-event response metrics."""

import logging

from collections.abc import Sequence

import numpy as np

from pmenvelope.analysis.shared.baseline import finite_values
from pmenvelope.analysis.shared.types import Event, ResponseSummary
from pmenvelope.analysis.types import EventMetricSummary, MetricSpread
from pmenvelope.constants import BaselineConstants as BC
from pmenvelope.constants import Leakage, Pollutant

logger = logging.getLogger(__name__)

SUMMARY_METRICS = (
    "lag_time",
    "recovery_time",
    "peak_reduction",
    "integrated_reduction",
)


def is_flagged(event: Event) -> bool:
    """True if the event carries any quality flag."""
    quality = event.quality
    return quality.merged or quality.short or quality.nan_gap


def metric_spread(
    values: np.ndarray, method: str = BC.PERCENTILE_METHOD
) -> MetricSpread | None:
    """
    Median and IQR of the finite entries of a metric vector.

    Returns:
        MetricSpread, or None if no entry is finite
    """
    finite = finite_values(values)
    if finite.size == 0:
        return None
    q25, q75 = np.percentile(finite, [25, 75], method=method)
    return MetricSpread(median=float(np.median(finite)), iqr=float(q75 - q25))


def summarize_event_metrics(
    events: Sequence[Event],
    response: ResponseSummary,
    pollutant: Pollutant,
    leakage: Leakage,
) -> EventMetricSummary:
    """
    Summarize response metrics for one pollutant and leakage variant.

    Args:
        events: Events the response metrics were computed for, same order
        response: Per-event response metrics
        pollutant: Pollutant of the events
        leakage: Indoor leakage variant

    Returns:
        EventMetricSummary with counts and per-metric median/IQR
    """
    if len(events) != response.num_events:
        raise ValueError(
            f"Got {len(events)} events but {response.num_events} metric records"
        )

    flagged = np.array([is_flagged(ev) for ev in events], dtype=bool)
    keep = ~flagged

    metrics = {
        name: metric_spread(response.vector(name)[keep]) for name in SUMMARY_METRICS
    }

    logger.debug(
        f"{pollutant.value}/{leakage.value}: {len(events)} events, "
        f"{int(flagged.sum())} flagged"
    )

    return EventMetricSummary(
        pollutant=pollutant,
        leakage=leakage,
        n_events=len(events),
        n_flagged=int(flagged.sum()),
        metrics=metrics,
    )

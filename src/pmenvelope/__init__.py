"""
pmenvelope: particulate-matter event detection and response envelopes

Detects outdoor pollution and intervention events in concentration series,
scores the indoor response of simulated buildings and bounds every result
between tight and leaky building variants.
"""

from pmenvelope.analysis.envelope import EnvelopeAggregator, EnvelopeBound
from pmenvelope.analysis.params import AnalysisParams
from pmenvelope.analysis.service import EventAnalysisService
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
)
from pmenvelope.analysis.shared.types import Event, EventQuality, ResponseMetrics
from pmenvelope.analysis.types import ConfigurationKey, ConfigurationRecord

__all__ = [
    "AnalysisParams",
    "BaselineEstimator",
    "CombinedEventDetector",
    "ConfigurationKey",
    "ConfigurationRecord",
    "EnvelopeAggregator",
    "EnvelopeBound",
    "Event",
    "EventAnalysisService",
    "EventQuality",
    "FirstResponseDetector",
    "InterventionEventDetector",
    "ResponseMetrics",
    "ResponseMetricsCalculator",
    "ReturnToBaselineEstimator",
    "ThresholdEventDetector",
]

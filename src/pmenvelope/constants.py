"""
Constants for particulate-matter event detection and response analysis.

Default values follow the hourly simulation workflow: one sample equals one
hour, so every "*_HOURS" value is also a sample count.
"""

from enum import Enum
from pathlib import Path

# ============================================================================
# Enumerations
# ============================================================================


class Pollutant(str, Enum):
    """Particulate-matter size fractions analyzed."""

    PM25 = "PM2.5"
    PM10 = "PM10"


class Leakage(str, Enum):
    """Building leakage variants bounding the uncertainty envelope."""

    TIGHT = "tight"
    LEAKY = "leaky"


class BaselineStatistic(str, Enum):
    """Statistic used for a local pre-event baseline."""

    MEAN = "mean"
    MEDIAN = "median"


class VariabilityMethod(str, Enum):
    """Dispersion statistic used around a local baseline."""

    STDEV = "stdev"
    MAD = "mad"


# ============================================================================
# Analysis Algorithm Constants
# ============================================================================


class BaselineConstants:
    """Constants for baseline estimation (baseline.py)."""

    PERCENTILE = 20.0
    # Midpoint rule: the i-th sorted sample sits at (i - 0.5) / n
    PERCENTILE_METHOD = "hazen"


class DetectionConstants:
    """
    Constants for event detection (event_detector.py).

    Durations and separations are in samples (hours for hourly data).
    """

    THRESHOLD_MULTIPLIER_PM25 = 1.5
    THRESHOLD_MULTIPLIER_PM10 = 1.5
    MIN_DURATION_HOURS = 2
    MIN_SEPARATION_HOURS = 1
    # Longest all-missing gap bridged without counting as a merge
    MAX_NAN_GAP_HOURS = 2

    # Fixed thresholds for combined PM2.5/PM10 detection (µg/m³)
    COMBINED_THRESHOLD_PM25 = 9.1
    COMBINED_THRESHOLD_PM10 = 54.0


class ResponseConstants:
    """Constants for indoor response metrics (response.py)."""

    PRE_EVENT_SAMPLES = 6
    POST_EVENT_SAMPLES = 12

    LOOKAHEAD_HOURS = 24
    RECOVERY_FACTOR = 1.1

    # Trigger-based response time
    DIFF_THRESHOLD = 5.0
    TARGET_FRACTION = 0.5

    # Denominators smaller than this are treated as zero
    ZERO_TOLERANCE = 1e-12


class FirstResponseConstants:
    """Constants for first indoor response detection."""

    BASELINE_WINDOW_HOURS = 3
    BASELINE_STATISTIC = BaselineStatistic.MEDIAN
    VARIABILITY_METHOD = VariabilityMethod.STDEV
    DEPARTURE_MULTIPLIER = 2.0
    ABS_THRESHOLD = 5.0


class ReturnToBaselineConstants:
    """Constants for return-to-baseline estimation."""

    TOLERANCE_FRACTION = 0.10
    HOLD_TIME_HOURS = 2
    MIN_DATA_HOURS = 6


# ============================================================================
# Default Settings
# ============================================================================

PARAMS_VERSION = 3

DEFAULT_CONFIG_DIR = Path.home() / ".pmenvelope"
DEFAULT_CONFIG_FILE = "params.toml"

# Logging configuration
DEFAULT_LOG_DIR = DEFAULT_CONFIG_DIR / "logs"
DEFAULT_LOG_FILE = "pmenvelope.log"
DEFAULT_LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_LOG_BACKUP_COUNT = 5
LOG_FILE_FORMAT = "%(asctime)s [%(threadName)s] %(name)s %(levelname)s: %(message)s"
LOG_CONSOLE_FORMAT = "%(levelname)s: %(message)s"

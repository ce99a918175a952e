"""
Logging setup for the pmenvelope CLI.

Console output goes to stderr; a rotating log file under ~/.pmenvelope/logs
keeps the full detector trace, tagged with the worker thread so interleaved
configurations from analyze_all can be told apart. The [logging] table of
the params file tunes the file handler.
"""

import logging
import logging.config
import sys

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pmenvelope.config import load_config
from pmenvelope.constants import (
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_FILE,
    DEFAULT_LOG_MAX_BYTES,
    LOG_CONSOLE_FORMAT,
    LOG_FILE_FORMAT,
)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

_logging_configured = False


class LoggingSettings(BaseModel):
    """
    User-tunable logging options read from the [logging] table.

    Attributes:
        enabled: Write the rotating log file
        level: File handler level
        analysis_level: Level of the pmenvelope.analysis loggers, which emit
            one debug line per discarded run and per event
        max_size_mb: Rotate after this many megabytes
        backup_count: Rotated files to keep
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    enabled: bool = Field(default=True, description="Write the log file")
    level: LogLevel = Field(default="DEBUG", description="File handler level")
    analysis_level: LogLevel = Field(
        default="DEBUG", description="Level of the analysis loggers"
    )
    max_size_mb: float = Field(
        default=DEFAULT_LOG_MAX_BYTES / (1024 * 1024),
        gt=0,
        description="Rotation size in MB",
    )
    backup_count: int = Field(
        default=DEFAULT_LOG_BACKUP_COUNT, ge=0, description="Rotated files kept"
    )

    @property
    def max_bytes(self) -> int:
        return int(self.max_size_mb * 1024 * 1024)


def get_log_path() -> Path:
    """Path to the active log file, creating its directory if needed."""
    DEFAULT_LOG_DIR.mkdir(mode=0o700, parents=True, exist_ok=True)
    return DEFAULT_LOG_DIR / DEFAULT_LOG_FILE


def load_logging_settings(path: Path | None = None) -> LoggingSettings:
    """
    Read the [logging] table of the params file.

    Invalid settings are reported on stderr and replaced by the defaults,
    since logging is not configured yet at this point.
    """
    table = load_config(path).get("logging", {})
    if not isinstance(table, dict):
        sys.stderr.write("WARNING: [logging] must be a table, using defaults\n")
        return LoggingSettings()

    table = dict(table)
    for key in ("level", "analysis_level"):
        if isinstance(table.get(key), str):
            table[key] = table[key].upper()

    try:
        return LoggingSettings.model_validate(table)
    except ValidationError as e:
        sys.stderr.write(f"WARNING: Invalid [logging] settings, using defaults: {e}\n")
        return LoggingSettings()


def build_logging_config(
    settings: LoggingSettings,
    verbose: bool = False,
    console_format: str = LOG_CONSOLE_FORMAT,
) -> dict[str, Any]:
    """
    Build the dictConfig dictionary for the given settings.

    Args:
        settings: File handler and analysis logger options
        verbose: Show DEBUG messages on the console
        console_format: Console format string

    Returns:
        Dictionary suitable for logging.config.dictConfig()
    """
    handlers: dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG" if verbose else "INFO",
            "formatter": "console",
            "stream": "ext://sys.stderr",
        },
    }
    if settings.enabled:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": settings.level,
            "formatter": "file",
            "filename": str(get_log_path()),
            "maxBytes": settings.max_bytes,
            "backupCount": settings.backup_count,
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": console_format},
            "file": {"format": LOG_FILE_FORMAT},
        },
        "handlers": handlers,
        "loggers": {
            "pmenvelope.analysis": {"level": settings.analysis_level},
        },
        "root": {"level": "DEBUG", "handlers": list(handlers)},
    }


def setup_logging(
    *,
    verbose: bool = False,
    console_format: str = LOG_CONSOLE_FORMAT,
    config_path: Path | None = None,
) -> None:
    """
    Configure logging once per process.

    Args:
        verbose: Show DEBUG messages on the console
        console_format: Console format string
        config_path: Params file holding the [logging] table
    """
    global _logging_configured

    if _logging_configured:
        return

    settings = load_logging_settings(config_path)
    try:
        logging.config.dictConfig(
            build_logging_config(settings, verbose, console_format)
        )
    except (OSError, ValueError) as e:
        # Unwritable log directory; keep console output
        sys.stderr.write(f"WARNING: Failed to configure logging: {e}\n")
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO, format=console_format
        )

    _logging_configured = True

"""
Tests for logging settings read from the [logging] table.
"""

import pytest

from pmenvelope.config import save_config
from pmenvelope.logging_config import (
    LoggingSettings,
    build_logging_config,
    load_logging_settings,
)


class TestLoadLoggingSettings:
    """Test reading and validating the [logging] table."""

    def test_missing_file_gives_defaults(self, params_file):
        assert load_logging_settings(params_file) == LoggingSettings()

    def test_levels_are_case_insensitive(self, params_file):
        save_config(
            {"logging": {"level": "info", "analysis_level": "warning"}}, params_file
        )

        settings = load_logging_settings(params_file)

        assert settings.level == "INFO"
        assert settings.analysis_level == "WARNING"

    def test_invalid_settings_fall_back(self, params_file, capsys):
        save_config({"logging": {"max_size_mb": -1}}, params_file)

        assert load_logging_settings(params_file) == LoggingSettings()
        assert "Invalid [logging] settings" in capsys.readouterr().err

    def test_parameter_tables_are_ignored(self, params_file):
        save_config(
            {"rtb": {"hold_time_hours": 3}, "logging": {"backup_count": 2}},
            params_file,
        )

        assert load_logging_settings(params_file).backup_count == 2


class TestBuildLoggingConfig:
    """Test the generated dictConfig dictionary."""

    @pytest.fixture
    def log_dir(self, tmp_path, monkeypatch):
        log_dir = tmp_path / "logs"
        monkeypatch.setattr("pmenvelope.logging_config.DEFAULT_LOG_DIR", log_dir)
        return log_dir

    def test_file_handler(self, log_dir):
        settings = LoggingSettings(max_size_mb=2, backup_count=3)

        config = build_logging_config(settings)
        handler = config["handlers"]["file"]

        assert handler["maxBytes"] == 2 * 1024 * 1024
        assert handler["backupCount"] == 3
        assert handler["filename"].startswith(str(log_dir))
        assert log_dir.is_dir()
        assert config["root"]["handlers"] == ["console", "file"]

    def test_file_handler_disabled(self, log_dir):
        config = build_logging_config(LoggingSettings(enabled=False))

        assert "file" not in config["handlers"]
        assert config["root"]["handlers"] == ["console"]
        assert not log_dir.exists()

    def test_verbose_console(self, log_dir):
        quiet = build_logging_config(LoggingSettings(enabled=False))
        verbose = build_logging_config(LoggingSettings(enabled=False), verbose=True)

        assert quiet["handlers"]["console"]["level"] == "INFO"
        assert verbose["handlers"]["console"]["level"] == "DEBUG"

    def test_analysis_logger_level(self, log_dir):
        config = build_logging_config(
            LoggingSettings(enabled=False, analysis_level="INFO")
        )

        assert config["loggers"]["pmenvelope.analysis"]["level"] == "INFO"
